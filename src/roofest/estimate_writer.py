from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict

import pandas as pd

from .models import EstimateResult

logger = logging.getLogger(__name__)


def _export_frame(result: EstimateResult) -> pd.DataFrame:
    df = result.to_frame()
    for column in ("unit_price", "total_price"):
        df[column] = df[column].astype(float)
    return df


def _summary_frame(result: EstimateResult) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {"FIELD": "TOTAL_SQFT", "VALUE": result.summary.total_sqft},
            {"FIELD": "SQUARES", "VALUE": result.summary.squares},
            {"FIELD": "WASTE_FACTOR", "VALUE": float(result.summary.waste_factor)},
            {"FIELD": "LINE_ITEMS", "VALUE": len(result.line_items)},
            {"FIELD": "SUBTOTAL", "VALUE": float(result.subtotal)},
        ]
    )


def write_outputs(result: EstimateResult, xlsx_path: Path, csv_path: Path) -> Dict[str, Path]:
    """Write the estimate workbook (LINE_ITEMS + SUMMARY sheets) and a line item CSV."""

    xlsx_path = Path(xlsx_path)
    csv_path = Path(csv_path)
    xlsx_path.parent.mkdir(parents=True, exist_ok=True)
    csv_path.parent.mkdir(parents=True, exist_ok=True)

    items = _export_frame(result)
    with pd.ExcelWriter(xlsx_path, engine="openpyxl") as writer:
        items.to_excel(writer, sheet_name="LINE_ITEMS", index=False)
        _summary_frame(result).to_excel(writer, sheet_name="SUMMARY", index=False)
    result.to_frame().to_csv(csv_path, index=False)
    logger.info("Wrote estimate workbook to %s", xlsx_path)
    return {"xlsx": xlsx_path, "csv": csv_path}
