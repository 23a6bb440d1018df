"""
Normalization of raw measurement rows into :class:`MeasurementRecord`.

Measurement data arrives from report exports, spreadsheets and JSON payloads
with blank strings, thousands separators and mixed naming conventions. This
module is the single place those values are coerced; the estimator assumes
its input has already passed through :func:`normalize_measurement`.

Values are not range-checked. Negative footages or counts are preserved as-is
and flow through to the estimate unchanged.
"""

from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import pandas as pd

from .models import MeasurementRecord

logger = logging.getLogger(__name__)

_FLOAT_FIELDS = (
    "total_roof_sqft",
    "pitch_4_6_sqft",
    "pitch_7_9_sqft",
    "pitch_10_plus_sqft",
    "ridges_lf",
    "hips_lf",
    "valleys_lf",
    "rakes_lf",
    "eaves_lf",
    "flashing_lf",
    "step_flashing_lf",
    "drip_edge_lf",
    "leak_barrier_lf",
    "ridge_cap_lf",
    "starter_lf",
    "gutter_lf",
)

_INT_FIELDS = (
    "pipe_collars",
    "rain_caps",
    "passive_vents",
    "power_vents",
    "skylights",
    "chimneys",
    "satellites",
)

# Alternate spellings seen in report exports and API payloads.
FIELD_ALIASES: Dict[str, str] = {
    "totalroofsqft": "total_roof_sqft",
    "pitch4to6sqft": "pitch_4_6_sqft",
    "pitch7to9sqft": "pitch_7_9_sqft",
    "pitch10plussqft": "pitch_10_plus_sqft",
    "pitchpredominant": "predominant_pitch",
    "predominantpitch": "predominant_pitch",
    "ridges": "ridges_lf",
    "hips": "hips_lf",
    "valleys": "valleys_lf",
    "rakes": "rakes_lf",
    "eaves": "eaves_lf",
    "flashing": "flashing_lf",
    "stepflashing": "step_flashing_lf",
    "dripedge": "drip_edge_lf",
    "leakbarrier": "leak_barrier_lf",
    "ridgecap": "ridge_cap_lf",
    "starter": "starter_lf",
    "gutter": "gutter_lf",
    "pipecollars": "pipe_collars",
    "raincaps": "rain_caps",
    "passivevents": "passive_vents",
    "powervents": "power_vents",
    "existinglayers": "existing_layers",
    "jobid": "job_id",
    "measurementsource": "measurement_source",
    "hasgutters": "has_gutters",
}

_BOOLEAN_TRUE = {"1", "true", "yes", "on", "y"}


def to_optional_float(value: object | None) -> Optional[float]:
    """Blank, missing, unparseable or non-finite values become ``None``."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
        return number if math.isfinite(number) else None
    text = str(value).replace(",", "").strip()
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def to_optional_int(value: object | None) -> Optional[int]:
    number = to_optional_float(value)
    if number is None:
        return None
    return int(number)


def _canonical_key(key: object) -> str:
    text = str(key).strip()
    snake = text.lower().replace(" ", "_").replace("-", "_")
    if snake.endswith("_count"):
        snake = snake[: -len("_count")]
    compact = snake.replace("_", "")
    if compact.endswith("lf") and compact[:-2] in FIELD_ALIASES:
        return FIELD_ALIASES[compact[:-2]]
    return FIELD_ALIASES.get(compact, snake)


def _text(value: object | None) -> Optional[str]:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return None
    text = str(value).strip()
    return text or None


def normalize_measurement(raw: Mapping[str, object]) -> MeasurementRecord:
    """
    Coerce a raw measurement mapping into a :class:`MeasurementRecord`.

    Keys may use the database column names (``pipe_collars_count``,
    ``drip_edge_lf``), camelCase API names (``pipeCollars``, ``dripEdgeLf``)
    or spreadsheet headers (``Total Roof Sqft``). Unknown keys are ignored.
    ``existing_layers`` and ``stories`` default to 1 when blank.
    """

    data: Dict[str, object] = {}
    for key, value in raw.items():
        data[_canonical_key(key)] = value

    values: Dict[str, object] = {}
    for name in _FLOAT_FIELDS:
        values[name] = to_optional_float(data.get(name))
    for name in _INT_FIELDS:
        values[name] = to_optional_int(data.get(name))

    layers = to_optional_int(data.get("existing_layers"))
    stories = to_optional_int(data.get("stories"))
    values["existing_layers"] = 1 if layers is None else layers
    values["stories"] = 1 if stories is None else stories

    values["predominant_pitch"] = _text(data.get("predominant_pitch"))
    job_id = _text(data.get("job_id"))
    values["job_id"] = job_id
    values["measurement_source"] = _text(data.get("measurement_source"))
    gutters = data.get("has_gutters")
    values["has_gutters"] = gutters if isinstance(gutters, bool) else str(gutters or "").strip().lower() in _BOOLEAN_TRUE
    values["notes"] = _text(data.get("notes")) or ""
    return MeasurementRecord(**values)


def _matches_job(row: Mapping[str, object], job_id: Optional[str]) -> bool:
    if job_id is None:
        return True
    for key, value in row.items():
        if _canonical_key(key) == "job_id":
            return _text(value) == str(job_id)
    return False


def _json_rows(path: Path) -> List[Mapping[str, object]]:
    payload = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(payload, dict):
        if isinstance(payload.get("measurements"), (dict, list)):
            payload = payload["measurements"]
        else:
            return [payload]
    if isinstance(payload, dict):
        return [payload]
    if isinstance(payload, list):
        return [row for row in payload if isinstance(row, dict)]
    raise ValueError(f"Unsupported measurement payload in {path}")


def _sheet_rows(path: Path) -> List[Mapping[str, object]]:
    if path.suffix.lower() in {".xlsx", ".xlsm"}:
        df = pd.read_excel(path, engine="openpyxl")
    else:
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
    df = df.dropna(how="all")
    return df.to_dict(orient="records")


def load_measurement_file(path: Path, job_id: Optional[str] = None) -> Optional[MeasurementRecord]:
    """
    Load the measurement record for ``job_id`` from JSON, CSV or Excel.

    Returns ``None`` when the file contains no record for the job so the
    caller can surface a missing-measurements error.
    """

    path = Path(path)
    if not path.exists():
        logger.warning("Measurement file %s does not exist", path)
        return None
    if path.suffix.lower() == ".json":
        rows = _json_rows(path)
    else:
        rows = _sheet_rows(path)

    for row in rows:
        if _matches_job(row, job_id):
            record = normalize_measurement(row)
            logger.debug("Loaded measurements for job %s from %s", record.job_id or job_id, path)
            return record
    logger.info("No measurement row for job %s in %s", job_id, path)
    return None
