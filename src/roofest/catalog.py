"""
Price catalog loading and per-organization price resolution.

The catalog is a flat list of :class:`~roofest.models.PriceCatalogItem` rows.
Rows with ``organization_id=None`` are the global defaults seeded from
:data:`DEFAULT_PRICE_LIST`; an organization row for the same code supersedes
the global row when that organization's price table is resolved.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from .errors import CatalogItemNotFoundError
from .models import Category, ItemCode, PriceCatalogItem, Unit

logger = logging.getLogger(__name__)

# (code, description, category, unit, unit price)
DEFAULT_PRICE_LIST: Tuple[Tuple[ItemCode, str, Category, Unit, str], ...] = (
    (ItemCode.TEAR_OFF, "Remove existing roofing (per layer)", Category.REMOVAL, Unit.SQ, "85"),
    (ItemCode.DUMPSTER, "Dumpster & debris disposal", Category.REMOVAL, Unit.EA, "650"),
    (ItemCode.SHINGLE_ARCH, "Architectural shingles (30-year)", Category.INSTALLATION, Unit.SQ, "165"),
    (ItemCode.SHINGLE_3TAB, "3-tab shingles (25-year)", Category.INSTALLATION, Unit.SQ, "125"),
    (ItemCode.UNDERLAYMENT, "Synthetic underlayment", Category.INSTALLATION, Unit.SQ, "55"),
    (ItemCode.ICE_WATER, "Ice & water shield", Category.INSTALLATION, Unit.SQ, "95"),
    (ItemCode.DRIP_EDGE, "Drip edge", Category.INSTALLATION, Unit.LF, "3.50"),
    (ItemCode.RIDGE_CAP, "Ridge cap shingles", Category.INSTALLATION, Unit.LF, "8.50"),
    (ItemCode.STARTER, "Starter strip", Category.INSTALLATION, Unit.LF, "3.25"),
    (ItemCode.VALLEY_METAL, "Valley metal", Category.INSTALLATION, Unit.LF, "12"),
    (ItemCode.STEP_FLASH, "Step flashing", Category.INSTALLATION, Unit.LF, "8"),
    (ItemCode.PIPE_COLLAR, "Pipe collar/boot", Category.ACCESSORIES, Unit.EA, "45"),
    (ItemCode.VENT_PASSIVE, "Passive roof vent", Category.ACCESSORIES, Unit.EA, "85"),
    (ItemCode.VENT_POWER, "Power attic vent", Category.ACCESSORIES, Unit.EA, "350"),
    (ItemCode.RIDGE_VENT, "Ridge vent", Category.ACCESSORIES, Unit.LF, "12"),
    (ItemCode.SKYLIGHT_REFL, "Re-flash skylight", Category.ACCESSORIES, Unit.EA, "250"),
    (ItemCode.CHIMNEY_FLASH, "Chimney flashing", Category.ACCESSORIES, Unit.EA, "450"),
    (ItemCode.SATELLITE_REMOUNT, "Satellite dish re-mount", Category.ACCESSORIES, Unit.EA, "75"),
)

CATALOG_COLUMNS: Tuple[str, ...] = (
    "code",
    "description",
    "category",
    "unit",
    "unit_price",
    "organization_id",
)

_HEADER_ALIASES: Dict[str, str] = {
    "price": "unit_price",
    "org_id": "organization_id",
    "org": "organization_id",
    "organization": "organization_id",
}


def default_catalog() -> List[PriceCatalogItem]:
    """Return the seed price list as global catalog rows."""

    return [
        PriceCatalogItem(
            code=code.value,
            description=description,
            category=category.value,
            unit=unit.value,
            unit_price=Decimal(price),
        )
        for code, description, category, unit, price in DEFAULT_PRICE_LIST
    ]


def resolve_price_table(
    items: Iterable[PriceCatalogItem],
    organization_id: str,
) -> Dict[str, PriceCatalogItem]:
    """
    Build the code -> item lookup used by one estimate generation run.

    Parameters
    ----------
    items:
        Catalog rows for any number of organizations plus the global defaults.
    organization_id:
        Organization whose overrides should win over the global rows.

    Returns
    -------
    dict
        One item per code. Codes with neither an organization row nor a global
        row are simply absent; the generator falls back to its built-in prices.
    """

    if organization_id is None or not str(organization_id).strip():
        raise ValueError("organization_id is required to resolve a price table")
    org = str(organization_id)

    table: Dict[str, PriceCatalogItem] = {}
    for item in items:
        if item.organization_id is not None and item.organization_id != org:
            continue
        current = table.get(item.code)
        if current is None or (current.is_global and not item.is_global):
            table[item.code] = item
    logger.debug("Resolved %d catalog codes for organization %s", len(table), org)
    return table


def list_catalog(items: Iterable[PriceCatalogItem], organization_id: str) -> List[PriceCatalogItem]:
    """Rows visible to an organization (its own and the globals), by category then code."""

    org = str(organization_id)
    visible = [item for item in items if item.organization_id in (None, org)]
    return sorted(visible, key=lambda item: (item.category, item.code, item.organization_id is None))


def set_organization_price(
    items: Iterable[PriceCatalogItem],
    code: str,
    organization_id: str,
    unit_price: object,
) -> Tuple[List[PriceCatalogItem], PriceCatalogItem]:
    """
    Set an organization's price for ``code``.

    An existing organization row is updated; otherwise the global row is copied
    with the organization id and new price. Returns the updated catalog and
    the affected row.
    """

    org = str(organization_id)
    price = _to_decimal(unit_price)
    if price is None:
        raise ValueError(f"Invalid unit price for {code}: {unit_price!r}")

    updated: List[PriceCatalogItem] = []
    target: Optional[PriceCatalogItem] = None
    global_item: Optional[PriceCatalogItem] = None
    for item in items:
        if item.code == code and item.organization_id == org:
            item = replace(item, unit_price=price)
            target = item
        elif item.code == code and item.is_global:
            global_item = item
        updated.append(item)

    if target is None:
        if global_item is None:
            raise CatalogItemNotFoundError(code)
        target = replace(global_item, unit_price=price, organization_id=org)
        updated.append(target)
        logger.info("Created %s override for organization %s at %s", code, org, price)
    else:
        logger.info("Updated %s override for organization %s to %s", code, org, price)
    return updated, target


def _to_decimal(value: object) -> Optional[Decimal]:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    text = str(value).replace("$", "").replace(",", "").strip()
    if not text or text.lower() == "nan":
        return None
    try:
        number = Decimal(text)
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def _clean_text(value: object) -> str:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ""
    return str(value).strip()


def _normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    renamed: Dict[str, str] = {}
    for column in df.columns:
        key = str(column).strip().lower().replace(" ", "_")
        renamed[column] = _HEADER_ALIASES.get(key, key)
    return df.rename(columns=renamed)


def _read_table(path: Path) -> pd.DataFrame:
    suffix = path.suffix.lower()
    if suffix in {".xlsx", ".xlsm"}:
        return pd.read_excel(path, engine="openpyxl", dtype=str)
    return pd.read_csv(path, dtype=str, keep_default_na=False)


def items_from_records(records: Iterable[Mapping[str, object]]) -> List[PriceCatalogItem]:
    """Convert catalog rows (e.g. database rows or DataFrame records) into items."""

    items: List[PriceCatalogItem] = []
    for row in records:
        code = _clean_text(row.get("code")).upper()
        if not code:
            continue
        price = _to_decimal(row.get("unit_price"))
        if price is None:
            logger.warning("Skipping catalog row %s with no usable unit price", code)
            continue
        org = _clean_text(row.get("organization_id")) or None
        items.append(
            PriceCatalogItem(
                code=code,
                description=_clean_text(row.get("description")) or code,
                category=_clean_text(row.get("category")).lower(),
                unit=_clean_text(row.get("unit")).upper(),
                unit_price=price,
                organization_id=org,
            )
        )
    return items


def load_catalog_file(path: Path) -> List[PriceCatalogItem]:
    """Load catalog rows from a CSV or Excel file."""

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing price catalog at {path}")
    df = _normalize_columns(_read_table(path))
    missing = [col for col in ("code", "unit_price") if col not in df.columns]
    if missing:
        raise ValueError(f"Price catalog {path} is missing columns: {', '.join(missing)}")
    items = items_from_records(df.to_dict(orient="records"))
    logger.info("Loaded %d catalog rows from %s", len(items), path)
    return items


def catalog_frame(items: Iterable[PriceCatalogItem]) -> pd.DataFrame:
    rows = [
        {
            "code": item.code,
            "description": item.description,
            "category": item.category,
            "unit": item.unit,
            "unit_price": f"{item.unit_price:.2f}",
            "organization_id": item.organization_id or "",
        }
        for item in items
    ]
    return pd.DataFrame(rows, columns=list(CATALOG_COLUMNS))


def write_catalog_file(items: Iterable[PriceCatalogItem], path: Path) -> Path:
    """Write catalog rows to CSV or Excel, chosen by the file suffix."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df = catalog_frame(items)
    if path.suffix.lower() in {".xlsx", ".xlsm"}:
        df.to_excel(path, index=False, engine="openpyxl")
    else:
        df.to_csv(path, index=False)
    return path
