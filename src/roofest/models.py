from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional, Tuple

import pandas as pd


class ItemCode(str, Enum):
    """Codes seeded into the global price list."""

    TEAR_OFF = "TEAR_OFF"
    DUMPSTER = "DUMPSTER"
    SHINGLE_ARCH = "SHINGLE_ARCH"
    SHINGLE_3TAB = "SHINGLE_3TAB"
    UNDERLAYMENT = "UNDERLAYMENT"
    ICE_WATER = "ICE_WATER"
    DRIP_EDGE = "DRIP_EDGE"
    RIDGE_CAP = "RIDGE_CAP"
    STARTER = "STARTER"
    VALLEY_METAL = "VALLEY_METAL"
    STEP_FLASH = "STEP_FLASH"
    PIPE_COLLAR = "PIPE_COLLAR"
    VENT_PASSIVE = "VENT_PASSIVE"
    VENT_POWER = "VENT_POWER"
    RIDGE_VENT = "RIDGE_VENT"
    SKYLIGHT_REFL = "SKYLIGHT_REFL"
    CHIMNEY_FLASH = "CHIMNEY_FLASH"
    SATELLITE_REMOUNT = "SATELLITE_REMOUNT"


class Category(str, Enum):
    REMOVAL = "removal"
    INSTALLATION = "installation"
    ACCESSORIES = "accessories"


class Unit(str, Enum):
    SQ = "SQ"
    LF = "LF"
    EA = "EA"


class Section(str, Enum):
    REMOVAL = "Removal"
    INSTALLATION = "Installation"
    ACCESSORIES = "Accessories"


@dataclass(frozen=True)
class MeasurementRecord:
    """Normalized roof measurements for a single job.

    Areas are square feet, ``*_lf`` fields are linear feet and the remaining
    numeric fields are counts. ``None`` means "not measured".
    """

    total_roof_sqft: Optional[float] = None
    pitch_4_6_sqft: Optional[float] = None
    pitch_7_9_sqft: Optional[float] = None
    pitch_10_plus_sqft: Optional[float] = None
    ridges_lf: Optional[float] = None
    hips_lf: Optional[float] = None
    valleys_lf: Optional[float] = None
    rakes_lf: Optional[float] = None
    eaves_lf: Optional[float] = None
    flashing_lf: Optional[float] = None
    step_flashing_lf: Optional[float] = None
    drip_edge_lf: Optional[float] = None
    leak_barrier_lf: Optional[float] = None
    ridge_cap_lf: Optional[float] = None
    starter_lf: Optional[float] = None
    gutter_lf: Optional[float] = None
    pipe_collars: Optional[int] = None
    rain_caps: Optional[int] = None
    passive_vents: Optional[int] = None
    power_vents: Optional[int] = None
    skylights: Optional[int] = None
    chimneys: Optional[int] = None
    satellites: Optional[int] = None
    existing_layers: Optional[int] = 1
    stories: Optional[int] = 1
    predominant_pitch: Optional[str] = None
    job_id: Optional[str] = None
    measurement_source: Optional[str] = None
    has_gutters: bool = False
    notes: str = ""


@dataclass(frozen=True)
class PriceCatalogItem:
    """One row of the price catalog; ``organization_id=None`` marks a global default."""

    code: str
    description: str
    category: str
    unit: str
    unit_price: Decimal
    organization_id: Optional[str] = None

    @property
    def is_global(self) -> bool:
        return self.organization_id is None


@dataclass(frozen=True)
class LineItem:
    code: str
    description: str
    category: str
    quantity: int
    unit: str
    unit_price: Decimal
    total_price: Decimal
    section: str
    sort_order: int

    def as_record(self) -> Dict[str, object]:
        return asdict(self)


@dataclass(frozen=True)
class EstimateSummary:
    total_sqft: Optional[float]
    squares: int
    waste_factor: Decimal


LINE_ITEM_COLUMNS: Tuple[str, ...] = (
    "sort_order",
    "section",
    "code",
    "description",
    "category",
    "quantity",
    "unit",
    "unit_price",
    "total_price",
)


@dataclass(frozen=True)
class EstimateResult:
    """Ordered line items plus the rolled-up subtotal for one generation run."""

    line_items: Tuple[LineItem, ...]
    subtotal: Decimal
    summary: EstimateSummary

    def to_frame(self) -> pd.DataFrame:
        rows = [item.as_record() for item in sorted(self.line_items, key=lambda i: i.sort_order)]
        return pd.DataFrame(rows, columns=list(LINE_ITEM_COLUMNS))

    def as_dict(self) -> Dict[str, object]:
        """JSON-friendly payload; money is rendered as decimal strings."""

        return {
            "line_items": [
                {
                    **item.as_record(),
                    "unit_price": str(item.unit_price),
                    "total_price": str(item.total_price),
                }
                for item in self.line_items
            ],
            "subtotal": str(self.subtotal),
            "summary": {
                "total_sqft": self.summary.total_sqft,
                "squares": self.summary.squares,
                "waste_factor": float(self.summary.waste_factor),
            },
        }
