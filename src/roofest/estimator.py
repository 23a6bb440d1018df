"""
Rules-based estimate generation.

:func:`generate` turns one :class:`MeasurementRecord` and a resolved price
table into ordered line items. Rules run in the fixed order of :data:`RULES`;
each rule either emits exactly one line item with the next ``sort_order`` or
is skipped. The computation is pure: identical inputs always produce identical
output, including sort order.

Money is handled as :class:`~decimal.Decimal`. Unit prices keep any sub-cent
digits from the catalog. Each line total is rounded half-up to cents, and the
subtotal of the rounded totals is rounded again.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from .catalog import resolve_price_table
from .errors import MissingMeasurementsError
from .models import (
    Category,
    EstimateResult,
    EstimateSummary,
    ItemCode,
    LineItem,
    MeasurementRecord,
    PriceCatalogItem,
    Section,
    Unit,
)

logger = logging.getLogger(__name__)

SQFT_PER_SQUARE = Decimal("100")
WASTE_FACTOR = Decimal("1.15")
EDGE_WASTE_FACTOR = Decimal("1.1")
DUMPSTER_SQUARES = Decimal("30")
CENTS = Decimal("0.01")

QuantityFn = Callable[[MeasurementRecord, int], Optional[int]]


def _dec(value: object) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def _exact_unit_price(value: Decimal) -> Decimal:
    # Padded to cents for display; sub-cent digits are kept for the line total
    if -value.as_tuple().exponent <= 2:
        return value.quantize(CENTS)
    return value


def compute_squares(total_roof_sqft: Optional[float]) -> int:
    """Roofing squares (100 sqft), rounded up; a missing area counts as zero."""

    return math.ceil(_dec(total_roof_sqft or 0) / SQFT_PER_SQUARE)


def _with_waste(squares: int) -> int:
    return math.ceil(squares * WASTE_FACTOR)


def _positive(value: Optional[float]) -> bool:
    return value is not None and value > 0


def _footage(field_name: str, factor: Decimal = Decimal("1")) -> QuantityFn:
    def quantity(m: MeasurementRecord, squares: int) -> Optional[int]:
        value = getattr(m, field_name)
        if not _positive(value):
            return None
        return math.ceil(_dec(value) * factor)

    return quantity


def _count(field_name: str) -> QuantityFn:
    def quantity(m: MeasurementRecord, squares: int) -> Optional[int]:
        value = getattr(m, field_name)
        if not _positive(value):
            return None
        return value

    return quantity


def _tear_off(m: MeasurementRecord, squares: int) -> Optional[int]:
    if m.existing_layers is None or m.existing_layers < 1:
        return None
    return squares


def _dumpsters(m: MeasurementRecord, squares: int) -> Optional[int]:
    if _tear_off(m, squares) is None:
        return None
    return math.ceil(squares / DUMPSTER_SQUARES)


def _field_material(m: MeasurementRecord, squares: int) -> Optional[int]:
    return _with_waste(squares)


@dataclass(frozen=True)
class PricingRule:
    """One step of the line-item sequence."""

    code: ItemCode
    description: str
    category: Category
    unit: Unit
    section: Section
    fallback_price: Decimal
    quantity: QuantityFn
    price_per_layer: bool = False


RULES: Tuple[PricingRule, ...] = (
    PricingRule(ItemCode.TEAR_OFF, "Remove existing roofing", Category.REMOVAL, Unit.SQ,
                Section.REMOVAL, Decimal("85"), _tear_off, price_per_layer=True),
    PricingRule(ItemCode.DUMPSTER, "Dumpster & disposal", Category.REMOVAL, Unit.EA,
                Section.REMOVAL, Decimal("650"), _dumpsters),
    PricingRule(ItemCode.SHINGLE_ARCH, "Architectural shingles (30-year)", Category.INSTALLATION, Unit.SQ,
                Section.INSTALLATION, Decimal("165"), _field_material),
    PricingRule(ItemCode.UNDERLAYMENT, "Synthetic underlayment", Category.INSTALLATION, Unit.SQ,
                Section.INSTALLATION, Decimal("55"), _field_material),
    PricingRule(ItemCode.DRIP_EDGE, "Drip edge", Category.INSTALLATION, Unit.LF,
                Section.INSTALLATION, Decimal("3.50"), _footage("drip_edge_lf", EDGE_WASTE_FACTOR)),
    PricingRule(ItemCode.RIDGE_CAP, "Ridge cap shingles", Category.INSTALLATION, Unit.LF,
                Section.INSTALLATION, Decimal("8.50"), _footage("ridge_cap_lf")),
    PricingRule(ItemCode.STARTER, "Starter strip", Category.INSTALLATION, Unit.LF,
                Section.INSTALLATION, Decimal("3.25"), _footage("starter_lf", EDGE_WASTE_FACTOR)),
    PricingRule(ItemCode.VALLEY_METAL, "Valley metal", Category.INSTALLATION, Unit.LF,
                Section.INSTALLATION, Decimal("12"), _footage("valleys_lf")),
    PricingRule(ItemCode.STEP_FLASH, "Step flashing", Category.INSTALLATION, Unit.LF,
                Section.INSTALLATION, Decimal("8"), _footage("step_flashing_lf")),
    PricingRule(ItemCode.PIPE_COLLAR, "Pipe collar/boot", Category.ACCESSORIES, Unit.EA,
                Section.ACCESSORIES, Decimal("45"), _count("pipe_collars")),
    PricingRule(ItemCode.VENT_PASSIVE, "Passive roof vent", Category.ACCESSORIES, Unit.EA,
                Section.ACCESSORIES, Decimal("85"), _count("passive_vents")),
    PricingRule(ItemCode.VENT_POWER, "Power attic vent", Category.ACCESSORIES, Unit.EA,
                Section.ACCESSORIES, Decimal("350"), _count("power_vents")),
    PricingRule(ItemCode.SKYLIGHT_REFL, "Re-flash skylight", Category.ACCESSORIES, Unit.EA,
                Section.ACCESSORIES, Decimal("250"), _count("skylights")),
    PricingRule(ItemCode.CHIMNEY_FLASH, "Chimney flashing", Category.ACCESSORIES, Unit.EA,
                Section.ACCESSORIES, Decimal("450"), _count("chimneys")),
    PricingRule(ItemCode.SATELLITE_REMOUNT, "Satellite dish re-mount", Category.ACCESSORIES, Unit.EA,
                Section.ACCESSORIES, Decimal("75"), _count("satellites")),
)

FALLBACK_PRICES: Dict[str, Decimal] = {rule.code.value: rule.fallback_price for rule in RULES}


def _describe(rule: PricingRule, m: MeasurementRecord) -> str:
    if not rule.price_per_layer:
        return rule.description
    layers = m.existing_layers or 0
    return f"{rule.description} ({layers} layer{'s' if layers > 1 else ''})"


def _base_price(rule: PricingRule, price_table: Mapping[str, PriceCatalogItem]) -> Decimal:
    item = price_table.get(rule.code.value)
    if item is None:
        logger.debug("No catalog price for %s; using %s", rule.code.value, rule.fallback_price)
        return rule.fallback_price
    return _dec(item.unit_price)


def generate(
    measurement: Optional[MeasurementRecord],
    price_table: Mapping[str, PriceCatalogItem],
) -> EstimateResult:
    """
    Produce the priced line items for one roof.

    Parameters
    ----------
    measurement:
        Normalized measurements for the job. ``None`` raises
        :class:`MissingMeasurementsError` before any line item is built.
    price_table:
        Code -> catalog item mapping from :func:`resolve_price_table`. Missing
        codes fall back to the rule's built-in price.
    """

    if measurement is None:
        raise MissingMeasurementsError()

    squares = compute_squares(measurement.total_roof_sqft)
    line_items: List[LineItem] = []
    for rule in RULES:
        quantity = rule.quantity(measurement, squares)
        if quantity is None:
            continue
        unit_price = _base_price(rule, price_table)
        if rule.price_per_layer:
            unit_price = unit_price * measurement.existing_layers
        unit_price = _exact_unit_price(unit_price)
        item = LineItem(
            code=rule.code.value,
            description=_describe(rule, measurement),
            category=rule.category.value,
            quantity=quantity,
            unit=rule.unit.value,
            unit_price=unit_price,
            total_price=to_cents(_dec(quantity) * unit_price),
            section=rule.section.value,
            sort_order=len(line_items),
        )
        logger.debug("%s: %s %s @ %s = %s", item.code, item.quantity, item.unit, item.unit_price, item.total_price)
        line_items.append(item)

    subtotal = to_cents(sum((item.total_price for item in line_items), Decimal("0")))
    summary = EstimateSummary(
        total_sqft=measurement.total_roof_sqft,
        squares=squares,
        waste_factor=WASTE_FACTOR,
    )
    return EstimateResult(line_items=tuple(line_items), subtotal=subtotal, summary=summary)


def generate_for_job(
    job_id: str,
    organization_id: str,
    measurement: Optional[MeasurementRecord],
    catalog_items: Iterable[PriceCatalogItem],
) -> EstimateResult:
    """Resolve the organization's price table and generate the job's estimate."""

    if measurement is None:
        raise MissingMeasurementsError(job_id)
    price_table = resolve_price_table(catalog_items, organization_id)
    result = generate(measurement, price_table)
    logger.info(
        "Generated %d line items for job %s (subtotal %s)",
        len(result.line_items),
        job_id,
        result.subtotal,
    )
    return result
