"""Rules-based roofing estimate generation."""

from .catalog import default_catalog, resolve_price_table
from .errors import CatalogItemNotFoundError, EstimateError, MissingMeasurementsError
from .estimator import generate, generate_for_job
from .measurements import normalize_measurement
from .models import EstimateResult, LineItem, MeasurementRecord, PriceCatalogItem

__all__ = [
    "CatalogItemNotFoundError",
    "EstimateError",
    "EstimateResult",
    "LineItem",
    "MeasurementRecord",
    "MissingMeasurementsError",
    "PriceCatalogItem",
    "default_catalog",
    "generate",
    "generate_for_job",
    "normalize_measurement",
    "resolve_price_table",
]
