from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .catalog import default_catalog, load_catalog_file
from .errors import MissingMeasurementsError
from .estimate_writer import write_outputs
from .estimator import generate_for_job
from .measurements import load_measurement_file
from .models import EstimateResult, PriceCatalogItem
from .versioning import EstimateStore


@dataclass
class EstimateOptions:
    measurements_path: Path
    organization_id: str
    output_dir: Path
    catalog_path: Optional[Path] = None
    job_id: Optional[str] = None
    name: Optional[str] = None
    estimate_type: str = "standard"
    deductible: Decimal = Decimal("0")


def load_catalog(catalog_path: Optional[Path]) -> List[PriceCatalogItem]:
    """Catalog rows from ``catalog_path``, or the global seed list when no file is given."""

    if catalog_path is None:
        return default_catalog()
    return load_catalog_file(catalog_path)


def run_estimate(options: EstimateOptions) -> Tuple[EstimateResult, Dict[str, Path]]:
    """Generate, store and export a new estimate version; returns the result and artifact paths."""

    measurement = load_measurement_file(options.measurements_path, options.job_id)
    job_id = options.job_id or (measurement.job_id if measurement else None)
    if measurement is None:
        raise MissingMeasurementsError(job_id)
    if not job_id:
        raise ValueError("A job id is required (pass one or include job_id in the measurements)")

    catalog = load_catalog(options.catalog_path)
    result = generate_for_job(job_id, options.organization_id, measurement, catalog)

    store = EstimateStore(options.output_dir)
    saved = store.save(
        job_id,
        result,
        name=options.name,
        estimate_type=options.estimate_type,
        deductible=options.deductible,
    )
    exports = write_outputs(
        result,
        saved.directory.parent / f"Estimate_v{saved.version}.xlsx",
        saved.directory.parent / f"Estimate_v{saved.version}_LineItems.csv",
    )
    return result, {
        "version_dir": saved.directory,
        "estimate_json": saved.estimate_path,
        "line_items_csv": saved.line_items_path,
        "xlsx": exports["xlsx"],
    }


def estimate(options: EstimateOptions) -> Dict[str, Path]:
    """Programmatic interface to generate and store a new estimate version.

    Returns a dict with keys: version_dir, estimate_json, line_items_csv, xlsx.
    """

    _, artifacts = run_estimate(options)
    return artifacts
