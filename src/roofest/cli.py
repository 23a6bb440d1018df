import argparse
import logging
import os
from pathlib import Path
from typing import List, Optional, Sequence

from dotenv import load_dotenv

from .api import EstimateOptions, load_catalog, run_estimate
from .catalog import default_catalog, list_catalog, set_organization_price, write_catalog_file
from .config import Config
from .config import load_config as load_runtime_config
from .errors import EstimateError, MissingMeasurementsError
from .models import PriceCatalogItem
from .reporting import make_summary_text

BASE_DIR = Path(__file__).resolve().parents[2]

load_dotenv(BASE_DIR / ".env")

logger = logging.getLogger(__name__)

EXIT_MISSING_MEASUREMENTS = 2


def _log_catalog(items: List[PriceCatalogItem], organization_id: str) -> None:
    logger.info("Pricing for organization %s:", organization_id)
    for item in list_catalog(items, organization_id):
        scope = "org" if item.organization_id else "default"
        logger.info(
            " - %-18s %-12s %-3s $%10s  %s [%s]",
            item.code,
            item.category,
            item.unit,
            f"{item.unit_price:,.2f}",
            item.description,
            scope,
        )


def _apply_price_override(cfg: Config, override: str) -> int:
    if not cfg.catalog_path:
        logger.error("--set-price requires --catalog (or PRICE_CATALOG) to write the override to")
        return 1
    code, sep, price = override.partition("=")
    if not sep or not code.strip():
        logger.error("--set-price expects CODE=PRICE, got %r", override)
        return 1
    items = load_catalog(cfg.catalog_path) if cfg.catalog_path.exists() else default_catalog()
    updated, item = set_organization_price(items, code.strip().upper(), cfg.organization_id, price)
    write_catalog_file(updated, cfg.catalog_path)
    logger.info("%s for %s is now $%s", item.code, cfg.organization_id, f"{item.unit_price:,.2f}")
    return 0


def run(
    runtime_config: Config,
    *,
    list_pricing: bool = False,
    set_price: Optional[str] = None,
    summary: bool = False,
) -> int:
    """Run one CLI action against ``runtime_config`` and return the exit code."""

    cfg = runtime_config
    if not cfg.organization_id:
        logger.error("An organization id is required (--org or ORG_ID)")
        return 1

    if set_price:
        return _apply_price_override(cfg, set_price)

    if list_pricing:
        _log_catalog(load_catalog(cfg.catalog_path), cfg.organization_id)
        return 0

    if cfg.measurements_path is None:
        logger.error("A measurements file is required (--measurements or MEASUREMENTS_FILE)")
        return 1

    options = EstimateOptions(
        measurements_path=cfg.measurements_path,
        organization_id=cfg.organization_id,
        output_dir=cfg.output_dir,
        catalog_path=cfg.catalog_path,
        job_id=cfg.job_id,
        name=cfg.estimate_name,
        estimate_type=cfg.estimate_type,
        deductible=cfg.deductible,
    )
    result, artifacts = run_estimate(options)

    logger.info("Estimate %s generated", artifacts["version_dir"].name)
    logger.info("Line items: %d, subtotal $%s", len(result.line_items), f"{result.subtotal:,.2f}")
    if summary:
        logger.info("\n%s", make_summary_text(result))
    logger.info("\nOutputs written:")
    for key in ("estimate_json", "line_items_csv", "xlsx"):
        logger.info(" - %s", artifacts[key])
    return 0


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate a priced roofing estimate from roof measurements")
    parser.add_argument("--measurements", help="Measurement JSON/CSV/XLSX for the job")
    parser.add_argument("--catalog", help="Price catalog CSV/XLSX (defaults to the built-in price list)")
    parser.add_argument("--org", help="Organization id whose price overrides apply")
    parser.add_argument("--job-id", help="Job id to select from the measurements file")
    parser.add_argument("--output-dir", help="Directory for versioned estimates")
    parser.add_argument("--name", help="Estimate name (default: 'Estimate vN')")
    parser.add_argument("--estimate-type", help="Estimate type label (default: standard)")
    parser.add_argument("--deductible", help="Deductible recorded on the estimate")
    parser.add_argument("--list-pricing", action="store_true", help="Print the organization's resolved price list")
    parser.add_argument("--set-price", metavar="CODE=PRICE", help="Store an organization price override in --catalog")
    parser.add_argument("--write-seed", metavar="PATH", help="Write the default price list to PATH and exit")
    parser.add_argument("--summary", action="store_true", help="Print a text summary of the generated estimate")
    parser.add_argument("-v", "--verbose", action="store_true", help="Increase logging verbosity")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    runtime_cfg = load_runtime_config(os.environ, args)
    log_level = logging.DEBUG if runtime_cfg.verbose else logging.INFO
    logging.basicConfig(level=log_level, format="%(message)s")

    if args.write_seed:
        path = write_catalog_file(default_catalog(), Path(args.write_seed))
        logger.info("Default price list written to %s", path)
        return 0

    try:
        return run(
            runtime_config=runtime_cfg,
            list_pricing=args.list_pricing,
            set_price=args.set_price,
            summary=args.summary,
        )
    except MissingMeasurementsError as exc:
        logger.error("%s; take measurements first.", exc)
        return EXIT_MISSING_MEASUREMENTS
    except (EstimateError, OSError, ValueError) as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
