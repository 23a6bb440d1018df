from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Dict, Mapping, Optional


_BOOLEAN_TRUE = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Config:
    """Runtime configuration assembled from environment variables and CLI options."""

    base_dir: Path
    measurements_path: Optional[Path]
    catalog_path: Optional[Path]
    organization_id: Optional[str]
    job_id: Optional[str]
    output_dir: Path
    estimate_name: Optional[str] = None
    estimate_type: str = "standard"
    deductible: Decimal = Decimal("0")
    verbose: bool = False


def _as_path(value: object | None) -> Optional[Path]:
    text = _to_text(value)
    if text is None:
        return None
    return Path(text).expanduser().resolve()


def _to_decimal(value: object | None) -> Optional[Decimal]:
    if value is None:
        return None
    text = str(value).replace("$", "").replace(",", "").strip()
    if not text:
        return None
    try:
        number = Decimal(text)
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def _to_text(value: object | None) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _is_true(value: object | None) -> bool:
    if isinstance(value, bool):
        return value
    return (_to_text(value) or "").lower() in _BOOLEAN_TRUE


def _cli_options(cli_args: object | None) -> Dict[str, object]:
    """Options the user actually passed; unset (``None``) argparse values are dropped."""

    if cli_args is None or not hasattr(cli_args, "__dict__"):
        return {}
    return {key: value for key, value in vars(cli_args).items() if value is not None}


def load_config(env: Mapping[str, str], cli_args: object | None = None) -> Config:
    """Build a runtime :class:`Config` from environment variables and CLI options."""

    base_dir = Path(__file__).resolve().parents[2]
    default_output_dir = (base_dir / "outputs").resolve()

    cli = _cli_options(cli_args)

    def setting(option: str, env_key: str) -> object | None:
        # A CLI value wins even when it is falsy ("0", "")
        return cli[option] if option in cli else env.get(env_key)

    measurements_path = _as_path(setting("measurements", "MEASUREMENTS_FILE"))
    catalog_path = _as_path(setting("catalog", "PRICE_CATALOG"))
    organization_id = _to_text(setting("org", "ORG_ID"))
    job_id = _to_text(setting("job_id", "JOB_ID"))
    output_dir = _as_path(setting("output_dir", "OUTPUT_DIR")) or default_output_dir
    estimate_name = _to_text(setting("name", "ESTIMATE_NAME"))
    estimate_type = _to_text(setting("estimate_type", "ESTIMATE_TYPE")) or "standard"
    deductible = _to_decimal(setting("deductible", "DEDUCTIBLE"))
    if deductible is None:
        deductible = Decimal("0")
    verbose = _is_true(cli.get("verbose")) or _is_true(env.get("VERBOSE"))

    return Config(
        base_dir=base_dir,
        measurements_path=measurements_path,
        catalog_path=catalog_path,
        organization_id=organization_id,
        job_id=job_id,
        output_dir=output_dir,
        estimate_name=estimate_name,
        estimate_type=estimate_type,
        deductible=deductible,
        verbose=verbose,
    )


__all__ = ["Config", "load_config"]
