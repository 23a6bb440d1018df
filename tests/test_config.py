from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from types import SimpleNamespace

from roofest.config import load_config


def test_environment_supplies_defaults(tmp_path: Path) -> None:
    env = {
        "MEASUREMENTS_FILE": str(tmp_path / "m.json"),
        "PRICE_CATALOG": str(tmp_path / "catalog.csv"),
        "ORG_ID": "org-env",
        "JOB_ID": "JOB-ENV",
        "OUTPUT_DIR": str(tmp_path / "out"),
        "DEDUCTIBLE": "$1,000",
        "VERBOSE": "yes",
    }
    cfg = load_config(env, None)

    assert cfg.measurements_path == (tmp_path / "m.json").resolve()
    assert cfg.catalog_path == (tmp_path / "catalog.csv").resolve()
    assert cfg.organization_id == "org-env"
    assert cfg.job_id == "JOB-ENV"
    assert cfg.output_dir == (tmp_path / "out").resolve()
    assert cfg.deductible == Decimal("1000")
    assert cfg.estimate_type == "standard"
    assert cfg.verbose is True


def test_cli_options_take_precedence(tmp_path: Path) -> None:
    env = {"ORG_ID": "org-env", "OUTPUT_DIR": str(tmp_path / "env-out")}
    args = SimpleNamespace(
        org="org-cli",
        job_id="JOB-CLI",
        output_dir=str(tmp_path / "cli-out"),
        estimate_type="insurance",
        name="Storm claim",
        deductible="250",
        verbose=False,
    )
    cfg = load_config(env, args)

    assert cfg.organization_id == "org-cli"
    assert cfg.job_id == "JOB-CLI"
    assert cfg.output_dir == (tmp_path / "cli-out").resolve()
    assert cfg.estimate_type == "insurance"
    assert cfg.estimate_name == "Storm claim"
    assert cfg.deductible == Decimal("250")
    assert cfg.verbose is False


def test_blank_values_fall_back_to_defaults() -> None:
    cfg = load_config({"ORG_ID": "  ", "OUTPUT_DIR": "", "DEDUCTIBLE": "abc"}, None)

    assert cfg.organization_id is None
    assert cfg.measurements_path is None
    assert cfg.output_dir == cfg.base_dir / "outputs"
    assert cfg.deductible == Decimal("0")


def test_falsy_cli_values_still_override_environment() -> None:
    env = {"DEDUCTIBLE": "500", "ESTIMATE_NAME": "From env"}
    args = SimpleNamespace(deductible="0", name="", org=None)
    cfg = load_config(env, args)

    assert cfg.deductible == Decimal("0")
    assert cfg.estimate_name is None


def test_non_finite_deductible_is_ignored() -> None:
    assert load_config({"DEDUCTIBLE": "inf"}, None).deductible == Decimal("0")
    assert load_config({}, SimpleNamespace(deductible="NaN")).deductible == Decimal("0")
