from __future__ import annotations

import json
from pathlib import Path

import pandas as pd
import pytest

from roofest.api import EstimateOptions, estimate
from roofest.catalog import load_catalog_file, resolve_price_table
from roofest.cli import EXIT_MISSING_MEASUREMENTS, main
from roofest.errors import MissingMeasurementsError
from roofest.estimate_writer import write_outputs
from roofest.estimator import generate
from roofest.measurements import normalize_measurement
from roofest.reporting import make_summary_text

SAMPLE = {
    "job_id": "JOB-1001",
    "total_roof_sqft": "2,450",
    "existing_layers": "2",
    "drip_edge_lf": "180",
    "ridge_cap_lf": "42.5",
    "starter_lf": "120",
    "pipe_collars_count": "3",
    "chimneys_count": "1",
}


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in ("MEASUREMENTS_FILE", "PRICE_CATALOG", "ORG_ID", "JOB_ID", "OUTPUT_DIR", "DEDUCTIBLE", "VERBOSE"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def measurements_file(tmp_path: Path) -> Path:
    path = tmp_path / "measurements.json"
    path.write_text(json.dumps([SAMPLE]), encoding="utf-8")
    return path


def test_api_generates_versioned_estimates(tmp_path: Path, measurements_file: Path) -> None:
    options = EstimateOptions(
        measurements_path=measurements_file,
        organization_id="org-1",
        output_dir=tmp_path / "out",
        job_id="JOB-1001",
    )
    first = estimate(options)
    second = estimate(options)

    assert first["version_dir"].name == "v1"
    assert second["version_dir"].name == "v2"
    assert first["estimate_json"].exists()
    record = json.loads(second["estimate_json"].read_text(encoding="utf-8"))
    expected = generate(normalize_measurement(SAMPLE), {})
    assert record["subtotal"] == str(expected.subtotal)
    assert record["line_items"][0]["unit_price"] == "170.00"

    sheets = pd.read_excel(first["xlsx"], sheet_name=None, engine="openpyxl")
    assert set(sheets) == {"LINE_ITEMS", "SUMMARY"}
    assert len(sheets["LINE_ITEMS"]) == len(expected.line_items)


def test_api_reports_missing_measurements(tmp_path: Path, measurements_file: Path) -> None:
    options = EstimateOptions(
        measurements_path=measurements_file,
        organization_id="org-1",
        output_dir=tmp_path / "out",
        job_id="JOB-404",
    )
    with pytest.raises(MissingMeasurementsError):
        estimate(options)
    assert not (tmp_path / "out" / "JOB-404").exists()


def test_cli_generate_end_to_end(tmp_path: Path, measurements_file: Path) -> None:
    out = tmp_path / "out"
    rc = main(
        [
            "--measurements", str(measurements_file),
            "--org", "org-1",
            "--job-id", "JOB-1001",
            "--output-dir", str(out),
            "--summary",
        ]
    )

    assert rc == 0
    assert (out / "JOB-1001" / "v1" / "estimate.json").exists()
    assert (out / "JOB-1001" / "Estimate_v1.xlsx").exists()
    job = json.loads((out / "JOB-1001" / "job.json").read_text(encoding="utf-8"))
    assert job["current_version"] == 1


def test_cli_missing_measurements_exit_code(tmp_path: Path, measurements_file: Path) -> None:
    rc = main(
        [
            "--measurements", str(measurements_file),
            "--org", "org-1",
            "--job-id", "JOB-404",
            "--output-dir", str(tmp_path / "out"),
        ]
    )
    assert rc == EXIT_MISSING_MEASUREMENTS


def test_cli_zero_deductible_overrides_environment(
    tmp_path: Path, measurements_file: Path, monkeypatch
) -> None:
    monkeypatch.setenv("DEDUCTIBLE", "500")
    out = tmp_path / "out"
    rc = main(
        [
            "--measurements", str(measurements_file),
            "--org", "org-1",
            "--job-id", "JOB-1001",
            "--output-dir", str(out),
            "--deductible", "0",
        ]
    )

    assert rc == 0
    record = json.loads((out / "JOB-1001" / "v1" / "estimate.json").read_text(encoding="utf-8"))
    assert record["deductible"] == "0"


def test_cli_non_finite_measurement_is_treated_as_missing(tmp_path: Path) -> None:
    path = tmp_path / "measurements.json"
    path.write_text(json.dumps([{**SAMPLE, "chimneys_count": "inf"}]), encoding="utf-8")
    out = tmp_path / "out"
    rc = main(["--measurements", str(path), "--org", "org-1", "--job-id", "JOB-1001", "--output-dir", str(out)])

    assert rc == 0
    record = json.loads((out / "JOB-1001" / "v1" / "estimate.json").read_text(encoding="utf-8"))
    assert "CHIMNEY_FLASH" not in [item["code"] for item in record["line_items"]]


def test_cli_requires_organization(tmp_path: Path, measurements_file: Path) -> None:
    rc = main(["--measurements", str(measurements_file), "--output-dir", str(tmp_path)])
    assert rc == 1


def test_cli_price_override_flow(tmp_path: Path, measurements_file: Path) -> None:
    catalog = tmp_path / "catalog.csv"
    assert main(["--write-seed", str(catalog)]) == 0
    assert len(load_catalog_file(catalog)) == 18

    assert main(["--catalog", str(catalog), "--org", "org-1", "--set-price", "tear_off=90"]) == 0
    assert main(["--catalog", str(catalog), "--org", "org-1", "--set-price", "NOPE=1"]) == 1
    assert main(["--catalog", str(catalog), "--org", "org-1", "--list-pricing"]) == 0

    items = load_catalog_file(catalog)
    assert resolve_price_table(items, "org-1")["TEAR_OFF"].unit_price == 90
    assert resolve_price_table(items, "org-2")["TEAR_OFF"].unit_price == 85

    out = tmp_path / "out"
    rc = main(
        [
            "--measurements", str(measurements_file),
            "--catalog", str(catalog),
            "--org", "org-1",
            "--output-dir", str(out),
        ]
    )
    assert rc == 0
    record = json.loads((out / "JOB-1001" / "v1" / "estimate.json").read_text(encoding="utf-8"))
    assert record["line_items"][0]["code"] == "TEAR_OFF"
    assert record["line_items"][0]["unit_price"] == "180.00"


def test_write_outputs_and_summary_text(tmp_path: Path) -> None:
    result = generate(normalize_measurement(SAMPLE), {})
    paths = write_outputs(result, tmp_path / "e.xlsx", tmp_path / "e.csv")

    items = pd.read_csv(paths["csv"])
    assert items["code"].tolist() == [item.code for item in result.line_items]

    summary = pd.read_excel(paths["xlsx"], sheet_name="SUMMARY", engine="openpyxl")
    values = dict(zip(summary["FIELD"], summary["VALUE"]))
    assert values["SQUARES"] == 25
    assert values["SUBTOTAL"] == pytest.approx(float(result.subtotal))

    text = make_summary_text(result)
    assert f"Estimate subtotal: ${float(result.subtotal):,.2f}" in text
    assert "Removal:" in text
    assert "TEAR_OFF" in text
