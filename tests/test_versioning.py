from __future__ import annotations

import json

import pytest

from roofest.estimator import generate
from roofest.models import EstimateResult, MeasurementRecord
from roofest.versioning import EstimateStore


def _result(sqft: float = 1000.0) -> EstimateResult:
    return generate(MeasurementRecord(total_roof_sqft=sqft, existing_layers=1, chimneys=1), {})


def test_each_save_creates_a_new_version(tmp_path):
    store = EstimateStore(tmp_path)
    first = store.save("JOB-1", _result(1000.0))
    second = store.save("JOB-1", _result(2000.0), name="Revised", deductible="500")

    assert (first.version, second.version) == (1, 2)
    assert store.versions("JOB-1") == [1, 2]
    assert first.estimate_path.exists()

    v1 = store.load("JOB-1", 1)
    v2 = store.latest("JOB-1")
    assert v1["name"] == "Estimate v1"
    assert v1["status"] == "draft"
    assert v1["total"] == v1["subtotal"]
    assert v2["name"] == "Revised"
    assert v2["deductible"] == "500"
    assert v2["version"] == 2

    job = store.job("JOB-1")
    assert job["total_estimate"] == str(_result(2000.0).subtotal)
    assert job["current_version"] == 2


def test_line_items_are_written_in_sort_order(tmp_path):
    store = EstimateStore(tmp_path)
    result = _result()
    store.save("JOB-1", result)

    frame = store.load_line_items("JOB-1", 1)

    assert frame["code"].tolist() == [item.code for item in result.line_items]
    assert frame["sort_order"].tolist() == list(range(len(result.line_items)))
    assert frame["total_price"].tolist() == [str(item.total_price) for item in result.line_items]


def test_estimate_record_matches_result_payload(tmp_path):
    store = EstimateStore(tmp_path)
    result = _result()
    saved = store.save("JOB-1", result, estimate_type="insurance")

    record = json.loads(saved.estimate_path.read_text(encoding="utf-8"))

    assert record["estimate_type"] == "insurance"
    assert record["line_items"] == result.as_dict()["line_items"]
    assert record["summary"]["squares"] == 10


def test_failed_save_leaves_no_partial_version(tmp_path, monkeypatch):
    store = EstimateStore(tmp_path)
    result = _result()

    def _boom(self):
        raise RuntimeError("disk full")

    monkeypatch.setattr(EstimateResult, "to_frame", _boom)
    with pytest.raises(RuntimeError):
        store.save("JOB-1", result)

    assert store.versions("JOB-1") == []
    assert store.job("JOB-1") == {}
    assert [p.name for p in store.job_dir("JOB-1").iterdir()] == []


def test_versions_are_kept_per_job(tmp_path):
    store = EstimateStore(tmp_path)
    store.save("JOB-1", _result())
    store.save("JOB-2", _result())

    assert store.versions("JOB-1") == [1]
    assert store.versions("JOB-2") == [1]
    assert store.latest("JOB-3") is None


def test_job_ids_cannot_escape_the_store(tmp_path):
    store = EstimateStore(tmp_path)
    with pytest.raises(ValueError):
        store.save("../outside", _result())


def test_invalid_deductible_leaves_no_staging_directory(tmp_path):
    store = EstimateStore(tmp_path)
    store.save("JOB-1", _result(), deductible="250")

    with pytest.raises(ValueError):
        store.save("JOB-1", _result(), deductible="abc")

    assert store.versions("JOB-1") == [1]
    assert store.job("JOB-1")["current_version"] == 1
    assert sorted(p.name for p in store.job_dir("JOB-1").iterdir()) == ["job.json", "v1"]
    assert store.load("JOB-1", 1)["deductible"] == "250"
