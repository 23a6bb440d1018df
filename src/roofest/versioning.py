"""
Versioned on-disk persistence for generated estimates.

Layout under the store root::

    <job_id>/job.json            current total + latest version
    <job_id>/v1/estimate.json    parent estimate record (summary + line items)
    <job_id>/v1/line_items.csv   ordered child line item rows

Every :meth:`EstimateStore.save` creates the next ``vN`` directory. Files are
written into a staging directory that is renamed into place once complete,
so readers never observe a half-written version.
"""

from __future__ import annotations

import json
import logging
import os
import re
import shutil
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from .models import EstimateResult

logger = logging.getLogger(__name__)

_VERSION_DIR = re.compile(r"^v(\d+)$")
ESTIMATE_FILE = "estimate.json"
LINE_ITEMS_FILE = "line_items.csv"
JOB_FILE = "job.json"


@dataclass(frozen=True)
class SavedEstimate:
    job_id: str
    version: int
    directory: Path

    @property
    def estimate_path(self) -> Path:
        return self.directory / ESTIMATE_FILE

    @property
    def line_items_path(self) -> Path:
        return self.directory / LINE_ITEMS_FILE


def _safe_job_dir(job_id: str) -> str:
    text = str(job_id).strip()
    if not text or text in {".", ".."} or "/" in text or "\\" in text:
        raise ValueError(f"Invalid job id for estimate storage: {job_id!r}")
    return text


def _to_deductible(value: object) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        number = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Invalid deductible: {value!r}") from exc
    if not number.is_finite():
        raise ValueError(f"Invalid deductible: {value!r}")
    return number


class EstimateStore:
    """Append-only store of estimate versions keyed by job id."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def job_dir(self, job_id: str) -> Path:
        return self.root / _safe_job_dir(job_id)

    def versions(self, job_id: str) -> List[int]:
        directory = self.job_dir(job_id)
        if not directory.exists():
            return []
        found = []
        for child in directory.iterdir():
            match = _VERSION_DIR.match(child.name)
            if match and child.is_dir():
                found.append(int(match.group(1)))
        return sorted(found)

    def next_version(self, job_id: str) -> int:
        existing = self.versions(job_id)
        return (existing[-1] if existing else 0) + 1

    def save(
        self,
        job_id: str,
        result: EstimateResult,
        *,
        name: Optional[str] = None,
        estimate_type: str = "standard",
        deductible: Decimal | int | str = 0,
    ) -> SavedEstimate:
        """Persist ``result`` as the next version for ``job_id`` and update the job total."""

        job_dir = self.job_dir(job_id)
        job_dir.mkdir(parents=True, exist_ok=True)
        version = self.next_version(job_id)
        target = job_dir / f"v{version}"
        now = datetime.now(timezone.utc).isoformat()
        record: Dict[str, object] = {
            "job_id": str(job_id),
            "version": version,
            "name": name or f"Estimate v{version}",
            "estimate_type": estimate_type or "standard",
            "subtotal": str(result.subtotal),
            "total": str(result.subtotal),
            "deductible": str(_to_deductible(deductible)),
            "status": "draft",
            "created_at": now,
            **result.as_dict(),
        }
        job_record = self._read_job(job_id)
        job_record.update(
            {
                "job_id": str(job_id),
                "total_estimate": str(result.subtotal),
                "current_version": version,
                "updated_at": now,
            }
        )
        staging = job_dir / f".staging-v{version}-{uuid.uuid4().hex}"
        staging.mkdir()
        job_tmp = job_dir / f".{JOB_FILE}.{uuid.uuid4().hex}.tmp"
        try:
            (staging / ESTIMATE_FILE).write_text(json.dumps(record, indent=2), encoding="utf-8")
            result.to_frame().to_csv(staging / LINE_ITEMS_FILE, index=False)
            job_tmp.write_text(json.dumps(job_record, indent=2), encoding="utf-8")
            if target.exists():
                raise FileExistsError(f"Estimate version {version} already exists for job {job_id}")
            os.rename(staging, target)
            os.replace(job_tmp, job_dir / JOB_FILE)
        except Exception:
            shutil.rmtree(staging, ignore_errors=True)
            if job_tmp.exists():
                job_tmp.unlink()
            raise

        logger.info("Saved estimate v%d for job %s (total %s)", version, job_id, result.subtotal)
        return SavedEstimate(job_id=str(job_id), version=version, directory=target)

    def _read_job(self, job_id: str) -> Dict[str, object]:
        path = self.job_dir(job_id) / JOB_FILE
        if not path.exists():
            return {}
        return json.loads(path.read_text(encoding="utf-8"))

    def job(self, job_id: str) -> Dict[str, object]:
        """The job's denormalized record (``total_estimate``, ``current_version``)."""

        return self._read_job(job_id)

    def load(self, job_id: str, version: int) -> Dict[str, object]:
        path = self.job_dir(job_id) / f"v{int(version)}" / ESTIMATE_FILE
        if not path.exists():
            raise FileNotFoundError(f"No estimate v{version} for job {job_id}")
        return json.loads(path.read_text(encoding="utf-8"))

    def load_line_items(self, job_id: str, version: int) -> pd.DataFrame:
        path = self.job_dir(job_id) / f"v{int(version)}" / LINE_ITEMS_FILE
        return pd.read_csv(path, dtype={"code": str, "unit_price": str, "total_price": str})

    def latest(self, job_id: str) -> Optional[Dict[str, object]]:
        existing = self.versions(job_id)
        if not existing:
            return None
        return self.load(job_id, existing[-1])
