"""Exception types raised by the estimate engine and its catalog helpers."""

from __future__ import annotations

from typing import Optional


class EstimateError(Exception):
    """Base class for roofest domain errors."""


class MissingMeasurementsError(EstimateError):
    """Raised when an estimate is requested for a job that has no measurements."""

    def __init__(self, job_id: Optional[str] = None) -> None:
        self.job_id = job_id
        message = "No measurements found for this job"
        if job_id:
            message = f"{message} ({job_id})"
        super().__init__(message)


class CatalogItemNotFoundError(EstimateError, KeyError):
    """Raised when an override targets a code with no global catalog row."""

    def __init__(self, code: str) -> None:
        self.code = code
        super().__init__(f"Pricing item not found: {code}")

    def __str__(self) -> str:
        return self.args[0]
