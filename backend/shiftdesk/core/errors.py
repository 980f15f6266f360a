from __future__ import annotations

from typing import Any


class ScheduleError(Exception):
    """Base class for every failure the scheduling core reports to callers."""

    status_code = 400

    def __init__(self, detail: str, **extra: Any) -> None:
        super().__init__(detail)
        self.detail = detail
        self.extra = extra

    def to_payload(self) -> dict[str, Any]:
        return {"detail": self.detail, **self.extra}


class ValidationError(ScheduleError):
    status_code = 400


class ForbiddenError(ScheduleError):
    status_code = 403


class NotFoundError(ScheduleError):
    status_code = 404


class ConflictError(ScheduleError):
    status_code = 409


class ExternalServiceError(ScheduleError):
    status_code = 502
