"""Caller-facing result of an enrollment response."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class EnrollmentErrorCode(str, Enum):
    REQUEST_NOT_FOUND = "REQUEST_NOT_FOUND"
    ALREADY_PROCESSED = "ALREADY_PROCESSED"
    CARD_CREATION_FAILED = "CARD_CREATION_FAILED"
    APPROVAL_PROCESSING_ERROR = "APPROVAL_PROCESSING_ERROR"
    REJECTION_PROCESSING_ERROR = "REJECTION_PROCESSING_ERROR"
    PROCESSING_ERROR = "PROCESSING_ERROR"


@dataclass(frozen=True)
class EnrollmentResponse:
    """Structured outcome; the workflow returns one of these and never raises."""

    success: bool
    message: str
    card_id: str | None = None
    error_code: EnrollmentErrorCode | None = None
    error_location: str | None = None

    @classmethod
    def succeeded(cls, message: str, *, card_id: str | None = None) -> "EnrollmentResponse":
        return cls(success=True, message=message, card_id=card_id)

    @classmethod
    def failed(
        cls,
        error_code: EnrollmentErrorCode,
        message: str,
        *,
        location: str,
    ) -> "EnrollmentResponse":
        return cls(success=False, message=message, error_code=error_code, error_location=location)

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.card_id is not None:
            payload["cardId"] = self.card_id
        if self.error_code is not None:
            payload["errorCode"] = self.error_code.value
        if self.error_location is not None:
            payload["errorLocation"] = self.error_location
        return payload


__all__ = ["EnrollmentErrorCode", "EnrollmentResponse"]
