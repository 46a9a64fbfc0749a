from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    UNAUTHORIZED = "unauthorized"
    BAD_REQUEST = "bad_request"
    NOT_FOUND = "not_found"
    STORAGE_UNAVAILABLE = "storage_unavailable"
    RATE_CHECK_UNAVAILABLE = "rate_check_unavailable"
    TIMEOUT = "timeout"


class FleetError(Exception):
    def __init__(self, message: str, error_code: ErrorCode, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.error_code.value,
            "message": str(self),
            "details": self.details,
        }


class UnauthorizedError(FleetError):
    def __init__(self, message: str | None = None):
        msg = message or "Unauthorized"
        super().__init__(msg, ErrorCode.UNAUTHORIZED)


class InvalidRequestError(FleetError):
    def __init__(self, message: str | None = None):
        msg = message or "Invalid request"
        super().__init__(msg, ErrorCode.BAD_REQUEST)


class InstanceNotFoundError(FleetError):
    def __init__(self, instance_id: str):
        super().__init__(
            f"Instance not found: {instance_id}",
            ErrorCode.NOT_FOUND,
            {"instance_id": instance_id},
        )
        self.instance_id = instance_id


class StorageUnavailableError(FleetError):
    def __init__(self, message: str | None = None, error_code: ErrorCode = ErrorCode.STORAGE_UNAVAILABLE):
        msg = message or "Storage unavailable"
        super().__init__(msg, error_code)


class RateCheckUnavailableError(StorageUnavailableError):
    """Raised when activity counts cannot be read. Callers must deny the action."""

    def __init__(self, message: str | None = None):
        msg = message or "Rate check unavailable"
        super().__init__(msg, ErrorCode.RATE_CHECK_UNAVAILABLE)


class OperationTimeoutError(FleetError):
    def __init__(self, operation: str, timeout: float):
        super().__init__(
            f"{operation} exceeded deadline of {timeout}s",
            ErrorCode.TIMEOUT,
            {"operation": operation, "timeout": timeout},
        )


__all__ = [
    "ErrorCode",
    "FleetError",
    "UnauthorizedError",
    "InvalidRequestError",
    "InstanceNotFoundError",
    "StorageUnavailableError",
    "RateCheckUnavailableError",
    "OperationTimeoutError",
]
