"""
fleetwatch: presence tracking, fleet statistics and rolling-window activity
checks for a fleet of autonomous agent instances.
"""
from __future__ import annotations

__version__ = "0.1.0"

from .clock import Clock, ManualClock, SystemClock
from .errors import (
    ErrorCode,
    FleetError,
    InstanceNotFoundError,
    InvalidRequestError,
    OperationTimeoutError,
    RateCheckUnavailableError,
    StorageUnavailableError,
    UnauthorizedError,
)

__all__ = [
    "__version__",
    "Clock",
    "ManualClock",
    "SystemClock",
    "ErrorCode",
    "FleetError",
    "InstanceNotFoundError",
    "InvalidRequestError",
    "OperationTimeoutError",
    "RateCheckUnavailableError",
    "StorageUnavailableError",
    "UnauthorizedError",
]
