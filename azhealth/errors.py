"""Error types raised by the health report pipeline."""

from __future__ import annotations

from typing import Any, Optional


class HealthReportError(RuntimeError):
    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        detail: Optional[str] = None,
        payload: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail
        self.payload = payload


class ArmRequestError(HealthReportError):
    """Raised when an Azure Resource Manager call fails."""


class ArmAuthError(ArmRequestError):
    """Raised when ARM returns 401/403."""


class ArmNotFoundError(ArmRequestError):
    """Raised when ARM returns 404."""


class ArmThrottledError(ArmRequestError):
    """Raised when ARM returns 429."""


class ArmServerError(ArmRequestError):
    """Raised for 5xx errors from ARM."""


class FatalError(HealthReportError):
    """A failure the run cannot continue from."""


class AuthenticationFailedError(FatalError):
    """Raised when no token can be obtained or no subscription can be resolved."""


class InventoryError(FatalError):
    """Raised when the resource inventory cannot be listed."""
