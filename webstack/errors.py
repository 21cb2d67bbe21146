from __future__ import annotations

from typing import Any, Optional


class FunctionError(RuntimeError):
    """Error rendered as the `{"success": false, "error": ...}` envelope used by every function route."""

    def __init__(
        self,
        *,
        message: str,
        status_code: int = 500,
        headers: Optional[dict[str, str]] = None,
        **extra: Any,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.headers = headers
        self.extra = extra

    def to_content(self) -> dict[str, Any]:
        return {"success": False, "error": str(self), **self.extra}


class UpstreamApiError(RuntimeError):
    """`upstream_status` is the status the remote service answered with; None for network or decode failures."""

    def __init__(
        self,
        *,
        message: str,
        status_code: int = 502,
        details: Any = None,
        upstream_status: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details
        self.upstream_status = upstream_status


class ConfigurationError(RuntimeError):
    """A required credential or setting for an outbound integration is missing."""
