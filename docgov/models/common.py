"""
Common Pydantic Models
Error envelope and health schemas shared by every route
"""

from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

ComponentStatus = Literal["healthy", "unhealthy"]
OverallStatus = Literal["healthy", "degraded", "unhealthy"]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ErrorDetail(BaseModel):
    """Body of the error envelope"""
    code: str = Field(..., description="Machine-readable outcome, e.g. not_found or link_unavailable")
    message: str = Field(..., description="Human-readable message, never raw driver or storage text")
    details: Optional[Dict[str, Any]] = Field(None, description="Identifiers involved in the failure")
    timestamp: Optional[str] = Field(None, description="When the failure was raised (UTC)")


class ErrorResponse(BaseModel):
    """``{"error": {...}}`` returned for every failed request"""
    error: ErrorDetail

    @classmethod
    def build(
        cls,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        timestamp: Optional[str] = None,
    ) -> "ErrorResponse":
        # Empty details are reported as null
        return cls(
            error=ErrorDetail(
                code=code,
                message=message,
                details=details or None,
                timestamp=timestamp or _now_iso(),
            )
        )


class HealthResponse(BaseModel):
    """Liveness of the relational store and the object store"""
    status: OverallStatus
    version: str
    timestamp: str = Field(default_factory=_now_iso)
    services: Dict[str, ComponentStatus]

    @classmethod
    def from_checks(cls, version: str, database_ok: bool, storage_ok: bool) -> "HealthResponse":
        """
        Without the database nothing works; without storage metadata and
        sharing still work but files and magic links do not
        """
        if not database_ok:
            overall = "unhealthy"
        elif not storage_ok:
            overall = "degraded"
        else:
            overall = "healthy"

        return cls(
            status=overall,
            version=version,
            services={
                "database": "healthy" if database_ok else "unhealthy",
                "storage": "healthy" if storage_ok else "unhealthy",
            },
        )
