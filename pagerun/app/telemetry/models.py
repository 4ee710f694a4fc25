from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


# ----------------------------------------------------------------------
# Levels
# ----------------------------------------------------------------------
class TelemetryLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    FATAL = "fatal"


# ----------------------------------------------------------------------
# Event models
# ----------------------------------------------------------------------
class Breadcrumb(BaseModel):
    """
    A lifecycle observation recorded during a run.

    Breadcrumbs are observational only and never influence control flow.
    """

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    message: str
    category: str = "lifecycle"
    level: TelemetryLevel = TelemetryLevel.INFO
    data: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class CapturedException(BaseModel):
    """
    An error that escaped a run, as reported to telemetry.
    """

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    level: TelemetryLevel = TelemetryLevel.ERROR
    exception_type: str
    message: str
    phase: Optional[str] = None
    run_id: Optional[str] = None
    extra: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(frozen=True, extra="forbid")

    @classmethod
    def from_error(
        cls,
        error: BaseException,
        *,
        level: TelemetryLevel,
        phase: Optional[str] = None,
        run_id: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> "CapturedException":
        return cls(
            level=level,
            exception_type=type(error).__name__,
            message=str(error),
            phase=phase,
            run_id=run_id,
            extra=extra,
        )
