from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol

from pagerun.app.telemetry.models import (
    Breadcrumb,
    CapturedException,
    TelemetryLevel,
)


class TelemetrySink(Protocol):
    """
    Interface for reporting run lifecycle and fatal errors.

    The sink is acquired by the caller and passed to the orchestrator
    explicitly. There is no module-level telemetry singleton.
    """

    async def capture_exception(
        self,
        error: BaseException,
        *,
        level: TelemetryLevel = TelemetryLevel.ERROR,
        phase: Optional[str] = None,
        run_id: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        ...

    async def capture_breadcrumb(
        self,
        message: str,
        *,
        category: str = "lifecycle",
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        ...


class NullTelemetrySink:
    """
    A safe no-op sink.

    Used when telemetry is disabled and in tests that do not inspect it.
    """

    async def capture_exception(
        self,
        error: BaseException,
        *,
        level: TelemetryLevel = TelemetryLevel.ERROR,
        phase: Optional[str] = None,
        run_id: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        return

    async def capture_breadcrumb(
        self,
        message: str,
        *,
        category: str = "lifecycle",
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        return


_LOG_LEVELS = {
    TelemetryLevel.DEBUG: logging.DEBUG,
    TelemetryLevel.INFO: logging.INFO,
    TelemetryLevel.WARNING: logging.WARNING,
    TelemetryLevel.ERROR: logging.ERROR,
    TelemetryLevel.FATAL: logging.CRITICAL,
}


class LoggingTelemetrySink:
    """Sink that forwards telemetry to a standard library logger."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or logging.getLogger("pagerun.telemetry")

    async def capture_exception(
        self,
        error: BaseException,
        *,
        level: TelemetryLevel = TelemetryLevel.ERROR,
        phase: Optional[str] = None,
        run_id: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        event = CapturedException.from_error(
            error, level=level, phase=phase, run_id=run_id, extra=extra
        )
        self._logger.log(
            _LOG_LEVELS[level],
            "run %s failed during %s: %s: %s",
            event.run_id,
            event.phase,
            event.exception_type,
            event.message,
            exc_info=(type(error), error, error.__traceback__),
        )

    async def capture_breadcrumb(
        self,
        message: str,
        *,
        category: str = "lifecycle",
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        crumb = Breadcrumb(message=message, category=category, data=data)
        self._logger.debug("[%s] %s %s", crumb.category, crumb.message, crumb.data or "")
