from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Dict, List, Optional, Union

from pagerun.app.telemetry.models import (
    Breadcrumb,
    CapturedException,
    TelemetryLevel,
)

TelemetryEvent = Union[Breadcrumb, CapturedException]

RUN_COMPLETED = "Run completed"


class MemoryTelemetrySink:
    """
    In-memory telemetry sink.

    Properties:
    - records every event for later inspection
    - single-consumer streaming in emission order
    - terminates the stream on run completion or a fatal exception
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[TelemetryEvent | None] = asyncio.Queue()
        self._closed = False
        self.breadcrumbs: List[Breadcrumb] = []
        self.exceptions: List[CapturedException] = []
        self.events: List[TelemetryEvent] = []

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
        self.exceptions.append(event)
        await self._publish(event)

        if level == TelemetryLevel.FATAL:
            await self.close()

    async def capture_breadcrumb(
        self,
        message: str,
        *,
        category: str = "lifecycle",
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        crumb = Breadcrumb(message=message, category=category, data=data)
        self.breadcrumbs.append(crumb)
        await self._publish(crumb)

        if category == "lifecycle" and message == RUN_COMPLETED:
            await self.close()

    async def _publish(self, event: TelemetryEvent) -> None:
        self.events.append(event)
        if self._closed:
            return
        await self._queue.put(event)

    async def close(self) -> None:
        if not self._closed:
            self._closed = True
            await self._queue.put(None)

    async def stream(self) -> AsyncIterator[TelemetryEvent]:
        """
        Async generator yielding published events in order.
        """
        while True:
            event = await self._queue.get()
            if event is None:
                break
            yield event
