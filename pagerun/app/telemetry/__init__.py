from .models import Breadcrumb, CapturedException, TelemetryLevel
from .sink import LoggingTelemetrySink, NullTelemetrySink, TelemetrySink
from .memory_sink import RUN_COMPLETED, MemoryTelemetrySink

__all__ = [
    "Breadcrumb",
    "CapturedException",
    "TelemetryLevel",
    "TelemetrySink",
    "NullTelemetrySink",
    "LoggingTelemetrySink",
    "MemoryTelemetrySink",
    "RUN_COMPLETED",
]
