"""
Run settings schema.

Settings are a flat, frozen snapshot. Only three fields steer the run
itself (gather_mode, audit_mode, output); every other field affects how
a page is measured and is treated as opaque payload by the pipeline.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class OutputMode(str, Enum):
    JSON = "json"
    HTML = "html"
    CSV = "csv"


class ThrottlingMethod(str, Enum):
    DEVTOOLS = "devtools"
    SIMULATE = "simulate"
    PROVIDED = "provided"


class FormFactor(str, Enum):
    MOBILE = "mobile"
    DESKTOP = "desktop"
    NONE = "none"


class ThrottlingSettings(BaseModel):
    rtt_ms: float = Field(150, ge=0)
    throughput_kbps: float = Field(1638.4, ge=0)
    request_latency_ms: float = Field(562.5, ge=0)
    download_throughput_kbps: float = Field(1474.56, ge=0)
    upload_throughput_kbps: float = Field(675, ge=0)
    cpu_slowdown_multiplier: float = Field(4, ge=0)

    model_config = ConfigDict(frozen=True, extra="forbid")


class Settings(BaseModel):
    """
    Settings snapshot for one run.

    gather_mode / audit_mode accept False, True, or a directory path.
    """

    # ------------------------------------------------------------------
    # Run-mode knobs (never measurement-affecting)
    # ------------------------------------------------------------------

    gather_mode: Union[bool, str] = Field(
        False,
        description="Collect artifacts and save them (optionally to a path)",
    )

    audit_mode: Union[bool, str] = Field(
        False,
        description="Evaluate previously saved artifacts (optionally from a path)",
    )

    output: Union[OutputMode, List[OutputMode]] = Field(
        OutputMode.JSON,
        description="Rendered report format(s)",
    )

    # ------------------------------------------------------------------
    # Measurement-affecting configuration
    # ------------------------------------------------------------------

    locale: str = "en-US"
    max_wait_for_load: int = Field(45_000, ge=0)
    throttling_method: ThrottlingMethod = ThrottlingMethod.SIMULATE
    throttling: ThrottlingSettings = Field(default_factory=ThrottlingSettings)
    disable_storage_reset: bool = False
    emulated_form_factor: FormFactor = FormFactor.MOBILE
    channel: str = "node"
    blocked_url_patterns: Optional[List[str]] = None
    extra_headers: Optional[Dict[str, str]] = None
    only_audits: Optional[List[str]] = None
    only_categories: Optional[List[str]] = None
    skip_audits: Optional[List[str]] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


# Fields that select which phases run and how the report is rendered.
# They may legitimately differ between a gather run and an audit run.
RUN_MODE_FIELDS: FrozenSet[str] = frozenset({"gather_mode", "audit_mode", "output"})
