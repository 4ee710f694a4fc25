"""
Report record schema.

Defines the final structured output of a run: audit results keyed by id,
category scores, environment metadata, run warnings, timing, and the
i18n block used for later localized re-rendering.

THE REPORT RECORD IS FROZEN. It is created once at the end of the
pipeline; placeholder localization is applied to its payload before
construction, never to the record afterwards.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from pagerun.app.schemas.artifacts import Artifacts
from pagerun.app.schemas.config import AuditRef, GroupDefinition
from pagerun.app.schemas.settings import Settings


class AuditResult(BaseModel):
    """
    Result of a single audit.

    score is None for audits that are informative, not applicable,
    or that errored.
    """

    id: str
    score: Optional[float] = Field(None, ge=0, le=1)
    title: str = ""
    description: str = ""
    score_display_mode: str = "binary"
    error_message: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(frozen=True, extra="allow")


class CategoryResult(BaseModel):
    id: str
    title: str = ""
    description: Optional[str] = None
    manual_description: Optional[str] = None
    score: Optional[float] = Field(None, ge=0, le=1)
    audit_refs: List[AuditRef] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True, extra="forbid")


class Environment(BaseModel):
    network_user_agent: str = ""
    host_user_agent: str = ""
    benchmark_index: Optional[float] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class RunTiming(BaseModel):
    total: float = Field(..., ge=0, description="Wall-clock run time in ms")

    model_config = ConfigDict(frozen=True, extra="forbid")


class I18nBlock(BaseModel):
    renderer_formatted_strings: Dict[str, str] = Field(default_factory=dict)

    icu_message_paths: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="Message id -> report paths where it was substituted",
    )

    model_config = ConfigDict(frozen=True, extra="forbid")


class ReportRecord(BaseModel):
    """
    Immutable report record for one run.

    THIS SCHEMA IS THE PUBLIC OUTPUT CONTRACT OF THE PIPELINE.
    """

    user_agent: str
    environment: Environment
    runner_version: str
    fetch_time: Optional[str] = None
    requested_url: str
    final_url: str
    run_warnings: List[str] = Field(default_factory=list)
    audits: Dict[str, AuditResult] = Field(default_factory=dict)
    config_settings: Settings
    categories: Dict[str, CategoryResult] = Field(default_factory=dict)
    category_groups: Optional[Dict[str, GroupDefinition]] = None
    timing: RunTiming
    i18n: I18nBlock = Field(default_factory=I18nBlock)

    model_config = ConfigDict(frozen=True, extra="forbid")


class RunResult(BaseModel):
    report: ReportRecord
    artifacts: Artifacts
    rendered_report: Union[str, List[str]]

    model_config = ConfigDict(frozen=True, extra="forbid")
