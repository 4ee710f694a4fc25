"""
Run configuration schema.

A RunConfig bundles the settings with the pass, audit, and category
definitions. Passes and audits are optional at the schema level; the
orchestrator decides whether their absence is fatal based on which
phases the settings request.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from pagerun.app.schemas.settings import Settings


class PassDefinition(BaseModel):
    """One configured page load. Fields beyond the name are collector-owned."""

    pass_name: str = "defaultPass"
    gatherers: List[str] = Field(default_factory=list)
    use_throttling: bool = False
    record_trace: bool = False

    model_config = ConfigDict(frozen=True, extra="allow")


# (artifacts view, audit options) -> AuditResult
AuditImplementation = Callable[..., Awaitable[Any]]


class AuditDefinition(BaseModel):
    id: str
    options: Dict[str, Any] = Field(default_factory=dict)
    implementation: Optional[AuditImplementation] = Field(
        None,
        exclude=True,
        description="Async callable used by the default evaluator",
    )

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


class AuditRef(BaseModel):
    id: str
    weight: float = Field(0, ge=0)
    group: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class CategoryDefinition(BaseModel):
    id: str
    title: str = ""
    description: Optional[str] = None
    manual_description: Optional[str] = None
    audit_refs: List[AuditRef] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True, extra="forbid")


class GroupDefinition(BaseModel):
    title: str
    description: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class RunConfig(BaseModel):
    settings: Settings = Field(default_factory=Settings)
    passes: Optional[List[PassDefinition]] = None
    audits: Optional[List[AuditDefinition]] = None
    categories: Optional[List[CategoryDefinition]] = None
    groups: Optional[Dict[str, GroupDefinition]] = None

    model_config = ConfigDict(frozen=True, extra="forbid")
