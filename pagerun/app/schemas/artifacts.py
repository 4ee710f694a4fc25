"""
Artifacts schema.

Artifacts are the raw output of the collection phase, either produced by
a collector in this process or loaded from a store written by an earlier
run. Once produced they are frozen: the evaluation phase derives from
them (see ComputedArtifactRegistry) but never mutates them.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from pagerun.app.schemas.settings import Settings


class TargetUrls(BaseModel):
    requested_url: str = Field(
        ...,
        description="Canonical url the collector was asked to load",
    )

    final_url: str = Field(
        ...,
        description="Url after redirects",
    )

    model_config = ConfigDict(frozen=True, extra="forbid")


class Artifacts(BaseModel):
    url: TargetUrls

    settings: Optional[Settings] = Field(
        None,
        description=(
            "Settings snapshot recorded at collection time. Absent when the "
            "producer did not record one."
        ),
    )

    fetch_time: Optional[str] = Field(
        None,
        description="ISO-8601 time at which the page was fetched",
    )

    host_user_agent: str = ""
    network_user_agent: str = ""
    benchmark_index: Optional[float] = None

    run_warnings: List[str] = Field(
        default_factory=list,
        description="Non-fatal warnings raised during collection",
    )

    gathered: Dict[str, Any] = Field(
        default_factory=dict,
        description="Raw artifacts keyed by gatherer name",
    )

    model_config = ConfigDict(frozen=True, extra="forbid")

    def get(self, name: str, default: Any = None) -> Any:
        """Return a raw gathered artifact by name."""
        return self.gathered.get(name, default)
