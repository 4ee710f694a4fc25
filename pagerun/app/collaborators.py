"""
Collaborator interfaces consumed by the pipeline.

The orchestrator sequences these collaborators but never implements
them. Browser-driving collection in particular is always supplied by
the caller; the remaining interfaces have defaults under
pagerun.app.defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union

from pagerun.app.schemas.artifacts import Artifacts
from pagerun.app.schemas.config import AuditDefinition, CategoryDefinition, PassDefinition
from pagerun.app.schemas.report import AuditResult, CategoryResult, ReportRecord
from pagerun.app.schemas.settings import OutputMode, Settings


class Collector(Protocol):
    async def run(
        self,
        requested_url: str,
        passes: Sequence[PassDefinition],
        *,
        settings: Settings,
        connection: Any,
    ) -> Artifacts:
        """
        Load the page once per pass and return the raw artifacts.

        The returned Artifacts must record `settings`: an audit run over
        saved artifacts that carry no settings cannot detect a settings
        change and skips that check.

        Retries of flaky navigations, if any, happen in here.
        """
        ...


class ArtifactStore(Protocol):
    async def load(self, path: Path) -> Artifacts:
        ...

    async def save(self, artifacts: Artifacts, path: Path) -> None:
        ...


class Evaluator(Protocol):
    async def run(
        self,
        settings: Settings,
        audits: Sequence[AuditDefinition],
        artifacts: Any,
        warnings: List[str],
    ) -> List[AuditResult]:
        """
        Run every audit against the artifacts view.

        `artifacts` exposes the raw Artifacts and request(name) for
        computed artifacts. Run warnings are appended to `warnings`.
        """
        ...


class Scorer(Protocol):
    def score_all_categories(
        self,
        categories: Sequence[CategoryDefinition],
        results_by_id: Mapping[str, AuditResult],
    ) -> Dict[str, CategoryResult]:
        ...


class Renderer(Protocol):
    def generate_report(
        self,
        report: ReportRecord,
        output: Union[OutputMode, Sequence[OutputMode]],
    ) -> Union[str, List[str]]:
        ...


class Localizer(Protocol):
    def get_formatted_strings(self, locale: Optional[str]) -> Dict[str, str]:
        """Return the renderer UI strings for `locale`."""
        ...

    def replace_placeholders(
        self,
        payload: Dict[str, Any],
        locale: Optional[str],
    ) -> Dict[str, List[str]]:
        """
        Replace message placeholders in `payload` in place.

        Returns message id -> list of paths that were substituted.
        """
        ...
