"""
Report record assembly.

Merges the partial outputs of a run (audit results, category scores,
environment fields from the artifacts, run warnings, timing) into one
frozen ReportRecord, applying placeholder localization exactly once.

The assembler does not score, judge, or render anything.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from pagerun.app.collaborators import Localizer
from pagerun.app.schemas.artifacts import Artifacts
from pagerun.app.schemas.config import RunConfig
from pagerun.app.schemas.report import AuditResult, CategoryResult, ReportRecord

logger = logging.getLogger(__name__)


def index_results(audit_results: Sequence[AuditResult]) -> Dict[str, AuditResult]:
    """
    Key audit results by id.

    Ids are expected to be unique per run. On a duplicate the later
    result overwrites the earlier one.
    """
    results_by_id: Dict[str, AuditResult] = {}
    for result in audit_results:
        if result.id in results_by_id:
            logger.warning("Duplicate audit result id %s; keeping the later result", result.id)
        results_by_id[result.id] = result
    return results_by_id


def merge_run_warnings(
    audit_warnings: Sequence[str],
    artifacts: Artifacts,
) -> List[str]:
    """Evaluation warnings first, then collection warnings."""
    return [*audit_warnings, *artifacts.run_warnings]


class ResultAssembler:
    def __init__(
        self,
        *,
        runner_version: str,
        localizer: Localizer,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._runner_version = runner_version
        self._localizer = localizer
        self._clock = clock

    def elapsed_ms(self, started_at: float) -> float:
        return max(0.0, (self._clock() - started_at) * 1000)

    def build_payload(
        self,
        *,
        config: RunConfig,
        artifacts: Artifacts,
        results_by_id: Mapping[str, AuditResult],
        categories: Mapping[str, CategoryResult],
        audit_warnings: Sequence[str],
        started_at: float,
    ) -> Dict[str, Any]:
        """
        Merge run outputs into the unfrozen report payload.
        """
        payload: Dict[str, Any] = {
            "user_agent": artifacts.host_user_agent,
            "environment": {
                "network_user_agent": artifacts.network_user_agent,
                "host_user_agent": artifacts.host_user_agent,
                "benchmark_index": artifacts.benchmark_index,
            },
            "runner_version": self._runner_version,
            "fetch_time": artifacts.fetch_time,
            "requested_url": artifacts.url.requested_url,
            "final_url": artifacts.url.final_url,
            "run_warnings": merge_run_warnings(audit_warnings, artifacts),
            "audits": {
                audit_id: result.model_dump()
                for audit_id, result in results_by_id.items()
            },
            "config_settings": config.settings.model_dump(),
            "categories": {
                category_id: category.model_dump()
                for category_id, category in categories.items()
            },
            "category_groups": (
                {
                    group_id: group.model_dump()
                    for group_id, group in config.groups.items()
                }
                if config.groups
                else None
            ),
            "timing": {"total": self.elapsed_ms(started_at)},
        }
        return payload

    def localize(self, payload: Dict[str, Any], locale: Optional[str]) -> ReportRecord:
        """
        Replace message placeholders in `payload` and freeze it.

        Called exactly once per run; the substituted paths are recorded in
        the i18n block of the returned record.
        """
        icu_message_paths = self._localizer.replace_placeholders(payload, locale)

        payload["i18n"] = {
            "renderer_formatted_strings": self._localizer.get_formatted_strings(locale),
            "icu_message_paths": icu_message_paths,
        }

        return ReportRecord.model_validate(payload)
