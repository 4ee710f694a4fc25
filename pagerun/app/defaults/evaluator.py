"""
Concurrent audit evaluator.

Runs every selected audit implementation concurrently against the
evaluation artifacts view. Audits that share a computed artifact share
its single computation through the run's registry.

An audit that raises does not abort the run: it is recorded as an
error result (score None) and a run warning. Results and warnings are
returned in audit definition order regardless of completion order.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

import anyio

from pagerun.app.schemas.config import AuditDefinition
from pagerun.app.schemas.report import AuditResult
from pagerun.app.schemas.settings import Settings

logger = logging.getLogger(__name__)


def select_audits(
    settings: Settings,
    audits: Sequence[AuditDefinition],
) -> List[AuditDefinition]:
    """Apply the only_audits / skip_audits filters from settings."""
    selected = list(audits)
    if settings.only_audits is not None:
        allowed = set(settings.only_audits)
        selected = [audit for audit in selected if audit.id in allowed]
    if settings.skip_audits:
        skipped = set(settings.skip_audits)
        selected = [audit for audit in selected if audit.id not in skipped]
    return selected


def _error_result(audit_id: str, message: str) -> AuditResult:
    return AuditResult(
        id=audit_id,
        score=None,
        score_display_mode="error",
        error_message=message,
    )


class ConcurrentEvaluator:
    def __init__(self, max_concurrency: Optional[int] = None) -> None:
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._max_concurrency = max_concurrency

    async def run(
        self,
        settings: Settings,
        audits: Sequence[AuditDefinition],
        artifacts: Any,
        warnings: List[str],
    ) -> List[AuditResult]:
        selected = select_audits(settings, audits)

        results: Dict[int, AuditResult] = {}
        audit_warnings: Dict[int, List[str]] = {}
        limiter = (
            anyio.CapacityLimiter(self._max_concurrency)
            if self._max_concurrency
            else None
        )

        async def run_one(index: int, audit: AuditDefinition) -> None:
            if limiter is None:
                results[index], audit_warnings[index] = await self._run_audit(
                    audit, artifacts
                )
                return
            async with limiter:
                results[index], audit_warnings[index] = await self._run_audit(
                    audit, artifacts
                )

        async with anyio.create_task_group() as tg:
            for index, audit in enumerate(selected):
                tg.start_soon(run_one, index, audit)

        for index in range(len(selected)):
            warnings.extend(audit_warnings[index])

        return [results[index] for index in range(len(selected))]

    async def _run_audit(
        self,
        audit: AuditDefinition,
        artifacts: Any,
    ) -> tuple[AuditResult, List[str]]:
        if audit.implementation is None:
            message = f"Audit '{audit.id}' has no implementation"
            return _error_result(audit.id, message), [message]

        try:
            outcome = await audit.implementation(artifacts, audit.options)
            result = self._to_result(audit.id, outcome)
        except Exception as exc:
            logger.warning("Audit %s failed: %s", audit.id, exc, exc_info=True)
            message = f"Audit '{audit.id}' failed: {exc}"
            return _error_result(audit.id, str(exc)), [message]

        return result, []

    @staticmethod
    def _to_result(audit_id: str, outcome: Any) -> AuditResult:
        """Coerce an implementation's return value into an AuditResult."""
        if isinstance(outcome, AuditResult):
            return outcome
        if not isinstance(outcome, Mapping):
            raise TypeError(
                f"expected an AuditResult or a mapping, got {type(outcome).__name__}"
            )
        return AuditResult.model_validate({"id": audit_id, **outcome})
