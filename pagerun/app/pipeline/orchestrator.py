"""
Pipeline orchestrator.

IMPORTANT:
The orchestrator is a SEQUENCER.

It MUST NOT:
- measure pages
- judge audit values
- weight category scores
- render reports

Its sole responsibilities are:
- deciding which phases run (gather / audit modes)
- enforcing phase order and fail-fast validation
- keeping artifacts consistent across disconnected phases
- assembling the final ReportRecord
- reporting fatal errors to telemetry exactly once

Phase order:
    IDLE -> COLLECTING | LOADING -> (PERSISTING) -> EVALUATING -> SCORING
         -> ASSEMBLING -> LOCALIZING -> RENDERING -> DONE

Any error moves the run to FAILED, is captured as fatal, and is
re-raised to the caller unchanged. Nothing is retried here.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from uuid import uuid4

from pydantic import BaseModel

from pagerun.app.collaborators import (
    ArtifactStore,
    Collector,
    Evaluator,
    Localizer,
    Renderer,
    Scorer,
)
from pagerun.app.config import RunnerConfig
from pagerun.app.errors import MissingAuditsConfig, MissingPassesConfig, MissingTarget
from pagerun.app.pipeline.assembler import ResultAssembler, index_results
from pagerun.app.pipeline.computed import ComputedArtifact, EvaluationArtifacts
from pagerun.app.pipeline.consistency import ConsistencyGuard
from pagerun.app.pipeline.modes import (
    DEFAULT_ARTIFACTS_DIR_NAME,
    resolve_artifacts_path,
    should_audit,
    should_gather,
)
from pagerun.app.pipeline.urls import canonicalize_url
from pagerun.app.schemas.artifacts import Artifacts
from pagerun.app.schemas.config import RunConfig
from pagerun.app.schemas.report import AuditResult, RunResult
from pagerun.app.telemetry import (
    RUN_COMPLETED,
    NullTelemetrySink,
    TelemetryLevel,
    TelemetrySink,
)

logger = logging.getLogger(__name__)


class RunPhase(str, Enum):
    IDLE = "idle"
    COLLECTING = "collecting"
    LOADING = "loading"
    PERSISTING = "persisting"
    EVALUATING = "evaluating"
    SCORING = "scoring"
    ASSEMBLING = "assembling"
    LOCALIZING = "localizing"
    RENDERING = "rendering"
    DONE = "done"
    FAILED = "failed"


class RunState(BaseModel):
    """Run-scoped mutable progress marker."""

    run_id: str
    phase: RunPhase = RunPhase.IDLE


class PipelineOrchestrator:
    def __init__(
        self,
        *,
        working_dir: Path,
        runner_version: str,
        store: ArtifactStore,
        evaluator: Evaluator,
        scorer: Scorer,
        renderer: Renderer,
        localizer: Localizer,
        telemetry: Optional[TelemetrySink] = None,
        collector: Optional[Collector] = None,
        computed_artifacts: Sequence[ComputedArtifact] = (),
        artifacts_dir_name: str = DEFAULT_ARTIFACTS_DIR_NAME,
        guard: Optional[ConsistencyGuard] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Direct constructor.

        Every collaborator is injected explicitly. The working directory
        and the telemetry sink are owned by the caller.
        """
        self._working_dir = Path(working_dir)
        self._artifacts_dir_name = artifacts_dir_name
        self._store = store
        self._evaluator = evaluator
        self._scorer = scorer
        self._renderer = renderer
        self._telemetry = telemetry if telemetry is not None else NullTelemetrySink()
        self._collector = collector
        self._computed_artifacts = tuple(computed_artifacts)
        self._guard = guard or ConsistencyGuard()
        self._clock = clock
        self._assembler = ResultAssembler(
            runner_version=runner_version,
            localizer=localizer,
            clock=clock,
        )

    # ------------------------------------------------------------------
    # Integration constructor (composition root)
    # ------------------------------------------------------------------

    @classmethod
    def from_config(
        cls,
        config: RunnerConfig,
        *,
        collector: Optional[Collector] = None,
        store: Optional[ArtifactStore] = None,
        evaluator: Optional[Evaluator] = None,
        scorer: Optional[Scorer] = None,
        renderer: Optional[Renderer] = None,
        localizer: Optional[Localizer] = None,
        telemetry: Optional[TelemetrySink] = None,
        computed_artifacts: Sequence[ComputedArtifact] = (),
    ) -> "PipelineOrchestrator":
        """
        Construct an orchestrator from runtime configuration.

        Collaborators not supplied fall back to the defaults under
        pagerun.app.defaults. No default collector exists: collection
        requires one to be injected here or per run.
        """
        from pagerun.app.defaults import (
            CatalogLocalizer,
            ConcurrentEvaluator,
            DirectoryArtifactStore,
            JsonReportRenderer,
            WeightedCategoryScorer,
        )
        from pagerun.app.telemetry import LoggingTelemetrySink

        if telemetry is None:
            telemetry = (
                LoggingTelemetrySink()
                if config.TELEMETRY_ENABLED
                else NullTelemetrySink()
            )

        return cls(
            working_dir=config.WORKING_DIR,
            runner_version=config.RUNNER_VERSION,
            artifacts_dir_name=config.ARTIFACTS_DIR_NAME,
            collector=collector,
            store=store or DirectoryArtifactStore(),
            evaluator=evaluator or ConcurrentEvaluator(),
            scorer=scorer or WeightedCategoryScorer(),
            renderer=renderer or JsonReportRenderer(),
            localizer=localizer
            or CatalogLocalizer(default_locale=config.DEFAULT_LOCALE),
            telemetry=telemetry,
            computed_artifacts=computed_artifacts,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def artifacts_path(self, config: RunConfig) -> Path:
        return resolve_artifacts_path(
            config.settings,
            self._working_dir,
            self._artifacts_dir_name,
        )

    async def run(
        self,
        connection: Any = None,
        *,
        config: RunConfig,
        url: Optional[str] = None,
        collector: Optional[Collector] = None,
    ) -> Optional[RunResult]:
        """
        Execute one run.

        Returns None for a gather-only run; otherwise the report record,
        the artifacts it was built from, and the rendered report.

        `collector` overrides the injected collector for this run only.
        """
        settings = config.settings
        state = RunState(run_id=str(uuid4()))
        started_at = self._clock()

        await self._breadcrumb(
            "Run started",
            data={
                "run_id": state.run_id,
                "url": url,
                "should_gather": should_gather(settings),
                "should_audit": should_audit(settings),
            },
        )

        try:
            # ----------------------------------------------------------
            # 1-2. Gather phase (collect, or load from a previous run)
            # ----------------------------------------------------------
            artifacts = await self._gather_artifacts(
                state, connection, config, url, collector
            )

            # ----------------------------------------------------------
            # 3. Persist (gather mode only)
            # ----------------------------------------------------------
            if settings.gather_mode:
                await self._enter(state, RunPhase.PERSISTING)
                path = self.artifacts_path(config)
                logger.info("Saving artifacts to %s", path)
                if artifacts.settings is None:
                    logger.warning(
                        "Saving artifacts without recorded settings; audit runs "
                        "over %s will not detect settings changes",
                        path,
                    )
                await self._store.save(artifacts, path)

            # ----------------------------------------------------------
            # 4. Early exit for gather-only runs
            # ----------------------------------------------------------
            if not should_audit(settings):
                await self._finish(state)
                return None

            # ----------------------------------------------------------
            # 5. Audit phase
            # ----------------------------------------------------------
            audit_results, audit_warnings = await self._audit_artifacts(
                state, artifacts, config, url
            )

            logger.info("Generating results...")
            results_by_id = index_results(audit_results)

            # ----------------------------------------------------------
            # 6. Scoring
            # ----------------------------------------------------------
            await self._enter(state, RunPhase.SCORING)
            categories = (
                self._scorer.score_all_categories(config.categories, results_by_id)
                if config.categories
                else {}
            )

            # ----------------------------------------------------------
            # 7. Assembly
            # ----------------------------------------------------------
            await self._enter(state, RunPhase.ASSEMBLING)
            payload = self._assembler.build_payload(
                config=config,
                artifacts=artifacts,
                results_by_id=results_by_id,
                categories=categories,
                audit_warnings=audit_warnings,
                started_at=started_at,
            )

            # ----------------------------------------------------------
            # 8. Localization (exactly once)
            # ----------------------------------------------------------
            await self._enter(state, RunPhase.LOCALIZING)
            report = self._assembler.localize(payload, settings.locale)

            # ----------------------------------------------------------
            # 9. Rendering
            # ----------------------------------------------------------
            await self._enter(state, RunPhase.RENDERING)
            rendered_report = self._renderer.generate_report(report, settings.output)

            result = RunResult(
                report=report,
                artifacts=artifacts,
                rendered_report=rendered_report,
            )

            await self._finish(state)
            return result

        except Exception as exc:
            failed_phase = state.phase
            state.phase = RunPhase.FAILED
            await self._capture_fatal(exc, state=state, failed_phase=failed_phase)
            raise

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def _gather_artifacts(
        self,
        state: RunState,
        connection: Any,
        config: RunConfig,
        url: Optional[str],
        collector: Optional[Collector],
    ) -> Artifacts:
        """
        Either load saved artifacts from disk or collect them from the
        browser, validating the request before any collection starts.
        """
        if not should_gather(config.settings):
            await self._enter(state, RunPhase.LOADING)
            path = self.artifacts_path(config)
            logger.info("Loading artifacts from %s", path)
            return await self._store.load(path)

        await self._enter(state, RunPhase.COLLECTING)

        if not config.passes:
            raise MissingPassesConfig()
        if not isinstance(url, str) or not url:
            raise MissingTarget(url)

        requested_url = canonicalize_url(url)

        collector = collector or self._collector
        if collector is None:
            raise RuntimeError(
                "Collection requested but no collector is configured"
            )

        logger.info("Gathering artifacts for %s", requested_url)
        return await collector.run(
            requested_url,
            config.passes,
            settings=config.settings,
            connection=connection,
        )

    async def _audit_artifacts(
        self,
        state: RunState,
        artifacts: Artifacts,
        config: RunConfig,
        url: Optional[str],
    ) -> Tuple[List[AuditResult], List[str]]:
        await self._enter(state, RunPhase.EVALUATING)

        if not config.audits:
            raise MissingAuditsConfig()

        self._guard.validate(config, artifacts, requested_url=url)

        audit_warnings: List[str] = []
        view = EvaluationArtifacts.for_run(artifacts, self._computed_artifacts)

        logger.info("Running %d audits", len(config.audits))
        audit_results = await self._evaluator.run(
            config.settings,
            config.audits,
            view,
            audit_warnings,
        )
        return list(audit_results), audit_warnings

    # ------------------------------------------------------------------
    # Telemetry helpers (observational only)
    # ------------------------------------------------------------------

    async def _enter(self, state: RunState, phase: RunPhase) -> None:
        state.phase = phase
        logger.debug("run %s entering %s", state.run_id, phase.value)
        await self._breadcrumb(
            f"Entering {phase.value}",
            category="phase",
            data={"run_id": state.run_id, "phase": phase.value},
        )

    async def _finish(self, state: RunState) -> None:
        state.phase = RunPhase.DONE
        await self._breadcrumb(RUN_COMPLETED, data={"run_id": state.run_id})

    async def _breadcrumb(
        self,
        message: str,
        *,
        category: str = "lifecycle",
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        try:
            await self._telemetry.capture_breadcrumb(
                message, category=category, data=data
            )
        except Exception:
            logger.warning("Telemetry breadcrumb failed", exc_info=True)

    async def _capture_fatal(
        self,
        error: Exception,
        *,
        state: RunState,
        failed_phase: RunPhase,
    ) -> None:
        try:
            await self._telemetry.capture_exception(
                error,
                level=TelemetryLevel.FATAL,
                phase=failed_phase.value,
                run_id=state.run_id,
            )
        except Exception:
            logger.warning("Telemetry capture failed", exc_info=True)
