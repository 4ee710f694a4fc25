"""
End-to-end orchestrator tests with deterministic collaborators.

Covers:
- full run (collect + evaluate) producing a scored, frozen report record
- gather-only and audit-only runs across the artifact store
- fail-fast validation before any collaborator is invoked
- fatal errors captured exactly once and re-raised unchanged
- telemetry being observational only
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from unittest.mock import AsyncMock

from pagerun.app.defaults import (
    ConcurrentEvaluator,
    JsonReportRenderer,
    NullLocalizer,
    WeightedCategoryScorer,
)
from pagerun.app.errors import (
    InvalidTarget,
    MissingAuditsConfig,
    MissingPassesConfig,
    MissingTarget,
    SettingsMismatch,
    TargetMismatch,
)
from pagerun.app.pipeline.computed import ComputedArtifact, EvaluationArtifacts
from pagerun.app.pipeline.orchestrator import PipelineOrchestrator
from pagerun.app.schemas.config import AuditDefinition, RunConfig
from pagerun.app.schemas.report import AuditResult
from pagerun.app.schemas.settings import OutputMode, Settings
from pagerun.app.telemetry import MemoryTelemetrySink, TelemetryLevel
from pagerun.tests.fakes import (
    FailingTelemetrySink,
    FakeCollector,
    FakeEvaluator,
    MemoryArtifactStore,
    make_artifacts,
    make_config,
)

pytestmark = pytest.mark.anyio


def build_orchestrator(tmp_path: Path, **overrides) -> PipelineOrchestrator:
    options = dict(
        working_dir=tmp_path,
        runner_version="1.2.3",
        store=MemoryArtifactStore(),
        evaluator=FakeEvaluator(warnings=["eval warning"]),
        scorer=WeightedCategoryScorer(),
        renderer=JsonReportRenderer(),
        localizer=NullLocalizer(),
        telemetry=MemoryTelemetrySink(),
        collector=FakeCollector(),
    )
    options.update(overrides)
    return PipelineOrchestrator(**options)


# ---------------------------------------------------------------------------
# Full run
# ---------------------------------------------------------------------------

async def test_full_run_produces_scored_report(tmp_path):
    collector = FakeCollector()
    orchestrator = build_orchestrator(tmp_path, collector=collector)

    result = await orchestrator.run(config=make_config(), url="https://example.com")

    report = result.report
    assert report.audits["auditA"].score == 1
    assert report.categories["cat1"].score == 1
    assert report.timing.total >= 0
    assert report.run_warnings == ["eval warning", "collection warning"]
    assert report.requested_url == "https://example.com/"
    assert report.runner_version == "1.2.3"
    assert result.artifacts.url.requested_url == "https://example.com/"
    assert collector.calls[0]["requested_url"] == "https://example.com/"


async def test_full_run_renders_requested_outputs(tmp_path):
    orchestrator = build_orchestrator(tmp_path)
    config = make_config(Settings(output=[OutputMode.JSON, OutputMode.CSV]))

    result = await orchestrator.run(config=config, url="https://example.com/")

    rendered_json, rendered_csv = result.rendered_report
    assert '"runner_version": "1.2.3"' in rendered_json
    assert rendered_csv.splitlines()[0] == "category,name,title,type,score"


async def test_full_run_does_not_persist_artifacts(tmp_path):
    store = MemoryArtifactStore()
    orchestrator = build_orchestrator(tmp_path, store=store)

    await orchestrator.run(config=make_config(), url="https://example.com/")

    assert store.saved == {}


async def test_connection_is_forwarded_to_collector(tmp_path):
    collector = FakeCollector()
    connection = object()
    orchestrator = build_orchestrator(tmp_path, collector=collector)

    await orchestrator.run(connection, config=make_config(), url="https://example.com/")

    assert collector.calls[0]["connection"] is connection
    assert collector.calls[0]["passes"] == make_config().passes


async def test_per_run_collector_overrides_injected_one(tmp_path):
    injected = FakeCollector()
    override = FakeCollector()
    orchestrator = build_orchestrator(tmp_path, collector=injected)

    await orchestrator.run(
        config=make_config(),
        url="https://example.com/",
        collector=override,
    )

    assert injected.calls == []
    assert len(override.calls) == 1


async def test_run_without_categories_has_empty_scores(tmp_path):
    orchestrator = build_orchestrator(tmp_path)

    result = await orchestrator.run(
        config=make_config(with_categories=False),
        url="https://example.com/",
    )

    assert result.report.categories == {}
    assert result.report.audits["auditA"].score == 1


# ---------------------------------------------------------------------------
# Gather-only / audit-only
# ---------------------------------------------------------------------------

async def test_gather_only_run_saves_and_returns_none(tmp_path):
    store = MemoryArtifactStore()
    evaluator = FakeEvaluator()
    orchestrator = build_orchestrator(tmp_path, store=store, evaluator=evaluator)
    config = make_config(Settings(gather_mode=True))

    result = await orchestrator.run(config=config, url="https://example.com/")

    assert result is None
    assert list(store.saved) == [tmp_path / "latest-run"]
    assert evaluator.calls == []


async def test_persisting_artifacts_without_settings_logs_a_warning(tmp_path, caplog):
    store = MemoryArtifactStore()
    collector = FakeCollector(make_artifacts(settings=None))
    orchestrator = build_orchestrator(tmp_path, store=store, collector=collector)

    with caplog.at_level(logging.WARNING, logger="pagerun.app.pipeline.orchestrator"):
        await orchestrator.run(
            config=make_config(Settings(gather_mode=True)),
            url="https://example.com/",
        )

    assert len(store.saved) == 1
    assert any(
        "without recorded settings" in record.getMessage() for record in caplog.records
    )


async def test_persisting_artifacts_with_settings_does_not_warn(tmp_path, caplog):
    orchestrator = build_orchestrator(tmp_path)

    with caplog.at_level(logging.WARNING, logger="pagerun.app.pipeline.orchestrator"):
        await orchestrator.run(
            config=make_config(Settings(gather_mode=True)),
            url="https://example.com/",
        )

    assert not any(
        "without recorded settings" in record.getMessage() for record in caplog.records
    )


async def test_gather_mode_path_is_resolved_against_working_dir(tmp_path):
    store = MemoryArtifactStore()
    orchestrator = build_orchestrator(tmp_path, store=store)
    config = make_config(Settings(gather_mode="./custom-folder"))

    await orchestrator.run(config=config, url="https://example.com/")

    assert list(store.saved) == [(tmp_path / "custom-folder").resolve()]


async def test_gather_and_audit_modes_together_save_and_evaluate(tmp_path):
    store = MemoryArtifactStore()
    orchestrator = build_orchestrator(tmp_path, store=store)
    config = make_config(Settings(gather_mode=True, audit_mode=True))

    result = await orchestrator.run(config=config, url="https://example.com/")

    assert result is not None
    assert len(store.saved) == 1


async def test_audit_only_run_loads_saved_artifacts(tmp_path):
    saved = make_artifacts(settings=Settings(gather_mode=True), run_warnings=["old"])
    store = MemoryArtifactStore({tmp_path / "latest-run": saved})
    collector = FakeCollector()
    orchestrator = build_orchestrator(tmp_path, store=store, collector=collector)

    result = await orchestrator.run(config=make_config(Settings(audit_mode=True)))

    assert collector.calls == []
    assert store.loaded_from == [tmp_path / "latest-run"]
    assert result.artifacts == saved
    assert result.report.run_warnings == ["eval warning", "old"]


async def test_gather_then_audit_across_runs(tmp_path):
    store = MemoryArtifactStore()
    gather = build_orchestrator(tmp_path, store=store)
    audit = build_orchestrator(tmp_path, store=store)

    await gather.run(
        config=make_config(Settings(gather_mode="./run")),
        url="https://example.com/",
    )
    result = await audit.run(
        config=make_config(Settings(audit_mode="./run")),
        url="https://example.com/#section",
    )

    assert result.report.audits["auditA"].score == 1


async def test_audit_only_without_saved_artifacts_fails(tmp_path):
    sink = MemoryTelemetrySink()
    orchestrator = build_orchestrator(tmp_path, telemetry=sink)

    with pytest.raises(FileNotFoundError):
        await orchestrator.run(config=make_config(Settings(audit_mode=True)))

    assert sink.exceptions[0].phase == "loading"


# ---------------------------------------------------------------------------
# Validation failures
# ---------------------------------------------------------------------------

async def test_missing_passes_is_rejected_before_collection(tmp_path):
    collector = FakeCollector()
    orchestrator = build_orchestrator(tmp_path, collector=collector)

    with pytest.raises(MissingPassesConfig):
        await orchestrator.run(
            config=make_config(with_passes=False),
            url="https://example.com/",
        )

    assert collector.calls == []


@pytest.mark.parametrize("url", [None, "", 42])
async def test_missing_target_is_rejected(tmp_path, url):
    collector = FakeCollector()
    orchestrator = build_orchestrator(tmp_path, collector=collector)

    with pytest.raises(MissingTarget):
        await orchestrator.run(config=make_config(), url=url)

    assert collector.calls == []


async def test_invalid_target_is_rejected(tmp_path):
    collector = FakeCollector()
    orchestrator = build_orchestrator(tmp_path, collector=collector)

    with pytest.raises(InvalidTarget):
        await orchestrator.run(config=make_config(), url="example.com")

    assert collector.calls == []


async def test_missing_audits_is_rejected_after_collection(tmp_path):
    collector = FakeCollector()
    evaluator = FakeEvaluator()
    orchestrator = build_orchestrator(
        tmp_path, collector=collector, evaluator=evaluator
    )

    with pytest.raises(MissingAuditsConfig):
        await orchestrator.run(
            config=make_config(with_audits=False),
            url="https://example.com/",
        )

    assert len(collector.calls) == 1
    assert evaluator.calls == []


async def test_audit_mode_rejects_different_target(tmp_path):
    saved = make_artifacts(requested_url="https://example.com/page")
    store = MemoryArtifactStore({tmp_path / "latest-run": saved})
    evaluator = FakeEvaluator()
    orchestrator = build_orchestrator(tmp_path, store=store, evaluator=evaluator)

    with pytest.raises(TargetMismatch):
        await orchestrator.run(
            config=make_config(Settings(audit_mode=True)),
            url="https://example.com/other",
        )

    assert evaluator.calls == []


async def test_audit_mode_rejects_changed_settings(tmp_path):
    saved = make_artifacts(settings=Settings(locale="en-US"))
    store = MemoryArtifactStore({tmp_path / "latest-run": saved})
    evaluator = FakeEvaluator()
    orchestrator = build_orchestrator(tmp_path, store=store, evaluator=evaluator)

    with pytest.raises(SettingsMismatch) as excinfo:
        await orchestrator.run(
            config=make_config(Settings(audit_mode=True, locale="fr")),
        )

    assert excinfo.value.fields == ("locale",)
    assert evaluator.calls == []


async def test_collection_without_collector_fails(tmp_path):
    orchestrator = build_orchestrator(tmp_path, collector=None)

    with pytest.raises(RuntimeError):
        await orchestrator.run(config=make_config(), url="https://example.com/")


# ---------------------------------------------------------------------------
# Fatal error reporting
# ---------------------------------------------------------------------------

async def test_validation_error_is_captured_once_as_fatal(tmp_path):
    sink = MemoryTelemetrySink()
    orchestrator = build_orchestrator(tmp_path, telemetry=sink)

    with pytest.raises(MissingTarget):
        await orchestrator.run(config=make_config(), url=None)

    assert len(sink.exceptions) == 1
    captured = sink.exceptions[0]
    assert captured.level == TelemetryLevel.FATAL
    assert captured.exception_type == "MissingTarget"
    assert captured.phase == "collecting"
    assert captured.run_id


@pytest.mark.parametrize(
    "overrides_name, phase",
    [
        ("collector", "collecting"),
        ("evaluator", "evaluating"),
    ],
)
async def test_collaborator_errors_pass_through_unchanged(tmp_path, overrides_name, phase):
    error = ConnectionError("protocol connection lost")
    failing = {
        "collector": FakeCollector(error=error),
        "evaluator": FakeEvaluator(error=error),
    }[overrides_name]
    sink = MemoryTelemetrySink()
    orchestrator = build_orchestrator(
        tmp_path, telemetry=sink, **{overrides_name: failing}
    )

    with pytest.raises(ConnectionError) as excinfo:
        await orchestrator.run(config=make_config(), url="https://example.com/")

    assert excinfo.value is error
    assert len(sink.exceptions) == 1
    assert sink.exceptions[0].phase == phase


async def test_store_errors_pass_through_unchanged(tmp_path):
    error = PermissionError("read-only filesystem")
    store = MemoryArtifactStore()
    store.save = AsyncMock(side_effect=error)
    sink = MemoryTelemetrySink()
    orchestrator = build_orchestrator(tmp_path, store=store, telemetry=sink)

    with pytest.raises(PermissionError) as excinfo:
        await orchestrator.run(
            config=make_config(Settings(gather_mode=True)),
            url="https://example.com/",
        )

    assert excinfo.value is error
    assert sink.exceptions[0].phase == "persisting"


async def test_scorer_errors_are_captured_in_scoring_phase(tmp_path):
    scorer = WeightedCategoryScorer()
    scorer.score_all_categories = lambda categories, results: 1 / 0
    sink = MemoryTelemetrySink()
    orchestrator = build_orchestrator(tmp_path, scorer=scorer, telemetry=sink)

    with pytest.raises(ZeroDivisionError):
        await orchestrator.run(config=make_config(), url="https://example.com/")

    assert sink.exceptions[0].phase == "scoring"


async def test_failing_telemetry_never_masks_the_error(tmp_path):
    orchestrator = build_orchestrator(tmp_path, telemetry=FailingTelemetrySink())

    with pytest.raises(MissingTarget):
        await orchestrator.run(config=make_config(), url=None)


async def test_failing_telemetry_never_breaks_a_successful_run(tmp_path):
    orchestrator = build_orchestrator(tmp_path, telemetry=FailingTelemetrySink())

    result = await orchestrator.run(config=make_config(), url="https://example.com/")

    assert result.report.audits["auditA"].score == 1


# ---------------------------------------------------------------------------
# Lifecycle breadcrumbs
# ---------------------------------------------------------------------------

async def test_full_run_breadcrumbs_follow_phase_order(tmp_path):
    sink = MemoryTelemetrySink()
    orchestrator = build_orchestrator(tmp_path, telemetry=sink)

    await orchestrator.run(config=make_config(), url="https://example.com/")

    assert [crumb.message for crumb in sink.breadcrumbs] == [
        "Run started",
        "Entering collecting",
        "Entering evaluating",
        "Entering scoring",
        "Entering assembling",
        "Entering localizing",
        "Entering rendering",
        "Run completed",
    ]
    assert sink.exceptions == []


async def test_breadcrumbs_stream_until_run_completes(tmp_path):
    sink = MemoryTelemetrySink()
    orchestrator = build_orchestrator(tmp_path, telemetry=sink)

    await orchestrator.run(
        config=make_config(Settings(gather_mode=True)),
        url="https://example.com/",
    )

    streamed = [event.message async for event in sink.stream()]
    assert streamed == [
        "Run started",
        "Entering collecting",
        "Entering persisting",
        "Run completed",
    ]


# ---------------------------------------------------------------------------
# Evaluation view and computed artifacts
# ---------------------------------------------------------------------------

async def test_evaluator_receives_evaluation_view(tmp_path):
    evaluator = FakeEvaluator()
    orchestrator = build_orchestrator(tmp_path, evaluator=evaluator)

    await orchestrator.run(config=make_config(), url="https://example.com/")

    view = evaluator.calls[0]["artifacts"]
    assert isinstance(view, EvaluationArtifacts)
    assert view.artifacts.url.requested_url == "https://example.com/"


async def test_audits_share_computed_artifacts_within_a_run(tmp_path):
    computed_calls = []

    async def viewport(artifacts, registry):
        computed_calls.append(artifacts.url.final_url)
        return {"width": 360}

    async def check_width(view, options):
        meta = await view.request("Viewport")
        return {"score": 1 if meta["width"] >= options["min_width"] else 0}

    config = RunConfig(
        settings=Settings(),
        passes=make_config().passes,
        audits=[
            AuditDefinition(id="wide", options={"min_width": 320}, implementation=check_width),
            AuditDefinition(id="wider", options={"min_width": 1024}, implementation=check_width),
        ],
        categories=make_config().categories,
    )
    orchestrator = build_orchestrator(
        tmp_path,
        evaluator=ConcurrentEvaluator(),
        computed_artifacts=[ComputedArtifact(name="Viewport", compute=viewport)],
    )

    result = await orchestrator.run(config=config, url="https://example.com/")

    assert result.report.audits["wide"].score == 1
    assert result.report.audits["wider"].score == 0
    assert computed_calls == ["https://example.com/"]
    # cat1 references auditA, which this config does not define
    assert result.report.categories["cat1"].score == 0


async def test_computed_artifacts_are_not_shared_across_runs(tmp_path):
    computed_calls = []

    async def counter(artifacts, registry):
        computed_calls.append(1)
        return len(computed_calls)

    async def read_counter(view, options):
        return AuditResult(id="auditA", score=1, details={"n": await view.request("Counter")})

    config = RunConfig(
        settings=Settings(),
        passes=make_config().passes,
        audits=[AuditDefinition(id="auditA", implementation=read_counter)],
    )
    orchestrator = build_orchestrator(
        tmp_path,
        evaluator=ConcurrentEvaluator(),
        computed_artifacts=[ComputedArtifact(name="Counter", compute=counter)],
    )

    first = await orchestrator.run(config=config, url="https://example.com/")
    second = await orchestrator.run(config=config, url="https://example.com/")

    assert first.report.audits["auditA"].details == {"n": 1}
    assert second.report.audits["auditA"].details == {"n": 2}
