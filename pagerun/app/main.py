"""
Composition root for the run pipeline.

Loads runtime configuration, configures logging once, wires the
orchestrator, and exposes run_pipeline() as the single invocation
surface: a connection handle plus a RunConfig, an optional target url,
and an optional collector override.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from pagerun.app.collaborators import Collector
from pagerun.app.config import RunnerConfig
from pagerun.app.pipeline.orchestrator import PipelineOrchestrator
from pagerun.app.schemas.config import RunConfig
from pagerun.app.schemas.report import RunResult

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(config: RunnerConfig) -> None:
    logging.basicConfig(level=config.LOG_LEVEL, format=LOG_FORMAT)


async def run_pipeline(
    connection: Any = None,
    *,
    config: RunConfig,
    url: Optional[str] = None,
    collector: Optional[Collector] = None,
    runner_config: Optional[RunnerConfig] = None,
    **collaborators: Any,
) -> Optional[RunResult]:
    """
    Run the pipeline once with default wiring.

    `collaborators` are forwarded to PipelineOrchestrator.from_config
    (store, evaluator, scorer, renderer, localizer, telemetry,
    computed_artifacts). Returns None for gather-only runs.
    """
    runner_config = runner_config or RunnerConfig.from_env()
    configure_logging(runner_config)

    orchestrator = PipelineOrchestrator.from_config(
        runner_config,
        collector=collector,
        **collaborators,
    )
    return await orchestrator.run(connection, config=config, url=url)
