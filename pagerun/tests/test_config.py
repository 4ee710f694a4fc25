from pathlib import Path

import pytest
from pydantic import ValidationError

from pagerun.app.config import RUNNER_VERSION, RunnerConfig
from pagerun.app.defaults import DirectoryArtifactStore
from pagerun.app.pipeline.orchestrator import PipelineOrchestrator
from pagerun.app.schemas.settings import Settings
from pagerun.app.telemetry import LoggingTelemetrySink, NullTelemetrySink
from pagerun.tests.fakes import make_config

ENV_VARS = (
    "PAGERUN_WORKING_DIR",
    "PAGERUN_ARTIFACTS_DIR_NAME",
    "PAGERUN_RUNNER_VERSION",
    "PAGERUN_DEFAULT_LOCALE",
    "PAGERUN_LOG_LEVEL",
    "PAGERUN_TELEMETRY_ENABLED",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_from_env_defaults(clean_env, tmp_path):
    clean_env.chdir(tmp_path)

    config = RunnerConfig.from_env()

    assert config.WORKING_DIR == Path.cwd()
    assert config.ARTIFACTS_DIR_NAME == "latest-run"
    assert config.RUNNER_VERSION == RUNNER_VERSION
    assert config.LOG_LEVEL == "INFO"
    assert config.TELEMETRY_ENABLED is False


def test_from_env_reads_overrides(clean_env, tmp_path):
    clean_env.setenv("PAGERUN_WORKING_DIR", str(tmp_path))
    clean_env.setenv("PAGERUN_ARTIFACTS_DIR_NAME", "saved")
    clean_env.setenv("PAGERUN_RUNNER_VERSION", "2.0.0")
    clean_env.setenv("PAGERUN_LOG_LEVEL", "debug")
    clean_env.setenv("PAGERUN_TELEMETRY_ENABLED", "yes")

    config = RunnerConfig.from_env()

    assert config.WORKING_DIR == tmp_path
    assert config.ARTIFACTS_DIR_NAME == "saved"
    assert config.RUNNER_VERSION == "2.0.0"
    assert config.LOG_LEVEL == "DEBUG"
    assert config.TELEMETRY_ENABLED is True


def test_unknown_log_level_is_rejected(tmp_path):
    with pytest.raises(ValidationError):
        RunnerConfig(WORKING_DIR=tmp_path, LOG_LEVEL="chatty")


@pytest.mark.parametrize("name", ["", "a/b", "../up"])
def test_artifacts_dir_name_must_be_a_single_component(tmp_path, name):
    with pytest.raises(ValidationError):
        RunnerConfig(WORKING_DIR=tmp_path, ARTIFACTS_DIR_NAME=name)


def test_config_is_frozen(tmp_path):
    config = RunnerConfig(WORKING_DIR=tmp_path)

    with pytest.raises(ValidationError):
        config.LOG_LEVEL = "DEBUG"


def test_from_config_wires_artifacts_location(tmp_path):
    orchestrator = PipelineOrchestrator.from_config(
        RunnerConfig(WORKING_DIR=tmp_path, ARTIFACTS_DIR_NAME="saved"),
    )

    path = orchestrator.artifacts_path(make_config(Settings(gather_mode=True)))

    assert path == Path(tmp_path) / "saved"
    assert isinstance(orchestrator._store, DirectoryArtifactStore)


@pytest.mark.parametrize(
    "enabled, sink_type",
    [(True, LoggingTelemetrySink), (False, NullTelemetrySink)],
)
def test_from_config_selects_telemetry_sink(tmp_path, enabled, sink_type):
    orchestrator = PipelineOrchestrator.from_config(
        RunnerConfig(WORKING_DIR=tmp_path, TELEMETRY_ENABLED=enabled),
    )

    assert isinstance(orchestrator._telemetry, sink_type)
