"""
Runtime configuration for the run pipeline.

This module centralizes environment-driven configuration: where
artifacts are resolved from, which version is stamped into reports,
logging verbosity, and whether telemetry is forwarded.

Configuration is read-only at runtime. Per-run measurement settings
live in RunConfig.settings, not here.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from pagerun.app.pipeline.modes import DEFAULT_ARTIFACTS_DIR_NAME

RUNNER_VERSION = "0.3.0"


class RunnerConfig(BaseModel):
    """
    Runtime configuration for the run pipeline.

    The working directory is captured once, explicitly. The pipeline
    never consults the process working directory on its own.
    """

    # ------------------------------------------------------------------
    # Filesystem
    # ------------------------------------------------------------------

    WORKING_DIR: Path = Field(
        ...,
        description="Base directory for resolving gather/audit mode paths",
    )

    ARTIFACTS_DIR_NAME: str = Field(
        DEFAULT_ARTIFACTS_DIR_NAME,
        description="Artifacts directory used when no mode path is given",
    )

    # ------------------------------------------------------------------
    # Report identity
    # ------------------------------------------------------------------

    RUNNER_VERSION: str = Field(
        RUNNER_VERSION,
        description="Version stamped into every report record",
    )

    DEFAULT_LOCALE: str = Field(
        "en-US",
        description="Locale used when a message has no translation",
    )

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    LOG_LEVEL: str = Field(
        "INFO",
        description="Standard library logging level name",
    )

    TELEMETRY_ENABLED: bool = Field(
        False,
        description="Forward lifecycle breadcrumbs and fatal errors to logging",
    )

    # ------------------------------------------------------------------
    # Validators (Pydantic v2)
    # ------------------------------------------------------------------

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unsupported LOG_LEVEL '{v}'")
        return level

    @field_validator("ARTIFACTS_DIR_NAME")
    @classmethod
    def validate_artifacts_dir_name(cls, v: str) -> str:
        if not v or Path(v).name != v:
            raise ValueError(
                f"ARTIFACTS_DIR_NAME must be a single directory name, got '{v}'"
            )
        return v

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> "RunnerConfig":
        """
        Load configuration from environment variables.

        PAGERUN_WORKING_DIR defaults to the process working directory,
        read once here.
        """

        def env_bool(name: str, default: bool) -> bool:
            raw = os.getenv(name)
            if raw is None:
                return default
            return raw.lower() in {"1", "true", "yes", "on"}

        return cls(
            WORKING_DIR=Path(os.getenv("PAGERUN_WORKING_DIR") or Path.cwd()),
            ARTIFACTS_DIR_NAME=os.getenv(
                "PAGERUN_ARTIFACTS_DIR_NAME", DEFAULT_ARTIFACTS_DIR_NAME
            ),
            RUNNER_VERSION=os.getenv("PAGERUN_RUNNER_VERSION", RUNNER_VERSION),
            DEFAULT_LOCALE=os.getenv("PAGERUN_DEFAULT_LOCALE", "en-US"),
            LOG_LEVEL=os.getenv("PAGERUN_LOG_LEVEL", "INFO"),
            TELEMETRY_ENABLED=env_bool("PAGERUN_TELEMETRY_ENABLED", False),
        )

    model_config = {
        "frozen": True,
    }
