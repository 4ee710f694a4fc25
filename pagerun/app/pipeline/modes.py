"""
Run mode dispatch.

gather_mode and audit_mode are independent flags (False, True, or a
directory path). Leaving both unset is a full run. Setting exactly one
runs only that phase. Setting both to truthy values runs both phases
in one process and also saves the collected artifacts.
"""

from __future__ import annotations

from pathlib import Path

from pagerun.app.schemas.settings import Settings

DEFAULT_ARTIFACTS_DIR_NAME = "latest-run"


def should_gather(settings: Settings) -> bool:
    """Whether artifacts are collected from the browser (vs. loaded from disk)."""
    return bool(settings.gather_mode or settings.gather_mode == settings.audit_mode)


def should_audit(settings: Settings) -> bool:
    """Whether the evaluation phase runs."""
    return bool(settings.audit_mode or settings.gather_mode == settings.audit_mode)


def resolve_artifacts_path(
    settings: Settings,
    working_dir: Path,
    default_dir_name: str = DEFAULT_ARTIFACTS_DIR_NAME,
) -> Path:
    """
    Directory used to save (gather mode) or load (audit mode) artifacts.

    An audit_mode path wins over a gather_mode path; with neither the
    default directory under `working_dir` is used.
    """
    working_dir = Path(working_dir)

    if isinstance(settings.audit_mode, str):
        return (working_dir / settings.audit_mode).resolve()
    if isinstance(settings.gather_mode, str):
        return (working_dir / settings.gather_mode).resolve()

    return working_dir / default_dir_name
