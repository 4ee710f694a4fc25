"""
Directory-backed artifact store.

Saves the artifacts of a gather run as JSON inside a directory so a
later audit run (possibly another process) can load them back. The
settings snapshot travels inside the artifacts file.
"""

from __future__ import annotations

import logging
from pathlib import Path

import anyio

from pagerun.app.schemas.artifacts import Artifacts

logger = logging.getLogger(__name__)

ARTIFACTS_FILENAME = "artifacts.json"


class DirectoryArtifactStore:
    def __init__(self, filename: str = ARTIFACTS_FILENAME) -> None:
        self._filename = filename

    async def save(self, artifacts: Artifacts, path: Path) -> None:
        directory = anyio.Path(path)
        await directory.mkdir(parents=True, exist_ok=True)

        target = directory / self._filename
        await target.write_text(
            artifacts.model_dump_json(indent=2),
            encoding="utf-8",
        )
        logger.info("Artifacts saved to %s", target)

    async def load(self, path: Path) -> Artifacts:
        """
        Load artifacts saved by a previous run.

        Raises FileNotFoundError if `path` holds no saved artifacts.
        """
        target = anyio.Path(path) / self._filename
        if not await target.is_file():
            raise FileNotFoundError(f"No saved artifacts found at {target}")

        raw = await target.read_text(encoding="utf-8")
        return Artifacts.model_validate_json(raw)
