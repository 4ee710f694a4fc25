"""
Consistency guard between the collection and evaluation phases.

Evaluation may run disconnected from collection (another process, a
later time). Before auditing, the guard checks that the artifacts were
gathered under the same measurement settings and for the same target
as the current invocation asks for. Run-mode knobs are excluded from
the comparison so that -G then -A style runs are never blocked.
"""

from __future__ import annotations

import logging
from typing import AbstractSet, List, Optional

from pagerun.app.errors import SettingsMismatch, TargetMismatch
from pagerun.app.pipeline.urls import equal_with_excluded_fragments
from pagerun.app.schemas.artifacts import Artifacts
from pagerun.app.schemas.config import RunConfig
from pagerun.app.schemas.settings import RUN_MODE_FIELDS, Settings

logger = logging.getLogger(__name__)


def differing_settings(
    recorded: Settings,
    current: Settings,
    excluded: AbstractSet[str] = RUN_MODE_FIELDS,
) -> List[str]:
    """
    Names of declared Settings fields whose values differ.

    Comparison is over the finite set of declared fields only; fields in
    `excluded` are ignored.
    """
    return [
        name
        for name in Settings.model_fields
        if name not in excluded
        and getattr(recorded, name) != getattr(current, name)
    ]


class ConsistencyGuard:
    def __init__(self, excluded_fields: AbstractSet[str] = RUN_MODE_FIELDS) -> None:
        self._excluded_fields = frozenset(excluded_fields)

    def validate(
        self,
        config: RunConfig,
        artifacts: Artifacts,
        requested_url: Optional[str] = None,
    ) -> None:
        """
        Raise if `artifacts` cannot be evaluated under `config`.

        - TargetMismatch: `requested_url` was given and differs (ignoring
          fragments) from the url the artifacts were gathered for
        - SettingsMismatch: recorded settings differ from the current
          settings outside the run-mode fields
        """
        if requested_url and not equal_with_excluded_fragments(
            requested_url, artifacts.url.requested_url
        ):
            logger.warning(
                "Rejecting artifacts gathered for %s (requested %s)",
                artifacts.url.requested_url,
                requested_url,
            )
            raise TargetMismatch(requested_url, artifacts.url.requested_url)

        if artifacts.settings is None:
            return

        fields = differing_settings(
            artifacts.settings,
            config.settings,
            self._excluded_fields,
        )
        if fields:
            logger.warning(
                "Rejecting artifacts gathered with different settings: %s",
                ", ".join(fields),
            )
            raise SettingsMismatch(fields)
