"""
Computed artifact registry.

Computed artifacts are secondary data derived lazily from the raw
Artifacts of a run (e.g. a parsed trace derived from the raw trace).
Derivations may request other derivations, forming a dependency graph
that is discovered while it is resolved rather than declared upfront.

Each name moves through an explicit state machine:

    NOT_STARTED -> IN_FLIGHT -> FULFILLED | REJECTED

Invariants:
- at most one underlying computation per name per registry
- concurrent requesters of an in-flight name share its task
- a settled outcome (value or error) is final for the run
- a computation that transitively waits on itself fails with
  CircularDependency instead of deadlocking

One registry is created per run and never shared across runs.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from contextvars import ContextVar
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, PrivateAttr

from pagerun.app.errors import CircularDependency, UnknownComputedArtifact
from pagerun.app.schemas.artifacts import Artifacts

logger = logging.getLogger(__name__)

ComputeFn = Callable[[Artifacts, "ComputedArtifactRegistry"], Awaitable[Any]]

# (registry, name) of the computation running in the current task.
_ACTIVE: ContextVar[Optional[Tuple["ComputedArtifactRegistry", str]]] = ContextVar(
    "pagerun_active_computed_artifact",
    default=None,
)


class ComputedState(str, Enum):
    NOT_STARTED = "not_started"
    IN_FLIGHT = "in_flight"
    FULFILLED = "fulfilled"
    REJECTED = "rejected"


class ComputedArtifact(BaseModel):
    """Static registration entry: a name bound to its derivation."""

    name: str
    compute: Callable[..., Awaitable[Any]]

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


class ComputedArtifactRegistry:
    def __init__(
        self,
        artifacts: Artifacts,
        computations: Iterable[ComputedArtifact] = (),
    ) -> None:
        self._artifacts = artifacts
        self._computations: Dict[str, ComputeFn] = {}
        self._tasks: Dict[str, asyncio.Future] = {}
        # requester name -> names it is currently awaiting (with multiplicity)
        self._waiting_on: Dict[str, Counter] = {}

        for entry in computations:
            self.register(entry.name, entry.compute)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    @property
    def names(self) -> List[str]:
        return list(self._computations)

    def register(self, name: str, compute: ComputeFn) -> None:
        if self._tasks:
            raise RuntimeError(
                f"Cannot register computed artifact '{name}' after requests "
                "have started"
            )
        if name in self._computations:
            raise ValueError(f"Computed artifact '{name}' is already registered")
        self._computations[name] = compute

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def state(self, name: str) -> ComputedState:
        if name not in self._computations:
            raise UnknownComputedArtifact(name)

        task = self._tasks.get(name)
        if task is None:
            return ComputedState.NOT_STARTED
        if not task.done():
            return ComputedState.IN_FLIGHT
        if task.cancelled() or task.exception() is not None:
            return ComputedState.REJECTED
        return ComputedState.FULFILLED

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def request(self, name: str) -> Any:
        """
        Resolve computed artifact `name` for this run.

        Settled names return their cached outcome; in-flight names share
        the running computation; otherwise the computation starts and is
        cached before it settles.
        """
        if name not in self._computations:
            raise UnknownComputedArtifact(name)

        task = self._tasks.get(name)
        if task is None:
            logger.debug("Computing %s", name)
            task = asyncio.ensure_future(self._compute(name))
            self._tasks[name] = task
        elif task.done():
            return task.result()

        requester = self._active_name()
        if requester is None:
            return await asyncio.shield(task)

        if requester == name or self._reaches(name, requester):
            raise CircularDependency(name, via=requester)

        waiting = self._waiting_on.setdefault(requester, Counter())
        waiting[name] += 1
        try:
            return await asyncio.shield(task)
        finally:
            waiting[name] -= 1
            if waiting[name] <= 0:
                del waiting[name]

    async def _compute(self, name: str) -> Any:
        token = _ACTIVE.set((self, name))
        try:
            return await self._computations[name](self._artifacts, self)
        finally:
            _ACTIVE.reset(token)

    def _active_name(self) -> Optional[str]:
        active = _ACTIVE.get()
        if active is None or active[0] is not self:
            return None
        return active[1]

    def _reaches(self, source: str, target: str) -> bool:
        """Whether `source` is (transitively) waiting on `target`."""
        seen = set()
        stack = [source]
        while stack:
            current = stack.pop()
            if current == target:
                return True
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self._waiting_on.get(current, ()))
        return False


class EvaluationArtifacts(BaseModel):
    """
    Read-only artifacts view handed to the evaluator.

    Exposes the raw Artifacts of the run plus request(name) for computed
    artifacts, backed by a registry scoped to this run.
    """

    artifacts: Artifacts

    _registry: Optional[ComputedArtifactRegistry] = PrivateAttr(default=None)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @classmethod
    def for_run(
        cls,
        artifacts: Artifacts,
        computations: Iterable[ComputedArtifact] = (),
    ) -> "EvaluationArtifacts":
        view = cls(artifacts=artifacts)
        view._registry = ComputedArtifactRegistry(artifacts, computations)
        return view

    @property
    def registry(self) -> ComputedArtifactRegistry:
        if self._registry is None:
            self._registry = ComputedArtifactRegistry(self.artifacts)
        return self._registry

    def get(self, name: str, default: Any = None) -> Any:
        return self.artifacts.get(name, default)

    async def request(self, name: str) -> Any:
        return await self.registry.request(name)
