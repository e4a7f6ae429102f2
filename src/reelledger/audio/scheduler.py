"""Reconciliation scheduler — when and in what order resolution runs apply.

Selecting a scene or page, a manual refresh, and the viewer coming back
to the foreground all trigger a resolution run for one scene.  Runs for
different scenes proceed in parallel on a thread pool.  Runs for the
same scene are serialised, and each trigger receives a per-scene ticket:
a run whose ticket is older than the last applied one is discarded, so
results land in trigger order no matter which fetch finished first.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from enum import StrEnum

from pydantic import BaseModel, Field

from reelledger.audio.index import PageAudioIndex
from reelledger.audio.models import ResolutionResult
from reelledger.audio.resolver import PageAudioResolver
from reelledger.errors import FeedUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4


class TriggerReason(StrEnum):
    """Why a resolution run was requested."""

    SCENE_SELECTED = "scene_selected"
    PAGE_SELECTED = "page_selected"
    MANUAL_REFRESH = "manual_refresh"
    VISIBILITY_REGAINED = "visibility_regained"


class RunStatus(StrEnum):
    """What happened to a triggered run."""

    APPLIED = "applied"
    SUPERSEDED = "superseded"  # a newer run for the scene already applied
    DEBOUNCED = "debounced"  # a newer pending run covers the same pages
    FAILED = "failed"  # feed unavailable, index left as it was


class RunOutcome(BaseModel):
    """Result of one triggered run."""

    scene_id: str
    ticket: int
    reason: TriggerReason
    status: RunStatus
    result: ResolutionResult | None = None
    error: str = ""


class _SceneState:
    """Per-scene ticket bookkeeping."""

    def __init__(self) -> None:
        self.run_lock = threading.Lock()
        self.issued = 0
        self.applied = 0
        self.pending: dict[int, frozenset[int] | None] = {}


class ReconciliationScheduler:
    """Runs PageAudioResolver on triggers and merges results into an index.

    Usable as a context manager; leaving the block waits for queued runs.

    Ticket state is kept per scene for the life of the scheduler, so its
    size is bounded by the number of distinct scenes triggered.  Call
    ``forget`` for a scene that was deleted.
    """

    def __init__(
        self,
        resolver: PageAudioResolver,
        index: PageAudioIndex,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ) -> None:
        self.resolver = resolver
        self.index = index
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="reelledger-reconcile"
        )
        self._lock = threading.Lock()
        self._scenes: dict[str, _SceneState] = {}

    def __enter__(self) -> ReconciliationScheduler:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown(wait=True)

    # -- Triggers ------------------------------------------------------------

    def trigger(
        self,
        scene_id: str,
        reason: TriggerReason,
        page_numbers: Iterable[int] | None = None,
    ) -> Future[RunOutcome]:
        """Queue a run for ``scene_id``; the future resolves to its outcome."""
        ticket, scope = self._issue(scene_id, page_numbers)
        return self._executor.submit(self._execute, scene_id, ticket, reason, scope)

    def run_now(
        self,
        scene_id: str,
        reason: TriggerReason = TriggerReason.MANUAL_REFRESH,
        page_numbers: Iterable[int] | None = None,
    ) -> RunOutcome:
        """Run in the calling thread, with the same ordering rules as ``trigger``."""
        ticket, scope = self._issue(scene_id, page_numbers)
        return self._execute(scene_id, ticket, reason, scope)

    def on_scene_selected(self, scene_id: str) -> Future[RunOutcome]:
        return self.trigger(scene_id, TriggerReason.SCENE_SELECTED)

    def on_page_selected(self, scene_id: str, page_number: int) -> Future[RunOutcome]:
        return self.trigger(scene_id, TriggerReason.PAGE_SELECTED, [page_number])

    def refresh(self, scene_ids: Iterable[str]) -> list[Future[RunOutcome]]:
        return [self.trigger(sid, TriggerReason.MANUAL_REFRESH) for sid in scene_ids]

    def on_visibility_regained(self, scene_ids: Iterable[str]) -> list[Future[RunOutcome]]:
        """Re-resolve the scenes that were on screen when the viewer left."""
        return [self.trigger(sid, TriggerReason.VISIBILITY_REGAINED) for sid in scene_ids]

    def forget(self, scene_id: str) -> bool:
        """Drop an idle scene's ticket state.

        Returns False, keeping the state, while a run for the scene is
        queued or in progress.
        """
        with self._lock:
            state = self._scenes.get(scene_id)
            if state is None:
                return True
            if state.pending or state.run_lock.locked():
                return False
            del self._scenes[scene_id]
            return True

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    # -- Internals -----------------------------------------------------------

    def _issue(
        self, scene_id: str, page_numbers: Iterable[int] | None
    ) -> tuple[int, frozenset[int] | None]:
        scope = frozenset(page_numbers) if page_numbers is not None else None
        with self._lock:
            state = self._scenes.setdefault(scene_id, _SceneState())
            state.issued += 1
            state.pending[state.issued] = scope
            return state.issued, scope

    def _covered_by_newer(
        self, state: _SceneState, ticket: int, scope: frozenset[int] | None
    ) -> bool:
        for newer, newer_scope in state.pending.items():
            if newer <= ticket:
                continue
            if newer_scope is None or (scope is not None and scope <= newer_scope):
                return True
        return False

    def _execute(
        self,
        scene_id: str,
        ticket: int,
        reason: TriggerReason,
        scope: frozenset[int] | None,
    ) -> RunOutcome:
        with self._lock:
            state = self._scenes[scene_id]

        def outcome(status: RunStatus, **kwargs: object) -> RunOutcome:
            return RunOutcome(
                scene_id=scene_id, ticket=ticket, reason=reason, status=status, **kwargs
            )

        with state.run_lock:
            with self._lock:
                state.pending.pop(ticket, None)
                if ticket < state.applied:
                    logger.debug(
                        "Run %d for scene %s superseded by %d", ticket, scene_id, state.applied
                    )
                    return outcome(RunStatus.SUPERSEDED)
                if self._covered_by_newer(state, ticket, scope):
                    logger.debug("Run %d for scene %s debounced", ticket, scene_id)
                    return outcome(RunStatus.DEBOUNCED)

            try:
                result = self.resolver.resolve(scene_id, scope)
            except FeedUnavailableError as exc:
                logger.warning("Run %d for scene %s failed (%s): %s", ticket, scene_id, reason, exc)
                return outcome(RunStatus.FAILED, error=str(exc))

            with self._lock:
                self.index.merge(result)
                state.applied = ticket
        logger.info(
            "Applied run %d for scene %s (%s): %d refs",
            ticket,
            scene_id,
            reason,
            result.resolved_count,
        )
        return outcome(RunStatus.APPLIED, result=result)
