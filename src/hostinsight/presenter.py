"""View state and the load/refresh/toggle state machine."""

import logging
import threading
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Protocol

from hostinsight.models import Snapshot
from hostinsight.presentation import Section, build_sections

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "Unknown error occurred"


@dataclass(slots=True, frozen=True)
class Loading:
    """Probes are running."""


@dataclass(slots=True, frozen=True)
class Success:
    snapshot: Snapshot


@dataclass(slots=True, frozen=True)
class Error:
    """Aggregation failed; retrying with refresh() may succeed."""

    message: str


ViewState = Loading | Success | Error

Listener = Callable[[ViewState, list[Section]], None]


class SnapshotProvider(Protocol):
    def collect(self) -> Snapshot: ...

    def refresh(self) -> Snapshot: ...


class Presenter:
    """
    Holds the current ViewState and section list.

    load() and refresh() block the calling thread while probes run. Calls may
    overlap: each call takes a new generation number, and a result is only
    published if no newer call has started since. toggle_section() never
    blocks on a running refresh and only touches expansion flags, which are
    keyed by section key and survive snapshot replacement.
    """

    def __init__(self, provider: SnapshotProvider) -> None:
        self._provider = provider
        self._lock = threading.Lock()
        self._state: ViewState = Loading()
        self._sections: list[Section] = []
        self._expansion: dict[str, bool] = {}
        self._generation = 0
        self._listeners: list[Listener] = []
        self._delivery_lock = threading.Lock()
        self._pending: deque[tuple[list[Listener], ViewState, list[Section]]] = deque()

    @property
    def view_state(self) -> ViewState:
        return self._state

    @property
    def sections(self) -> list[Section]:
        return list(self._sections)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener for state and section changes.

        The listener runs on whichever thread is delivering at the time, which
        may not be the thread that caused the change. Calls to one listener
        never overlap and follow publication order.
        Returns a callable that removes the listener.
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def load(self) -> ViewState:
        return self._run(self._provider.collect)

    def refresh(self) -> ViewState:
        return self._run(self._provider.refresh)

    def toggle_section(self, title: str) -> bool:
        """
        Flip the expanded flag of the section with this title.

        A section key is accepted as well, since titles with counts change
        between snapshots. Returns False if no section matches.
        """
        with self._lock:
            target = next(
                (s for s in self._sections if s.title == title),
                next((s for s in self._sections if s.key == title), None),
            )
            if target is None:
                logger.debug("toggle_section: no section titled %r", title)
                return False
            expanded = not target.expanded
            self._expansion[target.key] = expanded
            self._sections = [
                replace(s, expanded=expanded) if s.key == target.key else s
                for s in self._sections
            ]
        self._notify()
        return True

    def _run(self, fetch: Callable[[], Snapshot]) -> ViewState:
        with self._lock:
            self._generation += 1
            generation = self._generation
            self._state = Loading()
            expansion = dict(self._expansion)
        self._notify()

        try:
            snapshot = fetch()
        except Exception as exc:
            logger.exception("Failed to collect host snapshot")
            result: ViewState = Error(str(exc) or DEFAULT_ERROR_MESSAGE)
            sections = None
        else:
            result = Success(snapshot)
            sections = build_sections(snapshot, expansion)

        with self._lock:
            if generation != self._generation:
                logger.debug("Discarding stale result from request %d", generation)
                return self._state
            self._state = result
            if sections is not None:
                # Flags set by toggles during the fetch win over the build
                self._sections = [
                    replace(s, expanded=self._expansion.get(s.key, s.expanded))
                    for s in sections
                ]
                for section in self._sections:
                    self._expansion.setdefault(section.key, section.expanded)
        self._notify()
        return result

    def _notify(self) -> None:
        """
        Queue the current state and deliver everything queued, in order.

        Only one thread delivers at a time. A thread that finds delivery
        already running leaves its entry for that thread, so listeners see
        states in the order they were published and never block a refresh.
        """
        with self._lock:
            self._pending.append((list(self._listeners), self._state, list(self._sections)))
        while self._delivery_lock.acquire(blocking=False):
            try:
                while True:
                    with self._lock:
                        if not self._pending:
                            break
                        listeners, state, sections = self._pending.popleft()
                    for listener in listeners:
                        listener(state, sections)
            finally:
                self._delivery_lock.release()
            # An entry queued just before the release would otherwise be stranded
            with self._lock:
                if not self._pending:
                    return
