"""Snapshot aggregation engine for hostinsight."""

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError

from hostinsight.config import InsightConfig
from hostinsight.models import Facet, Snapshot
from hostinsight.probes import Probe, host_probes

logger = logging.getLogger(__name__)


class AggregationError(RuntimeError):
    """Raised when probes cannot be run at all, e.g. no thread can be started."""


class SnapshotAggregator:
    """
    Runs every probe concurrently and assembles one Snapshot.

    Each collect() fans out over a fresh thread pool, one worker per probe, and
    joins all of them against a shared deadline. A probe that raises or misses
    the deadline is replaced by its facet's all-sentinel record, so the
    Snapshot always has all ten facets. Nothing is cached between calls.

    collect() returns at the deadline, but an overrunning probe thread keeps
    running until its source call returns, and the interpreter waits for it
    at exit. Source calls must therefore be bounded themselves: host sources
    read small kernel files and give every subprocess SUBPROCESS_TIMEOUT.
    """

    def __init__(self, probes: list[Probe], timeout: float = 5.0) -> None:
        """
        Initialize the SnapshotAggregator.

        Args:
            probes: One probe per facet. Facets without a probe are sentinel-filled.
            timeout: Seconds to wait for all probes before giving up on stragglers.
        """
        self._probes = {probe.facet_name: probe for probe in probes}
        self._timeout = timeout

        unknown = set(self._probes) - set(Snapshot.FACETS)
        if unknown:
            raise ValueError(f"probes for unknown facets: {sorted(unknown)}")

    @classmethod
    def for_host(cls, config: InsightConfig | None = None) -> "SnapshotAggregator":
        """Aggregator wired to the local machine."""
        config = config or InsightConfig()
        return cls(host_probes(config), timeout=config.probe_timeout)

    @property
    def timeout(self) -> float:
        """Get the per-collect probe deadline."""
        return self._timeout

    @timeout.setter
    def timeout(self, value: float) -> None:
        """Set the per-collect probe deadline."""
        self._timeout = max(0.1, value)  # Minimum 0.1 seconds

    def collect(self) -> Snapshot:
        """Query every source and return a fully populated Snapshot."""
        started = time.monotonic()
        executor = ThreadPoolExecutor(
            max_workers=max(1, len(self._probes)),
            thread_name_prefix="probe",
        )
        try:
            try:
                futures = {
                    name: executor.submit(probe.run) for name, probe in self._probes.items()
                }
            except RuntimeError as exc:
                raise AggregationError(f"Unable to start probes: {exc}") from exc

            deadline = started + self._timeout
            facets = {
                name: self._join(name, futures.get(name), deadline)
                for name in Snapshot.FACETS
            }
        finally:
            # Don't wait on probes that overran the deadline
            executor.shutdown(wait=False, cancel_futures=True)

        logger.debug("Collected snapshot in %.3fs", time.monotonic() - started)
        return Snapshot(**facets)

    def refresh(self) -> Snapshot:
        """Same as collect(): every call re-queries every source."""
        return self.collect()

    def _join(self, name: str, future: "Future[Facet] | None", deadline: float) -> Facet:
        fallback = Snapshot.FACETS[name].unknown()
        if future is None:
            logger.warning("No probe registered for %s facet", name)
            return fallback
        try:
            facet = future.result(timeout=max(0.0, deadline - time.monotonic()))
        except FutureTimeoutError:
            logger.warning("%s probe timed out after %.1fs", name, self._timeout)
            return fallback
        except Exception:
            logger.warning("%s probe failed", name, exc_info=True)
            return fallback

        if not isinstance(facet, Snapshot.FACETS[name]):
            logger.warning("%s probe returned %s", name, type(facet).__name__)
            return fallback
        return facet
