"""The dashboard's single control loop.

Each iteration polls input with a short timeout, samples on the one-second
tick, picks up a finished directory scan if there is one, and redraws once.
Nothing in the loop blocks for longer than the input poll; directory scans
run on a background ``ScanTask`` and are polled, never joined.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable, Protocol

from sysdash.ranking import rank_processes
from sysdash.rates import compute_rates, zero_rates
from sysdash.scanner import ScanCancelled, ScanTask
from sysdash.snapshot import Snapshot
from sysdash.state import DashboardState, Tab

logger = logging.getLogger(__name__)

TICK_INTERVAL = 1.0  # seconds between samples
POLL_TIMEOUT = 0.1  # input wait per iteration, must stay below TICK_INTERVAL


class NavEvent(Enum):
    NEXT_TAB = "next"
    PREVIOUS_TAB = "previous"
    QUIT = "quit"


class MetricsSource(Protocol):
    def sample(self) -> Snapshot: ...


class RenderSurface(Protocol):
    def draw(self, state: DashboardState) -> None: ...

    def poll_input(self, timeout: float) -> NavEvent | None: ...


ScanFactory = Callable[..., ScanTask]  # (root, top_n, max_depth, time_budget)


class EventLoop:
    """Drives sampling, scans and redraws until a quit event arrives."""

    def __init__(
        self,
        source: MetricsSource,
        surface: RenderSurface,
        scan_root: str,
        *,
        top_k: int = 15,
        top_children: int = 5,
        scan_max_depth: int | None = None,
        scan_time_budget: float | None = None,
        rescan_after: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
        scan_factory: ScanFactory = ScanTask,
    ) -> None:
        self.state = DashboardState()
        self.scan_root = scan_root
        self._source = source
        self._surface = surface
        self._top_k = top_k
        self._top_children = top_children
        self._scan_max_depth = scan_max_depth
        self._scan_time_budget = scan_time_budget
        self._rescan_after = rescan_after
        self._clock = clock
        self._scan_factory = scan_factory
        self._previous: Snapshot | None = None
        self._last_tick: float | None = None
        self._scan: ScanTask | None = None

    @property
    def active_scan(self) -> ScanTask | None:
        return self._scan

    def run(self) -> None:
        try:
            while self.step():
                pass
        finally:
            self.cancel_scan()

    def step(self) -> bool:
        """Run one iteration. Returns False once the user has asked to quit."""
        event = self._surface.poll_input(POLL_TIMEOUT)
        if event is NavEvent.QUIT:
            return False
        if event is not None:
            self._navigate(event)

        now = self._clock()
        if self._last_tick is None or now - self._last_tick >= TICK_INTERVAL:
            self._sample(now)

        self._collect_scan()
        self._surface.draw(self.state)
        return True

    # ── Navigation ─────────────────────────────────────────────────────

    def _navigate(self, event: NavEvent) -> None:
        before = self.state.tab
        if event is NavEvent.NEXT_TAB:
            after = self.state.next_tab()
        else:
            after = self.state.previous_tab()

        if before is Tab.STORAGE and after is not Tab.STORAGE:
            self.cancel_scan()
        elif after is Tab.STORAGE and before is not Tab.STORAGE:
            if not self.state.is_scan_fresh(self._clock(), self._rescan_after):
                self.start_scan()

    # ── Sampling ───────────────────────────────────────────────────────

    def _sample(self, now: float) -> None:
        snapshot = self._source.sample()
        if self._previous is None:
            rates = zero_rates(snapshot)
        else:
            rates = compute_rates(
                self._previous, snapshot, snapshot.timestamp - self._previous.timestamp
            )
        ranked = rank_processes(snapshot.processes, self._top_k)
        self.state.publish_sample(snapshot, rates, ranked)
        self._previous = snapshot
        self._last_tick = now

    # ── Directory scans ────────────────────────────────────────────────

    def start_scan(self) -> None:
        """Start a scan of ``scan_root``, cancelling any scan already running."""
        self.cancel_scan()
        self._scan = self._scan_factory(
            self.scan_root,
            self._top_children,
            self._scan_max_depth,
            self._scan_time_budget,
        )
        self._scan.start()
        self.state.scan_started()
        logger.debug("storage scan requested for %s", self.scan_root)

    def cancel_scan(self) -> None:
        """Stop the in-flight scan. An outcome that already arrived is kept."""
        if self._scan is None:
            return
        scan, self._scan = self._scan, None
        outcome = scan.poll()
        if outcome is not None and not isinstance(outcome, ScanCancelled):
            logger.debug("scan of %s finished before cancel, keeping result", self.scan_root)
            self.state.scan_finished(outcome, self._clock())
            return
        scan.cancel()
        self.state.scan_abandoned()

    def _collect_scan(self) -> None:
        if self._scan is None:
            return
        outcome = self._scan.poll()
        if outcome is None:
            return
        self._scan = None
        self.state.scan_finished(outcome, self._clock())
