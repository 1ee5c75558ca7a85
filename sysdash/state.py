"""Dashboard state: the active tab and everything the renderer reads.

The event loop is the only writer. Each sampling tick replaces the
snapshot-derived fields together; a directory tree is only ever replaced
by a completed scan.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum

from sysdash.ranking import RankedProcesses
from sysdash.rates import smooth_cpu
from sysdash.scanner import ScanCancelled, ScanError, ScanOutcome
from sysdash.snapshot import DirectoryNode, RateSample, Snapshot

CPU_HISTORY_LEN = 120


class Tab(Enum):
    OVERVIEW = "Overview"
    PROCESSES = "Processes"
    NETWORK = "Network"
    STORAGE = "Storage"

    def next(self) -> Tab:
        tabs = list(Tab)
        return tabs[(tabs.index(self) + 1) % len(tabs)]

    def previous(self) -> Tab:
        tabs = list(Tab)
        return tabs[(tabs.index(self) - 1) % len(tabs)]


class ScanStatus(Enum):
    NOT_STARTED = "not yet computed"
    SCANNING = "scan in progress"
    DONE = "done"
    FAILED = "scan failed"


@dataclass
class DashboardState:
    """Render-ready view model owned by the event loop."""

    tab: Tab = Tab.OVERVIEW
    snapshot: Snapshot | None = None
    rates: dict[str, RateSample] = field(default_factory=lambda: {})
    ranked: RankedProcesses = field(default_factory=RankedProcesses)
    cpu_display: tuple[float, ...] = ()  # smoothed per-core CPU
    cpu_history: deque[float] = field(
        default_factory=lambda: deque(maxlen=CPU_HISTORY_LEN)
    )
    directory: DirectoryNode | None = None
    scan_status: ScanStatus = ScanStatus.NOT_STARTED
    scan_error: str | None = None
    scan_completed_at: float | None = None  # monotonic time of last successful scan

    # ── Tab transitions ────────────────────────────────────────────────

    def next_tab(self) -> Tab:
        self.tab = self.tab.next()
        return self.tab

    def previous_tab(self) -> Tab:
        self.tab = self.tab.previous()
        return self.tab

    # ── Sampling ───────────────────────────────────────────────────────

    def publish_sample(
        self,
        snapshot: Snapshot,
        rates: dict[str, RateSample],
        ranked: RankedProcesses,
    ) -> None:
        """Replace every snapshot-derived field for one tick."""
        cpu_display = smooth_cpu(self.cpu_display, snapshot.cpu_per_core)
        self.snapshot = snapshot
        self.rates = rates
        self.ranked = ranked
        self.cpu_display = cpu_display
        self.cpu_history.append(snapshot.cpu_total)

    # ── Directory scans ────────────────────────────────────────────────

    @property
    def scanning(self) -> bool:
        return self.scan_status is ScanStatus.SCANNING

    def is_scan_fresh(self, now: float, max_age: float) -> bool:
        """True if the last completed scan is younger than ``max_age`` seconds."""
        if self.directory is None or self.scan_completed_at is None:
            return False
        return now - self.scan_completed_at < max_age

    def scan_started(self) -> None:
        self.scan_status = ScanStatus.SCANNING
        self.scan_error = None

    def scan_abandoned(self) -> None:
        """A scan was cancelled; fall back to whatever was shown before it."""
        self.scan_status = (
            ScanStatus.DONE if self.directory is not None else ScanStatus.NOT_STARTED
        )

    def scan_finished(self, outcome: ScanOutcome, now: float) -> None:
        if isinstance(outcome, ScanCancelled):
            self.scan_abandoned()
        elif isinstance(outcome, ScanError):
            self.scan_status = ScanStatus.FAILED
            self.scan_error = str(outcome) or "scan failed"
        else:
            self.directory = outcome
            self.scan_status = ScanStatus.DONE
            self.scan_error = None
            self.scan_completed_at = now
