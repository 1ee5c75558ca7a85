"""Tests for sysdash.state."""

from __future__ import annotations

import pytest

from sysdash.ranking import RankedProcesses
from sysdash.scanner import ScanCancelled, ScanError
from sysdash.snapshot import DirectoryNode, RateSample, Snapshot
from sysdash.state import CPU_HISTORY_LEN, DashboardState, ScanStatus, Tab

# ── Tab cycling ────────────────────────────────────────────────────────────


@pytest.mark.parametrize("start", list(Tab))
def test_next_four_times_returns_to_start(start: Tab) -> None:
    tab = start
    for _ in range(4):
        tab = tab.next()
    assert tab is start


@pytest.mark.parametrize("start", list(Tab))
def test_previous_undoes_next(start: Tab) -> None:
    assert start.next().previous() is start


def test_next_wraps_storage_to_overview() -> None:
    assert Tab.STORAGE.next() is Tab.OVERVIEW


def test_previous_wraps_overview_to_storage() -> None:
    assert Tab.OVERVIEW.previous() is Tab.STORAGE


def test_tab_order() -> None:
    assert [t.value for t in Tab] == ["Overview", "Processes", "Network", "Storage"]


def test_initial_state() -> None:
    state = DashboardState()
    assert state.tab is Tab.OVERVIEW
    assert state.snapshot is None
    assert state.directory is None
    assert state.scan_status is ScanStatus.NOT_STARTED


def test_state_transitions_mutate_tab() -> None:
    state = DashboardState()
    assert state.next_tab() is Tab.PROCESSES
    assert state.previous_tab() is Tab.OVERVIEW
    assert state.previous_tab() is Tab.STORAGE
    assert state.tab is Tab.STORAGE


# ── publish_sample ─────────────────────────────────────────────────────────


class TestPublishSample:
    def test_replaces_derived_fields(self) -> None:
        state = DashboardState()
        snap = Snapshot(timestamp=1.0, cpu_per_core=(20.0, 40.0))
        rates = {"eth0": RateSample("eth0", 1.0, 2.0)}
        ranked = RankedProcesses()
        state.publish_sample(snap, rates, ranked)
        assert state.snapshot is snap
        assert state.rates is rates
        assert state.ranked is ranked
        assert state.cpu_display == (20.0, 40.0)
        assert list(state.cpu_history) == [30.0]

    def test_cpu_display_is_smoothed(self) -> None:
        state = DashboardState()
        state.publish_sample(Snapshot(timestamp=1.0, cpu_per_core=(0.0,)), {}, RankedProcesses())
        state.publish_sample(Snapshot(timestamp=2.0, cpu_per_core=(100.0,)), {}, RankedProcesses())
        assert 0.0 < state.cpu_display[0] < 100.0

    def test_history_bounded(self) -> None:
        state = DashboardState()
        for i in range(CPU_HISTORY_LEN + 10):
            state.publish_sample(
                Snapshot(timestamp=float(i), cpu_per_core=(float(i % 100),)), {}, RankedProcesses()
            )
        assert len(state.cpu_history) == CPU_HISTORY_LEN


# ── Scan bookkeeping ───────────────────────────────────────────────────────


OLD = DirectoryNode(path="/home/u", size=10, children=(("/home/u/a", 10),))
NEW = DirectoryNode(path="/home/u", size=99, children=())


class TestScanResults:
    def test_success_replaces_tree(self) -> None:
        state = DashboardState(directory=OLD, scan_status=ScanStatus.DONE)
        state.scan_started()
        assert state.scanning
        state.scan_finished(NEW, now=5.0)
        assert state.directory is NEW
        assert state.scan_status is ScanStatus.DONE
        assert state.scan_completed_at == 5.0

    def test_cancel_keeps_previous_tree(self) -> None:
        state = DashboardState(directory=OLD, scan_status=ScanStatus.DONE)
        state.scan_started()
        state.scan_finished(ScanCancelled(), now=5.0)
        assert state.directory is OLD
        assert state.scan_status is ScanStatus.DONE

    def test_cancel_without_prior_tree(self) -> None:
        state = DashboardState()
        state.scan_started()
        state.scan_abandoned()
        assert state.scan_status is ScanStatus.NOT_STARTED
        assert state.directory is None

    def test_error_marks_failed_and_keeps_tree(self) -> None:
        state = DashboardState(directory=OLD, scan_status=ScanStatus.DONE)
        state.scan_started()
        state.scan_finished(ScanError("cannot read /home/u"), now=5.0)
        assert state.scan_status is ScanStatus.FAILED
        assert state.scan_error == "cannot read /home/u"
        assert state.directory is OLD

    def test_restart_clears_error(self) -> None:
        state = DashboardState(scan_status=ScanStatus.FAILED, scan_error="x")
        state.scan_started()
        assert state.scan_error is None

    def test_freshness(self) -> None:
        state = DashboardState()
        assert not state.is_scan_fresh(now=0.0, max_age=30.0)
        state.scan_finished(NEW, now=100.0)
        assert state.is_scan_fresh(now=110.0, max_age=30.0)
        assert not state.is_scan_fresh(now=130.0, max_age=30.0)
        assert not state.is_scan_fresh(now=110.0, max_age=0.0)
