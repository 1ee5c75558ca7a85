"""Tests for sysdash.rates."""

from __future__ import annotations

import pytest

from sysdash.rates import CPU_SMOOTHING, compute_rates, smooth_cpu, total_rates
from sysdash.snapshot import NetworkCounters, RateSample, Snapshot


def _snap(t: float, **ifaces: tuple[int, int]) -> Snapshot:
    return Snapshot(
        timestamp=t,
        networks={
            name: NetworkCounters(interface=name, rx_bytes=rx, tx_bytes=tx)
            for name, (rx, tx) in ifaces.items()
        },
    )


# ── compute_rates ──────────────────────────────────────────────────────────


class TestComputeRates:
    def test_steady_growth(self) -> None:
        prev = _snap(0.0, eth0=(1000, 500))
        curr = _snap(1.0, eth0=(3000, 1500))
        rates = compute_rates(prev, curr, 1.0)
        assert rates["eth0"].rx_bytes_per_sec == pytest.approx(2000.0)
        assert rates["eth0"].tx_bytes_per_sec == pytest.approx(1000.0)

    def test_counter_reset_uses_current_value(self) -> None:
        prev = _snap(0.0, eth0=(5000, 0))
        curr = _snap(1.0, eth0=(200, 0))
        rates = compute_rates(prev, curr, 1.0)
        assert rates["eth0"].rx_bytes_per_sec == pytest.approx(200.0)

    def test_uneven_interval(self) -> None:
        prev = _snap(10.0, wlan0=(0, 0))
        curr = _snap(12.5, wlan0=(5000, 2500))
        rates = compute_rates(prev, curr, 2.5)
        assert rates["wlan0"].rx_bytes_per_sec == pytest.approx(2000.0)
        assert rates["wlan0"].tx_bytes_per_sec == pytest.approx(1000.0)

    def test_elapsed_defaults_to_timestamps(self) -> None:
        prev = _snap(100.0, eth0=(0, 0))
        curr = _snap(102.0, eth0=(4000, 0))
        rates = compute_rates(prev, curr)
        assert rates["eth0"].rx_bytes_per_sec == pytest.approx(2000.0)

    def test_first_tick_all_zero(self) -> None:
        curr = _snap(1.0, eth0=(3000, 3000), lo=(10, 10))
        rates = compute_rates(None, curr, 1.0)
        assert set(rates) == {"eth0", "lo"}
        for r in rates.values():
            assert r.rx_bytes_per_sec == 0.0
            assert r.tx_bytes_per_sec == 0.0

    def test_new_interface_reports_zero(self) -> None:
        prev = _snap(0.0, eth0=(0, 0))
        curr = _snap(1.0, eth0=(100, 100), docker0=(9999, 9999))
        rates = compute_rates(prev, curr, 1.0)
        assert rates["docker0"] == RateSample(interface="docker0")
        assert rates["eth0"].rx_bytes_per_sec == pytest.approx(100.0)

    def test_vanished_interface_not_reported(self) -> None:
        prev = _snap(0.0, eth0=(0, 0), tun0=(10, 10))
        curr = _snap(1.0, eth0=(10, 10))
        assert set(compute_rates(prev, curr, 1.0)) == {"eth0"}

    @pytest.mark.parametrize("elapsed", [0.0, -1.0])
    def test_non_positive_elapsed_zeroes(self, elapsed: float) -> None:
        prev = _snap(0.0, eth0=(0, 0))
        curr = _snap(0.0, eth0=(1000, 1000))
        rates = compute_rates(prev, curr, elapsed)
        assert rates["eth0"].rx_bytes_per_sec == 0.0

    @pytest.mark.parametrize(
        ("prev_rx", "curr_rx"),
        [(0, 0), (10, 5), (2**64 - 1, 3), (7, 7), (100, 10**9)],
    )
    def test_never_negative(self, prev_rx: int, curr_rx: int) -> None:
        prev = _snap(0.0, eth0=(prev_rx, curr_rx))
        curr = _snap(0.5, eth0=(curr_rx, prev_rx))
        r = compute_rates(prev, curr, 0.5)["eth0"]
        assert r.rx_bytes_per_sec >= 0.0
        assert r.tx_bytes_per_sec >= 0.0

    def test_does_not_mutate_snapshots(self) -> None:
        prev = _snap(0.0, eth0=(1, 1))
        curr = _snap(1.0, eth0=(2, 2))
        compute_rates(prev, curr, 1.0)
        assert prev.networks["eth0"].rx_bytes == 1
        assert curr.networks["eth0"].rx_bytes == 2


# ── total_rates ────────────────────────────────────────────────────────────


def test_total_rates_sums_interfaces() -> None:
    rates = {
        "a": RateSample("a", 100.0, 10.0),
        "b": RateSample("b", 50.0, 5.0),
    }
    assert total_rates(rates) == (150.0, 15.0)


def test_total_rates_empty() -> None:
    assert total_rates({}) == (0.0, 0.0)


# ── smooth_cpu ─────────────────────────────────────────────────────────────


class TestSmoothCpu:
    def test_no_history_passes_through(self) -> None:
        assert smooth_cpu(None, [10.0, 20.0]) == (10.0, 20.0)
        assert smooth_cpu((), [10.0]) == (10.0,)

    def test_weighted_average(self) -> None:
        result = smooth_cpu([0.0], [100.0])
        assert result[0] == pytest.approx(100.0 * CPU_SMOOTHING)

    def test_core_count_change_resets(self) -> None:
        assert smooth_cpu([50.0], [10.0, 20.0]) == (10.0, 20.0)
