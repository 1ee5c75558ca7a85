"""Rate computation between consecutive snapshots.

Network counters are cumulative, so throughput is a delta between two
samples divided by the time between them. A counter that goes backwards
(interface reset, driver reload, wraparound) is treated as having restarted
from zero during the interval.
"""

from __future__ import annotations

import logging
from typing import Mapping, Sequence

from sysdash.snapshot import RateSample, Snapshot

logger = logging.getLogger(__name__)

# Weight of the newest CPU reading in the display average. Fixed on purpose.
CPU_SMOOTHING = 0.6


def _counter_delta(previous: int, current: int) -> int:
    if current < previous:
        return current
    return current - previous


def zero_rates(current: Snapshot) -> dict[str, RateSample]:
    """Rates for a tick with no usable baseline."""
    return {name: RateSample(interface=name) for name in current.networks}


def compute_rates(
    previous: Snapshot | None,
    current: Snapshot,
    elapsed: float | None = None,
) -> dict[str, RateSample]:
    """Derive per-interface rx/tx bytes-per-second.

    Args:
        previous: The snapshot from the last tick, or None on the first tick.
        current: The snapshot just taken.
        elapsed: Seconds between the two samples. Defaults to the difference
            of the snapshot timestamps.

    Returns:
        One RateSample per interface present in ``current``. Interfaces that
        are new in ``current`` report 0.
    """
    if previous is None:
        return zero_rates(current)

    if elapsed is None:
        elapsed = current.timestamp - previous.timestamp
    if elapsed <= 0:
        logger.debug("non-positive sampling interval %.3fs, rates zeroed", elapsed)
        return zero_rates(current)

    rates: dict[str, RateSample] = {}
    for name, counters in current.networks.items():
        prev = previous.networks.get(name)
        if prev is None:
            rates[name] = RateSample(interface=name)
            continue
        rx = _counter_delta(prev.rx_bytes, counters.rx_bytes) / elapsed
        tx = _counter_delta(prev.tx_bytes, counters.tx_bytes) / elapsed
        rates[name] = RateSample(
            interface=name,
            rx_bytes_per_sec=max(0.0, rx),
            tx_bytes_per_sec=max(0.0, tx),
        )
    return rates


def total_rates(rates: Mapping[str, RateSample]) -> tuple[float, float]:
    """Sum rx and tx throughput across all interfaces."""
    rx = sum(r.rx_bytes_per_sec for r in rates.values())
    tx = sum(r.tx_bytes_per_sec for r in rates.values())
    return rx, tx


def smooth_cpu(
    previous: Sequence[float] | None, current: Sequence[float]
) -> tuple[float, ...]:
    """Exponentially smooth per-core CPU percentages for display.

    When the core count changes (or there is no history) the current
    reading is returned unchanged.
    """
    if not previous or len(previous) != len(current):
        return tuple(current)
    return tuple(
        CPU_SMOOTHING * cur + (1.0 - CPU_SMOOTHING) * prev
        for prev, cur in zip(previous, current)
    )
