"""psutil-backed metrics source.

``PsutilSource.sample()`` never raises: each group of metrics is read
independently and a failure in one (permissions, a vanished mount, a
platform without sensors) leaves that group zeroed or empty.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Any

import psutil

from sysdash.snapshot import DiskMount, NetworkCounters, ProcessInfo, Snapshot

logger = logging.getLogger(__name__)

_TEMP_CHIPS = ("coretemp", "k10temp", "cpu_thermal", "acpitz")


def _read_cpu() -> tuple[float, ...]:
    try:
        return tuple(psutil.cpu_percent(interval=None, percpu=True))
    except (psutil.Error, OSError) as exc:
        logger.debug("cpu read failed: %s", exc)
        return ()


def _read_memory() -> tuple[int, int, int, int]:
    """(ram_total, ram_used, swap_total, swap_used)"""
    ram_total = ram_used = swap_total = swap_used = 0
    try:
        ram = psutil.virtual_memory()
        ram_total, ram_used = ram.total, ram.used
    except (psutil.Error, OSError) as exc:
        logger.debug("memory read failed: %s", exc)
    try:
        swap = psutil.swap_memory()
        swap_total, swap_used = swap.total, swap.used
    except (psutil.Error, OSError) as exc:
        logger.debug("swap read failed: %s", exc)
    return ram_total, ram_used, swap_total, swap_used


def _read_load() -> tuple[float, float, float]:
    try:
        la = os.getloadavg()
    except (AttributeError, OSError):
        return (0.0, 0.0, 0.0)
    return (la[0], la[1], la[2])


def _read_temp() -> float | None:
    try:
        temps = psutil.sensors_temperatures()
    except (AttributeError, OSError):
        return None
    if not temps:
        return None
    for chip in _TEMP_CHIPS:
        if chip in temps and temps[chip]:
            return float(temps[chip][0].current)
    for entries in temps.values():
        if entries:
            return float(entries[0].current)
    return None


def _read_processes() -> tuple[ProcessInfo, ...]:
    procs: list[ProcessInfo] = []
    try:
        iterator = psutil.process_iter(["pid", "name", "cpu_percent", "memory_info"])
        for proc in iterator:
            try:
                info: dict[str, Any] = proc.info
                mem_info = info.get("memory_info")
                procs.append(
                    ProcessInfo(
                        pid=info.get("pid", 0),
                        name=info.get("name") or "?",
                        cpu_percent=info.get("cpu_percent") or 0.0,
                        memory_bytes=mem_info.rss if mem_info else 0,
                    )
                )
            except (psutil.NoSuchProcess, psutil.AccessDenied, AttributeError):
                continue
    except (psutil.Error, OSError) as exc:
        logger.debug("process listing failed: %s", exc)
    return tuple(procs)


def _read_networks() -> dict[str, NetworkCounters]:
    try:
        pernic = psutil.net_io_counters(pernic=True)
    except (psutil.Error, OSError) as exc:
        logger.debug("network read failed: %s", exc)
        return {}
    return {
        name: NetworkCounters(interface=name, rx_bytes=io.bytes_recv, tx_bytes=io.bytes_sent)
        for name, io in (pernic or {}).items()
    }


def _read_disks() -> tuple[DiskMount, ...]:
    try:
        partitions = psutil.disk_partitions(all=False)
    except (psutil.Error, OSError) as exc:
        logger.debug("partition listing failed: %s", exc)
        return ()
    mounts: list[DiskMount] = []
    seen: set[str] = set()
    for part in partitions:
        if part.mountpoint in seen:
            continue
        seen.add(part.mountpoint)
        try:
            usage = psutil.disk_usage(part.mountpoint)
        except (psutil.Error, OSError):
            continue
        if usage.total > 0:
            mounts.append(DiskMount(mount=part.mountpoint, total=usage.total, used=usage.used))
    return tuple(mounts)


def _read_uptime() -> float:
    try:
        return max(0.0, time.time() - psutil.boot_time())
    except (psutil.Error, OSError):
        return 0.0


class PsutilSource:
    """Samples the local host with psutil."""

    def __init__(self) -> None:
        # Warm-up psutil internal deltas (first call returns 0.0)
        psutil.cpu_percent(interval=None, percpu=True)

    def sample(self) -> Snapshot:
        now = time.monotonic()
        ram_total, ram_used, swap_total, swap_used = _read_memory()
        return Snapshot(
            timestamp=now,
            cpu_per_core=_read_cpu(),
            memory_total=ram_total,
            memory_used=ram_used,
            swap_total=swap_total,
            swap_used=swap_used,
            load_avg=_read_load(),
            cpu_temp=_read_temp(),
            processes=_read_processes(),
            networks=_read_networks(),
            disks=_read_disks(),
            uptime_seconds=_read_uptime(),
        )
