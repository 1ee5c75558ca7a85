"""Top-K process selection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from sysdash.snapshot import ProcessInfo


@dataclass(frozen=True)
class RankedProcesses:
    by_cpu: tuple[ProcessInfo, ...] = ()
    by_memory: tuple[ProcessInfo, ...] = ()


def top_by_cpu(processes: Iterable[ProcessInfo], k: int) -> tuple[ProcessInfo, ...]:
    """Highest CPU first; equal CPU ordered by ascending pid."""
    ranked = sorted(processes, key=lambda p: (-p.cpu_percent, p.pid))
    return tuple(ranked[: max(k, 0)])


def top_by_memory(
    processes: Iterable[ProcessInfo], k: int
) -> tuple[ProcessInfo, ...]:
    """Largest RSS first; equal RSS ordered by ascending pid."""
    ranked = sorted(processes, key=lambda p: (-p.memory_bytes, p.pid))
    return tuple(ranked[: max(k, 0)])


def rank_processes(processes: Iterable[ProcessInfo], k: int) -> RankedProcesses:
    procs = tuple(processes)
    return RankedProcesses(by_cpu=top_by_cpu(procs, k), by_memory=top_by_memory(procs, k))
