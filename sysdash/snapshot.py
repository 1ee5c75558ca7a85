"""Immutable data types shared by the sampler, the engine and the renderer."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True)
class ProcessInfo:
    pid: int
    name: str
    cpu_percent: float  # as reported, may exceed 100 on multi-core hosts
    memory_bytes: int  # RSS


@dataclass(frozen=True)
class NetworkCounters:
    interface: str
    rx_bytes: int  # cumulative since boot or last interface reset
    tx_bytes: int


@dataclass(frozen=True)
class DiskMount:
    mount: str
    total: int
    used: int

    @property
    def percent(self) -> float:
        if self.total <= 0:
            return 0.0
        return self.used / self.total * 100.0


@dataclass(frozen=True)
class Snapshot:
    """Every host metric captured at one instant."""

    timestamp: float  # time.monotonic() seconds
    cpu_per_core: tuple[float, ...] = ()
    memory_total: int = 0
    memory_used: int = 0
    swap_total: int = 0
    swap_used: int = 0
    load_avg: tuple[float, float, float] = (0.0, 0.0, 0.0)
    cpu_temp: float | None = None
    processes: tuple[ProcessInfo, ...] = ()
    networks: Mapping[str, NetworkCounters] = field(
        default_factory=lambda: MappingProxyType({})
    )
    disks: tuple[DiskMount, ...] = ()
    uptime_seconds: float = 0.0

    def __post_init__(self) -> None:
        # Freeze the interface mapping so callers can't mutate a published snapshot
        if not isinstance(self.networks, MappingProxyType):
            object.__setattr__(self, "networks", MappingProxyType(dict(self.networks)))

    @property
    def cpu_total(self) -> float:
        if not self.cpu_per_core:
            return 0.0
        return sum(self.cpu_per_core) / len(self.cpu_per_core)

    @property
    def memory_percent(self) -> float:
        if self.memory_total <= 0:
            return 0.0
        return self.memory_used / self.memory_total * 100.0

    @property
    def swap_percent(self) -> float:
        if self.swap_total <= 0:
            return 0.0
        return self.swap_used / self.swap_total * 100.0


@dataclass(frozen=True)
class RateSample:
    """Per-second throughput of one interface between two snapshots."""

    interface: str
    rx_bytes_per_sec: float = 0.0
    tx_bytes_per_sec: float = 0.0


@dataclass(frozen=True)
class DirectoryNode:
    """Result of one completed directory scan."""

    path: str
    size: int  # recursive, bytes
    children: tuple[tuple[str, int], ...] = ()  # largest immediate children first
