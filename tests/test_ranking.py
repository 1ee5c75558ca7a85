"""Tests for sysdash.ranking."""

from __future__ import annotations

import pytest

from sysdash.ranking import RankedProcesses, rank_processes, top_by_cpu, top_by_memory
from sysdash.snapshot import ProcessInfo


def _proc(pid: int, cpu: float = 0.0, mem: int = 0) -> ProcessInfo:
    return ProcessInfo(pid=pid, name=f"p{pid}", cpu_percent=cpu, memory_bytes=mem)


class TestTopByCpu:
    def test_tie_broken_by_ascending_pid(self) -> None:
        procs = [_proc(3, 10.0), _proc(2, 50.0), _proc(1, 50.0)]
        assert [p.pid for p in top_by_cpu(procs, 2)] == [1, 2]

    def test_descending_order(self) -> None:
        procs = [_proc(1, 1.0), _proc(2, 30.0), _proc(3, 12.5)]
        assert [p.pid for p in top_by_cpu(procs, 3)] == [2, 3, 1]

    def test_k_larger_than_list(self) -> None:
        procs = [_proc(5, 1.0), _proc(4, 2.0)]
        assert [p.pid for p in top_by_cpu(procs, 100)] == [4, 5]

    def test_empty(self) -> None:
        assert top_by_cpu([], 5) == ()


class TestTopByMemory:
    def test_tie_broken_by_ascending_pid(self) -> None:
        procs = [_proc(9, mem=1024), _proc(4, mem=4096), _proc(2, mem=4096)]
        assert [p.pid for p in top_by_memory(procs, 3)] == [2, 4, 9]

    def test_memory_ignores_cpu(self) -> None:
        procs = [_proc(1, cpu=99.0, mem=1), _proc(2, cpu=0.0, mem=2)]
        assert top_by_memory(procs, 1)[0].pid == 2


class TestRankProcesses:
    def test_both_lists(self) -> None:
        procs = [_proc(1, 50.0, 10), _proc(2, 50.0, 30), _proc(3, 10.0, 20)]
        ranked = rank_processes(procs, 2)
        assert [p.pid for p in ranked.by_cpu] == [1, 2]
        assert [p.pid for p in ranked.by_memory] == [2, 3]

    def test_deterministic(self) -> None:
        procs = [_proc(i, float(i % 3), (i * 7) % 5) for i in range(50)]
        assert rank_processes(procs, 10) == rank_processes(list(reversed(procs)), 10)

    @pytest.mark.parametrize("k", [0, 1, 3, 7, 50])
    def test_length_bound(self, k: int) -> None:
        procs = [_proc(i, float(i)) for i in range(7)]
        ranked = rank_processes(procs, k)
        assert len(ranked.by_cpu) <= k
        assert len(ranked.by_cpu) <= len(procs)
        assert len(ranked.by_memory) == len(ranked.by_cpu)

    def test_negative_k_is_empty(self) -> None:
        assert rank_processes([_proc(1, 1.0)], -1) == RankedProcesses()

    def test_accepts_generator(self) -> None:
        ranked = rank_processes((_proc(i, float(i)) for i in range(3)), 2)
        assert [p.pid for p in ranked.by_cpu] == [2, 1]
        assert len(ranked.by_memory) == 2

    def test_input_untouched(self) -> None:
        procs = (_proc(2, 1.0), _proc(1, 5.0))
        rank_processes(procs, 2)
        assert [p.pid for p in procs] == [2, 1]
