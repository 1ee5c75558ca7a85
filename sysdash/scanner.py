"""Recursive directory size aggregation for the Storage tab.

Scans run on a daemon thread behind a ``ScanTask`` handle. The event loop
polls the handle once per iteration and never waits on it; cancellation is
cooperative and checked before every directory is read.

Sizes are apparent file sizes. Symlinks are never followed and count as
their own (lstat) size. Hard-linked files are counted once per scan.
Unreadable entries below the root are skipped and count as 0; only an
unreadable root fails the scan.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from queue import Empty, Queue
from typing import Union

from sysdash.snapshot import DirectoryNode

logger = logging.getLogger(__name__)


class ScanError(Exception):
    """The scan failed as a whole (unreadable root, time budget exceeded)."""


class ScanCancelled(Exception):
    """The scan saw its cancel flag and stopped early."""


ScanOutcome = Union[DirectoryNode, ScanError, ScanCancelled]


# ── Traversal ──────────────────────────────────────────────────────────────


class _Walker:
    """Per-scan traversal state: cancel flag, deadline, depth limit, inodes seen."""

    def __init__(
        self,
        cancel: threading.Event | None,
        deadline: float | None,
        max_depth: int | None,
    ) -> None:
        self._cancel = cancel
        self._deadline = deadline
        self._max_depth = max_depth
        self._seen_inodes: set[tuple[int, int]] = set()

    def check(self) -> None:
        if self._cancel is not None and self._cancel.is_set():
            raise ScanCancelled()
        if self._deadline is not None and time.monotonic() > self._deadline:
            raise ScanError("scan exceeded its time budget")

    def may_descend(self, depth: int) -> bool:
        return self._max_depth is None or depth <= self._max_depth

    def leaf_size(self, entry: os.DirEntry[str]) -> int:
        """Size of a file or symlink entry, 0 if it can't be stat'ed."""
        try:
            st = entry.stat(follow_symlinks=False)
        except OSError as exc:
            logger.debug("skipping %s: %s", entry.path, exc)
            return 0
        if st.st_nlink > 1 and not entry.is_symlink():
            key = (st.st_dev, st.st_ino)
            if key in self._seen_inodes:
                return 0
            self._seen_inodes.add(key)
        return st.st_size

    def tree_size(self, path: str, depth: int) -> int:
        """Recursive size of the directory at ``path`` (``depth`` levels below root)."""
        if not self.may_descend(depth):
            return 0
        total = 0
        stack = [(path, depth)]
        while stack:
            current, level = stack.pop()
            self.check()
            try:
                with os.scandir(current) as it:
                    for entry in it:
                        if _is_real_dir(entry):
                            if self.may_descend(level + 1):
                                stack.append((entry.path, level + 1))
                        else:
                            total += self.leaf_size(entry)
            except OSError as exc:
                logger.debug("skipping unreadable directory %s: %s", current, exc)
        return total


def _is_real_dir(entry: os.DirEntry[str]) -> bool:
    try:
        return entry.is_dir(follow_symlinks=False)
    except OSError:
        return False


def scan_directory(
    root: str,
    top_n: int = 5,
    cancel: threading.Event | None = None,
    max_depth: int | None = None,
    time_budget: float | None = None,
) -> DirectoryNode:
    """Total the size of ``root`` and find its ``top_n`` largest children.

    Args:
        root: Directory to scan. ``~`` is expanded.
        top_n: How many immediate children to keep, largest first.
        cancel: Set this event from another thread to stop the scan.
        max_depth: Deepest directory level to read (root is 0). None = no limit.
        time_budget: Seconds after which the scan fails. None = no limit.

    Raises:
        ScanError: The root can't be read or the time budget ran out.
        ScanCancelled: ``cancel`` was set before the scan finished.
    """
    root = os.path.abspath(os.path.expanduser(root))
    deadline = time.monotonic() + time_budget if time_budget else None
    walker = _Walker(cancel, deadline, max_depth)

    walker.check()
    try:
        with os.scandir(root) as it:
            entries = list(it)
    except OSError as exc:
        raise ScanError(f"cannot read {root}: {exc.strerror or exc}") from exc

    children: list[tuple[str, int]] = []
    for entry in entries:
        if _is_real_dir(entry):
            size = walker.tree_size(entry.path, 1)
        else:
            size = walker.leaf_size(entry)
        children.append((entry.path, size))

    children.sort(key=lambda c: (-c[1], c[0]))
    return DirectoryNode(
        path=root,
        size=sum(size for _, size in children),
        children=tuple(children[: max(top_n, 0)]),
    )


# ── Background task handle ─────────────────────────────────────────────────


class ScanTask:
    """One directory scan running on a daemon thread.

    The outcome (a DirectoryNode, ScanError or ScanCancelled) is delivered
    exactly once through ``poll()``.
    """

    def __init__(
        self,
        root: str,
        top_n: int = 5,
        max_depth: int | None = None,
        time_budget: float | None = None,
    ) -> None:
        self.root = root
        self._top_n = top_n
        self._max_depth = max_depth
        self._time_budget = time_budget
        self._cancel = threading.Event()
        self._results: Queue[ScanOutcome] = Queue(maxsize=1)
        self._thread: threading.Thread | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self._thread is not None:
            return
        logger.info("scan started: %s", self.root)
        self._thread = threading.Thread(
            target=self._run,
            daemon=True,
            name="DirectoryScan",
        )
        self._thread.start()

    def cancel(self) -> None:
        if not self._cancel.is_set():
            logger.info("scan cancel requested: %s", self.root)
        self._cancel.set()

    def poll(self) -> ScanOutcome | None:
        """Return the outcome if the scan has finished, else None."""
        try:
            return self._results.get_nowait()
        except Empty:
            return None

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    def _run(self) -> None:
        outcome: ScanOutcome
        try:
            outcome = scan_directory(
                self.root,
                top_n=self._top_n,
                cancel=self._cancel,
                max_depth=self._max_depth,
                time_budget=self._time_budget,
            )
            logger.info("scan finished: %s (%d bytes)", outcome.path, outcome.size)
        except ScanCancelled as exc:
            logger.info("scan cancelled: %s", self.root)
            outcome = exc
        except ScanError as exc:
            logger.warning("scan failed: %s", exc)
            outcome = exc
        except Exception as exc:
            # A crashed worker still delivers an outcome
            logger.exception("scan crashed: %s", self.root)
            outcome = ScanError(str(exc))
        self._results.put(outcome)
