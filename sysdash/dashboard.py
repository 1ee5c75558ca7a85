"""Interactive terminal dashboard: sysdash's tabbed system monitor.

Four tabs (Overview, Processes, Network, Storage) drawn with curses on top
of the state kept by ``sysdash.loop.EventLoop``. Colour thresholds come
from the sysdash config.

Usage:
    sysdash
    sysdash --root /srv --config path/to/config.toml --log-file /tmp/sysdash.log
"""

from __future__ import annotations

import argparse
import curses
import logging
import os
import time
from collections.abc import Sequence
from pathlib import Path
from typing import Any, NamedTuple

from sysdash.collect import PsutilSource
from sysdash.config import DEFAULT_CONFIG, dump_default_config, load_config, optional_limit
from sysdash.loop import EventLoop, NavEvent
from sysdash.rates import total_rates
from sysdash.snapshot import ProcessInfo
from sysdash.state import DashboardState, ScanStatus, Tab

logger = logging.getLogger(__name__)

# ── Constants ──────────────────────────────────────────────────────────────

SPARK = " ▁▂▃▄▅▆▇█"
BAR_FILL = "█"
BAR_EMPTY = "░"

# Curses colour-pair IDs
C_NORMAL = 1
C_WARNING = 2
C_CRITICAL = 3
C_TITLE = 4
C_DIM = 5
C_BLUE = 6

KEY_EVENTS: dict[int, NavEvent] = {
    ord("q"): NavEvent.QUIT,
    ord("Q"): NavEvent.QUIT,
    ord("\t"): NavEvent.NEXT_TAB,
    ord("l"): NavEvent.NEXT_TAB,
    curses.KEY_RIGHT: NavEvent.NEXT_TAB,
    ord("h"): NavEvent.PREVIOUS_TAB,
    curses.KEY_LEFT: NavEvent.PREVIOUS_TAB,
    curses.KEY_BTAB: NavEvent.PREVIOUS_TAB,
}


# ── Colour helpers ─────────────────────────────────────────────────────────


def _init_colors() -> None:
    curses.start_color()
    curses.use_default_colors()
    curses.init_pair(C_NORMAL, curses.COLOR_GREEN, -1)
    curses.init_pair(C_WARNING, curses.COLOR_YELLOW, -1)
    curses.init_pair(C_CRITICAL, curses.COLOR_RED, -1)
    curses.init_pair(C_TITLE, curses.COLOR_CYAN, -1)
    curses.init_pair(C_DIM, curses.COLOR_WHITE, -1)
    curses.init_pair(C_BLUE, curses.COLOR_BLUE, -1)


def _severity_color(value: float, warn: float, crit: float) -> int:
    if value >= crit:
        return C_CRITICAL
    if value >= warn:
        return C_WARNING
    return C_NORMAL


def _metric_color(value: float, thresh: dict[str, Any], metric: str) -> int:
    levels = thresh.get(metric) or DEFAULT_CONFIG["thresholds"][metric]
    return _severity_color(value, float(levels["warning"]), float(levels["critical"]))


# ── Formatting helpers ─────────────────────────────────────────────────────


_BYTE_UNITS = ("B", "KiB", "MiB", "GiB", "TiB")
_RATE_UNITS = ("B/s", "KB/s", "MB/s", "GB/s")


def _scale(value: float, units: tuple[str, ...]) -> tuple[float, str]:
    """Divide by 1024 until the value fits the unit, stopping at the last one."""
    v = float(value)
    for unit in units[:-1]:
        if abs(v) < 1024:
            return v, unit
        v /= 1024
    return v, units[-1]


def fmt_bytes(n: int | float) -> str:
    v, unit = _scale(n, _BYTE_UNITS)
    return f"{v:.1f} {unit}"


def fmt_rate(bps: float) -> str:
    v, unit = _scale(bps, _RATE_UNITS)
    if unit == "B/s":
        return f"{v:.0f} {unit}"
    return f"{v:.1f} {unit}"


def fmt_uptime(seconds: float) -> str:
    total = int(seconds)
    days = total // 86400
    hours = (total % 86400) // 3600
    minutes = (total % 3600) // 60
    if days > 0:
        return f"{days}d {hours}h {minutes}m"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def truncate(text: str, max_len: int) -> str:
    if max_len <= 3:
        return text[: max(max_len, 0)]
    if len(text) > max_len:
        return text[: max_len - 3] + "..."
    return text


# ── Curses drawing primitives ──────────────────────────────────────────────


def _safe(win: curses.window, *args: Any) -> None:
    """addstr wrapper that swallows out-of-bounds errors."""
    try:
        win.addstr(*args)
    except curses.error:
        pass


def _draw_box(
    win: curses.window,
    y: int,
    x: int,
    h: int,
    w: int,
    title: str = "",
) -> curses.window | None:
    """Draw a bordered box and return the inner sub-window."""
    max_y, max_x = win.getmaxyx()
    h = min(h, max_y - y)
    w = min(w, max_x - x)
    if h < 3 or w < 4:
        return None
    try:
        sub = win.subwin(h, w, y, x)
        sub.box()
        if title and len(title) + 4 < w:
            sub.addstr(
                0, 2, f" {title} ", curses.color_pair(C_TITLE) | curses.A_BOLD
            )
        return sub
    except curses.error:
        return None


class Gauge(NamedTuple):
    """One horizontal meter: ``label ████░░░░ suffix``."""

    label: str
    pct: float
    color: int = C_NORMAL
    suffix: str | None = None

    @classmethod
    def for_metric(
        cls,
        label: str,
        pct: float,
        thresh: dict[str, Any],
        metric: str,
        suffix: str | None = None,
    ) -> Gauge:
        return cls(label, pct, _metric_color(pct, thresh, metric), suffix)


def _draw_gauge(win: curses.window, y: int, x: int, width: int, gauge: Gauge) -> None:
    max_y, max_x = win.getmaxyx()
    if y >= max_y - 1 or x >= max_x - 1:
        return

    suffix = gauge.suffix if gauge.suffix is not None else f" {gauge.pct:5.1f}%"
    cx = x
    if gauge.label:
        _safe(win, y, cx, f"{gauge.label:>6s} ", curses.color_pair(C_DIM))
        cx += 7

    bar_w = min(width - (cx - x), max_x - cx - 1) - len(suffix)
    if bar_w < 3:
        return
    filled = round(bar_w * max(0.0, min(gauge.pct, 100.0)) / 100.0)
    attr = curses.color_pair(gauge.color) | curses.A_BOLD

    _safe(win, y, cx, BAR_FILL * filled, attr)
    _safe(win, BAR_EMPTY * (bar_w - filled), curses.color_pair(C_DIM))
    _safe(win, suffix, attr)


def _draw_cpu_history(
    win: curses.window, y: int, x: int, width: int, history: Sequence[float]
) -> None:
    """Plot the newest CPU totals (0-100%) as one row of block glyphs."""
    max_y, max_x = win.getmaxyx()
    if y >= max_y - 1 or x >= max_x - 1:
        return
    w = min(width, max_x - x - 1, len(history))
    if w < 1:
        return
    top = len(SPARK) - 1
    glyphs = "".join(
        SPARK[round(max(0.0, min(pct, 100.0)) / 100.0 * top)]
        for pct in list(history)[-w:]
    )
    _safe(win, y, x, glyphs, curses.color_pair(C_BLUE))


# ── Overview panels ────────────────────────────────────────────────────────


def draw_cpu_panel(
    win: curses.window,
    y: int,
    x: int,
    w: int,
    h: int,
    state: DashboardState,
    thresh: dict[str, Any],
) -> None:
    box = _draw_box(win, y, x, h, w, "CPU")
    if not box or state.snapshot is None:
        return
    snap = state.snapshot
    cores = state.cpu_display or snap.cpu_per_core
    row = 1

    total = sum(cores) / len(cores) if cores else 0.0
    _draw_gauge(box, row, 1, w - 3, Gauge.for_metric("Total", total, thresh, "cpu_percent"))
    row += 1

    # Per-core bars (capped to available space)
    max_cores = max(0, min(len(cores), h - 7))
    for i in range(max_cores):
        pct = cores[i]
        _draw_gauge(box, row, 1, w - 3, Gauge.for_metric(f"#{i}", pct, thresh, "cpu_percent"))
        row += 1
    if len(cores) > max_cores:
        _safe(box, row, 2, f"... +{len(cores) - max_cores} cores", curses.color_pair(C_DIM))
        row += 1

    row = max(row + 1, h - 4)
    load = snap.load_avg
    load_str = f" Load {load[0]:.2f}  {load[1]:.2f}  {load[2]:.2f}  ({len(cores)} cores)"
    _safe(box, row, 1, load_str[: w - 3], curses.color_pair(C_DIM))
    _safe(box, row + 1, 1, f" Uptime {fmt_uptime(snap.uptime_seconds)}"[: w - 3], curses.color_pair(C_DIM))

    if row + 2 < h - 1 and len(state.cpu_history) > 1:
        _draw_cpu_history(box, row + 2, 2, w - 4, state.cpu_history)


def draw_mem_panel(
    win: curses.window,
    y: int,
    x: int,
    w: int,
    h: int,
    state: DashboardState,
    thresh: dict[str, Any],
) -> None:
    box = _draw_box(win, y, x, h, w, "Memory")
    if not box or state.snapshot is None:
        return
    snap = state.snapshot
    row = 1

    _draw_gauge(box, row, 1, w - 3, Gauge.for_metric("RAM", snap.memory_percent, thresh, "ram_percent"))
    row += 1
    detail = f"       {fmt_bytes(snap.memory_used)} / {fmt_bytes(snap.memory_total)}"
    _safe(box, row, 1, detail[: w - 3], curses.color_pair(C_DIM))
    row += 2

    if snap.swap_total > 0:
        _draw_gauge(box, row, 1, w - 3, Gauge.for_metric("Swap", snap.swap_percent, thresh, "swap_percent"))
        row += 1
        detail = f"       {fmt_bytes(snap.swap_used)} / {fmt_bytes(snap.swap_total)}"
        _safe(box, row, 1, detail[: w - 3], curses.color_pair(C_DIM))
    else:
        _safe(box, row, 1, "  Swap Not configured", curses.color_pair(C_DIM))


def draw_temp_panel(
    win: curses.window,
    y: int,
    x: int,
    w: int,
    h: int,
    state: DashboardState,
    thresh: dict[str, Any],
) -> None:
    box = _draw_box(win, y, x, h, w, "Temperature")
    if not box:
        return
    temp = state.snapshot.cpu_temp if state.snapshot else None
    if temp is None:
        _safe(box, 1, 2, "CPU temp: n/a", curses.color_pair(C_DIM))
        return
    color = _metric_color(temp, thresh, "cpu_temp")
    gauge = Gauge("CPU", min(temp / 110.0 * 100.0, 100.0), color, f" {temp:.0f} C")
    _draw_gauge(box, 1, 1, w - 3, gauge)


def draw_net_summary(
    win: curses.window,
    y: int,
    x: int,
    w: int,
    h: int,
    state: DashboardState,
) -> None:
    box = _draw_box(win, y, x, h, w, "Network")
    if not box:
        return
    rx, tx = total_rates(state.rates)
    active = [
        name
        for name, counters in (state.snapshot.networks.items() if state.snapshot else ())
        if counters.rx_bytes > 0 or counters.tx_bytes > 0
    ]
    _safe(box, 1, 2, f"Interfaces {len(active)}", curses.color_pair(C_DIM))
    _safe(box, 2, 2, "RX ", curses.color_pair(C_DIM))
    _safe(box, fmt_rate(rx), curses.color_pair(C_NORMAL) | curses.A_BOLD)
    _safe(box, 3, 2, "TX ", curses.color_pair(C_DIM))
    _safe(box, fmt_rate(tx), curses.color_pair(C_NORMAL) | curses.A_BOLD)


def draw_disk_summary(
    win: curses.window,
    y: int,
    x: int,
    w: int,
    h: int,
    state: DashboardState,
    thresh: dict[str, Any],
) -> None:
    box = _draw_box(win, y, x, h, w, "Disks")
    if not box or state.snapshot is None:
        return
    disks = state.snapshot.disks
    total = sum(d.total for d in disks)
    used = sum(d.used for d in disks)
    pct = used / total * 100.0 if total else 0.0
    _draw_gauge(box, 1, 1, w - 3, Gauge.for_metric("All", pct, thresh, "disk_percent"))
    detail = f"       {len(disks)} mounts  {fmt_bytes(used)} / {fmt_bytes(total)}"
    _safe(box, 2, 1, detail[: w - 3], curses.color_pair(C_DIM))


def draw_overview(
    win: curses.window, top: int, height: int, width: int, state: DashboardState, thresh: dict[str, Any]
) -> None:
    if width >= 82:
        col_w = width // 2
        temp_h = 3
        cpu_h = max(8, height - temp_h)
        draw_cpu_panel(win, top, 0, col_w, cpu_h, state, thresh)
        draw_temp_panel(win, top + cpu_h, 0, col_w, temp_h, state, thresh)

        mem_h, net_h = 7, 5
        draw_mem_panel(win, top, col_w, width - col_w, mem_h, state, thresh)
        draw_net_summary(win, top + mem_h, col_w, width - col_w, net_h, state)
        draw_disk_summary(
            win, top + mem_h + net_h, col_w, width - col_w,
            max(4, height - mem_h - net_h), state, thresh,
        )
        return

    # Single-column stacked layout
    cur_y = top
    chunk = max(8, height // 2)
    draw_cpu_panel(win, cur_y, 0, width, chunk, state, thresh)
    cur_y += chunk
    if cur_y + 7 <= top + height:
        draw_mem_panel(win, cur_y, 0, width, 7, state, thresh)
        cur_y += 7
    if cur_y + 5 <= top + height:
        draw_net_summary(win, cur_y, 0, width, 5, state)


# ── Processes tab ──────────────────────────────────────────────────────────


def _draw_proc_table(
    win: curses.window,
    y: int,
    x: int,
    w: int,
    h: int,
    title: str,
    procs: tuple[ProcessInfo, ...],
    by_memory: bool,
) -> None:
    box = _draw_box(win, y, x, h, w, title)
    if not box:
        return
    metric = "MEM" if by_memory else "CPU%"
    hdr = f" {'PID':>7s}  {metric:>10s}  NAME"
    _safe(box, 1, 1, hdr[: w - 3], curses.color_pair(C_TITLE) | curses.A_BOLD)

    for i, p in enumerate(procs[: max(0, h - 3)]):
        if by_memory:
            value = fmt_bytes(p.memory_bytes)
            color = C_NORMAL
        else:
            value = f"{p.cpu_percent:.1f}%"
            color = C_NORMAL
            if p.cpu_percent >= 50:
                color = C_CRITICAL
            elif p.cpu_percent >= 20:
                color = C_WARNING
        line = f" {p.pid:>7d}  {value:>10s}  {truncate(p.name, 25)}"
        _safe(box, 2 + i, 1, line[: w - 3], curses.color_pair(color))


def draw_processes(
    win: curses.window, top: int, height: int, width: int, state: DashboardState
) -> None:
    upper = height // 2
    _draw_proc_table(win, top, 0, width, upper, "Top CPU Processes", state.ranked.by_cpu, False)
    _draw_proc_table(
        win, top + upper, 0, width, height - upper,
        "Top Memory Processes", state.ranked.by_memory, True,
    )


# ── Network tab ────────────────────────────────────────────────────────────


def draw_network(
    win: curses.window, top: int, height: int, width: int, state: DashboardState
) -> None:
    box = _draw_box(win, top, 0, height, width, "Network I/O")
    if not box:
        return
    rx, tx = total_rates(state.rates)
    _safe(box, 1, 2, f"Total  RX {fmt_rate(rx)}  TX {fmt_rate(tx)}", curses.color_pair(C_NORMAL) | curses.A_BOLD)
    hdr = f" {'IFACE':<14s} {'RX/s':>12s} {'TX/s':>12s} {'RX total':>12s} {'TX total':>12s}"
    _safe(box, 3, 1, hdr[: width - 3], curses.color_pair(C_TITLE) | curses.A_BOLD)

    networks = state.snapshot.networks if state.snapshot else {}
    row = 4
    for name in sorted(networks):
        if row >= height - 1:
            break
        counters = networks[name]
        rate = state.rates.get(name)
        rx_s = rate.rx_bytes_per_sec if rate else 0.0
        tx_s = rate.tx_bytes_per_sec if rate else 0.0
        line = (
            f" {truncate(name, 14):<14s} {fmt_rate(rx_s):>12s} {fmt_rate(tx_s):>12s}"
            f" {fmt_bytes(counters.rx_bytes):>12s} {fmt_bytes(counters.tx_bytes):>12s}"
        )
        _safe(box, row, 1, line[: width - 3], curses.color_pair(C_DIM))
        row += 1


# ── Storage tab ────────────────────────────────────────────────────────────


def draw_storage(
    win: curses.window,
    top: int,
    height: int,
    width: int,
    state: DashboardState,
    scan_root: str,
    thresh: dict[str, Any],
) -> None:
    disks = state.snapshot.disks if state.snapshot else ()
    mounts_h = min(len(disks) + 2, max(3, height // 2))
    box = _draw_box(win, top, 0, mounts_h, width, "Mounts")
    if box:
        for i, disk in enumerate(disks[: mounts_h - 2]):
            suffix = f" {disk.percent:5.1f}% {fmt_bytes(disk.used)}/{fmt_bytes(disk.total)}"
            gauge = Gauge.for_metric(truncate(disk.mount, 6), disk.percent, thresh, "disk_percent", suffix)
            _draw_gauge(box, 1 + i, 1, width - 3, gauge)

    box = _draw_box(win, top + mounts_h, 0, height - mounts_h, width, f"Directory {scan_root}")
    if not box:
        return
    row = 1
    if state.scan_status is ScanStatus.SCANNING:
        _safe(box, row, 2, "Scanning...", curses.color_pair(C_WARNING) | curses.A_BOLD)
        row += 1
    elif state.scan_status is ScanStatus.FAILED:
        _safe(box, row, 2, f"Scan failed: {state.scan_error}"[: width - 4], curses.color_pair(C_CRITICAL))
        return
    elif state.scan_status is ScanStatus.NOT_STARTED:
        _safe(box, row, 2, "Not yet computed", curses.color_pair(C_DIM))
        return

    node = state.directory
    if node is None:
        return
    _safe(box, row, 2, f"Total {fmt_bytes(node.size)}", curses.color_pair(C_NORMAL) | curses.A_BOLD)
    row += 1
    for path, size in node.children:
        if row >= height - mounts_h - 1:
            break
        pct = size / node.size * 100.0 if node.size else 0.0
        gauge = Gauge(truncate(os.path.basename(path), 6), pct, C_BLUE, f" {fmt_bytes(size):>10s}")
        _draw_gauge(box, row, 1, width - 3, gauge)
        row += 1


# ── Header, tabs and status bar ────────────────────────────────────────────


def _draw_header(win: curses.window, w: int) -> None:
    ts = time.strftime("%H:%M:%S")
    attr = curses.color_pair(C_TITLE) | curses.A_REVERSE
    _safe(win, 0, 0, " " * (w - 1), attr)
    _safe(win, 0, 1, "sysdash", attr | curses.A_BOLD)
    _safe(win, 0, (w - len(ts)) // 2, ts, attr)


def _draw_tabs(win: curses.window, y: int, active: Tab) -> None:
    x = 1
    for tab in Tab:
        label = f" {tab.value} "
        if tab is active:
            attr = curses.color_pair(C_WARNING) | curses.A_BOLD | curses.A_REVERSE
        else:
            attr = curses.color_pair(C_DIM)
        _safe(win, y, x, label, attr)
        x += len(label) + 1


def _draw_status(win: curses.window, y: int, w: int) -> None:
    hint = "q: quit | ←/→ or Tab: switch tabs"
    _safe(win, y, 0, hint[: w - 1], curses.color_pair(C_DIM))


# ── Render surface ─────────────────────────────────────────────────────────


class CursesSurface:
    """Render surface for EventLoop: draws DashboardState and reads keys."""

    def __init__(
        self,
        stdscr: curses.window,
        scan_root: str,
        thresholds: dict[str, Any] | None = None,
    ) -> None:
        self._stdscr = stdscr
        self._scan_root = scan_root
        self._thresh = thresholds or DEFAULT_CONFIG["thresholds"]
        _init_colors()
        curses.curs_set(0)

    def poll_input(self, timeout: float) -> NavEvent | None:
        self._stdscr.timeout(int(timeout * 1000))
        key = self._stdscr.getch()
        if key == curses.KEY_RESIZE:
            self._stdscr.clear()
            return None
        return KEY_EVENTS.get(key)

    def draw(self, state: DashboardState) -> None:
        stdscr = self._stdscr
        max_y, max_x = stdscr.getmaxyx()
        stdscr.erase()

        if max_y < 10 or max_x < 40:
            _safe(stdscr, 0, 0, "Terminal too small (need 40x10+)")
            stdscr.refresh()
            return

        _draw_header(stdscr, max_x)
        _draw_tabs(stdscr, 1, state.tab)
        top, height = 2, max_y - 3

        if state.tab is Tab.OVERVIEW:
            draw_overview(stdscr, top, height, max_x, state, self._thresh)
        elif state.tab is Tab.PROCESSES:
            draw_processes(stdscr, top, height, max_x, state)
        elif state.tab is Tab.NETWORK:
            draw_network(stdscr, top, height, max_x, state)
        else:
            draw_storage(stdscr, top, height, max_x, state, self._scan_root, self._thresh)

        _draw_status(stdscr, max_y - 1, max_x)
        stdscr.refresh()


# ── Main loop ──────────────────────────────────────────────────────────────


def build_loop(stdscr: curses.window, config: dict[str, Any], scan_root: str) -> EventLoop:
    thresh: dict[str, Any] = config.get("thresholds", DEFAULT_CONFIG["thresholds"])
    surface = CursesSurface(stdscr, scan_root, thresh)
    return EventLoop(
        PsutilSource(),
        surface,
        scan_root,
        top_k=int(config["top_processes"]),
        top_children=int(config["top_children"]),
        scan_max_depth=optional_limit(config["scan_max_depth"]),
        scan_time_budget=optional_limit(config["scan_time_budget"]),
        rescan_after=float(config["rescan_after"]),
    )


def _dashboard_loop(stdscr: curses.window, config: dict[str, Any], scan_root: str) -> None:
    build_loop(stdscr, config, scan_root).run()


# ── CLI entry point ────────────────────────────────────────────────────────


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Tabbed terminal dashboard for CPU, memory, processes, network and storage.",
    )
    parser.add_argument(
        "--root",
        default=None,
        metavar="PATH",
        help="Directory summarised on the Storage tab (default: home directory)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        metavar="PATH",
        help="Path to TOML config file",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        metavar="PATH",
        help="Write debug logs to this file",
    )
    parser.add_argument(
        "--dump-config",
        action="store_true",
        help="Print the default config as TOML and exit",
    )
    args = parser.parse_args()

    if args.dump_config:
        print(dump_default_config(), end="")
        return

    if args.log_file is not None:
        logging.basicConfig(
            filename=args.log_file,
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    else:
        # Without a handler, logging.lastResort would print over the curses screen
        logging.getLogger("sysdash").addHandler(logging.NullHandler())

    config = load_config(args.config)
    scan_root = os.path.expanduser(args.root or config["scan_root"])
    logger.info("starting, storage root %s", scan_root)
    try:
        curses.wrapper(_dashboard_loop, config, scan_root)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
