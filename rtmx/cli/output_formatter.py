"""
RTMX CLI Output Formatter
=========================

Terminal output formatting for RTMX commands: ANSI colors, status icons,
tables, progress bars and section headers.

Color is on when stdout is a TTY and ``NO_COLOR`` is unset, or when
``FORCE_COLOR=1``. ``--no-color`` calls :func:`set_color_enabled`.

Usage::

    from rtmx.cli.output_formatter import (
        C, format_table, format_banner, format_section, format_kv,
        format_list, format_progress_bar, status_icon, colorize_status,
    )
"""

from __future__ import annotations

import os
import re
import sys
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

# ---------------------------------------------------------------------------
# ANSI color support
# ---------------------------------------------------------------------------

def _is_tty() -> bool:
    """Return True if stdout is connected to a terminal."""
    isatty = getattr(sys.stdout, "isatty", None)
    return bool(isatty and isatty())


_COLORS_ENABLED: bool = (
    os.environ.get("FORCE_COLOR", "") == "1"
    or (_is_tty() and os.environ.get("NO_COLOR") is None)
)


def set_color_enabled(enabled: bool) -> None:
    global _COLORS_ENABLED
    _COLORS_ENABLED = enabled


def color_enabled() -> bool:
    return _COLORS_ENABLED


_ANSI_RE = re.compile(r"\033\[[0-9;]*m")


class _Ansi:
    """ANSI escape-code helpers.  All methods return plain text when color
    is disabled (piped output, NO_COLOR, --no-color)."""

    _CODES = {
        "reset":     "\033[0m",
        "bold":      "\033[1m",
        "dim":       "\033[2m",
        "underline": "\033[4m",
        "red":       "\033[31m",
        "green":     "\033[32m",
        "yellow":    "\033[33m",
        "blue":      "\033[34m",
        "magenta":   "\033[35m",
        "cyan":      "\033[36m",
    }

    @classmethod
    def wrap(cls, text: str, *styles: str) -> str:
        """Wrap *text* with one or more ANSI styles."""
        if not _COLORS_ENABLED or not styles:
            return text
        prefix = "".join(cls._CODES.get(s, "") for s in styles)
        return f"{prefix}{text}{cls._CODES['reset']}"

    @staticmethod
    def strip(text: str) -> str:
        """Remove all ANSI escape sequences from *text*."""
        return _ANSI_RE.sub("", text)


C = _Ansi  # short alias

# ---------------------------------------------------------------------------
# Status and priority coloring
# ---------------------------------------------------------------------------

_STATUS_STYLES: Dict[str, Tuple[str, ...]] = {
    "COMPLETE":    ("green",),
    "PARTIAL":     ("yellow",),
    "MISSING":     ("red",),
    "NOT_STARTED": ("dim",),
}

_STATUS_ICONS = {
    "COMPLETE":    "✓",   # check
    "PARTIAL":     "⚠",   # warning sign
    "MISSING":     "✗",   # ballot x
    "NOT_STARTED": "○",   # circle
}

_PRIORITY_STYLES: Dict[str, Tuple[str, ...]] = {
    "P0":     ("red", "bold"),
    "HIGH":   ("red",),
    "MEDIUM": ("yellow",),
    "LOW":    ("dim",),
}

_VALUE_COLORS: List[Tuple[str, List[str]]] = [
    # (exact upper-case value, [ansi_styles])
    ("COMPLETE",    ["green"]),
    ("PARTIAL",     ["yellow"]),
    ("MISSING",     ["red"]),
    ("NOT_STARTED", ["dim"]),
    ("P0",          ["red", "bold"]),
    ("HIGH",        ["red"]),
    ("MEDIUM",      ["yellow"]),
    ("LOW",         ["dim"]),
    ("PASS",        ["green"]),
    ("WARN",        ["yellow"]),
    ("FAIL",        ["red", "bold"]),
    ("SKIP",        ["dim"]),
    ("BLOCKED",     ["red"]),
]


def _auto_color_value(value: str) -> str:
    """Apply color to *value* if it is a known status, priority or check result."""
    upper = value.strip().upper()
    for pattern, styles in _VALUE_COLORS:
        if upper == pattern:
            return C.wrap(value, *styles)
    return value


def _visible_len(text: str) -> int:
    """Return the display width of *text*, ignoring ANSI codes."""
    return len(C.strip(str(text)))


def status_icon(status: Any) -> str:
    """Colored one-character icon for a Status value."""
    key = str(status).upper()
    icon = _STATUS_ICONS.get(key, "?")
    return C.wrap(icon, *_STATUS_STYLES.get(key, ()))


def colorize_status(status: Any) -> str:
    key = str(status).upper()
    return C.wrap(str(status), *_STATUS_STYLES.get(key, ()))


def colorize_priority(priority: Any) -> str:
    key = str(priority).upper()
    return C.wrap(str(priority), *_PRIORITY_STYLES.get(key, ()))


def percent_style(percent: float) -> str:
    """green at 80% and up, yellow from 50%, red below."""
    if percent >= 80:
        return "green"
    if percent >= 50:
        return "yellow"
    return "red"

# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------

def format_table(
    headers: Sequence[str],
    rows: Sequence[Sequence[Any]],
    title: Optional[str] = None,
) -> str:
    """Render an ASCII table with box-drawing characters and auto-width columns.

    Cells that are statuses, priorities or check results are colorized.
    """
    str_rows = [[str(c) for c in row] for row in rows]

    # Column widths (based on raw text, not ANSI codes)
    widths = [len(h) for h in headers]
    for row in str_rows:
        for i, cell in enumerate(row):
            if i < len(widths):
                widths[i] = max(widths[i], _visible_len(cell))

    def _hline(left: str, mid: str, right: str, fill: str = "─") -> str:
        return left + mid.join(fill * (w + 2) for w in widths) + right

    top    = _hline("┌", "┬", "┐")
    sep    = _hline("├", "┼", "┤")
    bottom = _hline("└", "┴", "┘")

    def _row_str(cells: List[str], color_fn: Optional[Callable] = None) -> str:
        parts = []
        for i, cell in enumerate(cells):
            w = widths[i] if i < len(widths) else 0
            display = color_fn(cell) if color_fn else cell
            pad = w - _visible_len(cell)
            parts.append(f" {display}{' ' * pad} ")
        return "│" + "│".join(parts) + "│"

    lines: List[str] = []
    if title:
        lines.append(C.wrap(f"  {title}", "bold", "underline"))
        lines.append("")
    lines.append(top)
    lines.append(_row_str(list(headers), lambda c: C.wrap(c, "bold", "cyan")))
    lines.append(sep)
    for row in str_rows:
        lines.append(_row_str(row, _auto_color_value))
    lines.append(bottom)
    return "\n".join(lines)

# ---------------------------------------------------------------------------
# Banners and headers
# ---------------------------------------------------------------------------

_BANNER_STYLES = {
    "healthy":  ("green",),
    "warning":  ("yellow",),
    "critical": ("red", "bold"),
    "info":     ("blue",),
}


def format_banner(status: str, message: str) -> str:
    """Full-width colored status banner.

    Args:
        status: One of healthy, warning, critical, info.
        message: Text to display inside the banner.
    """
    styles = _BANNER_STYLES.get(status.lower(), ("blue",))
    icon_map = {"healthy": "[OK]", "warning": "[!!]", "critical": "[XX]", "info": "[ii]"}
    icon = icon_map.get(status.lower(), "[--]")
    width = max(60, len(message) + 12)
    rule = "═" * width
    inner = f"  {icon}  {message}"
    pad = width - _visible_len(inner)
    return "\n".join([
        C.wrap(rule, *styles),
        C.wrap(f"{inner}{' ' * max(pad, 0)}", *styles),
        C.wrap(rule, *styles),
    ])


def format_header(title: str, width: int = 80) -> str:
    """Centered title between ``=`` rules."""
    return C.wrap(f" {title} ".center(width, "="), "bold")


def format_section(title: str, width: int = 60) -> str:
    """Decorated section header with horizontal rules."""
    rule = "─" * width
    return "\n".join([
        C.wrap(rule, "dim"),
        C.wrap(f"  {title}", "bold", "magenta"),
        C.wrap(rule, "dim"),
    ])

# ---------------------------------------------------------------------------
# Progress bars
# ---------------------------------------------------------------------------

def format_progress_bar(percent: float, width: int = 40, label: str = "") -> str:
    """Unicode bar for a 0-100 completion percentage."""
    clamped = max(0.0, min(100.0, percent))
    filled = int(round(clamped / 100.0 * width))
    bar = "█" * filled + "░" * (width - filled)
    style = percent_style(clamped)
    prefix = f"{C.wrap(label, 'bold')}  " if label else ""
    return f"{prefix}{C.wrap(bar, style)} {C.wrap(f'{percent:5.1f}%', style, 'bold')}"


def format_status_bar(complete: int, partial: int, missing: int, width: int = 40) -> str:
    """Stacked bar: complete (green), partial (yellow), missing (red)."""
    total = complete + partial + missing
    if total == 0:
        return C.wrap("░" * width, "dim")
    c_w = int(round(complete / total * width))
    p_w = int(round(partial / total * width))
    m_w = max(width - c_w - p_w, 0)
    return (C.wrap("█" * c_w, "green")
            + C.wrap("█" * p_w, "yellow")
            + C.wrap("█" * m_w, "red"))

# ---------------------------------------------------------------------------
# Key-value and lists
# ---------------------------------------------------------------------------

def format_kv(
    pairs: Union[Dict[str, Any], List[Tuple[str, Any]]],
    title: Optional[str] = None,
) -> str:
    """Formatted key-value display with aligned colons and colored values."""
    items = list(pairs.items()) if isinstance(pairs, dict) else list(pairs)
    if not items:
        return ""

    max_key = max(len(str(k)) for k, _ in items)
    lines: List[str] = []
    if title:
        lines.append(C.wrap(f"  {title}", "bold", "underline"))
        lines.append("")
    for key, val in items:
        k_str = str(key).ljust(max_key)
        lines.append(f"  {C.wrap(k_str, 'cyan')} : {_auto_color_value(str(val))}")
    return "\n".join(lines)


def format_list(
    items: Sequence[str],
    numbered: bool = False,
    bullet: str = "•",
) -> str:
    """Bulleted or numbered list."""
    lines: List[str] = []
    for i, item in enumerate(items, start=1):
        prefix = f"  {i}." if numbered else f"  {bullet}"
        lines.append(f"{prefix} {item}")
    return "\n".join(lines)


def truncate(text: str, width: int) -> str:
    """Cut *text* to *width* characters, marking the cut with an ellipsis."""
    if width <= 0 or len(text) <= width:
        return text
    if width <= 3:
        return text[:width]
    return text[: width - 3] + "..."
