"""Shared helpers for result object formatting."""

from typing import Dict, List, Optional, Sequence


_DEFAULT_SECTOR_ABBR_MAP = {
    "Consumer Discretionary": "Cons Disc",
    "Consumer Staples": "Cons Stap",
    "Financial Services": "Fin Services",
    "Communication Services": "Comm Serv",
    "Information Technology": "Info Tech",
}


def _abbreviate_label(label: str, max_width: int, mapping: Optional[Dict[str, str]] = None) -> str:
    """Abbreviate a single label to fit within max_width using mapping and heuristics."""
    s = str(label)
    if mapping and s in mapping:
        s = mapping[s]
    if len(s) <= max_width:
        return s
    words = s.split()
    if len(words) <= 1:
        return s[:max_width]
    # Iteratively reduce the per-word segment length
    for seg in (4, 3, 2):
        candidate = " ".join(w[:seg] if len(w) > seg else w for w in words)
        if len(candidate) <= max_width:
            return candidate
    return s[:max_width]


def _fmt_number(value, fmt: str = "{:.2f}", missing: str = "n/a") -> str:
    if value is None:
        return missing
    try:
        return fmt.format(value)
    except (TypeError, ValueError):
        return missing


def _format_rows_as_text(
    headers: Sequence[str],
    rows: Sequence[Sequence[str]],
    title: Optional[str] = None,
    max_rows: int = 20,
) -> List[str]:
    """Render rows of pre-formatted cells as an aligned text table.

    The first column is left-aligned, the rest right-aligned; widths follow
    the widest cell in each column.
    """
    lines: List[str] = []
    if title:
        lines.append(f"\n{title}")
    if not rows:
        lines.append("(empty)")
        return lines

    shown = [list(map(str, r)) for r in rows[:max_rows]]
    widths = [len(h) for h in headers]
    for r in shown:
        for i, cell in enumerate(r):
            widths[i] = max(widths[i], len(cell))

    def _line(cells: Sequence[str]) -> str:
        parts = [cells[0].ljust(widths[0])]
        parts.extend(c.rjust(widths[i + 1]) for i, c in enumerate(cells[1:]))
        return "  ".join(parts)

    lines.append(_line(list(headers)))
    lines.append("  ".join("-" * w for w in widths))
    lines.extend(_line(r) for r in shown)
    if len(rows) > max_rows:
        lines.append(f"… showing {max_rows} of {len(rows)} rows")
    return lines
