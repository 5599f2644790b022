"""Output renderer: rich table formatter, JSON formatter, view dispatch."""

import dataclasses
import json
import logging
import sys
from io import StringIO

from rich.console import Console
from rich.table import Table

from pna.formatting import format_bytes, format_percent, truncate_middle
from pna.models import FleetReport, NormalizedNode
from pna.scoring import health_score_label

logger = logging.getLogger(__name__)

VIEWS = ("summary", "nodes", "attention")

# (header, attribute) pairs for node tables.
_NODE_COLUMNS = [
    ("Pubkey", "pubkey"),
    ("IP", "ip"),
    ("Port", "gossip_port"),
    ("Status", "status"),
    ("Health", "health_score"),
    ("Version", "version"),
    ("Uptime", "uptime_formatted"),
    ("Committed", "storage_committed_formatted"),
    ("Used", "storage_used_formatted"),
]

# Identifiers are truncated, never folded across lines.
_NO_WRAP_COLUMNS = {"pubkey", "ip"}

_SUMMARY_STYLE = {
    "healthy": "green",
    "warning": "yellow",
    "critical": "red",
}


def render(
    report: FleetReport,
    fmt: str,
    view: str = "summary",
    *,
    file: object | None = None,
    width: int | None = None,
) -> None:
    """Dispatch output to the appropriate formatter.

    Args:
        report: Fleet report to render.
        fmt: Output format, ``"table"`` or ``"json"``.
        view: Which part of the report to show: ``"summary"``, ``"nodes"``
            or ``"attention"``.
        file: Writable file object for output (default: ``sys.stdout``).
        width: Explicit console width (default: auto-detect).

    Raises:
        ValueError: If *fmt* or *view* is unknown.
    """
    if view not in VIEWS:
        raise ValueError(f"Unknown view: {view!r}")
    if fmt == "table":
        render_table(report, view, file=file, width=width)
    elif fmt == "json":
        render_json(report, view, file=file)
    else:
        raise ValueError(f"Unknown output format: {fmt!r}")


# ---------------------------------------------------------------------------
# Table (rich) formatter
# ---------------------------------------------------------------------------


def render_table(
    report: FleetReport,
    view: str = "summary",
    *,
    file: object | None = None,
    width: int | None = None,
) -> None:
    """Render *report* as ``rich`` tables to *file*."""
    out = file or sys.stdout
    console = Console(file=out, highlight=False, width=width)

    if view == "nodes":
        _render_nodes(console, report.nodes, f"{len(report.nodes)} nodes")
    elif view == "attention":
        _render_attention(console, report)
    else:
        _render_summary(console, report)


def _render_summary(console: Console, report: FleetReport) -> None:
    stats = report.stats
    style = _SUMMARY_STYLE.get(report.summary.status, "white")
    console.print(
        f"\n[bold {style}]{report.summary.status.upper()}[/bold {style}] "
        f"{report.summary.message}\n"
    )

    t = Table(title="Network")
    t.add_column("Metric")
    t.add_column("Value", justify="right")
    t.add_row("Nodes", str(stats.total_nodes))
    for item in report.statuses:
        t.add_row(
            item.status.value.capitalize(),
            f"{item.count} ({format_percent(item.percentage)})",
        )
    t.add_row("Storage committed", format_bytes(stats.total_storage_committed))
    t.add_row("Storage used", format_bytes(stats.total_storage_used))
    t.add_row("Utilization", format_percent(stats.storage_utilization, 2))
    t.add_row("Average health", str(stats.average_health_score))
    if report.invalid_records:
        t.add_row("Invalid records dropped", str(report.invalid_records))
    console.print(t)

    if report.versions:
        t = Table(title="Versions")
        t.add_column("Version")
        t.add_column("Nodes", justify="right")
        t.add_column("Share", justify="right")
        for item in report.versions:
            label = item.version
            if item.version == report.latest_version:
                label = f"{label} (latest)"
            t.add_row(label, str(item.count), format_percent(item.percentage))
        console.print(t)

    if report.top:
        t = Table(title=f"Top {len(report.top)} nodes")
        t.add_column("Pubkey")
        t.add_column("Health", justify="right")
        t.add_column("Rating")
        for node in report.top:
            t.add_row(
                truncate_middle(node.pubkey),
                str(node.health_score),
                health_score_label(node.health_score),
            )
        console.print(t)


def _render_nodes(
    console: Console, nodes: list[NormalizedNode], title: str
) -> None:
    table = Table(title=title)
    for header, attr in _NODE_COLUMNS:
        table.add_column(header, no_wrap=attr in _NO_WRAP_COLUMNS)

    for node in nodes:
        cells = [_fmt(getattr(node, attr)) for _, attr in _NODE_COLUMNS]
        cells[0] = truncate_middle(node.pubkey)
        table.add_row(*cells)

    console.print(table)


def _render_attention(console: Console, report: FleetReport) -> None:
    attention = report.attention
    sections = [
        (f"Outdated (not {report.latest_version})", attention.outdated),
        ("Low health (< 50)", attention.low_health),
        ("High storage (> 90%)", attention.high_storage),
    ]
    for title, nodes in sections:
        if nodes:
            _render_nodes(console, nodes, f"{title}: {len(nodes)}")
        else:
            console.print(f"  {title}: none")


# ---------------------------------------------------------------------------
# JSON formatter
# ---------------------------------------------------------------------------


def render_json(
    report: FleetReport,
    view: str = "summary",
    *,
    file: object | None = None,
) -> None:
    """Render the selected *view* of *report* as JSON to *file*."""
    out = file or sys.stdout
    payload = _report_to_dict(report, view)
    json.dump(payload, out, indent=2, default=str)
    out.write("\n")  # type: ignore[union-attr]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _report_to_dict(report: FleetReport, view: str) -> dict:
    """Convert the selected part of a ``FleetReport`` to a plain dict."""
    if view == "nodes":
        return {"nodes": [dataclasses.asdict(n) for n in report.nodes]}
    if view == "attention":
        return {
            "latest_version": report.latest_version,
            **dataclasses.asdict(report.attention),
        }
    return {
        "summary": dataclasses.asdict(report.summary),
        "stats": dataclasses.asdict(report.stats),
        "statuses": [dataclasses.asdict(i) for i in report.statuses],
        "versions": [dataclasses.asdict(i) for i in report.versions],
        "top": [
            {"pubkey": n.pubkey, "health_score": n.health_score}
            for n in report.top
        ],
        "invalid_records": report.invalid_records,
    }


def _fmt(value: object) -> str:
    """Format a field value for table display.

    ``None`` becomes ``"—"``, everything else is stringified.
    """
    if value is None:
        return "—"
    return str(value)


def render_to_string(
    report: FleetReport, fmt: str, view: str = "summary", *, width: int = 200
) -> str:
    """Render *report* into a string rather than stdout."""
    buf = StringIO()
    render(report, fmt, view, file=buf, width=width)
    return buf.getvalue()
