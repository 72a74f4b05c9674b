"""
Report rendering for merged economics.

Absent values are always rendered as a placeholder (``N/A`` in text and
CSV, ``null`` in JSON) and never as zero or as a missing field.
"""

import csv
import io
import json
from typing import Any, Dict, List, Mapping, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..core.economics import PeriodEconomics
from ..core.periods import Granularity
from ..core.pipeline import EconomicsReport
from ..core.summary import EconomicsSummary

ABSENT = "N/A"

_TITLES = {
    Granularity.DAY: "Daily",
    Granularity.WEEK: "Weekly",
    Granularity.MONTH: "Monthly",
}

_PERIOD_COLUMNS = [
    "period",
    "cost",
    "active_tokens",
    "blended_tokens",
    "commands",
    "saved_tokens",
    "active_cost_per_token",
    "blended_cost_per_token",
    "estimated_savings_active",
    "estimated_savings_blended",
]

CSV_COLUMNS = ["granularity"] + _PERIOD_COLUMNS + ["spend_available"]


def _format_currency(amount: Optional[float]) -> str:
    """Format currency with proper symbols and formatting."""
    if amount is None:
        return ABSENT
    return f"${amount:,.2f}"


def _format_tokens(count: Optional[int]) -> str:
    if count is None:
        return ABSENT
    return f"{count:,}"


def _format_cpt(value: Optional[float]) -> str:
    """Cost per million tokens, since per-token prices are tiny."""
    if value is None:
        return ABSENT
    return f"${value * 1_000_000:,.2f}/M"


def _format_percent(value: Optional[float]) -> str:
    if value is None:
        return ABSENT
    return f"{value:,.1f}%"


def period_to_dict(record: PeriodEconomics) -> Dict[str, Any]:
    """Flatten a period record; absent values stay None."""
    return {
        "period": record.period,
        "cost": record.cost,
        "active_tokens": record.active_tokens,
        "blended_tokens": record.blended_tokens,
        "commands": record.commands,
        "saved_tokens": record.saved_tokens,
        "active_cost_per_token": record.active_cost_per_token,
        "blended_cost_per_token": record.blended_cost_per_token,
        "estimated_savings_active": record.estimated_savings_active,
        "estimated_savings_blended": record.estimated_savings_blended,
    }


def summary_to_dict(summary: EconomicsSummary) -> Dict[str, Any]:
    return {
        "period_count": summary.period_count,
        "total_cost": summary.total_cost,
        "total_active_tokens": summary.total_active_tokens,
        "total_blended_tokens": summary.total_blended_tokens,
        "total_commands": summary.total_commands,
        "total_saved_tokens": summary.total_saved_tokens,
        "active_cost_per_token": summary.active_cost_per_token,
        "blended_cost_per_token": summary.blended_cost_per_token,
        "estimated_savings_active": summary.estimated_savings_active,
        "estimated_savings_blended": summary.estimated_savings_blended,
        "savings_active_pct": summary.savings_active_pct,
        "savings_blended_pct": summary.savings_blended_pct,
    }


def report_to_dict(report: EconomicsReport) -> Dict[str, Any]:
    return {
        "granularity": report.granularity.value,
        "spend_available": report.spend_available,
        "periods": [period_to_dict(record) for record in report.records],
        "summary": summary_to_dict(report.summary),
        "skipped": [
            {"period": skipped.period, "reason": skipped.reason}
            for skipped in report.skipped
        ],
    }


def reports_to_json(reports: Mapping[Granularity, EconomicsReport]) -> str:
    """Serialize reports to a JSON document keyed by granularity."""
    payload = {
        granularity.value: report_to_dict(report)
        for granularity, report in reports.items()
    }
    return json.dumps(payload, indent=2)


def reports_to_csv(reports: Mapping[Granularity, EconomicsReport]) -> str:
    """Serialize per-period rows of every report to CSV.

    Each row carries its report's spend availability. Skipped records are
    not rows; they appear in the text and JSON output only.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)

    for granularity, report in reports.items():
        for record in report.records:
            row = period_to_dict(record)
            writer.writerow(
                [granularity.value]
                + [ABSENT if row[column] is None else row[column] for column in _PERIOD_COLUMNS]
                + [report.spend_available]
            )

    return buffer.getvalue()


def _build_period_table(report: EconomicsReport) -> Table:
    table = Table(title=f"{_TITLES[report.granularity]} Economics")
    columns: List[tuple] = [
        ("Period", "left", lambda r: escape(r.period)),
        ("Cost", "right", lambda r: _format_currency(r.cost)),
        ("Active tokens", "right", lambda r: _format_tokens(r.active_tokens)),
        ("Blended tokens", "right", lambda r: _format_tokens(r.blended_tokens)),
        ("Commands", "right", lambda r: _format_tokens(r.commands)),
        ("Saved tokens", "right", lambda r: _format_tokens(r.saved_tokens)),
        ("Active CPT", "right", lambda r: _format_cpt(r.active_cost_per_token)),
        ("Blended CPT", "right", lambda r: _format_cpt(r.blended_cost_per_token)),
        ("Savings (active)", "right", lambda r: _format_currency(r.estimated_savings_active)),
        ("Savings (blended)", "right", lambda r: _format_currency(r.estimated_savings_blended)),
    ]
    for header, justify, _ in columns:
        table.add_column(header, justify=justify)

    for record in report.records:
        table.add_row(*(formatter(record) for _, _, formatter in columns))
    return table


def _print_summary(summary: EconomicsSummary, console: Console) -> None:
    console.print("\n[bold]Summary[/bold]")
    console.print("-" * 40)
    console.print(f"Periods: {summary.period_count}")
    console.print(f"Total spend: {_format_currency(summary.total_cost)}")
    console.print(f"Active tokens: {summary.total_active_tokens:,}")
    console.print(f"Blended tokens: {summary.total_blended_tokens:,}")
    console.print(f"Commands: {summary.total_commands:,}")
    console.print(f"Tokens saved: {summary.total_saved_tokens:,}")
    console.print(f"Active cost/token: {_format_cpt(summary.active_cost_per_token)}")
    console.print(f"Blended cost/token: {_format_cpt(summary.blended_cost_per_token)}")
    console.print(
        f"Estimated savings (active): {_format_currency(summary.estimated_savings_active)}"
        f" ({_format_percent(summary.savings_active_pct)} of spend)"
    )
    console.print(
        f"Estimated savings (blended): {_format_currency(summary.estimated_savings_blended)}"
        f" ({_format_percent(summary.savings_blended_pct)} of spend)"
    )


def render_text(reports: Mapping[Granularity, EconomicsReport], console: Console) -> None:
    """Print reports as rich tables followed by their summaries."""
    for report in reports.values():
        if not report.spend_available:
            console.print(
                "[bold yellow]Spend data unavailable[/] - showing savings only"
            )

        if not report.records:
            console.print(f"\n[dim]No {report.granularity.value} data found.[/]")
        else:
            console.print(_build_period_table(report))

        _print_summary(report.summary, console)

        if report.skipped:
            console.print(f"\n[yellow]Skipped {len(report.skipped)} record(s):[/]")
            for skipped in report.skipped:
                console.print(f"  {escape(skipped.period)}: {escape(skipped.reason)}")
        console.print()
