"""Rich tables for performance records and ingestion results."""

from __future__ import annotations

from collections.abc import Sequence

from rich.table import Table

from ...models import CanonicalRecord, IngestionResult


def _fmt(value: object) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return f"{value:,.2f}"
    if isinstance(value, int):
        return f"{value:,}"
    return str(value)


def create_records_table(records: Sequence[CanonicalRecord], title: str | None = None) -> Table:
    table = Table(title=title, show_lines=False)
    table.add_column("Year", style="cyan")
    table.add_column("Month", style="cyan")
    table.add_column("State")
    table.add_column("District", style="bold")
    table.add_column("Households", justify="right")
    table.add_column("Persondays", justify="right")
    table.add_column("Women %", justify="right")
    table.add_column("Ongoing", justify="right")
    table.add_column("Completed", justify="right")
    table.add_column("Avg wage", justify="right")

    for record in records:
        table.add_row(
            _fmt(record.fin_year),
            _fmt(record.month),
            record.state_name,
            record.district_name,
            _fmt(record.households_worked),
            _fmt(record.persondays_generated),
            _fmt(record.women_persondays_percent),
            _fmt(record.ongoing_works),
            _fmt(record.completed_works),
            _fmt(record.avg_wage_rate),
        )
    return table


def describe_result(result: IngestionResult) -> str:
    """One-line summary of where the records came from."""
    parts = [f"{len(result.records)} records from [cyan]{result.source.value}[/cyan]"]
    if result.stage is not None and result.broadened:
        parts.append(f"stage [yellow]{result.stage.value}[/yellow]")
    if result.rejected_count:
        parts.append(f"{result.rejected_count} rejected")
    if result.persisted:
        parts.append("saved to store")
    return ", ".join(parts)
