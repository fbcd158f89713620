"""Command line interface for inspecting station workflows."""

from __future__ import annotations

import asyncio
from typing import Optional

import typer

from stationflow import WorkflowError, get_repository
from stationflow.catalog import default_catalog
from stationflow.config import build_station_configs, configure_logging, load_config
from stationflow.queries import WorkflowQueryService
from stationflow.stations import StationRegistry

app = typer.Typer(help="CLI for station workflows")

# Command groups
workflow_app = typer.Typer(help="Commands for inspecting panel workflows")
station_app = typer.Typer(help="Commands for inspecting station configuration")

app.add_typer(workflow_app, name="workflow")
app.add_typer(station_app, name="station")


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, help="Logging level"),
) -> None:
    """Stationflow CLI entry point."""
    configure_logging(log_level or load_config().log_level)


def _queries() -> WorkflowQueryService:
    return WorkflowQueryService(get_repository())


@workflow_app.command("list")
def workflow_list(
    status: Optional[str] = typer.Option(None, help="Filter by lifecycle status"),
    station: Optional[str] = typer.Option(None, help="Filter by last acting station"),
    line: Optional[int] = typer.Option(None, help="Filter by production line"),
) -> None:
    """
    List panel workflows with their state and status.

    Example:
        stationflow workflow list --status FAILED
        # Output: P-0001    ASSEMBLY_EL    FAILED    0%
    """
    try:
        workflows = asyncio.run(
            _queries().find_workflows(status=status, station_id=station, line_number=line)
        )
    except ValueError:
        typer.secho(f"Unknown status: {status}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    if not workflows:
        typer.echo("No workflows found")
        return
    for wf in workflows:
        typer.echo(
            f"{wf.panel_id}\t{wf.current_state.value}\t{wf.status.value}\t{wf.workflow_progress}%"
        )


@workflow_app.command("show")
def workflow_show(panel_id: str) -> None:
    """
    Show the current workflow record of a panel.

    Example:
        stationflow workflow show P-0001
    """
    repo = get_repository()
    wf = asyncio.run(repo.load(panel_id))
    if wf is None:
        typer.echo("Workflow not found")
        raise typer.Exit(code=1)
    typer.echo(f"Workflow {wf.panel_id}: {wf.current_state.value} ({wf.status.value})")
    typer.echo(f"Barcode: {wf.barcode}  Line: {wf.line_number}")
    typer.echo(f"Progress: {wf.workflow_progress}%  Quality score: {wf.quality_score}")
    if wf.station_id:
        typer.echo(f"Last station: {wf.station_id}  Operator: {wf.operator_id}")
    if wf.rework_count:
        typer.echo(f"Rework: {wf.rework_count} ({wf.rework_reason})")
    for station_id, result in wf.station_results.items():
        typer.echo(f"- {station_id}: {result.value}")


@workflow_app.command("history")
def workflow_history(panel_id: str) -> None:
    """Print the audit trail of a panel, oldest entry first."""
    try:
        history = asyncio.run(_queries().get_workflow_history(panel_id))
    except WorkflowError:
        typer.echo("Workflow not found")
        raise typer.Exit(code=1)
    for entry in history:
        from_state = entry.from_state.value if entry.from_state else "-"
        to_state = entry.to_state.value if entry.to_state else "-"
        typer.echo(
            f"{entry.timestamp.isoformat()}\t{entry.action.value}\t{from_state} -> {to_state}"
        )


@workflow_app.command("stats")
def workflow_stats() -> None:
    """Summarize workflows by state, status and station."""
    stats = asyncio.run(_queries().get_statistics())
    typer.echo(f"Total workflows: {stats.total}")
    typer.echo(f"Average progress: {stats.average_progress}%")
    typer.echo(f"Rework resets: {stats.total_rework}")
    for label, counts in (
        ("State", stats.by_state),
        ("Status", stats.by_status),
        ("Station", stats.by_station),
    ):
        for key, count in sorted(counts.items()):
            typer.echo(f"{label} {key}: {count}")


@station_app.command("list")
def station_list() -> None:
    """Show configured stations and their acceptance criteria."""
    registry = StationRegistry(default_catalog(), build_station_configs(load_config()))
    for station in registry.all():
        criteria = station.criteria
        typer.echo(
            f"{station.station_id.value} - {station.name} ({station.workflow_step.value})"
        )
        typer.echo(f"  Required: {', '.join(criteria.required) or '(none)'}")
        typer.echo(f"  Optional: {', '.join(criteria.optional) or '(none)'}")
        typer.echo(
            f"  Pass threshold: {criteria.pass_threshold:.0%}"
            f"  Notes on fail: {'yes' if criteria.notes_required else 'no'}"
        )


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
