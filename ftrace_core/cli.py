from __future__ import annotations

import dataclasses
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ftrace_core.domain.models import Assumptions, TraceOptions
from ftrace_core.domain.trace import TraceData, TraceIntegrityError
from ftrace_core.io import config as config_io
from ftrace_core.io import export as export_io
from ftrace_core.io import snapshots as snapshots_io
from ftrace_core.services import pipeline
from ftrace_core.services import summary as summary_service

app = typer.Typer(help="Financial Trace CLI: reconcile and attribute simulation snapshots.")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _money(value: float) -> str:
    return f"{value:,.2f}"


def _build_trace(
    payload: Path,
    options_path: Optional[Path],
    assumptions_path: Optional[Path],
    cash_floor: Optional[float],
    equity_allocation: Optional[float],
    initial_cash: Optional[float],
    initial_invested: Optional[float],
) -> TraceData:
    try:
        engine_payload = snapshots_io.load_payload(payload)
        options = config_io.load_trace_options(options_path) if options_path else TraceOptions()
        assumptions = config_io.load_assumptions(assumptions_path) if assumptions_path else Assumptions()
    except (FileNotFoundError, ValueError, KeyError) as exc:
        raise typer.BadParameter(str(exc))

    overrides = {
        "event_trace": engine_payload.event_trace,
        "realized_path_variables": engine_payload.realized_path_variables,
    }
    if cash_floor is not None:
        overrides["cash_floor"] = cash_floor
    if equity_allocation is not None:
        overrides["equity_allocation"] = config_io.clamp_allocation(equity_allocation)
    if initial_cash is not None:
        overrides["initial_cash"] = initial_cash
    if initial_invested is not None:
        overrides["initial_invested"] = initial_invested
    options = dataclasses.replace(options, **overrides)

    return pipeline.build_trace_data(engine_payload.snapshots, assumptions, options)


@app.command()
def trace(
    payload: Path = typer.Option(..., help="Engine payload JSON with monthlyStates/eventTrace"),
    options: Optional[Path] = typer.Option(None, help="Trace options JSON"),
    assumptions: Optional[Path] = typer.Option(None, help="Assumptions JSON (display only)"),
    cash_floor: Optional[float] = typer.Option(None, help="Override the cash floor"),
    equity_allocation: Optional[float] = typer.Option(None, help="Override the equity allocation (0-1)"),
    initial_cash: Optional[float] = typer.Option(None, help="Month-zero starting cash"),
    initial_invested: Optional[float] = typer.Option(None, help="Month-zero starting invested balance"),
    out_dir: Optional[Path] = typer.Option(None, help="Directory for the export pack"),
    exported_at: Optional[str] = typer.Option(None, help="Fixed export timestamp (ISO-8601)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Build the trace and write the audit export pack."""
    _configure_logging(verbose)
    result = _build_trace(payload, options, assumptions, cash_floor, equity_allocation, initial_cash, initial_invested)
    try:
        if out_dir:
            written = export_io.write_export(result, out_dir, exported_at)
            for path in written.values():
                typer.echo(f"Wrote {path}")
        else:
            typer.echo(json.dumps(export_io.meta_document(result, exported_at), indent=2, ensure_ascii=False))
    except TraceIntegrityError as exc:
        typer.echo(f"Trace is inconsistent: {exc}", err=True)
        raise typer.Exit(code=2)


@app.command()
def verify(
    payload: Path = typer.Option(..., help="Engine payload JSON with monthlyStates/eventTrace"),
    options: Optional[Path] = typer.Option(None, help="Trace options JSON"),
    cash_floor: Optional[float] = typer.Option(None, help="Override the cash floor"),
    initial_cash: Optional[float] = typer.Option(None, help="Month-zero starting cash"),
    initial_invested: Optional[float] = typer.Option(None, help="Month-zero starting invested balance"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """
    Print the consistency summary. Exits with code 1 when any month fails to reconcile.
    """
    _configure_logging(verbose)
    result = _build_trace(payload, options, None, cash_floor, None, initial_cash, initial_invested)
    summary = result.summary
    console = Console()

    status = "[green]all months reconcile[/green]" if summary.all_reconciled else (
        f"[red]{summary.total_months - summary.reconciled_months} month(s) out of tolerance[/red]"
    )
    console.print(f"[bold cyan]Consistency[/bold cyan]: {summary.reconciled_months}/{summary.total_months} reconciled, {status}")

    jumps = Table(title="Jump to")
    jumps.add_column("Marker")
    jumps.add_column("Month")
    jumps.add_column("Value", justify="right")
    largest_transfer = result.row_for(summary.largest_transfer_month) if summary.largest_transfer_month else None
    largest_negative = (
        result.row_for(summary.largest_negative_return_month) if summary.largest_negative_return_month else None
    )
    jumps.add_row("First floor breach", summary.first_breach_month or "-", "")
    jumps.add_row("First negative cash", summary.first_negative_cash_month or "-", "")
    jumps.add_row("First mismatch", summary.first_mismatch_month or "-", "")
    jumps.add_row(
        "Largest transfer",
        summary.largest_transfer_month or "-",
        _money(abs(largest_transfer.transfer_cash)) if largest_transfer else "",
    )
    jumps.add_row(
        "Largest negative return",
        summary.largest_negative_return_month or "-",
        _money(largest_negative.market_return_impact) if largest_negative else "",
    )
    jumps.add_row("Worst drawdown", summary.worst_drawdown_month or "-", "")
    console.print(jumps)

    residuals = Table(title=f"Residuals (tolerance {result.meta.reconcile_tolerance:.2f})")
    residuals.add_column("Check")
    residuals.add_column("Max |Δ|", justify="right")
    residuals.add_column("Mean |Δ|", justify="right")
    for column, stats in summary_service.residual_stats(result.rows).items():
        residuals.add_row(column, f"{stats['max']:.4f}", f"{stats['mean']:.4f}")
    console.print(residuals)

    if not summary.all_reconciled:
        raise typer.Exit(code=1)


@app.command()
def explain(
    payload: Path = typer.Option(..., help="Engine payload JSON with monthlyStates/eventTrace"),
    month: str = typer.Option(..., help="Month to explain (YYYY-MM)"),
    options: Optional[Path] = typer.Option(None, help="Trace options JSON"),
    initial_cash: Optional[float] = typer.Option(None, help="Month-zero starting cash"),
    initial_invested: Optional[float] = typer.Option(None, help="Month-zero starting invested balance"),
):
    """Show the flow, transfer and growth attribution for one month."""
    _configure_logging(False)
    result = _build_trace(payload, options, None, None, None, initial_cash, initial_invested)
    row = result.row_for(month)
    if row is None:
        raise typer.BadParameter(f"Month {month} is not in the trace")
    console = Console()

    console.print(
        f"[bold cyan]{row.month}[/bold cyan] cash {_money(row.cash_start)} -> {_money(row.cash_end)} | "
        f"invested {_money(row.inv_start)} -> {_money(row.inv_end)} | breach {row.breach.value} | "
        f"Δ {row.reconcile_delta:.2f}"
    )

    flows = Table(title=f"Operating flow {_money(row.operating_flow)}")
    for column in ("Group", "Label", "Amount", "Source", "Event ID"):
        flows.add_column(column, justify="right" if column == "Amount" else "left")
    for item in result.flow_items_by_month.get(month, []):
        flows.add_row(item.group.value, item.label, _money(item.amount), item.source.value, item.event_id or "")
    console.print(flows)

    transfers = Table(title=f"Transfers {_money(row.transfer_cash)}")
    for column in ("Reason", "Amount", "From", "To", "Event ID"):
        transfers.add_column(column, justify="right" if column == "Amount" else "left")
    for transfer in result.transfers_by_month.get(month, []):
        transfers.add_row(
            transfer.reason.value,
            _money(transfer.amount),
            transfer.source_account or "",
            transfer.target_account or "",
            transfer.event_id or "",
        )
    console.print(transfers)

    growth = Table(title=f"Market return {_money(row.market_return_impact)}")
    growth.add_column("Component")
    growth.add_column("Amount", justify="right")
    growth.add_column("Formula")
    for component in result.growth_components_by_month.get(month, []):
        growth.add_row(component.label, _money(component.amount), component.formula)
    console.print(growth)


if __name__ == "__main__":
    app()
