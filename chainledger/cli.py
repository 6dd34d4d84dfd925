"""Typer CLI interface for chainledger."""

import csv
import io
import logging
from datetime import date
from pathlib import Path

import typer

app = typer.Typer(
    name="chainledger",
    help="chainledger: reconcile raw blockchain activity into a tax-reportable ledger.",
)

FORMATS = ("table", "json", "csv")


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    """chainledger: reconcile raw blockchain activity into a tax-reportable ledger."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _parse_day(value: str | None, option: str) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        typer.echo(f"Error: {option} must be YYYY-MM-DD, got {value!r}", err=True)
        raise typer.Exit(1)


def _rows_as_csv(result) -> str:
    from chainledger.reports.rows import LEDGER_COLUMNS, PERPS_COLUMNS, ledger_row, perps_row, to_csv_dict

    if result.perps_summary is not None and not result.transactions:
        headers = list(PERPS_COLUMNS.values())
        rows = [to_csv_dict(perps_row(tx)) for tx in result.perps_transactions]
    else:
        headers = list(LEDGER_COLUMNS.values())
        rows = [to_csv_dict(ledger_row(tx)) for tx in result.transactions]

    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=headers, lineterminator="\n")
    writer.writeheader()
    writer.writerows(rows)
    return buffer.getvalue()


def _print_table(result) -> None:
    from rich.console import Console
    from rich.table import Table

    from chainledger.reports.rows import ledger_row
    from chainledger.reports.summary import SummaryReportGenerator

    typer.echo(SummaryReportGenerator().render(result))
    if not result.transactions:
        return

    console = Console()
    tbl = Table(title="Ledger", show_header=True)
    for column in ("Date", "Type", "Received", "Sent", "Fee", "Tag", "Review"):
        tbl.add_column(column)
    for tx in result.transactions:
        row = ledger_row(tx)
        tbl.add_row(
            row.date,
            tx.type.value,
            f"{row.received_quantity} {row.received_currency}".strip(),
            f"{row.sent_quantity} {row.sent_currency}".strip(),
            f"{row.fee_amount} {row.fee_currency}".strip(),
            row.tag,
            "yes" if tx.is_ambiguous else "",
        )
    console.print(tbl)


@app.command()
def reconcile(
    bundle: Path = typer.Argument(..., help="JSON bundle of decoded raw records"),
    wallet: str = typer.Option(None, "--wallet", "-w", help="Wallet address (defaults to the bundle's wallet)"),
    source: str = typer.Option(None, "--source", "-s", help="Source profile (defaults to the bundle's source)"),
    start: str = typer.Option(None, "--start", help="First day to include, YYYY-MM-DD (UTC)"),
    end: str = typer.Option(None, "--end", help="Last day to include, YYYY-MM-DD (UTC)"),
    output_format: str = typer.Option("table", "--format", "-f", help="Output format: table, json or csv"),
    output: Path = typer.Option(None, "--output", "-o", help="Write output to this file instead of stdout"),
    timeout: float = typer.Option(None, "--timeout", help="Overall export timeout in seconds"),
    strict: bool = typer.Option(False, "--strict", help="Fail instead of reporting an unreachable wallet"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log progress and retries"),
) -> None:
    """Reconcile a bundle of raw records into a canonical ledger."""
    from chainledger.config import EngineSettings
    from chainledger.engines.export import WalletExportEngine
    from chainledger.exceptions import BundleFormatError, UnknownSourceError, WalletUnreachableError
    from chainledger.ingestion.base import DateRange
    from chainledger.ingestion.bundle import JsonBundleAdapter
    from chainledger.ingestion.cache import ExportCache
    from chainledger.models.enums import ExportStatus
    from chainledger.sources import get_profile

    _configure_logging(verbose)

    if output_format not in FORMATS:
        typer.echo(f"Error: --format must be one of {', '.join(FORMATS)}", err=True)
        raise typer.Exit(1)

    start_day = _parse_day(start, "--start")
    end_day = _parse_day(end, "--end")
    if start_day and end_day and start_day > end_day:
        typer.echo("Error: --start is after --end", err=True)
        raise typer.Exit(1)

    settings = EngineSettings.from_env()
    if timeout is not None:
        settings = settings.model_copy(update={"export_timeout": timeout})
    cache = ExportCache()
    try:
        profile = get_profile(source) if source else None
        adapter = JsonBundleAdapter.from_path(bundle, profile=profile, settings=settings, cache=cache)
    except (BundleFormatError, UnknownSourceError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1)

    target = wallet or adapter.wallet
    if not target:
        typer.echo("Error: no wallet given and the bundle does not name one", err=True)
        raise typer.Exit(1)

    engine = WalletExportEngine(adapter.profile, adapter, settings=settings, cache=cache)
    date_range = DateRange(start_day, end_day) if start_day or end_day else None
    try:
        result = engine.export(target, date_range, categories=adapter.category_names, strict=strict)
    except (BundleFormatError, WalletUnreachableError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1)

    if output_format == "json":
        rendered = result.model_dump_json(indent=2)
    elif output_format == "csv":
        rendered = _rows_as_csv(result)
    else:
        rendered = None

    if rendered is not None and output is not None:
        output.write_text(rendered)
        typer.echo(f"Wrote {len(result.transactions) + len(result.perps_transactions)} records to {output}")
    elif rendered is not None:
        typer.echo(rendered)
    else:
        _print_table(result)

    if result.status == ExportStatus.FAILED:
        raise typer.Exit(1)


@app.command()
def sources() -> None:
    """List the known source profiles."""
    from rich.console import Console
    from rich.table import Table

    from chainledger.sources import SOURCES

    tbl = Table(title="Sources", show_header=True)
    tbl.add_column("Source", style="cyan")
    tbl.add_column("Mode")
    tbl.add_column("Unit")
    tbl.add_column("Categories")
    tbl.add_column("Rate budget")
    for profile in SOURCES.values():
        budget = profile.rate_budget
        if budget.kind == "fixed":
            limit = f"{budget.interval * 1000:.0f} ms apart"
        elif budget.kind == "bucket":
            limit = f"{budget.rate:g}/s bucket"
        else:
            limit = f"{budget.burst} per {budget.window:g}s"
        tbl.add_row(
            profile.name,
            profile.mode.value,
            f"{profile.native_currency} ({profile.decimals})",
            ", ".join(profile.category_names),
            limit,
        )
    Console().print(tbl)


if __name__ == "__main__":
    app()
