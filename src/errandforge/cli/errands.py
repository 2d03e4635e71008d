"""Errand CLI commands.

Provides commands for running the scheduled scans, paying bills, renewing
documents and inspecting the system. Every invocation builds a fresh
in-memory system.
"""

import asyncio
import json
from typing import Any, Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from errandforge.config import ErrandConfig
from errandforge.system import ErrandSystem
from errandforge.tasks.models import WorkItem, WorkItemCategory

console = Console()

_FORMAT_OPTION = click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format (table or json)",
)


def _system(ctx: click.Context) -> ErrandSystem:
    config: Optional[ErrandConfig] = (ctx.obj or {}).get("config")
    return ErrandSystem(config=config)


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def _outcome_table(title: str, outcomes: list[dict[str, Any]]) -> Table:
    table = Table(title=title)
    table.add_column("Category", style="cyan", no_wrap=True)
    table.add_column("Agent", style="green")
    table.add_column("Status", style="yellow")
    table.add_column("Duration", justify="right")
    table.add_column("Error", style="red")
    for outcome in outcomes:
        table.add_row(
            outcome["category"],
            outcome["agent_id"] or "N/A",
            outcome["status"],
            f"{outcome['duration_ms']:.1f}ms",
            outcome["error"] or "",
        )
    return table


def _print_notices(notices: list[dict[str, Any]]) -> None:
    if not notices:
        console.print("[dim]No notices.[/dim]")
        return
    for notice in notices:
        marker = "[bold magenta]?[/bold magenta]" if notice["needs_input"] else "•"
        label = escape(f"[{notice['type']}]")
        console.print(f"{marker} {label} {escape(notice['summary'])}")


@click.command(name="daily-scan")
@_FORMAT_OPTION
@click.option("--traces", is_flag=True, help="Print the trace diagram of every scan")
@click.pass_context
def daily_scan(ctx: click.Context, output_format: str, traces: bool) -> None:
    """Scan bills, subscriptions and appointments and aggregate deadlines.

    Examples:
        errandforge daily-scan
        errandforge daily-scan --format json
        errandforge daily-scan --traces
    """
    system = _system(ctx)
    report = asyncio.run(system.run_daily_scan())

    if output_format == "json":
        _echo_json(report)
        return

    console.print(_outcome_table("Daily scan", list(report["scans"].values())))
    deadlines = report["deadlines"]
    console.print(
        f"Deadlines tracked: [bold]{deadlines.get('total_deadlines', 0)}[/bold], "
        f"conflicts: [bold]{len(deadlines.get('conflicts', []))}[/bold]"
    )
    _print_notices(report["notices"])

    if traces:
        for outcome in report["scans"].values():
            if outcome["trace_id"]:
                console.print(system.get_trace_diagram(outcome["trace_id"]), end="")


@click.command(name="weekly")
@_FORMAT_OPTION
@click.pass_context
def weekly(ctx: click.Context, output_format: str) -> None:
    """Scan documents and review subscriptions.

    Examples:
        errandforge weekly
    """
    report = asyncio.run(_system(ctx).run_weekly_tasks())
    if output_format == "json":
        _echo_json(report)
    else:
        console.print(_outcome_table("Weekly tasks", report["tasks"]))


@click.command(name="status")
@_FORMAT_OPTION
@click.option("--scan/--no-scan", default=True, help="Run the daily scan first")
@click.pass_context
def status(ctx: click.Context, output_format: str, scan: bool) -> None:
    """Show registered agents, memory statistics and sessions.

    Examples:
        errandforge status
        errandforge status --no-scan --format json
    """
    system = _system(ctx)

    async def _status() -> dict[str, Any]:
        if scan:
            await system.run_daily_scan()
        return await system.get_system_status()

    snapshot = asyncio.run(_status())
    if output_format == "json":
        _echo_json(snapshot)
        return

    table = Table(title="Agents")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Type", style="green")
    table.add_column("Categories")
    for agent in snapshot["agents"]:
        table.add_row(agent["agent_id"], agent["agent_type"], ", ".join(agent["categories"]))
    console.print(table)

    memory = snapshot["memory"]
    console.print(f"Memories: [bold]{memory['total_memories']}[/bold]")
    for memory_type, count in memory["by_type"].items():
        console.print(f"  {memory_type}: {count}")
    console.print(f"Sessions: [bold]{len(snapshot['sessions'])}[/bold]")


@click.command(name="pay")
@click.argument("bill_id", type=str)
@click.option("--amount", type=float, required=True, help="Amount to pay")
@click.option(
    "--method",
    "payment_method",
    default="bank_account",
    show_default=True,
    help="Payment method",
)
@_FORMAT_OPTION
@click.pass_context
def pay(
    ctx: click.Context, bill_id: str, amount: float, payment_method: str, output_format: str
) -> None:
    """Pay a bill.

    Examples:
        errandforge pay bill-electric --amount 125.50
        errandforge pay bill-internet --amount 79.99 --method credit_card
    """
    item = WorkItem(
        category=WorkItemCategory.BILL_PAYMENT,
        metadata={"bill_id": bill_id, "amount": amount, "payment_method": payment_method},
    )
    report = _run_item(_system(ctx), item)
    _print_report(report, output_format)


@click.command(name="renew")
@click.argument("document_id", type=str)
@click.option("--url", "renewal_url", required=True, help="Renewal form URL")
@click.option(
    "--set",
    "values",
    multiple=True,
    metavar="FIELD=VALUE",
    help="Form value to supply (repeatable)",
)
@_FORMAT_OPTION
@click.pass_context
def renew(
    ctx: click.Context,
    document_id: str,
    renewal_url: str,
    values: tuple[str, ...],
    output_format: str,
) -> None:
    """Fill a document renewal form.

    Examples:
        errandforge renew doc-1 --url https://dmv.example.com/license/renew
        errandforge renew doc-2 --url https://insurance.example.com/renew --set coverage_level=Premium
    """
    additional: dict[str, str] = {}
    for value in values:
        field, sep, text = value.partition("=")
        if not sep or not field:
            raise click.BadParameter(f"Expected FIELD=VALUE, got '{value}'", param_hint="--set")
        additional[field.strip()] = text.strip()

    item = WorkItem(
        category=WorkItemCategory.DOCUMENT_RENEWAL,
        metadata={
            "document_id": document_id,
            "renewal_url": renewal_url,
            "additional_data": additional,
        },
    )
    report = _run_item(_system(ctx), item)
    _print_report(report, output_format)


@click.command(name="query")
@click.argument("text", type=str)
@click.option("--limit", type=int, default=5, show_default=True, help="Maximum results")
@_FORMAT_OPTION
@click.pass_context
def query(ctx: click.Context, text: str, limit: int, output_format: str) -> None:
    """Search memory after running the daily and weekly scans.

    Examples:
        errandforge query "electric bill"
    """
    system = _system(ctx)

    async def _query() -> list[dict[str, Any]]:
        await system.run_daily_scan()
        await system.run_weekly_tasks()
        records = await system.query_memory(text, limit)
        return [record.model_dump(mode="json", exclude={"embedding"}) for record in records]

    results = asyncio.run(_query())
    if output_format == "json":
        _echo_json(results)
        return

    table = Table(title=f"Memories matching '{text}'")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Type", style="green")
    table.add_column("Content")
    for record in results:
        table.add_row(
            record["id"], record["memory_type"], json.dumps(record["content"], default=str)[:80]
        )
    console.print(table)


def _run_item(system: ErrandSystem, item: WorkItem) -> dict[str, Any]:
    async def _run() -> dict[str, Any]:
        session_id = await system.create_session()
        report = await system.submit_and_run(item, session_id)
        report["notices"] = [
            notice.model_dump(mode="json") for notice in system.get_notices(session_id)
        ]
        return report

    return asyncio.run(_run())


def _print_report(report: dict[str, Any], output_format: str) -> None:
    if output_format == "json":
        _echo_json(report)
    elif report["success"]:
        console.print("[green]Done.[/green]")
        for key, value in report.get("result", {}).items():
            console.print(f"  {key}: {escape(str(value))}")
    elif report.get("result", {}).get("missing_fields"):
        console.print("[yellow]More information needed:[/yellow]")
        for field in report["result"]["missing_fields"]:
            console.print(f"  - {field}")
    else:
        console.print(f"[red]Failed:[/red] {escape(str(report.get('error')))}")

    if output_format != "json":
        _print_notices(report.get("notices", []))
    if not report["success"] and not report.get("result", {}).get("missing_fields"):
        raise click.exceptions.Exit(1)
