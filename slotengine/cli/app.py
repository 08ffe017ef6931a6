"""
Main CLI application using Typer.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import List, Optional, Annotated, Tuple

import pendulum
import typer
from pendulum import Date
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..adapters.memory_store import InMemoryStore
from ..config import EngineConfig, get_default_config_path
from ..domain.exceptions import SlotEngineError
from ..domain.models import Provider, Service, Slot
from ..services.aggregator import MultiMemberAggregator
from ..services.next_available import NextAvailableDateSearch
from ..services.recalculation import RecalculationJob
from ..services.slot_finder import SlotFinderService

app = typer.Typer(
    name="slotengine",
    help="Compute bookable slots and next available dates for service providers",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
DataOption = Annotated[Optional[Path], typer.Option("--data", help="JSON data file. Overrides data_file from the config.")]


class Engine:
    """The wired-up services for one CLI invocation."""

    def __init__(self, config: EngineConfig, store: InMemoryStore):
        self.config = config
        self.store = store
        self.slot_finder = SlotFinderService(
            schedule_store=store,
            booking_store=store,
            slot_generator=config.build_slot_generator(),
        )
        self.aggregator = MultiMemberAggregator(self.slot_finder)
        self.search = NextAvailableDateSearch(
            self.slot_finder,
            aggregator=self.aggregator,
            provider_store=store,
            horizon_days=config.horizon_days,
        )
        self.job = RecalculationJob(
            provider_store=store,
            search=self.search,
            schedule_store=store,
            booking_store=store,
            concurrency=config.batch_concurrency,
        )

    async def get_provider(self, provider_id: str) -> Provider:
        provider = await self.store.get_provider(provider_id)
        if provider is None:
            raise typer.BadParameter(f"Unknown provider '{provider_id}'")
        return provider

    async def get_service(self, provider_id: str, service_id: Optional[str]) -> Service:
        services = await self.store.get_services(provider_id)
        for service in services:
            if service_id is None and service.is_active:
                return service
            if service.id == service_id:
                return service
        raise typer.BadParameter(f"Unknown service '{service_id}' for provider '{provider_id}'")


def _load_engine(config_file: Optional[Path], data_file: Optional[Path]) -> Engine:
    """
    Load configuration and data.

    Without an explicit ``--config`` a missing default config file falls
    back to built-in defaults.
    """
    if config_file is not None:
        config = EngineConfig.load_from_yaml(config_file)
    else:
        default_path = get_default_config_path()
        config = EngineConfig.load_from_yaml(default_path) if default_path.exists() else EngineConfig()

    data_path = data_file or config.data_file
    if data_path is None:
        console.print("[red]Missing data: pass --data or set data_file in the config.[/red]")
        raise typer.Exit(1)

    store = InMemoryStore.from_json(data_path, timezone=config.timezone)
    return Engine(config, store)


def _parse_date(value: Optional[str], tz: str) -> Date:
    if value is None:
        return pendulum.today(tz).date()
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).date()
    except ValueError as e:
        console.print(f"[red]Invalid date '{value}': {e}[/red]")
        raise typer.Exit(1)


def _fail(error: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {error}")
    raise typer.Exit(1)


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logs.")] = False,
):
    """
    Configure logging for every command.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.command()
def slots(
    provider_id: Annotated[str, typer.Argument(help="Provider id")],
    service_id: Annotated[Optional[str], typer.Argument(help="Service id. Defaults to the first active service.")] = None,
    member: Annotated[Optional[str], typer.Option("--member", "-m", help="Pin a member. Without it every eligible member is considered.")] = None,
    start: Annotated[Optional[str], typer.Option("--date", help="First date (YYYY-MM-DD). Defaults to today.")] = None,
    days: Annotated[int, typer.Option("--days", "-n", help="Number of days to list.")] = 1,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    List bookable slots.

    Examples:

        slotengine slots prov-1 svc-cut --data data.json
        slotengine slots prov-1 svc-cut --member alice --date 2024-11-25 --days 7
    """
    try:
        engine = _load_engine(config_file, data_file)
        first_day = _parse_date(start, engine.config.timezone)

        async def collect() -> List[Tuple[Slot, str]]:
            provider = await engine.get_provider(provider_id)
            service = await engine.get_service(provider_id, service_id)
            now = engine.slot_finder.now()
            rows: List[Tuple[Slot, str]] = []
            for offset in range(max(days, 1)):
                day = first_day.add(days=offset)
                if member:
                    found = await engine.slot_finder.find_member_slots(
                        provider_id=provider_id,
                        member_id=member,
                        service=service,
                        day=day,
                        now=now,
                        provider=provider,
                    )
                    rows.extend((s, member) for s in found)
                else:
                    found = await engine.aggregator.aggregate(
                        provider_id=provider_id,
                        members=await engine.store.get_members(provider_id),
                        service=service,
                        day=day,
                        now=now,
                        provider=provider,
                    )
                    rows.extend(
                        (Slot(start=s.start, end=s.end), ", ".join(s.member_ids)) for s in found
                    )
            return rows

        rows = asyncio.run(collect())

        console.print()
        if not rows:
            console.print("[yellow]⚠ No bookable slot found.[/yellow]\n")
            return

        table = Table(title=f"Slots for {provider_id}", show_header=True, header_style="bold cyan")
        table.add_column("Slot", style="bold yellow")
        table.add_column("Members", style="dim")
        for slot, members in rows:
            table.add_row(slot.format_display(), members)

        console.print(table)
        console.print(f"[bold green]✓ {len(rows)} slot(s) found[/bold green]\n")

    except (FileNotFoundError, ValueError, SlotEngineError) as e:
        _fail(e)


@app.command()
def next_available(
    provider_id: Annotated[str, typer.Argument(help="Provider id")],
    service_id: Annotated[Optional[str], typer.Argument(help="Service id. Defaults to the first active service.")] = None,
    member: Annotated[Optional[str], typer.Option("--member", "-m", help="Pin a member.")] = None,
    start: Annotated[Optional[str], typer.Option("--from", help="First date to check (YYYY-MM-DD). Defaults to today.")] = None,
    horizon: Annotated[Optional[int], typer.Option("--horizon", help="Number of days to check.")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Find the earliest date with at least one bookable slot.
    """
    try:
        engine = _load_engine(config_file, data_file)
        first_day = _parse_date(start, engine.config.timezone)

        async def run():
            provider = await engine.get_provider(provider_id)
            service = await engine.get_service(provider_id, service_id)
            return await engine.search.search(
                provider_id=provider_id,
                service=service,
                starting_from=first_day,
                member_id=member,
                horizon_days=horizon,
                provider=provider,
            )

        result = asyncio.run(run())
        checked = horizon or engine.config.horizon_days

        console.print()
        if result.next_date is None:
            console.print(f"[yellow]⚠ Nothing available in the {checked} days from {first_day.isoformat()}.[/yellow]")
        else:
            console.print(f"[bold green]✓ Next available date: {result.next_date.format('dddd DD.MM.YYYY')}[/bold green]")
        if result.failed_days:
            console.print(f"[yellow]{len(result.failed_days)} day(s) could not be checked.[/yellow]")
        console.print()

    except (FileNotFoundError, ValueError, SlotEngineError) as e:
        _fail(e)


@app.command()
def recalculate(
    stale_only: Annotated[bool, typer.Option("--stale-only", help="Only providers whose stored date is missing or past.")] = False,
    as_json: Annotated[bool, typer.Option("--json", help="Print the report as JSON.")] = False,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Recalculate the next available date of every published provider.
    """
    try:
        engine = _load_engine(config_file, data_file)
        report = asyncio.run(engine.job.recalculate_all(only_stale=stale_only))

        if as_json:
            console.print_json(json.dumps(report.to_dict()))
            return

        table = Table(title="Recalculation", show_header=True, header_style="bold cyan")
        table.add_column("Provider", style="bold yellow")
        table.add_column("Previous")
        table.add_column("New")
        table.add_column("Status")
        for diff in report.per_provider_diff:
            table.add_row(
                diff.business_name or diff.provider_id,
                diff.previous.isoformat() if diff.previous else "-",
                diff.new.isoformat() if diff.new else "-",
                diff.error or diff.reason or diff.status,
            )

        console.print()
        console.print(table)
        console.print(
            f"{report.updated} updated, {report.unchanged} unchanged, "
            f"{report.skipped} skipped, {report.errors} errors"
            + (" [yellow](truncated)[/yellow]" if report.truncated else "")
        )
        console.print()

    except (FileNotFoundError, ValueError, SlotEngineError) as e:
        _fail(e)


@app.command()
def recalculate_provider(
    provider_id: Annotated[str, typer.Argument(help="Provider id")],
    debug: Annotated[bool, typer.Option("--debug", help="Include store counts in the response.")] = False,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Recalculate one provider and print the JSON response.
    """
    try:
        engine = _load_engine(config_file, data_file)
        response = asyncio.run(engine.job.recalculate_provider(provider_id, debug=debug))
        console.print_json(json.dumps(response))
        if not response["success"]:
            raise typer.Exit(1)

    except (FileNotFoundError, ValueError, SlotEngineError) as e:
        _fail(e)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]slotengine[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
