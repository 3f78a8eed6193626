"""Click CLI with Rich output."""

from __future__ import annotations

import json as json_lib
import logging
from datetime import timedelta
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import DB_PATH, DEFAULT_FRESHNESS, RDAP_BASE_URL, REQUEST_TIMEOUT, LookupConfig
from .database import RangeCache
from .exceptions import WhoisRdapError
from .lookup import RdapLookup
from .models import Found, NetworkRecord

logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )
    # requests/urllib3 chatter is not ours
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def _fail(message: str) -> None:
    err_console.print(f"[red]Error:[/red] {escape(message)}")
    raise SystemExit(1)


def _entity_names(rdap: dict) -> str:
    names = []
    for entity in rdap.get("entities") or []:
        roles = ",".join(entity.get("roles") or [])
        handle = entity.get("handle", "?")
        names.append(f"{handle} ({roles})" if roles else handle)
    return "\n".join(names) or "—"


def _summary_table(rows: list[tuple[str, Found]]) -> Table:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Query", style="cyan", no_wrap=True)
    table.add_column("Range")
    table.add_column("Name", style="yellow")
    table.add_column("Handle")
    table.add_column("Country", style="blue")
    table.add_column("Entities")
    table.add_column("Record", justify="right")
    table.add_column("Source", style="green")

    for query, found in rows:
        rdap = found.rdap
        table.add_row(
            query,
            f"{rdap.get('startAddress', '?')} - {rdap.get('endAddress', '?')}",
            str(rdap.get("name", "—")),
            str(rdap.get("handle", "—")),
            str(rdap.get("country", "—")),
            _entity_names(rdap),
            str(found.record_id) if found.record_id is not None else "—",
            "cache" if found.cached else "rdap",
        )
    return table


def _record_dict(record: NetworkRecord) -> dict:
    return {
        "record_id": record.record_id,
        "start_address": str(record.start_address),
        "end_address": str(record.end_address),
        "validated_at": record.validated_at.isoformat(),
        "first_seen": record.first_seen.isoformat(),
        "rdap": record.rdap,
    }


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--db",
    "db_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DB_PATH,
    show_default=True,
    envvar="WHOIS_RDAP_DB",
    help="SQLite cache file.",
)
@click.option("--no-cache", is_flag=True, help="Query RDAP directly, without a cache.")
@click.option(
    "--ttl-days",
    type=click.FloatRange(min=0, max=999_999_999),
    default=DEFAULT_FRESHNESS.total_seconds() / 86400,
    show_default=True,
    envvar="WHOIS_RDAP_TTL_DAYS",
    help="Serve cached networks validated within this many days (0 = always refetch).",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=REQUEST_TIMEOUT,
    show_default=True,
    help="RDAP request timeout in seconds.",
)
@click.option(
    "--rdap-url",
    default=RDAP_BASE_URL,
    show_default=True,
    envvar="WHOIS_RDAP_URL",
    help="RDAP server base URL.",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose debug output.")
@click.pass_context
def cli(ctx, db_path, no_cache, ttl_days, timeout, rdap_url, verbose):
    """whois-rdap — RDAP IP WHOIS client with a network-range cache."""
    _setup_logging(verbose)
    ctx.obj = LookupConfig(
        store_path=None if no_cache else db_path,
        freshness_horizon=timedelta(days=ttl_days),
        fetch_timeout=timeout,
        rdap_url=rdap_url,
    )


def _open_store(config: LookupConfig) -> RangeCache:
    if config.store_path is None:
        _fail("this command needs the cache; drop --no-cache")
    store = RangeCache(config.store_path)
    store.init_db()
    return store


@cli.command()
@click.argument("ips", nargs=-1, required=True)
@click.option("--summary", is_flag=True, help="Show a table instead of JSON.")
@click.option(
    "--workers",
    type=click.IntRange(min=1),
    default=1,
    show_default=True,
    help="Look up this many addresses concurrently.",
)
@click.pass_obj
def check(config: LookupConfig, ips: tuple[str, ...], summary: bool, workers: int):
    """Query the specified IPv4/IPv6 addresses (e.g. 8.8.8.8)."""
    try:
        lookup = RdapLookup(config)
        results = lookup.check_many(ips, workers=workers)
    except WhoisRdapError as exc:
        _fail(str(exc))

    found_rows: list[tuple[str, Found]] = []
    for query, result in zip(ips, results):
        if isinstance(result, Found):
            found_rows.append((query, result))
            logger.debug(
                "%s -> record %s (%s)", query, result.record_id,
                "cache" if result.cached else "rdap",
            )
        else:
            err_console.print(
                f"[yellow]Skipped[/yellow] {escape(query)}: "
                f"{result.classification.value} address"
            )

    if summary:
        if found_rows:
            console.print(_summary_table(found_rows))
        return

    for result in results:
        click.echo(json_lib.dumps(result.to_dict(), indent=2, ensure_ascii=False))


@cli.command()
@click.argument("record_id", type=int)
@click.pass_obj
def show(config: LookupConfig, record_id: int):
    """Print a cached network record as JSON."""
    try:
        record = _open_store(config).get_record(record_id)
    except WhoisRdapError as exc:
        _fail(str(exc))

    if record is None:
        _fail(f"no cached record {record_id}")
    click.echo(json_lib.dumps(_record_dict(record), indent=2, ensure_ascii=False))


@cli.command("list")
@click.option("--limit", type=click.IntRange(min=1), default=50, show_default=True)
@click.pass_obj
def list_cmd(config: LookupConfig, limit: int):
    """List cached networks, most recently validated first."""
    try:
        records = _open_store(config).list_records(limit=limit)
    except WhoisRdapError as exc:
        _fail(str(exc))

    if not records:
        console.print("[yellow]Cache is empty. Run 'whois-rdap check <ip>' first.[/yellow]")
        return

    table = Table(title="Cached Networks", show_header=True, header_style="bold")
    table.add_column("ID", justify="right")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Name", style="yellow")
    table.add_column("Handle")
    table.add_column("Validated", style="green")

    for r in records:
        table.add_row(
            str(r.record_id),
            str(r.start_address),
            str(r.end_address),
            str(r.rdap.get("name", "—")),
            str(r.rdap.get("handle", "—")),
            r.validated_at.strftime("%Y-%m-%d %H:%M"),
        )

    console.print(table)


@cli.command()
@click.pass_obj
def stats(config: LookupConfig):
    """Show cache statistics."""
    try:
        data = _open_store(config).get_stats(config.freshness_horizon)
    except WhoisRdapError as exc:
        _fail(str(exc))

    if data["networks"] == 0:
        console.print("[yellow]Cache is empty. Run 'whois-rdap check <ip>' first.[/yellow]")
        return

    table = Table(title="Cache Statistics", show_header=False)
    table.add_column("Metric", style="bold")
    table.add_column("Value")

    table.add_row("Networks", str(data["networks"]))
    table.add_section()
    table.add_row("  IPv4", str(data["ipv4"]))
    table.add_row("  IPv6", str(data["ipv6"]))
    table.add_section()
    table.add_row("  Fresh", str(data["fresh"]))
    table.add_row("  Stale", str(data["stale"]))
    table.add_section()
    table.add_row("First seen", data["first_seen"].strftime("%Y-%m-%d %H:%M"))
    table.add_row("Last validated", data["last_validated"].strftime("%Y-%m-%d %H:%M"))

    console.print(table)


def main():
    cli()


if __name__ == "__main__":
    main()
