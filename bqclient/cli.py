"""
bqclient CLI - run metadata lookups, queries and updates from a terminal

Usage:
    bqclient --help
    bqclient schema Tables my-project analytics
    bqclient query "SELECT * FROM analytics.orders ORDER BY id" --page-size 500
    bqclient update "DELETE FROM analytics.orders WHERE id = 1"
    bqclient --driver duckdb --connection-string "Database=local.duckdb" schema Columns

Install:
    pip install -e .  # From repo root
"""

import json
import sys
import time
from typing import Any, List, Optional, Sequence

import click
from rich.console import Console
from rich.table import Table

from bqclient import __version__
from bqclient.connection import Connection
from bqclient.drivers import list_drivers
from bqclient.exceptions import ClientError
from bqclient.paging import PagedQuery
from bqclient.schema import MetadataCollection
from bqclient.settings import configure_logging, settings

# =============================================================================
# CONFIGURATION
# =============================================================================

console = Console()

# Restriction placeholder meaning "no filter at this position"
ANY = "*"


def open_connection(ctx) -> Connection:
    """Open a connection from the group options."""
    connection_string = ctx.obj.get("connection_string")
    if not connection_string:
        fail("No connection string given (use --connection-string or BQCLIENT_CONNECTION_STRING)")

    connection = Connection.from_connection_string(connection_string, driver=ctx.obj["driver"])
    connection.open()
    ctx.call_on_close(connection.close)
    return connection


def fail(message: str):
    """Print an error and exit with status 1."""
    console.print(f"[bold red]Error:[/bold red] [red]{message}[/red]")
    sys.exit(1)


def format_value(value: Any) -> str:
    if value is None:
        return "[dim]NULL[/dim]"
    return str(value)


def print_rows(title: str, column_names: Sequence[str], rows: List[Sequence[Any]], output_json: bool):
    """Print rows as JSON records or as a rich table."""
    if output_json:
        records = [dict(zip(column_names, row)) for row in rows]
        click.echo(json.dumps(records, indent=2, default=str))
        return

    table = Table(title=title, show_header=True)
    for name in column_names:
        table.add_column(name, style="cyan", overflow="fold")
    for row in rows:
        table.add_row(*[format_value(v) for v in row])
    console.print(table)
    console.print(f"[dim]{len(rows)} rows[/dim]")


# =============================================================================
# MAIN CLI GROUP
# =============================================================================

@click.group()
@click.option("--driver", envvar="BQCLIENT_DRIVER", default=lambda: settings.driver,
              show_default="bigquery", help="Backend driver")
@click.option("--connection-string", envvar="BQCLIENT_CONNECTION_STRING",
              default=lambda: settings.connection_string, help="Driver connection string")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.option("--log-level", envvar="BQCLIENT_LOG_LEVEL", default=None, help="Logging level")
@click.version_option(version=__version__, prog_name="bqclient")
@click.pass_context
def cli(ctx, driver, connection_string, output_json, log_level):
    """
    bqclient - relational client for BigQuery (and DuckDB).

    \b
    Environment Variables:
        BQCLIENT_DRIVER             - Driver name (default: bigquery)
        BQCLIENT_CONNECTION_STRING  - e.g. ProjectId=my-project;AuthType=ApplicationDefault
        BQCLIENT_DEFAULT_PAGE_SIZE  - Page size for paged queries
    """
    configure_logging(log_level)
    ctx.ensure_object(dict)
    ctx.obj["driver"] = driver
    ctx.obj["connection_string"] = connection_string
    ctx.obj["output_json"] = output_json


# =============================================================================
# COMMANDS
# =============================================================================

@cli.command()
def drivers():
    """List available drivers."""
    for name in list_drivers():
        console.print(name)


@cli.command()
@click.argument("collection", type=click.Choice([c.value for c in MetadataCollection]))
@click.argument("restrictions", nargs=-1)
@click.pass_context
def schema(ctx, collection, restrictions):
    """
    Show a metadata collection.

    Restrictions are positional (Catalog, Schema, Table, TableType/Column);
    use '*' to leave a position unfiltered.

    \b
    Examples:
        bqclient schema Catalogs
        bqclient schema Tables my-project analytics
        bqclient schema Columns my-project analytics orders
        bqclient schema Columns my-project '*' orders
    """
    values = [None if r == ANY else r for r in restrictions]
    try:
        connection = open_connection(ctx)
        result = connection.get_schema(collection, values)
    except ClientError as e:
        fail(str(e))

    print_rows(collection, result.column_names(), result.rows, ctx.obj["output_json"])


@cli.command()
@click.argument("sql")
@click.option("--page-size", type=click.IntRange(min=1), default=None,
              help="Fetch in pages of this many rows (LIMIT/OFFSET)")
@click.pass_context
def query(ctx, sql, page_size):
    """
    Execute a query and print its rows.

    \b
    Examples:
        bqclient query "SELECT 1 AS one"
        bqclient query "SELECT * FROM analytics.orders ORDER BY id" --page-size 1000
    """
    start_time = time.time()
    try:
        connection = open_connection(ctx)
        if page_size is not None:
            column_names: List[str] = []

            def capture(reader):
                if not column_names:
                    column_names.extend(c.name for c in reader.columns)
                return reader.get_values()

            paged = PagedQuery(connection, sql, page_size=page_size, row_mapper=capture).run()
            rows = paged.rows
            pages: Optional[int] = paged.page_count
        else:
            with connection.create_command(sql) as command:
                with command.execute_reader() as reader:
                    column_names = [c.name for c in reader.columns]
                    rows = list(reader)
            pages = None
    except ClientError as e:
        fail(str(e))
    elapsed = time.time() - start_time

    print_rows("Query Results", column_names, rows, ctx.obj["output_json"])
    if not ctx.obj["output_json"]:
        paged_note = f" over {pages} pages" if pages is not None else ""
        console.print(f"[dim]Fetched in {elapsed:.2f}s{paged_note}[/dim]")


@cli.command()
@click.argument("sql")
@click.pass_context
def update(ctx, sql):
    """
    Execute a statement and print the affected row count (-1 if unknown).

    \b
    Examples:
        bqclient update "UPDATE analytics.orders SET status = 'done' WHERE id = 7"
    """
    try:
        connection = open_connection(ctx)
        with connection.create_command(sql) as command:
            affected = command.execute_update()
    except ClientError as e:
        fail(str(e))

    if ctx.obj["output_json"]:
        click.echo(json.dumps({"records_affected": affected}))
    else:
        console.print(f"[green]✓[/green] Records affected: {affected}")


# =============================================================================
# ENTRY POINT
# =============================================================================

def main():
    """Entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
