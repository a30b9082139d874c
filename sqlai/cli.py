"""
SQL AI CLI

Command-line interface for the SQL AI engine.

Usage:
    sqlai ask "Which customers ordered the most?"   # Generate, execute and show rows
    sqlai generate "Top 5 products by price"        # Print generated SQL only
    sqlai validate "SELECT * FROM Orders"           # Run the safety checks
    sqlai schema --format detailed                  # Show the database schema
    sqlai explain "SELECT * FROM Orders"            # Show the execution plan
    sqlai serve --port 8000                         # Run the HTTP API
"""

import asyncio
import json
import logging
import sys
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, TypeVar

import click
import uvicorn
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from sqlai import __version__
from sqlai.config import Settings, get_settings
from sqlai.connectors.base import ConnectorError
from sqlai.connectors.factory import create_connector_from_settings
from sqlai.errors import SQLAIError, ValidationRejected
from sqlai.history.recorder import create_history_recorder
from sqlai.llm.factory import LLMProviderFactory
from sqlai.schema.cache import SchemaCache
from sqlai.schema.formatter import (
    format_schema_as_json,
    format_schema_detailed,
    format_schema_for_prompt,
)
from sqlai.service import SQLService
from sqlai.validation.sanitizer import sanitize, validate_sql

console = Console()

T = TypeVar("T")

DISPLAY_ROW_LIMIT = 50


def configure_cli_logging(settings: Settings, verbose: bool) -> None:
    """Keep library logs off the terminal unless asked for."""
    if verbose:
        settings.logging.configure()
        return
    for logger_name in ("sqlai", "httpx", "openai", "anthropic", "asyncio"):
        logging.getLogger(logger_name).setLevel(logging.WARNING)


# ============================================================================
# Helper Functions
# ============================================================================


@asynccontextmanager
async def open_service(settings: Settings) -> AsyncIterator[SQLService]:
    """Connect a service for one command and release it afterwards."""
    connector = create_connector_from_settings(
        settings.database,
        timeout=max(1, settings.query.timeout_ms // 1000),
    )
    history = create_history_recorder(
        backend=settings.history.backend,
        max_entries=settings.history.max_entries,
        database_url=settings.history.database_url,
    )
    llm = LLMProviderFactory.create_provider(settings.llm) if settings.llm.api_key else None
    cache = SchemaCache(
        max_size=settings.schema_cache.max_size,
        ttl_seconds=settings.schema_cache.ttl_seconds,
    )

    await connector.connect()
    try:
        await history.initialize()
        try:
            yield SQLService.from_settings(settings, connector, cache, history, llm)
        finally:
            await history.close()
    finally:
        await connector.close()


def run_with_service(func: Callable[[SQLService], Awaitable[T]]) -> T:
    """Run ``func`` against a freshly connected service, exiting 1 on failure."""
    ctx = click.get_current_context()
    settings: Settings = ctx.obj["settings"]

    async def runner() -> T:
        async with open_service(settings) as service:
            return await func(service)

    try:
        return asyncio.run(runner())
    except SQLAIError as e:
        console.print(f"[red]Error ({e.kind}): {e.message}[/red]")
        sys.exit(1)
    except (ConnectorError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


def print_sql(sql: str, title: str = "SQL") -> None:
    console.print(Panel(Syntax(sql, "sql", word_wrap=True), title=title, border_style="cyan"))


def print_rows(rows: list[dict[str, Any]], title: str | None = None) -> None:
    """Render result rows as a table, truncated for the terminal."""
    if not rows:
        console.print("[yellow]No rows returned[/yellow]")
        return

    table = Table(title=title, show_header=True, header_style="bold cyan")
    for column in rows[0].keys():
        table.add_column(str(column))
    for row in rows[:DISPLAY_ROW_LIMIT]:
        table.add_row(*["" if value is None else str(value) for value in row.values()])
    console.print(table)

    if len(rows) > DISPLAY_ROW_LIMIT:
        console.print(f"[dim]... {len(rows) - DISPLAY_ROW_LIMIT} more rows not shown[/dim]")


def print_json(data: Any) -> None:
    console.print_json(json.dumps(data, default=str))


# ============================================================================
# Commands
# ============================================================================


@click.group()
@click.version_option(version=__version__, prog_name="sqlai")
@click.option("--verbose", "-v", is_flag=True, help="Show library logs.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool):
    """SQL AI - ask questions of your database in plain language."""
    settings = get_settings()
    configure_cli_logging(settings, verbose)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


@cli.command()
@click.argument("question")
@click.option("--explain", "explain_results", is_flag=True, help="Explain the results with AI.")
@click.option("--answer", "answer_question", is_flag=True, help="Answer the question in plain language.")
@click.option("--context", "additional_context", help="Extra guidance for SQL generation.")
@click.option("--max-rows", type=click.IntRange(min=1), help="Override the row ceiling.")
@click.option("--json", "as_json", is_flag=True, help="Print the raw result as JSON.")
def ask(
    question: str,
    explain_results: bool,
    answer_question: bool,
    additional_context: str | None,
    max_rows: int | None,
    as_json: bool,
):
    """Ask a question, run the generated SQL and show the rows."""

    async def run_query(service: SQLService):
        with console.status("[cyan]Processing query...[/cyan]", spinner="dots"):
            result = await service.query_from_question(
                question,
                additional_context=additional_context,
                explain=explain_results,
                max_rows=max_rows,
            )
            answer = None
            if answer_question and result.results:
                answer = await service.answer_from_results(question, result.results)
        return result, answer

    result, answer = run_with_service(run_query)

    if as_json:
        payload = result.model_dump(mode="json")
        if answer is not None:
            payload["answer"] = answer
        print_json(payload)
        return

    print_sql(result.sql, title="Generated SQL")
    print_rows(result.results, title=f"Results ({result.row_count} rows)")
    if answer:
        console.print(Panel(Markdown(answer), title="[bold green]Answer[/bold green]"))
    if result.explanation:
        console.print(Panel(Markdown(result.explanation), title="[bold green]Explanation[/bold green]"))

    metrics = Table(show_header=False, box=None)
    metrics.add_row("Generation", f"{result.timing.generation_ms:.0f} ms")
    metrics.add_row("Execution", f"{result.timing.execution_ms:.0f} ms")
    metrics.add_row("Total", f"{result.timing.total_ms:.0f} ms")
    if result.metadata.limit_applied:
        metrics.add_row("Row ceiling", "applied")
    console.print(metrics)


@cli.command()
@click.argument("question")
@click.option("--context", "additional_context", help="Extra guidance for SQL generation.")
def generate(question: str, additional_context: str | None):
    """Generate SQL for a question without executing it."""

    async def run_generate(service: SQLService):
        with console.status("[cyan]Generating SQL...[/cyan]", spinner="dots"):
            return await service.generate(question, additional_context=additional_context)

    generated = run_with_service(run_generate)
    print_sql(generated.sql, title="Generated SQL")
    console.print(f"[dim]Generated in {generated.generation_time_ms:.0f} ms[/dim]")


@cli.command()
@click.argument("sql")
@click.option(
    "--raw",
    is_flag=True,
    help="Treat input as model output: strip fences and surrounding prose first.",
)
def validate(sql: str, raw: bool):
    """Check a statement against the read-only safety rules."""
    try:
        certified = sanitize(sql) if raw else validate_sql(sql)
    except ValidationRejected as e:
        console.print(f"[red]Rejected at {e.stage}: {e.reason}[/red]")
        sys.exit(1)

    console.print("[green]✓ Statement is safe to execute[/green]")
    print_sql(certified, title="Normalized SQL")


@cli.command()
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "detailed", "json"]),
    default="detailed",
    show_default=True,
)
@click.option("--refresh", is_flag=True, help="Bypass the schema cache.")
def schema(output_format: str, refresh: bool):
    """Show the schema of the configured database."""

    async def run_schema(service: SQLService):
        return await service.get_schema(force_refresh=refresh)

    loaded = run_with_service(run_schema)

    if output_format == "json":
        print_json(format_schema_as_json(loaded))
    elif output_format == "text":
        console.print(format_schema_for_prompt(loaded), markup=False, highlight=False)
    else:
        console.print(format_schema_detailed(loaded), markup=False, highlight=False)
    console.print(f"[dim]{len(loaded)} tables[/dim]")


@cli.command()
@click.argument("sql")
@click.option("--describe", is_flag=True, help="Also ask the AI to walk through the query.")
@click.option("--suggest", is_flag=True, help="Also ask the AI for improvements.")
def explain(sql: str, describe: bool, suggest: bool):
    """Show the database's execution plan for a statement."""

    async def run_explain(service: SQLService):
        plan = await service.explain_plan(sql)
        walkthrough = await service.explain_query(sql) if describe else None
        suggestions = await service.suggest_improvements(sql) if suggest else None
        return plan, walkthrough, suggestions

    plan, walkthrough, suggestions = run_with_service(run_explain)

    print_rows(plan, title="Execution Plan")
    if walkthrough:
        console.print(Panel(Markdown(walkthrough), title="[bold green]Explanation[/bold green]"))
    if suggestions:
        console.print(Panel(Markdown(suggestions), title="[bold green]Suggestions[/bold green]"))


@cli.command()
@click.option("--host", help="Bind address (defaults to API_HOST).")
@click.option("--port", type=int, help="Bind port (defaults to API_PORT).")
@click.option("--reload", is_flag=True, help="Reload on code changes.")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, reload: bool):
    """Run the HTTP API server."""
    settings: Settings = ctx.obj["settings"]
    bind_host = host or settings.api_host
    bind_port = port or settings.api_port
    console.print(f"[cyan]Starting API on http://{bind_host}:{bind_port}[/cyan]")
    uvicorn.run(
        "sqlai.api.main:app",
        host=bind_host,
        port=bind_port,
        reload=reload,
        log_level=settings.logging.level.lower(),
    )


# ============================================================================
# Entry Point
# ============================================================================


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
