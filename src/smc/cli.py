"""CLI for smc."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, NoReturn

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from smc import __version__
from smc.config import (
    PROJECTS_DIR_ENV,
    WORKERS_ENV,
    discover_session_files,
    find_session,
    resolve_projects_dir,
    resolve_workers,
)
from smc.exceptions import AmbiguousSessionError, SmcError
from smc.models import SessionFile

app = typer.Typer(
    name="smc",
    help="smc - Surgical search through Claude Code conversation logs.",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)

FREQ_MODES = {
    "chars": "chars",
    "c": "chars",
    "chars-raw": "chars-raw",
    "raw": "chars-raw",
    "words": "words",
    "w": "words",
    "tools": "tools",
    "t": "tools",
    "roles": "roles",
    "r": "roles",
}


@dataclass
class AppState:
    path: str | None = None
    workers: int | None = None

    def files(self) -> list[SessionFile]:
        try:
            projects_dir = resolve_projects_dir(self.path)
        except SmcError as e:
            fail(e)
        return discover_session_files(projects_dir)

    def session(self, query: str) -> SessionFile:
        lookup = find_session(self.files(), query)
        try:
            return lookup.unwrap()
        except AmbiguousSessionError as e:
            err_console.print(
                f"[yellow]Ambiguous session ID '{escape(query)}', {len(e.candidates)} matches:[/yellow]"
            )
            for candidate in e.candidates:
                err_console.print(f"  {candidate.session_id} ({candidate.project_name})", markup=False)
            fail(SmcError("Please provide a more specific session ID"))
        except SmcError as e:
            fail(e)


state = AppState()


def fail(error: Exception) -> NoReturn:
    err_console.print(f"[red]Error: {escape(str(error))}[/red]", soft_wrap=True)
    raise typer.Exit(1)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def version_callback(value: bool) -> None:
    if value:
        console.print(f"smc {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    path: Annotated[
        str | None,
        typer.Option(
            "--path",
            envvar=PROJECTS_DIR_ENV,
            help="Path to Claude projects directory (default: ~/.claude/projects)",
        ),
    ] = None,
    workers: Annotated[
        int | None,
        typer.Option("--workers", envvar=WORKERS_ENV, help="Number of parallel scan workers"),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", help="Enable debug logging")] = False,
    version: Annotated[
        bool | None,
        typer.Option("--version", "-V", callback=version_callback, is_eager=True),
    ] = None,
) -> None:
    """Search Claude Code conversation logs."""
    configure_logging(verbose)
    state.path = path
    state.workers = resolve_workers(workers)


@app.command("search")
def search(
    query: Annotated[list[str], typer.Argument(help="Search queries (multiple terms are OR'd together)")],
    regex: Annotated[bool, typer.Option("--regex", "-e", help="Treat queries as regular expressions")] = False,
    and_mode: Annotated[bool, typer.Option("--and", help="Require every query to match")] = False,
    role: Annotated[str | None, typer.Option("--role", help="Filter by role (user, assistant, system)")] = None,
    tool: Annotated[str | None, typer.Option("--tool", help="Filter by tool name (substring)")] = None,
    project: Annotated[
        str | None, typer.Option("--project", "-p", help="Filter by project name (substring)")
    ] = None,
    after: Annotated[str | None, typer.Option("--after", help="Only results after this date (YYYY-MM-DD)")] = None,
    before: Annotated[
        str | None, typer.Option("--before", help="Only results before this date (YYYY-MM-DD)")
    ] = None,
    branch: Annotated[str | None, typer.Option("--branch", help="Filter by git branch (substring)")] = None,
    max_results: Annotated[
        int, typer.Option("--max", "-n", help="Maximum number of results (0 = unlimited)")
    ] = 50,
    output: Annotated[bool, typer.Option("--output", "-o", help="Print markdown to stdout")] = False,
    md: Annotated[Path | None, typer.Option("--md", metavar="FILE", help="Save results to a markdown file")] = None,
    count: Annotated[bool, typer.Option("--count", "-c", help="Show match counts per project")] = False,
    summary: Annotated[bool, typer.Option("--summary", help="Show a condensed overview of matches")] = False,
    json_output: Annotated[bool, typer.Option("--json", help="Output results as JSON (one per line)")] = False,
    include_smc: Annotated[
        bool, typer.Option("--include-smc", help="Include messages containing smc's own output")
    ] = False,
    exclude_session: Annotated[
        str | None, typer.Option("--exclude-session", help="Skip sessions whose id starts with this")
    ] = None,
) -> None:
    """Search across all conversations."""
    from smc.searcher import SearchOptions, perform_search

    options = SearchOptions(
        queries=query,
        is_regex=regex,
        and_mode=and_mode,
        role=role,
        tool=tool,
        project=project,
        after=after,
        before=before,
        branch=branch,
        max_results=max_results,
        stdout_md=output,
        md_file=md,
        count_mode=count,
        summary_mode=summary,
        json_mode=json_output,
        include_self_output=include_smc,
        exclude_session=exclude_session,
    )
    files = state.files()
    try:
        perform_search(files, options, workers=state.workers)
    except SmcError as e:
        fail(e)


@app.command("sessions")
def sessions(
    limit: Annotated[int, typer.Option("--limit", "-n", help="Maximum sessions to show")] = 20,
    project: Annotated[str | None, typer.Option("--project", "-p", help="Filter by project name")] = None,
    after: Annotated[str | None, typer.Option("--after", help="Only sessions after this date")] = None,
    before: Annotated[str | None, typer.Option("--before", help="Only sessions before this date")] = None,
) -> None:
    """List all sessions."""
    from smc.searcher import select_files
    from smc.sessions import list_sessions

    list_sessions(select_files(state.files(), project=project), limit, after, before)


@app.command("show")
def show(
    session: Annotated[str, typer.Argument(help="Session ID (or prefix)")],
    thinking: Annotated[bool, typer.Option("--thinking", help="Show thinking blocks")] = False,
    start: Annotated[int | None, typer.Option("--from", help="Start from this message number")] = None,
    end: Annotated[int | None, typer.Option("--to", help="End at this message number")] = None,
) -> None:
    """Show a conversation."""
    from smc.sessions import show_session

    show_session(state.session(session), show_thinking=thinking, start=start, end=end)


@app.command("tools")
def tools(session: Annotated[str, typer.Argument(help="Session ID (or prefix)")]) -> None:
    """Show tool calls in a session."""
    from smc.sessions import show_tools

    show_tools(state.session(session))


@app.command("stats")
def stats() -> None:
    """Show aggregate statistics."""
    from smc.analytics import print_stats

    print_stats(state.files())


@app.command("export")
def export(
    session: Annotated[str, typer.Argument(help="Session ID (or prefix)")],
    output: Annotated[bool, typer.Option("--output", "-o", help="Print to stdout instead of a file")] = False,
    md: Annotated[
        Path | None, typer.Option("--md", metavar="FILE", help="Output file path (default: <session-id>.md)")
    ] = None,
) -> None:
    """Export a session as markdown."""
    from smc.sessions import export_session

    export_session(state.session(session), to_stdout=output, md_path=md)


@app.command("context")
def context(
    session: Annotated[str, typer.Argument(help="Session ID (or prefix)")],
    line: Annotated[int, typer.Argument(help="Line number to center on")],
    around: Annotated[
        int, typer.Option("--context", "-C", help="Messages to show before and after")
    ] = 3,
) -> None:
    """Show messages around a specific line in a session."""
    from smc.sessions import show_context

    show_context(state.session(session), line, around)


@app.command("projects")
def projects() -> None:
    """List projects with aggregate stats."""
    from smc.analytics import print_projects

    print_projects(state.files())


@app.command("freq")
def freq(
    mode: Annotated[str, typer.Argument(help="What to count: chars, chars-raw, words, tools, roles")] = "chars",
    limit: Annotated[int, typer.Option("--limit", "-n", help="Max items to show (words, tools)")] = 30,
) -> None:
    """Frequency analysis across all conversations."""
    from smc import analytics

    resolved = FREQ_MODES.get(mode)
    if resolved is None:
        fail(SmcError(f"Unknown freq mode '{mode}'. Use: chars, chars-raw, words, tools, roles"))

    files = state.files()
    if resolved == "chars":
        analytics.print_freq_chars(files, workers=state.workers)
    elif resolved == "chars-raw":
        analytics.print_freq_chars(files, raw=True, workers=state.workers)
    elif resolved == "words":
        analytics.print_freq_words(files, limit, workers=state.workers)
    elif resolved == "tools":
        analytics.print_freq_tools(files, limit, workers=state.workers)
    else:
        analytics.print_freq_roles(files, workers=state.workers)


@app.command("recent")
def recent(
    limit: Annotated[int, typer.Option("--limit", "-n", help="Number of recent messages to show")] = 10,
    role: Annotated[str | None, typer.Option("--role", help="Filter by role")] = None,
) -> None:
    """Show most recent messages across all sessions."""
    from smc.sessions import show_recent

    show_recent(state.files(), limit, role, workers=state.workers)


# Short aliases, hidden from --help
app.command("s", hidden=True)(search)
app.command("ls", hidden=True)(sessions)
app.command("t", hidden=True)(tools)
app.command("e", hidden=True)(export)
app.command("ctx", hidden=True)(context)
app.command("p", hidden=True)(projects)
app.command("f", hidden=True)(freq)
app.command("r", hidden=True)(recent)


if __name__ == "__main__":
    app()
