"""Parallel search across session files and the result reducers."""

import json
import logging
import re
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path

import typer
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn
from rich.text import Text

from smc.config import DEFAULT_WORKERS
from smc.display import console, print_search_hit, short_timestamp
from smc.matcher import QueryMatcher
from smc.models import SearchHit, SessionFile
from smc.scanner import HitBudget, SearchFilters, scan_file

logger = logging.getLogger(__name__)

MARKDOWN_PREVIEW_CHARS = 500
TOP_TOPICS = 10
MIN_TOPIC_LENGTH = 4

# Skipped when extracting summary topics
STOP_WORDS = frozenset(
    """
    the and for that this with from are was were been have has had not but what all
    can her his one our out you your which their them then than into could would there
    about just like some also more when will each make way she how its may use used
    using let get got did does done any very here where should need don doesn isn it's
    i'll i'm we're they that's file line code run set new see now try want
    """.split()
)

_TOPIC_SPLIT = re.compile(r"[^\w]+")


@dataclass
class SearchOptions:
    """Everything a search invocation needs. `max_results=0` means unbounded."""

    queries: list[str]
    is_regex: bool = False
    and_mode: bool = False
    role: str | None = None
    tool: str | None = None
    project: str | None = None
    after: str | None = None
    before: str | None = None
    branch: str | None = None
    max_results: int = 50
    stdout_md: bool = False
    md_file: Path | None = None
    count_mode: bool = False
    summary_mode: bool = False
    json_mode: bool = False
    include_self_output: bool = False
    exclude_session: str | None = None

    def query_display(self) -> str:
        return ", ".join(self.queries)

    def filters(self) -> SearchFilters:
        return SearchFilters(
            role=self.role,
            tool=self.tool,
            after=self.after,
            before=self.before,
            branch=self.branch,
            include_self_output=self.include_self_output,
        )

    def active_filters(self) -> list[str]:
        """Human-readable `name=value` list of the filters that are set."""
        pairs = [
            ("role", self.role),
            ("tool", self.tool),
            ("project", self.project),
            ("after", self.after),
            ("before", self.before),
            ("branch", self.branch),
        ]
        return [f"{name}={value}" for name, value in pairs if value is not None]


def select_files(
    files: list[SessionFile],
    project: str | None = None,
    exclude_session: str | None = None,
) -> list[SessionFile]:
    """Apply project substring and excluded-session prefix before dispatch."""
    selected = []
    project_lower = project.lower() if project is not None else None
    for f in files:
        if project_lower is not None and project_lower not in f.project_name.lower():
            continue
        if exclude_session is not None and f.session_id.startswith(exclude_session):
            continue
        selected.append(f)
    return selected


def _progress(enabled: bool) -> Progress:
    return Progress(
        SpinnerColumn(),
        BarColumn(bar_width=40),
        MofNCompleteColumn(),
        TextColumn("files"),
        console=Console(stderr=True),
        transient=True,
        disable=not enabled,
    )


def run_search(
    files: list[SessionFile],
    options: SearchOptions,
    workers: int | None = None,
    show_progress: bool = False,
) -> list[SearchHit]:
    """Scan every candidate file concurrently and merge their hits.

    Per-file hit lists are concatenated in the order their files finish, so
    the result is only ordered within a file.

    Raises:
        InvalidQueryError: empty query list or a bad regex, before any scanning.
    """
    matcher = QueryMatcher(options.queries, options.is_regex, options.and_mode)
    filters = options.filters()
    budget = HitBudget(options.max_results)
    candidates = select_files(files, options.project, options.exclude_session)

    def task(file: SessionFile) -> list[SearchHit]:
        if budget.exhausted():
            return []
        return scan_file(file, matcher, filters, budget)

    results: list[SearchHit] = []
    if not candidates:
        return results

    with _progress(show_progress) as progress:
        progress_task = progress.add_task("Searching", total=len(candidates))
        with ThreadPoolExecutor(max_workers=workers or DEFAULT_WORKERS) as ex:
            futures = [ex.submit(task, f) for f in candidates]
            for fut in as_completed(futures):
                results.extend(fut.result())
                progress.advance(progress_task)

    logger.debug("Scanned %d files, %d hits", len(candidates), len(results))
    return results


# --- reducers ----------------------------------------------------------------


def _sorted_counts(counts: Counter) -> list[tuple[str, int]]:
    return sorted(counts.items(), key=lambda item: (-item[1], item[0]))


@dataclass
class ProjectCounts:
    """Hits per project, most hits first."""

    counts: list[tuple[str, int]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(count for _, count in self.counts)


def count_by_project(hits: list[SearchHit]) -> ProjectCounts:
    return ProjectCounts(_sorted_counts(Counter(hit.project for hit in hits)))


@dataclass
class SearchSummary:
    projects: list[tuple[str, int]] = field(default_factory=list)
    roles: list[tuple[str, int]] = field(default_factory=list)
    session_count: int = 0
    earliest: str | None = None
    latest: str | None = None
    topics: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(count for _, count in self.projects)


def topic_words(text: str) -> list[str]:
    """Lowercased words of at least four characters that are not stop words."""
    words = []
    for word in _TOPIC_SPLIT.split(text):
        w = word.lower()
        if len(w) >= MIN_TOPIC_LENGTH and w not in STOP_WORDS:
            words.append(w)
    return words


def summarize(hits: list[SearchHit], queries: list[str]) -> SearchSummary:
    """Condense hits into project/role counts, sessions, date range and topics."""
    project_counts: Counter = Counter()
    role_counts: Counter = Counter()
    word_counts: Counter = Counter()
    sessions: set[tuple[str, str]] = set()
    earliest: str | None = None
    latest: str | None = None

    for hit in hits:
        project_counts[hit.project] += 1
        role_counts[hit.record.role_str()] += 1
        sessions.add((hit.project, hit.session_id))

        msg = hit.message
        if msg.timestamp is not None:
            day = msg.timestamp[:10]
            if earliest is None or day < earliest:
                earliest = day
            if latest is None or day > latest:
                latest = day

        word_counts.update(topic_words(msg.text_content()))

    # Words containing a query term say nothing new
    query_terms = [q.lower() for q in queries]
    topics = [
        word
        for word, _ in _sorted_counts(word_counts)
        if not any(q in word for q in query_terms)
    ][:TOP_TOPICS]

    return SearchSummary(
        projects=_sorted_counts(project_counts),
        roles=_sorted_counts(role_counts),
        session_count=len(sessions),
        earliest=earliest,
        latest=latest,
        topics=topics,
    )


def hit_to_json(hit: SearchHit) -> dict:
    """Machine-readable form of a hit (one JSON object per line)."""
    msg = hit.message
    return {
        "project": hit.project,
        "session_id": hit.session_id,
        "line": hit.line_number,
        "role": hit.record.role_str(),
        "timestamp": msg.timestamp if msg.timestamp is not None else "unknown",
        "matched_query": hit.matched_query,
        "text": msg.text_content(),
    }


def format_hit_markdown(hit: SearchHit) -> str:
    msg = hit.message
    text = msg.text_content()
    preview = text[:MARKDOWN_PREVIEW_CHARS]
    if len(text) > MARKDOWN_PREVIEW_CHARS:
        preview += "..."

    return (
        f"### {hit.project} — {hit.record.role_str()} ({short_timestamp(msg.timestamp)})\n\n"
        f"> Session: `{hit.session_id}` Line: {hit.line_number}\n\n"
        f"{preview}\n"
    )


def render_markdown(options: SearchOptions, hits: list[SearchHit]) -> str:
    """Full markdown document: header with query and filters, one section per hit."""
    lines = [
        "# smc Search Results",
        "",
        f"**Query:** `{options.query_display()}`",
    ]
    filters = options.active_filters()
    if filters:
        lines.append(f"**Filters:** {', '.join(filters)}")
    lines.extend([f"**Results:** {len(hits)}", "", "---", ""])

    for hit in hits:
        lines.append(format_hit_markdown(hit))
        lines.extend(["---", ""])

    return "\n".join(lines) + "\n"


# --- output ------------------------------------------------------------------


def print_counts(options: SearchOptions, counts: ProjectCounts) -> None:
    console.print(Text(f"Match counts for '{options.query_display()}'\n"))
    for project, count in counts.counts:
        console.print(Text(f"  {project:40} {count:>5}"), soft_wrap=True)
    console.print(
        Text(f"\n{counts.total} total matches across {len(counts.counts)} projects")
    )


def print_summary(options: SearchOptions, summary: SearchSummary) -> None:
    out = [f"Summary for '{options.query_display()}'", "", "  Projects:"]
    out.extend(f"    {project:38} {count:>5} matches" for project, count in summary.projects)
    out.extend(["", "  Roles:"])
    out.extend(f"    {role:38} {count:>5}" for role, count in summary.roles)

    if summary.earliest is not None and summary.latest is not None:
        out.append("")
        if summary.earliest == summary.latest:
            out.append(f"  Date:     {summary.earliest}")
        else:
            out.append(f"  Dates:    {summary.earliest} → {summary.latest}")

    out.append(f"  Sessions: {summary.session_count}")
    if summary.topics:
        out.extend(["", f"  Topics:   {', '.join(summary.topics)}"])
    out.extend(["", f"{summary.total} total matches"])

    for line in out:
        console.print(Text(line), soft_wrap=True)


def perform_search(
    files: list[SessionFile],
    options: SearchOptions,
    workers: int | None = None,
    show_progress: bool = True,
) -> int:
    """Run a search and emit results in the selected mode. Returns the hit count."""
    hits = run_search(files, options, workers=workers, show_progress=show_progress)

    if options.count_mode:
        counts = count_by_project(hits)
        print_counts(options, counts)
        return counts.total

    if options.summary_mode:
        summary = summarize(hits, options.queries)
        print_summary(options, summary)
        return summary.total

    for hit in hits:
        if options.json_mode:
            console.out(json.dumps(hit_to_json(hit), ensure_ascii=False), highlight=False)
        elif not options.stdout_md:
            print_search_hit(hit)

    total = len(hits)
    if not options.json_mode and not options.stdout_md:
        if total == 0:
            console.print(Text(f"No results found for '{options.query_display()}'"))
        else:
            console.print(Text(f"\n{total} results found"))

    if options.stdout_md or options.md_file:
        document = render_markdown(options, hits)
        if options.stdout_md:
            typer.echo(document, nl=False)
        if options.md_file:
            Path(options.md_file).write_text(document, encoding="utf-8")
            Console(stderr=True).print(Text(f"Saved to {options.md_file}"))

    return total
