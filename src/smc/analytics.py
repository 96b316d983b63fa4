"""Frequency analysis and aggregate statistics across conversation logs."""

import logging
import re
import string
import threading
from collections import Counter
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass

from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn
from rich.text import Text

from smc.config import DEFAULT_WORKERS
from smc.display import (
    HEAVY_RULE,
    LIGHT_RULE,
    console,
    format_bytes,
    format_count,
    render_frequency_table,
)
from smc.models import SessionFile
from smc.sessions import iter_records

logger = logging.getLogger(__name__)

LETTERS = string.ascii_lowercase
MIN_WORD_LENGTH = 3
_WORD_SPLIT = re.compile(r"[\W_]+")

FileCounter = Callable[[SessionFile], Counter]


def map_reduce(
    files: list[SessionFile],
    count_file: FileCounter,
    workers: int | None = None,
    show_progress: bool = False,
) -> Counter:
    """Count each file in a worker pool and fold the results into one table.

    Each worker fills its own Counter; the shared table is locked once per
    file to merge it.
    """
    totals: Counter = Counter()
    lock = threading.Lock()

    def task(file: SessionFile) -> None:
        local = count_file(file)
        with lock:
            totals.update(local)

    with Progress(
        SpinnerColumn(),
        BarColumn(bar_width=40),
        MofNCompleteColumn(),
        TextColumn("files"),
        console=Console(stderr=True),
        transient=True,
        disable=not show_progress,
    ) as progress:
        progress_task = progress.add_task("Counting", total=len(files))
        with ThreadPoolExecutor(max_workers=workers or DEFAULT_WORKERS) as ex:
            for fut in as_completed([ex.submit(task, f) for f in files]):
                fut.result()
                progress.advance(progress_task)

    return totals


def iter_file_records(file: SessionFile):
    """Yield every parseable record of a file; an unreadable file yields nothing."""
    try:
        for _, record in iter_records(file):
            yield record
    except OSError as e:
        logger.debug("Skipping unreadable file %s: %s", file.path, e)


def iter_file_messages(file: SessionFile):
    for record in iter_file_records(file):
        msg = record.as_message_record()
        if msg is not None:
            yield record, msg


def count_letters(data: bytes) -> Counter:
    """Case-folded a-z counts of ASCII letters in `data`."""
    lowered = data.lower()
    return Counter({letter: lowered.count(letter.encode()) for letter in LETTERS})


def _chars_in_messages(file: SessionFile) -> Counter:
    counts: Counter = Counter()
    for _, msg in iter_file_messages(file):
        counts.update(count_letters(msg.text_content().encode("utf-8")))
    return counts


def _chars_in_bytes(file: SessionFile) -> Counter:
    try:
        return count_letters(file.path.read_bytes())
    except OSError as e:
        logger.debug("Skipping unreadable file %s: %s", file.path, e)
        return Counter()


def words_in(text: str) -> list[str]:
    return [w.lower() for w in _WORD_SPLIT.split(text) if len(w) >= MIN_WORD_LENGTH]


def _words(file: SessionFile) -> Counter:
    counts: Counter = Counter()
    for _, msg in iter_file_messages(file):
        counts.update(words_in(msg.text_content()))
    return counts


def _tools(file: SessionFile) -> Counter:
    counts: Counter = Counter()
    for _, msg in iter_file_messages(file):
        counts.update(msg.tool_calls())
    return counts


def _roles(file: SessionFile) -> Counter:
    counts: Counter = Counter()
    for record in iter_file_records(file):
        if record.is_message():
            counts[record.role_str()] += 1
    return counts


def char_frequency(
    files: list[SessionFile], raw: bool = False, workers: int | None = None, show_progress: bool = False
) -> Counter:
    """Letter counts over message text, or over the raw file bytes when `raw`.

    All 26 letters are present in the result, zero or not.
    """
    counts = map_reduce(files, _chars_in_bytes if raw else _chars_in_messages, workers, show_progress)
    for letter in LETTERS:
        counts.setdefault(letter, 0)
    return counts


def word_frequency(files: list[SessionFile], workers: int | None = None, show_progress: bool = False) -> Counter:
    return map_reduce(files, _words, workers, show_progress)


def tool_frequency(files: list[SessionFile], workers: int | None = None, show_progress: bool = False) -> Counter:
    return map_reduce(files, _tools, workers, show_progress)


def role_frequency(files: list[SessionFile], workers: int | None = None, show_progress: bool = False) -> Counter:
    return map_reduce(files, _roles, workers, show_progress)


def sorted_counts(counts: Counter) -> list[tuple[str, int]]:
    """Sort by count descending, then key."""
    return sorted(counts.items(), key=lambda item: (-item[1], item[0]))


# --- printing ----------------------------------------------------------------


def _total_size(files: list[SessionFile]) -> str:
    return format_bytes(sum(f.size_bytes for f in files))


def print_freq_chars(files: list[SessionFile], raw: bool = False, workers: int | None = None) -> None:
    counts = char_frequency(files, raw=raw, workers=workers, show_progress=True)
    label = "raw JSONL bytes" if raw else "parsed content"
    rows = sorted_counts(counts)
    render_frequency_table(
        f"Character Frequency (a-z, case-insensitive, {label})",
        rows,
        bar_width=40,
        key_width=1,
        percent_decimals=2,
        footer=(
            f"  Total: {format_count(sum(counts.values()))}  across {len(files)} files "
            f"({_total_size(files)})"
        ),
    )


def print_freq_words(files: list[SessionFile], limit: int = 30, workers: int | None = None) -> None:
    counts = word_frequency(files, workers=workers, show_progress=True)
    rows = sorted_counts(counts)
    render_frequency_table(
        "Word Frequency (top words, 3+ chars)",
        rows[:limit],
        bar_width=30,
        show_percent=False,
        footer=(
            f"  {format_count(len(rows))} unique words, "
            f"{format_count(sum(counts.values()))} total occurrences"
        ),
    )


def print_freq_tools(files: list[SessionFile], limit: int = 30, workers: int | None = None) -> None:
    counts = tool_frequency(files, workers=workers, show_progress=True)
    rows = sorted_counts(counts)
    total = sum(counts.values())
    render_frequency_table(
        "Tool Usage Frequency",
        rows[:limit],
        grand_total=total,
        bar_width=30,
        footer=f"  {format_count(total)} total tool calls",
    )


def print_freq_roles(files: list[SessionFile], workers: int | None = None) -> None:
    counts = role_frequency(files, workers=workers, show_progress=True)
    render_frequency_table(
        "Message Role Frequency",
        sorted_counts(counts),
        bar_width=40,
        footer=f"  {format_count(sum(counts.values()))} total messages",
    )


@dataclass
class ProjectInfo:
    sessions: int = 0
    total_size: int = 0
    earliest: str | None = None
    latest: str | None = None

    def date_range(self) -> str:
        if self.earliest and self.latest:
            if self.earliest == self.latest:
                return self.earliest
            return f"{self.earliest} → {self.latest}"
        return self.earliest or self.latest or "unknown"


def first_timestamp(file: SessionFile, max_lines: int = 5) -> str | None:
    """Timestamp of the first message within the first few lines of a file."""
    try:
        for line_number, record in iter_records(file):
            if line_number > max_lines:
                break
            msg = record.as_message_record()
            if msg is not None and msg.timestamp is not None:
                return msg.timestamp
    except OSError as e:
        logger.debug("Skipping unreadable file %s: %s", file.path, e)
    return None


def project_infos(files: list[SessionFile]) -> dict[str, ProjectInfo]:
    projects: dict[str, ProjectInfo] = {}
    for file in files:
        info = projects.setdefault(file.project_name, ProjectInfo())
        info.sessions += 1
        info.total_size += file.size_bytes

        ts = first_timestamp(file)
        if ts is None:
            continue
        day = ts[:10]
        if info.earliest is None or day < info.earliest:
            info.earliest = day
        if info.latest is None or day > info.latest:
            info.latest = day
    return projects


def print_stats(files: list[SessionFile]) -> None:
    """Print aggregate statistics: total sessions, size, and top projects."""
    projects: dict[str, tuple[int, int]] = {}
    for f in files:
        count, size = projects.get(f.project_name, (0, 0))
        projects[f.project_name] = (count + 1, size + f.size_bytes)

    console.print(Text("smc Stats", style="bold cyan"))
    console.print(HEAVY_RULE * 50)
    console.print(Text(f"  Total sessions:  {len(files)}"))
    console.print(Text(f"  Total size:      {_total_size(files)}"))
    console.print(Text(f"  Projects:        {len(projects)}"))
    console.print()
    console.print(Text("Top Projects by Size", style="bold"))
    console.print(LIGHT_RULE * 50)

    ranked = sorted(projects.items(), key=lambda item: item[1][1], reverse=True)
    for name, (count, size) in ranked[:15]:
        line = Text("  ")
        line.append(f"{name:30}", style="cyan")
        line.append(f" {count:>4} sessions  {format_bytes(size):>8}")
        console.print(line, soft_wrap=True)

    if len(ranked) > 15:
        console.print(Text(f"  ... and {len(ranked) - 15} more projects"))


def print_projects(files: list[SessionFile]) -> None:
    """Print all projects with session counts, sizes and date ranges, newest first."""
    projects = project_infos(files)
    ranked = sorted(projects.items(), key=lambda item: item[1].latest or "", reverse=True)

    console.print(Text(f"{len(ranked)} projects\n", style="bold"))
    for name, info in ranked:
        line = Text("  ")
        line.append(f"{name:30}", style="cyan")
        line.append(f" {info.sessions:>4} sessions  {format_bytes(info.total_size):>8}  ")
        line.append(info.date_range(), style="dim")
        console.print(line, soft_wrap=True)
