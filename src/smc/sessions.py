"""Single-session views: listing, showing, exporting and context around a line."""

import heapq
import json
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

import typer
from rich.console import Console
from rich.text import Text

from smc.config import DEFAULT_WORKERS
from smc.display import (
    LIGHT_RULE,
    console,
    format_tool_summary,
    print_record,
    print_session_header,
    short_timestamp,
    truncate,
)
from smc.exceptions import RecordParseError
from smc.models import (
    OtherBlock,
    Record,
    SessionFile,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
    parse_record,
)
from smc.scanner import iter_lines

PREVIEW_CHARS = 100


def iter_records(file: SessionFile) -> Iterator[tuple[int, Record]]:
    """Yield (1-based line number, record), skipping blank and unparseable lines.

    Raises:
        OSError: if the file cannot be read.
    """
    for line_number, line in iter_lines(file):
        if not line.strip():
            continue
        try:
            yield line_number, parse_record(line)
        except RecordParseError:
            continue


def parse_records(file: SessionFile) -> list[Record]:
    return [record for _, record in iter_records(file)]


@dataclass
class SessionListEntry:
    file: SessionFile
    timestamp: str | None
    preview: str | None
    message_count: int


def summarize_session(file: SessionFile) -> SessionListEntry:
    """First timestamp, first user message and a (partial) message count."""
    first_ts: str | None = None
    first_user: str | None = None
    count = 0

    for _, record in iter_records(file):
        msg = record.as_message_record()
        if msg is None:
            continue
        count += 1
        if first_ts is None:
            first_ts = msg.timestamp
        if first_user is None and record.role_str() == "user":
            first_user = msg.text_content()[:PREVIEW_CHARS]
        # Enough for a listing line
        if first_ts is not None and first_user is not None and count > 5:
            break

    return SessionListEntry(file=file, timestamp=first_ts, preview=first_user, message_count=count)


def collect_sessions(
    files: list[SessionFile],
    after: str | None = None,
    before: str | None = None,
) -> list[SessionListEntry]:
    """Session entries newest first, optionally bounded by first-message timestamp."""
    entries = []
    for file in files:
        try:
            entry = summarize_session(file)
        except OSError:
            continue
        if after is not None and (entry.timestamp is None or entry.timestamp < after):
            continue
        if before is not None and (entry.timestamp is None or entry.timestamp > before):
            continue
        entries.append(entry)

    entries.sort(key=lambda e: e.timestamp or "", reverse=True)
    return entries


def list_sessions(
    files: list[SessionFile],
    limit: int = 20,
    after: str | None = None,
    before: str | None = None,
) -> None:
    entries = collect_sessions(files, after, before)
    shown = entries[:limit] if limit > 0 else entries

    console.print(Text(f"{len(entries)} sessions found (showing {len(shown)})\n"))
    for entry in shown:
        print_session_header(entry.file.project_name, entry.file.session_id, entry.file.size_human())
        ts = short_timestamp(entry.timestamp, width=10)
        console.print(Text(f"  {ts} {entry.preview or '[no user message]'}"), soft_wrap=True)
        console.print()


def show_session(
    file: SessionFile,
    show_thinking: bool = False,
    start: int | None = None,
    end: int | None = None,
) -> None:
    """Print a conversation; `start`/`end` are inclusive message indexes."""
    console.print(
        Text(f"Session: {file.session_id} | Project: {file.project_name} | Size: {file.size_human()}\n")
    )

    shown = 0
    index = 0
    for record in parse_records(file):
        if not record.is_message():
            continue
        if (start is None or index >= start) and (end is None or index <= end):
            print_record(record, index, show_thinking=show_thinking)
            shown += 1
        index += 1

    console.print(LIGHT_RULE * 80)
    console.print(Text(f"{shown} messages displayed"))


def show_tools(file: SessionFile) -> None:
    console.print(Text(f"Tool calls in session: {file.session_id} ({file.project_name})\n"))

    count = 0
    for record in parse_records(file):
        msg = record.as_message_record()
        if msg is None:
            continue
        summary = format_tool_summary(msg, record.role_str())
        if summary is not None:
            console.print(summary, soft_wrap=True)
            count += 1

    console.print(Text(f"\n{count} tool-calling messages"))


def session_to_markdown(file: SessionFile) -> str:
    """Render a session as markdown, keeping content blocks in file order.

    Thinking blocks are left out.
    """
    lines = [
        f"# Session {file.session_id}",
        "",
        f"**Project:** {file.project_name}  ",
        f"**Size:** {file.size_human()}",
        "",
        "---",
        "",
    ]

    for record in parse_records(file):
        msg = record.as_message_record()
        if msg is None:
            continue

        lines.append(f"## {record.role_str().capitalize()} ({short_timestamp(msg.timestamp)})")
        lines.append("")

        content = msg.message.content
        if isinstance(content, str):
            lines.extend([content, ""])
            continue

        for block in content:
            match block:
                case TextBlock(text=text):
                    lines.extend([text, ""])
                case ThinkingBlock():
                    pass
                case ToolUseBlock(name=name, input=tool_input):
                    lines.extend([f"**Tool: {name}**", "", "```json", _pretty(tool_input), "```", ""])
                case ToolResultBlock(content=result):
                    if result is not None:
                        lines.extend(["**Result**", "", "```", _result_text(result), "```", ""])
                case OtherBlock():
                    pass

        lines.extend(["---", ""])

    return "\n".join(lines)


def _pretty(value) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


def _result_text(result) -> str:
    if isinstance(result, str):
        return result
    # Lists of {"type": "text", "text": ...} parts are the common shape
    if isinstance(result, list):
        parts = [
            part["text"]
            for part in result
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        ]
        if parts:
            return "\n".join(parts)
    return _pretty(result)


def export_session(file: SessionFile, to_stdout: bool = False, md_path: Path | None = None) -> Path | None:
    """Write the markdown export to stdout or a file (default `<session-id>.md`)."""
    document = session_to_markdown(file)
    if to_stdout:
        typer.echo(document, nl=False)
        return None

    path = Path(md_path) if md_path else Path(f"{file.session_id}.md")
    path.write_text(document, encoding="utf-8")
    Console(stderr=True).print(Text(f"Saved to {path}"))
    return path


def context_window(
    file: SessionFile, line: int, context: int = 3
) -> tuple[list[tuple[int, Record]], int | None]:
    """Messages around a 1-based line number.

    Returns the window and the position of the target message in it. The
    target is the message on `line`, or the first message after it.
    """
    messages = [(n, r) for n, r in iter_records(file) if r.is_message()]
    target = next((i for i, (n, _) in enumerate(messages) if n >= line), None)
    if target is None:
        return [], None

    start = max(0, target - context)
    end = min(len(messages), target + context + 1)
    return messages[start:end], target - start


def show_context(file: SessionFile, line: int, context: int = 3) -> None:
    window, target = context_window(file, line, context)
    if target is None:
        console.print(Text(f"No message at or after line {line} in {file.session_id}"))
        return

    console.print(Text(f"Session: {file.session_id} | Project: {file.project_name} | Line {line}\n"))
    for i, (line_number, record) in enumerate(window):
        marker = "▶ " if i == target else "  "
        print_record(record, line_number, marker=marker)


@dataclass
class RecentMessage:
    timestamp: str
    file: SessionFile
    line_number: int
    record: Record


def _file_messages(file: SessionFile, role: str | None) -> list[RecentMessage]:
    found = []
    try:
        for line_number, record in iter_records(file):
            msg = record.as_message_record()
            if msg is None or msg.timestamp is None:
                continue
            if role is not None and record.role_str() != role:
                continue
            found.append(RecentMessage(msg.timestamp, file, line_number, record))
    except OSError:
        return []
    return found


def recent_messages(
    files: list[SessionFile],
    limit: int = 10,
    role: str | None = None,
    workers: int | None = None,
) -> list[RecentMessage]:
    """The newest timestamped messages across all sessions, newest first."""
    with ThreadPoolExecutor(max_workers=workers or DEFAULT_WORKERS) as ex:
        per_file = list(ex.map(lambda f: _file_messages(f, role), files))

    candidates = (m for messages in per_file for m in messages)
    return heapq.nlargest(limit, candidates, key=lambda m: m.timestamp)


def show_recent(
    files: list[SessionFile],
    limit: int = 10,
    role: str | None = None,
    workers: int | None = None,
) -> None:
    for m in recent_messages(files, limit, role, workers):
        msg = m.record.as_message_record()
        line = Text()
        line.append(m.file.project_name, style="cyan")
        line.append(f" {m.file.session_id[:8]}:L{m.line_number}", style="dim")
        line.append(f" [{m.record.role_str()}] ")
        line.append(short_timestamp(m.timestamp), style="dim")
        console.print(line, soft_wrap=True)
        text = msg.text_content_no_thinking() if msg else ""
        console.print(Text(f"  {truncate(text, 200)}".replace("\n", " ↵ ")), soft_wrap=True)
        console.print()
