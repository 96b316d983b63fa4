"""Console rendering for records, search hits and frequency tables."""

from rich.console import Console
from rich.text import Text

from smc.models import (
    MessageRecord,
    OtherBlock,
    Record,
    SearchHit,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
    render_value,
)

console = Console()

ROLE_STYLES = {
    "user": "bold green",
    "assistant": "bold blue",
    "system": "bold yellow",
}

HEAVY_RULE = "═"
LIGHT_RULE = "─"


def format_count(n: int) -> str:
    """Format a number with comma separators (e.g., 1,234,567)."""
    return f"{n:,}"


def format_bytes(size: int) -> str:
    """Format bytes into a human-readable string (e.g., "2.85GB")."""
    if size < 1024:
        return f"{size}B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f}KB"
    if size < 1024 * 1024 * 1024:
        return f"{size / (1024 * 1024):.1f}MB"
    return f"{size / (1024 * 1024 * 1024):.2f}GB"


def truncate(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."


def short_timestamp(timestamp: str | None, width: int = 19, default: str = "unknown") -> str:
    if not timestamp:
        return default
    return timestamp[:width]


def extract_snippet(text: str, query: str, context_chars: int = 150) -> str:
    """Cut a single-line snippet of `text` centred on the first occurrence of `query`."""
    pos = text.lower().find(query.lower()) if query else -1

    if pos < 0:
        snippet = truncate(text, context_chars)
        return snippet.replace("\n", " ↵ ")

    half = context_chars // 2
    start = max(0, pos - half)
    end = min(len(text), pos + len(query) + half)

    # Align start to a word boundary
    if start > 0:
        boundary = max(text.rfind(" ", 0, start), text.rfind("\n", 0, start))
        if boundary >= 0:
            start = boundary + 1

    snippet = text[start:end].strip()
    if start > 0:
        snippet = "..." + snippet
    if end < len(text):
        snippet += "..."
    return snippet.replace("\n", " ↵ ")


def highlight_match(text: str, query: str) -> Text:
    """Return `text` with every case-insensitive occurrence of `query` highlighted."""
    result = Text(text)
    if query:
        result.highlight_words([query], style="bold red", case_sensitive=False)
    return result


def print_search_hit(hit: SearchHit) -> None:
    msg = hit.message
    role = hit.record.role_str()
    role_label = "asst" if role == "assistant" else role

    line = Text()
    line.append(hit.project, style="cyan")
    line.append(":")
    line.append(f"L{hit.line_number}", style="dim")
    line.append(" [")
    line.append(role_label, style=ROLE_STYLES.get(role, "dim").replace("bold ", ""))
    line.append("] ")
    line.append(short_timestamp(msg.timestamp, width=10, default=""), style="dim")
    line.append(" ")
    snippet = extract_snippet(msg.text_content(), hit.matched_query)
    line.append_text(highlight_match(snippet, hit.matched_query))
    console.print(line, soft_wrap=True)


def print_session_header(project: str, session_id: str, size: str) -> None:
    header = Text()
    header.append(project, style="bold cyan")
    header.append(f" {session_id}", style="dim")
    header.append(f" ({size})", style="dim")
    console.print(header, soft_wrap=True)


def print_record(record: Record, index: int, show_thinking: bool = True, marker: str = "") -> None:
    """Print a message record with each block rendered in order."""
    msg = record.as_message_record()
    if msg is None:
        return

    role = record.role_str()
    console.print(Text(LIGHT_RULE * 80, style="dim"))
    header = Text(marker)
    header.append(f"[{index}] ")
    header.append(role.upper(), style=ROLE_STYLES.get(role, "dim"))
    header.append(f" {short_timestamp(msg.timestamp)}", style="dim")
    console.print(header)

    content = msg.message.content
    if isinstance(content, str):
        console.print(Text(truncate(content, 2000)))
        return

    for block in content:
        match block:
            case TextBlock(text=text):
                console.print(Text(truncate(text, 2000)))
            case ThinkingBlock(thinking=thinking):
                if show_thinking:
                    console.print(Text(f"💭 {truncate(thinking, 500)}", style="dim"))
            case ToolUseBlock(name=name, input=tool_input):
                console.print(Text(f"🔧 {name}", style="bold yellow"))
                console.print(Text(f"   {truncate(render_value(tool_input), 200)}", style="dim"))
            case ToolResultBlock(content=result):
                if result is not None:
                    console.print(Text(f"📋 {truncate(render_value(result), 300)}", style="dim"))
            case OtherBlock():
                pass


def format_tool_summary(msg: MessageRecord, role: str) -> Text | None:
    """One-line summary of the tools a message calls, or None if it calls none."""
    tools = msg.tool_calls()
    if not tools:
        return None

    line = Text("  ")
    line.append(short_timestamp(msg.timestamp, default=""), style="dim")
    line.append(" ")
    line.append(role, style="blue")
    line.append(" ")
    for i, tool in enumerate(tools):
        if i:
            line.append(", ")
        line.append(tool, style="bold yellow")
    return line


def render_frequency_table(
    title: str,
    rows: list[tuple[str, int]],
    *,
    bar_width: int = 30,
    key_width: int = 20,
    show_percent: bool = True,
    percent_decimals: int = 1,
    grand_total: int | None = None,
    footer: str = "",
) -> None:
    """Print rows of (key, count) with a bar scaled to the largest count.

    Percentages are relative to `grand_total`, which defaults to the sum of
    the rows shown.
    """
    max_count = max((count for _, count in rows), default=1) or 1
    if grand_total is None:
        grand_total = sum(count for _, count in rows)

    console.print(Text(title, style="bold cyan"))
    console.print(HEAVY_RULE * 60)

    for key, count in rows:
        bar = "█" * int(count / max_count * bar_width)
        line = Text("  ")
        line.append(key.ljust(key_width), style="bold")
        line.append(f" {format_count(count):>12}  ")
        if show_percent:
            pct = count / grand_total * 100 if grand_total else 0.0
            line.append(f"({pct:>{percent_decimals + 4}.{percent_decimals}f}%)  ")
        line.append(bar, style="cyan")
        console.print(line, soft_wrap=True)

    console.print(LIGHT_RULE * 60)
    if footer:
        console.print(Text(footer), soft_wrap=True)
