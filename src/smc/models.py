"""Data models for smc.

One line of a session log parses into a `Record`. Message records carry a
`MessageRecord` whose body is either a flat string or an ordered tuple of
content blocks.
"""

import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from smc.exceptions import RecordParseError


class RecordKind(str, Enum):
    """Closed set of record variants. Values are the role tokens."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    OTHER = "other"


MESSAGE_KINDS = frozenset({RecordKind.USER, RecordKind.ASSISTANT, RecordKind.SYSTEM})


@dataclass(frozen=True)
class TextBlock:
    text: str


@dataclass(frozen=True)
class ThinkingBlock:
    thinking: str


@dataclass(frozen=True)
class ToolUseBlock:
    name: str
    input: Any
    id: str | None = None


@dataclass(frozen=True)
class ToolResultBlock:
    content: Any = None
    tool_use_id: str | None = None


@dataclass(frozen=True)
class OtherBlock:
    """Any block type we do not understand (images, documents, ...)."""

    type: str | None = None


ContentBlock = TextBlock | ThinkingBlock | ToolUseBlock | ToolResultBlock | OtherBlock


def render_value(value: Any) -> str:
    """Render a structured JSON value compactly, the way it appears in output."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


@dataclass(frozen=True)
class Message:
    """A role plus either a flat string body or ordered content blocks."""

    role: str
    content: str | tuple[ContentBlock, ...]

    @property
    def blocks(self) -> tuple[ContentBlock, ...]:
        if isinstance(self.content, str):
            return ()
        return self.content


@dataclass(frozen=True)
class MessageRecord:
    """A user, assistant or system entry of a session log."""

    message: Message
    uuid: str | None = None
    parent_uuid: Any = None
    session_id: str | None = None
    timestamp: str | None = None
    cwd: str | None = None
    git_branch: str | None = None
    version: str | None = None

    def text_content(self) -> str:
        """All searchable text in block order, thinking included."""
        return self._joined(include_thinking=True)

    def text_content_no_thinking(self) -> str:
        return self._joined(include_thinking=False)

    def _joined(self, include_thinking: bool) -> str:
        content = self.message.content
        if isinstance(content, str):
            return content

        parts: list[str] = []
        for block in content:
            match block:
                case TextBlock(text=text):
                    parts.append(text)
                case ThinkingBlock(thinking=thinking):
                    if include_thinking:
                        parts.append(thinking)
                case ToolUseBlock(name=name, input=tool_input):
                    parts.append(f"[tool: {name}] {render_value(tool_input)}")
                case ToolResultBlock(content=result):
                    if result is not None:
                        parts.append(f"[result] {render_value(result)}")
                case OtherBlock():
                    pass
        return "\n".join(parts)

    def tool_calls(self) -> list[str]:
        """Names of the tools invoked by this message, in block order."""
        return [block.name for block in self.message.blocks if isinstance(block, ToolUseBlock)]

    def tool_input_content(self) -> str:
        """Only the arguments passed to tools."""
        return "\n".join(
            f"[{block.name}] {render_value(block.input)}"
            for block in self.message.blocks
            if isinstance(block, ToolUseBlock)
        )

    def thinking_content(self) -> str:
        return "\n".join(
            block.thinking for block in self.message.blocks if isinstance(block, ThinkingBlock)
        )

    def touches_file(self, path: str) -> bool:
        """Check if any tool input or result references `path` (case-insensitive)."""
        needle = path.lower()
        for block in self.message.blocks:
            match block:
                case ToolUseBlock(input=tool_input):
                    if needle in render_value(tool_input).lower():
                        return True
                case ToolResultBlock(content=result) if result is not None:
                    if needle in render_value(result).lower():
                        return True
        return False


@dataclass(frozen=True)
class Record:
    """One parsed line of a session log.

    `message` is set exactly when `kind` is a message kind. `raw_type` keeps
    the raw `type` field (e.g. "progress") for everything else.
    """

    kind: RecordKind
    message: MessageRecord | None = None
    raw_type: str | None = None

    def __post_init__(self) -> None:
        if (self.kind in MESSAGE_KINDS) != (self.message is not None):
            raise ValueError(f"{self.kind.value} record must carry a message iff it is a message kind")

    def role_str(self) -> str:
        return self.kind.value

    def is_message(self) -> bool:
        return self.kind in MESSAGE_KINDS

    def as_message_record(self) -> MessageRecord | None:
        return self.message


@dataclass
class SessionFile:
    """A session log on disk (one conversation)."""

    path: Path
    session_id: str
    project_name: str
    size_bytes: int = 0

    def size_human(self) -> str:
        size = self.size_bytes
        if size < 1024:
            return f"{size}B"
        if size < 1024 * 1024:
            return f"{size / 1024:.1f}KB"
        return f"{size / (1024 * 1024):.1f}MB"


@dataclass
class SearchHit:
    """A message record that passed every filter and the matcher."""

    project: str
    session_id: str
    record: Record
    line_number: int
    matched_query: str

    def __post_init__(self) -> None:
        if self.record.message is None:
            raise ValueError(f"search hit needs a message record, got {self.record.kind.value}")

    @property
    def message(self) -> MessageRecord:
        return self.record.message


# --- parsing -----------------------------------------------------------------

_RECORD_KINDS = {
    "user": RecordKind.USER,
    "assistant": RecordKind.ASSISTANT,
    "system": RecordKind.SYSTEM,
}

_OPTIONAL_STRING_FIELDS = {
    "uuid": "uuid",
    "sessionId": "session_id",
    "timestamp": "timestamp",
    "cwd": "cwd",
    "gitBranch": "git_branch",
    "version": "version",
}


def _optional_str(obj: dict, key: str) -> str | None:
    value = obj.get(key)
    if value is None or isinstance(value, str):
        return value
    raise RecordParseError(f"field {key!r} must be a string, got {type(value).__name__}")


def _required_str(obj: dict, key: str) -> str:
    value = obj.get(key)
    if not isinstance(value, str):
        raise RecordParseError(f"field {key!r} must be a string")
    return value


def parse_block(obj: Any) -> ContentBlock:
    """Parse one content block. Unknown block types become `OtherBlock`."""
    if not isinstance(obj, dict):
        raise RecordParseError("content block must be an object")

    block_type = obj.get("type")
    if block_type == "text":
        return TextBlock(text=_required_str(obj, "text"))
    if block_type == "thinking":
        return ThinkingBlock(thinking=_required_str(obj, "thinking"))
    if block_type == "tool_use":
        if "input" not in obj:
            raise RecordParseError("tool_use block is missing 'input'")
        return ToolUseBlock(
            name=_required_str(obj, "name"),
            input=obj["input"],
            id=_optional_str(obj, "id"),
        )
    if block_type == "tool_result":
        return ToolResultBlock(
            content=obj.get("content"),
            tool_use_id=_optional_str(obj, "tool_use_id"),
        )
    return OtherBlock(type=block_type if isinstance(block_type, str) else None)


def parse_message(obj: Any) -> Message:
    if not isinstance(obj, dict):
        raise RecordParseError("'message' must be an object")

    role = _required_str(obj, "role")
    content = obj.get("content")
    if isinstance(content, str):
        return Message(role=role, content=content)
    if isinstance(content, list):
        return Message(role=role, content=tuple(parse_block(b) for b in content))
    raise RecordParseError("message content must be a string or a list of blocks")


def parse_record(line: str) -> Record:
    """Parse one JSONL line into a Record.

    Raises:
        RecordParseError: on malformed JSON or a message that does not fit the
            schema. Callers skip the line.
    """
    try:
        obj = json.loads(line)
    except json.JSONDecodeError as e:
        raise RecordParseError(f"invalid JSON: {e.msg}") from e

    if not isinstance(obj, dict):
        raise RecordParseError("record must be a JSON object")

    record_type = obj.get("type")
    kind = _RECORD_KINDS.get(record_type) if isinstance(record_type, str) else None
    if kind is None:
        return Record(
            kind=RecordKind.OTHER,
            raw_type=record_type if isinstance(record_type, str) else None,
        )

    if "message" not in obj:
        raise RecordParseError(f"{record_type} record is missing 'message'")

    fields = {attr: _optional_str(obj, key) for key, attr in _OPTIONAL_STRING_FIELDS.items()}
    message_record = MessageRecord(
        message=parse_message(obj["message"]),
        parent_uuid=obj.get("parentUuid"),
        **fields,
    )
    return Record(kind=kind, message=message_record, raw_type=record_type)
