"""Per-file scanning: parse, filter and match one session log."""

import itertools
import logging
from collections.abc import Iterator
from dataclasses import dataclass

from smc.exceptions import RecordParseError
from smc.matcher import QueryMatcher
from smc.models import MessageRecord, Record, SearchHit, SessionFile, parse_record

logger = logging.getLogger(__name__)

# Wrapper our own output is emitted in when it is fed back into a conversation.
SELF_OUTPUT_TAG_OPEN = "<smc-cc-cli>"
SELF_OUTPUT_TAG_CLOSE = "</smc-cc-cli>"

READ_BUFFER_SIZE = 256 * 1024


@dataclass
class SearchFilters:
    """Per-record filters, applied in declaration order.

    Date bounds are compared as raw strings against the record timestamp, so
    they only work for zero-padded ISO-8601 values (e.g. "2024-06-01").
    """

    role: str | None = None
    tool: str | None = None
    after: str | None = None
    before: str | None = None
    branch: str | None = None
    include_self_output: bool = False

    def accepts(self, record: Record, msg: MessageRecord) -> bool:
        if self.role is not None and record.role_str() != self.role:
            return False

        if self.tool is not None:
            tool = self.tool.lower()
            if not any(tool in name.lower() for name in msg.tool_calls()):
                return False

        # Records without a timestamp pass date filters.
        if msg.timestamp is not None:
            if self.after is not None and msg.timestamp < self.after:
                return False
            if self.before is not None and msg.timestamp > self.before:
                return False

        if self.branch is not None:
            if msg.git_branch is None or self.branch.lower() not in msg.git_branch.lower():
                return False

        return True


class HitBudget:
    """Cross-file ceiling on emitted hits, shared by all scanner threads.

    A limit of 0 means unbounded. Slots are numbered by an unlocked
    `itertools.count`; a take succeeds only if its slot is within the limit,
    so concurrent workers never emit more than `limit` hits. `exhausted()`
    reads the last issued slot without synchronization and is only a hint
    for stopping early.
    """

    def __init__(self, limit: int = 0):
        self.limit = max(limit, 0)
        self._counter = itertools.count(1)
        self._issued = 0

    @property
    def taken(self) -> int:
        if self.limit:
            return min(self._issued, self.limit)
        return self._issued

    def exhausted(self) -> bool:
        return self.limit > 0 and self._issued >= self.limit

    def take(self) -> bool:
        """Claim one hit slot. Returns False once the budget is used up."""
        # next() on itertools.count is atomic under the GIL
        slot = next(self._counter)
        self._issued = slot
        return self.limit == 0 or slot <= self.limit


def iter_lines(file: SessionFile) -> Iterator[tuple[int, str]]:
    """Yield (1-based line number, line) for a session file.

    Raises:
        OSError: if the file cannot be opened or read.
    """
    with open(file.path, encoding="utf-8", errors="replace", buffering=READ_BUFFER_SIZE) as f:
        yield from enumerate(f, 1)


def scan_file(
    file: SessionFile,
    matcher: QueryMatcher,
    filters: SearchFilters,
    budget: HitBudget,
) -> list[SearchHit]:
    """Scan one session file and return its hits in line order.

    A file that cannot be read yields no hits.
    """
    hits: list[SearchHit] = []

    try:
        for line_number, line in iter_lines(file):
            if budget.exhausted():
                break

            if not line.strip():
                continue

            try:
                record = parse_record(line)
            except RecordParseError:
                continue

            msg = record.as_message_record()
            if msg is None:
                continue

            if not filters.accepts(record, msg):
                continue

            text = msg.text_content()
            if not filters.include_self_output and SELF_OUTPUT_TAG_OPEN in text:
                continue

            matched = matcher.match(text)
            if matched is None:
                continue

            if not budget.take():
                break

            hits.append(
                SearchHit(
                    project=file.project_name,
                    session_id=file.session_id,
                    record=record,
                    line_number=line_number,
                    matched_query=matched,
                )
            )
    except OSError as e:
        logger.debug("Skipping unreadable file %s: %s", file.path, e)

    return hits
