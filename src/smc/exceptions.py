"""Custom exceptions for smc."""

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from smc.models import SessionFile


class SmcError(Exception):
    """Base class for errors reported to the user."""


class InvalidQueryError(SmcError):
    """Raised before scanning when the query cannot be used (empty list, bad regex)."""


class ProjectsDirNotFoundError(SmcError):
    """Raised when the Claude projects directory does not exist."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Claude projects directory not found at {path}")


class RecordParseError(ValueError):
    """Raised when a log line is not valid JSON or does not fit the record schema."""


class SessionNotFoundError(SmcError):
    """Raised when no session id matches a lookup."""

    def __init__(self, query: str):
        self.query = query
        super().__init__(f"No session found matching '{query}'")


class AmbiguousSessionError(SmcError):
    """Raised when a session id prefix matches more than one session."""

    def __init__(self, query: str, candidates: "list[SessionFile]"):
        self.query = query
        self.candidates = candidates
        super().__init__(
            f"Ambiguous session ID '{query}', {len(candidates)} matches. "
            "Please provide a more specific session ID"
        )
