"""Configuration and session file discovery."""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from smc.exceptions import AmbiguousSessionError, ProjectsDirNotFoundError, SessionNotFoundError
from smc.models import SessionFile

logger = logging.getLogger(__name__)

# Claude Code sessions location
PROJECTS_DIR = Path.home() / ".claude" / "projects"

# Environment overrides (also wired to the CLI options)
PROJECTS_DIR_ENV = "SMC_PROJECTS_DIR"
WORKERS_ENV = "SMC_WORKERS"

# Same sizing as concurrent.futures.ThreadPoolExecutor; scans are I/O bound.
DEFAULT_WORKERS = min(32, (os.cpu_count() or 1) + 4)

# Project directories look like -Users-name-GitHub-project; keep what follows this segment.
PROJECT_MARKER = "GitHub"


def resolve_projects_dir(override: str | Path | None = None) -> Path:
    """Return the projects directory to scan.

    Raises:
        ProjectsDirNotFoundError: if the directory does not exist.
    """
    if override:
        path = Path(override).expanduser()
    elif os.environ.get(PROJECTS_DIR_ENV):
        path = Path(os.environ[PROJECTS_DIR_ENV]).expanduser()
    else:
        path = PROJECTS_DIR

    if not path.exists():
        raise ProjectsDirNotFoundError(path)
    return path


def resolve_workers(override: int | None = None) -> int:
    if override and override > 0:
        return override
    env_value = os.environ.get(WORKERS_ENV)
    if env_value:
        try:
            workers = int(env_value)
        except ValueError:
            logger.warning("Ignoring invalid %s=%r", WORKERS_ENV, env_value)
        else:
            if workers > 0:
                return workers
    return DEFAULT_WORKERS


def extract_project_name(dir_name: str) -> str:
    """Extract a project name from an encoded project directory name.

    -Users-name-GitHub-project        -> project
    -Users-name-GitHub-misc-subproject -> misc/subproject
    -home-name-work-tool              -> tool
    """
    parts = dir_name.split("-")

    if PROJECT_MARKER in parts:
        project_parts = parts[parts.index(PROJECT_MARKER) + 1 :]
        if not project_parts:
            return dir_name
        return "/".join(project_parts)

    meaningful_parts = [p for p in parts if p and p != "Users"]
    if meaningful_parts:
        return meaningful_parts[-1]
    return dir_name


def discover_session_files(projects_dir: Path) -> list[SessionFile]:
    """Discover all JSONL session files one level below each project directory.

    Returns files sorted by size, largest first.
    """
    files: list[SessionFile] = []
    if not projects_dir.is_dir():
        return files

    for project_dir in projects_dir.iterdir():
        if not project_dir.is_dir():
            continue

        project_name = extract_project_name(project_dir.name)
        for path in project_dir.glob("*.jsonl"):
            if not path.is_file():
                continue
            try:
                size = path.stat().st_size
            except OSError as e:
                logger.debug("Cannot stat %s: %s", path, e)
                continue
            files.append(
                SessionFile(
                    path=path,
                    session_id=path.stem,
                    project_name=project_name,
                    size_bytes=size,
                )
            )

    files.sort(key=lambda f: f.size_bytes, reverse=True)
    return files


class LookupStatus(Enum):
    NOT_FOUND = "not_found"
    FOUND = "found"
    AMBIGUOUS = "ambiguous"


@dataclass
class SessionLookup:
    """Outcome of resolving a session id (or prefix) against the corpus."""

    query: str
    status: LookupStatus
    candidates: list[SessionFile] = field(default_factory=list)

    @property
    def file(self) -> SessionFile | None:
        if self.status is LookupStatus.FOUND:
            return self.candidates[0]
        return None

    def unwrap(self) -> SessionFile:
        """Return the unique match or raise.

        Raises:
            SessionNotFoundError: nothing matched.
            AmbiguousSessionError: more than one session matched the prefix.
        """
        if self.status is LookupStatus.FOUND:
            return self.candidates[0]
        if self.status is LookupStatus.AMBIGUOUS:
            raise AmbiguousSessionError(self.query, self.candidates)
        raise SessionNotFoundError(self.query)


def find_session(files: list[SessionFile], query: str) -> SessionLookup:
    """Resolve a session id or id prefix. An exact id match wins."""
    for f in files:
        if f.session_id == query:
            return SessionLookup(query, LookupStatus.FOUND, [f])

    matches = [f for f in files if f.session_id.startswith(query)]
    if not matches:
        return SessionLookup(query, LookupStatus.NOT_FOUND)
    if len(matches) == 1:
        return SessionLookup(query, LookupStatus.FOUND, matches)
    return SessionLookup(query, LookupStatus.AMBIGUOUS, matches)
