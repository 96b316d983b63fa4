"""Pytest fixtures for smc tests."""

import json
import tempfile
from pathlib import Path

import pytest

from smc.models import SessionFile


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def projects_dir(temp_dir):
    """An empty Claude projects directory."""
    path = temp_dir / "projects"
    path.mkdir()
    return path


@pytest.fixture
def write_session(projects_dir):
    """Factory writing JSONL records to <projects>/<dir_name>/<session_id>.jsonl.

    Records may be dicts (serialized) or raw strings (written verbatim).
    """
    from smc.config import extract_project_name

    def _write(dir_name: str, session_id: str, records: list) -> SessionFile:
        project_dir = projects_dir / dir_name
        project_dir.mkdir(exist_ok=True)
        path = project_dir / f"{session_id}.jsonl"
        with open(path, "w", encoding="utf-8") as f:
            for record in records:
                line = record if isinstance(record, str) else json.dumps(record)
                f.write(line + "\n")
        return SessionFile(
            path=path,
            session_id=session_id,
            project_name=extract_project_name(dir_name),
            size_bytes=path.stat().st_size,
        )

    return _write


def user_record(content, timestamp="2024-06-01T10:00:00Z", branch="main", **extra) -> dict:
    return {
        "type": "user",
        "uuid": extra.pop("uuid", "u-1"),
        "sessionId": extra.pop("session_id", "sess"),
        "timestamp": timestamp,
        "gitBranch": branch,
        "cwd": "/Users/alice/GitHub/webapp",
        "message": {"role": "user", "content": content},
        **extra,
    }


def assistant_record(blocks, timestamp="2024-06-01T10:00:05Z", branch="main", **extra) -> dict:
    return {
        "type": "assistant",
        "uuid": extra.pop("uuid", "a-1"),
        "parentUuid": "u-1",
        "sessionId": extra.pop("session_id", "sess"),
        "timestamp": timestamp,
        "gitBranch": branch,
        "message": {"role": "assistant", "content": blocks},
        **extra,
    }


def progress_record() -> dict:
    return {"type": "progress", "data": {"message": "authentication step 2/3"}}


@pytest.fixture
def scenario_files(write_session):
    """Three sessions: a user message, an assistant Bash call, a progress event."""
    return [
        write_session(
            "-Users-alice-GitHub-webapp",
            "aaaa1111",
            [user_record("deploy the authentication service")],
        ),
        write_session(
            "-Users-alice-GitHub-webapp",
            "bbbb2222",
            [
                assistant_record(
                    [
                        {"type": "text", "text": "Listing files."},
                        {"type": "tool_use", "id": "t-1", "name": "Bash", "input": {"command": "ls -la"}},
                    ],
                    branch="feature/login",
                )
            ],
        ),
        write_session("-Users-alice-GitHub-tools-cli", "cccc3333", [progress_record()]),
    ]


@pytest.fixture
def sample_session_jsonl(write_session):
    """A multi-turn session with thinking, tool use and tool results."""
    return write_session(
        "-Users-alice-GitHub-webapp",
        "dddd4444",
        [
            user_record("How do I implement authentication?", uuid="msg-001"),
            {"type": "file-history-snapshot", "snapshot": {}},
            assistant_record(
                [
                    {"type": "thinking", "thinking": "Let me look at the auth module first."},
                    {"type": "tool_use", "id": "t-1", "name": "Read", "input": {"file_path": "/src/Auth.py"}},
                ],
                uuid="msg-002",
                timestamp="2024-06-01T10:00:05Z",
            ),
            user_record(
                [{"type": "tool_result", "tool_use_id": "t-1", "content": "def login(): ..."}],
                uuid="msg-003",
                timestamp="2024-06-01T10:00:06Z",
            ),
            "",
            "{not json",
            assistant_record(
                [{"type": "text", "text": "Use JWT tokens for authentication."}],
                uuid="msg-004",
                timestamp="2024-06-01T10:00:10Z",
            ),
        ],
    )
