"""Tests for single-session views."""

from conftest import assistant_record, user_record

from smc.sessions import (
    collect_sessions,
    context_window,
    export_session,
    parse_records,
    recent_messages,
    session_to_markdown,
    show_session,
    summarize_session,
)


def test_parse_records_skips_blank_and_broken_lines(sample_session_jsonl):
    records = parse_records(sample_session_jsonl)

    assert [r.role_str() for r in records] == ["user", "other", "assistant", "user", "assistant"]


def test_export_keeps_block_order(write_session):
    file = write_session(
        "-Users-alice-GitHub-webapp",
        "exp1",
        [
            assistant_record(
                [
                    {"type": "text", "text": "Step one"},
                    {"type": "tool_use", "name": "Bash", "input": {"command": "make"}},
                    {"type": "text", "text": "Step two"},
                    {"type": "tool_use", "name": "Read", "input": {"file_path": "/a"}},
                ]
            ),
            user_record(
                [
                    {"type": "tool_result", "tool_use_id": "t-1", "content": "built"},
                    {"type": "tool_result", "tool_use_id": "t-2", "content": [{"type": "text", "text": "contents"}]},
                ]
            ),
        ],
    )

    document = session_to_markdown(file)

    markers = ["Step one", "**Tool: Bash**", "Step two", "**Tool: Read**", "built", "contents"]
    positions = [document.index(m) for m in markers]
    assert positions == sorted(positions)
    assert document.count("**Result**") == 2
    assert '"command": "make"' in document


def test_export_omits_thinking(sample_session_jsonl):
    document = session_to_markdown(sample_session_jsonl)

    assert "Let me look at the auth module" not in document
    assert "**Tool: Read**" in document
    assert "def login(): ..." in document
    assert "## User (2024-06-01T10:00:00)" in document
    assert document.startswith("# Session dddd4444")


def test_export_session_default_path(sample_session_jsonl, temp_dir, monkeypatch):
    monkeypatch.chdir(temp_dir)

    path = export_session(sample_session_jsonl)

    assert path.name == "dddd4444.md"
    assert (temp_dir / "dddd4444.md").read_text(encoding="utf-8").startswith("# Session dddd4444")


def test_export_session_to_stdout(sample_session_jsonl, capsys):
    assert export_session(sample_session_jsonl, to_stdout=True) is None
    assert "Use JWT tokens" in capsys.readouterr().out


def test_context_window(sample_session_jsonl):
    # Lines: 1 user, 2 snapshot, 3 assistant, 4 user, 5 blank, 6 broken, 7 assistant
    window, target = context_window(sample_session_jsonl, 4, context=1)

    assert [n for n, _ in window] == [3, 4, 7]
    assert target == 1


def test_context_window_targets_next_message(sample_session_jsonl):
    window, target = context_window(sample_session_jsonl, 5, context=0)
    assert [n for n, _ in window] == [7]
    assert target == 0


def test_context_window_past_end(sample_session_jsonl):
    assert context_window(sample_session_jsonl, 100) == ([], None)


def test_summarize_session(sample_session_jsonl):
    entry = summarize_session(sample_session_jsonl)

    assert entry.timestamp == "2024-06-01T10:00:00Z"
    assert entry.preview == "How do I implement authentication?"
    assert entry.message_count == 4


def test_collect_sessions_newest_first(write_session):
    files = [
        write_session("-Users-alice-GitHub-webapp", "old", [user_record("old", timestamp="2024-01-01T00:00:00Z")]),
        write_session("-Users-alice-GitHub-webapp", "new", [user_record("new", timestamp="2024-07-01T00:00:00Z")]),
        write_session("-Users-alice-GitHub-api", "mid", [user_record("mid", timestamp="2024-04-01T00:00:00Z")]),
    ]

    assert [e.file.session_id for e in collect_sessions(files)] == ["new", "mid", "old"]
    assert [e.file.session_id for e in collect_sessions(files, after="2024-03-01")] == ["new", "mid"]


def test_recent_messages(write_session):
    files = [
        write_session(
            "-Users-alice-GitHub-webapp",
            "s1",
            [
                user_record("one", timestamp="2024-06-01T10:00:00Z"),
                assistant_record([{"type": "text", "text": "three"}], timestamp="2024-06-03T10:00:00Z"),
            ],
        ),
        write_session(
            "-Users-alice-GitHub-api",
            "s2",
            [user_record("two", timestamp="2024-06-02T10:00:00Z")],
        ),
    ]

    newest = recent_messages(files, limit=2, workers=2)
    assert [m.record.as_message_record().text_content() for m in newest] == ["three", "two"]

    users = recent_messages(files, limit=5, role="user", workers=2)
    assert [m.timestamp for m in users] == ["2024-06-02T10:00:00Z", "2024-06-01T10:00:00Z"]
    assert users[0].line_number == 1


def test_show_session_range(sample_session_jsonl, capsys):
    show_session(sample_session_jsonl, start=1, end=2)

    out = capsys.readouterr().out
    assert "2 messages displayed" in out
    assert "How do I implement authentication?" not in out
    assert "Let me look at the auth module" not in out


def test_export_to_stdout_keeps_tabs_and_carriage_returns(write_session, capsys):
    file = write_session(
        "-Users-alice-GitHub-webapp",
        "tabs",
        [user_record("Makefile:\n\tmake build\r\n\tmake push")],
    )

    export_session(file, to_stdout=True)

    out = capsys.readouterr().out
    assert out == session_to_markdown(file)
    assert "\tmake build\r\n\tmake push" in out
