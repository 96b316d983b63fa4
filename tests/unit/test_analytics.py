"""Tests for frequency tables and project statistics."""

from collections import Counter

from conftest import assistant_record, user_record

from smc.analytics import (
    LETTERS,
    char_frequency,
    count_letters,
    first_timestamp,
    map_reduce,
    print_freq_roles,
    project_infos,
    role_frequency,
    sorted_counts,
    tool_frequency,
    word_frequency,
    words_in,
)


def test_scenario_role_frequency(scenario_files):
    """The progress record is not counted."""
    assert role_frequency(scenario_files, workers=2) == Counter({"user": 1, "assistant": 1})


def test_tool_frequency(write_session):
    files = [
        write_session(
            "-Users-alice-GitHub-webapp",
            "s1",
            [
                assistant_record(
                    [
                        {"type": "tool_use", "name": "Bash", "input": {}},
                        {"type": "tool_use", "name": "Read", "input": {}},
                    ]
                ),
                assistant_record([{"type": "tool_use", "name": "Bash", "input": {}}]),
            ],
        ),
        write_session(
            "-Users-alice-GitHub-api",
            "s2",
            [assistant_record([{"type": "tool_use", "name": "Bash", "input": {}}])],
        ),
    ]

    counts = tool_frequency(files, workers=2)

    assert counts == Counter({"Bash": 3, "Read": 1})
    assert sorted_counts(counts) == [("Bash", 3), ("Read", 1)]


def test_word_frequency(write_session):
    file = write_session(
        "-Users-alice-GitHub-webapp",
        "s1",
        [user_record("Deploy the deploy_script, then DEPLOY it"), "garbage line"],
    )

    counts = word_frequency([file], workers=1)

    assert counts["deploy"] == 3
    assert counts["script"] == 1
    assert counts["the"] == 1
    assert "it" not in counts


def test_words_in():
    assert words_in("an apple-pie, a_b_cde") == ["apple", "pie", "cde"]


def test_count_letters_case_folds():
    counts = count_letters(b"AaBz!9")
    assert counts["a"] == 2
    assert counts["b"] == 1
    assert counts["z"] == 1
    assert set(counts) == set(LETTERS)


def test_char_frequency_has_all_letters(scenario_files):
    counts = char_frequency(scenario_files, workers=2)

    assert set(counts) == set(LETTERS)
    assert counts["q"] == 0
    # "deploy the authentication service" + text block + tool use line
    assert counts["a"] > 0


def test_char_frequency_raw_counts_whole_file(scenario_files):
    parsed = char_frequency(scenario_files, workers=2)
    raw = char_frequency(scenario_files, raw=True, workers=2)

    # Raw bytes include JSON keys and the progress record
    assert sum(raw.values()) > sum(parsed.values())
    assert raw["p"] > parsed["p"]


def test_map_reduce_merges_every_file(write_session):
    files = [
        write_session("-Users-alice-GitHub-webapp", f"s{i}", [user_record("x")]) for i in range(10)
    ]

    totals = map_reduce(files, lambda f: Counter({f.session_id[:1]: 1}), workers=4)

    assert totals == Counter({"s": 10})


def test_unreadable_file_counts_nothing(temp_dir):
    from smc.models import SessionFile

    missing = SessionFile(path=temp_dir / "gone.jsonl", session_id="gone", project_name="p")
    assert role_frequency([missing], workers=1) == Counter()
    assert sum(char_frequency([missing], raw=True, workers=1).values()) == 0


def test_first_timestamp_and_project_infos(write_session):
    files = [
        write_session(
            "-Users-alice-GitHub-webapp",
            "s1",
            [{"type": "summary"}, user_record("hi", timestamp="2024-06-05T10:00:00Z")],
        ),
        write_session(
            "-Users-alice-GitHub-webapp",
            "s2",
            [user_record("hi", timestamp="2024-06-01T10:00:00Z")],
        ),
        write_session("-Users-alice-GitHub-api", "s3", [{"type": "summary"}]),
    ]

    assert first_timestamp(files[0]) == "2024-06-05T10:00:00Z"
    assert first_timestamp(files[2]) is None

    infos = project_infos(files)
    assert infos["webapp"].sessions == 2
    assert infos["webapp"].date_range() == "2024-06-01 → 2024-06-05"
    assert infos["api"].date_range() == "unknown"


def test_print_freq_roles(scenario_files, capsys):
    print_freq_roles(scenario_files, workers=2)

    out = capsys.readouterr().out
    assert "Message Role Frequency" in out
    assert "user" in out
    assert "assistant" in out
    assert "2 total messages" in out


def test_iter_file_records_skips_bad_lines(sample_session_jsonl, temp_dir):
    from smc.analytics import iter_file_records
    from smc.models import SessionFile

    kinds = [record.role_str() for record in iter_file_records(sample_session_jsonl)]
    assert kinds == ["user", "other", "assistant", "user", "assistant"]

    missing = SessionFile(path=temp_dir / "gone.jsonl", session_id="gone", project_name="p")
    assert list(iter_file_records(missing)) == []
