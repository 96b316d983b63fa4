"""Tests for CLI helpers."""

import pytest
import typer

from smc.cli import fail
from smc.exceptions import SessionNotFoundError


def test_fail_exits_with_error(capsys):
    with pytest.raises(typer.Exit) as exc_info:
        fail(SessionNotFoundError("zzzz"))

    assert exc_info.value.exit_code == 1
    assert "No session found matching 'zzzz'" in capsys.readouterr().err
