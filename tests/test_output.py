"""Tests for the output formatting system.

Covers:
- OutputFormat resolution (auto -> rich/plain based on TTY)
- NO_COLOR / TERM=dumb color disabling
- stdout vs stderr discipline
- Quiet and verbose rules
- JSON and plain data output
- Secret redaction in diagnostics
- Global instance management
"""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from gitpulse import output as output_module
from gitpulse.logs import register_secret
from gitpulse.output import (
    OutputFormat,
    OutputManager,
    _color_disabled_by_env,
    get_output,
    reset_output,
    set_output,
)


def _plain(**kwargs: bool) -> OutputManager:
    return OutputManager(format=OutputFormat.PLAIN, no_color=True, **kwargs)


class TestFormatResolution:
    def test_auto_non_tty_is_plain(self) -> None:
        with patch("gitpulse.output._stdout_is_terminal", return_value=False):
            assert OutputManager().format == OutputFormat.PLAIN

    def test_auto_tty_is_rich(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.delenv("TERM", raising=False)
        with patch("gitpulse.output._stdout_is_terminal", return_value=True):
            assert OutputManager().format == OutputFormat.RICH

    def test_auto_tty_no_color_is_plain(self) -> None:
        with patch("gitpulse.output._stdout_is_terminal", return_value=True):
            assert OutputManager(no_color=True).format == OutputFormat.PLAIN

    def test_explicit_json(self) -> None:
        assert OutputManager(format=OutputFormat.JSON).format == OutputFormat.JSON


class TestColorDisabling:
    def test_no_color_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("NO_COLOR", "")
        assert _color_disabled_by_env() is True

    def test_term_dumb(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "dumb")
        assert _color_disabled_by_env() is True

    def test_default_enabled(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm-256color")
        assert _color_disabled_by_env() is False


class TestStreams:
    def test_data_goes_to_stdout(self, capsys: pytest.CaptureFixture[str]) -> None:
        _plain().print_data("payload")
        captured = capsys.readouterr()
        assert captured.out == "payload\n"
        assert captured.err == ""

    def test_diagnostics_go_to_stderr(self, capsys: pytest.CaptureFixture[str]) -> None:
        out = _plain()
        out.info("working")
        out.warning("careful")
        out.error("broken")
        out.suggest("try again")
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "working" in captured.err
        assert "Warning: careful" in captured.err
        assert "Error: broken" in captured.err
        assert "→ try again" in captured.err


class TestQuietVerbose:
    def test_quiet_suppresses_info(self, capsys: pytest.CaptureFixture[str]) -> None:
        out = _plain(quiet=True)
        out.info("hidden")
        out.success("hidden too")
        out.suggest("also hidden")
        out.error("shown")
        err = capsys.readouterr().err
        assert "hidden" not in err
        assert "Error: shown" in err

    def test_debug_requires_verbose(self, capsys: pytest.CaptureFixture[str]) -> None:
        _plain().debug("quiet debug")
        _plain(verbose=True).debug("loud debug")
        err = capsys.readouterr().err
        assert "quiet debug" not in err
        assert "[debug] loud debug" in err


class TestDataFormats:
    def test_json_response(self, capsys: pytest.CaptureFixture[str]) -> None:
        OutputManager(format=OutputFormat.JSON).format_response({"number": 7, "title": "Bug"})
        assert json.loads(capsys.readouterr().out) == {"number": 7, "title": "Bug"}

    def test_plain_dict_response(self, capsys: pytest.CaptureFixture[str]) -> None:
        _plain().format_response({"number": 7, "state": "open"})
        assert capsys.readouterr().out == "number\t7\nstate\topen\n"

    def test_plain_nested_values_as_json(self, capsys: pytest.CaptureFixture[str]) -> None:
        _plain().format_response({"user": {"login": "bob"}, "body": None})
        assert capsys.readouterr().out == "user\t{\"login\": \"bob\"}\nbody\t\n"

    def test_plain_table(self, capsys: pytest.CaptureFixture[str]) -> None:
        _plain().print_table(["Repo", "Title"], [["o/r", "Fix it"]])
        assert capsys.readouterr().out == "Repo\tTitle\no/r\tFix it\n"

    def test_json_table(self, capsys: pytest.CaptureFixture[str]) -> None:
        OutputManager(format=OutputFormat.JSON).print_table(["Repo"], [["o/r"], ["a/b"]])
        assert json.loads(capsys.readouterr().out) == [{"Repo": "o/r"}, {"Repo": "a/b"}]


class TestRedaction:
    def test_error_redacts_registered_secret(self, capsys: pytest.CaptureFixture[str]) -> None:
        register_secret("gho_leak")
        _plain().error("request with gho_leak failed")
        err = capsys.readouterr().err
        assert "gho_leak" not in err
        assert "[REDACTED]" in err


class TestGlobalInstance:
    def test_get_output_creates_default(self) -> None:
        reset_output()
        assert isinstance(get_output(), OutputManager)

    def test_set_output(self) -> None:
        custom = _plain()
        set_output(custom)
        assert get_output() is custom

    def test_module_helpers_delegate(self, capsys: pytest.CaptureFixture[str]) -> None:
        set_output(_plain())
        output_module.error("via helper")
        assert "Error: via helper" in capsys.readouterr().err
