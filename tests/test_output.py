"""Tests for the output formatting system.

Covers:
- OutputFormat resolution (auto -> rich/plain based on TTY)
- NO_COLOR / TERM=dumb color disabling
- stdout vs stderr discipline
- Quiet and verbose modes
- print_table and print_json in each format
- Logging configuration through RichHandler
- Global instance management
"""

from __future__ import annotations

import json
import logging

import pytest
from rich.logging import RichHandler

from specgen import output as output_module
from specgen.output import (
    OutputFormat,
    OutputManager,
    _should_disable_color,
    get_output,
    reset_output,
    set_output,
)


@pytest.fixture()
def non_tty(monkeypatch):
    monkeypatch.setattr("specgen.output._is_tty", lambda: False)


@pytest.fixture()
def tty(monkeypatch):
    monkeypatch.setattr("specgen.output._is_tty", lambda: True)


class TestOutputFormatResolution:
    def test_auto_resolves_to_plain_when_not_tty(self, non_tty):
        assert OutputManager(format=OutputFormat.AUTO).format == OutputFormat.PLAIN

    def test_auto_resolves_to_rich_when_tty(self, tty, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.delenv("TERM", raising=False)
        assert OutputManager(format=OutputFormat.AUTO).format == OutputFormat.RICH

    def test_no_color_flag_forces_plain(self, tty, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.delenv("TERM", raising=False)
        assert OutputManager(format=OutputFormat.AUTO, no_color=True).format == OutputFormat.PLAIN

    def test_explicit_json_stays_json(self, non_tty):
        assert OutputManager(format=OutputFormat.JSON).format == OutputFormat.JSON


class TestColorDisabling:
    def test_no_color_env_any_value(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "")
        assert _should_disable_color() is True

    def test_term_dumb(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "dumb")
        assert _should_disable_color() is True

    def test_normal_term_keeps_color(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm-256color")
        assert _should_disable_color() is False


class TestStdoutStderrDiscipline:
    def test_print_data_goes_to_stdout(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN, no_color=True).print_data("hello")
        captured = capfd.readouterr()
        assert captured.out == "hello\n"
        assert captured.err == ""

    @pytest.mark.parametrize("method", ["info", "success", "warning", "error", "suggest"])
    def test_diagnostics_go_to_stderr(self, capfd, non_tty, method):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        getattr(mgr, method)("message text")
        captured = capfd.readouterr()
        assert captured.out == ""
        assert "message text" in captured.err

    def test_error_prefix(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN, no_color=True).error("boom")
        assert "Error: boom" in capfd.readouterr().err


class TestQuietAndVerbose:
    def test_quiet_suppresses_info(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
        mgr.info("hidden")
        mgr.success("hidden")
        assert capfd.readouterr().err == ""

    def test_quiet_keeps_errors_and_warnings(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
        mgr.error("shown")
        mgr.warning("also shown")
        err = capfd.readouterr().err
        assert "shown" in err
        assert "also shown" in err

    def test_debug_only_when_verbose(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN, no_color=True).debug("nope")
        assert capfd.readouterr().err == ""
        OutputManager(format=OutputFormat.PLAIN, no_color=True, verbose=True).debug("yes")
        assert "[debug] yes" in capfd.readouterr().err


class TestTables:
    def test_plain_table_is_tsv(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.print_table(["Name", "Kind"], [["Pet", "struct"], ["Status", "enum"]])
        assert capfd.readouterr().out.splitlines() == ["Name\tKind", "Pet\tstruct", "Status\tenum"]

    def test_json_table_is_records(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.JSON, no_color=True)
        mgr.print_table(["Name", "Kind"], [["Pet", "struct"]])
        assert json.loads(capfd.readouterr().out) == [{"Name": "Pet", "Kind": "struct"}]

    def test_print_json_plain(self, capfd, non_tty):
        OutputManager(format=OutputFormat.JSON, no_color=True).print_json({"a": [1, 2]})
        assert json.loads(capfd.readouterr().out) == {"a": [1, 2]}


class TestLogging:
    def test_configure_logging_installs_one_handler(self, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.configure_logging()
        mgr.configure_logging()
        logger = logging.getLogger("specgen")
        assert sum(isinstance(h, RichHandler) for h in logger.handlers) == 1
        assert logger.level == logging.WARNING
        assert logger.propagate is False

    def test_verbose_level(self, non_tty):
        OutputManager(format=OutputFormat.PLAIN, no_color=True, verbose=True).configure_logging()
        assert logging.getLogger("specgen").level == logging.DEBUG

    def test_quiet_level(self, non_tty):
        OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True).configure_logging()
        assert logging.getLogger("specgen").level == logging.ERROR

    def test_reset_removes_handler(self, non_tty):
        OutputManager(format=OutputFormat.PLAIN, no_color=True).configure_logging()
        reset_output()
        logger = logging.getLogger("specgen")
        assert not any(isinstance(h, RichHandler) for h in logger.handlers)
        assert logger.propagate is True

    def test_records_reach_stderr(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN, no_color=True).configure_logging()
        logging.getLogger("specgen.parser.ignore").warning("Ignored component Ghost does not exist")
        assert "Ghost" in capfd.readouterr().err


class TestGlobalInstance:
    def test_get_output_creates_default(self):
        reset_output()
        assert isinstance(get_output(), OutputManager)

    def test_set_output_is_used_by_helpers(self, capfd, non_tty):
        set_output(OutputManager(format=OutputFormat.PLAIN, no_color=True))
        output_module.info("via helper")
        assert "via helper" in capfd.readouterr().err
