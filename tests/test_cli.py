import argparse
import io
import logging

import pytest

import cli

_configure_logging = cli.configure_logging


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch):
    monkeypatch.setattr(cli, "configure_logging", lambda level, stream=None: None)


def _write(tmp_path, text):
    path = tmp_path / "problem.txt"
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_minimized_values_are_printed(tmp_path, capsys):
    rc = cli.main(["-i", _write(tmp_path, "10 5 5 5 0\n"), "--values", "-m", "-t", "0"])
    assert rc == 0
    assert capsys.readouterr().out.splitlines() == ["s SAT", "v 5 5", "v 5"]


def test_first_solution_without_minimization_is_flagged(tmp_path, capsys):
    rc = cli.main(["-i", _write(tmp_path, "10 5 5 5 0\n")])
    assert rc == 0
    assert capsys.readouterr().out.splitlines() == [
        "c 2 bins, not proven minimal",
        "s SAT",
    ]


def test_unsatisfiable_problem(tmp_path, capsys):
    rc = cli.main(["-i", _write(tmp_path, "10 11 0"), "--values", "-m"])
    assert rc == 0
    assert capsys.readouterr().out.splitlines() == ["s UNSAT"]


def test_reads_stdin_by_default(monkeypatch, capsys):
    monkeypatch.setattr("sys.stdin", io.StringIO("100 50 50 50 50 0"))
    rc = cli.main(["-m", "--values", "--watchdog", "-t", "30s"])
    assert rc == 0
    assert capsys.readouterr().out.splitlines() == ["s SAT", "v 50 50", "v 50 50"]


def test_malformed_input_exits_with_usage_error(tmp_path, capsys):
    rc = cli.main(["-i", _write(tmp_path, "10 5 x 0")])
    assert rc == 2
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "binfit: Bad weight" in captured.err


@pytest.mark.parametrize(
    "text, seconds",
    [("1.5", 1.5), ("500ms", 0.5), ("10s", 10.0), ("2m", 120.0), ("1h", 3600.0), ("0", 0.0)],
)
def test_parse_duration(text, seconds):
    assert cli.parse_duration(text) == pytest.approx(seconds)


def test_parse_duration_rejects_garbage():
    with pytest.raises(argparse.ArgumentTypeError):
        cli.parse_duration("soon")


def test_verbosity_moves_around_configured_level(monkeypatch):
    monkeypatch.setattr(cli.CFG, "LOG_LEVEL", "WARNING", raising=False)
    assert cli._log_level(0, 0) == logging.WARNING
    assert cli._log_level(1, 0) == logging.INFO
    assert cli._log_level(5, 0) == logging.DEBUG
    assert cli._log_level(0, 1) == logging.ERROR
    assert cli._log_level(0, 9) == logging.ERROR


def test_configure_logging_prefixes_lines_as_comments():
    stream = io.StringIO()
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        _configure_logging(logging.INFO, stream)
        logging.getLogger("binfit").info("hello")
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
    assert stream.getvalue().startswith("c [INFO ")
    assert stream.getvalue().rstrip().endswith("hello")
