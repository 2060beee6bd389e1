import sys, pathlib
sys.path.insert(0, str(pathlib.Path(__file__).parent.parent))

import pytest

import main
from calculator import Calculator


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr(main, "setup_logging", lambda config: None)
    for name in ("CALC_HISTORY_CAPACITY", "CALC_REWRITE_PIPELINE", "CALC_LOG_LEVEL", "CALC_LOG_DIR"):
        monkeypatch.delenv(name, raising=False)


def feed_input(monkeypatch, lines):
    lines = iter(lines)

    def fake_input(prompt=""):
        try:
            return next(lines)
        except StopIteration:
            raise EOFError

    monkeypatch.setattr("builtins.input", fake_input)


def test_one_shot_expression(capsys):
    assert main.main(["-e", "2+3*4"]) == 0
    assert capsys.readouterr().out.strip() == "14"


def test_one_shot_error(capsys):
    assert main.main(["--expression", "5/0"]) == 1
    assert "Division by zero" in capsys.readouterr().err


def test_one_shot_nan_is_an_error(capsys):
    assert main.main(["-e", "(-8)^(1/3)"]) == 1
    assert "not a number" in capsys.readouterr().err


def test_one_shot_rewrite_pipeline(capsys):
    assert main.main(["--rewrite", "-e", "5²+50%"]) == 0
    assert capsys.readouterr().out.strip() == "25.5"


def test_invalid_environment(monkeypatch, capsys):
    monkeypatch.setenv("CALC_HISTORY_CAPACITY", "lots")
    assert main.main(["-e", "1"]) == 2
    assert "CALC_HISTORY_CAPACITY" in capsys.readouterr().err


def test_repl_session(monkeypatch, capsys):
    feed_input(monkeypatch, ["2+2", "", "history", "canonical 5²", "1/0", "help", "clear", "history", "quit"])
    calc = Calculator()

    main.repl(calc)

    out = capsys.readouterr().out
    assert "= 4" in out
    assert "2+2 = 4" in out
    assert "25.0" in out
    assert "Error: Division by zero" in out
    assert "Available functions" in out
    assert "No history yet" in out
    assert "Goodbye!" in out
    assert calc.history == ()


def test_repl_exits_on_eof(monkeypatch, capsys):
    feed_input(monkeypatch, ["3!"])
    calc = Calculator()

    main.repl(calc)

    assert "= 6" in capsys.readouterr().out
    assert calc.history[0].result == "6"


def test_show_history_prints_oldest_first(capsys):
    calc = Calculator()
    calc.evaluate("1+1")
    calc.evaluate("2+2")

    main.show_history(calc)

    out = capsys.readouterr().out
    assert out.index("1+1 = 2") < out.index("2+2 = 4")


def test_repl_survives_unexpected_errors(monkeypatch, capsys):
    def broken(calc, line):
        raise RuntimeError("boom")

    monkeypatch.setattr(main, "evaluate_line", broken)
    feed_input(monkeypatch, ["1+1", "quit"])

    main.repl(Calculator())

    out = capsys.readouterr().out
    assert "Unexpected error: boom" in out
    assert "Goodbye!" in out


def test_repl_reports_deep_nesting(monkeypatch, capsys):
    feed_input(monkeypatch, ["(" * 1500 + "1" + ")" * 1500, "quit"])

    main.repl(Calculator())

    assert "Error: Expression nested too deeply" in capsys.readouterr().out
