import sys, pathlib
sys.path.insert(0, str(pathlib.Path(__file__).parent.parent))

import pytest

from calculator import CalculationHistoryEntry, Calculator
from config import CalculatorConfig
from session import CalculatorSession


@pytest.fixture
def session():
    return CalculatorSession()


def test_calculate_keeps_expression_and_records(session):
    session.add_number("12")
    session.add_operator("+")
    session.add_number("3")
    assert session.calculate() == "15"
    assert session.expression == "12+3"
    assert session.result == "15"
    assert session.history == (CalculationHistoryEntry("12+3", "15"),)


def test_failed_calculation_preserves_text(session):
    session.add_number("2")
    session.add_operator("+")
    assert session.calculate() == "Error"
    assert session.expression == "2+"
    assert session.history == ()


def test_empty_calculation(session):
    assert session.calculate() == "0"
    assert session.history == ()


def test_operator_rules(session):
    session.add_operator("*")
    assert session.expression == ""          # nothing to operate on
    session.add_operator("-")
    assert session.expression == "-"         # leading sign is allowed
    session.add_number("5")
    session.add_operator("+")
    session.add_operator("*")
    assert session.expression == "-5+"       # second binary operator ignored
    session.add_operator("-")
    session.add_number("2")
    assert session.expression == "-5+-2"
    assert session.calculate() == "-7"


def test_parentheses(session):
    session.add_operator("(")
    session.add_number("2")
    session.add_operator("+")
    session.add_number("3")
    session.add_operator(")")
    session.add_operator("*")
    session.add_number("4")
    assert session.calculate() == "20"


def test_operator_after_open_parenthesis_is_ignored(session):
    session.add_operator("(")
    for operator in "*/+^)":
        session.add_operator(operator)
    assert session.expression == "("
    session.add_operator("-")
    session.add_number("3")
    session.add_operator(")")
    assert session.calculate() == "-3"


def test_decimal_point(session):
    session.add_decimal()
    assert session.expression == "0."
    session.add_number("5")
    session.add_decimal()
    assert session.expression == "0.5"       # one point per number
    session.add_operator("+")
    session.add_decimal()
    session.add_number("25")
    assert session.expression == "0.5+0.25"
    assert session.calculate() == "0.75"


def test_cursor_editing(session):
    session.add_number("123")
    session.set_cursor_position(1)
    session.add_number("9")
    assert session.expression == "1923"
    assert session.cursor_position == 2

    session.backspace()
    assert session.expression == "123"
    assert session.cursor_position == 1

    session.set_cursor_position(99)
    assert session.cursor_position == 3
    session.set_cursor_position(-5)
    assert session.cursor_position == 0
    session.backspace()
    assert session.expression == "123"


def test_toggle_sign(session):
    session.toggle_sign()
    assert session.expression == ""
    session.add_number("5")
    session.toggle_sign()
    assert session.expression == "-5"
    assert session.cursor_position == 2
    session.toggle_sign()
    assert session.expression == "5"
    assert session.cursor_position == 1


def test_functions_and_constants(session):
    session.add_function("sin")
    session.add_number("90")
    session.add_operator(")")
    assert session.expression == "sin(90)"
    assert session.calculate() == "1"

    with pytest.raises(ValueError):
        session.add_function("asin")

    session.clear()
    session.add_number("2")
    session.add_operator("*")
    session.add_constant("π")
    assert session.expression == "2*π"
    with pytest.raises(ValueError):
        session.add_constant("x")


def test_square_and_square_root(session):
    session.add_number("5")
    session.add_square()
    assert session.calculate() == "25"

    session.clear()
    session.add_square_root()
    session.add_number("16")
    session.add_operator(")")
    assert session.expression == "√(16)"
    assert session.calculate() == "4"


def test_reciprocal_action(session):
    session.add_reciprocal()
    assert session.expression == ""

    session.add_number("2")
    session.add_operator("+")
    session.add_number("2")
    session.add_reciprocal()
    assert session.expression == "1/(2+2)"
    assert session.cursor_position == len("1/(2+2)")
    assert session.calculate() == "0.25"

    session.clear()
    session.add_number("0")
    session.add_reciprocal()
    assert session.calculate() == "Error"


def test_history_recall(session):
    session.add_number("2")
    session.add_operator("+")
    session.add_number("3")
    session.calculate()

    session.clear()
    session.load_from_history(session.history[0].result)
    session.add_operator("*")
    session.add_number("2")
    assert session.expression == "5*2"
    assert session.calculate() == "10"

    session.load_from_history("Error")
    assert session.expression == "5*2"

    oldest = session.history[-1]
    session.select_history(oldest)
    assert session.expression == "2+3"
    assert session.result == "5"
    assert session.cursor_position == 3


def test_clear(session):
    session.add_number("7")
    session.calculate()
    session.clear()
    assert (session.expression, session.result, session.cursor_position) == ("", "0", 0)
    assert len(session.history) == 1

    session.clear_history()
    assert session.history == ()


def test_number_before_square_root_is_an_error_in_both_pipelines():
    for rewrite in (False, True):
        session = CalculatorSession(Calculator(CalculatorConfig(rewrite_pipeline=rewrite)))
        session.add_number("2")
        session.add_square_root()
        session.add_number("4")
        session.add_operator(")")
        assert session.expression == "2√(4)"
        assert session.calculate() == "Error"
        assert session.history == ()
