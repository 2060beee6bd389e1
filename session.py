"""
Editing session driven by calculator buttons.

Holds the expression being typed, the cursor inside it and the last result.
Every insertion happens at the cursor. Evaluation and history live in the
wrapped Calculator; this class only edits text.
"""

import logging
from typing import Optional, Tuple

from calculator import ERROR_DISPLAY, CalculationHistoryEntry, Calculator
from expression_engine import FUNCTIONS

logger = logging.getLogger(__name__)

BINARY_OPERATORS = '+-*/^'
# Operators that may follow another operator or open an empty expression
LEADING_OPERATORS = '-('
CONSTANT_SYMBOLS = ('π', 'e')


class CalculatorSession:
    """Expression editing state for one calculator screen"""

    def __init__(self, calculator: Optional[Calculator] = None):
        self.calculator = calculator or Calculator()
        self.expression = ""
        self.result = "0"
        self.cursor_position = 0

    # ------------------------------------------
    # Text editing
    # ------------------------------------------

    def _insert(self, text: str):
        position = self.cursor_position
        self.expression = self.expression[:position] + text + self.expression[position:]
        self.cursor_position = position + len(text)

    def _char_before_cursor(self) -> str:
        return self.expression[self.cursor_position - 1] if self.cursor_position > 0 else ''

    def set_cursor_position(self, position: int):
        self.cursor_position = min(max(position, 0), len(self.expression))

    def add_number(self, digits: str):
        if not digits.isdigit():
            raise ValueError(f"Not a number: {digits!r}")
        self._insert(digits)

    def add_decimal(self):
        """Add a decimal point unless the number at the cursor already has one"""
        head = self.expression[:self.cursor_position]
        number = head[len(head.rstrip('0123456789.')):]
        if not number:
            self._insert("0.")
        elif '.' not in number:
            self._insert(".")

    def add_operator(self, operator: str):
        """
        Insert an operator or parenthesis.

        Ignored on an empty expression and directly after another binary
        operator or an opening parenthesis, except for '-' (a sign) and '('.
        """
        if operator in LEADING_OPERATORS:
            self._insert(operator)
            return
        if not self.expression:
            return
        if self._char_before_cursor() in BINARY_OPERATORS + '(':
            logger.debug(f"Ignoring consecutive operator {operator!r}")
            return
        self._insert(operator)

    def add_function(self, name: str):
        if name not in FUNCTIONS:
            raise ValueError(f"Unknown function: {name}")
        self._insert(f"{name}(")

    def add_constant(self, symbol: str = 'π'):
        if symbol not in CONSTANT_SYMBOLS:
            raise ValueError(f"Unknown constant: {symbol}")
        self._insert(symbol)

    def add_square(self):
        self._insert('²')

    def add_square_root(self):
        self._insert('√(')

    def add_reciprocal(self):
        """Wrap the whole expression as 1/(...)"""
        if not self.expression:
            return
        self.expression = f"1/({self.expression})"
        self.cursor_position = len(self.expression)

    def toggle_sign(self):
        if not self.expression:
            return
        if self.expression.startswith('-'):
            self.expression = self.expression[1:]
            self.cursor_position = max(self.cursor_position - 1, 0)
        else:
            self.expression = '-' + self.expression
            self.cursor_position += 1

    def backspace(self):
        """Delete the character before the cursor"""
        if self.cursor_position == 0:
            return
        position = self.cursor_position
        self.expression = self.expression[:position - 1] + self.expression[position:]
        self.cursor_position = position - 1

    def clear(self):
        self.expression = ""
        self.result = "0"
        self.cursor_position = 0

    # ------------------------------------------
    # Evaluation and history
    # ------------------------------------------

    def calculate(self) -> str:
        """Evaluate the expression; the typed text is kept either way"""
        if not self.expression:
            self.result = "0"
            return self.result

        self.result = self.calculator.evaluate(self.expression)
        return self.result

    @property
    def history(self) -> Tuple[CalculationHistoryEntry, ...]:
        return self.calculator.history

    def clear_history(self):
        self.calculator.clear_history()

    def load_from_history(self, result: str):
        """Insert a previous result at the cursor"""
        if result == ERROR_DISPLAY:
            return
        self._insert(result)

    def select_history(self, entry: CalculationHistoryEntry):
        """Restore a history entry as the current expression and result"""
        self.expression = entry.expression
        self.result = entry.result
        self.cursor_position = len(entry.expression)
