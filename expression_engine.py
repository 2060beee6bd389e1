"""
Expression engine for the scientific calculator.

Tokenizer and recursive descent parser shared by two evaluation modes:

* canonical mode accepts only numbers, + - * / ^ and parentheses, the form
  produced by the rewrite preprocessor;
* scientific mode additionally accepts constants, function calls and the
  postfix square, factorial and percent operators in a single pass.

Power folds to the left: 2^3^2 is (2^3)^2.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

MAX_FACTORIAL = 20
TRIG_SNAP_TOLERANCE = 1e-12

# ==========================================
# ERRORS
# ==========================================

class CalculationError(ValueError):
    """Base class for every evaluation failure"""


class ExpressionSyntaxError(CalculationError):
    """Malformed expression: bad character, trailing input, unbalanced parenthesis"""

    def __init__(self, message: str, position: Optional[int] = None):
        super().__init__(message)
        self.position = position


class DivisionByZeroError(CalculationError):
    """Division, percent or reciprocal with a zero divisor"""


class DomainError(CalculationError):
    """Operand outside the domain of an operator (factorial, non-finite literal)"""


# ==========================================
# MATH PRIMITIVES
# ==========================================

def _snap(value: float) -> float:
    """Round trig results that only miss an integer by floating point noise"""
    if not math.isfinite(value):
        return value
    nearest = round(value)
    if abs(value - nearest) < TRIG_SNAP_TOLERANCE:
        return float(nearest)
    return value


def _degrees_trig(func: Callable[[float], float]) -> Callable[[float], float]:
    def apply(degrees: float) -> float:
        if not math.isfinite(degrees):
            return math.nan
        return _snap(func(math.radians(degrees)))
    apply.__name__ = func.__name__
    return apply


def _log10(x: float) -> float:
    if x == 0:
        return -math.inf
    if x < 0 or math.isnan(x):
        return math.nan
    return math.log10(x)


def _ln(x: float) -> float:
    if x == 0:
        return -math.inf
    if x < 0 or math.isnan(x):
        return math.nan
    return math.log(x)


def _sqrt(x: float) -> float:
    if x < 0 or math.isnan(x):
        return math.nan
    return math.sqrt(x)


def power(base: float, exponent: float) -> float:
    """C pow semantics: NaN for a negative base with a fractional exponent"""
    odd_exponent = float(exponent).is_integer() and int(exponent) % 2 == 1
    try:
        return math.pow(base, exponent)
    except OverflowError:
        if base < 0 and odd_exponent:
            return -math.inf
        return math.inf
    except ValueError:
        if base == 0:
            # -0.0 to a negative odd power keeps its sign
            return math.copysign(math.inf, base) if odd_exponent else math.inf
        return math.nan


def factorial(value: float) -> float:
    """Exact factorial of an integer in [0, MAX_FACTORIAL]"""
    if not math.isfinite(value) or not float(value).is_integer():
        raise DomainError(f"Factorial requires an integer, got {value}")
    n = int(value)
    if n < 0:
        raise DomainError(f"Factorial of negative number: {n}")
    if n > MAX_FACTORIAL:
        raise DomainError(f"Factorial argument exceeds {MAX_FACTORIAL}: {n}")

    result = 1
    for i in range(2, n + 1):
        result *= i
    return float(result)


def percent(value: float) -> float:
    return value / 100


def square(value: float) -> float:
    return value * value


# Order matters to the rewrite preprocessor, which resolves them in turn
FUNCTIONS: Dict[str, Callable[[float], float]] = {
    'sin': _degrees_trig(math.sin),
    'cos': _degrees_trig(math.cos),
    'tan': _degrees_trig(math.tan),
    'log': _log10,
    'ln': _ln,
    'sqrt': _sqrt,
}

CONSTANTS: Dict[str, float] = {
    'π': math.pi,
    'pi': math.pi,
    'e': math.e,
}

POSTFIX_OPERATORS: Dict[str, Callable[[float], float]] = {
    '²': square,
    '!': factorial,
    '%': percent,
}

# Display glyphs accepted in place of the ASCII operators
OPERATOR_GLYPHS = {
    '×': '*',
    '÷': '/',
    '−': '-',
}

# ==========================================
# TOKENS
# ==========================================

class TokenType(Enum):
    NUMBER = "NUMBER"
    OPERATOR = "OPERATOR"
    POSTFIX = "POSTFIX"
    FUNCTION = "FUNCTION"
    CONSTANT = "CONSTANT"
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"


@dataclass
class Token:
    type: TokenType
    value: object
    position: int


@dataclass
class ParserState:
    """Cursor over the tokens of a single parse call"""
    text: str
    tokens: List[Token] = field(default_factory=list)
    position: int = 0

    def current(self) -> Optional[Token]:
        return self.tokens[self.position] if self.position < len(self.tokens) else None

    def peek(self, offset: int = 1) -> Optional[Token]:
        index = self.position + offset
        return self.tokens[index] if index < len(self.tokens) else None

    def consume(self) -> Optional[Token]:
        token = self.current()
        if token:
            self.position += 1
        return token

    def at_operator(self, operators: str) -> bool:
        token = self.current()
        return bool(token) and token.type == TokenType.OPERATOR and token.value in operators

    def end_position(self) -> int:
        return len(self.text)


_WHITESPACE = re.compile(r'\s+')
_NUMBER = re.compile(r'(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?')
_NAME = re.compile(r'[A-Za-z]+')


def strip_whitespace(expression: str) -> str:
    return _WHITESPACE.sub('', expression)


# ==========================================
# PARSER
# ==========================================

class MathParser:
    """Recursive descent parser for calculator expressions"""

    def __init__(self, scientific: bool = True):
        self.scientific = scientific
        self.functions = FUNCTIONS
        self.constants = CONSTANTS

    def tokenize(self, expression: str) -> List[Token]:
        """Convert expression string into tokens"""
        tokens = []
        i = 0

        while i < len(expression):
            char = expression[i]

            # Numbers (including decimals and scientific notation)
            match = _NUMBER.match(expression, i)
            if match:
                tokens.append(Token(TokenType.NUMBER, float(match.group()), i))
                i = match.end()
                continue

            if char in '+-*/^':
                tokens.append(Token(TokenType.OPERATOR, char, i))
            elif char == '(':
                tokens.append(Token(TokenType.LPAREN, '(', i))
            elif char == ')':
                tokens.append(Token(TokenType.RPAREN, ')', i))
            elif not self.scientific:
                raise ExpressionSyntaxError(f"Unexpected character at position {i}: {char}", i)
            elif char in OPERATOR_GLYPHS:
                tokens.append(Token(TokenType.OPERATOR, OPERATOR_GLYPHS[char], i))
            elif char in POSTFIX_OPERATORS:
                tokens.append(Token(TokenType.POSTFIX, char, i))
            elif char == '√':
                tokens.append(Token(TokenType.FUNCTION, 'sqrt', i))
            elif char == 'π':
                tokens.append(Token(TokenType.CONSTANT, char, i))
            elif _NAME.match(expression, i):
                word = _NAME.match(expression, i).group()
                if word in self.constants:
                    tokens.append(Token(TokenType.CONSTANT, word, i))
                elif word in self.functions:
                    tokens.append(Token(TokenType.FUNCTION, word, i))
                else:
                    raise ExpressionSyntaxError(f"Unknown identifier at position {i}: {word}", i)
                i += len(word)
                continue
            else:
                raise ExpressionSyntaxError(f"Unexpected character at position {i}: {char}", i)
            i += 1

        return tokens

    def parse(self, expression: str) -> float:
        """Parse and evaluate mathematical expression"""
        text = strip_whitespace(expression)
        state = ParserState(text=text, tokens=self.tokenize(text))
        try:
            result = self._parse_expression(state)
        except RecursionError:
            raise ExpressionSyntaxError("Expression nested too deeply") from None

        token = state.current()
        if token is not None:
            raise ExpressionSyntaxError(
                f"Unexpected token at position {token.position}: {token.value}", token.position
            )

        logger.debug(f"Parsed {text!r} -> {result!r}")
        return result

    def _parse_expression(self, state: ParserState) -> float:
        """Parse additive expression (lowest precedence)"""
        left = self._parse_term(state)

        while state.at_operator('+-'):
            op = state.consume().value
            right = self._parse_term(state)
            left = left + right if op == '+' else left - right

        return left

    def _parse_term(self, state: ParserState) -> float:
        """Parse multiplicative expression"""
        left = self._parse_power(state)

        while state.at_operator('*/'):
            op = state.consume().value
            right = self._parse_power(state)
            if op == '*':
                left = left * right
            else:
                if right == 0:
                    raise DivisionByZeroError("Division by zero")
                left = left / right

        return left

    def _parse_power(self, state: ParserState) -> float:
        """Parse power expression, folding each '^' into the running result"""
        left = self._parse_unary(state)

        while state.at_operator('^'):
            state.consume()
            right = self._parse_unary(state)
            left = power(left, right)

        return left

    def _parse_unary(self, state: ParserState) -> float:
        if state.at_operator('-'):
            state.consume()
            # A sign written directly on a factorial operand belongs to it: -3! is (-3)!
            following = state.peek(1)
            token = state.current()
            if (self.scientific and token and token.type == TokenType.NUMBER
                    and following and following.type == TokenType.POSTFIX and following.value == '!'):
                state.consume()
                return self._parse_postfix(state, -token.value)
            return -self._parse_unary(state)

        if state.at_operator('+'):
            state.consume()
            return self._parse_unary(state)

        if self.scientific:
            return self._parse_postfix(state, self._parse_primary(state))
        return self._parse_primary(state)

    def _parse_postfix(self, state: ParserState, value: float) -> float:
        token = state.current()
        while token and token.type == TokenType.POSTFIX:
            state.consume()
            value = POSTFIX_OPERATORS[token.value](value)
            token = state.current()
        return value

    def _parse_primary(self, state: ParserState) -> float:
        """Parse individual factors (numbers, constants, functions, parentheses)"""
        token = state.current()

        if not token:
            position = state.end_position()
            raise ExpressionSyntaxError(f"Expected a number at position {position}", position)

        if token.type == TokenType.NUMBER:
            state.consume()
            return token.value

        if token.type == TokenType.CONSTANT:
            state.consume()
            return self.constants[token.value]

        if token.type == TokenType.FUNCTION:
            state.consume()
            argument = self._parse_parenthesized(state, f"function {token.value}")
            return self.functions[token.value](argument)

        if token.type == TokenType.LPAREN:
            return self._parse_parenthesized(state, "parenthesis")

        raise ExpressionSyntaxError(
            f"Unexpected token at position {token.position}: {token.value}", token.position
        )

    def _parse_parenthesized(self, state: ParserState, context: str) -> float:
        token = state.current()
        if not token or token.type != TokenType.LPAREN:
            position = token.position if token else state.end_position()
            raise ExpressionSyntaxError(f"Expected '(' after {context}", position)
        state.consume()

        result = self._parse_expression(state)

        token = state.current()
        if not token or token.type != TokenType.RPAREN:
            position = token.position if token else state.end_position()
            raise ExpressionSyntaxError(f"Missing closing parenthesis for {context}", position)
        state.consume()

        return result


def evaluate_canonical(expression: str) -> float:
    """Evaluate an expression holding only numbers, + - * / ^ and parentheses"""
    return MathParser(scientific=False).parse(expression)
