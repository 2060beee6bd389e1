"""
Rewrite preprocessor.

Turns calculator input into canonical text (numbers, + - * / ^ and
parentheses) through a fixed sequence of textual rewrites, each repeated
until it no longer matches:

    symbols -> squares -> percents -> factorials -> functions -> reciprocals

Every substituted value is spliced back as a plain decimal literal, so the
result can be handed straight to the canonical evaluator.
"""

import logging
import math
import re
from typing import Callable, Optional, Tuple

from expression_engine import (
    CONSTANTS,
    FUNCTIONS,
    OPERATOR_GLYPHS,
    DivisionByZeroError,
    DomainError,
    ExpressionSyntaxError,
    MathParser,
    factorial,
    percent,
    square,
    strip_whitespace,
)

logger = logging.getLogger(__name__)

# Not glued to a preceding number or exponent ("1e+16" must not yield "16")
_UNATTACHED = r'(?<![\d.eE])(?<![eE][+-])'

_SQUARE = re.compile(_UNATTACHED + r'(\d+\.?\d*|\.\d+)²')
_PERCENT = re.compile(_UNATTACHED + r'(\d+\.?\d*|\.\d+)%')
_FACTORIAL = re.compile(r'(-?)' + _UNATTACHED + r'(\d+)!')
_CONSTANT = re.compile(r'π|pi|(?<![\d.])e')
_CALL = re.compile(r'(?<![A-Za-z])(' + '|'.join(FUNCTIONS) + r')\(')
_RECIPROCAL = re.compile(r'(?<![\d.])1/')
_UNSIGNED_NUMBER = re.compile(r'\d+\.?\d*|\.\d+')

# Characters after which a '-' is a sign rather than a subtraction
_SIGN_CONTEXT = '+-*/^('

# Neighbours that would fuse with a spliced literal into another number
_FUSING = re.compile(r'[A-Za-z0-9.]')


def _check_neighbours(text: str, start: int, end: int, check_before: bool = True):
    """Reject a splice of text[start:end] that would run into the characters around it"""
    if check_before and start > 0:
        before = text[start - 1]
        if before == ')' or _FUSING.match(before):
            raise ExpressionSyntaxError(
                f"Unexpected character at position {start - 1}: {before}", start - 1
            )
    if end < len(text):
        after = text[end]
        if after == '(' or _FUSING.match(after):
            raise ExpressionSyntaxError(f"Unexpected character at position {end}: {after}", end)


def _literal(value: float) -> str:
    if not math.isfinite(value):
        raise DomainError(f"Intermediate result is not a finite number: {value}")
    return repr(float(value))


def _integer_literal(value: float) -> str:
    # Keeps chained factorials ("3!!" -> "6!") matching the integer pattern
    return str(int(value))


def _matching_paren(text: str, open_index: int) -> Optional[int]:
    """Index of the ')' closing the '(' at open_index"""
    depth = 0
    for index in range(open_index, len(text)):
        if text[index] == '(':
            depth += 1
        elif text[index] == ')':
            depth -= 1
            if depth == 0:
                return index
    return None


def _to_fixed_point(text: str, pattern: re.Pattern, replace: Callable[[re.Match], str]) -> str:
    while True:
        rewritten = pattern.sub(replace, text)
        if rewritten == text:
            return text
        logger.debug(f"Rewrote {text!r} -> {rewritten!r}")
        text = rewritten


def _is_reciprocal_context(text: str, start: int) -> bool:
    """
    True when rewriting the '1/' at start gives the same value as dividing.

    Plain '1/' must open the text or follow '(' or '*'. After a run of
    signs it may follow anything except '^', '/' or an exponent marker,
    where the sign belongs to a tighter binding operand.
    """
    index = start
    while index > 0 and text[index - 1] in '+-':
        index -= 1
    before = text[index - 1] if index > 0 else ''

    if index == start:
        return before in ('', '(', '*')
    return before not in ('^', '/', 'e', 'E')


class Preprocessor:
    """Rewrites raw calculator input into canonical evaluator input"""

    def __init__(self, evaluator: Optional[MathParser] = None):
        self.evaluator = evaluator or MathParser(scientific=False)

    def preprocess(self, expression: str) -> str:
        """Apply every rewrite stage and return canonical text"""
        text = strip_whitespace(expression)
        text = self.substitute_symbols(text)
        text = self.rewrite_squares(text)
        text = self.rewrite_percents(text)
        text = self.rewrite_factorials(text)
        text = self.resolve_functions(text)
        text = self.resolve_reciprocals(text)
        logger.debug(f"Canonical form of {expression!r}: {text!r}")
        return text

    def evaluate(self, expression: str) -> float:
        """Preprocess and evaluate in one call"""
        return self.evaluator.parse(self.preprocess(expression))

    # ------------------------------------------
    # Stage 1: glyphs and constants
    # ------------------------------------------

    def substitute_symbols(self, text: str) -> str:
        for glyph, operator in OPERATOR_GLYPHS.items():
            text = text.replace(glyph, operator)
        text = text.replace('√', 'sqrt')

        def replace(match: re.Match) -> str:
            source = match.string
            before = source[match.start() - 1] if match.start() > 0 else ''
            after = source[match.end()] if match.end() < len(source) else ''
            # Juxtaposition would silently glue two numbers together
            if before and (before.isalnum() or before in '.)π'):
                raise ExpressionSyntaxError(
                    f"Unexpected constant at position {match.start()}: {match.group()}", match.start()
                )
            if after and (after.isalnum() or after in '.(π'):
                raise ExpressionSyntaxError(
                    f"Unexpected character at position {match.end()}: {after}", match.end()
                )
            return _literal(CONSTANTS[match.group()])

        return _CONSTANT.sub(replace, text)

    # ------------------------------------------
    # Stages 2-4: postfix operators on literals
    # ------------------------------------------

    def rewrite_squares(self, text: str) -> str:
        def replace(match: re.Match) -> str:
            _check_neighbours(match.string, match.start(), match.end())
            return _literal(square(float(match.group(1))))

        return _to_fixed_point(text, _SQUARE, replace)

    def rewrite_percents(self, text: str) -> str:
        def replace(match: re.Match) -> str:
            _check_neighbours(match.string, match.start(), match.end())
            return _literal(percent(float(match.group(1))))

        return _to_fixed_point(text, _PERCENT, replace)

    def rewrite_factorials(self, text: str) -> str:
        def replace(match: re.Match) -> str:
            sign, digits = match.group(1), match.group(2)
            # The character before may be the minuend of a subtraction
            _check_neighbours(match.string, match.start(), match.end(), check_before=False)
            before = match.string[match.start() - 1] if match.start() > 0 else ''
            if not sign or not before or before in _SIGN_CONTEXT:
                return _integer_literal(factorial(int(sign + digits)))
            # Subtraction: only the operand is rewritten
            return sign + _integer_literal(factorial(int(digits)))

        return _to_fixed_point(text, _FACTORIAL, replace)

    # ------------------------------------------
    # Stage 5: named functions
    # ------------------------------------------

    def resolve_functions(self, text: str) -> str:
        """Resolve calls bottom-up until none remain"""
        while _CALL.search(text):
            resolved = 0
            for name in FUNCTIONS:
                text, count = self._resolve_calls(text, name)
                resolved += count
            if not resolved:
                match = _CALL.search(text)
                raise ExpressionSyntaxError(
                    f"Cannot resolve call at position {match.start()}: {match.group(1)}", match.start()
                )
        return text

    def _resolve_calls(self, text: str, name: str) -> Tuple[str, int]:
        """Resolve every innermost call of one function, returning the new text and count"""
        resolved = 0
        search_from = 0

        while True:
            match = _CALL.search(text, search_from)
            while match and match.group(1) != name:
                match = _CALL.search(text, match.end())
            if not match:
                return text, resolved

            open_index = match.end() - 1
            close_index = _matching_paren(text, open_index)
            if close_index is None:
                raise ExpressionSyntaxError(
                    f"Missing closing parenthesis for {name} at position {match.start()}", match.start()
                )

            argument = text[open_index + 1:close_index]
            if _CALL.search(argument):
                # Inner calls first
                search_from = match.end()
                continue

            _check_neighbours(text, match.start(), close_index + 1)
            value = FUNCTIONS[name](self.evaluator.parse(argument))
            logger.debug(f"Resolved {name}({argument}) -> {value!r}")
            text = text[:match.start()] + _literal(value) + text[close_index + 1:]
            resolved += 1
            search_from = 0

    # ------------------------------------------
    # Stage 6: reciprocals
    # ------------------------------------------

    def resolve_reciprocals(self, text: str) -> str:
        """Replace 1/(expr) and 1/number with the literal inverse"""
        search_from = 0

        while True:
            match = _RECIPROCAL.search(text, search_from)
            if not match:
                return text
            search_from = match.end()
            if not _is_reciprocal_context(text, match.start()):
                continue

            operand_start = match.end()
            if text.startswith('(', operand_start):
                close_index = _matching_paren(text, operand_start)
                if close_index is None:
                    raise ExpressionSyntaxError(
                        f"Missing closing parenthesis at position {operand_start}", operand_start
                    )
                operand_end = close_index + 1
            else:
                number = _UNSIGNED_NUMBER.match(text, operand_start)
                if not number:
                    continue
                operand_end = number.end()

            # A power or exponent binds tighter than the division
            if operand_end < len(text) and text[operand_end] in '^eE':
                continue

            _check_neighbours(text, match.start(), operand_end, check_before=False)
            value = self.evaluator.parse(text[operand_start:operand_end])
            if value == 0:
                raise DivisionByZeroError("Reciprocal of zero")
            text = text[:match.start()] + _literal(1 / value) + text[operand_end:]
            search_from = 0
