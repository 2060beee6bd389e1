"""
Calculator facade: evaluation, result formatting and calculation history.
"""

import logging
import math
from collections import deque
from dataclasses import dataclass, asdict
from typing import Iterator, List, Optional, Tuple

from config import CalculatorConfig
from expression_engine import CalculationError, MathParser
from preprocessor import Preprocessor

logger = logging.getLogger(__name__)

ERROR_DISPLAY = "Error"
INFINITY_DISPLAY = "∞"

PLAIN_INTEGER_LIMIT = 1e10
SCIENTIFIC_LOWER_LIMIT = 1e-6


def format_result(value: float) -> str:
    """
    Render a result for display.

    NaN shows as "Error" and either infinity as "∞". Integral values below
    1e10 print without a decimal point. Very small or very large magnitudes
    switch to scientific notation with 6 fractional digits; everything else
    prints with up to 10 fractional digits, trailing zeros removed.
    """
    if math.isnan(value):
        return ERROR_DISPLAY
    if math.isinf(value):
        return INFINITY_DISPLAY

    magnitude = abs(value)
    if value == int(value) and magnitude < PLAIN_INTEGER_LIMIT:
        return str(int(value))
    if magnitude < SCIENTIFIC_LOWER_LIMIT or magnitude >= PLAIN_INTEGER_LIMIT:
        return f"{value:.6e}"
    return f"{value:.10f}".rstrip('0').rstrip('.')


# ==========================================
# HISTORY
# ==========================================

@dataclass(frozen=True)
class CalculationHistoryEntry:
    expression: str
    result: str

    def to_dict(self) -> dict:
        return asdict(self)

    def __str__(self) -> str:
        return f"{self.expression} = {self.result}"


class CalculationHistory:
    """Newest-first log of calculations, dropping the oldest beyond capacity"""

    def __init__(self, capacity: int = CalculatorConfig.DEFAULT_HISTORY_CAPACITY):
        if capacity <= 0:
            raise ValueError("History capacity must be positive")
        self.capacity = capacity
        self._entries = deque(maxlen=capacity)

    def record(self, expression: str, result: str) -> CalculationHistoryEntry:
        entry = CalculationHistoryEntry(expression, result)
        if len(self._entries) == self.capacity:
            logger.debug(f"History full, evicting: {self._entries[-1]}")
        self._entries.appendleft(entry)
        return entry

    def clear(self):
        self._entries.clear()

    @property
    def entries(self) -> Tuple[CalculationHistoryEntry, ...]:
        return tuple(self._entries)

    def latest(self, n: int = 5) -> List[CalculationHistoryEntry]:
        """The n most recent entries, newest first"""
        return list(self._entries)[:max(n, 0)]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[CalculationHistoryEntry]:
        return iter(tuple(self._entries))

    def __bool__(self) -> bool:
        return bool(self._entries)


# ==========================================
# CALCULATOR
# ==========================================

class Calculator:
    """Main calculator interface with history"""

    def __init__(self, config: Optional[CalculatorConfig] = None):
        self.config = config or CalculatorConfig()
        self.parser = MathParser(scientific=True)
        self.preprocessor = Preprocessor()
        self._history = CalculationHistory(self.config.history_capacity)

    def compute(self, expression: str) -> float:
        """Evaluate to a float, raising CalculationError subclasses on failure"""
        if self.config.rewrite_pipeline:
            return self.preprocessor.evaluate(expression)
        return self.parser.parse(expression)

    def canonical(self, expression: str) -> str:
        """Canonical text the rewrite pipeline hands to the evaluator"""
        return self.preprocessor.preprocess(expression)

    def evaluate(self, expression: str, record: bool = True) -> str:
        """
        Evaluate for display.

        Every failure collapses to "Error". Results other than "Error" are
        recorded in the history when record is set.
        """
        try:
            result = format_result(self.compute(expression))
        except CalculationError as e:
            logger.debug(f"Evaluation of {expression!r} failed: {e}")
            return ERROR_DISPLAY

        if record and result != ERROR_DISPLAY:
            self.record_history(expression, result)
        return result

    @property
    def history(self) -> Tuple[CalculationHistoryEntry, ...]:
        return self._history.entries

    def latest_history(self, n: int = 5) -> List[CalculationHistoryEntry]:
        return self._history.latest(n)

    def record_history(self, expression: str, result: str) -> CalculationHistoryEntry:
        return self._history.record(expression, result)

    def clear_history(self):
        """Clear calculation history"""
        self._history.clear()
