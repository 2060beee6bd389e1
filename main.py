#!/usr/bin/env python3
"""
Scientific Calculator REPL
Evaluates calculator expressions with functions, constants and postfix operators
"""

import argparse
import logging
import sys
from typing import List, Optional

from calculator import ERROR_DISPLAY, Calculator, format_result
from config import CalculatorConfig, setup_logging
from expression_engine import CONSTANTS, FUNCTIONS

logger = logging.getLogger(__name__)

HISTORY_SHOWN = 10


def print_banner():
    print("=" * 60)
    print("SCIENTIFIC CALCULATOR")
    print("=" * 60)
    print()
    print("Features:")
    print("  • Basic: +, -, *, /, ^ (folds left: 2^3^2 = 64)")
    print("  • Postfix: x² square, x! factorial, x% percent")
    print("  • Functions (degrees): sin, cos, tan, log, ln, sqrt, √")
    print("  • Constants: π (pi), e")
    print("  • Examples: 5², 5!, 50%, sin(30)+cos(60), 1/(2+2)")
    print()
    print("Commands:")
    print("  help             - Show this help")
    print("  history          - Show calculation history")
    print("  canonical <expr> - Show the rewritten form of an expression")
    print("  clear            - Clear history")
    print("  quit             - Exit calculator")
    print("=" * 60)
    print()


def show_help():
    print("\nAvailable functions:")
    for func in FUNCTIONS:
        print(f"  {func}", end="  ")
    print("\n\nAvailable constants:")
    for const, value in CONSTANTS.items():
        print(f"  {const} = {value}")
    print()


def show_history(calc: Calculator, n: int = HISTORY_SHOWN):
    """Display last n calculations, oldest of them first"""
    for entry in reversed(calc.latest_history(n)):
        print(f"  {entry}")


def evaluate_line(calc: Calculator, expression: str) -> str:
    """Evaluate one expression, raising ValueError with the failure reason"""
    result = format_result(calc.compute(expression))
    if result == ERROR_DISPLAY:
        raise ValueError("Result is not a number")
    calc.record_history(expression, result)
    return result


def repl(calc: Calculator):
    print_banner()

    while True:
        try:
            user_input = input("calc> ").strip()

            if not user_input:
                continue

            command = user_input.lower()
            if command == 'quit':
                print("Goodbye!")
                break
            elif command == 'help':
                show_help()
            elif command == 'history':
                if calc.history:
                    print("\nRecent calculations:")
                    show_history(calc)
                else:
                    print("No history yet")
                print()
            elif command == 'clear':
                calc.clear_history()
                print("Cleared history\n")
            elif command.startswith('canonical '):
                print(f"  {calc.canonical(user_input[len('canonical '):])}\n")
            else:
                print(f"= {evaluate_line(calc, user_input)}\n")

        except ValueError as e:
            print(f"Error: {e}\n")
        except (KeyboardInterrupt, EOFError):
            print("\nGoodbye!")
            break
        except Exception as e:
            print(f"Unexpected error: {e}\n")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Scientific calculator")
    parser.add_argument('-e', '--expression', help="evaluate EXPRESSION once and exit")
    parser.add_argument('--rewrite', action='store_true',
                        help="evaluate through the text rewrite pipeline")
    args = parser.parse_args(argv)

    try:
        config = CalculatorConfig.from_env()
    except ValueError as e:
        print(f"CRITICAL ERROR: {e}", file=sys.stderr)
        return 2
    if args.rewrite:
        config.rewrite_pipeline = True

    setup_logging(config)
    calc = Calculator(config)
    logger.info(f"Calculator started (rewrite pipeline: {config.rewrite_pipeline})")

    if args.expression is not None:
        try:
            print(evaluate_line(calc, args.expression))
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        return 0

    repl(calc)
    return 0


if __name__ == "__main__":
    sys.exit(main())
