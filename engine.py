"""
Calculator engine - immediate execution, left-to-right desk calculator.

The engine is a plain state machine driven by `handle_key`. The window only
sends key ids in and reads `display`, `base`, `pending_op`, `history` and
`operation_performed` back out after each key.

    7 + 3 =   ->  "7" typed, "+" stores 7 and stages add, "3" typed,
                  "=" computes 7 + 3 and shows "10"
"""

import math
import logging
from datetime import datetime

from formatting import (
    ERROR_MARKER, format_trimmed, parse_number, history_line, unary_line
)
from history import History

logger = logging.getLogger("calculator.engine")

# Number bases
BASE_DEC = "DEC"
BASE_BIN = "BIN"
BASE_HEX = "HEX"

# Key ids, as printed on the keys
KEY_CLEAR = "AC"
KEY_DELETE = "DEL"
KEY_POINT = "."
KEY_EQUALS = "="
KEY_SIGN = "+/-"
KEY_PERCENT = "%"
KEY_SQRT = "√"
KEY_RECIPROCAL = "1/x"
KEY_POWER = "xʸ"
KEY_ADD = "+"
KEY_SUB = "−"
KEY_MUL = "×"
KEY_DIV = "÷"
KEY_BIN = "BIN"
KEY_HEX = "HEX"
KEY_DEC = "DEC"
DIGIT_KEYS = tuple("0123456789")

ALL_KEYS = DIGIT_KEYS + (
    KEY_POINT, KEY_ADD, KEY_SUB, KEY_MUL, KEY_DIV, KEY_EQUALS, KEY_CLEAR,
    KEY_DELETE, KEY_SIGN, KEY_PERCENT, KEY_SQRT, KEY_RECIPROCAL, KEY_POWER,
    KEY_BIN, KEY_HEX, KEY_DEC,
)

OPERATOR_KEYS = {
    KEY_ADD: "add",
    KEY_SUB: "sub",
    KEY_MUL: "mul",
    KEY_DIV: "div",
    KEY_POWER: "pow",
}

OP_SYMBOLS = {
    "add": "+", "sub": "−", "mul": "×", "div": "÷", "pow": "^"
}

_BASE_DIGITS = {
    BASE_BIN: (2, set("01")),
    BASE_HEX: (16, set("0123456789ABCDEF")),
}


def compute(a, op, b):
    """Apply a binary operator. Division by zero gives +inf."""
    if op == "add":
        return a + b
    elif op == "sub":
        return a - b
    elif op == "mul":
        return a * b
    elif op == "div":
        return math.inf if b == 0 else a / b
    elif op == "pow":
        return _power(a, b)
    return b


def compute_percent(a, op, b):
    """Apply a binary operator whose right operand was entered as a percentage."""
    if op == "add":
        return a + (b * a) / 100
    elif op == "sub":
        return a - (b * a) / 100
    elif op == "mul":
        return a * (b / 100)
    elif op == "div":
        return compute(a, "div", b / 100)
    elif op == "pow":
        return _power(a, b / 100)
    return b


def _power(a, b):
    try:
        return math.pow(a, b)
    except OverflowError:
        return math.inf
    except ValueError:
        # 0 ** negative, negative ** fraction
        return math.nan


class CalculatorEngine:
    """Key-driven calculator state"""

    def __init__(self, history=None, clock=None):
        self.history = history if history is not None else History()
        self._clock = clock or datetime.now
        self.all_clear()

    # --- Entry point ---
    def handle_key(self, key):
        """Process one key press. Never raises."""
        try:
            self._dispatch(key)
        except Exception:
            logger.exception("Unexpected error handling key %r", key)
            self.display = ERROR_MARKER
            self.is_typing = False
            self.pending_op = None
            self.percent_pending = False
        self.dump_state(key)

    def _dispatch(self, key):
        if key == KEY_CLEAR:
            self.all_clear()
            return

        if key == KEY_DEC:
            self.to_decimal()
            return

        if self.base != BASE_DEC:
            logger.debug("Key %r ignored in %s mode", key, self.base)
            return

        if key in DIGIT_KEYS or key == KEY_POINT:
            # A displayed result is discarded by new entry
            if self.pending_op is None and self.accumulator is not None:
                self.all_clear()
            if key == KEY_POINT:
                self.input_decimal_point()
            else:
                self.input_digit(key)
        elif key in OPERATOR_KEYS:
            self.operation_performed = True
            self.set_pending_operator(OPERATOR_KEYS[key])
        elif key == KEY_EQUALS:
            self.operation_performed = True
            self.evaluate()
        elif key == KEY_PERCENT:
            self.operation_performed = True
            if self.pending_op is None:
                self.apply_percent()
            else:
                self.percent_pending = True
                self.evaluate()
        elif key == KEY_SQRT:
            self.operation_performed = True
            self.apply_sqrt()
        elif key == KEY_RECIPROCAL:
            self.operation_performed = True
            self.apply_reciprocal()
        elif key == KEY_SIGN:
            self.operation_performed = True
            self.toggle_sign()
        elif key == KEY_BIN:
            self.operation_performed = True
            self.to_binary()
        elif key == KEY_HEX:
            self.operation_performed = True
            self.to_hex()
        elif key == KEY_DELETE:
            self.delete()
        else:
            logger.debug("Unknown key %r", key)

    # --- Observable state ---
    @property
    def pending_symbol(self):
        """Symbol of the staged operator, or '' when idle"""
        return OP_SYMBOLS.get(self.pending_op, "")

    @property
    def is_error(self):
        return self.display == ERROR_MARKER

    def display_value(self):
        """Numeric value of the display, 0 when it does not parse"""
        value = parse_number(self.display)
        if value is None:
            logger.warning("Display %r is not a number, using 0", self.display)
            return 0.0
        return value

    # --- Entry ---
    def input_digit(self, digit):
        if self.is_typing:
            # No leading zeros
            if self.display == "0":
                self.display = digit
            else:
                self.display += digit
        else:
            self.display = digit
            self.is_typing = True

    def input_decimal_point(self):
        if self.is_typing:
            if "." not in self.display:
                self.display += "."
        else:
            self.display = "0."
            self.is_typing = True

    def delete(self):
        """Remove the last character of the display"""
        if self.display == ERROR_MARKER:
            self.display = "0"
        else:
            self.display = self.display[:-1]
            if self.display in ("", "-"):
                self.display = "0"
        self.sync_accumulator_if_idle()

    # --- Binary operations ---
    def set_pending_operator(self, op):
        """Stage `op`, folding any pending operation first (no precedence)"""
        if self.base != BASE_DEC:
            return

        if self.is_typing:
            value = self.display_value()
            if self.accumulator is None or self.pending_op is None:
                self.accumulator = value
            else:
                result = compute(self.accumulator, self.pending_op, value)
                if not math.isfinite(result):
                    self._non_finite_result(self.accumulator, self.pending_op, value)
                    return
                self.accumulator = result
                self.display = format_trimmed(result)
            self.is_typing = False
        elif self.accumulator is None:
            self.accumulator = self.display_value()

        self.pending_op = op

    def evaluate(self):
        """Compute the pending operation ('=' key)"""
        if self.pending_op is None or self.base != BASE_DEC:
            return

        op = self.pending_op
        lhs = self.accumulator if self.accumulator is not None else 0.0
        rhs = self.display_value()
        if self.percent_pending:
            result = compute_percent(lhs, op, rhs)
        else:
            result = compute(lhs, op, rhs)

        if not math.isfinite(result):
            self._non_finite_result(lhs, op, rhs)
            return

        self.display = format_trimmed(result)
        self.accumulator = result
        self._add_binary_line(lhs, op, rhs, self.display)

        self.pending_op = None
        self.is_typing = False
        self.percent_pending = False

    def _non_finite_result(self, lhs, op, rhs):
        """Show the error marker and drop every operand"""
        logger.info("Non-finite result for %s %s %s", lhs, op, rhs)
        self.display = ERROR_MARKER
        self._add_binary_line(lhs, op, rhs, ERROR_MARKER)
        self.accumulator = None
        self.pending_op = None
        self.is_typing = False
        self.percent_pending = False

    def _add_binary_line(self, lhs, op, rhs, result):
        self.history.add(history_line(
            format_trimmed(lhs), OP_SYMBOLS[op], format_trimmed(rhs), result,
            percent=self.percent_pending, now=self._clock()
        ))

    def all_clear(self):
        """Reset everything except the history"""
        self.display = "0"
        self.accumulator = None
        self.pending_op = None
        self.is_typing = False
        self.percent_pending = False
        self.base = BASE_DEC
        self.operation_performed = False

    # --- Unary operations ---
    def toggle_sign(self):
        value = self.display_value()
        self._finish_unary("+/-", value, -value)

    def apply_percent(self):
        value = self.display_value()
        self._finish_unary("%", value, value / 100.0)

    def apply_sqrt(self):
        value = self.display_value()
        if value < 0:
            self._domain_error(KEY_SQRT, format_trimmed(value))
            return
        self._finish_unary(KEY_SQRT, value, math.sqrt(value))

    def apply_reciprocal(self):
        value = self.display_value()
        if value == 0:
            self._domain_error(KEY_RECIPROCAL, format_trimmed(value))
            return
        self._finish_unary(KEY_RECIPROCAL, value, 1.0 / value)

    def _finish_unary(self, symbol, value, result):
        if not math.isfinite(result):
            self._domain_error(symbol, format_trimmed(value))
            return
        self.display = format_trimmed(result)
        self.is_typing = False
        self.sync_accumulator_if_idle()
        self.history.add(unary_line(
            symbol, format_trimmed(value), self.display, now=self._clock()
        ))

    def _domain_error(self, symbol, operand):
        """Show the error marker; the accumulator is left as it was"""
        logger.info("Domain error: %s %s", symbol, operand)
        self.display = ERROR_MARKER
        self.is_typing = False
        self.history.add(unary_line(symbol, operand, ERROR_MARKER, now=self._clock()))

    def sync_accumulator_if_idle(self):
        """Keep the accumulator equal to the display while nothing is pending"""
        if self.pending_op is None and not self.is_typing:
            value = parse_number(self.display)
            if value is not None:
                self.accumulator = value

    # --- Base conversion ---
    def to_binary(self):
        self._to_base(BASE_BIN)

    def to_hex(self):
        self._to_base(BASE_HEX)

    def _to_base(self, base):
        if self.base != BASE_DEC:
            return

        value = parse_number(self.display)
        if value is None or value != round(value):
            self._domain_error(base, self.display)
            return
        if value < 0:
            self._domain_error(base, format_trimmed(value))
            return

        number = int(value)
        if base == BASE_BIN:
            result = format(number, "b")
        else:
            result = format(number, "X")

        self.display = result
        self.is_typing = False
        self.base = base
        self.history.add(unary_line(
            base, format_trimmed(value), result, now=self._clock()
        ))

    def to_decimal(self):
        """Convert a BIN/HEX display back to decimal and resume arithmetic"""
        if self.base == BASE_DEC:
            return

        text = self.display.strip()
        upper = text.upper()
        negative = upper.startswith("-")
        digits = upper[1:] if negative else upper
        radix, allowed = _BASE_DIGITS[self.base]

        if not digits or not set(digits) <= allowed:
            self._domain_error(KEY_DEC, f"{self.base} {text}")
            return

        number = int(digits, radix)
        value = float(-number if negative else number)
        sign = "-" if negative else ""
        source = f"{self.base} {sign}{digits}"

        self.display = format_trimmed(value)
        self.is_typing = False
        self.base = BASE_DEC
        self.sync_accumulator_if_idle()
        self.history.add(unary_line(KEY_DEC, source, self.display, now=self._clock()))

    # --- Debugging ---
    def dump_state(self, where):
        logger.debug(
            "[STATE @ %s] display=%s accumulator=%s pending_op=%s typing=%s base=%s",
            where, self.display, self.accumulator, self.pending_op,
            self.is_typing, self.base
        )
