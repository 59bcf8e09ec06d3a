"""
Number and history-line formatting for the calculator engine.
"""

import math
import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_EVEN, localcontext

logger = logging.getLogger("calculator.formatting")

ERROR_MARKER = "Error"

# Enough precision to quantize any finite float (max ~1.8e308) to 8 places
_DECIMAL_PRECISION = 400


def format_trimmed(value, max_fraction_digits=8):
    """Render a float with '.' as decimal point, no grouping and up to
    `max_fraction_digits` fraction digits, trailing zeros removed."""
    if not math.isfinite(value):
        return str(value)

    quantum = Decimal(1).scaleb(-max_fraction_digits)
    with localcontext() as ctx:
        ctx.prec = _DECIMAL_PRECISION
        rounded = Decimal(repr(float(value))).quantize(quantum, rounding=ROUND_HALF_EVEN)

    text = format(rounded, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if text == "-0":
        text = "0"
    return text


def parse_number(text, default=None):
    """Parse a display string as a finite float, or return `default`."""
    try:
        value = float(text)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(value):
        return default
    return value


def time_stamp(now=None):
    """Time of day as shown in history lines, e.g. '14:32:08'."""
    now = now or datetime.now()
    return now.strftime("%H:%M:%S")


def history_line(lhs, op_symbol, rhs, result, percent=False, now=None):
    suffix = "%" if percent else ""
    return f"[{time_stamp(now)}] {lhs} {op_symbol} {rhs}{suffix} = {result}"


def unary_line(op_symbol, operand, result, now=None):
    return f"[{time_stamp(now)}] {op_symbol} {operand} = {result}"
