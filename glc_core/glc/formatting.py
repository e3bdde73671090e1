"""Numeric formatting for GLC fields."""

import math

DEFAULT_DIGITS = 4


def format_number(value: float, digits: int = DEFAULT_DIGITS) -> str:
    """Fixed-precision decimal with trailing zeros and point stripped.

    Zero, negative zero and non-finite values all render as ``"0"``.

    Examples:
        >>> format_number(1.5)
        '1.5'
        >>> format_number(-0.0001)
        '-0.0001'
    """
    number = float(value)
    if not math.isfinite(number):
        return "0"
    text = f"{number:.{digits}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if text in ("", "-0", "-"):
        return "0"
    return text
