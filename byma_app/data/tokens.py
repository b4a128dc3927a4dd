"""
Option ticker token parsing.

BYMA option tickers are written as root symbol, a side marker (C for
calls, V for puts), the strike digits and an expiration suffix, for
example ``GFGC4478.3O`` or ``ALUC400.OC``.
"""

import re
from typing import Any, Optional

from .models import OptionType, ParsedToken

TOKEN_PATTERN = re.compile(r"^([A-Z0-9]+?)([CV])(\d+(?:\.\d+)?)(.*)$")

_LEADING_SEPARATOR = re.compile(r"^[.\-_]")
_NON_ALNUM = re.compile(r"[^A-Z0-9]")
_NON_DIGIT = re.compile(r"\D")

UNKNOWN_EXPIRATION = "UNKNOWN"


def parse_token(token: Any) -> Optional[ParsedToken]:
    """
    Decompose an option ticker into root, side, strike and expiration.

    Returns None when the token does not look like an option ticker. A
    non-match carries no information and is never an error.
    """
    if token is None:
        return None
    text = str(token).strip().upper()
    if not text:
        return None

    match = TOKEN_PATTERN.match(text)
    if not match:
        return None

    root, side, strike_token, remainder = match.groups()
    expiration = _NON_ALNUM.sub("", _LEADING_SEPARATOR.sub("", remainder, count=1))

    return ParsedToken(
        symbol=root,
        type=OptionType.CALL if side == "C" else OptionType.PUT,
        strike=float(strike_token),
        strike_token=strike_token,
        expiration=expiration or UNKNOWN_EXPIRATION,
    )


def format_strike_token(raw_digits: Any, decimals: int) -> str:
    """
    Insert a decimal point ``decimals`` places from the right of the digits.

    >>> format_strike_token("47343", 1)
    '4734.3'
    >>> format_strike_token("5", 2)
    '0.05'
    """
    digits = _NON_DIGIT.sub("", str(raw_digits or ""))
    if decimals <= 0 or not digits:
        return digits
    digits = digits.rjust(decimals + 1, "0")
    return f"{digits[:-decimals]}.{digits[-decimals:]}"
