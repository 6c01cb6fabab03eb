"""SCPI reply parsing and command argument formatting.

Handles NR1 (integer), NR2 (fixed-point), and NR3 (scientific notation)
numeric formats as well as the special values defined by SCPI (NAN, INF,
NINF, MIN, MAX, DEF).

Instruments configured for a comma-decimal locale reply ``3,14`` where others
reply ``3.14``. :func:`parse_number` accepts either separator and never looks
at the locale of the host process.
"""

from __future__ import annotations

import math
import re
from enum import Enum


class ScpiSpecial(Enum):
    """SCPI special parameter values."""

    MIN = "MIN"
    MAX = "MAX"
    DEF = "DEF"
    NAN = "NAN"
    INF = "INF"
    NINF = "NINF"


_SPECIAL_FLOAT_MAP: dict[str, float] = {
    "NAN": float("nan"),
    "INF": float("inf"),
    "+INF": float("inf"),
    "NINF": float("-inf"),
    "-INF": float("-inf"),
}

_SPECIAL_KEYWORDS: frozenset[str] = frozenset({"MIN", "MAX", "DEF"})

_INT_RE = re.compile(r"^[+-]?\d+$")
_DECIMAL_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")


def normalize_decimal_separator(text: str) -> str:
    """Rewrite a comma decimal separator to a period.

    A token with a single ``,`` and no ``.`` is taken to use the comma as its
    decimal separator. Tokens with both separators, or with several commas,
    are left untouched so that the caller rejects them.

    Args:
        text: A stripped numeric token.

    Returns:
        The token using ``.`` as decimal separator.
    """
    if text.count(",") == 1 and "." not in text:
        return text.replace(",", ".")
    return text


def parse_number(text: str) -> float:
    """Parse a SCPI numeric reply into a float.

    Accepts NR1 (``"42"``), NR2 (``"1.23"`` or ``"1,23"``), NR3
    (``"1.23E+4"``), and the special tokens ``NAN``, ``INF``, ``NINF``, and
    ``-INF``.

    Args:
        text: The raw reply string (leading/trailing whitespace is stripped).

    Returns:
        The parsed float value.

    Raises:
        ValueError: If *text* cannot be parsed as a SCPI number.
    """
    token = text.strip().upper()
    special = _SPECIAL_FLOAT_MAP.get(token)
    if special is not None:
        return special
    token = normalize_decimal_separator(token)
    if not _DECIMAL_RE.match(token):
        raise ValueError(f"Invalid SCPI number: {text!r}")
    return float(token)


def parse_int(text: str) -> int:
    """Parse a SCPI NR1 (integer) reply.

    Only an optional sign followed by decimal digits is accepted.

    Args:
        text: The raw reply string.

    Returns:
        The parsed integer.

    Raises:
        ValueError: If *text* is not a valid base-10 integer literal.
    """
    token = text.strip()
    if not _INT_RE.match(token):
        raise ValueError(f"Invalid SCPI integer: {text!r}")
    return int(token)


_BOOL_TOKENS: dict[str, bool] = {"1": True, "ON": True, "0": False, "OFF": False}


def parse_bool(text: str) -> bool:
    """Parse a ``1``/``0`` or ``ON``/``OFF`` state reply, ignoring case."""
    try:
        return _BOOL_TOKENS[text.strip().upper()]
    except KeyError:
        raise ValueError(f"Invalid SCPI boolean: {text!r}") from None


def parse_special(text: str) -> float | ScpiSpecial:
    """Parse a numeric argument that may be ``MIN``, ``MAX`` or ``DEF``.

    Commands such as ``VOLT MAX`` program a limit by keyword instead of by
    value. Anything other than the three keywords goes through
    :func:`parse_number`.

    Raises:
        ValueError: If *text* is neither a keyword nor a number.
    """
    keyword = text.strip().upper()
    if keyword in _SPECIAL_KEYWORDS:
        return ScpiSpecial[keyword]
    return parse_number(text)


def format_number(value: float | ScpiSpecial) -> str:
    """Render *value* as a command argument.

    A :class:`ScpiSpecial` is sent as its keyword, so ``ScpiSpecial.MAX``
    programs the instrument's upper limit. Non-finite floats become the SCPI
    tokens ``NAN``, ``INF`` and ``NINF``. Finite values are rendered with
    ``.`` as decimal separator whatever the locale of the host process, so
    ``12.5`` is sent as ``"12.5"`` even where the instrument replies ``12,5``.
    """
    if isinstance(value, ScpiSpecial):
        return value.value
    if math.isfinite(value):
        return repr(float(value))
    if math.isnan(value):
        return ScpiSpecial.NAN.value
    return ScpiSpecial.INF.value if value > 0 else ScpiSpecial.NINF.value


def format_bool(value: bool) -> str:
    """Render a state argument as ``ON`` or ``OFF``."""
    return "ON" if value else "OFF"
