"""
Utility helpers for stamptotp.
"""

import re
from typing import Optional


# ── Encoding ──────────────────────────────────────────────────────────────────

_LONE_SURROGATE = re.compile("[\ud800-\udfff]")

STAMP_ENCODING = "utf-16-le"
MODIFIER_ENCODING = "utf-8"


def encode_stamp(security_stamp: str) -> bytes:
    """
    Encode a security stamp as UTF-16 (little-endian, no BOM).

    A ``str`` never holds a valid surrogate pair, so any surrogate code point
    is unpaired; those are replaced by U+FFFD before encoding.

    Args:
        security_stamp: Stamp string supplied by the account layer.

    Returns:
        Two bytes per UTF-16 code unit.
    """
    return _LONE_SURROGATE.sub("\ufffd", security_stamp).encode(STAMP_ENCODING)


def encode_modifier(modifier: str) -> bytes:
    """Strict UTF-8 encoding; raises UnicodeEncodeError on lone surrogates."""
    return modifier.encode(MODIFIER_ENCODING)


# ── Codes ─────────────────────────────────────────────────────────────────────

# Optional ASCII whitespace, an optional sign, ASCII digits only.
_CODE_PATTERN = re.compile(r"[ \t\n\v\f\r]*([+-]?[0-9]+)[ \t\n\v\f\r]*")

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1


def parse_code(token: Optional[str]) -> Optional[int]:
    """
    Parse a user-supplied token as a signed 32-bit decimal integer.

    Example::

        >>> parse_code(" 004210 ")
        4210
        >>> parse_code("12 34") is None
        True

    Args:
        token: Raw token text.

    Returns:
        The integer value, or None if the text is not a valid 32-bit integer.
    """
    if token is None:
        return None
    match = _CODE_PATTERN.fullmatch(token)
    if match is None:
        return None
    value = int(match.group(1))
    if value < _INT32_MIN or value > _INT32_MAX:
        return None
    return value


def format_code(code: int, digits: int = 6) -> str:
    """Render ``code`` as a zero-padded decimal string of ``digits`` characters."""
    return str(code).zfill(digits)
