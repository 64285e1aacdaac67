"""
TOTP (Time-based One-Time Password) engine following RFC 6238 / RFC 4226.

Codes are HMAC-SHA1 over the 8-byte time-step counter, optionally followed by
a UTF-8 *modifier* that separates code streams for different purposes.

Parameters are fixed: 3-minute steps, 6 digits, ±2 steps of accepted skew.
"""

import hmac
import logging
import struct
import time
from contextlib import contextmanager
from typing import Iterator, Optional

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import hmac as crypto_hmac

from stamptotp.security_token import SecurityToken
from stamptotp.utils import encode_modifier, format_code

logger = logging.getLogger(__name__)

# ── Constants ────────────────────────────────────────────────────────────────

STEP_DURATION_SECONDS = 180     # 3-minute time step
CODE_DIGITS = 6
WINDOW_HALF_WIDTH = 2           # accepted skew, in steps, on each side

_CODE_MODULUS = 10**CODE_DIGITS
_UINT64_MASK = 0xFFFFFFFFFFFFFFFF


# ── Core computation ─────────────────────────────────────────────────────────

def _to_signed64(value: int) -> int:
    """Reinterpret the low 64 bits of ``value`` as a signed integer."""
    value &= _UINT64_MASK
    return value - (1 << 64) if value >= (1 << 63) else value


def apply_modifier(counter_bytes: bytes, modifier: Optional[str]) -> bytes:
    """Append the UTF-8 modifier to the counter bytes; no-op when empty."""
    if not modifier:
        return counter_bytes
    return counter_bytes + encode_modifier(modifier)


def _truncate(digest: bytes) -> int:
    """
    Dynamic truncation (RFC 4226 §5.3).

    Args:
        digest: 20-byte HMAC-SHA1 output.

    Returns:
        31-bit integer taken at the offset given by the last nibble.
    """
    offset = digest[-1] & 0x0F
    if offset + 4 >= len(digest):
        raise RuntimeError(
            f"Truncation offset {offset} out of range for a {len(digest)}-byte digest."
        )
    return (
        (digest[offset] & 0x7F) << 24
        | (digest[offset + 1] & 0xFF) << 16
        | (digest[offset + 2] & 0xFF) << 8
        | (digest[offset + 3] & 0xFF)
    )


def _compute(context: crypto_hmac.HMAC, time_step_number: int, modifier: Optional[str]) -> int:
    msg = apply_modifier(struct.pack(">q", _to_signed64(time_step_number)), modifier)
    step_context = context.copy()
    step_context.update(msg)
    return _truncate(step_context.finalize()) % _CODE_MODULUS


@contextmanager
def hmac_context(secret: bytes) -> Iterator[crypto_hmac.HMAC]:
    """
    Keyed HMAC-SHA1 context for the span of one generate/validate call.

    Each time-step is computed on a copy; the base context is finalized on
    exit so it cannot be reused.
    """
    context = crypto_hmac.HMAC(secret, hashes.SHA1())
    try:
        yield context
    finally:
        context.finalize()


def compute_code(secret: bytes, time_step_number: int, modifier: Optional[str] = None) -> int:
    """
    Compute the 6-digit code for one time-step.

    Args:
        secret:           HMAC key bytes.
        time_step_number: Counter value (unsigned 64-bit; encoded as signed).
        modifier:         Optional domain-separation string.

    Returns:
        Integer in ``[0, 999999]``.

    Raises:
        ValueError: If ``secret`` is None.
    """
    if secret is None:
        raise ValueError("secret must not be None.")
    with hmac_context(secret) as context:
        return _compute(context, time_step_number, modifier)


# ── Clock ────────────────────────────────────────────────────────────────────

def current_time_step(timestamp: Optional[float] = None) -> int:
    """Return the time-step number for ``timestamp`` (``time.time()`` if None)."""
    t = timestamp if timestamp is not None else time.time()
    return int(t) // STEP_DURATION_SECONDS


def remaining_seconds(timestamp: Optional[float] = None) -> int:
    """Return seconds until the current time-step expires."""
    t = timestamp if timestamp is not None else time.time()
    return STEP_DURATION_SECONDS - (int(t) % STEP_DURATION_SECONDS)


# ── Generate / validate ──────────────────────────────────────────────────────

def generate_code(
    security_token: Optional[SecurityToken],
    modifier: Optional[str] = None,
    timestamp: Optional[float] = None,
) -> int:
    """
    Generate the code for the current time-step.

    Args:
        security_token: Secret derived from the security stamp.
        modifier:       Optional domain-separation string.
        timestamp:      Override Unix timestamp (uses time.time() if None).

    Returns:
        Integer code in ``[0, 999999]``.

    Raises:
        ValueError: If ``security_token`` is None.
    """
    if security_token is None:
        raise ValueError("security_token must not be None.")

    step = current_time_step(timestamp)
    with hmac_context(security_token.key_bytes()) as context:
        return _compute(context, step, modifier)


def validate_code(
    security_token: Optional[SecurityToken],
    code: int,
    modifier: Optional[str] = None,
    timestamp: Optional[float] = None,
) -> bool:
    """
    Validate ``code`` within ±``WINDOW_HALF_WIDTH`` time-steps of now.

    Steps are checked from oldest to newest and the first match wins.

    Args:
        security_token: Secret derived from the security stamp.
        code:           Parsed integer code.
        modifier:       Optional domain-separation string.
        timestamp:      Override Unix timestamp.

    Returns:
        True if the code matches any step in the window.

    Raises:
        ValueError: If ``security_token`` is None.
    """
    if security_token is None:
        raise ValueError("security_token must not be None.")

    step = current_time_step(timestamp)
    expected = format_code(code, CODE_DIGITS)
    with hmac_context(security_token.key_bytes()) as context:
        for offset in range(-WINDOW_HALF_WIDTH, WINDOW_HALF_WIDTH + 1):
            computed = _compute(context, step + offset, modifier)
            if hmac.compare_digest(format_code(computed, CODE_DIGITS), expected):
                logger.debug("Code matched at step offset %+d", offset)
                return True

    # No match
    return False
