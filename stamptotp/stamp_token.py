"""
Security-stamp based TOTP tokens.

Issues short-lived 6-digit codes bound to an identity's security stamp and to
a purpose/key pair, so that a "reset-password" code cannot be replayed as an
"confirm-email" code and rotating the stamp invalidates every issued code.

Usage::

    tokens = TotpSecurityStampBasedToken()
    code = tokens.generate("reset-password", user.security_stamp, user.email)
    ...
    if tokens.validate("reset-password", user.security_stamp, user.email, code):
        ...
"""

import logging
import time
from typing import Callable, Optional

from stamptotp import totp
from stamptotp.security_token import SecurityToken
from stamptotp.utils import encode_stamp, format_code, parse_code

logger = logging.getLogger(__name__)


class TotpSecurityStampBasedToken:
    """Generate and validate purpose-bound TOTP codes from a security stamp."""

    MODIFIER_TAG = "Totp"

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        """
        Args:
            clock: Returns the current Unix time in seconds. Tests substitute
                   a fixed clock to land on a chosen time-step.
        """
        self._clock = clock

    # ── Public API ───────────────────────────────────────────────────────

    def generate(self, purpose: str, security_stamp: str, key: str) -> str:
        """
        Generate the code for the current time-step.

        Args:
            purpose:        What the code is for (e.g. "reset-password").
            security_stamp: Current stamp of the identity.
            key:            Per-identity discriminator (e.g. email or phone).

        Returns:
            Six ASCII digits, zero-padded.

        Raises:
            ValueError: If ``security_stamp`` is None.
        """
        modifier = self.get_user_modifier(purpose, key)
        security_token = self.create_security_token(security_stamp)
        if security_token is None:
            raise ValueError("security_stamp must not be None.")
        with security_token:
            code = totp.generate_code(security_token, modifier, self._clock())
        logger.debug("Generated code for purpose %r", purpose)
        return format_code(code, totp.CODE_DIGITS)

    def validate(self, purpose: str, security_stamp: str, key: str, token: str) -> bool:
        """
        Check ``token`` against the codes of the surrounding time-steps.

        Malformed tokens and a missing stamp are reported as False, the same
        as a wrong code.
        """
        code = parse_code(token)
        if code is None:
            logger.debug("Rejected malformed token for purpose %r", purpose)
            return False

        modifier = self.get_user_modifier(purpose, key)
        security_token = self.create_security_token(security_stamp)
        if security_token is None:
            logger.debug("No security stamp for purpose %r", purpose)
            return False

        with security_token:
            valid = totp.validate_code(security_token, code, modifier, self._clock())
        if not valid:
            logger.debug("Token did not match any step for purpose %r", purpose)
        return valid

    # ── Derivation ───────────────────────────────────────────────────────

    def get_user_modifier(self, purpose: str, key: str) -> str:
        """Return the domain-separation string ``"Totp:<purpose>:<key>"``."""
        return f"{self.MODIFIER_TAG}:{purpose or ''}:{key or ''}"

    def create_security_token(self, security_stamp: Optional[str]) -> Optional[SecurityToken]:
        """Derive the HMAC key from the stamp; None when there is no stamp."""
        if security_stamp is None:
            return None
        return SecurityToken(encode_stamp(security_stamp))
