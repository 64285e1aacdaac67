"""
Owned secret material for TOTP computation.

The caller is responsible for supplying the stamp; the derived bytes never
leave the engine boundary and are never written to disk or logs.
"""

from typing import Optional


class SecurityToken:
    """Private copy of the HMAC key derived from a security stamp."""

    def __init__(self, data: bytes) -> None:
        """
        Args:
            data: Raw key bytes. Copied, so later changes to a caller-owned
                  ``bytearray`` do not affect this token.
        """
        if data is None:
            raise ValueError("SecurityToken data must not be None.")
        self._data: Optional[bytearray] = bytearray(data)

    # ── Public API ───────────────────────────────────────────────────────

    def key_bytes(self) -> bytes:
        """Return the key bytes for handing to the HMAC primitive."""
        if self._data is None:
            raise RuntimeError("SecurityToken has been wiped.")
        return bytes(self._data)

    def wipe(self) -> None:
        """Overwrite the in-memory key with zeros (best-effort)."""
        if self._data is None:
            return
        for i in range(len(self._data)):
            self._data[i] = 0
        self._data = None

    @property
    def is_wiped(self) -> bool:
        return self._data is None

    def __enter__(self) -> "SecurityToken":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.wipe()

    def __repr__(self) -> str:
        return "SecurityToken(<redacted>)"
