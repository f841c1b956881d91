"""
Session / identity gate.

Tracks whether a user is signed in. Remote operations are only attempted
while an identity is present; sign-in itself is handled by the external
auth provider, which reports the identity here.
"""

from typing import Optional

from pettycash.services.storage.interface import IdentityRequiredError


class SessionGate:
    """Two states only: absent or present."""

    def __init__(self, identity: Optional[str] = None):
        self._identity: Optional[str] = None
        if identity:
            self.sign_in(identity)

    @property
    def identity(self) -> Optional[str]:
        return self._identity

    @property
    def is_authenticated(self) -> bool:
        return self._identity is not None

    def sign_in(self, identity: str) -> None:
        if not identity or not identity.strip():
            raise ValueError("Identity must be a non-empty string")
        self._identity = identity.strip()

    def sign_out(self) -> None:
        self._identity = None

    def require(self) -> str:
        """Return the identity or raise IdentityRequiredError."""
        if self._identity is None:
            raise IdentityRequiredError("Sign in to use remote storage")
        return self._identity
