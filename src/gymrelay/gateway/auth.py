"""Handshake credentials and shared-secret authentication."""

from __future__ import annotations

import hmac
from collections.abc import Mapping
from dataclasses import dataclass

from gymrelay.core.constants import Role
from gymrelay.core.errors import AuthenticationError

INVALID_SECRET = "Authentication Failed: Invalid Secret"
MISSING_GYM_ID = "Authentication Failed: Missing Gym ID"


@dataclass(frozen=True)
class Handshake:
    """Credentials presented when a client connects."""

    tenant_id: str
    secret: str
    client_type: str

    @classmethod
    def from_request(
        cls,
        params: Mapping[str, str],
        headers: Mapping[str, str] | None = None,
    ) -> Handshake:
        """Read gymId/secret/type from query params, falling back to X- headers."""
        headers = headers or {}
        return cls(
            tenant_id=params.get("gymId") or headers.get("x-gym-id") or "",
            secret=params.get("secret") or headers.get("x-relay-secret") or "",
            client_type=params.get("type") or headers.get("x-client-type") or "",
        )

    @property
    def role(self) -> Role | None:
        """Declared role, or None for an unrecognised client type."""
        try:
            return Role(self.client_type)
        except ValueError:
            return None


class Authenticator:
    """Admits a handshake iff the secret matches and a gym id is present."""

    def __init__(self, secret: str) -> None:
        self._secret = secret

    def authenticate(self, handshake: Handshake) -> None:
        """Raise AuthenticationError if the handshake may not join any group."""
        if not self._secret or not hmac.compare_digest(
            handshake.secret.encode(), self._secret.encode()
        ):
            raise AuthenticationError(INVALID_SECRET, code="invalid_secret")
        if not handshake.tenant_id:
            raise AuthenticationError(MISSING_GYM_ID, code="missing_gym_id")
