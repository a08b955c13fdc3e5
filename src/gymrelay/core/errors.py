"""Relay domain exceptions."""

from __future__ import annotations


class RelayError(Exception):
    """Base for relay domain errors."""

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: dict[str, object] | None = None,
        original_error: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.original_error = original_error

    def to_frame(self) -> dict[str, str]:
        """Payload of the error frame sent back to the client."""
        return {"message": self.message}


class ConfigurationError(RelayError):
    """Config validation or load failure. Fatal at startup."""


class AuthenticationError(RelayError):
    """Handshake rejected: bad secret or missing gym id."""


class MessageValidationError(RelayError):
    """Inbound frame could not be accepted for relay."""


class PersistenceError(RelayError):
    """One persistence attempt failed (timeout, transport, or non-2xx)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
        original_error: BaseException | None = None,
    ) -> None:
        super().__init__(
            message,
            code="persistence_failed",
            details={"status_code": status_code, "body": body},
            original_error=original_error,
        )
        self.status_code = status_code
        self.body = body
