"""Buyout error taxonomy."""

from __future__ import annotations

from typing import Any


class BuyoutError(RuntimeError):
    """Base class; ``code`` is the machine-readable tag surfaced to tool callers."""

    code = "BUYOUT_ERROR"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details = details or {}


class InvalidIdentity(BuyoutError):
    """None (or more than one) of phone / customer id / order reference was supplied."""

    code = "INVALID_IDENTITY"


class IdentityNotFound(BuyoutError):
    """No customer matches the identity on any tried site."""

    code = "IDENTITY_NOT_FOUND"


class TransientFetchError(BuyoutError):
    """A page fetch or probe failed mid-aggregation."""

    code = "TRANSIENT_FETCH_ERROR"


class WriteCascadeExhausted(BuyoutError):
    """Every write strategy failed; ``last_error`` keeps the final cause."""

    code = "WRITE_CASCADE_EXHAUSTED"

    def __init__(
        self,
        message: str,
        *,
        last_error: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.last_error = last_error
