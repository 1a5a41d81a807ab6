"""
Sponsorship Error Taxonomy

Every failure the reservation engine reports is one of these:
- NotFound: claim, reservation or child id/token is unknown
- Conflict: a guarded transition found the resource in another state
- ValidationFailed: sponsor input is malformed
- Forbidden: the caller may not perform this transition
- TransientStoreError: the database failed; retrying from the top is safe
"""

from __future__ import annotations

from typing import Any


class SponsorshipError(Exception):
    """Base class for reservation engine failures."""

    code = "error"
    retryable = False

    def __init__(self, reason: str, **details: Any) -> None:
        super().__init__(reason)
        self.reason = reason
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "detail": self.reason}
        payload.update(self.details)
        return payload

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.reason!r})"


class NotFound(SponsorshipError):
    code = "not_found"


class Conflict(SponsorshipError):
    code = "conflict"


class ValidationFailed(SponsorshipError):
    code = "validation_failed"

    def __init__(self, reason: str, errors: dict[str, list[str]] | None = None, **details: Any) -> None:
        super().__init__(reason, errors=errors or {}, **details)
        self.errors = errors or {}


class Forbidden(SponsorshipError):
    code = "forbidden"


class TransientStoreError(SponsorshipError):
    code = "store_unavailable"
    retryable = True
