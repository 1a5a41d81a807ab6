"""Explicit result type returned by the reservation engine."""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from django.db import DatabaseError  # type: ignore

from .errors import SponsorshipError, TransientStoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Either a value or a :class:`SponsorshipError`, never both."""

    value: T | None = None
    error: SponsorshipError | None = None

    @classmethod
    def success(cls, value: T | None = None) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: SponsorshipError) -> "Outcome[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T | None:
        """Return the value or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value


def reports_outcome(func: Callable[..., T]) -> Callable[..., Outcome[T]]:
    """Turn raised domain and database errors into a failed :class:`Outcome`."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> Outcome[T]:
        try:
            return Outcome.success(func(*args, **kwargs))
        except SponsorshipError as exc:
            return Outcome.failure(exc)
        except DatabaseError as exc:
            logger.error("Store error in %s: %s", func.__name__, exc, exc_info=True)
            return Outcome.failure(
                TransientStoreError("The database is temporarily unavailable. Please try again.")
            )

    return wrapper
