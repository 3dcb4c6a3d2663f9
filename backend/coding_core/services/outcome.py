"""Result type for best-effort operations.

Cache reads, full-text search attempts and AI calls may fail without
failing the request. Their helpers return an ``Outcome`` instead of
raising, and the caller decides which fallback value to use.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Either a value, a plain miss, or a degraded result with a reason."""

    value: T | None = None
    found: bool = False
    degraded_reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.found and self.degraded_reason is None

    @property
    def degraded(self) -> bool:
        return self.degraded_reason is not None

    def value_or(self, fallback: T) -> T:
        """Return the value if present, otherwise ``fallback``."""
        if self.ok:
            return self.value  # type: ignore[return-value]
        return fallback

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value, found=True)

    @classmethod
    def miss(cls) -> "Outcome[T]":
        return cls()

    @classmethod
    def failure(cls, reason: str) -> "Outcome[T]":
        return cls(degraded_reason=reason)
