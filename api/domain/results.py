# SPDX-License-Identifier: Apache-2.0

"""
Result values returned by domain operations.

Expected business outcomes (not eligible, family inactive, ...) are returned
as values carrying an ErrorKind rather than raised.
"""

from dataclasses import dataclass
from typing import Any, Optional

from models.enums import ErrorKind


@dataclass(frozen=True)
class DomainError:
    """A failed domain operation."""
    kind: ErrorKind
    message: str
    time_until_eligible: Optional[int] = None


@dataclass(frozen=True)
class DomainResult:
    """Result of a domain operation: a value on success, an error otherwise."""
    success: bool
    value: Any = None
    error: Optional[DomainError] = None

    @classmethod
    def ok(cls, value: Any = None) -> "DomainResult":
        return cls(success=True, value=value)

    @classmethod
    def fail(
        cls,
        kind: ErrorKind,
        message: str,
        time_until_eligible: Optional[int] = None
    ) -> "DomainResult":
        return cls(success=False, error=DomainError(kind, message, time_until_eligible))

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error else None


class InvalidInputError(ValueError):
    """Raised by pure helpers when their preconditions are violated."""
