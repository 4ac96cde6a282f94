"""
Typed results returned across the reservation service boundary.

Callers branch on ``result.ok`` or call ``result.unwrap()`` to get the value
back (re-raising the typed error on failure).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Generic, List, Optional, TypeVar

from rental_engine.utils.exceptions import RentalApiError

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    value: Optional[T] = None
    error: Optional[RentalApiError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def error_code(self) -> Optional[str]:
        return self.error.code if self.error else None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "ServiceResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: RentalApiError) -> "ServiceResult[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value


@dataclass
class PaginatedResult(Generic[T]):
    items: List[T] = field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 25

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return math.ceil(self.total / self.page_size)

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 1
