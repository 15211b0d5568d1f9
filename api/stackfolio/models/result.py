"""Tagged fetch result shared by the upstream clients.

A client call either succeeds with a value or fails with one of a small set of
kinds. Callers branch on ``ok`` instead of guessing whether ``None`` or an
empty payload means "absent" or "broken".
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class FailureKind(str, Enum):
    NOT_FOUND = "not_found"
    AUTH_ERROR = "auth_error"
    RATE_LIMITED = "rate_limited"
    TRANSPORT_ERROR = "transport_error"


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    ok: bool
    value: Optional[T] = None
    kind: Optional[FailureKind] = None
    detail: str = ""
    status_code: Optional[int] = None

    @classmethod
    def success(cls, value: T) -> "FetchResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(
        cls,
        kind: FailureKind,
        detail: str = "",
        status_code: Optional[int] = None,
    ) -> "FetchResult[Any]":
        return cls(ok=False, kind=kind, detail=detail, status_code=status_code)

    @property
    def not_found(self) -> bool:
        return not self.ok and self.kind == FailureKind.NOT_FOUND

    def value_or_none(self) -> Optional[T]:
        return self.value if self.ok else None
