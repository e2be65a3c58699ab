from __future__ import annotations

from dataclasses import dataclass
from http import HTTPStatus
from typing import Optional

from declaro.errors import ErrorKind


def localized_status(status_code: int) -> str:
    # 404 -> "Not Found"
    try:
        return HTTPStatus(status_code).phrase.title()
    except ValueError:
        return "Unknown Status"


@dataclass(frozen=True)
class ErrorDetails:
    status_code: Optional[int] = None
    localized_string: str = ""
    url: Optional[str] = None
    body: Optional[bytes] = None

    @classmethod
    def for_status(cls, status_code: int, url: Optional[str] = None, body: Optional[bytes] = None) -> "ErrorDetails":
        return cls(
            status_code=status_code,
            localized_string=localized_status(status_code),
            url=url,
            body=body,
        )


class ServiceError(Exception):
    """Failure surfaced by a generated service call."""

    def __init__(self, kind: ErrorKind = ErrorKind.UNKNOWN, details: Optional[ErrorDetails] = None):
        self.kind = kind
        self.details = details
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.details is None:
            return self.kind.value
        if self.details.status_code is not None:
            return f"{self.kind.value}: {self.details.status_code} {self.details.localized_string}"
        return f"{self.kind.value}: {self.details.localized_string}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ServiceError):
            return NotImplemented
        return self.kind == other.kind and self.details == other.details

    def __hash__(self) -> int:
        return hash((self.kind, self.details))
