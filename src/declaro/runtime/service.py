from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Protocol, runtime_checkable

import httpx

ALL_URLS = "all"

# before-send: may return a modified request
RequestHandler = Callable[[httpx.Request], httpx.Request]
# on-response: receives the raw body and response, returns the body to decode
ResponseHandler = Callable[[bytes, httpx.Response], bytes]


def scalar_string(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return scalar_string(value.value)
    return str(value)


@dataclass(frozen=True)
class QueryItem:
    key: str
    value: Any = None

    def value_string(self) -> Optional[str]:
        if self.value is None:
            return None
        return scalar_string(self.value)

    def as_pair(self) -> tuple[str, str]:
        return (self.key, self.value_string() or "")


@dataclass(frozen=True)
class PayloadDescription:
    name: str
    file_name: str
    mime_type: str


@runtime_checkable
class Service(Protocol):
    """Surface shared by every generated live and mock service."""

    @property
    def base_url(self) -> str: ...

    @property
    def request_blocks(self) -> dict[str, RequestHandler]: ...

    @property
    def response_blocks(self) -> dict[str, ResponseHandler]: ...

    def add_before_sending_block(
        self, block: RequestHandler, path: Optional[str] = None
    ) -> None: ...

    def add_on_response_block(
        self, block: ResponseHandler, path: Optional[str] = None
    ) -> None: ...
