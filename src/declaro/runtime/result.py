from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T

    def get(self) -> T:
        return self.value


@dataclass(frozen=True)
class Failure:
    error: BaseException

    def get(self):
        raise self.error


Result = Union[Success[T], Failure]
