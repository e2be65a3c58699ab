"""
Marker decorators for declaration modules.

They only record what was declared on the function (``__declaro__``) so a
declaration module stays importable and type-checkable. Code generation
never imports the module; it reads the same decorators with ``ast``.
"""
from __future__ import annotations

from typing import Any, Callable, Mapping, TypeVar

F = TypeVar("F", bound=Callable[..., Any])


def _record(fn: F, kind: str, **values: Any) -> F:
    attrs = list(getattr(fn, "__declaro__", []))
    attrs.append({"kind": kind, **values})
    fn.__declaro__ = attrs  # type: ignore[attr-defined]
    return fn


def _method(kind: str) -> Callable[..., Callable[[F], F]]:
    def marker(url: str) -> Callable[[F], F]:
        return lambda fn: _record(fn, kind, url=url)

    marker.__name__ = kind
    return marker


GET = _method("GET")
POST = _method("POST")
PUT = _method("PUT")
PATCH = _method("PATCH")
DELETE = _method("DELETE")
HEAD = _method("HEAD")
OPTIONS = _method("OPTIONS")


def Headers(headers: Mapping[str, str]) -> Callable[[F], F]:
    return lambda fn: _record(fn, "Headers", headers=dict(headers))


def Body(param: str) -> Callable[[F], F]:
    return lambda fn: _record(fn, "Body", param=param)


def QueryItems(param: str) -> Callable[[F], F]:
    return lambda fn: _record(fn, "QueryItems", param=param)


def QueryParams(*params: str) -> Callable[[F], F]:
    return lambda fn: _record(fn, "QueryParams", params=list(params))


def FileUpload(fn: F) -> F:
    return _record(fn, "FileUpload")


def NonThrowing(fn: F) -> F:
    return _record(fn, "NonThrowing")


def Service(cls: type) -> type:
    return cls


def Mockable(cls: type) -> type:
    return cls
