from __future__ import annotations

import ast
import keyword
from dataclasses import dataclass
from typing import Any, Optional, Union

from declaro.errors import ErrorKind, GenerationError

_LITERAL_TYPES = (bool, int, float, str)
_BOOL_WORDS = {"true": True, "false": False}


@dataclass(frozen=True)
class Literal:
    text: str


@dataclass(frozen=True)
class Placeholder:
    name: str
    default: Optional[str] = None   # source text of the default literal

    @property
    def has_default(self) -> bool:
        return self.default is not None

    def default_value(self) -> Any:
        if self.default is None:
            return None
        return literal_value(self.default)


Segment = Union[Literal, Placeholder]


def parse_template(template: str) -> tuple[Segment, ...]:
    """
    Split a URL template into literal and placeholder segments.

      "/posts/{id=2}/comments" -> Literal("/posts/"), Placeholder("id", "2"), Literal("/comments")

    Single left-to-right scan. Raises GenerationError(MALFORMED_TEMPLATE) on
    unbalanced or empty braces and GenerationError(UNSUPPORTED_DEFAULT) when a
    default is not a plain literal.
    """
    segments: list[Segment] = []
    buf: list[str] = []
    i = 0
    n = len(template)

    while i < n:
        ch = template[i]
        if ch == "}":
            raise GenerationError(
                ErrorKind.MALFORMED_TEMPLATE,
                f"unexpected '}}' at offset {i} in template {template!r}",
            )
        if ch != "{":
            buf.append(ch)
            i += 1
            continue

        close = _find_close(template, i)
        if buf:
            segments.append(Literal("".join(buf)))
            buf = []
        segments.append(_parse_placeholder(template[i + 1 : close], template))
        i = close + 1

    if buf:
        segments.append(Literal("".join(buf)))
    return tuple(segments)


def _find_close(template: str, start: int) -> int:
    j = start + 1
    quote: Optional[str] = None
    while j < len(template):
        ch = template[j]
        if quote:
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "{":
            break
        elif ch == "}":
            return j
        j += 1
    raise GenerationError(
        ErrorKind.MALFORMED_TEMPLATE,
        f"unclosed '{{' at offset {start} in template {template!r}",
    )


def _parse_placeholder(body: str, template: str) -> Placeholder:
    name, sep, default = body.partition("=")
    name = name.strip()
    if not name.isidentifier() or keyword.iskeyword(name):
        raise GenerationError(
            ErrorKind.MALFORMED_TEMPLATE,
            f"invalid placeholder name {name!r} in template {template!r}",
        )
    if not sep:
        return Placeholder(name=name)

    default = default.strip()
    if not default:
        raise GenerationError(
            ErrorKind.UNSUPPORTED_DEFAULT,
            f"empty default for placeholder {name!r} in template {template!r}",
        )
    literal_value(default)  # validates
    return Placeholder(name=name, default=default)


def literal_value(text: str) -> Any:
    """
    Evaluate a placeholder default. Only int/float/bool/str literals are
    accepted; names, calls and arithmetic raise UNSUPPORTED_DEFAULT.
    """
    if text in _BOOL_WORDS:
        return _BOOL_WORDS[text]
    try:
        node = ast.parse(text, mode="eval").body
    except SyntaxError:
        node = None

    # -1, -2.5
    if (
        isinstance(node, ast.UnaryOp)
        and isinstance(node.op, ast.USub)
        and isinstance(node.operand, ast.Constant)
        and type(node.operand.value) in (int, float)
    ):
        return -node.operand.value

    if isinstance(node, ast.Constant) and isinstance(node.value, _LITERAL_TYPES):
        return node.value

    raise GenerationError(
        ErrorKind.UNSUPPORTED_DEFAULT,
        f"default {text!r} is not a literal (expected a number, bool or quoted string)",
    )


def literal_source(text: str) -> str:
    """Python source for a default literal (``true`` -> ``True``)."""
    return repr(literal_value(text))


def literal_annotation(text: str) -> str:
    return type(literal_value(text)).__name__


def raw_template(segments: tuple[Segment, ...]) -> str:
    # "/posts/{id=2}" -> "/posts/{id}"
    parts = []
    for seg in segments:
        if isinstance(seg, Placeholder):
            parts.append("{" + seg.name + "}")
        else:
            parts.append(seg.text)
    return "".join(parts)


def placeholders(segments: tuple[Segment, ...]) -> list[Placeholder]:
    return [s for s in segments if isinstance(s, Placeholder)]
