from __future__ import annotations

from typing import Iterable

from declaro.model.operation import Operation, ServiceGroup

INDENT = "    "
MAX_LINE = 100

RUNTIME_IMPORTS = [
    "import logging",
    "from typing import Any, Optional, Protocol, Sequence",
    "",
    "from declaro.errors import ErrorKind",
    "from declaro.runtime import encoding",
    "from declaro.runtime.core import JSONDecoder, PinningMode, core, hook_key, join_url, prepare_basic_request",
    "from declaro.runtime.errors import ServiceError",
    "from declaro.runtime.result import Failure, Result, Success",
    "from declaro.runtime.service import (",
    "    ALL_URLS,",
    "    PayloadDescription,",
    "    QueryItem,",
    "    RequestHandler,",
    "    ResponseHandler,",
    "    Service,",
    ")",
]


def indent(lines: Iterable[str], level: int = 1) -> list[str]:
    pad = INDENT * level
    return [f"{pad}{line}" if line else "" for line in lines]


def signature(prefix: str, params: list[str], returns: str) -> list[str]:
    """`prefix(self, <params>) -> returns:`, wrapped one parameter per line when long."""
    one_line = f"{prefix}({', '.join(['self', *params])}) -> {returns}:"
    if len(one_line) + len(INDENT) <= MAX_LINE:
        return [one_line]
    out = [f"{prefix}("]
    out.extend(f"{INDENT}{p}," for p in ["self", *params])
    out.append(f") -> {returns}:")
    return out


def convenience_params(op: Operation) -> list[str]:
    """
    Declared order with template defaults pre-filled. A required parameter
    after a defaulted one would be invalid positionally, so from the first
    defaulted parameter on they become keyword-only.
    """
    rendered = []
    seen_default = False
    needs_star = any(
        p.default is None and any(q.default is not None for q in op.params[:i])
        for i, p in enumerate(op.params)
    )
    for p in op.params:
        if p.default is not None and not seen_default:
            seen_default = True
            if needs_star:
                rendered.append("*")
        if p.default is not None:
            rendered.append(f"{p.name}: {p.annotation} = {p.default}")
        else:
            rendered.append(f"{p.name}: {p.annotation}")
    return rendered


def explicit_params(op: Operation) -> list[str]:
    rendered = [f"{p.name}: {p.annotation}" for p in op.params]
    if op.file_upload:
        rendered.append("payload_description: Optional[PayloadDescription]")
    rendered.append("query_items: Sequence[QueryItem]")
    return rendered


def convenience_method(op: Operation) -> list[str]:
    lines = signature(f"async def {op.name}", convenience_params(op), op.return_annotation)
    forwarded = [f"{p.name}={p.name}" for p in op.params]
    body: list[str] = []
    if op.file_upload:
        body.append(f"payload_description = encoding.default_payload_description({op.body_param})")
        forwarded.append("payload_description=payload_description")
    forwarded.append("query_items=[]")
    call = f"return await self.{op.explicit_name}({', '.join(forwarded)})"
    if len(call) + 2 * len(INDENT) <= MAX_LINE:
        body.append(call)
    else:
        body.append(f"return await self.{op.explicit_name}(")
        body.extend(f"{INDENT}{arg}," for arg in forwarded)
        body.append(")")
    return lines + indent(body)


def explicit_signature(op: Operation) -> list[str]:
    return signature(f"async def {op.explicit_name}", explicit_params(op), op.return_annotation)


def protocol_class(group: ServiceGroup) -> list[str]:
    lines = [f"class {group.name}(Protocol):"]
    if not group.operations:
        return lines + [f"{INDENT}pass", ""]
    for op in group.operations:
        stub = signature(f"async def {op.name}", convenience_params(op), op.return_annotation)
        lines.extend(indent(stub) + indent(["..."], 2) + [""])
        lines.extend(indent(explicit_signature(op)) + indent(["..."], 2) + [""])
    return lines


def service_scaffold(class_name: str, group: ServiceGroup, extra_init: list[str]) -> list[str]:
    """Class header, constructor, configuration properties and hook registration."""
    lines = [
        f"class {class_name}({group.name}, Service):",
        f"{INDENT}def __init__(",
        f"{INDENT * 2}self,",
        f"{INDENT * 2}base_url: str,",
        f"{INDENT * 2}pinning_mode: Optional[PinningMode] = None,",
        f"{INDENT * 2}urls_excluded_from_pinning: Optional[Sequence[str]] = None,",
        f"{INDENT * 2}decoder: Optional[JSONDecoder] = None,",
        f"{INDENT}) -> None:",
    ]
    lines.extend(
        indent(
            [
                "self._base_url = base_url",
                "self._pinning_mode = pinning_mode",
                "self._urls_excluded_from_pinning = list(urls_excluded_from_pinning or [])",
                "self._decoder = decoder if decoder is not None else JSONDecoder()",
                "self._request_blocks: dict[str, RequestHandler] = {}",
                "self._response_blocks: dict[str, ResponseHandler] = {}",
                *extra_init,
            ],
            2,
        )
    )
    lines.append("")

    for name, annotation in (
        ("base_url", "str"),
        ("pinning_mode", "Optional[PinningMode]"),
        ("urls_excluded_from_pinning", "list[str]"),
        ("decoder", "JSONDecoder"),
        ("request_blocks", "dict[str, RequestHandler]"),
        ("response_blocks", "dict[str, ResponseHandler]"),
    ):
        lines.extend(
            indent(
                [
                    "@property",
                    f"def {name}(self) -> {annotation}:",
                    f"{INDENT}return self._{name}",
                    "",
                ]
            )
        )

    for method, handler, store in (
        ("add_before_sending_block", "RequestHandler", "_request_blocks"),
        ("add_on_response_block", "ResponseHandler", "_response_blocks"),
    ):
        lines.extend(
            indent(
                [
                    f"def {method}(self, block: {handler}, path: Optional[str] = None) -> None:",
                    f"{INDENT}key = ALL_URLS if path is None else hook_key(self._base_url, path)",
                    f"{INDENT}self.{store}[key] = block",
                    "",
                ]
            )
        )
    return lines
