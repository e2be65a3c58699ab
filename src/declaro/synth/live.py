from __future__ import annotations

from declaro.config import GeneratorSettings
from declaro.model.operation import (
    JSON_CONTENT_TYPE,
    MULTIPART_CONTENT_TYPE,
    BodyEncoding,
    Operation,
    ParamRole,
    ResponseArity,
    ServiceGroup,
)
from declaro.synth.emit import convenience_method, explicit_signature, indent, service_scaffold
from declaro.template.resolver import Literal, literal_source

_ENCODERS = {
    BodyEncoding.JSON: "encoding.encode_structured_body",
    BodyEncoding.FORM: "encoding.encode_url_form_body",
    BodyEncoding.RAW: "encoding.encode_raw_body",
}


def path_expression(op: Operation) -> str:
    """
    Python expression for the resolved path:
      "/posts/{id=2}/comments" -> '/posts/' + encoding.path_component(id, 2) + '/comments'
    """
    parts = []
    for seg in op.segments:
        if isinstance(seg, Literal):
            parts.append(repr(seg.text))
        elif seg.has_default:
            parts.append(f"encoding.path_component({seg.name}, {literal_source(seg.default)})")
        else:
            parts.append(f"encoding.path_component({seg.name})")
    return " + ".join(parts) or "''"


def _headers_literal(op: Operation) -> str:
    headers = list(op.headers)
    if op.body_encoding == BodyEncoding.JSON and op.content_type is None:
        headers.append(("Content-Type", JSON_CONTENT_TYPE))
    if not headers:
        return "{}"
    return "{" + ", ".join(f"{k!r}: {v!r}" for k, v in headers) + "}"


def _needs_multipart_header(op: Operation) -> bool:
    content_type = op.content_type
    if content_type is None:
        return True
    media = content_type.split(";", 1)[0].strip().lower()
    return media == MULTIPART_CONTENT_TYPE and "boundary=" not in content_type


def _content_type_key(op: Operation) -> str:
    for key, _ in op.headers:
        if key.lower() == "content-type":
            return key
    return "Content-Type"


def _query_lines(op: Operation) -> list[str]:
    lines = []
    fields = [p for p in op.params if p.role == ParamRole.QUERY_FIELD]
    if fields:
        items = ", ".join(f"QueryItem({p.name!r}, {p.name})" for p in fields)
        lines.append(f"_items: list[QueryItem] = [{items}]")
    else:
        lines.append("_items: list[QueryItem] = []")
    if op.query_items_param:
        lines.append(f"_items.extend({op.query_items_param})")
    lines.append("_items.extend(query_items)")
    return lines


def _body_lines(op: Operation) -> list[str]:
    if op.body_param is None:
        return ["_body = None"]
    if op.body_encoding == BodyEncoding.MULTIPART:
        lines = ["_boundary = encoding.make_boundary()"]
        if _needs_multipart_header(op):
            lines.append(
                f'_headers[{_content_type_key(op)!r}] = f"{MULTIPART_CONTENT_TYPE}; boundary={{_boundary}}"'
            )
        lines.append(
            f"_body = encoding.encode_multipart_body({op.body_param}, payload_description, _boundary)"
        )
        return lines
    return [f"_body = {_ENCODERS[op.body_encoding]}({op.body_param})"]


def _dispatch_call(op: Operation) -> list[str]:
    shared = [
        "_request,",
        "raw_url=_raw_url,",
    ]
    if op.arity == ResponseArity.NONE:
        head = "await core.perform_request("
    else:
        head = "await core.perform_request_and_decode("
        if op.arity == ResponseArity.OPTIONAL:
            shared.append(f"response_type=Optional[{op.response_type}],")
            shared.append("allow_empty=True,")
        else:
            shared.append(f"response_type={op.response_type},")
        shared.append("decoder=self._decoder,")
    shared.extend(
        [
            "pinning=self._pinning_mode,",
            "urls_excluded_from_pinning=self._urls_excluded_from_pinning,",
            "request_blocks=self._request_blocks,",
            "response_blocks=self._response_blocks,",
        ]
    )
    if op.arity != ResponseArity.NONE:
        head = "return " + head
    return [head, *indent(shared), ")"]


def explicit_method(op: Operation) -> list[str]:
    """
    Build -> Encode -> Dispatch -> Decode/Map-Error -> Return. Non-throwing
    operations downgrade ServiceError to None here, not in the runtime.
    """
    body = [
        f"_url = join_url(self._base_url, {path_expression(op)})",
        f"_raw_url = hook_key(self._base_url, {op.raw_template!r})",
        f"_headers: dict[str, str] = {_headers_literal(op)}",
        *_query_lines(op),
        *_body_lines(op),
        f"_request = prepare_basic_request(_url, {op.method.value!r}, _items, _headers, content=_body)",
    ]
    dispatch = _dispatch_call(op)
    if op.throwing:
        body.extend(dispatch)
    else:
        body.append("try:")
        body.extend(indent(dispatch))
        if op.arity == ResponseArity.NONE:
            body.extend(indent(["return None"]))
        body.append("except ServiceError as exc:")
        body.extend(
            indent(
                [
                    f'logger.warning("{op.name} failed, returning None: %s", exc)',
                    "return None",
                ]
            )
        )
    return explicit_signature(op) + indent(body)


def emit_live_class(group: ServiceGroup, settings: GeneratorSettings) -> list[str]:
    lines = service_scaffold(settings.live_class(group.name), group, extra_init=[])
    for op in group.operations:
        lines.extend(indent(convenience_method(op)))
        lines.append("")
        lines.extend(indent(explicit_method(op)))
        lines.append("")
    return lines

