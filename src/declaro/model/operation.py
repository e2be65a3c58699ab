from __future__ import annotations

import ast
import keyword
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from declaro.domain.models import AttributeDecl, OperationDecl, ServiceDecl
from declaro.errors import ErrorKind, GenerationError
from declaro.template.resolver import (
    Placeholder,
    Segment,
    literal_annotation,
    literal_source,
    parse_template,
    placeholders,
    raw_template,
)


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


class ResponseArity(str, Enum):
    NONE = "none"
    OPTIONAL = "optional"
    REQUIRED = "required"


class BodyEncoding(str, Enum):
    JSON = "json"
    FORM = "form"
    MULTIPART = "multipart"
    RAW = "raw"


class ParamRole(str, Enum):
    PATH = "path"
    BODY = "body"
    QUERY_ITEMS = "query_items"
    QUERY_FIELD = "query_field"
    OTHER = "other"


JSON_CONTENT_TYPE = "application/json"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
MULTIPART_CONTENT_TYPE = "multipart/form-data"

# extra arguments of the generated methods and module names their bodies use
RESERVED_PARAMS = {
    "self",
    "query_items",
    "payload_description",
    "core",
    "encoding",
    "join_url",
    "hook_key",
    "prepare_basic_request",
    "logger",
    "QueryItem",
    "ServiceError",
    "Optional",
}
RESERVED_OPERATIONS = {
    "base_url",
    "decoder",
    "pinning_mode",
    "urls_excluded_from_pinning",
    "request_blocks",
    "response_blocks",
    "add_before_sending_block",
    "add_on_response_block",
}


@dataclass(frozen=True)
class OperationParam:
    name: str
    annotation: str
    default: Optional[str]      # python source of the convenience default
    role: ParamRole
    declared: bool = True       # False for placeholders surfaced only by their default


@dataclass(frozen=True)
class Operation:
    name: str
    method: HttpMethod
    template: str
    segments: tuple[Segment, ...]
    params: tuple[OperationParam, ...]
    headers: tuple[tuple[str, str], ...]
    body_param: Optional[str]
    body_encoding: Optional[BodyEncoding]
    query_items_param: Optional[str]
    query_fields: tuple[str, ...]
    file_upload: bool
    arity: ResponseArity
    response_type: Optional[str]    # decoded type, without the Optional wrapper
    throwing: bool
    location: str

    @property
    def raw_template(self) -> str:
        return raw_template(self.segments)

    @property
    def explicit_name(self) -> str:
        return f"{self.name}_explicit"

    @property
    def slot_name(self) -> str:
        return f"{self.name}_result"

    @property
    def content_type(self) -> Optional[str]:
        for key, value in self.headers:
            if key.lower() == "content-type":
                return value
        return None

    @property
    def return_annotation(self) -> str:
        if self.arity == ResponseArity.NONE:
            return "None"
        if self.arity == ResponseArity.OPTIONAL or not self.throwing:
            return f"Optional[{self.response_type}]"
        return str(self.response_type)


@dataclass(frozen=True)
class ServiceGroup:
    name: str
    operations: tuple[Operation, ...]
    live: bool
    mock: bool
    location: str


def _media_type(content_type: Optional[str]) -> Optional[str]:
    if content_type is None:
        return None
    return content_type.split(";", 1)[0].strip().lower()


def select_body_encoding(content_type: Optional[str], file_upload: bool) -> BodyEncoding:
    media = _media_type(content_type)
    if media == JSON_CONTENT_TYPE:
        return BodyEncoding.JSON
    if media == FORM_CONTENT_TYPE:
        return BodyEncoding.FORM
    if file_upload or media == MULTIPART_CONTENT_TYPE:
        return BodyEncoding.MULTIPART
    if media is None:
        return BodyEncoding.JSON
    return BodyEncoding.RAW


def response_shape(returns: Optional[str]) -> tuple[ResponseArity, Optional[str]]:
    """
    Response arity from a return annotation:

      None / "None"                      -> (NONE, None)
      "Optional[Post]", "Post | None"    -> (OPTIONAL, "Post")
      "list[Comment]"                    -> (REQUIRED, "list[Comment]")
    """
    if returns is None or returns.strip() in ("", "None"):
        return ResponseArity.NONE, None

    node = ast.parse(returns, mode="eval").body

    if isinstance(node, ast.Subscript) and _tail_name(node.value) == "Optional":
        return ResponseArity.OPTIONAL, ast.unparse(node.slice)

    if isinstance(node, ast.Subscript) and _tail_name(node.value) == "Union":
        members = list(node.slice.elts) if isinstance(node.slice, ast.Tuple) else [node.slice]
        rest = [m for m in members if not _is_none(m)]
        if len(rest) < len(members):
            inner = ast.unparse(rest[0]) if len(rest) == 1 else f"Union[{', '.join(ast.unparse(m) for m in rest)}]"
            return ResponseArity.OPTIONAL, inner

    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        members = _flatten_union(node)
        rest = [m for m in members if not _is_none(m)]
        if len(rest) < len(members):
            return ResponseArity.OPTIONAL, " | ".join(ast.unparse(m) for m in rest)

    return ResponseArity.REQUIRED, ast.unparse(node)


def _tail_name(node: ast.AST) -> str:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    return ""


def _is_none(node: ast.AST) -> bool:
    return (isinstance(node, ast.Constant) and node.value is None) or (
        isinstance(node, ast.Name) and node.id == "None"
    )


def _flatten_union(node: ast.AST) -> list[ast.AST]:
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        return _flatten_union(node.left) + _flatten_union(node.right)
    return [node]


def _method_attributes(attrs: list[AttributeDecl]) -> list[AttributeDecl]:
    return [a for a in attrs if a.kind in HttpMethod.__members__]


def _single(attrs: list[AttributeDecl], kind: str, location: str) -> Optional[AttributeDecl]:
    found = [a for a in attrs if a.kind == kind]
    if len(found) > 1:
        raise GenerationError(
            ErrorKind.INVALID_DECLARATION, f"@{kind} declared more than once", location
        )
    return found[0] if found else None


def _check_name(name: str, what: str, location: str) -> None:
    # names are emitted verbatim into generated code
    if not name.isidentifier() or keyword.iskeyword(name):
        raise GenerationError(
            ErrorKind.INVALID_DECLARATION, f"{what} name {name!r} is not a valid identifier", location
        )


def build_operation(decl: OperationDecl, location: str) -> Operation:
    """
    Validate one declared operation and normalize it into an Operation.
    The first violated rule raises GenerationError carrying `location`.
    """
    _check_name(decl.name, "operation", location)
    methods = _method_attributes(decl.attributes)
    if not methods:
        raise GenerationError(
            ErrorKind.MISSING_METHOD, f"operation {decl.name!r} has no HTTP method attribute", location
        )
    if len(methods) > 1:
        names = ", ".join(f"@{m.kind}" for m in methods)
        raise GenerationError(
            ErrorKind.DUPLICATE_METHOD, f"operation {decl.name!r} declares several methods: {names}", location
        )
    method_attr = methods[0]
    if method_attr.url is None:
        raise GenerationError(
            ErrorKind.MALFORMED_TEMPLATE, f"@{method_attr.kind} on {decl.name!r} has no url", location
        )

    try:
        segments = parse_template(method_attr.url)
    except GenerationError as exc:
        raise exc.at(location) from None

    declared = [p.name for p in decl.params]
    for name in declared:
        _check_name(name, "parameter", location)
        if name in RESERVED_PARAMS:
            raise GenerationError(
                ErrorKind.INVALID_DECLARATION, f"parameter name {name!r} is reserved", location
            )
    if len(set(declared)) != len(declared):
        raise GenerationError(
            ErrorKind.INVALID_DECLARATION, f"operation {decl.name!r} repeats a parameter name", location
        )

    headers: list[tuple[str, str]] = []
    for attr in decl.attributes:
        if attr.kind == "Headers":
            headers.extend(attr.headers.items())

    body_attr = _single(decl.attributes, "Body", location)
    body_param = body_attr.param if body_attr else None
    if body_attr is not None and body_param not in declared:
        raise GenerationError(
            ErrorKind.UNKNOWN_BODY_PARAMETER,
            f"@Body names {body_param!r}, which is not a parameter of {decl.name!r}",
            location,
        )

    file_upload = any(a.kind == "FileUpload" for a in decl.attributes)
    if file_upload and body_param is None:
        raise GenerationError(
            ErrorKind.FILE_UPLOAD_WITHOUT_BODY, f"@FileUpload on {decl.name!r} requires @Body", location
        )

    items_attr = _single(decl.attributes, "QueryItems", location)
    query_items_param = items_attr.param if items_attr else None
    if items_attr is not None and query_items_param not in declared:
        raise GenerationError(
            ErrorKind.UNKNOWN_QUERY_PARAMETER,
            f"@QueryItems names {query_items_param!r}, which is not a parameter of {decl.name!r}",
            location,
        )

    query_fields: list[str] = []
    for attr in decl.attributes:
        if attr.kind != "QueryParams":
            continue
        for name in attr.params:
            if name not in declared:
                raise GenerationError(
                    ErrorKind.UNKNOWN_QUERY_PARAMETER,
                    f"@QueryParams names {name!r}, which is not a parameter of {decl.name!r}",
                    location,
                )
            if name not in query_fields:
                query_fields.append(name)

    try:
        arity, response_type = response_shape(decl.returns)
    except SyntaxError:
        raise GenerationError(
            ErrorKind.INVALID_DECLARATION, f"cannot parse return annotation {decl.returns!r}", location
        ) from None

    bound: dict[str, Placeholder] = {}
    for ph in placeholders(segments):
        bound.setdefault(ph.name, ph)
        if ph.default is not None and bound[ph.name].default is None:
            bound[ph.name] = ph

    params: list[OperationParam] = []
    for p in decl.params:
        if p.name == body_param:
            role = ParamRole.BODY
        elif p.name == query_items_param:
            role = ParamRole.QUERY_ITEMS
        elif p.name in query_fields:
            role = ParamRole.QUERY_FIELD
        elif p.name in bound:
            role = ParamRole.PATH
        else:
            role = ParamRole.OTHER

        default = p.default
        ph = bound.get(p.name)
        if role == ParamRole.PATH and ph is not None and ph.default is not None:
            default = literal_source(ph.default)
        params.append(OperationParam(name=p.name, annotation=p.annotation, default=default, role=role))

    for name, ph in bound.items():
        if name in declared:
            continue
        if ph.default is None:
            raise GenerationError(
                ErrorKind.MALFORMED_TEMPLATE,
                f"placeholder {{{name}}} in {method_attr.url!r} matches no parameter and has no default",
                location,
            )
        if name in RESERVED_PARAMS:
            raise GenerationError(
                ErrorKind.INVALID_DECLARATION, f"placeholder name {name!r} is reserved", location
            )
        params.append(
            OperationParam(
                name=name,
                annotation=literal_annotation(ph.default),
                default=literal_source(ph.default),
                role=ParamRole.PATH,
                declared=False,
            )
        )

    content_type = next((v for k, v in headers if k.lower() == "content-type"), None)
    body_encoding = select_body_encoding(content_type, file_upload) if body_param else None

    return Operation(
        name=decl.name,
        method=HttpMethod(method_attr.kind),
        template=method_attr.url,
        segments=segments,
        params=tuple(params),
        headers=tuple(headers),
        body_param=body_param,
        body_encoding=body_encoding,
        query_items_param=query_items_param,
        query_fields=tuple(query_fields),
        file_upload=file_upload,
        arity=arity,
        response_type=response_type,
        throwing=not any(a.kind == "NonThrowing" for a in decl.attributes),
        location=location,
    )


def build_service(decl: ServiceDecl) -> ServiceGroup:
    """All-or-nothing: any invalid operation aborts the whole service."""
    _check_name(decl.name, "service", decl.location(decl.line))
    operations: list[Operation] = []
    taken: dict[str, str] = {}

    for op_decl in decl.operations:
        location = f"{decl.location(op_decl.line)} ({decl.name}.{op_decl.name})"
        if op_decl.name in RESERVED_OPERATIONS:
            raise GenerationError(
                ErrorKind.INVALID_DECLARATION, f"operation name {op_decl.name!r} is reserved", location
            )
        op = build_operation(op_decl, location)
        for member in (op.name, op.explicit_name, op.slot_name):
            if member in taken:
                raise GenerationError(
                    ErrorKind.DUPLICATE_OPERATION,
                    f"{member!r} clashes with a member generated for {taken[member]!r}",
                    location,
                )
        for member in (op.name, op.explicit_name, op.slot_name):
            taken[member] = op.name
        operations.append(op)

    return ServiceGroup(
        name=decl.name,
        operations=tuple(operations),
        live=decl.live,
        mock=decl.mock,
        location=decl.location(decl.line),
    )
