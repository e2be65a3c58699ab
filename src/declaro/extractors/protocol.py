from __future__ import annotations

import ast
from pathlib import Path
from typing import Any, Optional

from declaro.domain.models import AttributeDecl, ModuleDecl, OperationDecl, ParamDecl, ServiceDecl
from declaro.errors import ErrorKind, GenerationError

_METHOD_MARKERS = {"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"}
_FLAG_MARKERS = {"FileUpload", "NonThrowing"}
_CLASS_MARKERS = {"Service", "Mockable"}
_MARKER_MODULES = {"declaro", "declaro.markers"}


def extract_module_from_source(source: str, source_path: str = "") -> ModuleDecl:
    """
    Parse a declaration module and extract every Protocol decorated with
    @Service and/or @Mockable, e.g.

      @Service
      class Posts(Protocol):
          @GET("/posts/{id=2}")
          async def get_post(self, id: int) -> Post: ...

    Uses ast only; does not import/execute the module.
    """
    try:
        tree = ast.parse(source, filename=source_path or "<declaration>")
    except SyntaxError as exc:
        raise GenerationError(
            ErrorKind.INVALID_DECLARATION,
            f"syntax error: {exc.msg}",
            f"{source_path or '<declaration>'}:{exc.lineno}",
        ) from None

    module = ModuleDecl(source_path=source_path)

    for node in tree.body:
        if isinstance(node, ast.ImportFrom):
            if node.module == "__future__" or node.module in _MARKER_MODULES:
                continue
            module.imports.append(ast.unparse(node))
        elif isinstance(node, ast.Import):
            names = [a for a in node.names if a.name not in _MARKER_MODULES]
            if names:
                module.imports.append(ast.unparse(ast.Import(names=names)))
        elif isinstance(node, ast.ClassDef) and _class_markers(node):
            module.services.append(_extract_service(node, source_path))
        elif _is_docstring(node):
            continue
        elif isinstance(node, (ast.ClassDef, ast.Assign, ast.AnnAssign, ast.FunctionDef)) or (
            type(node).__name__ == "TypeAlias"
        ):
            segment = ast.get_source_segment(source, node, padded=True)
            if segment:
                module.definitions.append(_with_decorators(source, node, segment))

    return module


def extract_module_from_file(path: Path) -> ModuleDecl:
    source = path.read_text(encoding="utf-8")
    return extract_module_from_source(source, source_path=str(path))


def _with_decorators(source: str, node: ast.AST, segment: str) -> str:
    # get_source_segment starts at the def/class keyword; keep decorators
    decorators = getattr(node, "decorator_list", [])
    if not decorators:
        return segment
    lines = source.splitlines()
    first = min(d.lineno for d in decorators)
    return "\n".join(lines[first - 1 : node.end_lineno])


def _is_docstring(node: ast.AST) -> bool:
    return isinstance(node, ast.Expr) and isinstance(node.value, ast.Constant) and isinstance(node.value.value, str)


def _marker_name(node: ast.AST) -> str:
    # @GET(...), @markers.GET(...), @FileUpload
    target = node.func if isinstance(node, ast.Call) else node
    if isinstance(target, ast.Name):
        return target.id
    if isinstance(target, ast.Attribute):
        return target.attr
    return ""


def _class_markers(node: ast.ClassDef) -> set[str]:
    return {_marker_name(d) for d in node.decorator_list} & _CLASS_MARKERS


def _extract_service(node: ast.ClassDef, source_path: str) -> ServiceDecl:
    markers = _class_markers(node)
    service = ServiceDecl(
        name=node.name,
        live="Service" in markers,
        mock="Mockable" in markers,
        source_path=source_path,
        line=node.lineno,
    )
    for item in node.body:
        if isinstance(item, (ast.FunctionDef, ast.AsyncFunctionDef)):
            service.operations.append(_extract_operation(item, service))
    return service


def _extract_operation(fn: ast.FunctionDef | ast.AsyncFunctionDef, service: ServiceDecl) -> OperationDecl:
    location = f"{service.location(fn.lineno)} ({service.name}.{fn.name})"
    args = fn.args
    if args.vararg or args.kwarg:
        raise GenerationError(
            ErrorKind.INVALID_DECLARATION, "*args / **kwargs are not supported in declarations", location
        )

    positional = list(args.posonlyargs) + list(args.args)
    if positional and positional[0].arg == "self":
        positional = positional[1:]

    # defaults align with the tail of the positional list
    pos_defaults: list[Optional[ast.AST]] = [None] * (len(positional) - len(args.defaults)) + list(args.defaults)
    pairs = list(zip(positional, pos_defaults)) + list(zip(args.kwonlyargs, args.kw_defaults))

    params = [
        ParamDecl(
            name=arg.arg,
            annotation=ast.unparse(arg.annotation) if arg.annotation is not None else "Any",
            default=ast.unparse(default) if default is not None else None,
        )
        for arg, default in pairs
    ]

    attributes = []
    for dec in fn.decorator_list:
        attr = _parse_marker(dec, location)
        if attr is not None:
            attributes.append(attr)

    return OperationDecl(
        name=fn.name,
        params=params,
        returns=ast.unparse(fn.returns) if fn.returns is not None else None,
        attributes=attributes,
        line=fn.lineno,
    )


def _parse_marker(dec: ast.AST, location: str) -> Optional[AttributeDecl]:
    """
    Recognize the marker decorators; anything else (@abstractmethod, ...) is ignored.
    Marker arguments must be literals.
    """
    name = _marker_name(dec)
    line = getattr(dec, "lineno", None)

    if name in _METHOD_MARKERS:
        if not isinstance(dec, ast.Call):
            raise GenerationError(ErrorKind.MALFORMED_TEMPLATE, f"@{name} needs a url", location)
        url = _first_arg(dec, "url")
        return AttributeDecl(kind=name, url=_literal(url, str, f"@{name} url", location), line=line)

    if name in _FLAG_MARKERS:
        return AttributeDecl(kind=name, line=line)

    if not isinstance(dec, ast.Call):
        return None

    if name == "Headers":
        headers = _literal(_first_arg(dec, "headers"), dict, "@Headers", location)
        if not all(isinstance(k, str) and isinstance(v, str) for k, v in headers.items()):
            raise GenerationError(
                ErrorKind.INVALID_DECLARATION, "@Headers must map strings to strings", location
            )
        return AttributeDecl(kind="Headers", headers=headers, line=line)

    if name in ("Body", "QueryItems"):
        param = _literal(_first_arg(dec, "param"), str, f"@{name}", location)
        return AttributeDecl(kind=name, param=param, line=line)

    if name == "QueryParams":
        values: list[Any] = [_literal(a, (str, list, tuple), "@QueryParams", location) for a in dec.args]
        flat: list[str] = []
        for v in values:
            flat.extend([v] if isinstance(v, str) else list(v))
        if not all(isinstance(v, str) for v in flat):
            raise GenerationError(
                ErrorKind.INVALID_DECLARATION, "@QueryParams takes parameter names", location
            )
        return AttributeDecl(kind="QueryParams", params=flat, line=line)

    return None


def _first_arg(call: ast.Call, keyword: str) -> Optional[ast.AST]:
    if call.args:
        return call.args[0]
    for kw in call.keywords:
        if kw.arg == keyword:
            return kw.value
    return None


def _literal(node: Optional[ast.AST], expected: Any, what: str, location: str) -> Any:
    # names, f-strings and concatenations are rejected
    try:
        value = ast.literal_eval(node) if node is not None else None
    except ValueError:
        value = None
    if not isinstance(value, expected):
        raise GenerationError(
            ErrorKind.INVALID_DECLARATION, f"{what} argument must be a literal", location
        )
    return value
