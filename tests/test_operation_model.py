import pytest

from declaro.domain.models import AttributeDecl, OperationDecl, ParamDecl, ServiceDecl
from declaro.errors import ErrorKind, GenerationError
from declaro.model.operation import (
    BodyEncoding,
    HttpMethod,
    ParamRole,
    ResponseArity,
    build_operation,
    build_service,
    response_shape,
    select_body_encoding,
)
from declaro.synth.emit import convenience_params, explicit_params


def op(name="get_post", params=(), returns="Post", attributes=()):
    return OperationDecl(
        name=name,
        params=[ParamDecl(name=p, annotation="int") if isinstance(p, str) else p for p in params],
        returns=returns,
        attributes=[AttributeDecl(**a) for a in attributes],
    )


def test_build_operation_basic():
    o = build_operation(
        op(params=["id", "model"], attributes=[
            {"kind": "GET", "url": "/posts/{id=2}/comments"},
            {"kind": "Headers", "headers": {"Content-Type": "application/json", "X-App": "1"}},
            {"kind": "Body", "param": "model"},
        ]),
        "decl.py:3",
    )
    assert o.method == HttpMethod.GET
    assert o.raw_template == "/posts/{id}/comments"
    assert o.headers == (("Content-Type", "application/json"), ("X-App", "1"))
    assert o.body_encoding == BodyEncoding.JSON
    assert o.arity == ResponseArity.REQUIRED
    assert o.throwing
    roles = {p.name: p.role for p in o.params}
    assert roles == {"id": ParamRole.PATH, "model": ParamRole.BODY}
    assert [p.default for p in o.params] == ["2", None]


@pytest.mark.parametrize(
    "attributes,kind",
    [
        ([], ErrorKind.MISSING_METHOD),
        ([{"kind": "Headers", "headers": {"A": "b"}}], ErrorKind.MISSING_METHOD),
        ([{"kind": "GET", "url": "/a"}, {"kind": "POST", "url": "/a"}], ErrorKind.DUPLICATE_METHOD),
        ([{"kind": "POST", "url": "/a"}, {"kind": "Body", "param": "nope"}], ErrorKind.UNKNOWN_BODY_PARAMETER),
        ([{"kind": "POST", "url": "/a"}, {"kind": "FileUpload"}], ErrorKind.FILE_UPLOAD_WITHOUT_BODY),
        ([{"kind": "GET", "url": "/a"}, {"kind": "QueryItems", "param": "nope"}], ErrorKind.UNKNOWN_QUERY_PARAMETER),
        ([{"kind": "GET", "url": "/a"}, {"kind": "QueryParams", "params": ["nope"]}], ErrorKind.UNKNOWN_QUERY_PARAMETER),
        ([{"kind": "GET", "url": "/a/{missing}"}], ErrorKind.MALFORMED_TEMPLATE),
        ([{"kind": "GET", "url": "/a/{id=foo}"}], ErrorKind.UNSUPPORTED_DEFAULT),
    ],
)
def test_validation_errors(attributes, kind):
    with pytest.raises(GenerationError) as exc:
        build_operation(op(params=["id"], attributes=attributes), "decl.py:7 (S.get_post)")
    assert exc.value.kind == kind
    assert str(exc.value).startswith("decl.py:7 (S.get_post): ")


def test_placeholder_without_parameter_surfaces_its_default():
    o = build_operation(op(params=[], attributes=[{"kind": "GET", "url": "/posts/{page=3}"}]), "x")
    (p,) = o.params
    assert (p.name, p.annotation, p.default, p.declared) == ("page", "int", "3", False)


@pytest.mark.parametrize(
    "returns,expected",
    [
        (None, (ResponseArity.NONE, None)),
        ("None", (ResponseArity.NONE, None)),
        ("Post", (ResponseArity.REQUIRED, "Post")),
        ("list[Comment]", (ResponseArity.REQUIRED, "list[Comment]")),
        ("Optional[Post]", (ResponseArity.OPTIONAL, "Post")),
        ("typing.Optional[list[Post]]", (ResponseArity.OPTIONAL, "list[Post]")),
        ("Post | None", (ResponseArity.OPTIONAL, "Post")),
        ("Union[Post, None]", (ResponseArity.OPTIONAL, "Post")),
        ("Union[Post, Comment]", (ResponseArity.REQUIRED, "Union[Post, Comment]")),
    ],
)
def test_response_shape(returns, expected):
    assert response_shape(returns) == expected


def test_arity_is_independent_of_throwing():
    o = build_operation(
        op(returns="Post", attributes=[{"kind": "GET", "url": "/p"}, {"kind": "NonThrowing"}]), "x"
    )
    assert o.arity == ResponseArity.REQUIRED
    assert not o.throwing
    assert o.return_annotation == "Optional[Post]"


@pytest.mark.parametrize(
    "content_type,upload,expected",
    [
        ("application/json", False, BodyEncoding.JSON),
        ("application/json; charset=utf-8", False, BodyEncoding.JSON),
        ("application/x-www-form-urlencoded", False, BodyEncoding.FORM),
        (None, True, BodyEncoding.MULTIPART),
        ("image/png", True, BodyEncoding.MULTIPART),
        ("multipart/form-data", False, BodyEncoding.MULTIPART),
        ("text/plain", False, BodyEncoding.RAW),
        (None, False, BodyEncoding.JSON),
    ],
)
def test_select_body_encoding(content_type, upload, expected):
    assert select_body_encoding(content_type, upload) == expected


def test_convenience_params_go_keyword_only_after_a_default():
    o = build_operation(
        op(params=["id", ParamDecl(name="model", annotation="Post")], attributes=[
            {"kind": "POST", "url": "/posts/{id=2}"},
            {"kind": "Body", "param": "model"},
        ]),
        "x",
    )
    assert convenience_params(o) == ["*", "id: int = 2", "model: Post"]
    assert explicit_params(o) == ["id: int", "model: Post", "query_items: Sequence[QueryItem]"]


def test_build_service_rejects_clashing_members():
    decl = ServiceDecl(
        name="S",
        operations=[
            op(name="get", attributes=[{"kind": "GET", "url": "/a"}]),
            op(name="get_explicit", attributes=[{"kind": "GET", "url": "/b"}]),
        ],
    )
    with pytest.raises(GenerationError) as exc:
        build_service(decl)
    assert exc.value.kind == ErrorKind.DUPLICATE_OPERATION


def test_build_service_rejects_reserved_names():
    decl = ServiceDecl(name="S", operations=[op(name="base_url", attributes=[{"kind": "GET", "url": "/a"}])])
    with pytest.raises(GenerationError) as exc:
        build_service(decl)
    assert exc.value.kind == ErrorKind.INVALID_DECLARATION

    bad_param = ServiceDecl(
        name="S", operations=[op(params=["query_items"], attributes=[{"kind": "GET", "url": "/a"}])]
    )
    with pytest.raises(GenerationError):
        build_service(bad_param)


@pytest.mark.parametrize(
    "decl",
    [
        ServiceDecl(name="S", operations=[op(name="class", attributes=[{"kind": "GET", "url": "/a"}])]),
        ServiceDecl(name="S", operations=[op(name="get-post", attributes=[{"kind": "GET", "url": "/a"}])]),
        ServiceDecl(name="S", operations=[op(params=["in"], attributes=[{"kind": "GET", "url": "/a"}])]),
        ServiceDecl(name="S", operations=[op(params=["1st"], attributes=[{"kind": "GET", "url": "/a"}])]),
        ServiceDecl(name="def", operations=[op(attributes=[{"kind": "GET", "url": "/a"}])]),
    ],
)
def test_names_from_records_must_be_identifiers(decl):
    with pytest.raises(GenerationError) as exc:
        build_service(decl)
    assert exc.value.kind == ErrorKind.INVALID_DECLARATION
