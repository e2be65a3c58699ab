import pytest

from declaro.errors import ErrorKind, GenerationError
from declaro.template.resolver import (
    Literal,
    Placeholder,
    literal_source,
    parse_template,
    raw_template,
)


def test_parse_template_literals_and_placeholders():
    segs = parse_template("/posts/{id=2}/comments/{commentId}")
    assert segs == (
        Literal("/posts/"),
        Placeholder("id", "2"),
        Literal("/comments/"),
        Placeholder("commentId"),
    )


def test_parse_template_without_placeholders():
    assert parse_template("posts") == (Literal("posts"),)
    assert parse_template("") == ()


@pytest.mark.parametrize("template", ["/posts/{id", "/posts/{id}/{", "/posts/id}", "/a/{}/b", "/a/{1x}"])
def test_malformed_templates(template):
    with pytest.raises(GenerationError) as exc:
        parse_template(template)
    assert exc.value.kind == ErrorKind.MALFORMED_TEMPLATE


@pytest.mark.parametrize("default", ["foo", "x + 1", "len('a')", "[1]", "None"])
def test_non_literal_defaults_are_rejected(default):
    with pytest.raises(GenerationError) as exc:
        parse_template("/posts/{id=" + default + "}")
    assert exc.value.kind == ErrorKind.UNSUPPORTED_DEFAULT


def test_literal_defaults():
    assert literal_source("2") == "2"
    assert literal_source("-3") == "-3"
    assert literal_source("true") == "True"
    assert literal_source("'draft'") == "'draft'"
    assert parse_template("/s/{slug='a}b'}") == (Literal("/s/"), Placeholder("slug", "'a}b'"))


def test_raw_template_strips_defaults():
    assert raw_template(parse_template("/posts/{id=4}/comments/{commentId=2}")) == "/posts/{id}/comments/{commentId}"


@pytest.mark.parametrize("template", ["/a/{from=0}", "/a/{class}", "/a/{None}"])
def test_keyword_placeholder_names_are_rejected(template):
    with pytest.raises(GenerationError) as exc:
        parse_template(template)
    assert exc.value.kind == ErrorKind.MALFORMED_TEMPLATE
