import importlib.util
import sys
import textwrap
from pathlib import Path

import httpx
import pytest

from declaro.extractors.protocol import extract_module_from_source
from declaro.runtime.core import core
from declaro.synth.module import synthesize_module

BASE_URL = "https://example.test"

POSTS_DECLARATION = textwrap.dedent(
    '''
    from __future__ import annotations

    from typing import Optional, Protocol, Sequence

    from pydantic import BaseModel

    from declaro.markers import (
        DELETE,
        GET,
        POST,
        Body,
        FileUpload,
        Headers,
        Mockable,
        NonThrowing,
        QueryItems,
        QueryParams,
        Service,
    )
    from declaro.runtime.service import QueryItem


    class Post(BaseModel):
        id: int
        userId: int
        title: str
        body: str


    class Comment(BaseModel):
        postId: int
        id: int
        name: str
        email: str
        body: str


    @Service
    @Mockable
    class PostsEndpoint(Protocol):
        @GET("/posts/{id=2}")
        async def get_post(self, id: int) -> Post: ...

        @GET("/posts/{id=4}/comments")
        async def get_comments(self, id: int) -> list[Comment]: ...

        @GET("/posts/{id=4}/comments/{commentId=2}")
        async def get_certain_comment(self, id: int, commentId: int) -> list[Comment]: ...

        @GET("/posts/{id}")
        async def get_nullable_post(self, id: Optional[int]) -> Post: ...

        @GET("/posts/{id}")
        @QueryParams("boolVal", "intVal", "stringVal")
        async def get_post_with_query_item(
            self, id: int, boolVal: bool, intVal: int, stringVal: Optional[str]
        ) -> Post: ...

        @GET("/posts")
        @QueryItems("filters")
        async def search_posts(self, filters: Sequence[QueryItem]) -> list[Post]: ...

        @POST("/posts")
        @Headers({"Content-Type": "application/json"})
        @Body("model")
        async def add_post(self, model: Post) -> Post: ...

        @POST("/posts/form")
        @Headers({"Content-Type": "application/x-www-form-urlencoded"})
        @Body("model")
        async def add_post_form(self, model: Post) -> Post: ...

        @GET("/posts/")
        @NonThrowing
        async def get_non_throwing_posts(self) -> Optional[list[Post]]: ...

        @GET("posts")
        async def get_no_response_posts(self) -> None: ...

        @GET("/posts/{id}/maybe")
        async def find_post(self, id: int) -> Optional[Post]: ...

        @POST("/file")
        @FileUpload
        @Body("file")
        async def upload_file(self, file: bytes) -> Post: ...

        @DELETE("/posts/{id}")
        @NonThrowing
        async def delete_post(self, id: int) -> None: ...
    '''
)

POST_JSON = {"id": 1, "userId": 1, "title": "Some title", "body": "some body"}
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def import_generated(code: str, path: Path, name: str):
    path.write_text(code, encoding="utf-8")
    spec = importlib.util.spec_from_file_location(name, path)
    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def load_generated(tmp_path, monkeypatch):
    """Synthesize a declaration source and import the result as a real module."""
    counter = {"n": 0}

    def _load(source: str):
        counter["n"] += 1
        name = f"declaro_generated_{tmp_path.name}_{counter['n']}"
        generated = synthesize_module(extract_module_from_source(source, source_path="decl.py"))
        # registered first so teardown removes the entry again
        monkeypatch.setitem(sys.modules, name, None)
        return import_generated(generated.code, tmp_path / f"{name}.py", name)

    return _load


@pytest.fixture
def posts_module(load_generated):
    return load_generated(POSTS_DECLARATION)


@pytest.fixture
def use_transport():
    """Route the shared runtime core through an httpx.MockTransport handler."""

    def _use(handler):
        core.configure(transport=httpx.MockTransport(handler))

    yield _use
    core.configure(transport=None)


@pytest.fixture
def recorder(use_transport):
    """Answers 200 + POST_JSON (or a per-test payload) and records every request."""
    seen: list[httpx.Request] = []
    state = {"status": 200, "json": POST_JSON, "content": None}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if state["content"] is not None:
            return httpx.Response(state["status"], content=state["content"])
        return httpx.Response(state["status"], json=state["json"])

    use_transport(handler)
    return seen, state
