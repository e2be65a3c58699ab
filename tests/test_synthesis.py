import pytest

from declaro.config import GeneratorSettings
from declaro.domain.models import ModuleDecl
from declaro.errors import ErrorKind, GenerationError
from declaro.extractors.protocol import extract_module_from_source
from declaro.synth.module import synthesize_module

from conftest import POSTS_DECLARATION


def _synth(source=POSTS_DECLARATION, settings=None):
    return synthesize_module(extract_module_from_source(source, source_path="api/posts.py"), settings)


def test_generated_code_compiles():
    code = _synth().code
    compile(code, "posts_generated.py", "exec")
    assert code.startswith("# Generated by declaro. Do not edit. Source: posts.py\n")


def test_generation_is_deterministic():
    assert _synth().code == _synth().code


def test_both_entry_points_and_slots_are_emitted():
    code = _synth().code

    assert "class PostsEndpoint(Protocol):" in code
    assert "class PostsEndpointService(PostsEndpoint, Service):" in code
    assert "class PostsEndpointServiceMock(PostsEndpoint, Service):" in code
    assert "async def get_post(self, id: int = 2) -> Post:" in code
    assert "async def get_post_explicit(self, id: int, query_items: Sequence[QueryItem]) -> Post:" in code
    assert "self.get_post_result: Result[Post] = Failure(ServiceError(ErrorKind.UNKNOWN))" in code
    assert "self.get_no_response_posts_result: Optional[BaseException] = ServiceError(ErrorKind.UNKNOWN)" in code
    assert "async def get_non_throwing_posts(self) -> Optional[list[Post]]:" in code


def test_settings_control_emitted_classes():
    settings = GeneratorSettings(service_suffix="Client", emit_mock=False)
    result = _synth(settings=settings)

    assert "class PostsEndpointClient(PostsEndpoint, Service):" in result.code
    assert "ServiceMock" not in result.code
    assert result.class_names(settings) == ["PostsEndpoint", "PostsEndpointClient"]


def test_mockable_only_interface_gets_no_live_class():
    src = """
from typing import Protocol
from declaro.markers import GET, Mockable

@Mockable
class Ping(Protocol):
    @GET("/ping")
    async def ping(self) -> None: ...
"""
    result = _synth(src)
    assert result.class_names() == ["Ping", "PingServiceMock"]
    assert "class PingService(" not in result.code


def test_one_bad_operation_aborts_everything():
    src = POSTS_DECLARATION + '''

@Service
class Broken(Protocol):
    @GET("/a/{id=nope}")
    async def a(self, id: int) -> None: ...
'''
    with pytest.raises(GenerationError) as exc:
        _synth(src)
    assert exc.value.kind == ErrorKind.UNSUPPORTED_DEFAULT
    assert "(Broken.a)" in str(exc.value)


def test_module_from_records():
    module = ModuleDecl.from_dict(
        {
            "source_path": "records.json",
            "services": [
                {
                    "name": "Status",
                    "mock": False,
                    "operations": [
                        {
                            "name": "status",
                            "returns": "dict",
                            "attributes": [
                                {"kind": "GET", "url": "/status/{verbose=false}"},
                                {"kind": "NonThrowing"},
                            ],
                        }
                    ],
                }
            ],
        }
    )
    code = synthesize_module(module).code
    compile(code, "records_generated.py", "exec")
    assert "async def status(self, verbose: bool = False) -> Optional[dict]:" in code
    assert "StatusServiceMock" not in code


def test_keyword_names_in_records_are_rejected():
    module = ModuleDecl.from_dict(
        {
            "services": [
                {
                    "name": "Status",
                    "operations": [
                        {
                            "name": "lookup",
                            "params": [{"name": "from", "annotation": "int"}],
                            "attributes": [{"kind": "GET", "url": "/status"}],
                        }
                    ],
                }
            ],
        }
    )
    with pytest.raises(GenerationError) as exc:
        synthesize_module(module)
    assert exc.value.kind == ErrorKind.INVALID_DECLARATION


def test_keyword_placeholder_in_declaration_is_rejected():
    src = POSTS_DECLARATION + '''

@Service
class Ranges(Protocol):
    @GET("/range/{from=0}")
    async def window(self) -> None: ...
'''
    with pytest.raises(GenerationError) as exc:
        _synth(src)
    assert exc.value.kind == ErrorKind.MALFORMED_TEMPLATE


def test_carried_definitions_keep_trailing_whitespace():
    banner = 'BANNER = """\nfirst line   \nsecond line\t\n"""'
    code = _synth(POSTS_DECLARATION + "\n\n" + banner + "\n").code
    assert banner in code
    compile(code, "posts_generated.py", "exec")
