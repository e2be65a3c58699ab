from __future__ import annotations

import hashlib
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Protocol, Sequence
from urllib.parse import quote, urlencode, urlsplit

import httpx
from pydantic import TypeAdapter, ValidationError

from declaro.errors import ErrorKind
from declaro.runtime.errors import ErrorDetails, ServiceError
from declaro.runtime.service import ALL_URLS, QueryItem, RequestHandler, ResponseHandler

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")


def join_url(base_url: str, path: str) -> str:
    # "https://x.io/api/" + "/posts/" -> "https://x.io/api/posts/"
    if not path:
        return base_url
    return base_url.rstrip("/") + "/" + path.lstrip("/")


def url_key(url: Any) -> str:
    """Hook lookup key for a URL: absolute form without query or fragment."""
    return str(httpx.URL(str(url)).copy_with(query=None, fragment=None))


def normalize_origin(url: str) -> str:
    """
    Scheme, host and port rendered the way httpx renders request URLs
    ("https://Example.test:443/a" -> "https://example.test/a"). The rest is
    kept verbatim so raw templates and patterns survive.
    """
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return url
    try:
        origin = str(httpx.URL(f"{parts.scheme}://{parts.netloc}")).rstrip("/")
    except httpx.InvalidURL:
        return url
    return origin + url[len(f"{parts.scheme}://{parts.netloc}") :]


def hook_key(base_url: str, path: str) -> str:
    """Registry key for a path under base_url, comparable with url_key()."""
    return normalize_origin(join_url(base_url, path))


def prepare_basic_request(
    url: str,
    method: str,
    query_items: Iterable[QueryItem],
    headers: Mapping[str, str],
    content: Optional[bytes] = None,
) -> httpx.Request:
    """Request with the query items appended; no '?' at all when there are none."""
    pairs = [item.as_pair() for item in query_items if item.value is not None]
    if pairs:
        # urlencode keeps item order; httpx.QueryParams would regroup by key
        query = urlencode(pairs, quote_via=quote)
        existing = httpx.URL(url).query.decode("ascii")
        if existing:
            query = f"{existing}&{query}"
        url = str(httpx.URL(url).copy_with(query=query.encode("ascii")))
    return httpx.Request(method, url, headers=list(headers.items()), content=content)


def matching_blocks(blocks: Optional[Mapping[str, Any]], resolved_url: str, raw_url: str) -> list[Any]:
    """
    Hooks that apply to one call. The "all" hook always applies and runs
    first; then every specific key equal to the resolved URL, equal to the
    raw template URL, or matching the resolved URL as a regular expression.
    """
    if not blocks:
        return []
    out = []
    if ALL_URLS in blocks:
        out.append(blocks[ALL_URLS])
    for key, block in blocks.items():
        if key == ALL_URLS:
            continue
        if key in (resolved_url, raw_url) or _pattern_matches(key, resolved_url):
            out.append(block)
    return out


def _pattern_matches(pattern: str, url: str) -> bool:
    try:
        return re.fullmatch(pattern, url) is not None
    except re.error:
        return False


def _snake_case(key: str) -> str:
    return _CAMEL_BOUNDARY.sub(r"_\1", key).lower()


def _convert_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {_snake_case(k) if isinstance(k, str) else k: _convert_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_convert_keys(v) for v in value]
    return value


class JSONDecoder:
    """Decodes response bodies into declared return types via pydantic."""

    def __init__(self, strict: bool = False, convert_from_camel_case: bool = False):
        self.strict = strict
        self.convert_from_camel_case = convert_from_camel_case
        self._adapters: dict[Any, TypeAdapter] = {}

    def _adapter(self, response_type: Any) -> TypeAdapter:
        try:
            adapter = self._adapters.get(response_type)
        except TypeError:
            return TypeAdapter(response_type)
        if adapter is None:
            adapter = TypeAdapter(response_type)
            self._adapters[response_type] = adapter
        return adapter

    def decode(self, response_type: Any, data: bytes) -> Any:
        adapter = self._adapter(response_type)
        if self.convert_from_camel_case:
            return adapter.validate_python(_convert_keys(json.loads(data)), strict=self.strict)
        return adapter.validate_json(data, strict=self.strict)


class PinningMode(Protocol):
    def verify(self, response: httpx.Response) -> bool: ...


@dataclass(frozen=True)
class CertificatePinning:
    """Accepts a response only when the peer certificate's SHA-256 is pinned."""

    fingerprints: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def of(cls, *fingerprints: str) -> "CertificatePinning":
        return cls(frozenset(f.replace(":", "").lower() for f in fingerprints))

    def verify(self, response: httpx.Response) -> bool:
        stream = response.extensions.get("network_stream")
        if stream is None:
            return False
        ssl_object = stream.get_extra_info("ssl_object")
        if ssl_object is None:
            return False
        der = ssl_object.getpeercert(binary_form=True)
        if not der:
            return False
        return hashlib.sha256(der).hexdigest() in self.fingerprints


def _excluded(urls: Sequence[str], resolved_url: str, raw_url: str) -> bool:
    # equal URL, or a prefix ending on a path segment boundary
    for u in urls:
        u = normalize_origin(u)
        if u in (resolved_url, raw_url) or resolved_url.startswith(u.rstrip("/") + "/"):
            return True
    return False


class Core:
    """
    Executes requests built by generated services.

    The transport is injectable (httpx.MockTransport in tests). No timeout is
    imposed unless configured.
    """

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ):
        self.transport = transport
        self.timeout = timeout

    def configure(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.transport = transport
        self.timeout = timeout

    async def perform_request(
        self,
        request: httpx.Request,
        *,
        raw_url: str,
        pinning: Optional[PinningMode] = None,
        urls_excluded_from_pinning: Sequence[str] = (),
        request_blocks: Optional[Mapping[str, RequestHandler]] = None,
        response_blocks: Optional[Mapping[str, ResponseHandler]] = None,
    ) -> tuple[bytes, httpx.Response]:
        """Send a request and return (body, response); non-2xx raises ServiceError."""
        for block in matching_blocks(request_blocks, url_key(request.url), raw_url):
            request = block(request)

        resolved = url_key(request.url)
        logger.debug("%s %s", request.method, request.url)

        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.send(request, stream=True)
                try:
                    if pinning is not None and not _excluded(urls_excluded_from_pinning, resolved, raw_url):
                        if not pinning.verify(response):
                            raise ServiceError(
                                ErrorKind.FAILED_TO_PIN,
                                ErrorDetails(localized_string="certificate pinning failed", url=resolved),
                            )
                    body = await response.aread()
                finally:
                    await response.aclose()
        except httpx.HTTPError as exc:
            logger.debug("%s %s failed: %s", request.method, request.url, exc)
            raise ServiceError(
                ErrorKind.UNKNOWN,
                ErrorDetails(localized_string=str(exc) or type(exc).__name__, url=resolved),
            ) from exc

        logger.debug("%s %s -> %s", request.method, request.url, response.status_code)

        for block in matching_blocks(response_blocks, url_key(response.url), raw_url):
            body = block(body, response)

        if not 200 <= response.status_code < 300:
            raise ServiceError(
                ErrorKind.UNEXPECTED_RESPONSE,
                ErrorDetails.for_status(response.status_code, url=resolved, body=body),
            )
        return body, response

    async def perform_request_and_decode(
        self,
        request: httpx.Request,
        *,
        raw_url: str,
        response_type: Any,
        decoder: Optional[JSONDecoder] = None,
        allow_empty: bool = False,
        pinning: Optional[PinningMode] = None,
        urls_excluded_from_pinning: Sequence[str] = (),
        request_blocks: Optional[Mapping[str, RequestHandler]] = None,
        response_blocks: Optional[Mapping[str, ResponseHandler]] = None,
    ) -> Any:
        body, response = await self.perform_request(
            request,
            raw_url=raw_url,
            pinning=pinning,
            urls_excluded_from_pinning=urls_excluded_from_pinning,
            request_blocks=request_blocks,
            response_blocks=response_blocks,
        )
        if allow_empty and not body.strip():
            return None

        decoder = decoder or JSONDecoder()
        try:
            return decoder.decode(response_type, body)
        except (ValidationError, ValueError) as exc:
            raise ServiceError(
                ErrorKind.FAILED_TO_MAP_RESPONSE,
                ErrorDetails(
                    status_code=response.status_code,
                    localized_string=str(exc),
                    url=url_key(response.url),
                    body=body,
                ),
            ) from exc


core = Core()
