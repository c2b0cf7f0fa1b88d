# ABOUTME: Content-negotiating HTTP fetcher used by every component that touches the network.
# ABOUTME: Follows redirects and meta refreshes, bounds response size, and classifies/decodes bodies.

import codecs
import dataclasses
import inspect
import json
import logging
import re
from collections.abc import Awaitable, Callable, Collection, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, TypeVar, runtime_checkable
from urllib.parse import urljoin

import httpx

from bibgate.http.document import Document
from bibgate.http.errors import (
    FetchError,
    FetchTimeoutError,
    ResponseSizeError,
    StatusError,
    UnsupportedFormatError,
)
from bibgate.http.mimetype import MimeType

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_USER_AGENT = "bibgate/0.1.0"
DEFAULT_TIMEOUT = 15.0
DEFAULT_MAX_RESPONSE_SIZE = 50 * 1024 * 1024

# Meta refreshes with a longer delay are treated as page content, not redirects.
_META_REFRESH_MAX_DELAY = 15
_MAX_META_REFRESHES = 10
_MAX_REDIRECTS = 10
_LOG_BODY_LENGTH = 1024

_PASSWORD_JSON_RE = re.compile(r'password":"[^"]+')
_PASSWORD_FORM_RE = re.compile(r"password=[^&]+")


class ResponseType(Enum):
    """How a response body is materialized."""

    DOCUMENT = "document"
    JSON = "json"
    TEXT = "text"


@dataclass
class FetchOptions:
    """Per-request options for HttpFetcher.fetch.

    ``response_type_map`` maps a MIME essence to a ResponseType. The special
    keys ``"html"`` and ``"xml"`` match any HTML or XML type, and ``""`` is a
    wildcard for everything else. Content types the map cannot classify are
    rejected before the body is downloaded.

    ``success_codes`` is an allow-list of statuses, ``True`` to accept any
    status, or None for the 2xx range.
    """

    headers: dict[str, str] = field(default_factory=dict)
    body: str | bytes | dict[str, Any] | list[Any] | None = None
    response_type: ResponseType | None = None
    response_type_map: dict[str, ResponseType] | None = None
    max_response_size: int | None = None
    timeout: float | None = None
    success_codes: Collection[int] | bool | None = None
    cookies: httpx.Cookies | None = None


@dataclass
class FetchResult:
    """A classified HTTP response."""

    url: str
    status: int
    headers: httpx.Headers
    response_type: ResponseType
    content_type: MimeType
    body: Any

    @property
    def document(self) -> Document:
        if self.response_type is not ResponseType.DOCUMENT:
            raise TypeError(f"Response from {self.url} is {self.response_type.value}, not a document")
        return self.body

    @property
    def text(self) -> str | None:
        return self.body if self.response_type is ResponseType.TEXT else None


@runtime_checkable
class Fetcher(Protocol):
    """Protocol for the outbound HTTP layer sessions and the registry depend on."""

    async def fetch(
        self, method: str, url: str, options: FetchOptions | None = None
    ) -> FetchResult: ...


class HttpFetcher:
    """Async HTTP fetcher with content negotiation and a streaming size guard.

    Wraps a single httpx.AsyncClient for connection pooling. Redirects are
    followed here rather than by httpx so each hop goes through the caller's
    cookie jar, keeping cookies scoped to one translation session.
    """

    def __init__(
        self,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = DEFAULT_TIMEOUT,
        max_response_size: int = DEFAULT_MAX_RESPONSE_SIZE,
        persistent_cookies: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        client_kwargs: dict[str, Any] = {"timeout": timeout}
        if transport is not None:
            client_kwargs["transport"] = transport
        self._client = httpx.AsyncClient(**client_kwargs)
        self._user_agent = user_agent
        self._timeout = timeout
        self._max_response_size = max_response_size
        self._shared_cookies = httpx.Cookies() if persistent_cookies else None

    async def __aenter__(self) -> "HttpFetcher":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch(
        self, method: str, url: str, options: FetchOptions | None = None
    ) -> FetchResult:
        """Perform a request and return the classified response.

        Args:
            method: HTTP method ("GET", "POST", "HEAD", ...).
            url: Absolute URL to request.
            options: Request options; defaults apply when omitted.

        Raises:
            ValueError: If a GET or HEAD request is given a body.
            UnsupportedFormatError: Missing or unacceptable Content-Type.
            StatusError: Status outside the accepted set.
            ResponseSizeError: Body larger than the configured maximum.
            FetchTimeoutError: The request exceeded its deadline.
            FetchError: Any other transport failure.
        """
        return await self._fetch(method.upper(), url, options or FetchOptions(), 0)

    async def fetch_many(
        self,
        urls: str | Sequence[str],
        processor: Callable[[Document, str], T | Awaitable[T]],
        options: FetchOptions | None = None,
    ) -> list[T]:
        """Load documents one after another and run ``processor`` on each.

        Fetches are strictly serial. The first failure, from the fetch or the
        processor, aborts the remaining URLs and propagates.
        """
        if isinstance(urls, str):
            urls = [urls]
        doc_options = dataclasses.replace(
            options or FetchOptions(), response_type=ResponseType.DOCUMENT
        )

        results: list[T] = []
        for url in urls:
            result = await self.fetch("GET", url, doc_options)
            value = processor(result.document, result.url)
            if inspect.isawaitable(value):
                value = await value
            results.append(value)
        return results

    async def _fetch(
        self, method: str, url: str, options: FetchOptions, refresh_hops: int
    ) -> FetchResult:
        headers = httpx.Headers({"User-Agent": self._user_agent, "Accept": "*/*"})
        headers.update(options.headers)
        content = _encode_body(method, options.body, headers)
        logger.debug("HTTP %s %s%s", method, url, _describe_body(content))

        timeout = options.timeout if options.timeout is not None else self._timeout
        max_size = (
            options.max_response_size
            if options.max_response_size is not None
            else self._max_response_size
        )
        cookies = options.cookies
        if cookies is None:
            cookies = self._shared_cookies if self._shared_cookies is not None else httpx.Cookies()

        response, final_url = await self._send(method, url, headers, content, cookies, timeout)
        try:
            content_type = _parse_content_type(final_url, response)
            if not _is_success(response.status_code, options.success_codes):
                body = await self._read_error_body(final_url, response, max_size, timeout)
                raise StatusError(final_url, response.status_code, body)
            if not _is_supported(content_type, options):
                raise UnsupportedFormatError(
                    final_url, f"{response.headers['content-type']} is not supported"
                )
            _check_content_length(final_url, response, max_size)
            raw = await self._read_body(final_url, response, max_size, timeout)
        finally:
            await response.aclose()

        response_type = _response_type(content_type, options)
        result = FetchResult(
            url=final_url,
            status=response.status_code,
            headers=response.headers,
            response_type=response_type,
            content_type=content_type,
            body=_decode_body(final_url, raw, content_type, response_type),
        )

        document = result.body if response_type is ResponseType.DOCUMENT else None
        if document is not None and (document.is_html or document.is_xhtml):
            refresh = document.meta_refresh()
            if refresh is not None and refresh[0] <= _META_REFRESH_MAX_DELAY:
                if refresh_hops >= _MAX_META_REFRESHES:
                    logger.warning("Not following meta refresh from %s: too many hops", final_url)
                    return result
                target = urljoin(final_url, refresh[1])
                logger.debug("Meta refresh to %s", target)
                return await self._fetch(method, target, options, refresh_hops + 1)
        return result

    async def _send(
        self,
        method: str,
        url: str,
        headers: httpx.Headers,
        content: bytes | None,
        cookies: httpx.Cookies,
        timeout: float,
    ) -> tuple[httpx.Response, str]:
        """Send the request, following redirects through the given cookie jar.

        Returns the final streamed response (body not yet read) and its URL.
        """
        current = url
        for _ in range(_MAX_REDIRECTS + 1):
            try:
                request = httpx.Request(
                    method,
                    current,
                    headers=headers,
                    content=content,
                    extensions={"timeout": httpx.Timeout(timeout).as_dict()},
                )
            except (httpx.InvalidURL, ValueError) as exc:
                raise FetchError(current, f"Invalid URL: {current}") from exc
            cookies.set_cookie_header(request)

            try:
                response = await self._client.send(request, stream=True, follow_redirects=False)
            except httpx.TimeoutException as exc:
                raise FetchTimeoutError(current, timeout) from exc
            except httpx.HTTPError as exc:
                raise FetchError(current, f"Request failed: {current}: {exc}") from exc
            finally:
                # Cookies live in the per-session jar, never in the shared client.
                self._client.cookies.clear()
            cookies.extract_cookies(response)

            if not response.is_redirect:
                return response, str(request.url)

            await response.aclose()
            current = urljoin(str(request.url), response.headers["location"])
            status = response.status_code
            if (status == 303 and method != "HEAD") or (status in (301, 302) and method == "POST"):
                method = "GET"
                content = None
                headers.pop("content-type", None)
            logger.debug("Redirect %d to %s", status, current)

        raise FetchError(url, f"Exceeded {_MAX_REDIRECTS} redirects for {url}")

    async def _read_body(
        self, url: str, response: httpx.Response, max_size: int, timeout: float
    ) -> bytes:
        """Accumulate the body, aborting as soon as it exceeds ``max_size``."""
        chunks: list[bytes] = []
        total = 0
        try:
            async for chunk in response.aiter_bytes():
                total += len(chunk)
                if total > max_size:
                    raise ResponseSizeError(url)
                chunks.append(chunk)
        except httpx.TimeoutException as exc:
            raise FetchTimeoutError(url, timeout) from exc
        except httpx.HTTPError as exc:
            raise FetchError(url, f"Request failed: {url}: {exc}") from exc
        return b"".join(chunks)

    async def _read_error_body(
        self, url: str, response: httpx.Response, max_size: int, timeout: float
    ) -> str:
        try:
            raw = await self._read_body(url, response, max_size, timeout)
        except FetchError:
            return ""
        return raw.decode("utf-8", errors="replace")


def _parse_content_type(url: str, response: httpx.Response) -> MimeType:
    raw_type = response.headers.get("content-type")
    if not raw_type:
        raise UnsupportedFormatError(url, "Missing Content-Type header")
    try:
        return MimeType.parse(raw_type)
    except ValueError as exc:
        raise UnsupportedFormatError(url, f"{raw_type} is not supported") from exc


def _encode_body(
    method: str, body: str | bytes | dict[str, Any] | list[Any] | None, headers: httpx.Headers
) -> bytes | None:
    if method in ("GET", "HEAD"):
        if body is not None:
            raise ValueError(f"HTTP {method} cannot have a request body ({body!r})")
        return None
    if not body:
        return None

    if isinstance(body, bytes):
        content = body
    else:
        content = (body if isinstance(body, str) else json.dumps(body)).encode("utf-8")

    if "content-type" not in headers:
        headers["Content-Type"] = "application/x-www-form-urlencoded"
    elif headers["content-type"] == "multipart/form-data":
        # The transport adds the boundary-carrying header itself.
        del headers["content-type"]
    return content


def _describe_body(content: bytes | None) -> str:
    if not content:
        return ""
    text = content[:_LOG_BODY_LENGTH].decode("utf-8", errors="replace")
    if len(content) > _LOG_BODY_LENGTH:
        text += "..."
    text = _PASSWORD_JSON_RE.sub('password":"********', text)
    text = _PASSWORD_FORM_RE.sub("password=********", text)
    return f": {text}"


def _is_success(status: int, success_codes: Collection[int] | bool | None) -> bool:
    if success_codes is True:
        return True
    if success_codes:
        return status in success_codes
    return 200 <= status < 300


def _is_supported(mime: MimeType, options: FetchOptions) -> bool:
    if options.response_type is ResponseType.DOCUMENT:
        return mime.is_html() or mime.is_xml()
    if options.response_type is not None:
        return True
    type_map = options.response_type_map
    if type_map is None:
        return True
    return (
        mime.essence in type_map
        or ("html" in type_map and mime.is_html())
        or ("xml" in type_map and mime.is_xml())
        or "" in type_map
    )


def _response_type(mime: MimeType, options: FetchOptions) -> ResponseType:
    if options.response_type is not None:
        return options.response_type
    type_map = options.response_type_map
    if type_map:
        if mime.essence in type_map:
            return type_map[mime.essence]
        if "html" in type_map and mime.is_html():
            return type_map["html"]
        if "xml" in type_map and mime.is_xml():
            return type_map["xml"]
        if "" in type_map:
            return type_map[""]
    return ResponseType.TEXT


def _check_content_length(url: str, response: httpx.Response, max_size: int) -> None:
    # Content-Length may be absent or describe the compressed size, but an
    # oversized declaration is still worth rejecting before downloading.
    declared = response.headers.get("content-length")
    if declared is None:
        return
    try:
        length = int(declared)
    except ValueError:
        return
    if length > max_size:
        raise ResponseSizeError(url)


def _decode_body(
    url: str, raw: bytes, content_type: MimeType, response_type: ResponseType
) -> Any:
    if response_type is ResponseType.DOCUMENT:
        return Document.parse(url, raw, content_type)
    if response_type is ResponseType.JSON:
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise UnsupportedFormatError(url, f"Invalid JSON response from {url}") from exc
    return _decode_text(raw, content_type)


def _decode_text(raw: bytes, content_type: MimeType) -> str:
    charset = content_type.charset or "utf-8"
    try:
        codecs.lookup(charset)
    except LookupError:
        logger.debug("Unknown charset %s -- decoding as UTF-8", charset)
        charset = "utf-8"
    return raw.decode(charset, errors="replace")
