# ABOUTME: Unit tests for HttpFetcher.
# ABOUTME: Tests negotiation, the size guard, status handling, redirects, and meta refresh.

from collections.abc import AsyncIterator

import httpx
import pytest

from bibgate.http import (
    Document,
    FetchError,
    Fetcher,
    FetchOptions,
    FetchTimeoutError,
    HttpFetcher,
    ResponseSizeError,
    ResponseType,
    StatusError,
    UnsupportedFormatError,
)
from tests.fixtures import pages

BASE = pages.BASE_URL


class ChunkedStream(httpx.AsyncByteStream):
    """Streams a body in chunks without announcing its length."""

    def __init__(self, chunks: list[bytes]) -> None:
        self._chunks = chunks
        self.sent = 0

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for chunk in self._chunks:
            self.sent += 1
            yield chunk


def _fetcher(handler, **kwargs) -> HttpFetcher:
    return HttpFetcher(transport=httpx.MockTransport(handler), **kwargs)


class TestFetcherProtocol:
    """Tests for Fetcher protocol compliance."""

    def test_http_fetcher_satisfies_protocol(self, fetcher: HttpFetcher) -> None:
        """HttpFetcher satisfies the Fetcher protocol."""
        assert isinstance(fetcher, Fetcher)


class TestClassification:
    """Tests for response classification."""

    async def test_html_as_document(self, fetcher: HttpFetcher) -> None:
        """An HTML page is parsed into a Document when a document is requested."""
        result = await fetcher.fetch(
            "GET", f"{BASE}/plain", FetchOptions(response_type=ResponseType.DOCUMENT)
        )
        assert result.response_type is ResponseType.DOCUMENT
        assert isinstance(result.body, Document)
        assert result.document.title == "A Plain Page"

    async def test_type_map_exact_match(self, fetcher: HttpFetcher) -> None:
        """An exact essence in the type map wins."""
        options = FetchOptions(
            response_type_map={"application/x-bibtex": ResponseType.TEXT}
        )
        result = await fetcher.fetch("GET", f"{BASE}/bibtex", options)
        assert result.response_type is ResponseType.TEXT
        assert result.text is not None
        assert result.text.startswith("@article")

    async def test_type_map_html_key(self, fetcher: HttpFetcher) -> None:
        """The "html" key matches any HTML content type."""
        options = FetchOptions(response_type_map={"html": ResponseType.DOCUMENT})
        result = await fetcher.fetch("GET", f"{BASE}/plain", options)
        assert result.response_type is ResponseType.DOCUMENT

    async def test_type_map_wildcard(self, fetcher: HttpFetcher) -> None:
        """The "" key catches types nothing else matched."""
        options = FetchOptions(response_type_map={"": ResponseType.TEXT})
        result = await fetcher.fetch("GET", f"{BASE}/bibtex", options)
        assert result.response_type is ResponseType.TEXT

    async def test_unmapped_type_rejected(self, fetcher: HttpFetcher) -> None:
        """A content type the map cannot classify fails fast."""
        options = FetchOptions(response_type_map={"html": ResponseType.DOCUMENT})
        with pytest.raises(UnsupportedFormatError):
            await fetcher.fetch("GET", f"{BASE}/invalidContentType", options)

    async def test_missing_content_type_rejected(self, fetcher: HttpFetcher) -> None:
        """A response without Content-Type never falls through to text decoding."""
        with pytest.raises(UnsupportedFormatError, match="Missing Content-Type"):
            await fetcher.fetch("GET", f"{BASE}/missingContentType")

    async def test_json_body(self) -> None:
        """JSON responses are decoded."""
        fetcher = _fetcher(lambda request: httpx.Response(200, json={"ok": True}))
        result = await fetcher.fetch(
            "GET", "http://api.test/", FetchOptions(response_type=ResponseType.JSON)
        )
        assert result.body == {"ok": True}

    async def test_charset_decoding(self) -> None:
        """Text is decoded with the declared charset."""
        fetcher = _fetcher(
            lambda request: httpx.Response(
                200,
                headers={"Content-Type": "text/plain; charset=iso-8859-1"},
                content="café".encode("iso-8859-1"),
            )
        )
        result = await fetcher.fetch("GET", "http://api.test/")
        assert result.text == "café"

    async def test_unknown_charset_falls_back_to_utf8(self) -> None:
        """An unrecognized charset decodes as UTF-8."""
        fetcher = _fetcher(
            lambda request: httpx.Response(
                200,
                headers={"Content-Type": "text/plain; charset=x-made-up"},
                content="café".encode("utf-8"),
            )
        )
        result = await fetcher.fetch("GET", "http://api.test/")
        assert result.text == "café"

    async def test_headless_html_has_implied_head(self) -> None:
        """Meta tags in HTML without a <head> tag are still found."""
        fetcher = _fetcher(
            lambda request: httpx.Response(
                200,
                headers={"Content-Type": "text/html"},
                content=b'<meta name="description" content="Loose meta"><p>Body</p>',
            )
        )
        result = await fetcher.fetch(
            "GET", "http://bare.test/", FetchOptions(response_type=ResponseType.DOCUMENT)
        )
        assert result.document.is_html
        assert result.document.meta_content("description") == "Loose meta"

    async def test_xhtml_parsed_as_xml(self, fetcher: HttpFetcher) -> None:
        """An XHTML page gets no synthesized <head>."""
        options = FetchOptions(
            response_type_map={"application/xhtml+xml": ResponseType.DOCUMENT}
        )
        result = await fetcher.fetch("GET", f"{BASE}/xhtml-headless", options)
        assert result.document.is_xhtml
        assert not result.document.is_html
        assert result.document.head is None
        assert result.document.meta_content("description") is None


class TestSizeGuard:
    """Tests for the streaming response size guard."""

    async def test_content_length_over_limit(self, fetcher: HttpFetcher) -> None:
        """A declared Content-Length above the maximum is rejected."""
        with pytest.raises(ResponseSizeError):
            await fetcher.fetch("GET", f"{BASE}/large")

    async def test_streamed_body_over_limit_aborts(self) -> None:
        """A body without Content-Length is cut off once it passes the maximum."""
        stream = ChunkedStream([b"x" * 100] * 50)
        fetcher = _fetcher(
            lambda request: httpx.Response(
                200, headers={"Content-Type": "text/plain"}, stream=stream
            ),
            max_response_size=250,
        )
        with pytest.raises(ResponseSizeError):
            await fetcher.fetch("GET", "http://big.test/")
        assert stream.sent < 50

    async def test_per_request_limit(self, fetcher: HttpFetcher) -> None:
        """Options can raise the limit for a single request."""
        result = await fetcher.fetch(
            "GET", f"{BASE}/large", FetchOptions(max_response_size=pages.LARGE_SIZE * 2)
        )
        assert result.status == 200


class TestStatus:
    """Tests for status handling."""

    async def test_non_2xx_raises_status_error(self, fetcher: HttpFetcher) -> None:
        """A 404 raises StatusError carrying status and body."""
        with pytest.raises(StatusError) as excinfo:
            await fetcher.fetch("GET", f"{BASE}/nowhere")
        assert excinfo.value.status == 404
        assert "Not Found" in excinfo.value.body

    async def test_allow_list(self, fetcher: HttpFetcher) -> None:
        """Statuses in success_codes are accepted."""
        result = await fetcher.fetch("GET", f"{BASE}/nowhere", FetchOptions(success_codes=[404]))
        assert result.status == 404

    async def test_accept_any(self, fetcher: HttpFetcher) -> None:
        """success_codes=True accepts any status."""
        result = await fetcher.fetch("GET", f"{BASE}/500", FetchOptions(success_codes=True))
        assert result.status == 500

    async def test_timeout(self) -> None:
        """Transport timeouts surface as FetchTimeoutError, a TimeoutError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        fetcher = _fetcher(handler, timeout=2.5)
        with pytest.raises(TimeoutError) as excinfo:
            await fetcher.fetch("GET", "http://slow.test/")
        assert isinstance(excinfo.value, FetchTimeoutError)
        assert "2500ms" in str(excinfo.value)

    async def test_connection_error(self) -> None:
        """Other transport failures raise FetchError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(FetchError, match="Request failed"):
            await _fetcher(handler).fetch("GET", "http://down.test/")


class TestRequests:
    """Tests for request construction."""

    async def test_get_with_body_rejected(self, fetcher: HttpFetcher) -> None:
        """GET requests cannot carry a body."""
        with pytest.raises(ValueError, match="cannot have a request body"):
            await fetcher.fetch("GET", f"{BASE}/plain", FetchOptions(body="x"))

    async def test_post_json_body_and_default_content_type(self) -> None:
        """Non-string bodies are JSON-encoded; POSTs default to form encoding."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text="ok")

        await _fetcher(handler).fetch("POST", "http://api.test/", FetchOptions(body={"a": 1}))
        assert seen[0].content == b'{"a": 1}'
        assert seen[0].headers["content-type"] == "application/x-www-form-urlencoded"

    async def test_user_agent(self) -> None:
        """Requests carry the configured User-Agent."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text="ok")

        await _fetcher(handler, user_agent="bibgate-test/1").fetch("GET", "http://api.test/")
        assert seen[0].headers["user-agent"] == "bibgate-test/1"


class TestRedirects:
    """Tests for HTTP redirects and meta refresh."""

    async def test_redirect_followed(self, fetcher: HttpFetcher) -> None:
        """The result carries the final URL after redirects."""
        result = await fetcher.fetch("GET", f"{BASE}/redirect")
        assert result.url == f"{BASE}/single"

    async def test_meta_refresh_followed(self, fetcher: HttpFetcher) -> None:
        """A short meta refresh on an HTML document is followed."""
        result = await fetcher.fetch(
            "GET", f"{BASE}/metaRefresh", FetchOptions(response_type=ResponseType.DOCUMENT)
        )
        assert result.url == f"{BASE}/single"
        assert result.document.meta_content("citation_title") == "The Single Article"

    async def test_meta_refresh_loop_stops(self) -> None:
        """A page refreshing to itself is returned after the hop limit."""
        calls: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(str(request.url))
            return httpx.Response(
                200,
                headers={"Content-Type": "text/html"},
                content=b'<html><head><meta http-equiv="refresh" content="0; url=/loop">'
                b"</head></html>",
            )

        fetcher = _fetcher(handler)
        result = await fetcher.fetch(
            "GET", "http://loop.test/loop", FetchOptions(response_type=ResponseType.DOCUMENT)
        )
        assert result.status == 200
        assert len(calls) == 11

    async def test_slow_meta_refresh_ignored(self) -> None:
        """A refresh delay above 15 seconds is not followed."""
        fetcher = _fetcher(
            lambda request: httpx.Response(
                200,
                headers={"Content-Type": "text/html"},
                content=b'<html><head><meta http-equiv="refresh" content="30; url=/other">'
                b"</head></html>",
            )
        )
        result = await fetcher.fetch(
            "GET", "http://slow.test/page", FetchOptions(response_type=ResponseType.DOCUMENT)
        )
        assert result.url == "http://slow.test/page"

    async def test_cookies_scoped_to_jar(self) -> None:
        """Cookies set during a redirect are sent on the next hop and kept in the jar."""
        seen_cookies: list[str | None] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen_cookies.append(request.headers.get("cookie"))
            if request.url.path == "/login":
                return httpx.Response(
                    302, headers={"Location": "/home", "Set-Cookie": "sid=abc; Path=/"}
                )
            return httpx.Response(200, text="home")

        jar = httpx.Cookies()
        fetcher = _fetcher(handler)
        await fetcher.fetch("GET", "http://site.test/login", FetchOptions(cookies=jar))
        assert seen_cookies == [None, "sid=abc"]
        assert jar.get("sid") == "abc"

        seen_cookies.clear()
        await fetcher.fetch("GET", "http://site.test/home")
        assert seen_cookies == [None]


class TestFetchMany:
    """Tests for fetch_many."""

    async def test_results_in_order(self, fetcher: HttpFetcher) -> None:
        """The processor's results come back in URL order."""
        titles = await fetcher.fetch_many(
            [f"{BASE}/plain", f"{BASE}/single"], lambda doc, url: doc.title
        )
        assert titles == ["A Plain Page", "Single Item"]

    async def test_async_processor(self, fetcher: HttpFetcher) -> None:
        """An async processor is awaited."""

        async def processor(doc: Document, url: str) -> str:
            return url

        assert await fetcher.fetch_many(f"{BASE}/plain", processor) == [f"{BASE}/plain"]

    async def test_first_failure_aborts(self) -> None:
        """A failing fetch stops the remaining URLs from being requested."""
        requested: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(request.url.path)
            return pages.handle(request)

        fetcher = _fetcher(handler)
        with pytest.raises(StatusError):
            await fetcher.fetch_many(
                [f"{BASE}/plain", f"{BASE}/nowhere", f"{BASE}/single"],
                lambda doc, url: doc.title,
            )
        assert requested == ["/plain", "/nowhere"]
