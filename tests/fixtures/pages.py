# ABOUTME: Canned remote pages served through httpx.MockTransport for fetcher and endpoint tests.
# ABOUTME: Each path under http://test.local/ models one upstream behavior.

import httpx

BASE_URL = "http://test.local"

HTML = "text/html; charset=utf-8"

PLAIN_PAGE = """<html>
<head>
<title>A Plain Page</title>
<meta name="description" content="Nothing structured here.">
</head>
<body><p>Just text.</p></body>
</html>"""

SINGLE_PAGE = """<html>
<head>
<title>Single Item</title>
<meta name="test-item-type" content="journalArticle">
<meta name="citation_title" content="The Single Article">
</head>
<body></body>
</html>"""

MULTIPLE_PAGE = """<html>
<head>
<title>Search Results</title>
<meta name="test-item-type" content="multiple">
<meta name="test-items" content="A|B|C">
</head>
<body></body>
</html>"""

FAILING_PAGE = """<html>
<head>
<title>Broken Metadata</title>
<meta name="test-item-type" content="error">
</head>
<body></body>
</html>"""

META_REFRESH_PAGE = """<html>
<head><meta http-equiv="refresh" content="0; url='/single'"></head>
<body></body>
</html>"""

HEADLESS_PAGE = "<p>No head here</p><title>Bare Page</title>"

XHTML_HEADLESS_PAGE = """<?xml version="1.0" encoding="utf-8"?>
<html xmlns="http://www.w3.org/1999/xhtml"><body><p>No head here</p></body></html>"""

BIBTEX = """@article{eco1983,
  title = {The Name of the Rose},
  author = {Eco, Umberto},
  year = {1983}
}
"""

LARGE_SIZE = 4096


def _html(body: str, status: int = 200) -> httpx.Response:
    return httpx.Response(status, headers={"Content-Type": HTML}, content=body.encode("utf-8"))


def handle(request: httpx.Request) -> httpx.Response:
    """Route a request for http://test.local/<page> to its canned response."""
    path = request.url.path
    if path == "/plain":
        return _html(PLAIN_PAGE)
    if path == "/single":
        return _html(SINGLE_PAGE)
    if path == "/multiple":
        return _html(MULTIPLE_PAGE)
    if path == "/failing":
        return _html(FAILING_PAGE)
    if path == "/headless":
        return _html(HEADLESS_PAGE)
    if path == "/xhtml-headless":
        return httpx.Response(
            200,
            headers={"Content-Type": "application/xhtml+xml"},
            content=XHTML_HEADLESS_PAGE.encode("utf-8"),
        )
    if path == "/redirect":
        return httpx.Response(302, headers={"Location": "/single"})
    if path == "/metaRefresh":
        return _html(META_REFRESH_PAGE)
    if path == "/bibtex":
        return httpx.Response(
            200, headers={"Content-Type": "application/x-bibtex"}, content=BIBTEX.encode()
        )
    if path == "/invalidContentType":
        return httpx.Response(200, headers={"Content-Type": "image/png"}, content=b"\x89PNG")
    if path == "/missingContentType":
        return httpx.Response(200, content=b"<html><head></head></html>")
    if path == "/large":
        return _html("x" * LARGE_SIZE)
    if path == "/500":
        return _html("<html><head></head><body>Oops</body></html>", status=500)
    if path == "/echo-language":
        language = request.headers.get("accept-language", "")
        return _html(
            f'<html><head><title>{language}</title>'
            f'<meta name="test-item-type" content="webpage-language"></head></html>'
        )
    return _html("<html><head><title>Not Found</title></head></html>", status=404)


def transport() -> httpx.MockTransport:
    return httpx.MockTransport(handle)
