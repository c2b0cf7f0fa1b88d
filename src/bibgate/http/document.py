# ABOUTME: Parsed HTML/XML document returned by the fetcher for "document" responses.
# ABOUTME: Wraps a BeautifulSoup tree together with the URL it was loaded from.

import re
from dataclasses import dataclass

from bs4 import BeautifulSoup, Tag

from bibgate.http.mimetype import MimeType

_REFRESH_SPLIT_RE = re.compile(r";\s*url=", re.IGNORECASE)
_LEADING_INT_RE = re.compile(r"^\s*(\d+)")
_QUOTED_RE = re.compile(r"^'(.+)'")


@dataclass
class Document:
    """A fetched HTML or XML document.

    ``url`` is the final URL after redirects, which is what relative links
    inside the document resolve against.
    """

    url: str
    soup: BeautifulSoup
    content_type: MimeType

    @classmethod
    def parse(cls, url: str, body: bytes, content_type: MimeType) -> "Document":
        """Parse raw bytes into a document.

        HTML is parsed with lxml's HTML parser. XHTML and other XML types use
        the XML parser, so an XHTML page without <head> really has none.
        The declared charset is passed as a hint but BeautifulSoup still sniffs
        the byte stream (BOM, ``<meta charset>``) before falling back to it.
        """
        features = "lxml" if content_type.is_html() else "lxml-xml"
        soup = BeautifulSoup(body, features, from_encoding=content_type.charset)
        return cls(url=url, soup=soup, content_type=content_type)

    @property
    def is_html(self) -> bool:
        return self.content_type.is_html()

    @property
    def is_xhtml(self) -> bool:
        return self.content_type.essence == "application/xhtml+xml"

    @property
    def head(self) -> Tag | None:
        head = self.soup.find("head")
        return head if isinstance(head, Tag) else None

    @property
    def title(self) -> str:
        title = self.soup.find("title")
        if not isinstance(title, Tag):
            return ""
        return " ".join(title.get_text().split())

    def meta_content(self, name: str) -> str | None:
        """Return the ``content`` of ``<meta name=...>`` inside ``<head>``, if any.

        HTML without a ``<head>`` tag has an implied one, so the whole tree is
        searched there.
        """
        scope: Tag | BeautifulSoup | None = self.head
        if scope is None:
            if not self.is_html:
                return None
            scope = self.soup
        meta = scope.find("meta", attrs={"name": name})
        if not isinstance(meta, Tag):
            return None
        content = meta.get("content")
        return content if isinstance(content, str) else None

    def meta_refresh(self) -> tuple[int, str] | None:
        """Parse ``<meta http-equiv="refresh">`` into ``(delay, target)``.

        Returns None when there is no refresh tag, no target URL, or the delay
        is not a number. The target is returned unresolved.
        """
        meta = self.soup.find(
            "meta", attrs={"http-equiv": re.compile(r"^refresh$", re.IGNORECASE)}
        )
        if not isinstance(meta, Tag):
            return None
        content = meta.get("content")
        if not isinstance(content, str) or not content:
            return None

        parts = _REFRESH_SPLIT_RE.split(content)
        if len(parts) != 2:
            return None
        delay = _LEADING_INT_RE.match(parts[0])
        if delay is None:
            return None
        target = _QUOTED_RE.sub(r"\1", parts[1].strip())
        return int(delay.group(1)), target
