# ABOUTME: Bibliographic identifier extraction (DOI, ISBN, PMID, arXiv) and identifier search.
# ABOUTME: Search runs the "search" translators for each identifier and pages multiple results.

import hashlib
import json
import logging
import re
from dataclasses import dataclass
from typing import Any
from urllib.parse import unquote

import httpx

from bibgate.errors import GatewayError, NoTranslatorError, TranslationError
from bibgate.http import Fetcher
from bibgate.translation import ChoiceSet, TargetKind, TranslationRunner, TranslationTarget
from bibgate.translators import TranslatorRegistry, TranslatorType

logger = logging.getLogger(__name__)

_DOI_RE = re.compile(r"10(?:\.[0-9]{4,})?/[^\s]*[^\s.,]")
_DOI_URL_TAIL_RE = re.compile(r"[?&].*")
_ISBN_CANDIDATE_RE = re.compile(r"\b(?:97[89][\s-]?)?(?:\d[\s-]?){9}[\dXx]\b")
_ARXIV_RE = re.compile(
    r"(?:arxiv\.org/(?:abs|pdf)/|arxiv:\s*)([a-z.-]+/\d{7}|\d{4}\.\d{4,5})(?:v\d+)?",
    re.IGNORECASE,
)
_PMID_PREFIXED_RE = re.compile(r"\bpmid:\s*(\d{1,9})\b", re.IGNORECASE)
_PMID_BARE_RE = re.compile(r"^\s*(\d{1,9})\s*$")
_YEAR_RE = re.compile(r"[0-9]{4}")


def clean_doi(text: str) -> str | None:
    """Return the first DOI-looking substring of ``text``, if any."""
    m = _DOI_RE.search(text)
    return m.group(0) if m else None


def clean_doi_from_url(url: str) -> str | None:
    """Find a DOI in a (percent-encoded) URL, stopping at the query string."""
    doi = clean_doi(unquote(url))
    if doi:
        doi = _DOI_URL_TAIL_RE.sub("", doi)
    return doi or None


def clean_isbn(text: str) -> str | None:
    """Normalize an ISBN-10 or ISBN-13 and verify its checksum."""
    digits = re.sub(r"[\s-]", "", text).upper()
    if len(digits) == 10 and re.fullmatch(r"\d{9}[\dX]", digits):
        total = sum((10 - i) * (10 if c == "X" else int(c)) for i, c in enumerate(digits))
        return digits if total % 11 == 0 else None
    if len(digits) == 13 and digits.isdigit() and digits.startswith(("978", "979")):
        total = sum(int(c) * (1 if i % 2 == 0 else 3) for i, c in enumerate(digits))
        return digits if total % 10 == 0 else None
    return None


def extract_identifiers(text: str) -> list[dict[str, str]]:
    """Extract identifiers from free text, in the order they should be tried.

    DOIs win over ISBNs found in the same text; PMIDs are only considered
    when nothing else was found.
    """
    identifiers: list[dict[str, str]] = []
    seen: set[tuple[str, str]] = set()

    def add(kind: str, value: str) -> None:
        if (kind, value) not in seen:
            seen.add((kind, value))
            identifiers.append({kind: value})

    for m in _DOI_RE.finditer(text):
        add("DOI", m.group(0))
    if not identifiers:
        for m in _ISBN_CANDIDATE_RE.finditer(text):
            isbn = clean_isbn(m.group(0))
            if isbn:
                add("ISBN", isbn)
    for m in _ARXIV_RE.finditer(text):
        add("arXiv", m.group(1))
    if not identifiers:
        for m in _PMID_PREFIXED_RE.finditer(text):
            add("PMID", m.group(1))
    if not identifiers:
        m = _PMID_BARE_RE.match(text)
        if m:
            add("PMID", m.group(1))
    return identifiers


def identifier_token(identifier: dict[str, str]) -> str:
    """Opaque pagination token for an identifier."""
    encoded = json.dumps(identifier, separators=(",", ":"))
    return hashlib.md5(encoded.encode("utf-8")).hexdigest()


def format_description(item: dict[str, Any]) -> str:
    """Summarize an item as "authors – year – publication" for selection lists."""
    parts: list[str] = []

    authors: list[str] = []
    for creator in item.get("creators") or []:
        if creator.get("creatorType") == "author" and creator.get("lastName"):
            authors.append(creator["lastName"])
            if len(authors) == 3:
                break
    if authors:
        parts.append(", ".join(authors))

    if item.get("date"):
        m = _YEAR_RE.search(str(item["date"]))
        if m:
            parts.append(m.group(0))

    if item.get("publicationTitle"):
        parts.append(item["publicationTitle"])
    elif item.get("publisher"):
        parts.append(item["publisher"])

    return " – ".join(parts)


@dataclass
class IdentifierResult:
    """Either translated ``items`` or a page of ``choices`` keyed by identifier."""

    items: list[dict[str, Any]] | None = None
    choices: dict[str, dict[str, Any]] | None = None
    next_token: str | None = None


class IdentifierSearch:
    """Resolves identifiers to items using the registry's search translators."""

    def __init__(
        self,
        registry: TranslatorRegistry,
        runner: TranslationRunner,
        *,
        fetcher: Fetcher | None = None,
        page_size: int = 3,
    ) -> None:
        self._registry = registry
        self._runner = runner
        self._fetcher = fetcher
        self._page_size = page_size

    async def translate(
        self,
        identifier: dict[str, str],
        *,
        headers: dict[str, str] | None = None,
        cookies: httpx.Cookies | None = None,
    ) -> list[dict[str, Any]]:
        """Translate one identifier, trying detecting translators in priority order.

        Raises:
            NoTranslatorError: No search translator recognizes the identifier.
            TranslationError: Every detecting translator failed or returned nothing.
        """
        translators = await self._registry.candidates_for_type(TranslatorType.SEARCH)
        target = TranslationTarget(
            kind=TargetKind.SEARCH,
            identifier=identifier,
            headers=dict(headers or {}),
            cookies=cookies,
            fetcher=self._fetcher,
        )
        detections = await self._runner.detect(target, translators)
        if not detections:
            raise NoTranslatorError("No translators available")

        for detection in detections:
            try:
                items = await self._runner.translate(target, detection, _select_all)
            except GatewayError:
                raise
            except Exception:
                logger.warning(
                    "Search using %s failed for %s",
                    detection.translator.label,
                    identifier,
                    exc_info=True,
                )
                continue
            if items:
                return items
        raise TranslationError("No items returned from any translator", expose=True)

    async def search(self, text: str, start: str | None = None) -> IdentifierResult:
        """Search free text for identifiers and translate them.

        A single identifier is translated directly. Several produce a page of
        choices; ``start`` is the token of the last identifier of the previous
        page.

        Raises:
            NoTranslatorError: The text contains no identifiers.
        """
        identifiers = extract_identifiers(text)
        if not identifiers:
            raise NoTranslatorError("No identifiers found")
        if len(identifiers) == 1:
            return IdentifierResult(items=await self.translate(identifiers[0]))

        start_pos = 0
        if start:
            for i, identifier in enumerate(identifiers):
                if identifier_token(identifier) == start:
                    start_pos = i + 1
                    break

        remaining = identifiers[start_pos:]
        choices: dict[str, dict[str, Any]] = {}
        last_index: int | None = None
        for index, identifier in enumerate(remaining):
            try:
                items = await self.translate(identifier)
            except GatewayError as exc:
                logger.debug("No result for %s: %s", identifier, exc)
                continue
            item = items[0]
            key = item.get("DOI") or _first_isbn(item) or next(iter(identifier.values()))
            choices[key] = {
                "itemType": item.get("itemType"),
                "title": item.get("title"),
                "description": format_description(item),
            }
            last_index = index
            if len(choices) == self._page_size:
                break

        if not choices:
            return IdentifierResult(items=[])
        next_token = None
        page_full = len(choices) == self._page_size
        if page_full and last_index is not None and last_index < len(remaining) - 1:
            next_token = identifier_token(remaining[last_index])
        return IdentifierResult(choices=choices, next_token=next_token)


async def _select_all(raw: Any) -> dict[str, str]:
    return ChoiceSet.from_translator(raw).to_dict()


def _first_isbn(item: dict[str, Any]) -> str | None:
    isbn = item.get("ISBN")
    return isbn.split(" ")[0] if isbn else None
