# ABOUTME: WebSession translates a URL: deproxified candidate loop, web/import translation,
# ABOUTME: webpage fallback, and the DOI and blacklist short-circuits to identifier search.

import logging
import re
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any

import httpx

from bibgate.errors import BadRequestError, GatewayError, NoTranslatorError, TranslationError
from bibgate.http import (
    Document,
    FetchError,
    FetchOptions,
    FetchResult,
    ResponseSizeError,
    ResponseType,
    StatusError,
    UnsupportedFormatError,
)
from bibgate.identifiers import clean_doi_from_url
from bibgate.services import GatewayServices
from bibgate.sessions.session import TranslationSession
from bibgate.translation import Detection, TargetKind, TranslationTarget
from bibgate.translators import TranslatorType

logger = logging.getLogger(__name__)

FORWARDED_HEADERS = ("Accept-Language",)

# Bibliographic formats handed to import translators when a URL serves one.
IMPORT_CONTENT_TYPES = (
    "application/x-bibtex",
    "application/json",
    "text/csv",
    "text/xml",
    "application/mods+xml",
    "application/rdf+xml",
    "application/x-research-info-systems",
    "text/plain",
    "text/x-wiki",
)

RESPONSE_TYPE_MAP: dict[str, ResponseType] = {
    "html": ResponseType.DOCUMENT,
    "application/xhtml+xml": ResponseType.DOCUMENT,
    **{content_type: ResponseType.TEXT for content_type in IMPORT_CONTENT_TYPES},
}

_DOMAIN_RE = re.compile(r"https?://([^/]+)")
_DOI_HOST_RE = re.compile(r"^https?://(?:dx\.)?doi\.org/", re.IGNORECASE)


def forwarded_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Pick the inbound request headers that are passed on to upstream fetches."""
    lowered = {k.lower(): v for k, v in headers.items()}
    return {name: lowered[name.lower()] for name in FORWARDED_HEADERS if lowered.get(name.lower())}


class WebSession(TranslationSession):
    """Translates the page at a URL, trying deproxified variants in turn."""

    def __init__(
        self,
        url: str,
        services: GatewayServices,
        *,
        single: bool = False,
        headers: Mapping[str, str] | None = None,
        session_id: str | None = None,
        preset_selection: Mapping[str, Any] | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        kwargs: dict[str, Any] = {"session_id": session_id, "preset_selection": preset_selection}
        if clock is not None:
            kwargs["clock"] = clock
        super().__init__(**kwargs)
        self.url = url
        self.current_url = url
        self.single = single
        self.headers = dict(headers or {})
        self._services = services

    @property
    def selection_url(self) -> str | None:
        return self.current_url

    def selection_body(self) -> dict[str, Any]:
        return {"url": self.current_url, **super().selection_body()}

    async def _run(self) -> list[dict[str, Any]]:
        services = self._services
        url = self.url

        if _DOI_HOST_RE.match(url):
            doi = clean_doi_from_url(url)
            if doi:
                return await self._search_identifier(doi)

        m = _DOMAIN_RE.match(url)
        if m and services.is_blacklisted(m.group(1)):
            doi = clean_doi_from_url(url)
            if not doi:
                raise TranslationError("An error occurred retrieving the document", expose=True)
            logger.info("Domain %s is blacklisted -- searching for DOI %s", m.group(1), doi)
            return await self._search_identifier(doi)

        if services.config.deproxify_urls:
            urls = [candidate.url for candidate in services.resolver.candidates(url)]
        else:
            urls = [url]

        for index, candidate in enumerate(urls):
            is_last = index == len(urls) - 1
            if len(urls) > 1:
                logger.debug("Trying %s", candidate)
            self.current_url = candidate
            try:
                return await self._translate_url(candidate)
            except GatewayError:
                raise
            except StatusError as exc:
                if exc.status == 404:
                    raise BadRequestError("Remote page not found") from exc
                failure: Exception = exc
            except Exception as exc:
                failure = exc
            logger.warning("Failed to translate %s: %s", candidate, failure)

            doi = clean_doi_from_url(candidate)
            if doi:
                logger.info("Error translating page -- continuing with DOI %s from URL", doi)
                return await self._search_identifier(doi)
            if isinstance(failure, ResponseSizeError):
                raise BadRequestError("Response exceeds max size") from failure
            if isinstance(failure, UnsupportedFormatError):
                raise BadRequestError(
                    "The remote document is not in a supported format"
                ) from failure
            if is_last:
                raise TranslationError(
                    "An error occurred retrieving the document", expose=True
                ) from failure

        raise TranslationError("An error occurred retrieving the document", expose=True)

    async def _translate_url(self, url: str) -> list[dict[str, Any]]:
        cookies = None if self._services.config.persistent_cookies else httpx.Cookies()
        result = await self._services.fetcher.fetch(
            "GET",
            url,
            FetchOptions(
                headers=self.headers,
                response_type_map=RESPONSE_TYPE_MAP,
                cookies=cookies,
            ),
        )
        if result.response_type is ResponseType.DOCUMENT:
            return await self._translate_document(result, cookies)
        logger.debug("Handling %s as import", result.content_type.essence)
        return await self._import(result, cookies)

    async def _translate_document(
        self, result: FetchResult, cookies: httpx.Cookies | None
    ) -> list[dict[str, Any]]:
        services = self._services
        document = result.document
        target = self._target(TargetKind.WEB, result.url, cookies, document=document)

        translators, proxies = await services.registry.candidates_for_url(result.url)
        proxy_by_id = {t.translator_id: p for t, p in zip(translators, proxies)}
        detections = [
            d if d.proxy is not None else _with_proxy(d, proxy_by_id.get(d.translator.translator_id))
            for d in await services.runner.detect(target, translators)
        ]
        if self.single:
            detections = [d for d in detections if d.item_type != "multiple"]

        if not detections:
            logger.debug("No translators found -- saving as a webpage")
            return self._save_webpage(document)

        items: list[dict[str, Any]] = []
        for index, detection in enumerate(detections):
            try:
                items = await services.runner.translate(target, detection, self.select)
                break
            except GatewayError:
                raise
            except Exception:
                logger.warning(
                    "Translation using %s failed", detection.translator.label, exc_info=True
                )
                if index == len(detections) - 1:
                    return self._save_webpage(document)

        if not items:
            doi = clean_doi_from_url(result.url)
            if doi:
                logger.info("No results -- continuing with DOI %s from URL", doi)
                return await self._search_identifier(doi)
        return items

    async def _import(
        self, result: FetchResult, cookies: httpx.Cookies | None
    ) -> list[dict[str, Any]]:
        services = self._services
        target = self._target(TargetKind.IMPORT, result.url, cookies, text=result.text)
        translators = await services.registry.candidates_for_type(TranslatorType.IMPORT)
        for detection in await services.runner.detect(target, translators):
            try:
                return await services.runner.translate(target, detection, self.select)
            except GatewayError:
                raise
            except Exception:
                logger.warning(
                    "Import using %s failed", detection.translator.label, exc_info=True
                )
        raise TranslationError("No suitable translators found", expose=True)

    async def _search_identifier(self, doi: str) -> list[dict[str, Any]]:
        return await self._services.identifier_search.translate(
            {"DOI": doi}, headers=self.headers
        )

    def _target(
        self,
        kind: TargetKind,
        url: str,
        cookies: httpx.Cookies | None,
        *,
        document: Document | None = None,
        text: str | None = None,
    ) -> TranslationTarget:
        return TranslationTarget(
            kind=kind,
            url=url,
            document=document,
            text=text,
            headers=self.headers,
            cookies=cookies,
            fetcher=self._services.fetcher,
        )

    def _save_webpage(self, document: Document) -> list[dict[str, Any]]:
        # HTML always has a head, implied if not written; XML may not.
        if not document.is_html and document.head is None:
            raise NoTranslatorError()
        item: dict[str, Any] = {
            "itemType": "webpage",
            "url": document.url,
            "title": document.title,
            "accessDate": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        }
        description = document.meta_content("description")
        if description:
            item["abstractNote"] = description
        return [item]


def _with_proxy(detection: Detection, proxy: Any) -> Detection:
    if proxy is None:
        return detection
    return Detection(translator=detection.translator, item_type=detection.item_type, proxy=proxy)
