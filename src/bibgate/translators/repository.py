# ABOUTME: Client for the remote translator feed (metadata listing and per-translator code).
# ABOUTME: Converts fetch failures into RepositoryError so the registry can back off.

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

from bibgate.http import FetchError, Fetcher, FetchOptions, ResponseType
from bibgate.translators.errors import RepositoryError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemoteTranslatorInfo:
    """One entry of the remote metadata listing.

    ``target`` overrides the local match pattern when present.
    """

    translator_id: str
    last_updated: str
    target: str | None = None


class TranslatorRepository:
    """Reads translator metadata and code from ``{base_url}/metadata`` and ``{base_url}/code/{id}``."""

    def __init__(self, base_url: str, fetcher: Fetcher) -> None:
        self._base_url = base_url.rstrip("/")
        self._fetcher = fetcher

    @property
    def base_url(self) -> str:
        return self._base_url

    async def fetch_metadata(self) -> dict[str, RemoteTranslatorInfo]:
        """Fetch the metadata listing, keyed by translator id.

        Accepts either a JSON list of objects carrying ``translatorID`` or an
        object keyed by id. Entries without an id or timestamp are skipped.

        Raises:
            RepositoryError: If the feed cannot be fetched or is not JSON.
        """
        url = f"{self._base_url}/metadata"
        try:
            result = await self._fetcher.fetch(
                "GET", url, FetchOptions(response_type=ResponseType.JSON)
            )
        except FetchError as exc:
            raise RepositoryError(f"Could not fetch translator metadata: {exc}") from exc

        entries = _iter_entries(result.body)
        if entries is None:
            raise RepositoryError(f"Unexpected translator metadata format from {url}")

        metadata: dict[str, RemoteTranslatorInfo] = {}
        for entry in entries:
            translator_id = entry.get("translatorID")
            last_updated = entry.get("lastUpdated")
            if not translator_id or not last_updated:
                logger.debug("Ignoring incomplete metadata entry: %r", entry)
                continue
            metadata[str(translator_id)] = RemoteTranslatorInfo(
                translator_id=str(translator_id),
                last_updated=str(last_updated),
                target=entry.get("target"),
            )
        logger.debug("Fetched metadata for %d translators from %s", len(metadata), url)
        return metadata

    async def fetch_code(self, translator_id: str) -> str:
        """Fetch the full source of one translator.

        Raises:
            RepositoryError: If the code cannot be fetched.
        """
        url = f"{self._base_url}/code/{quote(translator_id, safe='')}"
        try:
            result = await self._fetcher.fetch(
                "GET", url, FetchOptions(response_type=ResponseType.TEXT)
            )
        except FetchError as exc:
            raise RepositoryError(f"Could not fetch code for {translator_id}: {exc}") from exc
        return result.body


def _iter_entries(data: Any) -> list[dict[str, Any]] | None:
    if isinstance(data, list):
        return [entry for entry in data if isinstance(entry, dict)]
    if isinstance(data, dict):
        entries = []
        for translator_id, entry in data.items():
            if isinstance(entry, dict):
                entries.append({"translatorID": translator_id, **entry})
        return entries
    return None
