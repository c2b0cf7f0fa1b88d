# ABOUTME: In-memory translator registry with per-type priority ordering and URL matching.
# ABOUTME: Refreshes from the remote feed on a jittered schedule; readers see atomic snapshots.

import asyncio
import logging
import random
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from bibgate.proxies import DeproxifyResolver, ProxyRewrite
from bibgate.translators.catalog import parse_translator_source
from bibgate.translators.errors import (
    RegistryNotInitializedError,
    RepositoryError,
    TranslatorParseError,
)
from bibgate.translators.repository import RemoteTranslatorInfo, TranslatorRepository
from bibgate.translators.types import Translator, TranslatorType

logger = logging.getLogger(__name__)

# Candidate URLs at or above this length are never matched against targets.
MAX_MATCH_URL_LENGTH = 8192

DEFAULT_CHECK_INTERVAL = 24 * 60 * 60
DEFAULT_RETRY_DELAY = 10 * 60
DEFAULT_JITTER = 60 * 60


@dataclass(frozen=True)
class RegistryMetadata:
    """Remote metadata as of the last successful refresh, and when it goes stale."""

    entries: Mapping[str, RemoteTranslatorInfo] = field(default_factory=dict)
    expires_at: float = 0.0


@dataclass(frozen=True)
class _Snapshot:
    order: tuple[str, ...]
    by_id: Mapping[str, Translator]
    by_type: Mapping[TranslatorType, tuple[Translator, ...]]

    @classmethod
    def build(cls, order: Iterable[str], by_id: Mapping[str, Translator]) -> "_Snapshot":
        order = tuple(order)
        by_type: dict[TranslatorType, tuple[Translator, ...]] = {}
        for translator_type in TranslatorType:
            members = [by_id[tid] for tid in order if by_id[tid].has_type(translator_type)]
            # sorted() is stable, so equal priorities keep load order.
            by_type[translator_type] = tuple(sorted(members, key=lambda t: t.priority))
        return cls(order=order, by_id=dict(by_id), by_type=by_type)


class TranslatorRegistry:
    """Holds the translator catalog and answers "which translators apply here?".

    Every mutation builds a new snapshot and swaps it in, so a reader that
    grabbed the snapshot never observes a half-applied update.
    """

    def __init__(
        self,
        *,
        repository: TranslatorRepository | None = None,
        resolver: DeproxifyResolver | None = None,
        browser: str = "v",
        check_interval: float = DEFAULT_CHECK_INTERVAL,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        jitter: float = DEFAULT_JITTER,
        clock: Callable[[], float] = time.monotonic,
        rng: random.Random | None = None,
    ) -> None:
        self._repository = repository
        self._resolver = resolver or DeproxifyResolver()
        self._browser = browser
        self._check_interval = check_interval
        self._retry_delay = retry_delay
        self._jitter = jitter
        self._clock = clock
        self._rng = rng or random.Random()
        self._snapshot: _Snapshot | None = None
        self._metadata = RegistryMetadata()
        self._write_lock = threading.Lock()
        self._refresh_lock = asyncio.Lock()

    @property
    def initialized(self) -> bool:
        return self._snapshot is not None

    @property
    def metadata(self) -> RegistryMetadata:
        return self._metadata

    def init(self, catalog: Iterable[Translator | dict[str, Any]]) -> None:
        """Load the catalog, replacing anything loaded before.

        Entries may be Translator objects or raw metadata dicts (with an
        optional ``code`` key). Malformed entries are logged and skipped.
        """
        order: list[str] = []
        by_id: dict[str, Translator] = {}
        for entry in catalog:
            if isinstance(entry, Translator):
                translator = entry
            else:
                try:
                    translator = Translator.from_info(entry)
                except TranslatorParseError as exc:
                    logger.warning("Skipping translator entry: %s", exc)
                    continue
            if translator.translator_id not in by_id:
                order.append(translator.translator_id)
            by_id[translator.translator_id] = translator

        with self._write_lock:
            self._snapshot = _Snapshot.build(order, by_id)
        logger.info("Translator registry initialized with %d translators", len(order))

    def get(self, translator_id: str) -> Translator | None:
        return self._current().by_id.get(translator_id)

    def all(self) -> list[Translator]:
        snapshot = self._current()
        return [snapshot.by_id[tid] for tid in snapshot.order]

    async def candidates_for_type(self, translator_type: TranslatorType) -> list[Translator]:
        """All translators of a type, priority ascending, with code loaded."""
        await self._ensure_fresh()
        translators = list(self._current().by_type[translator_type])
        loaded = await self._with_code(translators)
        return [t for t in loaded if t is not None]

    async def candidates_for_url(
        self, root_url: str, frame_url: str | None = None
    ) -> tuple[list[Translator], list[ProxyRewrite | None]]:
        """Web translators matching a page, with the proxy each match implies.

        For a frame request (``frame_url`` differs from ``root_url``) only
        translators with a frame target qualify, and the root and frame URLs
        must match candidates derived through the same proxy rewrite.
        Generic translators match any page when they run in-process.
        """
        await self._ensure_fresh()
        is_frame = frame_url is not None and frame_url != root_url
        root_candidates = self._resolver.potential_proxies(root_url)
        frame_candidates = (
            self._resolver.potential_proxies(frame_url) if is_frame else root_candidates
        )

        matches: list[Translator] = []
        proxies: list[ProxyRewrite | None] = []
        for translator in self._current().by_type[TranslatorType.WEB]:
            if is_frame and translator.frame_pattern is None:
                continue
            if translator.is_generic and not translator.runs_in_process(self._browser):
                continue
            proxy = _match(translator, root_candidates, frame_candidates, is_frame)
            if proxy is not _NO_MATCH:
                matches.append(translator)
                proxies.append(proxy)

        loaded = await self._with_code(matches)
        kept = [(t, p) for t, p in zip(loaded, proxies) if t is not None]
        logger.debug(
            "%d translators match %s%s",
            len(kept),
            root_url,
            f" (frame {frame_url})" if is_frame else "",
        )
        return [t for t, _ in kept], [p for _, p in kept]

    async def refresh(self) -> bool:
        """Pull remote metadata, re-fetch updated translators, and add new ones.

        On failure the next attempt is pushed ``retry_delay`` seconds out and
        the cached catalog stays in service. Returns True on success.
        """
        if self._repository is None:
            return False
        snapshot = self._current()

        try:
            remote = await self._repository.fetch_metadata()
        except RepositoryError as exc:
            self._metadata = replace(
                self._metadata, expires_at=self._clock() + self._retry_delay
            )
            logger.warning(
                "Translator refresh failed, retrying in %ds: %s", self._retry_delay, exc
            )
            return False

        self._metadata = RegistryMetadata(
            entries=remote,
            expires_at=self._clock()
            + self._check_interval
            + self._rng.uniform(0, self._jitter),
        )

        updated: list[Translator] = []
        for translator_id, info in remote.items():
            current = snapshot.by_id.get(translator_id)
            if current is None:
                continue
            translator = current
            if _is_newer(info.last_updated, current.last_updated):
                fetched = await self._fetch_translator(translator_id)
                if fetched is not None:
                    translator = fetched
            if info.target is not None and info.target != translator.target:
                translator = _with_target(translator, info.target)
            if translator is not current:
                updated.append(translator)

        if updated:
            self._apply(updated)
            logger.info("Updated %d translators", len(updated))
        await self.handle_new_translators(remote)
        return True

    async def handle_new_translators(
        self, metadata: Mapping[str, RemoteTranslatorInfo]
    ) -> list[Translator]:
        """Fetch and register translators listed remotely but unknown locally."""
        added: list[Translator] = []
        for translator_id, info in metadata.items():
            if self.get(translator_id) is not None:
                continue
            translator = await self._fetch_translator(translator_id)
            if translator is None:
                continue
            if info.target is not None and info.target != translator.target:
                translator = _with_target(translator, info.target)
            added.append(translator)

        if added:
            self._apply(added)
            logger.info("Added %d new translators", len(added))
        return added

    async def _ensure_fresh(self) -> None:
        self._current()
        if self._repository is None or self._clock() < self._metadata.expires_at:
            return
        async with self._refresh_lock:
            # Another request may have refreshed while this one waited.
            if self._clock() < self._metadata.expires_at:
                return
            await self.refresh()

    async def _fetch_translator(self, translator_id: str) -> Translator | None:
        assert self._repository is not None
        try:
            source = await self._repository.fetch_code(translator_id)
            translator = parse_translator_source(source)
        except (RepositoryError, TranslatorParseError) as exc:
            logger.warning("Could not load translator %s: %s", translator_id, exc)
            return None
        if translator.translator_id != translator_id:
            logger.warning(
                "Translator fetched as %s declares id %s", translator_id, translator.translator_id
            )
            return None
        return translator

    async def _with_code(self, translators: list[Translator]) -> list[Translator | None]:
        """Return the translators with code loaded; None where loading failed."""
        loaded: list[Translator | None] = []
        fetched: list[Translator] = []
        for translator in translators:
            if translator.code is not None:
                loaded.append(translator)
                continue
            code = await self._load_code(translator)
            if code is None:
                loaded.append(None)
                continue
            translator = replace(translator, code=code)
            fetched.append(translator)
            loaded.append(translator)
        if fetched:
            self._apply(fetched)
        return loaded

    async def _load_code(self, translator: Translator) -> str | None:
        if translator.source_path is not None:
            try:
                return await asyncio.to_thread(
                    translator.source_path.read_text, encoding="utf-8"
                )
            except OSError as exc:
                logger.warning("Could not read %s: %s", translator.source_path, exc)
                return None
        if self._repository is not None:
            try:
                return await self._repository.fetch_code(translator.translator_id)
            except RepositoryError as exc:
                logger.warning("Could not load code for %s: %s", translator.label, exc)
                return None
        logger.warning("No code available for translator %s", translator.label)
        return None

    def _apply(self, translators: Iterable[Translator]) -> None:
        with self._write_lock:
            snapshot = self._current()
            order = list(snapshot.order)
            by_id = dict(snapshot.by_id)
            for translator in translators:
                if translator.translator_id not in by_id:
                    order.append(translator.translator_id)
                by_id[translator.translator_id] = translator
            self._snapshot = _Snapshot.build(order, by_id)

    def _current(self) -> _Snapshot:
        snapshot = self._snapshot
        if snapshot is None:
            raise RegistryNotInitializedError("Translator registry has not been initialized")
        return snapshot


_NO_MATCH: Any = object()


def _match(
    translator: Translator,
    root_candidates: Mapping[str, ProxyRewrite | None],
    frame_candidates: Mapping[str, ProxyRewrite | None],
    is_frame: bool,
) -> ProxyRewrite | None:
    """Return the proxy a translator matched through, or _NO_MATCH."""
    for root_url, root_proxy in root_candidates.items():
        root_matches = translator.is_generic or _search(translator.root_pattern, root_url)
        if not root_matches:
            continue
        if translator.frame_pattern is not None:
            for frame_url, frame_proxy in frame_candidates.items():
                if frame_proxy == root_proxy and _search(translator.frame_pattern, frame_url):
                    return frame_proxy
        elif not is_frame:
            return root_proxy
    return _NO_MATCH


def _search(pattern: Any, url: str) -> bool:
    return len(url) < MAX_MATCH_URL_LENGTH and pattern.search(url) is not None


def _with_target(translator: Translator, target: str) -> Translator:
    try:
        return replace(translator, target=target)
    except TranslatorParseError as exc:
        logger.warning("Ignoring remote target for %s: %s", translator.label, exc)
        return translator


def _is_newer(remote: str, local: str) -> bool:
    try:
        return datetime.fromisoformat(remote) > datetime.fromisoformat(local)
    except ValueError:
        return remote > local
