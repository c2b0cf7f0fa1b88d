# ABOUTME: Wires the gateway's long-lived collaborators together from a GatewayConfig.
# ABOUTME: Sessions and endpoints receive these services instead of reaching for globals.

import logging
import re
from dataclasses import dataclass

import httpx

from bibgate.config import GatewayConfig
from bibgate.http import Fetcher, HttpFetcher
from bibgate.identifiers import IdentifierSearch
from bibgate.proxies import DeproxifyResolver
from bibgate.translation import TranslationRunner, load_runner
from bibgate.translators import TranslatorRegistry, TranslatorRepository, load_catalog

logger = logging.getLogger(__name__)


@dataclass
class GatewayServices:
    config: GatewayConfig
    registry: TranslatorRegistry
    fetcher: Fetcher
    runner: TranslationRunner
    resolver: DeproxifyResolver
    identifier_search: IdentifierSearch
    blacklist: tuple[re.Pattern[str], ...] = ()

    @classmethod
    def from_config(
        cls,
        config: GatewayConfig,
        *,
        registry: TranslatorRegistry | None = None,
        fetcher: Fetcher | None = None,
        runner: TranslationRunner | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "GatewayServices":
        """Build services, creating whatever was not passed in.

        Raises:
            FileNotFoundError: If ``translators_dir`` does not exist.
            ValueError: If a blacklist pattern or the runner path is invalid.
        """
        if fetcher is None:
            fetcher = HttpFetcher(
                user_agent=config.user_agent,
                timeout=config.http_timeout,
                max_response_size=config.max_response_size,
                persistent_cookies=config.persistent_cookies,
                transport=transport,
            )
        resolver = DeproxifyResolver()
        if registry is None:
            repository = (
                TranslatorRepository(config.repository_url, fetcher)
                if config.repository_url
                else None
            )
            registry = TranslatorRegistry(
                repository=repository,
                resolver=resolver,
                browser=config.browser,
                check_interval=config.repository_check_interval,
                retry_delay=config.repository_retry_delay,
                jitter=config.repository_jitter,
            )
            registry.init(load_catalog(config.translators_dir) if config.translators_dir else [])
        if runner is None:
            runner = load_runner(config.translation_runner)

        try:
            blacklist = tuple(re.compile(p) for p in config.blacklisted_domains if p)
        except re.error as exc:
            raise ValueError(f"Invalid blacklisted domain pattern: {exc}") from exc

        return cls(
            config=config,
            registry=registry,
            fetcher=fetcher,
            runner=runner,
            resolver=resolver,
            identifier_search=IdentifierSearch(
                registry, runner, fetcher=fetcher, page_size=config.search_page_size
            ),
            blacklist=blacklist,
        )

    def is_blacklisted(self, domain: str) -> bool:
        return any(pattern.search(domain) for pattern in self.blacklist)

    async def aclose(self) -> None:
        if isinstance(self.fetcher, HttpFetcher):
            await self.fetcher.aclose()
