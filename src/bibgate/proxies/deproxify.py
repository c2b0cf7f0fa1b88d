# ABOUTME: Derives likely original URLs from URLs rewritten by institutional web proxies.
# ABOUTME: Used by web sessions to order fetch candidates and by the registry for URL matching.

import logging
import re
from collections.abc import Collection
from dataclasses import dataclass
from urllib.parse import urlsplit

from bibgate.proxies.tlds import TLDS

logger = logging.getLogger(__name__)

_HOST_RE = re.compile(r"^(https?://)([^/]+)", re.IGNORECASE)


@dataclass(frozen=True)
class ProxyRewrite:
    """How a proxy maps an original URL onto its own host.

    ``scheme`` uses ``%h`` for the original host and ``%p`` for the path, e.g.
    ``%h.mutex.gmu.edu/%p``. With ``dots_to_hyphens`` the proxy writes the
    original host with hyphens instead of dots (EZproxy "HttpsHyphens" mode).
    """

    scheme: str
    dots_to_hyphens: bool = False

    def to_proxy(self, url: str) -> str:
        """Rewrite an original URL into its proxied form."""
        parts = urlsplit(url)
        host = parts.hostname or ""
        if self.dots_to_hyphens:
            host = host.replace("-", "--").replace(".", "-")
        path = parts.path.lstrip("/")
        if parts.query:
            path = f"{path}?{parts.query}"
        proxied = self.scheme.replace("%h", host).replace("%p", path)
        return f"{parts.scheme}://{proxied}"


@dataclass(frozen=True)
class ProxyCandidate:
    """A URL worth trying, with the proxy rewrite that produced it (None for the original)."""

    url: str
    proxy: ProxyRewrite | None


class DeproxifyResolver:
    """Reconstructs original URLs from proxied ones using TLDs inside the hostname.

    E.g. ``https://www-example-co-uk.mutex.gmu.edu`` yields
    ``https://www.example.co.uk``, ``https://www.example.co`` and finally the
    original URL itself.
    """

    def __init__(self, tlds: Collection[str] = TLDS) -> None:
        self._tlds = tlds

    def potential_proxies(self, url: str) -> dict[str, ProxyRewrite | None]:
        """Map each plausible URL to the proxy rewrite that produced it.

        The original URL comes first and maps to None; derived URLs follow in
        discovery order.
        """
        url_to_proxy: dict[str, ProxyRewrite | None] = {url: None}

        m = _HOST_RE.match(url)
        if not m:
            return url_to_proxy

        scheme, host = m.group(1), m.group(2)
        # "0-" host prefixes are an Innovative Interfaces proxy artifact.
        if host.startswith("0-"):
            host = host[2:]

        hostname_parts = [host.split(".")]
        labels = hostname_parts[0]
        if scheme.lower() == "https://" and "-" in labels[0]:
            # Hyphens in the first label may stand for dots.
            hostname_parts.append(labels[0].replace("-", ".").split(".") + labels[1:])

        rest = url[m.end():]
        for variant, parts in enumerate(hostname_parts):
            dots_to_hyphens = variant == 1
            # Skip the lowest-level subdomain, the domain and the TLD.
            for j in range(1, len(parts) - 2):
                if parts[j].lower() not in self._tlds:
                    continue
                proper_host = ".".join(parts[: j + 1])
                proxy_host = ".".join(parts[j + 1:])
                url_to_proxy[scheme + proper_host + rest] = ProxyRewrite(
                    scheme=f"%h.{proxy_host}/%p", dots_to_hyphens=dots_to_hyphens
                )
        return url_to_proxy

    def candidates(self, url: str) -> list[ProxyCandidate]:
        """Return the URLs to try, longest host first and the original URL last."""
        url_to_proxy = self.potential_proxies(url)
        derived = [candidate for candidate in url_to_proxy if candidate != url]
        derived.sort(key=len, reverse=True)
        ordered = [ProxyCandidate(u, url_to_proxy[u]) for u in derived]
        ordered.append(ProxyCandidate(url, None))
        if len(ordered) > 1:
            logger.debug("Deproxified %s into %d candidates", url, len(ordered))
        return ordered
