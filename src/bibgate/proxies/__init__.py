# ABOUTME: Proxy detection for bibgate.
# ABOUTME: Exports DeproxifyResolver and the candidate/rewrite types it produces.

from bibgate.proxies.deproxify import DeproxifyResolver, ProxyCandidate, ProxyRewrite

__all__ = ["DeproxifyResolver", "ProxyCandidate", "ProxyRewrite"]
