# ABOUTME: TranslationRunner protocol: the boundary to the engine that executes translator code.
# ABOUTME: Includes the target/detection types, a null runner, and "module:attr" runner loading.

import importlib
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable

import httpx

from bibgate.http import Document, Fetcher
from bibgate.proxies import ProxyRewrite
from bibgate.translators import Translator

logger = logging.getLogger(__name__)

SelectCallback = Callable[[Mapping[Any, Any] | Sequence[Any]], Awaitable[dict[str, str]]]


class TargetKind(Enum):
    WEB = "web"
    IMPORT = "import"
    SEARCH = "search"


@dataclass
class TranslationTarget:
    """What a translator runs against.

    Web targets carry the fetched ``document``; import targets the raw
    ``text``; search targets an ``identifier`` such as ``{"DOI": "10.1/x"}``.
    ``fetcher``, ``cookies`` and ``headers`` let the engine request further
    pages within the same session.
    """

    kind: TargetKind
    url: str | None = None
    document: Document | None = None
    text: str | None = None
    identifier: dict[str, str] | None = None
    headers: dict[str, str] = field(default_factory=dict)
    cookies: httpx.Cookies | None = None
    fetcher: Fetcher | None = None


@dataclass(frozen=True)
class Detection:
    """A translator that recognized a target, with what it expects to produce."""

    translator: Translator
    item_type: str | None = None
    proxy: ProxyRewrite | None = None


@runtime_checkable
class TranslationRunner(Protocol):
    """Protocol for the translator execution engine.

    ``detect`` runs the detection step of each candidate, in order, and
    returns those that recognized the target. ``translate`` runs one
    translator to completion and returns item records. When a translator
    wants the user to choose among several items it awaits ``select`` with
    what it offers and continues with the chosen subset.
    """

    async def detect(
        self, target: TranslationTarget, translators: Sequence[Translator]
    ) -> list[Detection]: ...

    async def translate(
        self, target: TranslationTarget, detection: Detection, select: SelectCallback
    ) -> list[dict[str, Any]]: ...


class NullTranslationRunner:
    """A runner without an engine: nothing is ever detected."""

    async def detect(
        self, target: TranslationTarget, translators: Sequence[Translator]
    ) -> list[Detection]:
        return []

    async def translate(
        self, target: TranslationTarget, detection: Detection, select: SelectCallback
    ) -> list[dict[str, Any]]:
        raise NotImplementedError("No translation engine configured")


def load_runner(path: str | None) -> TranslationRunner:
    """Load a runner from a ``"package.module:attr"`` path.

    ``attr`` may be a runner instance or a zero-argument factory (such as a
    class). None gives the null runner.

    Raises:
        ValueError: If the path is malformed or does not name a runner.
    """
    if not path:
        return NullTranslationRunner()

    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Translation runner must be 'module:attr', got {path!r}")
    try:
        module = importlib.import_module(module_name)
        obj = getattr(module, attr)
    except (ImportError, AttributeError) as exc:
        raise ValueError(f"Cannot load translation runner {path!r}: {exc}") from exc

    if isinstance(obj, type) or not isinstance(obj, TranslationRunner):
        obj = obj() if callable(obj) else obj
    runner = obj
    if not isinstance(runner, TranslationRunner):
        raise ValueError(f"{path!r} is not a translation runner")
    logger.info("Using translation runner %s", path)
    return runner
