# ABOUTME: Translator model: identity, type flags, URL match patterns, priority, and code.
# ABOUTME: Translators are immutable; refreshes replace the whole record.

import re
from dataclasses import dataclass, field
from enum import IntFlag
from pathlib import Path
from typing import Any

from bibgate.translators.errors import TranslatorParseError

DEFAULT_PRIORITY = 100


class TranslatorType(IntFlag):
    """Translator capabilities, as stored in the ``translatorType`` bit field."""

    IMPORT = 1
    EXPORT = 2
    WEB = 4
    SEARCH = 8

    @classmethod
    def from_name(cls, name: str) -> "TranslatorType":
        try:
            return cls[name.upper()]
        except KeyError:
            raise ValueError(f"Unknown translator type: {name}") from None

    def names(self) -> list[str]:
        return [member.name.lower() for member in TranslatorType if member in self]


@dataclass(frozen=True)
class Translator:
    """A translator's metadata plus (optionally) its executable code.

    ``target`` is matched against page URLs; ``target_all`` against frame
    URLs. A web translator without ``target`` is generic and can run on any
    page, provided it runs in-process (``browser_support`` contains the
    gateway's browser flag).
    """

    translator_id: str
    label: str
    translator_type: TranslatorType
    last_updated: str
    target: str | None = None
    target_all: str | None = None
    priority: int = DEFAULT_PRIORITY
    browser_support: str = ""
    code: str | None = None
    source_path: Path | None = None
    root_pattern: re.Pattern[str] | None = field(init=False, repr=False, compare=False)
    frame_pattern: re.Pattern[str] | None = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "root_pattern", _compile(self.translator_id, self.target))
        object.__setattr__(self, "frame_pattern", _compile(self.translator_id, self.target_all))

    @property
    def is_generic(self) -> bool:
        return self.root_pattern is None

    def has_type(self, translator_type: TranslatorType) -> bool:
        return bool(self.translator_type & translator_type)

    def runs_in_process(self, browser: str) -> bool:
        return browser in self.browser_support

    @classmethod
    def from_info(
        cls,
        info: dict[str, Any],
        *,
        code: str | None = None,
        source_path: Path | None = None,
    ) -> "Translator":
        """Build a Translator from a metadata header dict.

        Raises:
            TranslatorParseError: If required fields are missing or malformed.
        """
        try:
            translator_id = str(info["translatorID"])
            translator_type = TranslatorType(int(info["translatorType"]))
            last_updated = str(info["lastUpdated"])
        except (KeyError, TypeError, ValueError) as exc:
            raise TranslatorParseError(f"Invalid translator metadata: {exc}") from exc

        priority = info.get("priority")
        try:
            priority = int(priority) if priority is not None else DEFAULT_PRIORITY
        except (TypeError, ValueError) as exc:
            raise TranslatorParseError(f"Invalid priority for {translator_id}: {priority!r}") from exc

        return cls(
            translator_id=translator_id,
            label=str(info.get("label") or translator_id),
            translator_type=translator_type,
            last_updated=last_updated,
            target=info.get("target") or None,
            target_all=info.get("targetAll") or None,
            priority=priority,
            browser_support=str(info.get("browserSupport") or ""),
            code=code if code is not None else info.get("code"),
            source_path=source_path,
        )


def _compile(translator_id: str, pattern: str | None) -> re.Pattern[str] | None:
    if not pattern:
        return None
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as exc:
        raise TranslatorParseError(f"Invalid target pattern for {translator_id}: {exc}") from exc
