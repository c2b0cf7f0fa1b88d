# ABOUTME: Loads the local translator catalog from a directory of translator sources.
# ABOUTME: Parses each file's leading JSON metadata block separately from its code body.

import json
import logging
import re
from dataclasses import replace
from pathlib import Path

from bibgate.translators.errors import TranslatorParseError
from bibgate.translators.types import Translator

logger = logging.getLogger(__name__)

# The metadata block is the first JSON object, closed by "}" at the end of a line.
_INFO_RE = re.compile(r"^\s*{[\S\s]*?}\s*?[\r\n]")
# lastUpdated is the last header field, so the block ends shortly after it.
_HEADER_TAIL = 50


def parse_translator_source(source: str, *, source_path: Path | None = None) -> Translator:
    """Parse a translator source file into a Translator carrying the full source as code.

    Raises:
        TranslatorParseError: If the metadata header is missing or not valid JSON.
    """
    if source.startswith("\ufeff"):
        source = source[1:]

    last_updated_index = source.find('"lastUpdated"')
    if last_updated_index == -1:
        raise TranslatorParseError("Invalid or missing translator metadata JSON object")

    header = source[: last_updated_index + _HEADER_TAIL]
    m = _INFO_RE.match(header)
    if not m:
        raise TranslatorParseError("Invalid or missing translator metadata JSON object")

    try:
        info = json.loads(m.group(0))
    except json.JSONDecodeError as exc:
        raise TranslatorParseError(f"Invalid translator metadata JSON: {exc}") from exc
    if not isinstance(info, dict):
        raise TranslatorParseError("Translator metadata is not a JSON object")

    return Translator.from_info(info, code=source, source_path=source_path)


def load_catalog(directory: Path, *, lazy: bool = False) -> list[Translator]:
    """Load every ``*.js`` translator in ``directory``.

    Malformed files are logged and skipped. With ``lazy`` the code body is
    dropped after parsing and re-read from disk when the registry first hands
    the translator out.

    Raises:
        FileNotFoundError: If the directory does not exist.
    """
    if not directory.is_dir():
        raise FileNotFoundError(f"Translators directory {directory} is not accessible")

    translators: list[Translator] = []
    for path in sorted(directory.iterdir()):
        if path.name.startswith(".") or path.suffix != ".js":
            continue
        try:
            translator = parse_translator_source(
                path.read_text(encoding="utf-8"), source_path=path
            )
        except (TranslatorParseError, OSError, UnicodeDecodeError) as exc:
            logger.warning("Skipping translator %s: %s", path.name, exc)
            continue
        if lazy:
            translator = _without_code(translator)
        translators.append(translator)

    logger.info("Loaded %d translators from %s", len(translators), directory)
    return translators


def _without_code(translator: Translator) -> Translator:
    return replace(translator, code=None)
