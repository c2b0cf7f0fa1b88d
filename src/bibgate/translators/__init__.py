# ABOUTME: Translator catalog, remote feed client, and the registry that serves candidates.
# ABOUTME: Re-exports the public types used by sessions, the server, and the CLI.

from bibgate.translators.catalog import load_catalog, parse_translator_source
from bibgate.translators.errors import (
    RegistryNotInitializedError,
    RepositoryError,
    TranslatorParseError,
)
from bibgate.translators.registry import RegistryMetadata, TranslatorRegistry
from bibgate.translators.repository import RemoteTranslatorInfo, TranslatorRepository
from bibgate.translators.types import Translator, TranslatorType

__all__ = [
    "RegistryMetadata",
    "RegistryNotInitializedError",
    "RemoteTranslatorInfo",
    "RepositoryError",
    "Translator",
    "TranslatorParseError",
    "TranslatorRegistry",
    "TranslatorRepository",
    "TranslatorType",
    "load_catalog",
    "parse_translator_source",
]
