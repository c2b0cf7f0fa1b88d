# ABOUTME: Errors raised while loading, refreshing, or querying the translator registry.
# ABOUTME: Parse and repository failures are logged and skipped; they never abort a load.


class TranslatorParseError(Exception):
    """Raised when a translator source has no usable metadata header."""


class RepositoryError(Exception):
    """Raised when the remote translator feed cannot be read."""


class RegistryNotInitializedError(RuntimeError):
    """Raised when the registry is queried before init()."""
