"""Custom exceptions for the importer."""

class ImporterError(Exception):
    """Base exception for importer errors."""


class ProviderError(ImporterError):
    """Raised when the scraping provider cannot be used (missing SDK or key)."""


class StorageError(ImporterError):
    """Raised when an image cannot be written to object storage."""


class UnsupportedUrl(ImporterError):
    """Raised when no importer handles the given URL's vendor."""
