"""Entry cache errors."""


class CacheError(Exception):
    """Base exception for entry cache operations."""


class StoreError(CacheError):
    """Raised when the backing entry store rejects a write."""


class StoreUnavailableError(StoreError):
    """Raised when the backing store cannot be opened."""


class StoreClosedError(StoreError):
    """Raised when an operation targets a store handle that was closed."""


class ListingError(CacheError):
    """Raised when the filesystem listing could not be obtained."""


class DiffComputeError(ListingError):
    """Raised when listing or store data is too malformed to diff."""


class BatchMetadataError(CacheError):
    """Raised when metadata for a batch of entries could not be read."""
