"""Domain-level errors for the aggregate store."""


class AggregateStoreError(Exception):
    """Base class for every error raised by the aggregate store."""


class NotFoundError(AggregateStoreError):
    """Raised when a document id does not exist in the store."""


class SerializationError(AggregateStoreError):
    """Raised when a stored body cannot be mapped to or from an aggregate."""


class ConfigurationError(AggregateStoreError):
    """Raised when an aggregate type lacks the declarations an operation needs."""


class ArgumentError(AggregateStoreError):
    """Raised when a value violates a construction-time invariant."""


class StoreClosedError(AggregateStoreError):
    """Raised when a gateway is used after it has been closed."""
