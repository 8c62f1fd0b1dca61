"""Exception types raised by the location engine."""


class LocatorError(Exception):
    """Base class for all engine errors."""


class MalformedInputError(LocatorError, ValueError):
    """Raw query text cannot be turned into a query intent.

    Raised for feature tokens of invalid length, unsupported feature classes,
    unparsable coordinate components and malformed inline options.
    """


class UnsupportedQueryShapeError(LocatorError, ValueError):
    """The requested combination of sort, paging and filters has no query form."""


class SchemaMismatchError(LocatorError, RuntimeError):
    """A result row does not have the columns the hydrator expects."""


class StoreFailureError(LocatorError, RuntimeError):
    """The read store failed or timed out. Callers may retry the request."""

    retryable = True

    def __init__(self, message: str, operation: str = None):
        super().__init__(message)
        self.operation = operation
