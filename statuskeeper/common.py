"""Errors and limits shared by every store."""

MAXIMUM_NUMBER_OF_RESULTS = 100
"""The maximum number of results kept for an endpoint."""

MAXIMUM_NUMBER_OF_EVENTS = 50
"""The maximum number of events kept for an endpoint."""


class StoreError(Exception):
    """Base class for errors raised by a store."""


class EndpointNotFoundError(StoreError, LookupError):
    """The endpoint does not exist in the store."""

    def __init__(self, message: str = "endpoint not found") -> None:
        super().__init__(message)


class InvalidTimeRangeError(StoreError, ValueError):
    """The start of a time range is after its end."""

    def __init__(self, message: str = "'from' cannot be older than 'to'") -> None:
        super().__init__(message)