"""Common exceptions for the dbscene bridge."""

from typing import List, Tuple


class DbsceneError(Exception):
    """Base exception for all dbscene errors."""

    pass


class ValidationError(DbsceneError):
    """Input validation error."""

    pass


class OutOfRangeError(ValidationError):
    """Object number or mapping outside its allowed bounds."""

    pass


class DuplicateObjectError(ValidationError):
    """Object number already present in the cache."""

    pass


class NotFoundError(DbsceneError):
    """Requested object is not in the cache."""

    pass


class InvalidFormatError(DbsceneError):
    """Custom string does not follow the coordinate mapping grammar."""

    pass


class ConfigurationError(DbsceneError):
    """Configuration error."""

    pass


class CommunicationError(DbsceneError):
    """Communication or network error."""

    pass


class TransportError(CommunicationError):
    """A datagram could not be sent."""

    pass


class DecodeError(CommunicationError):
    """An inbound packet could not be decoded."""

    pass


class ReplyTimeoutError(DbsceneError, TimeoutError):
    """No matching reply arrived before the wait timed out."""

    def __init__(self, address: str, timeout: float):
        super().__init__(f"No reply for {address} within {timeout:.2f}s")
        self.address = address
        self.timeout = timeout


class BatchError(DbsceneError):
    """One or more waits of a batch failed."""

    def __init__(self, failures: List[Tuple[str, Exception]], total: int):
        self.failures = failures
        self.total = total
        details = "; ".join(f"{address}: {error}" for address, error in failures)
        super().__init__(f"{len(failures)} of {total} requests failed: {details}")


class SceneCreationError(DbsceneError):
    """Scene creation was aborted before any cue was built."""

    pass
