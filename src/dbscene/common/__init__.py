"""Common components shared across modules."""

from .exceptions import *

__all__ = [
    "DbsceneError",
    "ValidationError",
    "OutOfRangeError",
    "DuplicateObjectError",
    "NotFoundError",
    "InvalidFormatError",
    "ConfigurationError",
    "CommunicationError",
    "TransportError",
    "DecodeError",
    "ReplyTimeoutError",
    "BatchError",
    "SceneCreationError",
]
