"""Core bridge components: cache, routing, correlation and scene workflows"""

from ..common.exceptions import DbsceneError, ValidationError
from .config import SystemConfig, SystemDefaults
from .cache import PositionCache, TrackedObject
from .router import EventType, MessageRouter, OscMessage, ReplyEvent
from .correlator import PendingWait, RequestCorrelator
from .console import ConsoleQueries, CueDescriptor
from .orchestrator import SceneOrchestrator, SceneResult, UpdateReport

# Import controller last to avoid circular imports
from .control import BridgeController

__all__ = [
    "DbsceneError",
    "ValidationError",
    "SystemConfig",
    "SystemDefaults",
    "PositionCache",
    "TrackedObject",
    "EventType",
    "MessageRouter",
    "OscMessage",
    "ReplyEvent",
    "PendingWait",
    "RequestCorrelator",
    "ConsoleQueries",
    "CueDescriptor",
    "SceneOrchestrator",
    "SceneResult",
    "UpdateReport",
    "BridgeController",
]
