"""In-memory cache of the En-Scene objects tracked by the bridge."""

import logging
import threading
from dataclasses import dataclass, replace, asdict
from typing import Any, Callable, Dict, List, Optional

from ..common.exceptions import DuplicateObjectError, NotFoundError
from .config import check_object_number

logger = logging.getLogger(__name__)


@dataclass
class TrackedObject:
    """One DS100 sound object"""

    number: int
    name: Optional[str] = None
    x: float = 0.0
    y: float = 0.0

    @property
    def display_name(self) -> str:
        return self.name or "(unnamed)"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


CacheObserver = Callable[[str, TrackedObject], None]


class PositionCache:
    """Authoritative set of tracked objects.

    Every read and mutation goes through a single lock and callers only ever
    receive copies, so the event loop and API worker threads always see a
    consistent view. Observers are called after each mutation with the kind
    of change ("added", "updated", "removed") and a copy of the object.
    """

    def __init__(self, objects: Optional[Dict[int, Optional[str]]] = None):
        self._objects: Dict[int, TrackedObject] = {}
        self._observers: List[CacheObserver] = []
        self._lock = threading.RLock()
        for number, name in (objects or {}).items():
            self.add(number, name)

    def __len__(self) -> int:
        with self._lock:
            return len(self._objects)

    def __contains__(self, number: object) -> bool:
        with self._lock:
            return number in self._objects

    def subscribe(self, observer: CacheObserver) -> None:
        """Register a callback for cache changes"""
        with self._lock:
            self._observers.append(observer)

    def unsubscribe(self, observer: CacheObserver) -> None:
        with self._lock:
            try:
                self._observers.remove(observer)
            except ValueError:
                pass

    def _notify(self, change: str, obj: TrackedObject) -> None:
        with self._lock:
            observers = list(self._observers)
        for observer in observers:
            try:
                observer(change, replace(obj))
            except Exception as e:
                logger.error(f"Cache observer failed: {e}")

    def _get(self, number: Any) -> TrackedObject:
        num = check_object_number(number)
        obj = self._objects.get(num)
        if obj is None:
            raise NotFoundError(f"Cache object {num} does not exist")
        return obj

    def lookup(self, number: Any) -> TrackedObject:
        """Return a copy of the object with this number"""
        with self._lock:
            return replace(self._get(number))

    def list_objects(self) -> List[TrackedObject]:
        """Snapshot of all objects, ascending by number"""
        with self._lock:
            return [replace(self._objects[num]) for num in sorted(self._objects)]

    def numbers(self) -> List[int]:
        with self._lock:
            return sorted(self._objects)

    def add(self, number: Any, name: Optional[str] = None) -> TrackedObject:
        """Add a new object at the origin; duplicates are rejected"""
        num = check_object_number(number)
        with self._lock:
            if num in self._objects:
                raise DuplicateObjectError(f"Cache object {num} already exists")
            obj = TrackedObject(number=num, name=name)
            self._objects[num] = obj
            snapshot = replace(obj)
        logger.debug(f"Added cache object {num} ({snapshot.display_name})")
        self._notify("added", snapshot)
        return snapshot

    def remove(self, number: Any) -> TrackedObject:
        with self._lock:
            obj = self._get(number)
            del self._objects[obj.number]
        logger.debug(f"Removed cache object {obj.number}")
        self._notify("removed", obj)
        return obj

    def rename(self, number: Any, name: Optional[str]) -> TrackedObject:
        with self._lock:
            obj = self._get(number)
            obj.name = name
            snapshot = replace(obj)
        self._notify("updated", snapshot)
        return snapshot

    def apply_position(
        self, number: Any, x: Optional[float] = None, y: Optional[float] = None
    ) -> TrackedObject:
        """Store reported coordinates; omitted coordinates keep their value"""
        with self._lock:
            obj = self._get(number)
            if x is not None:
                obj.x = float(x)
            if y is not None:
                obj.y = float(y)
            snapshot = replace(obj)
        self._notify("updated", snapshot)
        return snapshot

    def to_dict(self) -> Dict[int, Optional[str]]:
        """Object table in the same shape as the configuration file"""
        with self._lock:
            return {num: self._objects[num].name for num in sorted(self._objects)}
