"""QLab query adapter built on the request correlator."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List

from ..common.exceptions import CommunicationError, DecodeError
from .correlator import Endpoint, RequestCorrelator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CueDescriptor:
    """Shallow description of a QLab cue as returned by cue list queries"""

    unique_id: str
    type: str
    name: str = ""

    @property
    def is_group(self) -> bool:
        return self.type == "Group"

    @property
    def is_network(self) -> bool:
        return self.type == "Network"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CueDescriptor":
        if not isinstance(data, dict) or "uniqueID" not in data:
            raise DecodeError(f"Not a cue descriptor: {data!r}")
        name = data.get("name")
        if name is None:
            name = data.get("listName", "")
        return cls(
            unique_id=str(data["uniqueID"]),
            type=str(data.get("type", "")),
            name=str(name or ""),
        )


def parse_descriptors(data: Any) -> List[CueDescriptor]:
    if not isinstance(data, list):
        raise DecodeError(f"Expected a list of cues, received {data!r}")
    return [CueDescriptor.from_dict(item) for item in data]


class ConsoleQueries:
    """Reads workspace state from QLab"""

    def __init__(self, correlator: RequestCorrelator, console: Endpoint):
        self.correlator = correlator
        self.console = console

    async def fetch(self, address: str, *args: Any) -> Any:
        """Send a query and return the ``data`` field of QLab's reply"""
        reply = await self.correlator.request(self.console, address, args)
        if not reply.ok:
            raise CommunicationError(f"QLab replied {reply.status} to {address}")
        return reply.data

    async def new_cue(self, cue_type: str) -> str:
        """Create a cue and return its unique id"""
        cue_id = await self.fetch("/new", cue_type)
        if not isinstance(cue_id, str) or not cue_id:
            raise DecodeError(f"QLab did not return a cue id for a new {cue_type} cue")
        return cue_id

    async def fetch_selection(self) -> List[CueDescriptor]:
        return parse_descriptors(await self.fetch("/selectedCues/shallow"))

    async def fetch_children(self, cue_id: str) -> List[CueDescriptor]:
        return parse_descriptors(await self.fetch(f"/cue_id/{cue_id}/children/shallow"))

    async def fetch_custom_string(self, cue_id: str) -> str:
        custom = await self.fetch(f"/cue_id/{cue_id}/customString")
        if not isinstance(custom, str):
            raise DecodeError(f"Cue {cue_id} custom string is not text: {custom!r}")
        return custom
