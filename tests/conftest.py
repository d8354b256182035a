import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest
import yaml

# Get the project source directory
src_dir = Path(__file__).parent.parent.absolute() / "src"

# Add src directory to Python path if not already there
if str(src_dir) not in sys.path:
    sys.path.insert(0, str(src_dir))

from dbscene.core.config import SystemConfig  # noqa: E402
from dbscene.core.protocol import parse_coordinate_address  # noqa: E402
from dbscene.core.router import MessageRouter, OscMessage  # noqa: E402
from dbscene.net.osc import OscArgument  # noqa: E402


class FakeEndpoint:
    """Records every send; an optional responder answers asynchronously"""

    def __init__(self, name: str = "fake"):
        self.name = name
        self.sent: List[Tuple[str, List[Any]]] = []
        self.responder: Optional[Callable[[str, List[Any]], Optional[OscMessage]]] = None
        self.deliver: Optional[Callable[[OscMessage], None]] = None

    def send(self, address: str, args=()) -> None:
        args = list(args)
        self.sent.append((address, args))
        if self.responder is None or self.deliver is None:
            return
        reply = self.responder(address, args)
        if reply is not None:
            asyncio.get_running_loop().call_soon(self.deliver, reply)

    def addresses(self) -> List[str]:
        return [address for address, _ in self.sent]

    def count(self, address: str) -> int:
        return self.addresses().count(address)


class FakeDevice(FakeEndpoint):
    """DS100 stand-in answering coordinate queries from a position table

    Positions are keyed by object number, or by (mapping, number) where a
    mapping needs its own answer.
    """

    def __init__(self, positions: Optional[Dict[Any, Tuple[float, float]]] = None):
        super().__init__("device")
        self.positions: Dict[Any, Tuple[float, float]] = dict(positions or {})
        self.silent: set = set()
        self.responder = self._respond

    def attach(self, router: MessageRouter) -> "FakeDevice":
        self.deliver = router.route_device_message
        return self

    def _respond(self, address: str, args: List[Any]) -> Optional[OscMessage]:
        coords = parse_coordinate_address(address)
        if coords is None or args or coords.number in self.silent:
            return None
        x, y = self.positions.get(
            (coords.mapping, coords.number), self.positions.get(coords.number, (0.0, 0.0))
        )
        return OscMessage(address, [OscArgument("f", x), OscArgument("f", y)])


class FakeConsole(FakeEndpoint):
    """QLab stand-in keeping a tiny cue table and answering with JSON replies"""

    def __init__(self):
        super().__init__("console")
        self.cues: Dict[str, Dict[str, Any]] = {}
        self.selection: List[str] = []
        self.failing: set = set()
        self._next_id = 0
        self.responder = self._respond

    def attach(self, router: MessageRouter) -> "FakeConsole":
        self.deliver = router.route_console_message
        return self

    def add_cue(self, cue_type: str, name: str = "", custom: str = "", parent: str = None) -> str:
        self._next_id += 1
        cue_id = f"CUE-{self._next_id}"
        self.cues[cue_id] = {
            "uniqueID": cue_id,
            "type": cue_type,
            "name": name,
            "customString": custom,
            "children": [],
        }
        if parent is not None:
            self.cues[parent]["children"].append(cue_id)
        return cue_id

    def shallow(self, cue_id: str) -> Dict[str, Any]:
        cue = self.cues[cue_id]
        return {"uniqueID": cue_id, "type": cue["type"], "name": cue["name"]}

    def _reply(self, address: str, data: Any, status: str = "ok") -> OscMessage:
        envelope = {"workspace_id": "WS", "address": address, "status": status, "data": data}
        return OscMessage(f"/reply{address}", [OscArgument("s", json.dumps(envelope))])

    def _respond(self, address: str, args: List[Any]) -> Optional[OscMessage]:
        if address in self.failing:
            return self._reply(address, None, status="error")
        path = address.split("/")[1:]
        if path == ["new"]:
            cue_type = {"group": "Group", "network": "Network"}.get(args[0], args[0])
            return self._reply(address, self.add_cue(cue_type))
        if path == ["selectedCues", "shallow"]:
            return self._reply(address, [self.shallow(cue_id) for cue_id in self.selection])
        if path[0] == "move":
            cue_id, (_, group_id) = path[1], args
            self.cues[group_id]["children"].append(cue_id)
            return None
        if path[0] == "cue_id" and len(path) >= 3:
            cue = self.cues[path[1]]
            prop = "/".join(path[2:])
            if prop == "children/shallow":
                return self._reply(address, [self.shallow(c) for c in cue["children"]])
            if args:
                cue[prop] = args[0]
                return None
            return self._reply(address, cue.get(prop))
        return None


@pytest.fixture
def system_config():
    """Test system configuration with one named object"""
    return SystemConfig.from_dict({"objects": {1: "Homer"}})


@pytest.fixture
def collapsed():
    """Group ids passed to the collapse capability"""
    return []


@pytest.fixture
def collapse(collapsed):
    """Recording stand-in for the AppleScript collapse"""

    async def _collapse(cue_id: str) -> None:
        collapsed.append(cue_id)

    return _collapse


@pytest.fixture
def bridge_config():
    """Raw configuration mapping used for config file tests"""
    return {
        "device": {"address": "10.0.0.5", "default_mapping": 2},
        "console": {"address": "10.0.0.6", "network_patch": 3, "default_duration": 1.5},
        "logging": 2,
        "objects": {1: "Homer", 2: None, 5: "Bart"},
    }


@pytest.fixture
def config_file(tmp_path, bridge_config):
    """Create a temporary config file for testing"""
    config_path = tmp_path / "dbscene.yaml"
    with open(config_path, "w") as f:
        yaml.dump(bridge_config, f)
    return config_path


@pytest.fixture
def device():
    """DS100 stand-in; attach it to a router before use"""
    return FakeDevice({1: (0.5, 0.25)})


@pytest.fixture
def console():
    """QLab stand-in; attach it to a router before use"""
    return FakeConsole()
