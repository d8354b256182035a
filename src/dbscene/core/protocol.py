"""DS100 coordinate mapping grammar and QLab cue text encodings."""

import re
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from ..common.exceptions import InvalidFormatError
from .cache import TrackedObject
from .config import check_mapping, check_object_number

COORDINATE_PREFIX = "/dbaudio1/coordinatemapping/source_position"

# Reserved label prefix identifying dbscene group cues in QLab
SCENE_PREFIX = "dbscene:"
SCENE_GROUP_NAME = f"{SCENE_PREFIX} "

# QLab network cue message type for a custom OSC message
CUSTOM_MESSAGE_TYPE = 2

_COORDINATE_RE = re.compile(
    r"^/dbaudio1/coordinatemapping/source_position(?:_(x|y|xy))?"
    r"/([1-4])/([1-9]|[1-5][0-9]|6[0-4])$"
)


@dataclass(frozen=True)
class CoordinateAddress:
    """Parsed coordinate mapping address"""

    variant: str  # "x", "y", "xy" or "" for the plain source_position
    mapping: int
    number: int

    @property
    def has_x(self) -> bool:
        return self.variant != "y"

    @property
    def has_y(self) -> bool:
        return self.variant != "x"


def parse_coordinate_address(address: str) -> Optional[CoordinateAddress]:
    """Return the parsed address, or None if it is not a coordinate address"""
    match = _COORDINATE_RE.match(address)
    if match is None:
        return None
    variant, mapping, number = match.groups()
    return CoordinateAddress(variant or "", int(mapping), int(number))


def is_coordinate_address(address: str) -> bool:
    return _COORDINATE_RE.match(address) is not None


def split_coordinates(
    coords: CoordinateAddress, values: Sequence
) -> Tuple[Optional[float], Optional[float]]:
    """Pick x and y out of a report according to the address variant"""
    numbers = [float(v) for v in values if isinstance(v, (int, float)) and not isinstance(v, bool)]
    if not numbers:
        return None, None
    if coords.variant == "x":
        return numbers[0], None
    if coords.variant == "y":
        return None, numbers[0]
    x = numbers[0]
    y = numbers[1] if len(numbers) > 1 else None
    return x, y


def coordinate_address(mapping: int, number: int) -> str:
    """Address used to query or set both coordinates of an object"""
    return f"{COORDINATE_PREFIX}_xy/{check_mapping(mapping)}/{check_object_number(number)}"


def format_custom_string(mapping: int, obj: TrackedObject) -> str:
    """Custom OSC message stored in a position cue"""
    return f"{coordinate_address(mapping, obj.number)} {obj.x} {obj.y}"


def format_cue_name(obj: TrackedObject) -> str:
    """Cue name, e.g. "1 - Homer: 0.56983465834, 0.98293858464" """
    return f"{obj.number} - {obj.display_name}: {obj.x}, {obj.y}"


def parse_custom_string(custom: str) -> CoordinateAddress:
    """Extract mapping and object number from a position cue's custom message"""
    if not isinstance(custom, str) or not custom.strip():
        raise InvalidFormatError("The network cue has no custom message")
    address = custom.split()[0]
    coords = parse_coordinate_address(address)
    if coords is None:
        raise InvalidFormatError(
            f"The network cue was not properly addressed for DS100 coordinate mapping: {address}"
        )
    return coords


def is_scene_group(name: Optional[str]) -> bool:
    return bool(name) and name.startswith(SCENE_PREFIX)
