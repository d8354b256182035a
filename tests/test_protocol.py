"""Tests for coordinate addresses and cue text encodings."""

import pytest

from dbscene.common.exceptions import InvalidFormatError, OutOfRangeError
from dbscene.core.cache import TrackedObject
from dbscene.core.protocol import (
    CoordinateAddress,
    coordinate_address,
    format_cue_name,
    format_custom_string,
    is_coordinate_address,
    is_scene_group,
    parse_coordinate_address,
    parse_custom_string,
    split_coordinates,
)


class TestCoordinateAddress:
    """Test the coordinate mapping grammar"""

    @pytest.mark.parametrize(
        "address,expected",
        [
            ("/dbaudio1/coordinatemapping/source_position_xy/1/1", CoordinateAddress("xy", 1, 1)),
            ("/dbaudio1/coordinatemapping/source_position_x/4/64", CoordinateAddress("x", 4, 64)),
            ("/dbaudio1/coordinatemapping/source_position_y/2/10", CoordinateAddress("y", 2, 10)),
            ("/dbaudio1/coordinatemapping/source_position/3/59", CoordinateAddress("", 3, 59)),
        ],
    )
    def test_parse(self, address, expected):
        assert parse_coordinate_address(address) == expected
        assert is_coordinate_address(address)

    @pytest.mark.parametrize(
        "address",
        [
            "/dbaudio1/coordinatemapping/source_position_xy/0/1",
            "/dbaudio1/coordinatemapping/source_position_xy/5/1",
            "/dbaudio1/coordinatemapping/source_position_xy/1/0",
            "/dbaudio1/coordinatemapping/source_position_xy/1/65",
            "/dbaudio1/coordinatemapping/source_position_xy/1/01",
            "/dbaudio1/coordinatemapping/source_position_z/1/1",
            "/dbaudio1/matrixinput/mute/1",
            "/dbaudio1/coordinatemapping/source_position_xy/1/1/extra",
        ],
    )
    def test_reject(self, address):
        assert parse_coordinate_address(address) is None
        assert not is_coordinate_address(address)

    def test_build(self):
        assert (
            coordinate_address(2, 17)
            == "/dbaudio1/coordinatemapping/source_position_xy/2/17"
        )

    @pytest.mark.parametrize("mapping,number", [(0, 1), (5, 1), (1, 0), (1, 65)])
    def test_build_out_of_range(self, mapping, number):
        with pytest.raises(OutOfRangeError):
            coordinate_address(mapping, number)

    def test_split_by_variant(self):
        assert split_coordinates(CoordinateAddress("xy", 1, 1), [0.25, 0.75]) == (0.25, 0.75)
        assert split_coordinates(CoordinateAddress("", 1, 1), [0.25, 0.75, 0.0]) == (0.25, 0.75)
        assert split_coordinates(CoordinateAddress("x", 1, 1), [0.25]) == (0.25, None)
        assert split_coordinates(CoordinateAddress("y", 1, 1), [0.75]) == (None, 0.75)
        assert split_coordinates(CoordinateAddress("xy", 1, 1), ["a"]) == (None, None)


class TestCueText:
    """Test the strings written into position cues"""

    def test_custom_string(self):
        obj = TrackedObject(1, "Homer", 0.56983465834, 0.98293858464)
        assert format_custom_string(1, obj) == (
            "/dbaudio1/coordinatemapping/source_position_xy/1/1 0.56983465834 0.98293858464"
        )

    def test_cue_name(self):
        obj = TrackedObject(1, "Homer", 0.56983465834, 0.98293858464)
        assert format_cue_name(obj) == "1 - Homer: 0.56983465834, 0.98293858464"

    def test_cue_name_unnamed(self):
        assert format_cue_name(TrackedObject(7)) == "7 - (unnamed): 0.0, 0.0"

    def test_custom_string_parses_back(self):
        obj = TrackedObject(12, None, 0.5, 0.25)
        coords = parse_custom_string(format_custom_string(3, obj))
        assert (coords.mapping, coords.number) == (3, 12)

    @pytest.mark.parametrize(
        "custom",
        [
            "",
            "   ",
            "/cue/1/start",
            "/dbaudio1/coordinatemapping/source_position_xy/9/1 0.5 0.5",
            None,
        ],
    )
    def test_custom_string_invalid(self, custom):
        with pytest.raises(InvalidFormatError):
            parse_custom_string(custom)

    def test_scene_group(self):
        assert is_scene_group("dbscene: ")
        assert is_scene_group("dbscene:act 1")
        assert not is_scene_group("Act 1")
        assert not is_scene_group("")
        assert not is_scene_group(None)
