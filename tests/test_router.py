"""Tests for inbound message routing."""

import json

import pytest

from dbscene.common.exceptions import DecodeError
from dbscene.core.cache import PositionCache
from dbscene.core.router import (
    EventType,
    MessageRouter,
    OscMessage,
    PositionReport,
    SceneCommand,
    decode_reply_envelope,
)
from dbscene.net.osc import OscArgument, encode_message

PEER = ("10.0.0.5", 50010)


@pytest.fixture
def cache():
    return PositionCache({1: "Homer", 2: "Marge"})


@pytest.fixture
def router(cache):
    return MessageRouter(cache)


@pytest.fixture
def events(router):
    """Every event the router publishes, in order"""
    seen = []
    for event_type in EventType:
        router.subscribe(event_type, lambda event, t=event_type: seen.append((t, event)))
    return seen


def reply_packet(address, data, status="ok"):
    envelope = {"workspace_id": "WS", "address": address, "status": status, "data": data}
    return encode_message(f"/reply{address}", [json.dumps(envelope)])


class TestDeviceRouting:
    """Test messages arriving on the DS100 reply port"""

    def test_position_report_updates_cache(self, router, cache, events):
        packet = encode_message(
            "/dbaudio1/coordinatemapping/source_position_xy/1/2", [0.25, 0.75]
        )
        router.handle_device_packet(packet, PEER)

        obj = cache.lookup(2)
        assert (obj.x, obj.y) == (0.25, 0.75)
        assert [t for t, _ in events] == [EventType.POSITION, EventType.REPLY]
        assert events[0][1] == PositionReport(1, 2, 0.25, 0.75)
        assert events[1][1].source == "device"
        assert events[1][1].data == [0.25, 0.75]

    def test_single_axis_report(self, router, cache):
        cache.apply_position(1, 0.5, 0.5)
        router.handle_device_packet(
            encode_message("/dbaudio1/coordinatemapping/source_position_y/1/1", [0.125]),
            PEER,
        )
        obj = cache.lookup(1)
        assert (obj.x, obj.y) == (0.5, 0.125)

    def test_untracked_object_still_replies(self, router, cache, events):
        router.handle_device_packet(
            encode_message("/dbaudio1/coordinatemapping/source_position_xy/1/9", [0.5, 0.5]),
            PEER,
        )
        assert 9 not in cache
        assert EventType.REPLY in [t for t, _ in events]

    def test_other_device_reply(self, router, events):
        router.handle_device_packet(encode_message("/dbaudio1/matrixinput/mute/1", [0]), PEER)
        assert [t for t, _ in events] == [EventType.REPLY]

    def test_scene_commands(self, router, events):
        router.handle_device_packet(encode_message("/dbscene/create", [2]), PEER)
        router.handle_device_packet(encode_message("/dbscene/update"), PEER)
        assert events == [
            (EventType.SCENE_CONTROL, SceneCommand("create", [2])),
            (EventType.SCENE_CONTROL, SceneCommand("update", [])),
        ]

    @pytest.mark.parametrize(
        "address", ["/dbscene/delete", "/dbscene", "/dbscene/create/now", "/other/thing"]
    )
    def test_unusable_messages_dropped(self, router, events, address):
        router.handle_device_packet(encode_message(address), PEER)
        assert events == []

    def test_malformed_packet_dropped(self, router, events):
        router.handle_device_packet(b"\xff\x00garbage", PEER)
        assert events == []

    def test_failing_handler_is_isolated(self, router, events):
        def broken(event):
            raise RuntimeError("boom")

        router.subscribe(EventType.SCENE_CONTROL, broken)
        router.handle_device_packet(encode_message("/dbscene/update"), PEER)
        assert len(events) == 1


class TestConsoleRouting:
    """Test messages arriving on the QLab reply port"""

    def test_reply_envelope(self, router, events):
        router.handle_console_packet(reply_packet("/new", "CUE-1"), PEER)
        assert len(events) == 1
        event_type, reply = events[0]
        assert event_type == EventType.REPLY
        assert reply.address == "/new"
        assert reply.data == "CUE-1"
        assert reply.workspace_id == "WS"
        assert reply.ok

    def test_error_status_is_published(self, router, events):
        router.handle_console_packet(reply_packet("/new", None, status="error"), PEER)
        assert not events[0][1].ok

    def test_non_reply_ignored(self, router, events):
        router.handle_console_packet(encode_message("/update/workspace/WS"), PEER)
        assert events == []

    @pytest.mark.parametrize(
        "args", [[], [1], ["not json"], [json.dumps({"status": "ok"})], [json.dumps([1])]]
    )
    def test_bad_envelope_dropped(self, router, events, args):
        router.handle_console_packet(encode_message("/reply/new", args), PEER)
        assert events == []

    def test_decode_reply_envelope(self):
        message = OscMessage(
            "/reply/cue_id/A/customString",
            [OscArgument("s", json.dumps({"address": "/cue_id/A/customString", "data": "x"}))],
        )
        reply = decode_reply_envelope(message)
        assert reply.address == "/cue_id/A/customString"
        assert reply.status == "ok"
        assert reply.data == "x"

    def test_decode_reply_envelope_invalid(self):
        with pytest.raises(DecodeError):
            decode_reply_envelope(OscMessage("/reply/new", [OscArgument("s", "{")]))


class TestOscMessage:
    """Test derived message forms"""

    def test_derived_forms(self):
        message = OscMessage.from_packet(encode_message("/dbscene/create", [1, "a"]))
        assert message.path == ["dbscene", "create"]
        assert message.values == [1, "a"]
        assert message.text == "/dbscene/create 1 a"
