"""Minimal OSC 1.0 message codec.

Both the DS100 and QLab speak plain OSC messages over UDP. Bundles are not
used by either side and are rejected on decode.

Supported type tags: i, f, s, T, F, N, h, d, b.
"""

import struct
from dataclasses import dataclass
from typing import Any, List, Sequence, Tuple

from ..common.exceptions import DecodeError, ValidationError


@dataclass(frozen=True)
class OscArgument:
    """A typed OSC argument"""

    type: str
    value: Any


def _pad4(length: int) -> int:
    remainder = length % 4
    return 0 if remainder == 0 else 4 - remainder


def _encode_string(value: str) -> bytes:
    raw = value.encode("utf-8") + b"\x00"
    return raw + b"\x00" * _pad4(len(raw))


def _encode_blob(value: bytes) -> bytes:
    return struct.pack(">i", len(value)) + value + b"\x00" * _pad4(len(value))


def _decode_string(data: bytes, start: int) -> Tuple[str, int]:
    end = data.find(b"\x00", start)
    if end == -1:
        raise DecodeError("OSC string is not null-terminated")
    try:
        text = data[start:end].decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodeError(f"OSC string is not valid UTF-8: {e}")
    idx = end + 1
    return text, idx + _pad4(idx)


def _unpack(fmt: str, data: bytes, idx: int) -> Tuple[Any, int]:
    size = struct.calcsize(fmt)
    if idx + size > len(data):
        raise DecodeError("OSC argument truncated")
    return struct.unpack(fmt, data[idx : idx + size])[0], idx + size


def encode_message(address: str, args: Sequence[Any] = ()) -> bytes:
    """Encode an address and plain Python values as an OSC message"""
    if not address.startswith("/"):
        raise ValidationError(f"OSC address must start with '/': {address}")

    type_tags = ","
    payload = bytearray()
    for arg in args:
        if isinstance(arg, OscArgument):
            arg = arg.value
        if isinstance(arg, bool):
            type_tags += "T" if arg else "F"
        elif arg is None:
            type_tags += "N"
        elif isinstance(arg, int):
            if -(2**31) <= arg < 2**31:
                type_tags += "i"
                payload += struct.pack(">i", arg)
            else:
                type_tags += "h"
                payload += struct.pack(">q", arg)
        elif isinstance(arg, float):
            type_tags += "f"
            payload += struct.pack(">f", arg)
        elif isinstance(arg, str):
            type_tags += "s"
            payload += _encode_string(arg)
        elif isinstance(arg, (bytes, bytearray)):
            type_tags += "b"
            payload += _encode_blob(bytes(arg))
        else:
            raise ValidationError(f"Unsupported OSC argument type {type(arg)}: {arg!r}")

    return _encode_string(address) + _encode_string(type_tags) + bytes(payload)


def decode_message(data: bytes) -> Tuple[str, List[OscArgument]]:
    """Decode an OSC message into its address and typed arguments"""
    if data.startswith(b"#bundle"):
        raise DecodeError("OSC bundles are not supported")
    if not data.startswith(b"/"):
        raise DecodeError("OSC packet does not start with an address")

    address, idx = _decode_string(data, 0)
    if idx >= len(data):
        # Type tag string is optional in old implementations
        return address, []

    type_tags, idx = _decode_string(data, idx)
    if not type_tags.startswith(","):
        raise DecodeError(f"OSC type tags must start with ',': {type_tags}")

    args: List[OscArgument] = []
    for tag in type_tags[1:]:
        if tag == "i":
            value, idx = _unpack(">i", data, idx)
        elif tag == "f":
            value, idx = _unpack(">f", data, idx)
        elif tag == "h":
            value, idx = _unpack(">q", data, idx)
        elif tag == "d":
            value, idx = _unpack(">d", data, idx)
        elif tag == "s":
            value, idx = _decode_string(data, idx)
        elif tag == "b":
            size, idx = _unpack(">i", data, idx)
            if size < 0 or idx + size > len(data):
                raise DecodeError("OSC blob truncated")
            value = data[idx : idx + size]
            idx += size + _pad4(size)
        elif tag == "T":
            value = True
        elif tag == "F":
            value = False
        elif tag == "N":
            value = None
        else:
            raise DecodeError(f"Unsupported OSC type tag: {tag}")
        args.append(OscArgument(tag, value))

    return address, args


def format_message(address: str, values: Sequence[Any]) -> str:
    """Render an address and its values as a single diagnostic line"""
    if not values:
        return address
    return f"{address} {' '.join(str(value) for value in values)}"
