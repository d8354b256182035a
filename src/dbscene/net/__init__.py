"""Network adapters: OSC codec, UDP endpoints and the AppleScript side channel"""

from .osc import OscArgument, decode_message, encode_message, format_message
from .transport import OscEndpoint
from .scripting import ScriptingBridge

__all__ = [
    "OscArgument",
    "decode_message",
    "encode_message",
    "format_message",
    "OscEndpoint",
    "ScriptingBridge",
]
