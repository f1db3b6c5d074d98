"""
Default input action table.

Each entry maps an action byte to its text name and argument layout. Most
actions are flat field lists; Cursor and Select need custom handlers because
their payloads are delta coded per player or variable length.
"""

import re
from typing import List

from .frames import CustomArgs, FieldListArgs, FrameHandler, FrameRegistry, SingleFieldArgs
from .primitives import DatReader, DatWriter

_SELECTION = re.compile(r"\[([^\]\n]*)\]")


def _decode_cursor(reader: DatReader) -> str:
    # Positions are int16 deltas from the same player's previous cursor
    state = reader.player_state()
    x = state.get("cursor_x", 0) + reader.unpack(">h")
    y = state.get("cursor_y", 0) + reader.unpack(">h")
    state["cursor_x"], state["cursor_y"] = x, y
    return f"{x}, {y}"


def _encode_cursor(writer: DatWriter):
    state = writer.player_state()
    coords = []
    for axis in ("x", "y"):
        text = writer.fetch_arg()
        try:
            coords.append(int(text, 10))
        except (TypeError, ValueError):
            writer.fail(f"Invalid cursor {axis} {text!r} on line {writer.line_number}")
            return

    x, y = coords
    writer.pack(">h", x - state.get("cursor_x", 0), "cursor x delta")
    writer.pack(">h", y - state.get("cursor_y", 0), "cursor y delta")
    state["cursor_x"], state["cursor_y"] = x, y


def _decode_select(reader: DatReader) -> str:
    count = reader.read_uint8()
    ids = [str(reader.read_uint16()) for _ in range(count)]
    return f"[{' '.join(ids)}]"


def _encode_select(writer: DatWriter):
    writer.fetch_whitespace()
    match = _SELECTION.match(writer.text, writer.pos)
    if match is None:
        writer.fail(f"Expected a [id ...] selection on line {writer.line_number}")
        return
    writer.pos = match.end()

    ids: List[int] = []
    for token in match.group(1).split():
        try:
            ids.append(int(token, 10))
        except ValueError:
            writer.fail(f"Invalid unit id {token!r} on line {writer.line_number}")
            return
    if len(ids) > 0xFF:
        writer.fail(f"Selection of {len(ids)} units too large on line {writer.line_number}")
        return

    writer.write_uint8(len(ids), "selection count")
    for unit_id in ids:
        writer.write_uint16(unit_id, "unit id")


def reset_players(context):
    """Forget per-player cursor positions at the start of a pass."""
    context.reset_players()


FRAME_HANDLERS = [
    FrameHandler(0x01, "Move", SingleFieldArgs("uint8")),
    FrameHandler(0x02, "Jump", FieldListArgs(())),
    FrameHandler(0x03, "Aim", FieldListArgs(("fixed", "fixed"))),
    FrameHandler(0x04, "Buttons", SingleFieldArgs("flags")),
    FrameHandler(0x05, "Chat", SingleFieldArgs("string")),
    FrameHandler(0x06, "UseItem", FieldListArgs(("uint16", "optUint8"))),
    FrameHandler(0x07, "Cursor", CustomArgs(_decode_cursor, _encode_cursor)),
    FrameHandler(0x08, "Select", CustomArgs(_decode_select, _encode_select)),
    FrameHandler(0x09, "Spawn", FieldListArgs(("uint8", "int16", "int16"))),
    FrameHandler(0x0A, "Pause", SingleFieldArgs("bool")),
    FrameHandler(0x0B, "Sync", SingleFieldArgs("uint32")),
    FrameHandler(0x0C, "Script", SingleFieldArgs("bytes")),
]


def default_registry() -> FrameRegistry:
    return FrameRegistry(FRAME_HANDLERS, reset_players=reset_players)
