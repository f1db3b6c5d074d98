"""
Primitive I/O for replay dat transcoding.

Provides the per-pass context objects shared by the decoder, the encoder and
the frame handlers:

- DatReader: cursor over the binary dat, fixed-width readers that return the
  text rendering of each field, and the unhandled-bytes fallback.
- DatWriter: cursor over the text form, lexing helpers (fetch_*), writers
  that append binary fields to the output buffer, and the error signal.

Every decode or encode pass builds its own reader or writer, so passes never
share cursor, output, error or per-player state.

All multi-byte integers are big-endian. A player id of 0xFFFF means "no
player" on the wire.
"""

import json
import logging
import re
import struct
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

NO_PLAYER = 0xFFFF
UINT32_MAX = 0xFFFFFFFF

_DIGITS = re.compile(r"\d+", re.ASCII)
_INLINE_WHITESPACE = " \t"
_json_decoder = json.JSONDecoder()


class DatReader:
    """
    Binary cursor used while decoding a dat into text.

    Reads past the end of the buffer yield zero bytes, leave the cursor at
    the end and set ``truncated`` so the decoder can fall back to a hex blob.
    """

    def __init__(self, data: bytes, relative_ticks: bool = False):
        self.data = bytes(data)
        self.pos = 0
        self.relative_ticks = relative_ticks
        self.truncated = False
        self.last_tick = 0
        self.player: Optional[int] = None
        self.players: Dict[Optional[int], Dict[str, Any]] = {}

    def eof(self) -> bool:
        return self.pos >= len(self.data)

    def reset_players(self):
        self.players = {}

    def player_state(self) -> Dict[str, Any]:
        """Mutable state slot for the player of the record being decoded."""
        return self.players.setdefault(self.player, {})

    def take(self, size: int) -> bytes:
        chunk = self.data[self.pos:self.pos + size]
        self.pos = min(self.pos + size, len(self.data))
        if len(chunk) < size:
            self.truncated = True
            chunk = chunk + b"\x00" * (size - len(chunk))
        return chunk

    def unpack(self, fmt: str) -> int:
        return struct.unpack(fmt, self.take(struct.calcsize(fmt)))[0]

    def read_uint8(self) -> int:
        return self.unpack(">B")

    def read_uint16(self) -> int:
        return self.unpack(">H")

    def read_uint32(self) -> int:
        return self.unpack(">I")

    def read_tick(self) -> str:
        """
        Read the tick and player header of a record.

        Returns:
            Text prefix of the record line including the trailing space,
            e.g. "@12(3) " or "+4 "
        """
        tick = self.read_uint32()
        player = self.read_uint16()
        self.player = None if player == NO_PLAYER else player

        if self.relative_ticks and tick >= self.last_tick:
            tick_text = f"+{tick - self.last_tick}"
        else:
            tick_text = f"@{tick}"
        self.last_tick = tick

        if self.player is None:
            return f"{tick_text} "
        return f"{tick_text}({self.player}) "

    def read_field(self, tag: str) -> str:
        return FIELD_TYPES[tag].read(self)

    def unhandled_bytes(self, record_start: int, reason: str = "unhandled opcode") -> str:
        """
        Render everything from record_start to the end of the buffer as a
        hex blob line and consume it.
        """
        opcode = self.data[record_start]
        blob = self.data[record_start:]
        self.pos = len(self.data)
        logger.debug(
            f"{reason.capitalize()} 0x{opcode:02X} at offset {record_start}, "
            f"emitting {len(blob)} raw bytes"
        )
        return f"?{blob.hex().upper()}: {reason} 0x{opcode:02X}"


class DatWriter:
    """
    Text cursor and binary output buffer used while encoding text into a dat.

    Writers never raise on malformed input. They record the first problem in
    ``error`` and the encoder checks it after each record.
    """

    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.out = bytearray()
        self.error = ""
        self.last_tick = 0
        self.player: Optional[int] = None
        self.players: Dict[Optional[int], Dict[str, Any]] = {}

    def eof(self) -> bool:
        return self.pos >= len(self.text)

    def reset_players(self):
        self.players = {}

    def player_state(self) -> Dict[str, Any]:
        """Mutable state slot for the player of the record being encoded."""
        return self.players.setdefault(self.player, {})

    def fail(self, message: str):
        if not self.error:
            self.error = message

    @property
    def line_number(self) -> int:
        return self.text.count("\n", 0, self.pos) + 1

    # Lexing helpers

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def fetch_char(self) -> str:
        """Skip whitespace (line breaks included) and consume one character."""
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1
        char = self.peek()
        if char:
            self.pos += 1
        return char

    def fetch_whitespace(self):
        while self.pos < len(self.text) and self.text[self.pos] in _INLINE_WHITESPACE:
            self.pos += 1

    def fetch_string(self, delimiters: str) -> str:
        """
        Consume text up to the first delimiter or the end of the line.

        A delimiter that stops the scan is consumed too; a line break is not.
        """
        start = self.pos
        while self.pos < len(self.text):
            char = self.text[self.pos]
            if char == "\n":
                return self.text[start:self.pos].rstrip("\r")
            if char in delimiters:
                self.pos += 1
                return self.text[start:self.pos - 1]
            self.pos += 1
        return self.text[start:].rstrip("\r")

    def fetch_rest_of_line(self):
        end = self.text.find("\n", self.pos)
        self.pos = len(self.text) if end == -1 else end + 1

    def fetch_number(self) -> Optional[int]:
        match = _DIGITS.match(self.text, self.pos)
        if match is None:
            return None
        self.pos = match.end()
        return int(match.group())

    def fetch_tick(self, is_delta: bool) -> Tuple[int, Optional[int]]:
        """
        Parse "<tick>[(<player>)]" right after the line marker.

        Args:
            is_delta: Resolve the number as an offset from the last record's tick

        Returns:
            Tuple of (absolute tick, player or None)
        """
        number = self.fetch_number()
        if number is None:
            self.fail(f"Expected a tick number on line {self.line_number}")
            number = 0
        tick = self.last_tick + number if is_delta else number

        player = None
        if self.peek() == "(":
            self.pos += 1
            player = self.fetch_number()
            if player is None or self.peek() != ")":
                self.fail(f"Malformed player id on line {self.line_number}")
                self.fetch_string(")")
            else:
                self.pos += 1
        self.player = player
        return tick, player

    def fetch_arg(self) -> Optional[str]:
        """
        Consume the next comma separated argument of the current line.

        Returns:
            The stripped argument text, or None when the line has no more
            arguments
        """
        self.fetch_whitespace()
        if self.peek() == ",":
            self.pos += 1
            self.fetch_whitespace()
        start = self.pos
        while self.pos < len(self.text) and self.text[self.pos] not in ",\n":
            self.pos += 1
        arg = self.text[start:self.pos].strip()
        return arg or None

    def fetch_json_string(self) -> Optional[str]:
        self.fetch_whitespace()
        if self.peek() == ",":
            self.pos += 1
            self.fetch_whitespace()
        if self.peek() != '"':
            return None
        try:
            value, end = _json_decoder.raw_decode(self.text, self.pos)
        except json.JSONDecodeError:
            return None
        if not isinstance(value, str):
            return None
        self.pos = end
        return value

    # Writers

    def pack(self, fmt: str, value: int, field_name: str):
        try:
            self.out += struct.pack(fmt, value)
        except struct.error:
            self.fail(f"Value {value} out of range for {field_name}")

    def write_uint8(self, value: int, field_name: str = "uint8"):
        self.pack(">B", value, field_name)

    def write_uint16(self, value: int, field_name: str = "uint16"):
        self.pack(">H", value, field_name)

    def write_uint32(self, value: int, field_name: str = "uint32"):
        self.pack(">I", value, field_name)

    def write_opt_uint16(self, value: Optional[int], field_name: str):
        if value is None:
            self.write_uint16(NO_PLAYER, field_name)
        elif value == NO_PLAYER:
            self.fail(f"Value {value} is reserved for an absent {field_name}")
        else:
            self.write_uint16(value, field_name)

    def write_hex(self, hex_text: str):
        try:
            self.out += bytes.fromhex(hex_text)
        except ValueError:
            self.fail(f"Invalid hex bytes {hex_text!r} on line {self.line_number}")

    def write_field(self, tag: str):
        FIELD_TYPES[tag].write(self)


@dataclass(frozen=True)
class FieldType:
    """Reader/writer pair for one primitive field tag."""

    tag: str
    read: Callable[[DatReader], str]
    write: Callable[[DatWriter], None]


FIELD_TYPES: Dict[str, FieldType] = {}


def register_field_type(tag: str, read, write) -> FieldType:
    field_type = FieldType(tag, read, write)
    FIELD_TYPES[tag] = field_type
    return field_type


def _parse_int(text: str) -> Optional[int]:
    if not text.isascii():
        return None
    try:
        return int(text, 10)
    except ValueError:
        return None


def _integer_field(tag: str, fmt: str):
    def read(reader: DatReader) -> str:
        return str(reader.unpack(fmt))

    def write(writer: DatWriter):
        text = writer.fetch_arg()
        if text is None:
            writer.fail(f"Missing {tag} argument on line {writer.line_number}")
            return
        value = _parse_int(text)
        if value is None:
            writer.fail(f"Invalid {tag} value {text!r} on line {writer.line_number}")
            return
        writer.pack(fmt, value, tag)

    register_field_type(tag, read, write)


def _optional_field(tag: str, fmt: str, sentinel: int):
    # Absent values occupy the full width as the sentinel
    def read(reader: DatReader) -> str:
        value = reader.unpack(fmt)
        return "" if value == sentinel else str(value)

    def write(writer: DatWriter):
        text = writer.fetch_arg()
        if text is None:
            writer.pack(fmt, sentinel, tag)
            return
        value = _parse_int(text)
        if value is None or value == sentinel:
            writer.fail(f"Invalid {tag} value {text!r} on line {writer.line_number}")
            return
        writer.pack(fmt, value, tag)

    register_field_type(tag, read, write)


for _tag, _fmt in (
    ("uint8", ">B"),
    ("uint16", ">H"),
    ("uint32", ">I"),
    ("int8", ">b"),
    ("int16", ">h"),
    ("int32", ">i"),
):
    _integer_field(_tag, _fmt)

_optional_field("optUint8", ">B", 0xFF)
_optional_field("optUint16", ">H", 0xFFFF)


def _read_fixed(reader: DatReader) -> str:
    text = repr(reader.unpack(">i") / 65536)
    return text[:-2] if text.endswith(".0") else text


def _write_fixed(writer: DatWriter):
    text = writer.fetch_arg()
    if text is None:
        writer.fail(f"Missing fixed argument on line {writer.line_number}")
        return
    try:
        value = float(text)
        raw = round(value * 65536)
    except (ValueError, OverflowError):
        writer.fail(f"Invalid fixed value {text!r} on line {writer.line_number}")
        return
    writer.pack(">i", raw, "fixed")


def _read_flags(reader: DatReader) -> str:
    return f"0x{reader.read_uint8():02X}"


def _write_flags(writer: DatWriter):
    text = writer.fetch_arg()
    if text is None:
        writer.fail(f"Missing flags argument on line {writer.line_number}")
        return
    try:
        value = int(text, 16) if text.lower().startswith("0x") else int(text, 10)
    except ValueError:
        writer.fail(f"Invalid flags value {text!r} on line {writer.line_number}")
        return
    writer.write_uint8(value, "flags")


def _read_bool(reader: DatReader) -> str:
    return "true" if reader.read_uint8() else "false"


def _write_bool(writer: DatWriter):
    text = writer.fetch_arg()
    if text is None:
        writer.fail(f"Missing bool argument on line {writer.line_number}")
        return
    lowered = text.lower()
    if lowered in ("true", "1"):
        writer.write_uint8(1, "bool")
    elif lowered in ("false", "0"):
        writer.write_uint8(0, "bool")
    else:
        writer.fail(f"Invalid bool value {text!r} on line {writer.line_number}")


def _read_string(reader: DatReader) -> str:
    size = reader.read_uint8()
    raw = reader.take(size)
    return json.dumps(raw.decode("utf-8", "surrogateescape"), ensure_ascii=False)


def _write_string(writer: DatWriter):
    value = writer.fetch_json_string()
    if value is None:
        writer.fail(f"Expected a quoted string on line {writer.line_number}")
        return
    try:
        raw = value.encode("utf-8", "surrogateescape")
    except UnicodeEncodeError:
        writer.fail(f"Unencodable string on line {writer.line_number}")
        return
    if len(raw) > 0xFF:
        writer.fail(f"String of {len(raw)} bytes too long on line {writer.line_number}")
        return
    writer.write_uint8(len(raw), "string")
    writer.out += raw


def _read_bytes(reader: DatReader) -> str:
    size = reader.read_uint8()
    if size == 0:
        return "-"
    return reader.take(size).hex().upper()


def _write_bytes(writer: DatWriter):
    text = writer.fetch_arg()
    if text is None:
        writer.fail(f"Missing bytes argument on line {writer.line_number}")
        return
    if text == "-":
        writer.write_uint8(0, "bytes")
        return
    try:
        raw = bytes.fromhex(text)
    except ValueError:
        writer.fail(f"Invalid bytes value {text!r} on line {writer.line_number}")
        return
    if len(raw) > 0xFF:
        writer.fail(f"Blob of {len(raw)} bytes too long on line {writer.line_number}")
        return
    writer.write_uint8(len(raw), "bytes")
    writer.out += raw


register_field_type("fixed", _read_fixed, _write_fixed)
register_field_type("flags", _read_flags, _write_flags)
register_field_type("bool", _read_bool, _write_bool)
register_field_type("string", _read_string, _write_string)
register_field_type("bytes", _read_bytes, _write_bytes)
