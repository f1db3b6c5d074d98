"""
Replay dat transcoding.

Converts the binary replay dat into its text form and back, and sorts decoded
lines into a canonical order for diffing:

- parse_replay_dat: binary -> text, one line per record, never fails
- get_replay_dat_bytes: text -> binary, stops at the first bad record and
  keeps every byte written before it
- canonicalize: stable sort of text lines by tick, then player
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

import numpy as np

from .actions import default_registry
from .exceptions import EncodeError, EncodeErrorKind, EncodeFailure
from .frames import FrameRegistry
from .primitives import DatReader, DatWriter

logger = logging.getLogger(__name__)

MISSING_TICK = 0x100000000
MISSING_PLAYER = "ÿ"

# Same prefix rules as JavaScript parseInt
_TICK_PREFIX = re.compile(r"\s*([+-]?\d+)", re.ASCII)
_INT64_MIN = -(2 ** 63)
_INT64_MAX = 2 ** 63 - 1

_default_registry: Optional[FrameRegistry] = None


def _registry_or_default(registry: Optional[FrameRegistry]) -> FrameRegistry:
    global _default_registry
    if registry is not None:
        return registry
    if _default_registry is None:
        _default_registry = default_registry()
    return _default_registry


def parse_replay_dat(
    data: bytes,
    registry: Optional[FrameRegistry] = None,
    relative_ticks: bool = False,
) -> str:
    """
    Decode a binary replay dat into its text form.

    Args:
        data: Raw dat bytes
        registry: Frame handlers to decode with (default action table if None)
        relative_ticks: Render non-decreasing ticks as "+<offset>" lines

    Returns:
        Text with one line per record, each terminated by a newline. A record
        with an unknown opcode, or one cut short by the end of the buffer,
        turns the rest of the buffer into a single "?<hex>:" line.
    """
    registry = _registry_or_default(registry)
    reader = DatReader(data, relative_ticks=relative_ticks)
    registry.reset_players(reader)

    lines = []
    while not reader.eof():
        line = ""
        record_start = reader.pos
        opcode = reader.read_uint8()
        tick_text = reader.read_tick()
        handler = registry.by_opcode(opcode)
        if handler is None:
            # An unknown opcode in the final byte is dropped
            if record_start + 1 < len(reader.data):
                line = reader.unhandled_bytes(record_start)
        else:
            frame_args = "" if reader.truncated else handler.decode_args(reader)
            if reader.truncated:
                line = reader.unhandled_bytes(record_start, "truncated record")
            else:
                if frame_args:
                    frame_args = f" {frame_args}"
                line = f"{tick_text}{handler.name}{frame_args}"
        lines.append(f"{line}\n")

    logger.debug(f"Decoded {len(reader.data)} bytes into {len(lines)} lines")
    return "".join(lines)


@dataclass
class EncodeResult:
    """
    Output of an encode pass.

    Attributes:
        data: Bytes of every record written before the first failure
        records: Number of records written successfully
        error: Failure that stopped the pass, None when every line encoded
    """

    data: bytes
    records: int = 0
    error: Optional[EncodeFailure] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self):
        if self.error is not None:
            raise EncodeError(self.error)


def get_replay_dat_bytes(
    text: str, registry: Optional[FrameRegistry] = None
) -> EncodeResult:
    """
    Encode the text form of a replay back into a binary dat.

    Lines starting with '@' (absolute tick) or '+' (offset from the previous
    record) are records, lines starting with '?' are raw hex bytes written
    verbatim, and anything else is a comment.

    Args:
        text: Replay text
        registry: Frame handlers to encode with (default action table if None)

    Returns:
        EncodeResult holding the bytes up to the last fully encoded record
    """
    registry = _registry_or_default(registry)
    writer = DatWriter(text)
    registry.reset_players(writer)

    checkpoint = 0
    records = 0
    failure = None

    while not writer.eof():
        line_type = writer.fetch_char()
        line_number = writer.line_number
        if line_type == "?":
            hex_text = writer.fetch_string(":")
            writer.write_hex(hex_text.strip())
            if writer.error:
                failure = EncodeFailure(
                    EncodeErrorKind.MALFORMED_FIELD, writer.error, line_number
                )
                break
            checkpoint = len(writer.out)
            records += 1
        elif line_type in ("@", "+"):
            tick, player = writer.fetch_tick(line_type == "+")
            writer.fetch_whitespace()

            name = writer.fetch_string(" \t\r")
            handler = registry.by_name(name)
            if handler is None:
                failure = EncodeFailure(
                    EncodeErrorKind.UNKNOWN_ACTION,
                    f"Can't handle input action {name!r}",
                    line_number,
                    tick,
                    player,
                )
                break

            writer.write_uint8(handler.opcode, "opcode")
            writer.write_uint32(tick, "tick")
            writer.write_opt_uint16(player, "player")
            handler.encode_args(writer)

            if writer.error:
                failure = EncodeFailure(
                    EncodeErrorKind.MALFORMED_FIELD,
                    f"Parse failed with error {writer.error!r}",
                    line_number,
                    tick,
                    player,
                )
                break
            checkpoint = len(writer.out)
            writer.last_tick = tick
            records += 1
        # Other line types are comments
        writer.fetch_rest_of_line()

    if failure is not None:
        logger.error(f"{failure.message}; only emitting before {failure.location}")

    return EncodeResult(data=bytes(writer.out[:checkpoint]), records=records, error=failure)


def compare_tick(line: str) -> int:
    """Tick sort key of a text line, MISSING_TICK when it has none."""
    if line.startswith("@") or line.startswith("?"):
        match = _TICK_PREFIX.match(line, 1)
        if match is not None:
            return int(match.group(1))
    return MISSING_TICK


def compare_player(line: str) -> str:
    """Player sort key of a text line, MISSING_PLAYER when it has none."""
    open_pos = line.find("(")
    if open_pos != -1:
        close_pos = line.find(")", open_pos)
        if close_pos != -1:
            return line[open_pos + 1:close_pos]
    return MISSING_PLAYER


def canonicalize(lines: Iterable[str]) -> List[str]:
    """
    Sort lines by tick, then player, keeping the input order of ties.

    Returns:
        New list; the input is not modified
    """
    lines = list(lines)
    if not lines:
        return []

    ticks = np.array(
        [min(max(compare_tick(line), _INT64_MIN), _INT64_MAX) for line in lines],
        dtype=np.int64,
    )
    # Ranks follow Python's ordinal str order; numpy str arrays drop trailing NULs
    players = [compare_player(line) for line in lines]
    ranks = {key: rank for rank, key in enumerate(sorted(set(players)))}
    player_ranks = np.array([ranks[player] for player in players], dtype=np.int64)
    index = np.arange(len(lines))

    order = np.lexsort((index, player_ranks, ticks))
    return [lines[i] for i in order]


def canonicalize_text(text: str) -> str:
    """Canonicalize newline separated text as produced by parse_replay_dat."""
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    if not lines:
        return ""
    return "\n".join(canonicalize(lines)) + "\n"
