"""
Frame handler descriptors and the opcode/name registry.

A frame handler tells the decoder and encoder how to turn the argument
payload of one input action into text and back. The argument layout is one
of three shapes:

- CustomArgs: a decode/encode function pair for payloads that are not a
  flat list of fields (variable length, delta coded, ...)
- FieldListArgs: an ordered list of primitive field tags
- SingleFieldArgs: exactly one primitive field tag
"""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Tuple, Union

from .exceptions import RegistryConfigError
from .primitives import FIELD_TYPES, DatReader, DatWriter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CustomArgs:
    decode: Callable[[DatReader], str]
    encode: Callable[[DatWriter], None]


@dataclass(frozen=True)
class FieldListArgs:
    fields: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SingleFieldArgs:
    field: str


ArgSpec = Union[CustomArgs, FieldListArgs, SingleFieldArgs]


@dataclass(frozen=True)
class FrameHandler:
    """
    Decode/encode descriptor for one input action.

    Attributes:
        opcode: Action byte on the wire, unique within a registry
        name: Action name in the text form, unique within a registry
        args: Argument layout
    """

    opcode: int
    name: str
    args: ArgSpec = FieldListArgs()

    def field_tags(self) -> Tuple[str, ...]:
        if isinstance(self.args, FieldListArgs):
            return tuple(self.args.fields)
        if isinstance(self.args, SingleFieldArgs):
            return (self.args.field,)
        return ()

    def decode_args(self, reader: DatReader) -> str:
        """Read the argument payload and render it, without the leading space."""
        args = self.args
        if isinstance(args, CustomArgs):
            return f"{args.decode(reader)}"
        if isinstance(args, FieldListArgs):
            rendered = (reader.read_field(tag) for tag in args.fields)
            # Empty renderings are absent optional fields
            return ", ".join(text for text in rendered if text)
        if isinstance(args, SingleFieldArgs):
            return reader.read_field(args.field)
        raise TypeError(f"Unsupported argument layout for {self.name}: {args!r}")

    def encode_args(self, writer: DatWriter):
        """Consume the arguments of the current text line and write them."""
        args = self.args
        if isinstance(args, CustomArgs):
            args.encode(writer)
        elif isinstance(args, FieldListArgs):
            for tag in args.fields:
                writer.write_field(tag)
        elif isinstance(args, SingleFieldArgs):
            writer.write_field(args.field)
        else:
            raise TypeError(f"Unsupported argument layout for {self.name}: {args!r}")


def _reset_context_players(context):
    context.reset_players()


class FrameRegistry:
    """
    Bidirectional lookup over a fixed list of frame handlers.

    Inconsistent tables fail at construction rather than per record.
    """

    def __init__(
        self,
        handlers: Iterable[FrameHandler],
        reset_players: Optional[Callable] = None,
    ):
        self.handlers = tuple(handlers)
        self.reset_players = reset_players or _reset_context_players
        self._by_opcode = {}
        self._by_name = {}

        for handler in self.handlers:
            self._validate(handler)
            self._by_opcode[handler.opcode] = handler
            self._by_name[handler.name] = handler

        logger.debug(f"Built frame registry with {len(self.handlers)} handlers")

    def _validate(self, handler: FrameHandler):
        if not isinstance(handler.opcode, int) or not 0 <= handler.opcode <= 0xFF:
            raise RegistryConfigError(
                f"Opcode {handler.opcode!r} of {handler.name!r} is not a byte"
            )
        if not handler.name or any(char.isspace() for char in handler.name):
            raise RegistryConfigError(
                f"Invalid action name {handler.name!r} for opcode 0x{handler.opcode:02X}"
            )
        if handler.opcode in self._by_opcode:
            other = self._by_opcode[handler.opcode]
            raise RegistryConfigError(
                f"Duplicate opcode 0x{handler.opcode:02X} for {other.name!r} and {handler.name!r}"
            )
        if handler.name in self._by_name:
            raise RegistryConfigError(f"Duplicate action name {handler.name!r}")
        if not isinstance(handler.args, (CustomArgs, FieldListArgs, SingleFieldArgs)):
            raise RegistryConfigError(
                f"Unsupported argument layout for {handler.name!r}: {handler.args!r}"
            )
        for tag in handler.field_tags():
            if tag not in FIELD_TYPES:
                raise RegistryConfigError(
                    f"Unknown field type {tag!r} in {handler.name!r}"
                )

    def by_opcode(self, opcode: int) -> Optional[FrameHandler]:
        return self._by_opcode.get(opcode)

    def by_name(self, name: str) -> Optional[FrameHandler]:
        return self._by_name.get(name)

    def __len__(self) -> int:
        return len(self.handlers)
