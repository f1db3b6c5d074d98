"""
Tests for frame handler descriptors and the opcode/name registry.
"""

import pytest

from replaydat.actions import FRAME_HANDLERS, default_registry
from replaydat.exceptions import RegistryConfigError
from replaydat.frames import (
    CustomArgs,
    FieldListArgs,
    FrameHandler,
    FrameRegistry,
    SingleFieldArgs,
)
from replaydat.primitives import DatReader, DatWriter


class TestFrameRegistry:
    """Test suite for registry construction and lookups."""

    def setup_method(self):
        self.move = FrameHandler(0x01, "Move", SingleFieldArgs("uint8"))
        self.jump = FrameHandler(0x02, "Jump", FieldListArgs(()))
        self.registry = FrameRegistry([self.move, self.jump])

    def test_lookup_by_opcode_and_name(self):
        assert self.registry.by_opcode(0x01) is self.move
        assert self.registry.by_name("Jump") is self.jump
        assert len(self.registry) == 2

    def test_missing_keys_return_none(self):
        assert self.registry.by_opcode(0x7F) is None
        assert self.registry.by_name("Teleport") is None
        assert self.registry.by_name("move") is None

    def test_duplicate_opcode_fails_at_construction(self):
        with pytest.raises(RegistryConfigError, match="Duplicate opcode 0x01"):
            FrameRegistry([self.move, FrameHandler(0x01, "Walk", FieldListArgs(()))])

    def test_duplicate_name_fails_at_construction(self):
        with pytest.raises(RegistryConfigError, match="Duplicate action name"):
            FrameRegistry([self.move, FrameHandler(0x03, "Move", FieldListArgs(()))])

    @pytest.mark.parametrize("name", ["", "Two Words", "Tab\tName"])
    def test_invalid_names_rejected(self, name):
        with pytest.raises(RegistryConfigError):
            FrameRegistry([FrameHandler(0x05, name, FieldListArgs(()))])

    @pytest.mark.parametrize("opcode", [-1, 256, "1"])
    def test_opcode_must_be_a_byte(self, opcode):
        with pytest.raises(RegistryConfigError):
            FrameRegistry([FrameHandler(opcode, "Odd", FieldListArgs(()))])

    def test_unknown_field_tag_rejected(self):
        with pytest.raises(RegistryConfigError, match="Unknown field type"):
            FrameRegistry([FrameHandler(0x05, "Warp", FieldListArgs(("uint8", "vec3")))])

    def test_unsupported_arg_layout_rejected(self):
        with pytest.raises(RegistryConfigError, match="Unsupported argument layout"):
            FrameRegistry([FrameHandler(0x05, "Warp", ("uint8",))])

    def test_handlers_are_immutable_tuple(self):
        assert isinstance(self.registry.handlers, tuple)

    def test_default_registry_covers_action_table(self):
        registry = default_registry()
        assert len(registry) == len(FRAME_HANDLERS)
        for handler in FRAME_HANDLERS:
            assert registry.by_opcode(handler.opcode) is handler
            assert registry.by_name(handler.name) is handler

    def test_reset_hook_clears_player_state(self):
        reader = DatReader(b"")
        reader.players[3] = {"cursor_x": 10}
        self.registry.reset_players(reader)
        assert reader.players == {}


class TestFrameHandlerDispatch:
    """Test argument rendering for each argument layout."""

    def test_field_list_skips_absent_optional_fields(self):
        handler = FrameHandler(0x06, "UseItem", FieldListArgs(("uint16", "optUint8")))
        assert handler.decode_args(DatReader(bytes.fromhex("0102FF"))) == "258"
        assert handler.decode_args(DatReader(bytes.fromhex("010204"))) == "258, 4"

    def test_empty_field_list_renders_nothing(self):
        handler = FrameHandler(0x02, "Jump", FieldListArgs(()))
        reader = DatReader(b"\x05")
        assert handler.decode_args(reader) == ""
        assert reader.pos == 0

    def test_single_field(self):
        handler = FrameHandler(0x01, "Move", SingleFieldArgs("uint8"))
        assert handler.decode_args(DatReader(b"\x07")) == "7"

    def test_custom_functions_are_called(self):
        calls = []

        def decode(reader):
            return f"raw={reader.read_uint8()}"

        def encode(writer):
            calls.append(writer.fetch_arg())
            writer.write_uint8(9)

        handler = FrameHandler(0x20, "Raw", CustomArgs(decode, encode))
        assert handler.decode_args(DatReader(b"\x2A")) == "raw=42"

        writer = DatWriter("anything")
        handler.encode_args(writer)
        assert calls == ["anything"]
        assert bytes(writer.out) == b"\x09"

    def test_field_list_encode_writes_in_order(self):
        handler = FrameHandler(0x09, "Spawn", FieldListArgs(("uint8", "int16", "int16")))
        writer = DatWriter("3, -2, 300")
        handler.encode_args(writer)
        assert writer.error == ""
        assert bytes(writer.out) == bytes.fromhex("03FFFE012C")

    def test_unknown_shape_raises_type_error(self):
        handler = FrameHandler(0x05, "Warp", ("uint8",))
        with pytest.raises(TypeError):
            handler.decode_args(DatReader(b"\x00"))
        with pytest.raises(TypeError):
            handler.encode_args(DatWriter("1"))
