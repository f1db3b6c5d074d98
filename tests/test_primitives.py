"""
Tests for the binary readers, text lexing helpers and field writers.
"""

import pytest

from replaydat.primitives import FIELD_TYPES, NO_PLAYER, DatReader, DatWriter


def write_field(tag, text):
    writer = DatWriter(text)
    writer.write_field(tag)
    return writer


class TestDatReader:
    """Test suite for the binary cursor."""

    def test_fixed_width_reads_are_big_endian(self):
        reader = DatReader(bytes.fromhex("01 0203 04050607"))
        assert reader.read_uint8() == 0x01
        assert reader.read_uint16() == 0x0203
        assert reader.read_uint32() == 0x04050607
        assert reader.eof()

    def test_reads_past_end_are_zero_padded(self):
        reader = DatReader(b"\x01")
        assert reader.read_uint32() == 0x01000000
        assert reader.pos == 1
        assert reader.eof()
        assert reader.truncated

    def test_complete_reads_are_not_truncated(self):
        reader = DatReader(bytes.fromhex("0000000C0003"))
        reader.read_tick()
        assert not reader.truncated

    def test_read_tick_with_and_without_player(self):
        reader = DatReader(bytes.fromhex("0000000C0003" "00000010FFFF"))
        assert reader.read_tick() == "@12(3) "
        assert reader.player == 3
        assert reader.read_tick() == "@16 "
        assert reader.player is None

    def test_relative_ticks(self):
        reader = DatReader(
            bytes.fromhex("00000005FFFF" "00000007FFFF" "00000002FFFF"),
            relative_ticks=True,
        )
        assert reader.read_tick() == "+5 "
        assert reader.read_tick() == "+2 "
        # Ticks going backwards stay absolute
        assert reader.read_tick() == "@2 "

    def test_unhandled_bytes_rewinds_to_record_start(self):
        reader = DatReader(bytes.fromhex("0100000000FFFF" "7F0000000100020A0B"))
        reader.pos = 7 + 7
        line = reader.unhandled_bytes(7)
        assert line == "?7F0000000100020A0B: unhandled opcode 0x7F"
        assert reader.eof()

    def test_player_state_is_per_player(self):
        reader = DatReader(b"")
        reader.player = 1
        reader.player_state()["cursor_x"] = 5
        reader.player = 2
        assert reader.player_state() == {}
        reader.player = 1
        assert reader.player_state() == {"cursor_x": 5}


class TestDatWriterLexing:
    """Test suite for the text lexing helpers."""

    def test_fetch_char_skips_blank_lines(self):
        writer = DatWriter("  \n\n\t@5 Jump")
        assert writer.fetch_char() == "@"
        assert writer.line_number == 3

    def test_fetch_char_at_end(self):
        writer = DatWriter("   ")
        assert writer.fetch_char() == ""
        assert writer.eof()

    def test_fetch_tick_absolute_with_player(self):
        writer = DatWriter("120(4) Move 1")
        assert writer.fetch_tick(False) == (120, 4)
        assert writer.peek() == " "

    def test_fetch_tick_delta_uses_last_tick(self):
        writer = DatWriter("15 Jump")
        writer.last_tick = 100
        assert writer.fetch_tick(True) == (115, None)

    def test_fetch_tick_missing_number_sets_error(self):
        writer = DatWriter("x Jump")
        assert writer.fetch_tick(False) == (0, None)
        assert "Expected a tick" in writer.error

    def test_fetch_tick_rejects_non_ascii_digits(self):
        writer = DatWriter("\u0663 Jump")
        writer.fetch_tick(False)
        assert "Expected a tick" in writer.error

    def test_fetch_tick_malformed_player_sets_error(self):
        writer = DatWriter("5(a) Jump")
        writer.fetch_tick(False)
        assert "Malformed player" in writer.error

    def test_fetch_string_stops_at_line_end(self):
        writer = DatWriter("Jump\r\nMove 3")
        assert writer.fetch_string(" ") == "Jump"
        assert writer.peek() == "\n"

    def test_fetch_string_consumes_delimiter(self):
        writer = DatWriter("ABCD: note")
        assert writer.fetch_string(":") == "ABCD"
        assert writer.peek() == " "

    def test_fetch_rest_of_line(self):
        writer = DatWriter("junk here\nnext")
        writer.fetch_rest_of_line()
        assert writer.text[writer.pos:] == "next"
        writer.fetch_rest_of_line()
        assert writer.eof()

    def test_fetch_arg_splits_on_commas(self):
        writer = DatWriter("1,  2 , three\n4")
        assert writer.fetch_arg() == "1"
        assert writer.fetch_arg() == "2"
        assert writer.fetch_arg() == "three"
        assert writer.fetch_arg() is None

    def test_first_error_is_kept(self):
        writer = DatWriter("")
        writer.fail("first")
        writer.fail("second")
        assert writer.error == "first"


class TestDatWriterWriters:
    """Test suite for the binary writers."""

    def test_opt_uint16_absent_writes_sentinel(self):
        writer = DatWriter("")
        writer.write_opt_uint16(None, "player")
        writer.write_opt_uint16(2, "player")
        assert bytes(writer.out) == bytes.fromhex("FFFF0002")

    def test_opt_uint16_rejects_sentinel_value(self):
        writer = DatWriter("")
        writer.write_opt_uint16(NO_PLAYER, "player")
        assert "reserved" in writer.error

    def test_out_of_range_sets_error(self):
        writer = DatWriter("")
        writer.write_uint32(1 << 32, "tick")
        assert writer.error == f"Value {1 << 32} out of range for tick"
        assert bytes(writer.out) == b""

    def test_write_hex(self):
        writer = DatWriter("")
        writer.write_hex("0a0B")
        assert bytes(writer.out) == b"\x0a\x0b"
        writer.write_hex("ABC")
        assert "Invalid hex" in writer.error


class TestFieldTypes:
    """Test the reader/writer pair of every field tag."""

    @pytest.mark.parametrize(
        "tag,text,hex_bytes",
        [
            ("uint8", "200", "C8"),
            ("uint16", "513", "0201"),
            ("uint32", "16909060", "01020304"),
            ("int8", "-1", "FF"),
            ("int16", "-300", "FED4"),
            ("int32", "-2", "FFFFFFFE"),
            ("fixed", "1.5", "00018000"),
            ("fixed", "-2", "FFFE0000"),
            ("flags", "0x1F", "1F"),
            ("bool", "true", "01"),
            ("bool", "false", "00"),
            ("optUint8", "7", "07"),
            ("optUint16", "1000", "03E8"),
            ("string", '"gg wp"', "056767207770"),
            ("bytes", "DEADBEEF", "04DEADBEEF"),
            ("bytes", "-", "00"),
        ],
    )
    def test_write_then_read(self, tag, text, hex_bytes):
        writer = write_field(tag, text)
        assert writer.error == ""
        assert bytes(writer.out).hex().upper() == hex_bytes
        assert FIELD_TYPES[tag].read(DatReader(bytes.fromhex(hex_bytes))) == text

    def test_fixed_renders_exact_fractions(self):
        assert FIELD_TYPES["fixed"].read(DatReader(bytes.fromhex("00000001"))) == repr(
            1 / 65536
        )

    def test_flags_accept_decimal(self):
        assert bytes(write_field("flags", "31").out) == b"\x1f"

    def test_optional_fields_write_sentinel_when_missing(self):
        assert bytes(write_field("optUint8", "").out) == b"\xff"
        assert bytes(write_field("optUint16", "").out) == b"\xff\xff"

    def test_optional_fields_read_sentinel_as_absent(self):
        assert FIELD_TYPES["optUint8"].read(DatReader(b"\xff")) == ""
        assert FIELD_TYPES["optUint16"].read(DatReader(b"\xff\xff")) == ""

    def test_string_escapes_round_trip(self):
        text = '"say \\"hi\\", then, leave"'
        writer = write_field("string", text)
        assert writer.error == ""
        assert FIELD_TYPES["string"].read(DatReader(bytes(writer.out))) == text

    def test_string_keeps_unicode_readable(self):
        writer = write_field("string", '"héllo"')
        assert bytes(writer.out) == b"\x06h\xc3\xa9llo"
        assert FIELD_TYPES["string"].read(DatReader(bytes(writer.out))) == '"héllo"'

    @pytest.mark.parametrize(
        "tag,text",
        [
            ("uint8", "256"),
            ("uint8", "-1"),
            ("uint8", "abc"),
            ("uint16", ""),
            ("int8", "128"),
            ("fixed", "nan"),
            ("fixed", "40000"),
            ("flags", "0xZZ"),
            ("bool", "maybe"),
            ("optUint8", "255"),
            ("string", "unquoted"),
            ("bytes", "XYZ"),
        ],
    )
    def test_malformed_values_set_error(self, tag, text):
        writer = write_field(tag, text)
        assert writer.error != ""
