import pytest

from cx16emu.console import PasteBuffer, autoload_command, dump_filename, format_echo
from cx16emu.options import EchoMode

NDX = 0x0A
KEYD = 0x100


def _drain(buffer):
    out = []
    while (value := buffer.next_byte()) is not None:
        out.append(value)
    return out


@pytest.mark.parametrize(
    "value, expected",
    [(0x41, b"A"), (0x0D, b"\n"), (0x0A, b""), (0x05, b"\\X05"), (0x93, b"\\X93")],
)
def test_format_echo_cooked(value, expected):
    assert format_echo(value, EchoMode.COOKED) == expected


def test_format_echo_iso_converts_to_utf8():
    assert format_echo(0xA4, EchoMode.ISO) == "€".encode("utf-8")
    assert format_echo(0x85, EchoMode.ISO) == b"\\X85"
    assert format_echo(0x0D, EchoMode.ISO) == b"\n"


def test_format_echo_raw_and_none():
    assert format_echo(0x93, EchoMode.RAW) == b"\x93"
    assert format_echo(0x41, EchoMode.NONE) == b""


def test_autoload_command_plain():
    assert autoload_command(8) == 'LOAD":*",8,1\r'


def test_autoload_command_run():
    assert autoload_command(8, run=True) == 'LOAD":*",8,1\rRUN\r'


def test_autoload_command_override_and_run():
    text = autoload_command(8, 0x0801, True)
    assert text == 'LOAD":*",8,1,$0801\rSYS$0801\r'


def test_dump_filename_sequence(tmp_path):
    first = dump_filename(tmp_path)
    assert first.name == "dump.bin"
    first.write_bytes(b"")
    second = dump_filename(tmp_path)
    assert second.name == "dump-1.bin"
    second.write_bytes(b"")
    assert dump_filename(tmp_path).name == "dump-2.bin"


def test_paste_plain_text():
    assert _drain(PasteBuffer("AB")) == [ord("A"), ord("B")]


def test_paste_hex_escape():
    assert _drain(PasteBuffer("\\X41\\X0D")) == [0x41, 0x0D]


def test_paste_incomplete_escape_is_literal():
    assert _drain(PasteBuffer("\\X4")) == [ord("\\"), ord("X"), ord("4")]


def test_paste_iso_conversion():
    assert _drain(PasteBuffer("é€")) == [0xE9, 0xA4]


def test_paste_nul_ends():
    buffer = PasteBuffer("A\0B")
    assert _drain(buffer) == [ord("A")]
    assert buffer.active is False


def test_paste_zero_escape_ends():
    assert _drain(PasteBuffer("A\\X00B")) == [ord("A")]


def test_paste_invalid_utf8_ends():
    assert _drain(PasteBuffer(b"AB\xffC")) == [ord("A"), ord("B")]


def test_feed_keyboard_fills_to_limit_then_finishes():
    ram = bytearray(0x200)
    text = "ABCDEFGHIJKL"
    buffer = PasteBuffer(text)
    assert buffer.feed_keyboard(ram, NDX, KEYD) is True
    assert ram[NDX] == 10
    assert bytes(ram[KEYD : KEYD + 10]) == text[:10].encode()
    ram[NDX] = 0
    assert buffer.feed_keyboard(ram, NDX, KEYD) is False
    assert ram[NDX] == 2
    assert bytes(ram[KEYD : KEYD + 2]) == text[10:].encode()


def test_feed_keyboard_after_end_does_nothing():
    ram = bytearray(0x200)
    buffer = PasteBuffer("")
    assert buffer.feed_keyboard(ram, NDX, KEYD) is False
    assert ram[NDX] == 0
    assert buffer.next_byte() is None