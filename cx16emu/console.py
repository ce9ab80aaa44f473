"""Host-side console helpers: KERNAL output echo, keyboard pasting and dumps."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator

from cx16emu.options import EchoMode

KEYBOARD_BUFFER_SIZE = 10


def format_echo(value: int, mode: EchoMode) -> bytes:
    """Bytes to print on the host for one character sent to the KERNAL's CHROUT."""
    c = value & 0xFF
    if mode is EchoMode.NONE:
        return b""
    if mode is EchoMode.RAW:
        return bytes([c])
    if c == 0x0D:
        return b"\n"
    if c == 0x0A:
        return b""
    if mode is EchoMode.COOKED:
        if c < 0x20 or c >= 0x80:
            return f"\\X{c:02X}".encode("ascii")
        return bytes([c])
    if c < 0x20 or 0x80 <= c < 0xA0:
        return f"\\X{c:02X}".encode("ascii")
    return bytes([c]).decode("iso8859_15").encode("utf-8")


def autoload_command(unit: int, override_start: int = -1, run: bool = False) -> str:
    """The BASIC text typed in to load (and optionally start) a program from HostFS."""
    if override_start >= 0:
        command = f'LOAD":*",{unit},1,${override_start:04X}\r'
    else:
        command = f'LOAD":*",{unit},1\r'
    if run:
        if override_start >= 0:
            command += f"SYS${override_start:04X}\r"
        else:
            command += "RUN\r"
    return command


def dump_filename(directory: str | os.PathLike[str] = ".") -> Path:
    """The first of dump.bin, dump-1.bin, dump-2.bin, ... that does not exist yet."""
    base = Path(directory)
    index = 0
    while True:
        name = "dump.bin" if index == 0 else f"dump-{index}.bin"
        candidate = base / name
        if not candidate.exists():
            return candidate
        index += 1


def _hex_digit(ch: str) -> int:
    try:
        return int(ch, 16)
    except ValueError:
        return 0


def _to_iso(ch: str) -> int:
    return ch.encode("iso8859_15", errors="replace")[0]


def _decode_prefix(data: bytes) -> str:
    """Decode the valid UTF-8 prefix; a decoding error ends the text."""
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        return data[: exc.start].decode("utf-8")


class PasteBuffer:
    """Text being typed into the machine through the KERNAL keyboard buffer.

    ``\\XHH`` sequences insert a raw byte; other characters are converted to
    ISO-8859-15. A NUL character, an undecodable byte or the end of the text
    ends the paste.
    """

    def __init__(self, text: str | bytes) -> None:
        self._text = _decode_prefix(text) if isinstance(text, bytes) else text
        self._bytes = self._generate()
        self.active = True

    def _generate(self) -> Iterator[int]:
        s = self._text
        i = 0
        while i < len(s):
            if (
                s[i] == "\\"
                and s[i + 1 : i + 2] == "X"
                and i + 3 < len(s)
                and s[i + 2] != "\0"
                and s[i + 3] != "\0"
            ):
                c = _hex_digit(s[i + 2]) << 4 | _hex_digit(s[i + 3])
                i += 4
            else:
                c = _to_iso(s[i])
                i += 1
            if c == 0:
                return
            yield c

    def next_byte(self) -> int | None:
        """The next byte to type, or None once the paste has ended."""
        if not self.active:
            return None
        value = next(self._bytes, None)
        if value is None:
            self.active = False
        return value

    def feed_keyboard(self, ram: bytearray, ndx: int, keyd: int) -> bool:
        """Fill the keyboard buffer at ``keyd`` whose length is at ``ndx``.

        Returns whether there is still text left to paste.
        """
        while self.active and ram[ndx] < KEYBOARD_BUFFER_SIZE:
            value = self.next_byte()
            if value is None:
                break
            ram[keyd + ram[ndx]] = value
            ram[ndx] += 1
        return self.active