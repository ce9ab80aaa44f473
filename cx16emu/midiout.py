"""Decoding of the MIDI byte stream a program sends to the serial MIDI card.

The decoder turns bytes into synthesizer operations: note on/off, pressure,
controllers, program changes, pitch bend, system reset, SysEx and the
Master Volume universal SysEx message.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

FS_MIDI_TEXT = 0x01
FS_NOTE_OFF = 0x80
FS_NOTE_ON = 0x90
FS_KEY_PRESSURE = 0xA0
FS_CONTROL_CHANGE = 0xB0
FS_PROGRAM_CHANGE = 0xC0
FS_CHANNEL_PRESSURE = 0xD0
FS_PITCH_BEND = 0xE0
FS_MIDI_SYSEX = 0xF0
FS_MIDI_TIME_CODE = 0xF1
FS_MIDI_SONG_POSITION = 0xF2
FS_MIDI_SONG_SELECT = 0xF3
FS_MIDI_TUNE_REQUEST = 0xF6
FS_MIDI_EOX = 0xF7
FS_MIDI_SYNC = 0xF8
FS_MIDI_TICK = 0xF9
FS_MIDI_START = 0xFA
FS_MIDI_CONTINUE = 0xFB
FS_MIDI_STOP = 0xFC
FS_MIDI_ACTIVE_SENSING = 0xFE
FS_MIDI_SYSTEM_RESET = 0xFF

FL_DEFAULT_GAIN = 0.2

SYSEX_BUFFER_SIZE = 1024

# NRPN that is mirrored onto controller 71 (timbre/resonance).
_TIMBRE_NRPN = 0x0121
_TIMBRE_CONTROLLER = 71
_DATA_ENTRY = 6

_MASTER_VOLUME_PREFIX = b"\x7f\x7f\x04\x01\x00"
_GM_RESET_PREFIX = b"\x7e\x7f\x09\x01"


class MidiEventKind(enum.Enum):
    NOTE_OFF = "note_off"
    NOTE_ON = "note_on"
    KEY_PRESSURE = "key_pressure"
    CONTROL_CHANGE = "control_change"
    PROGRAM_CHANGE = "program_change"
    CHANNEL_PRESSURE = "channel_pressure"
    PITCH_BEND = "pitch_bend"
    SYSTEM_RESET = "system_reset"
    SYSEX = "sysex"
    MASTER_GAIN = "master_gain"


@dataclass(frozen=True)
class MidiEvent:
    """One operation for the synthesizer.

    ``param`` is the key, controller or program; ``value`` is the velocity,
    pressure, controller value or 14-bit bend. ``data`` holds SysEx bytes
    and ``gain`` the synth gain set by a Master Volume message.
    """

    kind: MidiEventKind
    channel: int = 0
    param: int = 0
    value: int = 0
    data: bytes = b""
    gain: float = 0.0


class _State(enum.Enum):
    NORMAL = enum.auto()
    PARAM = enum.auto()
    SYSEX = enum.auto()


def _strncmp_equal(buffer: bytes, pattern: bytes, n: int) -> bool:
    """Compare NUL-terminated byte strings over at most n bytes.

    A negative n counts as unlimited, as it would once made unsigned.
    """
    a = buffer + b"\x00"
    b = pattern.split(b"\x00", 1)[0] + b"\x00"
    limit = None if n < 0 else n
    index = 0
    while limit is None or index < limit:
        ca = a[index] if index < len(a) else 0
        cb = b[index] if index < len(b) else 0
        if ca != cb:
            return False
        if ca == 0:
            return True
        index += 1
    return True


class MidiOutDecoder:
    """Turns the bytes of one UART's transmit line into synth events."""

    def __init__(self) -> None:
        self._state = _State.NORMAL
        self.last_command = 0
        self._first_param = 0
        self._nrpn = [0] * 16
        self._rpn = [0] * 16
        self._nrpn_active = [False] * 16
        self._sysex = bytearray(SYSEX_BUFFER_SIZE)
        self._sysex_len = 0

    def feed(self, value: int) -> list[MidiEvent]:
        """Take one byte and return the events it completes."""
        b = value & 0xFF
        events: list[MidiEvent] = []
        if self._state is _State.SYSEX:
            if not b & 0x80:
                self._sysex[self._sysex_len] = b
                # A runaway SysEx is absorbed, then dropped when it ends.
                if self._sysex_len < SYSEX_BUFFER_SIZE - 1:
                    self._sysex_len += 1
                return events
            # Any status byte ends a SysEx, then is handled itself.
            self._finish_sysex(events)
            self._state = _State.NORMAL
        if self._state is _State.NORMAL:
            self._normal(b, events)
        else:
            self._param(b, events)
        return events

    def _finish_sysex(self, events: list[MidiEvent]) -> None:
        length = self._sysex_len
        if length >= SYSEX_BUFFER_SIZE - 1:
            return
        self._sysex[length] = 0
        body = bytes(self._sysex[:length])
        if _strncmp_equal(body, _MASTER_VOLUME_PREFIX, length - 1):
            level = self._sysex[length - 1] if length > 0 else 0
            events.append(
                MidiEvent(MidiEventKind.MASTER_GAIN, gain=FL_DEFAULT_GAIN * (level / 127))
            )
        elif _strncmp_equal(body, _GM_RESET_PREFIX, length):
            events.append(MidiEvent(MidiEventKind.SYSTEM_RESET))
        else:
            events.append(MidiEvent(MidiEventKind.SYSEX, data=body))

    def _normal(self, b: int, events: list[MidiEvent]) -> None:
        last = self.last_command
        channel = last & 0x0F
        if b < 0x80:
            kind = last & 0xF0
            if kind == FS_PROGRAM_CHANGE:
                events.append(MidiEvent(MidiEventKind.PROGRAM_CHANGE, channel, b))
            elif kind == FS_CHANNEL_PRESSURE:
                events.append(MidiEvent(MidiEventKind.CHANNEL_PRESSURE, channel, value=b))
            elif last >= 0x80:
                self._first_param = b
                self._state = _State.PARAM
        elif b < 0xF0:
            self.last_command = b
        elif b == FS_MIDI_SYSEX:
            self._sysex_len = 0
            self._state = _State.SYSEX
            self.last_command = 0
        elif b == FS_MIDI_SYSTEM_RESET:
            events.append(MidiEvent(MidiEventKind.SYSTEM_RESET))
            self.last_command = 0
        elif b < FS_MIDI_SYNC:
            self.last_command = 0

    def _param(self, b: int, events: list[MidiEvent]) -> None:
        channel = self.last_command & 0x0F
        first = self._first_param
        kind = self.last_command & 0xF0
        if kind == FS_NOTE_OFF:
            # Release velocity is not passed on.
            events.append(MidiEvent(MidiEventKind.NOTE_OFF, channel, first))
        elif kind == FS_NOTE_ON:
            if b == 0:
                events.append(MidiEvent(MidiEventKind.NOTE_OFF, channel, first))
            else:
                events.append(MidiEvent(MidiEventKind.NOTE_ON, channel, first, b))
        elif kind == FS_KEY_PRESSURE:
            events.append(MidiEvent(MidiEventKind.KEY_PRESSURE, channel, first, b))
        elif kind == FS_CONTROL_CHANGE:
            self._controller(channel, first, b, events)
        elif kind == FS_PITCH_BEND:
            events.append(MidiEvent(MidiEventKind.PITCH_BEND, channel, value=first | b << 7))
        self._state = _State.NORMAL

    def _controller(self, channel: int, controller: int, b: int, events: list[MidiEvent]) -> None:
        if controller == 98:
            self._nrpn_active[channel] = True
            self._nrpn[channel] = (self._nrpn[channel] & 0x00FF) | (b << 8)
        elif controller == 99:
            self._nrpn_active[channel] = True
            self._nrpn[channel] = (self._nrpn[channel] & 0xFF00) | b
        elif controller == 100:
            self._nrpn_active[channel] = False
            self._rpn[channel] = (self._rpn[channel] & 0x00FF) | (b << 8)
        elif controller == 101:
            self._nrpn_active[channel] = False
            self._rpn[channel] = (self._rpn[channel] & 0xFF00) | b
        events.append(MidiEvent(MidiEventKind.CONTROL_CHANGE, channel, controller, b))
        if (
            self._nrpn_active[channel]
            and self._nrpn[channel] == _TIMBRE_NRPN
            and controller == _DATA_ENTRY
        ):
            events.append(
                MidiEvent(MidiEventKind.CONTROL_CHANGE, channel, _TIMBRE_CONTROLLER, b)
            )