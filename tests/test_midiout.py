import pytest

from cx16emu.midiout import (
    FL_DEFAULT_GAIN,
    SYSEX_BUFFER_SIZE,
    MidiEvent,
    MidiEventKind,
    MidiOutDecoder,
)


def feed_all(decoder, data):
    events = []
    for b in data:
        events.extend(decoder.feed(b))
    return events


def test_note_on():
    events = feed_all(MidiOutDecoder(), [0x93, 60, 100])
    assert events == [MidiEvent(MidiEventKind.NOTE_ON, 3, 60, 100)]


def test_note_on_zero_velocity_is_note_off():
    events = feed_all(MidiOutDecoder(), [0x90, 64, 0])
    assert events == [MidiEvent(MidiEventKind.NOTE_OFF, 0, 64)]


def test_note_off_drops_release_velocity():
    events = feed_all(MidiOutDecoder(), [0x81, 50, 77])
    assert events == [MidiEvent(MidiEventKind.NOTE_OFF, 1, 50)]


def test_running_status():
    events = feed_all(MidiOutDecoder(), [0x90, 60, 100, 62, 90, 64, 80])
    assert [e.param for e in events] == [60, 62, 64]
    assert all(e.kind is MidiEventKind.NOTE_ON for e in events)


def test_program_change_and_channel_pressure():
    decoder = MidiOutDecoder()
    assert decoder.feed(0xC5) == []
    assert decoder.feed(16) == [MidiEvent(MidiEventKind.PROGRAM_CHANGE, 5, 16)]
    assert decoder.feed(17) == [MidiEvent(MidiEventKind.PROGRAM_CHANGE, 5, 17)]
    events = feed_all(decoder, [0xD2, 33])
    assert events == [MidiEvent(MidiEventKind.CHANNEL_PRESSURE, 2, value=33)]


def test_key_pressure():
    events = feed_all(MidiOutDecoder(), [0xA4, 40, 20])
    assert events == [MidiEvent(MidiEventKind.KEY_PRESSURE, 4, 40, 20)]


def test_pitch_bend_combines_seven_bit_halves():
    events = feed_all(MidiOutDecoder(), [0xE0, 0x00, 0x40])
    assert events == [MidiEvent(MidiEventKind.PITCH_BEND, 0, value=0x2000)]


def test_data_without_status_is_ignored():
    assert feed_all(MidiOutDecoder(), [10, 20, 30]) == []


def test_system_reset_clears_running_status():
    decoder = MidiOutDecoder()
    events = feed_all(decoder, [0x90, 0xFF])
    assert events == [MidiEvent(MidiEventKind.SYSTEM_RESET)]
    assert decoder.last_command == 0
    assert feed_all(decoder, [60, 100]) == []


def test_system_common_clears_running_status():
    decoder = MidiOutDecoder()
    assert feed_all(decoder, [0x90, 0xF6, 60, 100]) == []


def test_generic_sysex():
    events = feed_all(MidiOutDecoder(), [0xF0, 0x43, 0x10, 0x4C, 0xF7])
    assert events == [MidiEvent(MidiEventKind.SYSEX, data=b"\x43\x10\x4c")]


def test_gm_reset_sysex():
    events = feed_all(MidiOutDecoder(), [0xF0, 0x7E, 0x7F, 0x09, 0x01, 0xF7])
    assert events == [MidiEvent(MidiEventKind.SYSTEM_RESET)]


def test_master_volume_sysex_full_level():
    events = feed_all(MidiOutDecoder(), [0xF0, 0x7F, 0x7F, 0x04, 0x01, 0x00, 0x7F, 0xF7])
    assert len(events) == 1
    assert events[0].kind is MidiEventKind.MASTER_GAIN
    assert events[0].gain == pytest.approx(FL_DEFAULT_GAIN)


def test_master_volume_sysex_zero_level():
    events = feed_all(MidiOutDecoder(), [0xF0, 0x7F, 0x7F, 0x04, 0x01, 0x00, 0x00, 0xF7])
    assert events[0].kind is MidiEventKind.MASTER_GAIN
    assert events[0].gain == 0.0


def test_status_byte_terminates_sysex_and_is_processed():
    events = feed_all(MidiOutDecoder(), [0xF0, 0x43, 0x12, 0x90, 60, 100])
    assert events == [
        MidiEvent(MidiEventKind.SYSEX, data=b"\x43\x12"),
        MidiEvent(MidiEventKind.NOTE_ON, 0, 60, 100),
    ]


def test_overlong_sysex_is_dropped():
    decoder = MidiOutDecoder()
    events = feed_all(decoder, [0xF0] + [0x11] * (SYSEX_BUFFER_SIZE + 50) + [0xF7])
    assert events == []
    # The decoder recovers afterwards.
    assert feed_all(decoder, [0x90, 60, 100]) == [MidiEvent(MidiEventKind.NOTE_ON, 0, 60, 100)]


def test_controller_change():
    events = feed_all(MidiOutDecoder(), [0xB1, 7, 90])
    assert events == [MidiEvent(MidiEventKind.CONTROL_CHANGE, 1, 7, 90)]


def test_timbre_nrpn_mirrored_to_controller_71():
    decoder = MidiOutDecoder()
    feed_all(decoder, [0xB0, 98, 0x01, 99, 0x21])
    events = feed_all(decoder, [6, 0x40])
    assert events == [
        MidiEvent(MidiEventKind.CONTROL_CHANGE, 0, 6, 0x40),
        MidiEvent(MidiEventKind.CONTROL_CHANGE, 0, 71, 0x40),
    ]


def test_rpn_select_disables_nrpn_mirror():
    decoder = MidiOutDecoder()
    feed_all(decoder, [0xB0, 98, 0x01, 99, 0x21, 101, 0])
    events = feed_all(decoder, [6, 0x40])
    assert events == [MidiEvent(MidiEventKind.CONTROL_CHANGE, 0, 6, 0x40)]


def test_nrpn_mirror_is_per_channel():
    decoder = MidiOutDecoder()
    feed_all(decoder, [0xB0, 98, 0x01, 99, 0x21])
    events = feed_all(decoder, [0xB1, 6, 0x40])
    assert events == [MidiEvent(MidiEventKind.CONTROL_CHANGE, 1, 6, 0x40)]


def test_values_are_masked_to_bytes():
    events = feed_all(MidiOutDecoder(), [0x190, 60, 100])
    assert events == [MidiEvent(MidiEventKind.NOTE_ON, 0, 60, 100)]