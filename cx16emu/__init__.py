"""Commander X16 emulator components: real-time clock, system management controller, serial bus, MIDI decoding, options, console and KERNAL helpers."""

__version__ = "0.1.0"