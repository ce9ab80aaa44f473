# cx16emu

Building blocks for emulating the Commander X16 computer in Python. Each
component is a plain object. It does nothing on its own: your machine loop
feeds it bytes and clock cycles, and connects it to the rest of the machine
through small callables and protocol objects. This means each piece can be
used or tested by itself.

## Modules

- `cx16emu.rtc`: `RealTimeClock`, the MCP7940N real-time clock as seen over
  I2C.
  - Clock registers 0–6 are stored in BCD.
  - Supports 24-hour and AM/PM modes and the leap years of 2000–2099.
  - The oscillator can be stopped.
  - Has 64 bytes of NVRAM at register offsets `$20`–`$5F`, with an
    `nvram_dirty` flag.
  - Alarms are not supported.
- `cx16emu.smc`: `SystemManagementController`, the system management
  controller.
  - Serves keyboard bytes and mouse packets through the callables and
    mouse object you pass in (see the `MouseBuffer` protocol).
  - Carries out power-off, reset (`requested_reset`) and NMI requests.
  - Drives the activity LED (`activity_led`).
  - Reports firmware version 47.0.0.
- `cx16emu.serial`: `SerialBus`, the device side of the Commodore serial
  bus.
  - Set the host's lines in `inputs`; read the device's lines from
    `outputs` or through `read_clk()` and `read_data()`.
  - `step(clocks)` decodes bytes sent under ATN into LISTEN, TALK,
    UNLISTEN, UNTALK, SECOND and TKSA calls on an `IeeeDevice`. Data bytes
    go to `ciout`. While talking, it clocks bytes from `acptr` back out.
  - This is a partial implementation of the bus.
- `cx16emu.midiout`: `MidiOutDecoder.feed(byte)` turns a MIDI byte stream
  into `MidiEvent` objects.
  - Handles note on and off, key and channel pressure, controllers,
    program change, pitch bend, system reset and SysEx, with running
    status.
  - Recognises the General MIDI reset and Master Volume SysEx messages.
    Master Volume gives a `MASTER_GAIN` event with the synth gain.
  - Tracks NRPN and RPN numbers per channel. Data entry on NRPN `$0121` is
    also sent as controller 71.
- `cx16emu.options`: the emulator's command line.
  - `parse_args(argv)` returns an `EmulatorOptions`, or raises
    `UsageError` carrying the text to show.
  - `usage_text()` and `keymap_text()` give the help texts. `KEYMAPS` lists
    the keyboard layouts. `EchoMode` and `Breakpoint` describe the `-echo`
    and `-debug` settings.
- `cx16emu.console`: host-side helpers.
  - `format_echo` formats a character printed by the KERNAL for the host's
    stdout, in cooked, ISO-8859-15 or raw mode.
  - `autoload_command` builds the BASIC `LOAD":*"` line, with an optional
    `RUN` or `SYS`.
  - `dump_filename` picks the first free name among `dump.bin`,
    `dump-1.bin`, and so on.
  - `PasteBuffer` types text into the KERNAL keyboard buffer.
- `cx16emu.kernal`: KERNAL helpers.
  - `is_kernal` detects the KERNAL ROM.
  - `find_status_address` and `set_kernal_status` locate and write the
    STATUS variable through the code of READST.
  - `KernalInterceptor` serves the KERNAL IEEE API calls (MCIOUT, MACPTR,
    SECOND, TKSA, ACPTR, CIOUT, UNTLK, UNLSN, LISTEN, TALK) from a host
    device object. It updates `Registers` and simulates the RTS.

## Installation

The package needs Python 3.10 or later and has no runtime dependencies.

## Examples

### Real-time clock

```python
from cx16emu.rtc import RealTimeClock

rtc = RealTimeClock(mhz=8)          # starts stopped at 2000-01-01 00:00:00

# Write register 0: start the oscillator, 30 seconds (BCD)
rtc.i2c_data(0x00)
rtc.i2c_data(0x80 | 0x30)
rtc.write()

rtc.step(8_000_000)                 # one second of CPU clocks at 8 MHz

rtc.i2c_data(0x00)
assert rtc.read() == 0x80 | 0x31
```

### Decoding MIDI output

```python
from cx16emu.midiout import MidiOutDecoder, MidiEventKind

decoder = MidiOutDecoder()
decoder.feed(0x90)                  # note on, channel 0
decoder.feed(60)
(event,) = decoder.feed(100)
assert event.kind is MidiEventKind.NOTE_ON and event.param == 60 and event.value == 100

decoder.feed(60)                    # running status
(event,) = decoder.feed(0)          # velocity 0 means note off
assert event.kind is MidiEventKind.NOTE_OFF
```

### Command-line options

```python
from cx16emu.options import EchoMode, UsageError, parse_args

try:
    options = parse_args(["-ram", "1024", "-warp", "-echo", "iso"])
except UsageError as exc:
    print(exc)
else:
    assert options.num_ram_banks == 128
    assert options.echo_mode is EchoMode.ISO
```

`parse_args` checks that:

- `-ram` is a multiple of 8 between 8 and 2048,
- `-mhz` is between 1 and 40,
- `-hostfsdev` is between 8 and 31,
- `-keymap` names one of `KEYMAPS`.

`-version` stops parsing and sets `show_version`. Warnings about `-sf2` and
`-midicard` are collected in `options.warnings`.

### Console helpers

```python
from cx16emu.console import PasteBuffer, autoload_command, format_echo
from cx16emu.options import EchoMode

assert format_echo(0x41, EchoMode.COOKED) == b"A"
assert format_echo(0x93, EchoMode.COOKED) == b"\\X93"
assert autoload_command(8, run=True) == 'LOAD":*",8,1\rRUN\r'

ram = bytearray(0x10000)
ndx, keyd = 0x00A0, 0x00A1          # your machine's keyboard-buffer addresses
paste = PasteBuffer('10 PRINT "HELLO"\r')
more = paste.feed_keyboard(ram, ndx, keyd)   # fills up to 10 bytes; True while text remains
```

## What the package does not do

These are components only. The package does not include:

- a CPU, memory map, video, audio or input handling,
- a main loop, and no program or command to start a machine,
- SD card emulation,
- a register-level model of the serial MIDI card's UARTs.

`MidiOutDecoder` only turns bytes into events. Playing them is up to you.
Likewise, `parse_args` only produces options; nothing in the package acts
on them.

## Running the tests

Install the `test` extra, then run `pytest` from the project directory.