"""Command-line options of the emulator."""

from __future__ import annotations

import enum
import re
import sys
from collections import deque
from dataclasses import dataclass, field
from typing import Sequence

# This must match the KERNAL's set.
KEYMAPS = (
    "en-us", "en-us-int", "en-gb", "sv", "de", "da", "it", "pl", "nb", "hu",
    "es", "fi", "pt-br", "cz", "jp", "fr", "de-ch", "en-us-dvo", "et", "fr-be",
    "fr-ca", "is", "pt", "hr", "sk", "sl", "lv", "lt",
)

DEFAULT_HOSTFS_UNIT = 8
DEFAULT_OPACITY = 1.0
DEFAULT_MIDI_CARD_ADDR = 0x9F60


class UsageError(Exception):
    """The command line was not understood; the message says how to use it."""


class EchoMode(enum.Enum):
    NONE = "none"
    COOKED = "cooked"
    ISO = "iso"
    RAW = "raw"


@dataclass(frozen=True)
class Breakpoint:
    pc: int
    bank: int


@dataclass
class EmulatorOptions:
    rom_path: str = "rom.bin"
    prg_path: str | None = None
    prg_override_start: int = -1
    bas_path: str | None = None
    run_after_load: bool = False
    test_number: int | None = None
    nvram_path: str | None = None
    sdcard_path: str | None = None
    cartridge_path: str | None = None
    cartridge_bin_path: str | None = None
    num_ram_banks: int = 64
    keymap: int = 0
    has_midi_card: bool = False
    midi_card_addr: int = DEFAULT_MIDI_CARD_ADDR
    sf2_path: str | None = None
    midi_in_connect: bool = False
    midi_synth: bool = False
    warp_mode: bool = False
    warp_pastes: bool = False
    echo_mode: EchoMode = EchoMode.NONE
    log_keyboard: bool = False
    log_speed: bool = False
    log_video: bool = False
    dump_cpu: bool = False
    dump_ram: bool = True
    dump_bank: bool = True
    dump_vram: bool = False
    gif_path: str | None = None
    wav_path: str | None = None
    debugger_enabled: bool = False
    breakpoints: list[Breakpoint] = field(default_factory=list)
    randomize_ram: bool = True
    zeroram: bool = False
    report_uninitialized: bool = False
    memory_stats_path: str | None = None
    joysticks: list[bool] = field(default_factory=lambda: [False] * 4)
    window_scale: int = 1
    scale_quality: str = "best"
    screen_x_scale: float = 1.0
    fullscreen: bool = False
    window_opacity: float = DEFAULT_OPACITY
    audio_device: str | None = None
    audio_buffers: int = 8
    audio_buffers_set: bool = False
    set_system_time: bool = False
    has_serial: bool = False
    no_ieee_intercept: bool = False
    hostfs_set: bool = False
    using_hostfs: bool = True
    hostfs_unit: int = DEFAULT_HOSTFS_UNIT
    fsroot_path: str | None = None
    startin_path: str | None = None
    disable_emu_cmd_keys: bool = False
    grab_mouse: bool = False
    pwr_long_press: bool = False
    no_keyboard_capture: bool = False
    has_via2: bool = False
    show_version: bool = False
    testbench: bool = False
    headless: bool = False
    mhz: int = 8
    enable_midline: bool = False
    ym2151_irq_support: bool = False
    is_65c816: bool = False
    warn_rockwell: bool = True
    warnings: list[str] = field(default_factory=list)


_USAGE_LINES = (
    "",
    "Commander X16 Emulator",
    "",
    "Usage: x16emu [option] ...",
    "",
    "-rom <rom.bin>",
    "\tOverride KERNAL/BASIC/* ROM file.",
    "-ram <ramsize>",
    "\tSpecify banked RAM size in KB (8, 16, 32, ..., 2048).",
    "\tThe default is 512.",
    "-nvram <nvram.bin>",
    "\tSpecify NVRAM image. By default, the machine starts with",
    "\tempty NVRAM and does not save it to disk.",
    "-keymap <keymap>",
    "\tEnable a specific keyboard layout decode table.",
    "-sdcard <sdcard.img>",
    "\tSpecify SD card image (partition map + FAT32)",
    "-cart <crtfile.crt>",
    "\tLoads a specially-formatted cartridge file.",
    "-cartbin <romfile.bin>",
    "\tLoads a raw cartridge file starting at ROM bank 32. After",
    "\tloading, all of the affected banks will function as RAM.",
    "-serial",
    "\tConnect host fs through Serial Bus [experimental]",
    "-nohostieee / -nohostfs",
    "\tDisable HostFS through IEEE API interception.",
    "\tIEEE API HostFS is normally enabled unless -sdcard or",
    "\t-serial is specified.",
    "-hostfsdev <unit>",
    "\tSet the HostFS IEEE device number. Range 8-31. Default: {unit}.",
    "-fsroot <directory>",
    "\tSpecify the host filesystem directory path which is to",
    "\tact as the emulated root directory of the Commander X16.",
    "\tDefault is the current working directory.",
    "-startin <directory>",
    "\tSpecify the host filesystem directory path that the",
    "\temulated filesystem starts in. Default is the current",
    "\tworking directory if it lies within the hierarchy of fsroot,",
    "\totherwise it defaults to fsroot itself.",
    "-noemucmdkeys",
    "\tDisable emulator command keys.",
    "-capture",
    "\tStart emulator with mouse/keyboard captured.",
    "-nokeyboardcapture",
    "\tWhile in capture mode, causes the emulator not to intercept",
    "\tkeyboard combinations which are used by the operating system,",
    "\tsuch as Alt+Tab.",
    "-prg <app.prg>[,<load_addr>]",
    "\tLoad application from the *host filesystem* into RAM,",
    "\teven if an SD card is attached.",
    "\tThe override load address is hex without a prefix.",
    "-bas <app.txt>",
    "\tInject a BASIC program in ASCII encoding through the",
    "\tkeyboard.",
    "-run",
    "\tStart the -prg/-bas program using RUN",
    "-warp",
    "\tEnable warp mode, run emulator as fast as possible.",
    "-pastewarp",
    "\tEnable warp mode during pastes and during loading via -bas.",
    "-echo [{{iso|raw}}]",
    "\tPrint all KERNAL output to the host's stdout.",
    "\tBy default, everything but printable ASCII characters get",
    "\tescaped. \"iso\" will escape everything but non-printable",
    "\tISO-8859-15 characters and convert the output to UTF-8.",
    "\t\"raw\" will not do any substitutions.",
    "\tWith the BASIC statement \"LIST\", this can be used",
    "\tto detokenize a BASIC program.",
    "-log {{K|S|V}}...",
    "\tEnable logging of (K)eyboard, (S)peed, (V)ideo.",
    "\tMultiple characters are possible, e.g. -log KS",
    "-gif <file.gif>[,wait]",
    "\tRecord a gif for the video output.",
    "\tUse ,wait to start paused.",
    "\tPOKE $9FB5,2 to start recording.",
    "\tPOKE $9FB5,1 to capture a single frame.",
    "\tPOKE $9FB5,0 to pause.",
    "-wav <file.wav>[{{,wait|,auto}}]",
    "\tRecord a wav for the audio output.",
    "\tUse ,wait to start paused, or ,auto to start paused and automatically"
    " begin recording on the first non-zero audio signal.",
    "\tPOKE $9FB6,2 to automatically begin recording on the first non-zero audio signal.",
    "\tPOKE $9FB6,1 to begin recording immediately.",
    "\tPOKE $9FB6,0 to pause.",
    "-scale {{1|2|3|4}}",
    "\tScale output to an integer multiple of 640x480",
    "-quality {{nearest|linear|best}}",
    "\tScaling algorithm quality",
    "-widescreen",
    "\tStretch output to 16:9 resolution to mimic display of a widescreen monitor.",
    "-fullscreen",
    "\tStart up in fullscreen mode instead of in a window.",
    "-opacity (0.0,...,1.0)",
    "\tSet the opacity value (0.0 for transparent, 1.0 for opaque) of the window."
    " (default: {opacity:.1f})",
    "-debug [<address>]",
    "\tEnable debugger. Optionally, set a breakpoint",
    "-randram",
    "\t(deprecated, no effect)",
    "-zeroram",
    "\tSet all RAM to zero instead of uninitialized random values",
    "-wuninit",
    "\tPrints warning to stdout if uninitialized RAM is accessed",
    "-memorystats <file.txt>",
    "\tSaves memory access statistics to the given file when emulator exits",
    "-dump {{C|R|B|V}}...",
    "\tConfigure system dump: (C)PU, (R)AM, (B)anked-RAM, (V)RAM",
    "\tMultiple characters are possible, e.g. -dump CV ; Default: RB",
    "-joy1",
    "\tEnable binding a gamepad to SNES controller port 1",
    "-joy2",
    "\tEnable binding a gamepad to SNES controller port 2",
    "-joy3",
    "\tEnable binding a gamepad to SNES controller port 3",
    "-joy4",
    "\tEnable binding a gamepad to SNES controller port 4",
    "-sound <output device>",
    "\tSet the output device used for audio emulation",
    "\tIf output device is 'none', no audio is generated",
    "-abufs <number of audio buffers>",
    "\tSet the number of audio buffers used for playback.",
    "\tIf using HostFS, the default is 32, otherwise 8.",
    "\tIncreasing this will reduce stutter on slower computers,",
    "\tbut will increase audio latency.",
    "-rtc",
    "\tSet the real-time-clock to the current system time and date.",
    "-via2",
    "\tInstall the second VIA chip expansion at $9F10",
    "-testbench",
    "\tHeadless mode for unit testing with an external test runner",
    "-mhz <integer>",
    "\tRun the emulator with a system clock speed other than the default of",
    "\t8 MHz. Valid values are in the range of 1-40, inclusive. This option",
    "\tis meant mainly for benchmarking, and may not reflect accurate",
    "\thardware behavior.",
    "-midline-effects",
    "\tApproximate mid-line raster effects when changing tile, sprite,",
    "\tand palette data. Requires a fast host CPU.",
    "-enable-ym2151-irq",
    "\tConnect the YM2151 IRQ source to the emulated CPU. This option increases",
    "\tCPU usage as audio render is triggered for every CPU instruction.",
    "-c02",
    "\tRun the emulator under an emulated 65C02 (default)",
    "-c816",
    "\tRun the emulator under an emulated 65C816",
    "\tThis option is experimental.",
    "-rockwell",
    "\tSuppress warning emitted when encountering a Rockwell extension on the 65C02",
    "-longpwron",
    "\tSimulate a long press of the power button at system power-on.",
    "-midicard [<address>]",
    "\tInstall a serial MIDI card at the specified address, or at $9F60 by default.",
    "\tThe -sf2 option must be specified along with this option.",
    "-sf2 <SoundFont filename>",
    "\tInitialize MIDI synth with the specified SoundFont.",
    "\tThe -midicard option must be specified along with this option.",
    "-midi-in",
    "\tConnect the system MIDI input devices to the input of the first UART",
    "\tof the emulated MIDI card. The -midicard option is required for this",
    "\toption to have any effect.",
    "-version",
    "\tPrint additional version information of the emulator and ROM.",
    "",
)


def usage_text() -> str:
    """The help text listing every option."""
    text = "\n".join(_USAGE_LINES) + "\n"
    return text.format(unit=DEFAULT_HOSTFS_UNIT, opacity=DEFAULT_OPACITY)


def keymap_text() -> str:
    """The list of supported keyboard layouts."""
    return "The following keymaps are supported:\n" + "".join(
        f"\t{name}\n" for name in KEYMAPS
    )


_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"
_FLOAT_RE = re.compile(r"\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def _strtol(text: str, base: int) -> int:
    """Parse a leading integer the way strtol does; 0 if there is none."""
    s = text.lstrip()
    sign = 1
    if s and s[0] in "+-":
        sign = -1 if s[0] == "-" else 1
        s = s[1:]
    valid = _DIGITS[:base]
    if base == 16 and s[:2].lower() == "0x" and len(s) > 2 and s[2].lower() in valid:
        s = s[2:]
    digits = []
    for ch in s:
        if ch.lower() not in valid:
            break
        digits.append(ch)
    return sign * int("".join(digits), base) if digits else 0


def _strtof(text: str) -> float:
    match = _FLOAT_RE.match(text)
    return float(match.group()) if match else 0.0


def _value(args: deque[str]) -> str:
    if not args or args[0].startswith("-"):
        raise UsageError(usage_text())
    return args.popleft()


def _optional(args: deque[str]) -> str | None:
    if args and not args[0].startswith("-"):
        return args.popleft()
    return None


def _parse_keymap(args: deque[str]) -> int:
    if not args or args[0].startswith("-"):
        raise UsageError(keymap_text())
    name = args.popleft()
    if name not in KEYMAPS:
        raise UsageError(keymap_text())
    return KEYMAPS.index(name)


def _parse_breakpoint(text: str) -> Breakpoint:
    value = _strtol(text, 16) & 0xFFFFFFFF
    if value < 0xA000:
        return Breakpoint(pc=value, bank=-1)
    return Breakpoint(pc=value & 0xFFFF, bank=value >> 16)


def _parse_log(opts: EmulatorOptions, spec: str) -> None:
    for ch in spec.lower():
        if ch == "k":
            opts.log_keyboard = True
        elif ch == "s":
            opts.log_speed = True
        elif ch == "v":
            opts.log_video = True
        else:
            raise UsageError(usage_text())


def _parse_dump(opts: EmulatorOptions, spec: str) -> None:
    opts.dump_cpu = opts.dump_ram = opts.dump_bank = opts.dump_vram = False
    for ch in spec.lower():
        if ch == "c":
            opts.dump_cpu = True
        elif ch == "r":
            opts.dump_ram = True
        elif ch == "b":
            opts.dump_bank = True
        elif ch == "v":
            opts.dump_vram = True
        else:
            raise UsageError(usage_text())


def _parse_scale(spec: str) -> int:
    scale = 1
    for ch in spec:
        if ch not in "1234":
            raise UsageError(usage_text())
        scale = int(ch)
    return scale


def _parse_prg(opts: EmulatorOptions, spec: str) -> None:
    path, comma, start = spec.partition(",")
    opts.prg_path = path
    opts.prg_override_start = (_strtol(start, 16) & 0xFFFF) if comma else -1


def _finish(opts: EmulatorOptions) -> EmulatorOptions:
    if opts.sdcard_path and not opts.hostfs_set:
        opts.using_hostfs = False
    if opts.using_hostfs and not opts.audio_buffers_set:
        opts.audio_buffers = 32
    if opts.sf2_path and opts.has_midi_card:
        if opts.midi_card_addr < 0x9F60:
            opts.warnings.append(
                "Warning: Serial MIDI card address must be in the range of 9F60-9FF0"
            )
        else:
            opts.midi_synth = True
    elif opts.sf2_path or opts.has_midi_card:
        opts.warnings.append(
            "Warning: -sf2 and -midicard must be specified together in order to"
            " enable the MIDI synth."
        )
        opts.has_midi_card = False
    return opts


def parse_args(argv: Sequence[str] | None = None) -> EmulatorOptions:
    """Parse the emulator's command line (without the program name).

    Raises UsageError with the text to show when the line is not valid.
    """
    args = deque(sys.argv[1:] if argv is None else argv)
    opts = EmulatorOptions()
    while args:
        option = args.popleft()
        match option:
            case "-rom":
                opts.rom_path = _value(args)
            case "-ram":
                kb = _strtol(_value(args), 10)
                if kb & 7 or kb < 8 or kb > 2048:
                    raise UsageError(
                        "-ram value must be a multiple of 8 in the range of 8-2048."
                    )
                opts.num_ram_banks = kb // 8
            case "-keymap":
                opts.keymap = _parse_keymap(args)
            case "-prg":
                _parse_prg(opts, _value(args))
            case "-midicard":
                opts.has_midi_card = True
                addr = _optional(args)
                if addr is None:
                    opts.midi_card_addr = DEFAULT_MIDI_CARD_ADDR
                else:
                    opts.midi_card_addr = (0x9F00 | (_strtol(addr, 16) & 0xFF)) & 0xFFF0
            case "-sf2":
                opts.sf2_path = _value(args)
            case "-midi-in":
                opts.midi_in_connect = True
            case "-run":
                opts.run_after_load = True
            case "-bas":
                opts.bas_path = _value(args)
            case "-test":
                opts.test_number = _strtol(_value(args), 10)
            case "-nvram":
                opts.nvram_path = _value(args)
            case "-sdcard":
                opts.sdcard_path = _value(args)
            case "-cart":
                opts.cartridge_path = _value(args)
            case "-cartbin":
                opts.cartridge_bin_path = _value(args)
            case "-warp":
                opts.warp_mode = True
            case "-pastewarp":
                opts.warp_pastes = True
            case "-echo":
                mode = _optional(args)
                if mode is None:
                    opts.echo_mode = EchoMode.COOKED
                elif mode == "raw":
                    opts.echo_mode = EchoMode.RAW
                elif mode == "iso":
                    opts.echo_mode = EchoMode.ISO
                else:
                    raise UsageError(usage_text())
            case "-log":
                _parse_log(opts, _value(args))
            case "-dump":
                _parse_dump(opts, _value(args))
            case "-gif":
                opts.gif_path = _value(args)
            case "-wav":
                opts.wav_path = _value(args)
            case "-debug":
                opts.debugger_enabled = True
                address = _optional(args)
                if address is not None:
                    opts.breakpoints.append(_parse_breakpoint(address))
            case "-randram":
                pass  # randomized RAM is the default now
            case "-zeroram":
                opts.randomize_ram = False
                opts.zeroram = True
            case "-wuninit":
                opts.report_uninitialized = True
            case "-memorystats":
                opts.memory_stats_path = _value(args)
            case "-joy1" | "-joy2" | "-joy3" | "-joy4":
                opts.joysticks[int(option[-1]) - 1] = True
            case "-scale":
                opts.window_scale = _parse_scale(_value(args))
            case "-quality":
                quality = _value(args)
                if quality not in ("nearest", "linear", "best"):
                    raise UsageError(usage_text())
                opts.scale_quality = quality
            case "-widescreen":
                opts.screen_x_scale = 4.0 / 3
            case "-fullscreen":
                opts.fullscreen = True
            case "-opacity":
                opts.window_opacity = _strtof(_value(args))
            case "-sound":
                if not args or args[0].startswith("-"):
                    raise UsageError("-sound requires the name of an output device")
                opts.audio_device = args.popleft()
            case "-abufs":
                opts.audio_buffers = _strtol(_value(args), 10)
                opts.audio_buffers_set = True
            case "-rtc":
                opts.set_system_time = True
            case "-serial":
                opts.has_serial = True
            case "-nohostieee" | "-nohostfs":
                opts.no_ieee_intercept = True
                opts.hostfs_set = False
                opts.using_hostfs = False
            case "-hostfsdev":
                unit = _strtol(_value(args), 10) & 0xFF
                if unit < 8 or unit > 31:
                    raise UsageError(usage_text())
                opts.hostfs_unit = unit
                opts.hostfs_set = True
                opts.using_hostfs = True
            case "-fsroot":
                opts.fsroot_path = _value(args)
            case "-startin":
                opts.startin_path = _value(args)
            case "-noemucmdkeys":
                opts.disable_emu_cmd_keys = True
            case "-capture":
                opts.grab_mouse = True
            case "-longpwron":
                opts.pwr_long_press = True
            case "-nokeyboardcapture":
                opts.no_keyboard_capture = True
            case "-via2":
                opts.has_via2 = True
            case "-version":
                opts.show_version = True
                return opts
            case "-testbench":
                opts.testbench = True
                opts.headless = True
            case "-mhz":
                mhz = _strtol(_value(args), 10) & 0xFF
                if mhz < 1 or mhz > 40:
                    raise UsageError(usage_text())
                opts.mhz = mhz
            case "-midline-effects":
                opts.enable_midline = True
            case "-enable-ym2151-irq":
                opts.ym2151_irq_support = True
            case "-c816":
                opts.is_65c816 = True
            case "-c02":
                opts.is_65c816 = False
            case "-rockwell":
                opts.warn_rockwell = False
            case _:
                raise UsageError(usage_text())
    return _finish(opts)