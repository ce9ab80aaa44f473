"""High-level interception of the KERNAL's IEEE bus API for the host filesystem.

When the CPU reaches one of the KERNAL's IEEE entry points, the call is
served directly by a host device. The result goes into the registers, the
KERNAL STATUS variable is updated, and an RTS is simulated.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, MutableSequence, Protocol

log = logging.getLogger(__name__)

ReadFn = Callable[[int], int]

# Return codes of the device calls.
NOT_HANDLED = -2
UNSUPPORTED = -3

MCIOUT = 0xFEB1
MACPTR = 0xFF44
SECOND = 0xFF93
TKSA = 0xFF96
ACPTR = 0xFFA5
CIOUT = 0xFFA8
UNTLK = 0xFFAB
UNLSN = 0xFFAE
LISTEN = 0xFFB1
TALK = 0xFFB4

_READST_VECTOR = 0xFFB7
_JMP = 0x4C
_LDA_ABS = 0xAD
_ORA_ABS = 0x0D
_STA_ABS = 0x8D

# After this many UNLISTENs the autoloaded PRG is in memory:
# two for LOAD"AUTOBOOT.X16*" and two for LOAD":*".
_UNLISTENS_FOR_PRG = 4


class IeeeDevice(Protocol):
    """Host device serving the KERNAL IEEE calls.

    Each call returns a status: -2 if not handled, -3 if unsupported,
    -1 for no STATUS change, or the STATUS value to store.
    """

    def mciout(self, address: int, count: int, carry: bool) -> tuple[int, int]: ...

    def macptr(self, address: int, count: int, carry: bool) -> tuple[int, int]: ...

    def second(self, address: int) -> int: ...

    def tksa(self, address: int) -> int: ...

    def acptr(self) -> tuple[int, int]: ...

    def ciout(self, value: int) -> int: ...

    def untalk(self) -> int: ...

    def unlisten(self) -> int: ...

    def listen(self, address: int) -> int: ...

    def talk(self, address: int) -> int: ...


@dataclass
class Registers:
    """The CPU registers the interception reads and changes."""

    a: int = 0
    x: int = 0
    y: int = 0
    sp: int = 0x01FF
    status: int = 0
    pc: int = 0
    k: int = 0


def _has_signature(read: ReadFn, address: int) -> bool:
    return bytes(read(address + i) & 0xFF for i in range(4)) == b"MIST"


def is_kernal(read: ReadFn) -> bool:
    """Whether the ROM currently mapped in is the KERNAL."""
    return _has_signature(read, 0xFFF6) or _has_signature(read, 0xC008)


def _word(read: ReadFn, address: int) -> int:
    return (read(address & 0xFFFF) & 0xFF) | (read((address + 1) & 0xFFFF) & 0xFF) << 8


def find_status_address(read: ReadFn) -> int | None:
    """Locate the KERNAL STATUS variable through the code of READST.

    READST is expected to be ``LDA status / ORA status / STA status``,
    reached through a JMP in the API vector table.
    """
    if read(_READST_VECTOR) & 0xFF != _JMP:
        return None
    readst = _word(read, _READST_VECTOR + 1)
    if readst < 0xC000:
        return None
    opcodes = (_LDA_ABS, _ORA_ABS, _STA_ABS)
    if any(read((readst + 3 * i) & 0xFFFF) & 0xFF != op for i, op in enumerate(opcodes)):
        return None
    addresses = {_word(read, readst + 3 * i + 1) for i in range(3)}
    if len(addresses) != 1:
        return None
    return addresses.pop()


def set_kernal_status(read: ReadFn, ram: MutableSequence[int], status: int) -> bool:
    """Store ``status`` in the KERNAL STATUS variable; False if it cannot be found."""
    address = find_status_address(read)
    if address is None:
        return False
    ram[address] = status & 0xFF
    return True


def _pop(regs: Registers, read: ReadFn) -> int:
    regs.sp = (regs.sp & 0xFF00) | ((regs.sp + 1) & 0xFF)
    return read(regs.sp) & 0xFF


class KernalInterceptor:
    """Serves KERNAL IEEE calls from a host device instead of the emulated bus.

    ``read`` reads memory as the CPU currently sees it, ``ram`` is the
    writable low RAM holding the STATUS variable. The public attributes
    mirror the emulator settings that decide whether calls are taken over.
    """

    def __init__(self, device: IeeeDevice, read: ReadFn, ram: MutableSequence[int]) -> None:
        self.device = device
        self.read = read
        self.ram = ram
        self.enabled = True
        self.has_serial = False
        self.using_hostfs = True
        self.sdcard_attached = False
        self.sdcard_path_set = False
        self.prg_pending = False
        self.prg_finished_loading = False
        self.attach_sdcard: Callable[[], None] | None = None
        self.mhz = 8
        self.missed_ticks = 0
        self._unlisten_count = 0

    def _applies(self, regs: Registers) -> bool:
        if not self.enabled:
            return False
        if regs.pc < MCIOUT or not is_kernal(self.read):
            return False
        if self.has_serial:
            # Bit-level serial bus emulation replaces the high-level API.
            return False
        if self.sdcard_attached and not self.using_hostfs:
            if not self.prg_pending or self.prg_finished_loading:
                return False
        return True

    def _block_transfer(self, regs: Registers, call: Callable[..., tuple[int, int]]) -> int:
        status, count = call(regs.y << 8 | regs.x, regs.a, bool(regs.status & 0x01))
        if status == UNSUPPORTED:
            regs.status |= 0x01
        elif status != NOT_HANDLED:
            regs.x = count & 0xFF
            regs.y = (count >> 8) & 0xFF
            regs.status &= 0xFE
        return status

    def _dispatch(self, regs: Registers) -> int:
        device = self.device
        pc = regs.pc
        if pc == MCIOUT:
            return self._block_transfer(regs, device.mciout)
        if pc == MACPTR:
            return self._block_transfer(regs, device.macptr)
        if pc == SECOND:
            return device.second(regs.a)
        if pc == TKSA:
            return device.tksa(regs.a)
        if pc == ACPTR:
            status, value = device.acptr()
            if status != NOT_HANDLED:
                regs.a = value & 0xFF
                regs.status = (regs.status & ~3) | (int(regs.a == 0) << 1)
            return status
        if pc in (CIOUT, LISTEN, TALK):
            call = {CIOUT: device.ciout, LISTEN: device.listen, TALK: device.talk}[pc]
            status = call(regs.a)
            if status != NOT_HANDLED:
                regs.status &= ~1
            return status
        if pc == UNTLK:
            return device.untalk()
        if pc == UNLSN:
            status = device.unlisten()
            if self.prg_pending and self.sdcard_path_set:
                self._unlisten_count += 1
                if self._unlisten_count == _UNLISTENS_FOR_PRG:
                    # The PRG is loaded; switch to the SD card as requested.
                    self.prg_finished_loading = True
                    if self.attach_sdcard is not None:
                        self.attach_sdcard()
            return status
        return NOT_HANDLED

    def handle(self, regs: Registers) -> bool:
        """Serve the call at ``regs.pc`` if it is one; returns whether it was."""
        if not self._applies(regs):
            return False

        start = time.perf_counter()
        status = -1
        handled = True
        if regs.k == 0:
            status = self._dispatch(regs)
            handled = status != NOT_HANDLED
        if not handled:
            return False

        # Count the host time as CPU time so the machine does not race ahead.
        elapsed = time.perf_counter() - start
        self.missed_ticks += int(elapsed * 1_000_000 * self.mhz)
        if status >= 0 and not set_kernal_status(self.read, self.ram, status):
            log.warning("Warning: Could not set STATUS!")

        low = _pop(regs, self.read)
        high = _pop(regs, self.read)
        regs.pc = ((high << 8 | low) + 1) & 0xFFFF
        return True