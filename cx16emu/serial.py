"""Commodore serial bus, device side, driven bit by bit from the host lines.

This is an early, partial bus implementation: enough to receive commands
and data under ATN and to send bytes back while talking.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Protocol


class IeeeDevice(Protocol):
    """The high-level device that the bus hands decoded bytes to."""

    def acptr(self) -> tuple[int, int]:
        """Return (status, byte) for the next byte to send."""
        ...

    def listen(self, address: int) -> int: ...

    def unlisten(self) -> int: ...

    def talk(self, address: int) -> int: ...

    def untalk(self) -> int: ...

    def second(self, address: int) -> int: ...

    def tksa(self, address: int) -> int: ...

    def ciout(self, value: int) -> int: ...


class BusState(enum.IntEnum):
    IDLE = 0
    WAIT_FOR_BYTE = 1
    RECEIVING = 2
    TALK_START = 10
    TALK_READY = 11
    TALK_EOI = 12
    TALK_BITS = 13
    TALK_END = 14
    ATN_START = 99


@dataclass
class HostLines:
    """Lines driven by the computer."""

    atn: bool = False
    clk: bool = False
    data: bool = False


@dataclass
class DeviceLines:
    """Lines driven by the emulated device."""

    clk: bool = False
    data: bool = False


class SerialBus:
    """Decodes host line changes into IEEE calls and clocks bytes back out."""

    def __init__(self, device: IeeeDevice, mhz: int = 8) -> None:
        self.device = device
        self.mhz = mhz
        self.inputs = HostLines()
        self.outputs = DeviceLines()
        self.state = BusState.IDLE
        self.listening = False
        self.talking = False
        self.file_not_found = False
        self._during_atn = False
        self._valid = False
        self._bit = 0
        self._byte = 0
        self._eoi = False
        self._idle_clocks = 0
        self._old_atn = False
        self._old_clk = False
        self._old_data = False

    def read_clk(self) -> bool:
        """The wired-AND of the host's and the device's CLK lines."""
        return bool(self.outputs.clk and self.inputs.clk)

    def read_data(self) -> bool:
        """The wired-AND of the host's and the device's DATA lines."""
        return bool(self.outputs.data and self.inputs.data)

    def _read_byte(self) -> int:
        status, value = self.device.acptr()
        self._eoi = status >= 0
        return value & 0xFF

    def step(self, clocks: int) -> None:
        """Advance the bus by a number of CPU clocks."""
        unchanged = (
            self._old_atn == bool(self.inputs.atn)
            and self._old_clk == self.read_clk()
            and self._old_data == self.read_data()
        )
        if unchanged:
            self._step_unchanged(clocks)
        else:
            self._step_changed()
        self._old_atn = bool(self.inputs.atn)
        self._old_clk = self.read_clk()
        self._old_data = self.read_data()

    def _step_unchanged(self, clocks: int) -> None:
        mhz = self.mhz
        out = self.outputs
        self._idle_clocks += clocks
        if (
            self.state == BusState.RECEIVING
            and self._valid
            and self._bit == 0
            and self._idle_clocks > 200 * mhz
        ):
            if self._idle_clocks < (200 + 60) * mhz:
                out.data = False
                self._eoi = True
            else:
                out.data = True
                self._idle_clocks = 0

        if self.state == BusState.TALK_START and self._idle_clocks > 60 * mhz:
            out.clk = True
            self.state = BusState.TALK_READY
            self._idle_clocks = 0
        elif self.state == BusState.TALK_READY and self.read_data() and not self.file_not_found:
            self._idle_clocks = 0
            self._byte = self._read_byte()
            self._bit = 0
            self._valid = True
            if self._eoi:
                self.state = BusState.TALK_EOI
            else:
                out.clk = False
                self.state = BusState.TALK_BITS
        elif self.state == BusState.TALK_EOI and self._idle_clocks > 512 * mhz:
            self._idle_clocks = 0
            out.clk = False
            self.state = BusState.TALK_BITS
        elif self.state == BusState.TALK_BITS and self._idle_clocks > 60 * mhz:
            if self._valid:
                out.data = bool((self._byte >> self._bit) & 1)
                out.clk = True
                self._bit += 1
                if self._bit == 8:
                    self.state = BusState.TALK_END
            else:
                out.clk = False
            self._valid = not self._valid
            self._idle_clocks = 0
        elif self.state == BusState.TALK_END and self._idle_clocks > 60 * mhz:
            out.data = True
            out.clk = False
            self.state = BusState.TALK_START
            self._idle_clocks = 0

    def _step_changed(self) -> None:
        out = self.outputs
        self._idle_clocks = 0
        if not self._during_atn and self.inputs.atn:
            out.data = False
            self.state = BusState.ATN_START
            self._during_atn = True

        if self.state == BusState.ATN_START:
            if not self.read_clk():
                self.state = BusState.WAIT_FOR_BYTE
        elif self.state == BusState.WAIT_FOR_BYTE:
            self._wait_for_byte()
        elif self.state == BusState.RECEIVING:
            self._receive()

    def _wait_for_byte(self) -> None:
        out = self.outputs
        if self._during_atn and not self.inputs.atn:
            out.data = True
            out.clk = True
            self._during_atn = False
            if self.listening:
                # Keep holding DATA to show the device is present.
                out.data = False
            elif self.talking:
                out.clk = False
                self.state = BusState.TALK_START
            else:
                self.state = BusState.IDLE
            return
        if self.read_clk():
            out.data = True
            self.state = BusState.RECEIVING
            self._valid = True
            self._bit = 0
            self._byte = 0
            self._eoi = False

    def _receive(self) -> None:
        out = self.outputs
        if self._during_atn and not self.inputs.atn:
            out.data = True
            out.clk = True
            self.state = BusState.IDLE
            return
        if self._valid:
            if not self.read_clk():
                self._valid = False
            return
        if not self.read_clk():
            return
        self._byte |= int(self.read_data()) << self._bit
        self._valid = True
        self._bit += 1
        if self._bit == 8:
            if self._during_atn:
                self._command(self._byte)
            else:
                self.device.ciout(self._byte)
            out.data = False
            self.state = BusState.WAIT_FOR_BYTE

    def _command(self, value: int) -> None:
        kind = value & 0x60
        if kind == 0x20:
            if value == 0x3F:
                self.device.unlisten()
                self.listening = False
            else:
                self.device.listen(value)
                self.listening = True
        elif kind == 0x40:
            if value == 0x5F:
                self.device.untalk()
                self.talking = False
            else:
                self.device.talk(value)
                self.talking = True
        elif kind == 0x60:
            if self.listening:
                self.device.second(value)
            else:
                self.device.tksa(value)