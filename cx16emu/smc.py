"""System Management Controller: power, reset, NMI, LEDs, keyboard and mouse."""

from __future__ import annotations

from typing import Callable, Protocol

SMC_VERSION_MAJOR = 47
SMC_VERSION_MINOR = 0
SMC_VERSION_PATCH = 0


class MouseBuffer(Protocol):
    def get_device_id(self) -> int: ...

    def set_device_id(self, device_id: int) -> None: ...

    def buffer_count(self) -> int: ...

    def buffer_next(self) -> int: ...


class SystemManagementController:
    """The SMC as seen over I2C.

    Commands: $01 $00 power off, $01 $01 hard reboot, $02 $00 reset button,
    $03 $00 NMI button, $04 power LED, $05 activity LED.
    """

    I2C_DATA_LEN = 16

    def __init__(
        self,
        keyboard_next: Callable[[], int],
        mouse: MouseBuffer,
        power_off: Callable[[], None],
        nmi: Callable[[], None],
        long_press: bool = False,
    ) -> None:
        self._keyboard_next = keyboard_next
        self._mouse = mouse
        self._power_off = power_off
        self._nmi = nmi
        self.long_press = long_press
        self.default_read_op = 0x41
        self.activity_led = 0
        self.requested_reset = False
        self._read_state = 0
        self._mouse_count = 0
        self._data = bytearray(self.I2C_DATA_LEN)
        self._pos = 0

    def i2c_data(self, value: int) -> None:
        """Receive one byte of an I2C transfer; excess bytes are dropped."""
        if self._pos < self.I2C_DATA_LEN:
            self._data[self._pos] = value & 0xFF
            self._pos += 1

    def _read_mouse(self) -> int:
        size = 4 if self._mouse.get_device_id() in (3, 4) else 3
        if self._mouse_count == 0 and self._mouse.buffer_count() >= size:
            self._mouse_count += 1
            return self._mouse.buffer_next()
        if self._mouse_count > 0:
            self._mouse_count += 1
            if self._mouse_count == size:
                self._mouse_count = 0
                self._read_state = 0
            return self._mouse.buffer_next()
        # No complete packet yet: a single zero.
        self._mouse_count = 0
        self._read_state = 0
        return 0x00

    def read(self) -> int:
        """Return a byte for the offset named by the transfer."""
        op = self._data[0]
        if op == 0x43 and self._read_state == 0:
            self._read_state = 1
            ret = self._keyboard_next()
        elif op in (0x43, 0x42, 0x21):
            ret = self._read_mouse()
        elif op in (0x41, 0x07):
            if op == 0x41:
                self._read_state = 0
            ret = self._keyboard_next()
        elif op == 0x09:
            # Tells the KERNAL whether power-on was a long button press.
            ret = 1 if self.long_press else 0
            self.long_press = False
        elif op == 0x22:
            ret = self._mouse.get_device_id()
        elif op == 0x30:
            ret = SMC_VERSION_MAJOR
        elif op == 0x31:
            ret = SMC_VERSION_MINOR
        elif op == 0x32:
            ret = SMC_VERSION_PATCH
        else:
            ret = 0xFF
        self._data[0] = self.default_read_op
        self._pos = 0
        return ret & 0xFF

    def write(self) -> None:
        """Carry out the command named by the transfer."""
        op, value = self._data[0], self._data[1]
        if op == 0x01:
            if value == 0:
                self._power_off()
            elif value == 1:
                self.requested_reset = True
        elif op == 0x02:
            if value == 0:
                self.requested_reset = True
        elif op == 0x03:
            if value == 0:
                self._nmi()
        elif op == 0x05:
            self.activity_led = 255 if value >= 128 else 0
        elif op == 0x20:
            self._mouse.set_device_id(value)
        elif op == 0x40:
            self.default_read_op = value
            self._read_state = 0
        self._data[0] = self.default_read_op
        self._pos = 0