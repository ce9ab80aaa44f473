"""MCP7940N real-time clock with battery-backed NVRAM, reached over I2C."""

from __future__ import annotations

import datetime

_DAYS_PER_MONTH = (31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)


def _bcd(value: int) -> int:
    return ((value // 10) << 4 | (value % 10)) & 0xFF


def _unbcd(value: int) -> int:
    return (value >> 4) * 10 + (value & 0x0F)


class RealTimeClock:
    """Clock registers 0-6 plus 64 bytes of NVRAM at register offsets $20-$5F.

    Alarms are not supported; 24h and AM/PM modes are, and the oscillator
    can be stopped.
    """

    I2C_DATA_LEN = 16
    NVRAM_SIZE = 0x40
    NVRAM_START = 0x20

    def __init__(self, mhz: int = 8) -> None:
        self.mhz = mhz
        self.nvram = bytearray(self.NVRAM_SIZE)
        self.nvram_dirty = False
        self._data = bytearray(self.I2C_DATA_LEN)
        self._pos = 0
        self.reset(False)

    def reset(self, set_system_time: bool) -> None:
        """Power the clock up, either stopped at 2000-01-01 or running from host time."""
        self.vbaten = True
        self.h24 = True
        self._clocks = 0
        if set_system_time:
            now = datetime.datetime.now()
            self.running = True
            self.seconds = now.second
            self.minutes = now.minute
            self.hours = now.hour
            self.day_of_week = now.isoweekday()
            self.day = now.day
            self.month = now.month
            self.year = now.year - 2000
        else:
            # The real chip starts with its oscillator stopped.
            self.running = False
            self.seconds = 0
            self.minutes = 0
            self.hours = 0
            self.day_of_week = 1
            self.day = 1
            self.month = 1
            self.year = 0

    def i2c_data(self, value: int) -> None:
        """Receive one byte of an I2C transfer; excess bytes are dropped."""
        if self._pos < self.I2C_DATA_LEN:
            self._data[self._pos] = value & 0xFF
            self._pos += 1

    def is_leap_year(self) -> bool:
        # The clock only covers 2000-2099, where every fourth year is a leap year.
        return not (self.year & 3)

    def step(self, clocks: int) -> None:
        """Advance by a number of CPU clocks; at most one second per call."""
        if not self.running:
            return
        self._clocks += clocks
        threshold = self.mhz * 1_000_000
        if self._clocks < threshold:
            return
        self._clocks -= threshold

        self.seconds += 1
        if self.seconds < 60:
            return
        self.seconds = 0
        self.minutes += 1
        if self.minutes < 60:
            return
        self.minutes = 0
        self.hours += 1
        if self.hours < 24:
            return
        self.hours = 0
        self.day_of_week += 1
        if self.day_of_week > 7:
            self.day_of_week = 1
        self.day += 1
        days = _DAYS_PER_MONTH[(self.month - 1) % 12]
        if self.month == 2 and self.is_leap_year():
            days += 1
        if self.day <= days:
            return
        self.day = 1
        self.month += 1
        if self.month <= 12:
            return
        self.month = 1
        self.year += 1
        if self.year == 100:
            self.year = 0

    def read(self) -> int:
        """Return the register addressed by the first byte of the transfer."""
        reg = self._data[0]
        if reg == 0:
            ret = _bcd(self.seconds) | int(self.running) << 7
        elif reg == 1:
            ret = _bcd(self.minutes)
        elif reg == 2:
            hour = self.hours
            pm = False
            if not self.h24:
                if hour >= 12:
                    pm = True
                    hour -= 12
                if hour == 0:
                    hour = 12
            ret = _bcd(hour) | int(pm) << 5 | int(not self.h24) << 6
        elif reg == 3:
            ret = self.day_of_week | int(self.vbaten) << 3 | int(self.running) << 5
        elif reg == 4:
            ret = _bcd(self.day)
        elif reg == 5:
            ret = _bcd(self.month) | int(self.is_leap_year()) << 5
        elif reg == 6:
            ret = _bcd(self.year)
        elif self.NVRAM_START <= reg < self.NVRAM_START + self.NVRAM_SIZE:
            ret = self.nvram[reg - self.NVRAM_START]
        elif reg >= self.NVRAM_START + self.NVRAM_SIZE:
            ret = 0xFF
        else:
            ret = 0
        self._pos = 0
        return ret & 0xFF

    def write(self) -> None:
        """Store the second transfer byte into the register named by the first."""
        reg, value = self._data[0], self._data[1]
        if reg == 0:
            self.running = bool(value & 0x80)
            self.seconds = _unbcd(value & 0x7F)
        elif reg == 1:
            self.minutes = _unbcd(value)
        elif reg == 2:
            self.h24 = not value & 0x40
            hour = value & 0x3F
            pm = False
            if not self.h24:
                pm = bool(value & 0x20)
                hour &= 0x1F
            hour = _unbcd(hour)
            if not self.h24 and hour == 12:
                hour = 0
            if pm:
                hour += 12
            self.hours = hour & 0xFF
        elif reg == 3:
            self.day_of_week = value & 7
            self.vbaten = bool(value & 0x20)
        elif reg == 4:
            self.day = _unbcd(value)
        elif reg == 5:
            self.month = _unbcd(value)
        elif reg == 6:
            self.year = _unbcd(value)
        elif self.NVRAM_START <= reg < self.NVRAM_START + self.NVRAM_SIZE:
            self.nvram[reg - self.NVRAM_START] = value
            self.nvram_dirty = True
        self._pos = 0