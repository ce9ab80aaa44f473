import pytest

from cx16emu.rtc import RealTimeClock


def set_reg(rtc, reg, value):
    rtc.i2c_data(reg)
    rtc.i2c_data(value)
    rtc.write()


def get_reg(rtc, reg):
    rtc.i2c_data(reg)
    return rtc.read()


def test_starts_stopped_and_step_does_nothing():
    rtc = RealTimeClock(8)
    before = (rtc.seconds, rtc.minutes, rtc.hours)
    rtc.step(8_000_000 * 3)
    assert rtc.running is False
    assert (rtc.seconds, rtc.minutes, rtc.hours) == before


def test_seconds_register_round_trip_sets_running():
    rtc = RealTimeClock(8)
    set_reg(rtc, 0, 0x80 | 0x45)
    assert rtc.running is True
    assert get_reg(rtc, 0) == 0x80 | 0x45


def test_step_accumulates_partial_seconds():
    rtc = RealTimeClock(2)
    set_reg(rtc, 0, 0x80)
    start = rtc.seconds
    rtc.step(1_000_000)
    assert rtc.seconds == start
    rtc.step(1_000_000)
    assert rtc.seconds == start + 1


@pytest.mark.parametrize("value", [0x72, 0x52, 0x41, 0x69])
def test_twelve_hour_round_trip(value):
    rtc = RealTimeClock()
    set_reg(rtc, 2, value)
    assert rtc.h24 is False
    assert get_reg(rtc, 2) == value


def test_twelve_pm_is_noon():
    rtc = RealTimeClock()
    set_reg(rtc, 2, 0x40 | 0x20 | 0x12)
    assert rtc.hours == 12


def test_24_hour_round_trip():
    rtc = RealTimeClock()
    set_reg(rtc, 2, 0x23)
    assert rtc.h24 is True
    assert get_reg(rtc, 2) == 0x23


def _set_date(rtc, year, month, day):
    set_reg(rtc, 6, year)
    set_reg(rtc, 5, month)
    set_reg(rtc, 4, day)
    set_reg(rtc, 2, 0x23)
    set_reg(rtc, 1, 0x59)
    set_reg(rtc, 0, 0x80 | 0x59)


@pytest.mark.parametrize("year,day", [(0x24, 0x29), (0x23, 0x28)])
def test_end_of_february_rolls_to_march(year, day):
    rtc = RealTimeClock(8)
    _set_date(rtc, year, 0x02, day)
    rtc.step(8_000_000)
    assert (rtc.month, rtc.day) == (3, 1)
    assert (rtc.hours, rtc.minutes, rtc.seconds) == (0, 0, 0)


def test_leap_february_28_does_not_roll_over():
    rtc = RealTimeClock(8)
    _set_date(rtc, 0x24, 0x02, 0x28)
    rtc.step(8_000_000)
    assert get_reg(rtc, 5) & 0x1F == 0x02
    assert get_reg(rtc, 5) & 0x20


def test_year_wraps_after_99():
    rtc = RealTimeClock(8)
    _set_date(rtc, 0x99, 0x12, 0x31)
    rtc.step(8_000_000)
    assert rtc.year == 0
    assert rtc.month == 1
    assert rtc.is_leap_year() is True


def test_day_of_week_wraps():
    rtc = RealTimeClock(8)
    _set_date(rtc, 0x24, 0x01, 0x10)
    set_reg(rtc, 3, 7)
    rtc.step(8_000_000)
    assert rtc.day_of_week == 1


def test_nvram_round_trip_marks_dirty():
    rtc = RealTimeClock()
    assert rtc.nvram_dirty is False
    set_reg(rtc, 0x25, 0xAB)
    assert rtc.nvram_dirty is True
    assert rtc.nvram[5] == 0xAB
    assert get_reg(rtc, 0x25) == 0xAB


def test_registers_above_nvram_read_ff():
    rtc = RealTimeClock()
    assert get_reg(rtc, 0x60) == 0xFF
    assert get_reg(rtc, 0x10) == 0


def test_system_time_starts_running():
    rtc = RealTimeClock()
    rtc.reset(True)
    assert rtc.running is True
    assert 1 <= rtc.day_of_week <= 7
    assert 1 <= rtc.month <= 12