from collections import deque

from cx16emu.smc import SMC_VERSION_MAJOR, SystemManagementController


class FakeMouse:
    def __init__(self, device_id=0, data=()):
        self.device_id = device_id
        self.buffer = deque(data)

    def get_device_id(self):
        return self.device_id

    def set_device_id(self, device_id):
        self.device_id = device_id

    def buffer_count(self):
        return len(self.buffer)

    def buffer_next(self):
        return self.buffer.popleft() if self.buffer else 0


def make_smc(keys=(), mouse=None, long_press=False):
    keys = deque(keys)
    events = []
    smc = SystemManagementController(
        keyboard_next=lambda: keys.popleft() if keys else 0,
        mouse=mouse or FakeMouse(),
        power_off=lambda: events.append("off"),
        nmi=lambda: events.append("nmi"),
        long_press=long_press,
    )
    return smc, events


def read_at(smc, offset):
    smc.i2c_data(offset)
    return smc.read()


def command(smc, op, value):
    smc.i2c_data(op)
    smc.i2c_data(value)
    smc.write()


def test_version_register():
    smc, _ = make_smc()
    assert read_at(smc, 0x30) == SMC_VERSION_MAJOR


def test_default_op_reads_keyboard_after_first_transfer():
    smc, _ = make_smc(keys=[0x11, 0x22])
    assert read_at(smc, 0x07) == 0x11
    assert smc.read() == 0x22


def test_mouse_packet_of_three():
    mouse = FakeMouse(0, [8, 5, 6])
    smc, _ = make_smc(mouse=mouse)
    assert [read_at(smc, 0x21) for _ in range(3)] == [8, 5, 6]
    assert read_at(smc, 0x21) == 0


def test_incomplete_four_byte_packet_is_not_consumed():
    mouse = FakeMouse(3, [8, 5, 6])
    smc, _ = make_smc(mouse=mouse)
    assert read_at(smc, 0x42) == 0
    assert mouse.buffer_count() == 3
    mouse.buffer.append(9)
    assert [read_at(smc, 0x42) for _ in range(4)] == [8, 5, 6, 9]


def test_combined_keyboard_and_mouse():
    mouse = FakeMouse(0, [8, 1, 2])
    smc, _ = make_smc(keys=[0x1C, 0x2D], mouse=mouse)
    assert read_at(smc, 0x43) == 0x1C
    assert [read_at(smc, 0x43) for _ in range(3)] == [8, 1, 2]
    assert read_at(smc, 0x43) == 0x2D


def test_long_press_reported_once():
    smc, _ = make_smc(long_press=True)
    assert read_at(smc, 0x09) == 1
    assert read_at(smc, 0x09) == 0


def test_power_off_and_reset_commands():
    smc, events = make_smc()
    command(smc, 0x01, 0x00)
    assert events == ["off"]
    assert smc.requested_reset is False
    command(smc, 0x01, 0x01)
    assert smc.requested_reset is True


def test_reset_button():
    smc, _ = make_smc()
    command(smc, 0x02, 0x00)
    assert smc.requested_reset is True


def test_nmi_button():
    smc, events = make_smc()
    command(smc, 0x03, 0x01)
    assert events == []
    command(smc, 0x03, 0x00)
    assert events == ["nmi"]


def test_activity_led():
    smc, _ = make_smc()
    command(smc, 0x05, 200)
    assert smc.activity_led == 255
    command(smc, 0x05, 100)
    assert smc.activity_led == 0


def test_mouse_device_id_round_trip():
    mouse = FakeMouse()
    smc, _ = make_smc(mouse=mouse)
    command(smc, 0x20, 3)
    assert mouse.device_id == 3
    assert read_at(smc, 0x22) == 3


def test_default_read_op_can_be_changed():
    smc, _ = make_smc()
    command(smc, 0x40, 0x30)
    assert smc.default_read_op == 0x30
    assert smc.read() == SMC_VERSION_MAJOR


def test_unknown_offset_reads_ff():
    smc, _ = make_smc()
    assert read_at(smc, 0x77) == 0xFF