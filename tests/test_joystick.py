import struct

import pytest

from leggedctl.joystick import REMOTE_SIZE, KeySwitches, RockerButtons, decode_rocker, joy_message


def test_remote_block_is_forty_bytes():
    assert REMOTE_SIZE == 40
    assert len(RockerButtons().pack()) == 40


def test_key_switch_bit_order():
    assert KeySwitches.from_value(1) == KeySwitches(r1=True)
    assert KeySwitches.from_value(1 << 10) == KeySwitches(x=True)
    assert KeySwitches.from_value(1 << 15) == KeySwitches(left=True)


def test_key_switch_round_trip():
    for value in (0, 1, 0x00FF, 0xA5A5, 0xFFFF):
        assert KeySwitches.from_value(value).value == value


def test_key_switch_out_of_range():
    with pytest.raises(ValueError):
        KeySwitches.from_value(0x10000)
    with pytest.raises(ValueError):
        KeySwitches.from_value(-1)


def test_rocker_round_trip():
    rocker = RockerButtons(
        buttons=KeySwitches(a=True, start=True),
        lx=0.5,
        rx=-0.25,
        ry=0.75,
        l2=1.0,
        ly=-1.0,
        head=b"\xfe\xef",
        idle=bytes(range(16)),
    )
    assert decode_rocker(rocker.pack()) == rocker


def test_decode_reads_little_endian_layout():
    raw = struct.pack("<2sH5f16s", b"\x00\x00", 1 << 8, 0.5, 0.0, 0.0, 0.0, -0.25, bytes(16))
    rocker = decode_rocker(raw)
    assert rocker.buttons == KeySwitches(a=True)
    assert rocker.lx == 0.5
    assert rocker.ly == -0.25


def test_decode_rejects_wrong_length():
    with pytest.raises(ValueError):
        decode_rocker(bytes(39))
    with pytest.raises(ValueError):
        decode_rocker(bytes(41))


def test_pack_rejects_bad_padding():
    with pytest.raises(ValueError):
        RockerButtons(head=b"\x00").pack()
    with pytest.raises(ValueError):
        RockerButtons(idle=bytes(3)).pack()


def test_joy_message_axes():
    rocker = RockerButtons(lx=0.5, ly=-0.25, rx=0.75, ry=1.0)
    axes, _ = joy_message(rocker.pack())
    assert axes == [-0.5, -0.25, -0.75, 1.0]


def test_joy_message_button_order():
    _, buttons = joy_message(RockerButtons(buttons=KeySwitches(x=True)))
    assert buttons[0] == 1
    assert sum(buttons) == 1
    _, buttons = joy_message(RockerButtons(buttons=KeySwitches(start=True)))
    assert buttons[-1] == 1
    assert sum(buttons) == 1


def test_joy_message_ignores_unmapped_buttons():
    keys = KeySwitches(f1=True, f2=True, up=True, right=True, down=True, left=True)
    _, buttons = joy_message(RockerButtons(buttons=keys))
    assert len(buttons) == 10
    assert sum(buttons) == 0


def test_joy_message_all_mapped_buttons():
    _, buttons = joy_message(RockerButtons(buttons=KeySwitches.from_value(0xFFFF)))
    assert len(buttons) == 10
    assert all(b == 1 for b in buttons)