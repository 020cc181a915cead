"""Decoding of the 40-byte wireless remote block sent by the robot."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field, fields
from typing import Union

__all__ = ["REMOTE_SIZE", "KeySwitches", "RockerButtons", "decode_rocker", "joy_message"]

# head[2], key switch word, lx, rx, ry, L2, ly, idle[16]; little-endian, naturally aligned.
_LAYOUT = struct.Struct("<2sH5f16s")
REMOTE_SIZE = _LAYOUT.size


@dataclass(frozen=True)
class KeySwitches:
    """The 16 remote buttons, in bit order from the least significant bit."""

    r1: bool = False
    l1: bool = False
    start: bool = False
    select: bool = False
    r2: bool = False
    l2: bool = False
    f1: bool = False
    f2: bool = False
    a: bool = False
    b: bool = False
    x: bool = False
    y: bool = False
    up: bool = False
    right: bool = False
    down: bool = False
    left: bool = False

    @classmethod
    def from_value(cls, value: int) -> "KeySwitches":
        """Unpack a 16-bit key switch word."""
        if not 0 <= value <= 0xFFFF:
            raise ValueError(f"key switch word must fit in 16 bits, got {value}")
        return cls(*(bool(value >> bit & 1) for bit in range(len(fields(cls)))))

    @property
    def value(self) -> int:
        """Pack the buttons into a 16-bit key switch word."""
        return sum(1 << bit for bit, f in enumerate(fields(self)) if getattr(self, f.name))


@dataclass(frozen=True)
class RockerButtons:
    """Sticks and buttons of the wireless remote."""

    buttons: KeySwitches = field(default_factory=KeySwitches)
    lx: float = 0.0
    rx: float = 0.0
    ry: float = 0.0
    l2: float = 0.0
    ly: float = 0.0
    head: bytes = bytes(2)
    idle: bytes = bytes(16)

    def pack(self) -> bytes:
        """Return the 40-byte wire form."""
        if len(self.head) != 2:
            raise ValueError("head must be 2 bytes")
        if len(self.idle) != 16:
            raise ValueError("idle must be 16 bytes")
        return _LAYOUT.pack(
            bytes(self.head), self.buttons.value, self.lx, self.rx, self.ry, self.l2, self.ly, bytes(self.idle)
        )


def decode_rocker(data: Union[bytes, bytearray, memoryview]) -> RockerButtons:
    """Decode the 40-byte wireless remote block."""
    raw = bytes(data)
    if len(raw) != REMOTE_SIZE:
        raise ValueError(f"wireless remote data must be {REMOTE_SIZE} bytes, got {len(raw)}")
    head, value, lx, rx, ry, l2, ly, idle = _LAYOUT.unpack(raw)
    return RockerButtons(
        buttons=KeySwitches.from_value(value), lx=lx, rx=rx, ry=ry, l2=l2, ly=ly, head=head, idle=idle
    )


def joy_message(data: Union[bytes, bytearray, memoryview, RockerButtons]) -> tuple[list[float], list[int]]:
    """Return ``(axes, buttons)`` laid out like a Logitech F710 gamepad.

    Axes are ``[-lx, ly, -rx, ry]``; buttons are X, A, B, Y, L1, R1, L2, R2, select, start.
    """
    rocker = data if isinstance(data, RockerButtons) else decode_rocker(data)
    keys = rocker.buttons
    axes = [-rocker.lx, rocker.ly, -rocker.rx, rocker.ry]
    buttons = [
        int(pressed)
        for pressed in (keys.x, keys.a, keys.b, keys.y, keys.l1, keys.r1, keys.l2, keys.r2, keys.select, keys.start)
    ]
    return axes, buttons