"""Pieces shared by the option byte editors: hex fields, DFU states, read protection."""

from __future__ import annotations

import re
from enum import IntEnum

ULONG_MAX = 0xFFFFFFFF
SET_ADDRESS_POINTER = 0x21

_HEX_FIELD = re.compile(r"\s*([+-]?)(?:0[xX](?=[0-9A-Fa-f]))?([0-9A-Fa-f]*)")


class DfuState(IntEnum):
    """States a DFU device reports in its status."""

    APP_IDLE = 0x00
    APP_DETACH = 0x01
    DFU_IDLE = 0x02
    DFU_DOWNLOAD_SYNC = 0x03
    DFU_DOWNLOAD_BUSY = 0x04
    DFU_DOWNLOAD_IDLE = 0x05
    DFU_MANIFEST_SYNC = 0x06
    DFU_MANIFEST = 0x07
    DFU_MANIFEST_WAIT_RESET = 0x08
    DFU_UPLOAD_IDLE = 0x09
    DFU_ERROR = 0x0A
    DFU_UPLOAD_SYNC = 0x91
    DFU_UPLOAD_BUSY = 0x92


class ReadProtection(IntEnum):
    """Read-out protection levels, valued by the RDP byte that selects them."""

    LEVEL_0 = 0xAA
    LEVEL_1 = 0xFF
    LEVEL_2 = 0xCC

    @classmethod
    def from_rdp(cls, rdp: int) -> "ReadProtection":
        """Map an RDP byte to its level; anything but 0xAA and 0xCC is level 1."""
        if rdp == cls.LEVEL_0:
            return cls.LEVEL_0
        if rdp == cls.LEVEL_2:
            return cls.LEVEL_2
        return cls.LEVEL_1


def parse_hex_field(text: str) -> int:
    """Read a hexadecimal number from the start of ``text`` the way strtoul does.

    Leading blanks, a sign and a ``0x`` prefix are accepted; parsing stops at
    the first non-hex character and yields 0 when no digit is found.
    """
    match = _HEX_FIELD.match(text)
    sign, digits = match.group(1), match.group(2)
    if not digits:
        return 0
    value = min(int(digits, 16), ULONG_MAX)
    if sign == "-":
        value = -value & ULONG_MAX
    return value


def set_address_command(address: int) -> bytes:
    """The DFU download payload that sets the device's address pointer."""
    if not 0 <= address <= ULONG_MAX:
        raise ValueError(f"address 0x{address:X} out of range")
    return bytes([SET_ADDRESS_POINTER]) + address.to_bytes(4, "little")


def select_protection(level: ReadProtection, checked: bool) -> ReadProtection:
    """The protection chosen after the box for ``level`` is ticked or cleared.

    Ticking a box selects its level. Clearing the level 0 box falls back to
    level 1; clearing either other box falls back to level 0.
    """
    level = ReadProtection(level)
    if checked:
        return level
    if level is ReadProtection.LEVEL_0:
        return ReadProtection.LEVEL_1
    return ReadProtection.LEVEL_0