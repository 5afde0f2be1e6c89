"""Option bytes of L1 devices: user byte, read protection and six write-protection words."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Sequence

from .option_common import ReadProtection, parse_hex_field, set_address_command

READ_ADDRESS = 0x1FF80000
WRITE_ADDRESS = 0x1F800000
UPLOAD_LENGTH = 0x20
DOWNLOAD_LENGTH = 0x20
WRP_WORDS = 6

USER_FLAGS = {
    "bf2": 0x80,
    "nrst_stdby": 0x40,
    "nrst_stop": 0x20,
    "wdg_sw": 0x10,
    "bor_lev3": 0x08,
    "bor_lev2": 0x04,
    "bor_lev1": 0x02,
    "bor_lev0": 0x01,
}

# Masks applied when a flag is toggled; nRST_STOP toggles both reset bits.
_TOGGLE_MASKS = {**USER_FLAGS, "nrst_stop": 0x60}

_FIELD_WIDTHS = {"user": 2, "rdp": 2, "wrp": 4}
_WRP_OFFSETS = tuple(8 + 4 * index for index in range(WRP_WORDS))


def _check_field(name: str, text: str) -> int:
    width = _FIELD_WIDTHS[name]
    if len(text) > width:
        raise ValueError(f"{name} field holds more than {width} characters")
    return parse_hex_field(text)


def _complement(value: int) -> int:
    return ~value & 0xFF


@dataclass(frozen=True)
class L1OptionBytes:
    """The option bytes of an L1 device; ``wrp`` holds six 16-bit protection words."""

    user: int = 0x00
    rdp: int = ReadProtection.LEVEL_0.value
    wrp: tuple[int, ...] = field(default=(0,) * WRP_WORDS)

    def __post_init__(self) -> None:
        for name in ("user", "rdp"):
            value = getattr(self, name)
            if not 0 <= value <= 0xFF:
                raise ValueError(f"{name} value 0x{value:X} out of range")
        wrp = tuple(self.wrp)
        if len(wrp) != WRP_WORDS:
            raise ValueError(f"expected {WRP_WORDS} WRP words, got {len(wrp)}")
        for word in wrp:
            if not 0 <= word <= 0xFFFF:
                raise ValueError(f"wrp value 0x{word:X} out of range")
        object.__setattr__(self, "wrp", wrp)

    @classmethod
    def from_upload(cls, data: bytes) -> "L1OptionBytes":
        """Decode the block uploaded from the option area."""
        needed = _WRP_OFFSETS[-1] + 2
        if len(data) < needed:
            raise ValueError(f"option upload too short: {len(data)} bytes")
        wrp = tuple(data[offset] | (data[offset + 1] << 8) for offset in _WRP_OFFSETS)
        return cls(user=data[4], rdp=data[0], wrp=wrp)

    def to_download(self) -> bytes:
        """Encode the block downloaded to the option area, each value beside its complement."""
        block = bytearray(b"\xff" * DOWNLOAD_LENGTH)
        block[0:4] = bytes((self.rdp, 0x00, _complement(self.rdp), 0x00))
        block[4:8] = bytes((self.user, 0x00, _complement(self.user), 0x00))
        for offset, word in zip(_WRP_OFFSETS, self.wrp):
            low, high = word & 0xFF, word >> 8
            block[offset:offset + 4] = bytes(
                (low, high, _complement(low), _complement(high))
            )
        return bytes(block)

    @classmethod
    def read_command(cls) -> bytes:
        """The address command sent before uploading the option bytes."""
        return set_address_command(READ_ADDRESS)

    @classmethod
    def write_command(cls) -> bytes:
        """The address command sent before downloading the option bytes."""
        return set_address_command(WRITE_ADDRESS)

    def with_flag(self, name: str, enabled: bool) -> "L1OptionBytes":
        """Return a copy with one user flag set or cleared."""
        try:
            mask = _TOGGLE_MASKS[name]
        except KeyError:
            raise ValueError(f"unknown user flag {name!r}") from None
        user = self.user | mask if enabled else self.user & ~mask & 0xFF
        return replace(self, user=user)

    def flags(self) -> dict[str, bool]:
        """The state of every user flag."""
        return {name: bool(self.user & mask) for name, mask in USER_FLAGS.items()}

    def protection(self) -> ReadProtection:
        return ReadProtection.from_rdp(self.rdp)

    @classmethod
    def from_fields(cls, user: str, rdp: str, wrp: Sequence[str]) -> "L1OptionBytes":
        """Build from the hexadecimal text fields of the editor."""
        wrp = list(wrp)
        if len(wrp) != WRP_WORDS:
            raise ValueError(f"expected {WRP_WORDS} WRP fields, got {len(wrp)}")
        return cls(
            user=_check_field("user", user) & 0xFF,
            rdp=_check_field("rdp", rdp) & 0xFF,
            wrp=tuple(_check_field("wrp", text) & 0xFFFF for text in wrp),
        )

    def fields(self) -> tuple[str, str, tuple[str, ...]]:
        """The user, RDP and WRP values as the editor shows them."""
        return (
            f"{self.user:02X}",
            f"{self.rdp:02X}",
            tuple(f"{word:04X}" for word in self.wrp),
        )