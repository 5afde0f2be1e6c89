"""Option bytes of F2 devices: user byte, read protection and write protection."""

from __future__ import annotations

from dataclasses import dataclass, replace

from .option_common import ReadProtection, parse_hex_field, set_address_command

OPTION_ADDRESS = 0x1FFFC000
UPLOAD_LENGTH = 0x10
DOWNLOAD_LENGTH = 0x10

USER_FLAGS = {
    "nrst_stdby": 0x80,
    "nrst_stop": 0x40,
    "wdg_sw": 0x20,
    "bor_lev1": 0x08,
    "bor_lev0": 0x04,
}

_FIELD_WIDTHS = {"user": 2, "rdp": 2, "wrp": 4}


def _check_field(name: str, text: str) -> int:
    width = _FIELD_WIDTHS[name]
    if len(text) > width:
        raise ValueError(f"{name} field holds more than {width} characters")
    return parse_hex_field(text)


@dataclass(frozen=True)
class F2OptionBytes:
    """The option bytes of an F2 device; ``wrp`` holds both write-protection bytes."""

    user: int = 0x00
    rdp: int = ReadProtection.LEVEL_0.value
    wrp: int = 0xFFFF

    def __post_init__(self) -> None:
        for name, limit in (("user", 0xFF), ("rdp", 0xFF), ("wrp", 0xFFFF)):
            value = getattr(self, name)
            if not 0 <= value <= limit:
                raise ValueError(f"{name} value 0x{value:X} out of range")

    @classmethod
    def from_upload(cls, data: bytes) -> "F2OptionBytes":
        """Decode the block uploaded from the option area."""
        if len(data) < 10:
            raise ValueError(f"option upload too short: {len(data)} bytes")
        return cls(user=data[0], rdp=data[1], wrp=data[8] | (data[9] << 8))

    def to_download(self) -> bytes:
        """Encode the block downloaded to the option area."""
        block = bytearray(b"\xff" * DOWNLOAD_LENGTH)
        block[0] = self.user
        block[1] = self.rdp
        block[8] = self.wrp & 0xFF
        block[9] = self.wrp >> 8
        return bytes(block)

    @classmethod
    def read_command(cls) -> bytes:
        """The address command sent before uploading the option bytes."""
        return set_address_command(OPTION_ADDRESS)

    @classmethod
    def write_command(cls) -> bytes:
        """The address command sent before downloading the option bytes."""
        return set_address_command(OPTION_ADDRESS)

    def with_flag(self, name: str, enabled: bool) -> "F2OptionBytes":
        """Return a copy with one user flag set or cleared."""
        try:
            mask = USER_FLAGS[name]
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
    def from_fields(cls, user: str, rdp: str, wrp: str) -> "F2OptionBytes":
        """Build from the hexadecimal text fields of the editor."""
        return cls(
            user=_check_field("user", user) & 0xFF,
            rdp=_check_field("rdp", rdp) & 0xFF,
            wrp=_check_field("wrp", wrp) & 0xFFFF,
        )

    def fields(self) -> tuple[str, str, str]:
        """The user, RDP and WRP values as the editor shows them."""
        return f"{self.user:02X}", f"{self.rdp:02X}", f"{self.wrp:04X}"