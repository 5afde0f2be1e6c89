"""OSD hex files and ST9 OSD font files."""

from __future__ import annotations

import io
import re
from dataclasses import dataclass, field
from typing import Optional, TextIO

from .common import (
    ADDRESS_MASK,
    AddressRangeError,
    HexFormatError,
    LoadContext,
    parse_hex_byte,
    parse_hex_word,
)

NB_CHAR = 512
ROW_PER_CHAR = 10
BYTES_PER_CHAR = 2 * ROW_PER_CHAR
FONT_SIZE = 16384
MAX_AREAS = 10
ROW_GROUPS = 5
AREA_STRIDE = NB_CHAR * 2
AREA_SIZE = ROW_GROUPS * AREA_STRIDE

CHAR_TEST_LINE = 32
TEST_CHAR = bytes(
    [
        0x02, 0x01, 0x00, 0x41, 0x02, 0xE1, 0x02, 0x54, 0x02, 0x08,
        0x02, 0x14, 0x02, 0x42, 0x03, 0xC1, 0x02, 0x00, 0x02, 0x1C,
    ]
)

MAX_RECORD_LENGTH = 36
LINE_ADDRESS_GAP = 0x1C
FONT_LINE_LENGTH = 52

_NOT_INTEL = "Not in Intel Hex format!"
_NOT_OSD = "Not an OSD font file"

# Rows feeding bits 1:0, 3:2, 5:4 and 7:6 of the second EPROM, per address <12:10>.
_EPROM2_ROWS = (
    (1, 1, 0, 2),
    (3, 1, 2, 4),
    (5, 3, 4, 6),
    (7, 5, 6, 8),
    (9, 7, 8, 2),
)

_MAPPING_ENTRY = re.compile(r"\s*\[\s*(?:0[xX])?([0-9A-Fa-f]+)")


def _field(line: str, offset: int, digits: int, message: str, lineno: int) -> int:
    parse = parse_hex_byte if digits == 2 else parse_hex_word
    try:
        return parse(line[offset:])
    except HexFormatError:
        raise HexFormatError(message, lineno) from None


def _store(image, address: int, value: int, line: int) -> None:
    try:
        image[address] = value
    except IndexError:
        raise AddressRangeError(
            f"Address 0x{address:X} is outside the memory image !", line
        ) from None


def load_osd_hex(stream: TextIO, image, context: LoadContext) -> None:
    """Load an OSD hex file, whose line addresses advance by a fixed gap."""
    text = stream.read()
    tracker = context.progress()
    size = max(len(text), 1)
    bytes_read = 0

    for lineno, line in enumerate(io.StringIO(text), start=1):
        if not line.startswith(":"):
            raise HexFormatError(_NOT_INTEL, lineno)
        bytes_read += len(line)
        tracker.update(bytes_read, size)

        count = _field(line, 1, 2, "Bad hexadecimal count of byte!", lineno)
        address = _field(line, 3, 4, "Bad hexadecimal address!", lineno)
        kind = _field(line, 7, 2, "Bad hexadecimal record type!", lineno)
        total = count + (address >> 8) + (address & 0xFF) + kind
        address = (address - LINE_ADDRESS_GAP * (lineno - 1)) & ADDRESS_MASK

        if kind == 0:
            valid = context.verify_range(address, (address + count - 1) & ADDRESS_MASK)
            if not valid:
                raise AddressRangeError("Address out of range !", lineno)
            if valid == 2:
                context.warn(f"FILE : line {lineno}: Address in a non valid area")

        position = 9
        for _ in range(count):
            value = _field(line, position, 2, "Bad hexadecimal digit!", lineno)
            total += value
            context.add_to_checksum(value)
            if kind == 0:
                _store(image, address, value, lineno)
                address = (address + 1) & ADDRESS_MASK
            position += 2

        total += _field(line, position, 2, "Bad hexadecimal checksum!", lineno)
        if total % 256:
            raise HexFormatError("Checksum error!", lineno)
        if kind == 1:
            return

    raise HexFormatError("Unexpected end of file!")


def save_osd_hex(stream: TextIO, image, first: int, last: int) -> None:
    """Write ``image[first..last]`` as OSD hex records, without the end record."""
    line_address = 0
    address = first
    while address <= last:
        length = min(MAX_RECORD_LENGTH, last - address + 1)
        data = bytes(image[where] for where in range(address, address + length))
        total = length + ((line_address >> 8) & 0xFF) + (line_address & 0xFF) + sum(data)
        stream.write(
            f":{length:02X}{line_address & 0xFFFF:04X}00"
            f"{data.hex().upper()}{(-total) & 0xFF:02X}\n"
        )
        line_address += length + LINE_ADDRESS_GAP
        address += length


def _check_area(image, start: int) -> None:
    if start < 0 or start + AREA_SIZE > len(image):
        raise AddressRangeError(
            f"OSD area at 0x{start:X} does not fit in the memory image !"
        )


@dataclass
class OsdFont:
    """The two OSD fonts and the memory areas they are spread over."""

    number: int = 0
    font0: bytearray = field(default_factory=lambda: bytearray(FONT_SIZE))
    font1: bytearray = field(default_factory=lambda: bytearray(FONT_SIZE))
    start_addresses: list[int] = field(default_factory=lambda: [0] * MAX_AREAS)

    @property
    def font(self) -> bytearray:
        """The font selected by ``number``."""
        return self.font1 if self.number else self.font0

    def set_mapping(self, text: Optional[str]) -> list[int]:
        """Read area start addresses from lines like ``[min-max]``; return them."""
        if self.number == 0:
            self.font0[:] = b"\xff" * FONT_SIZE
            self.font1[:] = b"\xff" * FONT_SIZE
        if text is None:
            raise ValueError("OSD Mapping not found")
        entries = [entry for entry in text.split("\n") if entry]
        if not entries:
            raise ValueError("OSD mapping is empty")
        if len(entries) > MAX_AREAS:
            raise ValueError(f"OSD mapping has more than {MAX_AREAS} areas")
        for index, entry in enumerate(entries):
            match = _MAPPING_ENTRY.match(entry)
            if match is None:
                raise ValueError(f"bad OSD mapping entry {entry!r}")
            self.start_addresses[index] = int(match.group(1), 16)
        return self.start_addresses[: len(entries)]

    def load(self, stream: TextIO, image, context: LoadContext) -> None:
        """Load an OSD font file into the selected font and lay it out in ``image``."""
        text = stream.read().replace("\r\n", "\n")
        if not text.startswith("#"):
            raise HexFormatError(_NOT_OSD)
        header_end = text.find("\n")
        if header_end < 0:
            raise HexFormatError(_NOT_OSD)

        # The format is sized for CRLF line ends, two bytes per newline.
        size = len(text) + text.count("\n")
        size -= header_end + 2
        count = size // FONT_LINE_LENGTH * 40 // 2
        if count != NB_CHAR * ROW_PER_CHAR * 2:
            raise HexFormatError(_NOT_OSD)

        digits = "".join(text[header_end + 1:].split())
        if len(digits) < 2 * count:
            raise HexFormatError("Unexpected end of file!")
        try:
            values = bytes.fromhex(digits[: 2 * count])
        except ValueError:
            raise HexFormatError("Bad hexadecimal digit!") from None

        context.checksum = 0
        tracker = context.progress()
        for index, value in enumerate(values):
            context.add_to_checksum(value)
            tracker.update(index, size)
        self.font[:count] = values

        test_start = CHAR_TEST_LINE * BYTES_PER_CHAR
        test_end = test_start + len(TEST_CHAR)
        self.font0[test_start:test_end] = TEST_CHAR
        self.font1[test_start:test_end] = TEST_CHAR

        self.build_eproms(image)

    def _lsb_area(self, offset: int) -> bytearray:
        out = bytearray()
        for row in range(ROW_GROUPS):
            for char in range(NB_CHAR):
                index = offset + row * 4 + char * BYTES_PER_CHAR
                out += bytes((self.font0[index], self.font1[index]))
        return out

    def _msb_area(self) -> bytearray:
        out = bytearray()
        for a, b, c, d in _EPROM2_ROWS:
            for char in range(NB_CHAR):
                pair = []
                for font in (self.font0, self.font1):
                    base = char * BYTES_PER_CHAR
                    rows = font[base:base + BYTES_PER_CHAR:2]
                    pair.append(
                        (rows[a] & 0x03)
                        | ((rows[b] << 2) & 0x0C)
                        | ((rows[c] << 4) & 0x30)
                        | ((rows[d] << 6) & 0xC0)
                    )
                out += bytes(pair)
        return out

    def build_eproms(self, image) -> None:
        """Spread both fonts over the three memory areas of the mapping."""
        odd_start, msb_start, even_start = self.start_addresses[:3]
        for start in (odd_start, msb_start, even_start):
            _check_area(image, start)
        image[even_start:even_start + AREA_SIZE] = self._lsb_area(1)
        image[msb_start:msb_start + AREA_SIZE] = self._msb_area()
        image[odd_start:odd_start + AREA_SIZE] = self._lsb_area(3)

    def from_image(self, image) -> None:
        """Rebuild both fonts from the three memory areas of the mapping."""
        odd_start, msb_start, even_start = self.start_addresses[:3]
        for start in (odd_start, msb_start, even_start):
            _check_area(image, start)
        for font, offset in ((self.font0, 0), (self.font1, 1)):
            for char in range(NB_CHAR):
                base = char * BYTES_PER_CHAR
                for row in range(ROW_GROUPS):
                    shift = offset + 2 * char + AREA_STRIDE * row
                    font[base + 1 + 4 * row] = image[even_start + shift]
                    font[base + 3 + 4 * row] = image[odd_start + shift]
            for group in range(ROW_GROUPS):
                area = msb_start + group * AREA_STRIDE
                for char in range(NB_CHAR):
                    data = image[area + offset + 2 * char]
                    base = char * BYTES_PER_CHAR + 4 * group
                    font[base] = (data >> 4) & 0x03
                    font[base + 2] = data & 0x03

    def write(self, stream: TextIO) -> None:
        """Write the selected font as an OSD font file."""
        font = self.font
        stream.write("#\n")
        for char in range(NB_CHAR):
            chunk = font[char * BYTES_PER_CHAR:(char + 1) * BYTES_PER_CHAR]
            groups = "".join(
                f"{chunk[2 * row]:02X}{chunk[2 * row + 1]:02X} "
                for row in range(ROW_PER_CHAR)
            )
            stream.write(groups + "\n")
        stream.write("\n")