"""Intel HEX (32-bit extended) loading and saving."""

from __future__ import annotations

from typing import Optional, TextIO

from .common import (
    ADDRESS_MASK,
    AddressRangeError,
    HexFormatError,
    LoadContext,
)

END_RECORD = ":00000001FF\n"
SEGMENT_RESET_RECORD = ":020000020000FC\n"
MAX_RECORD_LENGTH = 32
RECORDS_PER_EXTENDED_BLOCK = 0x100

_NOT_INTEL = "Not in Intel Hex format!"
_BAD_CHECKSUM = "Bad hexadecimal checksum!"


class _Scanner:
    def __init__(self, text: str) -> None:
        self._text = text
        self._pos = 0
        self.line = 1

    def next_char(self) -> Optional[str]:
        if self._pos >= len(self._text):
            return None
        char = self._text[self._pos]
        self._pos += 1
        return char

    def hex(self, digits: int) -> int:
        chunk = self._text[self._pos:self._pos + digits]
        self._pos += digits
        try:
            if len(chunk) != digits:
                raise ValueError(chunk)
            return int(chunk, 16)
        except ValueError:
            raise HexFormatError("Bad hexadecimal digit!", self.line) from None


def _store(image, address: int, value: int, line: int) -> None:
    try:
        image[address] = value
    except IndexError:
        raise AddressRangeError(
            f"Address 0x{address:X} is outside the memory image !", line
        ) from None


def _check_sum(scanner: _Scanner, total: int) -> None:
    checksum = scanner.hex(2)
    if (checksum + total % 256) % 256 != 0:
        raise HexFormatError(_BAD_CHECKSUM, scanner.line)


def load_intel(stream: TextIO, image, context: LoadContext) -> None:
    """Load an Intel HEX file from ``stream`` into ``image``."""
    text = stream.read()
    scanner = _Scanner(text)
    tracker = context.progress()
    file_bytes = len(text) // 2
    context.checksum = 0
    base = 0
    extended = 0
    bytes_read = 0

    while (char := scanner.next_char()) is not None:
        if char in "\r\n":
            scanner.line += 1
            continue
        if char == " ":
            continue
        if char != ":":
            raise HexFormatError(_NOT_INTEL, scanner.line)

        count = scanner.hex(2)
        address = scanner.hex(4)
        kind = scanner.hex(2)
        total = count + (address >> 8) + (address & 0xFF) + kind

        if kind == 0x00:
            target = ((extended << 16) + (base << 4) + address) & ADDRESS_MASK
            last = (target + count - 1) & ADDRESS_MASK
            for offset in range(count):
                where = (target + offset) & ADDRESS_MASK
                context.check_address(scanner.line, where, last)
                value = scanner.hex(2)
                total += value
                context.add_to_checksum(value)
                _store(image, where, value, scanner.line)
            _check_sum(scanner, total)
        elif kind == 0x01:
            _check_sum(scanner, total)
        elif kind == 0x02:
            base = scanner.hex(4)
            _check_sum(scanner, total + (base >> 8) + (base & 0xFF))
        elif kind == 0x04:
            extended = scanner.hex(4)
            _check_sum(scanner, total + (extended >> 8) + (extended & 0xFF))
        elif kind in (0x03, 0x05):
            for _ in range(count):
                total += scanner.hex(2)
            _check_sum(scanner, total)
        else:
            raise HexFormatError(_NOT_INTEL, scanner.line)

        bytes_read += count + 1 + 4
        tracker.update(bytes_read, file_bytes)
        if kind == 0x01:
            return


def format_record(image, start: int, length: int) -> str:
    """Return one data record holding ``length`` bytes of ``image`` from ``start``."""
    if not 0 <= length <= 0xFF:
        raise ValueError(f"record length {length} out of range")
    data = bytes(image[address] for address in range(start, start + length))
    total = length + ((start >> 8) & 0xFF) + (start & 0xFF) + sum(data)
    return (
        f":{length:02X}{start & 0xFFFF:04X}00"
        f"{data.hex().upper()}{(-total) & 0xFF:02X}\n"
    )


def _extended_record(extended: int) -> str:
    checksum = (-((extended >> 8) + (extended & 0xFF) + 6)) & 0xFF
    return f":02000004{extended:04X}{checksum:02X}\n"


def save_intel(stream: TextIO, image, first: int, last: int) -> None:
    """Write ``image[first..last]`` as Intel HEX records, without the end record."""
    address = first
    while address <= last:
        stream.write(_extended_record((address >> 16) & 0xFFFF))
        stream.write(SEGMENT_RESET_RECORD)
        for _ in range(RECORDS_PER_EXTENDED_BLOCK):
            length = min(MAX_RECORD_LENGTH, last - address + 1)
            stream.write(format_record(image, address, length))
            address += length
            if address > last:
                break