"""Motorola S-record (S19) loading and saving."""

from __future__ import annotations

from typing import Optional, TextIO

from .common import (
    ADDRESS_MASK,
    AddressRangeError,
    HexFormatError,
    LoadContext,
)

MAX_RECORD_LENGTH = 32

END_RECORD_S9 = "S9030000FC\n"
END_RECORD_S8 = "S804000000FB\n"
END_RECORD_S7 = "S70500000000FA\n"

_NOT_SREC = "Not in Motorola S19 format!"
_BAD_CHECKSUM = "Checksum error!"

# Data records: kind -> number of address bytes.
_DATA_RECORDS = {"1": 2, "2": 3, "3": 4}
# Termination records: kind -> {accepted byte count: address bytes}.
_END_RECORDS = {
    "7": {5: 4},
    "8": {4: 3},
    "9": {3: 2, 4: 3},
}


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


def _address_bytes_sum(address: int, width: int) -> int:
    return sum((address >> (8 * shift)) & 0xFF for shift in range(width))


def _store(image, address: int, value: int, line: int) -> None:
    try:
        image[address] = value
    except IndexError:
        raise AddressRangeError(
            f"Address 0x{address:X} is outside the memory image !", line
        ) from None


def _check_sum(scanner: _Scanner, total: int) -> None:
    checksum = scanner.hex(2)
    if (checksum + total + 1) % 256 != 0:
        raise HexFormatError(_BAD_CHECKSUM, scanner.line)


def load_srec(stream: TextIO, image, context: LoadContext) -> None:
    """Load a Motorola S-record file from ``stream`` into ``image``."""
    text = stream.read()
    scanner = _Scanner(text)
    tracker = context.progress()
    file_bytes = len(text) // 2
    context.checksum = 0
    count = 0
    bytes_read = 0

    while (char := scanner.next_char()) is not None:
        if char in "\r\n":
            scanner.line += 1
            continue
        if char == " ":
            continue
        if char != "S":
            raise HexFormatError(_NOT_SREC, scanner.line)

        kind = scanner.next_char()
        bytes_read += count + 2
        tracker.update(bytes_read, file_bytes)

        if kind == "0":
            count = scanner.hex(2)
            for _ in range(count):
                scanner.hex(2)
        elif kind in _DATA_RECORDS:
            width = _DATA_RECORDS[kind]
            count = scanner.hex(2)
            address = scanner.hex(2 * width)
            total = count + _address_bytes_sum(address, width)
            last = (address + count - width - 2) & ADDRESS_MASK
            for offset in range(max(count - width - 1, 0)):
                where = (address + offset) & ADDRESS_MASK
                context.check_address(scanner.line, where, last)
                value = scanner.hex(2)
                total += value
                context.add_to_checksum(value)
                _store(image, where, value, scanner.line)
            _check_sum(scanner, total)
        elif kind == "5":
            count = scanner.hex(2)
            if count != 3:
                raise HexFormatError("S5 line 'byte count' error!", scanner.line)
            records = scanner.hex(4)
            _check_sum(scanner, count + _address_bytes_sum(records, 2))
        elif kind in _END_RECORDS:
            count = scanner.hex(2)
            width = _END_RECORDS[kind].get(count)
            if width is None:
                raise HexFormatError(
                    f"S{kind} line 'byte count' error!", scanner.line
                )
            address = scanner.hex(2 * width)
            _check_sum(scanner, count + _address_bytes_sum(address, width))
            return
        else:
            raise HexFormatError(_NOT_SREC, scanner.line)


def save_srec(stream: TextIO, image, first: int, last: int, max_address: int) -> None:
    """Write ``image[first..last]`` as S1, S2 or S3 records, chosen by ``max_address``."""
    address = first
    while address <= last:
        length = min(MAX_RECORD_LENGTH, last - address + 1)
        if max_address > 0xFFFFFF:
            width = 4
            head = f"S3{length + 5:02x}{address & ADDRESS_MASK:08x}"
        elif max_address > 0xFFFF:
            width = 3
            head = f"S2{length + 4:02x}{address:06x}"
        else:
            width = 2
            head = f"S1{length + 3:02x}{address & 0xFFFF:04x}"
        data = bytes(image[where] for where in range(address, address + length))
        total = length + width + 1 + _address_bytes_sum(address, width) + sum(data)
        checksum = ~total & 0xFF
        stream.write(f"{head}{data.hex().upper()}{checksum:02X}\n")
        address += length


def end_record(max_address: int) -> str:
    """Return the termination record matching the widest address written."""
    if max_address > 0xFFFFFF:
        return END_RECORD_S7
    if max_address > 0xFFFF:
        return END_RECORD_S8
    return END_RECORD_S9