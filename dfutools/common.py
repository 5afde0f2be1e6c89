"""Shared pieces for reading and writing memory image files."""

from __future__ import annotations

import logging
import string
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

logger = logging.getLogger(__name__)

PROGRESS_STEP = 5
MAX_PROTECTED_ADDRESSES = 2000
ADDRESS_MASK = 0xFFFFFFFF

VerifyCallback = Callable[[int, int], int]
ProgressCallback = Callable[[int], None]


class HexFormatError(ValueError):
    """A file does not follow the expected record format."""

    def __init__(self, message: str, line: Optional[int] = None) -> None:
        self.line = line
        self.reason = message
        text = f"FILE : line {line}: {message}" if line is not None else message
        super().__init__(text)


class AddressRangeError(HexFormatError):
    """A record addresses memory outside the accepted range."""


def _parse_hex(text: str, count: int) -> int:
    digits = text[:count]
    if len(digits) != count or any(c not in string.hexdigits for c in digits):
        raise HexFormatError(f"invalid hexadecimal digits {digits!r}")
    return int(digits, 16)


def parse_hex_byte(text: str) -> int:
    """Parse the two hexadecimal digits at the start of ``text``."""
    return _parse_hex(text, 2)


def parse_hex_word(text: str) -> int:
    """Parse the four hexadecimal digits at the start of ``text``."""
    return _parse_hex(text, 4)


@dataclass
class ProgressTracker:
    """Reports progress in steps of PROGRESS_STEP percent."""

    callback: Optional[ProgressCallback] = None
    next_step: int = PROGRESS_STEP
    reported: list[int] = field(default_factory=list)

    def update(self, current: int, total: int) -> int:
        """Report the next step if ``current`` reached it exactly; return the next step."""
        if total <= 0:
            return self.next_step
        percentage = int(current / total * 100)
        if percentage == self.next_step:
            self.reported.append(self.next_step)
            if self.callback is not None:
                self.callback(self.next_step)
            self.next_step += PROGRESS_STEP
        return self.next_step


@dataclass
class LoadContext:
    """State shared by the loaders: address checks, protection list and checksum."""

    verify: Optional[VerifyCallback] = None
    on_progress: Optional[ProgressCallback] = None
    report_format_errors: bool = True
    checksum: int = 0
    protected: list[int] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def warn(self, message: str) -> None:
        self.warnings.append(message)
        logger.warning(message)

    def progress(self) -> ProgressTracker:
        return ProgressTracker(self.on_progress)

    def protect(self, addresses: Iterable[int]) -> None:
        """Add addresses to the protected list, skipping ones already there."""
        for address in addresses:
            if address not in self.protected:
                self.protected.append(address)
        del self.protected[MAX_PROTECTED_ADDRESSES:]

    def unprotect(self, addresses: Iterable[int]) -> None:
        """Remove addresses from the protected list."""
        removed = set(addresses)
        self.protected = [a for a in self.protected if a not in removed]

    def clear_protected(self) -> None:
        self.protected.clear()

    def verify_range(self, start: int, end: int) -> int:
        """Ask the verify callback about a range: 0 rejects, 1 accepts, 2 warns."""
        if self.verify is None:
            return 1
        return self.verify(start, end)

    def check_address(self, line: int, address: int, last: int) -> int:
        """Check one address before it is written; raise if it is out of range."""
        if address in self.protected:
            self.warn(
                f"Warning: Address 0x{address:X} is protected and will not be programmed."
            )
        result = self.verify_range(address, address)
        if not result:
            raise AddressRangeError(
                f"Address between 0x{address:X} and 0x{last:X} is out of range ! "
                "- STOP loading.",
                line,
            )
        return result

    def add_to_checksum(self, value: int) -> int:
        self.checksum = (self.checksum + value) & ADDRESS_MASK
        return self.checksum