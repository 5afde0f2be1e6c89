"""Loading and saving memory images by file name and extension."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence, TextIO, Union

from .common import HexFormatError, LoadContext
from .intel import END_RECORD as INTEL_END_RECORD
from .intel import load_intel, save_intel
from .osd import OsdFont, save_osd_hex
from .srec import END_RECORD_S9, end_record, load_srec, save_srec

PathLike = Union[str, "os.PathLike[str]"]
Loader = Callable[[TextIO, object, LoadContext], None]

_LOADERS: dict[str, Loader] = {
    ".HEX": load_intel,
    ".S19": load_srec,
    ".SX": load_srec,
}
# Formats tried in turn when the extension names none of them.
_FALLBACK_LOADERS: tuple[Loader, ...] = (load_intel, load_srec)
# End record written after OSD hex data, by extension.
_OSD_HEX_END_RECORDS = {
    ".HEX": INTEL_END_RECORD,
    ".S19": END_RECORD_S9,
    ".SX": END_RECORD_S9,
}
_OSD_FONT_EXTENSIONS = frozenset({".OSD", ".OS0", ".OS1"})


@dataclass(frozen=True)
class AddressRange:
    """An inclusive range of image addresses."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"bad address range 0x{self.start:X}-0x{self.end:X}")

    def __len__(self) -> int:
        return self.end - self.start + 1


def _extension(path: PathLike) -> str:
    return os.path.splitext(os.fspath(path))[1].upper()


def _load_any(path: PathLike, image, context: LoadContext) -> None:
    context.report_format_errors = False
    for loader in _FALLBACK_LOADERS:
        with open(path, "r") as stream:
            try:
                loader(stream, image, context)
            except HexFormatError:
                continue
            return
    raise HexFormatError("Unknown binary file format")


def _ranges(ranges: Iterable[AddressRange]) -> Sequence[AddressRange]:
    ranges = list(ranges)
    if not ranges:
        raise ValueError("no address range to save")
    return ranges


def load_file(path: PathLike, image, context: LoadContext) -> None:
    """Load an Intel HEX or S-record file into ``image``.

    The extension picks the format; an unknown extension tries each format.
    """
    loader = _LOADERS.get(_extension(path))
    if loader is None:
        _load_any(path, image, context)
        return
    context.report_format_errors = True
    with open(path, "r") as stream:
        loader(stream, image, context)


def save_file(path: PathLike, image, ranges: Iterable[AddressRange]) -> None:
    """Save the given ranges of ``image`` in the format named by the extension."""
    extension = _extension(path)
    if extension not in _LOADERS:
        raise ValueError(f"unknown file extension {extension!r}")
    ranges = _ranges(ranges)
    max_address = ranges[-1].end
    with open(path, "w") as stream:
        for area in ranges:
            if extension == ".HEX":
                save_intel(stream, image, area.start, area.end)
            else:
                save_srec(stream, image, area.start, area.end, max_address)
        if extension == ".HEX":
            stream.write(INTEL_END_RECORD)
        else:
            stream.write(end_record(max_address))


def specific_load(path: PathLike, image, context: LoadContext, font: OsdFont) -> None:
    """Load an OSD font file, or any Intel HEX or S-record file, into ``image``."""
    if _extension(path) in _OSD_FONT_EXTENSIONS:
        context.report_format_errors = True
        with open(path, "r") as stream:
            font.load(stream, image, context)
        return
    _load_any(path, image, context)


def specific_save(
    path: PathLike, image, ranges: Iterable[AddressRange], font: OsdFont
) -> None:
    """Save ``image`` as an OSD font file, or its ranges as OSD hex records."""
    extension = _extension(path)
    if extension in _OSD_FONT_EXTENSIONS:
        font.from_image(image)
        with open(path, "w") as stream:
            font.write(stream)
        return
    last_record = _OSD_HEX_END_RECORDS.get(extension)
    if last_record is None:
        raise ValueError(f"unknown file extension {extension!r}")
    ranges = _ranges(ranges)
    with open(path, "w") as stream:
        for area in ranges:
            save_osd_hex(stream, image, area.start, area.end)
        stream.write(last_record)