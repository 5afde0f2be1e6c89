"""Intel HEX, S-record and OSD file handling, option byte encoding and a progress model."""

__version__ = "0.1.0"

__all__ = [
    "common",
    "intel",
    "srec",
    "osd",
    "files",
    "progress",
    "option_common",
    "option_f2",
    "option_l1",
]