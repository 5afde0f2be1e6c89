# dfutools

Helpers for firmware images on their way to and from a DFU-capable
microcontroller. Everything works on plain Python objects: a memory image is
any mutable byte sequence, such as a `bytearray`.

## What is in the package

- `dfutools.common`: `LoadContext`, the state shared by the loaders (an
  optional verify callback, an optional progress callback, a list of protected
  addresses, collected warnings and the running checksum of the data bytes),
  plus `HexFormatError`, `AddressRangeError`, `ProgressTracker`,
  `parse_hex_byte` and `parse_hex_word`.
- `dfutools.intel`: `load_intel`, `save_intel` and `format_record` for
  Intel HEX files with extended linear address records.
- `dfutools.srec`: `load_srec`, `save_srec` and `end_record` for Motorola
  S-record files (S1/S2/S3 data, S0/S5 skipped, S7/S8/S9 ending the file).
- `dfutools.osd`: `load_osd_hex` and `save_osd_hex` for the OSD hex layout,
  and `OsdFont` for OSD font files.
- `dfutools.files`: `load_file`, `save_file`, `specific_load`,
  `specific_save` and `AddressRange`, which choose the format from the file
  extension.
- `dfutools.option_common`, `dfutools.option_f2`, `dfutools.option_l1`:
  encoding and decoding of F2 and L1 option bytes.
- `dfutools.progress`: `TextProgress`, a progress bar model computing the
  fraction, label and filled width.

## Install

```
pip install .
```

## Loading and saving an image

```python
from dfutools.common import LoadContext
from dfutools.files import AddressRange, load_file, save_file

image = bytearray(0x10000)
context = LoadContext()
load_file("firmware.hex", image, context)
print(hex(context.checksum))   # sum of the data bytes loaded

save_file("copy.s19", image, [AddressRange(0x0000, 0x00FF)])
```

`load_file` picks the loader from the extension (`.hex`, `.s19`, `.sx`, in
any case); for any other extension it tries Intel HEX and then S-record, and
raises `HexFormatError("Unknown binary file format")` if neither fits.
`save_file` accepts only those three extensions. S-record output uses S1, S2
or S3 records depending on the end of the last range, followed by the matching
S9, S8 or S7 end record.

Malformed files raise `HexFormatError`, which carries the `line` number.
Addresses outside the image, or refused by the verify callback, raise
`AddressRangeError`.

### Checking addresses

```python
def verify(start, end):
    return 1 if end < 0x8000 else 0   # 0 rejects, 1 accepts

context = LoadContext(verify=verify, on_progress=print)
context.protect([0x0010, 0x0011])
```

Loading data at a protected address still writes it, but adds a warning to
`context.warnings`. `unprotect` and `clear_protected` edit the list. The
progress callback is called with 5, 10, 15, ... as a load moves through the
file.

## OSD files

```python
from dfutools.osd import OsdFont
from dfutools.files import specific_load, specific_save

font = OsdFont(number=0)
font.set_mapping("[0000-27FF]\n[2800-4FFF]\n[5000-77FF]")
image = bytearray(0x8000)
specific_load("font.osd", image, LoadContext(), font)
specific_save("font_copy.osd", image, [], font)
```

`set_mapping` reads one `[min-max]` entry per line and keeps the start
addresses; the first three are the areas the fonts are spread over. With
`number` 0 it also fills both fonts with `0xFF`. For `.osd`, `.os0` and `.os1`
files `specific_load` reads the font selected by `number` and lays both fonts
out in the image; `specific_save` rebuilds the fonts from the image and writes
the selected one. For `.hex`, `.s19` and `.sx` names `specific_save` writes the
ranges as OSD hex records.

## Option bytes

```python
from dfutools.option_f2 import F2OptionBytes

options = F2OptionBytes.from_fields("EC", "AA", "FFFF")
options = options.with_flag("wdg_sw", False)
print(options.fields())        # ('CC', 'AA', 'FFFF')
print(options.protection())    # ReadProtection.LEVEL_0
payload = options.to_download()
```

F2 flags are `nrst_stdby`, `nrst_stop`, `wdg_sw`, `bor_lev1` and `bor_lev0`.
`L1OptionBytes` works the same way with six WRP words, the flags `bf2`,
`nrst_stdby`, `nrst_stop`, `wdg_sw` and `bor_lev0` to `bor_lev3`, and a
download block in which each value sits beside its complement.
`from_upload` decodes the block read from the device. `read_command()` and
`write_command()` return the DFU "set address pointer" payloads to send
first. `option_common.select_protection` gives the read-out protection level
chosen when one of the three protection boxes is ticked or cleared, and
`parse_hex_field` reads a hex field the lenient way an editor field is read.

## Progress model

```python
from dfutools.progress import TextProgress

bar = TextProgress()
bar.resize(200)          # until a width is set, set_pos returns -1
bar.set_pos(25)
print(bar.label(), bar.bar_width(200))   # 25% 50
```

## What the package does not do

It does not talk to devices: there is no USB or DFU transport, so reading and
writing option bytes means sending the payloads built here with some other
DFU library. It has no graphical interface and no command-line program; it is
a library only.

## Running the tests

```
pip install .[test]
pytest
```