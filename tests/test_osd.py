import io
import random

import pytest

from dfutools.common import AddressRangeError, HexFormatError, LoadContext
from dfutools.osd import (
    AREA_SIZE,
    BYTES_PER_CHAR,
    CHAR_TEST_LINE,
    FONT_SIZE,
    MAX_RECORD_LENGTH,
    NB_CHAR,
    ROW_PER_CHAR,
    TEST_CHAR,
    OsdFont,
    load_osd_hex,
    save_osd_hex,
)

MAPPING = "[0-13FF]\n[1400-27FF]\n[2800-3BFF]\n"
USED = NB_CHAR * BYTES_PER_CHAR
END = ":00000001FF\n"


def _random_bytes(count, seed=1):
    rng = random.Random(seed)
    return bytes(rng.randrange(256) for _ in range(count))


def _saved(image, first, last):
    out = io.StringIO()
    save_osd_hex(out, image, first, last)
    out.write(END)
    return out.getvalue()


def _font(number=0):
    font = OsdFont(number=number)
    font.set_mapping(MAPPING)
    return font


def test_save_single_record():
    out = io.StringIO()
    save_osd_hex(out, bytearray([1, 2, 3]), 0, 2)
    assert out.getvalue() == ":03000000010203F7\n"


def test_save_splits_records_at_maximum_length():
    image = bytearray(_random_bytes(100))
    out = io.StringIO()
    save_osd_hex(out, image, 0, 99)
    lengths = [int(line[1:3], 16) for line in out.getvalue().splitlines()]
    assert max(lengths) == MAX_RECORD_LENGTH
    assert sum(lengths) == 100


def test_hex_round_trip():
    data = _random_bytes(200, seed=7)
    text = _saved(bytearray(data), 0, len(data) - 1)
    image = bytearray(len(data))
    load_osd_hex(io.StringIO(text), image, LoadContext())
    assert bytes(image) == data


def test_hex_load_accumulates_checksum():
    data = _random_bytes(50, seed=3)
    context = LoadContext()
    load_osd_hex(io.StringIO(_saved(bytearray(data), 0, 49)), bytearray(50), context)
    assert context.checksum == sum(data)


def test_hex_load_verifies_line_adjusted_ranges():
    data = _random_bytes(2 * MAX_RECORD_LENGTH)
    calls = []

    def verify(start, end):
        calls.append((start, end))
        return 1

    text = _saved(bytearray(data), 0, len(data) - 1)
    image = bytearray(len(data))
    context = LoadContext(verify=verify)
    load_osd_hex(io.StringIO(text), image, context)
    assert calls == [
        (0, MAX_RECORD_LENGTH - 1),
        (MAX_RECORD_LENGTH, 2 * MAX_RECORD_LENGTH - 1),
    ]
    assert bytes(image) == data
    assert context.checksum == sum(data)


def test_hex_bad_checksum():
    with pytest.raises(HexFormatError) as info:
        load_osd_hex(io.StringIO(":0100000001FF\n" + END), bytearray(4), LoadContext())
    assert info.value.line == 1
    assert "Checksum error!" in str(info.value)


def test_hex_missing_colon():
    with pytest.raises(HexFormatError) as info:
        load_osd_hex(io.StringIO("0100000001FE\n"), bytearray(4), LoadContext())
    assert "Not in Intel Hex format!" in str(info.value)


def test_hex_missing_end_record():
    with pytest.raises(HexFormatError, match="Unexpected end of file!"):
        load_osd_hex(io.StringIO(":0100000001FE\n"), bytearray(4), LoadContext())


def test_hex_bad_digit():
    with pytest.raises(HexFormatError, match="Bad hexadecimal digit!"):
        load_osd_hex(io.StringIO(":01000000ZZFE\n" + END), bytearray(4), LoadContext())


def test_hex_rejected_address():
    context = LoadContext(verify=lambda start, end: 0)
    with pytest.raises(AddressRangeError, match="Address out of range !"):
        load_osd_hex(io.StringIO(_saved(bytearray(4), 0, 3)), bytearray(4), context)


def test_hex_warned_address_still_loads():
    data = bytes([9, 8, 7, 6])
    context = LoadContext(verify=lambda start, end: 2)
    image = bytearray(4)
    load_osd_hex(io.StringIO(_saved(bytearray(data), 0, 3)), image, context)
    assert bytes(image) == data
    assert len(context.warnings) == 1
    assert "non valid area" in context.warnings[0]


def test_set_mapping_reads_start_addresses():
    font = OsdFont()
    assert font.set_mapping(MAPPING) == [0, 0x1400, 0x2800]
    assert font.start_addresses[:3] == [0, 0x1400, 0x2800]


def test_set_mapping_resets_fonts_for_first_font():
    font = OsdFont(number=0)
    font.set_mapping(MAPPING)
    assert font.font0 == bytearray(b"\xff" * FONT_SIZE)
    assert font.font1 == bytearray(b"\xff" * FONT_SIZE)


def test_set_mapping_keeps_fonts_for_second_font():
    font = OsdFont(number=1)
    font.set_mapping(MAPPING)
    assert font.font0 == bytearray(FONT_SIZE)


@pytest.mark.parametrize("text", [None, "", "\n\n", "garbage"])
def test_set_mapping_rejects_bad_text(text):
    with pytest.raises(ValueError):
        OsdFont().set_mapping(text)


def test_write_layout():
    font = _font()
    out = io.StringIO()
    font.write(out)
    lines = out.getvalue().split("\n")
    assert lines[0] == "#"
    data_lines = lines[1:1 + NB_CHAR]
    assert all(len(line) == 5 * ROW_PER_CHAR for line in data_lines)
    assert all(len(line.split()) == ROW_PER_CHAR for line in data_lines)
    assert lines[1 + NB_CHAR:] == ["", ""]


def test_write_load_round_trip():
    original = _random_bytes(USED, seed=11)
    source = _font()
    source.font0[:USED] = original
    out = io.StringIO()
    source.write(out)

    target = _font()
    image = bytearray(3 * AREA_SIZE)
    context = LoadContext()
    target.load(io.StringIO(out.getvalue()), image, context)

    test_start = CHAR_TEST_LINE * BYTES_PER_CHAR
    test_end = test_start + len(TEST_CHAR)
    assert target.font0[:test_start] == original[:test_start]
    assert target.font0[test_end:USED] == original[test_end:]
    assert bytes(target.font0[test_start:test_end]) == TEST_CHAR
    assert bytes(target.font1[test_start:test_end]) == TEST_CHAR
    assert context.checksum == sum(original)


def test_load_into_second_font():
    original = _random_bytes(USED, seed=5)
    source = _font(number=1)
    source.font1[:USED] = original
    out = io.StringIO()
    source.write(out)

    target = _font()
    target.number = 1
    target.load(io.StringIO(out.getvalue()), bytearray(3 * AREA_SIZE), LoadContext())
    assert target.font1[:BYTES_PER_CHAR] == original[:BYTES_PER_CHAR]
    assert target.font0[:BYTES_PER_CHAR] == bytearray(b"\xff" * BYTES_PER_CHAR)


def test_load_rejects_missing_header():
    with pytest.raises(HexFormatError):
        _font().load(io.StringIO("0102\n"), bytearray(3 * AREA_SIZE), LoadContext())


def test_load_rejects_truncated_file():
    out = io.StringIO()
    _font().write(out)
    truncated = "\n".join(out.getvalue().split("\n")[:100]) + "\n"
    with pytest.raises(HexFormatError):
        _font().load(io.StringIO(truncated), bytearray(3 * AREA_SIZE), LoadContext())


def test_build_eproms_places_low_bytes():
    font = _font()
    font.font0[:USED] = _random_bytes(USED, seed=2)
    font.font1[:USED] = _random_bytes(USED, seed=3)
    image = bytearray(3 * AREA_SIZE)
    font.build_eproms(image)
    odd_start, _, even_start = font.start_addresses[:3]
    assert image[even_start] == font.font0[1]
    assert image[even_start + 1] == font.font1[1]
    assert image[odd_start] == font.font0[3]
    assert image[odd_start + 1] == font.font1[3]


def test_build_eproms_from_image_round_trip():
    def font_bytes(seed):
        raw = _random_bytes(USED, seed=seed)
        return bytes(v & 0x03 if i % 2 == 0 else v for i, v in enumerate(raw))

    first = font_bytes(21)
    second = font_bytes(22)
    source = _font()
    source.font0[:USED] = first
    source.font1[:USED] = second
    image = bytearray(3 * AREA_SIZE)
    source.build_eproms(image)

    rebuilt = _font()
    rebuilt.from_image(image)
    assert bytes(rebuilt.font0[:USED]) == first
    assert bytes(rebuilt.font1[:USED]) == second


def test_build_eproms_rejects_small_image():
    with pytest.raises(AddressRangeError):
        _font().build_eproms(bytearray(AREA_SIZE))


def test_from_image_rejects_small_image():
    with pytest.raises(AddressRangeError):
        _font().from_image(bytearray(AREA_SIZE))