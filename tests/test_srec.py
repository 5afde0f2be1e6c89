import io

import pytest

from dfutools.common import AddressRangeError, HexFormatError, LoadContext
from dfutools.srec import end_record, load_srec, save_srec


def _saved(image, first, last, max_address):
    out = io.StringIO()
    save_srec(out, image, first, last, max_address)
    out.write(end_record(max_address))
    return out.getvalue()


def _record_sum_ok(record):
    body = record[2:]
    values = [int(body[i:i + 2], 16) for i in range(0, len(body), 2)]
    return sum(values) & 0xFF == 0xFF


def test_end_records_fixed_by_format():
    assert end_record(0xFFFF) == "S9030000FC\n"
    assert end_record(0x10000) == "S804000000FB\n"
    assert end_record(0x1000000) == "S70500000000FA\n"


def test_end_records_load_cleanly():
    for max_address in (0x100, 0x20000, 0x2000000):
        context = LoadContext()
        load_srec(io.StringIO(end_record(max_address)), bytearray(4), context)
        assert context.checksum == 0


def test_s1_round_trip():
    image = bytearray(range(256)) * 2
    text = _saved(image, 0x10, 0x7F, 0xFFFF)
    assert all(line.startswith("S1") for line in text.splitlines()[:-1])
    target = bytearray(len(image))
    context = LoadContext()
    load_srec(io.StringIO(text), target, context)
    assert target[0x10:0x80] == image[0x10:0x80]
    assert target[:0x10] == bytes(0x10)
    assert context.checksum == sum(image[0x10:0x80])


def test_s2_round_trip():
    image = bytearray(0x10100)
    for where in range(0x10000, 0x10050):
        image[where] = where & 0xFF
    text = _saved(image, 0x10000, 0x1004F, 0x1FFFF)
    assert text.splitlines()[0].startswith("S2")
    target = bytearray(len(image))
    load_srec(io.StringIO(text), target, LoadContext())
    assert target == image


def test_s3_round_trip_with_mapping_image():
    base = 0x08000000
    image = {base + i: (i * 7) & 0xFF for i in range(40)}
    text = _saved(image, base, base + 39, base + 39)
    assert text.splitlines()[0].startswith("S3")
    target = {}
    load_srec(io.StringIO(text), target, LoadContext())
    assert target == image


def test_records_limited_to_32_bytes_and_checksums_valid():
    image = bytearray(range(100))
    out = io.StringIO()
    save_srec(out, image, 0, 99, 0xFFFF)
    records = out.getvalue().splitlines()
    assert len(records) == 4
    assert all(_record_sum_ok(record) for record in records)
    data_lengths = [(len(record) - 10) // 2 for record in records]
    assert data_lengths == [32, 32, 32, 4]


def test_bad_checksum_raises():
    text = _saved(bytearray(range(16)), 0, 15, 0xFFFF)
    first, rest = text.split("\n", 1)
    last_digit = "0" if first[-1] != "0" else "1"
    broken = first[:-1] + last_digit + "\n" + rest
    with pytest.raises(HexFormatError, match="Checksum error"):
        load_srec(io.StringIO(broken), bytearray(16), LoadContext())


def test_unknown_character_raises():
    with pytest.raises(HexFormatError, match="Not in Motorola S19 format"):
        load_srec(io.StringIO("X1\n"), bytearray(4), LoadContext())


def test_unknown_record_type_raises():
    with pytest.raises(HexFormatError) as info:
        load_srec(io.StringIO("\nS4030000FC\n"), bytearray(4), LoadContext())
    assert info.value.line == 2


def test_s5_byte_count_error():
    with pytest.raises(HexFormatError, match="S5 line 'byte count' error"):
        load_srec(io.StringIO("S5040000FB\n"), bytearray(4), LoadContext())


def test_s9_byte_count_error():
    with pytest.raises(HexFormatError, match="S9 line 'byte count' error"):
        load_srec(io.StringIO("S9050000FC\n"), bytearray(4), LoadContext())


def test_header_record_is_skipped():
    body = _saved(bytearray(range(8)), 0, 7, 0xFFFF)
    text = "S00600004844521B\n" + body
    target = bytearray(8)
    load_srec(io.StringIO(text), target, LoadContext())
    assert target == bytearray(range(8))


def test_loading_stops_at_termination_record():
    first = _saved(bytearray(range(4)), 0, 3, 0xFFFF)
    second = io.StringIO()
    save_srec(second, bytearray([9] * 8), 4, 7, 0xFFFF)
    target = bytearray(8)
    load_srec(io.StringIO(first + second.getvalue()), target, LoadContext())
    assert target == bytearray([0, 1, 2, 3, 0, 0, 0, 0])


def test_missing_termination_record_is_accepted():
    out = io.StringIO()
    save_srec(out, bytearray(range(6)), 0, 5, 0xFFFF)
    target = bytearray(6)
    load_srec(io.StringIO(out.getvalue()), target, LoadContext())
    assert target == bytearray(range(6))


def test_verify_callback_rejects_address():
    text = _saved(bytearray(range(16)), 0, 15, 0xFFFF)
    context = LoadContext(verify=lambda start, end: int(start < 8))
    target = bytearray(16)
    with pytest.raises(AddressRangeError):
        load_srec(io.StringIO(text), target, context)
    assert target[:8] == bytearray(range(8))
    assert target[8:] == bytes(8)


def test_protected_address_warns():
    text = _saved(bytearray(range(16)), 0, 15, 0xFFFF)
    context = LoadContext()
    context.protect([5])
    load_srec(io.StringIO(text), bytearray(16), context)
    assert len(context.warnings) == 1
    assert "0x5" in context.warnings[0]


def test_image_too_small_raises():
    text = _saved(bytearray(range(16)), 0, 15, 0xFFFF)
    with pytest.raises(AddressRangeError):
        load_srec(io.StringIO(text), bytearray(4), LoadContext())


def test_progress_reported_in_increasing_steps():
    image = bytearray(range(256)) * 4
    text = _saved(image, 0, len(image) - 1, 0xFFFF)
    seen = []
    context = LoadContext(on_progress=seen.append)
    load_srec(io.StringIO(text), bytearray(len(image)), context)
    assert seen == sorted(seen)
    assert all(step % 5 == 0 for step in seen)