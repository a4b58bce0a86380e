import struct

from refstruct import Schema, fields, rules
from refstruct.context import DecodeContext


def overlap_schema():
    return Schema('Overlap')\
        .add_member(fields.BYTE, 'aPos')\
        .add_member(fields.BYTE, 'aLen')\
        .add_member(fields.BYTE, 'bPos')\
        .add_member(fields.BYTE, 'bLen')\
        .add_array(fields.BYTE, 'a', 'aLen', 'aPos')\
        .add_array(fields.BYTE, 'b', 'bLen', 'bPos')


def overlap_buffer(a_pos, a_len, b_pos, b_len):
    return bytes([a_pos, a_len, b_pos, b_len]) + b'\x00' * 60


def test_overlapping_arrays():
    report = overlap_schema().report(overlap_buffer(16, 48, 32, 16))

    assert len(report.errors) == 1
    assert report.overlap_errors == report.errors
    assert report.errors[0].path == 'root.a/root.b'
    assert report.errors[0].message == 'Array a overlaps with b'
    # the header and the union of [16, 64) and [32, 48)
    assert report.usage() == 52


def test_arrays_registry():
    report = overlap_schema().report(overlap_buffer(16, 48, 32, 16))

    assert [(_.name, _.start, _.count, _.length, _.path) for _ in report.arrays] == [
        ('a', 16, 48, 48, 'root.a'),
        ('b', 32, 16, 16, 'root.b'),
    ]


def test_same_start_is_not_an_overlap():
    report = overlap_schema().report(overlap_buffer(16, 8, 16, 4))

    assert report.errors == []


def test_empty_array_is_not_an_overlap():
    report = overlap_schema().report(overlap_buffer(16, 0, 8, 16))

    assert report.errors == []


def test_adjacent_arrays_do_not_overlap():
    report = overlap_schema().report(overlap_buffer(8, 8, 16, 8))

    assert report.errors == []
    assert report.usage() == 4 + 16


def test_nested_arrays_are_not_overlaps():
    """Check that an array inside an element of another array is not reported."""
    row = Schema('Row')\
        .add_member(fields.BYTE, 'offset')\
        .add_member(fields.BYTE, 'count')\
        .add_array(fields.BYTE, 'cells', 'count', 'offset')
    table = Schema('Table')\
        .add_member(fields.BYTE, 'offset')\
        .add_member(fields.BYTE, 'count')\
        .add_array(row, 'rows', 'count', 'offset')

    report = table.report(b'\x02\x02' + b'\x03\x03' + b'\x06\x02' + b'\x00\x00')

    assert [_.path for _ in report.arrays] == [
        'root.rows[0].cells',
        'root.rows[1].cells',
        'root.rows',
    ]
    assert report.errors == []


def test_similar_names_are_not_nested():
    schema = Schema('Similar')\
        .add_member(fields.BYTE, 'dataPos')\
        .add_member(fields.BYTE, 'dataLen')\
        .add_member(fields.BYTE, 'extPos')\
        .add_member(fields.BYTE, 'extLen')\
        .add_array(fields.BYTE, 'data', 'dataLen', 'dataPos')\
        .add_array(fields.BYTE, 'data_ext', 'extLen', 'extPos')

    report = schema.report(bytes([8, 8, 10, 4]) + b'\x00' * 12)

    assert len(report.overlap_errors) == 1
    assert report.overlap_errors[0].path == 'root.data/root.data_ext'


def test_usage_counter_saturates():
    ctx = DecodeContext(b'\x00\x01', monitor_usage=True)

    for _ in range(300):
        ctx.mark_read(0, 1)
    ctx.mark_read(1, 1)

    assert list(ctx.usage) == [255, 1]


def test_usage(image_schema, image_buffer):
    report = image_schema.report(image_buffer)

    assert report.errors == []
    assert report.usage() == len(image_buffer)
    assert report.unread_ranges() == []


def test_usage_untouched_bytes():
    schema = Schema('Sparse')\
        .add_member(fields.BYTE, 'offset')\
        .add_array(fields.BYTE, 'data', 2, 'offset')

    report = schema.report(b'\x04\x00\x00\x00\x01\x02\x00\x00')

    assert report.usage() == 3
    assert report.coverage.count(1) == 3
    assert report.coverage.bin == '10001100'
    assert report.unread_ranges() == [(1, 4), (6, 8)]


def test_usage_not_monitored(image_schema, image_buffer):
    report = image_schema.report(image_buffer, monitor_usage=False)

    assert report.usage() is None
    assert report.coverage is None
    assert report.unread_ranges() == []


def test_rule_equal():
    schema = Schema('Magic')\
        .add_member(fields.UINT, 'magic')\
        .add_rule(rules.equal('magic', 308639794))\
        .add_rule(rules.equal('magic', 42))

    report = schema.report(struct.pack('<I', 0x12657832) + b'\x00' * 60)

    assert len(report.errors) == 1
    assert report.errors[0].path == 'root:rule[1]'
    assert report.errors[0].message == '"308639794" is not equal to "42"'


def test_rule_path_in_nested_schema():
    inner = Schema('Inner')\
        .add_member(fields.BYTE, 'a')\
        .add_member(fields.BYTE, 'b')\
        .add_rule(rules.equal('a', 'b'))
    outer = Schema('Outer').add_member(fields.BYTE, 'x').add_member(inner, 'inner')

    report = outer.report(b'\x00\x01\x02')

    assert report.errors[0].path == 'root.inner:rule[0]'
    assert report.errors[0].message == '"1" is not equal to "2"'


def test_report_str(image_schema, image_buffer):
    text = str(image_schema.report(image_buffer))

    assert 'Buffer size: 85' in text
    assert 'Bytes read: 85 (100%)' in text
    assert 'Number of arrays: 1' in text
    assert 'No errors were found.' in text

    text = str(overlap_schema().report(overlap_buffer(16, 48, 32, 16)))

    assert 'Errors (1):' in text
    assert 'root.a/root.b: Array a overlaps with b' in text
