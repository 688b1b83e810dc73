# Copyright (c) Meta Platforms, Inc. and affiliates.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

import unittest

from pyhprof.basic import BasicType, Value, parse_values
from pyhprof.errors import FramingViolation, TruncatedRecord
from pyhprof.stream import ByteStream


class TestBasicType(unittest.TestCase):
    def test_sizes(self):
        expected = {
            BasicType.BOOLEAN: 1,
            BasicType.BYTE: 1,
            BasicType.CHAR: 2,
            BasicType.SHORT: 2,
            BasicType.INT: 4,
            BasicType.FLOAT: 4,
            BasicType.LONG: 8,
            BasicType.DOUBLE: 8,
        }
        for id_size in (4, 8):
            for basic_type, size in expected.items():
                self.assertEqual(basic_type.size(id_size), size)
            self.assertEqual(BasicType.OBJECT.size(id_size), id_size)

    def test_parse_signed_integers(self):
        stream = ByteStream(
            b"\xff" + b"\xff\xfe" + b"\x80\x00\x00\x00" + b"\xff" * 8, 4
        )
        self.assertEqual(BasicType.BYTE.parse(stream), Value(BasicType.BYTE, -1))
        self.assertEqual(BasicType.SHORT.parse(stream), Value(BasicType.SHORT, -2))
        self.assertEqual(
            BasicType.INT.parse(stream), Value(BasicType.INT, -(2**31))
        )
        self.assertEqual(BasicType.LONG.parse(stream), Value(BasicType.LONG, -1))
        self.assertFalse(stream.has_more())

    def test_parse_floats(self):
        stream = ByteStream(
            b"\x3f\xc0\x00\x00" + b"\x40\x09\x21\xfb\x54\x44\x2d\x18", 4
        )
        self.assertEqual(BasicType.FLOAT.parse(stream).value, 1.5)
        self.assertAlmostEqual(BasicType.DOUBLE.parse(stream).value, 3.141592653589793)

    def test_parse_boolean_and_char(self):
        stream = ByteStream(b"\x00\x02\x00\x41", 4)
        self.assertEqual(BasicType.BOOLEAN.parse(stream).value, False)
        self.assertEqual(BasicType.BOOLEAN.parse(stream).value, True)
        self.assertEqual(BasicType.CHAR.parse(stream), Value(BasicType.CHAR, "A"))

    def test_object_uses_id_size(self):
        data = b"\x00\x00\x00\x01\x00\x00\x00\x02"
        narrow = ByteStream(data, 4)
        self.assertEqual(BasicType.OBJECT.parse(narrow), Value(BasicType.OBJECT, 1))
        self.assertEqual(narrow.index, 4)

        wide = ByteStream(data, 8)
        self.assertEqual(
            BasicType.OBJECT.parse(wide), Value(BasicType.OBJECT, 0x100000002)
        )
        self.assertEqual(wide.index, 8)

    def test_object_is_unsigned(self):
        stream = ByteStream(b"\xff\xff\xff\xff", 4)
        self.assertEqual(BasicType.OBJECT.parse(stream).value, 0xFFFFFFFF)

    def test_truncated_value(self):
        stream = ByteStream(b"\x00\x00\x00", 4, base_offset=0x10)
        with self.assertRaises(TruncatedRecord) as cm:
            BasicType.INT.parse(stream)
        self.assertEqual(cm.exception.offset, 0x10)
        self.assertEqual(cm.exception.expected, 4)
        self.assertEqual(cm.exception.actual, 3)
        # Nothing consumed on failure.
        self.assertEqual(stream.index, 0)

    def test_read_type_tag(self):
        self.assertIs(
            BasicType.read_from_stream(ByteStream(b"\x0a", 4)), BasicType.INT
        )
        with self.assertRaises(FramingViolation) as cm:
            BasicType.read_from_stream(ByteStream(b"\x03", 4))
        self.assertEqual(cm.exception.tag, 3)

    def test_parse_values(self):
        stream = ByteStream(b"\x00\x01\x00\x02\x00\x03", 4)
        self.assertEqual(
            parse_values(BasicType.SHORT, 3, stream),
            [Value(BasicType.SHORT, n) for n in (1, 2, 3)],
        )

    def test_parse_values_checks_count_up_front(self):
        stream = ByteStream(b"\x00\x01\x00\x02", 4)
        with self.assertRaises(TruncatedRecord):
            parse_values(BasicType.SHORT, 1000000, stream)
        self.assertEqual(stream.index, 0)

    def test_str(self):
        self.assertEqual(str(Value(BasicType.INT, 42)), "INT 42")
        self.assertEqual(str(Value(BasicType.OBJECT, 255)), "OBJECT 0xff")
