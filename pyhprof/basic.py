# Copyright (c) Meta Platforms, Inc. and affiliates.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

import enum
import struct
import typing

from pyhprof.errors import FramingViolation
from pyhprof.stream import ByteStream


class BasicType(enum.Enum):
    OBJECT = 2
    BOOLEAN = 4
    CHAR = 5
    FLOAT = 6
    DOUBLE = 7
    BYTE = 8
    SHORT = 9
    INT = 10
    LONG = 11

    def size(self, id_size: int) -> int:
        if self is BasicType.OBJECT:
            return id_size
        return _FIXED_STRUCTS[self].size

    def parse(self, byte_stream: ByteStream) -> "Value":
        if self is BasicType.OBJECT:
            return Value(self, byte_stream.next_id())
        raw = byte_stream.unpack(_FIXED_STRUCTS[self])
        if self is BasicType.BOOLEAN:
            return Value(self, raw != 0)
        elif self is BasicType.CHAR:
            # A UTF-16 code unit, possibly half of a surrogate pair.
            return Value(self, chr(raw))
        return Value(self, raw)

    @staticmethod
    def read_from_stream(byte_stream: ByteStream) -> "BasicType":
        offset = byte_stream.offset
        type_tag = byte_stream.next_byte()
        try:
            return BasicType(type_tag)
        except ValueError:
            raise FramingViolation(
                "Invalid basic type 0x%02x" % type_tag, offset, tag=type_tag
            ) from None


_FIXED_STRUCTS: typing.Dict[BasicType, struct.Struct] = {
    BasicType.BOOLEAN: struct.Struct(b">B"),
    BasicType.CHAR: struct.Struct(b">H"),
    BasicType.FLOAT: struct.Struct(b">f"),
    BasicType.DOUBLE: struct.Struct(b">d"),
    BasicType.BYTE: struct.Struct(b">b"),
    BasicType.SHORT: struct.Struct(b">h"),
    BasicType.INT: struct.Struct(b">i"),
    BasicType.LONG: struct.Struct(b">q"),
}


class Value(typing.NamedTuple):
    type: BasicType
    value: typing.Any

    def __str__(self) -> str:
        if self.type is BasicType.OBJECT:
            return "OBJECT 0x%x" % self.value
        return "%s %r" % (self.type.name, self.value)


def parse_values(
    basic_type: BasicType, count: int, byte_stream: ByteStream
) -> typing.List[Value]:
    # Check the whole run up front so a bogus count fails before we allocate.
    needed = count * basic_type.size(byte_stream.id_size)
    if needed > byte_stream.remaining():
        byte_stream.next_byte_array(needed)
    return [basic_type.parse(byte_stream) for _ in range(count)]
