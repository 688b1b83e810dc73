# Copyright (c) Meta Platforms, Inc. and affiliates.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

# Parses hprof heap dumps as a stream of records.
# Example usage:
# In [1]: from pyhprof import parse_filename, RecordPrinter
# In [2]: parse_filename('/tmp/com.facebook.crudo.hprof', RecordPrinter())
# HEADER "JAVA PROFILE 1.0.3" id-size=4 timestamp=1406233374264
# STRING 0x400000 "java.lang.Object"
# ...

import struct
import typing

from pyhprof import logger
from pyhprof.classes import ClassRegistry
from pyhprof.errors import FramingViolation, MalformedHeader, TruncatedRecord
from pyhprof.handler import RecordHandler, dispatch
from pyhprof.heap import iter_heap_records
from pyhprof.records import (
    Header,
    HeapDump,
    HeapDumpEnd,
    HeapDumpSegment,
    HprofTag,
    LoadClass,
    StringInUtf8,
    UnknownRecord,
    UnloadClass,
)
from pyhprof.stream import ByteStream, StreamReader, u4


VALID_ID_SIZES = (4, 8)

record_struct = struct.Struct(b">BII")


def read_header(reader: StreamReader) -> Header:
    # The format name is a null-terminated string.
    tag = reader.read_c_string()
    if tag is None:
        raise MalformedHeader("Unterminated format name in header", 0)
    fmt = tag.decode("utf-8", errors="replace")

    id_offset = reader.offset
    sizeof_id = u4.unpack(reader.read_exact(4, "header"))[0]
    if sizeof_id not in VALID_ID_SIZES:
        raise MalformedHeader("Invalid identifier size %d" % sizeof_id, id_offset)

    high_timestamp = u4.unpack(reader.read_exact(4, "header"))[0]
    low_timestamp = u4.unpack(reader.read_exact(4, "header"))[0]
    timestamp = (high_timestamp << 32) | low_timestamp

    return Header(fmt, sizeof_id, timestamp)


def _check_length(tag: HprofTag, offset: int, expected: int, length: int) -> None:
    if length != expected:
        raise FramingViolation(
            "%s record declares %d bytes, its fields take %d"
            % (tag.name, length, expected),
            offset,
            tag=tag.value,
            expected=expected,
            actual=length,
        )


def _parse_string(byte_stream: ByteStream, time_offset_us: int) -> StringInUtf8:
    string_id = byte_stream.next_id()
    # UTF8 should be close enough to modified UTF8.
    string = byte_stream.remainder().decode("utf-8", errors="replace")
    return StringInUtf8(string_id, string, time_offset_us)


def _parse_load_class(byte_stream: ByteStream, time_offset_us: int) -> LoadClass:
    class_serial = byte_stream.next_four_bytes()
    class_obj_id = byte_stream.next_id()
    stack_trace_serial = byte_stream.next_four_bytes()
    class_name_string_id = byte_stream.next_id()
    return LoadClass(
        class_serial,
        class_obj_id,
        stack_trace_serial,
        class_name_string_id,
        time_offset_us,
    )


def _iter_heap_dump(
    tag: HprofTag, byte_stream: ByteStream, registry: ClassRegistry
) -> typing.Iterator[typing.Any]:
    try:
        yield from iter_heap_records(byte_stream, registry)
    except TruncatedRecord as e:
        # The body was read in full, so running out means its length is wrong.
        declared = len(byte_stream.data)
        shortfall = (e.expected or 0) - (e.actual or 0)
        raise FramingViolation(
            "%s record at 0x%x declares %d bytes, a sub-record runs past its end"
            % (tag.name, byte_stream.base_offset, declared),
            e.offset,
            tag=tag.value,
            expected=declared + shortfall,
            actual=declared,
        ) from e


def iter_records(
    instream: typing.BinaryIO, registry: typing.Optional[ClassRegistry] = None
) -> typing.Iterator[typing.Any]:
    """
    Decodes an hprof stream, yielding the Header first and then every
    top-level record and heap sub-record in stream order.

    `registry` collects class layouts for this one stream; a fresh one is used
    when none is given.
    """
    if registry is None:
        registry = ClassRegistry()
    reader = StreamReader(instream)

    header = read_header(reader)
    logger.log(1, 'HEADER "%s" id-size=%d' % (header.format, header.id_size))
    yield header
    id_size = header.id_size

    while True:
        offset = reader.offset
        raw = reader.read_first(record_struct.size, "record header")
        if raw is None:
            return
        (tag, time_offset_us, length) = record_struct.unpack(raw)
        body_offset = reader.offset

        try:
            hprof_tag: typing.Optional[HprofTag] = HprofTag(tag)
        except ValueError:
            hprof_tag = None

        if hprof_tag not in _DECODED_TAGS:
            logger.log(
                1, "0x%x: skipping record 0x%02x (%d bytes)" % (offset, tag, length)
            )
            reader.skip(length, "record 0x%02x" % tag)
            yield UnknownRecord(tag, length, time_offset_us)
            continue
        assert hprof_tag is not None

        logger.log(1, "0x%x: %s (%d bytes)" % (offset, hprof_tag.name, length))
        if hprof_tag is HprofTag.LOAD_CLASS:
            _check_length(hprof_tag, offset, 8 + 2 * id_size, length)
        elif hprof_tag is HprofTag.UNLOAD_CLASS:
            _check_length(hprof_tag, offset, 4, length)
        elif hprof_tag is HprofTag.HEAP_DUMP_END:
            _check_length(hprof_tag, offset, 0, length)
        elif hprof_tag is HprofTag.STRING and length < id_size:
            raise FramingViolation(
                "STRING record declares %d bytes, shorter than its id" % length,
                offset,
                tag=tag,
                expected=id_size,
                actual=length,
            )

        data = reader.read_exact(length, "%s record body" % hprof_tag.name)
        byte_stream = ByteStream(data, id_size, body_offset)

        if hprof_tag is HprofTag.STRING:
            yield _parse_string(byte_stream, time_offset_us)
        elif hprof_tag is HprofTag.LOAD_CLASS:
            yield _parse_load_class(byte_stream, time_offset_us)
        elif hprof_tag is HprofTag.UNLOAD_CLASS:
            yield UnloadClass(byte_stream.next_four_bytes(), time_offset_us)
        elif hprof_tag is HprofTag.HEAP_DUMP_END:
            yield HeapDumpEnd(time_offset_us)
        else:
            if hprof_tag is HprofTag.HEAP_DUMP:
                yield HeapDump(time_offset_us)
            else:
                yield HeapDumpSegment(time_offset_us)
            yield from _iter_heap_dump(hprof_tag, byte_stream, registry)


_DECODED_TAGS = (
    HprofTag.STRING,
    HprofTag.LOAD_CLASS,
    HprofTag.UNLOAD_CLASS,
    HprofTag.HEAP_DUMP,
    HprofTag.HEAP_DUMP_SEGMENT,
    HprofTag.HEAP_DUMP_END,
)


class HprofParser:
    """
    Push-style driver: decodes a stream and hands every record to `handler`
    before decoding the next one.
    """

    def __init__(self, handler: RecordHandler) -> None:
        self.handler = handler
        self.registry: typing.Optional[ClassRegistry] = None

    def parse(self, instream: typing.BinaryIO) -> None:
        # One registry per parse, never shared with an earlier stream.
        self.registry = ClassRegistry()
        for record in iter_records(instream, self.registry):
            dispatch(self.handler, record)
        self.handler.finished()


def parse_file(instream: typing.BinaryIO, handler: RecordHandler) -> None:
    HprofParser(handler).parse(instream)


def parse_filename(filename: str, handler: RecordHandler) -> None:
    with open(filename, "rb") as instream:
        parse_file(instream, handler)
