# Copyright (c) Meta Platforms, Inc. and affiliates.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

import struct
import typing

from pyhprof.errors import TruncatedRecord


SKIP_CHUNK_SIZE = 64 * 1024

u1 = struct.Struct(b">B")
u2 = struct.Struct(b">H")
u4 = struct.Struct(b">I")
u8 = struct.Struct(b">Q")


class StreamReader:
    """
    Forward-only reader over a binary stream. Never seeks, so pipes and
    sockets work as well as files. Keeps track of the absolute offset for
    error reporting.
    """

    def __init__(self, instream: typing.BinaryIO) -> None:
        self.instream = instream
        self.offset = 0

    def _read(self, length: int) -> bytes:
        # read() may legitimately return short on pipes, keep going until EOF.
        chunks = []
        remaining = length
        while remaining > 0:
            chunk = self.instream.read(remaining)
            if not chunk:
                break
            chunks.append(chunk)
            remaining -= len(chunk)
        data = b"".join(chunks)
        self.offset += len(data)
        return data

    def read_exact(self, length: int, what: str) -> bytes:
        start = self.offset
        data = self._read(length)
        if len(data) != length:
            raise TruncatedRecord(
                "Stream ended inside %s: needed %d bytes, got %d"
                % (what, length, len(data)),
                start,
                expected=length,
                actual=len(data),
            )
        return data

    def read_first(self, length: int, what: str) -> typing.Optional[bytes]:
        """Like read_exact, but a clean end of stream yields None."""
        start = self.offset
        data = self._read(length)
        if not data:
            return None
        if len(data) != length:
            raise TruncatedRecord(
                "Stream ended inside %s: needed %d bytes, got %d"
                % (what, length, len(data)),
                start,
                expected=length,
                actual=len(data),
            )
        return data

    def read_c_string(self) -> typing.Optional[bytes]:
        """Reads up to and including a NUL; None if the stream ends first."""
        out = bytearray()
        while True:
            byte = self._read(1)
            if not byte:
                return None
            if byte == b"\x00":
                return bytes(out)
            out += byte

    def skip(self, length: int, what: str) -> None:
        start = self.offset
        remaining = length
        while remaining > 0:
            chunk = self._read(min(remaining, SKIP_CHUNK_SIZE))
            if not chunk:
                raise TruncatedRecord(
                    "Stream ended inside %s: needed %d bytes, got %d"
                    % (what, length, length - remaining),
                    start,
                    expected=length,
                    actual=length - remaining,
                )
            remaining -= len(chunk)


class ByteStream:
    """
    Cursor over one record body. Reads past the end of the window raise
    TruncatedRecord instead of silently returning short data.
    """

    def __init__(self, data: bytes, id_size: int, base_offset: int = 0) -> None:
        self.data = memoryview(data)
        self.id_size = id_size
        self.base_offset = base_offset
        self.index = 0
        self._id_struct: struct.Struct = u8 if id_size == 8 else u4

    @property
    def offset(self) -> int:
        return self.base_offset + self.index

    def _take(self, length: int) -> memoryview:
        end = self.index + length
        if end > len(self.data):
            raise TruncatedRecord(
                "Need %d bytes, only %d left in record"
                % (length, len(self.data) - self.index),
                self.offset,
                expected=length,
                actual=len(self.data) - self.index,
            )
        chunk = self.data[self.index : end]
        self.index = end
        return chunk

    def unpack(self, st: struct.Struct) -> typing.Any:
        return st.unpack(self._take(st.size))[0]

    def next_byte(self) -> int:
        return self.unpack(u1)

    def next_two_bytes(self) -> int:
        return self.unpack(u2)

    def next_four_bytes(self) -> int:
        return self.unpack(u4)

    def next_eight_bytes(self) -> int:
        return self.unpack(u8)

    def next_id(self) -> int:
        return self.unpack(self._id_struct)

    def next_byte_array(self, length: int) -> bytes:
        return self._take(length).tobytes()

    def remainder(self) -> bytes:
        return self._take(len(self.data) - self.index).tobytes()

    def remaining(self) -> int:
        return len(self.data) - self.index

    def has_more(self) -> bool:
        return self.index < len(self.data)
