# Copyright (c) Meta Platforms, Inc. and affiliates.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

"""
Errors raised while decoding an hprof stream.

Every error is fatal to the parse it was raised from. The state built up to
that point (class layouts, partially read arrays) is not trustworthy anymore,
so nothing here is meant to be caught and resumed from.
"""

import typing


class HprofError(Exception):
    def __init__(self, msg: str, offset: typing.Optional[int] = None) -> None:
        super().__init__(msg, offset)
        self.msg = msg
        self.offset = offset

    def __str__(self) -> str:
        if self.offset is None:
            return self.msg
        return "%s (at offset 0x%x)" % (self.msg, self.offset)


class MalformedHeader(HprofError):
    pass


class TruncatedRecord(HprofError):
    def __init__(
        self,
        msg: str,
        offset: typing.Optional[int] = None,
        expected: typing.Optional[int] = None,
        actual: typing.Optional[int] = None,
    ) -> None:
        super().__init__(msg, offset)
        self.expected = expected
        self.actual = actual


class FramingViolation(HprofError):
    def __init__(
        self,
        msg: str,
        offset: typing.Optional[int] = None,
        tag: typing.Optional[int] = None,
        expected: typing.Optional[int] = None,
        actual: typing.Optional[int] = None,
    ) -> None:
        super().__init__(msg, offset)
        self.tag = tag
        self.expected = expected
        self.actual = actual


class UnknownSubRecord(FramingViolation):
    # The shape of a heap sub-record is implied by its tag only, so the rest of
    # the window cannot be framed past an unknown one.
    def __init__(self, tag: int, offset: typing.Optional[int] = None) -> None:
        super().__init__("Unrecognized heap sub-record tag 0x%02x" % tag, offset, tag)


class DuplicateClass(HprofError):
    def __init__(self, class_id: int, offset: typing.Optional[int] = None) -> None:
        super().__init__("Duplicate class dump for 0x%x" % class_id, offset)
        self.class_id = class_id


class UnresolvedClass(HprofError):
    def __init__(
        self,
        class_id: int,
        offset: typing.Optional[int] = None,
        referenced_from: typing.Optional[int] = None,
    ) -> None:
        if referenced_from is None or referenced_from == class_id:
            msg = "No class dump for 0x%x" % class_id
        else:
            msg = "No class dump for 0x%x (ancestor of 0x%x)" % (
                class_id,
                referenced_from,
            )
        super().__init__(msg, offset)
        self.class_id = class_id
        self.referenced_from = referenced_from


class FieldSizeMismatch(HprofError):
    def __init__(
        self,
        object_id: int,
        class_id: int,
        expected: int,
        actual: int,
        offset: typing.Optional[int] = None,
    ) -> None:
        super().__init__(
            "Instance 0x%x of class 0x%x declares %d bytes of field data, "
            "its fields need %d" % (object_id, class_id, actual, expected),
            offset,
        )
        self.object_id = object_id
        self.class_id = class_id
        self.expected = expected
        self.actual = actual
