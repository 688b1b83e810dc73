# Copyright (c) Meta Platforms, Inc. and affiliates.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

from pyhprof.basic import BasicType, Value
from pyhprof.classes import ClassLayout, ClassRegistry
from pyhprof.errors import (
    DuplicateClass,
    FieldSizeMismatch,
    FramingViolation,
    HprofError,
    MalformedHeader,
    TruncatedRecord,
    UnknownSubRecord,
    UnresolvedClass,
)
from pyhprof.handler import RecordHandler, RecordPrinter, dispatch
from pyhprof.parser import (
    HprofParser,
    iter_records,
    parse_file,
    parse_filename,
    read_header,
)
from pyhprof.records import HeapTag, HprofTag


__all__ = [
    "BasicType",
    "ClassLayout",
    "ClassRegistry",
    "DuplicateClass",
    "FieldSizeMismatch",
    "FramingViolation",
    "HeapTag",
    "HprofError",
    "HprofParser",
    "HprofTag",
    "MalformedHeader",
    "RecordHandler",
    "RecordPrinter",
    "TruncatedRecord",
    "UnknownSubRecord",
    "UnresolvedClass",
    "Value",
    "dispatch",
    "iter_records",
    "parse_file",
    "parse_filename",
    "read_header",
]
