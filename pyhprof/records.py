# Copyright (c) Meta Platforms, Inc. and affiliates.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

"""
Decoded hprof records.

Each record kind is an immutable NamedTuple. `callback` names the
RecordHandler method a record is delivered to; the fields, in order, are the
callback's arguments. Top-level records also carry the microsecond time
offset from their record header as their last field (`timed`), which is not
passed to the callback.
"""

import enum
import typing

from pyhprof.basic import BasicType, Value


class HprofTag(enum.Enum):
    STRING = 0x01
    LOAD_CLASS = 0x02
    UNLOAD_CLASS = 0x03
    STACK_FRAME = 0x04
    STACK_TRACE = 0x05
    ALLOC_SITES = 0x06
    HEAP_SUMMARY = 0x07
    START_THREAD = 0x0A
    END_THREAD = 0x0B
    HEAP_DUMP = 0x0C
    HEAP_DUMP_SEGMENT = 0x1C
    HEAP_DUMP_END = 0x2C
    CPU_SAMPLES = 0x0D
    CONTROL_SETTINGS = 0x0E


class HeapTag(enum.Enum):
    # standard
    ROOT_UNKNOWN = 0xFF
    ROOT_JNI_GLOBAL = 0x01
    ROOT_JNI_LOCAL = 0x02
    ROOT_JAVA_FRAME = 0x03
    ROOT_NATIVE_STACK = 0x04
    ROOT_STICKY_CLASS = 0x05
    ROOT_THREAD_BLOCK = 0x06
    ROOT_MONITOR_USED = 0x07
    ROOT_THREAD_OBJECT = 0x08
    CLASS_DUMP = 0x20
    INSTANCE_DUMP = 0x21
    OBJECT_ARRAY_DUMP = 0x22
    PRIMITIVE_ARRAY_DUMP = 0x23

    # Android
    HEAP_DUMP_INFO = 0xFE
    ROOT_INTERNED_STRING = 0x89
    ROOT_FINALIZING = 0x8A  # obsolete
    ROOT_DEBUGGER = 0x8B
    ROOT_REFERENCE_CLEANUP = 0x8C  # obsolete
    ROOT_VM_INTERNAL = 0x8D
    ROOT_JNI_MONITOR = 0x8E
    UNREACHABLE = 0x90  # obsolete
    PRIMITIVE_ARRAY_NODATA_DUMP = 0xC3


# Class dump members


class Constant(typing.NamedTuple):
    pool_index: int
    value: Value


class Static(typing.NamedTuple):
    name_string_id: int
    value: Value


class InstanceField(typing.NamedTuple):
    name_string_id: int
    type: BasicType


# Top-level records


class Header(typing.NamedTuple):
    format: str
    id_size: int
    time: int

    callback = "header"
    timed = False


class StringInUtf8(typing.NamedTuple):
    id: int
    data: str
    time_offset_us: int

    callback = "string_in_utf8"
    timed = True


class LoadClass(typing.NamedTuple):
    class_serial: int
    class_obj_id: int
    stack_trace_serial: int
    class_name_string_id: int
    time_offset_us: int

    callback = "load_class"
    timed = True


class UnloadClass(typing.NamedTuple):
    class_serial: int
    time_offset_us: int

    callback = "unload_class"
    timed = True


class HeapDump(typing.NamedTuple):
    time_offset_us: int

    callback = "heap_dump"
    timed = True


class HeapDumpSegment(typing.NamedTuple):
    time_offset_us: int

    callback = "heap_dump_segment"
    timed = True


class HeapDumpEnd(typing.NamedTuple):
    time_offset_us: int

    callback = "heap_dump_end"
    timed = True


class UnknownRecord(typing.NamedTuple):
    tag: int
    length: int
    time_offset_us: int

    callback = "unknown_record"
    timed = True


# Heap dump sub-records


class RootUnknown(typing.NamedTuple):
    obj_id: int

    callback = "root_unknown"
    timed = False


class RootJniGlobal(typing.NamedTuple):
    obj_id: int
    jni_global_ref_id: int

    callback = "root_jni_global"
    timed = False


class RootJniLocal(typing.NamedTuple):
    obj_id: int
    thread_serial: int
    frame_num: int

    callback = "root_jni_local"
    timed = False


class RootJavaFrame(typing.NamedTuple):
    obj_id: int
    thread_serial: int
    frame_num: int

    callback = "root_java_frame"
    timed = False


class RootNativeStack(typing.NamedTuple):
    obj_id: int
    thread_serial: int

    callback = "root_native_stack"
    timed = False


class RootStickyClass(typing.NamedTuple):
    obj_id: int

    callback = "root_sticky_class"
    timed = False


class RootThreadBlock(typing.NamedTuple):
    obj_id: int
    thread_serial: int

    callback = "root_thread_block"
    timed = False


class RootMonitorUsed(typing.NamedTuple):
    obj_id: int

    callback = "root_monitor_used"
    timed = False


class RootThreadObject(typing.NamedTuple):
    obj_id: int
    thread_serial: int
    stack_trace_serial: int

    callback = "root_thread_obj"
    timed = False


class ClassDump(typing.NamedTuple):
    class_obj_id: int
    stack_trace_serial: int
    super_class_obj_id: int
    class_loader_obj_id: int
    signers_obj_id: int
    protection_domain_obj_id: int
    reserved1: int
    reserved2: int
    instance_size: int
    constants: typing.Tuple[Constant, ...]
    statics: typing.Tuple[Static, ...]
    instance_fields: typing.Tuple[InstanceField, ...]

    callback = "class_dump"
    timed = False


class InstanceDump(typing.NamedTuple):
    obj_id: int
    stack_trace_serial: int
    class_obj_id: int
    values: typing.List[Value]

    callback = "instance_dump"
    timed = False


class ObjArrayDump(typing.NamedTuple):
    obj_id: int
    stack_trace_serial: int
    elem_class_obj_id: int
    elems: typing.List[int]

    callback = "obj_array_dump"
    timed = False


class PrimArrayDump(typing.NamedTuple):
    obj_id: int
    stack_trace_serial: int
    elem_type: BasicType
    elems: typing.List[Value]

    callback = "prim_array_dump"
    timed = False


# Android extensions


class HeapDumpInfo(typing.NamedTuple):
    heap_id: int
    name_string_id: int

    callback = "heap_dump_info"
    timed = False


class RootInternedString(typing.NamedTuple):
    obj_id: int

    callback = "root_interned_string"
    timed = False


class RootFinalizing(typing.NamedTuple):
    obj_id: int

    callback = "root_finalizing"
    timed = False


class RootDebugger(typing.NamedTuple):
    obj_id: int

    callback = "root_debugger"
    timed = False


class RootReferenceCleanup(typing.NamedTuple):
    obj_id: int

    callback = "root_reference_cleanup"
    timed = False


class RootVmInternal(typing.NamedTuple):
    obj_id: int

    callback = "root_vm_internal"
    timed = False


class RootJniMonitor(typing.NamedTuple):
    obj_id: int
    thread_serial: int
    frame_num: int

    callback = "root_jni_monitor"
    timed = False


class Unreachable(typing.NamedTuple):
    obj_id: int

    callback = "unreachable"
    timed = False


class PrimArrayNodataDump(typing.NamedTuple):
    obj_id: int
    stack_trace_serial: int
    num_elements: int
    elem_type: BasicType

    callback = "prim_array_nodata_dump"
    timed = False
