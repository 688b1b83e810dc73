# Copyright (c) Meta Platforms, Inc. and affiliates.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

"""
Decoding of HEAP_DUMP / HEAP_DUMP_SEGMENT bodies.

Sub-records inside a heap dump have no length prefix. Their size follows from
the tag, the identifier size and (for dumps) counts read along the way, so an
unknown tag ends decoding of the whole window.
"""

import typing

from pyhprof import logger
from pyhprof.basic import BasicType, parse_values
from pyhprof.classes import ClassLayout, ClassRegistry
from pyhprof.errors import FieldSizeMismatch, UnknownSubRecord, UnresolvedClass
from pyhprof.records import (
    ClassDump,
    Constant,
    HeapDumpInfo,
    HeapTag,
    InstanceDump,
    InstanceField,
    ObjArrayDump,
    PrimArrayDump,
    PrimArrayNodataDump,
    RootDebugger,
    RootFinalizing,
    RootInternedString,
    RootJavaFrame,
    RootJniGlobal,
    RootJniLocal,
    RootJniMonitor,
    RootMonitorUsed,
    RootNativeStack,
    RootReferenceCleanup,
    RootStickyClass,
    RootThreadBlock,
    RootThreadObject,
    RootUnknown,
    RootVmInternal,
    Static,
    Unreachable,
)
from pyhprof.stream import ByteStream


# Roots that are nothing but an object id.
_ID_ONLY_ROOTS: typing.Dict[HeapTag, typing.Callable[[int], typing.Any]] = {
    HeapTag.ROOT_UNKNOWN: RootUnknown,
    HeapTag.ROOT_STICKY_CLASS: RootStickyClass,
    HeapTag.ROOT_MONITOR_USED: RootMonitorUsed,
    HeapTag.ROOT_INTERNED_STRING: RootInternedString,
    HeapTag.ROOT_FINALIZING: RootFinalizing,
    HeapTag.ROOT_DEBUGGER: RootDebugger,
    HeapTag.ROOT_REFERENCE_CLEANUP: RootReferenceCleanup,
    HeapTag.ROOT_VM_INTERNAL: RootVmInternal,
    HeapTag.UNREACHABLE: Unreachable,
}

# Roots of the form (object id, thread serial, frame number).
_FRAME_ROOTS: typing.Dict[HeapTag, typing.Callable[[int, int, int], typing.Any]] = {
    HeapTag.ROOT_JNI_LOCAL: RootJniLocal,
    HeapTag.ROOT_JAVA_FRAME: RootJavaFrame,
    HeapTag.ROOT_JNI_MONITOR: RootJniMonitor,
}

# Roots of the form (object id, thread serial).
_THREAD_ROOTS: typing.Dict[HeapTag, typing.Callable[[int, int], typing.Any]] = {
    HeapTag.ROOT_NATIVE_STACK: RootNativeStack,
    HeapTag.ROOT_THREAD_BLOCK: RootThreadBlock,
}


def parse_class_dump(byte_stream: ByteStream, registry: ClassRegistry) -> ClassDump:
    start = byte_stream.offset
    class_obj_id = byte_stream.next_id()
    stack_trace_serial = byte_stream.next_four_bytes()
    super_class_obj_id = byte_stream.next_id()
    class_loader_obj_id = byte_stream.next_id()
    signers_obj_id = byte_stream.next_id()  # always zero on dalvik
    protection_domain_obj_id = byte_stream.next_id()  # always zero on dalvik
    reserved1 = byte_stream.next_id()
    reserved2 = byte_stream.next_id()
    instance_size = byte_stream.next_four_bytes()

    constants = []
    for _ in range(byte_stream.next_two_bytes()):
        pool_index = byte_stream.next_two_bytes()
        basic_type = BasicType.read_from_stream(byte_stream)
        constants.append(Constant(pool_index, basic_type.parse(byte_stream)))

    statics = []
    for _ in range(byte_stream.next_two_bytes()):
        name_string_id = byte_stream.next_id()
        basic_type = BasicType.read_from_stream(byte_stream)
        statics.append(Static(name_string_id, basic_type.parse(byte_stream)))

    instance_fields = []
    for _ in range(byte_stream.next_two_bytes()):
        name_string_id = byte_stream.next_id()
        instance_fields.append(
            InstanceField(name_string_id, BasicType.read_from_stream(byte_stream))
        )

    clazz = ClassDump(
        class_obj_id=class_obj_id,
        stack_trace_serial=stack_trace_serial,
        super_class_obj_id=super_class_obj_id,
        class_loader_obj_id=class_loader_obj_id,
        signers_obj_id=signers_obj_id,
        protection_domain_obj_id=protection_domain_obj_id,
        reserved1=reserved1,
        reserved2=reserved2,
        instance_size=instance_size,
        constants=tuple(constants),
        statics=tuple(statics),
        instance_fields=tuple(instance_fields),
    )
    registry.register(
        class_obj_id,
        ClassLayout(
            class_id=class_obj_id,
            super_class_id=super_class_obj_id if super_class_obj_id != 0 else None,
            instance_size=instance_size,
            instance_fields=clazz.instance_fields,
        ),
        start,
    )
    return clazz


def parse_instance_dump(
    byte_stream: ByteStream, registry: ClassRegistry
) -> InstanceDump:
    start = byte_stream.offset
    object_id = byte_stream.next_id()
    stack_trace_serial = byte_stream.next_four_bytes()
    class_obj_id = byte_stream.next_id()
    instance_field_values_size = byte_stream.next_four_bytes()
    data_offset = byte_stream.offset
    instance_field_data = byte_stream.next_byte_array(instance_field_values_size)

    try:
        fields = registry.resolve_fields(class_obj_id)
    except UnresolvedClass as e:
        e.offset = start
        raise

    id_size = byte_stream.id_size
    needed = sum(field.type.size(id_size) for field in fields)
    if needed != instance_field_values_size:
        raise FieldSizeMismatch(
            object_id, class_obj_id, needed, instance_field_values_size, start
        )

    # Field data is laid out from the root of the hierarchy down to the class.
    field_stream = ByteStream(instance_field_data, id_size, data_offset)
    values = [field.type.parse(field_stream) for field in fields]

    return InstanceDump(object_id, stack_trace_serial, class_obj_id, values)


def parse_object_array_dump(byte_stream: ByteStream) -> ObjArrayDump:
    object_id = byte_stream.next_id()
    stack_trace_serial = byte_stream.next_four_bytes()
    num_elements = byte_stream.next_four_bytes()
    elem_class_obj_id = byte_stream.next_id()
    values = parse_values(BasicType.OBJECT, num_elements, byte_stream)
    return ObjArrayDump(
        object_id, stack_trace_serial, elem_class_obj_id, [v.value for v in values]
    )


def parse_primitive_array_dump(byte_stream: ByteStream) -> PrimArrayDump:
    object_id = byte_stream.next_id()
    stack_trace_serial = byte_stream.next_four_bytes()
    num_elements = byte_stream.next_four_bytes()
    prim_type = BasicType.read_from_stream(byte_stream)
    elems = parse_values(prim_type, num_elements, byte_stream)
    return PrimArrayDump(object_id, stack_trace_serial, prim_type, elems)


def parse_primitive_array_nodata_dump(byte_stream: ByteStream) -> PrimArrayNodataDump:
    object_id = byte_stream.next_id()
    stack_trace_serial = byte_stream.next_four_bytes()
    num_elements = byte_stream.next_four_bytes()
    prim_type = BasicType.read_from_stream(byte_stream)
    return PrimArrayNodataDump(object_id, stack_trace_serial, num_elements, prim_type)


def parse_heap_record(
    heap_tag: HeapTag, byte_stream: ByteStream, registry: ClassRegistry
) -> typing.Any:
    if heap_tag in _ID_ONLY_ROOTS:
        return _ID_ONLY_ROOTS[heap_tag](byte_stream.next_id())
    elif heap_tag in _FRAME_ROOTS:
        object_id = byte_stream.next_id()
        thread_serial = byte_stream.next_four_bytes()
        frame_num = byte_stream.next_four_bytes()
        return _FRAME_ROOTS[heap_tag](object_id, thread_serial, frame_num)
    elif heap_tag in _THREAD_ROOTS:
        object_id = byte_stream.next_id()
        thread_serial = byte_stream.next_four_bytes()
        return _THREAD_ROOTS[heap_tag](object_id, thread_serial)
    elif heap_tag is HeapTag.ROOT_JNI_GLOBAL:
        object_id = byte_stream.next_id()
        return RootJniGlobal(object_id, byte_stream.next_id())
    elif heap_tag is HeapTag.ROOT_THREAD_OBJECT:
        thread_object_id = byte_stream.next_id()
        thread_serial = byte_stream.next_four_bytes()
        stack_trace_serial = byte_stream.next_four_bytes()
        return RootThreadObject(thread_object_id, thread_serial, stack_trace_serial)
    elif heap_tag is HeapTag.HEAP_DUMP_INFO:
        heap_id = byte_stream.next_id()
        return HeapDumpInfo(heap_id, byte_stream.next_id())
    elif heap_tag is HeapTag.CLASS_DUMP:
        return parse_class_dump(byte_stream, registry)
    elif heap_tag is HeapTag.INSTANCE_DUMP:
        return parse_instance_dump(byte_stream, registry)
    elif heap_tag is HeapTag.OBJECT_ARRAY_DUMP:
        return parse_object_array_dump(byte_stream)
    elif heap_tag is HeapTag.PRIMITIVE_ARRAY_DUMP:
        return parse_primitive_array_dump(byte_stream)
    elif heap_tag is HeapTag.PRIMITIVE_ARRAY_NODATA_DUMP:
        return parse_primitive_array_nodata_dump(byte_stream)
    else:
        raise AssertionError("Unhandled heap tag: %s" % heap_tag)


def iter_heap_records(
    byte_stream: ByteStream, registry: ClassRegistry
) -> typing.Iterator[typing.Any]:
    """
    Decodes sub-records until the window is used up, yielding each one as
    soon as it is complete.
    """
    while byte_stream.has_more():
        offset = byte_stream.offset
        tag = byte_stream.next_byte()
        try:
            heap_tag = HeapTag(tag)
        except ValueError:
            raise UnknownSubRecord(tag, offset) from None
        record = parse_heap_record(heap_tag, byte_stream, registry)
        if logger.get_log_level() >= 2:
            logger.log(2, "0x%x: %s %s" % (offset, heap_tag.name, _summary(record)))
        yield record


def _summary(record: typing.Any) -> str:
    if isinstance(record, InstanceDump):
        return "obj=0x%x values=%d" % (record.obj_id, len(record.values))
    if isinstance(record, PrimArrayDump):
        return "obj=0x%x elems=%d" % (record.obj_id, len(record.elems))
    if isinstance(record, ObjArrayDump):
        return "obj=0x%x elems=%d" % (record.obj_id, len(record.elems))
    if isinstance(record, ClassDump):
        return "class=0x%x super=0x%x fields=%d" % (
            record.class_obj_id,
            record.super_class_obj_id,
            len(record.instance_fields),
        )
    return str(record)
