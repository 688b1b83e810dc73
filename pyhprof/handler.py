# Copyright (c) Meta Platforms, Inc. and affiliates.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

import sys
import typing

from pyhprof import records
from pyhprof.basic import BasicType, Value


class RecordHandler:
    """
    Receives decoded records from the parser, one call per record, in stream
    order. Every method is a no-op here; subclass and override the ones you
    care about. Raising from any method aborts the parse.

    Identifiers (string ids, class ids, ...) are passed through as plain
    ints. Mapping them back to names is up to the handler.
    """

    def header(self, format: str, id_size: int, time: int) -> None:
        pass

    def string_in_utf8(self, id: int, data: str) -> None:
        pass

    def load_class(
        self,
        class_serial: int,
        class_obj_id: int,
        stack_trace_serial: int,
        class_name_string_id: int,
    ) -> None:
        pass

    def unload_class(self, class_serial: int) -> None:
        pass

    def heap_dump(self) -> None:
        pass

    def heap_dump_segment(self) -> None:
        pass

    def heap_dump_end(self) -> None:
        pass

    def unknown_record(self, tag: int, length: int) -> None:
        pass

    def root_unknown(self, obj_id: int) -> None:
        pass

    def root_jni_global(self, obj_id: int, jni_global_ref_id: int) -> None:
        pass

    def root_jni_local(self, obj_id: int, thread_serial: int, frame_num: int) -> None:
        pass

    def root_java_frame(self, obj_id: int, thread_serial: int, frame_num: int) -> None:
        pass

    def root_native_stack(self, obj_id: int, thread_serial: int) -> None:
        pass

    def root_sticky_class(self, obj_id: int) -> None:
        pass

    def root_thread_block(self, obj_id: int, thread_serial: int) -> None:
        pass

    def root_monitor_used(self, obj_id: int) -> None:
        pass

    def root_thread_obj(
        self, obj_id: int, thread_serial: int, stack_trace_serial: int
    ) -> None:
        pass

    def class_dump(
        self,
        class_obj_id: int,
        stack_trace_serial: int,
        super_class_obj_id: int,
        class_loader_obj_id: int,
        signers_obj_id: int,
        protection_domain_obj_id: int,
        reserved1: int,
        reserved2: int,
        instance_size: int,
        constants: typing.Sequence[records.Constant],
        statics: typing.Sequence[records.Static],
        instance_fields: typing.Sequence[records.InstanceField],
    ) -> None:
        pass

    def instance_dump(
        self,
        obj_id: int,
        stack_trace_serial: int,
        class_obj_id: int,
        values: typing.List[Value],
    ) -> None:
        pass

    def obj_array_dump(
        self,
        obj_id: int,
        stack_trace_serial: int,
        elem_class_obj_id: int,
        elems: typing.List[int],
    ) -> None:
        pass

    def prim_array_dump(
        self,
        obj_id: int,
        stack_trace_serial: int,
        elem_type: BasicType,
        elems: typing.List[Value],
    ) -> None:
        pass

    # Android

    def heap_dump_info(self, heap_id: int, name_string_id: int) -> None:
        pass

    def root_interned_string(self, obj_id: int) -> None:
        pass

    def root_finalizing(self, obj_id: int) -> None:
        pass

    def root_debugger(self, obj_id: int) -> None:
        pass

    def root_reference_cleanup(self, obj_id: int) -> None:
        pass

    def root_vm_internal(self, obj_id: int) -> None:
        pass

    def root_jni_monitor(self, obj_id: int, thread_serial: int, frame_num: int) -> None:
        pass

    def unreachable(self, obj_id: int) -> None:
        pass

    def prim_array_nodata_dump(
        self,
        obj_id: int,
        stack_trace_serial: int,
        num_elements: int,
        elem_type: BasicType,
    ) -> None:
        pass

    def finished(self) -> None:
        pass


RECORD_TYPES: typing.FrozenSet[type] = frozenset(
    [
        records.Header,
        records.StringInUtf8,
        records.LoadClass,
        records.UnloadClass,
        records.HeapDump,
        records.HeapDumpSegment,
        records.HeapDumpEnd,
        records.UnknownRecord,
        records.RootUnknown,
        records.RootJniGlobal,
        records.RootJniLocal,
        records.RootJavaFrame,
        records.RootNativeStack,
        records.RootStickyClass,
        records.RootThreadBlock,
        records.RootMonitorUsed,
        records.RootThreadObject,
        records.ClassDump,
        records.InstanceDump,
        records.ObjArrayDump,
        records.PrimArrayDump,
        records.HeapDumpInfo,
        records.RootInternedString,
        records.RootFinalizing,
        records.RootDebugger,
        records.RootReferenceCleanup,
        records.RootVmInternal,
        records.RootJniMonitor,
        records.Unreachable,
        records.PrimArrayNodataDump,
    ]
)


def dispatch(handler: RecordHandler, record: typing.Any) -> None:
    if type(record) not in RECORD_TYPES:
        raise TypeError("Not an hprof record: %r" % (record,))
    # Top-level records end with their time offset, which handlers don't get.
    args = record[:-1] if record.timed else record
    getattr(handler, record.callback)(*args)


class RecordPrinter(RecordHandler):
    """Prints one line per record."""

    def __init__(
        self, outfile: typing.Optional[typing.TextIO] = None, skip_heap: bool = False
    ) -> None:
        self.outfile: typing.TextIO = outfile if outfile is not None else sys.stdout
        self.skip_heap = skip_heap

    def _print(self, fmt: str, *args: typing.Any) -> None:
        self.outfile.write(fmt % args + "\n")

    def _print_heap(self, fmt: str, *args: typing.Any) -> None:
        if not self.skip_heap:
            self._print("  " + fmt, *args)

    def header(self, format: str, id_size: int, time: int) -> None:
        self._print('HEADER "%s" id-size=%d timestamp=%d', format, id_size, time)

    def string_in_utf8(self, id: int, data: str) -> None:
        self._print("STRING 0x%x %r", id, data)

    def load_class(
        self,
        class_serial: int,
        class_obj_id: int,
        stack_trace_serial: int,
        class_name_string_id: int,
    ) -> None:
        self._print(
            "LOAD CLASS serial=%d class=0x%x stack=%d name=0x%x",
            class_serial,
            class_obj_id,
            stack_trace_serial,
            class_name_string_id,
        )

    def unload_class(self, class_serial: int) -> None:
        self._print("UNLOAD CLASS serial=%d", class_serial)

    def heap_dump(self) -> None:
        self._print("HEAP DUMP")

    def heap_dump_segment(self) -> None:
        self._print("HEAP DUMP SEGMENT")

    def heap_dump_end(self) -> None:
        self._print("HEAP DUMP END")

    def unknown_record(self, tag: int, length: int) -> None:
        self._print("RECORD 0x%02x (%d bytes, skipped)", tag, length)

    def root_unknown(self, obj_id: int) -> None:
        self._print_heap("ROOT UNKNOWN 0x%x", obj_id)

    def root_jni_global(self, obj_id: int, jni_global_ref_id: int) -> None:
        self._print_heap("ROOT JNI GLOBAL 0x%x ref=0x%x", obj_id, jni_global_ref_id)

    def root_jni_local(self, obj_id: int, thread_serial: int, frame_num: int) -> None:
        self._print_heap(
            "ROOT JNI LOCAL 0x%x thread=%d frame=%d", obj_id, thread_serial, frame_num
        )

    def root_java_frame(self, obj_id: int, thread_serial: int, frame_num: int) -> None:
        self._print_heap(
            "ROOT JAVA FRAME 0x%x thread=%d frame=%d", obj_id, thread_serial, frame_num
        )

    def root_native_stack(self, obj_id: int, thread_serial: int) -> None:
        self._print_heap("ROOT NATIVE STACK 0x%x thread=%d", obj_id, thread_serial)

    def root_sticky_class(self, obj_id: int) -> None:
        self._print_heap("ROOT STICKY CLASS 0x%x", obj_id)

    def root_thread_block(self, obj_id: int, thread_serial: int) -> None:
        self._print_heap("ROOT THREAD BLOCK 0x%x thread=%d", obj_id, thread_serial)

    def root_monitor_used(self, obj_id: int) -> None:
        self._print_heap("ROOT MONITOR USED 0x%x", obj_id)

    def root_thread_obj(
        self, obj_id: int, thread_serial: int, stack_trace_serial: int
    ) -> None:
        self._print_heap(
            "ROOT THREAD OBJECT 0x%x thread=%d stack=%d",
            obj_id,
            thread_serial,
            stack_trace_serial,
        )

    def class_dump(
        self,
        class_obj_id: int,
        stack_trace_serial: int,
        super_class_obj_id: int,
        class_loader_obj_id: int,
        signers_obj_id: int,
        protection_domain_obj_id: int,
        reserved1: int,
        reserved2: int,
        instance_size: int,
        constants: typing.Sequence[records.Constant],
        statics: typing.Sequence[records.Static],
        instance_fields: typing.Sequence[records.InstanceField],
    ) -> None:
        self._print_heap(
            "CLASS DUMP 0x%x super=0x%x loader=0x%x size=%d",
            class_obj_id,
            super_class_obj_id,
            class_loader_obj_id,
            instance_size,
        )
        for constant in constants:
            self._print_heap("  constant #%d %s", constant.pool_index, constant.value)
        for static in statics:
            self._print_heap("  static 0x%x %s", static.name_string_id, static.value)
        for field in instance_fields:
            self._print_heap("  field 0x%x %s", field.name_string_id, field.type.name)

    def instance_dump(
        self,
        obj_id: int,
        stack_trace_serial: int,
        class_obj_id: int,
        values: typing.List[Value],
    ) -> None:
        self._print_heap(
            "INSTANCE DUMP 0x%x class=0x%x [%s]",
            obj_id,
            class_obj_id,
            ", ".join(str(v) for v in values),
        )

    def obj_array_dump(
        self,
        obj_id: int,
        stack_trace_serial: int,
        elem_class_obj_id: int,
        elems: typing.List[int],
    ) -> None:
        self._print_heap(
            "OBJECT ARRAY DUMP 0x%x class=0x%x length=%d",
            obj_id,
            elem_class_obj_id,
            len(elems),
        )

    def prim_array_dump(
        self,
        obj_id: int,
        stack_trace_serial: int,
        elem_type: BasicType,
        elems: typing.List[Value],
    ) -> None:
        self._print_heap(
            "PRIMITIVE ARRAY DUMP 0x%x %s[%d]", obj_id, elem_type.name, len(elems)
        )

    def heap_dump_info(self, heap_id: int, name_string_id: int) -> None:
        self._print_heap("HEAP DUMP INFO 0x%x name=0x%x", heap_id, name_string_id)

    def root_interned_string(self, obj_id: int) -> None:
        self._print_heap("ROOT INTERNED STRING 0x%x", obj_id)

    def root_finalizing(self, obj_id: int) -> None:
        self._print_heap("ROOT FINALIZING 0x%x", obj_id)

    def root_debugger(self, obj_id: int) -> None:
        self._print_heap("ROOT DEBUGGER 0x%x", obj_id)

    def root_reference_cleanup(self, obj_id: int) -> None:
        self._print_heap("ROOT REFERENCE CLEANUP 0x%x", obj_id)

    def root_vm_internal(self, obj_id: int) -> None:
        self._print_heap("ROOT VM INTERNAL 0x%x", obj_id)

    def root_jni_monitor(self, obj_id: int, thread_serial: int, frame_num: int) -> None:
        self._print_heap(
            "ROOT JNI MONITOR 0x%x thread=%d frame=%d", obj_id, thread_serial, frame_num
        )

    def unreachable(self, obj_id: int) -> None:
        self._print_heap("UNREACHABLE 0x%x", obj_id)

    def prim_array_nodata_dump(
        self,
        obj_id: int,
        stack_trace_serial: int,
        num_elements: int,
        elem_type: BasicType,
    ) -> None:
        self._print_heap(
            "PRIMITIVE ARRAY NODATA DUMP 0x%x %s[%d]",
            obj_id,
            elem_type.name,
            num_elements,
        )

    def finished(self) -> None:
        self._print("FINISHED")
