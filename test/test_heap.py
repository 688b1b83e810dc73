# Copyright (c) Meta Platforms, Inc. and affiliates.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

import unittest

from hprof_builder import HeapBuffer
from pyhprof import records
from pyhprof.basic import BasicType, Value
from pyhprof.classes import ClassRegistry
from pyhprof.errors import (
    DuplicateClass,
    FieldSizeMismatch,
    FramingViolation,
    TruncatedRecord,
    UnknownSubRecord,
    UnresolvedClass,
)
from pyhprof.heap import iter_heap_records
from pyhprof.stream import ByteStream


class HeapTestCase(unittest.TestCase):
    id_size = 4

    def setUp(self):
        self.heap = HeapBuffer(self.id_size)
        self.registry = ClassRegistry()

    def decode(self):
        byte_stream = ByteStream(self.heap.to_bytes(), self.id_size)
        return list(iter_heap_records(byte_stream, self.registry))


class TestRoots(HeapTestCase):
    def test_root_layouts(self):
        heap = self.heap
        heap.root_unknown(1)
        heap.writeU1(0x01)  # JNI global
        heap.writeId(2)
        heap.writeId(3)
        heap.writeU1(0x02)  # JNI local
        heap.writeId(4)
        heap.writeU4(5)
        heap.writeU4(6)
        heap.writeU1(0x03)  # Java frame
        heap.writeId(7)
        heap.writeU4(8)
        heap.writeU4(9)
        heap.writeU1(0x04)  # native stack
        heap.writeId(10)
        heap.writeU4(11)
        heap.writeU1(0x05)  # sticky class
        heap.writeId(12)
        heap.writeU1(0x06)  # thread block
        heap.writeId(13)
        heap.writeU4(14)
        heap.writeU1(0x07)  # monitor used
        heap.writeId(15)
        heap.writeU1(0x08)  # thread object
        heap.writeId(16)
        heap.writeU4(17)
        heap.writeU4(18)

        self.assertEqual(
            self.decode(),
            [
                records.RootUnknown(1),
                records.RootJniGlobal(2, 3),
                records.RootJniLocal(4, 5, 6),
                records.RootJavaFrame(7, 8, 9),
                records.RootNativeStack(10, 11),
                records.RootStickyClass(12),
                records.RootThreadBlock(13, 14),
                records.RootMonitorUsed(15),
                records.RootThreadObject(16, 17, 18),
            ],
        )

    def test_android_records(self):
        heap = self.heap
        heap.writeU1(0xFE)  # heap dump info
        heap.writeId(0x41)
        heap.writeId(0x42)
        for tag, obj_id in ((0x89, 1), (0x8A, 2), (0x8B, 3), (0x8C, 4), (0x8D, 5)):
            heap.writeU1(tag)
            heap.writeId(obj_id)
        heap.writeU1(0x8E)  # JNI monitor
        heap.writeId(6)
        heap.writeU4(7)
        heap.writeU4(8)
        heap.writeU1(0x90)  # unreachable
        heap.writeId(9)
        heap.writeU1(0xC3)  # primitive array without data
        heap.writeId(10)
        heap.writeU4(0)
        heap.writeU4(1000)
        heap.writeU1(BasicType.BYTE.value)

        self.assertEqual(
            self.decode(),
            [
                records.HeapDumpInfo(0x41, 0x42),
                records.RootInternedString(1),
                records.RootFinalizing(2),
                records.RootDebugger(3),
                records.RootReferenceCleanup(4),
                records.RootVmInternal(5),
                records.RootJniMonitor(6, 7, 8),
                records.Unreachable(9),
                records.PrimArrayNodataDump(10, 0, 1000, BasicType.BYTE),
            ],
        )

    def test_unknown_sub_record(self):
        self.heap.root_unknown(1)
        self.heap.writeU1(0x42)
        self.heap.writeId(2)
        byte_stream = ByteStream(self.heap.to_bytes(), self.id_size, base_offset=100)
        decoded = iter_heap_records(byte_stream, self.registry)
        self.assertEqual(next(decoded), records.RootUnknown(1))
        with self.assertRaises(UnknownSubRecord) as cm:
            next(decoded)
        self.assertEqual(cm.exception.tag, 0x42)
        self.assertEqual(cm.exception.offset, 105)
        self.assertIsInstance(cm.exception, FramingViolation)


class TestClassDump(HeapTestCase):
    def test_class_dump(self):
        self.heap.class_dump(
            0x100,
            super_class_id=0x50,
            fields=[(1, BasicType.OBJECT), (2, BasicType.BOOLEAN)],
            statics=[(3, BasicType.LONG, 1 << 40), (4, BasicType.OBJECT, 0x99)],
            constants=[(7, BasicType.DOUBLE, 0.5)],
            instance_size=24,
        )
        (clazz,) = self.decode()
        self.assertEqual(clazz.class_obj_id, 0x100)
        self.assertEqual(clazz.super_class_obj_id, 0x50)
        self.assertEqual(clazz.instance_size, 24)
        self.assertEqual(
            clazz.constants, (records.Constant(7, Value(BasicType.DOUBLE, 0.5)),)
        )
        self.assertEqual(
            clazz.statics,
            (
                records.Static(3, Value(BasicType.LONG, 1 << 40)),
                records.Static(4, Value(BasicType.OBJECT, 0x99)),
            ),
        )
        self.assertEqual(
            clazz.instance_fields,
            (
                records.InstanceField(1, BasicType.OBJECT),
                records.InstanceField(2, BasicType.BOOLEAN),
            ),
        )

        layout = self.registry.lookup(0x100)
        self.assertEqual(layout.super_class_id, 0x50)
        self.assertEqual(layout.instance_fields, clazz.instance_fields)

    def test_root_class_has_no_super(self):
        self.heap.class_dump(0x100)
        self.decode()
        self.assertIsNone(self.registry.lookup(0x100).super_class_id)

    def test_duplicate_class(self):
        self.heap.class_dump(0x100)
        self.heap.class_dump(0x100)
        with self.assertRaises(DuplicateClass) as cm:
            self.decode()
        self.assertEqual(cm.exception.class_id, 0x100)

    def test_bad_field_type(self):
        self.heap.class_dump(0x100, fields=[(1, BasicType.INT)])
        data = bytearray(self.heap.to_bytes())
        data[-1] = 0x03
        with self.assertRaises(FramingViolation):
            list(iter_heap_records(ByteStream(bytes(data), 4), self.registry))


class TestInstanceDump(HeapTestCase):
    def build_hierarchy(self):
        # Object <- Base(INT a, OBJECT b) <- Derived(BYTE c)
        self.heap.class_dump(1)
        self.heap.class_dump(
            2, super_class_id=1, fields=[(10, BasicType.INT), (11, BasicType.OBJECT)]
        )
        self.heap.class_dump(3, super_class_id=2, fields=[(12, BasicType.BYTE)])

    def test_inherited_fields(self):
        self.build_hierarchy()
        self.heap.instance_dump(
            0x500,
            3,
            (7).to_bytes(4, "big") + (0x600).to_bytes(self.id_size, "big") + b"\xfe",
            stack_serial=9,
        )
        instance = self.decode()[-1]
        self.assertEqual(
            instance,
            records.InstanceDump(
                0x500,
                9,
                3,
                [
                    Value(BasicType.INT, 7),
                    Value(BasicType.OBJECT, 0x600),
                    Value(BasicType.BYTE, -2),
                ],
            ),
        )

    def test_field_size_mismatch(self):
        self.build_hierarchy()
        self.heap.instance_dump(0x500, 3, b"\x00" * 10)
        with self.assertRaises(FieldSizeMismatch) as cm:
            self.decode()
        self.assertEqual(cm.exception.expected, 4 + self.id_size + 1)
        self.assertEqual(cm.exception.actual, 10)
        self.assertEqual(cm.exception.class_id, 3)

    def test_missing_ancestor(self):
        self.heap.class_dump(3, super_class_id=2, fields=[(12, BasicType.BYTE)])
        self.heap.instance_dump(0x500, 3, b"\x01")
        with self.assertRaises(UnresolvedClass) as cm:
            self.decode()
        self.assertEqual(cm.exception.class_id, 2)

    def test_instance_before_class(self):
        self.heap.instance_dump(0x500, 1, b"")
        self.heap.class_dump(1)
        with self.assertRaises(UnresolvedClass):
            self.decode()

    def test_empty_instance(self):
        self.heap.class_dump(1)
        self.heap.instance_dump(0x500, 1, b"")
        self.assertEqual(self.decode()[-1], records.InstanceDump(0x500, 0, 1, []))


class TestInstanceDumpWideIds(TestInstanceDump):
    id_size = 8


class TestArrays(HeapTestCase):
    def test_object_array(self):
        self.heap.object_array_dump(0x700, 0x20, [1, 0, 0xFFFFFFFF], stack_serial=4)
        self.assertEqual(
            self.decode(), [records.ObjArrayDump(0x700, 4, 0x20, [1, 0, 0xFFFFFFFF])]
        )

    def test_primitive_arrays(self):
        self.heap.primitive_array_dump(0x800, BasicType.CHAR, ["h", "i"])
        self.heap.primitive_array_dump(0x801, BasicType.BOOLEAN, [1, 0])
        self.heap.primitive_array_dump(0x802, BasicType.LONG, [])
        self.assertEqual(
            self.decode(),
            [
                records.PrimArrayDump(
                    0x800,
                    0,
                    BasicType.CHAR,
                    [Value(BasicType.CHAR, "h"), Value(BasicType.CHAR, "i")],
                ),
                records.PrimArrayDump(
                    0x801,
                    0,
                    BasicType.BOOLEAN,
                    [Value(BasicType.BOOLEAN, True), Value(BasicType.BOOLEAN, False)],
                ),
                records.PrimArrayDump(0x802, 0, BasicType.LONG, []),
            ],
        )

    def test_array_longer_than_window(self):
        self.heap.writeU1(0x23)
        self.heap.writeId(0x800)
        self.heap.writeU4(0)
        self.heap.writeU4(3)
        self.heap.writeU1(BasicType.INT.value)
        self.heap.writeU4(1)
        with self.assertRaises(TruncatedRecord):
            self.decode()


class TestArraysWideIds(TestArrays):
    id_size = 8
