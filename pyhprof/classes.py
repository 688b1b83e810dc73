# Copyright (c) Meta Platforms, Inc. and affiliates.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

import typing

from pyhprof.errors import DuplicateClass, HprofError, UnresolvedClass
from pyhprof.records import InstanceField


class ClassLayout(typing.NamedTuple):
    class_id: int
    # None for java.lang.Object (and anything else dumped without a parent).
    super_class_id: typing.Optional[int]
    instance_size: int
    # Only the fields declared by this class, in declaration order.
    instance_fields: typing.Tuple[InstanceField, ...]


class ClassRegistry:
    """
    Instance field layouts of every class dumped so far in one parse.

    Instance dumps carry their field values as an untyped blob; the layout
    recorded here (plus the layouts of all superclasses) is what makes that
    blob readable. Classes are write-once, so resolved field lists are cached
    forever.
    """

    def __init__(self) -> None:
        self._layouts: typing.Dict[int, ClassLayout] = {}
        self._resolved: typing.Dict[int, typing.Tuple[InstanceField, ...]] = {}

    def __contains__(self, class_id: int) -> bool:
        return class_id in self._layouts

    def __len__(self) -> int:
        return len(self._layouts)

    def register(
        self, class_id: int, layout: ClassLayout, offset: typing.Optional[int] = None
    ) -> None:
        if class_id in self._layouts:
            raise DuplicateClass(class_id, offset)
        self._layouts[class_id] = layout

    def lookup(self, class_id: int) -> ClassLayout:
        try:
            return self._layouts[class_id]
        except KeyError:
            raise UnresolvedClass(class_id) from None

    def resolve_fields(self, class_id: int) -> typing.Tuple[InstanceField, ...]:
        """
        All instance fields of `class_id`, starting with those of its most
        distant ancestor and ending with its own.
        """
        cached = self._resolved.get(class_id)
        if cached is not None:
            return cached

        chain = []
        seen = set()
        current: typing.Optional[int] = class_id
        while current is not None:
            if current in seen:
                raise HprofError(
                    "Superclass chain of 0x%x loops at 0x%x" % (class_id, current)
                )
            seen.add(current)
            layout = self._layouts.get(current)
            if layout is None:
                raise UnresolvedClass(current, referenced_from=class_id)
            chain.append(layout)
            current = layout.super_class_id

        fields: typing.List[InstanceField] = []
        for layout in reversed(chain):
            fields.extend(layout.instance_fields)
        resolved = tuple(fields)
        self._resolved[class_id] = resolved
        return resolved
