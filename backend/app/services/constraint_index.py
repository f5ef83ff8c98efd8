from __future__ import annotations

from collections import defaultdict
from enum import Enum
from typing import Iterable


class ResourceKind(str, Enum):
    instructor = "instructor"
    classroom = "classroom"
    student = "student"


ResourceKey = tuple[ResourceKind, str]


def instructor_key(instructor_id: str) -> ResourceKey:
    return (ResourceKind.instructor, instructor_id)


def classroom_key(classroom_id: str) -> ResourceKey:
    return (ResourceKind.classroom, classroom_id)


def student_key(student_id: str) -> ResourceKey:
    return (ResourceKind.student, student_id)


class ConstraintIndex:
    """Slot keys already committed per instructor, classroom and student.

    Keys are namespaced by resource kind so an instructor and a classroom
    sharing an identifier never collide. An index belongs to a single solve.
    """

    def __init__(self) -> None:
        self._used: dict[ResourceKey, set[str]] = defaultdict(set)

    def is_free(self, key: ResourceKey, slot_key: str) -> bool:
        used = self._used.get(key)
        return used is None or slot_key not in used

    def reserve(self, key: ResourceKey, slot_key: str) -> None:
        self._used[key].add(slot_key)

    def release(self, key: ResourceKey, slot_key: str) -> None:
        used = self._used.get(key)
        if used is None:
            return
        used.discard(slot_key)
        if not used:
            del self._used[key]

    def usage_count(self, key: ResourceKey) -> int:
        used = self._used.get(key)
        return len(used) if used else 0

    def used_slots(self, key: ResourceKey) -> frozenset[str]:
        return frozenset(self._used.get(key, ()))

    def reserve_placement(
        self,
        *,
        instructor_id: str,
        classroom_id: str,
        slot_key: str,
        student_ids: Iterable[str] = (),
    ) -> None:
        self.reserve(instructor_key(instructor_id), slot_key)
        self.reserve(classroom_key(classroom_id), slot_key)
        for student_id in student_ids:
            self.reserve(student_key(student_id), slot_key)

    def release_placement(
        self,
        *,
        instructor_id: str,
        classroom_id: str,
        slot_key: str,
        student_ids: Iterable[str] = (),
    ) -> None:
        self.release(instructor_key(instructor_id), slot_key)
        self.release(classroom_key(classroom_id), slot_key)
        for student_id in student_ids:
            self.release(student_key(student_id), slot_key)

    def __len__(self) -> int:
        return len(self._used)
