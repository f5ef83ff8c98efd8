from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from app.services.constraint_index import ConstraintIndex, classroom_key, instructor_key, student_key
from app.services.timetable_model import Assignment, Classroom, SchedulingProblem, Section, TimeSlot


class ViolationKind(str, Enum):
    instructor_conflict = "instructor_conflict"
    classroom_conflict = "classroom_conflict"
    student_conflict = "student_conflict"
    classroom_capacity = "classroom_capacity"
    unknown_section = "unknown_section"
    unknown_classroom = "unknown_classroom"
    duplicate_section = "duplicate_section"


@dataclass(frozen=True)
class ConstraintViolation:
    kind: ViolationKind
    description: str
    section_ids: tuple[str, ...]
    resource_id: str | None = None
    slot_key: str | None = None


def first_violation(
    section: Section,
    classroom: Classroom,
    slot: TimeSlot,
    index: ConstraintIndex,
    student_ids: Iterable[str] = (),
) -> ViolationKind | None:
    key = slot.key
    if not index.is_free(instructor_key(section.instructor_id), key):
        return ViolationKind.instructor_conflict
    if not index.is_free(classroom_key(classroom.id), key):
        return ViolationKind.classroom_conflict
    for student_id in student_ids:
        if not index.is_free(student_key(student_id), key):
            return ViolationKind.student_conflict
    if classroom.capacity < section.capacity:
        return ViolationKind.classroom_capacity
    return None


def satisfies(
    section: Section,
    classroom: Classroom,
    slot: TimeSlot,
    index: ConstraintIndex,
    student_ids: Iterable[str] = (),
) -> bool:
    return first_violation(section, classroom, slot, index, student_ids) is None


def unassigned_sections(problem: SchedulingProblem, assignments: Iterable[Assignment]) -> list[Section]:
    assigned = {item.section_id for item in assignments}
    return [section for section in problem.sections if section.id not in assigned]


def find_violations(problem: SchedulingProblem, assignments: Iterable[Assignment]) -> list[ConstraintViolation]:
    """Audit a complete assignment list against every hard constraint.

    Double-bookings are reported once per colliding pair of sections, in
    assignment order. Assignments that reference unknown sections or
    classrooms are reported and skipped for the remaining checks.
    """
    violations: list[ConstraintViolation] = []
    by_instructor: dict[tuple[str, str], list[str]] = defaultdict(list)
    by_classroom: dict[tuple[str, str], list[str]] = defaultdict(list)
    by_student: dict[tuple[str, str], list[str]] = defaultdict(list)
    seen_sections: set[str] = set()

    for item in assignments:
        section = problem.sections_by_id.get(item.section_id)
        classroom = problem.classrooms_by_id.get(item.classroom_id)
        if section is None:
            violations.append(
                ConstraintViolation(
                    kind=ViolationKind.unknown_section,
                    description=f"Assignment references unknown section {item.section_id}",
                    section_ids=(item.section_id,),
                    slot_key=item.slot_key,
                )
            )
            continue
        if classroom is None:
            violations.append(
                ConstraintViolation(
                    kind=ViolationKind.unknown_classroom,
                    description=f"Section {section.id} is placed in unknown classroom {item.classroom_id}",
                    section_ids=(section.id,),
                    resource_id=item.classroom_id,
                    slot_key=item.slot_key,
                )
            )
            continue
        if section.id in seen_sections:
            violations.append(
                ConstraintViolation(
                    kind=ViolationKind.duplicate_section,
                    description=f"Section {section.id} is assigned more than once",
                    section_ids=(section.id,),
                    slot_key=item.slot_key,
                )
            )
        seen_sections.add(section.id)

        key = item.slot_key
        if classroom.capacity < section.capacity:
            violations.append(
                ConstraintViolation(
                    kind=ViolationKind.classroom_capacity,
                    description=(
                        f"Classroom {classroom.id} capacity ({classroom.capacity}) "
                        f"< section {section.id} capacity ({section.capacity})"
                    ),
                    section_ids=(section.id,),
                    resource_id=classroom.id,
                    slot_key=key,
                )
            )

        for other in by_instructor[(section.instructor_id, key)]:
            violations.append(
                ConstraintViolation(
                    kind=ViolationKind.instructor_conflict,
                    description=f"Instructor {section.instructor_id} double-booked at {key}: {other} and {section.id}",
                    section_ids=(other, section.id),
                    resource_id=section.instructor_id,
                    slot_key=key,
                )
            )
        by_instructor[(section.instructor_id, key)].append(section.id)

        for other in by_classroom[(classroom.id, key)]:
            violations.append(
                ConstraintViolation(
                    kind=ViolationKind.classroom_conflict,
                    description=f"Classroom {classroom.id} double-booked at {key}: {other} and {section.id}",
                    section_ids=(other, section.id),
                    resource_id=classroom.id,
                    slot_key=key,
                )
            )
        by_classroom[(classroom.id, key)].append(section.id)

        for student_id in problem.students_for(section.id):
            for other in by_student[(student_id, key)]:
                violations.append(
                    ConstraintViolation(
                        kind=ViolationKind.student_conflict,
                        description=f"Student {student_id} has {other} and {section.id} at {key}",
                        section_ids=(other, section.id),
                        resource_id=student_id,
                        slot_key=key,
                    )
                )
            by_student[(student_id, key)].append(section.id)

    return violations
