from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, Literal


def slot_key(day_of_week: str, start_time: str, end_time: str) -> str:
    return f"{day_of_week}_{start_time}_{end_time}"


@dataclass(frozen=True)
class Section:
    id: str
    instructor_id: str
    capacity: int
    is_required: bool = False


@dataclass(frozen=True)
class Classroom:
    id: str
    capacity: int
    features: tuple[str, ...] = ()


@dataclass(frozen=True)
class TimeSlot:
    day_of_week: str
    start_time: str
    end_time: str

    @property
    def key(self) -> str:
        return slot_key(self.day_of_week, self.start_time, self.end_time)


@dataclass(frozen=True)
class Assignment:
    section_id: str
    classroom_id: str
    day_of_week: str
    start_time: str
    end_time: str

    @property
    def slot_key(self) -> str:
        return slot_key(self.day_of_week, self.start_time, self.end_time)

    @classmethod
    def place(cls, section: Section, classroom: Classroom, slot: TimeSlot) -> "Assignment":
        return cls(
            section_id=section.id,
            classroom_id=classroom.id,
            day_of_week=slot.day_of_week,
            start_time=slot.start_time,
            end_time=slot.end_time,
        )


@dataclass
class ScheduleStats:
    total_sections: int
    assigned_sections: int
    unassigned_sections: int
    average_classroom_usage: float
    algorithm: Literal["backtracking", "genetic"]
    generations: int | None = None
    fitness: float | None = None
    steps: int | None = None


@dataclass
class ScheduleResult:
    assignments: list[Assignment]
    stats: ScheduleStats


@dataclass
class SchedulingProblem:
    """One solve invocation's read-only input.

    ``instructor_preferences`` maps an instructor id to the slot keys they
    prefer; ``student_enrollments`` maps a student id to the section ids they
    attend. Duplicate time slots are collapsed, keeping the first occurrence.
    """

    sections: tuple[Section, ...]
    classrooms: tuple[Classroom, ...]
    time_slots: tuple[TimeSlot, ...]
    instructor_preferences: dict[str, frozenset[str]] = field(default_factory=dict)
    student_enrollments: dict[str, frozenset[str]] = field(default_factory=dict)
    students_by_section: dict[str, tuple[str, ...]] = field(init=False, repr=False)
    sections_by_id: dict[str, Section] = field(init=False, repr=False)
    classrooms_by_id: dict[str, Classroom] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.sections = tuple(self.sections)
        self.classrooms = tuple(self.classrooms)
        self.time_slots = tuple(dict.fromkeys(self.time_slots))
        self.instructor_preferences = {
            instructor_id: frozenset(keys) for instructor_id, keys in self.instructor_preferences.items()
        }
        self.student_enrollments = {
            student_id: frozenset(section_ids) for student_id, section_ids in self.student_enrollments.items()
        }
        self.sections_by_id = {section.id: section for section in self.sections}
        self.classrooms_by_id = {classroom.id: classroom for classroom in self.classrooms}

        students: dict[str, list[str]] = {section.id: [] for section in self.sections}
        for student_id, section_ids in self.student_enrollments.items():
            for section_id in section_ids:
                students.setdefault(section_id, []).append(student_id)
        self.students_by_section = {section_id: tuple(ids) for section_id, ids in students.items()}

    def students_for(self, section_id: str) -> tuple[str, ...]:
        return self.students_by_section.get(section_id, ())

    def preferred_slot_keys(self, instructor_id: str) -> frozenset[str]:
        return self.instructor_preferences.get(instructor_id, frozenset())


def average_classroom_usage(classrooms: Iterable[Classroom], assignments: Iterable[Assignment]) -> float:
    classroom_ids = [classroom.id for classroom in classrooms]
    if not classroom_ids:
        return 0.0
    used = Counter(item.classroom_id for item in assignments)
    return sum(used[classroom_id] for classroom_id in classroom_ids) / len(classroom_ids)


def build_stats(
    problem: SchedulingProblem,
    assignments: list[Assignment],
    *,
    algorithm: Literal["backtracking", "genetic"],
    generations: int | None = None,
    fitness: float | None = None,
    steps: int | None = None,
) -> ScheduleStats:
    total = len(problem.sections)
    assigned = len({item.section_id for item in assignments})
    return ScheduleStats(
        total_sections=total,
        assigned_sections=assigned,
        unassigned_sections=total - assigned,
        average_classroom_usage=average_classroom_usage(problem.classrooms, assignments),
        algorithm=algorithm,
        generations=generations,
        fitness=fitness,
        steps=steps,
    )
