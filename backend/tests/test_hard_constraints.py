import pytest

from app.services.constraint_index import ConstraintIndex
from app.services.hard_constraints import (
    ViolationKind,
    find_violations,
    first_violation,
    satisfies,
    unassigned_sections,
)
from app.services.timetable_model import Assignment, Classroom, SchedulingProblem, Section, TimeSlot

MONDAY_9 = TimeSlot("Monday", "09:00", "10:00")
MONDAY_10 = TimeSlot("Monday", "10:00", "11:00")


@pytest.fixture
def problem():
    return SchedulingProblem(
        sections=(
            Section(id="s1", instructor_id="i1", capacity=30),
            Section(id="s2", instructor_id="i1", capacity=20),
            Section(id="s3", instructor_id="i2", capacity=60),
        ),
        classrooms=(
            Classroom(id="r1", capacity=40),
            Classroom(id="r2", capacity=80),
        ),
        time_slots=(MONDAY_9, MONDAY_10),
        student_enrollments={"st1": frozenset({"s1", "s3"})},
    )


def test_slot_key_uses_exact_fields():
    assert MONDAY_9.key == "Monday_09:00_10:00"
    assert TimeSlot("Monday", "09:00", "10:30").key != MONDAY_9.key


def test_checks_run_in_documented_order(problem):
    index = ConstraintIndex()
    index.reserve_placement(instructor_id="i1", classroom_id="r1", slot_key=MONDAY_9.key, student_ids=("st1",))
    s1, s2, s3 = problem.sections
    r1, r2 = problem.classrooms

    # Instructor busy wins over every later check.
    assert first_violation(s2, r1, MONDAY_9, index) is ViolationKind.instructor_conflict
    assert first_violation(s3, r1, MONDAY_9, index, problem.students_for("s3")) is ViolationKind.classroom_conflict
    assert first_violation(s3, r2, MONDAY_9, index, problem.students_for("s3")) is ViolationKind.student_conflict
    assert first_violation(s3, r1, MONDAY_10, index) is ViolationKind.classroom_capacity
    assert first_violation(s3, r2, MONDAY_10, index) is None
    assert satisfies(s3, r2, MONDAY_10, index, problem.students_for("s3"))


def test_capacity_equal_is_allowed(problem):
    section = Section(id="s-eq", instructor_id="i9", capacity=40)
    assert satisfies(section, problem.classrooms[0], MONDAY_9, ConstraintIndex())


def test_find_violations_reports_each_double_booking(problem):
    assignments = [
        Assignment("s1", "r1", "Monday", "09:00", "10:00"),
        Assignment("s2", "r1", "Monday", "09:00", "10:00"),
        Assignment("s3", "r2", "Monday", "09:00", "10:00"),
    ]
    violations = find_violations(problem, assignments)
    kinds = sorted(item.kind.value for item in violations)

    assert kinds == ["classroom_conflict", "instructor_conflict", "student_conflict"]
    student = next(item for item in violations if item.kind is ViolationKind.student_conflict)
    assert student.resource_id == "st1"
    assert student.section_ids == ("s1", "s3")
    assert student.slot_key == "Monday_09:00_10:00"


def test_find_violations_capacity_and_unknown_references(problem):
    assignments = [
        Assignment("s3", "r1", "Monday", "09:00", "10:00"),
        Assignment("ghost", "r1", "Monday", "10:00", "11:00"),
        Assignment("s1", "nowhere", "Monday", "10:00", "11:00"),
        Assignment("s3", "r2", "Monday", "10:00", "11:00"),
    ]
    kinds = [item.kind for item in find_violations(problem, assignments)]

    assert ViolationKind.classroom_capacity in kinds
    assert ViolationKind.unknown_section in kinds
    assert ViolationKind.unknown_classroom in kinds
    assert ViolationKind.duplicate_section in kinds


def test_valid_schedule_has_no_violations(problem):
    assignments = [
        Assignment("s1", "r1", "Monday", "09:00", "10:00"),
        Assignment("s2", "r1", "Monday", "10:00", "11:00"),
        Assignment("s3", "r2", "Monday", "10:00", "11:00"),
    ]
    assert find_violations(problem, assignments) == []
    assert unassigned_sections(problem, assignments) == []


def test_unassigned_sections_keep_input_order(problem):
    assignments = [Assignment("s2", "r1", "Monday", "09:00", "10:00")]
    assert [section.id for section in unassigned_sections(problem, assignments)] == ["s1", "s3"]


def test_duplicate_time_slots_are_collapsed():
    problem = SchedulingProblem(
        sections=(),
        classrooms=(Classroom(id="r1", capacity=10),),
        time_slots=(MONDAY_9, MONDAY_10, TimeSlot("Monday", "09:00", "10:00")),
    )
    assert problem.time_slots == (MONDAY_9, MONDAY_10)
