from time import perf_counter

from app.schemas.scheduling import SolverSettings
from app.services.backtracking_solver import BacktrackingSolver, priority_order
from app.services.hard_constraints import find_violations
from app.services.timetable_model import Assignment, Classroom, SchedulingProblem, Section, TimeSlot

SLOT_A = TimeSlot("Monday", "09:00", "10:30")
SLOT_B = TimeSlot("Monday", "11:00", "12:30")


def _solve(problem: SchedulingProblem, **overrides):
    solver = BacktrackingSolver(problem, SolverSettings(**overrides))
    return solver, solver.solve()


def test_two_sections_two_rooms_are_fully_assigned():
    problem = SchedulingProblem(
        sections=(
            Section(id="section-1", instructor_id="instructor-1", capacity=30, is_required=True),
            Section(id="section-2", instructor_id="instructor-2", capacity=25),
        ),
        classrooms=(Classroom(id="classroom-1", capacity=40), Classroom(id="classroom-2", capacity=30)),
        time_slots=(SLOT_A, SLOT_B),
    )
    _, result = _solve(problem)

    assert result is not None
    assert result.stats.total_sections == 2
    assert result.stats.assigned_sections == 2
    assert result.stats.unassigned_sections == 0
    assert result.stats.algorithm == "backtracking"
    assert result.stats.average_classroom_usage == 1.0
    # Lightly used rooms are preferred, so the second section lands in the empty room.
    assert result.assignments == [
        Assignment("section-1", "classroom-1", "Monday", "09:00", "10:30"),
        Assignment("section-2", "classroom-2", "Monday", "09:00", "10:30"),
    ]


def test_same_instructor_with_single_slot_fails():
    problem = SchedulingProblem(
        sections=(
            Section(id="section-1", instructor_id="instructor-1", capacity=50, is_required=True),
            Section(id="section-2", instructor_id="instructor-1", capacity=30, is_required=True),
        ),
        classrooms=(Classroom(id="classroom-1", capacity=60), Classroom(id="classroom-2", capacity=60)),
        time_slots=(SLOT_A,),
    )
    solver, result = _solve(problem)

    assert result is None
    assert solver.budget_exhausted is False
    assert solver.steps > 0


def test_capacity_forces_the_larger_classroom():
    problem = SchedulingProblem(
        sections=(Section(id="big", instructor_id="i1", capacity=50),),
        classrooms=(Classroom(id="small", capacity=30), Classroom(id="large", capacity=60)),
        time_slots=(SLOT_A, SLOT_B),
    )
    _, result = _solve(problem)

    assert result is not None
    assert [item.classroom_id for item in result.assignments] == ["large"]


def test_shared_student_sections_get_different_slots():
    problem = SchedulingProblem(
        sections=(
            Section(id="s1", instructor_id="i1", capacity=20),
            Section(id="s2", instructor_id="i2", capacity=20),
        ),
        classrooms=(Classroom(id="r1", capacity=40), Classroom(id="r2", capacity=40)),
        time_slots=(SLOT_A, SLOT_B),
        student_enrollments={"student-1": frozenset({"s1", "s2"})},
    )
    _, result = _solve(problem)

    assert result is not None
    keys = {item.section_id: item.slot_key for item in result.assignments}
    assert keys["s1"] != keys["s2"]


def test_dead_end_is_recovered_by_backtracking():
    # The small section grabs the only large room first and must be moved.
    problem = SchedulingProblem(
        sections=(
            Section(id="small", instructor_id="i1", capacity=10, is_required=True),
            Section(id="large", instructor_id="i2", capacity=50),
        ),
        classrooms=(Classroom(id="hall", capacity=100), Classroom(id="room", capacity=20)),
        time_slots=(SLOT_A,),
    )
    _, result = _solve(problem)

    assert result is not None
    placed = {item.section_id: item.classroom_id for item in result.assignments}
    assert placed == {"small": "room", "large": "hall"}


def test_priority_order_puts_required_then_larger_first():
    sections = (
        Section(id="a", instructor_id="i", capacity=10),
        Section(id="b", instructor_id="i", capacity=40),
        Section(id="c", instructor_id="i", capacity=5, is_required=True),
        Section(id="d", instructor_id="i", capacity=40),
    )
    assert [item.id for item in priority_order(sections)] == ["c", "b", "d", "a"]


def test_identical_input_gives_identical_schedule():
    sections = tuple(
        Section(id=f"s{n}", instructor_id=f"i{n % 3}", capacity=10 + n, is_required=n % 4 == 0) for n in range(9)
    )
    classrooms = (Classroom(id="r1", capacity=40), Classroom(id="r2", capacity=25), Classroom(id="r3", capacity=30))
    slots = tuple(TimeSlot(day, "09:00", "10:00") for day in ("Monday", "Tuesday", "Wednesday"))
    enrollments = {"st1": frozenset({"s0", "s4", "s8"}), "st2": frozenset({"s1", "s2"})}

    first = _solve(SchedulingProblem(sections, classrooms, slots, student_enrollments=enrollments))[1]
    second = _solve(SchedulingProblem(sections, classrooms, slots, student_enrollments=enrollments))[1]

    assert first is not None
    assert first.assignments == second.assignments
    assert find_violations(SchedulingProblem(sections, classrooms, slots, student_enrollments=enrollments), first.assignments) == []


def test_step_budget_aborts_search():
    problem = SchedulingProblem(
        sections=(
            Section(id="small", instructor_id="i1", capacity=10, is_required=True),
            Section(id="large", instructor_id="i2", capacity=50),
        ),
        classrooms=(Classroom(id="hall", capacity=100), Classroom(id="room", capacity=20)),
        time_slots=(SLOT_A,),
    )
    solver, result = _solve(problem, max_backtrack_steps=1)

    assert result is None
    assert solver.budget_exhausted is True


def test_expired_deadline_aborts_search():
    problem = SchedulingProblem(
        sections=(Section(id="s1", instructor_id="i1", capacity=10),),
        classrooms=(Classroom(id="r1", capacity=20),),
        time_slots=(SLOT_A,),
    )
    solver = BacktrackingSolver(problem, SolverSettings(), deadline=perf_counter() - 1)

    assert solver.solve() is None
    assert solver.budget_exhausted is True


def test_no_sections_is_an_empty_success():
    problem = SchedulingProblem(sections=(), classrooms=(Classroom(id="r1", capacity=20),), time_slots=(SLOT_A,))
    _, result = _solve(problem)

    assert result is not None
    assert result.assignments == []
    assert result.stats.total_sections == 0
