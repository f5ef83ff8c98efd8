import logging
from time import perf_counter

from fastapi import APIRouter, status
from pydantic import ValidationError

from app.core.config import get_settings
from app.core.exceptions import ConfigurationError
from app.schemas.scheduling import (
    AssignmentOut,
    ClassroomIn,
    ConstraintViolationOut,
    GenerateScheduleRequest,
    GenerateScheduleResponse,
    ScheduleStatsOut,
    ScheduleValidationReport,
    SectionIn,
    SolverSettings,
    ValidateScheduleRequest,
)
from app.services.hard_constraints import find_violations, unassigned_sections
from app.services.timetable_engine import solve
from app.services.timetable_model import Assignment, Classroom, SchedulingProblem, Section, TimeSlot, slot_key

router = APIRouter()
logger = logging.getLogger(__name__)


def default_solver_settings() -> SolverSettings:
    config = get_settings()
    try:
        return SolverSettings(
            heuristic_section_threshold=config.scheduler_heuristic_section_threshold,
            population_size=config.scheduler_population_size,
            generations=config.scheduler_generations,
            mutation_rate=config.scheduler_mutation_rate,
            crossover_rate=config.scheduler_crossover_rate,
            elite_count=config.scheduler_elite_count,
            tournament_size=config.scheduler_tournament_size,
            fitness_threshold=config.scheduler_fitness_threshold,
            placement_attempts=config.scheduler_placement_attempts,
            random_seed=config.scheduler_random_seed,
            max_backtrack_steps=config.scheduler_max_backtrack_steps,
            time_budget_seconds=config.scheduler_time_budget_seconds,
        )
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid scheduler configuration: {exc.errors()[0]['msg']}") from exc


def _sections(items: list[SectionIn]) -> tuple[Section, ...]:
    return tuple(
        Section(id=item.id, instructor_id=item.instructor_id, capacity=item.capacity, is_required=item.is_required)
        for item in items
    )


def _classrooms(items: list[ClassroomIn]) -> tuple[Classroom, ...]:
    return tuple(Classroom(id=item.id, capacity=item.capacity, features=tuple(item.features)) for item in items)


def problem_from_request(payload: GenerateScheduleRequest) -> SchedulingProblem:
    preferences: dict[str, frozenset[str]] = {}
    for instructor_id, preference in payload.instructor_preferences.items():
        keys = set(preference.preferred_slot_keys)
        keys.update(slot_key(slot.day_of_week, slot.start_time, slot.end_time) for slot in preference.preferred_slots)
        preferences[instructor_id] = frozenset(keys)

    return SchedulingProblem(
        sections=_sections(payload.sections),
        classrooms=_classrooms(payload.classrooms),
        time_slots=tuple(
            TimeSlot(day_of_week=slot.day_of_week, start_time=slot.start_time, end_time=slot.end_time)
            for slot in payload.time_slots
        ),
        instructor_preferences=preferences,
        student_enrollments={student_id: frozenset(ids) for student_id, ids in payload.student_enrollments.items()},
    )


@router.get("/scheduling/settings", response_model=SolverSettings)
def get_solver_settings() -> SolverSettings:
    return default_solver_settings()


# Plain `def` so FastAPI runs the CPU-bound solve in its threadpool.
@router.post("/scheduling/generate", response_model=GenerateScheduleResponse, status_code=status.HTTP_201_CREATED)
def generate_schedule(payload: GenerateScheduleRequest) -> GenerateScheduleResponse:
    settings = payload.settings_override or default_solver_settings()
    problem = problem_from_request(payload)

    start = perf_counter()
    result = solve(problem, settings)
    runtime_ms = int((perf_counter() - start) * 1000)
    logger.info(
        "Generated schedule sections=%s algorithm=%s runtime_ms=%s",
        len(problem.sections),
        result.stats.algorithm,
        runtime_ms,
    )

    stats = result.stats
    return GenerateScheduleResponse(
        assignments=[
            AssignmentOut(
                section_id=item.section_id,
                classroom_id=item.classroom_id,
                day_of_week=item.day_of_week,
                start_time=item.start_time,
                end_time=item.end_time,
            )
            for item in result.assignments
        ],
        stats=ScheduleStatsOut(
            total_sections=stats.total_sections,
            assigned_sections=stats.assigned_sections,
            unassigned_sections=stats.unassigned_sections,
            average_classroom_usage=stats.average_classroom_usage,
            algorithm=stats.algorithm,
            generations=stats.generations,
            fitness=stats.fitness,
            steps=stats.steps,
        ),
        settings_used=settings,
        runtime_ms=runtime_ms,
    )


@router.post("/scheduling/validate", response_model=ScheduleValidationReport)
def validate_schedule(payload: ValidateScheduleRequest) -> ScheduleValidationReport:
    problem = SchedulingProblem(
        sections=_sections(payload.sections),
        classrooms=_classrooms(payload.classrooms),
        time_slots=(),
        student_enrollments={student_id: frozenset(ids) for student_id, ids in payload.student_enrollments.items()},
    )
    assignments = [
        Assignment(
            section_id=item.section_id,
            classroom_id=item.classroom_id,
            day_of_week=item.day_of_week,
            start_time=item.start_time,
            end_time=item.end_time,
        )
        for item in payload.assignments
    ]
    violations = find_violations(problem, assignments)
    missing = unassigned_sections(problem, assignments)
    return ScheduleValidationReport(
        valid=not violations and not missing,
        violations=[
            ConstraintViolationOut(
                kind=item.kind.value,
                description=item.description,
                section_ids=list(item.section_ids),
                resource_id=item.resource_id,
                slot_key=item.slot_key,
            )
            for item in violations
        ],
        unassigned_section_ids=[section.id for section in missing],
    )
