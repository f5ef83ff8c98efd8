from __future__ import annotations

import logging
import random
from enum import Enum
from time import perf_counter
from typing import Iterable, Mapping

from app.core.exceptions import (
    InfeasibleScheduleError,
    InvalidSchedulingInputError,
    ScheduleBudgetExceededError,
    SchedulerError,
)
from app.schemas.scheduling import SolverSettings
from app.services.backtracking_solver import BacktrackingSolver
from app.services.genetic_solver import GeneticScheduler
from app.services.hard_constraints import find_violations, unassigned_sections
from app.services.timetable_model import Classroom, ScheduleResult, SchedulingProblem, Section, TimeSlot

logger = logging.getLogger(__name__)

# Share of time_budget_seconds the heuristic may spend; the exact solver always keeps the rest.
HEURISTIC_BUDGET_SHARE = 0.5


class SolverPhase(str, Enum):
    try_heuristic = "try_heuristic"
    try_exact = "try_exact"
    success = "success"
    failure = "failure"


def validate_problem(problem: SchedulingProblem) -> None:
    """Reject malformed instances before any solver runs."""
    if not problem.classrooms:
        raise InvalidSchedulingInputError("At least one classroom is required for timetable generation")
    if problem.sections and not problem.time_slots:
        raise InvalidSchedulingInputError("At least one time slot is required for timetable generation")

    bad_sections = [section.id for section in problem.sections if section.capacity <= 0]
    if bad_sections:
        raise InvalidSchedulingInputError(
            "Section capacity must be positive",
            details={"section_ids": bad_sections},
        )
    bad_classrooms = [classroom.id for classroom in problem.classrooms if classroom.capacity <= 0]
    if bad_classrooms:
        raise InvalidSchedulingInputError(
            "Classroom capacity must be positive",
            details={"classroom_ids": bad_classrooms},
        )

    if len(problem.sections_by_id) != len(problem.sections):
        raise InvalidSchedulingInputError("Section ids must be unique")
    if len(problem.classrooms_by_id) != len(problem.classrooms):
        raise InvalidSchedulingInputError("Classroom ids must be unique")

    unknown = sorted(
        {
            section_id
            for section_ids in problem.student_enrollments.values()
            for section_id in section_ids
            if section_id not in problem.sections_by_id
        }
    )
    if unknown:
        raise InvalidSchedulingInputError(
            "Student enrollments reference unknown sections",
            details={"section_ids": unknown},
        )


def _verify(problem: SchedulingProblem, result: ScheduleResult) -> ScheduleResult:
    violations = find_violations(problem, result.assignments)
    missing = unassigned_sections(problem, result.assignments)
    if violations or missing:
        raise SchedulerError(
            message="Solver produced an invalid schedule",
            details={
                "algorithm": result.stats.algorithm,
                "violations": [item.description for item in violations],
                "unassigned_section_ids": [section.id for section in missing],
            },
        )
    return result


def _exact_deadline(settings: SolverSettings, started: float) -> float | None:
    budget = settings.time_budget_seconds
    if not budget:
        return None
    now = perf_counter()
    reserved = budget * (1 - HEURISTIC_BUDGET_SHARE)
    return max(started + budget, now + reserved)


def solve(
    problem: SchedulingProblem,
    settings: SolverSettings | None = None,
    *,
    rng: random.Random | None = None,
) -> ScheduleResult:
    """Run the heuristic-then-exact policy and return a complete, valid schedule.

    With ``time_budget_seconds`` set, the heuristic may use at most
    ``HEURISTIC_BUDGET_SHARE`` of it and the exact solver is always left at
    least the remainder, even when a slow generation overran its share.

    Raises InvalidSchedulingInputError for malformed instances,
    InfeasibleScheduleError when the exact search proved no schedule exists
    and ScheduleBudgetExceededError when it stopped on its budget first.
    """
    settings = settings or SolverSettings()
    validate_problem(problem)

    started = perf_counter()
    budget = settings.time_budget_seconds
    heuristic_deadline = started + budget * HEURISTIC_BUDGET_SHARE if budget else None
    section_count = len(problem.sections)
    logger.info(
        "Timetable solve sections=%s classrooms=%s time_slots=%s students=%s threshold=%s",
        section_count,
        len(problem.classrooms),
        len(problem.time_slots),
        len(problem.student_enrollments),
        settings.heuristic_section_threshold,
    )

    attempted: list[str] = []
    phase = SolverPhase.try_heuristic if section_count > settings.heuristic_section_threshold else SolverPhase.try_exact
    result: ScheduleResult | None = None
    budget_exhausted = False

    if phase is SolverPhase.try_heuristic:
        attempted.append("genetic")
        result = GeneticScheduler(problem, settings, rng=rng, deadline=heuristic_deadline).solve()
        if result is not None:
            phase = SolverPhase.success
        else:
            logger.warning("Genetic search did not converge; falling back to backtracking")
            phase = SolverPhase.try_exact

    if phase is SolverPhase.try_exact:
        attempted.append("backtracking")
        exact = BacktrackingSolver(problem, settings, deadline=_exact_deadline(settings, started))
        result = exact.solve()
        budget_exhausted = exact.budget_exhausted
        phase = SolverPhase.success if result is not None else SolverPhase.failure

    runtime_ms = int((perf_counter() - started) * 1000)
    if phase is SolverPhase.failure or result is None:
        details = {
            "total_sections": section_count,
            "solvers_attempted": attempted,
            "budget_exhausted": budget_exhausted,
        }
        if budget_exhausted:
            logger.warning(
                "Schedule search for %s sections stopped on budget solvers=%s runtime_ms=%s",
                section_count,
                ",".join(attempted),
                runtime_ms,
            )
            raise ScheduleBudgetExceededError(details=details)
        logger.warning(
            "No feasible schedule for %s sections solvers=%s runtime_ms=%s",
            section_count,
            ",".join(attempted),
            runtime_ms,
        )
        raise InfeasibleScheduleError(details=details)

    logger.info(
        "Timetable solve succeeded algorithm=%s assigned=%s runtime_ms=%s",
        result.stats.algorithm,
        result.stats.assigned_sections,
        runtime_ms,
    )
    return _verify(problem, result)


def solve_timetable(
    sections: Iterable[Section],
    classrooms: Iterable[Classroom],
    time_slots: Iterable[TimeSlot],
    instructor_preferences: Mapping[str, Iterable[str]] | None = None,
    student_enrollments: Mapping[str, Iterable[str]] | None = None,
    settings: SolverSettings | None = None,
    rng: random.Random | None = None,
) -> ScheduleResult:
    problem = SchedulingProblem(
        sections=tuple(sections),
        classrooms=tuple(classrooms),
        time_slots=tuple(time_slots),
        instructor_preferences={key: frozenset(value) for key, value in (instructor_preferences or {}).items()},
        student_enrollments={key: frozenset(value) for key, value in (student_enrollments or {}).items()},
    )
    return solve(problem, settings, rng=rng)
