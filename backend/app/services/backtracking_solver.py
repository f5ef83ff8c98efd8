from __future__ import annotations

import logging
from dataclasses import dataclass, field
from time import perf_counter
from typing import Iterator

from app.schemas.scheduling import SolverSettings
from app.services.constraint_index import ConstraintIndex, classroom_key
from app.services.hard_constraints import satisfies
from app.services.timetable_model import (
    Assignment,
    Classroom,
    ScheduleResult,
    SchedulingProblem,
    Section,
    TimeSlot,
    build_stats,
)

logger = logging.getLogger(__name__)


def priority_order(sections: tuple[Section, ...]) -> list[Section]:
    # Stable sort: ties keep caller order so runs are reproducible.
    return sorted(sections, key=lambda section: (not section.is_required, -section.capacity))


@dataclass
class _Frame:
    section: Section
    candidates: Iterator[tuple[Classroom, TimeSlot]]
    placed: Assignment | None = None


@dataclass
class SearchContext:
    index: ConstraintIndex = field(default_factory=ConstraintIndex)
    assignments: list[Assignment] = field(default_factory=list)
    steps: int = 0


class BacktrackingSolver:
    """Exhaustive search with most-constrained-first ordering.

    The search keeps its own explicit stack of frames, one per placed
    section, so depth is bounded only by the section count. Each frame owns a
    lazy iterator over (classroom, slot) candidates computed when the frame is
    opened, because classroom ordering depends on the usage at that point.
    """

    def __init__(
        self,
        problem: SchedulingProblem,
        settings: SolverSettings,
        *,
        deadline: float | None = None,
    ) -> None:
        self.problem = problem
        self.settings = settings
        self.deadline = deadline
        self.ordered_sections = priority_order(problem.sections)
        self.context = SearchContext()
        self.budget_exhausted = False

    @property
    def steps(self) -> int:
        return self.context.steps

    def _candidate_classrooms(self, section: Section) -> list[Classroom]:
        eligible = [classroom for classroom in self.problem.classrooms if classroom.capacity >= section.capacity]
        return sorted(
            eligible,
            key=lambda classroom: (
                self.context.index.usage_count(classroom_key(classroom.id)),
                -classroom.capacity,
            ),
        )

    def _candidates(self, section: Section) -> Iterator[tuple[Classroom, TimeSlot]]:
        for classroom in self._candidate_classrooms(section):
            for slot in self.problem.time_slots:
                yield classroom, slot

    def _open_frame(self, depth: int) -> _Frame:
        section = self.ordered_sections[depth]
        return _Frame(section=section, candidates=self._candidates(section))

    def _out_of_budget(self) -> bool:
        if self.context.steps >= self.settings.max_backtrack_steps:
            return True
        return self.deadline is not None and perf_counter() >= self.deadline

    def _place(self, frame: _Frame, classroom: Classroom, slot: TimeSlot) -> None:
        section = frame.section
        self.context.index.reserve_placement(
            instructor_id=section.instructor_id,
            classroom_id=classroom.id,
            slot_key=slot.key,
            student_ids=self.problem.students_for(section.id),
        )
        frame.placed = Assignment.place(section, classroom, slot)
        self.context.assignments.append(frame.placed)

    def _unplace(self, frame: _Frame) -> None:
        placed = frame.placed
        section = frame.section
        self.context.index.release_placement(
            instructor_id=section.instructor_id,
            classroom_id=placed.classroom_id,
            slot_key=placed.slot_key,
            student_ids=self.problem.students_for(section.id),
        )
        self.context.assignments.pop()
        frame.placed = None

    def _next_valid(self, frame: _Frame) -> tuple[Classroom, TimeSlot] | None:
        students = self.problem.students_for(frame.section.id)
        for classroom, slot in frame.candidates:
            self.context.steps += 1
            if satisfies(frame.section, classroom, slot, self.context.index, students):
                return classroom, slot
            if self._out_of_budget():
                self.budget_exhausted = True
                return None
        return None

    def search(self) -> bool:
        total = len(self.ordered_sections)
        if total == 0:
            return True

        stack = [self._open_frame(0)]
        while stack:
            if self._out_of_budget():
                self.budget_exhausted = True
                return False
            frame = stack[-1]
            if frame.placed is not None:
                self._unplace(frame)

            candidate = self._next_valid(frame)
            if self.budget_exhausted:
                return False
            if candidate is None:
                stack.pop()
                continue

            self._place(frame, *candidate)
            if len(stack) == total:
                return True
            stack.append(self._open_frame(len(stack)))
        return False

    def solve(self) -> ScheduleResult | None:
        started = perf_counter()
        found = self.search()
        runtime_ms = int((perf_counter() - started) * 1000)
        if not found:
            if self.budget_exhausted:
                logger.warning(
                    "Backtracking aborted after %s steps (max_backtrack_steps=%s, deadline=%s) runtime_ms=%s",
                    self.steps,
                    self.settings.max_backtrack_steps,
                    self.deadline is not None,
                    runtime_ms,
                )
            else:
                logger.info("Backtracking exhausted the search space in %s steps runtime_ms=%s", self.steps, runtime_ms)
            return None

        assignments = list(self.context.assignments)
        logger.info(
            "Backtracking placed %s sections in %s steps runtime_ms=%s",
            len(assignments),
            self.steps,
            runtime_ms,
        )
        return ScheduleResult(
            assignments=assignments,
            stats=build_stats(self.problem, assignments, algorithm="backtracking", steps=self.steps),
        )
