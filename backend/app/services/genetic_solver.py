from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from time import perf_counter

from app.schemas.scheduling import SolverSettings
from app.services.constraint_index import ConstraintIndex
from app.services.hard_constraints import first_violation, satisfies
from app.services.timetable_model import (
    Assignment,
    Classroom,
    ScheduleResult,
    SchedulingProblem,
    TimeSlot,
    build_stats,
)

logger = logging.getLogger(__name__)

ASSIGNED_REWARD = 100.0
PREFERENCE_BONUS = 20.0
UTILIZATION_BONUS = 10.0
VIOLATION_PENALTY = 100.0
UNASSIGNED_PENALTY = 50.0
UTILIZATION_BAND = (0.7, 0.95)


@dataclass(frozen=True)
class Placement:
    classroom: Classroom
    slot: TimeSlot


Genome = list[Placement | None]


@dataclass
class EvaluationResult:
    fitness: float
    hard_violations: int
    unassigned: int

    @property
    def feasible(self) -> bool:
        return self.hard_violations == 0 and self.unassigned == 0


class GeneticScheduler:
    """Population search over one gene per section (in caller order).

    A gene is either a placement or ``None`` for an unassigned section.
    Fitness replays genes in order against a fresh constraint index, so the
    hard-constraint rules are the ones the exact solver uses.
    """

    def __init__(
        self,
        problem: SchedulingProblem,
        settings: SolverSettings,
        *,
        rng: random.Random | None = None,
        deadline: float | None = None,
    ) -> None:
        self.problem = problem
        self.settings = settings
        self.random = rng if rng is not None else random.Random(settings.random_seed)
        self.deadline = deadline
        self.sections = problem.sections
        self.eligible_classrooms = [
            [classroom for classroom in problem.classrooms if classroom.capacity >= section.capacity]
            for section in self.sections
        ]
        self.eval_cache: dict[tuple[Placement | None, ...], EvaluationResult] = {}
        self.generations_run = 0

    def _random_placement(self, gene_index: int) -> Placement | None:
        classrooms = self.eligible_classrooms[gene_index]
        if not classrooms or not self.problem.time_slots:
            return None
        return Placement(
            classroom=self.random.choice(classrooms),
            slot=self.random.choice(self.problem.time_slots),
        )

    def _random_individual(self) -> Genome:
        index = ConstraintIndex()
        genes: Genome = []
        for gene_index, section in enumerate(self.sections):
            students = self.problem.students_for(section.id)
            chosen: Placement | None = None
            for _attempt in range(self.settings.placement_attempts):
                candidate = self._random_placement(gene_index)
                if candidate is None:
                    break
                if satisfies(section, candidate.classroom, candidate.slot, index, students):
                    chosen = candidate
                    break
            if chosen is not None:
                index.reserve_placement(
                    instructor_id=section.instructor_id,
                    classroom_id=chosen.classroom.id,
                    slot_key=chosen.slot.key,
                    student_ids=students,
                )
            genes.append(chosen)
        return genes

    def _build_initial_population(self) -> list[Genome]:
        return [self._random_individual() for _ in range(self.settings.population_size)]

    def _evaluate(self, genes: Genome) -> EvaluationResult:
        cache_key = tuple(genes)
        cached = self.eval_cache.get(cache_key)
        if cached is not None:
            return cached

        index = ConstraintIndex()
        fitness = 0.0
        violations = 0
        unassigned = 0
        for section, gene in zip(self.sections, genes):
            if gene is None:
                unassigned += 1
                fitness -= UNASSIGNED_PENALTY
                continue
            fitness += ASSIGNED_REWARD
            students = self.problem.students_for(section.id)
            if first_violation(section, gene.classroom, gene.slot, index, students) is not None:
                violations += 1
                fitness -= VIOLATION_PENALTY
            if gene.slot.key in self.problem.preferred_slot_keys(section.instructor_id):
                fitness += PREFERENCE_BONUS
            utilization = section.capacity / gene.classroom.capacity
            if UTILIZATION_BAND[0] < utilization < UTILIZATION_BAND[1]:
                fitness += UTILIZATION_BONUS
            index.reserve_placement(
                instructor_id=section.instructor_id,
                classroom_id=gene.classroom.id,
                slot_key=gene.slot.key,
                student_ids=students,
            )

        result = EvaluationResult(fitness=fitness, hard_violations=violations, unassigned=unassigned)
        self.eval_cache[cache_key] = result
        return result

    def _select(self, population: list[Genome], evaluations: list[EvaluationResult]) -> Genome:
        size = min(self.settings.tournament_size, len(population))
        contenders = self.random.sample(range(len(population)), size)
        best_index = max(contenders, key=lambda idx: evaluations[idx].fitness)
        return population[best_index]

    def _crossover(self, parent_a: Genome, parent_b: Genome) -> tuple[Genome, Genome]:
        if len(parent_a) < 2:
            return list(parent_a), list(parent_b)
        point = self.random.randrange(1, len(parent_a))
        return parent_a[:point] + parent_b[point:], parent_b[:point] + parent_a[point:]

    def _mutate(self, genes: Genome) -> Genome:
        if not genes or self.random.random() >= self.settings.mutation_rate:
            return genes
        mutated = list(genes)
        gene_index = self.random.randrange(len(mutated))
        mutated[gene_index] = self._random_placement(gene_index)
        return mutated

    def _out_of_time(self) -> bool:
        return self.deadline is not None and perf_counter() >= self.deadline

    def _decode(self, genes: Genome) -> list[Assignment]:
        return [
            Assignment.place(section, gene.classroom, gene.slot)
            for section, gene in zip(self.sections, genes)
            if gene is not None
        ]

    def evolve(self) -> tuple[Genome, EvaluationResult] | None:
        """Run the generational loop and return the best feasible individual seen."""
        population = self._build_initial_population()
        best_feasible: tuple[Genome, EvaluationResult] | None = None

        for generation in range(self.settings.generations):
            self.generations_run = generation + 1
            evaluations = [self._evaluate(item) for item in population]
            ranked_indices = sorted(range(len(population)), key=lambda idx: evaluations[idx].fitness, reverse=True)
            ranked_population = [population[idx] for idx in ranked_indices]
            ranked_evaluations = [evaluations[idx] for idx in ranked_indices]

            for genes, evaluation in zip(ranked_population, ranked_evaluations):
                if not evaluation.feasible:
                    continue
                if best_feasible is None or evaluation.fitness > best_feasible[1].fitness:
                    best_feasible = (genes, evaluation)
                break

            logger.debug(
                "Generation %s best_fitness=%.1f hard_violations=%s unassigned=%s",
                self.generations_run,
                ranked_evaluations[0].fitness,
                ranked_evaluations[0].hard_violations,
                ranked_evaluations[0].unassigned,
            )

            if best_feasible is not None and best_feasible[1].fitness >= self.settings.fitness_threshold:
                break
            if self._out_of_time():
                logger.warning("Genetic search stopped by deadline after %s generations", self.generations_run)
                break

            next_population = ranked_population[: self.settings.elite_count]
            while len(next_population) < self.settings.population_size:
                parent_a = self._select(ranked_population, ranked_evaluations)
                parent_b = self._select(ranked_population, ranked_evaluations)
                if self.random.random() < self.settings.crossover_rate:
                    child_a, child_b = self._crossover(parent_a, parent_b)
                else:
                    child_a, child_b = list(parent_a), list(parent_b)
                next_population.append(self._mutate(child_a))
                if len(next_population) < self.settings.population_size:
                    next_population.append(self._mutate(child_b))
            population = next_population

        return best_feasible

    def solve(self) -> ScheduleResult | None:
        started = perf_counter()
        outcome = self.evolve()
        runtime_ms = int((perf_counter() - started) * 1000)
        if outcome is None:
            logger.info(
                "Genetic search found no feasible schedule after %s generations runtime_ms=%s",
                self.generations_run,
                runtime_ms,
            )
            return None

        genes, evaluation = outcome
        assignments = self._decode(genes)
        logger.info(
            "Genetic search reached fitness %.1f after %s generations runtime_ms=%s",
            evaluation.fitness,
            self.generations_run,
            runtime_ms,
        )
        return ScheduleResult(
            assignments=assignments,
            stats=build_stats(
                self.problem,
                assignments,
                algorithm="genetic",
                generations=self.generations_run,
                fitness=evaluation.fitness,
            ),
        )
