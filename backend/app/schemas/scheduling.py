from __future__ import annotations

import re
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

DAY_VALUES = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)

DAY_SHORT_MAP = {day[:3].lower(): day for day in DAY_VALUES}

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def parse_time_to_minutes(value: str) -> int:
    if not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM 24-hour format")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def normalize_day(value: str) -> str:
    day = value.strip().lower()
    if day in DAY_SHORT_MAP:
        return DAY_SHORT_MAP[day]
    for canonical in DAY_VALUES:
        if canonical.lower() == day:
            return canonical
    raise ValueError("Invalid day value")


def normalize_slot_key(value: str) -> str:
    """Canonicalize a ``Day_HH:MM_HH:MM`` key so it matches keys built from time slots."""
    parts = value.strip().split("_")
    if len(parts) != 3:
        raise ValueError("Slot key must look like Monday_09:00_10:30")
    day, start_time, end_time = parts
    if parse_time_to_minutes(end_time) <= parse_time_to_minutes(start_time):
        raise ValueError("Slot key end time must be after its start time")
    return f"{normalize_day(day)}_{start_time}_{end_time}"


class SolverSettings(BaseModel):
    heuristic_section_threshold: int = Field(default=10, ge=0, le=10_000)
    population_size: int = Field(default=50, ge=2, le=2000)
    generations: int = Field(default=100, ge=1, le=5000)
    mutation_rate: float = Field(default=0.10, ge=0.0, le=1.0)
    crossover_rate: float = Field(default=0.70, ge=0.0, le=1.0)
    elite_count: int = Field(default=5, ge=0, le=100)
    tournament_size: int = Field(default=3, ge=1, le=50)
    fitness_threshold: float = Field(default=1000.0)
    placement_attempts: int = Field(default=1, ge=1, le=100)
    random_seed: int | None = Field(default=None, ge=0, le=2_000_000_000)
    max_backtrack_steps: int = Field(default=250_000, ge=1, le=100_000_000)
    time_budget_seconds: float | None = Field(default=None, gt=0, le=3600)

    @model_validator(mode="after")
    def validate_relationships(self) -> "SolverSettings":
        if self.elite_count >= self.population_size:
            raise ValueError("elite_count must be less than population_size")
        if self.tournament_size > self.population_size:
            raise ValueError("tournament_size cannot exceed population_size")
        return self


class TimeSlotIn(BaseModel):
    day_of_week: str
    start_time: str
    end_time: str

    @field_validator("day_of_week")
    @classmethod
    def validate_day(cls, value: str) -> str:
        return normalize_day(value)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, value: str) -> str:
        if not TIME_PATTERN.match(value):
            raise ValueError("Time must be in HH:MM 24-hour format")
        return value

    @model_validator(mode="after")
    def validate_time_order(self) -> "TimeSlotIn":
        if parse_time_to_minutes(self.end_time) <= parse_time_to_minutes(self.start_time):
            raise ValueError("end_time must be after start_time")
        return self


class SectionIn(BaseModel):
    id: str = Field(min_length=1, max_length=64)
    instructor_id: str = Field(min_length=1, max_length=64)
    capacity: int = Field(ge=1, le=10_000)
    is_required: bool = False


class ClassroomIn(BaseModel):
    id: str = Field(min_length=1, max_length=64)
    capacity: int = Field(ge=1, le=10_000)
    features: list[str] = Field(default_factory=list, max_length=50)


class InstructorPreferenceIn(BaseModel):
    preferred_slot_keys: list[str] = Field(default_factory=list)
    preferred_slots: list[TimeSlotIn] = Field(default_factory=list)

    @field_validator("preferred_slot_keys")
    @classmethod
    def validate_slot_keys(cls, value: list[str]) -> list[str]:
        return [normalize_slot_key(key) for key in value]


def _check_unique_ids(items: list[BaseModel], label: str) -> None:
    seen: set[str] = set()
    duplicates: list[str] = []
    for item in items:
        if item.id in seen and item.id not in duplicates:
            duplicates.append(item.id)
        seen.add(item.id)
    if duplicates:
        raise ValueError(f"Duplicate {label} id(s): {', '.join(duplicates)}")


class GenerateScheduleRequest(BaseModel):
    sections: list[SectionIn] = Field(max_length=2000)
    classrooms: list[ClassroomIn] = Field(min_length=1, max_length=1000)
    time_slots: list[TimeSlotIn] = Field(min_length=1, max_length=500)
    instructor_preferences: dict[str, InstructorPreferenceIn] = Field(default_factory=dict)
    student_enrollments: dict[str, list[str]] = Field(default_factory=dict)
    settings_override: SolverSettings | None = None

    @model_validator(mode="after")
    def validate_references(self) -> "GenerateScheduleRequest":
        _check_unique_ids(self.sections, "section")
        _check_unique_ids(self.classrooms, "classroom")
        section_ids = {item.id for item in self.sections}
        unknown = sorted(
            {section_id for ids in self.student_enrollments.values() for section_id in ids} - section_ids
        )
        if unknown:
            raise ValueError(f"student_enrollments reference unknown section(s): {', '.join(unknown)}")
        return self


class AssignmentIn(BaseModel):
    section_id: str = Field(min_length=1, max_length=64)
    classroom_id: str = Field(min_length=1, max_length=64)
    day_of_week: str
    start_time: str
    end_time: str

    @field_validator("day_of_week")
    @classmethod
    def validate_day(cls, value: str) -> str:
        return normalize_day(value)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, value: str) -> str:
        if not TIME_PATTERN.match(value):
            raise ValueError("Time must be in HH:MM 24-hour format")
        return value

    @model_validator(mode="after")
    def validate_time_order(self) -> "AssignmentIn":
        if parse_time_to_minutes(self.end_time) <= parse_time_to_minutes(self.start_time):
            raise ValueError("end_time must be after start_time")
        return self


class AssignmentOut(BaseModel):
    model_config = {"populate_by_name": True}

    section_id: str = Field(alias="sectionId")
    classroom_id: str = Field(alias="classroomId")
    day_of_week: str = Field(alias="dayOfWeek")
    start_time: str = Field(alias="startTime")
    end_time: str = Field(alias="endTime")


class ScheduleStatsOut(BaseModel):
    model_config = {"populate_by_name": True}

    total_sections: int = Field(alias="totalSections")
    assigned_sections: int = Field(alias="assignedSections")
    unassigned_sections: int = Field(alias="unassignedSections")
    average_classroom_usage: float = Field(alias="averageClassroomUsage")
    algorithm: Literal["backtracking", "genetic"]
    generations: int | None = None
    fitness: float | None = None
    steps: int | None = None


class GenerateScheduleResponse(BaseModel):
    assignments: list[AssignmentOut]
    stats: ScheduleStatsOut
    settings_used: SolverSettings
    runtime_ms: int


class ValidateScheduleRequest(BaseModel):
    sections: list[SectionIn] = Field(max_length=2000)
    classrooms: list[ClassroomIn] = Field(max_length=1000)
    student_enrollments: dict[str, list[str]] = Field(default_factory=dict)
    assignments: list[AssignmentIn] = Field(max_length=5000)

    @model_validator(mode="after")
    def validate_ids(self) -> "ValidateScheduleRequest":
        _check_unique_ids(self.sections, "section")
        _check_unique_ids(self.classrooms, "classroom")
        return self


class ConstraintViolationOut(BaseModel):
    kind: Literal[
        "instructor_conflict",
        "classroom_conflict",
        "student_conflict",
        "classroom_capacity",
        "unknown_section",
        "unknown_classroom",
        "duplicate_section",
    ]
    description: str
    section_ids: list[str]
    resource_id: str | None = None
    slot_key: str | None = None


class ScheduleValidationReport(BaseModel):
    valid: bool
    violations: list[ConstraintViolationOut] = Field(default_factory=list)
    unassigned_section_ids: list[str] = Field(default_factory=list)
