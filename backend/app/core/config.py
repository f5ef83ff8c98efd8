from functools import lru_cache
import json
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BACKEND_ENV_FILE = Path(__file__).resolve().parents[2] / ".env"


class Settings(BaseSettings):
    # Resolve to backend/.env so `uvicorn --app-dir backend` works from any cwd.
    model_config = SettingsConfigDict(env_file=str(BACKEND_ENV_FILE), env_file_encoding="utf-8")

    project_name: str = "Campus Timetabling API"
    api_prefix: str = "/api"

    scheduler_heuristic_section_threshold: int = 10
    scheduler_population_size: int = 50
    scheduler_generations: int = 100
    scheduler_mutation_rate: float = 0.10
    scheduler_crossover_rate: float = 0.70
    scheduler_elite_count: int = 5
    scheduler_tournament_size: int = 3
    scheduler_fitness_threshold: float = 1000.0
    scheduler_placement_attempts: int = 1
    scheduler_random_seed: int | None = None
    scheduler_max_backtrack_steps: int = 250_000
    scheduler_time_budget_seconds: float | None = None

    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_cors_origins(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.startswith("["):
                try:
                    parsed = json.loads(stripped)
                    if isinstance(parsed, list):
                        return [str(item).strip() for item in parsed if str(item).strip()]
                except json.JSONDecodeError:
                    pass
            return [item.strip() for item in value.split(",") if item.strip()]
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()
