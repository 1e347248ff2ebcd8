"""
Configuration management for the timetable engine API.
"""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings."""

    # Application
    app_name: str = "Timetable Scheduling & Conflict API"
    app_version: str = "1.0.0"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 8080
    reload: bool = False

    # Teacher load
    max_excess_load: float = 12

    # Auto-scheduler
    max_block_hours: int = 3
    placement_strategy: str = "greedy"  # "greedy" or "cp_sat"
    placement_attempts: int = 1         # random start draws per day (greedy)
    atomic_subject_placement: bool = True
    scheduler_random_seed: Optional[int] = None

    # Solver (cp_sat placement strategy)
    solver_timeout_seconds: int = 10
    solver_random_seed: int = 42
    solver_num_workers: int = 1
    solver_start_step_minutes: int = 30

    # Conflict detector
    conflict_scan_all_periods: bool = False

    # Logging
    log_level: str = "INFO"

    # CORS
    cors_origins: List[str] = ["http://localhost:3000"]

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
