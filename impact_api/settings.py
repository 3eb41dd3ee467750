from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from .impact_model import ALTITUDE_STEP_M, MAX_STEPS

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Settings:
    log_level: str = "INFO"
    altitude_step_m: float = ALTITUDE_STEP_M
    max_integration_steps: int = MAX_STEPS


def load_settings() -> Settings:
    """Read IMPACT_* variables from the environment (and a .env file, if present)."""
    load_dotenv()
    log_level = os.getenv("IMPACT_LOG_LEVEL", "INFO").strip().upper()
    if log_level not in LOG_LEVELS:
        raise ValueError(f"IMPACT_LOG_LEVEL must be one of {LOG_LEVELS}, got {log_level!r}")

    step = float(os.getenv("IMPACT_ALTITUDE_STEP_M", str(ALTITUDE_STEP_M)))
    if not step > 0.0:
        raise ValueError(f"IMPACT_ALTITUDE_STEP_M must be > 0, got {step}")

    max_steps = int(os.getenv("IMPACT_MAX_INTEGRATION_STEPS", str(MAX_STEPS)))
    if max_steps < 1:
        raise ValueError(f"IMPACT_MAX_INTEGRATION_STEPS must be >= 1, got {max_steps}")

    return Settings(log_level=log_level, altitude_step_m=step, max_integration_steps=max_steps)
