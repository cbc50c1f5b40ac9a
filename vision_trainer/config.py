from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from .difficulty import MAX_LEVEL, MIN_LEVEL
from .errors import ConfigurationError

DB_PATH_ENV = "VISION_TRAINER_DB_PATH"
USER_ENV = "VISION_TRAINER_USER"
DIFFICULTY_ENV = "VISION_TRAINER_DIFFICULTY"
FPS_ENV = "VISION_TRAINER_FPS"
LOG_LEVEL_ENV = "VISION_TRAINER_LOG_LEVEL"

DEFAULT_USER = "local"
DEFAULT_DIFFICULTY = 2
DEFAULT_FPS = 60
DEFAULT_LOG_LEVEL = "WARNING"


def default_db_path() -> Path:
    return Path.home() / ".vision_trainer.sqlite3"


@dataclass(frozen=True, slots=True)
class TrainerSettings:
    db_path: Path
    user_id: str = DEFAULT_USER
    difficulty: int = DEFAULT_DIFFICULTY
    fps: int = DEFAULT_FPS
    log_level: str = DEFAULT_LOG_LEVEL

    @property
    def log_level_no(self) -> int:
        return int(logging.getLevelName(self.log_level))

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> TrainerSettings:
        """Read settings from ``environ`` (``os.environ`` by default).

        Unset or blank variables fall back to defaults; anything else that
        does not parse raises ConfigurationError.
        """

        env = os.environ if environ is None else environ

        raw_db = env.get(DB_PATH_ENV, "").strip()
        db_path = Path(raw_db).expanduser() if raw_db else default_db_path()

        user_id = env.get(USER_ENV, "").strip() or DEFAULT_USER

        difficulty = _int_env(env, DIFFICULTY_ENV, DEFAULT_DIFFICULTY)
        if not (MIN_LEVEL <= difficulty <= MAX_LEVEL):
            raise ConfigurationError(f"{DIFFICULTY_ENV} must be in {MIN_LEVEL}..{MAX_LEVEL}, got {difficulty}")

        fps = _int_env(env, FPS_ENV, DEFAULT_FPS)
        if fps <= 0:
            raise ConfigurationError(f"{FPS_ENV} must be > 0, got {fps}")

        log_level = env.get(LOG_LEVEL_ENV, "").strip().upper() or DEFAULT_LOG_LEVEL
        if not isinstance(logging.getLevelName(log_level), int):
            raise ConfigurationError(f"{LOG_LEVEL_ENV}: unknown level {log_level!r}")

        return cls(
            db_path=db_path,
            user_id=user_id,
            difficulty=difficulty,
            fps=fps,
            log_level=log_level,
        )


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "").strip()
    if raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc
