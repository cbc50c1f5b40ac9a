from __future__ import annotations

import logging
from pathlib import Path

import pytest

from vision_trainer.config import TrainerSettings, default_db_path
from vision_trainer.errors import ConfigurationError


def test_defaults_from_empty_environment() -> None:
    s = TrainerSettings.from_env({})
    assert s.db_path == default_db_path()
    assert s.user_id == "local"
    assert s.difficulty == 2
    assert s.fps == 60
    assert s.log_level == "WARNING"
    assert s.log_level_no == logging.WARNING


def test_values_are_read_and_normalized(tmp_path: Path) -> None:
    s = TrainerSettings.from_env(
        {
            "VISION_TRAINER_DB_PATH": str(tmp_path / "x.sqlite3"),
            "VISION_TRAINER_USER": "  coach ",
            "VISION_TRAINER_DIFFICULTY": " 5 ",
            "VISION_TRAINER_FPS": "30",
            "VISION_TRAINER_LOG_LEVEL": "debug",
        }
    )
    assert s.db_path == tmp_path / "x.sqlite3"
    assert s.user_id == "coach"
    assert s.difficulty == 5
    assert s.fps == 30
    assert s.log_level_no == logging.DEBUG


def test_blank_values_fall_back_to_defaults() -> None:
    s = TrainerSettings.from_env({"VISION_TRAINER_USER": "   ", "VISION_TRAINER_DIFFICULTY": ""})
    assert s.user_id == "local"
    assert s.difficulty == 2


@pytest.mark.parametrize(
    "env",
    [
        {"VISION_TRAINER_DIFFICULTY": "9"},
        {"VISION_TRAINER_DIFFICULTY": "hard"},
        {"VISION_TRAINER_FPS": "0"},
        {"VISION_TRAINER_LOG_LEVEL": "LOUD"},
    ],
)
def test_invalid_values_raise(env: dict[str, str]) -> None:
    with pytest.raises(ConfigurationError):
        TrainerSettings.from_env(env)
