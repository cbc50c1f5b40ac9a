from __future__ import annotations

from dataclasses import dataclass

from .errors import ConfigurationError

MIN_LEVEL = 1
MAX_LEVEL = 5


@dataclass(frozen=True, slots=True)
class DifficultyProfile:
    level: int
    label: str
    ball_speed: float
    approach_duration_ms: float  # pitch flight, mound to plate
    strike_ratio: float
    fake_ratio: float
    spin_rate: float  # radians per 60 Hz frame
    strike_window_ms: float  # reaction window used for score tiers
    target_round_count: int
    session_duration_s: int
    display_ms: float  # how long a read number stays visible
    number_approach_ms: float
    two_digit: bool
    number_round_count: int  # rounds in a number-reading session


def _pitch_approach_ms(ball_speed: float) -> float:
    return 2200.0 - ball_speed * 80.0


def _profile(
    level: int,
    label: str,
    *,
    ball_speed: float,
    strike_window_ms: float,
    strike_ratio: float,
    fake_ratio: float,
    spin_rate: float,
    target_round_count: int,
    session_duration_s: int,
    display_ms: float,
    number_approach_ms: float,
    two_digit: bool,
    number_round_count: int,
) -> DifficultyProfile:
    return DifficultyProfile(
        level=level,
        label=label,
        ball_speed=ball_speed,
        approach_duration_ms=_pitch_approach_ms(ball_speed),
        strike_ratio=strike_ratio,
        fake_ratio=fake_ratio,
        spin_rate=spin_rate,
        strike_window_ms=strike_window_ms,
        target_round_count=target_round_count,
        session_duration_s=session_duration_s,
        display_ms=display_ms,
        number_approach_ms=number_approach_ms,
        two_digit=two_digit,
        number_round_count=number_round_count,
    )


PROFILES: dict[int, DifficultyProfile] = {
    1: _profile(
        1,
        "Rookie",
        ball_speed=3.5,
        strike_window_ms=800,
        strike_ratio=0.70,
        fake_ratio=0.0,
        spin_rate=0.03,
        target_round_count=20,
        session_duration_s=45,
        display_ms=1000,
        number_approach_ms=2000,
        two_digit=False,
        number_round_count=15,
    ),
    2: _profile(
        2,
        "Minor",
        ball_speed=5.0,
        strike_window_ms=650,
        strike_ratio=0.65,
        fake_ratio=0.10,
        spin_rate=0.05,
        target_round_count=25,
        session_duration_s=45,
        display_ms=700,
        number_approach_ms=1800,
        two_digit=False,
        number_round_count=18,
    ),
    3: _profile(
        3,
        "Semi-Pro",
        ball_speed=7.0,
        strike_window_ms=500,
        strike_ratio=0.60,
        fake_ratio=0.20,
        spin_rate=0.08,
        target_round_count=30,
        session_duration_s=60,
        display_ms=500,
        number_approach_ms=1500,
        two_digit=False,
        number_round_count=20,
    ),
    4: _profile(
        4,
        "Pro",
        ball_speed=9.5,
        strike_window_ms=380,
        strike_ratio=0.55,
        fake_ratio=0.30,
        spin_rate=0.12,
        target_round_count=35,
        session_duration_s=60,
        display_ms=350,
        number_approach_ms=1300,
        two_digit=True,
        number_round_count=22,
    ),
    5: _profile(
        5,
        "Elite",
        ball_speed=13.0,
        strike_window_ms=280,
        strike_ratio=0.50,
        fake_ratio=0.40,
        spin_rate=0.18,
        target_round_count=40,
        session_duration_s=60,
        display_ms=200,
        number_approach_ms=1000,
        two_digit=True,
        number_round_count=25,
    ),
}


def profile_for(level: int) -> DifficultyProfile:
    """Return the tuning table row for ``level`` (1..5)."""

    if isinstance(level, bool) or not isinstance(level, int):
        raise ConfigurationError(f"difficulty level must be an int in 1..5, got {level!r}")
    try:
        return PROFILES[level]
    except KeyError:
        raise ConfigurationError(f"difficulty level must be in 1..5, got {level}") from None


def validate_profile(profile: DifficultyProfile) -> DifficultyProfile:
    if not (MIN_LEVEL <= profile.level <= MAX_LEVEL):
        raise ConfigurationError(f"profile level out of range: {profile.level}")
    if not (0.0 <= profile.strike_ratio <= 1.0):
        raise ConfigurationError("strike_ratio must be in [0, 1]")
    if not (0.0 <= profile.fake_ratio <= 1.0):
        raise ConfigurationError("fake_ratio must be in [0, 1]")
    for name in ("approach_duration_ms", "strike_window_ms", "number_approach_ms", "display_ms"):
        if getattr(profile, name) <= 0:
            raise ConfigurationError(f"{name} must be > 0")
    if profile.session_duration_s <= 0:
        raise ConfigurationError("session_duration_s must be > 0")
    if profile.target_round_count <= 0:
        raise ConfigurationError("target_round_count must be > 0")
    if profile.number_round_count <= 0:
        raise ConfigurationError("number_round_count must be > 0")
    if profile.spin_rate < 0:
        raise ConfigurationError("spin_rate must be >= 0")
    return profile
