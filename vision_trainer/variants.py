from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from .difficulty import DifficultyProfile
from .errors import ConfigurationError


class ResponseMode(StrEnum):
    TAP = "tap"
    CHOICE = "choice"
    NUMERIC = "numeric"


@dataclass(frozen=True, slots=True)
class GameVariant:
    """Per-module rules layered on top of a DifficultyProfile."""

    module_id: str
    title: str
    response_mode: ResponseMode
    strike_split: bool
    supports_fakes: bool
    shows_number: bool
    reveal_at: float  # depth at which input starts being accepted
    answer_hold_ms: float  # time at the plate after the flight ends
    window_scale: float  # scoring window = strike_window_ms * window_scale
    count_ignored_balls: bool
    round_limited: bool  # ends after round_target rounds
    time_limited: bool  # ends when session_duration_s runs out
    hit_slop: float = 0.03  # normalized pointer tolerance around the ball radius
    instructions: tuple[str, ...] = ()

    def approach_ms(self, profile: DifficultyProfile) -> float:
        return profile.number_approach_ms if self.shows_number else profile.approach_duration_ms

    def window_ms(self, profile: DifficultyProfile) -> float:
        return profile.strike_window_ms * self.window_scale

    def display_ms(self, profile: DifficultyProfile) -> float | None:
        return profile.display_ms if self.shows_number else None

    def number_range(self, profile: DifficultyProfile) -> tuple[int, int]:
        return (10, 99) if profile.two_digit else (1, 9)

    def round_target(self, profile: DifficultyProfile) -> int | None:
        if not self.round_limited:
            return None
        return profile.number_round_count if self.shows_number else profile.target_round_count

    def spin_rate(self, profile: DifficultyProfile) -> float:
        if self.shows_number and profile.level >= 4:
            return profile.spin_rate * 2.0
        return profile.spin_rate


PITCHER_REACTION = GameVariant(
    module_id="pitcher-reaction",
    title="Pitcher Reaction",
    response_mode=ResponseMode.TAP,
    strike_split=True,
    supports_fakes=True,
    shows_number=False,
    reveal_at=0.0,
    answer_hold_ms=0.0,
    window_scale=1.0,
    count_ignored_balls=False,
    round_limited=False,
    time_limited=True,
    instructions=(
        "Tap when a strike comes in.",
        "Let balls outside the zone go by.",
        "Never tap a fake (dashed ring).",
    ),
)

BALL_NUMBER_HUNT = GameVariant(
    module_id="ball-number-hunt",
    title="Ball Number Hunt",
    response_mode=ResponseMode.CHOICE,
    strike_split=False,
    supports_fakes=False,
    shows_number=True,
    reveal_at=0.85,
    answer_hold_ms=2500.0,
    window_scale=2.0,
    count_ignored_balls=True,
    round_limited=True,
    time_limited=False,
    instructions=(
        "Read the number on the incoming ball.",
        "Pick it from the four choices (keys 1-4).",
    ),
)

BALL_NUMBER_KEYPAD = GameVariant(
    module_id="ball-number-hunt",
    title="Ball Number Hunt (keypad)",
    response_mode=ResponseMode.NUMERIC,
    strike_split=False,
    supports_fakes=False,
    shows_number=True,
    reveal_at=0.85,
    answer_hold_ms=2500.0,
    window_scale=2.0,
    count_ignored_balls=True,
    round_limited=True,
    time_limited=False,
    instructions=(
        "Read the number on the incoming ball.",
        "Type it and press Enter.",
    ),
)

VARIANTS: dict[str, GameVariant] = {
    PITCHER_REACTION.module_id: PITCHER_REACTION,
    BALL_NUMBER_HUNT.module_id: BALL_NUMBER_HUNT,
}


def variant_for(module_id: str) -> GameVariant:
    try:
        return VARIANTS[module_id]
    except KeyError:
        raise ConfigurationError(f"unknown module id: {module_id!r}") from None
