from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from .difficulty import DifficultyProfile
from .errors import ConfigurationError
from .game_core import SeededRng
from .variants import GameVariant, ResponseMode


class StimulusKind(StrEnum):
    STRIKE = "strike"  # must be answered (tapped, or read for number variants)
    BALL = "ball"
    FAKE = "fake"


class PitchType(StrEnum):
    FASTBALL = "fastball"
    SLIDER = "slider"
    CURVE = "curve"
    CHANGE = "change"

    @property
    def drift(self) -> tuple[float, float]:
        return _PITCH_DRIFT[self]


_PITCH_DRIFT: dict[PitchType, tuple[float, float]] = {
    PitchType.FASTBALL: (0.0, 0.0),
    PitchType.SLIDER: (0.35, 0.15),
    PitchType.CURVE: (-0.25, 0.30),
    PitchType.CHANGE: (0.10, 0.05),
}

PITCH_TYPES: tuple[PitchType, ...] = tuple(PitchType)


@dataclass(frozen=True, slots=True)
class RoundSpec:
    id: str
    kind: StimulusKind
    pitch: PitchType
    created_at_s: float
    displayed_number: int | None = None
    choices: tuple[int, ...] = ()
    drift_x: float = 0.0
    drift_y: float = 0.0


def generate_choices(
    correct: int,
    rng: SeededRng,
    *,
    lo: int = 1,
    hi: int = 99,
    spread: int = 10,
    count: int = 4,
) -> tuple[int, ...]:
    """Return ``count`` distinct values: ``correct`` plus decoys near it, shuffled.

    Decoys lie within +/- ``spread`` of the correct value, clamped to [lo, hi].
    """

    if not (lo <= correct <= hi):
        raise ConfigurationError(f"correct value {correct} outside [{lo}, {hi}]")
    pool = [v for v in range(max(lo, correct - spread), min(hi, correct + spread) + 1) if v != correct]
    needed = count - 1
    if len(pool) < needed:
        raise ConfigurationError(f"range [{lo}, {hi}] cannot supply {needed} decoys around {correct}")

    decoys = rng.sample(pool, needed)
    return tuple(rng.shuffled([correct, *decoys]))


class StimulusGenerator:
    """Deterministic stream of RoundSpecs for one variant."""

    def __init__(self, rng: SeededRng, variant: GameVariant) -> None:
        self._rng = rng
        self._variant = variant
        self._index = 0

    def next_round(self, profile: DifficultyProfile, *, created_at_s: float = 0.0) -> RoundSpec:
        variant = self._variant

        if variant.supports_fakes and self._rng.random() < profile.fake_ratio:
            kind = StimulusKind.FAKE
        elif variant.strike_split:
            kind = StimulusKind.STRIKE if self._rng.random() < profile.strike_ratio else StimulusKind.BALL
        else:
            kind = StimulusKind.STRIKE

        pitch = self._rng.choice(PITCH_TYPES)

        number: int | None = None
        choices: tuple[int, ...] = ()
        if variant.shows_number:
            lo, hi = variant.number_range(profile)
            number = self._rng.randint(lo, hi)
            if variant.response_mode is ResponseMode.CHOICE:
                choices = generate_choices(number, self._rng, lo=lo, hi=hi)

        if variant.shows_number:
            drift_x = self._rng.uniform(-0.06, 0.06)
            drift_y = self._rng.uniform(-0.03, 0.03)
        else:
            drift_x, drift_y = pitch.drift

        spec = RoundSpec(
            id=f"r{self._index:03d}",
            kind=kind,
            pitch=pitch,
            created_at_s=float(created_at_s),
            displayed_number=number,
            choices=choices,
            drift_x=drift_x,
            drift_y=drift_y,
        )
        self._index += 1
        return spec
