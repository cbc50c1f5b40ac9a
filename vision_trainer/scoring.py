from __future__ import annotations

from .game_core import round_half_up
from .judge import Judgement, Verdict

# (upper bound on reaction/window ratio, multiplier); checked in order, inclusive.
MULTIPLIER_STEPS: tuple[tuple[float, float], ...] = (
    (0.3, 3.0),
    (0.5, 2.5),
    (0.7, 2.0),
    (0.9, 1.5),
)
BASE_MULTIPLIER = 1.0

BASE_POINTS_PER_LEVEL = 100
COMBO_BONUS_PER_STEP = 10
COMBO_BONUS_CAP = 200
FAKE_IGNORE_POINTS = 50


def multiplier_for(reaction_ms: float, window_ms: float) -> float:
    """Step multiplier for a reaction time relative to the window (faster = higher)."""

    if window_ms <= 0:
        raise ValueError("window_ms must be > 0")
    ratio = reaction_ms / window_ms
    for bound, multiplier in MULTIPLIER_STEPS:
        if ratio <= bound:
            return multiplier
    return BASE_MULTIPLIER


def combo_bonus(combo_before: int) -> int:
    return min(max(0, int(combo_before)) * COMBO_BONUS_PER_STEP, COMBO_BONUS_CAP)


def points_for(reaction_ms: float, window_ms: float, difficulty: int, combo_before: int) -> int:
    base = BASE_POINTS_PER_LEVEL * int(difficulty)
    return round_half_up(base * multiplier_for(reaction_ms, window_ms) + combo_bonus(combo_before))


class ScoreKeeper:
    """Live score and combo for one session."""

    def __init__(self) -> None:
        self.score = 0
        self.combo = 0
        self.max_combo = 0

    def reset(self) -> None:
        self.score = 0
        self.combo = 0
        self.max_combo = 0

    def points_for(self, judgement: Judgement, *, window_ms: float, difficulty: int) -> int:
        """Points the judgement is worth given the current combo (no mutation)."""

        if judgement.verdict is Verdict.FAKE_IGNORED:
            return FAKE_IGNORE_POINTS
        if judgement.verdict in (Verdict.HIT, Verdict.CORRECT_ANSWER):
            assert judgement.reaction_ms is not None
            return points_for(judgement.reaction_ms, window_ms, difficulty, self.combo)
        return 0

    def apply(self, judgement: Judgement, *, window_ms: float, difficulty: int) -> int:
        """Award points for ``judgement`` and update the combo. Returns the award."""

        points = self.points_for(judgement, window_ms=window_ms, difficulty=difficulty)
        self.score += points

        if judgement.verdict.is_success:
            self.combo += 1
            self.max_combo = max(self.max_combo, self.combo)
        elif judgement.verdict.is_failure:
            self.combo = 0
        return points
