from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from .approach import ApproachState, hit_test
from .stimulus import StimulusKind
from .variants import GameVariant, ResponseMode


class Tier(StrEnum):
    LIGHTNING = "lightning"
    PERFECT = "perfect"
    GREAT = "great"
    GOOD = "good"
    OK = "ok"


# (upper bound on reaction/window ratio, tier); checked in order, inclusive.
TIER_STEPS: tuple[tuple[float, Tier], ...] = (
    (0.3, Tier.LIGHTNING),
    (0.5, Tier.PERFECT),
    (0.7, Tier.GREAT),
    (0.9, Tier.GOOD),
)


def tier_for(reaction_ms: float, window_ms: float) -> Tier:
    if window_ms <= 0:
        raise ValueError("window_ms must be > 0")
    ratio = reaction_ms / window_ms
    for bound, tier in TIER_STEPS:
        if ratio <= bound:
            return tier
    return Tier.OK


class Verdict(StrEnum):
    HIT = "hit"
    CORRECT_ANSWER = "correct_answer"
    FAKE_IGNORED = "fake_ignored"
    BALL_IGNORED = "ball_ignored"
    FALSE_ALARM = "false_alarm"
    FAKE_TAPPED = "fake_tapped"
    WRONG_ANSWER = "wrong_answer"
    MISSED = "missed"

    @property
    def is_success(self) -> bool:
        return self in _SUCCESS

    @property
    def is_failure(self) -> bool:
        return self in _FAILURE


_SUCCESS = frozenset({Verdict.HIT, Verdict.CORRECT_ANSWER, Verdict.FAKE_IGNORED})
_FAILURE = frozenset({Verdict.FALSE_ALARM, Verdict.FAKE_TAPPED, Verdict.WRONG_ANSWER, Verdict.MISSED})


@dataclass(frozen=True, slots=True)
class Tap:
    # Normalized pointer position; None for keyboard/button taps.
    x: float | None = None
    y: float | None = None


@dataclass(frozen=True, slots=True)
class Answer:
    value: int


Response = Tap | Answer


@dataclass(frozen=True, slots=True)
class Judgement:
    verdict: Verdict
    reaction_ms: float | None
    is_correct: bool
    counts_as_attempt: bool
    tier: Tier | None = None


class ResponseJudge:
    """Grades inputs and expiries against the live stimulus."""

    def __init__(self, variant: GameVariant, *, window_ms: float) -> None:
        if window_ms <= 0:
            raise ValueError("window_ms must be > 0")
        self._variant = variant
        self._window_ms = float(window_ms)

    @property
    def window_ms(self) -> float:
        return self._window_ms

    def judge(self, response: Response, state: ApproachState | None, now_ms: float) -> Judgement | None:
        """Grade ``response`` given at ``now_ms`` on the stimulus' own timeline.

        Returns None (no-op) for stray input: nothing decidable on screen, a
        response that does not fit the variant, or a pointer tap off the ball.
        """

        if state is None or not state.accepts_input:
            return None
        assert state.decidable_since_ms is not None

        spec = state.round
        mode = self._variant.response_mode

        if isinstance(response, Tap):
            if mode is not ResponseMode.TAP:
                return None
            if response.x is not None and response.y is not None:
                if not hit_test(state, response.x, response.y, slop=self._variant.hit_slop):
                    return None
            if spec.kind is StimulusKind.STRIKE:
                verdict = Verdict.HIT
            elif spec.kind is StimulusKind.FAKE:
                verdict = Verdict.FAKE_TAPPED
            else:
                verdict = Verdict.FALSE_ALARM
        else:
            if mode is ResponseMode.TAP or spec.displayed_number is None:
                return None
            if mode is ResponseMode.CHOICE and response.value not in spec.choices:
                return None
            verdict = Verdict.CORRECT_ANSWER if response.value == spec.displayed_number else Verdict.WRONG_ANSWER

        reaction_ms = max(0.0, float(now_ms) - state.decidable_since_ms)
        return Judgement(
            verdict=verdict,
            reaction_ms=reaction_ms,
            is_correct=verdict.is_success,
            counts_as_attempt=True,
            tier=tier_for(reaction_ms, self._window_ms),
        )

    def judge_expiry(self, state: ApproachState) -> Judgement:
        """Outcome for a stimulus that ran out without an accepted input."""

        kind = state.round.kind
        if kind is StimulusKind.FAKE:
            return Judgement(verdict=Verdict.FAKE_IGNORED, reaction_ms=None, is_correct=True, counts_as_attempt=True)
        if kind is StimulusKind.BALL:
            return Judgement(
                verdict=Verdict.BALL_IGNORED,
                reaction_ms=None,
                is_correct=True,
                counts_as_attempt=self._variant.count_ignored_balls,
            )
        return Judgement(verdict=Verdict.MISSED, reaction_ms=None, is_correct=False, counts_as_attempt=True)
