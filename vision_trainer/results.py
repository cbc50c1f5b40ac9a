from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from .game_core import round_half_up
from .judge import Tier, Verdict
from .stimulus import RoundSpec


@dataclass(frozen=True, slots=True)
class RoundOutcome:
    """One resolved round, appended to the session history and never edited."""

    round: RoundSpec
    verdict: Verdict
    reaction_ms: float | None
    is_correct: bool
    counts_as_attempt: bool
    points_awarded: int
    resolved_at_ms: float  # active session time
    tier: Tier | None = None


@dataclass(frozen=True, slots=True)
class SessionResult:
    """Persistable summary for a completed session.

    This is the only artifact handed to the result store.
    """

    module_id: str
    difficulty: int
    duration_s: float

    total_score: int
    accuracy: float
    avg_reaction_ms: int
    best_reaction_ms: int
    total_attempts: int
    correct_count: int
    max_combo: int

    reaction_times_ms: tuple[float, ...]
    rounds: tuple[RoundOutcome, ...] = ()


def aggregate(
    history: Sequence[RoundOutcome],
    *,
    difficulty: int,
    duration_s: float,
    module_id: str,
    max_combo: int = 0,
) -> SessionResult:
    """Reduce a round history into a SessionResult. Pure; safe to call repeatedly."""

    attempts = [o for o in history if o.counts_as_attempt]
    total_attempts = len(attempts)
    correct_count = sum(1 for o in attempts if o.is_correct)
    accuracy = 0.0 if total_attempts == 0 else correct_count / total_attempts

    times = tuple(float(o.reaction_ms) for o in history if o.reaction_ms is not None)
    if times:
        avg_ms = round_half_up(sum(times) / len(times))
        best_ms = round_half_up(min(times))
    else:
        avg_ms = 0
        best_ms = 0

    return SessionResult(
        module_id=str(module_id),
        difficulty=int(difficulty),
        duration_s=float(duration_s),
        total_score=int(sum(o.points_awarded for o in history)),
        accuracy=float(accuracy),
        avg_reaction_ms=avg_ms,
        best_reaction_ms=best_ms,
        total_attempts=total_attempts,
        correct_count=correct_count,
        max_combo=int(max_combo),
        reaction_times_ms=times,
        rounds=tuple(history),
    )
