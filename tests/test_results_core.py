from __future__ import annotations

from vision_trainer.judge import Verdict
from vision_trainer.results import RoundOutcome, aggregate
from vision_trainer.stimulus import PitchType, RoundSpec, StimulusKind


def _outcome(
    i: int,
    verdict: Verdict,
    *,
    reaction_ms: float | None = None,
    counts: bool = True,
    points: int = 0,
) -> RoundOutcome:
    spec = RoundSpec(id=f"r{i:03d}", kind=StimulusKind.STRIKE, pitch=PitchType.CURVE, created_at_s=0.0)
    return RoundOutcome(
        round=spec,
        verdict=verdict,
        reaction_ms=reaction_ms,
        is_correct=verdict.is_success or verdict is Verdict.BALL_IGNORED,
        counts_as_attempt=counts,
        points_awarded=points,
        resolved_at_ms=1000.0 * i,
    )


def test_empty_history() -> None:
    r = aggregate([], difficulty=2, duration_s=45.0, module_id="pitcher-reaction")
    assert r.total_attempts == 0
    assert r.accuracy == 0.0
    assert r.avg_reaction_ms == 0
    assert r.best_reaction_ms == 0
    assert r.total_score == 0
    assert r.reaction_times_ms == ()


def test_mixed_history() -> None:
    history = [
        _outcome(0, Verdict.HIT, reaction_ms=250.4, points=300),
        _outcome(1, Verdict.HIT, reaction_ms=199.5, points=200),
        _outcome(2, Verdict.BALL_IGNORED, counts=False),
        _outcome(3, Verdict.MISSED),
        _outcome(4, Verdict.FAKE_IGNORED, points=50),
    ]
    r = aggregate(history, difficulty=3, duration_s=60.0, module_id="pitcher-reaction", max_combo=2)

    assert r.module_id == "pitcher-reaction"
    assert r.difficulty == 3
    assert r.total_attempts == 4
    assert r.correct_count == 3
    assert r.accuracy == 0.75
    assert r.avg_reaction_ms == 225
    assert r.best_reaction_ms == 200
    assert r.reaction_times_ms == (250.4, 199.5)
    assert r.total_score == 550
    assert r.max_combo == 2
    assert len(r.rounds) == 5

    # Pure: same input, same summary.
    assert aggregate(history, difficulty=3, duration_s=60.0, module_id="pitcher-reaction", max_combo=2) == r
