from __future__ import annotations

from dataclasses import dataclass, replace

from vision_trainer.clock import FrameTickScheduler
from vision_trainer.difficulty import profile_for
from vision_trainer.game_core import GamePhase
from vision_trainer.judge import Tier, Verdict
from vision_trainer.session import GameSession, RoundStarted, SessionEnded, SessionEvent
from vision_trainer.variants import BALL_NUMBER_HUNT, BALL_NUMBER_KEYPAD


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


def _step_to(clock: FakeClock, scheduler: FrameTickScheduler, t: float) -> None:
    clock.t = t
    scheduler.run_frame()


def _started(events: list[SessionEvent]) -> list[RoundStarted]:
    return [e for e in events if isinstance(e, RoundStarted)]


def test_headless_scripted_run_ends_after_round_target() -> None:
    clock = FakeClock()
    scheduler = FrameTickScheduler(clock)
    profile = replace(profile_for(1), number_round_count=3)
    session = GameSession(
        BALL_NUMBER_HUNT,
        difficulty=1,
        clock=clock,
        scheduler=scheduler,
        seed=777,
        profile=profile,
    )
    events: list[SessionEvent] = []
    session.subscribe(events.append)

    session.start()
    for t in (0.0, 3.0, 3.5):
        _step_to(clock, scheduler, t)

    # Round 0 spawned at 500 ms; readable from 500 + 0.85 * 2000 = 2200 ms.
    r0 = _started(events)[0].round
    assert r0.displayed_number is not None and 1 <= r0.displayed_number <= 9
    snap = session.snapshot()
    assert snap.choices == r0.choices
    assert snap.target_rounds == 3

    clock.t = 4.25  # active 1250: still in flight
    assert session.answer(r0.displayed_number) is False

    clock.t = 5.5  # active 2500: 300 ms after reveal
    assert session.answer(0) is False  # not one of the choices
    assert session.answer(r0.displayed_number) is True
    first = session.history()[-1]
    assert first.verdict is Verdict.CORRECT_ANSWER
    assert first.reaction_ms == 300
    assert first.tier is Tier.LIGHTNING
    assert first.points_awarded == 300  # level 1, x3.0, no combo yet

    # Round 1: wrong answer 200 ms after reveal.
    _step_to(clock, scheduler, 6.125)
    r1 = _started(events)[1].round
    assert _started(events)[1].at_ms == 3100
    clock.t = 8.0
    wrong = next(c for c in r1.choices if c != r1.displayed_number)
    assert session.answer(wrong) is True
    assert session.history()[-1].verdict is Verdict.WRONG_ANSWER
    assert session.live.combo == 0

    # Round 2: never answered; expires after flight plus hold.
    _step_to(clock, scheduler, 8.625)
    assert _started(events)[2].at_ms == 5600
    _step_to(clock, scheduler, 13.125)
    missed = session.history()[-1]
    assert missed.verdict is Verdict.MISSED
    assert missed.resolved_at_ms == 5600 + 2000 + 2500

    # Target reached: the session ends once the cooldown runs out.
    _step_to(clock, scheduler, 13.5)
    assert session.phase is GamePhase.PLAYING
    _step_to(clock, scheduler, 14.0)
    assert session.phase is GamePhase.RESULT

    result = session.result
    assert result is not None
    assert result.module_id == "ball-number-hunt"
    assert result.total_attempts == 3
    assert result.correct_count == 1
    assert result.accuracy == 1 / 3
    assert result.reaction_times_ms == (300.0, 200.0)
    assert result.avg_reaction_ms == 250
    assert result.best_reaction_ms == 200
    assert result.total_score == 300
    assert result.max_combo == 1
    assert result.duration_s == 11.0
    assert len(_started(events)) == 3

    ended = [e for e in events if isinstance(e, SessionEnded)]
    assert len(ended) == 1 and not ended[0].persisted  # no sink configured


def test_number_hides_after_display_time() -> None:
    clock = FakeClock()
    scheduler = FrameTickScheduler(clock)
    session = GameSession(BALL_NUMBER_HUNT, difficulty=1, clock=clock, scheduler=scheduler, seed=4)

    session.start()
    for t in (0.0, 3.0, 3.5, 5.0):
        _step_to(clock, scheduler, t)
    # active 2000: in flight, number not shown yet
    state = session.snapshot().approach
    assert state is not None and not state.number_visible and not state.accepts_input

    _step_to(clock, scheduler, 5.5)  # 300 ms after reveal
    state = session.snapshot().approach
    assert state is not None and state.number_visible and state.accepts_input

    _step_to(clock, scheduler, 6.25)  # 1050 ms after reveal, display is 1000 ms
    state = session.snapshot().approach
    assert state is not None and not state.number_visible and state.accepts_input


def test_keypad_variant_accepts_typed_numbers() -> None:
    clock = FakeClock()
    scheduler = FrameTickScheduler(clock)
    session = GameSession(BALL_NUMBER_KEYPAD, difficulty=4, clock=clock, scheduler=scheduler, seed=99)
    events: list[SessionEvent] = []
    session.subscribe(events.append)

    session.start()
    for t in (0.0, 3.0, 3.5):
        _step_to(clock, scheduler, t)
    spec = _started(events)[0].round
    assert spec.choices == ()
    assert 10 <= spec.displayed_number <= 99
    assert session.snapshot().choices == ()

    # Level 4 number flight is 1300 ms; reveal at 500 + 1105 = 1605 ms.
    clock.t = 4.75
    assert session.tap() is False
    assert session.answer(spec.displayed_number) is True
    outcome = session.history()[-1]
    assert outcome.verdict is Verdict.CORRECT_ANSWER
    assert outcome.reaction_ms == 1750 - 1605


def test_stock_profile_plays_every_round_without_a_clock() -> None:
    clock = FakeClock()
    scheduler = FrameTickScheduler(clock)
    session = GameSession(BALL_NUMBER_HUNT, difficulty=1, clock=clock, scheduler=scheduler, seed=31)
    assert session.snapshot().target_rounds == 15

    session.start()
    t = 0.0
    while session.phase is not GamePhase.RESULT and t < 120.0:
        _step_to(clock, scheduler, t)
        t += 0.25

    # Every ball expires: 500 ms lead-in, then 15 x (2000 flight + 2500 hold + 800 cooldown).
    assert session.phase is GamePhase.RESULT
    assert session.snapshot().time_remaining_s is None
    result = session.result
    assert result is not None
    assert result.total_attempts == 15
    assert all(o.verdict is Verdict.MISSED for o in session.history())
    assert result.duration_s == 80.0
    assert result.duration_s > profile_for(1).session_duration_s
