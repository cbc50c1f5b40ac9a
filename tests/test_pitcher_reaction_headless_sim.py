from __future__ import annotations

import logging
from dataclasses import dataclass, replace

import pytest

from vision_trainer.clock import FrameTickScheduler
from vision_trainer.difficulty import profile_for
from vision_trainer.errors import PersistenceFailure
from vision_trainer.game_core import GamePhase, SeededRng
from vision_trainer.judge import Verdict
from vision_trainer.results import SessionResult
from vision_trainer.session import (
    CooldownReason,
    GameSession,
    RoundResolved,
    RoundStarted,
    SessionEnded,
    SessionEvent,
    build_game_session,
)
from vision_trainer.stimulus import StimulusGenerator, StimulusKind
from vision_trainer.variants import PITCHER_REACTION


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


class RecordingSink:
    def __init__(self) -> None:
        self.records: list[tuple[SessionResult, str]] = []

    def record(self, result: SessionResult, *, user_id: str) -> None:
        self.records.append((result, user_id))


class FailingSink:
    def record(self, result: SessionResult, *, user_id: str) -> None:
        raise PersistenceFailure("disk full")


def _session(seed: int, *, sink=None, profile=None) -> tuple[FakeClock, FrameTickScheduler, GameSession, list[SessionEvent]]:
    clock = FakeClock()
    scheduler = FrameTickScheduler(clock)
    session = GameSession(
        PITCHER_REACTION,
        difficulty=1,
        clock=clock,
        scheduler=scheduler,
        seed=seed,
        profile=profile,
        sink=sink,
        user_id="tester",
    )
    events: list[SessionEvent] = []
    session.subscribe(events.append)
    return clock, scheduler, session, events


def _step_to(clock: FakeClock, scheduler: FrameTickScheduler, t: float) -> None:
    clock.t = t
    scheduler.run_frame()


def _first_spec(seed: int):
    return StimulusGenerator(SeededRng(seed), PITCHER_REACTION).next_round(profile_for(1))


def test_countdown_then_first_pitch_after_delay() -> None:
    clock, scheduler, session, events = _session(11)
    session.start()
    assert session.phase is GamePhase.COUNTDOWN
    assert session.tap() is False

    _step_to(clock, scheduler, 0.0)
    assert session.snapshot().countdown == 3
    _step_to(clock, scheduler, 1.5)
    assert session.snapshot().countdown == 2
    _step_to(clock, scheduler, 3.0)
    assert session.phase is GamePhase.PLAYING
    assert session.cooldown is not None and session.cooldown.reason is CooldownReason.FIRST_PITCH
    assert session.snapshot().approach is None

    _step_to(clock, scheduler, 3.25)
    assert session.snapshot().approach is None
    _step_to(clock, scheduler, 3.5)
    started = [e for e in events if isinstance(e, RoundStarted)]
    assert len(started) == 1
    assert started[0].at_ms == 500
    assert started[0].round.kind is _first_spec(11).kind
    assert session.snapshot().approach is not None


def test_tap_is_judged_on_active_time() -> None:
    seed = 21
    clock, scheduler, session, _ = _session(seed)
    session.start()
    for t in (0.0, 3.0, 3.5):
        _step_to(clock, scheduler, t)

    clock.t = 3.75
    assert session.tap() is True
    outcome = session.history()[-1]
    expected = Verdict.HIT if _first_spec(seed).kind is StimulusKind.STRIKE else Verdict.FALSE_ALARM
    assert outcome.verdict is expected
    assert outcome.reaction_ms == 250
    assert outcome.resolved_at_ms == 750
    assert session.cooldown is not None
    assert session.cooldown.reason is CooldownReason.ANSWERED
    assert session.cooldown.ends_at_ms == 1350

    # Nothing live during the cooldown.
    assert session.tap() is False


def test_pause_freezes_time_and_ignores_input() -> None:
    seed = 5
    clock, scheduler, session, _ = _session(seed)
    session.start()
    for t in (0.0, 3.0, 3.5):
        _step_to(clock, scheduler, t)

    clock.t = 3.75
    session.pause()
    assert session.phase is GamePhase.PAUSED
    assert scheduler.pending_count == 0
    assert session.tap() is False

    _step_to(clock, scheduler, 13.75)
    assert session.phase is GamePhase.PAUSED
    assert session.history() == []

    session.resume()
    assert session.phase is GamePhase.PLAYING
    _step_to(clock, scheduler, 13.75)
    snap = session.snapshot()
    assert snap.approach is not None
    assert snap.approach.elapsed_ms == 250
    assert snap.time_remaining_s == 45

    clock.t = 13.875
    assert session.tap() is True
    assert session.history()[-1].reaction_ms == 375


def test_unanswered_pitch_expires_at_exact_lifetime() -> None:
    seed = 8
    clock, scheduler, session, events = _session(seed)
    session.start()
    for t in (0.0, 3.0, 3.5, 5.5):
        _step_to(clock, scheduler, t)

    outcome = session.history()[-1]
    kind = _first_spec(seed).kind
    assert outcome.verdict is (Verdict.MISSED if kind is StimulusKind.STRIKE else Verdict.BALL_IGNORED)
    assert outcome.resolved_at_ms == 500 + 1920
    assert outcome.reaction_ms is None
    assert session.live.combo == 0

    cooldown = session.cooldown
    assert cooldown is not None
    assert cooldown.reason is CooldownReason.EXPIRED
    assert cooldown.ends_at_ms == 2420 + 800

    _step_to(clock, scheduler, 6.25)
    started = [e for e in events if isinstance(e, RoundStarted)]
    assert [e.at_ms for e in started] == [500, 3220]


def test_input_in_the_expiry_tick_wins() -> None:
    seed = 8
    clock, scheduler, session, _ = _session(seed)
    session.start()
    for t in (0.0, 3.0, 3.5):
        _step_to(clock, scheduler, t)

    # The stimulus ran out at 2420 ms but no tick has resolved it yet.
    clock.t = 5.5
    assert session.tap() is True
    outcome = session.history()[-1]
    assert outcome.verdict in (Verdict.HIT, Verdict.FALSE_ALARM)
    # Late input is clamped to the stimulus lifetime.
    assert outcome.reaction_ms == 1920
    assert outcome.resolved_at_ms == 2420
    assert session.cooldown is not None and session.cooldown.ends_at_ms == 2420 + 600


def test_stimulus_in_flight_at_time_up_is_dropped() -> None:
    short = replace(profile_for(1), session_duration_s=1)
    clock, scheduler, session, events = _session(5, profile=short)

    session.start()
    for t in (0.0, 3.0, 3.5, 3.75):
        _step_to(clock, scheduler, t)
    assert session.snapshot().approach is not None

    _step_to(clock, scheduler, 4.0)
    assert session.phase is GamePhase.RESULT
    assert session.history() == []
    assert not any(isinstance(e, RoundResolved) for e in events)
    assert len([e for e in events if isinstance(e, RoundStarted)]) == 1
    result = session.result
    assert result is not None
    assert result.total_score == 0
    assert result.total_attempts == 0
    assert session.snapshot().approach is None


def test_scripted_perfect_run_produces_expected_summary() -> None:
    seed = 1234
    sink = RecordingSink()
    clock, scheduler, session, events = _session(seed, sink=sink)
    mirror = StimulusGenerator(SeededRng(seed), PITCHER_REACTION)
    profile = profile_for(1)

    session.start()
    frame_s = 1.0 / 64.0
    while session.phase is not GamePhase.RESULT:
        clock.advance(frame_s)
        scheduler.run_frame()
        state = session.snapshot().approach
        if (
            session.phase is GamePhase.PLAYING
            and state is not None
            and state.round.kind is StimulusKind.STRIKE
            and state.elapsed_ms >= 200
        ):
            assert session.tap() is True
        assert clock.t < 60.0

    started = [e.round for e in events if isinstance(e, RoundStarted)]
    assert [(r.kind, r.pitch) for r in started] == [
        (s.kind, s.pitch) for s in (mirror.next_round(profile) for _ in started)
    ]

    result = session.result
    assert result is not None
    history = session.history()
    hits = [o for o in history if o.verdict is Verdict.HIT]
    assert {o.verdict for o in history} <= {Verdict.HIT, Verdict.BALL_IGNORED}
    assert result.total_attempts == len(hits) > 0
    assert result.accuracy == 1.0
    assert result.max_combo == len(hits)
    assert result.total_score == sum(o.points_awarded for o in history)
    assert result.duration_s == 45.0
    assert result.module_id == "pitcher-reaction"

    assert sink.records == [(result, "tester")]
    ended = [e for e in events if isinstance(e, SessionEnded)]
    assert len(ended) == 1 and ended[0].persisted
    resolved = [e for e in events if isinstance(e, RoundResolved)]
    assert len(resolved) == len(history)
    assert resolved[-1].score == result.total_score


def test_sink_failure_is_logged_and_result_kept(caplog: pytest.LogCaptureFixture) -> None:
    short = replace(profile_for(1), session_duration_s=1)
    clock, scheduler, session, events = _session(3, sink=FailingSink(), profile=short)

    session.start()
    with caplog.at_level(logging.WARNING, logger="vision_trainer.session"):
        for t in (0.0, 3.0, 4.0):
            _step_to(clock, scheduler, t)

    assert session.phase is GamePhase.RESULT
    assert session.result is not None
    assert session.result.duration_s == 1.0
    ended = [e for e in events if isinstance(e, SessionEnded)]
    assert len(ended) == 1 and not ended[0].persisted
    assert any("failed to persist" in r.getMessage() for r in caplog.records)


def test_restart_and_reset() -> None:
    short = replace(profile_for(1), session_duration_s=1)
    clock, scheduler, session, events = _session(3, profile=short)

    session.start()
    for t in (0.0, 3.0, 3.5, 4.0):
        _step_to(clock, scheduler, t)
    assert session.phase is GamePhase.RESULT
    first = session.result

    session.start()
    assert session.phase is GamePhase.COUNTDOWN
    assert session.result is None
    assert session.history() == []
    for t in (4.0, 7.0, 7.5):
        _step_to(clock, scheduler, t)
    started = [e for e in events if isinstance(e, RoundStarted)]
    # The stimulus stream carries on across restarts.
    assert [e.round.id for e in started] == ["r000", "r001"]

    session.reset()
    assert session.phase is GamePhase.IDLE
    assert scheduler.pending_count == 0
    assert first is not None and first.module_id == "pitcher-reaction"


def test_factory_builds_idle_session() -> None:
    clock = FakeClock()
    session = build_game_session(PITCHER_REACTION, clock=clock, scheduler=FrameTickScheduler(clock), seed=1)
    assert session.phase is GamePhase.IDLE
    assert session.profile.level == 2
    assert session.seed == 1
