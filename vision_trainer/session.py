"""Game session state machine.

idle -> countdown -> playing <-> paused -> result -> idle

Everything time-driven happens inside ``_on_tick``: the 3-2-1 countdown, the
1 s session clock, the cooldown before the next pitch and the approach of the
live stimulus. Ticks come from an injected TickScheduler and timestamps from an
injected Clock, so headless runs drive a session frame by frame with a fake
clock. All gameplay timing is measured on *active* time, which excludes any
paused span.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Protocol

from .approach import ApproachSimulator, ApproachState, MotionModel
from .clock import CancelHandle, Clock, TickScheduler
from .difficulty import DifficultyProfile, profile_for, validate_profile
from .game_core import GamePhase, SeededRng
from .judge import Answer, Judgement, Response, ResponseJudge, Tap
from .results import RoundOutcome, SessionResult, aggregate
from .scoring import ScoreKeeper
from .stimulus import RoundSpec, StimulusGenerator
from .variants import GameVariant

logger = logging.getLogger(__name__)

COUNTDOWN_FROM = 3
FIRST_PITCH_DELAY_MS = 500.0
COOLDOWN_AFTER_ANSWER_MS = 600.0
COOLDOWN_AFTER_EXPIRY_MS = 800.0


class ResultSink(Protocol):
    def record(self, result: SessionResult, *, user_id: str) -> None: ...


@dataclass(frozen=True, slots=True)
class RoundStarted:
    round: RoundSpec
    at_ms: float


@dataclass(frozen=True, slots=True)
class RoundResolved:
    outcome: RoundOutcome
    score: int
    combo: int


@dataclass(frozen=True, slots=True)
class SessionEnded:
    result: SessionResult
    persisted: bool


SessionEvent = RoundStarted | RoundResolved | SessionEnded
SessionListener = Callable[[SessionEvent], None]


class CooldownReason(StrEnum):
    FIRST_PITCH = "first_pitch"
    ANSWERED = "answered"
    EXPIRED = "expired"


@dataclass(frozen=True, slots=True)
class Cooldown:
    """Declared delay before the next stimulus spawns."""

    reason: CooldownReason
    started_at_ms: float
    duration_ms: float

    @property
    def ends_at_ms(self) -> float:
        return self.started_at_ms + self.duration_ms


_COOLDOWN_MS: dict[CooldownReason, float] = {
    CooldownReason.FIRST_PITCH: FIRST_PITCH_DELAY_MS,
    CooldownReason.ANSWERED: COOLDOWN_AFTER_ANSWER_MS,
    CooldownReason.EXPIRED: COOLDOWN_AFTER_EXPIRY_MS,
}


@dataclass(slots=True)
class LiveSessionState:
    phase: GamePhase = GamePhase.IDLE
    score: int = 0
    combo: int = 0
    max_combo: int = 0
    time_remaining_s: int = 0
    countdown: int = COUNTDOWN_FROM
    round_history: list[RoundOutcome] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """View model for the UI (pure data)."""

    title: str
    module_id: str
    difficulty: int
    phase: GamePhase
    score: int
    combo: int
    max_combo: int
    time_remaining_s: int | None  # None for untimed variants
    countdown: int
    rounds_played: int
    target_rounds: int | None
    approach: ApproachState | None
    choices: tuple[int, ...]
    last_outcome: RoundOutcome | None
    result: SessionResult | None


class GameSession:
    def __init__(
        self,
        variant: GameVariant,
        *,
        difficulty: int,
        clock: Clock,
        scheduler: TickScheduler,
        seed: int,
        profile: DifficultyProfile | None = None,
        sink: ResultSink | None = None,
        user_id: str = "local",
    ) -> None:
        self._profile = validate_profile(profile if profile is not None else profile_for(difficulty))
        self._variant = variant
        self._clock = clock
        self._scheduler = scheduler
        self._seed = int(seed)
        self._sink = sink
        self._user_id = str(user_id)

        self._generator = StimulusGenerator(SeededRng(self._seed), variant)
        self._judge = ResponseJudge(variant, window_ms=variant.window_ms(self._profile))
        self._scores = ScoreKeeper()
        self._listeners: list[SessionListener] = []

        self._live = LiveSessionState(time_remaining_s=self._profile.session_duration_s)
        self._tick_handle: CancelHandle | None = None

        self._countdown_started_s: float | None = None
        self._play_started_s: float | None = None
        self._paused_at_s: float | None = None
        self._paused_total_s = 0.0

        self._sim: ApproachSimulator | None = None
        self._round_started_ms = 0.0
        self._cooldown: Cooldown | None = None
        self._last_outcome: RoundOutcome | None = None
        self._result: SessionResult | None = None

    @property
    def seed(self) -> int:
        return self._seed

    @property
    def phase(self) -> GamePhase:
        return self._live.phase

    @property
    def profile(self) -> DifficultyProfile:
        return self._profile

    @property
    def variant(self) -> GameVariant:
        return self._variant

    @property
    def live(self) -> LiveSessionState:
        return self._live

    @property
    def cooldown(self) -> Cooldown | None:
        return self._cooldown

    @property
    def result(self) -> SessionResult | None:
        return self._result

    def history(self) -> list[RoundOutcome]:
        return list(self._live.round_history)

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ---- phase control -------------------------------------------------

    def start(self) -> None:
        if self._live.phase not in (GamePhase.IDLE, GamePhase.RESULT):
            return
        self._reset()
        self._live.phase = GamePhase.COUNTDOWN
        self._countdown_started_s = self._clock.now()
        logger.info(
            "session start module=%s difficulty=%d seed=%d",
            self._variant.module_id,
            self._profile.level,
            self._seed,
        )
        self._schedule()

    def pause(self) -> None:
        if self._live.phase is not GamePhase.PLAYING:
            return
        self._cancel_tick()
        self._paused_at_s = self._clock.now()
        self._live.phase = GamePhase.PAUSED

    def resume(self) -> None:
        if self._live.phase is not GamePhase.PAUSED:
            return
        assert self._paused_at_s is not None
        self._paused_total_s += max(0.0, self._clock.now() - self._paused_at_s)
        self._paused_at_s = None
        self._live.phase = GamePhase.PLAYING
        self._schedule()

    def reset(self) -> None:
        """Leave the result screen (or abandon a run) and return to idle."""

        self._cancel_tick()
        self._reset()

    # ---- input -----------------------------------------------------------

    def tap(self, x: float | None = None, y: float | None = None) -> bool:
        return self._respond(Tap(x, y))

    def answer(self, value: int) -> bool:
        return self._respond(Answer(int(value)))

    def _respond(self, response: Response) -> bool:
        if self._live.phase is not GamePhase.PLAYING:
            return False

        active_ms = self._active_ms(self._clock.now())
        if self._out_of_time(active_ms):
            self._finish(active_ms)
            return False

        sim = self._sim
        if sim is None or sim.resolved:
            return False

        # Input that beats the expiry tick is judged as if it landed at expiry.
        elapsed = min(max(sim.state.elapsed_ms, active_ms - self._round_started_ms), sim.lifetime_ms)
        state = sim.advance(elapsed)
        judgement = self._judge.judge(response, state, elapsed)
        if judgement is None:
            return False

        self._resolve(
            judgement,
            at_ms=min(active_ms, self._round_started_ms + sim.lifetime_ms),
            reason=CooldownReason.ANSWERED,
        )
        return True

    # ---- ticking -----------------------------------------------------------

    def _on_tick(self, now_s: float) -> None:
        self._tick_handle = None
        phase = self._live.phase

        if phase is GamePhase.COUNTDOWN:
            self._advance_countdown(now_s)
        if self._live.phase is GamePhase.PLAYING:
            self._advance_play(self._active_ms(now_s))

        if self._live.phase in (GamePhase.COUNTDOWN, GamePhase.PLAYING):
            self._schedule()

    def _advance_countdown(self, now_s: float) -> None:
        assert self._countdown_started_s is not None
        elapsed_s = now_s - self._countdown_started_s
        if elapsed_s < COUNTDOWN_FROM:
            self._live.countdown = COUNTDOWN_FROM - int(math.floor(elapsed_s))
            return

        self._live.countdown = 0
        self._live.phase = GamePhase.PLAYING
        self._play_started_s = self._countdown_started_s + COUNTDOWN_FROM
        self._paused_total_s = 0.0
        self._start_cooldown(CooldownReason.FIRST_PITCH, at_ms=0.0)

    def _advance_play(self, active_ms: float) -> None:
        if self._out_of_time(active_ms):
            self._finish(self._duration_ms())
            return
        if self._variant.time_limited:
            self._live.time_remaining_s = self._profile.session_duration_s - int(math.floor(active_ms / 1000.0))

        cooldown = self._cooldown
        if cooldown is not None and active_ms >= cooldown.ends_at_ms:
            self._cooldown = None
            if self._round_target_reached():
                self._finish(active_ms)
                return
            self._spawn(at_ms=cooldown.ends_at_ms)

        sim = self._sim
        if sim is None or sim.resolved:
            return
        state = sim.advance(max(sim.state.elapsed_ms, active_ms - self._round_started_ms))
        if state.expired:
            judgement = self._judge.judge_expiry(state)
            self._resolve(
                judgement,
                at_ms=self._round_started_ms + sim.lifetime_ms,
                reason=CooldownReason.EXPIRED,
            )

    # ---- transitions -------------------------------------------------------

    def _spawn(self, *, at_ms: float) -> None:
        spec = self._generator.next_round(self._profile, created_at_s=self._clock.now())
        self._sim = ApproachSimulator(
            spec,
            duration_ms=self._variant.approach_ms(self._profile),
            spin_rate=self._variant.spin_rate(self._profile),
            reveal_at=self._variant.reveal_at,
            hold_ms=self._variant.answer_hold_ms,
            display_ms=self._variant.display_ms(self._profile),
            motion=MotionModel.NUMBER_BALL if self._variant.shows_number else MotionModel.PITCH,
        )
        self._round_started_ms = at_ms
        logger.debug("round %s spawned kind=%s at %.0fms", spec.id, spec.kind, at_ms)
        self._emit(RoundStarted(round=spec, at_ms=at_ms))

    def _resolve(self, judgement: Judgement, *, at_ms: float, reason: CooldownReason) -> None:
        sim = self._sim
        assert sim is not None
        sim.resolve()

        points = self._scores.apply(
            judgement,
            window_ms=self._judge.window_ms,
            difficulty=self._profile.level,
        )
        outcome = RoundOutcome(
            round=sim.round,
            verdict=judgement.verdict,
            reaction_ms=judgement.reaction_ms,
            is_correct=judgement.is_correct,
            counts_as_attempt=judgement.counts_as_attempt,
            points_awarded=points,
            resolved_at_ms=at_ms,
            tier=judgement.tier,
        )
        self._live.round_history.append(outcome)
        self._live.score = self._scores.score
        self._live.combo = self._scores.combo
        self._live.max_combo = self._scores.max_combo
        self._last_outcome = outcome
        self._sim = None

        self._start_cooldown(reason, at_ms=at_ms)
        self._emit(RoundResolved(outcome=outcome, score=self._live.score, combo=self._live.combo))

    def _start_cooldown(self, reason: CooldownReason, *, at_ms: float) -> None:
        self._cooldown = Cooldown(reason=reason, started_at_ms=at_ms, duration_ms=_COOLDOWN_MS[reason])

    def _finish(self, active_ms: float) -> None:
        if self._live.phase is GamePhase.RESULT:
            return
        self._cancel_tick()

        if self._sim is not None and not self._sim.resolved:
            # In flight at the buzzer: dropped, never scored.
            logger.debug("discarding unresolved round %s at session end", self._sim.round.id)
        self._sim = None
        self._cooldown = None

        if self._variant.time_limited:
            active_ms = min(active_ms, self._duration_ms())
            self._live.time_remaining_s = max(0, self._profile.session_duration_s - int(math.floor(active_ms / 1000.0)))
        played_s = active_ms / 1000.0
        self._live.phase = GamePhase.RESULT

        result = aggregate(
            self._live.round_history,
            difficulty=self._profile.level,
            duration_s=played_s,
            module_id=self._variant.module_id,
            max_combo=self._live.max_combo,
        )
        self._result = result
        persisted = self._persist(result)
        logger.info(
            "session end module=%s score=%d accuracy=%.3f attempts=%d",
            result.module_id,
            result.total_score,
            result.accuracy,
            result.total_attempts,
        )
        self._emit(SessionEnded(result=result, persisted=persisted))

    def _persist(self, result: SessionResult) -> bool:
        if self._sink is None:
            return False
        try:
            self._sink.record(result, user_id=self._user_id)
        except Exception:
            # The player still gets their result; storage is the caller's problem.
            logger.warning("failed to persist session result for user %s", self._user_id, exc_info=True)
            return False
        return True

    def _reset(self) -> None:
        self._scores.reset()
        self._live = LiveSessionState(time_remaining_s=self._profile.session_duration_s)
        self._countdown_started_s = None
        self._play_started_s = None
        self._paused_at_s = None
        self._paused_total_s = 0.0
        self._sim = None
        self._round_started_ms = 0.0
        self._cooldown = None
        self._last_outcome = None
        self._result = None

    # ---- helpers -------------------------------------------------------------

    def _duration_ms(self) -> float:
        return self._profile.session_duration_s * 1000.0

    def _out_of_time(self, active_ms: float) -> bool:
        return self._variant.time_limited and active_ms >= self._duration_ms()

    def _round_target_reached(self) -> bool:
        target = self._variant.round_target(self._profile)
        return target is not None and len(self._live.round_history) >= target

    def _active_ms(self, now_s: float) -> float:
        assert self._play_started_s is not None
        paused = self._paused_total_s
        if self._paused_at_s is not None:
            paused += now_s - self._paused_at_s
        return max(0.0, (now_s - self._play_started_s - paused) * 1000.0)

    def _schedule(self) -> None:
        if self._tick_handle is None:
            self._tick_handle = self._scheduler.schedule_tick(self._on_tick)

    def _cancel_tick(self) -> None:
        if self._tick_handle is not None:
            self._tick_handle.cancel()
            self._tick_handle = None

    def _emit(self, event: SessionEvent) -> None:
        for listener in list(self._listeners):
            listener(event)

    def snapshot(self) -> SessionSnapshot:
        approach = None if self._sim is None else self._sim.state
        return SessionSnapshot(
            title=self._variant.title,
            module_id=self._variant.module_id,
            difficulty=self._profile.level,
            phase=self._live.phase,
            score=self._live.score,
            combo=self._live.combo,
            max_combo=self._live.max_combo,
            time_remaining_s=self._live.time_remaining_s if self._variant.time_limited else None,
            countdown=self._live.countdown,
            rounds_played=len(self._live.round_history),
            target_rounds=self._variant.round_target(self._profile),
            approach=approach,
            choices=() if approach is None else approach.round.choices,
            last_outcome=self._last_outcome,
            result=self._result,
        )


def build_game_session(
    variant: GameVariant,
    *,
    clock: Clock,
    scheduler: TickScheduler,
    seed: int,
    difficulty: int = 2,
    sink: ResultSink | None = None,
    user_id: str = "local",
) -> GameSession:
    return GameSession(
        variant,
        difficulty=difficulty,
        clock=clock,
        scheduler=scheduler,
        seed=seed,
        sink=sink,
        user_id=user_id,
    )
