"""Per-round approach simulation.

A stimulus flies from the mound (far, small) to the plate (near, large).
Coordinates are normalized to the playing field: x and y in [0, 1] with the
origin at the top-left, radius as a fraction of field height. Renderers scale
them to whatever surface they draw on.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import StrEnum

from .game_core import clamp01, lerp
from .stimulus import RoundSpec, StimulusKind

FRAME_MS = 1000.0 / 60.0

# Strike zone at the plate, normalized; balls finish outside it.
ZONE_HALF_WIDTH = 0.10
BALL_OFFSET_X = 0.22


class ApproachPhase(StrEnum):
    FLYING = "flying"
    DECIDABLE = "decidable"
    RESOLVED = "resolved"


class MotionModel(StrEnum):
    PITCH = "pitch"  # straight-ish line with per-pitch lateral break
    NUMBER_BALL = "number_ball"  # slow drift, larger ball so the number is legible


@dataclass(frozen=True, slots=True)
class ApproachState:
    round: RoundSpec
    depth: float
    radius: float
    x: float
    y: float
    rotation: float
    phase: ApproachPhase
    elapsed_ms: float
    decidable_since_ms: float | None
    expired: bool = False
    number_visible: bool = False

    @property
    def accepts_input(self) -> bool:
        # An unresolved stimulus that has just run out still takes the input
        # that arrived in the same tick.
        return self.phase is ApproachPhase.DECIDABLE


def _pitch_geometry(spec: RoundSpec, t: float) -> tuple[float, float, float]:
    radius = 0.016 + t * 0.076
    target_x = 0.5 + spec.drift_x * 0.12
    if spec.kind is StimulusKind.BALL:
        target_x += math.copysign(BALL_OFFSET_X, spec.drift_x)
    x = 0.5 + (target_x - 0.5) * t + spec.drift_x * 0.04 * t
    y = lerp(0.38, 0.70, t) - math.sin(t * math.pi) * 0.03 * spec.drift_y
    return radius, x, y


def _number_ball_geometry(spec: RoundSpec, t: float) -> tuple[float, float, float]:
    radius = 0.024 + t * 0.10
    x = 0.5 + spec.drift_x * t
    y = 0.40 + 0.30 * t + spec.drift_y * t
    return radius, x, y


class ApproachSimulator:
    """Owns the spatial/temporal state of one stimulus until it is resolved."""

    def __init__(
        self,
        spec: RoundSpec,
        *,
        duration_ms: float,
        spin_rate: float,
        reveal_at: float = 0.0,
        hold_ms: float = 0.0,
        display_ms: float | None = None,
        motion: MotionModel = MotionModel.PITCH,
    ) -> None:
        if duration_ms <= 0.0:
            raise ValueError("duration_ms must be > 0")
        if not (0.0 <= reveal_at <= 1.0):
            raise ValueError("reveal_at must be in [0.0, 1.0]")
        if hold_ms < 0.0:
            raise ValueError("hold_ms must be >= 0")

        self._spec = spec
        self._duration_ms = float(duration_ms)
        self._spin_rate = float(spin_rate)
        self._reveal_at = float(reveal_at)
        self._hold_ms = float(hold_ms)
        self._display_ms = None if display_ms is None else float(display_ms)
        self._motion = motion

        self._resolved = False
        self._state = self._compute(0.0)

    @property
    def round(self) -> RoundSpec:
        return self._spec

    @property
    def state(self) -> ApproachState:
        return self._state

    @property
    def resolved(self) -> bool:
        return self._resolved

    @property
    def decidable_since_ms(self) -> float:
        return self._reveal_at * self._duration_ms

    @property
    def lifetime_ms(self) -> float:
        return self._duration_ms + self._hold_ms

    def advance(self, elapsed_ms: float) -> ApproachState:
        """Move the stimulus to ``elapsed_ms`` since its spawn."""

        if self._resolved:
            return self._state
        if elapsed_ms < self._state.elapsed_ms:
            raise ValueError("elapsed time cannot go backwards")
        self._state = self._compute(float(elapsed_ms))
        return self._state

    def resolve(self) -> ApproachState:
        if not self._resolved:
            self._resolved = True
            self._state = replace(self._state, phase=ApproachPhase.RESOLVED, number_visible=False)
        return self._state

    def _compute(self, elapsed_ms: float) -> ApproachState:
        depth = clamp01(elapsed_ms / self._duration_ms)

        if self._motion is MotionModel.NUMBER_BALL:
            radius, x, y = _number_ball_geometry(self._spec, depth)
        else:
            radius, x, y = _pitch_geometry(self._spec, depth)

        rotation = self._spin_rate * (elapsed_ms / FRAME_MS)

        decidable = depth >= self._reveal_at
        since = self.decidable_since_ms if decidable else None

        # The number appears at the reveal and disappears display_ms later.
        number_visible = self._spec.displayed_number is not None and decidable
        if number_visible and self._display_ms is not None:
            number_visible = (elapsed_ms - self.decidable_since_ms) < self._display_ms

        return ApproachState(
            round=self._spec,
            depth=depth,
            radius=radius,
            x=x,
            y=y,
            rotation=rotation,
            phase=ApproachPhase.DECIDABLE if decidable else ApproachPhase.FLYING,
            elapsed_ms=elapsed_ms,
            decidable_since_ms=since,
            expired=elapsed_ms >= self.lifetime_ms,
            number_visible=number_visible,
        )


def hit_test(state: ApproachState, x: float, y: float, *, slop: float = 0.03) -> bool:
    """True if a pointer at (x, y) lands on the ball, with ``slop`` of tolerance."""

    if state.phase is ApproachPhase.RESOLVED:
        return False
    return math.hypot(x - state.x, y - state.y) <= state.radius + slop
