from __future__ import annotations

import pytest

from vision_trainer.difficulty import profile_for
from vision_trainer.errors import ConfigurationError
from vision_trainer.variants import BALL_NUMBER_HUNT, PITCHER_REACTION, ResponseMode, variant_for


def test_lookup_by_module_id() -> None:
    assert variant_for("pitcher-reaction") is PITCHER_REACTION
    assert variant_for("ball-number-hunt") is BALL_NUMBER_HUNT
    with pytest.raises(ConfigurationError):
        variant_for("fly-tracer")


def test_pitcher_timing_comes_from_the_pitch_columns() -> None:
    p = profile_for(3)
    assert PITCHER_REACTION.response_mode is ResponseMode.TAP
    assert PITCHER_REACTION.approach_ms(p) == p.approach_duration_ms
    assert PITCHER_REACTION.window_ms(p) == p.strike_window_ms
    assert PITCHER_REACTION.display_ms(p) is None
    assert PITCHER_REACTION.spin_rate(profile_for(5)) == profile_for(5).spin_rate


def test_number_hunt_timing_and_ranges() -> None:
    p = profile_for(4)
    assert BALL_NUMBER_HUNT.approach_ms(p) == 1300
    assert BALL_NUMBER_HUNT.window_ms(p) == 760
    assert BALL_NUMBER_HUNT.display_ms(p) == 350
    assert BALL_NUMBER_HUNT.number_range(p) == (10, 99)
    assert BALL_NUMBER_HUNT.number_range(profile_for(3)) == (1, 9)
    assert BALL_NUMBER_HUNT.spin_rate(p) == pytest.approx(0.24)
    assert BALL_NUMBER_HUNT.spin_rate(profile_for(3)) == pytest.approx(0.08)


def test_session_limits() -> None:
    assert PITCHER_REACTION.time_limited and not PITCHER_REACTION.round_limited
    assert PITCHER_REACTION.round_target(profile_for(1)) is None

    assert BALL_NUMBER_HUNT.round_limited and not BALL_NUMBER_HUNT.time_limited
    assert [BALL_NUMBER_HUNT.round_target(profile_for(lvl)) for lvl in range(1, 6)] == [15, 18, 20, 22, 25]
