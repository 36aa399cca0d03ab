from __future__ import annotations

import numpy as np

from mixerpad.surface.config import SliderMapping, TargetKind
from mixerpad.surface.sliders import SliderConditioner


def make(smoothing_ms: float = 30.0, threshold: int = 8, invert: bool = False) -> SliderConditioner:
    return SliderConditioner(
        [SliderMapping(index=0, smoothing_ms=smoothing_ms, delta_threshold=threshold, invert=invert)]
    )


def test_first_emission_is_unconditional() -> None:
    engine = make(threshold=4095)
    level = engine.process(0, 2048, now=10.0)
    assert level is not None
    assert np.isclose(level.level, 2048 / 4095)
    assert engine.last_value(0) == 2048


def test_identical_value_within_interval_emits_once() -> None:
    engine = make(smoothing_ms=50, threshold=0)
    assert engine.process(0, 1000, now=1.000) is not None
    assert engine.process(0, 1000, now=1.010) is None
    assert engine.process(0, 1000, now=1.049) is None


def test_rate_gate_blocks_large_moves() -> None:
    engine = make(smoothing_ms=100, threshold=8)
    assert engine.process(0, 0, now=0.0) is not None
    assert engine.process(0, 4000, now=0.05) is None
    level = engine.process(0, 4000, now=0.10)
    assert level is not None
    assert level.effective == 4000


def test_delta_threshold_suppresses_jitter() -> None:
    engine = make(smoothing_ms=0, threshold=10)
    assert engine.process(0, 500, now=1.0) is not None
    assert engine.process(0, 509, now=2.0) is None
    assert engine.process(0, 491, now=3.0) is None
    assert engine.last_value(0) == 500
    assert engine.process(0, 510, now=4.0) is not None
    assert engine.last_value(0) == 510


def test_suppressed_reading_does_not_reset_timer() -> None:
    engine = make(smoothing_ms=100, threshold=8)
    engine.process(0, 100, now=0.0)
    assert engine.process(0, 102, now=0.2) is None
    # the delta is still measured from the last emitted value
    assert engine.process(0, 108, now=0.21) is not None


def test_invert_and_normalization() -> None:
    engine = make(invert=True, smoothing_ms=0, threshold=0)
    level = engine.process(0, 0, now=0.0)
    assert level.effective == 4095
    assert level.level == 1.0
    level = engine.process(0, 4095, now=1.0)
    assert level.effective == 0
    assert level.level == 0.0


def test_unmapped_slider_is_ignored() -> None:
    engine = make()
    assert engine.process(3, 1234, now=0.0) is None
    assert engine.last_value(3) is None


def test_reconfigure_resets_changed_index_only() -> None:
    engine = SliderConditioner(
        [SliderMapping(index=0, delta_threshold=100), SliderMapping(index=1, delta_threshold=100)]
    )
    engine.process(0, 1000, now=0.0)
    engine.process(1, 1000, now=0.0)
    engine.reconfigure(
        [
            SliderMapping(index=0, delta_threshold=100),
            SliderMapping(index=1, delta_threshold=100, target_kind=TargetKind.PROCESS, target_id="game"),
        ]
    )
    assert engine.last_value(0) == 1000
    assert engine.last_value(1) is None
    assert engine.process(0, 1010, now=1.0) is None
    level = engine.process(1, 1010, now=1.0)
    assert level is not None
    assert level.mapping.target_id == "game"
