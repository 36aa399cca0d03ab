from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

import numpy as np

from .config import SLIDER_COUNT, SLIDER_MAX, SliderMapping


@dataclass(frozen=True)
class SliderLevel:
    """A conditioned slider reading that passed both gates."""

    index: int
    mapping: SliderMapping
    raw_value: int
    effective: int
    level: float


class SliderConditioner:
    """
    Per-slider rate limiting and delta-threshold suppression.

    Runtime state is kept in fixed-size arrays indexed by hardware index.
    A slider that has never emitted passes the delta gate unconditionally;
    the rate gate is measured from the last emission only.
    """

    def __init__(self, mappings: Iterable[SliderMapping] = ()):
        self._mappings: Dict[int, SliderMapping] = {}
        self._last_value = np.full(SLIDER_COUNT, -1, dtype=np.int64)
        self._last_emit = np.full(SLIDER_COUNT, -np.inf, dtype=np.float64)
        self.reconfigure(mappings)

    def reconfigure(self, mappings: Iterable[SliderMapping]) -> None:
        updated = {mapping.index: mapping for mapping in mappings}
        for index in range(SLIDER_COUNT):
            if self._mappings.get(index) != updated.get(index):
                self._reset_index(index)
        self._mappings = updated

    def mapping(self, index: int) -> Optional[SliderMapping]:
        return self._mappings.get(index)

    def process(self, index: int, raw_value: int, now: Optional[float] = None) -> Optional[SliderLevel]:
        mapping = self._mappings.get(index)
        if mapping is None:
            return None
        if now is None:
            now = time.monotonic()
        effective = SLIDER_MAX - raw_value if mapping.invert else raw_value

        if now - self._last_emit[index] < mapping.smoothing_ms / 1000.0:
            return None
        last = int(self._last_value[index])
        if last >= 0 and abs(effective - last) < mapping.delta_threshold:
            return None

        self._last_value[index] = effective
        self._last_emit[index] = now
        level = float(np.clip(effective / float(SLIDER_MAX), 0.0, 1.0))
        return SliderLevel(
            index=index,
            mapping=mapping,
            raw_value=raw_value,
            effective=effective,
            level=level,
        )

    def last_value(self, index: int) -> Optional[int]:
        value = int(self._last_value[index])
        return value if value >= 0 else None

    def _reset_index(self, index: int) -> None:
        self._last_value[index] = -1
        self._last_emit[index] = -np.inf
