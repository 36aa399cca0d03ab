from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np

from .config import BUTTON_COUNT, ActionKind, ButtonMapping, ButtonMode


@dataclass(frozen=True)
class ButtonEvent:
    index: int
    mapping: ButtonMapping
    activate: bool
    repeat: bool = False


class ButtonStateMachine:
    """
    Edge-detecting state machine for the 16 momentary buttons.

    Every mode fires on the Released->Pressed edge. The Pressed->Released
    edge produces a release event for Momentary buttons and for push-to-talk
    actions. RepeatWhileHeld buttons re-fire from `process` (one call per
    frame) and, when a wall-clock repeat is wanted, from `tick`.
    """

    def __init__(self, mappings: Iterable[ButtonMapping] = ()):
        self._mappings: Dict[int, ButtonMapping] = {}
        self._pressed = np.zeros(BUTTON_COUNT, dtype=bool)
        self._held = np.zeros(BUTTON_COUNT, dtype=bool)
        self._last_transition = np.zeros(BUTTON_COUNT, dtype=np.float64)
        self.reconfigure(mappings)

    def reconfigure(self, mappings: Iterable[ButtonMapping]) -> List[ButtonEvent]:
        """
        Swap in new mappings and reset every index whose mapping changed.

        Returns release events for replaced buttons that were still held and
        have a release action, so keys already pressed get let go.
        """
        updated = {mapping.index: mapping for mapping in mappings}
        released: List[ButtonEvent] = []
        for index in range(BUTTON_COUNT):
            previous = self._mappings.get(index)
            if previous == updated.get(index):
                continue
            if previous is not None and self._held[index] and _has_release(previous):
                released.append(ButtonEvent(index=index, mapping=previous, activate=False))
            self._reset_index(index)
        self._mappings = updated
        return released

    def mapping(self, index: int) -> Optional[ButtonMapping]:
        return self._mappings.get(index)

    def is_pressed(self, index: int) -> bool:
        return bool(self._pressed[index])

    def process(self, buttons: Sequence[bool], now: Optional[float] = None) -> List[ButtonEvent]:
        if now is None:
            now = time.monotonic()
        events: List[ButtonEvent] = []
        for index, pressed in enumerate(buttons[:BUTTON_COUNT]):
            event = self._step(index, bool(pressed), now)
            if event is not None:
                events.append(event)
        return events

    def tick(self, now: Optional[float] = None) -> List[ButtonEvent]:
        """Fire due repeats without a new frame."""
        if now is None:
            now = time.monotonic()
        events: List[ButtonEvent] = []
        for index in np.flatnonzero(self._held):
            event = self._repeat(int(index), now)
            if event is not None:
                events.append(event)
        return events

    def _step(self, index: int, pressed: bool, now: float) -> Optional[ButtonEvent]:
        mapping = self._mappings.get(index)
        if pressed != self._pressed[index]:
            self._pressed[index] = pressed
            self._last_transition[index] = now
            was_held = bool(self._held[index])
            self._held[index] = pressed
            if mapping is None:
                return None
            if pressed:
                return ButtonEvent(index=index, mapping=mapping, activate=True)
            if was_held and _has_release(mapping):
                return ButtonEvent(index=index, mapping=mapping, activate=False)
            return None
        if pressed:
            return self._repeat(index, now)
        return None

    def _repeat(self, index: int, now: float) -> Optional[ButtonEvent]:
        mapping = self._mappings.get(index)
        if mapping is None or mapping.mode is not ButtonMode.REPEAT_WHILE_HELD:
            return None
        if not self._held[index]:
            return None
        if now - self._last_transition[index] < mapping.repeat_interval_ms / 1000.0:
            return None
        self._last_transition[index] = now
        return ButtonEvent(index=index, mapping=mapping, activate=True, repeat=True)

    def _reset_index(self, index: int) -> None:
        self._pressed[index] = False
        self._held[index] = False
        self._last_transition[index] = 0.0


def _has_release(mapping: ButtonMapping) -> bool:
    return mapping.mode is ButtonMode.MOMENTARY or mapping.action is ActionKind.PUSH_TO_TALK
