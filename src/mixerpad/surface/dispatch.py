from __future__ import annotations

import logging
from typing import Dict

from .backends import CAPTURE, RENDER, AudioBackend, InputBackend
from .buttons import ButtonEvent
from .config import MASTER_TARGET, ActionKind, TargetKind
from .hotkeys import (
    MEDIA_NEXT,
    MEDIA_PLAY_PAUSE,
    MEDIA_PREVIOUS,
    HotkeyError,
    parse_hotkey,
    parse_key_chord,
)
from .sliders import SliderLevel

logger = logging.getLogger(__name__)

_MEDIA_KEYS = {
    ActionKind.MEDIA_PLAY_PAUSE: MEDIA_PLAY_PAUSE,
    ActionKind.MEDIA_NEXT: MEDIA_NEXT,
    ActionKind.MEDIA_PREVIOUS: MEDIA_PREVIOUS,
}


class Dispatcher:
    """
    Routes slider levels and button events to the audio and input backends.

    Faults raised by a backend are logged and dropped here so one failing
    action never reaches the read loop.
    """

    def __init__(self, audio: AudioBackend, keys: InputBackend):
        self.audio = audio
        self.keys = keys
        self._stats: Dict[str, int] = {"volume": 0, "actions": 0, "failures": 0}

    def apply_level(self, level: SliderLevel) -> None:
        mapping = level.mapping
        target_id = MASTER_TARGET if mapping.target_kind is TargetKind.MASTER else mapping.target_id
        try:
            self.audio.set_volume(mapping.target_kind.value, target_id, level.level)
        except Exception as exc:
            self._stats["failures"] += 1
            logger.warning("Volume update for slider %d (%s) failed: %s", level.index, target_id, exc)
            return
        self._stats["volume"] += 1

    def apply_button(self, event: ButtonEvent, selected_target: str = MASTER_TARGET) -> None:
        mapping = event.mapping
        try:
            if event.activate:
                handled = self._activate(event, selected_target)
            else:
                handled = self._release(event)
        except HotkeyError as exc:
            logger.warning("Button %d: hotkey '%s' ignored: %s", event.index, mapping.payload, exc)
            return
        except Exception as exc:
            self._stats["failures"] += 1
            logger.warning("Button %d action %s failed: %s", event.index, mapping.action.value, exc)
            return
        if handled:
            self._stats["actions"] += 1
            logger.debug(
                "Button %d -> %s (%s)",
                event.index,
                mapping.action.value,
                "repeat" if event.repeat else ("press" if event.activate else "release"),
            )

    def _activate(self, event: ButtonEvent, selected_target: str) -> bool:
        mapping = event.mapping
        action = mapping.action
        if action is ActionKind.RUN_PROCESS:
            if not mapping.payload.strip():
                return False
            self.keys.launch(mapping.payload, mapping.arguments, mapping.elevated)
        elif action in (ActionKind.HOTKEY, ActionKind.SEND_HOTKEY):
            hotkey = parse_hotkey(mapping.payload)
            for code in hotkey.modifiers:
                self.keys.key_down(code)
            try:
                self.keys.press_key(hotkey.key)
            finally:
                for code in reversed(hotkey.modifiers):
                    self.keys.key_up(code)
        elif action in _MEDIA_KEYS:
            self.keys.press_key(_MEDIA_KEYS[action])
        elif action is ActionKind.VOLUME_MUTE:
            self.audio.toggle_default_device_mute(RENDER)
        elif action is ActionKind.TOGGLE_MIC_MUTE:
            self.audio.toggle_default_device_mute(CAPTURE)
        elif action is ActionKind.TOGGLE_APP_MUTE:
            self.audio.toggle_mute(mapping.payload.strip() or selected_target)
        elif action is ActionKind.PUSH_TO_TALK:
            for code in parse_key_chord(mapping.payload):
                self.keys.key_down(code)
        else:
            return False
        return True

    def _release(self, event: ButtonEvent) -> bool:
        if event.mapping.action is not ActionKind.PUSH_TO_TALK:
            return False
        for code in reversed(parse_key_chord(event.mapping.payload)):
            self.keys.key_up(code)
        return True

    def stats(self) -> Dict[str, int]:
        return dict(self._stats)
