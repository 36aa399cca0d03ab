"""Hotkey strings such as ``Ctrl+Shift+M`` resolved to canonical key codes."""
from __future__ import annotations

import string
from dataclasses import dataclass
from typing import Dict, FrozenSet, Tuple

MODIFIERS: Dict[str, str] = {
    "ctrl": "ctrl",
    "control": "ctrl",
    "lctrl": "ctrl",
    "rctrl": "ctrl",
    "alt": "alt",
    "menu": "alt",
    "lalt": "alt",
    "ralt": "alt",
    "shift": "shift",
    "lshift": "shift",
    "rshift": "shift",
    "win": "win",
    "lwin": "win",
    "rwin": "win",
    "super": "win",
    "meta": "win",
    "cmd": "win",
}

NAMED_KEYS: Dict[str, str] = {
    "space": "space",
    "spacebar": "space",
    "enter": "enter",
    "return": "enter",
    "tab": "tab",
    "esc": "esc",
    "escape": "esc",
    "backspace": "backspace",
    "back": "backspace",
    "delete": "delete",
    "del": "delete",
    "insert": "insert",
    "ins": "insert",
    "home": "home",
    "end": "end",
    "pageup": "page_up",
    "pgup": "page_up",
    "prior": "page_up",
    "pagedown": "page_down",
    "pgdn": "page_down",
    "next": "page_down",
    "up": "up",
    "down": "down",
    "left": "left",
    "right": "right",
    "capslock": "caps_lock",
    "printscreen": "print_screen",
    "snapshot": "print_screen",
    "pause": "pause",
    "scrolllock": "scroll_lock",
    "numlock": "num_lock",
    "mediaplaypause": "media_play_pause",
    "playpause": "media_play_pause",
    "medianext": "media_next",
    "medianexttrack": "media_next",
    "mediaprevious": "media_previous",
    "mediaprev": "media_previous",
    "mediaprevtrack": "media_previous",
    "mediastop": "media_stop",
    "volumemute": "volume_mute",
    "volumeup": "volume_up",
    "volumedown": "volume_down",
}
NAMED_KEYS.update({f"f{n}": f"f{n}" for n in range(1, 25)})
NAMED_KEYS.update({f"numpad{n}": f"numpad{n}" for n in range(10)})
NAMED_KEYS.update({char: char for char in string.ascii_lowercase + string.digits})

MEDIA_PLAY_PAUSE = "media_play_pause"
MEDIA_NEXT = "media_next"
MEDIA_PREVIOUS = "media_previous"

# Combinations the OS reserves; synthesizing them is refused outright.
FORBIDDEN: Tuple[FrozenSet[str], ...] = (
    frozenset({"ctrl", "alt", "delete"}),
)


class HotkeyError(ValueError):
    """Raised for hotkey strings that cannot be sent."""


@dataclass(frozen=True)
class Hotkey:
    modifiers: Tuple[str, ...]
    key: str

    @property
    def keys(self) -> Tuple[str, ...]:
        return self.modifiers + (self.key,)


def resolve_key(name: str) -> str:
    token = name.strip().lower().replace("_", "").replace("-", "").replace(" ", "")
    if token.startswith("vk") and len(token) > 2 and token not in NAMED_KEYS:
        token = token[2:]
    if token in MODIFIERS:
        return MODIFIERS[token]
    if token in NAMED_KEYS:
        return NAMED_KEYS[token]
    raise HotkeyError(f"Unknown key '{name}'")


def parse_hotkey(text: str) -> Hotkey:
    """
    Parse a ``+``-joined hotkey. Every token except the last must be a
    modifier; the last one is the key that gets tapped.
    """
    tokens = [token.strip() for token in (text or "").split("+")]
    tokens = [token for token in tokens if token]
    if not tokens:
        raise HotkeyError("Empty hotkey")
    codes = [resolve_key(token) for token in tokens]
    modifiers: list[str] = []
    for token, code in zip(tokens[:-1], codes[:-1]):
        if code not in MODIFIERS.values():
            raise HotkeyError(f"'{token}' is not a modifier in '{text}'")
        if code not in modifiers:
            modifiers.append(code)
    if any(combo <= set(codes) for combo in FORBIDDEN):
        raise HotkeyError(f"Refusing reserved combination '{text}'")
    return Hotkey(modifiers=tuple(modifiers), key=codes[-1])


def parse_key_chord(text: str, default: str = "space") -> Tuple[str, ...]:
    """Keys held together for push-to-talk; any key may appear in any order."""
    tokens = [token.strip() for token in (text or "").split("+")]
    tokens = [token for token in tokens if token]
    if not tokens:
        return (default,)
    return tuple(resolve_key(token) for token in tokens)
