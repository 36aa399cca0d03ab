from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)

SLIDER_COUNT = 4
BUTTON_COUNT = 16
SLIDER_MAX = 4095
MASTER_TARGET = "master"


class TargetKind(str, enum.Enum):
    MASTER = "master"
    PROCESS = "process"
    DEVICE_SESSION = "device_session"


class ButtonMode(str, enum.Enum):
    TOGGLE = "toggle"
    MOMENTARY = "momentary"
    REPEAT_WHILE_HELD = "repeat_while_held"


class ActionKind(str, enum.Enum):
    NONE = "none"
    RUN_PROCESS = "run_process"
    HOTKEY = "hotkey"
    SEND_HOTKEY = "send_hotkey"
    MEDIA_PLAY_PAUSE = "media_play_pause"
    MEDIA_NEXT = "media_next"
    MEDIA_PREVIOUS = "media_previous"
    VOLUME_MUTE = "volume_mute"
    TOGGLE_MIC_MUTE = "toggle_mic_mute"
    TOGGLE_APP_MUTE = "toggle_app_mute"
    PUSH_TO_TALK = "push_to_talk"


class RepeatClock(str, enum.Enum):
    FRAME = "frame"  # repeats advance only when frames arrive
    TIMER = "timer"  # host ticker also drives repeats


_ACTION_ALIASES = {
    "toggle_selected_app_mute": ActionKind.TOGGLE_APP_MUTE,
}


def _normalize_name(raw: Any) -> str:
    """`RepeatWhileHeld`, `repeat-while-held` and `REPEAT_WHILE_HELD` all map to `repeat_while_held`."""
    text = str(raw).strip()
    if "_" in text or "-" in text or text.islower() or text.isupper():
        return text.replace("-", "_").lower()
    out: List[str] = []
    for pos, char in enumerate(text):
        if char.isupper() and pos > 0 and not text[pos - 1].isupper():
            out.append("_")
        out.append(char.lower())
    return "".join(out)


def _parse_enum(enum_cls, raw: Any, field_name: str):
    if isinstance(raw, enum_cls):
        return raw
    key = _normalize_name(raw)
    try:
        return enum_cls(key)
    except ValueError as exc:
        choices = ", ".join(member.value for member in enum_cls)
        raise ValueError(f"{field_name} must be one of {choices}, got '{raw}'") from exc


def _parse_bool(raw: Any, field_name: str) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str) and raw.strip().lower() in {"true", "false"}:
        return raw.strip().lower() == "true"
    if isinstance(raw, int) and raw in (0, 1):
        return bool(raw)
    raise ValueError(f"{field_name} must be true or false, got '{raw}'")


def parse_action(raw: Any) -> ActionKind:
    if isinstance(raw, ActionKind):
        return raw
    key = _normalize_name(raw if raw is not None else "none")
    if key in _ACTION_ALIASES:
        return _ACTION_ALIASES[key]
    try:
        return ActionKind(key)
    except ValueError:
        logger.warning("Unknown button action '%s', treating as none", raw)
        return ActionKind.NONE


@dataclass(frozen=True)
class SliderMapping:
    index: int
    target_kind: TargetKind = TargetKind.MASTER
    target_id: str = MASTER_TARGET
    smoothing_ms: float = 30.0
    delta_threshold: int = 8
    invert: bool = False
    name: str = ""

    def __post_init__(self) -> None:
        if not 0 <= self.index < SLIDER_COUNT:
            raise ValueError(f"slider index must be in [0, {SLIDER_COUNT - 1}], got {self.index}")
        if self.smoothing_ms < 0:
            raise ValueError("slider smoothing_ms must be >= 0")
        if not 0 <= self.delta_threshold <= SLIDER_MAX:
            raise ValueError(f"slider delta_threshold must be in [0, {SLIDER_MAX}]")

    @staticmethod
    def from_mapping(data: Dict[str, Any]) -> "SliderMapping":
        if "index" not in data:
            raise ValueError("slider mapping requires field 'index'")
        return SliderMapping(
            index=int(data["index"]),
            target_kind=_parse_enum(TargetKind, data.get("target_kind", "master"), "target_kind"),
            target_id=str(data.get("target_id") or MASTER_TARGET),
            smoothing_ms=float(data.get("smoothing_ms", 30.0)),
            delta_threshold=int(data.get("delta_threshold", 8)),
            invert=_parse_bool(data.get("invert", False), "slider invert"),
            name=str(data.get("name", "")),
        )


@dataclass(frozen=True)
class ButtonMapping:
    index: int
    action: ActionKind = ActionKind.NONE
    payload: str = ""
    arguments: Optional[str] = None
    elevated: bool = False
    mode: ButtonMode = ButtonMode.TOGGLE
    repeat_interval_ms: int = 250
    name: str = ""

    def __post_init__(self) -> None:
        if not 0 <= self.index < BUTTON_COUNT:
            raise ValueError(f"button index must be in [0, {BUTTON_COUNT - 1}], got {self.index}")
        if self.repeat_interval_ms < 1:
            raise ValueError("button repeat_interval_ms must be >= 1")

    @staticmethod
    def from_mapping(data: Dict[str, Any]) -> "ButtonMapping":
        if "index" not in data:
            raise ValueError("button mapping requires field 'index'")
        arguments = data.get("arguments")
        return ButtonMapping(
            index=int(data["index"]),
            action=parse_action(data.get("action", "none")),
            payload=str(data.get("payload") or ""),
            arguments=None if arguments is None else str(arguments),
            elevated=_parse_bool(data.get("elevated", False), "button elevated"),
            mode=_parse_enum(ButtonMode, data.get("mode", "toggle"), "mode"),
            repeat_interval_ms=int(data.get("repeat_interval_ms", 250)),
            name=str(data.get("name", "")),
        )


@dataclass
class HostRuntime:
    reconnect_delay_sec: float = 2.0
    read_timeout_sec: float = 0.5
    stats_log_interval: float = 60.0
    repeat_tick_sec: float = 0.02


def default_sliders() -> List[SliderMapping]:
    return [SliderMapping(index=i, name=f"Slider {i + 1}") for i in range(SLIDER_COUNT)]


def default_buttons() -> List[ButtonMapping]:
    return [ButtonMapping(index=i, name=f"Button {i + 1}") for i in range(BUTTON_COUNT)]


@dataclass
class MixerConfig:
    port: str = ""
    baudrate: int = 9600
    invert_buttons: bool = False
    repeat_clock: RepeatClock = RepeatClock.FRAME
    sliders: List[SliderMapping] = field(default_factory=default_sliders)
    buttons: List[ButtonMapping] = field(default_factory=default_buttons)
    host: HostRuntime = field(default_factory=HostRuntime)


def default_config() -> MixerConfig:
    return MixerConfig()


def _check_unique(indices: Sequence[int], kind: str) -> None:
    seen = set()
    for index in indices:
        if index in seen:
            raise ValueError(f"Duplicate {kind} mapping for hardware index {index}")
        seen.add(index)


def _load_json(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged: Dict[str, Any] = {**base}
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            merged[key] = _merge(base[key], value)  # type: ignore[index]
        else:
            merged[key] = value
    return merged


def config_from_mapping(data: Dict[str, Any]) -> MixerConfig:
    sliders = [SliderMapping.from_mapping(item) for item in data.get("sliders") or []]
    buttons = [ButtonMapping.from_mapping(item) for item in data.get("buttons") or []]
    _check_unique([s.index for s in sliders], "slider")
    _check_unique([b.index for b in buttons], "button")
    host_data = data.get("host") or {}
    baudrate = int(data.get("baudrate", 9600))
    if baudrate <= 0:
        raise ValueError("baudrate must be positive")
    return MixerConfig(
        port=str(data.get("port") or ""),
        baudrate=baudrate,
        invert_buttons=_parse_bool(data.get("invert_buttons", False), "invert_buttons"),
        repeat_clock=_parse_enum(RepeatClock, data.get("repeat_clock", "frame"), "repeat_clock"),
        sliders=sorted(sliders, key=lambda s: s.index) or default_sliders(),
        buttons=sorted(buttons, key=lambda b: b.index) or default_buttons(),
        host=HostRuntime(
            reconnect_delay_sec=float(host_data.get("reconnect_delay_sec", 2.0)),
            read_timeout_sec=float(host_data.get("read_timeout_sec", 0.5)),
            stats_log_interval=float(host_data.get("stats_log_interval", 60.0)),
            repeat_tick_sec=float(host_data.get("repeat_tick_sec", 0.02)),
        ),
    )


def load_config(path: Path | str, overrides: Sequence[str] | None = None) -> MixerConfig:
    """
    Load a mixer configuration from JSON and apply CLI-style overrides.

    Overrides are expressed as dotted `key=value` pairs, e.g.:
        ["invert_buttons=true", "host.reconnect_delay_sec=1"]
    """
    config_path = Path(path)
    data = _load_json(config_path)
    override_data: Dict[str, Any] = {}
    for override in overrides or []:
        key, raw_value = _parse_override(override)
        _assign_nested(override_data, key, raw_value)
    return config_from_mapping(_merge(data, override_data))


def config_to_mapping(config: MixerConfig) -> Dict[str, Any]:
    return {
        "port": config.port,
        "baudrate": config.baudrate,
        "invert_buttons": config.invert_buttons,
        "repeat_clock": config.repeat_clock.value,
        "sliders": [
            {
                "index": s.index,
                "name": s.name,
                "target_kind": s.target_kind.value,
                "target_id": s.target_id,
                "smoothing_ms": s.smoothing_ms,
                "delta_threshold": s.delta_threshold,
                "invert": s.invert,
            }
            for s in config.sliders
        ],
        "buttons": [
            {
                "index": b.index,
                "name": b.name,
                "action": b.action.value,
                "payload": b.payload,
                "arguments": b.arguments,
                "elevated": b.elevated,
                "mode": b.mode.value,
                "repeat_interval_ms": b.repeat_interval_ms,
            }
            for b in config.buttons
        ],
        "host": {
            "reconnect_delay_sec": config.host.reconnect_delay_sec,
            "read_timeout_sec": config.host.read_timeout_sec,
            "stats_log_interval": config.host.stats_log_interval,
            "repeat_tick_sec": config.host.repeat_tick_sec,
        },
    }


def save_config(path: Path, config: MixerConfig) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(config_to_mapping(config), indent=2), encoding="utf-8")


def _parse_override(item: str) -> tuple[str, Any]:
    if "=" not in item:
        raise ValueError(f"Override '{item}' must use key=value syntax")
    key, raw_value = item.split("=", 1)
    key = key.strip()
    if not key:
        raise ValueError("Override key may not be empty")
    value = _coerce_value(raw_value.strip())
    return key, value


def _coerce_value(raw: str) -> Any:
    if raw.lower() in {"true", "false"}:
        return raw.lower() == "true"
    try:
        if "." in raw or "e" in raw.lower():
            return float(raw)
        return int(raw)
    except ValueError:
        pass
    if raw.startswith("[") and raw.endswith("]"):
        return json.loads(raw)
    if raw.startswith("{") and raw.endswith("}"):
        return json.loads(raw)
    return raw


def _assign_nested(target: Dict[str, Any], dotted_key: str, value: Any) -> None:
    cursor = target
    parts = dotted_key.split(".")
    for part in parts[:-1]:
        cursor = cursor.setdefault(part, {})
    cursor[parts[-1]] = value
