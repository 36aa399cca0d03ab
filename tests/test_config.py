from __future__ import annotations

import json
from pathlib import Path

import pytest

from mixerpad.surface.config import (
    ActionKind,
    ButtonMapping,
    ButtonMode,
    MixerConfig,
    RepeatClock,
    SliderMapping,
    TargetKind,
    default_config,
    load_config,
    save_config,
)


def write_config(path: Path, data: dict) -> Path:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_load_config_overrides(tmp_path: Path) -> None:
    cfg_path = write_config(
        tmp_path / "config.json",
        {
            "port": "/dev/ttyUSB0",
            "baudrate": 115200,
            "sliders": [{"index": 0, "target_kind": "Process", "target_id": "spotify"}],
            "buttons": [
                {"index": 3, "action": "SendHotkey", "payload": "Ctrl+M", "mode": "RepeatWhileHeld"}
            ],
        },
    )
    cfg = load_config(
        cfg_path,
        overrides=["invert_buttons=true", "host.reconnect_delay_sec=1", "repeat_clock=timer"],
    )
    assert isinstance(cfg, MixerConfig)
    assert cfg.port == "/dev/ttyUSB0"
    assert cfg.baudrate == 115200
    assert cfg.invert_buttons is True
    assert cfg.repeat_clock is RepeatClock.TIMER
    assert cfg.host.reconnect_delay_sec == 1
    assert cfg.host.read_timeout_sec == 0.5
    assert cfg.sliders[0].target_kind is TargetKind.PROCESS
    assert cfg.sliders[0].target_id == "spotify"
    button = cfg.buttons[0]
    assert button.index == 3
    assert button.action is ActionKind.SEND_HOTKEY
    assert button.mode is ButtonMode.REPEAT_WHILE_HELD


def test_missing_lists_fall_back_to_defaults(tmp_path: Path) -> None:
    cfg = load_config(write_config(tmp_path / "c.json", {"port": "COM3"}))
    assert [s.index for s in cfg.sliders] == [0, 1, 2, 3]
    assert all(s.target_kind is TargetKind.MASTER for s in cfg.sliders)
    assert all(s.smoothing_ms == 30.0 and s.delta_threshold == 8 for s in cfg.sliders)
    assert len(cfg.buttons) == 16
    assert all(b.action is ActionKind.NONE and b.mode is ButtonMode.TOGGLE for b in cfg.buttons)


def test_unknown_action_becomes_none(tmp_path: Path) -> None:
    cfg = load_config(
        write_config(tmp_path / "c.json", {"buttons": [{"index": 0, "action": "LaunchRocket"}]})
    )
    assert cfg.buttons[0].action is ActionKind.NONE


def test_legacy_action_alias(tmp_path: Path) -> None:
    cfg = load_config(
        write_config(tmp_path / "c.json", {"buttons": [{"index": 0, "action": "ToggleSelectedAppMute"}]})
    )
    assert cfg.buttons[0].action is ActionKind.TOGGLE_APP_MUTE


@pytest.mark.parametrize(
    "data",
    [
        {"sliders": [{"index": 4}]},
        {"sliders": [{"index": 0}, {"index": 0}]},
        {"sliders": [{"index": 0, "delta_threshold": 5000}]},
        {"sliders": [{"index": 0, "target_kind": "speaker"}]},
        {"buttons": [{"index": 16}]},
        {"buttons": [{"index": 0, "repeat_interval_ms": 0}]},
        {"buttons": [{"index": 0, "mode": "sometimes"}]},
        {"buttons": [{"action": "none"}]},
        {"sliders": [{"index": 0, "invert": "maybe"}]},
        {"buttons": [{"index": 0, "elevated": 2}]},
        {"invert_buttons": "yes"},
    ],
)
def test_invalid_mappings_raise(tmp_path: Path, data: dict) -> None:
    with pytest.raises(ValueError):
        load_config(write_config(tmp_path / "bad.json", data))


def test_override_requires_key_value(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        load_config(write_config(tmp_path / "c.json", {}), overrides=["port"])


def test_save_and_reload_default(tmp_path: Path) -> None:
    cfg = default_config()
    cfg.port = "COM7"
    cfg.buttons[2] = ButtonMapping(index=2, action=ActionKind.PUSH_TO_TALK, mode=ButtonMode.MOMENTARY)
    cfg.sliders[1] = SliderMapping(index=1, target_kind=TargetKind.DEVICE_SESSION, target_id="Headset", invert=True)
    out = tmp_path / "nested" / "mixerpad.json"
    save_config(out, cfg)
    reloaded = load_config(out)
    assert reloaded.port == "COM7"
    assert reloaded.buttons == cfg.buttons
    assert reloaded.sliders == cfg.sliders


def test_string_booleans_are_parsed(tmp_path: Path) -> None:
    path = write_config(
        tmp_path / "strings.json",
        {
            "invert_buttons": "false",
            "sliders": [{"index": 0, "invert": "False"}],
            "buttons": [{"index": 0, "elevated": "true"}],
        },
    )
    cfg = load_config(path)
    assert cfg.invert_buttons is False
    assert cfg.sliders[0].invert is False
    assert cfg.buttons[0].elevated is True
