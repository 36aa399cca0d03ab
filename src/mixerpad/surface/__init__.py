"""
Control surface core: serial transport, frame decoding, slider conditioning,
button state machine and dispatch to the audio/input backends.

The host application supplies the backends and the mapping configuration;
everything between the serial port and those backends lives here.
"""

from .backends import AudioBackend, InputBackend, LoggingAudioBackend, LoggingInputBackend, load_backends
from .buttons import ButtonEvent, ButtonStateMachine
from .config import (
    ActionKind,
    ButtonMapping,
    ButtonMode,
    HostRuntime,
    MixerConfig,
    RepeatClock,
    SliderMapping,
    TargetKind,
    default_config,
    load_config,
    save_config,
)
from .dispatch import Dispatcher
from .frames import FrameDecoder, Sample
from .hotkeys import Hotkey, HotkeyError, parse_hotkey
from .runner import ControlSurfaceHost, MappingSet
from .sliders import SliderConditioner, SliderLevel
from .transport import ConnectionState, SerialSettings, SerialTransport

__all__ = [
    "AudioBackend",
    "InputBackend",
    "LoggingAudioBackend",
    "LoggingInputBackend",
    "load_backends",
    "ButtonEvent",
    "ButtonStateMachine",
    "ActionKind",
    "ButtonMapping",
    "ButtonMode",
    "HostRuntime",
    "MixerConfig",
    "RepeatClock",
    "SliderMapping",
    "TargetKind",
    "default_config",
    "load_config",
    "save_config",
    "Dispatcher",
    "FrameDecoder",
    "Sample",
    "Hotkey",
    "HotkeyError",
    "parse_hotkey",
    "ControlSurfaceHost",
    "MappingSet",
    "SliderConditioner",
    "SliderLevel",
    "ConnectionState",
    "SerialSettings",
    "SerialTransport",
]
