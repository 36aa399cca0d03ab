from __future__ import annotations

import importlib
import logging
from typing import Callable, List, Optional, Protocol, Tuple, runtime_checkable

logger = logging.getLogger(__name__)

RENDER = "render"
CAPTURE = "capture"


@runtime_checkable
class AudioBackend(Protocol):
    def set_volume(self, target_kind: str, target_id: str, level: float) -> None: ...

    def toggle_mute(self, target_id: str) -> None: ...

    def toggle_default_device_mute(self, direction: str) -> None: ...


@runtime_checkable
class InputBackend(Protocol):
    def press_key(self, code: str) -> None: ...

    def key_down(self, code: str) -> None: ...

    def key_up(self, code: str) -> None: ...

    def launch(self, path: str, arguments: Optional[str], elevated: bool) -> None: ...


class LoggingAudioBackend:
    """Records audio calls instead of touching a mixer. Used for dry runs."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, tuple]] = []

    def set_volume(self, target_kind: str, target_id: str, level: float) -> None:
        self.calls.append(("set_volume", (target_kind, target_id, level)))
        logger.info("set_volume %s/%s -> %.3f", target_kind, target_id, level)

    def toggle_mute(self, target_id: str) -> None:
        self.calls.append(("toggle_mute", (target_id,)))
        logger.info("toggle_mute %s", target_id)

    def toggle_default_device_mute(self, direction: str) -> None:
        self.calls.append(("toggle_default_device_mute", (direction,)))
        logger.info("toggle_default_device_mute %s", direction)


class LoggingInputBackend:
    """Records key and launch calls instead of synthesizing input."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, tuple]] = []

    def press_key(self, code: str) -> None:
        self.calls.append(("press_key", (code,)))
        logger.info("press_key %s", code)

    def key_down(self, code: str) -> None:
        self.calls.append(("key_down", (code,)))
        logger.info("key_down %s", code)

    def key_up(self, code: str) -> None:
        self.calls.append(("key_up", (code,)))
        logger.info("key_up %s", code)

    def launch(self, path: str, arguments: Optional[str], elevated: bool) -> None:
        self.calls.append(("launch", (path, arguments, elevated)))
        logger.info("launch %s %s%s", path, arguments or "", " (elevated)" if elevated else "")


BackendFactory = Callable[[], Tuple[AudioBackend, InputBackend]]


def load_backends(factory_path: Optional[str]) -> Tuple[AudioBackend, InputBackend]:
    """
    Resolve ``module:factory`` to the pair of capabilities the host drives.

    Without a factory path the logging backends are returned.
    """
    if not factory_path:
        return LoggingAudioBackend(), LoggingInputBackend()
    if ":" not in factory_path:
        raise ValueError(f"Backend '{factory_path}' must use module:factory syntax")
    module_name, attr = factory_path.split(":", 1)
    module = importlib.import_module(module_name)
    factory = getattr(module, attr, None)
    if factory is None or not callable(factory):
        raise ValueError(f"Backend factory '{attr}' not found in {module_name}")
    audio, keys = factory()
    if not isinstance(audio, AudioBackend) or not isinstance(keys, InputBackend):
        raise ValueError(f"Backend factory '{factory_path}' must return (audio, input) backends")
    return audio, keys
