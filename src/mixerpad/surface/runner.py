from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .backends import AudioBackend, InputBackend
from .buttons import ButtonStateMachine
from .config import (
    MASTER_TARGET,
    ButtonMapping,
    MixerConfig,
    RepeatClock,
    SliderMapping,
    TargetKind,
)
from .dispatch import Dispatcher
from .frames import FrameDecoder, Sample, iterate_text_stream
from .sliders import SliderConditioner
from .transport import ConnectionState, SerialTransport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MappingSet:
    """Immutable snapshot of every mapping, swapped as a whole on reconfiguration."""

    sliders: Tuple[SliderMapping, ...] = ()
    buttons: Tuple[ButtonMapping, ...] = ()
    _by_slider: Dict[int, SliderMapping] = field(default_factory=dict, compare=False, repr=False)
    _by_button: Dict[int, ButtonMapping] = field(default_factory=dict, compare=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "sliders", tuple(sorted(self.sliders, key=lambda s: s.index)))
        object.__setattr__(self, "buttons", tuple(sorted(self.buttons, key=lambda b: b.index)))
        object.__setattr__(self, "_by_slider", {s.index: s for s in self.sliders})
        object.__setattr__(self, "_by_button", {b.index: b for b in self.buttons})
        if len(self._by_slider) != len(self.sliders):
            raise ValueError("Slider mappings must have unique hardware indices")
        if len(self._by_button) != len(self.buttons):
            raise ValueError("Button mappings must have unique hardware indices")

    @staticmethod
    def from_config(config: MixerConfig) -> "MappingSet":
        return MappingSet(sliders=tuple(config.sliders), buttons=tuple(config.buttons))

    def slider(self, index: int) -> Optional[SliderMapping]:
        return self._by_slider.get(index)

    def button(self, index: int) -> Optional[ButtonMapping]:
        return self._by_button.get(index)

    @property
    def selected_target(self) -> str:
        """Session used by app-mute buttons that name no process of their own."""
        if not self.sliders:
            return MASTER_TARGET
        first = self.sliders[0]
        if first.target_kind is TargetKind.MASTER or not first.target_id:
            return MASTER_TARGET
        return first.target_id


class ControlSurfaceHost:
    """Wires transport, decoder, conditioning engines and dispatcher together."""

    def __init__(
        self,
        config: MixerConfig,
        audio: AudioBackend,
        keys: InputBackend,
        transport: Optional[SerialTransport] = None,
    ):
        self.config = config
        self.decoder = FrameDecoder()
        self.dispatcher = Dispatcher(audio, keys)
        self._mappings = MappingSet.from_config(config)
        self.sliders = SliderConditioner(self._mappings.sliders)
        self.buttons = ButtonStateMachine(self._mappings.buttons)
        self.transport = transport or SerialTransport(
            reconnect_delay=config.host.reconnect_delay_sec,
            read_timeout=config.host.read_timeout_sec,
        )
        self.invert_buttons = config.invert_buttons
        self.repeat_clock = config.repeat_clock
        self._frame_lock = threading.Lock()
        self._line_listeners: List[Callable[[str], None]] = []
        self._sample_listeners: List[Callable[[Sample], None]] = []
        self._ticker: Optional[threading.Thread] = None
        self._ticker_stop = threading.Event()
        self.processed = 0

    @property
    def mappings(self) -> MappingSet:
        return self._mappings

    def on_line(self, listener: Callable[[str], None]) -> None:
        self._line_listeners.append(listener)

    def on_sample(self, listener: Callable[[Sample], None]) -> None:
        self._sample_listeners.append(listener)

    def on_state_changed(self, listener: Callable[[ConnectionState], None]) -> None:
        self.transport.on_state_changed(listener)

    def update_mappings(
        self,
        sliders: Optional[Sequence[SliderMapping]] = None,
        buttons: Optional[Sequence[ButtonMapping]] = None,
    ) -> MappingSet:
        current = self._mappings
        updated = MappingSet(
            sliders=tuple(sliders) if sliders is not None else current.sliders,
            buttons=tuple(buttons) if buttons is not None else current.buttons,
        )
        with self._frame_lock:
            self.sliders.reconfigure(updated.sliders)
            for event in self.buttons.reconfigure(updated.buttons):
                self.dispatcher.apply_button(event, current.selected_target)
            self._mappings = updated
        logger.info(
            "Mappings replaced (%d sliders, %d buttons)", len(updated.sliders), len(updated.buttons)
        )
        return updated

    def handle_line(self, line: str, now: Optional[float] = None) -> Optional[Sample]:
        for listener in self._line_listeners:
            try:
                listener(line)
            except Exception:
                logger.exception("Line listener failed on %r", line)
        sample = self.decoder.decode(line, self.invert_buttons)
        if sample is None:
            return None
        self.process_sample(sample, now)
        return sample

    def process_sample(self, sample: Sample, now: Optional[float] = None) -> None:
        if now is None:
            now = time.monotonic()
        with self._frame_lock:
            mappings = self._mappings
            for index, raw_value in enumerate(sample.sliders):
                level = self.sliders.process(index, raw_value, now)
                if level is not None:
                    self.dispatcher.apply_level(level)
            for event in self.buttons.process(sample.buttons, now):
                self.dispatcher.apply_button(event, mappings.selected_target)
            self.processed += 1
        for listener in self._sample_listeners:
            try:
                listener(sample)
            except Exception:
                logger.exception("Sample listener failed")

    def tick(self, now: Optional[float] = None) -> None:
        with self._frame_lock:
            selected = self._mappings.selected_target
            for event in self.buttons.tick(now):
                self.dispatcher.apply_button(event, selected)

    def start(self) -> None:
        self.transport.configure(self.config.port, self.config.baudrate)
        self.transport.on_line(self.handle_line)
        self.transport.connect()
        if self.repeat_clock is RepeatClock.TIMER:
            self._start_ticker()

    def stop(self) -> None:
        self._ticker_stop.set()
        if self._ticker is not None:
            self._ticker.join(timeout=1.0)
            self._ticker = None
        self.transport.disconnect()

    def run(self) -> None:
        if self.config.port == "-":
            raise ValueError("Use run_from_stream() to replay lines from a stream")
        interval_sec = max(float(self.config.host.stats_log_interval), 5.0)
        self.start()
        try:
            while True:
                time.sleep(interval_sec)
                self._emit_stats("stats")
        except KeyboardInterrupt:
            logger.info("Stopping host (Ctrl+C)")
        finally:
            self.stop()
            self._emit_stats("Final stats")

    def run_from_stream(self, handle: Iterable[str]) -> int:
        accepted = 0
        for line in iterate_text_stream(handle):
            if self.handle_line(line) is not None:
                accepted += 1
        stats = self.decoder.stats()
        logger.info(
            "Processed %d frames from stream (rejected=%d)", accepted, stats.get("rejected", 0)
        )
        return accepted

    def stats(self) -> Dict[str, int]:
        stats: Dict[str, int] = {"processed": self.processed}
        stats.update(self.decoder.stats())
        stats.update(self.transport.stats())
        stats.update(self.dispatcher.stats())
        return stats

    def _emit_stats(self, label: str) -> None:
        stats = self.stats()
        logger.info(
            "%s: processed=%d frames=%d rejected=%d lines=%d reconnects=%d actions=%d failures=%d",
            label,
            stats.get("processed", 0),
            stats.get("frames", 0),
            stats.get("rejected", 0),
            stats.get("lines", 0),
            stats.get("reconnects", 0),
            stats.get("actions", 0),
            stats.get("failures", 0),
        )

    def _start_ticker(self) -> None:
        interval = max(self.config.host.repeat_tick_sec, 0.005)
        self._ticker_stop.clear()

        def loop() -> None:
            while not self._ticker_stop.wait(interval):
                try:
                    self.tick()
                except Exception:
                    logger.exception("Repeat ticker failed")

        self._ticker = threading.Thread(target=loop, name="mixerpad-repeat", daemon=True)
        self._ticker.start()
