from __future__ import annotations

import enum
import logging
import queue
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional

import serial

RECONNECT_DELAY_SEC = 2.0
READ_TIMEOUT_SEC = 0.5


class ConnectionState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass
class SerialSettings:
    port: str
    baudrate: int = 9600
    timeout: float = READ_TIMEOUT_SEC


StateListener = Callable[[ConnectionState], None]
LineConsumer = Callable[[str], None]


class _StateNotifier:
    """Delivers state changes in order on its own thread so listeners never block the reader."""

    def __init__(self) -> None:
        self._queue: "queue.Queue[ConnectionState]" = queue.Queue()
        self._listeners: List[StateListener] = []
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._log = logging.getLogger(__name__)

    def add(self, listener: StateListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def publish(self, state: ConnectionState) -> None:
        with self._lock:
            if self._thread is None:
                self._thread = threading.Thread(target=self._run, name="mixerpad-state", daemon=True)
                self._thread.start()
        self._queue.put(state)

    def _run(self) -> None:
        while True:
            state = self._queue.get()
            with self._lock:
                listeners = list(self._listeners)
            for listener in listeners:
                try:
                    listener(state)
                except Exception:
                    self._log.exception("Connection state listener failed")


class SerialTransport:
    """
    Owns the serial port and a background reader thread.

    `connect()` starts the reader, which keeps reopening the most recently
    configured port after every failure, waiting a fixed delay between
    attempts, until `disconnect()` is called. Received lines are handed to
    a single consumer on the reader thread, in wire order.
    """

    def __init__(
        self,
        reconnect_delay: float = RECONNECT_DELAY_SEC,
        read_timeout: float = READ_TIMEOUT_SEC,
    ):
        self.reconnect_delay = reconnect_delay
        self.read_timeout = read_timeout
        self._settings: Optional[SerialSettings] = None
        self._lock = threading.RLock()
        self._lifecycle = threading.Lock()
        self._handle = None
        self._worker: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None
        self._line_consumer: Optional[LineConsumer] = None
        self._notifier = _StateNotifier()
        self._state = ConnectionState.DISCONNECTED
        self._connected_event = threading.Event()
        self._stats: Dict[str, int] = {"lines": 0, "connects": 0, "reconnects": 0, "open_failures": 0}
        self.last_exception: Optional[Exception] = None
        self._log = logging.getLogger(__name__)

    @property
    def settings(self) -> Optional[SerialSettings]:
        with self._lock:
            return self._settings

    @property
    def state(self) -> ConnectionState:
        with self._lock:
            return self._state

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    def configure(self, port: str, baudrate: int) -> None:
        with self._lock:
            self._settings = SerialSettings(port=port, baudrate=baudrate, timeout=self.read_timeout)

    def on_line(self, consumer: Optional[LineConsumer]) -> None:
        self._line_consumer = consumer

    def on_state_changed(self, listener: StateListener) -> None:
        self._notifier.add(listener)

    def connect(self) -> None:
        # the reader thread never takes _lifecycle
        with self._lifecycle:
            self._teardown()
            with self._lock:
                settings = self._settings
                if settings is None or not settings.port:
                    self._log.warning("No serial port configured, staying disconnected")
                    return
                stop_event = threading.Event()
                worker = threading.Thread(
                    target=self._run, args=(stop_event,), name="mixerpad-serial", daemon=True
                )
                self._stop_event = stop_event
                self._worker = worker
            worker.start()

    def disconnect(self) -> None:
        with self._lifecycle:
            self._teardown()

    def wait_connected(self, timeout: float = 2.0) -> bool:
        return self._connected_event.wait(timeout)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._stats)

    def _teardown(self) -> None:
        with self._lock:
            stop_event, worker = self._stop_event, self._worker
            self._stop_event = None
            self._worker = None
            if stop_event is not None:
                stop_event.set()
            handle, self._handle = self._handle, None
        if handle is not None:
            self._close(handle)
        if worker is not None and worker is not threading.current_thread():
            worker.join(timeout=max(self.read_timeout * 2, 1.0))
            if worker.is_alive():
                self._log.warning("Serial reader did not stop within the read timeout")
        self._set_state(ConnectionState.DISCONNECTED)

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            with self._lock:
                settings = self._settings
            if settings is None:
                break
            handle = None
            self._publish(stop_event, ConnectionState.CONNECTING)
            if stop_event.is_set():
                break
            try:
                handle = self._open_serial(settings)
                with self._lock:
                    if stop_event.is_set():
                        break
                    self._handle = handle
                    reconnect = self._stats["connects"] > 0
                    self._stats["connects"] += 1
                    if reconnect:
                        self._stats["reconnects"] += 1
                self.last_exception = None
                if reconnect:
                    self._log.info("Reconnected to %s @ %d", settings.port, settings.baudrate)
                else:
                    self._log.info("Connected to %s @ %d", settings.port, settings.baudrate)
                self._publish(stop_event, ConnectionState.CONNECTED)
                for line in self._iter_lines(handle, stop_event):
                    self._deliver(line)
            except (serial.SerialException, OSError) as exc:  # type: ignore[attr-defined]
                self.last_exception = exc
                if handle is None:
                    with self._lock:
                        self._stats["open_failures"] += 1
                if stop_event.is_set():
                    self._log.debug("Serial reader stopped (%s): %s", settings.port, exc)
                else:
                    self._log.warning("Serial error (%s): %s", settings.port, exc)
            except Exception as exc:
                self.last_exception = exc
                if stop_event.is_set():
                    self._log.debug("Serial reader stopped (%s): %s", settings.port, exc)
                else:
                    self._log.exception("Unexpected error in serial reader")
            finally:
                if handle is not None:
                    with self._lock:
                        if self._handle is handle:
                            self._handle = None
                    self._close(handle)
            if stop_event.is_set():
                break
            self._publish(stop_event, ConnectionState.DISCONNECTED)
            self._log.info("Reconnecting in %.1fs", self.reconnect_delay)
            stop_event.wait(self.reconnect_delay)

    def _iter_lines(self, handle, stop_event: threading.Event) -> Iterator[str]:
        while not stop_event.is_set():
            raw = handle.readline()
            if not raw:
                continue
            line = raw.decode("ascii", errors="ignore").strip()
            if line:
                yield line

    def _deliver(self, line: str) -> None:
        with self._lock:
            self._stats["lines"] += 1
        consumer = self._line_consumer
        if consumer is None:
            return
        try:
            consumer(line)
        except Exception:
            self._log.exception("Line consumer failed on %r", line)

    def _publish(self, stop_event: threading.Event, state: ConnectionState) -> None:
        with self._lock:
            if stop_event.is_set():
                return
            self._set_state(state)

    def _set_state(self, state: ConnectionState) -> None:
        with self._lock:
            if state is self._state:
                return
            self._state = state
            if state is ConnectionState.CONNECTED:
                self._connected_event.set()
            else:
                self._connected_event.clear()
            self._notifier.publish(state)

    def _open_serial(self, settings: SerialSettings):
        handle = serial.Serial(
            port=settings.port,
            baudrate=settings.baudrate,
            timeout=settings.timeout,
        )
        handle.dtr = True
        handle.rts = True
        return handle

    @staticmethod
    def _close(handle) -> None:
        try:
            handle.close()
        except Exception:
            pass
