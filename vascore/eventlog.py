from __future__ import annotations
from datetime import datetime
from typing import Callable, List
import logging
import threading
import traceback

logger = logging.getLogger(__name__)

Listener = Callable[[str], None]

class EventLog:
    """Running text log of engine events, mirrored to ``logging`` and to subscribers."""

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._clock = clock
        self._lines: List[str] = []
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        self._listeners.remove(listener)

    def _append(self, text: str) -> str:
        now = self._clock()
        line = f"[{now:%I:%M:%S}.{now.microsecond // 1000:03d}] {text}\n"
        with self._lock:
            self._lines.append(line)
        for listener in list(self._listeners):
            listener(line)
        return line

    def log(self, message: str) -> str:
        logger.info("[VAS] %s", message)
        return self._append(message)

    def log_exception(self, exc: BaseException) -> str:
        logger.error("[VAS] %s", exc, exc_info=(type(exc), exc, exc.__traceback__))
        text = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)).rstrip()
        return self._append(text)

    @property
    def text(self) -> str:
        with self._lock:
            return "".join(self._lines)

    def clear(self) -> None:
        with self._lock:
            self._lines.clear()
