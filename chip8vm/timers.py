"""
The delay and sound timers.

Both count down at 60 Hz until they reach 0, independent of the CPU clock.
Each timer owns a daemon worker thread; the shutdown channel is an Event that
the worker waits on between ticks.
"""

import logging
import threading
import time
from typing import Callable, Optional

from .config import TIMER_FREQUENCY

logger = logging.getLogger(__name__)


class CountdownTimer:
    """An 8-bit down-counter decremented by a background worker"""

    def __init__(self, name: str = "timer", frequency: float = TIMER_FREQUENCY,
                 value: int = 0, on_expire: Optional[Callable[[], None]] = None,
                 autostart: bool = True):
        self.name = name
        self.interval = 1.0 / frequency
        self.on_expire = on_expire
        self._value = value & 0xFF
        self._lock = threading.Lock()
        self._shutdown = threading.Event()
        self._thread: Optional[threading.Thread] = None
        if autostart:
            self.start()

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    @value.setter
    def value(self, value: int):
        with self._lock:
            self._value = value & 0xFF

    def get_value(self) -> int:
        return self.value

    def set_value(self, value: int):
        self.value = value

    @property
    def is_active(self) -> bool:
        return self.value > 0

    def tick(self):
        """Decrement once, firing on_expire on the 1 -> 0 transition"""
        with self._lock:
            if self._value == 0:
                return
            self._value -= 1
            expired = self._value == 0
        if expired:
            logger.debug("%s expired", self.name)
            if self.on_expire:
                self.on_expire()

    def start(self):
        """Start the worker, stopping any previous one first"""
        self.stop()
        self._shutdown = threading.Event()
        self._thread = threading.Thread(
            target=self._run, args=(self._shutdown,),
            name=f"chip8-{self.name}", daemon=True
        )
        self._thread.start()
        logger.debug("%s worker started at %.1f Hz", self.name, 1.0 / self.interval)

    def stop(self):
        """Signal the worker and join it. Safe to call more than once."""
        thread = self._thread
        if thread is None:
            return
        self._thread = None
        self._shutdown.set()
        if thread is not threading.current_thread():
            thread.join()
        logger.debug("%s worker stopped", self.name)

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self, shutdown: threading.Event):
        timeout = self.interval
        while not shutdown.wait(timeout):
            start = time.perf_counter()
            self.tick()
            elapsed = time.perf_counter() - start
            # never wait longer than one interval between ticks
            timeout = max(0.0, self.interval - elapsed)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
