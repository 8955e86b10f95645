"""
Run-loop glue between a Chip8CPU and its host.

The runner steps the CPU at the configured rate on a worker thread and pushes
a copy of the frame to the host whenever an instruction reports DRAW or CLEAR.
"""

import logging
import threading
import time
from typing import Callable, List, Optional

from .cpu import Chip8CPU, Operation
from .errors import Chip8Error

logger = logging.getLogger(__name__)

TARGET_FPS = 60

FrameCallback = Callable[[List[List[bool]]], None]


class Runner:
    def __init__(self, cpu: Chip8CPU, on_frame: Optional[FrameCallback] = None,
                 on_error: Optional[Callable[[Chip8Error], None]] = None):
        self.cpu = cpu
        self.on_frame = on_frame
        self.on_error = on_error
        self.operation = Operation.NONE
        self.speed_multiplier = 1
        self.paused = False
        self.error: Optional[Chip8Error] = None
        self._running = False
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._running

    def run_once(self) -> Operation:
        """
        Advance the CPU by one step unless it is waiting for a key that has
        not been pressed yet.
        """
        if self.cpu.waiting_for_key and not self.cpu.keypad.was_pressed():
            self.operation = Operation.WAIT
            return self.operation

        self.operation = self.cpu.step()
        if self.operation in (Operation.DRAW, Operation.CLEAR) and self.on_frame:
            self.on_frame(self.cpu.get_display())
        return self.operation

    def run_cycles(self, cycles: int) -> Operation:
        """Run up to ``cycles`` steps synchronously, stopping early on WAIT"""
        for _ in range(cycles):
            if self.run_once() == Operation.WAIT:
                break
        return self.operation

    # ==================== THREADED LOOP ====================

    def start(self):
        """Start emulation on a worker thread"""
        if self._running:
            return
        self._running = True
        self.paused = False
        self.error = None
        self.operation = Operation.NONE
        self._thread = threading.Thread(target=self._emulation_loop,
                                        name="chip8-cpu", daemon=True)
        self._thread.start()

    def stop(self):
        self._running = False
        thread = self._thread
        self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def pause(self):
        self.paused = True

    def resume(self):
        self.paused = False

    def toggle_pause(self):
        self.paused = not self.paused

    def _emulation_loop(self):
        """Main CPU emulation loop"""
        while self._running:
            if self.paused:
                time.sleep(1.0 / TARGET_FPS)
                continue

            start_time = time.perf_counter()
            cycles = max(1, self.cpu.config.cpu_frequency // TARGET_FPS) * self.speed_multiplier
            try:
                self.run_cycles(cycles)
            except Chip8Error as e:
                self.error = e
                self._running = False
                logger.error("Emulation stopped: %s", e)
                if self.on_error:
                    self.on_error(e)
                break

            # Maintain timing
            elapsed = time.perf_counter() - start_time
            sleep_time = (1.0 / TARGET_FPS) - elapsed
            if sleep_time > 0:
                time.sleep(sleep_time)
