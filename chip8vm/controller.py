"""
Game controller input mapped onto the hex keypad.
"""

import logging
import os
import threading
import time
from typing import Callable, Optional

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")
import pygame

logger = logging.getLogger(__name__)

POLL_FREQUENCY = 120


class Chip8Controller:
    """Polls the first joystick and reports CHIP-8 key edges"""

    # Controller button mappings for PS5/Atari style
    BUTTON_SQUARE = 0
    BUTTON_CIRCLE = 1
    BUTTON_CROSS = 2
    BUTTON_TRIANGLE = 3
    BUTTON_L1 = 4
    BUTTON_R1 = 5
    BUTTON_L2 = 6
    BUTTON_R2 = 7
    BUTTON_SHARE = 8
    BUTTON_OPTIONS = 9

    # D-Pad (as hat)
    HAT_UP = (0, 1)
    HAT_DOWN = (0, -1)
    HAT_LEFT = (-1, 0)
    HAT_RIGHT = (1, 0)

    BUTTON_TO_KEY = {
        BUTTON_SQUARE: 0x7,
        BUTTON_CIRCLE: 0x9,
        BUTTON_CROSS: 0x5,
        BUTTON_TRIANGLE: 0x1,
        BUTTON_L1: 0xA,
        BUTTON_R1: 0xB,
        BUTTON_L2: 0xC,
        BUTTON_R2: 0xD,
    }

    # D-pad to CHIP-8 keys (2=up, 8=down, 4=left, 6=right)
    HAT_TO_KEY = {
        HAT_UP: 0x2,
        HAT_DOWN: 0x8,
        HAT_LEFT: 0x4,
        HAT_RIGHT: 0x6,
    }

    def __init__(self, on_key_change: Callable[[int, bool], None]):
        self.on_key_change = on_key_change
        self.joystick: Optional["pygame.joystick.JoystickType"] = None
        self.connected = False
        self.running = False
        self._thread: Optional[threading.Thread] = None
        self._hat_key: Optional[int] = None

        # Special action callbacks
        self.on_reset: Optional[Callable[[], None]] = None
        self.on_pause_toggle: Optional[Callable[[], None]] = None

        pygame.init()
        pygame.joystick.init()

    def start(self):
        """Start controller polling thread"""
        self.running = True
        self._thread = threading.Thread(target=self._poll_loop,
                                        name="chip8-controller", daemon=True)
        self._thread.start()

    def stop(self):
        """Stop controller polling"""
        self.running = False
        if self._thread:
            self._thread.join(timeout=1.0)
            self._thread = None

    def _poll_loop(self):
        while self.running:
            self._check_connection()
            if self.connected:
                self._process_input()
            time.sleep(1 / POLL_FREQUENCY)

    def _check_connection(self):
        """Check for controller connection/disconnection"""
        pygame.event.pump()
        joystick_count = pygame.joystick.get_count()

        if joystick_count > 0 and not self.connected:
            # Connect to first available controller
            self.joystick = pygame.joystick.Joystick(0)
            self.joystick.init()
            self.connected = True
            logger.info("Controller connected: %s", self.joystick.get_name())
        elif joystick_count == 0 and self.connected:
            self.connected = False
            self.joystick = None
            logger.info("Controller disconnected")

    def _process_input(self):
        for event in pygame.event.get():
            if event.type == pygame.JOYBUTTONDOWN:
                self.handle_button(event.button, True)
            elif event.type == pygame.JOYBUTTONUP:
                self.handle_button(event.button, False)
            elif event.type == pygame.JOYHATMOTION:
                self.handle_hat(event.value)

    def handle_button(self, button: int, pressed: bool):
        if pressed:
            if button == self.BUTTON_OPTIONS and self.on_pause_toggle:
                self.on_pause_toggle()
            elif button == self.BUTTON_SHARE and self.on_reset:
                self.on_reset()

        key = self.BUTTON_TO_KEY.get(button)
        if key is not None:
            self.on_key_change(key, pressed)

    def handle_hat(self, value: tuple):
        key = self.HAT_TO_KEY.get(tuple(value))
        if self._hat_key is not None and self._hat_key != key:
            self.on_key_change(self._hat_key, False)
        if key is not None:
            self.on_key_change(key, True)
        self._hat_key = key
