"""
Sound output: an on/off tone driven by the sound timer.
"""

import logging
import os
from array import array

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")
import pygame

logger = logging.getLogger(__name__)

TONE_FREQUENCY = 440


def build_square_wave(sample_rate: int, bits: int, frequency: int = TONE_FREQUENCY) -> array:
    """One period of a square wave for a signed 16-bit mixer"""
    period = int(round(sample_rate / frequency))
    amplitude = 2 ** (abs(bits) - 1) - 1
    samples = array("h", [0] * period)
    for t in range(period):
        samples[t] = amplitude if t < period / 2 else -amplitude
    return samples


class PygameBeeper:
    """Plays a looping square wave through pygame.mixer"""

    def __init__(self, frequency: int = TONE_FREQUENCY):
        if not pygame.mixer.get_init():
            pygame.mixer.init(frequency=44100, size=-16, channels=1)
        sample_rate, bits, _ = pygame.mixer.get_init()
        self._sound = pygame.mixer.Sound(buffer=build_square_wave(sample_rate, bits, frequency))
        self._sound.set_volume(0.1)

    def start(self):
        self._sound.play(-1)

    def stop(self):
        self._sound.stop()


class Chip8Audio:
    """Turns sound timer values into start/stop calls on a beeper"""

    def __init__(self, beeper=None):
        self.beeper = beeper if beeper is not None else PygameBeeper()
        self.is_beeping = False

    def start_beep(self):
        if not self.is_beeping:
            self.is_beeping = True
            self.beeper.start()
            logger.debug("beep on")

    def stop_beep(self):
        if self.is_beeping:
            self.is_beeping = False
            self.beeper.stop()
            logger.debug("beep off")

    def update(self, sound_timer: int):
        """Update audio based on sound timer"""
        if sound_timer > 0 and not self.is_beeping:
            self.start_beep()
        elif sound_timer == 0 and self.is_beeping:
            self.stop_beep()
