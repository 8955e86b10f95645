"""
The 16-key hex keypad.

Input is done with a hex keyboard that has 16 keys ranging 0-F. Two opcodes
skip on the state of a key; FX0A waits for the next key press, which is why
the keypad remembers the last single-key edge.
"""

import logging
import threading
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .config import NUM_KEYS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeyEdge:
    """The last single-key update: which key, its state before and after"""
    index: int
    previous: bool
    current: bool

    @property
    def is_press(self) -> bool:
        return self.current and not self.previous


class Keypad:
    """
    Key states plus a one-slot last-edge record.

    Host threads push events while the CPU thread reads, so every access goes
    through a lock that is never held across a CPU step.
    """

    def __init__(self, num_keys: int = NUM_KEYS):
        self.num_keys = num_keys
        self._keys = [False] * num_keys
        self._last: Optional[KeyEdge] = None
        self._lock = threading.Lock()

    def set_key(self, index: int, pressed: bool):
        """Release every key, then set one key and record the edge"""
        self._check(index)
        pressed = bool(pressed)
        with self._lock:
            previous = self._keys[index]
            self._keys = [False] * self.num_keys
            self._keys[index] = pressed
            self._last = KeyEdge(index, previous, pressed)
        logger.debug("key %X -> %s", index, pressed)

    def toggle_key(self, index: int):
        self._check(index)
        with self._lock:
            current = self._keys[index]
        self.set_key(index, not current)

    def set_all(self, keys: Sequence[bool]):
        """Replace every key state and forget the last edge"""
        if len(keys) != self.num_keys:
            raise ValueError(f"expected {self.num_keys} key states, got {len(keys)}")
        with self._lock:
            self._keys = [bool(k) for k in keys]
            self._last = None

    def is_pressed(self, index: int) -> bool:
        with self._lock:
            return self._keys[index & 0x0F]

    def get_keys(self) -> List[bool]:
        with self._lock:
            return list(self._keys)

    def get_last(self) -> Optional[KeyEdge]:
        with self._lock:
            return self._last

    def was_pressed(self) -> bool:
        """True when the last recorded edge leaves its key down"""
        last = self.get_last()
        return last is not None and last.current

    def clear_last(self):
        with self._lock:
            self._last = None

    def reset(self):
        with self._lock:
            self._keys = [False] * self.num_keys
            self._last = None

    def _check(self, index: int):
        if not 0 <= index < self.num_keys:
            raise IndexError(f"key index {index} outside 0..{self.num_keys - 1}")
