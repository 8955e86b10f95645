"""Register file and call stack."""

from typing import List

from .config import EmulatorConfig
from .errors import StackOverflowError, StackUnderflowError


class Stack:
    """
    Bounded LIFO of return addresses.

    The original RCA 1802 interpreter allowed 12 levels of nesting, modern
    interpreters (and this one) use 16.
    """

    def __init__(self, capacity: int = 16):
        self.capacity = capacity
        self._entries: List[int] = []

    def push(self, address: int):
        if len(self._entries) >= self.capacity:
            raise StackOverflowError(self.capacity)
        self._entries.append(address)

    def pop(self) -> int:
        if not self._entries:
            raise StackUnderflowError()
        return self._entries.pop()

    def clear(self):
        self._entries.clear()

    def __len__(self):
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def to_list(self) -> List[int]:
        return list(self._entries)


class RegisterFile:
    """V0-VF, the index register I and the program counter"""

    def __init__(self, config: EmulatorConfig = None):
        self.config = config or EmulatorConfig()
        self.reset()

    def reset(self):
        # 16 general-purpose 8-bit registers V0-VF
        self.v = [0] * self.config.num_registers
        # 16-bit index register
        self.i = 0
        # Program counter (starts at 0x200)
        self.pc = self.config.program_start
