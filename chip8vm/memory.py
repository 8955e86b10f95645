"""
The CHIP-8 address space.

- ``0x000-0x1FF`` - interpreter area, holds the 4x5 font at ``font_start``
- ``0x200-0xFFF`` - program ROM and work RAM
"""

import logging
from typing import Iterable, List

from .config import FONT_4X5, EmulatorConfig
from .errors import FetchError, MemoryAccessError, RomTooLargeError
from .opcodes import OpcodeWord

logger = logging.getLogger(__name__)


class Memory:
    def __init__(self, config: EmulatorConfig = None):
        self.config = config or EmulatorConfig()
        self._memory = bytearray(self.config.memory_size)
        self._updated: List[int] = []
        self.load_font()

    def __len__(self):
        return len(self._memory)

    def __getitem__(self, key):
        return self._memory[key]

    def __setitem__(self, addr: int, value: int):
        self.write_byte(addr, value)

    def load_font(self):
        start = self.config.font_start
        self._memory[start:start + len(FONT_4X5)] = FONT_4X5

    def load_rom(self, data: bytes):
        """Copy ROM bytes into memory starting at the program area"""
        limit = self.config.max_rom_size
        if len(data) > limit:
            raise RomTooLargeError(len(data), limit)
        start = self.config.program_start
        self._memory[start:start + len(data)] = data
        self._updated.extend(range(start, start + len(data)))
        logger.debug("Loaded %d bytes at %#06x", len(data), start)

    def clear(self):
        self._memory[:] = bytes(len(self._memory))
        self._updated = []
        self.load_font()

    def get_opcode(self, pc: int) -> OpcodeWord:
        """Fetch the big-endian word at pc, pc + 1"""
        if pc < 0 or pc + 1 >= len(self._memory):
            raise FetchError(pc, len(self._memory))
        return OpcodeWord.from_bytes(self._memory[pc], self._memory[pc + 1])

    def read_byte(self, addr: int) -> int:
        self._check(addr)
        return self._memory[addr]

    def read_block(self, addr: int, length: int) -> bytes:
        if length:
            self._check(addr)
            self._check(addr + length - 1)
        return bytes(self._memory[addr:addr + length])

    def write_byte(self, addr: int, value: int):
        self._check(addr)
        self._memory[addr] = value & 0xFF
        self._updated.append(addr)

    def write_block(self, addr: int, values: Iterable[int]):
        values = bytes(v & 0xFF for v in values)
        if values:
            self._check(addr)
            self._check(addr + len(values) - 1)
        self._memory[addr:addr + len(values)] = values
        self._updated.extend(range(addr, addr + len(values)))

    def get_updated(self) -> List[int]:
        """Addresses written since the last call"""
        updated = self._updated
        self._updated = []
        return updated

    def dump(self) -> bytes:
        return bytes(self._memory)

    def _check(self, addr: int):
        if addr < 0 or addr >= len(self._memory):
            raise MemoryAccessError(addr, len(self._memory))
