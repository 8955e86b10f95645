"""
CHIP-8 virtual machine: decoder, executor, timers and host glue.
"""

from .config import EmulatorConfig
from .cpu import AwaitKey, Chip8CPU, Jump, Operation, Step
from .dump import dump_state
from .errors import (
    Chip8Error, FetchError, FontIndexError, HaltedError, InvalidOpcodeError,
    JumpOutOfBoundsError, MemoryAccessError, RomError, RomTooLargeError,
    StackError, StackOverflowError, StackUnderflowError,
)
from .opcodes import Instruction, OpcodeWord, decode, disassemble
from .rom import Rom, RomArchive
from .runner import Runner

__version__ = "1.0.0"

__all__ = [
    "AwaitKey", "Chip8CPU", "Chip8Error", "EmulatorConfig", "FetchError",
    "FontIndexError", "HaltedError", "Instruction", "InvalidOpcodeError", "Jump",
    "JumpOutOfBoundsError", "MemoryAccessError", "OpcodeWord", "Operation",
    "Rom", "RomArchive", "RomError", "RomTooLargeError", "Runner", "StackError",
    "StackOverflowError", "StackUnderflowError", "Step", "decode", "disassemble",
    "dump_state",
]
