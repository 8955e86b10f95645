"""Exceptions raised by the CHIP-8 interpreter."""


class Chip8Error(Exception):
    """Base class for every fatal interpreter error."""


class InvalidOpcodeError(Chip8Error):
    def __init__(self, word: int):
        super().__init__(f"An unsupported opcode was used 0x{word:04X}.")
        self.word = word


class FetchError(Chip8Error):
    def __init__(self, pc: int, memory_len: int):
        super().__init__(
            f"There can not be an opcode at 0x{pc:04X}, memory length is 0x{memory_len:04X}."
        )
        self.pc = pc
        self.memory_len = memory_len


class JumpOutOfBoundsError(Chip8Error):
    def __init__(self, address: int, lower: int, upper: int):
        super().__init__(
            f"Jump target 0x{address:04X} outside of [0x{lower:04X}, 0x{upper:04X})."
        )
        self.address = address


class StackError(Chip8Error):
    pass


class StackOverflowError(StackError):
    def __init__(self, capacity: int):
        super().__init__(f"Stack is full! ({capacity} entries)")
        self.capacity = capacity


class StackUnderflowError(StackError):
    def __init__(self):
        super().__init__("Stack is empty!")


class FontIndexError(Chip8Error):
    def __init__(self, value: int):
        super().__init__(f"No font glyph for value 0x{value:02X}.")
        self.value = value


class MemoryAccessError(Chip8Error):
    def __init__(self, address: int, memory_len: int):
        super().__init__(
            f"Memory access at 0x{address:04X} outside of 0x{memory_len:04X} bytes."
        )
        self.address = address


class HaltedError(Chip8Error):
    def __init__(self):
        super().__init__("The CPU is halted, reset it before stepping again.")


class RomError(Chip8Error, ValueError):
    pass


class RomTooLargeError(RomError):
    def __init__(self, size: int, limit: int):
        super().__init__(f"ROM too large: {size} bytes (max {limit})")
        self.size = size
        self.limit = limit
