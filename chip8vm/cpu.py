"""
CHIP-8 CPU - complete implementation of the 35 original opcodes.

``Chip8CPU.step()`` runs one decode-execute pass. Each instruction handler
returns a program-counter directive (``Step`` or ``Jump``) and an
``Operation`` hint for the host:

    NONE   - nothing for the host to do
    DRAW   - the display changed, re-read it
    CLEAR  - the display was cleared
    WAIT   - FX0A is waiting for a key press, the CPU clock may idle
    SOUND  - the sound timer was started

Errors are raised from ``step()`` and leave the CPU halted until ``reset()``.
"""

import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, Union

from .config import FLAG_REGISTER, FONT_GLYPH_SIZE, EmulatorConfig
from .display import DisplayBuffer
from .dump import dump_state
from .errors import (
    Chip8Error, FetchError, FontIndexError, HaltedError, JumpOutOfBoundsError,
)
from .keypad import Keypad
from .memory import Memory
from .opcodes import (
    AddByte, AddIVx, AddReg, And, Call, Cls, Drw, Instruction, Jp, JpV0, LdByte,
    LdBVx, LdDtVx, LdFVx, LdI, LdIVx, LdReg, LdStVx, LdVxDt, LdVxI, LdVxK,
    OpcodeWord, Or, Ret, Rnd, SeByte, SeReg, Shl, Shr, Sknp, Skp, SneByte,
    SneReg, Sub, Subn, Xor, decode,
)
from .registers import RegisterFile, Stack
from .rom import Rom
from .timers import CountdownTimer

logger = logging.getLogger(__name__)


class Operation(Enum):
    """Hint from the interpreter up to the host"""
    NONE = "none"
    DRAW = "draw"
    CLEAR = "clear"
    WAIT = "wait"
    SOUND = "sound"


class Step(Enum):
    """Relative program counter movement, value is the byte offset"""
    NEXT = 2
    SKIP = 4
    NONE = 0

    @classmethod
    def cond(cls, condition: bool) -> "Step":
        return cls.SKIP if condition else cls.NEXT


@dataclass(frozen=True)
class Jump:
    """Absolute program counter movement"""
    address: int


Directive = Union[Step, Jump]


@dataclass(frozen=True)
class AwaitKey:
    """Pending FX0A: store the next pressed key in V[register]"""
    register: int


def _random_byte() -> int:
    return random.randint(0, 255)


class Chip8CPU:
    """
    The interpreter: memory, registers, stack, display, keypad and timers.

    The timers start their workers on construction; call ``close()`` (or use
    the CPU as a context manager) to stop and join them.
    """

    def __init__(self, rom: Optional[Rom] = None, config: EmulatorConfig = None,
                 rng: Callable[[], int] = None,
                 sound_callback: Optional[Callable[[], None]] = None,
                 keypad: Optional[Keypad] = None):
        self.config = config or EmulatorConfig()
        self.rng = rng or _random_byte

        cfg = self.config
        self.memory = Memory(cfg)
        self.registers = RegisterFile(cfg)
        self.stack = Stack(cfg.stack_size)
        self.display = DisplayBuffer(cfg.display_width, cfg.display_height,
                                     clipping=cfg.quirk_clipping)
        self.keypad = keypad or Keypad(cfg.num_keys)

        # Timers (decrement at 60Hz when non-zero)
        self.delay = CountdownTimer("delay", cfg.timer_frequency)
        self.sound = CountdownTimer("sound", cfg.timer_frequency,
                                    on_expire=sound_callback)

        self.pending: Optional[AwaitKey] = None
        self.halted = False
        self.cycles = 0

        self._rom: Optional[Rom] = None
        self._cache: Dict[int, Instruction] = {}

        if rom is not None:
            self.load_rom(rom)

    # ==================== LIFECYCLE ====================

    def reset(self):
        """Reset to the power-on state, reloading the current ROM"""
        self.memory.clear()
        self.registers.reset()
        self.stack.clear()
        self.display.clear()
        self.keypad.reset()
        self.delay.value = 0
        self.sound.value = 0
        self.pending = None
        self.halted = False
        self.cycles = 0
        self._cache.clear()

        if self._rom is not None:
            self.memory.load_rom(self._rom.data)
        self.memory.get_updated()

    def load_rom(self, rom: Union[Rom, bytes], name: str = ""):
        """Load ROM into memory starting at 0x200"""
        if not isinstance(rom, Rom):
            rom = Rom(name or "Unknown", rom)
        self._rom = rom
        self.reset()
        logger.debug("Loaded ROM %s (%d bytes)", rom.name, len(rom))

    def close(self):
        """Stop and join both timer workers"""
        self.delay.stop()
        self.sound.stop()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # ==================== STATE ACCESS ====================

    @property
    def rom_loaded(self) -> bool:
        return self._rom is not None

    @property
    def rom_name(self) -> str:
        return self._rom.name if self._rom else ""

    @property
    def v(self) -> List[int]:
        return self.registers.v

    @property
    def i(self) -> int:
        return self.registers.i

    @i.setter
    def i(self, value: int):
        self.registers.i = value & 0xFFFF

    @property
    def pc(self) -> int:
        return self.registers.pc

    @pc.setter
    def pc(self, value: int):
        self.registers.pc = value

    @property
    def delay_timer(self) -> int:
        return self.delay.value

    @delay_timer.setter
    def delay_timer(self, value: int):
        self.delay.value = value

    @property
    def sound_timer(self) -> int:
        return self.sound.value

    @sound_timer.setter
    def sound_timer(self, value: int):
        self.sound.value = value

    @property
    def sound_active(self) -> bool:
        return self.sound.is_active

    @property
    def waiting_for_key(self) -> bool:
        return self.pending is not None

    def get_display(self) -> List[List[bool]]:
        return self.display.frame()

    def set_key(self, key: int, pressed: bool):
        self.keypad.set_key(key, pressed)

    def toggle_key(self, key: int):
        self.keypad.toggle_key(key)

    def set_keyboard(self, keys):
        self.keypad.set_all(keys)

    def current_opcode(self) -> Optional[OpcodeWord]:
        try:
            return self.memory.get_opcode(self.pc)
        except FetchError:
            return None

    # ==================== EXECUTION ====================

    def step(self) -> Operation:
        """
        Execute one instruction and return the host hint.

        While FX0A is pending, every call returns WAIT without touching the
        state until a key press has been recorded; the call after the press
        stores the key, moves past FX0A and goes on to run the following
        instruction.
        """
        if self.halted:
            raise HaltedError()

        try:
            if self.pending is not None and not self._resume():
                return Operation.WAIT

            instruction = self._fetch()
            logger.debug("%#06x: %s", self.pc, instruction)
            if type(instruction) not in self._flow_types:
                # the effect is only applied when the next word is fetchable
                self._check_next()
            directive, operation = self._handlers[type(instruction)](self, instruction)
            self._advance(directive)
        except Chip8Error as e:
            self.halted = True
            logger.error("CPU halted at %#06x: %s", self.pc, e)
            raise

        self.cycles += 1
        return operation

    def _fetch(self) -> Instruction:
        # drop cached decodes of words that were written since the last fetch
        for addr in self.memory.get_updated():
            self._cache.pop(addr, None)
            self._cache.pop(addr - 1, None)

        pc = self.pc
        instruction = self._cache.get(pc)
        if instruction is None:
            instruction = decode(self.memory.get_opcode(pc))
            self._cache[pc] = instruction
        return instruction

    def _advance(self, directive: Directive):
        if isinstance(directive, Jump):
            self._check_jump(directive.address)
            self.pc = directive.address
            return
        pc = self.pc + directive.value
        if pc >= len(self.memory):
            raise FetchError(pc, len(self.memory))
        self.pc = pc

    def _check_next(self):
        pc = self.pc + Step.NEXT.value
        if pc >= len(self.memory):
            raise FetchError(pc, len(self.memory))

    def _check_jump(self, address: int):
        lower, upper = self.config.program_start, len(self.memory)
        if not lower <= address < upper:
            raise JumpOutOfBoundsError(address, lower, upper)

    def _resume(self) -> bool:
        """Complete a pending FX0A once a key press has been recorded"""
        last = self.keypad.get_last()
        if last is None or not last.current:
            return False
        register = self.pending.register
        self._advance(Step.NEXT)
        self.v[register] = last.index
        self.keypad.clear_last()
        self.pending = None
        logger.debug("Stored key %X in V%X, resuming", last.index, register)
        return True

    # ==================== FLOW ====================

    def _cls(self, op: Cls):
        self.display.clear()
        return Step.NEXT, Operation.CLEAR

    def _ret(self, op: Ret):
        return Jump(self.stack.pop()), Operation.NONE

    def _jp(self, op: Jp):
        return Jump(op.nnn), Operation.NONE

    def _call(self, op: Call):
        self._check_jump(op.nnn)
        self.stack.push(self.pc + Step.NEXT.value)
        return Jump(op.nnn), Operation.NONE

    def _jp_v0(self, op: JpV0):
        # Quirk: CHIP-48 uses Vx instead of V0 (BXNN)
        if self.config.quirk_jump_uses_vx:
            base = self.v[(op.nnn >> 8) & 0x0F]
        else:
            base = self.v[0]
        return Jump(base + op.nnn), Operation.NONE

    # ==================== CONDITIONALS ====================

    def _se_byte(self, op: SeByte):
        return Step.cond(self.v[op.x] == op.kk), Operation.NONE

    def _sne_byte(self, op: SneByte):
        return Step.cond(self.v[op.x] != op.kk), Operation.NONE

    def _se_reg(self, op: SeReg):
        return Step.cond(self.v[op.x] == self.v[op.y]), Operation.NONE

    def _sne_reg(self, op: SneReg):
        return Step.cond(self.v[op.x] != self.v[op.y]), Operation.NONE

    def _skp(self, op: Skp):
        return Step.cond(self.keypad.is_pressed(self.v[op.x] & 0x0F)), Operation.NONE

    def _sknp(self, op: Sknp):
        return Step.cond(not self.keypad.is_pressed(self.v[op.x] & 0x0F)), Operation.NONE

    # ==================== REGISTERS & ARITHMETIC ====================

    def _ld_byte(self, op: LdByte):
        self.v[op.x] = op.kk
        return Step.NEXT, Operation.NONE

    def _add_byte(self, op: AddByte):
        # no carry flag
        self.v[op.x] = (self.v[op.x] + op.kk) & 0xFF
        return Step.NEXT, Operation.NONE

    def _ld_reg(self, op: LdReg):
        self.v[op.x] = self.v[op.y]
        return Step.NEXT, Operation.NONE

    def _bitwise(self, x: int, value: int):
        self.v[x] = value
        if self.config.quirk_vf_reset:
            self.v[FLAG_REGISTER] = 0
        return Step.NEXT, Operation.NONE

    def _or(self, op: Or):
        return self._bitwise(op.x, self.v[op.x] | self.v[op.y])

    def _and(self, op: And):
        return self._bitwise(op.x, self.v[op.x] & self.v[op.y])

    def _xor(self, op: Xor):
        return self._bitwise(op.x, self.v[op.x] ^ self.v[op.y])

    # The flag is always written after the result, so VF holds the flag
    # when x == F.

    def _add_reg(self, op: AddReg):
        result = self.v[op.x] + self.v[op.y]
        self.v[op.x] = result & 0xFF
        self.v[FLAG_REGISTER] = 1 if result > 0xFF else 0
        return Step.NEXT, Operation.NONE

    def _sub(self, op: Sub):
        vx, vy = self.v[op.x], self.v[op.y]
        self.v[op.x] = (vx - vy) & 0xFF
        self.v[FLAG_REGISTER] = 1 if vx >= vy else 0
        return Step.NEXT, Operation.NONE

    def _subn(self, op: Subn):
        vx, vy = self.v[op.x], self.v[op.y]
        self.v[op.x] = (vy - vx) & 0xFF
        self.v[FLAG_REGISTER] = 1 if vy >= vx else 0
        return Step.NEXT, Operation.NONE

    def _shift_source(self, op) -> int:
        # Quirk: original VIP shifts Vy into Vx
        return self.v[op.y] if self.config.quirk_shift_uses_vy else self.v[op.x]

    def _shr(self, op: Shr):
        src = self._shift_source(op)
        self.v[op.x] = src >> 1
        self.v[FLAG_REGISTER] = src & 0x01
        return Step.NEXT, Operation.NONE

    def _shl(self, op: Shl):
        src = self._shift_source(op)
        self.v[op.x] = (src << 1) & 0xFF
        self.v[FLAG_REGISTER] = (src >> 7) & 0x01
        return Step.NEXT, Operation.NONE

    def _rnd(self, op: Rnd):
        self.v[op.x] = (self.rng() & 0xFF) & op.kk
        return Step.NEXT, Operation.NONE

    # ==================== INDEX & MEMORY ====================

    def _ld_i(self, op: LdI):
        self.i = op.nnn
        return Step.NEXT, Operation.NONE

    def _add_i(self, op: AddIVx):
        # VF is not affected
        self.i = (self.i + self.v[op.x]) & 0xFFFF
        return Step.NEXT, Operation.NONE

    def _ld_font(self, op: LdFVx):
        digit = self.v[op.x]
        if digit > 0x0F:
            raise FontIndexError(digit)
        self.i = self.config.font_start + digit * FONT_GLYPH_SIZE
        return Step.NEXT, Operation.NONE

    def _ld_bcd(self, op: LdBVx):
        value = self.v[op.x]
        self.memory.write_block(self.i, (value // 100, (value // 10) % 10, value % 10))
        return Step.NEXT, Operation.NONE

    def _store(self, op: LdIVx):
        self.memory.write_block(self.i, self.v[:op.x + 1])
        # Quirk: original VIP increments I, CHIP-48 doesn't
        if self.config.quirk_memory_increment:
            self.i = self.i + op.x + 1
        return Step.NEXT, Operation.NONE

    def _load(self, op: LdVxI):
        for idx, value in enumerate(self.memory.read_block(self.i, op.x + 1)):
            self.v[idx] = value
        if self.config.quirk_memory_increment:
            self.i = self.i + op.x + 1
        return Step.NEXT, Operation.NONE

    # ==================== DISPLAY ====================

    def _drw(self, op: Drw):
        x, y = self.v[op.x], self.v[op.y]
        sprite = self.memory.read_block(self.i, op.n)
        self.v[FLAG_REGISTER] = 0
        if self.display.xor_sprite(x, y, sprite):
            self.v[FLAG_REGISTER] = 1
        return Step.NEXT, Operation.DRAW

    # ==================== TIMERS & INPUT ====================

    def _ld_vx_dt(self, op: LdVxDt):
        self.v[op.x] = self.delay.value
        return Step.NEXT, Operation.NONE

    def _ld_dt_vx(self, op: LdDtVx):
        self.delay.value = self.v[op.x]
        return Step.NEXT, Operation.NONE

    def _ld_st_vx(self, op: LdStVx):
        value = self.v[op.x]
        self.sound.value = value
        return Step.NEXT, Operation.SOUND if value else Operation.NONE

    def _ld_vx_k(self, op: LdVxK):
        # only presses recorded after this point complete the wait
        self.keypad.clear_last()
        self.pending = AwaitKey(op.x)
        logger.debug("Waiting for a key press into V%X", op.x)
        return Step.NONE, Operation.WAIT

    # instructions that move PC absolutely and never take a NEXT step
    _flow_types = (Jp, Call, Ret, JpV0)

    _handlers: Dict[type, Callable[["Chip8CPU", Instruction], Tuple[Directive, Operation]]] = {
        Cls: _cls,
        Ret: _ret,
        Jp: _jp,
        Call: _call,
        SeByte: _se_byte,
        SneByte: _sne_byte,
        SeReg: _se_reg,
        LdByte: _ld_byte,
        AddByte: _add_byte,
        LdReg: _ld_reg,
        Or: _or,
        And: _and,
        Xor: _xor,
        AddReg: _add_reg,
        Sub: _sub,
        Shr: _shr,
        Subn: _subn,
        Shl: _shl,
        SneReg: _sne_reg,
        LdI: _ld_i,
        JpV0: _jp_v0,
        Rnd: _rnd,
        Drw: _drw,
        Skp: _skp,
        Sknp: _sknp,
        LdVxDt: _ld_vx_dt,
        LdVxK: _ld_vx_k,
        LdDtVx: _ld_dt_vx,
        LdStVx: _ld_st_vx,
        AddIVx: _add_i,
        LdFVx: _ld_font,
        LdBVx: _ld_bcd,
        LdIVx: _store,
        LdVxI: _load,
    }

    def __str__(self):
        return dump_state(self)
