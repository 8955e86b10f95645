"""
CHIP-8 instruction words and their decoded form.

Every instruction is a 16-bit big-endian word. ``decode`` maps a word onto one
of the frozen dataclasses below; the executor dispatches on the class.

    t   - high nibble (instruction class)
    x   - register index, bits 8-11
    y   - register index, bits 4-7
    n   - 4-bit literal, bits 0-3
    kk  - low byte
    nnn - low 12 bits (address)
"""

from dataclasses import dataclass

from .errors import InvalidOpcodeError


class OpcodeWord(int):
    """A 16-bit instruction word with nibble and byte extractors"""

    def __new__(cls, value: int):
        return super().__new__(cls, value & 0xFFFF)

    @classmethod
    def from_bytes(cls, high: int, low: int) -> "OpcodeWord":
        return cls((high << 8) | low)

    @property
    def t(self) -> int:
        return self >> 12

    @property
    def x(self) -> int:
        return (self >> 8) & 0x0F

    @property
    def y(self) -> int:
        return (self >> 4) & 0x0F

    @property
    def n(self) -> int:
        return self & 0x000F

    @property
    def kk(self) -> int:
        return self & 0x00FF

    @property
    def nnn(self) -> int:
        return self & 0x0FFF

    def __repr__(self):
        return f"OpcodeWord(0x{int(self):04X})"


# ============================================================================
# INSTRUCTION VARIANTS
# ============================================================================

@dataclass(frozen=True)
class Instruction:
    """Base of all decoded instructions"""

    def __str__(self):
        return type(self).__name__.upper()


@dataclass(frozen=True)
class Cls(Instruction):
    """00E0: clear the display"""


@dataclass(frozen=True)
class Ret(Instruction):
    """00EE: return from subroutine"""


@dataclass(frozen=True)
class Jp(Instruction):
    """1NNN: jump to NNN"""
    nnn: int

    def __str__(self):
        return f"JP 0x{self.nnn:03X}"


@dataclass(frozen=True)
class Call(Instruction):
    """2NNN: call subroutine at NNN"""
    nnn: int

    def __str__(self):
        return f"CALL 0x{self.nnn:03X}"


@dataclass(frozen=True)
class _RegByte(Instruction):
    x: int
    kk: int

    mnemonic = ""

    def __str__(self):
        return f"{self.mnemonic} V{self.x:X}, 0x{self.kk:02X}"


@dataclass(frozen=True)
class SeByte(_RegByte):
    """3XKK: skip if Vx == KK"""
    mnemonic = "SE"


@dataclass(frozen=True)
class SneByte(_RegByte):
    """4XKK: skip if Vx != KK"""
    mnemonic = "SNE"


@dataclass(frozen=True)
class LdByte(_RegByte):
    """6XKK: Vx = KK"""
    mnemonic = "LD"


@dataclass(frozen=True)
class AddByte(_RegByte):
    """7XKK: Vx += KK, VF untouched"""
    mnemonic = "ADD"


@dataclass(frozen=True)
class Rnd(_RegByte):
    """CXKK: Vx = random byte & KK"""
    mnemonic = "RND"


@dataclass(frozen=True)
class _RegReg(Instruction):
    x: int
    y: int

    mnemonic = ""

    def __str__(self):
        return f"{self.mnemonic} V{self.x:X}, V{self.y:X}"


@dataclass(frozen=True)
class SeReg(_RegReg):
    """5XY0: skip if Vx == Vy"""
    mnemonic = "SE"


@dataclass(frozen=True)
class LdReg(_RegReg):
    """8XY0: Vx = Vy"""
    mnemonic = "LD"


@dataclass(frozen=True)
class Or(_RegReg):
    """8XY1"""
    mnemonic = "OR"


@dataclass(frozen=True)
class And(_RegReg):
    """8XY2"""
    mnemonic = "AND"


@dataclass(frozen=True)
class Xor(_RegReg):
    """8XY3"""
    mnemonic = "XOR"


@dataclass(frozen=True)
class AddReg(_RegReg):
    """8XY4: Vx += Vy, VF = carry"""
    mnemonic = "ADD"


@dataclass(frozen=True)
class Sub(_RegReg):
    """8XY5: Vx -= Vy, VF = NOT borrow"""
    mnemonic = "SUB"


@dataclass(frozen=True)
class Shr(_RegReg):
    """8XY6: VF = Vx & 1, Vx >>= 1"""
    mnemonic = "SHR"


@dataclass(frozen=True)
class Subn(_RegReg):
    """8XY7: Vx = Vy - Vx, VF = NOT borrow"""
    mnemonic = "SUBN"


@dataclass(frozen=True)
class Shl(_RegReg):
    """8XYE: VF = Vx >> 7, Vx <<= 1"""
    mnemonic = "SHL"


@dataclass(frozen=True)
class SneReg(_RegReg):
    """9XY0: skip if Vx != Vy"""
    mnemonic = "SNE"


@dataclass(frozen=True)
class LdI(Instruction):
    """ANNN: I = NNN"""
    nnn: int

    def __str__(self):
        return f"LD I, 0x{self.nnn:03X}"


@dataclass(frozen=True)
class JpV0(Instruction):
    """BNNN: jump to V0 + NNN"""
    nnn: int

    def __str__(self):
        return f"JP V0, 0x{self.nnn:03X}"


@dataclass(frozen=True)
class Drw(Instruction):
    """DXYN: XOR-draw an N-row sprite from I at (Vx, Vy)"""
    x: int
    y: int
    n: int

    def __str__(self):
        return f"DRW V{self.x:X}, V{self.y:X}, {self.n}"


@dataclass(frozen=True)
class _Reg(Instruction):
    x: int

    template = ""

    def __str__(self):
        return self.template.format(x=f"V{self.x:X}")


@dataclass(frozen=True)
class Skp(_Reg):
    """EX9E: skip if key Vx is pressed"""
    template = "SKP {x}"


@dataclass(frozen=True)
class Sknp(_Reg):
    """EXA1: skip if key Vx is not pressed"""
    template = "SKNP {x}"


@dataclass(frozen=True)
class LdVxDt(_Reg):
    """FX07: Vx = DT"""
    template = "LD {x}, DT"


@dataclass(frozen=True)
class LdVxK(_Reg):
    """FX0A: wait for a key press, Vx = key"""
    template = "LD {x}, K"


@dataclass(frozen=True)
class LdDtVx(_Reg):
    """FX15: DT = Vx"""
    template = "LD DT, {x}"


@dataclass(frozen=True)
class LdStVx(_Reg):
    """FX18: ST = Vx"""
    template = "LD ST, {x}"


@dataclass(frozen=True)
class AddIVx(_Reg):
    """FX1E: I += Vx, wraps at 16 bits"""
    template = "ADD I, {x}"


@dataclass(frozen=True)
class LdFVx(_Reg):
    """FX29: I = address of the font glyph for Vx"""
    template = "LD F, {x}"


@dataclass(frozen=True)
class LdBVx(_Reg):
    """FX33: BCD of Vx at I, I+1, I+2"""
    template = "LD B, {x}"


@dataclass(frozen=True)
class LdIVx(_Reg):
    """FX55: store V0..Vx at I"""
    template = "LD [I], {x}"


@dataclass(frozen=True)
class LdVxI(_Reg):
    """FX65: load V0..Vx from I"""
    template = "LD {x}, [I]"


# ============================================================================
# DECODER
# ============================================================================

_EIGHT_OPERATIONS = {
    0x0: LdReg,
    0x1: Or,
    0x2: And,
    0x3: Xor,
    0x4: AddReg,
    0x5: Sub,
    0x6: Shr,
    0x7: Subn,
    0xE: Shl,
}

_E_OPERATIONS = {
    0x9E: Skp,
    0xA1: Sknp,
}

_F_OPERATIONS = {
    0x07: LdVxDt,
    0x0A: LdVxK,
    0x15: LdDtVx,
    0x18: LdStVx,
    0x1E: AddIVx,
    0x29: LdFVx,
    0x33: LdBVx,
    0x55: LdIVx,
    0x65: LdVxI,
}


def decode(word: int) -> Instruction:
    """
    Decode a 16-bit word into its instruction.

    Raises InvalidOpcodeError for every word outside the CHIP-8 table.
    """
    opcode = OpcodeWord(word)
    op = opcode.t
    x, y, n, kk, nnn = opcode.x, opcode.y, opcode.n, opcode.kk, opcode.nnn

    if op == 0x0:
        if opcode == 0x00E0:
            return Cls()
        if opcode == 0x00EE:
            return Ret()
    elif op == 0x1:
        return Jp(nnn)
    elif op == 0x2:
        return Call(nnn)
    elif op == 0x3:
        return SeByte(x, kk)
    elif op == 0x4:
        return SneByte(x, kk)
    elif op == 0x5:
        if n == 0x0:
            return SeReg(x, y)
    elif op == 0x6:
        return LdByte(x, kk)
    elif op == 0x7:
        return AddByte(x, kk)
    elif op == 0x8:
        variant = _EIGHT_OPERATIONS.get(n)
        if variant is not None:
            return variant(x, y)
    elif op == 0x9:
        if n == 0x0:
            return SneReg(x, y)
    elif op == 0xA:
        return LdI(nnn)
    elif op == 0xB:
        return JpV0(nnn)
    elif op == 0xC:
        return Rnd(x, kk)
    elif op == 0xD:
        return Drw(x, y, n)
    elif op == 0xE:
        variant = _E_OPERATIONS.get(kk)
        if variant is not None:
            return variant(x)
    elif op == 0xF:
        variant = _F_OPERATIONS.get(kk)
        if variant is not None:
            return variant(x)

    raise InvalidOpcodeError(int(opcode))


def disassemble(word: int) -> str:
    """Mnemonic for a word, or a data directive when it does not decode"""
    try:
        return str(decode(word))
    except InvalidOpcodeError:
        return f"DW 0x{word & 0xFFFF:04X}"
