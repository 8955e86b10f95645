"""
Human readable dump of the interpreter state.

Memory is printed as rows of eight big-endian words; consecutive rows that are
all zero collapse into a single ``...`` row.
"""

from typing import Iterable, List, Sequence

HEX_PRINT_STEP = 8
INDENT = "\t\t"


def _format_word(value: int) -> str:
    # "{:#06X}" would upper-case the prefix too
    return "0x" + f"{value:04X}"


def _format_range(start: int, end: int) -> str:
    return f"{_format_word(start)} - {_format_word(end)} :"


def _zero_filler() -> str:
    zero = _format_word(0)
    width = len(zero) * (HEX_PRINT_STEP - 2) + (HEX_PRINT_STEP - 1) - len("...")
    pad = " " * (width // 2)
    return f"{zero}{pad}...{pad}{zero}"


ZERO_FILLER = _zero_filler()


def memory_rows(memory: bytes) -> List[str]:
    step = HEX_PRINT_STEP * 2
    rows = []  # [start, end, words, only_zero]
    for start in range(0, len(memory), step):
        end = min(start + step, len(memory)) - 1
        words = [
            (memory[addr] << 8) | (memory[addr + 1] if addr + 1 < len(memory) else 0)
            for addr in range(start, end + 1, 2)
        ]
        only_zero = not any(words)
        if only_zero and rows and rows[-1][3]:
            rows[-1][1] = end
            continue
        rows.append([start, end, words, only_zero])

    lines = []
    for start, end, words, only_zero in rows:
        body = ZERO_FILLER if only_zero else " ".join(_format_word(w) for w in words)
        lines.append(f"{_format_range(start, end)} {body}")
    return lines


def integer_rows(values: Sequence[int]) -> List[str]:
    lines = []
    for start in range(0, len(values), HEX_PRINT_STEP):
        chunk = values[start:start + HEX_PRINT_STEP]
        end = start + len(chunk) - 1
        lines.append(f"{_format_range(start, end)} " + " ".join(_format_word(v) for v in chunk))
    return lines


def bool_rows(values: Sequence[bool]) -> List[str]:
    width = len(_format_word(0))
    lines = []
    for start in range(0, len(values), HEX_PRINT_STEP):
        chunk = values[start:start + HEX_PRINT_STEP]
        end = start + len(chunk) - 1
        text = " ".join(str(v).lower().ljust(width) for v in chunk)
        lines.append(f"{_format_range(start, end)} {text.rstrip()}")
    return lines


def _section(title: str, lines: Iterable[str]) -> List[str]:
    return [f"\t{title} :"] + [INDENT + line for line in lines]


def dump_state(cpu) -> str:
    """Render ROM name, opcode, PC, memory, keypad, stack and registers"""
    opcode = cpu.current_opcode()
    stack = cpu.stack.to_list()
    stack += [0] * (cpu.stack.capacity - len(stack))

    lines = ["Chip8 {"]
    lines += _section("Program Name", [cpu.rom_name or "Unknown"])
    lines += _section("Opcode", [_format_word(opcode if opcode is not None else 0)])
    lines += _section("Program Counter", [_format_word(cpu.pc)])
    lines += _section("Index Register", [_format_word(cpu.i)])
    lines += _section("Timers", [f"DT {cpu.delay_timer:3d}  ST {cpu.sound_timer:3d}"])
    lines += _section("Memory", memory_rows(cpu.memory.dump()))
    lines += _section("Keyboard", bool_rows(cpu.keypad.get_keys()))
    lines += _section("Stack", integer_rows(stack))
    lines += _section("Register", integer_rows(cpu.v))
    lines.append("}")
    return "\n".join(lines)
