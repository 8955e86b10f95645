"""Shared fixtures: a CPU factory that loads a program of opcode words."""

import itertools

import pytest

from chip8vm.config import EmulatorConfig
from chip8vm.cpu import Chip8CPU
from chip8vm.rom import Rom


def words_to_bytes(words):
    data = bytearray()
    for word in words:
        data += bytes(((word >> 8) & 0xFF, word & 0xFF))
    return bytes(data)


@pytest.fixture
def make_cpu():
    """
    make_cpu(words, rng_values=None, **config_overrides) -> Chip8CPU

    The RNG cycles through ``rng_values`` (default 0xAB). Every CPU built
    here is closed when the test ends.
    """
    cpus = []

    def factory(words=(), rng_values=(0xAB,), **overrides):
        values = itertools.cycle(rng_values)
        cpu = Chip8CPU(Rom("test", words_to_bytes(words)),
                       config=EmulatorConfig(**overrides),
                       rng=lambda: next(values))
        cpus.append(cpu)
        return cpu

    yield factory

    for cpu in cpus:
        cpu.close()
