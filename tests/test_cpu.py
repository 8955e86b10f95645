import threading

import pytest

from chip8vm.config import FLAG_REGISTER, FONT_4X5, EmulatorConfig
from chip8vm.cpu import Chip8CPU, Operation, Step
from chip8vm.errors import (
    FetchError, FontIndexError, HaltedError, InvalidOpcodeError,
    JumpOutOfBoundsError, MemoryAccessError, StackOverflowError,
    StackUnderflowError,
)
from chip8vm.rom import Rom


def run(cpu, steps):
    return [cpu.step() for _ in range(steps)]


class TestScenarios:
    def test_cls_then_advance(self, make_cpu):
        cpu = make_cpu([0x00E0, 0x00E0])
        ops = run(cpu, 2)
        assert ops[1] == Operation.CLEAR
        assert cpu.pc == 0x204
        assert cpu.display.lit_count() == 0

    def test_call_return(self, make_cpu):
        cpu = make_cpu([0x2204, 0x1300, 0x00EE])
        cpu.step()
        assert cpu.pc == 0x204
        assert cpu.stack.to_list() == [0x202]
        cpu.step()
        assert cpu.pc == 0x202
        assert cpu.stack.to_list() == []
        cpu.step()
        assert cpu.pc == 0x300

    def test_bcd(self, make_cpu):
        cpu = make_cpu([0xF033])
        cpu.v[0] = 246
        cpu.i = 0x300
        cpu.step()
        assert cpu.memory.read_block(0x300, 3) == bytes([2, 4, 6])
        assert cpu.i == 0x300

    def test_bulk_store_load(self, make_cpu):
        cpu = make_cpu([0xF255, 0x6000, 0x6100, 0xF165])
        cpu.v[0:3] = [0x11, 0x22, 0x33]
        cpu.i = 0x400
        run(cpu, 4)
        assert cpu.v[0] == 0x11
        assert cpu.v[1] == 0x22
        assert cpu.i == 0x400
        assert cpu.memory.read_block(0x400, 3) == bytes([0x11, 0x22, 0x33])

    def test_add_with_carry(self, make_cpu):
        cpu = make_cpu([0x8014])
        cpu.v[0] = 0xFF
        cpu.v[1] = 0x01
        cpu.step()
        assert cpu.v[0] == 0x00
        assert cpu.v[FLAG_REGISTER] == 1

    def test_sprite_collision(self, make_cpu):
        cpu = make_cpu([0xD015, 0xD015])
        cpu.i = cpu.config.font_start

        assert cpu.step() == Operation.DRAW
        assert cpu.v[FLAG_REGISTER] == 0
        for row, byte in enumerate(FONT_4X5[:5]):
            for col in range(8):
                assert cpu.display.get_pixel(col, row) == bool(byte & (0x80 >> col))

        assert cpu.step() == Operation.DRAW
        assert cpu.v[FLAG_REGISTER] == 1
        assert cpu.display.lit_count() == 0


class TestFlow:
    def test_nested_calls_return_after_call_site(self, make_cpu):
        cpu = make_cpu([
            0x2206,  # 200: CALL 206
            0x6001,  # 202: LD V0, 1
            0x1204,  # 204: JP 204
            0x220A,  # 206: CALL 20A
            0x00EE,  # 208: RET
            0x00EE,  # 20A: RET
        ])
        pcs = []
        for _ in range(5):
            cpu.step()
            pcs.append(cpu.pc)
        assert pcs == [0x206, 0x20A, 0x208, 0x202, 0x204]
        assert len(cpu.stack) == 0
        assert cpu.v[0] == 1

    def test_jp_v0(self, make_cpu):
        cpu = make_cpu([0xB300])
        cpu.v[0] = 0x10
        cpu.step()
        assert cpu.pc == 0x310

    def test_jp_v0_uses_vx_quirk(self, make_cpu):
        cpu = make_cpu([0xB234], quirk_jump_uses_vx=True)
        cpu.v[0] = 0x10
        cpu.v[2] = 0x02
        cpu.step()
        assert cpu.pc == 0x236

    @pytest.mark.parametrize("word, setup, expected_pc", [
        (0x3012, {0: 0x12}, 0x204),
        (0x3012, {0: 0x13}, 0x202),
        (0x4012, {0: 0x13}, 0x204),
        (0x4012, {0: 0x12}, 0x202),
        (0x5010, {0: 7, 1: 7}, 0x204),
        (0x5010, {0: 7, 1: 8}, 0x202),
        (0x9010, {0: 7, 1: 8}, 0x204),
        (0x9010, {0: 7, 1: 7}, 0x202),
    ])
    def test_skips(self, make_cpu, word, setup, expected_pc):
        cpu = make_cpu([word])
        for register, value in setup.items():
            cpu.v[register] = value
        cpu.step()
        assert cpu.pc == expected_pc

    def test_pc_stays_in_program_area(self, make_cpu):
        cpu = make_cpu([0x7001, 0x3005, 0x1200, 0x1200])
        for _ in range(50):
            cpu.step()
            assert 0x200 <= cpu.pc < len(cpu.memory)


class TestArithmetic:
    def test_ld_and_add_byte(self, make_cpu):
        cpu = make_cpu([0x6AFE, 0x7A03])
        cpu.v[FLAG_REGISTER] = 0x55
        run(cpu, 2)
        assert cpu.v[0xA] == 0x01
        # ADD byte leaves the flag alone
        assert cpu.v[FLAG_REGISTER] == 0x55

    def test_ld_reg(self, make_cpu):
        cpu = make_cpu([0x8120])
        cpu.v[2] = 0x42
        cpu.step()
        assert cpu.v[1] == 0x42

    @pytest.mark.parametrize("word, expected", [
        (0x8011, 0b1110),
        (0x8012, 0b1000),
        (0x8013, 0b0110),
    ])
    def test_bitwise(self, make_cpu, word, expected):
        cpu = make_cpu([word])
        cpu.v[0] = 0b1100
        cpu.v[1] = 0b1010
        cpu.v[FLAG_REGISTER] = 0x33
        cpu.step()
        assert cpu.v[0] == expected
        assert cpu.v[FLAG_REGISTER] == 0x33

    def test_bitwise_vf_reset_quirk(self, make_cpu):
        cpu = make_cpu([0x8011], quirk_vf_reset=True)
        cpu.v[FLAG_REGISTER] = 0x33
        cpu.step()
        assert cpu.v[FLAG_REGISTER] == 0

    def test_add_without_carry(self, make_cpu):
        cpu = make_cpu([0x8014])
        cpu.v[0] = 0x10
        cpu.v[1] = 0x20
        cpu.step()
        assert cpu.v[0] == 0x30
        assert cpu.v[FLAG_REGISTER] == 0

    @pytest.mark.parametrize("vx, vy", [(5, 3), (3, 5), (7, 7), (0, 0xFF), (0xFF, 0)])
    def test_sub_flag_is_no_borrow(self, make_cpu, vx, vy):
        cpu = make_cpu([0x8015])
        cpu.v[0] = vx
        cpu.v[1] = vy
        cpu.step()
        assert cpu.v[0] == (vx - vy) & 0xFF
        assert cpu.v[FLAG_REGISTER] == (1 if vx >= vy else 0)

    @pytest.mark.parametrize("vx, vy", [(5, 3), (3, 5), (7, 7)])
    def test_subn_flag_is_no_borrow(self, make_cpu, vx, vy):
        cpu = make_cpu([0x8017])
        cpu.v[0] = vx
        cpu.v[1] = vy
        cpu.step()
        assert cpu.v[0] == (vy - vx) & 0xFF
        assert cpu.v[FLAG_REGISTER] == (1 if vy >= vx else 0)

    @pytest.mark.parametrize("word, vf, vy, expected", [
        (0x8F14, 0xFF, 0x01, 1),  # carry wins over the 0x00 sum
        (0x8F14, 0x01, 0x01, 0),  # no carry wins over the 0x02 sum
        (0x8F15, 0x05, 0x03, 1),
        (0x8F15, 0x03, 0x05, 0),
        (0x8F17, 0x05, 0x03, 0),
        (0x8F17, 0x03, 0x05, 1),
    ])
    def test_flag_wins_when_target_is_vf(self, make_cpu, word, vf, vy, expected):
        cpu = make_cpu([word])
        cpu.v[FLAG_REGISTER] = vf
        cpu.v[1] = vy
        cpu.step()
        assert cpu.v[FLAG_REGISTER] == expected

    def test_shr(self, make_cpu):
        cpu = make_cpu([0x8016])
        cpu.v[0] = 0b101
        cpu.v[1] = 0xFF
        cpu.step()
        assert cpu.v[0] == 0b10
        assert cpu.v[FLAG_REGISTER] == 1

    def test_shl(self, make_cpu):
        cpu = make_cpu([0x801E])
        cpu.v[0] = 0x81
        cpu.step()
        assert cpu.v[0] == 0x02
        assert cpu.v[FLAG_REGISTER] == 1

    def test_shift_uses_vy_quirk(self, make_cpu):
        cpu = make_cpu([0x8016], quirk_shift_uses_vy=True)
        cpu.v[0] = 0
        cpu.v[1] = 0b110
        cpu.step()
        assert cpu.v[0] == 0b11
        assert cpu.v[FLAG_REGISTER] == 0

    def test_rnd_masks_injected_byte(self, make_cpu):
        cpu = make_cpu([0xC00F, 0xC0FF], rng_values=(0xAB, 0x42))
        cpu.step()
        assert cpu.v[0] == 0x0B
        cpu.step()
        assert cpu.v[0] == 0x42


class TestIndexAndMemory:
    def test_ld_i(self, make_cpu):
        cpu = make_cpu([0xA123])
        cpu.step()
        assert cpu.i == 0x123

    def test_add_i_wraps_and_keeps_flag(self, make_cpu):
        cpu = make_cpu([0xF01E])
        cpu.i = 0xFFF0
        cpu.v[0] = 0x20
        cpu.v[FLAG_REGISTER] = 0x77
        cpu.step()
        assert cpu.i == 0x0010
        assert cpu.v[FLAG_REGISTER] == 0x77

    def test_font_address(self, make_cpu):
        cpu = make_cpu([0xF029])
        cpu.v[0] = 0xA
        cpu.step()
        assert cpu.i == cpu.config.font_start + 0xA * 5
        assert cpu.memory.read_block(cpu.i, 5) == FONT_4X5[50:55]

    def test_font_index_out_of_range(self, make_cpu):
        cpu = make_cpu([0xF029])
        cpu.v[0] = 0x10
        with pytest.raises(FontIndexError):
            cpu.step()
        assert cpu.halted

    def test_store_load_increment_quirk(self, make_cpu):
        cpu = make_cpu([0xF155, 0xF165], quirk_memory_increment=True)
        cpu.v[0:2] = [1, 2]
        cpu.i = 0x400
        cpu.step()
        assert cpu.i == 0x402
        cpu.memory.write_block(0x402, [9, 8])
        cpu.step()
        assert cpu.v[0:2] == [9, 8]
        assert cpu.i == 0x404

    def test_store_past_end_of_memory(self, make_cpu):
        cpu = make_cpu([0xF255])
        cpu.i = 0xFFF
        with pytest.raises(MemoryAccessError):
            cpu.step()

    def test_written_code_is_decoded_again(self, make_cpu):
        cpu = make_cpu([
            0xA206,  # 200: LD I, 206
            0xF155,  # 202: LD [I], V1
            0x1206,  # 204: JP 206
            0x00E0,  # 206: CLS, rewritten to LD V0, 0x42
        ])
        cpu.pc = 0x206
        assert cpu.step() == Operation.CLEAR

        cpu.pc = 0x200
        cpu.v[0] = 0x60
        cpu.v[1] = 0x42
        run(cpu, 3)
        assert cpu.pc == 0x206
        assert cpu.step() == Operation.NONE
        assert cpu.v[0] == 0x42


class TestDisplay:
    @pytest.mark.parametrize("x, y", [(0, 0), (10, 5), (60, 30), (70, 40)])
    def test_draw_twice_is_identity(self, make_cpu, x, y):
        cpu = make_cpu([0xD014, 0xD014])
        cpu.memory.write_block(0x300, [0xFF, 0x81, 0x5A, 0x3C])
        cpu.i = 0x300
        cpu.v[0] = x
        cpu.v[1] = y
        cpu.step()
        assert cpu.v[FLAG_REGISTER] == 0
        assert cpu.display.lit_count() > 0
        cpu.step()
        assert cpu.display.lit_count() == 0

    def test_drw_reads_coordinates_before_flag(self, make_cpu):
        cpu = make_cpu([0xD0F1])
        cpu.memory.write_block(0x300, [0x80])
        cpu.i = 0x300
        cpu.v[FLAG_REGISTER] = 3
        cpu.step()
        assert cpu.display.get_pixel(0, 3)

    def test_clipping_at_right_edge(self, make_cpu):
        cpu = make_cpu([0xD011])
        cpu.memory.write_block(0x300, [0xFF])
        cpu.i = 0x300
        cpu.v[0] = 60
        cpu.step()
        assert cpu.display.lit_count() == 4
        assert not cpu.display.get_pixel(0, 0)

    def test_wrapping_without_clipping(self, make_cpu):
        cpu = make_cpu([0xD011], quirk_clipping=False)
        cpu.memory.write_block(0x300, [0xFF])
        cpu.i = 0x300
        cpu.v[0] = 60
        cpu.step()
        assert cpu.display.lit_count() == 8
        assert cpu.display.get_pixel(0, 0)

    def test_get_display_is_a_copy(self, make_cpu):
        cpu = make_cpu([0x00E0])
        frame = cpu.get_display()
        frame[0][0] = True
        assert not cpu.display.get_pixel(0, 0)
        assert len(frame) == 32
        assert len(frame[0]) == 64


class TestKeysAndTimers:
    def test_skp_sknp(self, make_cpu):
        cpu = make_cpu([0xE09E, 0x0000, 0xE0A1])
        cpu.v[0] = 5
        cpu.set_key(5, True)
        cpu.step()
        assert cpu.pc == 0x204
        cpu.step()
        assert cpu.pc == 0x206

    def test_delay_timer_round_trip(self, make_cpu):
        cpu = make_cpu([0xF015, 0xF107], timer_frequency=1)
        cpu.v[0] = 200
        run(cpu, 2)
        assert cpu.v[1] == 200
        assert cpu.delay_timer == 200

    def test_sound_timer_hint(self, make_cpu):
        cpu = make_cpu([0xF018, 0xF118], timer_frequency=1)
        cpu.v[0] = 10
        assert cpu.step() == Operation.SOUND
        assert cpu.sound_active
        assert cpu.step() == Operation.NONE
        assert not cpu.sound_active


class TestWaitForKey:
    def test_wait_then_complete(self, make_cpu):
        cpu = make_cpu([0xF30A, 0x00E0])
        assert cpu.step() == Operation.WAIT
        assert cpu.waiting_for_key
        assert cpu.pc == 0x200

        # further steps are no-ops while no key arrives
        assert cpu.step() == Operation.WAIT
        assert cpu.step() == Operation.WAIT
        assert cpu.pc == 0x200

        # the press completes FX0A and the same step runs the next instruction
        cpu.set_key(7, True)
        assert cpu.step() == Operation.CLEAR
        assert cpu.v[3] == 7
        assert cpu.pc == 0x204
        assert not cpu.waiting_for_key

    def test_only_presses_after_the_wait_count(self, make_cpu):
        cpu = make_cpu([0xF30A, 0x1202])
        cpu.set_key(1, True)
        assert cpu.step() == Operation.WAIT
        assert cpu.step() == Operation.WAIT

        cpu.set_key(1, False)
        assert cpu.step() == Operation.WAIT

        cpu.set_key(2, True)
        assert cpu.step() == Operation.NONE
        assert cpu.v[3] == 2
        assert cpu.pc == 0x202

    def test_consecutive_waits(self, make_cpu):
        cpu = make_cpu([0xF30A, 0xF40A, 0x1204])
        assert cpu.step() == Operation.WAIT
        cpu.set_key(5, True)
        # resuming the first wait runs straight into the second
        assert cpu.step() == Operation.WAIT
        assert cpu.v[3] == 5
        assert cpu.pc == 0x202
        assert cpu.waiting_for_key
        assert cpu.step() == Operation.WAIT

        cpu.set_key(6, True)
        assert cpu.step() == Operation.NONE
        assert cpu.v[4] == 6
        assert cpu.pc == 0x204

    def test_resume_error_halts(self, make_cpu):
        cpu = make_cpu([0xF30A])
        assert cpu.step() == Operation.WAIT
        cpu.set_key(1, True)
        # the word after FX0A is 0x0000
        with pytest.raises(InvalidOpcodeError):
            cpu.step()
        assert cpu.halted
        assert cpu.v[3] == 1
        assert cpu.pc == 0x202


class TestErrors:
    def test_invalid_opcode_halts(self, make_cpu):
        cpu = make_cpu([0x0123])
        with pytest.raises(InvalidOpcodeError) as info:
            cpu.step()
        assert info.value.word == 0x0123
        assert cpu.halted
        assert cpu.pc == 0x200
        with pytest.raises(HaltedError):
            cpu.step()

    def test_reset_clears_halt(self, make_cpu):
        cpu = make_cpu([0x0123])
        with pytest.raises(InvalidOpcodeError):
            cpu.step()
        cpu.reset()
        assert not cpu.halted
        assert cpu.pc == 0x200

    def test_return_on_empty_stack(self, make_cpu):
        cpu = make_cpu([0x00EE])
        with pytest.raises(StackUnderflowError):
            cpu.step()

    def test_stack_overflow(self, make_cpu):
        cpu = make_cpu([0x2200])
        run(cpu, 16)
        assert len(cpu.stack) == 16
        with pytest.raises(StackOverflowError):
            cpu.step()
        assert len(cpu.stack) == 16

    @pytest.mark.parametrize("word", [0x1100, 0x21FE, 0xBFFF])
    def test_jump_out_of_bounds(self, make_cpu, word):
        cpu = make_cpu([word])
        cpu.v[0] = 0x10
        with pytest.raises(JumpOutOfBoundsError):
            cpu.step()
        assert cpu.pc == 0x200
        assert len(cpu.stack) == 0

    def test_step_past_end_of_memory_leaves_state(self, make_cpu):
        cpu = make_cpu()
        cpu.memory.write_block(0xFFE, [0x60, 0x42])  # LD V0, 0x42
        cpu.pc = 0xFFE
        with pytest.raises(FetchError):
            cpu.step()
        assert cpu.pc == 0xFFE
        assert cpu.v[0] == 0

    def test_bcd_at_last_word_leaves_memory(self, make_cpu):
        cpu = make_cpu()
        cpu.memory.write_block(0xFFE, [0xF0, 0x33])
        cpu.pc = 0xFFE
        cpu.v[0] = 123
        cpu.i = 0x300
        with pytest.raises(FetchError):
            cpu.step()
        assert cpu.memory.read_block(0x300, 3) == bytes(3)

    def test_wait_at_last_word_is_not_installed(self, make_cpu):
        cpu = make_cpu()
        cpu.memory.write_block(0xFFE, [0xF3, 0x0A])
        cpu.pc = 0xFFE
        with pytest.raises(FetchError):
            cpu.step()
        assert not cpu.waiting_for_key

    def test_jump_at_last_word(self, make_cpu):
        cpu = make_cpu()
        cpu.memory.write_block(0xFFE, [0x12, 0x00])
        cpu.pc = 0xFFE
        cpu.step()
        assert cpu.pc == 0x200

    def test_skip_past_end_of_memory(self, make_cpu):
        cpu = make_cpu()
        cpu.memory.write_block(0xFFC, [0x30, 0x00])  # SE V0, 0
        cpu.pc = 0xFFC
        with pytest.raises(FetchError):
            cpu.step()
        assert cpu.pc == 0xFFC

    def test_fetch_at_last_byte(self, make_cpu):
        cpu = make_cpu()
        cpu.pc = 0xFFF
        with pytest.raises(FetchError):
            cpu.step()


class TestLifecycle:
    def test_reset_reloads_rom(self, make_cpu):
        cpu = make_cpu([0x00E0, 0x1200])
        cpu.memory.write_block(0x200, [0xFF, 0xFF])
        cpu.v[4] = 9
        cpu.i = 0x123
        cpu.reset()
        assert cpu.memory.read_block(0x200, 4) == bytes([0x00, 0xE0, 0x12, 0x00])
        assert cpu.v == [0] * 16
        assert cpu.i == 0
        assert cpu.cycles == 0

    def test_font_is_loaded(self, make_cpu):
        cpu = make_cpu()
        start = cpu.config.font_start
        assert cpu.memory.read_block(start, len(FONT_4X5)) == FONT_4X5

    def test_load_raw_bytes(self):
        with Chip8CPU() as cpu:
            assert not cpu.rom_loaded
            cpu.load_rom(b"\x00\xE0", name="cls")
            assert cpu.rom_loaded
            assert cpu.rom_name == "cls"
            assert cpu.step() == Operation.CLEAR

    def test_context_manager_stops_timers(self):
        with Chip8CPU(Rom("empty", b"")) as cpu:
            assert cpu.delay.is_alive()
        assert not cpu.delay.is_alive()
        assert not cpu.sound.is_alive()

    def test_cycles_count_successful_steps(self, make_cpu):
        cpu = make_cpu([0x00E0, 0x00E0, 0x00E0])
        run(cpu, 3)
        assert cpu.cycles == 3

    def test_str_is_state_dump(self, make_cpu):
        cpu = make_cpu([0x00E0])
        assert str(cpu).startswith("Chip8 {")


def test_step_cond():
    assert Step.cond(True) == Step.SKIP
    assert Step.cond(False) == Step.NEXT


def test_set_keyboard_drives_skips(make_cpu):
    cpu = make_cpu([0xE0A1])
    cpu.v[0] = 0xB
    keys = [False] * 16
    keys[0xB] = True
    cpu.set_keyboard(keys)
    cpu.step()
    assert cpu.pc == 0x202


def test_sound_callback_fires_on_expiry():
    expired = threading.Event()
    config = EmulatorConfig(timer_frequency=1000)
    with Chip8CPU(Rom("beep", b"\xF0\x18"), config=config,
                  sound_callback=expired.set) as cpu:
        cpu.v[0] = 5
        assert cpu.step() == Operation.SOUND
        assert expired.wait(2.0)
        assert cpu.sound_timer == 0
