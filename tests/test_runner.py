import threading
import time

from chip8vm.cpu import Operation
from chip8vm.errors import InvalidOpcodeError
from chip8vm.rom import Rom
from chip8vm.runner import Runner


def test_run_cycles_stops_on_wait(make_cpu):
    frames = []
    cpu = make_cpu([0x00E0, 0xF00A, 0x00E0])
    runner = Runner(cpu, on_frame=frames.append)
    assert runner.run_cycles(10) == Operation.WAIT
    assert cpu.pc == 0x202
    assert len(frames) == 1


def test_idles_until_key(make_cpu):
    cpu = make_cpu([0xF00A, 0x00E0])
    runner = Runner(cpu)
    runner.run_once()
    cycles = cpu.cycles
    assert runner.run_once() == Operation.WAIT
    assert cpu.cycles == cycles

    cpu.set_key(0xC, True)
    assert runner.run_once() == Operation.CLEAR
    assert cpu.v[0] == 0xC
    assert cpu.pc == 0x204


def test_new_rom_runs_after_a_pending_wait(make_cpu):
    cpu = make_cpu([0xF00A])
    runner = Runner(cpu)
    assert runner.run_once() == Operation.WAIT

    cpu.load_rom(Rom("cls", b"\x00\xE0"))
    assert not cpu.waiting_for_key
    assert runner.run_once() == Operation.CLEAR
    assert cpu.pc == 0x202


def test_reset_during_wait_steps_again(make_cpu):
    cpu = make_cpu([0x00E0, 0xF00A])
    runner = Runner(cpu)
    assert runner.run_cycles(5) == Operation.WAIT

    cpu.reset()
    assert runner.run_once() == Operation.CLEAR
    assert cpu.cycles == 1


def test_thread_runs_and_stops(make_cpu):
    cpu = make_cpu([0x7001, 0x1200])
    runner = Runner(cpu)
    runner.start()
    assert runner.running
    time.sleep(0.1)
    runner.stop()
    assert not runner.running
    assert cpu.cycles > 0
    cycles = cpu.cycles
    time.sleep(0.05)
    assert cpu.cycles == cycles


def test_error_stops_the_loop(make_cpu):
    errors = []
    reported = threading.Event()

    def on_error(error):
        errors.append(error)
        reported.set()

    cpu = make_cpu([0x0000])
    runner = Runner(cpu, on_error=on_error)
    runner.start()
    assert reported.wait(2.0)
    runner.stop()
    assert isinstance(runner.error, InvalidOpcodeError)
    assert errors == [runner.error]
    assert cpu.halted
    assert not runner.running


def test_pause(make_cpu):
    cpu = make_cpu([0x1200])
    runner = Runner(cpu)
    runner.pause()
    assert runner.paused
    runner.resume()
    assert not runner.paused
    runner.toggle_pause()
    assert runner.paused
