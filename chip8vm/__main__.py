"""
Command line entry point.

    python -m chip8vm ROM                     run ROM in the tkinter window
    python -m chip8vm --archive roms.zip NAME run a ROM from a zip archive
    python -m chip8vm --archive roms.zip --list
    python -m chip8vm ROM --headless --cycles 1000 --dump
"""

import argparse
import logging
import sys

from .config import EmulatorConfig
from .cpu import Chip8CPU
from .dump import dump_state
from .errors import Chip8Error
from .rom import Rom, RomArchive
from .runner import Runner

logger = logging.getLogger("chip8vm")


def _parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="chip8vm", description="CHIP-8 interpreter")
    parser.add_argument("rom", nargs="?", help="ROM file, or member name with --archive")
    parser.add_argument("-a", "--archive", help="zip archive holding ROMs")
    parser.add_argument("-l", "--list", action="store_true",
                        help="list the ROMs in the archive and exit")
    parser.add_argument("--headless", action="store_true",
                        help="run without a window")
    parser.add_argument("-n", "--cycles", type=int, default=1000,
                        help="instructions to run in headless mode")
    parser.add_argument("-d", "--dump", action="store_true",
                        help="print the interpreter state when done")
    parser.add_argument("--hz", type=int, default=None, help="CPU frequency")
    parser.add_argument("--timer-hz", type=int, default=None, help="timer frequency")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser.parse_args(argv)


def _load(args) -> Rom:
    if args.archive:
        with RomArchive(args.archive) as archive:
            return archive.get_rom(args.rom)
    return Rom.from_file(args.rom)


def _run_headless(rom: Rom, config: EmulatorConfig, cycles: int, dump: bool) -> int:
    with Chip8CPU(rom, config=config) as cpu:
        runner = Runner(cpu)
        status = 0
        try:
            operation = runner.run_cycles(cycles)
            logger.info("Ran %d instructions, last hint %s", cpu.cycles, operation.name)
        except Chip8Error as e:
            logger.error("%s", e)
            status = 1
        print(cpu.display)
        if dump:
            print(dump_state(cpu))
    return status


def main(argv=None) -> int:
    """Main entry point"""
    args = _parse_args(argv)
    logging.basicConfig(format="[%(levelname)s]:  %(message)s",
                        level=logging.DEBUG if args.verbose else logging.INFO)

    if args.list:
        if not args.archive:
            logger.error("--list needs --archive")
            return 2
        try:
            archive = RomArchive(args.archive)
        except (OSError, Chip8Error) as e:
            logger.error("Failed to open archive: %s", e)
            return 1
        with archive:
            for name in archive.file_names():
                print(name)
        return 0

    config = EmulatorConfig()
    if args.hz:
        config.cpu_frequency = args.hz
    if args.timer_hz:
        config.timer_frequency = args.timer_hz

    rom = None
    if args.rom:
        try:
            rom = _load(args)
        except (OSError, Chip8Error) as e:
            logger.error("Failed to load ROM: %s", e)
            return 1
    elif args.headless:
        logger.error("--headless needs a ROM")
        return 2

    if args.headless:
        return _run_headless(rom, config, args.cycles, args.dump)

    from .gui import Chip8GUI

    app = Chip8GUI(config)
    if rom is not None:
        app.load_rom(rom)
    app.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
