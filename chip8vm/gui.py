"""
Tkinter frontend: canvas renderer, keyboard input, status bar.
"""

import logging
import threading
import time
import tkinter as tk
from tkinter import filedialog, messagebox
from typing import List, Optional

from .audio import Chip8Audio
from .config import KEYBOARD_MAP, EmulatorConfig
from .controller import Chip8Controller
from .cpu import Chip8CPU
from .dump import dump_state
from .errors import Chip8Error
from .rom import Rom
from .runner import TARGET_FPS, Runner

logger = logging.getLogger(__name__)

# Window constants
WINDOW_WIDTH = 640
WINDOW_HEIGHT = 368
DISPLAY_AREA_HEIGHT = 320
STATUS_BAR_HEIGHT = 48

# Colors
COLORS = {
    'bg': '#0C0C0C',
    'pixel_on': '#C0C0C0',
    'pixel_off': '#1A1A1A',
    'status_bg': '#1E1E1E',
    'status_fg': '#707070',
    'accent': '#4A9EFF',
}


class Chip8Display:
    """Tkinter canvas-based display renderer"""

    def __init__(self, canvas: tk.Canvas, width: int, height: int):
        self.canvas = canvas
        self.width = width
        self.height = height
        self.canvas_width = int(canvas['width'])
        self.canvas_height = int(canvas['height'])
        self.pixel_rects = {}
        self._last_frame: Optional[List[List[bool]]] = None
        self._create_pixels()

    def _create_pixels(self):
        """Create pixel grid for current resolution"""
        self.canvas.delete("all")
        self.pixel_rects.clear()

        scale_x = self.canvas_width / self.width
        scale_y = self.canvas_height / self.height

        for y in range(self.height):
            for x in range(self.width):
                x1 = x * scale_x
                y1 = y * scale_y
                rect = self.canvas.create_rectangle(
                    x1, y1, x1 + scale_x, y1 + scale_y,
                    fill=COLORS['pixel_off'],
                    outline=""
                )
                self.pixel_rects[(x, y)] = rect

    def render(self, frame: List[List[bool]]):
        """Render a frame, touching only the pixels that changed"""
        last = self._last_frame
        for y, row in enumerate(frame):
            for x, pixel in enumerate(row):
                if last is not None and last[y][x] == pixel:
                    continue
                color = COLORS['pixel_on'] if pixel else COLORS['pixel_off']
                self.canvas.itemconfig(self.pixel_rects[(x, y)], fill=color)
        self._last_frame = frame


class Chip8GUI:
    """Main emulator application with Tkinter GUI"""

    def __init__(self, config: EmulatorConfig = None):
        self.root = tk.Tk()
        self.root.title("CHIP-8")
        self.root.geometry(f"{WINDOW_WIDTH}x{WINDOW_HEIGHT}")
        self.root.resizable(False, False)
        self.root.configure(bg=COLORS['bg'])

        self.config = config or EmulatorConfig()

        # Components
        self.cpu = Chip8CPU(config=self.config)
        self.audio = Chip8Audio()
        self.runner = Runner(self.cpu, on_frame=self._on_frame, on_error=self._on_error)
        self.controller = Chip8Controller(self.cpu.set_key)
        # the controller polls on its own thread
        self.controller.on_reset = self._on_tk_thread(self._reset)
        self.controller.on_pause_toggle = self._on_tk_thread(self._toggle_pause)

        # Frames are produced on the CPU thread and drawn on the Tk thread
        self._frame_lock = threading.Lock()
        self._pending_frame: Optional[List[List[bool]]] = None
        self._pending_error: Optional[Chip8Error] = None

        self.fps = 0
        self.frame_count = 0
        self.last_fps_time = time.time()

        self._create_ui()
        self.display_renderer = Chip8Display(self.canvas, self.config.display_width,
                                             self.config.display_height)
        self._bind_keys()

    def _create_ui(self):
        self.canvas = tk.Canvas(
            self.root,
            width=WINDOW_WIDTH,
            height=DISPLAY_AREA_HEIGHT,
            bg=COLORS['bg'],
            highlightthickness=0
        )
        self.canvas.pack(side=tk.TOP)

        self.status_frame = tk.Frame(self.root, height=STATUS_BAR_HEIGHT, bg=COLORS['status_bg'])
        self.status_frame.pack(side=tk.BOTTOM, fill=tk.X)
        self.status_frame.pack_propagate(False)

        label_opts = dict(fg=COLORS['status_fg'], bg=COLORS['status_bg'], font=("Consolas", 9))

        self.rom_label = tk.Label(self.status_frame, text="No ROM - Click to load", **label_opts)
        self.rom_label.pack(side=tk.LEFT, padx=10)

        self.fps_label = tk.Label(self.status_frame, text="FPS: --", **label_opts)
        self.fps_label.pack(side=tk.LEFT, padx=10)

        self.state_label = tk.Label(self.status_frame, text="Stopped", **label_opts)
        self.state_label.pack(side=tk.RIGHT, padx=10)

        self.speed_label = tk.Label(
            self.status_frame, text="1x", fg=COLORS['accent'],
            bg=COLORS['status_bg'], font=("Consolas", 9, "bold")
        )
        self.speed_label.pack(side=tk.RIGHT, padx=10)

    def _bind_keys(self):
        self.root.bind("<KeyPress>", self._on_key_down)
        self.root.bind("<KeyRelease>", self._on_key_up)

        # Emulator controls
        self.root.bind("<F9>", lambda e: self._reset())
        self.root.bind("<space>", lambda e: self._toggle_pause())
        self.root.bind("<F1>", lambda e: self._decrease_speed())
        self.root.bind("<F2>", lambda e: self._increase_speed())
        self.root.bind("<F4>", lambda e: self._print_debug())
        self.root.bind("<Control-o>", lambda e: self._open_file_dialog())

        self.canvas.bind("<Button-1>", self._on_click)

    def _on_key_down(self, event):
        key = event.keysym.lower()
        if key in KEYBOARD_MAP:
            self.cpu.set_key(KEYBOARD_MAP[key], True)

    def _on_key_up(self, event):
        key = event.keysym.lower()
        if key in KEYBOARD_MAP:
            self.cpu.set_key(KEYBOARD_MAP[key], False)

    def _on_click(self, event):
        if not self.cpu.rom_loaded:
            self._open_file_dialog()

    def _open_file_dialog(self):
        filepath = filedialog.askopenfilename(
            title="Select CHIP-8 ROM",
            filetypes=[
                ("CHIP-8 ROM", "*.ch8"),
                ("CHIP-8 ROM", "*.c8"),
                ("All files", "*.*")
            ]
        )
        if filepath:
            try:
                self.load_rom(Rom.from_file(filepath))
            except (OSError, Chip8Error) as e:
                messagebox.showerror("Error", f"Failed to load ROM:\n{e}")

    def load_rom(self, rom: Rom):
        self.runner.stop()
        self.cpu.load_rom(rom)
        self.rom_label.config(text=f"ROM: {rom.name} ({len(rom)}b)")
        self._on_frame(self.cpu.get_display())
        self._start_emulation()

    def _start_emulation(self):
        if self.runner.running:
            return
        self.runner.start()
        self._update_status()

    # ==================== RUNNER CALLBACKS (CPU thread) ====================

    def _on_frame(self, frame: List[List[bool]]):
        with self._frame_lock:
            self._pending_frame = frame

    def _on_error(self, error: Chip8Error):
        with self._frame_lock:
            self._pending_error = error

    def _show_error(self, error: Chip8Error):
        self.audio.stop_beep()
        self._update_status()
        messagebox.showerror("CPU halted", str(error))

    # ==================== TK THREAD ====================

    def _on_tk_thread(self, callback):
        """Wrap callback so calls from other threads run on the Tk event loop"""
        return lambda: self.root.after(0, callback)

    def _render_loop(self):
        with self._frame_lock:
            frame, self._pending_frame = self._pending_frame, None
            error, self._pending_error = self._pending_error, None
        if frame is not None:
            self.display_renderer.render(frame)
        if error is not None:
            self._show_error(error)

        self.audio.update(0 if self.runner.paused else self.cpu.sound_timer)

        self.frame_count += 1
        now = time.time()
        if now - self.last_fps_time >= 1.0:
            self.fps = self.frame_count
            self.frame_count = 0
            self.last_fps_time = now
            self.fps_label.config(text=f"FPS: {self.fps}")

        self.root.after(1000 // TARGET_FPS, self._render_loop)

    def _update_status(self):
        if self.cpu.halted:
            self.state_label.config(text="Halted")
        elif self.runner.paused:
            self.state_label.config(text="Paused")
        elif self.runner.running:
            self.state_label.config(text="Running")
        else:
            self.state_label.config(text="Stopped")
        self.speed_label.config(text=f"{self.runner.speed_multiplier}x")

    def _reset(self):
        if self.cpu.rom_loaded:
            self.runner.stop()
            self.cpu.reset()
            self._on_frame(self.cpu.get_display())
            self._start_emulation()

    def _toggle_pause(self):
        self.runner.toggle_pause()
        self._update_status()

    def _increase_speed(self):
        if self.runner.speed_multiplier < 16:
            self.runner.speed_multiplier *= 2
            self._update_status()

    def _decrease_speed(self):
        if self.runner.speed_multiplier > 1:
            self.runner.speed_multiplier //= 2
            self._update_status()

    def _print_debug(self):
        print(dump_state(self.cpu))

    def run(self):
        self.controller.start()
        self._render_loop()
        self.root.protocol("WM_DELETE_WINDOW", self._on_close)
        self.root.mainloop()

    def _on_close(self):
        self.runner.stop()
        self.controller.stop()
        self.audio.stop_beep()
        self.cpu.close()
        self.root.destroy()
