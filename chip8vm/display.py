"""Monochrome display buffer with the XOR sprite blit."""

from typing import List, Sequence

from .config import DISPLAY_HEIGHT, DISPLAY_WIDTH


class DisplayBuffer:
    """
    A width x height grid of booleans, indexed ``pixels[y][x]``.

    The buffer never pushes; the host re-reads it after a Draw or Clear hint.
    """

    def __init__(self, width: int = DISPLAY_WIDTH, height: int = DISPLAY_HEIGHT,
                 clipping: bool = True):
        self.width = width
        self.height = height
        self.clipping = clipping
        self.pixels = [[False] * width for _ in range(height)]

    def clear(self):
        for row in self.pixels:
            for i in range(len(row)):
                row[i] = False

    def xor_sprite(self, x: int, y: int, sprite: Sequence[int]) -> bool:
        """
        XOR an 8-pixel wide sprite onto the grid, MSB first.

        The origin wraps onto the grid; pixels that fall off the right or bottom
        edge are clipped (or wrapped when clipping is off). Returns True when a
        lit pixel was turned off.
        """
        sx = x % self.width
        sy = y % self.height
        collision = False

        for row, sprite_byte in enumerate(sprite):
            py = sy + row
            if py >= self.height:
                if self.clipping:
                    break
                py %= self.height

            for col in range(8):
                if not sprite_byte & (0x80 >> col):
                    continue
                px = sx + col
                if px >= self.width:
                    if self.clipping:
                        break
                    px %= self.width

                if self.pixels[py][px]:
                    collision = True
                self.pixels[py][px] = not self.pixels[py][px]

        return collision

    def get_pixel(self, x: int, y: int) -> bool:
        return self.pixels[y][x]

    def frame(self) -> List[List[bool]]:
        """A copy of the grid for the host"""
        return [row[:] for row in self.pixels]

    def lit_count(self) -> int:
        return sum(sum(row) for row in self.pixels)

    def __str__(self):
        return "\n".join("".join("#" if p else "." for p in row) for row in self.pixels)
