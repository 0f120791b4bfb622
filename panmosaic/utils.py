"""
Utility functions for splitting an output grid into processing tiles.
"""
from dataclasses import dataclass
from typing import List

from .exceptions import ConfigurationError
from .models import Grid


@dataclass(frozen=True)
class TileWindow:
    """
    One processing tile: an inner window of the output grid plus a halo.

    ``row``/``col``/``height``/``width`` locate the inner window in the output
    grid. The padded window extends the inner one by up to ``halo`` pixels on
    each side, clipped at the grid edges.
    """
    index: int
    row: int
    col: int
    height: int
    width: int
    pad_row: int
    pad_col: int
    pad_height: int
    pad_width: int

    @property
    def inner_slice(self):
        """Slices selecting the inner window out of the padded window."""
        r0 = self.row - self.pad_row
        c0 = self.col - self.pad_col
        return slice(r0, r0 + self.height), slice(c0, c0 + self.width)

    @property
    def grid_slice(self):
        """Slices selecting the inner window out of the full output grid."""
        return slice(self.row, self.row + self.height), slice(self.col, self.col + self.width)


def tile_windows(grid: Grid, tile_size: int, halo: int = 0) -> List[TileWindow]:
    """
    Split ``grid`` into row-major tiles of at most ``tile_size`` x ``tile_size`` pixels.

    Args:
        grid: Output grid
        tile_size: Tile side in pixels
        halo: Extra pixels read around each tile (e.g. a buffer radius) so
            neighbourhood operations match a whole-grid run

    Returns:
        List of TileWindow covering every pixel of the grid exactly once
    """
    if tile_size < 1:
        raise ConfigurationError(f"Tile size must be >= 1, got {tile_size}")
    if halo < 0:
        raise ConfigurationError(f"Halo must be >= 0, got {halo}")

    tiles = []
    for row in range(0, grid.height, tile_size):
        height = min(tile_size, grid.height - row)
        for col in range(0, grid.width, tile_size):
            width = min(tile_size, grid.width - col)
            pad_row = max(0, row - halo)
            pad_col = max(0, col - halo)
            pad_bottom = min(grid.height, row + height + halo)
            pad_right = min(grid.width, col + width + halo)
            tiles.append(TileWindow(
                index=len(tiles),
                row=row, col=col, height=height, width=width,
                pad_row=pad_row, pad_col=pad_col,
                pad_height=pad_bottom - pad_row, pad_width=pad_right - pad_col,
            ))
    return tiles
