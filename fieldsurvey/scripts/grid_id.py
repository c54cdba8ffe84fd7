"""Grid ID labels for field logistics.

A label names the tile that contains a projected coordinate, e.g.
``W2N1`` for x = -12345, y = 6789 with 10 km tiles. Tile indices are
ceil(|coordinate| / tile_size), prefixed with E/W for the sign of x and
N/S for the sign of y (E and N for zero and positive values).
"""

import math
from typing import List

import numpy as np

from fieldsurvey.scripts.parameter import default_tile_size_m


def _tile_index(value: float, tile_size: float) -> int:
    return int(math.ceil(abs(value) / tile_size))


def encode_grid_id(x: float, y: float, tile_size: float = default_tile_size_m) -> str:
    """Encode a projected coordinate as a grid ID label.

    Args:
        x: Easting in map units
        y: Northing in map units
        tile_size: Tile edge length in the same units (meters)

    Returns:
        Label such as "W2N1"

    Raises:
        ValueError: If a coordinate is not finite or tile_size <= 0
    """
    if not (math.isfinite(tile_size) and tile_size > 0):
        raise ValueError(f"Tile size must be a positive number, got {tile_size}")
    if not (math.isfinite(x) and math.isfinite(y)):
        raise ValueError(f"Cannot encode non-finite coordinate ({x}, {y})")

    east_west = "E" if x >= 0 else "W"
    north_south = "N" if y >= 0 else "S"
    return (
        f"{east_west}{_tile_index(x, tile_size)}"
        f"{north_south}{_tile_index(y, tile_size)}"
    )


def encode_grid_ids(xs, ys, tile_size: float = default_tile_size_m) -> List[str]:
    """Encode arrays of coordinates; see encode_grid_id."""
    xs = np.asarray(xs, dtype=np.float64)
    ys = np.asarray(ys, dtype=np.float64)
    if xs.shape != ys.shape:
        raise ValueError("x and y must have the same shape")
    return [encode_grid_id(x, y, tile_size) for x, y in zip(xs.tolist(), ys.tolist())]
