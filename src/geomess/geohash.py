"""
Integer geohash over a planar bounding box.

A cell id interleaves the grid indices of both axes, one bit pair per step:
the x (longitude) bit is the high bit of each pair and the y (latitude) bit
the low one. With 26 steps a cell is ~0.6m wide; with 19 steps it is ~76.4m,
which is the proximity radius of the service.

Neighbor search follows the ardb spatial index scheme:
https://github.com/yinqiwen/ardb/wiki/Spatial-Index
"""
import math
from dataclasses import dataclass

from src.geomess.errors import GeohashRangeError
from src.geomess.projection import MERCATOR_MAX, MERCATOR_MIN

HIGHRES_STEPS = 26
LOWRES_STEPS = 19  # 76.4378m cells
MAX_STEPS = 32

# (dx, dy) per compass direction, in the order neighbors() reports them
NORTH = (0, 1)
EAST = (1, 0)
WEST = (-1, 0)
SOUTH = (0, -1)
SOUTH_WEST = (-1, -1)
SOUTH_EAST = (1, -1)
NORTH_WEST = (-1, 1)
NORTH_EAST = (1, 1)
DIRECTIONS = (NORTH, EAST, WEST, SOUTH, SOUTH_WEST, SOUTH_EAST, NORTH_WEST, NORTH_EAST)

# Two cells per direction: the adjacent one and the one behind it
NEIGHBOR_RINGS = (1, 2)
NEIGHBORS_COUNT = len(NEIGHBOR_RINGS) * len(DIRECTIONS)


@dataclass(frozen=True)
class BoundingBox:
    """Planar rectangle the grid is laid over."""
    min_x: float
    max_x: float
    min_y: float
    max_y: float


MERCATOR_BOX = BoundingBox(MERCATOR_MIN, MERCATOR_MAX, MERCATOR_MIN, MERCATOR_MAX)


def _check_steps(steps: int) -> None:
    if not 1 <= steps <= MAX_STEPS:
        raise ValueError(f"steps must be between 1 and {MAX_STEPS}, got {steps}")


def _quantize(value: float, low: float, high: float, steps: int) -> int:
    """Index of the cell holding value; a value on a boundary goes to the lower cell."""
    if not low <= value <= high:
        raise GeohashRangeError(f"{value} is outside [{low}, {high}]")

    cells = 1 << steps
    index = math.ceil((value - low) / (high - low) * cells) - 1
    return min(max(index, 0), cells - 1)


def _spread(value: int) -> int:
    """Move bit i of a 32-bit value to bit 2*i."""
    value &= 0xFFFFFFFF
    value = (value | (value << 16)) & 0x0000FFFF0000FFFF
    value = (value | (value << 8)) & 0x00FF00FF00FF00FF
    value = (value | (value << 4)) & 0x0F0F0F0F0F0F0F0F
    value = (value | (value << 2)) & 0x3333333333333333
    value = (value | (value << 1)) & 0x5555555555555555
    return value


def _squash(value: int) -> int:
    """Inverse of _spread: collect the even bits back into a 32-bit value."""
    value &= 0x5555555555555555
    value = (value | (value >> 1)) & 0x3333333333333333
    value = (value | (value >> 2)) & 0x0F0F0F0F0F0F0F0F
    value = (value | (value >> 4)) & 0x00FF00FF00FF00FF
    value = (value | (value >> 8)) & 0x0000FFFF0000FFFF
    value = (value | (value >> 16)) & 0x00000000FFFFFFFF
    return value


def interleave(x_index: int, y_index: int) -> int:
    """Combine two grid indices into a cell id."""
    return (_spread(x_index) << 1) | _spread(y_index)


def decode(cell: int, steps: int) -> tuple[int, int]:
    """
    Split a cell id back into its grid indices.

    Args:
        cell: Cell id produced by encode() at the same resolution
        steps: Resolution of the cell id

    Returns:
        Tuple of (x_index, y_index), each in [0, 2**steps)
    """
    _check_steps(steps)
    mask = (1 << steps) - 1
    return _squash(cell >> 1) & mask, _squash(cell) & mask


def encode(box: BoundingBox, y: float, x: float, steps: int) -> int:
    """
    Encode a planar point into a cell id.

    Args:
        box: Bounding box of the grid
        y: Projected latitude
        x: Projected longitude
        steps: Bits of precision per axis (1-32)

    Returns:
        Cell id in [0, 4**steps)

    Raises:
        GeohashRangeError: If the point lies outside the box
    """
    _check_steps(steps)
    x_index = _quantize(x, box.min_x, box.max_x, steps)
    y_index = _quantize(y, box.min_y, box.max_y, steps)
    return interleave(x_index, y_index)


def neighbors(cell: int, steps: int) -> list[int]:
    """
    Get the 16 cells around a cell.

    The first eight are the adjacent cells in the order N, E, W, S, SW, SE,
    NW, NE; the last eight are the cells two steps away in the same order.
    Indices wrap around the edges of the grid.

    Args:
        cell: Cell id
        steps: Resolution of the cell id

    Returns:
        List of 16 cell ids
    """
    x_index, y_index = decode(cell, steps)
    mask = (1 << steps) - 1

    result = []
    for ring in NEIGHBOR_RINGS:
        for dx, dy in DIRECTIONS:
            result.append(interleave((x_index + dx * ring) & mask, (y_index + dy * ring) & mask))

    return result
