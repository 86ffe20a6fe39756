"""
Proximity ranges for querying the high resolution index.

A low resolution cell covers a contiguous block of high resolution ids, so
"is this message near me" becomes "does its high resolution id fall inside
one of 17 integer ranges": the cell under the query point plus its 16
neighbors. This trades some recall at the corners of the neighborhood for a
bounded number of range scans.
"""
from src.geomess.errors import UnexpectedNeighborCountError
from src.geomess.geohash import HIGHRES_STEPS, LOWRES_STEPS, NEIGHBORS_COUNT, neighbors

BITS_DIFF = HIGHRES_STEPS * 2 - LOWRES_STEPS * 2
RANGES_COUNT = NEIGHBORS_COUNT + 1


def cell_to_range(lowres_cell: int) -> tuple[int, int]:
    """High resolution [lower, upper) range covered by a low resolution cell."""
    return lowres_cell << BITS_DIFF, (lowres_cell + 1) << BITS_DIFF


def proximity_ranges(lowres_cell: int) -> list[tuple[int, int]]:
    """
    Build the high resolution ranges around a low resolution cell.

    Args:
        lowres_cell: Cell id at LOWRES_STEPS

    Returns:
        17 (lower, upper) pairs; the last one is the cell itself

    Raises:
        UnexpectedNeighborCountError: If the codec did not return 16 neighbors
    """
    cells = neighbors(lowres_cell, LOWRES_STEPS)
    if len(cells) != NEIGHBORS_COUNT:
        raise UnexpectedNeighborCountError(
            f"unexpected count of neighbors: {len(cells)} (expected {NEIGHBORS_COUNT})"
        )

    cells.append(lowres_cell)
    return [cell_to_range(cell) for cell in cells]
