"""
QTree Codec — raster <-> quadtree
==================================

Compress: recursive region decomposition of an N x N raster (N = 2^k).
A region whose cells all equal its origin cell becomes a Leaf, any other
region is divided into four quadrants that are compressed in turn.

Decompress: the structural inverse. A Leaf fills its region, a Split
recurses into its four quadrants.

Regions are described by their origin Coordinate and their side length.
Quadrant origins for a region of side s starting at (r, c):
  - upper left:  (r,       c)
  - upper right: (r,       c + s/2)
  - lower left:  (r + s/2, c)
  - lower right: (r + s/2, c + s/2)
"""

import logging
import multiprocessing
from typing import List, Sequence

from qtree_types import (
    Coordinate, Leaf, Split, Node,
    InvalidDimensionError, InvalidValueError, MalformedTreeError,
    check_intensity, is_power_of_two, side_from_raw_size,
)

logger = logging.getLogger(__name__)

Raster = List[List[int]]

ORIGIN = Coordinate(0, 0)


# ═══════════════════════════════════════════════════════════════
# RASTER HELPERS
# ═══════════════════════════════════════════════════════════════

def validate_raster(raster: Sequence[Sequence[int]]) -> int:
    """
    Check that raster is a non-empty square grid with a power-of-two
    side and grayscale cells. Returns the side length.
    """
    dim = len(raster)
    if dim == 0:
        raise InvalidDimensionError("Raster is empty")
    for r, row in enumerate(raster):
        if len(row) != dim:
            raise InvalidDimensionError(
                f"Raster is not square: row {r} has {len(row)} cells, expected {dim}")
    if not is_power_of_two(dim):
        raise InvalidDimensionError(f"Raster side {dim} is not a power of two")
    for r, row in enumerate(raster):
        for c, value in enumerate(row):
            try:
                check_intensity(value)
            except InvalidValueError as e:
                raise InvalidValueError(f"Cell ({r}, {c}): {e}") from e
    return dim


def raster_from_values(values: Sequence[int]) -> Raster:
    """Reshape a row-major sequence of N*N intensities into an N x N raster."""
    try:
        dim = side_from_raw_size(len(values))
    except InvalidValueError as e:
        raise InvalidDimensionError(
            f"{len(values)} values do not form a 2^k x 2^k raster") from e
    values = list(values)
    return [values[r * dim:(r + 1) * dim] for r in range(dim)]


def flatten_raster(raster: Sequence[Sequence[int]]) -> List[int]:
    """Row-major list of every cell."""
    return [value for row in raster for value in row]


# ═══════════════════════════════════════════════════════════════
# COMPRESS
# ═══════════════════════════════════════════════════════════════

def _quadrants(start: Coordinate, half: int) -> List[Coordinate]:
    return [
        start,
        start.offset(0, half),
        start.offset(half, 0),
        start.offset(half, half),
    ]


def _can_compress_block(raster, start: Coordinate, side: int) -> bool:
    """True when every cell in the region holds the origin cell's value."""
    expected = raster[start.row][start.col]
    for r in range(start.row, start.row + side):
        row = raster[r]
        for c in range(start.col, start.col + side):
            if row[c] != expected:
                return False
    return True


def _compress_region(raster, start: Coordinate, side: int) -> Node:
    if side == 1 or _can_compress_block(raster, start, side):
        return Leaf(raster[start.row][start.col])

    half = side // 2
    upper_left, upper_right, lower_left, lower_right = (
        _compress_region(raster, origin, half)
        for origin in _quadrants(start, half)
    )
    return Split(upper_left, upper_right, lower_left, lower_right)


def _compress_quadrant_worker(args):
    raster, start, side = args
    return _compress_region(raster, start, side)


def compress(raster: Sequence[Sequence[int]], workers: int = 1) -> Node:
    """
    Compress an N x N raster into a quadtree.

    Args:
        raster: Rows of grayscale values, raster[row][col].
        workers: With more than one worker the four top-level quadrants
            are compressed in a process pool. The result is identical
            to the serial one.

    Returns:
        Root Node exactly representing the raster.
    """
    dim = validate_raster(raster)

    if workers > 1 and dim > 1 and not _can_compress_block(raster, ORIGIN, dim):
        half = dim // 2
        tasks = [(raster, origin, half) for origin in _quadrants(ORIGIN, half)]
        pool_size = min(4, workers)
        logger.debug("Compressing %dx%d raster with %d workers", dim, dim, pool_size)
        # Pool.map keeps UL, UR, LL, LR order regardless of completion order
        with multiprocessing.Pool(processes=pool_size) as pool:
            children = pool.map(_compress_quadrant_worker, tasks)
        return Split(*children)

    return _compress_region(raster, ORIGIN, dim)


# ═══════════════════════════════════════════════════════════════
# DECOMPRESS
# ═══════════════════════════════════════════════════════════════

def _expand(node: Node, image: Raster, start: Coordinate, side: int):
    if isinstance(node, Leaf):
        fill = [node.value] * side
        for r in range(start.row, start.row + side):
            image[r][start.col:start.col + side] = fill
    elif isinstance(node, Split):
        if side == 1:
            raise MalformedTreeError(
                f"Split at single cell ({start.row}, {start.col}): "
                f"tree is deeper than the raster allows")
        half = side // 2
        for child, origin in zip(node.children, _quadrants(start, half)):
            _expand(child, image, origin, half)
    else:
        raise MalformedTreeError(f"Not a quadtree node: {node!r}")


def decompress(root: Node, dim: int) -> Raster:
    """
    Expand a quadtree into a freshly allocated dim x dim raster.

    Raises MalformedTreeError when the tree cannot be expanded to exactly
    dim x dim (a Split would have to divide a single cell).
    """
    if not is_power_of_two(dim):
        raise InvalidDimensionError(f"Raster side {dim!r} is not a power of two")
    if root is None:
        raise MalformedTreeError("No tree to decompress")

    image = [[0] * dim for _ in range(dim)]
    _expand(root, image, ORIGIN, dim)
    return image
