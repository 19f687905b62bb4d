"""
QTree Types & Constants — Quadtree Grayscale Codec
===================================================

Foundational type definitions, constants and error classes for the
QTree codec. This module has ZERO external dependencies beyond the
Python standard library.

A tree is built from two node shapes:
  - Leaf(value)   a region of uniform intensity (0-255)
  - Split(ul, ur, ll, lr)   a region divided into four equal quadrants

In the serialized token stream a Split is written as QUAD_SPLIT followed
by its four children, a Leaf as its intensity.
"""

from dataclasses import dataclass
from typing import NamedTuple, Union

# ═══════════════════════════════════════════════════════════════
# CONSTANTS
# ═══════════════════════════════════════════════════════════════

# Token marking a node that is split into four sub-regions
QUAD_SPLIT = -1

# Valid grayscale range for leaf values and raw pixels
MIN_INTENSITY = 0
MAX_INTENSITY = 255

FORMAT_NAME = "rit-qtree"


# ═══════════════════════════════════════════════════════════════
# ERROR CLASSES
# ═══════════════════════════════════════════════════════════════

class QTreeError(Exception):
    """Base error for all QTree operations."""
    pass

class InvalidDimensionError(QTreeError):
    """Raster is not square, is empty, or its side is not a power of two."""
    pass

class MalformedTreeError(QTreeError):
    """Tree structure cannot be expanded into the requested raster."""
    pass

class InvalidValueError(QTreeError):
    """Intensity outside 0-255, unparsable token, or raw count mismatch."""
    pass

class QTreeFormatError(QTreeError):
    """Token stream structural error."""
    pass

class TruncatedInputError(QTreeFormatError):
    """Token stream ended before the tree was complete."""
    pass

class TrailingDataError(QTreeFormatError):
    """Token stream holds more than the declared raw size allows."""
    pass


# ═══════════════════════════════════════════════════════════════
# DATA STRUCTURES
# ═══════════════════════════════════════════════════════════════

class Coordinate(NamedTuple):
    """A (row, col) position in the raster."""
    row: int
    col: int

    def offset(self, rows: int, cols: int) -> 'Coordinate':
        return Coordinate(self.row + rows, self.col + cols)


def check_intensity(value) -> int:
    """Return value if it is an int grayscale level, else raise InvalidValueError."""
    # bool is an int subclass but never a pixel
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidValueError(f"Intensity must be an int, got {value!r}")
    if not MIN_INTENSITY <= value <= MAX_INTENSITY:
        raise InvalidValueError(
            f"Intensity {value} outside {MIN_INTENSITY}-{MAX_INTENSITY}")
    return value


@dataclass(frozen=True)
class Leaf:
    """A region of uniform intensity."""
    value: int

    def __post_init__(self):
        check_intensity(self.value)


@dataclass(frozen=True)
class Split:
    """
    A region divided into four equal quadrants.

    Child order is fixed and significant: upper-left, upper-right,
    lower-left, lower-right. Each child is owned by exactly one Split.
    """
    upper_left: 'Node'
    upper_right: 'Node'
    lower_left: 'Node'
    lower_right: 'Node'

    @property
    def children(self) -> tuple:
        return (self.upper_left, self.upper_right,
                self.lower_left, self.lower_right)


Node = Union[Leaf, Split]


# ═══════════════════════════════════════════════════════════════
# UTILITY FUNCTIONS
# ═══════════════════════════════════════════════════════════════

def is_power_of_two(n: int) -> bool:
    """True for 1, 2, 4, 8, ... (2^k with k >= 0)."""
    return isinstance(n, int) and n > 0 and (n & (n - 1)) == 0


def side_from_raw_size(raw_size: int) -> int:
    """
    Side length N of a raster holding raw_size = N*N values.
    Raises InvalidValueError unless raw_size is the square of a power of two.
    """
    if isinstance(raw_size, bool) or not isinstance(raw_size, int) or raw_size < 1:
        raise InvalidValueError(f"Raw size must be a positive int, got {raw_size!r}")
    side = 1
    while side * side < raw_size:
        side <<= 1
    if side * side != raw_size:
        raise InvalidValueError(
            f"Raw size {raw_size} is not the area of a 2^k x 2^k raster")
    return side


def count_nodes(node: Node) -> int:
    """Total nodes in the tree (leaves + split markers)."""
    if isinstance(node, Split):
        return 1 + sum(count_nodes(child) for child in node.children)
    return 1


def count_leaves(node: Node) -> int:
    if isinstance(node, Split):
        return sum(count_leaves(child) for child in node.children)
    return 1


def tree_depth(node: Node) -> int:
    """Number of Split levels on the deepest path (a lone Leaf is 0)."""
    if isinstance(node, Split):
        return 1 + max(tree_depth(child) for child in node.children)
    return 0


def preorder_string(node: Node) -> str:
    """
    Space separated preorder traversal: a node's value, then the four
    sub-regions. Mirrors the token stream without the leading raw size.
    """
    if node is None:
        return ""
    if isinstance(node, Split):
        return " ".join([str(QUAD_SPLIT)] +
                        [preorder_string(child) for child in node.children])
    return str(node.value)
