"""
QTree I/O — line-per-integer text files and grayscale images
=============================================================

Raw raster file:          N*N lines, one intensity per line, row-major.
Compressed tree file:     line 1 is N*N, then the preorder token stream.

Blank lines are skipped. A line that is not a plain ASCII decimal integer
(optionally negative) raises InvalidValueError naming the file and line
number.

Images go through Pillow: any readable format is converted to 8-bit
grayscale ("L") on load; rasters are saved as "L" images.
"""

import logging
import re
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple, Union

from PIL import Image

from qtree_types import (
    InvalidDimensionError, InvalidValueError, TruncatedInputError,
    check_intensity,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


_INTEGER_LINE = re.compile(r'-?[0-9]+')


def _read_integers(path: Path) -> List[int]:
    values = []
    for lineno, raw in enumerate(path.read_bytes().splitlines(), start=1):
        try:
            line = raw.decode('ascii').strip()
        except UnicodeDecodeError as e:
            raise InvalidValueError(
                f"{path}:{lineno}: non-ASCII bytes: {raw!r}") from e
        if not line:
            continue
        if not _INTEGER_LINE.fullmatch(line):
            raise InvalidValueError(f"{path}:{lineno}: not an integer: {line!r}")
        values.append(int(line))
    return values


def _write_integers(path: Path, values: Iterable[int]) -> int:
    path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with open(path, 'w', encoding='ascii') as f:
        for value in values:
            f.write(f"{value}\n")
            count += 1
    return count


# ═══════════════════════════════════════════════════════════════
# RAW RASTER FILES
# ═══════════════════════════════════════════════════════════════

class RasterReader:
    """
    Reads a raw raster file into a flat, row-major list of intensities.

    Usage:
        reader = RasterReader("image.txt")
        values = reader.read()
        reader.count   # number of values read
    """

    def __init__(self, path: PathLike):
        self.path = Path(path)
        self.count = 0

    def read(self) -> List[int]:
        values = _read_integers(self.path)
        for i, value in enumerate(values):
            try:
                check_intensity(value)
            except InvalidValueError as e:
                raise InvalidValueError(f"{self.path}: value {i}: {e}") from e
        self.count = len(values)
        logger.debug("Read %d raw values from %s", self.count, self.path)
        return values


class RasterWriter:
    """Writes intensities one per line. Returns the number written."""

    def __init__(self, path: PathLike):
        self.path = Path(path)
        self.count = 0

    def write(self, values: Iterable[int]) -> int:
        self.count = _write_integers(self.path, values)
        logger.debug("Wrote %d raw values to %s", self.count, self.path)
        return self.count


# ═══════════════════════════════════════════════════════════════
# COMPRESSED TREE FILES
# ═══════════════════════════════════════════════════════════════

class TokenReader:
    """
    Reads a compressed tree file.

    read() returns (raw_size, tokens) where raw_size is the leading line
    and tokens the preorder stream. `count` includes the raw size line.
    """

    def __init__(self, path: PathLike):
        self.path = Path(path)
        self.count = 0

    def read(self) -> Tuple[int, List[int]]:
        values = _read_integers(self.path)
        if not values:
            raise TruncatedInputError(f"{self.path}: empty file, missing raw size")
        self.count = len(values)
        logger.debug("Read %d tokens from %s", self.count, self.path)
        return values[0], values[1:]


class TokenWriter:
    """Writes the raw size line followed by the token stream."""

    def __init__(self, path: PathLike):
        self.path = Path(path)
        self.count = 0

    def write(self, raw_size: int, tokens: Iterable[int]) -> int:
        def lines():
            yield raw_size
            yield from tokens
        self.count = _write_integers(self.path, lines())
        logger.debug("Wrote %d tokens to %s", self.count, self.path)
        return self.count


# ═══════════════════════════════════════════════════════════════
# IMAGES (Pillow)
# ═══════════════════════════════════════════════════════════════

def read_image(path: PathLike) -> List[List[int]]:
    """
    Load an image as an N x N grayscale raster.
    Colour images are converted to "L". Non-square images are rejected.
    """
    with Image.open(path) as img:
        gray = img.convert('L')
        width, height = gray.size
        pixels = gray.tobytes()

    if width != height:
        raise InvalidDimensionError(
            f"{path}: image is {width}x{height}, expected a square")
    return [list(pixels[r * width:(r + 1) * width]) for r in range(height)]


def write_image(raster: Sequence[Sequence[int]], path: PathLike) -> Path:
    """Save a raster as an 8-bit grayscale image; format follows the suffix."""
    dim = len(raster)
    if dim == 0 or any(len(row) != dim for row in raster):
        raise InvalidDimensionError("Raster must be a non-empty square")
    data = bytes(check_intensity(value) for row in raster for value in row)

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.frombytes('L', (dim, dim), data).save(path)
    logger.debug("Saved %dx%d image to %s", dim, dim, path)
    return path
