"""
QTree — Quadtree compression of square grayscale images
========================================================

The QTree ties the codec, serializer and file formats together:

    tree = QTree()
    tree.compress("images/raw/simple4x4.txt")
    tree.write_compressed("simple4x4.rit")

    tree = QTree()
    tree.uncompress("simple4x4.rit")
    tree.write_uncompressed("simple4x4.txt")

A QTree starts empty, becomes raster-backed after a compress and
tree-backed after an uncompress (which also rebuilds the raster). Each
compress or uncompress first resets the QTree to empty, so a failed
operation, whatever the error, never leaves the previous tree behind.
"""

import logging
from typing import List, Optional, Sequence

from qtree_codec import (
    Raster, compress, decompress, flatten_raster, raster_from_values,
)
from qtree_io import (
    PathLike, RasterReader, RasterWriter, TokenReader, TokenWriter,
    read_image, write_image,
)
from qtree_serializer import TokenEncoder, decode_document, encode_document
from qtree_types import (
    Node, QTreeError,
    count_leaves, count_nodes, preorder_string, side_from_raw_size, tree_depth,
)

logger = logging.getLogger(__name__)


class QTree:
    """
    Quadtree over a 2^n x 2^n grayscale image.

    Args:
        strict: Reject compressed input whose tree does not fit the
            declared raw size, or that carries trailing tokens.
        workers: Process count for compressing the top-level quadrants.
    """

    def __init__(self, strict: bool = True, workers: int = 1):
        self.strict = strict
        self.workers = workers
        self._reset()

    def _reset(self):
        self._root: Optional[Node] = None
        self._dim = 0
        self._image: Optional[Raster] = None
        self._raw_size = 0
        self._compressed_size = 0

    # ─── Accessors ────────────────────────────────────────────

    @property
    def root(self) -> Optional[Node]:
        return self._root

    @property
    def dim(self) -> int:
        """The image's square dimension."""
        return self._dim

    @property
    def image(self) -> Optional[Raster]:
        return self._image

    @property
    def raw_size(self) -> int:
        return self._raw_size

    @property
    def compressed_size(self) -> int:
        return self._compressed_size

    # ─── Compression ──────────────────────────────────────────

    def compress(self, input_file: PathLike) -> Node:
        """Compress a raw raster file (one value per line, 2^n x 2^n lines)."""
        self._reset()
        values = RasterReader(input_file).read()
        return self.compress_raster(raster_from_values(values))

    def compress_image(self, image_file: PathLike) -> Node:
        """Compress any Pillow-readable square image as grayscale."""
        self._reset()
        return self.compress_raster(read_image(image_file))

    def compress_raster(self, raster: Sequence[Sequence[int]]) -> Node:
        self._reset()
        root = compress(raster, workers=self.workers)

        self._root = root
        self._dim = len(raster)
        self._image = [list(row) for row in raster]
        self._raw_size = self._dim * self._dim
        self._compressed_size = 0
        logger.info("Compressed %dx%d image into %d nodes",
                    self._dim, self._dim, count_nodes(root))
        return root

    def compressed_tokens(self) -> List[int]:
        """The compressed document: raw size followed by the token stream."""
        if self._root is None:
            raise QTreeError("Nothing to write: compress or uncompress first")
        encoder = TokenEncoder()
        tokens = encode_document(self._root, self._raw_size, encoder)
        self._compressed_size = 1 + encoder.count
        return tokens

    def write_compressed(self, out_file: PathLike) -> int:
        """Write the compressed document. Returns the number of lines written."""
        tokens = self.compressed_tokens()
        return TokenWriter(out_file).write(tokens[0], tokens[1:])

    # ─── Decompression ────────────────────────────────────────

    def uncompress(self, filename: PathLike) -> Raster:
        """
        Uncompress a compressed tree file. The first line is the raw
        size, the remaining lines the preorder tokens. Afterwards the
        raster is available through `image`.
        """
        self._reset()
        raw_size, tokens = TokenReader(filename).read()
        return self.uncompress_tokens([raw_size] + tokens)

    def uncompress_tokens(self, tokens: Sequence[int]) -> Raster:
        self._reset()
        raw_size, root = decode_document(tokens, strict=self.strict)
        dim = side_from_raw_size(raw_size)
        image = decompress(root, dim)

        self._root = root
        self._raw_size = raw_size
        self._dim = dim
        self._image = image
        self._compressed_size = len(tokens)
        logger.info("Uncompressed %d tokens into %dx%d image",
                    len(tokens), dim, dim)
        return image

    def write_uncompressed(self, out_file: PathLike) -> int:
        """Write the raw raster, one value per line in row-major order."""
        if self._image is None:
            raise QTreeError("Nothing to write: compress or uncompress first")
        count = RasterWriter(out_file).write(flatten_raster(self._image))
        self._compressed_size = self._raw_size
        return count

    def write_image(self, out_file: PathLike):
        if self._image is None:
            raise QTreeError("Nothing to write: compress or uncompress first")
        return write_image(self._image, out_file)

    # ─── Reporting ────────────────────────────────────────────

    def stats(self) -> dict:
        if self._root is None:
            raise QTreeError("Empty tree")
        nodes = count_nodes(self._root)
        return {
            'dim': self._dim,
            'raw_size': self._raw_size,
            'document_size': 1 + nodes,
            'node_count': nodes,
            'leaf_count': count_leaves(self._root),
            'depth': tree_depth(self._root),
            'compression_ratio': round(self._raw_size / (1 + nodes), 2),
        }

    def __str__(self) -> str:
        return "QTree: " + preorder_string(self._root)
