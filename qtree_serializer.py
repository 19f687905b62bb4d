"""
QTree Serializer — quadtree <-> preorder token stream
======================================================

Token stream layout (one integer per token):
  - Leaf   -> its intensity (0-255)
  - Split  -> QUAD_SPLIT (-1), then upper-left, upper-right,
              lower-left, lower-right subtrees

A compressed document prefixes the stream with the raw element count
(N*N), which the decoder uses as a consistency check.
"""

import logging
from collections import deque
from typing import Iterable, List, Optional, Tuple

from qtree_types import (
    QUAD_SPLIT, Leaf, Split, Node,
    InvalidValueError, TruncatedInputError, TrailingDataError,
    check_intensity, side_from_raw_size,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════
# ENCODER
# ═══════════════════════════════════════════════════════════════

class TokenEncoder:
    """
    Preorder flattening of a quadtree.

    `count` is a running total of tokens emitted across every call,
    used by callers as the compressed size.

    Usage:
        encoder = TokenEncoder()
        tokens = encoder.encode(root)
    """

    def __init__(self):
        self.count = 0

    def encode(self, root: Node) -> List[int]:
        tokens = []
        self._write(root, tokens)
        return tokens

    def _write(self, node: Node, out: List[int]):
        self.count += 1
        if isinstance(node, Split):
            out.append(QUAD_SPLIT)
            for child in node.children:
                self._write(child, out)
        elif isinstance(node, Leaf):
            out.append(node.value)
        else:
            raise InvalidValueError(f"Not a quadtree node: {node!r}")


# ═══════════════════════════════════════════════════════════════
# DECODER
# ═══════════════════════════════════════════════════════════════

class TokenDecoder:
    """
    Preorder parser over a token queue, with an explicit stack of open
    Splits so stream depth is not limited by the interpreter.

    Tokens are consumed from the front one at a time. After decode(),
    `consumed` and `remaining` report how much of the input the tree used.
    A decoder instance must not be shared between threads.

    Args:
        max_depth: Deepest Split level allowed, or None for no limit.
            Exceeding it raises TrailingDataError.
    """

    def __init__(self, max_depth: Optional[int] = None):
        self.max_depth = max_depth
        self.consumed = 0
        self.remaining = 0

    def decode(self, tokens: Iterable[int]) -> Node:
        queue = deque(tokens)
        self.consumed = 0
        root = self._parse(queue)
        self.remaining = len(queue)
        return root

    def _parse(self, queue: deque) -> Node:
        # One entry per open Split: the children decoded so far
        pending: List[List[Node]] = []
        while True:
            if not queue:
                raise TruncatedInputError(
                    f"Token stream ended after {self.consumed} tokens, tree incomplete")
            token = queue.popleft()
            self.consumed += 1

            if token == QUAD_SPLIT:
                if self.max_depth is not None and len(pending) >= self.max_depth:
                    raise TrailingDataError(
                        f"Split at token {self.consumed} needs more than "
                        f"{self.max_depth} levels")
                pending.append([])
                continue

            try:
                node = Leaf(check_intensity(token))
            except InvalidValueError as e:
                raise InvalidValueError(f"Token {self.consumed}: {e}") from e

            # Close every Split that now has its four children
            while pending:
                pending[-1].append(node)
                if len(pending[-1]) < 4:
                    break
                node = Split(*pending.pop())
            else:
                return node


# ═══════════════════════════════════════════════════════════════
# DOCUMENT FRAMING
# ═══════════════════════════════════════════════════════════════

def encode_document(root: Node, raw_size: int,
                    encoder: Optional[TokenEncoder] = None) -> List[int]:
    """Raw element count followed by the preorder token stream."""
    side_from_raw_size(raw_size)
    encoder = encoder or TokenEncoder()
    return [raw_size] + encoder.encode(root)


def decode_document(tokens: Iterable[int], strict: bool = True) -> Tuple[int, Node]:
    """
    Parse a compressed document back into (raw_size, root).

    In strict mode the tree must fit the declared raw size: no Split may
    divide a single cell and no token may follow the completed tree.
    Both raise TrailingDataError. Permissive mode ignores leftovers.
    """
    tokens = list(tokens)
    if not tokens:
        raise TruncatedInputError("Empty document: missing raw size")

    raw_size = tokens[0]
    dim = side_from_raw_size(raw_size)

    max_depth = dim.bit_length() - 1 if strict else None
    decoder = TokenDecoder(max_depth=max_depth)
    root = decoder.decode(tokens[1:])

    if decoder.remaining:
        if strict:
            raise TrailingDataError(
                f"{decoder.remaining} tokens left after a complete "
                f"{dim}x{dim} tree of {decoder.consumed} nodes")
        logger.warning("Ignoring %d trailing tokens", decoder.remaining)

    return raw_size, root
