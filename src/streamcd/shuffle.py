"""
Block Shuffling of Edge Streams

SCoDA needs its edges in random order, but a uniform shuffle of a stream
that does not fit in memory is out of budget. The stream is instead cut
into consecutive blocks of ``block_size`` elements; each block is
shuffled in memory with Fisher-Yates and blocks are emitted in their
original order. Only one block is ever held in memory.

This is deliberately NOT a global shuffle: an element never leaves the
block it was read in.
"""

import logging
import random
from typing import Iterable, Iterator, List, MutableSequence, TypeVar

from networkx.utils import create_py_random_state

from .errors import InvalidConfigurationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

SHUFFLE_BLOCK_SIZE = 1024 * 1024


def fisher_yates(items: MutableSequence, rng: random.Random) -> None:
    """Shuffle ``items`` in place."""
    for i in range(len(items) - 1, 0, -1):
        j = rng.randint(0, i)
        items[i], items[j] = items[j], items[i]


class BlockShuffler:
    """
    Bounded-memory block shuffler.

    Parameters
    ----------
    block_size : int
        Number of elements shuffled together. Default: 1024 * 1024
    seed : None, int or random.Random
        Randomness source. None uses the global generator (non-deterministic).

    Example
    -------
    >>> shuffler = BlockShuffler(block_size=4, seed=7)
    >>> list(shuffler.shuffle(range(10)))  # doctest: +SKIP
    [2, 0, 3, 1, 5, 7, 4, 6, 9, 8]
    """

    def __init__(self, block_size: int = SHUFFLE_BLOCK_SIZE, seed=None):
        if block_size < 1:
            raise InvalidConfigurationError(
                f"block size must be positive, got {block_size}"
            )
        self.block_size = block_size
        self.rng = create_py_random_state(seed)

    def shuffle(self, stream: Iterable[T]) -> Iterator[T]:
        """Yield the elements of ``stream`` shuffled within each block."""
        block: List[T] = []
        for item in stream:
            block.append(item)
            if len(block) == self.block_size:
                fisher_yates(block, self.rng)
                yield from block
                block = []

        # Final, possibly shorter, block
        if block:
            fisher_yates(block, self.rng)
            yield from block

    def shuffle_file(self, src_path, dst_path) -> int:
        """
        Block-shuffle the lines of ``src_path`` into ``dst_path``.

        Returns
        -------
        int
            Number of lines written
        """
        written = 0
        with open(src_path, "r") as reader, open(dst_path, "w") as writer:
            lines = (line.rstrip("\n") for line in reader)
            for line in self.shuffle(lines):
                writer.write(line)
                writer.write("\n")
                written += 1

        logger.debug("Shuffled %d lines into %s", written, dst_path)
        return written
