"""
Edge Stream and Community File Access

This module gives bounded-memory, restartable access to an edge list file
and reads/writes community files. It is the only place that knows the text
formats:

- Edge list: each meaningful line is two whitespace-separated non-negative
  integers ``u v``. Every other line (comments, blanks, extra columns) is
  skipped.
- Community file: each line is a whitespace-separated list of node ids
  forming one community.
"""

import logging
import os
import re
from collections import namedtuple
from typing import Iterable, Iterator, List, Set, Tuple, Union

logger = logging.getLogger(__name__)

Edge = Tuple[int, int]
PathLike = Union[str, os.PathLike]

GraphSize = namedtuple("GraphSize", ["n_nodes", "n_edges"])

_EDGE_LINE = re.compile(r"^\s*(\d+)\s+(\d+)\s*$")


def parse_edge(line: str):
    """Parse one edge list line, returning ``(u, v)`` or None if malformed."""
    match = _EDGE_LINE.match(line)
    if match is None:
        return None
    return int(match.group(1)), int(match.group(2))


class EdgeStream:
    """
    Restartable lazy stream of edges read from a text file.

    Every iteration re-opens the file and reads it from the start, so the
    same stream can be traversed any number of times (e.g. once to size the
    graph, once to process it) without keeping anything in memory.

    Parameters
    ----------
    path : str or os.PathLike
        Path to the edge list file.

    Example
    -------
    >>> stream = EdgeStream("data/amazon/amazon_edges.txt")
    >>> n_nodes, n_edges = stream.graph_size()
    >>> for u, v in stream:
    ...     pass
    """

    def __init__(self, path: PathLike):
        self.path = path
        self.skipped_lines = 0

    def __iter__(self) -> Iterator[Edge]:
        skipped = 0
        with open(self.path, "r") as f:
            for line in f:
                edge = parse_edge(line)
                if edge is None:
                    skipped += 1
                    continue
                yield edge
        self.skipped_lines = skipped
        if skipped:
            logger.debug("Skipped %d malformed lines in %s", skipped, self.path)

    def graph_size(self) -> GraphSize:
        """Scan the whole file once and return ``(n_nodes, n_edges)``."""
        return graph_size(self)

    def __repr__(self):
        return f"EdgeStream({os.fspath(self.path)!r})"


def as_edge_stream(source) -> Iterable[Edge]:
    """Wrap a path in an :class:`EdgeStream`; pass re-iterables through."""
    if isinstance(source, (str, os.PathLike)):
        return EdgeStream(source)
    return source


def graph_size(edges: Iterable[Edge]) -> GraphSize:
    """
    Count distinct endpoints and edges in one pass over the stream.

    Self-loops count as one edge and one node.
    """
    nodes: Set[int] = set()
    n_edges = 0
    for u, v in edges:
        nodes.add(u)
        nodes.add(v)
        n_edges += 1
    return GraphSize(len(nodes), n_edges)


def parse_community(line: str):
    """Parse one community line, returning a set of ids or None if malformed."""
    tokens = line.split()
    if not tokens or not all(token.isdecimal() for token in tokens):
        return None
    return {int(token) for token in tokens}


def read_communities(path: PathLike) -> List[Set[int]]:
    """Load a community file into a list of node sets."""
    communities = []
    with open(path, "r") as f:
        for line in f:
            community = parse_community(line)
            if community is not None:
                communities.append(community)
    return communities


def load_partition(source) -> List[Set[int]]:
    """Return a partition from a community file path or an in-memory iterable."""
    if isinstance(source, (str, os.PathLike)):
        return read_communities(source)
    return [set(community) for community in source]


def write_communities(path: PathLike, communities: Iterable[Iterable[int]]) -> int:
    """
    Write communities to a file, one per line with ascending ids.

    Returns
    -------
    int
        Number of communities written
    """
    count = 0
    with open(path, "w") as f:
        for community in communities:
            f.write(" ".join(str(node) for node in sorted(community)))
            f.write("\n")
            count += 1
    return count
