"""
SCoDA: Streaming Community Detection with a Degree Threshold

This module implements SCoDA, a single-pass community detection algorithm
over a randomly ordered edge stream. Each node starts in its own community;
when an edge arrives between two nodes whose degrees so far are both below
a threshold D, the lower-degree endpoint adopts the community label of the
higher-degree endpoint. D is the mode of the degree distribution.

Memory is O(n) for the degree and label arrays; every edge costs O(1).

Reference:
    Hollocou, A., Maudet, J., Bonald, T., & Lelarge, M. (2017).
    A linear streaming algorithm for community detection in very large
    networks. arXiv:1703.02955.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional

import numpy as np
from networkx.utils import create_py_random_state

from .errors import InvalidConfigurationError
from .metrics import average_f1_score
from .shuffle import BlockShuffler, SHUFFLE_BLOCK_SIZE
from .stream_source import EdgeStream, as_edge_stream, graph_size, load_partition, write_communities

logger = logging.getLogger(__name__)

# Probability for deciding degree equality cases
TIE_PROBABILITY = 0.5
# Communities smaller than this are dropped from the output
FILTER_COMMUNITY_THRESHOLD = 3


def degree_vector(edges, n_nodes: int) -> np.ndarray:
    """Return the degree of every node after one pass over ``edges``."""
    degrees = np.zeros(n_nodes, dtype=np.int64)
    for u, v in edges:
        degrees[u] += 1
        degrees[v] += 1
    return degrees


def degree_mode(degrees: np.ndarray) -> int:
    """
    Most frequent degree value, ignoring leaves (degree 1).

    Ties resolve to the smallest degree value. Returns 0 when every node is
    a leaf.
    """
    histogram = np.bincount(degrees, minlength=2)
    histogram[1] = 0
    if not histogram.any():
        return 0
    return int(np.argmax(histogram))


class SCoDA:
    """
    SCoDA streaming community detection algorithm.

    Parameters
    ----------
    edges : path or re-iterable of (u, v)
        Edge stream over dense node ids ``[0, n_nodes)``.
    ground_truth : path or iterable of node collections, optional
        Reference partition used by :meth:`evaluate`.
    threshold : int, optional
        Degree threshold D. Computed with :meth:`compute_threshold` if None.
    block_size : int
        Block size for the bounded-memory edge shuffle. Default: 1024 * 1024
    p : float
        Probability threshold for degree ties. Default: 0.5
    min_community_size : int
        Detected communities below this size are dropped. Default: 3
    shuffled_path : path, optional
        If given, the shuffled stream is written to this file and read back.
    name : str, optional
        Dataset name used in evaluation log lines.
    seed : None, int or random.Random
        Randomness source for the shuffle and the tie-breaks.

    Attributes
    ----------
    n_nodes, n_edges : int
        Graph size, computed by one pass at construction
    threshold : int
        Degree threshold D
    degrees : np.ndarray
        Node degrees after the last run
    labels : np.ndarray
        Community label of every node after the last run
    communities : list of list of int
        Detected communities of the last run

    Example
    -------
    >>> scoda = SCoDA("data/dblp/dblp_edges.txt", seed=42)
    >>> communities = scoda.run()
    >>> score = scoda.evaluate("data/dblp/dblpGTC.txt")
    """

    def __init__(
        self,
        edges,
        ground_truth=None,
        threshold: Optional[int] = None,
        block_size: int = SHUFFLE_BLOCK_SIZE,
        p: float = TIE_PROBABILITY,
        min_community_size: int = FILTER_COMMUNITY_THRESHOLD,
        shuffled_path=None,
        name: Optional[str] = None,
        seed=None
    ):
        if not 0.0 <= p <= 1.0:
            raise InvalidConfigurationError(f"tie probability must be in [0, 1], got {p}")

        self.edges = as_edge_stream(edges)
        self.ground_truth = ground_truth
        self.p = p
        self.min_community_size = min_community_size
        self.shuffled_path = shuffled_path
        self.name = name
        self.rng = create_py_random_state(seed)
        self.shuffler = BlockShuffler(block_size, seed=self.rng)

        self.n_nodes, self.n_edges = graph_size(self.edges)
        self.threshold = self.compute_threshold() if threshold is None else threshold

        self.degrees: Optional[np.ndarray] = None
        self.labels: Optional[np.ndarray] = None
        self.communities: Optional[List[List[int]]] = None

        self.stats = {
            'edges_processed': 0,
            'merges': 0,
            'tie_draws': 0,
            'above_threshold': 0,
            'communities_found': 0,
            'communities_kept': 0
        }

    def compute_threshold(self) -> int:
        """
        Compute the threshold as the mode of the degree distribution.

        Returns
        -------
        int
            Most frequent non-leaf degree (smallest one on ties)
        """
        logger.info("Computing threshold for %s", self.__class__.__name__)
        return degree_mode(degree_vector(self.edges, self.n_nodes))

    def _shuffled_edges(self):
        """Block-shuffled view of the edge stream."""
        if self.shuffled_path is None:
            return self.shuffler.shuffle(self.edges)

        if isinstance(self.edges, EdgeStream):
            self.shuffler.shuffle_file(self.edges.path, self.shuffled_path)
        else:
            with open(self.shuffled_path, "w") as f:
                for u, v in self.shuffler.shuffle(self.edges):
                    f.write(f"{u} {v}\n")
        return EdgeStream(self.shuffled_path)

    def run(self) -> List[List[int]]:
        """
        Execute the algorithm over a shuffled pass of the edge stream.

        Returns
        -------
        list of list of int
            Detected communities with at least ``min_community_size`` members
        """
        logger.info("Executing %s (threshold=%d, nodes=%d, edges=%d)",
                    self.__class__.__name__, self.threshold, self.n_nodes, self.n_edges)

        self.stats = {k: 0 for k in self.stats}
        degrees = np.zeros(self.n_nodes, dtype=np.int64)
        labels = np.arange(self.n_nodes, dtype=np.int64)
        D = self.threshold

        for u, v in self._shuffled_edges():
            degrees[u] += 1
            degrees[v] += 1
            self.stats['edges_processed'] += 1

            if degrees[u] > D or degrees[v] > D:
                self.stats['above_threshold'] += 1
                continue

            # One-hop redirect: the label is copied, not resolved to a root
            if degrees[u] < degrees[v]:
                labels[u] = labels[v]
            elif degrees[v] < degrees[u]:
                labels[v] = labels[u]
            else:
                self.stats['tie_draws'] += 1
                if self.rng.random() >= self.p:
                    labels[u] = labels[v]
                else:
                    labels[v] = labels[u]
            self.stats['merges'] += 1

        self.degrees = degrees
        self.labels = labels
        self.communities = self._filter_communities(labels)

        logger.info("Finished %s: %d communities kept out of %d",
                    self.__class__.__name__,
                    self.stats['communities_kept'], self.stats['communities_found'])
        return self.communities

    def _filter_communities(self, labels: np.ndarray) -> List[List[int]]:
        """Group nodes by label and drop groups below the minimum size."""
        groups: Dict[int, List[int]] = defaultdict(list)
        for node, label in enumerate(labels.tolist()):
            groups[label].append(node)

        kept = [nodes for nodes in groups.values() if len(nodes) >= self.min_community_size]

        self.stats['communities_found'] = len(groups)
        self.stats['communities_kept'] = len(kept)
        return kept

    def write_communities(self, path) -> int:
        """Write the detected communities, one per line."""
        if self.communities is None:
            raise RuntimeError("run() must be called before write_communities()")
        return write_communities(path, self.communities)

    def evaluate(self, ground_truth=None) -> float:
        """
        Evaluate the detected communities with the average-F1 score.

        Parameters
        ----------
        ground_truth : path or iterable of node collections, optional
            Defaults to the ground truth given at construction.

        Returns
        -------
        float
            Average-F1 score in range [0, 1]
        """
        if self.communities is None:
            raise RuntimeError("run() must be called before evaluate()")
        ground_truth = ground_truth if ground_truth is not None else self.ground_truth
        if ground_truth is None:
            raise InvalidConfigurationError("no ground truth to evaluate against")

        logger.info("Evaluating %s", self.__class__.__name__)
        score = average_f1_score(load_partition(ground_truth), self.communities)
        logger.info("[%s] | [average-F1-score] | [%s]: %.5f",
                    self.name, self.__class__.__name__, score)
        return score

    def get_statistics(self) -> Dict:
        """
        Get algorithm statistics.

        Returns
        -------
        dict
            Counters of the last run plus the graph size and threshold
        """
        return {
            **self.stats,
            'nodes': self.n_nodes,
            'edges': self.n_edges,
            'threshold': self.threshold
        }
