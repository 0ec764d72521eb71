"""
CoEuS: Community Expansion over Edge Streams

This module implements CoEuS, a seed-set expansion algorithm for streaming
graphs. A small random seed set is drawn from every ground-truth community;
each seed set grows into a detected community as edges arrive, by adding
the endpoint of any edge whose other endpoint is already a member.

To keep memory bounded, every ``window_size`` processed edges each community
is pruned back to its ``max_community_size`` members with the highest
participation value ``score // degree``. Floor division makes ties common;
a later member never displaces an equal one. A window that ends on a
self-loop prunes nothing.

Reference:
    Liakos, P., Ntoulas, A., & Delis, A. (2017).
    COEUS: Community detection via seed-set expansion on graph streams.
    IEEE International Conference on Big Data.
"""

import heapq
import logging
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

import numpy as np
from networkx.utils import create_py_random_state

from .errors import InvalidConfigurationError, UnknownUpdateRuleError
from .metrics import average_f1_score
from .stream_source import as_edge_stream, graph_size, load_partition, write_communities

logger = logging.getLogger(__name__)

# Number of seeds drawn from each ground-truth community
NUM_SEEDS = 3
# Processed edges between two pruning rounds
WINDOW_SIZE = 10000
# Maximum community size kept by a pruning round
COMMUNITY_SIZE_THRESHOLD = 50
# Communities smaller than this are dropped from the output
FILTER_COMMUNITY_THRESHOLD = 3


class UpdateRule(Enum):
    """Update rules for the per-community participation scores."""
    DEFAULT = "default"
    EDGE_QUALITY = "edge_quality"

    @classmethod
    def parse(cls, value) -> "UpdateRule":
        """Accept an UpdateRule, its name or its value (case-insensitive)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().lower().replace("-", "_")
            for rule in cls:
                if key == rule.value:
                    return rule
        raise UnknownUpdateRuleError(f"unknown update rule: {value!r}")


def select_seed_sets(communities, n_seeds: int, rng) -> List[Set[int]]:
    """
    Draw ``n_seeds`` distinct random members from every community.

    Raises
    ------
    InvalidConfigurationError
        If a community has fewer than ``n_seeds`` members
    """
    seed_sets = []
    for community in communities:
        members = sorted(community)
        if len(members) < n_seeds:
            raise InvalidConfigurationError(
                f"community with {len(members)} nodes is smaller than the number "
                f"of seeds ({n_seeds}): consider lowering the number of seeds"
            )
        indices = rng.sample(range(len(members)), n_seeds)
        seed_sets.append({members[i] for i in indices})
    return seed_sets


def top_participants(
    community: Set[int],
    participation: Dict[int, int],
    capacity: int
) -> Set[int]:
    """
    Select the ``capacity`` members with the highest participation.

    Members are pushed onto a bounded min-heap while it has room; once full,
    the minimum is replaced only by a strictly greater value, so members
    tying with the current minimum are never evicted in favour of a new tie.
    """
    heap: List[Tuple[int, int]] = []
    for node in sorted(community):
        value = participation[node]
        if len(heap) < capacity:
            heapq.heappush(heap, (value, node))
        elif value > heap[0][0]:
            heapq.heapreplace(heap, (value, node))
    return {node for _, node in heap}


class CoEuS:
    """
    CoEuS seed-set expansion algorithm.

    Parameters
    ----------
    edges : path or re-iterable of (u, v)
        Edge stream over dense node ids ``[0, n_nodes)``.
    ground_truth : path or iterable of node collections
        Ground-truth communities; one seed set is drawn from each.
    n_seeds : int
        Seeds per ground-truth community. Default: 3
    window_size : int
        Processed edges between pruning rounds. Default: 10000
    max_community_size : int
        Community size kept by a pruning round. Default: 50
    update_rule : UpdateRule or str
        ``DEFAULT`` (plain increment) or ``EDGE_QUALITY`` (degree-normalized).
    min_community_size : int
        Detected communities below this size are dropped. Default: 3
    name : str, optional
        Dataset name used in evaluation log lines.
    seed : None, int or random.Random
        Randomness source for the seed selection.

    Attributes
    ----------
    seed_sets : list of set
        Seed sets, fixed for the lifetime of the instance
    degrees : np.ndarray
        Node degrees after the last run
    scores : dict
        Participation scores keyed by ``(node, community_id)`` after the last run
    communities : list of list of int
        Detected communities of the last run

    Example
    -------
    >>> coeus = CoEuS("data/amazon/amazon_edges.txt", "data/amazon/amazonGTC.txt",
    ...               update_rule=UpdateRule.EDGE_QUALITY, seed=42)
    >>> communities = coeus.run()
    >>> score = coeus.evaluate()
    """

    def __init__(
        self,
        edges,
        ground_truth,
        n_seeds: int = NUM_SEEDS,
        window_size: int = WINDOW_SIZE,
        max_community_size: int = COMMUNITY_SIZE_THRESHOLD,
        update_rule=UpdateRule.DEFAULT,
        min_community_size: int = FILTER_COMMUNITY_THRESHOLD,
        name: Optional[str] = None,
        seed=None
    ):
        for label, value in (('n_seeds', n_seeds), ('window_size', window_size),
                             ('max_community_size', max_community_size)):
            if value < 1:
                raise InvalidConfigurationError(f"{label} must be positive, got {value}")

        self.edges = as_edge_stream(edges)
        self.ground_truth = load_partition(ground_truth)
        self.n_seeds = n_seeds
        self.window_size = window_size
        self.max_community_size = max_community_size
        self.update_rule = UpdateRule.parse(update_rule)
        self.min_community_size = min_community_size
        self.name = name
        self.rng = create_py_random_state(seed)

        self.seed_sets = select_seed_sets(self.ground_truth, n_seeds, self.rng)
        self.n_nodes, self.n_edges = graph_size(self.edges)

        self.degrees: Optional[np.ndarray] = None
        self.scores: Dict[Tuple[int, int], int] = {}
        self.communities: Optional[List[List[int]]] = None

        self.stats = {
            'edges_processed': 0,
            'self_loops_skipped': 0,
            'pruning_rounds': 0,
            'evicted_nodes': 0,
            'communities_found': 0,
            'communities_kept': 0
        }

    def get_seed_sets(self) -> List[Set[int]]:
        """Return copies of the seed sets."""
        return [set(seed_set) for seed_set in self.seed_sets]

    def set_update_rule(self, update_rule):
        """Switch the update rule used by subsequent runs."""
        self.update_rule = UpdateRule.parse(update_rule)

    def run(self) -> List[List[int]]:
        """
        Execute the algorithm over one pass of the edge stream.

        Returns
        -------
        list of list of int
            Detected communities with at least ``min_community_size`` members
        """
        logger.info("Executing %s (rule=%s, seeds=%d, communities=%d)",
                    self.__class__.__name__, self.update_rule.name,
                    self.n_seeds, len(self.seed_sets))

        self.stats = {k: 0 for k in self.stats}
        degrees = np.zeros(self.n_nodes, dtype=np.int64)
        scores: Dict[Tuple[int, int], int] = {}
        communities: List[Set[int]] = []

        # Populate communities with the seed sets
        for i, seed_set in enumerate(self.seed_sets):
            communities.append(set(seed_set))
            for node in seed_set:
                scores[(node, i)] = scores.get((node, i), 0) + 1

        processed = 0
        for u, v in self.edges:
            processed += 1

            if u != v:
                degrees[u] += 1
                degrees[v] += 1
                self.stats['edges_processed'] += 1

                for i, community in enumerate(communities):
                    self._apply_update_rule(degrees, scores, v, u, i, community)
                    self._apply_update_rule(degrees, scores, u, v, i, community)
            else:
                # Counted in the window, but never closes it
                self.stats['self_loops_skipped'] += 1
                continue

            # Prune all communities when the window is full
            if processed % self.window_size == 0:
                snapshot = [set(community) for community in communities]
                communities = [
                    self._prune_community(i, community, degrees, scores)
                    for i, community in enumerate(snapshot)
                ]
                self.stats['pruning_rounds'] += 1
                logger.debug("Pruning round %d after %d edges",
                             self.stats['pruning_rounds'], processed)

        self.degrees = degrees
        self.scores = scores
        self.communities = self._filter_communities(communities)

        logger.info("Finished %s: %d communities kept out of %d",
                    self.__class__.__name__,
                    self.stats['communities_kept'], self.stats['communities_found'])
        return self.communities

    def _apply_update_rule(
        self,
        degrees: np.ndarray,
        scores: Dict[Tuple[int, int], int],
        candidate: int,
        other: int,
        community_id: int,
        community: Set[int]
    ):
        """Add ``candidate`` to the community if ``other`` is a member."""
        if other not in community:
            return

        key = (candidate, community_id)
        if self.update_rule is UpdateRule.DEFAULT:
            scores[key] = scores.get(key, 0) + 1
        elif self.update_rule is UpdateRule.EDGE_QUALITY:
            if key in scores:
                edge_quality = scores[(other, community_id)] // int(degrees[other])
                scores[key] += edge_quality
            else:
                scores[key] = 1
        else:
            raise UnknownUpdateRuleError(f"unknown update rule: {self.update_rule!r}")

        community.add(candidate)

    def _prune_community(
        self,
        community_id: int,
        community: Set[int],
        degrees: np.ndarray,
        scores: Dict[Tuple[int, int], int]
    ) -> Set[int]:
        """Keep the top members by participation and drop the others' scores."""
        participation = {
            node: scores[(node, community_id)] // max(1, int(degrees[node]))
            for node in community
        }
        kept = top_participants(community, participation, self.max_community_size)

        for node in community - kept:
            del scores[(node, community_id)]
        self.stats['evicted_nodes'] += len(community) - len(kept)
        return kept

    def _filter_communities(self, communities: List[Set[int]]) -> List[List[int]]:
        """Drop communities below the minimum size."""
        kept = [sorted(community) for community in communities
                if len(community) >= self.min_community_size]

        self.stats['communities_found'] = len(communities)
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
            Defaults to the ground truth the seeds were drawn from.

        Returns
        -------
        float
            Average-F1 score in range [0, 1]
        """
        if self.communities is None:
            raise RuntimeError("run() must be called before evaluate()")
        reference = self.ground_truth if ground_truth is None else load_partition(ground_truth)

        logger.info("Evaluating %s", self.__class__.__name__)
        score = average_f1_score(reference, self.communities)
        logger.info("[%s] [%s] | [average-F1-score] | [%s]: %.5f",
                    self.name, self.update_rule.name, self.__class__.__name__, score)
        return score

    def get_statistics(self) -> Dict:
        """
        Get algorithm statistics.

        Returns
        -------
        dict
            Counters of the last run plus the graph size and update rule
        """
        return {
            **self.stats,
            'nodes': self.n_nodes,
            'edges': self.n_edges,
            'update_rule': self.update_rule.name,
            'seed_sets': len(self.seed_sets)
        }
