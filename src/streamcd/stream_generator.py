"""
Synthetic Dataset Generator for Streaming Community Experiments

This module generates planted-partition graphs with known communities and
writes them in the raw SNAP layout (sparse ids, comment header), so the
whole validation, detection and evaluation pipeline can run without
downloading a real dataset.
"""

import random
from dataclasses import dataclass
from typing import List, Optional, Set, Tuple

import networkx as nx

from .dataset import Dataset


@dataclass
class GeneratorConfig:
    """Configuration for synthetic dataset generation."""
    # Planted partition
    n_communities: int = 20
    community_size: int = 30
    p_in: float = 0.3
    p_out: float = 0.002

    # Raw id space: node i is written as id_offset + id_stride * i
    id_offset: int = 1000
    id_stride: int = 3

    # Reproducibility
    seed: Optional[int] = 42


class SyntheticDataset:
    """
    Planted-partition benchmark with ground-truth communities.

    Parameters
    ----------
    config : GeneratorConfig
        Configuration for dataset generation

    Example
    -------
    >>> gen = SyntheticDataset(GeneratorConfig(n_communities=5, seed=1))
    >>> edges, communities = gen.generate()
    >>> gen.write(Dataset("data/synthetic", "synthetic"))
    """

    def __init__(self, config: GeneratorConfig):
        self.config = config
        self.graph: Optional[nx.Graph] = None

    def _raw_id(self, node: int) -> int:
        return self.config.id_offset + self.config.id_stride * node

    def generate(self) -> Tuple[List[Tuple[int, int]], List[Set[int]]]:
        """
        Generate the graph.

        Returns
        -------
        edges : list of (int, int)
            Edges in the raw id space, in random order
        communities : list of set
            Planted communities in the raw id space
        """
        cfg = self.config
        self.graph = nx.planted_partition_graph(
            cfg.n_communities, cfg.community_size, cfg.p_in, cfg.p_out, seed=cfg.seed
        )

        edges = [(self._raw_id(u), self._raw_id(v)) for u, v in self.graph.edges()]
        random.Random(cfg.seed).shuffle(edges)

        communities = [
            {self._raw_id(node) for node in block}
            for block in self.graph.graph["partition"]
        ]
        return edges, communities

    def write(self, dataset: Dataset) -> Tuple[int, int]:
        """
        Generate the graph and write the raw files of ``dataset``.

        Returns
        -------
        tuple of int
            Number of edges and communities written
        """
        edges, communities = self.generate()
        dataset.raw_dir.mkdir(parents=True, exist_ok=True)

        with open(dataset.raw_edges_file, "w") as f:
            f.write(f"# Planted partition: {self.config.n_communities} communities "
                    f"of {self.config.community_size} nodes\n")
            f.write(f"# Nodes: {self.graph.number_of_nodes()} "
                    f"Edges: {self.graph.number_of_edges()}\n")
            f.write("# FromNodeId\tToNodeId\n")
            for u, v in edges:
                f.write(f"{u}\t{v}\n")

        with open(dataset.raw_ground_truth_file, "w") as f:
            for community in communities:
                f.write("\t".join(str(node) for node in sorted(community)) + "\n")

        return len(edges), len(communities)
