"""
Dataset Layout and Validation

Raw SNAP dumps use sparse node ids and ship ground-truth communities of any
size. The streaming algorithms need a dense id space ``[0, n_nodes)`` shared
by the edge list and the ground truth, and ground-truth communities with at
least 3 members. Validation produces exactly that, in the layout::

    <data_dir>/original/<name>.txt       raw edge list
    <data_dir>/original/<name>GTC.txt    raw ground-truth communities
    <data_dir>/<name>_edges.txt          renumbered edge list
    <data_dir>/<name>GTC.txt             renumbered, filtered ground truth
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict

from .stream_source import parse_edge

logger = logging.getLogger(__name__)


@dataclass
class Dataset:
    """Paths of the files belonging to one dataset."""
    data_dir: Path
    name: str

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)

    @property
    def raw_dir(self) -> Path:
        return self.data_dir / "original"

    @property
    def raw_edges_file(self) -> Path:
        return self.raw_dir / f"{self.name}.txt"

    @property
    def raw_ground_truth_file(self) -> Path:
        return self.raw_dir / f"{self.name}GTC.txt"

    @property
    def edges_file(self) -> Path:
        return self.data_dir / f"{self.name}_edges.txt"

    @property
    def ground_truth_file(self) -> Path:
        return self.data_dir / f"{self.name}GTC.txt"

    @property
    def shuffled_edges_file(self) -> Path:
        return self.data_dir / f"{self.name}_shuffled_edges.txt"

    def detected_communities_file(self, algorithm: str) -> Path:
        return self.data_dir / f"{algorithm}_{self.name}_detected_communities.txt"

    def exists(self) -> bool:
        """True if the raw edge list and ground truth are both present."""
        return self.raw_edges_file.is_file() and self.raw_ground_truth_file.is_file()

    def is_validated(self) -> bool:
        return self.edges_file.is_file() and self.ground_truth_file.is_file()


def rescale_node_ids(infile_edges, outfile_edges, infile_gtc, outfile_gtc) -> Dict[int, int]:
    """
    Renumber node ids densely in first-seen order.

    Malformed edge lines are dropped. The ground-truth file is renumbered
    with the same mapping; ids that never occur in the edge list are
    removed from their community.

    Returns
    -------
    dict
        Mapping of old id to new id
    """
    old_to_new: Dict[int, int] = {}

    with open(infile_edges, "r") as inf, open(outfile_edges, "w") as outf:
        for line in inf:
            edge = parse_edge(line)
            if edge is None:
                continue
            u, v = edge
            if u not in old_to_new:
                old_to_new[u] = len(old_to_new)
            if v not in old_to_new:
                old_to_new[v] = len(old_to_new)
            outf.write(f"{old_to_new[u]} {old_to_new[v]}\n")

    rescale_communities(old_to_new, infile_gtc, outfile_gtc)
    return old_to_new


def rescale_communities(mapping: Dict[int, int], infile, outfile) -> int:
    """
    Renumber every community line with ``mapping``.

    Returns
    -------
    int
        Number of node ids dropped because they are not in the mapping
    """
    dropped = 0
    with open(infile, "r") as inf, open(outfile, "w") as outf:
        for line in inf:
            nodes = []
            for token in line.split():
                if not token.isdecimal():
                    continue
                node = int(token)
                if node in mapping:
                    nodes.append(str(mapping[node]))
                else:
                    dropped += 1
            outf.write(" ".join(nodes) + "\n")

    if dropped:
        logger.warning("Dropped %d ground-truth ids absent from the edge list", dropped)
    return dropped


def remove_small_communities(path, min_size: int = 3) -> int:
    """
    Rewrite a community file keeping only communities with ``min_size`` ids.

    Returns
    -------
    int
        Number of communities removed
    """
    with open(path, "r") as f:
        lines = f.read().splitlines()

    kept = [line for line in lines if len(line.split()) >= min_size]

    with open(path, "w") as f:
        for line in kept:
            f.write(line + "\n")

    return len(lines) - len(kept)


def validate(dataset: Dataset, min_size: int = 3) -> Dict[int, int]:
    """
    Renumber the raw files of ``dataset`` and filter small communities.

    Raises
    ------
    FileNotFoundError
        If the raw edge list or ground truth is missing
    """
    for path in (dataset.raw_edges_file, dataset.raw_ground_truth_file):
        if not path.is_file():
            raise FileNotFoundError(f"raw dataset file not found: {os.fspath(path)}")

    logger.info("Validating dataset %s", dataset.name)
    mapping = rescale_node_ids(
        dataset.raw_edges_file, dataset.edges_file,
        dataset.raw_ground_truth_file, dataset.ground_truth_file
    )
    removed = remove_small_communities(dataset.ground_truth_file, min_size)
    logger.info("Finished validating %s: %d nodes, %d small communities removed",
                dataset.name, len(mapping), removed)
    return mapping
