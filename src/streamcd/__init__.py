"""
streamcd: Streaming Community Detection on Edge Streams

This package provides two bounded-memory community detection algorithms
that process a graph as a single pass over its edge list, and the tooling
to evaluate them against ground-truth communities.

Modules:
    stream_source: Restartable edge streams and community file I/O
    shuffle: Bounded-memory block shuffle of an edge stream
    scoda: SCoDA degree-threshold merge algorithm
    coeus: CoEuS seed-set expansion algorithm with windowed pruning
    metrics: Pairwise and average F1 scores, trial summaries
    dataset: Dataset layout and node id renumbering
    stream_generator: Synthetic planted-partition datasets
    run_experiments: Experiment runner script
"""

from .scoda import SCoDA
from .coeus import CoEuS, UpdateRule
from .shuffle import BlockShuffler
from .stream_source import EdgeStream, GraphSize, graph_size, read_communities, write_communities
from .metrics import f1_score, average_f1_score, summarize_scores
from .dataset import Dataset, validate
from .stream_generator import SyntheticDataset, GeneratorConfig
from .errors import StreamCDError, InvalidConfigurationError, UnknownUpdateRuleError

__version__ = "1.0.0"

__all__ = [
    "SCoDA",
    "CoEuS",
    "UpdateRule",
    "BlockShuffler",
    "EdgeStream",
    "GraphSize",
    "graph_size",
    "read_communities",
    "write_communities",
    "f1_score",
    "average_f1_score",
    "summarize_scores",
    "Dataset",
    "validate",
    "SyntheticDataset",
    "GeneratorConfig",
    "StreamCDError",
    "InvalidConfigurationError",
    "UnknownUpdateRuleError",
]
