"""
Metrics for Evaluating Detected Communities

This module provides functions for computing:
- Pairwise F1 between two communities
- Average-F1 between a detected partition and a ground truth
- Summary statistics (mean, confidence interval) over repeated trials
"""

import numpy as np
from scipy import stats
from typing import Iterable, List, Sequence, Set, Tuple
from dataclasses import dataclass

from .stream_source import load_partition


@dataclass
class ScoreSummary:
    """Average-F1 statistics over repeated trials."""
    mean: float
    std: float
    ci: Tuple[float, float]
    min: float
    max: float
    n: int
    scores: List[float]


def f1_score(reference: Set[int], candidate: Set[int]) -> float:
    """
    Compute the F1 score between two communities.

    Parameters
    ----------
    reference : set of int
        Ground-truth community (non-empty)
    candidate : set of int
        Detected community (non-empty)

    Returns
    -------
    float
        F1 score in range [0, 1]; 0 when the communities do not intersect
    """
    overlap = len(reference & candidate)
    precision = overlap / len(candidate)
    recall = overlap / len(reference)

    # Avoid division by 0
    if precision + recall == 0:
        return 0.0

    return 2 * precision * recall / (precision + recall)


def f1_matrix(candidate: Sequence[Set[int]], reference: Sequence[Set[int]]) -> np.ndarray:
    """Return the ``len(candidate) x len(reference)`` matrix of pairwise F1."""
    matrix = np.zeros((len(candidate), len(reference)))
    for i, detected in enumerate(candidate):
        for j, truth in enumerate(reference):
            matrix[i, j] = f1_score(truth, detected)
    return matrix


def directional_f1_scores(reference, candidate) -> Tuple[float, float]:
    """
    Compute both best-match averages between two partitions.

    Returns
    -------
    detected_to_truth : float
        Mean over detected communities of their best F1 against the truth
        (precision-oriented)
    truth_to_detected : float
        Mean over ground-truth communities of their best F1 against the
        detected ones (recall-oriented)
    """
    reference = load_partition(reference)
    candidate = load_partition(candidate)

    if not reference or not candidate:
        return 0.0, 0.0

    matrix = f1_matrix(candidate, reference)
    return float(matrix.max(axis=1).mean()), float(matrix.max(axis=0).mean())


def average_f1_score(reference, candidate) -> float:
    """
    Compute the average-F1 score between two partitions.

    The mean of each detected community's best match is averaged with the
    mean of each ground-truth community's best match, rewarding partitions
    that are both precise and complete. The two halves generally differ;
    only their mean is reported.

    Parameters
    ----------
    reference : path or iterable of node collections
        Ground-truth partition
    candidate : path or iterable of node collections
        Detected partition

    Returns
    -------
    float
        Average-F1 in range [0, 1]; 0 if either partition is empty
    """
    detected_to_truth, truth_to_detected = directional_f1_scores(reference, candidate)
    return (detected_to_truth + truth_to_detected) / 2


def summarize_scores(scores: Iterable[float], confidence: float = 0.95) -> ScoreSummary:
    """
    Summarize average-F1 scores of repeated trials.

    Parameters
    ----------
    scores : iterable of float
        One score per trial
    confidence : float
        Confidence level for the interval (default: 0.95)

    Returns
    -------
    ScoreSummary
        Mean, standard deviation and t-based confidence interval
    """
    data = np.array(list(scores), dtype=float)

    if len(data) == 0:
        return ScoreSummary(0.0, 0.0, (0.0, 0.0), 0.0, 0.0, 0, [])

    mean = float(np.mean(data))
    std = float(np.std(data))

    if len(data) < 2:
        ci = (mean, mean)
    else:
        sem = stats.sem(data)
        if sem == 0:
            ci = (mean, mean)
        else:
            t_val = stats.t.ppf((1 + confidence) / 2, len(data) - 1)
            margin = float(t_val * sem)
            ci = (mean - margin, mean + margin)

    return ScoreSummary(
        mean=mean,
        std=std,
        ci=ci,
        min=float(np.min(data)),
        max=float(np.max(data)),
        n=len(data),
        scores=data.tolist()
    )


def format_results_table(results: dict) -> str:
    """
    Format summarized results as a text table.

    Parameters
    ----------
    results : dict
        Mapping of variant label to :class:`ScoreSummary`

    Returns
    -------
    str
        Formatted table string
    """
    lines = []
    lines.append("=" * 72)
    lines.append(f"{'Algorithm':<24} {'Avg-F1':<10} {'Std':<10} "
                 f"{'95% CI':<20} {'Trials':<6}")
    lines.append("-" * 72)

    for name, summary in results.items():
        ci_str = f"[{summary.ci[0]:.4f}, {summary.ci[1]:.4f}]"
        lines.append(
            f"{name:<24} "
            f"{summary.mean:<10.5f} "
            f"{summary.std:<10.5f} "
            f"{ci_str:<20} "
            f"{summary.n:<6d}"
        )

    lines.append("=" * 72)
    return "\n".join(lines)
