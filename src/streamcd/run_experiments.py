#!/usr/bin/env python3
"""
Experiment Runner for Streaming Community Detection

This script validates a dataset, runs SCoDA and CoEuS (both update rules)
over its edge stream, writes the detected communities and reports the
average-F1 score of each variant against the ground truth.

Usage:
    streamcd-experiment --data-dir data/amazon --dataset amazon
    streamcd-experiment --data-dir data/synthetic --dataset synthetic --generate --trials 5
    streamcd-experiment --data-dir data/dblp --dataset dblp --algorithms scoda --output results/
"""

import argparse
import json
import logging
import os
import sys
import time
from datetime import datetime
from typing import Dict, List, Optional

import numpy as np

from .coeus import CoEuS, UpdateRule, COMMUNITY_SIZE_THRESHOLD, NUM_SEEDS, WINDOW_SIZE
from .dataset import Dataset, validate
from .errors import StreamCDError
from .metrics import summarize_scores, format_results_table
from .scoda import SCoDA
from .shuffle import SHUFFLE_BLOCK_SIZE
from .stream_generator import GeneratorConfig, SyntheticDataset

logger = logging.getLogger(__name__)

VARIANTS = {
    'scoda': 'SCoDA',
    'coeus-default': 'CoEuS-DEFAULT',
    'coeus-edge-quality': 'CoEuS-EDGE_QUALITY',
}


def build_algorithm(variant: str, dataset: Dataset, seed: Optional[int], params: Dict):
    """Instantiate the algorithm behind a variant name."""
    if variant == 'scoda':
        return SCoDA(
            dataset.edges_file,
            ground_truth=dataset.ground_truth_file,
            block_size=params.get('block_size', SHUFFLE_BLOCK_SIZE),
            shuffled_path=dataset.shuffled_edges_file,
            name=dataset.name,
            seed=seed
        )
    if variant in ('coeus-default', 'coeus-edge-quality'):
        rule = UpdateRule.DEFAULT if variant == 'coeus-default' else UpdateRule.EDGE_QUALITY
        return CoEuS(
            dataset.edges_file,
            dataset.ground_truth_file,
            n_seeds=params.get('n_seeds', NUM_SEEDS),
            window_size=params.get('window_size', WINDOW_SIZE),
            max_community_size=params.get('max_community_size', COMMUNITY_SIZE_THRESHOLD),
            update_rule=rule,
            name=dataset.name,
            seed=seed
        )
    raise StreamCDError(f"unknown algorithm variant: {variant!r}")


def run_trial(variant: str, dataset: Dataset, seed: Optional[int], params: Dict) -> Dict:
    """
    Run one algorithm variant once and evaluate it.

    The detected communities are written next to the dataset files.

    Returns
    -------
    dict
        Trial results: average-F1, elapsed time and algorithm statistics
    """
    start_time = time.time()

    algorithm = build_algorithm(variant, dataset, seed, params)
    algorithm.run()
    algorithm.write_communities(dataset.detected_communities_file(VARIANTS[variant]))
    score = algorithm.evaluate()

    return {
        'seed': seed,
        'average_f1': score,
        'elapsed_seconds': time.time() - start_time,
        'algorithm_stats': algorithm.get_statistics()
    }


def run_experiment(
    dataset: Dataset,
    variants: List[str],
    num_trials: int = 1,
    seeds: Optional[List[int]] = None,
    params: Optional[Dict] = None,
    verbose: bool = True
) -> Dict:
    """
    Run every variant ``num_trials`` times and aggregate the scores.

    Returns
    -------
    dict
        Per-variant summaries and raw trials
    """
    params = params or {}
    seeds = seeds or [None]

    if verbose:
        print(f"\n{'='*60}")
        print(f"Running experiment: {dataset.name}")
        print(f"{'='*60}")

    results = {'dataset': dataset.name, 'algorithms': {}}

    for variant in variants:
        label = VARIANTS[variant]
        trials = []

        for trial_idx in range(num_trials):
            seed = seeds[trial_idx % len(seeds)]
            if verbose:
                print(f"  {label}: trial {trial_idx + 1}/{num_trials} (seed={seed})")

            trial = run_trial(variant, dataset, seed, params)
            trials.append(trial)

            if verbose:
                print(f"    Average-F1: {trial['average_f1']:.5f} "
                      f"({trial['elapsed_seconds']:.2f}s)")

        results['algorithms'][label] = {
            'summary': summarize_scores(t['average_f1'] for t in trials),
            'raw_trials': trials
        }

    return results


def print_results_summary(results: Dict):
    """Print formatted results summary."""
    print(f"\nResults Summary: {results['dataset']}")
    summaries = {name: data['summary'] for name, data in results['algorithms'].items()}
    print(format_results_table(summaries))


def save_results(results: Dict, output_path: str):
    """Save results to JSON file."""
    # Convert numpy types and dataclasses for JSON serialization
    def convert(obj):
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        elif isinstance(obj, np.floating):
            return float(obj)
        elif isinstance(obj, np.integer):
            return int(obj)
        elif hasattr(obj, '__dataclass_fields__'):
            return convert(vars(obj))
        elif isinstance(obj, dict):
            return {k: convert(v) for k, v in obj.items()}
        elif isinstance(obj, (list, tuple)):
            return [convert(v) for v in obj]
        return obj

    with open(output_path, 'w') as f:
        json.dump(convert(results), f, indent=2)

    print(f"Results saved to: {output_path}")


def configure_logging(log_file: Optional[str] = None, quiet: bool = False):
    """Log to stderr and, optionally, append to a log file."""
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode='a'))

    logging.basicConfig(
        level=logging.WARNING if quiet else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True
    )


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run streaming community detection experiments",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  streamcd-experiment --data-dir data/amazon --dataset amazon
  streamcd-experiment --data-dir data/synthetic --dataset synthetic --generate
  streamcd-experiment --data-dir data/dblp --dataset dblp --trials 5 --output results/
        """
    )

    parser.add_argument(
        '--data-dir', type=str, required=True,
        help='Dataset directory (raw files live in <data-dir>/original/)'
    )
    parser.add_argument(
        '--dataset', type=str, required=True,
        help='Dataset name, e.g. amazon for original/amazon.txt and original/amazonGTC.txt'
    )
    parser.add_argument(
        '--generate', action='store_true',
        help='Write a synthetic planted-partition dataset before running'
    )
    parser.add_argument(
        '--skip-validation', action='store_true',
        help='Use the already renumbered files instead of validating the raw ones'
    )
    parser.add_argument(
        '--algorithms', nargs='+', default=['scoda', 'coeus-default'],
        choices=sorted(VARIANTS),
        help='Algorithm variants to run'
    )
    parser.add_argument(
        '--trials', type=int, default=1,
        help='Number of independent trials per variant'
    )
    parser.add_argument(
        '--seed', type=int, default=None,
        help='Base random seed (unseeded runs are not reproducible)'
    )
    parser.add_argument(
        '--block-size', type=int, default=SHUFFLE_BLOCK_SIZE,
        help='SCoDA shuffle block size'
    )
    parser.add_argument(
        '--n-seeds', type=int, default=NUM_SEEDS,
        help='CoEuS seeds per ground-truth community'
    )
    parser.add_argument(
        '--window-size', type=int, default=WINDOW_SIZE,
        help='CoEuS edges between pruning rounds'
    )
    parser.add_argument(
        '--max-community-size', type=int, default=COMMUNITY_SIZE_THRESHOLD,
        help='CoEuS community size kept by pruning'
    )
    parser.add_argument(
        '--output', type=str, default=None,
        help='Output directory for JSON results'
    )
    parser.add_argument(
        '--log-file', type=str, default=None,
        help='Append log records (including average-F1 lines) to this file'
    )
    parser.add_argument(
        '--quiet', action='store_true',
        help='Reduce output verbosity'
    )

    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_file, args.quiet)

    dataset = Dataset(args.data_dir, args.dataset)
    seeds = ([args.seed + 81 * i for i in range(args.trials)]
             if args.seed is not None else [None])
    params = {
        'block_size': args.block_size,
        'n_seeds': args.n_seeds,
        'window_size': args.window_size,
        'max_community_size': args.max_community_size,
    }

    if not args.quiet:
        print("=" * 60)
        print("Streaming Community Detection Evaluation")
        print("=" * 60)
        print(f"Timestamp: {datetime.now().isoformat()}")
        print(f"Dataset: {dataset.name} ({dataset.data_dir})")
        print(f"Algorithms: {', '.join(VARIANTS[v] for v in args.algorithms)}")
        print(f"Trials: {args.trials}")

    try:
        if args.generate:
            config = GeneratorConfig(seed=args.seed)
            n_edges, n_communities = SyntheticDataset(config).write(dataset)
            logger.info("Generated %d edges and %d communities", n_edges, n_communities)

        if not args.skip_validation:
            validate(dataset)

        results = run_experiment(
            dataset, args.algorithms,
            num_trials=args.trials,
            seeds=seeds,
            params=params,
            verbose=not args.quiet
        )
    except (StreamCDError, OSError) as e:
        logger.error("Experiment failed: %s", e)
        return 1

    print_results_summary(results)

    if args.output:
        os.makedirs(args.output, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        output_path = os.path.join(args.output, f"results_{dataset.name}_{timestamp}.json")
        save_results(results, output_path)

    return 0


if __name__ == "__main__":
    sys.exit(main())
