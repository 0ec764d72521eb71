"""
Unit Tests for the SCoDA and CoEuS Algorithms

Run with: pytest tests/test_algorithms.py -v
"""

import logging
import os
import random
import sys

import networkx as nx
import numpy as np
import pytest

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from streamcd.coeus import CoEuS, UpdateRule, select_seed_sets, top_participants
from streamcd.errors import InvalidConfigurationError, UnknownUpdateRuleError
from streamcd.scoda import SCoDA, degree_mode, degree_vector
from streamcd.stream_source import EdgeStream


CYCLE = [(0, 1), (1, 2), (2, 3), (3, 0)]


class TestThreshold:
    """Tests for the SCoDA degree threshold."""

    def test_mode_ignores_leaves(self):
        """Degree 1 never wins, even when it is the most frequent."""
        degrees = np.array([1, 1, 1, 2, 2, 3])
        assert degree_mode(degrees) == 2

    def test_mode_tie_picks_smallest_degree(self):
        """Ties resolve to the smallest degree value."""
        assert degree_mode(np.array([3, 2, 5, 5, 2])) == 2

    def test_all_leaves(self):
        """A graph of leaves has threshold 0."""
        assert degree_mode(np.array([1, 1])) == 0
        assert degree_mode(np.array([], dtype=np.int64)) == 0

    def test_degree_vector_counts_self_loops_twice(self):
        """A self-loop increments its node twice."""
        degrees = degree_vector([(0, 0), (0, 1)], 2)
        assert degrees.tolist() == [3, 1]

    def test_compute_threshold_on_cycle(self):
        """Every node of a cycle has degree 2."""
        scoda = SCoDA(CYCLE, seed=1)
        assert scoda.n_nodes == 4
        assert scoda.n_edges == 4
        assert scoda.threshold == 2
        assert scoda.compute_threshold() == 2


class TestSCoDA:
    """Tests for the SCoDA algorithm."""

    @pytest.mark.parametrize("p", [0.0, 1.0])
    def test_cycle_forms_one_community(self, p):
        """A 4-cycle streamed in order ends in a single community."""
        # block_size=1 keeps the stream order; p in {0, 1} fixes every tie
        scoda = SCoDA(CYCLE, block_size=1, p=p, seed=1)
        communities = scoda.run()

        assert communities == [[0, 1, 2, 3]]
        assert scoda.degrees.tolist() == [2, 2, 2, 2]

    def test_one_draw_per_tie(self):
        """Every equal-degree merge makes its own random draw."""
        class CountingRandom(random.Random):
            def __init__(self, seed):
                super().__init__(seed)
                self.draws = 0

            def random(self):
                self.draws += 1
                return super().random()

        rng = CountingRandom(3)
        edges = list(nx.ring_of_cliques(4, 5).edges())
        scoda = SCoDA(edges, block_size=1, p=0.5, seed=rng)
        scoda.run()

        assert scoda.stats['tie_draws'] > 0
        assert rng.draws == scoda.stats['tie_draws']

    def test_tie_draw_picks_direction(self):
        """A draw at or above p moves the first endpoint, below p the second."""
        class ScriptedRandom(random.Random):
            def __init__(self, values):
                super().__init__(0)
                self.values = list(values)

            def random(self):
                return self.values.pop(0)

        edges = [(0, 1), (2, 3)]
        scoda = SCoDA(edges, threshold=10, block_size=1, p=0.5,
                      seed=ScriptedRandom([0.9, 0.1]))
        scoda.run()

        assert scoda.labels.tolist() == [1, 1, 2, 2]
        assert scoda.stats['tie_draws'] == 2

    def test_label_redirect_is_one_hop(self):
        """Relabelling a node does not relabel nodes that copied its old label."""
        edges = [(0, 1), (2, 3), (1, 2)]
        scoda = SCoDA(edges, threshold=10, block_size=1, p=1.0)
        communities = scoda.run()

        # Node 3 keeps label 2 although 2 moved to label 0
        assert scoda.labels.tolist() == [0, 0, 0, 2]
        assert communities == [[0, 1, 2]]

    def test_no_merge_above_threshold(self):
        """Edges whose endpoints exceed the threshold only update degrees."""
        edges = [(0, 1), (0, 2), (0, 3), (0, 4)]
        scoda = SCoDA(edges, threshold=1, block_size=1, p=1.0)
        communities = scoda.run()

        assert communities == []
        assert scoda.degrees.tolist() == [4, 1, 1, 1, 1]
        assert scoda.get_statistics()['above_threshold'] == 3

    def test_self_loops_counted_twice(self):
        """Final degrees equal endpoint occurrences, self-loops twice."""
        edges = [(0, 0), (0, 1), (1, 2), (2, 0)]
        scoda = SCoDA(edges, block_size=2, seed=3)
        scoda.run()
        assert scoda.degrees.tolist() == [4, 2, 2]

    def test_communities_disjoint_and_large_enough(self):
        """Output communities are disjoint, in range and of size >= 3."""
        graph = nx.ring_of_cliques(6, 5)
        edges = list(graph.edges())
        scoda = SCoDA(edges, block_size=7, seed=11)
        communities = scoda.run()

        seen = set()
        for community in communities:
            assert len(community) >= 3
            assert all(0 <= node < scoda.n_nodes for node in community)
            assert seen.isdisjoint(community)
            seen.update(community)

    def test_seeded_runs_are_reproducible(self):
        """Two runs with the same seed detect the same communities."""
        edges = list(nx.ring_of_cliques(4, 6).edges())
        first = SCoDA(edges, block_size=5, seed=42).run()
        second = SCoDA(edges, block_size=5, seed=42).run()
        assert first == second

    def test_persisted_shuffle(self, tmp_path):
        """The shuffled stream is written to disk and is a permutation."""
        edges_file = tmp_path / "cycle_edges.txt"
        edges_file.write_text("0 1\n1 2\n2 3\n3 0\n")
        shuffled = tmp_path / "cycle_shuffled_edges.txt"

        scoda = SCoDA(EdgeStream(edges_file), block_size=2, shuffled_path=shuffled, seed=5)
        scoda.run()

        assert sorted(shuffled.read_text().splitlines()) == ["0 1", "1 2", "2 3", "3 0"]
        assert scoda.get_statistics()['edges_processed'] == 4

    def test_out_of_range_node(self):
        """Edges outside the dense id space are a fatal precondition violation."""
        scoda = SCoDA([(0, 1), (1, 5)], threshold=2)
        with pytest.raises(IndexError):
            scoda.run()

    def test_invalid_probability(self):
        """The tie probability must lie in [0, 1]."""
        with pytest.raises(InvalidConfigurationError):
            SCoDA(CYCLE, p=1.5)

    def test_evaluate(self, caplog):
        """Evaluation returns and logs the average-F1 score."""
        scoda = SCoDA(CYCLE, ground_truth=[{0, 1, 2, 3}], block_size=1, p=0.0, name="cycle")
        scoda.run()

        with caplog.at_level(logging.INFO, logger="streamcd"):
            score = scoda.evaluate()

        assert score == pytest.approx(1.0)
        assert "[cycle] | [average-F1-score] | [SCoDA]: 1.00000" in caplog.text

    def test_evaluate_requirements(self):
        """Evaluation needs a completed run and a ground truth."""
        scoda = SCoDA(CYCLE, block_size=1)
        with pytest.raises(RuntimeError):
            scoda.evaluate([{0, 1, 2}])
        scoda.run()
        with pytest.raises(InvalidConfigurationError):
            scoda.evaluate()

    def test_write_communities(self, tmp_path):
        """Detected communities are written one per line."""
        scoda = SCoDA(CYCLE, block_size=1, p=1.0)
        scoda.run()
        path = tmp_path / "SCoDA_cycle_detected_communities.txt"
        assert scoda.write_communities(path) == 1
        assert path.read_text() == "0 1 2 3\n"


class TestSeedSets:
    """Tests for CoEuS seed-set selection."""

    def test_community_of_exactly_k(self):
        """Three seeds from a three-node community are the whole community."""
        seeds = select_seed_sets([{4, 7, 9}], 3, random.Random(0))
        assert seeds == [{4, 7, 9}]

    def test_seed_sets_are_subsets(self):
        """Each seed set holds distinct members of its community."""
        edges = [(i, i + 1) for i in range(9)]
        coeus = CoEuS(edges, [set(range(10)), {0, 5, 9}], seed=7)

        assert len(coeus.seed_sets) == 2
        assert len(coeus.seed_sets[0]) == 3
        assert coeus.seed_sets[0] <= set(range(10))
        assert coeus.seed_sets[1] == {0, 5, 9}

    def test_seed_sets_reproducible(self):
        """The same seed draws the same seed sets."""
        edges = [(i, i + 1) for i in range(9)]
        first = CoEuS(edges, [set(range(10))], seed=7).get_seed_sets()
        second = CoEuS(edges, [set(range(10))], seed=7).get_seed_sets()
        assert first == second

    def test_too_few_members_fails_fast(self, tmp_path):
        """A community smaller than the seed count fails before streaming."""
        missing = tmp_path / "missing_edges.txt"
        with pytest.raises(InvalidConfigurationError):
            CoEuS(missing, [{0, 1, 2}, {3, 4}], n_seeds=3)

    @pytest.mark.parametrize("field", ["n_seeds", "window_size", "max_community_size"])
    def test_non_positive_parameters(self, field):
        """Counts and sizes must be positive."""
        with pytest.raises(InvalidConfigurationError):
            CoEuS([(0, 1), (1, 2)], [{0, 1, 2}], **{field: 0})


class TestUpdateRule:
    """Tests for update rule selection."""

    def test_parse(self):
        """Rules parse from enum members, names and values."""
        assert UpdateRule.parse(UpdateRule.DEFAULT) is UpdateRule.DEFAULT
        assert UpdateRule.parse("EDGE_QUALITY") is UpdateRule.EDGE_QUALITY
        assert UpdateRule.parse("edge-quality") is UpdateRule.EDGE_QUALITY
        assert UpdateRule.parse("default") is UpdateRule.DEFAULT

    def test_unknown_rule(self):
        """Unknown rules fail fast at construction and on switching."""
        with pytest.raises(UnknownUpdateRuleError):
            CoEuS([(0, 1), (1, 2)], [{0, 1, 2}], update_rule="triangles")

        coeus = CoEuS([(0, 1), (1, 2)], [{0, 1, 2}])
        with pytest.raises(UnknownUpdateRuleError):
            coeus.set_update_rule(42)

    def test_unknown_rule_is_configuration_error(self):
        """Unknown rules are configuration errors and ValueErrors."""
        assert issubclass(UnknownUpdateRuleError, InvalidConfigurationError)
        assert issubclass(UnknownUpdateRuleError, ValueError)


class TestCoEuS:
    """Tests for the CoEuS algorithm."""

    def test_growth_default_rule(self):
        """Communities grow by neighbours of existing members."""
        edges = [(0, 1), (1, 2), (2, 3), (3, 4), (5, 6)]
        coeus = CoEuS(edges, [{0, 1, 2}], seed=1)
        communities = coeus.run()

        assert communities == [[0, 1, 2, 3, 4]]
        assert coeus.scores[(0, 0)] == 2
        assert coeus.scores[(1, 0)] == 3
        assert coeus.scores[(2, 0)] == 3
        assert coeus.scores[(3, 0)] == 2
        assert coeus.scores[(4, 0)] == 1
        assert (5, 0) not in coeus.scores

    def test_edge_quality_rule(self):
        """EDGE_QUALITY adds floor(other's score / other's degree)."""
        edges = [(1, 2), (0, 3), (0, 3)]
        coeus = CoEuS(edges, [{0, 1, 2}], update_rule=UpdateRule.EDGE_QUALITY, seed=1)
        communities = coeus.run()

        assert communities == [[0, 1, 2, 3]]
        assert coeus.scores[(2, 0)] == 2
        assert coeus.scores[(1, 0)] == 3
        assert coeus.scores[(3, 0)] == 2
        assert coeus.scores[(0, 0)] == 3

    def test_self_loops_skipped(self):
        """Self-loops never count toward degree."""
        edges = [(0, 1), (1, 1), (1, 2), (2, 0), (3, 1)]
        coeus = CoEuS(edges, [{0, 1, 2}], seed=1)
        coeus.run()

        assert coeus.degrees.tolist() == [2, 3, 2, 1]
        stats = coeus.get_statistics()
        assert stats['self_loops_skipped'] == 1
        assert stats['edges_processed'] == 4

    def test_self_loop_at_window_end_does_not_prune(self):
        """A self-loop fills the window without triggering a pruning round."""
        edges = [(0, 1), (1, 2), (2, 3), (3, 3)]
        coeus = CoEuS(edges, [{0, 1, 2}], window_size=4, max_community_size=1, seed=1)
        communities = coeus.run()

        assert communities == [[0, 1, 2, 3]]
        stats = coeus.get_statistics()
        assert stats['pruning_rounds'] == 0
        assert stats['evicted_nodes'] == 0

    def test_self_loops_count_toward_window(self):
        """A self-loop takes a window slot, so three regular edges close a window of four."""
        edges = [(3, 3), (0, 1), (1, 2), (2, 3)]
        coeus = CoEuS(edges, [{0, 1, 2}], window_size=4, max_community_size=3, seed=1)
        coeus.run()

        assert coeus.get_statistics()['pruning_rounds'] == 1

    def test_pruning_keeps_top_participants(self):
        """A pruning round keeps the members with the highest score / degree."""
        edges = [(0, 3), (0, 4), (1, 4), (2, 4), (5, 6)]
        coeus = CoEuS(edges, [{0, 1, 2}], window_size=5, max_community_size=3, seed=1)
        communities = coeus.run()

        # Participation: 0 -> 3//2, 1 -> 2//1, 2 -> 2//1, 3 -> 1//1, 4 -> 3//3
        assert communities == [[0, 1, 2]]
        assert (3, 0) not in coeus.scores
        assert (4, 0) not in coeus.scores
        stats = coeus.get_statistics()
        assert stats['pruning_rounds'] == 1
        assert stats['evicted_nodes'] == 2

    def test_pruning_floors_participation(self):
        """Participation is floored, so members at 3/2 tie the earlier member at 2/2."""
        edges = [(0, 1), (1, 2), (2, 3), (3, 0)]
        coeus = CoEuS(edges, [{1, 2, 3}], window_size=4, max_community_size=1,
                      min_community_size=1, seed=1)
        communities = coeus.run()

        # Scores 2, 2, 3, 3 over degree 2 all floor to 1; node 0 comes first
        assert communities == [[0]]
        assert coeus.scores == {(0, 0): 2}
        assert coeus.get_statistics()['evicted_nodes'] == 3

    def test_prune_community_ties(self):
        """A member scoring 3 at degree 2 does not displace one scoring 1 at degree 1."""
        coeus = CoEuS([], [{0, 1, 2}], max_community_size=1, seed=1)
        scores = {(0, 0): 1, (1, 0): 3}
        kept = coeus._prune_community(0, {0, 1}, np.array([1, 2]), scores)

        assert kept == {0}
        assert scores == {(0, 0): 1}

    def test_pruning_bounds_community_size(self):
        """After every pruning round a community has at most M members."""
        edges = list(nx.ring_of_cliques(3, 6).edges())
        coeus = CoEuS(edges, [{0, 1, 2}], window_size=1, max_community_size=2, seed=1)
        communities = coeus.run()

        # Every edge triggers a round, so the final community has 2 members
        assert communities == []
        assert len([key for key in coeus.scores if key[1] == 0]) <= 2
        assert coeus.get_statistics()['pruning_rounds'] == len(edges)

    def test_no_edges_yields_seed_sets(self):
        """Without edges the seed sets are the detected communities."""
        coeus = CoEuS([], [{0, 1, 2}, {3, 4, 5}], seed=1)
        assert coeus.run() == [[0, 1, 2], [3, 4, 5]]

    def test_small_seed_sets_filtered(self):
        """Communities below three members are dropped."""
        coeus = CoEuS([], [{0, 1, 2}], n_seeds=2, seed=1)
        assert coeus.run() == []

    def test_evaluate(self, caplog):
        """Evaluation uses the seed ground truth and logs the rule."""
        edges = [(0, 1), (1, 2), (2, 0)]
        coeus = CoEuS(edges, [{0, 1, 2}], name="triangle", seed=1)
        coeus.run()

        with caplog.at_level(logging.INFO, logger="streamcd"):
            score = coeus.evaluate()

        assert score == pytest.approx(1.0)
        assert "[triangle] [DEFAULT] | [average-F1-score] | [CoEuS]: 1.00000" in caplog.text

    def test_evaluate_before_run(self):
        """Evaluation needs a completed run."""
        coeus = CoEuS([(0, 1), (1, 2)], [{0, 1, 2}])
        with pytest.raises(RuntimeError):
            coeus.evaluate()


class TestTopParticipants:
    """Tests for the bounded min-heap selection."""

    def test_ties_with_minimum_are_not_replaced(self):
        """A candidate tying with the heap minimum does not evict it."""
        participation = {1: 5, 2: 9, 3: 5, 4: 1}
        assert top_participants({1, 2, 3, 4}, participation, 2) == {1, 2}

    def test_strictly_greater_replaces_minimum(self):
        """A strictly greater candidate evicts the current minimum."""
        participation = {1: 2, 2: 2, 3: 2, 4: 3}
        assert top_participants({1, 2, 3, 4}, participation, 3) == {2, 3, 4}

    def test_small_community_kept_whole(self):
        """Communities within capacity are unchanged."""
        assert top_participants({5, 6}, {5: 0, 6: 1}, 50) == {5, 6}
