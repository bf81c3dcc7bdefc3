"""Tests for hybrid scoring and edge classification."""
import math

import pytest

from forest_core.models.schema import Classification, EdgeStatus
from forest_core.services.scoring import (ScoreThresholds, classify_score,
                                          compute_score, cosine_embeddings,
                                          jaccard, normalize_edge_pair,
                                          title_cosine, token_cosine)


# =============================================================================
# Component metrics
# =============================================================================


class TestJaccard:
    def test_identical_sets(self):
        assert jaccard(["rust", "wasm"], ["wasm", "rust"]) == 1.0

    def test_partial_overlap(self):
        assert jaccard(["a", "b", "c"], ["b", "c", "d"]) == pytest.approx(0.5)

    def test_symmetric(self):
        a, b = ["x", "y"], ["y", "z", "w"]
        assert jaccard(a, b) == jaccard(b, a)

    def test_empty_sets_score_zero(self):
        assert jaccard([], []) == 0.0
        assert jaccard(["a"], []) == 0.0


class TestTokenCosine:
    def test_identical_maps(self):
        counts = {"graph": 2, "database": 1}
        assert token_cosine(counts, counts) == pytest.approx(1.0)

    def test_disjoint_maps(self):
        assert token_cosine({"graph": 1}, {"rust": 1}) == 0.0

    def test_empty_map(self):
        assert token_cosine({}, {"graph": 1}) == 0.0

    def test_generic_terms_contribute_less(self):
        specific = token_cosine({"compiler": 1, "rust": 1}, {"compiler": 1, "go": 1})
        generic = token_cosine({"flow": 1, "rust": 1}, {"flow": 1, "go": 1})
        assert generic < specific


class TestTitleCosine:
    def test_same_title(self):
        assert title_cosine("Graph Databases", "graph databases") == pytest.approx(1.0)

    def test_partial_overlap(self):
        # [build, graph] vs [graph, query]
        assert title_cosine("Building Graphs", "Graph Queries") == pytest.approx(0.5)

    def test_stopword_only_title(self):
        assert title_cosine("The", "The") == 0.0


class TestCosineEmbeddings:
    def test_self_similarity_is_one(self):
        v = [0.3, -0.2, 0.9]
        assert cosine_embeddings(v, v) == pytest.approx(1.0)

    def test_opposite_vectors(self):
        assert cosine_embeddings([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)

    def test_symmetric_and_bounded(self):
        a, b = [0.1, 0.5, -0.4], [0.7, -0.2, 0.3]
        value = cosine_embeddings(a, b)
        assert value == pytest.approx(cosine_embeddings(b, a))
        assert -1.0 <= value <= 1.0

    def test_missing_or_zero_vectors(self):
        assert cosine_embeddings(None, [1.0]) == 0.0
        assert cosine_embeddings([], [1.0]) == 0.0
        assert cosine_embeddings([0.0, 0.0], [1.0, 0.0]) == 0.0

    def test_dimension_mismatch_uses_shared_prefix(self):
        assert cosine_embeddings([1.0, 0.0], [1.0, 0.0, 5.0]) == pytest.approx(1.0)


# =============================================================================
# Hybrid score
# =============================================================================


class TestComputeScore:
    def test_node_scored_against_itself(self, make_node):
        node = make_node(
            "Rust Programming",
            "Learning Rust programming through ownership and borrowing",
            tags=["rust", "programming"],
            embedding=[0.1, 0.2, 0.3],
        )
        result = compute_score(node, node)
        assert result.score > 0.99
        assert result.components.penalty == 1.0
        assert result.components.tag_overlap == 1.0

    def test_unrelated_nodes(self, make_node):
        a = make_node("Alpha", "alpha")
        b = make_node("Beta", "beta")
        result = compute_score(a, b)
        assert result.score == 0.0
        assert result.components.penalty == 0.9

    def test_embedding_only_similarity(self, make_node):
        a = make_node("First", embedding=[0.8, 0.6, 0.0])
        b = make_node("Second", embedding=[0.8, 0.6, 0.1])
        result = compute_score(a, b)

        cosine = 1.0 / math.sqrt(1.01)
        expected_embedding = cosine ** 1.25
        assert result.components.embedding_similarity == pytest.approx(expected_embedding)
        assert result.components.embedding_similarity > 0.8
        assert result.components.penalty == 0.9
        assert result.score == pytest.approx(0.55 * expected_embedding * 0.9)

    def test_negative_cosine_floored(self, make_node):
        a = make_node("First", embedding=[1.0, 0.0])
        b = make_node("Second", embedding=[-1.0, 0.0])
        assert compute_score(a, b).components.embedding_similarity == 0.0

    def test_tag_overlap_lifts_penalty(self, make_node):
        a = make_node("One", "rust compiler", tags=["rust"])
        b = make_node("Two", "rust borrow checker", tags=["rust", "memory"])
        result = compute_score(a, b)
        assert result.components.penalty == 1.0
        assert result.components.tag_overlap == pytest.approx(0.5)

    def test_weights(self, make_node):
        a = make_node("Graph", "graph", tags=["graph"], embedding=[1.0, 0.0])
        b = make_node("Graph", "graph", tags=["graph"], embedding=[0.0, 1.0])
        # token 1, tag 1, title 1, embedding 0
        assert compute_score(a, b).score == pytest.approx(0.25 + 0.15 + 0.05)

    def test_symmetric(self, make_node):
        a = make_node("Rust notes", "ownership and lifetimes", tags=["rust"], embedding=[0.2, 0.9])
        b = make_node("Go notes", "goroutines and channels", tags=["go"], embedding=[0.5, 0.5])
        assert compute_score(a, b).score == pytest.approx(compute_score(b, a).score)

    def test_missing_embedding_contributes_zero(self, make_node):
        a = make_node("Graph", "graph", embedding=[1.0, 0.0])
        b = make_node("Graph", "graph")
        assert compute_score(a, b).components.embedding_similarity == 0.0

    def test_to_dict(self, make_node):
        a = make_node("Alpha", "alpha")
        data = compute_score(a, a).to_dict()
        assert set(data["components"]) == {
            "tag_overlap",
            "token_similarity",
            "title_similarity",
            "embedding_similarity",
            "penalty",
        }


# =============================================================================
# Classification
# =============================================================================


class TestClassifyScore:
    @pytest.mark.parametrize(
        "score,expected",
        [
            (0.9, Classification.ACCEPTED),
            (0.5, Classification.ACCEPTED),
            (0.4999, Classification.SUGGESTED),
            (0.25, Classification.SUGGESTED),
            (0.2499, Classification.DISCARD),
            (0.0, Classification.DISCARD),
        ],
    )
    def test_boundaries(self, thresholds, score, expected):
        assert classify_score(score, thresholds) is expected

    def test_monotonic(self, thresholds):
        rank = {Classification.DISCARD: 0, Classification.SUGGESTED: 1, Classification.ACCEPTED: 2}
        scores = [i / 100 for i in range(101)]
        tiers = [rank[classify_score(s, thresholds)] for s in scores]
        assert tiers == sorted(tiers)

    def test_reads_global_config_by_default(self, test_config, monkeypatch):
        monkeypatch.setattr(test_config, "auto_accept_threshold", 0.8)
        assert classify_score(0.6) is Classification.SUGGESTED

    def test_custom_thresholds(self):
        strict = ScoreThresholds(auto_accept=0.9, suggestion=0.7)
        assert classify_score(0.8, strict) is Classification.SUGGESTED
        assert classify_score(0.5, strict) is Classification.DISCARD

    def test_to_status(self):
        assert Classification.ACCEPTED.to_status() is EdgeStatus.ACCEPTED
        assert Classification.SUGGESTED.to_status() is EdgeStatus.SUGGESTED
        assert Classification.DISCARD.to_status() is None


class TestNormalizeEdgePair:
    def test_orders_pair(self):
        assert normalize_edge_pair("b", "a") == ("a", "b")
        assert normalize_edge_pair("a", "b") == ("a", "b")

    def test_symmetric(self):
        assert normalize_edge_pair("n2", "n1") == normalize_edge_pair("n1", "n2")

    def test_equal_ids(self):
        assert normalize_edge_pair("x", "x") == ("x", "x")
