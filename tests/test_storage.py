"""Tests for the in-memory and SQL graph stores and the column codec."""
import math

import numpy as np
import pytest

from forest_core.exceptions import (DataShapeError, ErrorCode, LinkError,
                                    NodeNotFoundError, StorageError)
from forest_core.models.db_models import DBNode
from forest_core.models.schema import EdgeStatus, EdgeType, utc_now
from forest_core.storage import GraphStore, InMemoryGraphStore, SQLGraphStore
from forest_core.storage import codec


@pytest.fixture
def three_nodes(any_store, make_node):
    nodes = [
        make_node("Alpha", "alpha notes", tags=["alpha"], embedding=[0.1, 0.2], node_id="n1"),
        make_node("Beta", "beta notes", tags=["beta"], node_id="n2"),
        make_node("Gamma", "gamma notes", node_id="n3"),
    ]
    for node in nodes:
        any_store.insert_node(node)
    return nodes


# =============================================================================
# Nodes
# =============================================================================


class TestNodes:
    def test_satisfies_protocol(self, any_store):
        assert isinstance(any_store, GraphStore)

    def test_insert_and_get(self, any_store, make_node):
        node = make_node(
            "Graph databases", "graph databases store graph data",
            tags=["graph"], embedding=[0.5, -0.25, 1.0],
        )
        any_store.insert_node(node)

        loaded = any_store.get_node(node.id)
        assert loaded is not None
        assert loaded.title == "Graph databases"
        assert loaded.tags == ["graph"]
        assert loaded.token_counts == node.token_counts
        assert loaded.embedding == [0.5, -0.25, 1.0]
        assert loaded.created_at.tzinfo is not None

    def test_get_missing_node(self, any_store):
        assert any_store.get_node("nope") is None

    def test_duplicate_id_rejected(self, any_store, make_node):
        any_store.insert_node(make_node("One", node_id="dup"))
        with pytest.raises(StorageError) as exc_info:
            any_store.insert_node(make_node("Two", node_id="dup"))
        assert exc_info.value.code == ErrorCode.STORAGE_WRITE_FAILED

    def test_list_includes_unembedded_nodes(self, any_store, three_nodes):
        ids = {n.id for n in any_store.list_all_nodes()}
        assert ids == {"n1", "n2", "n3"}

    def test_node_without_embedding_round_trips_as_none(self, any_store, make_node):
        node = make_node("Plain", "no vector here")
        any_store.insert_node(node)
        assert any_store.get_node(node.id).embedding is None

    def test_memory_store_returns_copies(self, make_node):
        store = InMemoryGraphStore([make_node("Alpha", node_id="a")])
        fetched = store.get_node("a")
        fetched.tags.append("mutated")
        assert store.get_node("a").tags == []


# =============================================================================
# Edges
# =============================================================================


class TestEdges:
    def test_upsert_normalizes_pair(self, any_store, three_nodes):
        edge = any_store.upsert_edge("n2", "n1", 0.6, EdgeStatus.ACCEPTED, EdgeType.SEMANTIC)
        assert (edge.source_id, edge.target_id) == ("n1", "n2")
        assert any_store.get_edge("n2", "n1").id == edge.id

    def test_one_edge_per_pair(self, any_store, three_nodes):
        first = any_store.upsert_edge("n1", "n2", 0.3, EdgeStatus.SUGGESTED, EdgeType.SEMANTIC)
        second = any_store.upsert_edge("n2", "n1", 0.7, EdgeStatus.ACCEPTED, EdgeType.SEMANTIC)

        edges = any_store.list_edges()
        assert len(edges) == 1
        assert second.id == first.id
        assert edges[0].score == pytest.approx(0.7)
        assert edges[0].status == EdgeStatus.ACCEPTED

    def test_update_overwrites_metadata(self, any_store, three_nodes):
        any_store.upsert_edge("n1", "n3", 0.9, EdgeStatus.ACCEPTED, EdgeType.MANUAL, {"manual": True})
        edge = any_store.upsert_edge("n1", "n3", 0.4, EdgeStatus.SUGGESTED, EdgeType.SEMANTIC)
        assert edge.metadata is None
        assert edge.edge_type == EdgeType.SEMANTIC

    def test_metadata_round_trip(self, any_store, three_nodes):
        any_store.upsert_edge("n1", "n3", 0.9, EdgeStatus.ACCEPTED, EdgeType.MANUAL, {"manual": True})
        assert any_store.get_edge("n3", "n1").metadata == {"manual": True}

    def test_missing_endpoint(self, any_store, three_nodes):
        with pytest.raises(NodeNotFoundError):
            any_store.upsert_edge("n1", "ghost", 0.5, EdgeStatus.ACCEPTED, EdgeType.SEMANTIC)
        assert any_store.list_edges() == []

    def test_self_loop_rejected(self, any_store, three_nodes):
        with pytest.raises(LinkError) as exc_info:
            any_store.upsert_edge("n1", "n1", 1.0, EdgeStatus.ACCEPTED, EdgeType.MANUAL)
        assert exc_info.value.code == ErrorCode.EDGE_SELF_REFERENCE
        assert any_store.list_edges() == []

    def test_list_filters_and_order(self, any_store, three_nodes):
        any_store.upsert_edge("n1", "n2", 0.3, EdgeStatus.SUGGESTED, EdgeType.SEMANTIC)
        any_store.upsert_edge("n1", "n3", 0.8, EdgeStatus.ACCEPTED, EdgeType.SEMANTIC)
        any_store.upsert_edge("n2", "n3", 0.6, EdgeStatus.ACCEPTED, EdgeType.MANUAL)

        assert [e.score for e in any_store.list_edges()] == pytest.approx([0.8, 0.6, 0.3])
        assert [e.pair for e in any_store.list_edges(status=EdgeStatus.SUGGESTED)] == [("n1", "n2")]
        assert [e.pair for e in any_store.list_edges(edge_type=EdgeType.MANUAL)] == [("n2", "n3")]
        assert {e.pair for e in any_store.list_edges(node_id="n1")} == {("n1", "n2"), ("n1", "n3")}
        assert len(any_store.list_edges(min_score=0.6)) == 2

    def test_delete_edge(self, any_store, three_nodes):
        any_store.upsert_edge("n1", "n2", 0.3, EdgeStatus.SUGGESTED, EdgeType.SEMANTIC)
        assert any_store.delete_edge("n2", "n1") is True
        assert any_store.get_edge("n1", "n2") is None
        assert any_store.delete_edge("n1", "n2") is False

    def test_promote_suggestions(self, any_store, three_nodes):
        any_store.upsert_edge("n1", "n2", 0.45, EdgeStatus.SUGGESTED, EdgeType.SEMANTIC)
        any_store.upsert_edge("n1", "n3", 0.30, EdgeStatus.SUGGESTED, EdgeType.SEMANTIC)
        any_store.upsert_edge("n2", "n3", 0.90, EdgeStatus.ACCEPTED, EdgeType.SEMANTIC)

        assert any_store.promote_suggestions(0.4) == 1
        assert any_store.get_edge("n1", "n2").status == EdgeStatus.ACCEPTED
        assert any_store.get_edge("n1", "n3").status == EdgeStatus.SUGGESTED


# =============================================================================
# Codec and corrupt rows
# =============================================================================


class TestCodec:
    def test_embedding_round_trip(self):
        vector = [0.25, -1.5, 3.0]
        assert codec.decode_embedding(codec.encode_embedding(vector)) == vector

    def test_empty_embedding_encodes_as_null(self):
        assert codec.encode_embedding([]) is None
        assert codec.encode_embedding(None) is None

    def test_truncated_blob(self):
        with pytest.raises(DataShapeError) as exc_info:
            codec.decode_embedding(b"\x00" * 12)
        assert exc_info.value.field == "embedding"
        assert exc_info.value.code == ErrorCode.DATA_SHAPE_INVALID

    def test_non_finite_values(self):
        blob = np.asarray([1.0, math.nan], dtype="<f8").tobytes()
        with pytest.raises(DataShapeError):
            codec.decode_embedding(blob)

    @pytest.mark.parametrize("raw", ['{"a": 1}', '["a", 2]', "not json", None])
    def test_bad_tags(self, raw):
        with pytest.raises(DataShapeError) as exc_info:
            codec.decode_tags(raw)
        assert exc_info.value.field == "tags"

    @pytest.mark.parametrize("raw", ['["graph"]', '{"graph": -1}', '{"graph": 1.5}', '{"graph": true}'])
    def test_bad_token_counts(self, raw):
        with pytest.raises(DataShapeError):
            codec.decode_token_counts(raw)

    def test_bad_metadata(self):
        with pytest.raises(DataShapeError):
            codec.decode_metadata("[1, 2]")
        assert codec.decode_metadata(None) is None

    def test_data_shape_error_is_storage_error(self):
        assert issubclass(DataShapeError, StorageError)


class TestCorruptRows:
    def _insert_raw(self, store: SQLGraphStore, **overrides):
        now = utc_now()
        values = dict(
            id="bad",
            title="Broken",
            body="",
            tags="[]",
            token_counts="{}",
            embedding=None,
            created_at=now,
            updated_at=now,
            is_chunk=False,
        )
        values.update(overrides)
        with store.session_factory() as session:
            session.add(DBNode(**values))
            session.commit()

    def test_corrupt_tags_surface_on_list(self, sql_store):
        self._insert_raw(sql_store, tags="not json")
        with pytest.raises(DataShapeError) as exc_info:
            sql_store.list_all_nodes()
        assert exc_info.value.field == "tags"

    def test_corrupt_embedding_surfaces_on_get(self, sql_store):
        self._insert_raw(sql_store, embedding=b"\x01\x02\x03\x04\x05")
        with pytest.raises(DataShapeError) as exc_info:
            sql_store.get_node("bad")
        assert exc_info.value.field == "embedding"

    def test_negative_token_count(self, sql_store):
        self._insert_raw(sql_store, token_counts='{"graph": -3}')
        with pytest.raises(DataShapeError):
            sql_store.list_all_nodes()
