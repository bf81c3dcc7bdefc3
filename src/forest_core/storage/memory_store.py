"""In-process graph store.

Keeps nodes and edges in dictionaries behind a lock. Used by tests and by
callers that hold their corpus in memory; it honours the same
one-edge-per-pair contract as the SQL store.
"""
import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

from forest_core.exceptions import (ErrorCode, LinkError, NodeNotFoundError,
                                    StorageError)
from forest_core.models.schema import Edge, EdgeStatus, EdgeType, Node, utc_now

logger = logging.getLogger(__name__)


def _pair(a: str, b: str) -> Tuple[str, str]:
    return (a, b) if a <= b else (b, a)


class InMemoryGraphStore:
    """Dictionary-backed GraphStore.

    Returned models are copies, so callers cannot mutate stored state
    without going through the store.
    """

    def __init__(self, nodes: Optional[List[Node]] = None) -> None:
        self._lock = threading.Lock()
        self._nodes: Dict[str, Node] = {}
        self._edges: Dict[Tuple[str, str], Edge] = {}
        for node in nodes or []:
            self.insert_node(node)

    # =========================================================================
    # Nodes
    # =========================================================================

    def insert_node(self, node: Node) -> Node:
        with self._lock:
            if node.id in self._nodes:
                raise StorageError(
                    f"Node with ID '{node.id}' already exists",
                    operation="insert_node",
                    code=ErrorCode.STORAGE_WRITE_FAILED,
                )
            self._nodes[node.id] = node.model_copy(deep=True)
        logger.debug(f"Inserted node {node.id}")
        return node

    def get_node(self, node_id: str) -> Optional[Node]:
        with self._lock:
            node = self._nodes.get(node_id)
            return node.model_copy(deep=True) if node else None

    def list_all_nodes(self) -> List[Node]:
        with self._lock:
            return [n.model_copy(deep=True) for n in self._nodes.values()]

    # =========================================================================
    # Edges
    # =========================================================================

    def upsert_edge(
        self,
        source_id: str,
        target_id: str,
        score: float,
        status: EdgeStatus,
        edge_type: EdgeType,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Edge:
        if source_id == target_id:
            raise LinkError(
                "Cannot link a node to itself",
                source_id=source_id,
                target_id=target_id,
                code=ErrorCode.EDGE_SELF_REFERENCE,
            )
        key = _pair(source_id, target_id)
        with self._lock:
            for node_id in key:
                if node_id not in self._nodes:
                    raise NodeNotFoundError(node_id)

            existing = self._edges.get(key)
            if existing is None:
                edge = Edge(
                    source_id=key[0],
                    target_id=key[1],
                    score=score,
                    status=status,
                    edge_type=edge_type,
                    metadata=metadata,
                )
            else:
                edge = existing.model_copy(
                    update={
                        "score": score,
                        "status": status,
                        "edge_type": edge_type,
                        "metadata": metadata,
                        "updated_at": utc_now(),
                    }
                )
            self._edges[key] = edge
            return edge.model_copy(deep=True)

    def get_edge(self, source_id: str, target_id: str) -> Optional[Edge]:
        with self._lock:
            edge = self._edges.get(_pair(source_id, target_id))
            return edge.model_copy(deep=True) if edge else None

    def list_edges(
        self,
        status: Optional[EdgeStatus] = None,
        edge_type: Optional[EdgeType] = None,
        node_id: Optional[str] = None,
        min_score: Optional[float] = None,
    ) -> List[Edge]:
        with self._lock:
            edges = [
                e for e in self._edges.values()
                if (status is None or e.status == status)
                and (edge_type is None or e.edge_type == edge_type)
                and (node_id is None or node_id in e.pair)
                and (min_score is None or e.score >= min_score)
            ]
            edges.sort(key=lambda e: (-e.score, e.source_id, e.target_id))
            return [e.model_copy(deep=True) for e in edges]

    def delete_edge(self, source_id: str, target_id: str) -> bool:
        with self._lock:
            return self._edges.pop(_pair(source_id, target_id), None) is not None

    def promote_suggestions(self, min_score: float) -> int:
        promoted = 0
        now = utc_now()
        with self._lock:
            for key, edge in self._edges.items():
                if edge.status == EdgeStatus.SUGGESTED and edge.score >= min_score:
                    self._edges[key] = edge.model_copy(
                        update={"status": EdgeStatus.ACCEPTED, "updated_at": now}
                    )
                    promoted += 1
        logger.info(f"Promoted {promoted} suggested edges (min_score={min_score})")
        return promoted
