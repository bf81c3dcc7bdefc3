"""Storage contract consumed by the relevance engine.

The engine never talks to a database directly; it needs a way to list
every node and a way to upsert an edge for an unordered node pair. The
remaining methods are what the reference stores offer on top of that for
the capture, explain and review flows.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from forest_core.models.schema import Edge, EdgeStatus, EdgeType, Node


@runtime_checkable
class GraphStore(Protocol):
    """Contract for node and edge storage."""

    def list_all_nodes(self) -> List[Node]:
        """Return every node, including nodes without an embedding."""
        ...

    def upsert_edge(
        self,
        source_id: str,
        target_id: str,
        score: float,
        status: EdgeStatus,
        edge_type: EdgeType,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Edge:
        """Insert or overwrite the single edge for the unordered pair.

        Calling this repeatedly for the same pair (in either order) updates
        score, status, type and metadata in place and never creates a
        second edge.
        """
        ...

    def insert_node(self, node: Node) -> Node:
        """Persist a new node."""
        ...

    def get_node(self, node_id: str) -> Optional[Node]:
        """Get a node by exact ID, or None."""
        ...

    def get_edge(self, source_id: str, target_id: str) -> Optional[Edge]:
        """Get the edge for an unordered pair, or None."""
        ...

    def list_edges(
        self,
        status: Optional[EdgeStatus] = None,
        edge_type: Optional[EdgeType] = None,
        node_id: Optional[str] = None,
        min_score: Optional[float] = None,
    ) -> List[Edge]:
        """List edges matching every given filter, highest score first."""
        ...

    def delete_edge(self, source_id: str, target_id: str) -> bool:
        """Delete the edge for an unordered pair. Returns True if one existed."""
        ...

    def promote_suggestions(self, min_score: float) -> int:
        """Mark suggested edges with ``score >= min_score`` as accepted.

        Returns:
            Number of edges promoted.
        """
        ...
