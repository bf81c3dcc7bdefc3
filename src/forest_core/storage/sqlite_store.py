"""SQLAlchemy-backed graph store.

The reference persistence collaborator: one table of nodes, one table of
undirected edges with a unique (source_id, target_id) constraint. Edge
writes use SQLite's ``INSERT ... ON CONFLICT DO UPDATE`` so re-scoring a
pair overwrites it in place.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from forest_core.exceptions import (ErrorCode, LinkError, NodeNotFoundError,
                                    StorageError)
from forest_core.models.db_models import DBEdge, DBNode, get_session_factory, init_db
from forest_core.models.schema import (Edge, EdgeStatus, EdgeType, Node,
                                       ensure_timezone_aware, generate_id, utc_now)
from forest_core.storage import codec

logger = logging.getLogger(__name__)


class SQLGraphStore:
    """GraphStore over a SQLite database.

    Args:
        engine: SQLAlchemy engine. If None, one is created from
            ``config.get_db_url()`` and the tables are created.
    """

    def __init__(self, engine: Optional[Engine] = None):
        self.engine = engine if engine is not None else init_db()
        self.session_factory = get_session_factory(self.engine)

    # =========================================================================
    # Row conversion
    # =========================================================================

    @staticmethod
    def _node_from_row(row: DBNode) -> Node:
        return Node(
            id=row.id,
            title=row.title,
            body=row.body,
            tags=codec.decode_tags(row.tags),
            token_counts=codec.decode_token_counts(row.token_counts),
            embedding=codec.decode_embedding(row.embedding),
            created_at=ensure_timezone_aware(row.created_at),
            updated_at=ensure_timezone_aware(row.updated_at),
            is_chunk=bool(row.is_chunk),
            parent_document_id=row.parent_document_id,
            chunk_order=row.chunk_order,
        )

    @staticmethod
    def _edge_from_row(row: DBEdge) -> Edge:
        return Edge(
            id=row.id,
            source_id=row.source_id,
            target_id=row.target_id,
            score=row.score,
            status=EdgeStatus(row.status),
            edge_type=EdgeType(row.edge_type),
            metadata=codec.decode_metadata(row.metadata_json),
            created_at=ensure_timezone_aware(row.created_at),
            updated_at=ensure_timezone_aware(row.updated_at),
        )

    # =========================================================================
    # Nodes
    # =========================================================================

    def insert_node(self, node: Node) -> Node:
        """Persist a new node.

        Raises:
            StorageError: If a node with the same ID exists or the write fails.
        """
        db_node = DBNode(
            id=node.id,
            title=node.title,
            body=node.body,
            tags=codec.encode_tags(node.tags),
            token_counts=codec.encode_token_counts(node.token_counts),
            embedding=codec.encode_embedding(node.embedding),
            created_at=node.created_at,
            updated_at=node.updated_at,
            is_chunk=node.is_chunk,
            parent_document_id=node.parent_document_id,
            chunk_order=node.chunk_order,
        )
        try:
            with self.session_factory() as session:
                session.add(db_node)
                session.commit()
        except IntegrityError as e:
            raise StorageError(
                f"Node with ID '{node.id}' already exists",
                operation="insert_node",
                code=ErrorCode.STORAGE_WRITE_FAILED,
                original_error=e,
            ) from e
        except SQLAlchemyError as e:
            raise StorageError(
                f"Failed to insert node {node.id}",
                operation="insert_node",
                code=ErrorCode.STORAGE_WRITE_FAILED,
                original_error=e,
            ) from e
        logger.debug(f"Inserted node {node.id}")
        return node

    def get_node(self, node_id: str) -> Optional[Node]:
        with self.session_factory() as session:
            row = session.get(DBNode, node_id)
            return self._node_from_row(row) if row else None

    def list_all_nodes(self) -> List[Node]:
        """Return every node, oldest first.

        Raises:
            DataShapeError: If any stored tags, token counts or embedding
                are malformed.
        """
        with self.session_factory() as session:
            rows = session.scalars(
                select(DBNode).order_by(DBNode.created_at, DBNode.id)
            ).all()
            return [self._node_from_row(row) for row in rows]

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
        if source_id > target_id:
            source_id, target_id = target_id, source_id
        now = utc_now()

        stmt = sqlite_insert(DBEdge).values(
            id=generate_id(),
            source_id=source_id,
            target_id=target_id,
            score=score,
            status=EdgeStatus(status).value,
            edge_type=EdgeType(edge_type).value,
            metadata_json=codec.encode_metadata(metadata),
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["source_id", "target_id"],
            set_={
                "score": stmt.excluded.score,
                "status": stmt.excluded.status,
                "edge_type": stmt.excluded.edge_type,
                "metadata_json": stmt.excluded.metadata_json,
                "updated_at": stmt.excluded.updated_at,
            },
        )

        with self.session_factory() as session:
            for node_id in (source_id, target_id):
                if session.get(DBNode, node_id) is None:
                    raise NodeNotFoundError(node_id)
            try:
                session.execute(stmt)
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                raise StorageError(
                    f"Failed to upsert edge {source_id} <-> {target_id}",
                    operation="upsert_edge",
                    code=ErrorCode.STORAGE_WRITE_FAILED,
                    original_error=e,
                ) from e

            # The row may have been inserted or updated; read back either way
            row = session.scalar(
                select(DBEdge).where(
                    (DBEdge.source_id == source_id) & (DBEdge.target_id == target_id)
                )
            )
            return self._edge_from_row(row)

    def get_edge(self, source_id: str, target_id: str) -> Optional[Edge]:
        if source_id > target_id:
            source_id, target_id = target_id, source_id
        with self.session_factory() as session:
            row = session.scalar(
                select(DBEdge).where(
                    (DBEdge.source_id == source_id) & (DBEdge.target_id == target_id)
                )
            )
            return self._edge_from_row(row) if row else None

    def list_edges(
        self,
        status: Optional[EdgeStatus] = None,
        edge_type: Optional[EdgeType] = None,
        node_id: Optional[str] = None,
        min_score: Optional[float] = None,
    ) -> List[Edge]:
        query = select(DBEdge)
        if status is not None:
            query = query.where(DBEdge.status == EdgeStatus(status).value)
        if edge_type is not None:
            query = query.where(DBEdge.edge_type == EdgeType(edge_type).value)
        if node_id is not None:
            query = query.where(
                (DBEdge.source_id == node_id) | (DBEdge.target_id == node_id)
            )
        if min_score is not None:
            query = query.where(DBEdge.score >= min_score)
        query = query.order_by(
            DBEdge.score.desc(), DBEdge.source_id, DBEdge.target_id
        )

        with self.session_factory() as session:
            return [self._edge_from_row(row) for row in session.scalars(query).all()]

    def delete_edge(self, source_id: str, target_id: str) -> bool:
        if source_id > target_id:
            source_id, target_id = target_id, source_id
        with self.session_factory() as session:
            row = session.scalar(
                select(DBEdge).where(
                    (DBEdge.source_id == source_id) & (DBEdge.target_id == target_id)
                )
            )
            if row is None:
                return False
            session.delete(row)
            session.commit()
            return True

    def promote_suggestions(self, min_score: float) -> int:
        with self.session_factory() as session:
            result = session.execute(
                update(DBEdge)
                .where(
                    (DBEdge.status == EdgeStatus.SUGGESTED.value)
                    & (DBEdge.score >= min_score)
                )
                .values(status=EdgeStatus.ACCEPTED.value, updated_at=utc_now())
            )
            session.commit()
            promoted = result.rowcount or 0
        logger.info(f"Promoted {promoted} suggested edges (min_score={min_score})")
        return promoted
