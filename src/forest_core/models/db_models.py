"""SQLAlchemy database models for the reference Forest graph store."""
import datetime
from typing import Optional

from sqlalchemy import (Boolean, Column, DateTime, Float, ForeignKey, Integer,
                        LargeBinary, String, Text, UniqueConstraint, create_engine,
                        event)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from forest_core.config import config
from forest_core.models.schema import EdgeStatus, EdgeType

# Create base class for SQLAlchemy models
Base = declarative_base()


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class DBNode(Base):
    """Database model for a node.

    Tags and token counts are JSON text; the embedding is a packed
    little-endian float64 blob (see forest_core.storage.codec).
    """
    __tablename__ = "nodes"
    id = Column(String(64), primary_key=True, index=True)
    title = Column(Text, nullable=False)
    body = Column(Text, nullable=False, default="")
    tags = Column(Text, nullable=False, default="[]")
    token_counts = Column(Text, nullable=False, default="{}")
    embedding = Column(LargeBinary, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, nullable=False, index=True)
    is_chunk = Column(Boolean, default=False, nullable=False)
    parent_document_id = Column(String(64), nullable=True)
    chunk_order = Column(Integer, nullable=True)

    def __repr__(self) -> str:
        """Return string representation of node."""
        return f"<Node(id='{self.id}', title='{self.title}')>"


class DBEdge(Base):
    """Database model for an undirected edge (source_id < target_id)."""
    __tablename__ = "edges"
    id = Column(String(64), primary_key=True)
    source_id = Column(String(64), ForeignKey("nodes.id", ondelete="CASCADE"), nullable=False, index=True)
    target_id = Column(String(64), ForeignKey("nodes.id", ondelete="CASCADE"), nullable=False, index=True)
    score = Column(Float, nullable=False)
    status = Column(String(20), default=EdgeStatus.SUGGESTED.value, nullable=False, index=True)
    edge_type = Column(String(20), default=EdgeType.SEMANTIC.value, nullable=False)
    metadata_json = Column(Text, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, nullable=False)

    __table_args__ = (
        # One stored edge per unordered pair
        UniqueConstraint('source_id', 'target_id', name='unique_edge_pair'),
    )

    def __repr__(self) -> str:
        """Return string representation of edge."""
        return (
            f"<Edge(source='{self.source_id}', target='{self.target_id}', "
            f"score={self.score:.3f}, status='{self.status}')>"
        )


def create_db_engine(db_url: Optional[str] = None) -> Engine:
    """Create an engine with the SQLite settings the store relies on.

    - WAL journal and NORMAL synchronous mode for file databases
    - foreign keys on, so deleting a node drops its edges
    - StaticPool for in-memory databases so every session sees the same data
    """
    url = db_url or config.get_db_url()

    if url in ("sqlite://", "sqlite:///:memory:"):
        engine = create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=5,
            max_overflow=10,
            pool_timeout=30,
            pool_recycle=3600,
            pool_pre_ping=True,
            connect_args={"check_same_thread": False},
        )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def init_db(db_url: Optional[str] = None) -> Engine:
    """Create the engine and make sure the tables exist."""
    engine = create_db_engine(db_url)
    Base.metadata.create_all(engine)
    return engine


def get_session_factory(engine: Optional[Engine] = None) -> sessionmaker:
    """Get a session factory for the database."""
    if engine is None:
        engine = init_db()
    return sessionmaker(bind=engine)
