"""Data models for the Forest relevance engine."""

import datetime
import uuid
from dataclasses import dataclass, field
from datetime import timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


def utc_now() -> datetime.datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Current time with UTC timezone info attached.
    """
    return datetime.datetime.now(timezone.utc)


def ensure_timezone_aware(dt_value: datetime.datetime) -> datetime.datetime:
    """Ensure a datetime is timezone-aware, treating naive datetimes as UTC.

    SQLite hands back naive datetimes; they were written as UTC.
    """
    if dt_value is None:
        return utc_now()
    if dt_value.tzinfo is None:
        return dt_value.replace(tzinfo=timezone.utc)
    return dt_value


def generate_id() -> str:
    """Generate a new node or edge identifier (random UUID4 string)."""
    return str(uuid.uuid4())


class EdgeStatus(str, Enum):
    """Persisted status of an edge. There is no stored 'discard' status."""

    ACCEPTED = "accepted"
    SUGGESTED = "suggested"


class EdgeType(str, Enum):
    """How an edge came to exist."""

    SEMANTIC = "semantic"  # Created by the auto-linker from a hybrid score
    PARENT_CHILD = "parent-child"  # Document to chunk
    SEQUENTIAL = "sequential"  # Chunk to following chunk
    MANUAL = "manual"  # Created explicitly by the user


class Classification(str, Enum):
    """Accept/suggest/discard decision for a hybrid score."""

    ACCEPTED = "accepted"
    SUGGESTED = "suggested"
    DISCARD = "discard"

    def to_status(self) -> Optional[EdgeStatus]:
        """Map to a storable edge status; ``DISCARD`` maps to None."""
        if self is Classification.ACCEPTED:
            return EdgeStatus.ACCEPTED
        if self is Classification.SUGGESTED:
            return EdgeStatus.SUGGESTED
        return None


class Node(BaseModel):
    """A short text note with its derived lexical and semantic data."""

    id: str = Field(default_factory=generate_id, description="Unique ID of the node")
    title: str = Field(..., description="Title of the node")
    body: str = Field(default="", description="Raw body text")
    tags: List[str] = Field(default_factory=list, description="Topical tags")
    token_counts: Dict[str, int] = Field(
        default_factory=dict,
        description="Normalized token -> frequency, as produced by tokenize()",
    )
    embedding: Optional[List[float]] = Field(
        default=None, description="Embedding vector from the active provider"
    )
    created_at: datetime.datetime = Field(
        default_factory=utc_now, description="When the node was created (UTC)"
    )
    updated_at: datetime.datetime = Field(
        default_factory=utc_now, description="When the node was last updated (UTC)"
    )
    # Chunk metadata is carried through untouched
    is_chunk: bool = Field(default=False)
    parent_document_id: Optional[str] = Field(default=None)
    chunk_order: Optional[int] = Field(default=None)

    model_config = {"validate_assignment": True, "extra": "forbid"}

    @field_validator("created_at", "updated_at")
    @classmethod
    def validate_timestamps(cls, v: datetime.datetime) -> datetime.datetime:
        """Attach UTC to naive timestamps."""
        return ensure_timezone_aware(v)

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)


class Edge(BaseModel):
    """An undirected relation between two nodes.

    The identifier pair is stored in canonical order: the lexicographically
    smaller id is always ``source_id``.
    """

    id: str = Field(default_factory=generate_id, description="Unique ID of the edge")
    source_id: str = Field(..., description="Smaller node ID of the pair")
    target_id: str = Field(..., description="Larger node ID of the pair")
    score: float = Field(..., description="Hybrid score when the edge was written")
    status: EdgeStatus = Field(default=EdgeStatus.SUGGESTED)
    edge_type: EdgeType = Field(default=EdgeType.SEMANTIC)
    metadata: Optional[Dict[str, Any]] = Field(default=None)
    created_at: datetime.datetime = Field(default_factory=utc_now)
    updated_at: datetime.datetime = Field(default_factory=utc_now)

    model_config = {"extra": "forbid"}

    @model_validator(mode="before")
    @classmethod
    def normalize_pair(cls, data: Any) -> Any:
        """Swap source and target so that source_id <= target_id."""
        if isinstance(data, dict):
            source = data.get("source_id")
            target = data.get("target_id")
            if isinstance(source, str) and isinstance(target, str) and source > target:
                data = {**data, "source_id": target, "target_id": source}
        return data

    @model_validator(mode="after")
    def reject_self_loop(self) -> "Edge":
        if self.source_id == self.target_id:
            raise ValueError("An edge cannot connect a node to itself")
        return self

    @field_validator("created_at", "updated_at")
    @classmethod
    def validate_timestamps(cls, v: datetime.datetime) -> datetime.datetime:
        return ensure_timezone_aware(v)

    @property
    def pair(self) -> tuple:
        return (self.source_id, self.target_id)

    def other(self, node_id: str) -> str:
        """Return the endpoint opposite ``node_id``."""
        return self.target_id if node_id == self.source_id else self.source_id


@dataclass(frozen=True)
class ScoreComponents:
    """The four similarity signals and the penalty that produced a score.

    Attributes:
        tag_overlap: Jaccard index of the tag sets.
        token_similarity: Weighted cosine over token-frequency maps.
        title_similarity: Title token overlap cosine.
        embedding_similarity: Floored embedding cosine raised to 1.25.
        penalty: 0.9 when tag overlap and title similarity are both zero, else 1.0.
    """

    tag_overlap: float
    token_similarity: float
    title_similarity: float
    embedding_similarity: float
    penalty: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "tag_overlap": self.tag_overlap,
            "token_similarity": self.token_similarity,
            "title_similarity": self.title_similarity,
            "embedding_similarity": self.embedding_similarity,
            "penalty": self.penalty,
        }


@dataclass(frozen=True)
class ScoreResult:
    """Final hybrid score with its explainable breakdown."""

    score: float
    components: ScoreComponents

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "components": self.components.to_dict()}


@dataclass
class LinkingResult:
    """Tally of edges written by an auto-linking pass."""

    accepted: int = 0
    suggested: int = 0

    @property
    def total(self) -> int:
        return self.accepted + self.suggested

    def merge(self, other: "LinkingResult") -> None:
        """Add another pass's counts into this one."""
        self.accepted += other.accepted
        self.suggested += other.suggested


@dataclass
class EdgeExplanation:
    """Score breakdown for a node pair, as shown by an ``explain`` command.

    Attributes:
        source_id: Smaller node ID of the pair.
        target_id: Larger node ID of the pair.
        result: The computed hybrid score and components.
        classification: Where the score falls against the thresholds.
        auto_accept_threshold: Threshold used for ``ACCEPTED``.
        suggestion_threshold: Threshold used for ``SUGGESTED``.
        stored_edge: The currently stored edge for the pair, if any.
    """

    source_id: str
    target_id: str
    result: ScoreResult
    classification: Classification
    auto_accept_threshold: float
    suggestion_threshold: float
    stored_edge: Optional[Edge] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_id": self.source_id,
            "target_id": self.target_id,
            "score": self.result.score,
            "components": self.result.components.to_dict(),
            "classification": self.classification.value,
            "thresholds": {
                "auto_accept": self.auto_accept_threshold,
                "suggestion": self.suggestion_threshold,
            },
            "stored_edge": self.stored_edge.model_dump(mode="json") if self.stored_edge else None,
        }


@dataclass
class SemanticSearchResult:
    """A corpus node ranked against a query by embedding cosine similarity."""

    node: Node
    similarity: float


@dataclass
class CaptureResult:
    """Outcome of capturing a new note."""

    node: Node
    linking: LinkingResult = field(default_factory=LinkingResult)
