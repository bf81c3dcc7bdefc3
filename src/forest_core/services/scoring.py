"""Hybrid similarity scoring and edge classification.

A node pair is scored from four signals:

- tag overlap: Jaccard index of the tag sets
- token similarity: cosine over token-frequency maps, generic terms x0.4
- title similarity: title-token overlap / sqrt(|A| * |B|)
- embedding similarity: cosine of the embeddings, floored at 0, ** 1.25

combined as ``0.25*token + 0.55*embedding + 0.15*tag + 0.05*title`` and
multiplied by 0.9 when tag overlap and title similarity are both zero.

Nothing in this module raises: missing embeddings, empty tag sets,
dimension mismatches and empty token maps all contribute zero.
"""

import math
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Sequence, Tuple

from forest_core.models.schema import (Classification, Node, ScoreComponents,
                                       ScoreResult)
from forest_core.services.text import token_weight, tokens_from_title

TOKEN_WEIGHT = 0.25
EMBEDDING_WEIGHT = 0.55
TAG_WEIGHT = 0.15
TITLE_WEIGHT = 0.05

EMBEDDING_EXPONENT = 1.25
NO_LEXICAL_OVERLAP_PENALTY = 0.9


@dataclass(frozen=True)
class ScoreThresholds:
    """Classification cut-offs.

    ``score >= auto_accept`` is accepted, ``suggestion <= score <
    auto_accept`` is suggested, anything lower is discarded.
    """

    auto_accept: float = 0.5
    suggestion: float = 0.25

    @classmethod
    def from_config(cls, cfg=None) -> "ScoreThresholds":
        """Read thresholds from a ForestConfig (the global one by default)."""
        if cfg is None:
            from forest_core.config import config as cfg
        return cls(
            auto_accept=cfg.auto_accept_threshold,
            suggestion=cfg.suggestion_threshold,
        )


# =============================================================================
# Component metrics
# =============================================================================

def jaccard(a: Iterable[str], b: Iterable[str]) -> float:
    """|A ∩ B| / |A ∪ B|; two empty sets score 0."""
    set_a, set_b = set(a), set(b)
    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union)


def token_cosine(a: Dict[str, int], b: Dict[str, int]) -> float:
    """Cosine similarity of two token-frequency maps with generic terms down-weighted."""
    dot = mag_a = mag_b = 0.0
    for token in a.keys() | b.keys():
        weight = token_weight(token)
        va = a.get(token, 0) * weight
        vb = b.get(token, 0) * weight
        dot += va * vb
        mag_a += va * va
        mag_b += vb * vb
    if mag_a == 0.0 or mag_b == 0.0:
        return 0.0
    return dot / (math.sqrt(mag_a) * math.sqrt(mag_b))


def title_cosine(a: str, b: str) -> float:
    """Overlap of title tokens normalized by sqrt(|A| * |B|)."""
    tokens_a = tokens_from_title(a)
    tokens_b = tokens_from_title(b)
    if not tokens_a or not tokens_b:
        return 0.0
    set_b = set(tokens_b)
    overlap = sum(1 for token in tokens_a if token in set_b)
    return overlap / math.sqrt(len(tokens_a) * len(tokens_b))


def cosine_embeddings(
    a: Optional[Sequence[float]], b: Optional[Sequence[float]]
) -> float:
    """Cosine similarity of two embeddings, in [-1, 1].

    Missing or empty vectors and zero magnitudes give 0. When lengths
    differ only the shared prefix is compared.
    """
    if not a or not b:
        return 0.0
    dim = min(len(a), len(b))
    dot = mag_a = mag_b = 0.0
    for i in range(dim):
        x, y = a[i], b[i]
        dot += x * y
        mag_a += x * x
        mag_b += y * y
    if mag_a == 0.0 or mag_b == 0.0:
        return 0.0
    return max(-1.0, min(1.0, dot / (math.sqrt(mag_a) * math.sqrt(mag_b))))


# =============================================================================
# Hybrid score
# =============================================================================

def compute_score(a: Node, b: Node) -> ScoreResult:
    """Score how related two nodes are.

    Returns:
        ScoreResult whose components record each signal and the penalty
        that was applied.
    """
    tag_overlap = jaccard(a.tags, b.tags)
    token_similarity = token_cosine(a.token_counts, b.token_counts)
    title_similarity = title_cosine(a.title, b.title)
    raw_embedding = cosine_embeddings(a.embedding, b.embedding)
    embedding_similarity = max(raw_embedding, 0.0) ** EMBEDDING_EXPONENT

    score = (
        TOKEN_WEIGHT * token_similarity
        + EMBEDDING_WEIGHT * embedding_similarity
        + TAG_WEIGHT * tag_overlap
        + TITLE_WEIGHT * title_similarity
    )

    # No tag or title corroboration: embedding proximity alone is discounted
    if tag_overlap == 0.0 and title_similarity == 0.0:
        penalty = NO_LEXICAL_OVERLAP_PENALTY
    else:
        penalty = 1.0
    score *= penalty

    return ScoreResult(
        score=score,
        components=ScoreComponents(
            tag_overlap=tag_overlap,
            token_similarity=token_similarity,
            title_similarity=title_similarity,
            embedding_similarity=embedding_similarity,
            penalty=penalty,
        ),
    )


def classify_score(
    score: float, thresholds: Optional[ScoreThresholds] = None
) -> Classification:
    """Classify a score; a score equal to a threshold lands in the higher tier."""
    if thresholds is None:
        thresholds = ScoreThresholds.from_config()
    if score >= thresholds.auto_accept:
        return Classification.ACCEPTED
    if score >= thresholds.suggestion:
        return Classification.SUGGESTED
    return Classification.DISCARD


def normalize_edge_pair(a: str, b: str) -> Tuple[str, str]:
    """Order two node IDs so the smaller comes first."""
    return (a, b) if a <= b else (b, a)
