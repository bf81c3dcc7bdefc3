"""Semantic search over the node corpus."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, List, Optional

from forest_core.models.schema import Node, SemanticSearchResult
from forest_core.observability import timed_operation
from forest_core.services.scoring import cosine_embeddings

if TYPE_CHECKING:
    from forest_core.services.embedding_service import EmbeddingService
    from forest_core.storage.base import GraphStore

logger = logging.getLogger(__name__)


class SearchService:
    """Ranks nodes against free-text queries by embedding similarity."""

    def __init__(
        self,
        embedding_service: EmbeddingService,
        store: Optional[GraphStore] = None,
    ):
        """Initialize the search service.

        Args:
            embedding_service: Embeds the query text.
            store: Source of the corpus when a search is not given one.
        """
        self._embedding_service = embedding_service
        self.store = store

    def semantic_search(
        self,
        query: str,
        corpus: Optional[Iterable[Node]] = None,
        limit: int = 10,
        min_score: Optional[float] = None,
        tags: Optional[List[str]] = None,
        offset: int = 0,
    ) -> List[SemanticSearchResult]:
        """Search nodes by cosine similarity between query and node embeddings.

        Returns an empty list when the provider yields no query vector
        (disabled provider or blank query). Nodes without an embedding are
        left out rather than scored as zero. Ties keep corpus order.

        Args:
            query: Natural language search query.
            corpus: Nodes to rank. Defaults to ``store.list_all_nodes()``.
            limit: Maximum number of results to return.
            min_score: Drop results with similarity below this value.
            tags: Only rank nodes carrying all of these tags.
            offset: Number of top results to skip (for paging).

        Returns:
            List of SemanticSearchResult, most similar first.

        Raises:
            EmbeddingError: If embedding the query fails.
        """
        with timed_operation("semantic_search", limit=limit) as op:
            query_vector = self._embedding_service.embed_text(query)
            if query_vector is None:
                op["result_count"] = 0
                return []

            if corpus is None:
                if self.store is None:
                    raise ValueError("semantic_search needs a corpus or a store")
                corpus = self.store.list_all_nodes()

            required_tags = {t.lower() for t in tags} if tags else set()

            results: List[SemanticSearchResult] = []
            for node in corpus:
                if not node.embedding:
                    continue
                if required_tags and not required_tags.issubset(node.tags):
                    continue
                similarity = cosine_embeddings(query_vector, node.embedding)
                if min_score is not None and similarity < min_score:
                    continue
                results.append(SemanticSearchResult(node=node, similarity=similarity))

            # sort() is stable, so equal similarities keep corpus order
            results.sort(key=lambda r: r.similarity, reverse=True)
            page = results[offset:offset + limit] if limit > 0 else []

            op["result_count"] = len(page)
            logger.debug(
                f"Semantic search matched {len(results)} nodes, returning {len(page)}"
            )
            return page
