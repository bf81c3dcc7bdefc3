"""Capture pipeline: raw text in, stored and linked node out."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, List, Optional

from forest_core.models.schema import CaptureResult, LinkingResult, Node
from forest_core.observability import timed_operation
from forest_core.services.tagging import DEFAULT_TAG_LIMIT, extract_tags
from forest_core.services.text import pick_title, tokenize

if TYPE_CHECKING:
    from forest_core.services.embedding_service import EmbeddingService
    from forest_core.services.linking_service import LinkingService
    from forest_core.storage.base import GraphStore

logger = logging.getLogger(__name__)


def normalize_user_tags(tags: Iterable[str]) -> List[str]:
    """Trim, lower-case and deduplicate user tags, dropping empty ones.

    A single string is treated as a comma-separated list.
    """
    if isinstance(tags, str):
        tags = tags.split(",")
    seen = {}
    for tag in tags:
        cleaned = tag.strip().lower()
        if cleaned:
            seen.setdefault(cleaned, None)
    return list(seen)


class CaptureService:
    """Builds nodes from raw text and links them into the graph.

    Args:
        store: Where new nodes are inserted.
        embedding_service: Embeds each node's title and body.
        linking_service: Runs the auto-linking pass after insertion.
        tag_limit: Default maximum number of extracted lexical tags.
    """

    def __init__(
        self,
        store: GraphStore,
        embedding_service: EmbeddingService,
        linking_service: LinkingService,
        tag_limit: int = DEFAULT_TAG_LIMIT,
    ):
        self.store = store
        self.embedding_service = embedding_service
        self.linking_service = linking_service
        self.tag_limit = tag_limit

    def build_node(
        self,
        body: str,
        title: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
        tag_limit: Optional[int] = None,
    ) -> Node:
        """Derive title, tokens, tags and embedding for a new node without storing it."""
        chosen_title = pick_title(body, title)
        token_counts = tokenize(body)

        user_tags = normalize_user_tags(tags) if tags is not None else []
        if user_tags:
            node_tags = user_tags
        else:
            limit = self.tag_limit if tag_limit is None else tag_limit
            node_tags = extract_tags(f"{chosen_title}\n{body}", token_counts, limit)

        return Node(
            title=chosen_title,
            body=body,
            tags=node_tags,
            token_counts=token_counts,
            embedding=self.embedding_service.embed_node(chosen_title, body),
        )

    def capture(
        self,
        body: str,
        title: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
        auto_link: bool = True,
        tag_limit: Optional[int] = None,
    ) -> CaptureResult:
        """Create a node from raw text, store it and optionally auto-link it.

        Args:
            body: The note text.
            title: Explicit title; otherwise chosen by ``pick_title``.
            tags: User tags (list or comma-separated string). When none are
                given, tags are extracted from the title and body.
            auto_link: Run the auto-linking pass against the whole corpus.
            tag_limit: Maximum number of extracted lexical tags; defaults
                to the service setting.

        Raises:
            EmbeddingError: If the embedding provider fails; nothing is stored.
            StorageError: If the insert or an edge write fails.
        """
        with timed_operation("capture", auto_link=auto_link) as op:
            node = self.build_node(body, title=title, tags=tags, tag_limit=tag_limit)
            self.store.insert_node(node)
            op["node_id"] = node.id

            linking = LinkingResult()
            if auto_link:
                linking = self.linking_service.auto_link_node(node)

            logger.info(
                f"Captured node {node.id} '{node.title[:50]}' "
                f"(tags={node.tags}, embedded={node.has_embedding}, "
                f"accepted={linking.accepted}, suggested={linking.suggested})"
            )
            return CaptureResult(node=node, linking=linking)
