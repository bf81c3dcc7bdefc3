"""Auto-linking: score a node against the corpus and write edges.

Every new node is compared with every other node (a deliberate full scan;
the hybrid score has no single sortable key to index on). Pairs that
classify as accepted or suggested are upserted as semantic edges; discarded
pairs are not written. Upserts overwrite, so re-running a pass is safe and
a pass interrupted midway can simply be run again.
"""
import logging
from typing import List, Optional

from forest_core.exceptions import ErrorCode, LinkError, NodeNotFoundError
from forest_core.models.schema import (Edge, EdgeExplanation,
                                       EdgeStatus, EdgeType, LinkingResult, Node)
from forest_core.observability import timed_operation, traced
from forest_core.services.scoring import (ScoreThresholds, classify_score,
                                          compute_score, normalize_edge_pair)
from forest_core.storage.base import GraphStore

logger = logging.getLogger(__name__)


class LinkingService:
    """Creates and maintains scored edges in a graph store.

    Args:
        store: The GraphStore edges are written to and nodes read from.
        thresholds: Classification thresholds. Defaults to the configured ones.
    """

    def __init__(self, store: GraphStore, thresholds: Optional[ScoreThresholds] = None):
        self.store = store
        self.thresholds = thresholds or ScoreThresholds.from_config()

    def auto_link_node(
        self, new_node: Node, corpus: Optional[List[Node]] = None
    ) -> LinkingResult:
        """Link ``new_node`` to every related node in the corpus.

        Args:
            new_node: The node to link. It may or may not be in the corpus;
                it is never paired with itself.
            corpus: Nodes to compare against. Defaults to
                ``store.list_all_nodes()``.

        Returns:
            Counts of accepted and suggested edges written.

        Raises:
            StorageError: The first storage failure; edges already written stay.
        """
        with timed_operation("auto_link_node", node_id=new_node.id) as op:
            if corpus is None:
                corpus = self.store.list_all_nodes()

            result = LinkingResult()
            for other in corpus:
                if other.id == new_node.id:
                    continue
                scored = compute_score(new_node, other)
                status = classify_score(scored.score, self.thresholds).to_status()
                if status is None:
                    continue

                source_id, target_id = normalize_edge_pair(new_node.id, other.id)
                self.store.upsert_edge(
                    source_id,
                    target_id,
                    scored.score,
                    status,
                    EdgeType.SEMANTIC,
                    None,
                )
                if status is EdgeStatus.ACCEPTED:
                    result.accepted += 1
                else:
                    result.suggested += 1

            op["accepted"] = result.accepted
            op["suggested"] = result.suggested
            logger.info(
                f"Linked {new_node.id}: {result.accepted} accepted, "
                f"{result.suggested} suggested (corpus={len(corpus)})"
            )
            return result

    def rescore_all(self) -> LinkingResult:
        """Re-run auto-linking for every node in the store.

        Each unordered pair is scored twice (once from each side) but,
        because upserts overwrite, ends up with a single edge. Counts are
        the totals of the individual passes.
        """
        nodes = self.store.list_all_nodes()
        total = LinkingResult()
        with timed_operation("rescore_all", nodes=len(nodes)):
            for node in nodes:
                total.merge(self.auto_link_node(node, nodes))
        return total

    def _require_node(self, node_id: str) -> Node:
        node = self.store.get_node(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    @traced("explain_pair")
    def explain_pair(self, node_a_id: str, node_b_id: str) -> EdgeExplanation:
        """Break down the hybrid score for two stored nodes.

        Raises:
            NodeNotFoundError: If either node does not exist.
        """
        node_a = self._require_node(node_a_id)
        node_b = self._require_node(node_b_id)
        source_id, target_id = normalize_edge_pair(node_a.id, node_b.id)

        result = compute_score(node_a, node_b)
        return EdgeExplanation(
            source_id=source_id,
            target_id=target_id,
            result=result,
            classification=classify_score(result.score, self.thresholds),
            auto_accept_threshold=self.thresholds.auto_accept,
            suggestion_threshold=self.thresholds.suggestion,
            stored_edge=self.store.get_edge(source_id, target_id),
        )

    def create_manual_edge(
        self, node_a_id: str, node_b_id: str, score: Optional[float] = None
    ) -> Edge:
        """Connect two nodes by hand, regardless of their score.

        The edge is stored as accepted with type ``manual``. If ``score`` is
        omitted the current hybrid score is recorded.

        Raises:
            LinkError: If both IDs name the same node.
            NodeNotFoundError: If either node does not exist.
        """
        if node_a_id == node_b_id:
            raise LinkError(
                "Cannot link a node to itself",
                source_id=node_a_id,
                target_id=node_b_id,
                code=ErrorCode.EDGE_SELF_REFERENCE,
            )
        node_a = self._require_node(node_a_id)
        node_b = self._require_node(node_b_id)
        if score is None:
            score = compute_score(node_a, node_b).score

        source_id, target_id = normalize_edge_pair(node_a.id, node_b.id)
        edge = self.store.upsert_edge(
            source_id,
            target_id,
            score,
            EdgeStatus.ACCEPTED,
            EdgeType.MANUAL,
            {"manual": True},
        )
        logger.info(f"Manual edge {source_id} <-> {target_id} (score={score:.3f})")
        return edge
