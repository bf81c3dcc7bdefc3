"""Startup wiring for the relevance engine.

Builds each service once and passes them to one another explicitly, so
CLI or GUI front ends hold a single ``ForestEngine`` instead of reaching
for module-level singletons.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from forest_core.config import ForestConfig, config
from forest_core.observability import configure_logging, metrics
from forest_core.services.capture_service import CaptureService
from forest_core.services.embedding_service import EmbeddingService
from forest_core.services.linking_service import LinkingService
from forest_core.services.scoring import ScoreThresholds
from forest_core.services.search_service import SearchService
from forest_core.storage.base import GraphStore

logger = logging.getLogger(__name__)


@dataclass
class ForestEngine:
    """The assembled services, sharing one store and one embedding service."""

    config: ForestConfig
    store: GraphStore
    embeddings: EmbeddingService
    linking: LinkingService
    search: SearchService
    capture: CaptureService

    @classmethod
    def from_config(
        cls,
        cfg: Optional[ForestConfig] = None,
        store: Optional[GraphStore] = None,
        embeddings: Optional[EmbeddingService] = None,
        setup_logging: bool = False,
    ) -> "ForestEngine":
        """Assemble an engine.

        Args:
            cfg: Configuration; the global ``config`` by default.
            store: Graph store; a SQLGraphStore on ``cfg.get_db_url()`` by default.
            embeddings: Embedding service; built from ``cfg`` by default.
            setup_logging: Install the rotating file log at ``cfg.log_level``.

        Raises:
            ConfigurationError: If the remote provider is selected without a key.
        """
        cfg = cfg or config
        if setup_logging:
            configure_logging(level=cfg.log_level)
        if cfg.metrics_file is not None:
            metrics.set_metrics_file(cfg.get_absolute_path(cfg.metrics_file))

        if store is None:
            from forest_core.models.db_models import init_db
            from forest_core.storage.sqlite_store import SQLGraphStore

            logger.info(f"Using SQLite database: {cfg.get_db_url()}")
            store = SQLGraphStore(engine=init_db(cfg.get_db_url()))

        if embeddings is None:
            embeddings = EmbeddingService.from_config(cfg)

        linking = LinkingService(store, ScoreThresholds.from_config(cfg))
        return cls(
            config=cfg,
            store=store,
            embeddings=embeddings,
            linking=linking,
            search=SearchService(embeddings, store),
            capture=CaptureService(store, embeddings, linking, tag_limit=cfg.tag_limit),
        )

    def close(self) -> None:
        """Release the embedding model or client and flush metrics if persisted."""
        self.embeddings.shutdown()
        metrics.save_metrics()
