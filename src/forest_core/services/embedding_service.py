"""Embedding service for hybrid scoring and semantic search.

Wraps exactly one embedding strategy (local model, remote API, mock, or
none) behind ``embed_text``/``embed_node``. Construct one service at
startup and hand it to every consumer; there is no module-level instance.

The local model is expensive to load: it is loaded on first use behind a
lock, exactly once even under concurrent first calls, and kept for the
life of the service. Local inference calls are serialized through the
same lock.

Usage:
    service = EmbeddingService.from_config(config)
    vector = service.embed_node("Title", "Body text")
    service.shutdown()  # Release the model / HTTP client
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, List, Optional

import numpy as np

from forest_core.exceptions import EmbeddingError, ErrorCode
from forest_core.observability import timed_operation
from forest_core.services.embedding_types import EmbeddingProviderKind

if TYPE_CHECKING:
    from forest_core.config import ForestConfig
    from forest_core.services.embedding_types import EmbeddingProvider

logger = logging.getLogger(__name__)


class EmbeddingService:
    """Turns text into optional embedding vectors using one provider.

    Thread-safe: provider loading is guarded by a lock with a
    double-check, so concurrent first calls trigger a single load.

    Args:
        provider: An EmbeddingProvider implementation. Must be None for
            ``EmbeddingProviderKind.NONE`` and set for every other kind.
        kind: Which strategy ``provider`` implements.
    """

    def __init__(
        self,
        provider: Optional[EmbeddingProvider] = None,
        kind: EmbeddingProviderKind = EmbeddingProviderKind.LOCAL,
    ) -> None:
        if provider is None and kind is not EmbeddingProviderKind.NONE:
            raise ValueError(f"A provider is required for kind {kind.value!r}")
        if provider is not None and kind is EmbeddingProviderKind.NONE:
            raise ValueError("The 'none' kind does not take a provider")
        self._provider = provider
        self._kind = kind

        # Thread safety
        self._lock = threading.Lock()
        # Local inference goes through the lock too; remote and mock do not need it
        self._serialize_inference = kind is EmbeddingProviderKind.LOCAL

    # =========================================================================
    # Construction
    # =========================================================================

    @classmethod
    def from_config(cls, cfg: Optional[ForestConfig] = None) -> "EmbeddingService":
        """Build the service selected by ``cfg.embed_provider``.

        Raises:
            ConfigurationError: If the remote provider is selected without
                an API key.
        """
        if cfg is None:
            from forest_core.config import config as cfg

        kind = EmbeddingProviderKind.parse(cfg.embed_provider)

        if kind is EmbeddingProviderKind.NONE:
            provider = None
        elif kind is EmbeddingProviderKind.MOCK:
            from forest_core.services.mock_provider import MockEmbeddingProvider

            provider = MockEmbeddingProvider()
        elif kind is EmbeddingProviderKind.REMOTE:
            from forest_core.services.remote_provider import (
                DEFAULT_REMOTE_MODEL, RemoteEmbeddingProvider)

            provider = RemoteEmbeddingProvider(
                api_key=cfg.openai_api_key,
                model=cfg.embed_model or DEFAULT_REMOTE_MODEL,
                api_base=cfg.embed_api_base,
                timeout=cfg.remote_timeout,
            )
        else:
            from forest_core.services.onnx_providers import (
                DEFAULT_LOCAL_MODEL, OnnxEmbeddingProvider)

            provider = OnnxEmbeddingProvider(
                model_id=cfg.embed_model or DEFAULT_LOCAL_MODEL,
                max_length=cfg.embedding_max_tokens,
                cache_dir=cfg.embedding_model_cache_dir,
                providers=cfg.onnx_providers,
            )

        logger.info(f"Embedding provider: {kind.value}")
        return cls(provider=provider, kind=kind)

    @classmethod
    def disabled(cls) -> "EmbeddingService":
        """A service whose every embed call returns None."""
        return cls(provider=None, kind=EmbeddingProviderKind.NONE)

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def kind(self) -> EmbeddingProviderKind:
        return self._kind

    @property
    def is_enabled(self) -> bool:
        """False for the 'none' provider."""
        return self._provider is not None

    @property
    def dimension(self) -> int:
        """Embedding dimensionality; 0 when disabled."""
        if self._provider is None:
            return 0
        return self._provider.dimension

    @property
    def is_loaded(self) -> bool:
        """Whether the provider is ready without further loading."""
        return self._provider is not None and self._provider.is_loaded

    # =========================================================================
    # Embedding
    # =========================================================================

    def _ensure_loaded(self) -> None:
        """Load the provider if not already loaded. Thread-safe."""
        if self._provider.is_loaded:
            return
        with self._lock:
            if self._provider.is_loaded:
                return  # Double-check after acquiring lock
            try:
                self._provider.load()
                logger.info(f"Embedding provider loaded ({self._kind.value})")
            except EmbeddingError:
                raise
            except Exception as e:
                raise EmbeddingError(
                    f"Failed to load embedding model: {e}",
                    code=ErrorCode.EMBEDDING_MODEL_LOAD_FAILED,
                    operation="load",
                    provider=self._kind.value,
                    original_error=e,
                ) from e

    def _run_provider(self, text: str) -> np.ndarray:
        try:
            if self._serialize_inference:
                with self._lock:
                    return self._provider.embed(text)
            return self._provider.embed(text)
        except EmbeddingError:
            raise
        except Exception as e:
            raise EmbeddingError(
                f"Embedding inference failed: {e}",
                code=ErrorCode.EMBEDDING_INFERENCE_FAILED,
                operation="embed",
                provider=self._kind.value,
                original_error=e,
            ) from e

    def embed_text(self, text: str) -> Optional[List[float]]:
        """Embed ``text``.

        Blank or whitespace-only text returns None without touching the
        provider, as does every call on a disabled service.

        Returns:
            The embedding as a list of floats, or None.

        Raises:
            EmbeddingError: If model loading, the API call, or inference fails.
        """
        if self._provider is None or not text or not text.strip():
            return None

        with timed_operation("embed_text", provider=self._kind.value, chars=len(text)):
            self._ensure_loaded()
            vector = self._run_provider(text)
            return np.asarray(vector, dtype=np.float64).ravel().tolist()

    def embed_node(self, title: str, body: str) -> Optional[List[float]]:
        """Embed a node's title and body as ``title + "\\n" + body``."""
        return self.embed_text(f"{title}\n{body}")

    def shutdown(self) -> None:
        """Release the model or HTTP client held by the provider.

        The service remains usable; the next embed call loads again.
        """
        if self._provider is None:
            return
        with self._lock:
            if self._provider.is_loaded:
                self._provider.unload()
        logger.info("EmbeddingService shut down")
