"""Hosted embeddings API provider.

Talks to an OpenAI-compatible ``POST {api_base}/embeddings`` endpoint with
httpx. One request per embed call, no retries; failures surface as
EmbeddingError for the caller to handle.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx
import numpy as np

from forest_core.exceptions import ConfigurationError, EmbeddingError, ErrorCode

logger = logging.getLogger(__name__)

DEFAULT_REMOTE_MODEL = "text-embedding-3-small"
DEFAULT_REMOTE_DIMENSION = 1536
DEFAULT_API_BASE = "https://api.openai.com/v1"


class RemoteEmbeddingProvider:
    """EmbeddingProvider backed by an HTTP embeddings API.

    The credential is checked here, at construction, so a missing key is
    reported at startup rather than on the first capture.

    Args:
        api_key: Bearer token for the API. Required.
        model: Model name sent with each request.
        api_base: Base URL; ``/embeddings`` is appended.
        timeout: Per-request timeout in seconds, or None for no timeout.
        dimension: Expected vector length.
        transport: Optional httpx transport (e.g. ``httpx.MockTransport``).
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = DEFAULT_REMOTE_MODEL,
        api_base: str = DEFAULT_API_BASE,
        timeout: Optional[float] = None,
        dimension: int = DEFAULT_REMOTE_DIMENSION,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        if not api_key or not api_key.strip():
            raise ConfigurationError(
                "OPENAI_API_KEY is required for the remote embedding provider",
                config_key="OPENAI_API_KEY",
                code=ErrorCode.CONFIG_MISSING,
            )
        self._api_key = api_key.strip()
        self._model = model
        self._url = f"{api_base.rstrip('/')}/embeddings"
        self._timeout = timeout
        self._dim = dimension
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    @property
    def dimension(self) -> int:
        return self._dim

    @property
    def model(self) -> str:
        return self._model

    def load(self) -> None:
        """Open the HTTP client."""
        self._ensure_client()

    def _ensure_client(self) -> httpx.Client:
        client = self._client
        if client is None:
            client = httpx.Client(
                timeout=self._timeout,
                transport=self._transport,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
            self._client = client
            logger.info(f"Remote embedding client ready: {self._url} (model={self._model})")
        return client

    def unload(self) -> None:
        """Close the HTTP client."""
        client, self._client = self._client, None
        if client is not None:
            client.close()

    @property
    def is_loaded(self) -> bool:
        return self._client is not None

    def embed(self, text: str) -> np.ndarray:
        # self._client may be cleared by a concurrent unload
        client = self._ensure_client()

        try:
            response = client.post(
                self._url,
                json={"model": self._model, "input": text},
            )
            response.raise_for_status()
            data = response.json()
            embedding = data["data"][0]["embedding"]
        except httpx.HTTPStatusError as e:
            raise EmbeddingError(
                f"Embeddings API returned {e.response.status_code}: {e.response.text[:200]}",
                code=ErrorCode.EMBEDDING_REMOTE_FAILED,
                operation="embed",
                provider="remote",
                original_error=e,
            ) from e
        except httpx.HTTPError as e:
            raise EmbeddingError(
                f"Embeddings API request failed: {e}",
                code=ErrorCode.EMBEDDING_REMOTE_FAILED,
                operation="embed",
                provider="remote",
                original_error=e,
            ) from e
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise EmbeddingError(
                "Embeddings API response did not contain an embedding",
                code=ErrorCode.EMBEDDING_REMOTE_FAILED,
                operation="embed",
                provider="remote",
                original_error=e,
            ) from e

        return np.asarray(embedding, dtype=np.float64)
