"""Type contracts for embedding providers.

Defines the structural contract that the local ONNX provider, the remote
API provider, the mock provider and test fakes all satisfy, plus the closed
set of provider kinds selectable from configuration.

This module is importable without numpy installed (annotations are
deferred via __future__). Actual providers require numpy at runtime.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    import numpy as np

logger = logging.getLogger(__name__)


class EmbeddingProviderKind(str, Enum):
    """The four embedding strategies. The set is closed."""

    LOCAL = "local"
    REMOTE = "remote"
    MOCK = "mock"
    NONE = "none"

    @property
    def dimension(self) -> int:
        """Vector length produced by this kind's default model."""
        return _DIMENSIONS[self]

    @classmethod
    def parse(cls, raw: Optional[str]) -> "EmbeddingProviderKind":
        """Resolve a configuration value to a provider kind.

        Case-insensitive. Unset or blank selects ``LOCAL``. Unknown values
        select ``MOCK`` and log a warning rather than failing.
        """
        if raw is None or not raw.strip():
            return cls.LOCAL
        value = raw.strip().lower()
        kind = _ALIASES.get(value)
        if kind is None:
            logger.warning(
                f"Unrecognized embedding provider {raw!r}; falling back to the mock provider"
            )
            return cls.MOCK
        return kind


_DIMENSIONS = {
    EmbeddingProviderKind.LOCAL: 384,
    EmbeddingProviderKind.REMOTE: 1536,
    EmbeddingProviderKind.MOCK: 384,
    EmbeddingProviderKind.NONE: 0,
}

_ALIASES = {
    "local": EmbeddingProviderKind.LOCAL,
    "transformers": EmbeddingProviderKind.LOCAL,
    "xenova": EmbeddingProviderKind.LOCAL,
    "openai": EmbeddingProviderKind.REMOTE,
    "remote": EmbeddingProviderKind.REMOTE,
    "mock": EmbeddingProviderKind.MOCK,
    "none": EmbeddingProviderKind.NONE,
    "off": EmbeddingProviderKind.NONE,
    "disabled": EmbeddingProviderKind.NONE,
}


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Contract for embedding text into dense vectors."""

    @property
    def dimension(self) -> int:
        """Dimensionality of produced vectors."""
        ...

    def load(self) -> None:
        """Load model or open client. May be called multiple times (idempotent)."""
        ...

    def unload(self) -> None:
        """Release model or client. May be called multiple times (idempotent)."""
        ...

    @property
    def is_loaded(self) -> bool:
        """Whether the provider is ready to embed without further setup."""
        ...

    def embed(self, text: str) -> np.ndarray:
        """Embed a single non-blank text into a dense vector.

        Args:
            text: Input text to embed.

        Returns:
            1-D numpy array of shape (dimension,).
        """
        ...
