"""Configuration module for the Forest relevance engine."""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from forest_core import __version__

# Load environment variables from the project root .env file.
# Anchored to __file__ so it works regardless of the process CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# User-level config, shared by every Forest front end
_USER_ENV = Path.home() / ".forest" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)

DEFAULT_AUTO_ACCEPT = 0.5
DEFAULT_SUGGESTION_THRESHOLD = 0.25


def _env_float(name: str, default: float) -> float:
    """Read a float override from the environment.

    Unset, empty or unparseable values fall back to ``default``; the last
    case is logged so a typo in a threshold does not go unnoticed.
    """
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(
            "Ignoring %s=%r (not a number); using default %s", name, raw, default
        )
        return default


def _env_optional_float(name: str) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return float(raw)


class ForestConfig(BaseModel):
    """Configuration for the Forest relevance engine."""

    # Base directory for relative paths
    base_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("FOREST_BASE_DIR", "."))
    )
    # Database used by the reference SQL store
    database_path: Path = Field(
        default_factory=lambda: Path(os.getenv("FOREST_DB_PATH", "data/forest.db"))
    )
    engine_name: str = Field(default=os.getenv("FOREST_ENGINE_NAME", "forest-core"))
    engine_version: str = Field(default=__version__)

    # Embedding provider selector: local | openai | remote | mock | none.
    # Unknown non-empty values degrade to mock (logged when parsed).
    embed_provider: str = Field(
        default_factory=lambda: os.getenv("FOREST_EMBED_PROVIDER", "local")
    )
    # Model override; empty means the provider's default model
    embed_model: Optional[str] = Field(
        default_factory=lambda: os.getenv("FOREST_EMBED_MODEL") or None
    )
    # Credential for the remote provider, supplied out-of-band
    openai_api_key: Optional[str] = Field(
        default_factory=lambda: os.getenv("OPENAI_API_KEY") or None
    )
    embed_api_base: str = Field(
        default_factory=lambda: os.getenv(
            "FOREST_EMBED_API_BASE", "https://api.openai.com/v1"
        )
    )
    # Seconds; None leaves remote calls unbounded (callers impose timeouts)
    remote_timeout: Optional[float] = Field(
        default_factory=lambda: _env_optional_float("FOREST_REMOTE_TIMEOUT")
    )
    embedding_model_cache_dir: Optional[Path] = Field(
        default_factory=lambda: (
            Path(os.getenv("FOREST_EMBED_CACHE_DIR"))
            if os.getenv("FOREST_EMBED_CACHE_DIR")
            else None
        )
    )
    # ONNX execution provider preference: "auto", "cpu", or comma-separated list
    onnx_providers: str = Field(
        default_factory=lambda: os.getenv("FOREST_ONNX_PROVIDERS", "auto")
    )
    embedding_max_tokens: int = Field(
        default_factory=lambda: int(os.getenv("FOREST_EMBED_MAX_TOKENS", "256"))
    )

    # Classification thresholds
    auto_accept_threshold: float = Field(
        default_factory=lambda: _env_float("FOREST_AUTO_ACCEPT", DEFAULT_AUTO_ACCEPT)
    )
    suggestion_threshold: float = Field(
        default_factory=lambda: _env_float(
            "FOREST_SUGGESTION_THRESHOLD", DEFAULT_SUGGESTION_THRESHOLD
        )
    )
    # Maximum number of lexical tags extracted per captured node
    tag_limit: int = Field(
        default_factory=lambda: int(os.getenv("FOREST_TAG_LIMIT", "5"))
    )

    log_level: str = Field(
        default_factory=lambda: os.getenv("FOREST_LOG_LEVEL", "INFO")
    )
    # Operation metrics JSON; None keeps metrics in memory
    metrics_file: Optional[Path] = Field(
        default_factory=lambda: (
            Path(os.getenv("FOREST_METRICS_FILE"))
            if os.getenv("FOREST_METRICS_FILE")
            else None
        )
    )

    @model_validator(mode="after")
    def _validate_thresholds(self) -> "ForestConfig":
        """Reject negative thresholds and warn about an empty suggestion band."""
        if self.auto_accept_threshold < 0:
            raise ValueError("auto_accept_threshold must be >= 0")
        if self.suggestion_threshold < 0:
            raise ValueError("suggestion_threshold must be >= 0")
        if self.tag_limit < 1:
            raise ValueError("tag_limit must be >= 1")
        if self.suggestion_threshold > self.auto_accept_threshold:
            logger.warning(
                "suggestion_threshold (%.3f) is above auto_accept_threshold "
                "(%.3f); no edge will ever be classified as suggested.",
                self.suggestion_threshold,
                self.auto_accept_threshold,
            )
        return self

    def get_absolute_path(self, path: Path) -> Path:
        """Convert a relative path to an absolute path based on base_dir."""
        if path.is_absolute():
            return path
        return self.base_dir / path

    def get_db_url(self) -> str:
        """Get the database URL for SQLite."""
        if str(self.database_path) == ":memory:":
            return "sqlite://"
        db_path = self.get_absolute_path(self.database_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{db_path}"


# Create a global config instance
config = ForestConfig()
