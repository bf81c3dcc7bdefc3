"""Common test fixtures for the Forest relevance engine."""

import tempfile
from pathlib import Path

import pytest

from forest_core.config import DEFAULT_AUTO_ACCEPT, DEFAULT_SUGGESTION_THRESHOLD, config
from forest_core.models.db_models import init_db
from forest_core.models.schema import Node
from forest_core.observability import metrics
from forest_core.services.capture_service import CaptureService
from forest_core.services.embedding_service import EmbeddingService
from forest_core.services.embedding_types import EmbeddingProviderKind
from forest_core.services.linking_service import LinkingService
from forest_core.services.mock_provider import MockEmbeddingProvider
from forest_core.services.scoring import ScoreThresholds
from forest_core.services.search_service import SearchService
from forest_core.services.text import tokenize
from forest_core.storage.memory_store import InMemoryGraphStore
from forest_core.storage.sqlite_store import SQLGraphStore
from tests.fakes import FakeEmbeddingProvider


@pytest.fixture
def temp_dir():
    """Create a temporary directory for databases and logs."""
    with tempfile.TemporaryDirectory() as d:
        yield Path(d)


@pytest.fixture(autouse=True)
def test_config(monkeypatch):
    """Pin thresholds and provider selection so the host environment can't leak in."""
    monkeypatch.setattr(config, "auto_accept_threshold", DEFAULT_AUTO_ACCEPT)
    monkeypatch.setattr(config, "suggestion_threshold", DEFAULT_SUGGESTION_THRESHOLD)
    monkeypatch.setattr(config, "embed_provider", "mock")
    monkeypatch.setattr(config, "openai_api_key", None)
    yield config


@pytest.fixture(autouse=True)
def _reset_metrics():
    """Start every test with empty operation metrics."""
    metrics.reset()
    yield
    metrics.set_metrics_file(None)
    metrics.reset()


# =============================================================================
# Node Factory
# =============================================================================


@pytest.fixture
def make_node():
    """Build a Node whose token counts come from tokenize(body)."""

    def _make(title, body="", tags=None, embedding=None, node_id=None):
        kwargs = {}
        if node_id is not None:
            kwargs["id"] = node_id
        return Node(
            title=title,
            body=body,
            tags=list(tags or []),
            token_counts=tokenize(body),
            embedding=embedding,
            **kwargs,
        )

    return _make


# =============================================================================
# Stores
# =============================================================================


@pytest.fixture
def memory_store():
    return InMemoryGraphStore()


@pytest.fixture
def sql_store():
    """SQL store over a private in-memory SQLite database."""
    engine = init_db("sqlite://")
    yield SQLGraphStore(engine=engine)
    engine.dispose()


@pytest.fixture(params=["memory", "sql"])
def any_store(request):
    """Run a test against both reference stores."""
    if request.param == "memory":
        yield InMemoryGraphStore()
    else:
        engine = init_db("sqlite://")
        yield SQLGraphStore(engine=engine)
        engine.dispose()


# =============================================================================
# Shared Embedding Test Fixtures
# =============================================================================


@pytest.fixture
def fake_embedder():
    """Create a FakeEmbeddingProvider (8-dim)."""
    return FakeEmbeddingProvider(dim=8)


@pytest.fixture
def fake_embedding_service(fake_embedder):
    """EmbeddingService over the fake provider, posing as the local model."""
    return EmbeddingService(provider=fake_embedder, kind=EmbeddingProviderKind.LOCAL)


@pytest.fixture
def mock_embedding_service():
    """EmbeddingService over the deterministic FNV-1a mock provider."""
    return EmbeddingService(provider=MockEmbeddingProvider(), kind=EmbeddingProviderKind.MOCK)


@pytest.fixture
def thresholds():
    return ScoreThresholds(auto_accept=0.5, suggestion=0.25)


@pytest.fixture
def linking_service(memory_store, thresholds):
    return LinkingService(memory_store, thresholds)


@pytest.fixture
def search_service(mock_embedding_service, memory_store):
    return SearchService(mock_embedding_service, memory_store)


@pytest.fixture
def capture_service(memory_store, mock_embedding_service, linking_service):
    return CaptureService(memory_store, mock_embedding_service, linking_service)
