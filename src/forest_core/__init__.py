"""
Forest Core - the relevance engine behind the Forest knowledge graph.
This package decides which pairs of short notes become graph edges, using a
hybrid of lexical signals (tokens, tags, titles) and embedding similarity,
and ranks notes against free-text queries.

This version uses synchronous operations.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("forest-core")
except PackageNotFoundError:
    __version__ = "0.3.0"
