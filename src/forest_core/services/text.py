"""Tokenization, stemming and title selection.

Every token-frequency map in the system comes from ``tokenize``; scoring
and tag extraction both assume keys have been through ``normalize_token``.
"""
from collections import Counter
from typing import Dict, List, Optional

UNTITLED = "Untitled Idea"

# Title fallback length when the body has no non-empty line
TITLE_FALLBACK_CHARS = 80

STOPWORDS = frozenset({
    # Articles, prepositions, conjunctions
    "a", "an", "and", "are", "as", "at", "be", "but", "by", "for", "if", "in",
    "into", "is", "it", "no", "not", "of", "on", "or", "such", "that", "the",
    "their", "then", "there", "these", "they", "this", "to", "was", "will",
    "with", "we", "you", "i",
    # Modal, auxiliary, filler
    "can", "could", "should", "would", "may", "might", "must", "also", "very",
    "much", "more", "most", "many", "few", "several", "often", "usually",
    "sometimes", "generally",
    # Connectives
    "from", "after", "before", "between", "across", "along", "within",
    "without", "via", "per", "because", "however", "therefore", "thus",
    # Generic verbs
    "ensure", "include", "including", "includes", "using", "use", "used",
    "based", "make", "made", "makes", "provide", "provides", "provided",
    "create", "creates", "created",
    # Domain-agnostic nouns
    "system", "systems", "process", "processes", "structure", "pattern",
    "patterns", "interface", "method", "methods", "approach", "approaches",
    "way", "ways",
})

# Generic technical terms that say little about topic
GENERIC_TECH = frozenset({
    "flow", "flows", "stream", "streams", "pipe", "pipes",
    "branch", "branches", "terminal", "terminals",
})
GENERIC_TECH_WEIGHT = 0.4


def normalize_token(token: str) -> str:
    """Strip a common English suffix from a lower-cased token.

    Tokens of three characters or fewer are returned unchanged. The first
    matching rule wins:

    ========  ==============  ======================
    suffix    condition       example
    ========  ==============  ======================
    -ies      len > 4         policies -> policy
    -sses                     classes -> class
    -ches     also -shes,     branches -> branch
              -xes, -zes
    -ing      len > 5         flowing -> flow
    -ed       len > 4         flowed -> flow
    -s        len > 4, not    nodes -> node
              -ss/-us/-is
    ========  ==============  ======================
    """
    if len(token) <= 3:
        return token
    if token.endswith("ies") and len(token) > 4:
        return token[:-3] + "y"
    if token.endswith("sses"):
        return token[:-2]
    if token.endswith(("ches", "shes", "xes", "zes")):
        return token[:-2]
    if token.endswith("ing") and len(token) > 5:
        return token[:-3]
    if token.endswith("ed") and len(token) > 4:
        return token[:-2]
    if token.endswith("s") and len(token) > 4 and not token.endswith(("ss", "us", "is")):
        return token[:-1]
    return token


def token_weight(token: str) -> float:
    """Weight of a token in tag ranking and token similarity."""
    return GENERIC_TECH_WEIGHT if token in GENERIC_TECH else 1.0


def _split(text: str, keep_hash: bool) -> List[str]:
    chars = [
        c if c.isalnum() or c.isspace() or (keep_hash and c == "#") else " "
        for c in text.lower()
    ]
    return [
        normalize_token(t)
        for t in "".join(chars).split()
        if len(t) >= 2 and t not in STOPWORDS
    ]


def tokenize_to_list(text: str) -> List[str]:
    """Normalized tokens of ``text`` in order, duplicates kept."""
    return _split(text, keep_hash=True)


def tokenize(text: str) -> Dict[str, int]:
    """Map each normalized token in ``text`` to its frequency."""
    return dict(Counter(tokenize_to_list(text)))


def tokens_from_title(title: str) -> List[str]:
    """Normalized title tokens in order.

    Unlike ``tokenize``, ``#`` is a separator here, so "#rust notes" and
    "rust notes" produce the same title tokens.
    """
    return _split(title, keep_hash=False)


def pick_title(body: str, provided_title: Optional[str] = None) -> str:
    """Choose a display title for a note.

    Uses the provided title if it is non-blank, otherwise the first
    non-blank line of the body, otherwise the start of the body, otherwise
    ``"Untitled Idea"``. The result is always stripped.
    """
    if provided_title is not None and provided_title.strip():
        return provided_title.strip()

    for line in body.split("\n"):
        if line.strip():
            return line.strip()

    truncated = body[:TITLE_FALLBACK_CHARS].strip()
    return truncated or UNTITLED
