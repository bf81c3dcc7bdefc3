"""Tag extraction: explicit hashtags, else lexical frequency ranking."""
import re
from collections import Counter
from typing import Dict, List, Optional, Tuple

from forest_core.services.text import token_weight, tokenize, tokenize_to_list

HASHTAG_PATTERN = re.compile(r"#[a-zA-Z0-9_-]+")

# Generic words never proposed as tags
TAG_BLACKLIST = frozenset({"idea", "plan", "project", "projects", "system", "systems"})

MIN_TAG_TOKEN_LENGTH = 3
BIGRAM_BOOST = 1.75

DEFAULT_TAG_LIMIT = 5


def extract_hashtags(text: str) -> List[str]:
    """Lower-cased hashtag bodies in first-appearance order, deduplicated."""
    seen: Dict[str, None] = {}
    for match in HASHTAG_PATTERN.finditer(text):
        seen.setdefault(match.group(0)[1:].lower(), None)
    return list(seen)


def extract_tags(
    text: str,
    token_counts: Optional[Dict[str, int]] = None,
    limit: int = DEFAULT_TAG_LIMIT,
) -> List[str]:
    """Extract topical tags from ``text``.

    If the text contains any ``#hashtag``, exactly those hashtags are
    returned (``limit`` does not apply) and no lexical analysis runs.
    Otherwise falls back to :func:`extract_tags_lexical`.

    Args:
        text: Full note text, conventionally ``title + "\\n" + body``.
        token_counts: Precomputed ``tokenize`` output to reuse.
        limit: Maximum number of lexical tags.
    """
    hashtags = extract_hashtags(text)
    if hashtags:
        return hashtags
    return extract_tags_lexical(text, token_counts, limit)


def _bigram_candidates(text: str) -> Counter:
    # Bigrams come from the body only so the title never bridges into it
    newline = text.find("\n")
    body = text[newline + 1:] if newline != -1 else text

    sequence = tokenize_to_list(body)
    counts: Counter = Counter()
    for first, second in zip(sequence, sequence[1:]):
        if len(first) < MIN_TAG_TOKEN_LENGTH or len(second) < MIN_TAG_TOKEN_LENGTH:
            continue
        counts[f"{first} {second}"] += 1
    return counts


def extract_tags_lexical(
    text: str,
    token_counts: Optional[Dict[str, int]] = None,
    limit: int = DEFAULT_TAG_LIMIT,
) -> List[str]:
    """Rank unigrams and body bigrams by weighted frequency.

    Unigrams score ``count * weight``; bigrams score
    ``count * 1.75 * max(weight(a), weight(b))``. Candidates are ordered by
    score descending then tag ascending, and at most ``max(1, limit // 2)``
    bigrams are picked.
    """
    counts = token_counts if token_counts is not None else tokenize(text)

    candidates: List[Tuple[str, float]] = [
        (token, count * token_weight(token))
        for token, count in counts.items()
        if len(token) >= MIN_TAG_TOKEN_LENGTH and token not in TAG_BLACKLIST
    ]
    for bigram, count in _bigram_candidates(text).items():
        first, second = bigram.split(" ")
        weight = BIGRAM_BOOST * max(token_weight(first), token_weight(second))
        candidates.append((bigram, count * weight))

    candidates.sort(key=lambda item: (-item[1], item[0]))

    picked: List[str] = []
    bigrams_used = 0
    max_bigrams = max(1, limit // 2)
    for tag, _score in candidates:
        if len(picked) >= limit:
            break
        is_bigram = " " in tag
        if is_bigram and bigrams_used >= max_bigrams:
            continue
        if tag in picked:
            continue
        picked.append(tag)
        if is_bigram:
            bigrams_used += 1
    return picked
