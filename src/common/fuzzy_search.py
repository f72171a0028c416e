"""Fuzzy search utilities for matching queries against post text."""

import re

from rapidfuzz import fuzz

WORD_RE = re.compile(r"\w+", re.UNICODE)


def tokenize(text: str) -> list[str]:
    """Split text into lowercase words, dropping punctuation."""
    return WORD_RE.findall(text.lower())


def fuzzy_word_match(word: str, text_words: list[str], threshold: int) -> bool:
    """
    Check if a word appears among text_words with fuzzy tolerance.

    Args:
        word: The (lowercase) word to search for
        text_words: Tokenized text to search in
        threshold: Max edit distance (0 disables fuzzy matching)

    Returns:
        True if word matches any text word within threshold
    """
    for text_word in text_words:
        if word == text_word:
            return True
        # Fuzzy match for words 4+ chars only (short words give false positives)
        if threshold > 0 and len(word) > 3:
            # threshold=2 -> 80% similarity
            min_ratio = 100 - (threshold * 10)
            if fuzz.ratio(word, text_word) >= min_ratio:
                return True
    return False


def fuzzy_search(
    text: str,
    queries: list[str],
    match_all: bool = True,
    fuzzy_threshold: int = 2,
) -> bool:
    """
    Check if text matches the search queries with fuzzy tolerance.

    A query with several words ("war and peace") matches only when every one
    of its words matches.

    Args:
        text: The text to search in
        queries: List of search terms
        match_all: If True, all queries must match (AND). If False, any query matches (OR).
        fuzzy_threshold: Max edit distance for fuzzy matching (0 disables fuzzy)

    Returns:
        True if text matches according to match_all logic
    """
    queries = [q for q in queries if q.strip()]
    if not queries:
        return True

    text_words = tokenize(text)
    matches = [
        all(fuzzy_word_match(word, text_words, fuzzy_threshold) for word in tokenize(query))
        for query in queries
    ]

    if match_all:
        return all(matches)
    return any(matches)
