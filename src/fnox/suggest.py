"""Near-miss name suggestions for "did you mean" hints."""

from collections.abc import Iterable

from rapidfuzz.distance import JaroWinkler

SIMILARITY_THRESHOLD = 0.7
MAX_SUGGESTIONS = 3


def find_similar(target: str, candidates: Iterable[str]) -> list[str]:
    """Return up to three candidates that look like ``target``.

    Comparison is case-insensitive Jaro-Winkler similarity; candidates
    scoring below the threshold are dropped and the rest are ordered best
    first.
    """
    needle = target.lower()
    scored = []
    for candidate in candidates:
        score = JaroWinkler.normalized_similarity(needle, candidate.lower())
        if score >= SIMILARITY_THRESHOLD:
            scored.append((score, candidate))
    scored.sort(key=lambda item: item[0], reverse=True)
    return [candidate for _, candidate in scored[:MAX_SUGGESTIONS]]


def format_suggestions(suggestions: list[str]) -> str | None:
    if not suggestions:
        return None
    if len(suggestions) == 1:
        return f"Did you mean '{suggestions[0]}'?"
    quoted = ", ".join(f"'{name}'" for name in suggestions)
    return f"Did you mean one of: {quoted}?"


def suggest(target: str, candidates: Iterable[str]) -> str | None:
    """Shorthand for ``format_suggestions(find_similar(...))``."""
    return format_suggestions(find_similar(target, candidates))
