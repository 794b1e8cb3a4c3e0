"""
Identity Matcher.

Names reach the tracker from several channels (manual entry, the messaging
platform display name, spreadsheet edits), so equality is too strict. Two
names match when their normalized forms are equal or one contains the other.

Known limitation: containment also matches unrelated names that happen to
overlap ("Anna" vs "Banana", "Som" vs "Somchai"). The policy is kept as is;
callers that need an unambiguous identity must pass the full name.
"""

import re
from difflib import SequenceMatcher
from typing import Iterable, List

_WHITESPACE = re.compile(r"\s+")

SUGGESTION_THRESHOLD = 0.6


def normalize_name(name: str) -> str:
    """Trim, collapse internal whitespace and lowercase."""
    if not name:
        return ""
    return _WHITESPACE.sub(" ", str(name)).strip().lower()


def is_name_match(a: str, b: str) -> bool:
    """
    Check whether two names refer to the same person.

    Empty names never match anything.
    """
    left = normalize_name(a)
    right = normalize_name(b)
    if not left or not right:
        return False
    return left == right or left in right or right in left


def find_matches(name: str, candidates: Iterable[str]) -> List[str]:
    """Return the candidates matching name, in input order, without duplicates."""
    matches: List[str] = []
    for candidate in candidates:
        if candidate and candidate not in matches and is_name_match(name, candidate):
            matches.append(candidate)
    return matches


def is_exempt(name: str, exempt_names: Iterable[str]) -> bool:
    """Check a name against an exemption list using the same matching policy."""
    return any(is_name_match(name, exempt) for exempt in exempt_names)


def similar_names(name: str, candidates: Iterable[str], threshold: float = SUGGESTION_THRESHOLD) -> List[str]:
    """
    Candidates that look like a typo of name.

    Looser than is_name_match: a containment match or a SequenceMatcher
    ratio at or above threshold qualifies. Used for "did you mean" hints only.
    """
    target = normalize_name(name)
    if not target:
        return []

    result: List[str] = []
    for candidate in candidates:
        if not candidate or candidate in result:
            continue
        if is_name_match(name, candidate):
            result.append(candidate)
            continue
        ratio = SequenceMatcher(None, target, normalize_name(candidate)).ratio()
        if ratio >= threshold:
            result.append(candidate)
    return result
