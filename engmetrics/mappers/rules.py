"""
Ordered keyword rule tables.

A rule table is a sequence of (keywords, value) pairs evaluated top-down
against lower-cased text; the first rule with any keyword contained in the
text wins, otherwise the default applies.

Example:
    >>> PRIORITY = (( ("critical", "blocker"), "CRITICAL"), (("high",), "HIGH"))
    >>> first_match("Blocker", PRIORITY, "MEDIUM")
    'CRITICAL'
"""

from collections.abc import Iterable, Sequence
from typing import TypeVar

E = TypeVar("E")

RuleTable = Sequence[tuple[tuple[str, ...], E]]


def first_match(text: str | None, rules: RuleTable[E], default: E) -> E:
    """
    Evaluate a rule table against one piece of text.

    Args:
        text: Text to classify (None or empty yields the default)
        rules: Ordered (keywords, value) pairs
        default: Value when no rule matches

    Returns:
        Value of the first matching rule, or default
    """
    if not text:
        return default
    lowered = text.lower()
    for keywords, value in rules:
        if any(keyword in lowered for keyword in keywords):
            return value
    return default


def first_match_any(texts: Iterable[str], rules: RuleTable[E], default: E) -> E:
    """
    Evaluate a rule table against a set of labels.

    Rules are tried in order and each is checked against every label, so
    rule priority (not label order) decides the result.
    """
    lowered = [text.lower() for text in texts if text]
    for keywords, value in rules:
        if any(keyword in label for label in lowered for keyword in keywords):
            return value
    return default
