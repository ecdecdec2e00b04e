"""
Rich-document description flattening.

Jira Cloud returns descriptions as Atlassian Document Format trees
({"type": ..., "content": [...], "text": ...}); Data Center returns plain
strings. extract_description() accepts either.
"""

from typing import Any


def collect_text(node: Any) -> list[str]:
    """Depth-first collection of every text leaf in document order."""
    if isinstance(node, list):
        return [text for child in node for text in collect_text(child)]
    if not isinstance(node, dict):
        return []

    texts: list[str] = []
    text = node.get("text")
    if isinstance(text, str) and text:
        texts.append(text)
    texts.extend(collect_text(node.get("content") or []))
    return texts


def extract_description(value: Any) -> str | None:
    """
    Turn a provider description into plain text.

    Args:
        value: Plain string, rich-document tree, or None

    Returns:
        The string unchanged, the tree's text leaves joined with a single
        space, or None when there is no description

    Example:
        >>> extract_description({"type": "doc", "content": [
        ...     {"type": "paragraph", "content": [{"type": "text", "text": "Hello"}]},
        ...     {"type": "paragraph", "content": [{"type": "text", "text": "world"}]},
        ... ]})
        'Hello world'
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return " ".join(collect_text(value))
