"""Recursive text extraction over parsed document trees."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from bs4.element import NavigableString, PreformattedString, Tag


def soup_children(node: Any) -> Iterable[Any]:
    """Child nodes of a BeautifulSoup element (none for text nodes)."""
    if isinstance(node, Tag):
        return node.children
    return ()


def soup_text(node: Any) -> str | None:
    """Text of a BeautifulSoup leaf, or None if the node is an element.

    Comments and doctypes count as empty leaves.
    """
    if isinstance(node, Tag):
        return None
    if isinstance(node, PreformattedString):
        return ""
    if isinstance(node, NavigableString):
        return str(node)
    return ""


def collapse_ws(text: str) -> str:
    return " ".join(text.split())


def collect_text(
    node: Any,
    *,
    skip: Callable[[Any], bool] = lambda _node: False,
    children: Callable[[Any], Iterable[Any]] = soup_children,
    text_of: Callable[[Any], str | None] = soup_text,
) -> str:
    """Concatenate the trimmed text beneath ``node``.

    Walks the tree depth-first. ``text_of`` returns a string for leaf nodes
    and None for elements; ``children`` yields an element's children. Any
    element for which ``skip`` is true is dropped along with its subtree.
    Non-empty fragments are joined with single spaces and runs of
    whitespace are collapsed.

    The default accessors read BeautifulSoup trees; pass other accessors to
    walk any other document representation.
    """
    fragments: list[str] = []
    for child in children(node):
        text = text_of(child)
        if text is not None:
            text = text.strip()
            if text:
                fragments.append(text)
            continue
        if skip(child):
            continue
        inner = collect_text(child, skip=skip, children=children, text_of=text_of)
        if inner:
            fragments.append(inner)
    return collapse_ws(" ".join(fragments))
