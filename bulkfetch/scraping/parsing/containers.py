"""
Deterministic "nearest marked ancestor" lookup for product cards.

Listing pages do not keep price and stock markup next to the product link,
so parsers climb to the first candidate container that carries a marker
(for example the currency code). Candidates are tried in a fixed order.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from bs4 import Tag

from bulkfetch.scraping.parsing.text import class_string


def _classes(node: Tag) -> list[str]:
    classes = node.get("class") or []
    if isinstance(classes, str):
        return classes.split()
    return list(classes)


def closest(node: Tag, predicate: Callable[[Tag], bool]) -> Tag | None:
    """
    Return `node` or its nearest ancestor satisfying `predicate`.
    """

    current: Tag | None = node
    while isinstance(current, Tag) and current.name != "[document]":
        if predicate(current):
            return current
        current = current.parent
    return None


def _parent(node: Tag) -> Tag | None:
    parent = node.parent
    if isinstance(parent, Tag) and parent.name != "[document]":
        return parent
    return None


def _grandparent(node: Tag) -> Tag | None:
    parent = _parent(node)
    return _parent(parent) if parent is not None else None


@dataclass(frozen=True)
class ContainerSignature:
    name: str
    locate: Callable[[Tag], Tag | None]


DEFAULT_CONTAINER_SIGNATURES: tuple[ContainerSignature, ...] = (
    ContainerSignature(".col", lambda node: closest(node, lambda tag: "col" in _classes(tag))),
    ContainerSignature("[class*=col]", lambda node: closest(node, lambda tag: "col" in class_string(tag))),
    ContainerSignature(".card", lambda node: closest(node, lambda tag: "card" in _classes(tag))),
    ContainerSignature(".product", lambda node: closest(node, lambda tag: "product" in _classes(tag))),
    ContainerSignature(
        "[class*=product]",
        lambda node: closest(node, lambda tag: "product" in class_string(tag)),
    ),
    ContainerSignature("parent", _parent),
    ContainerSignature("grandparent", _grandparent),
)


def nearest_marked_ancestor(
    node: Tag,
    marker_test: Callable[[Tag], bool],
    *,
    signatures: Sequence[ContainerSignature] = DEFAULT_CONTAINER_SIGNATURES,
) -> Tag | None:
    """
    Return the first signature's container that passes `marker_test`.
    """

    for signature in signatures:
        candidate = signature.locate(node)
        if candidate is not None and marker_test(candidate):
            return candidate
    return None


def text_contains(marker: str) -> Callable[[Tag], bool]:
    lowered = marker.lower()
    return lambda tag: lowered in tag.get_text(" ", strip=True).lower()
