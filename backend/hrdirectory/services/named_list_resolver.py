"""Lookups over named-list category trees.

All functions walk the tree in pre-order (a node before its children, siblings
in list order) using an explicit stack, so deep trees never hit the recursion
limit. With ``include_archived=False`` an archived node and its subtree are
skipped. No I/O; results depend only on the tree passed in.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence

from hrdirectory.models.named_list import NamedList, NamedListItem


def walk(items: Sequence[NamedListItem], include_archived: bool = True) -> Iterator[NamedListItem]:
    stack = list(reversed(items))
    while stack:
        item = stack.pop()
        if item.archived and not include_archived:
            continue
        yield item
        stack.extend(reversed(item.children))


def find_by_text(
    items: Sequence[NamedListItem],
    text: str | None,
    include_archived: bool = True,
) -> NamedListItem | None:
    """Return the first node whose name or value equals ``text``, ignoring case."""
    needle = text.strip().casefold() if text else ""
    if not needle:
        return None

    for item in walk(items, include_archived):
        if item.name.casefold() == needle or item.value.casefold() == needle:
            return item
    return None


def flatten(items: Sequence[NamedListItem]) -> dict[str, str]:
    """Map every node id to its display name (falling back to ``value``)."""
    table: dict[str, str] = {}
    for item in walk(items):
        table.setdefault(item.id, item.name or item.value)
    return table


def find_named_list(named_lists: Iterable[NamedList], name: str) -> NamedList | None:
    key = name.strip().lower()
    for named_list in named_lists:
        if named_list.key == key:
            return named_list
    return None
