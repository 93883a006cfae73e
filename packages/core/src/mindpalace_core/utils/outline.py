"""Recover section hierarchy on demand by comparing heading levels.

All helpers take sections in document order (sorted by order_index) and
never build a tree.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable


def _ordered(sections: Iterable) -> list:
    return sorted(sections, key=lambda s: s.order_index)


def is_leaf(index: int, doc_sections: list) -> bool:
    """A section is a leaf when the next one is not nested under it, or it is last."""
    if index + 1 >= len(doc_sections):
        return True
    return doc_sections[index + 1].level <= doc_sections[index].level


def leaf_ids(sections: Iterable) -> set[int]:
    """Return the ids of leaf sections, judged within each document separately."""
    by_document: dict[int, list] = defaultdict(list)
    for section in sections:
        by_document[section.document_id].append(section)

    leaves: set[int] = set()
    for doc_sections in by_document.values():
        ordered = _ordered(doc_sections)
        for index, section in enumerate(ordered):
            if is_leaf(index, ordered):
                leaves.add(section.id)
    return leaves


def parent_section(section, doc_sections: Iterable):
    """Nearest preceding section with a lower level, or None for a top-level section."""
    ordered = _ordered(doc_sections)
    for candidate in reversed([s for s in ordered if s.order_index < section.order_index]):
        if candidate.level < section.level:
            return candidate
    return None


def content_with_children(section, doc_sections: Iterable) -> str:
    """Render a section and everything nested under it as Markdown."""
    parts = [f"{'#' * section.level} {section.title}\n\n{section.body}".rstrip()]
    for following in _ordered(doc_sections):
        if following.order_index <= section.order_index:
            continue
        if following.level <= section.level:
            break
        parts.append(f"{'#' * following.level} {following.title}\n\n{following.body}".rstrip())
    return "\n\n".join(parts)


def table_of_contents(doc_sections: Iterable) -> str:
    lines = []
    for number, section in enumerate(_ordered(doc_sections), 1):
        indent = "  " * max(0, section.level - 1)
        lines.append(f"{indent}{number}. {section.title}")
    return "\n".join(lines)
