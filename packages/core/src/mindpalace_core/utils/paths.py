"""Repository path preferences: include/exclude lists and favorite folders."""

from __future__ import annotations

# Stored as the only include entry when the user deselects everything in the
# folder picker. An empty include list would mean "everything" instead.
INCLUDE_NOTHING = "__NONE__"


def path_matches(path: str, entry: str) -> bool:
    """Return True if ``path`` is ``entry`` itself or lives under it.

    "docs" matches "docs" and "docs/a.md" but not "docs-old/a.md".
    """
    entry = entry.strip("/")
    if not entry:
        return False
    return path == entry or path.startswith(entry + "/")


def should_include_path(path: str, include: list[str], exclude: list[str]) -> bool:
    """Apply a repository's path rules to one file path.

    An explicit include match wins over any exclude match. With no include
    entries everything not excluded is included.
    """
    if INCLUDE_NOTHING in include:
        return False
    if any(path_matches(path, entry) for entry in include):
        return True
    if any(path_matches(path, entry) for entry in exclude):
        return False
    return not include


def is_favorite_path(path: str, favorites: list[str]) -> bool:
    return any(path_matches(path, entry) for entry in favorites)
