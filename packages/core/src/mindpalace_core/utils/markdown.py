"""Split Markdown text into heading sections.

The result is a flat list in document order. Hierarchy is never stored; see
mindpalace_core.utils.outline for the level comparisons that recover it.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

MARKDOWN_EXTENSIONS = (".md", ".markdown")

# 1-6 '#' then whitespace and the title, or a bare run of '#'.
_HEADING_RE = re.compile(r"^(#{1,6})(?:\s+(.*?))?\s*$")


@dataclass
class ParsedSection:
    title: str
    level: int
    body: str
    start_line: int  # line of the heading itself (0-based)
    end_line: int  # last line belonging to the section, inclusive
    order_index: int


def is_markdown_file(file_name: str) -> bool:
    return file_name.lower().endswith(MARKDOWN_EXTENSIONS)


def decode_text(data: bytes, path: str) -> str:
    """Decode file bytes as UTF-8, replacing undecodable bytes with U+FFFD.

    Snapshot files and fetched files both go through here, so a non-UTF-8
    note reads the same on every sync instead of aborting later passes.
    """
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        logger.warning("%s is not valid UTF-8; undecodable bytes were replaced", path)
        return data.decode("utf-8", errors="replace")


def parse_heading(line: str) -> tuple[int, str] | None:
    """Return (level, title) when ``line`` is an ATX heading, else None."""
    match = _HEADING_RE.match(line.strip())
    if match is None:
        return None
    return len(match.group(1)), (match.group(2) or "").strip()


def _trim_blank_lines(lines: list[str]) -> str:
    start, end = 0, len(lines)
    while start < end and not lines[start].strip():
        start += 1
    while end > start and not lines[end - 1].strip():
        end -= 1
    return "\n".join(lines[start:end])


def sectionize(text: str) -> list[ParsedSection]:
    """Split ``text`` into sections at every heading, in a single pass.

    Lines before the first heading belong to no section. Text without any
    heading yields an empty list; callers fall back to the raw text.
    """
    lines = text.splitlines()
    sections: list[ParsedSection] = []
    current: tuple[str, int, int] | None = None  # title, level, start line
    body: list[str] = []

    for index, line in enumerate(lines):
        heading = parse_heading(line)
        if heading is None:
            if current is not None:
                body.append(line)
            continue
        if current is not None:
            title, level, start = current
            sections.append(ParsedSection(title, level, _trim_blank_lines(body), start, index - 1, len(sections)))
        level, title = heading
        current = (title, level, index)
        body = []

    if current is not None:
        title, level, start = current
        sections.append(ParsedSection(title, level, _trim_blank_lines(body), start, len(lines) - 1, len(sections)))

    return sections

