"""Minimal structural model of the Next.js loader's architecture table.

``next/dist/build/swc/index.js`` builds its per-platform dispatch table as
an object literal::

    linux: {
        // linux[x64] includes `gnux32` abi, with x64 arch.
        x64: linux.x64.filter((triple)=>triple.abi !== "gnux32"),
        arm64: linux.arm64,
        // This target is being deprecated, however we keep it in ...
        arm: linux.arm
    },

Rather than matching surrounding text, this module scans JavaScript just
far enough to find the literal named ``linux`` whose values reference
``linux.<member>``, and splits it into entries with source offsets. Strings,
template literals, comments and nested brackets are understood; anything
else is treated as opaque expression text.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_KEY_RE = re.compile(r"""(["']?)([A-Za-z_$][\w$]*)\1\s*:\s*""")
_OPENERS = "([{"
_CLOSERS = ")]}"


class LoaderTableError(ValueError):
    """The table could not be located or edited."""


@dataclass(frozen=True)
class TableEntry:
    """One ``key: value`` property of the table literal.

    ``start``/``end`` delimit the property text (key through value);
    ``separator`` is the offset of the trailing comma, if any.
    """

    key: str
    value: str
    start: int
    end: int
    separator: int | None


@dataclass(frozen=True)
class LoaderTable:
    name: str
    open_brace: int
    close_brace: int
    entries: tuple[TableEntry, ...]

    def get(self, key: str) -> TableEntry | None:
        for entry in self.entries:
            if entry.key == key:
                return entry
        return None

    def keys(self) -> list[str]:
        return [entry.key for entry in self.entries]


@dataclass
class _Segment:
    start: int
    end: int
    separator: int | None


# ----------------------------------------------------------------------
# Scanning
# ----------------------------------------------------------------------


def _skip_string(source: str, index: int) -> int:
    """Return the offset just past the string literal opening at *index*."""
    quote = source[index]
    i = index + 1
    while i < len(source):
        ch = source[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1
        if ch == "\n" and quote != "`":
            break
        i += 1
    raise LoaderTableError(f"Unterminated string literal at offset {index}")


def _scan_object(source: str, open_index: int) -> tuple[int, list[_Segment]]:
    """Split the object literal opening at *open_index* into top-level segments.

    Returns the offset of the matching close brace and the segments, each
    spanning its first to last significant character.
    """
    depth = 0
    segments: list[_Segment] = []
    seg_start: int | None = None
    seg_end = 0
    i = open_index
    n = len(source)

    def mark(begin: int, end: int) -> None:
        nonlocal seg_start, seg_end
        if seg_start is None:
            seg_start = begin
        seg_end = end

    def close(separator: int | None) -> None:
        nonlocal seg_start
        if seg_start is not None:
            segments.append(_Segment(seg_start, seg_end, separator))
        seg_start = None

    while i < n:
        ch = source[i]
        nxt = source[i + 1] if i + 1 < n else ""
        if ch == "/" and nxt == "/":
            newline = source.find("\n", i)
            i = n if newline == -1 else newline
            continue
        if ch == "/" and nxt == "*":
            end = source.find("*/", i + 2)
            if end == -1:
                raise LoaderTableError(f"Unterminated comment at offset {i}")
            i = end + 2
            continue
        if ch in "'\"`":
            end = _skip_string(source, i)
            mark(i, end)
            i = end
            continue
        if ch in _OPENERS:
            depth += 1
            if depth > 1:
                mark(i, i + 1)
        elif ch in _CLOSERS:
            depth -= 1
            if depth == 0:
                close(None)
                return i, segments
            mark(i, i + 1)
        elif ch == "," and depth == 1:
            close(i)
        elif not ch.isspace():
            mark(i, i + 1)
        i += 1
    raise LoaderTableError(f"Unterminated object literal at offset {open_index}")


def _parse_entries(source: str, segments: list[_Segment]) -> tuple[TableEntry, ...]:
    entries: list[TableEntry] = []
    for seg in segments:
        text = source[seg.start:seg.end]
        match = _KEY_RE.match(text)
        if match is None:
            # Spread elements, shorthand properties, methods: not table data.
            continue
        entries.append(
            TableEntry(
                key=match.group(2),
                value=text[match.end():].strip(),
                start=seg.start,
                end=seg.end,
                separator=seg.separator,
            )
        )
    return tuple(entries)


def find_table(source: str, name: str) -> LoaderTable:
    """Locate the unique ``name: { ... }`` literal mapping to ``name.<member>``.

    Raises ``LoaderTableError`` when no such literal exists or when more
    than one qualifies.
    """
    pattern = re.compile(r"(?<![\w$.])([\"']?)" + re.escape(name) + r"\1\s*:\s*\{")
    prefix = f"{name}."
    candidates: list[LoaderTable] = []
    for match in pattern.finditer(source):
        open_index = match.end() - 1
        try:
            close_index, segments = _scan_object(source, open_index)
        except LoaderTableError as exc:
            logger.debug("Skipping candidate at offset %d: %s", open_index, exc)
            continue
        entries = _parse_entries(source, segments)
        if any(entry.value.startswith(prefix) for entry in entries):
            candidates.append(LoaderTable(name, open_index, close_index, entries))

    if not candidates:
        raise LoaderTableError(f"No '{name}' architecture table found")
    if len(candidates) > 1:
        offsets = ", ".join(str(t.open_brace) for t in candidates)
        raise LoaderTableError(
            f"Ambiguous '{name}' architecture table: {len(candidates)} candidates "
            f"at offsets {offsets}"
        )
    return candidates[0]


# ----------------------------------------------------------------------
# Editing
# ----------------------------------------------------------------------


def _newline(source: str) -> str:
    return "\r\n" if "\r\n" in source else "\n"


def _line_start(source: str, index: int) -> int:
    return source.rfind("\n", 0, index) + 1


def _line_end(source: str, index: int) -> int:
    """Offset of the line terminator at or after *index* (``\\r`` if CRLF)."""
    end = source.find("\n", index)
    if end == -1:
        return len(source)
    if end > 0 and source[end - 1] == "\r":
        return end - 1
    return end


def _indent_of(source: str, index: int) -> str:
    prefix = source[_line_start(source, index):index]
    return prefix if not prefix.strip() else ""


def normalize_value(value: str) -> str:
    return re.sub(r"\s+", "", value)


def has_entry(table: LoaderTable, key: str, value: str) -> bool:
    entry = table.get(key)
    return entry is not None and normalize_value(entry.value) == normalize_value(value)


def insert_entry(
    source: str,
    table: LoaderTable,
    key: str,
    value: str,
    *,
    after: str | None = None,
) -> str:
    """Return *source* with ``key: value,`` added to *table*.

    The entry goes on its own line directly below the *after* entry, with
    the same indentation. If *after* is absent from the table, the entry is
    appended as the last property and a warning is logged.
    """
    existing = table.get(key)
    if existing is not None:
        if normalize_value(existing.value) == normalize_value(value):
            return source
        raise LoaderTableError(
            f"Table '{table.name}' already maps {key} to {existing.value!r}"
        )
    if not table.entries:
        raise LoaderTableError(f"Table '{table.name}' has no entries to anchor on")

    anchor = table.get(after) if after else None
    if anchor is None:
        if after:
            logger.warning(
                "Anchor entry %r not found in '%s' table (keys: %s); appending %s "
                "as the last entry",
                after,
                table.name,
                ", ".join(table.keys()),
                key,
            )
        anchor = table.entries[-1]

    newline = _newline(source)
    indent = _indent_of(source, anchor.start)
    text = f"{key}: {value}"

    if anchor.separator is None:
        # Last property without a trailing comma: add one, keep the style.
        head = source[:anchor.end] + ","
        tail = source[anchor.end:]
        new_line = text
    else:
        head = source[:anchor.separator + 1]
        tail = source[anchor.separator + 1:]
        new_line = text + ","

    line_end = _line_end(tail, 0)
    rest_of_line = tail[:line_end].strip()
    if rest_of_line and not rest_of_line.startswith("//"):
        # Anchor shares its line with further properties: insert inline.
        return head + " " + new_line + tail

    return head + tail[:line_end] + newline + indent + new_line + tail[line_end:]


def remove_entry(source: str, table: LoaderTable, key: str) -> str:
    """Return *source* with the *key* property removed from *table*."""
    entry = table.get(key)
    if entry is None:
        return source

    stop = entry.separator + 1 if entry.separator is not None else entry.end
    line_start = _line_start(source, entry.start)
    own_line = not source[line_start:entry.start].strip()
    line_end = _line_end(source, stop)
    trailing = source[stop:line_end].strip()

    if own_line and not trailing:
        # Drop the whole line including its terminator.
        newline_end = source.find("\n", stop)
        cut_end = len(source) if newline_end == -1 else newline_end + 1
        result = source[:line_start] + source[cut_end:]
    else:
        result = source[:entry.start] + source[stop:].lstrip(" ")

    if entry.separator is None:
        # Removed the last property: drop the comma now left dangling.
        previous = [e for e in table.entries if e.end < entry.start]
        if previous and previous[-1].separator is not None:
            comma = previous[-1].separator
            result = result[:comma] + result[comma + 1:]
    return result
