"""
Parser for the column-aligned tables printed by winget list, upgrade and search.

winget prints a header line, a dashed separator underneath it and then one
padded row per package. Column boundaries are taken from the word starts of
the header and applied unchanged to every data row, using character offsets.
Right-aligned columns or values containing runs of spaces can therefore be
split at the wrong place; that heuristic is kept as-is.
"""

from __future__ import annotations

import re
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

_LINE_BREAK = re.compile(r"\r\n|\r|\n")
_MIN_SEPARATOR_DASHES = 10
_FOOTNOTE_MARK = "©"


class TableRow(Mapping[str, str]):
    """Ordered, case-insensitive column name to value mapping."""

    __slots__ = ("_items",)

    def __init__(self, items: Optional[Mapping[str, str]] = None) -> None:
        self._items: Dict[str, Tuple[str, str]] = {}
        for name, value in (items or {}).items():
            self[name] = value

    def __setitem__(self, name: str, value: str) -> None:
        self._items[name.casefold()] = (name, value)

    def __getitem__(self, name: str) -> str:
        return self._items[name.casefold()][1]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.casefold() in self._items

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"TableRow({dict(self.items())!r})"

    def value(self, name: str) -> str:
        """Return the column value, or an empty string if the column is absent."""
        return self.get(name, "")


def parse_table(output: Optional[str]) -> List[TableRow]:
    """
    Parse winget table output into rows.

    Returns an empty list when no header/separator pair can be found.
    """
    lines = [line.rstrip() for line in _LINE_BREAK.split(output or "")]
    lines = [line for line in lines if line.strip()]

    separator_index = next((i for i, line in enumerate(lines) if _is_separator(line)), -1)
    if separator_index <= 0:
        return []

    header = lines[separator_index - 1]
    ranges = _column_ranges(header)

    rows: List[TableRow] = []
    for line in lines[separator_index + 1 :]:
        if _is_separator(line) or _is_footnote(line):
            continue

        row = TableRow()
        for name, start, end in ranges:
            row[name] = line[start:end].strip()

        if all(not value for value in row.values()):
            continue
        rows.append(row)

    return rows


def _column_ranges(header: str) -> List[Tuple[str, int, Optional[int]]]:
    starts = [
        i
        for i, char in enumerate(header)
        if char != " " and (i == 0 or header[i - 1] == " ")
    ]

    ranges: List[Tuple[str, int, Optional[int]]] = []
    for index, start in enumerate(starts):
        end = starts[index + 1] if index + 1 < len(starts) else None
        name = header[start:end].strip()
        if name:
            ranges.append((name, start, end))

    # The last column runs to the end of each data line, however long.
    if ranges:
        name, start, _ = ranges[-1]
        ranges[-1] = (name, start, None)
    return ranges


def _is_separator(line: str) -> bool:
    return all(char == "-" or char.isspace() for char in line) and line.count("-") >= _MIN_SEPARATOR_DASHES


def _is_footnote(line: str) -> bool:
    return line.lstrip().startswith(_FOOTNOTE_MARK)
