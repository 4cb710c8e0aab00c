"""
scope.py - Scope-of-work checklist.

Each ScopeLine is included, excluded, or undecided. Setting one flag
clears the other; both may be False but never both True.
"""

from dataclasses import replace
from typing import Iterable

from po_sync.models import ScopeLine


def set_included(line: ScopeLine, value: bool = True) -> ScopeLine:
    if value:
        return replace(line, included=True, excluded=False)
    return replace(line, included=False)


def set_excluded(line: ScopeLine, value: bool = True) -> ScopeLine:
    if value:
        return replace(line, excluded=True, included=False)
    return replace(line, excluded=False)


def normalize_scope_line(line: ScopeLine) -> ScopeLine:
    """Resolve a line that arrived with both flags set; excluded wins."""
    if line.included and line.excluded:
        return replace(line, included=False)
    return line


class ScopeChecklist:
    """
    Ordered scope lines for one editing session.

    Items are renumbered to their 1-based position after every add or
    remove, matching the row numbers shown to the user.
    """

    def __init__(self, lines: Iterable[ScopeLine] | None = None):
        self._lines = [normalize_scope_line(line) for line in lines or []]
        self._renumber()

    def __len__(self) -> int:
        return len(self._lines)

    @property
    def lines(self) -> list[ScopeLine]:
        return list(self._lines)

    def add_line(self, description: str = "", included: bool = False, excluded: bool = False) -> ScopeLine:
        line = normalize_scope_line(
            ScopeLine(description=description, included=included, excluded=excluded)
        )
        self._lines.append(line)
        self._renumber()
        return self._lines[-1]

    def remove_line(self, index: int) -> ScopeLine:
        removed = self._lines.pop(index)
        self._renumber()
        return removed

    def set_description(self, index: int, description: str) -> ScopeLine:
        self._lines[index] = replace(self._lines[index], description=description)
        return self._lines[index]

    def toggle_included(self, index: int, checked: bool = True) -> ScopeLine:
        self._lines[index] = set_included(self._lines[index], checked)
        return self._lines[index]

    def toggle_excluded(self, index: int, checked: bool = True) -> ScopeLine:
        self._lines[index] = set_excluded(self._lines[index], checked)
        return self._lines[index]

    def _renumber(self) -> None:
        self._lines = [
            replace(line, item=str(position))
            for position, line in enumerate(self._lines, start=1)
        ]
