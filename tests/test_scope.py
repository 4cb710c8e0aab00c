"""
test_scope.py - Scope checklist flag rules.
"""

from po_sync.models import ScopeLine
from po_sync.scope import ScopeChecklist, normalize_scope_line, set_excluded, set_included


def test_including_clears_excluded():
    line = set_included(ScopeLine(excluded=True))
    assert line.included and not line.excluded


def test_excluding_clears_included():
    line = set_excluded(ScopeLine(included=True))
    assert line.excluded and not line.included


def test_unchecking_leaves_line_undecided():
    line = set_included(ScopeLine(included=True), False)
    assert not line.included and not line.excluded


def test_both_flags_resolve_to_excluded():
    line = normalize_scope_line(ScopeLine(included=True, excluded=True))
    assert line.excluded and not line.included


class TestScopeChecklist:
    def test_items_are_renumbered(self):
        checklist = ScopeChecklist()
        checklist.add_line("Permits")
        checklist.add_line("Cleanup")
        checklist.add_line("Testing")
        checklist.remove_line(0)
        assert [line.item for line in checklist.lines] == ["1", "2"]
        assert [line.description for line in checklist.lines] == ["Cleanup", "Testing"]

    def test_toggles_are_exclusive(self):
        checklist = ScopeChecklist([ScopeLine(description="Permits")])
        checklist.toggle_included(0)
        line = checklist.toggle_excluded(0)
        assert line.excluded and not line.included

    def test_never_both_flags(self):
        checklist = ScopeChecklist([ScopeLine(included=True, excluded=True)])
        checklist.add_line("Bonds", included=True, excluded=True)
        for line in checklist.lines:
            assert not (line.included and line.excluded)
