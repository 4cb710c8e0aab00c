"""
test_schedule.py - Schedule-of-values arithmetic.
"""

import pytest

from po_sync.models import ScheduleLine
from po_sync.schedule import (
    Schedule,
    apply_line,
    format_currency,
    is_loss,
    recalc_line,
    recalc_totals,
)


class TestLineArithmetic:
    def test_loss_line(self):
        totals = recalc_line(ScheduleLine(qty=10, unit=5, apex_contract_value=40))
        assert totals.total_cost == 50
        assert totals.profit == -10
        assert totals.is_loss
        assert format_currency(totals.profit) == "($10.00)"

    def test_blank_inputs_coerce_to_zero(self):
        line = ScheduleLine.from_dict({"qty": "", "unit": None, "apexContractValue": "abc"})
        totals = recalc_line(line)
        assert totals.total_cost == 0
        assert totals.profit == 0

    def test_stored_derived_values_are_ignored(self):
        stale = ScheduleLine(qty=2, unit=3, apex_contract_value=10, total_cost=999, profit=999)
        fixed = apply_line(stale)
        assert fixed.total_cost == 6
        assert fixed.profit == 4

    def test_currency_strings(self):
        line = ScheduleLine.from_dict({"qty": "4", "unit": "$1,250.50", "apexContractValue": "6000"})
        assert recalc_line(line).total_cost == pytest.approx(5002.0)


class TestTotals:
    def test_totals_agree_with_lines(self):
        lines = [
            ScheduleLine(qty=10, unit=5, scheduled=50, apex_contract_value=40),
            ScheduleLine(qty=3, unit=100, scheduled=300, apex_contract_value=450),
        ]
        totals = recalc_totals(lines)
        assert totals.total_cost == 350
        assert totals.total_scheduled == 350
        assert totals.total_apex_value == 490
        assert totals.total_profit == totals.total_apex_value - totals.total_cost
        assert totals.total_profit == sum(recalc_line(line).profit for line in lines)
        assert not totals.is_loss

    def test_empty_schedule(self):
        totals = recalc_totals([])
        assert totals.to_dict() == {
            "totalCost": 0,
            "totalScheduled": 0,
            "totalApexValue": 0,
            "totalProfit": 0,
        }


class TestFormatting:
    def test_positive(self):
        assert format_currency(1234.5) == "$1,234.50"

    def test_zero_is_not_a_loss(self):
        assert format_currency(0) == "$0.00"
        assert not is_loss(0)

    def test_garbage_formats_as_zero(self):
        assert format_currency("n/a") == "$0.00"


class TestScheduleSession:
    def test_edit_recomputes(self):
        schedule = Schedule()
        schedule.add_line(qty=10, unit=5, apex_contract_value=40)
        assert schedule.line_totals(0).profit == -10

        updated = schedule.update_line(0, apex_contract_value="75")
        assert updated.profit == 25
        assert schedule.totals().total_profit == 25

    def test_derived_fields_not_editable(self):
        schedule = Schedule([ScheduleLine(qty=1, unit=1)])
        with pytest.raises(ValueError):
            schedule.update_line(0, total_cost=5)

    def test_remove_line(self):
        schedule = Schedule([ScheduleLine(qty=1, unit=2), ScheduleLine(qty=3, unit=4)])
        schedule.remove_line(0)
        assert len(schedule) == 1
        assert schedule.totals().total_cost == 12
