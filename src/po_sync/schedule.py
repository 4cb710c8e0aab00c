"""
schedule.py - Schedule-of-values computation.

Pure functions over ScheduleLine values plus a small editing-session
container. Derived fields (total_cost, profit) are recomputed from
qty, unit and apex_contract_value on every change; a stored derived
value is never trusted.

    total_cost = qty * unit
    profit     = apex_contract_value - total_cost

A negative profit is a loss, not an error.
"""

from dataclasses import dataclass, replace
from typing import Any, Iterable

from po_sync.models import ScheduleLine
from po_sync.utils.coerce import coerce_number

__all__ = [
    "LineTotals",
    "ScheduleTotals",
    "Schedule",
    "coerce_number",
    "recalc_line",
    "apply_line",
    "recalc_totals",
    "format_currency",
    "is_loss",
]

# Fields a caller may edit; derived fields are rejected
_EDITABLE_FIELDS = frozenset(
    {"prime_line", "budget_code", "description", "qty", "unit", "scheduled", "apex_contract_value"}
)
_NUMERIC_FIELDS = frozenset({"qty", "unit", "scheduled", "apex_contract_value"})


@dataclass(frozen=True, slots=True)
class LineTotals:
    total_cost: float
    profit: float

    @property
    def is_loss(self) -> bool:
        return self.profit < 0


@dataclass(frozen=True, slots=True)
class ScheduleTotals:
    total_cost: float
    total_scheduled: float
    total_apex_value: float
    total_profit: float

    @property
    def is_loss(self) -> bool:
        return self.total_profit < 0

    def to_dict(self) -> dict[str, float]:
        return {
            "totalCost": self.total_cost,
            "totalScheduled": self.total_scheduled,
            "totalApexValue": self.total_apex_value,
            "totalProfit": self.total_profit,
        }


def recalc_line(line: ScheduleLine) -> LineTotals:
    """Derive total cost and profit for one line."""
    qty = coerce_number(line.qty)
    unit = coerce_number(line.unit)
    apex = coerce_number(line.apex_contract_value)
    total_cost = qty * unit
    return LineTotals(total_cost=total_cost, profit=apex - total_cost)


def apply_line(line: ScheduleLine) -> ScheduleLine:
    """Return a copy of line with inputs coerced and derived fields recomputed."""
    totals = recalc_line(line)
    return replace(
        line,
        qty=coerce_number(line.qty),
        unit=coerce_number(line.unit),
        scheduled=coerce_number(line.scheduled),
        apex_contract_value=coerce_number(line.apex_contract_value),
        total_cost=totals.total_cost,
        profit=totals.profit,
    )


def recalc_totals(lines: Iterable[ScheduleLine]) -> ScheduleTotals:
    """
    Aggregate totals across lines in insertion order.

    Per-line totals are recomputed rather than read from the lines, so
    total_profit equals both total_apex_value - total_cost and the sum
    of the per-line profits.
    """
    total_cost = 0.0
    total_scheduled = 0.0
    total_apex = 0.0
    for line in lines:
        total_cost += recalc_line(line).total_cost
        total_scheduled += coerce_number(line.scheduled)
        total_apex += coerce_number(line.apex_contract_value)
    return ScheduleTotals(
        total_cost=total_cost,
        total_scheduled=total_scheduled,
        total_apex_value=total_apex,
        total_profit=total_apex - total_cost,
    )


def is_loss(value: Any) -> bool:
    return coerce_number(value) < 0


def format_currency(value: Any) -> str:
    """
    Format a dollar amount with two decimals.

    Losses render parenthesized: -10 -> "($10.00)".
    """
    number = coerce_number(value)
    text = f"${abs(number):,.2f}"
    return f"({text})" if number < 0 else text


class Schedule:
    """
    Ordered schedule lines for one editing session.

    Every mutation recomputes the affected line, so lines() never
    exposes a stale total_cost or profit.
    """

    def __init__(self, lines: Iterable[ScheduleLine] | None = None):
        self._lines: list[ScheduleLine] = [apply_line(line) for line in lines or []]

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self):
        return iter(list(self._lines))

    @property
    def lines(self) -> list[ScheduleLine]:
        return list(self._lines)

    def add_line(self, line: ScheduleLine | None = None, **fields: Any) -> ScheduleLine:
        """Append a line (or a new one built from fields) and return it recomputed."""
        base = line if line is not None else ScheduleLine()
        if fields:
            base = replace(base, **self._checked(fields))
        computed = apply_line(base)
        self._lines.append(computed)
        return computed

    def update_line(self, index: int, **fields: Any) -> ScheduleLine:
        """Edit input fields of the line at index; raises IndexError when absent."""
        current = self._lines[index]
        computed = apply_line(replace(current, **self._checked(fields)))
        self._lines[index] = computed
        return computed

    def remove_line(self, index: int) -> ScheduleLine:
        return self._lines.pop(index)

    def line_totals(self, index: int) -> LineTotals:
        return recalc_line(self._lines[index])

    def totals(self) -> ScheduleTotals:
        return recalc_totals(self._lines)

    @staticmethod
    def _checked(fields: dict[str, Any]) -> dict[str, Any]:
        unknown = set(fields) - _EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Not editable schedule fields: {sorted(unknown)}")
        return {
            name: coerce_number(value) if name in _NUMERIC_FIELDS else value
            for name, value in fields.items()
        }
