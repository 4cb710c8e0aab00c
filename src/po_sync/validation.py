"""
validation.py - Submission gate.

Checks a raw submission mapping before it is persisted. All violations
are collected so the caller can show the complete list; nothing here
raises.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Mapping

from po_sync.config import REQUIRED_FIELDS
from po_sync.models import Submission
from po_sync.utils.coerce import coerce_number, is_numeric

# local@domain.tld, no whitespace
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass(slots=True)
class ValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"isValid": self.is_valid, "errors": list(self.errors)}


def is_valid_email(value: Any) -> bool:
    return isinstance(value, str) and EMAIL_RE.match(value) is not None


def get_nested(data: Any, path: str) -> Any:
    """Resolve a dotted path; any missing segment yields None."""
    current = data
    for key in path.split("."):
        if not isinstance(current, Mapping) or key not in current:
            return None
        current = current[key]
    return current


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def _is_present(value: Any) -> bool:
    # Blank strings and None count as absent; 0 is a value
    return not _is_blank(value)


def validate_submission(data: Mapping[str, Any] | Submission) -> ValidationResult:
    """
    Validate a submission before it is accepted.

    Args:
        data: Raw camelCase mapping (as collected from the form) or a Submission

    Returns:
        ValidationResult with every violation found
    """
    if isinstance(data, Submission):
        data = data.to_dict()
    if not isinstance(data, Mapping):
        return ValidationResult(is_valid=False, errors=["Invalid submission"])

    errors: list[str] = []

    for path in REQUIRED_FIELDS:
        if _is_blank(get_nested(data, path)):
            errors.append(f"{path} is required")

    meta = data.get("meta")
    if isinstance(meta, Mapping):
        email = meta.get("email")
        if _is_present(email) and not is_valid_email(email):
            errors.append("Invalid email format")

        contract_amount = meta.get("contractAmount")
        if _is_present(contract_amount) and (
            not is_numeric(contract_amount) or coerce_number(contract_amount) < 0
        ):
            errors.append("Contract amount must be a valid positive number")

        add_alt = meta.get("addAltAmount")
        if _is_present(add_alt) and (not is_numeric(add_alt) or coerce_number(add_alt) < 0):
            errors.append("Add/Alt amount must be a valid positive number")

        retainage = meta.get("retainagePct")
        if _is_present(retainage) and (
            not is_numeric(retainage) or not 0 <= coerce_number(retainage) <= 100
        ):
            errors.append("Retainage percentage must be between 0 and 100")

    schedule = data.get("schedule")
    if isinstance(schedule, list):
        for index, item in enumerate(schedule, start=1):
            item = item if isinstance(item, Mapping) else {}
            if any(_is_blank(item.get(key)) for key in ("primeLine", "budgetCode", "description")):
                errors.append(
                    f"Schedule item {index}: Prime Line, Budget Code, and Description are required"
                )
            qty = item.get("qty")
            if not is_numeric(qty) or coerce_number(qty) < 0:
                errors.append(f"Schedule item {index}: Quantity must be a valid positive number")
            unit = item.get("unit")
            if not is_numeric(unit) or coerce_number(unit) < 0:
                errors.append(f"Schedule item {index}: Unit cost must be a valid positive number")

    scope = data.get("scope")
    if isinstance(scope, list):
        for index, item in enumerate(scope, start=1):
            item = item if isinstance(item, Mapping) else {}
            if _is_blank(item.get("item")) or _is_blank(item.get("description")):
                errors.append(f"Scope item {index}: Item number and Description are required")

    return ValidationResult(is_valid=not errors, errors=errors)
