"""
models.py - Submission data structures.

A Submission is the unit of durable storage: project metadata, an
ordered schedule of values, an ordered scope checklist, and the
delivery state. Dataclasses use snake_case attributes; to_dict/from_dict
speak the camelCase wire format the remote workflow expects.

from_dict is total: missing keys, None and wrongly-typed values are
coerced to the field's type (strings default to "", numbers to 0).
"""

from dataclasses import dataclass, field, replace
from typing import Any, Mapping

from po_sync.utils.coerce import coerce_number, to_bool, to_int, to_str


def _get(data: Mapping[str, Any] | None, key: str) -> Any:
    if not data:
        return None
    return data.get(key)


@dataclass(slots=True)
class ImportantDates:
    notice_to_proceed: str = ""
    anticipated_start: str = ""
    substantial_completion: str = ""
    hundred_percent: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "ImportantDates":
        return cls(
            notice_to_proceed=to_str(_get(data, "noticeToProceed")),
            anticipated_start=to_str(_get(data, "anticipatedStart")),
            substantial_completion=to_str(_get(data, "substantialCompletion")),
            hundred_percent=to_str(_get(data, "hundredPercent")),
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "noticeToProceed": self.notice_to_proceed,
            "anticipatedStart": self.anticipated_start,
            "substantialCompletion": self.substantial_completion,
            "hundredPercent": self.hundred_percent,
        }


# (attribute, wire key) pairs for the string fields of ProjectMeta
_META_STRING_FIELDS: tuple[tuple[str, str], ...] = (
    ("project_name", "projectName"),
    ("general_contractor", "generalContractor"),
    ("address", "address"),
    ("owner", "owner"),
    ("apex_owner", "apexOwner"),
    ("type_status", "typeStatus"),
    ("project_manager", "projectManager"),
    ("add_alt_details", "addAltDetails"),
    ("requested_by", "requestedBy"),
    ("company_name", "companyName"),
    ("contact_name", "contactName"),
    ("cell_number", "cellNumber"),
    ("email", "email"),
    ("office_number", "officeNumber"),
    ("vendor_type", "vendorType"),
    ("work_type", "workType"),
)

_META_NUMBER_FIELDS: tuple[tuple[str, str], ...] = (
    ("contract_amount", "contractAmount"),
    ("add_alt_amount", "addAltAmount"),
    ("retainage_pct", "retainagePct"),
)


@dataclass(slots=True)
class ProjectMeta:
    """Project metadata entered on the first form page."""
    project_name: str = ""
    general_contractor: str = ""
    address: str = ""
    owner: str = ""
    apex_owner: str = ""
    type_status: str = ""
    project_manager: str = ""
    contract_amount: float = 0.0
    add_alt_amount: float = 0.0
    add_alt_details: str = ""
    retainage_pct: float = 0.0
    requested_by: str = ""
    company_name: str = ""
    contact_name: str = ""
    cell_number: str = ""
    email: str = ""
    office_number: str = ""
    vendor_type: str = ""
    work_type: str = ""
    important_dates: ImportantDates = field(default_factory=ImportantDates)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "ProjectMeta":
        kwargs: dict[str, Any] = {}
        for attr, key in _META_STRING_FIELDS:
            kwargs[attr] = to_str(_get(data, key))
        for attr, key in _META_NUMBER_FIELDS:
            kwargs[attr] = coerce_number(_get(data, key))
        kwargs["important_dates"] = ImportantDates.from_dict(_get(data, "importantDates"))
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for attr, key in _META_STRING_FIELDS + _META_NUMBER_FIELDS:
            result[key] = getattr(self, attr)
        result["importantDates"] = self.important_dates.to_dict()
        return result


@dataclass(slots=True)
class ScheduleLine:
    """
    One row of the schedule of values.

    total_cost and profit are derived. They are carried on the record for
    transmission but are always recomputed by the schedule engine before
    being persisted or displayed.
    """
    prime_line: str = ""
    budget_code: str = ""
    description: str = ""
    qty: float = 0.0
    unit: float = 0.0
    total_cost: float = 0.0
    scheduled: float = 0.0
    apex_contract_value: float = 0.0
    profit: float = 0.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "ScheduleLine":
        return cls(
            prime_line=to_str(_get(data, "primeLine")),
            budget_code=to_str(_get(data, "budgetCode")),
            description=to_str(_get(data, "description")),
            qty=coerce_number(_get(data, "qty")),
            unit=coerce_number(_get(data, "unit")),
            total_cost=coerce_number(_get(data, "totalCost")),
            scheduled=coerce_number(_get(data, "scheduled")),
            apex_contract_value=coerce_number(_get(data, "apexContractValue")),
            profit=coerce_number(_get(data, "profit")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "primeLine": self.prime_line,
            "budgetCode": self.budget_code,
            "description": self.description,
            "qty": self.qty,
            "unit": self.unit,
            "totalCost": self.total_cost,
            "scheduled": self.scheduled,
            "apexContractValue": self.apex_contract_value,
            "profit": self.profit,
        }


@dataclass(slots=True)
class ScopeLine:
    """One row of the scope-of-work checklist."""
    item: str = ""
    description: str = ""
    included: bool = False
    excluded: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "ScopeLine":
        return cls(
            item=to_str(_get(data, "item")),
            description=to_str(_get(data, "description")),
            included=to_bool(_get(data, "included")),
            excluded=to_bool(_get(data, "excluded")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "item": self.item,
            "description": self.description,
            "included": self.included,
            "excluded": self.excluded,
        }


_SUBMISSION_KEYS = frozenset(
    {"id", "meta", "schedule", "scope", "createdAt", "timestamp", "sent", "sentAt", "userId"}
)


@dataclass(slots=True)
class Submission:
    """
    A purchase order as persisted in the local store.

    `sent` is the only delivery-state flag. It flips to True once the
    remote endpoint acknowledges the submission and never flips back.
    """
    id: int | None = None
    meta: ProjectMeta = field(default_factory=ProjectMeta)
    schedule: list[ScheduleLine] = field(default_factory=list)
    scope: list[ScopeLine] = field(default_factory=list)
    created_at: str = ""
    timestamp: int = 0  # Unix milliseconds
    sent: bool = False
    sent_at: str = ""
    user_id: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def project_label(self) -> str:
        """Name shown in admin listings."""
        return self.meta.project_name or self.meta.company_name or "-"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Submission":
        raw_id = data.get("id")
        user_id = data.get("userId")
        return cls(
            id=to_int(raw_id) if raw_id not in (None, "") else None,
            meta=ProjectMeta.from_dict(data.get("meta")),
            schedule=[ScheduleLine.from_dict(line) for line in data.get("schedule") or []],
            scope=[ScopeLine.from_dict(line) for line in data.get("scope") or []],
            created_at=to_str(data.get("createdAt")),
            timestamp=to_int(data.get("timestamp")),
            sent=to_bool(data.get("sent")),
            sent_at=to_str(data.get("sentAt")),
            user_id=to_str(user_id) if user_id is not None else None,
            extra={k: v for k, v in data.items() if k not in _SUBMISSION_KEYS},
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = dict(self.extra)
        result.update({
            "id": self.id,
            "meta": self.meta.to_dict(),
            "schedule": [line.to_dict() for line in self.schedule],
            "scope": [line.to_dict() for line in self.scope],
            "createdAt": self.created_at,
            "timestamp": self.timestamp,
            "sent": self.sent,
            "sentAt": self.sent_at,
            "userId": self.user_id,
        })
        return result

    def body_dict(self) -> dict[str, Any]:
        """Business content only; delivery state lives in dedicated columns."""
        result: dict[str, Any] = dict(self.extra)
        result.update({
            "meta": self.meta.to_dict(),
            "schedule": [line.to_dict() for line in self.schedule],
            "scope": [line.to_dict() for line in self.scope],
        })
        return result

    def copy(self, **changes: Any) -> "Submission":
        return replace(self, **changes)


@dataclass(slots=True)
class RetryQueueEntry:
    """A delivery that exhausted its in-call retries and awaits replay."""
    id: str
    action: str
    data: Any
    timestamp: str
    attempts: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RetryQueueEntry":
        return cls(
            id=to_str(data.get("id")),
            action=to_str(data.get("action")),
            data=data.get("data"),
            timestamp=to_str(data.get("timestamp")),
            attempts=to_int(data.get("attempts")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "action": self.action,
            "data": self.data,
            "timestamp": self.timestamp,
            "attempts": self.attempts,
        }


@dataclass(frozen=True, slots=True)
class RemoteConfig:
    """Where and how to deliver submissions."""
    endpoint: str
    api_key: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RemoteConfig":
        return cls(
            endpoint=to_str(data.get("endpoint")),
            api_key=to_str(data.get("apiKey")),
        )

    def to_dict(self) -> dict[str, str]:
        return {"endpoint": self.endpoint, "apiKey": self.api_key}

    def overlay(self, data: Mapping[str, Any]) -> "RemoteConfig":
        """Shallow overlay; keys absent or None in data keep their value."""
        endpoint = data.get("endpoint")
        api_key = data.get("apiKey", data.get("api_key"))
        return RemoteConfig(
            endpoint=self.endpoint if endpoint is None else to_str(endpoint),
            api_key=self.api_key if api_key is None else to_str(api_key),
        )
