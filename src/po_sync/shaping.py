"""
shaping.py - Outbound payload normalization.

The remote workflow validates incoming JSON against a fixed schema and
rejects anything that deviates. Each outbound message type has exactly
one shaping function here, total over all fields: every key is present
and carries the schema's type no matter how partial the input is.
"""

import time
from typing import Any, Mapping

from po_sync.config import ACTION_HEALTH_CHECK
from po_sync.models import ScheduleLine, Submission
from po_sync.schedule import recalc_line
from po_sync.utils.coerce import coerce_number, to_bool, to_int, to_str
from po_sync.utils.timeutil import now_millis, utc_now_iso


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _shape_schedule_line(item: Any) -> dict[str, Any]:
    item = _mapping(item)
    # Derived values come from the inputs, never from the record
    totals = recalc_line(ScheduleLine(
        qty=coerce_number(item.get("qty")),
        unit=coerce_number(item.get("unit")),
        apex_contract_value=coerce_number(item.get("apexContractValue")),
    ))
    return {
        "primeLine": to_str(item.get("primeLine")),
        "budgetCode": to_str(item.get("budgetCode")),
        "description": to_str(item.get("description")),
        "qty": to_int(coerce_number(item.get("qty"))),
        "unit": to_int(coerce_number(item.get("unit"))),
        "totalCost": to_int(totals.total_cost),
        "scheduled": to_int(coerce_number(item.get("scheduled"))),
        "apexContractValue": to_int(coerce_number(item.get("apexContractValue"))),
        "profit": to_int(totals.profit),
    }


def _shape_scope_line(item: Any) -> dict[str, Any]:
    item = _mapping(item)
    return {
        "item": to_str(item.get("item")),
        "description": to_str(item.get("description")),
        "included": to_bool(item.get("included")),
        "excluded": to_bool(item.get("excluded")),
    }


def shape_po_for_send(po: Submission | Mapping[str, Any]) -> dict[str, Any]:
    """
    Shape a purchase order into the workflow's PO schema.

    Numbers become integers, strings become strings, booleans become
    booleans. Missing timestamps default to now; a missing id defaults
    to the current epoch second.
    """
    if isinstance(po, Submission):
        po = po.to_dict()
    po = _mapping(po)
    meta = _mapping(po.get("meta"))
    dates = _mapping(meta.get("importantDates"))
    schedule = po.get("schedule")
    scope = po.get("scope")

    raw_id = to_int(po.get("id"))
    raw_timestamp = to_int(po.get("timestamp"))

    return {
        "meta": {
            "projectName": to_str(meta.get("projectName")),
            "generalContractor": to_str(meta.get("generalContractor")),
            "address": to_str(meta.get("address")),
            "owner": to_str(meta.get("owner")),
            "apexOwner": to_str(meta.get("apexOwner")),
            "typeStatus": to_str(meta.get("typeStatus")),
            "projectManager": to_str(meta.get("projectManager")),
            "contractAmount": to_int(coerce_number(meta.get("contractAmount"))),
            "addAltAmount": to_int(coerce_number(meta.get("addAltAmount"))),
            "addAltDetails": to_str(meta.get("addAltDetails")),
            "retainagePct": to_int(coerce_number(meta.get("retainagePct"))),
            "requestedBy": to_str(meta.get("requestedBy")),
            "companyName": to_str(meta.get("companyName")),
            "contactName": to_str(meta.get("contactName")),
            "cellNumber": to_str(meta.get("cellNumber")),
            "email": to_str(meta.get("email")),
            "officeNumber": to_str(meta.get("officeNumber")),
            "vendorType": to_str(meta.get("vendorType")),
            "workType": to_str(meta.get("workType")),
            "importantDates": {
                "noticeToProceed": to_str(dates.get("noticeToProceed")),
                "anticipatedStart": to_str(dates.get("anticipatedStart")),
                "substantialCompletion": to_str(dates.get("substantialCompletion")),
                "hundredPercent": to_str(dates.get("hundredPercent")),
            },
        },
        "schedule": [_shape_schedule_line(item) for item in schedule] if isinstance(schedule, list) else [],
        "scope": [_shape_scope_line(item) for item in scope] if isinstance(scope, list) else [],
        "createdAt": to_str(po.get("createdAt")) or utc_now_iso(),
        "sent": to_bool(po.get("sent")),
        "timestamp": raw_timestamp or now_millis(),
        "id": raw_id or int(time.time()),
        "sentAt": to_str(po.get("sentAt")) or utc_now_iso(),
    }


def build_action_envelope(
    action: str,
    data: Any,
    user: Mapping[str, Any] | None = None
) -> dict[str, Any]:
    """Wrap data for the generic action-sync path."""
    return {
        "action": action,
        "data": data,
        "timestamp": utc_now_iso(),
        "userId": user.get("id") if user else None,
        "userInfo": dict(user) if user else None,
    }


def build_test_payload() -> dict[str, Any]:
    """Body sent by the admin connectivity test."""
    return {"test": True, "ts": utc_now_iso(), "source": "admin_test"}


def build_health_check_payload() -> dict[str, Any]:
    return {"action": ACTION_HEALTH_CHECK, "timestamp": utc_now_iso()}
