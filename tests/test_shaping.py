"""
test_shaping.py - Outbound payload shape.
"""

from po_sync.models import Submission
from po_sync.shaping import build_action_envelope, build_test_payload, shape_po_for_send

META_KEYS = {
    "projectName", "generalContractor", "address", "owner", "apexOwner",
    "typeStatus", "projectManager", "contractAmount", "addAltAmount",
    "addAltDetails", "retainagePct", "requestedBy", "companyName",
    "contactName", "cellNumber", "email", "officeNumber", "vendorType",
    "workType", "importantDates",
}
LINE_KEYS = {
    "primeLine", "budgetCode", "description", "qty", "unit", "totalCost",
    "scheduled", "apexContractValue", "profit",
}


class TestShapePO:
    def test_empty_input_is_fully_shaped(self):
        shaped = shape_po_for_send({})
        assert set(shaped) == {"meta", "schedule", "scope", "createdAt", "sent", "timestamp", "id", "sentAt"}
        assert set(shaped["meta"]) == META_KEYS
        assert shaped["meta"]["contractAmount"] == 0
        assert shaped["meta"]["projectName"] == ""
        assert shaped["schedule"] == []
        assert shaped["scope"] == []
        assert shaped["sent"] is False
        assert isinstance(shaped["id"], int) and shaped["id"] > 0
        assert isinstance(shaped["timestamp"], int) and shaped["timestamp"] > 0
        assert shaped["createdAt"]

    def test_numbers_become_integers(self, po_data):
        po_data["meta"]["contractAmount"] = "12500.75"
        shaped = shape_po_for_send(po_data)
        assert shaped["meta"]["contractAmount"] == 12500
        assert shaped["meta"]["retainagePct"] == 10

        line = shaped["schedule"][0]
        assert set(line) == LINE_KEYS
        assert line["qty"] == 10
        assert line["unit"] == 5
        assert line["totalCost"] == 50
        assert line["profit"] == -10
        assert all(isinstance(line[key], int) for key in ("qty", "unit", "totalCost", "scheduled", "apexContractValue", "profit"))

    def test_derived_values_recomputed(self, po_data):
        po_data["schedule"][0]["totalCost"] = 12345
        po_data["schedule"][0]["profit"] = 999
        line = shape_po_for_send(po_data)["schedule"][0]
        assert line["totalCost"] == 50
        assert line["profit"] == -10

    def test_partial_lines(self):
        shaped = shape_po_for_send({"schedule": [None, {"qty": "3"}], "scope": [{"included": "false"}]})
        assert len(shaped["schedule"]) == 2
        assert shaped["schedule"][0]["primeLine"] == ""
        assert shaped["schedule"][1]["qty"] == 3
        assert shaped["scope"][0] == {"item": "", "description": "", "included": False, "excluded": False}

    def test_submission_keeps_id(self, po_data):
        submission = Submission.from_dict(po_data).copy(id=42, timestamp=1700000000000)
        shaped = shape_po_for_send(submission)
        assert shaped["id"] == 42
        assert shaped["timestamp"] == 1700000000000
        assert shaped["meta"]["importantDates"]["noticeToProceed"] == "2024-03-01"


def test_action_envelope():
    envelope = build_action_envelope("DELETE_PO", {"id": 3}, {"id": "u1", "name": "Dana"})
    assert envelope["action"] == "DELETE_PO"
    assert envelope["data"] == {"id": 3}
    assert envelope["userId"] == "u1"
    assert envelope["userInfo"] == {"id": "u1", "name": "Dana"}
    assert envelope["timestamp"].endswith("Z")


def test_anonymous_envelope():
    envelope = build_action_envelope("CREATE_PO", {})
    assert envelope["userId"] is None
    assert envelope["userInfo"] is None


def test_test_payload():
    payload = build_test_payload()
    assert payload["test"] is True
    assert payload["source"] == "admin_test"
