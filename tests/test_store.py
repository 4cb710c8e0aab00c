"""
test_store.py - Local durable store.
"""

import os

import pytest

from po_sync.errors import StorageError
from po_sync.models import Submission
from po_sync.store import SubmissionStore


class TestSaveAndRead:
    def test_save_assigns_id_and_pending_state(self, store, po_data):
        sub_id = store.save(po_data)
        sub = store.get_by_id(sub_id)

        assert sub.id == sub_id
        assert sub.sent is False
        assert sub.sent_at == ""
        assert sub.created_at.endswith("Z")
        assert sub.timestamp > 0
        assert sub.meta.project_name == "Harbor Point Tower"
        assert sub.meta.contract_amount == 125000

    def test_derived_values_recomputed_on_save(self, store, po_data):
        po_data["schedule"][0]["totalCost"] = 1
        sub = store.get_by_id(store.save(po_data))
        assert sub.schedule[0].total_cost == 50
        assert sub.schedule[0].profit == -10

    def test_scope_flags_normalized_on_save(self, store, po_data):
        po_data["scope"][0]["excluded"] = True
        sub = store.get_by_id(store.save(po_data))
        assert sub.scope[0].excluded and not sub.scope[0].included

    def test_sent_flag_ignored_on_save(self, store, po_data):
        po_data["sent"] = True
        sub = store.get_by_id(store.save(po_data))
        assert sub.sent is False

    def test_unknown_keys_round_trip(self, store, po_data):
        po_data["revisionOf"] = 7
        sub = store.get_by_id(store.save(po_data))
        assert sub.extra["revisionOf"] == 7

    def test_duplicate_id_rejected(self, store, po_data):
        store.save(Submission.from_dict(po_data).copy(id=5))
        with pytest.raises(StorageError):
            store.save(Submission.from_dict(po_data).copy(id=5))

    def test_missing_id(self, store):
        assert store.get_by_id(404) is None


class TestDeliveryState:
    def test_pending_in_save_order(self, store, po_data):
        ids = [store.save(po_data) for _ in range(3)]
        assert [s.id for s in store.get_pending()] == ids

    def test_mark_sent_is_idempotent(self, store, po_data):
        sub_id = store.save(po_data)
        assert store.mark_sent(sub_id) is True
        first = store.get_by_id(sub_id).sent_at

        assert store.mark_sent(sub_id) is False
        assert store.get_by_id(sub_id).sent_at == first
        assert store.get_pending() == []

    def test_mark_sent_missing_id_is_noop(self, store):
        assert store.mark_sent(12345) is False

    def test_delete(self, store, po_data):
        sub_id = store.save(po_data)
        assert store.delete(sub_id) is True
        assert store.delete(sub_id) is False
        assert store.count() == 0

    def test_count(self, store, po_data):
        first = store.save(po_data)
        store.save(po_data)
        store.mark_sent(first)
        assert store.count() == 2
        assert store.count(sent=True) == 1
        assert store.count(sent=False) == 1

    def test_integrity_check(self, store):
        assert store.check_integrity()
        store.close()
        assert not store.check_integrity()


class TestSearch:
    def setup_method(self):
        self.saved = []

    def _seed(self, store, po_data):
        for name, amount, contractor in [
            ("Harbor Point Tower", "125000", "Keystone Builders"),
            ("Mill Street Lofts", "40000", "Summit GC"),
            ("Civic Library", "90000", "Keystone Builders"),
        ]:
            po_data["meta"].update(projectName=name, contractAmount=amount, generalContractor=contractor)
            self.saved.append(store.save(po_data))

    def test_query_and_filters(self, store, po_data):
        self._seed(store, po_data)
        store.mark_sent(self.saved[0])

        assert [s.meta.project_name for s in store.search("lofts")] == ["Mill Street Lofts"]
        assert len(store.search(filters={"contractor": "keystone"})) == 2
        assert len(store.search(filters={"status": "sent"})) == 1
        assert len(store.search(filters={"status": "pending"})) == 2
        assert [s.meta.project_name for s in store.search(filters={"min_amount": 50000, "max_amount": 100000})] == [
            "Civic Library"
        ]

    def test_newest_first(self, store, po_data):
        self._seed(store, po_data)
        assert [s.id for s in store.search()] == list(reversed(self.saved))

    def test_paginate(self):
        page = SubmissionStore.paginate(list(range(25)), page=3, limit=10)
        assert page["items"] == [20, 21, 22, 23, 24]
        assert page["totalPages"] == 3
        assert page["totalItems"] == 25
        assert page["hasNext"] is False
        assert page["hasPrev"] is True

    def test_stats(self, store, po_data):
        self._seed(store, po_data)
        store.mark_sent(self.saved[1])
        stats = store.stats()
        assert stats["total"] == 3
        assert stats["sent"] == 1
        assert stats["pending"] == 2
        assert stats["totalValue"] == 255000
        assert stats["avgValue"] == 85000


class TestExportImport:
    def test_import_into_fresh_store(self, store, po_data, temp_dir):
        sent_id = store.save(po_data)
        store.save(po_data)
        store.mark_sent(sent_id)
        exported = store.export_data()

        with SubmissionStore(os.path.join(temp_dir, "copy.db")) as copy:
            copy.initialize()
            assert copy.import_data(exported) == 2
            assert copy.import_data(exported) == 0
            assert copy.get_by_id(sent_id).sent is True
            assert len(copy.get_pending()) == 1

    def test_import_ignores_garbage(self, store):
        assert store.import_data({"pos": "nope"}) == 0


def test_reopen_keeps_data(temp_dir, po_data):
    path = os.path.join(temp_dir, "durable.db")
    with SubmissionStore(path) as first:
        first.initialize()
        sub_id = first.save(po_data)

    with SubmissionStore(path) as second:
        second.initialize()
        assert second.get_by_id(sub_id).meta.company_name == "Bright Electric"
