"""
conftest.py - pytest fixtures for po_sync tests.
"""

import json
import os
import tempfile

import httpx
import pytest

from po_sync.config import ENV_API_KEY, ENV_REMOTE_ENDPOINT
from po_sync.context import AppContext
from po_sync.settings import SyncSettings
from po_sync.store import SubmissionStore

TEST_ENDPOINT = "https://workflow.test/hook"


class FakeEndpoint:
    """
    Stand-in for the remote workflow, served through httpx.MockTransport.

    Responds with queued status codes first, then default_status.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.statuses: list[int] = []
        self.default_status = 200
        self.timeout = False

    @property
    def payloads(self) -> list:
        return [json.loads(request.content) for request in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.timeout:
            raise httpx.ReadTimeout("timed out", request=request)
        status = self.statuses.pop(0) if self.statuses else self.default_status
        if 200 <= status < 300:
            return httpx.Response(status, json={"received": True})
        return httpx.Response(status, text="workflow error")

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def build_po(**meta_overrides) -> dict:
    """A submission that passes validation."""
    meta = {
        "projectName": "Harbor Point Tower",
        "generalContractor": "Keystone Builders",
        "address": "100 Harbor Way",
        "owner": "Harbor Point LLC",
        "apexOwner": "J. Rivera",
        "typeStatus": "Commercial",
        "projectManager": "A. Chen",
        "contractAmount": "125000",
        "addAltAmount": "0",
        "retainagePct": "10",
        "requestedBy": "M. Patel",
        "companyName": "Bright Electric",
        "contactName": "Dana Brooks",
        "email": "dana@brightelectric.test",
        "cellNumber": "555-0100",
        "vendorType": "Subcontractor",
        "workType": "Electrical",
        "importantDates": {"noticeToProceed": "2024-03-01"},
    }
    meta.update(meta_overrides)
    return {
        "meta": meta,
        "schedule": [
            {
                "primeLine": "1",
                "budgetCode": "26-100",
                "description": "Rough-in",
                "qty": "10",
                "unit": "5",
                "scheduled": "50",
                "apexContractValue": "40",
            }
        ],
        "scope": [
            {"item": "1", "description": "Temporary power", "included": True, "excluded": False}
        ],
    }


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test databases."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def store(temp_dir):
    """Create an initialized SubmissionStore in a temp directory."""
    store = SubmissionStore(os.path.join(temp_dir, "test.db"))
    store.initialize()
    yield store
    store.close()


@pytest.fixture
def po_data():
    return build_po()


@pytest.fixture
def endpoint():
    return FakeEndpoint()


@pytest.fixture
def context(temp_dir, endpoint, monkeypatch):
    """AppContext wired to the fake endpoint; not yet initialized."""
    monkeypatch.setenv(ENV_REMOTE_ENDPOINT, TEST_ENDPOINT)
    monkeypatch.delenv(ENV_API_KEY, raising=False)
    return AppContext(
        os.path.join(temp_dir, "po.db"),
        sync_settings=SyncSettings(retry_delay_seconds=0, auto_start=False),
        http_transport=endpoint.transport(),
    )
