"""
test_settings.py - Persisted configuration, admin PIN, drafts and the retry queue.
"""

import pytest

from po_sync.config import DEFAULT_ADMIN_PIN, ENV_API_KEY, ENV_REMOTE_ENDPOINT
from po_sync.errors import ConfigError, ValidationError
from po_sync.models import RemoteConfig
from po_sync.retry_queue import RetryQueue
from po_sync.settings import SettingsStore, SyncSettings, default_remote_config


@pytest.fixture
def settings(store):
    return SettingsStore(store)


class TestRemoteConfig:
    def test_environment_overrides_default(self, monkeypatch):
        monkeypatch.setenv(ENV_REMOTE_ENDPOINT, "https://env.test/flow")
        monkeypatch.setenv(ENV_API_KEY, "k-123")
        assert default_remote_config() == RemoteConfig("https://env.test/flow", "k-123")

    def test_saved_overlay_survives_reload(self, settings, monkeypatch):
        monkeypatch.setenv(ENV_REMOTE_ENDPOINT, "https://env.test/flow")
        current = settings.load_remote_config()
        settings.save_remote_config(current, {"apiKey": "secret"})

        reloaded = settings.load_remote_config()
        assert reloaded.endpoint == "https://env.test/flow"
        assert reloaded.api_key == "secret"

    def test_overlay_is_shallow(self):
        base = RemoteConfig("https://a.test", "key")
        assert base.overlay({"endpoint": "https://b.test"}) == RemoteConfig("https://b.test", "key")
        assert base.overlay({"api_key": ""}) == RemoteConfig("https://a.test", "")


class TestSyncSettings:
    def test_defaults(self):
        settings = SyncSettings()
        assert settings.interval_seconds == 300
        assert settings.timeout_seconds == 30
        assert settings.retry_attempts == 3
        assert settings.retry_delay_seconds == 1

    def test_rejects_zero_attempts(self):
        with pytest.raises(ConfigError):
            SyncSettings(retry_attempts=0)

    def test_persisted_overlay(self, settings):
        settings.save_sync_settings(SyncSettings(retry_attempts=5))
        loaded = settings.load_sync_settings(SyncSettings(retry_delay_seconds=0))
        assert loaded.retry_attempts == 5

    def test_overlay_skips_unknown_and_none(self):
        updated = SyncSettings().overlay({"retry_attempts": None, "bogus": 1, "enable_sync": False})
        assert updated.retry_attempts == 3
        assert updated.enable_sync is False


class TestAdminPin:
    def test_default_pin(self, settings):
        assert settings.get_admin_pin() == DEFAULT_ADMIN_PIN
        assert settings.verify_admin_pin("1234")
        assert not settings.verify_admin_pin(None)

    def test_change_pin(self, settings):
        settings.set_admin_pin("98765")
        assert settings.verify_admin_pin("98765")
        assert not settings.verify_admin_pin("1234")

    def test_short_pin_rejected(self, settings):
        with pytest.raises(ValidationError):
            settings.set_admin_pin("123")
        assert settings.get_admin_pin() == DEFAULT_ADMIN_PIN


class TestUiState:
    def test_draft_lifecycle(self, settings, po_data):
        assert settings.load_draft() is None
        settings.save_draft(po_data)
        assert settings.load_draft()["meta"]["projectName"] == "Harbor Point Tower"
        settings.clear_draft()
        assert settings.load_draft() is None

    def test_dark_mode(self, settings):
        assert settings.get_dark_mode() is False
        settings.set_dark_mode(True)
        assert settings.get_dark_mode() is True


class TestRetryQueue:
    def test_add_persists(self, settings):
        queue = RetryQueue(settings)
        entry = queue.add("CREATE_PO", {"id": 1})
        assert len(queue) == 1
        assert RetryQueue(settings).entries()[0].id == entry.id
        assert entry.attempts == 0

    def test_update_and_remove(self, settings):
        queue = RetryQueue(settings)
        first = queue.add("DIRECT_SYNC", {"id": 1})
        second = queue.add("DELETE_PO", {"id": 2})

        first.attempts = 2
        queue.update(first)
        assert queue.entries()[0].attempts == 2

        assert queue.remove({first.id}) == 1
        assert [entry.id for entry in queue.entries()] == [second.id]

    def test_clear(self, settings):
        queue = RetryQueue(settings)
        queue.add("DIRECT_SYNC", {})
        queue.clear()
        assert len(queue) == 0
