import pytest

from league_dashboard.audit import AuditLog
from league_dashboard.config import Settings
from league_dashboard.errors import InvalidRequest, OperationFailed, guarded
from league_dashboard.models import AuditAction


def test_guarded_passes_dashboard_errors_through():
    @guarded("Something went wrong.")
    def reject():
        raise InvalidRequest("Bad input.")

    with pytest.raises(InvalidRequest) as excinfo:
        reject()
    assert excinfo.value.status_code == 400
    assert excinfo.value.message == "Bad input."


def test_guarded_hides_unexpected_errors(caplog):
    @guarded("Something went wrong.")
    def explode():
        raise KeyError("secret detail")

    with pytest.raises(OperationFailed) as excinfo:
        explode()
    assert excinfo.value.status_code == 500
    assert excinfo.value.message == "Something went wrong."
    assert "explode failed" in caplog.text


def test_settings_from_mapping():
    settings = Settings.from_env(
        {
            "LEAGUE_DASHBOARD_DB_PATH": "/tmp/league.db",
            "LEAGUE_DASHBOARD_LOG_LEVEL": "debug",
            "LEAGUE_DASHBOARD_FILE_PREFIX": "club",
        }
    )
    assert settings.db_path == "/tmp/league.db"
    assert settings.log_level == "DEBUG"
    assert settings.file_prefix == "club"
    assert settings.timezone == "America/New_York"


def test_settings_defaults():
    assert Settings.from_env({}) == Settings()


class _BrokenRepository:
    def add_audit_entry(self, *args, **kwargs):
        raise RuntimeError("disk full")


def test_audit_failures_are_swallowed(caplog):
    AuditLog(_BrokenRepository()).record("admin", AuditAction.UPDATE, "users", "Changed something")
    assert "Failed to record audit entry" in caplog.text


def test_audit_skips_anonymous_viewers(repository):
    AuditLog(repository).record(None, AuditAction.READ, "users", "Looked around")
    AuditLog(repository).record("admin", "read", "users", "Looked around", entity_id=5)
    entries = repository.list_audit_entries()
    assert len(entries) == 1
    assert entries[0].entity_id == "5"
    assert entries[0].action == "read"
