import json

import pytest

from scim_sync import cli
from scim_sync.core import audit
from tests.conftest import FakeSession, StubResponse

PROVIDERS_YAML = """
ScimSettings:
  CloudIntegrations:
    Okta:
      Enabled: true
      BaseUrl: https://okta.test/scim/v2
      ApiToken: abc123
    Legacy:
      Enabled: false
      BaseUrl: https://legacy.test/scim
      ApiToken: old
"""


@pytest.fixture
def providers_file(tmp_path, monkeypatch):
    path = tmp_path / "providers.yaml"
    path.write_text(PROVIDERS_YAML)
    monkeypatch.setenv("SCIM_PROVIDERS_FILE", str(path))
    monkeypatch.delenv("SCIM_AUDIT_ENABLED", raising=False)
    return path


@pytest.fixture
def session(monkeypatch):
    fake = FakeSession()
    monkeypatch.setattr("scim_sync.core.sync_dispatcher.requests.Session", lambda: fake)
    return fake


def test_providers_lists_entries(providers_file, capsys):
    assert cli.main(["--providers-file", str(providers_file), "providers"]) == 0
    out = capsys.readouterr().out
    assert "Okta\tstatic_token\tenabled" in out
    assert "Legacy\tstatic_token\tdisabled" in out


def test_push_user_create(providers_file, session, tmp_path):
    session.routes["https://okta.test/scim/v2/Users"] = StubResponse(201)
    doc = tmp_path / "alice.json"
    doc.write_text(json.dumps({
        "userName": "alice",
        "name": {"givenName": "Alice", "familyName": "Smith"},
        "emails": [{"value": "alice@example.com", "primary": True}],
    }))

    assert cli.main(["--providers-file", str(providers_file), "push-user", "--file", str(doc)]) == 0

    call = session.calls[0]
    assert call["headers"]["Authorization"] == "SSWS abc123"
    assert call["json"]["id"]
    assert session.calls_to("https://legacy.test") == []


def test_push_group_delete_requires_id(providers_file, session, tmp_path):
    doc = tmp_path / "group.json"
    doc.write_text(json.dumps({"displayName": "Engineering"}))

    assert cli.main(["--providers-file", str(providers_file), "push-group", "--file", str(doc),
                     "--operation", "delete"]) == 2
    assert session.calls == []


def test_push_group_failure_exit_code(providers_file, session, tmp_path):
    session.routes["https://okta.test/scim/v2/Groups/g-1"] = StubResponse(500)
    doc = tmp_path / "group.json"
    doc.write_text(json.dumps({"id": "g-1", "displayName": "Engineering"}))

    assert cli.main(["--providers-file", str(providers_file), "push-group", "--file", str(doc),
                     "--operation", "update"]) == 1
    assert session.calls[0]["method"] == "PUT"


def test_verify_audit(monkeypatch, tmp_path, capsys):
    monkeypatch.setattr(audit, "AUDIT_LOG_DIR", tmp_path)
    monkeypatch.setattr(audit, "AUDIT_LOG_FILE", tmp_path / "sync-events.jsonl")
    monkeypatch.setenv("SCIM_AUDIT_SIGNING_KEY", "k")
    audit.log_sync_event("Users", "a", "create", "Okta", success=True)

    assert cli.main(["verify-audit"]) == 0
    assert "1/1" in capsys.readouterr().out


def test_verify_audit_without_configured_key(monkeypatch, tmp_path, capsys):
    monkeypatch.setattr(audit, "AUDIT_LOG_DIR", tmp_path)
    monkeypatch.setattr(audit, "AUDIT_LOG_FILE", tmp_path / "sync-events.jsonl")
    for var in ("SCIM_AUDIT_SIGNING_KEY", "SCIM_AUDIT_SIGNING_KEY_FILE", "SCIM_AUDIT_SIGNING_KEY_DEMO"):
        monkeypatch.delenv(var, raising=False)
    audit.log_sync_event("Users", "a", "create", "Okta", success=True)

    assert cli.main(["verify-audit"]) == 0
    assert "1/1" in capsys.readouterr().out


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 2
