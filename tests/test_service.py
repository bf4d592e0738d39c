"""
EntitlementService use cases: key issuance, script lifecycle, list edits and
access resolution, including the end-to-end alice/bob scenario.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from keygate.errors import (
    DuplicateKeyError,
    InvalidKeyError,
    InvalidListKindError,
    ScriptNotFoundError,
    ValidationError,
)
from keygate.models import AccessOutcome, ListKind
from keygate.service import EntitlementService


# ----- Keys -----

def test_issue_free_key_returns_plan(service, clock):
    issued = service.issue_free_key("alice")

    assert issued.plan == "1-month"
    assert issued.key.expires_at == clock.now() + timedelta(days=30)


@pytest.mark.parametrize("user_id", [None, "", "   "])
def test_issue_free_key_requires_user_id(service, user_id):
    with pytest.raises(ValidationError, match="User ID is required."):
        service.issue_free_key(user_id)


def test_issue_free_key_twice_is_duplicate_even_after_expiry(service, clock):
    service.issue_free_key("alice")
    clock.advance(days=31)

    with pytest.raises(DuplicateKeyError):
        service.issue_free_key("alice")


def test_validate_key_reports_tier(service):
    issued = service.issue_free_key("alice")

    status = service.validate_key(issued.key.id)

    assert status.plan == "Free"
    assert status.key_id == issued.key.id


def test_validate_paid_key(service):
    key = service.key_store.issue_key("bob", "1-month", is_paid=True)

    assert service.validate_key(key.id).plan == "Paid"


def test_validate_key_after_expiry_stays_invalid(service, clock):
    issued = service.issue_free_key("alice")
    clock.advance(days=30, seconds=1)

    with pytest.raises(InvalidKeyError):
        service.validate_key(issued.key.id)
    with pytest.raises(InvalidKeyError):
        service.validate_key(issued.key.id)


@pytest.mark.parametrize("key_id", [None, "", "  ", "unknown"])
def test_validate_key_rejects_missing_and_unknown(service, key_id):
    with pytest.raises(InvalidKeyError):
        service.validate_key(key_id)


# ----- Scripts -----

@pytest.mark.parametrize("code, key_id", [("", "k"), (None, "k"), ("print(1)", None), ("print(1)", "")])
def test_create_script_validates_before_touching_store(service, code, key_id):
    with pytest.raises(ValidationError, match="Code and API key are required."):
        service.create_script(code, False, key_id)

    assert service.list_scripts() == []


def test_create_script_rejects_expired_key(service, clock):
    issued = service.issue_free_key("alice")
    clock.advance(days=31)

    with pytest.raises(InvalidKeyError):
        service.create_script("print(1)", True, issued.key.id)
    assert len(service.script_store) == 0


def test_create_script_returns_ids(service, audit_sink):
    issued = service.issue_free_key("alice")

    created = service.create_script("print(1)", True, issued.key.id)

    assert created.key_id == issued.key.id
    script = service.script_store.get(created.script_id)
    assert script.owner_user_id == "alice"
    assert script.is_paid is True
    assert "scripts.created" in audit_sink.names()


def test_create_script_coerces_paid_flag(service):
    issued = service.issue_free_key("alice")

    created = service.create_script("print(1)", None, issued.key.id)

    assert service.script_store.get(created.script_id).is_paid is False


def test_list_scripts_projection(service):
    issued = service.issue_free_key("alice")
    created = service.create_script("print(1)", True, issued.key.id)

    [summary] = service.list_scripts()

    assert summary.id == created.script_id
    assert summary.is_paid is True
    assert summary.executions == 0


def test_delete_unknown_script(service):
    with pytest.raises(ScriptNotFoundError):
        service.delete_script("missing")


# ----- Lists -----

@pytest.fixture
def paid_script(service):
    issued = service.issue_free_key("alice")
    created = service.create_script("print(1)", True, issued.key.id)
    return created.script_id, issued.key.id


def test_add_to_list_accepts_strings_and_enum(service, paid_script):
    script_id, _ = paid_script

    service.add_to_list(script_id, "whitelist", "bob")
    service.add_to_list(script_id, ListKind.BLACKLIST, "carol")

    lists = service.get_lists(script_id)
    assert lists.whitelist == ("bob",)
    assert lists.blacklist == ("carol",)


def test_add_twice_keeps_single_entry(service, paid_script):
    script_id, _ = paid_script

    service.add_to_list(script_id, "blacklist", "bob")
    service.add_to_list(script_id, "blacklist", "bob")

    assert service.get_lists(script_id).blacklist == ("bob",)


def test_remove_absent_user_is_ok(service, paid_script, audit_sink):
    script_id, _ = paid_script

    service.remove_from_list(script_id, "whitelist", "nobody")

    event, payload = audit_sink.events[-1]
    assert event == "scripts.list_removed"
    assert payload["changed"] is False


@pytest.mark.parametrize("operation", ["add_to_list", "remove_from_list"])
def test_invalid_list_kind(service, paid_script, operation):
    script_id, _ = paid_script

    with pytest.raises(InvalidListKindError) as exc:
        getattr(service, operation)(script_id, "greylist", "bob")
    assert exc.value.code == "INVALID_LIST_KIND"


@pytest.mark.parametrize("operation", ["add_to_list", "remove_from_list", "get_lists"])
def test_list_operations_on_unknown_script(service, operation):
    args = ("missing",) if operation == "get_lists" else ("missing", "whitelist", "bob")
    with pytest.raises(ScriptNotFoundError):
        getattr(service, operation)(*args)


def test_list_mutation_requires_user_id(service, paid_script):
    script_id, _ = paid_script

    with pytest.raises(ValidationError):
        service.add_to_list(script_id, "whitelist", "")


# ----- Access -----

def test_alice_and_bob_scenario(service, clock):
    issued = service.issue_free_key("alice")
    assert issued.key.expires_at == clock.now() + timedelta(days=30)
    created = service.create_script("print(1)", True, issued.key.id)
    script_id, key_id = created.script_id, issued.key.id
    service.add_to_list(script_id, "blacklist", "bob")

    # bob fails the key binding before the blacklist is consulted
    result = service.resolve_access(script_id, key_id, "bob")
    assert result.outcome is AccessOutcome.FORBIDDEN
    assert service.script_store.get(script_id).executions == 0

    result = service.resolve_access(script_id, key_id, "alice")
    assert result.outcome is AccessOutcome.ALLOW
    assert result.payload == "print(1)"
    assert service.script_store.get(script_id).executions == 1

    service.resolve_access(script_id, key_id, "alice")
    assert service.script_store.get(script_id).executions == 2

    service.delete_script(script_id)
    assert service.resolve_access(script_id, key_id, "alice").outcome is AccessOutcome.NOT_FOUND


def test_kick_carries_client_message(service, paid_script):
    script_id, key_id = paid_script
    service.add_to_list(script_id, "whitelist", "alice")
    service.add_to_list(script_id, "blacklist", "alice")

    result = service.resolve_access(script_id, key_id, "alice")

    assert result.outcome is AccessOutcome.KICK
    assert result.reason == "blacklisted"
    assert result.message == "You are blacklisted from this script."
    assert result.payload is None
    assert service.script_store.get(script_id).executions == 0


def test_kick_when_not_whitelisted(service, paid_script):
    script_id, key_id = paid_script
    service.add_to_list(script_id, "whitelist", "carol")

    result = service.resolve_access(script_id, key_id, "alice")

    assert result.outcome is AccessOutcome.KICK
    assert result.message == "You are not whitelisted for this script."


def test_free_script_ignores_blacklist(service):
    issued = service.issue_free_key("alice")
    created = service.create_script("print(1)", False, issued.key.id)
    service.add_to_list(created.script_id, "blacklist", "alice")

    result = service.resolve_access(created.script_id, issued.key.id, "alice")

    assert result.allowed


def test_expired_key_is_forbidden_at_resolution(service, clock, paid_script):
    script_id, key_id = paid_script
    clock.advance(days=31)

    assert service.resolve_access(script_id, key_id, "alice").outcome is AccessOutcome.FORBIDDEN


def test_resolution_with_missing_arguments(service, paid_script):
    script_id, _ = paid_script

    assert service.resolve_access(script_id, None, None).outcome is AccessOutcome.FORBIDDEN
    assert service.resolve_access(None, None, None).outcome is AccessOutcome.NOT_FOUND


def test_resolution_emits_audit_events(service, paid_script, audit_sink):
    script_id, key_id = paid_script

    service.resolve_access(script_id, key_id, "bob")
    service.resolve_access(script_id, key_id, "alice")

    names = audit_sink.names()
    assert names[-2:] == ["access.denied", "access.allowed"]
    assert audit_sink.events[-1][1]["executions"] == 1


def test_default_service_builds_its_own_stores():
    service = EntitlementService(audit_sink=lambda event, payload: None)

    issued = service.issue_free_key("dave")

    assert service.validate_key(issued.key.id).plan == "Free"


@pytest.mark.parametrize("list_kind", ["WhiteList", "BLACKLIST", " blacklist ", None])
def test_list_kind_is_matched_exactly(service, paid_script, list_kind):
    script_id, _ = paid_script

    with pytest.raises(InvalidListKindError):
        service.add_to_list(script_id, list_kind, "bob")
    assert service.get_lists(script_id).whitelist == ()
    assert service.get_lists(script_id).blacklist == ()


@pytest.mark.parametrize("requester", [" alice", "alice ", "Alice"])
def test_requester_id_is_compared_exactly(service, paid_script, requester):
    script_id, key_id = paid_script

    result = service.resolve_access(script_id, key_id, requester)

    assert result.outcome is AccessOutcome.FORBIDDEN
    assert service.script_store.get(script_id).executions == 0
