"""Access policy evaluation and caller role resolution."""

from __future__ import annotations

import pytest

from procgov.core.errors import ConfigurationError
from procgov.policy.evaluator import (
    AccessDecision,
    AccessPolicy,
    AccessReason,
    Caller,
    PolicyConfig,
    evaluate,
)
from procgov.policy.roles import USER_ROLE, caller_for, resolve_role
from procgov.store.records import ProcedureRecord

from tests.factories import make_record


def test_uploader_match_scenario() -> None:
    caller = Caller(id="43898931", role="user")
    procedure = make_record(primary_owner="wilson.ross", secondary_owner=None, uploaded_by="43898931")
    assert evaluate(caller, procedure) == AccessDecision(allowed=True, reason=AccessReason.UPLOADER_MATCH)


def test_owner_match_takes_precedence_over_uploader() -> None:
    procedure = make_record(primary_owner="alice", secondary_owner="bob", uploaded_by="alice")
    assert evaluate(Caller(id="alice"), procedure).reason is AccessReason.OWNER_MATCH
    assert evaluate(Caller(id="bob"), procedure).reason is AccessReason.OWNER_MATCH


def test_admin_always_allowed_even_without_owners() -> None:
    procedure = make_record(primary_owner="", secondary_owner=None, uploaded_by="")
    decision = evaluate(Caller(id="root", role="admin"), procedure)
    assert decision.allowed is True
    assert decision.reason is AccessReason.ADMIN


def test_missing_procedure_is_denied_even_for_admins() -> None:
    assert evaluate(Caller(id="root", role="admin"), None) == AccessDecision.deny(AccessReason.DENIED_NOT_FOUND)


def test_unrelated_caller_is_denied_without_match() -> None:
    decision = evaluate(Caller(id="mallory"), make_record())
    assert decision == AccessDecision(allowed=False, reason=AccessReason.DENIED_NO_MATCH)


def test_numeric_owner_ids_from_stored_records_match() -> None:
    procedure = ProcedureRecord.from_dict({"id": 9, "primary_owner": "wilson.ross", "secondary_owner": 43898931})
    assert evaluate(Caller(id="43898931"), procedure).reason is AccessReason.OWNER_MATCH


def test_empty_identity_never_matches_empty_owner_fields() -> None:
    procedure = make_record(primary_owner="", secondary_owner="", uploaded_by="")
    assert evaluate(Caller(id=""), procedure).reason is AccessReason.DENIED_NO_MATCH


def test_evaluation_is_pure() -> None:
    caller = Caller(id="43898931")
    procedure = make_record()
    decisions = {evaluate(caller, procedure) for _ in range(5)}
    assert len(decisions) == 1


def test_policy_uses_configured_admin_role() -> None:
    policy = AccessPolicy(PolicyConfig(admin_role="governance-admin"))
    procedure = make_record()
    assert policy.evaluate(Caller(id="x", role="governance-admin"), procedure).reason is AccessReason.ADMIN
    assert policy.evaluate(Caller(id="x", role="admin"), procedure).reason is AccessReason.DENIED_NO_MATCH
    assert policy.is_admin(Caller(id="x", role="governance-admin"))
    with pytest.raises(ConfigurationError):
        PolicyConfig(admin_role="")


def test_roles_resolve_from_admin_list() -> None:
    admins = frozenset({"43898931"})
    assert resolve_role("43898931", admins) == "admin"
    assert resolve_role("someone", admins) == USER_ROLE
    assert resolve_role("", frozenset({""})) == USER_ROLE
    assert caller_for(" 43898931 ", admins, admin_role="root") == Caller(id="43898931", role="root")
