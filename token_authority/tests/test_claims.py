"""Tests for endpoint/method claim storage."""
from token_authority import store
from token_authority.claims import (
    CLAIMS_OK,
    CREATE_CLAIM_FAIL,
    DELETE_CLAIM_FAIL,
    load_claims,
    parse_claim,
    set_claims,
    verify_client_id,
)
from token_authority.credentials import issue_credentials
from token_authority.models import Endpoint


def test_parse_claim_splits_at_last_slash():
    assert parse_claim("orders/GET") == ("orders", "GET")
    assert parse_claim("api/v1/orders/POST") == ("api/v1/orders", "POST")
    assert parse_claim("GET") == ("", "GET")


def test_set_claims_stores_rows_in_order(db):
    assert set_claims(db, "client-1", ["orders/GET", "api/v1/orders/POST"]) == CLAIMS_OK
    rows = db.query(Endpoint).filter(Endpoint.client_id == "client-1").order_by(Endpoint.id).all()
    assert [(r.endpoint, r.method) for r in rows] == [("orders", "GET"), ("api/v1/orders", "POST")]
    assert load_claims(db, "client-1") == ["orders/GET", "api/v1/orders/POST"]


def test_set_claims_replaces_previous_set(db):
    set_claims(db, "client-1", ["orders/GET", "orders/POST"])
    set_claims(db, "client-2", ["users/GET"])
    assert set_claims(db, "client-1", ["invoices/GET"]) == CLAIMS_OK
    assert load_claims(db, "client-1") == ["invoices/GET"]
    assert load_claims(db, "client-2") == ["users/GET"]


def test_set_claims_empty_clears(db):
    set_claims(db, "client-1", ["orders/GET"])
    assert set_claims(db, "client-1", []) == CLAIMS_OK
    assert load_claims(db, "client-1") == []


def test_delete_failure_aborts_before_inserts(db, monkeypatch):
    set_claims(db, "client-1", ["orders/GET"])
    monkeypatch.setattr(store, "delete", lambda *args, **kwargs: False)
    assert set_claims(db, "client-1", ["users/GET"]) == DELETE_CLAIM_FAIL
    assert load_claims(db, "client-1") == ["orders/GET"]


def test_delete_not_attempted_without_existing_claims(db, monkeypatch):
    monkeypatch.setattr(store, "delete", lambda *args, **kwargs: False)
    assert set_claims(db, "client-1", ["users/GET"]) == CLAIMS_OK


def test_create_failure_keeps_previous_claims(db, monkeypatch):
    """Replacement is one transaction: a failed insert leaves the old set, not a partial one."""
    set_claims(db, "client-1", ["orders/GET", "orders/POST"])
    real_create = store.create
    calls = []

    def flaky_create(session, model, record, **kwargs):
        calls.append(record)
        if len(calls) == 2:
            session.rollback()
            return False
        return real_create(session, model, record, **kwargs)

    monkeypatch.setattr(store, "create", flaky_create)
    assert set_claims(db, "client-1", ["users/GET", "users/POST", "users/DELETE"]) == CREATE_CLAIM_FAIL
    assert len(calls) == 2
    assert load_claims(db, "client-1") == ["orders/GET", "orders/POST"]


def test_verify_client_id(db):
    issued = issue_credentials(db, "alice")
    assert verify_client_id(db, issued.client_id)
    assert not verify_client_id(db, "unknown-client")


def test_set_claims_locks_owning_credential_before_delete(db, monkeypatch):
    issued = issue_credentials(db, "alice")
    set_claims(db, issued.client_id, ["orders/GET"])
    events = []
    real_find_by, real_delete = store.find_by, store.delete

    def spy_find_by(session, model, field, value, **kwargs):
        events.append(("find", model.__name__, kwargs.get("for_update", False)))
        return real_find_by(session, model, field, value, **kwargs)

    def spy_delete(session, model, *args, **kwargs):
        events.append(("delete", model.__name__, False))
        return real_delete(session, model, *args, **kwargs)

    monkeypatch.setattr(store, "find_by", spy_find_by)
    monkeypatch.setattr(store, "delete", spy_delete)
    assert set_claims(db, issued.client_id, ["users/GET"]) == CLAIMS_OK
    assert events[0] == ("find", "Credential", True)
    assert events.index(("delete", "Endpoint", False)) > 0
    assert load_claims(db, issued.client_id) == ["users/GET"]
