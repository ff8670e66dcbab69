import logging

import pytest

from mynumbercard_idp.app import app
from mynumbercard_idp.exceptions import PlatformCallError
from mynumbercard_idp.hashing import to_hash_string
from mynumbercard_idp.identity import UNIQUE_ID_ATTRIBUTE
from mynumbercard_idp.platform import PlatformOutcome
from mynumbercard_idp.routes import authentication
from mynumbercard_idp.storage import UserRecord, UserStore


@pytest.fixture
def platform_outcome():
    return {"outcome": PlatformOutcome(200, unique_id="uid-alice"), "calls": []}


@pytest.fixture
def client(tmp_path, monkeypatch, platform_outcome):
    store_path = tmp_path / "users.json"
    UserStore(str(store_path)).add_user(UserRecord("alice", {UNIQUE_ID_ATTRIBUTE: "uid-alice"}))
    monkeypatch.setitem(app.config, "MYNUMBERCARD_USER_STORE_PATH", str(store_path))
    monkeypatch.setitem(app.config, "MYNUMBERCARD_DEBUG_MODE", "false")

    def fake_platform_call():
        def call(kind, user_request):
            platform_outcome["calls"].append((kind, user_request))
            result = platform_outcome["outcome"]
            if isinstance(result, Exception):
                raise result
            return result

        return call

    monkeypatch.setattr(authentication, "create_platform_call", fake_platform_call)
    app.config.update(TESTING=True)

    with app.test_client() as test_client:
        yield test_client


def _login_form(client, card_key, signed=None):
    nonce = client.get("/api/nonce").get_json()["nonce"]
    nonce_hash = to_hash_string(nonce)
    return {
        "mode": "login",
        "encryptedUserAuthenticationCertificate": card_key.certificate,
        "applicantData": nonce_hash,
        "sign": card_key.sign(nonce_hash if signed is None else signed(nonce)),
    }


def test_issue_nonce_stores_it_in_session(client):
    payload = client.get("/api/nonce").get_json()

    assert len(payload["nonce"]) == 64
    assert payload["nonceHash"] == to_hash_string(payload["nonce"])
    with client.session_transaction() as flask_session:
        assert flask_session["nonce"] == payload["nonce"]


def test_login_binds_session_user(client, card_key):
    response = client.post("/api/authenticate", data=_login_form(client, card_key))

    assert response.status_code == 200
    assert response.get_json() == {"status": "authenticated", "username": "alice"}
    assert client.get("/api/session").get_json() == {"user": "alice"}
    with client.session_transaction() as flask_session:
        assert "nonce" not in flask_session


def test_unknown_user_requires_registration(client, card_key, platform_outcome):
    platform_outcome["outcome"] = PlatformOutcome(200, unique_id="uid-nobody")

    response = client.post("/api/authenticate", data=_login_form(client, card_key))

    assert response.status_code == 200
    assert response.get_json() == {"status": "registration-required"}
    assert client.get("/api/session").get_json() == {"user": None}


@pytest.mark.parametrize(
    "status, expected_status, expected_payload",
    [
        (401, 401, {"status": "unauthorized"}),
        (404, 200, {"status": "registration-required"}),
        (410, 409, {"status": "rechallenge", "reason": "replacement"}),
        (503, 500, {"status": "undefined-flow", "action": "login"}),
    ],
)
def test_platform_statuses_are_routed(
    client, card_key, platform_outcome, status, expected_status, expected_payload
):
    platform_outcome["outcome"] = PlatformOutcome(status)

    response = client.post("/api/authenticate", data=_login_form(client, card_key))

    assert response.status_code == expected_status
    assert response.get_json() == expected_payload


def test_bad_signature_is_rejected_without_platform_call(
    client, card_key, other_card_key, platform_outcome
):
    form = _login_form(client, card_key)
    form["sign"] = other_card_key.sign(form["applicantData"])

    response = client.post("/api/authenticate", data=form)

    assert response.status_code == 401
    assert response.get_json()["error"] == "failed"
    assert platform_outcome["calls"] == []


def test_rejected_attempt_consumes_the_nonce(client, card_key, other_card_key, platform_outcome):
    form = _login_form(client, card_key)
    valid_sign = form["sign"]
    form["sign"] = other_card_key.sign(form["applicantData"])
    assert client.post("/api/authenticate", data=form).status_code == 401

    form["sign"] = valid_sign
    response = client.post("/api/authenticate", data=form)

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid-request"
    assert "No nonce" in response.get_json()["message"]
    assert platform_outcome["calls"] == []


def test_routed_failure_consumes_the_nonce(client, card_key, platform_outcome):
    platform_outcome["outcome"] = PlatformOutcome(401)

    response = client.post("/api/authenticate", data=_login_form(client, card_key))

    assert response.status_code == 401
    with client.session_transaction() as flask_session:
        assert "nonce" not in flask_session


def test_malformed_certificate_is_a_client_error(client, card_key):
    form = _login_form(client, card_key)
    form["encryptedUserAuthenticationCertificate"] = "bm90IGEgY2VydA=="

    response = client.post("/api/authenticate", data=form)

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid-input"


def test_missing_fields_are_a_client_error(client):
    client.get("/api/nonce")

    response = client.post("/api/authenticate", data={"mode": "login"})

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid-request"


def test_login_without_nonce_is_a_client_error(client, card_key):
    form = _login_form(client, card_key)
    with client.session_transaction() as flask_session:
        flask_session.pop("nonce")

    response = client.post("/api/authenticate", data=form)

    assert response.status_code == 400


def test_raw_nonce_signature_accepted_in_debug_mode(client, card_key, monkeypatch, caplog):
    caplog.set_level(logging.INFO)
    monkeypatch.setitem(app.config, "MYNUMBERCARD_DEBUG_MODE", "True")

    response = client.post(
        "/api/authenticate", data=_login_form(client, card_key, signed=lambda nonce: nonce)
    )

    assert response.status_code == 200
    assert any("Debug mode is enabled." in r.getMessage() for r in caplog.records)


def test_platform_outage_is_a_gateway_error(client, card_key, platform_outcome):
    platform_outcome["outcome"] = PlatformCallError("Connect timeout.")

    response = client.post("/api/authenticate", data=_login_form(client, card_key))

    assert response.status_code == 502
    assert response.get_json()["error"] == "platform-unavailable"


def test_missing_unique_id_is_a_server_error(client, card_key, platform_outcome):
    platform_outcome["outcome"] = PlatformOutcome(200)

    response = client.post("/api/authenticate", data=_login_form(client, card_key))

    assert response.status_code == 500
    assert response.get_json()["error"] == "missing-unique-id"


def test_logout_clears_session(client, card_key):
    client.post("/api/authenticate", data=_login_form(client, card_key))

    assert client.post("/api/logout").get_json() == {"status": "logged-out"}
    assert client.get("/api/session").get_json() == {"user": None}


def test_health(client):
    assert client.get("/api/health").get_json() == {"status": "healthy"}
