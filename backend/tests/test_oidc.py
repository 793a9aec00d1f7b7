from __future__ import annotations

from urllib.parse import parse_qs, urlparse

import pytest
from jose import jwt
from jose.utils import base64url_encode

from twx import oidc
from twx.config import settings

METADATA = {
    "issuer": "https://id.example.com",
    "authorization_endpoint": "https://id.example.com/auth",
    "token_endpoint": "https://id.example.com/token",
    "jwks_uri": "https://id.example.com/jwks",
    "id_token_signing_alg_values_supported": ["HS256"],
}


@pytest.fixture()
def provider(monkeypatch):
    monkeypatch.setattr(oidc, "get_provider_metadata", lambda: METADATA)
    monkeypatch.setattr(settings, "OIDC_CLIENT_ID", "twx-client")


def test_login_state_cookie_round_trip() -> None:
    state = oidc.new_login_state("http://localhost/api/callback")

    decoded = oidc.decode_login_state(oidc.encode_login_state(state))

    assert decoded == state


def test_tampered_login_state_is_rejected() -> None:
    token = oidc.encode_login_state(oidc.new_login_state("http://localhost/api/callback"))
    forged = jwt.encode(jwt.get_unverified_claims(token), "other-secret", algorithm="HS256")

    with pytest.raises(oidc.OIDCError):
        oidc.decode_login_state(forged)
    with pytest.raises(oidc.OIDCError):
        oidc.decode_login_state(None)


def test_authorization_url_carries_pkce_and_nonce(provider) -> None:
    state = oidc.new_login_state("http://localhost/api/callback")

    url = urlparse(oidc.build_authorization_url(state))
    params = {key: values[0] for key, values in parse_qs(url.query).items()}

    assert f"{url.scheme}://{url.netloc}{url.path}" == METADATA["authorization_endpoint"]
    assert params["client_id"] == "twx-client"
    assert params["state"] == state.state
    assert params["nonce"] == state.nonce
    assert params["code_challenge_method"] == "S256"
    assert params["code_challenge"] != state.code_verifier


def _hs256_jwks(secret: str) -> dict:
    return {"keys": [{"kty": "oct", "k": base64url_encode(secret.encode()).decode(), "alg": "HS256"}]}


def test_id_token_verification_checks_nonce(provider, monkeypatch) -> None:
    secret = "provider-shared-secret"
    monkeypatch.setattr(oidc, "get_jwks", lambda refresh=False: _hs256_jwks(secret))
    claims = {"sub": "user-1", "email": "a@example.com", "aud": "twx-client", "iss": METADATA["issuer"], "nonce": "n-1"}
    token = jwt.encode(claims, secret, algorithm="HS256")

    assert oidc.verify_id_token(token, nonce="n-1")["sub"] == "user-1"
    with pytest.raises(oidc.OIDCError, match="nonce"):
        oidc.verify_id_token(token, nonce="other")


def test_id_token_with_wrong_audience_is_rejected(provider, monkeypatch) -> None:
    secret = "provider-shared-secret"
    monkeypatch.setattr(oidc, "get_jwks", lambda refresh=False: _hs256_jwks(secret))
    token = jwt.encode({"sub": "u", "aud": "someone-else", "iss": METADATA["issuer"], "nonce": "n"}, secret, algorithm="HS256")

    with pytest.raises(oidc.OIDCError, match="Invalid id_token"):
        oidc.verify_id_token(token, nonce="n")


def test_callback_rejects_state_mismatch(anonymous_client) -> None:
    state = oidc.new_login_state("http://testserver/api/callback")
    anonymous_client.cookies.set("twx.oidc_state", oidc.encode_login_state(state))

    response = anonymous_client.get("/api/callback", params={"code": "abc", "state": "forged"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Login failed"
