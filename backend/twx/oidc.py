"""OpenID Connect authorization-code client (discovery, PKCE, token exchange, id_token checks)."""
from __future__ import annotations

import base64
import hashlib
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

import requests
from jose import JWTError, jwt

from .config import settings

logger = logging.getLogger(__name__)

_STATE_ALGORITHM = "HS256"
_DISCOVERY_TTL_SECONDS = 3600


class OIDCError(Exception):
    """Login could not be completed against the identity provider."""


@dataclass(frozen=True)
class LoginState:
    state: str
    nonce: str
    code_verifier: str
    redirect_uri: str


_discovery_cache: dict[str, Any] = {}
_jwks_cache: dict[str, Any] = {}


def _get_json(url: str) -> dict[str, Any]:
    try:
        response = requests.get(url, timeout=settings.OIDC_HTTP_TIMEOUT_SECONDS)
        response.raise_for_status()
        return response.json()
    except (requests.RequestException, ValueError) as exc:
        raise OIDCError(f"Failed to fetch {url}") from exc


def get_provider_metadata() -> dict[str, Any]:
    """Fetch (and cache) the provider's discovery document."""
    cached = _discovery_cache.get("metadata")
    if cached and time.time() - _discovery_cache.get("fetched_at", 0) < _DISCOVERY_TTL_SECONDS:
        return cached
    issuer = settings.OIDC_ISSUER_URL.rstrip("/")
    metadata = _get_json(f"{issuer}/.well-known/openid-configuration")
    _discovery_cache["metadata"] = metadata
    _discovery_cache["fetched_at"] = time.time()
    return metadata


def get_jwks(*, refresh: bool = False) -> dict[str, Any]:
    if refresh or "keys" not in _jwks_cache:
        jwks = _get_json(get_provider_metadata()["jwks_uri"])
        _jwks_cache.clear()
        _jwks_cache.update(jwks)
    return dict(_jwks_cache)


def _code_challenge(code_verifier: str) -> str:
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def new_login_state(redirect_uri: str) -> LoginState:
    return LoginState(
        state=secrets.token_urlsafe(24),
        nonce=secrets.token_urlsafe(24),
        code_verifier=secrets.token_urlsafe(48),
        redirect_uri=redirect_uri,
    )


def encode_login_state(login_state: LoginState) -> str:
    """Sign the login state for the short-lived state cookie."""
    payload = {
        "state": login_state.state,
        "nonce": login_state.nonce,
        "cv": login_state.code_verifier,
        "ru": login_state.redirect_uri,
        "exp": int(time.time()) + settings.OIDC_STATE_MAX_AGE_SECONDS,
    }
    return jwt.encode(payload, settings.SESSION_SECRET, algorithm=_STATE_ALGORITHM)


def decode_login_state(token: str | None) -> LoginState:
    if not token:
        raise OIDCError("Missing login state")
    try:
        payload = jwt.decode(token, settings.SESSION_SECRET, algorithms=[_STATE_ALGORITHM])
    except JWTError as exc:
        raise OIDCError("Invalid or expired login state") from exc
    return LoginState(
        state=payload["state"],
        nonce=payload["nonce"],
        code_verifier=payload["cv"],
        redirect_uri=payload["ru"],
    )


def build_authorization_url(login_state: LoginState) -> str:
    metadata = get_provider_metadata()
    params = {
        "response_type": "code",
        "client_id": settings.OIDC_CLIENT_ID,
        "redirect_uri": login_state.redirect_uri,
        "scope": settings.OIDC_SCOPES,
        "state": login_state.state,
        "nonce": login_state.nonce,
        "code_challenge": _code_challenge(login_state.code_verifier),
        "code_challenge_method": "S256",
        "prompt": "login consent",
    }
    return f"{metadata['authorization_endpoint']}?{urlencode(params)}"


def exchange_code(code: str, login_state: LoginState) -> dict[str, Any]:
    """Exchange the authorization code for tokens."""
    metadata = get_provider_metadata()
    data = {
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": login_state.redirect_uri,
        "client_id": settings.OIDC_CLIENT_ID,
        "code_verifier": login_state.code_verifier,
    }
    if settings.OIDC_CLIENT_SECRET:
        data["client_secret"] = settings.OIDC_CLIENT_SECRET
    try:
        response = requests.post(
            metadata["token_endpoint"],
            data=data,
            headers={"Accept": "application/json"},
            timeout=settings.OIDC_HTTP_TIMEOUT_SECONDS,
        )
    except requests.RequestException as exc:
        raise OIDCError("Token endpoint unreachable") from exc
    if response.status_code != 200:
        logger.warning("oidc.token_exchange_failed status=%s", response.status_code)
        raise OIDCError("Token exchange failed")
    tokens = response.json()
    if "id_token" not in tokens:
        raise OIDCError("Token response has no id_token")
    return tokens


def verify_id_token(id_token: str, *, nonce: str, access_token: str | None = None) -> dict[str, Any]:
    """Verify signature, issuer, audience and nonce; return the claims."""
    metadata = get_provider_metadata()
    decode_kwargs = {
        "algorithms": metadata.get("id_token_signing_alg_values_supported") or ["RS256"],
        "audience": settings.OIDC_CLIENT_ID,
        "issuer": metadata.get("issuer", settings.OIDC_ISSUER_URL),
        "access_token": access_token,
    }
    try:
        claims = jwt.decode(id_token, get_jwks(), **decode_kwargs)
    except JWTError:
        # Keys may have rotated since the last fetch.
        try:
            claims = jwt.decode(id_token, get_jwks(refresh=True), **decode_kwargs)
        except JWTError as exc:
            raise OIDCError("Invalid id_token") from exc
    if claims.get("nonce") != nonce:
        raise OIDCError("id_token nonce mismatch")
    if not claims.get("sub"):
        raise OIDCError("id_token has no subject")
    return claims
