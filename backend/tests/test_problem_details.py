from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from twx.domain_errors import DomainError, conflict
from twx.problem_details import build_problem_details_response, register_problem_handlers


def test_problem_details_payload_contains_stable_code_and_rfc7807_fields() -> None:
    response = build_problem_details_response(
        DomainError(
            code="ELEMENT_STATUS_CONFLICT",
            http_status=409,
            message="status changed",
            details={"expected": "active"},
        )
    )

    assert response.status_code == 409
    assert response.media_type == "application/problem+json"

    body = response.body.decode("utf-8")
    assert '"type":"https://api.twx.local/problems/element_status_conflict"' in body
    assert '"title":"Conflict"' in body
    assert '"status":409' in body
    assert '"detail":"status changed"' in body
    assert '"code":"ELEMENT_STATUS_CONFLICT"' in body
    assert '"details":{"expected":"active"}' in body


def test_problem_details_omits_details_when_none() -> None:
    response = build_problem_details_response(
        DomainError(
            code="NO_DETAILS",
            http_status=422,
            message="validation failed",
            details=None,
        )
    )

    body = response.body.decode("utf-8")
    assert response.status_code == 422
    assert '"code":"NO_DETAILS"' in body
    assert '"details"' not in body


def _app() -> FastAPI:
    app = FastAPI()
    register_problem_handlers(app)

    @app.get("/boom")
    def _boom():
        raise conflict("TRANSFER_REQUIRED", "transfer first", details={"currentProjectId": "proj_a"})

    @app.get("/missing")
    def _missing():
        raise HTTPException(status_code=404, detail="Element not found")

    @app.get("/limited")
    def _limited():
        raise HTTPException(status_code=429, detail="slow down", headers={"Retry-After": "42"})

    @app.get("/typed")
    def _typed(limit: int):
        return {"limit": limit}

    return app


def test_registered_handler_maps_domain_error_to_problem_details() -> None:
    response = TestClient(_app()).get("/boom")

    assert response.status_code == 409
    assert response.headers["content-type"].startswith("application/problem+json")
    payload = response.json()
    assert payload["code"] == "TRANSFER_REQUIRED"
    assert payload["detail"] == "transfer first"
    assert payload["details"] == {"currentProjectId": "proj_a"}


def test_http_exception_uses_status_name_as_code() -> None:
    response = TestClient(_app()).get("/missing")

    assert response.status_code == 404
    payload = response.json()
    assert payload["code"] == "NOT_FOUND"
    assert payload["detail"] == "Element not found"


def test_http_exception_headers_are_preserved() -> None:
    response = TestClient(_app()).get("/limited")

    assert response.status_code == 429
    assert response.headers["retry-after"] == "42"


def test_validation_error_is_bad_request_problem() -> None:
    response = TestClient(_app()).get("/typed", params={"limit": "many"})

    assert response.status_code == 400
    payload = response.json()
    assert payload["code"] == "VALIDATION_ERROR"
    assert payload["details"]
