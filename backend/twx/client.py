"""HTTP client for the TWX API. Failures come back as results, never as exceptions."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10


@dataclass(frozen=True)
class ApiResult:
    success: bool
    data: Any = None
    error: Optional[str] = None


class TWXClient:
    """Thin wrapper over the REST API. Every project-scoped call takes project_id."""

    def __init__(
        self,
        base_url: str = "",
        *,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _request(self, method: str, endpoint: str, **kwargs) -> ApiResult:
        url = f"{self.base_url}{endpoint}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.warning("api.request_failed %s %s: %s", method, endpoint, exc)
            return ApiResult(success=False, error=str(exc) or "Request failed")

        if not response.ok:
            logger.warning("api.http_error %s %s status=%s", method, endpoint, response.status_code)
            return ApiResult(success=False, error=f"HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError:
            return ApiResult(success=False, error="Invalid JSON response")

        if isinstance(payload, dict) and "success" in payload:
            return ApiResult(
                success=bool(payload["success"]),
                data=payload.get("data"),
                error=payload.get("error"),
            )
        return ApiResult(success=True, data=payload)

    def is_server_available(self) -> bool:
        try:
            response = self.session.get(
                f"{self.base_url}/api/stats",
                headers={"Cache-Control": "no-cache"},
                timeout=self.timeout,
            )
        except requests.RequestException:
            return False
        return response.ok

    def get_projects(self) -> ApiResult:
        return self._request("GET", "/api/projects")

    def get_inspections(self, project_id: str) -> list[dict[str, Any]]:
        result = self._request("GET", "/api/inspections", params={"projectId": project_id})
        return (result.data or []) if result.success else []

    def get_inspection_by_element(self, element_id: str, project_id: str) -> Optional[dict[str, Any]]:
        result = self._request(
            "GET",
            f"/api/inspections/element/{element_id}",
            params={"projectId": project_id},
        )
        return result.data if result.success else None

    def save_inspection(self, inspection: dict[str, Any], project_id: str) -> ApiResult:
        payload = {**inspection, "projectId": project_id, "lastModifiedBy": "user"}
        return self._request("POST", "/api/inspections", json=payload)

    def export_data(self, project_id: str) -> ApiResult:
        return self._request("GET", "/api/export", params={"projectId": project_id})

    def get_viewer_colors(self, project_id: str) -> ApiResult:
        return self._request("GET", f"/api/projects/{project_id}/viewer/colors")


@dataclass(frozen=True)
class ProjectContext:
    """Client bound to one project, for callers that work inside a single project."""

    client: TWXClient
    project_id: str

    def get_inspections(self) -> list[dict[str, Any]]:
        return self.client.get_inspections(self.project_id)

    def get_inspection_by_element(self, element_id: str) -> Optional[dict[str, Any]]:
        return self.client.get_inspection_by_element(element_id, self.project_id)

    def save_inspection(self, inspection: dict[str, Any]) -> ApiResult:
        return self.client.save_inspection(inspection, self.project_id)

    def export_data(self) -> ApiResult:
        return self.client.export_data(self.project_id)
