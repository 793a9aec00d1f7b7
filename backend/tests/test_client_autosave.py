from __future__ import annotations

import pytest
import requests

from twx.autosave import InspectionAutoSaver, OnlineStatusPoller
from twx.client import ApiResult, ProjectContext, TWXClient


class _Response:
    def __init__(self, status_code: int = 200, payload=None) -> None:
        self.status_code = status_code
        self._payload = payload

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class _SessionStub:
    def __init__(self, responses=None, error: Exception | None = None) -> None:
        self.responses = list(responses or [])
        self.error = error
        self.calls: list[tuple[str, str, dict]] = []

    def request(self, method, url, timeout=None, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.responses.pop(0)

    def get(self, url, **kwargs):
        return self.request("GET", url, **kwargs)


class _ManualTimer:
    """Timer stand-in that only fires when the test says so."""

    created: list["_ManualTimer"] = []

    def __init__(self, interval, function) -> None:
        self.interval = interval
        self.function = function
        self.cancelled = False
        self.started = False
        self.daemon = False
        _ManualTimer.created.append(self)

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        if not self.cancelled:
            self.function()


@pytest.fixture(autouse=True)
def _reset_timers():
    _ManualTimer.created = []


def test_envelope_is_unwrapped() -> None:
    session = _SessionStub([_Response(200, {"success": True, "data": [{"id": "proj_a"}]})])
    result = TWXClient("http://api.local/", session=session).get_projects()

    assert result == ApiResult(success=True, data=[{"id": "proj_a"}], error=None)
    assert session.calls[0][1] == "http://api.local/api/projects"


def test_http_error_becomes_failed_result() -> None:
    client = TWXClient(session=_SessionStub([_Response(503)]))
    assert client.get_projects() == ApiResult(success=False, error="HTTP 503")


def test_network_error_becomes_failed_result() -> None:
    client = TWXClient(session=_SessionStub(error=requests.ConnectionError("refused")))
    result = client.export_data("proj_a")
    assert result.success is False
    assert result.error == "refused"


def test_inspection_reads_fall_back_on_failure() -> None:
    client = TWXClient(session=_SessionStub([_Response(500), _Response(500)]))
    assert client.get_inspections("proj_a") == []
    assert client.get_inspection_by_element("bim-1", "proj_a") is None


def test_save_inspection_tags_project_and_user() -> None:
    session = _SessionStub([_Response(200, {"success": True, "data": {"id": "insp_1"}})])
    ProjectContext(TWXClient(session=session), "proj_a").save_inspection({"elementId": "bim-1", "status": "OK"})

    method, url, kwargs = session.calls[0]
    assert (method, url) == ("POST", "/api/inspections")
    assert kwargs["json"] == {"elementId": "bim-1", "status": "OK", "projectId": "proj_a", "lastModifiedBy": "user"}


def test_server_availability_uses_stats_endpoint() -> None:
    up = TWXClient(session=_SessionStub([_Response(200, {"success": True})]))
    down = TWXClient(session=_SessionStub(error=requests.Timeout()))
    assert up.is_server_available() is True
    assert down.is_server_available() is False


def _saver(session, statuses):
    return InspectionAutoSaver(
        TWXClient(session=session),
        project_id="proj_a",
        element_id="bim-1",
        initial={"status": ""},
        on_status=statuses.append,
        timer_factory=_ManualTimer,
    )


def test_rapid_edits_collapse_into_one_save_with_last_state() -> None:
    session = _SessionStub([_Response(200, {"success": True, "data": {"version": 1}})])
    statuses: list[str] = []
    saver = _saver(session, statuses)

    saver.update(status="OK")
    saver.update(notes="first")
    saver.update(notes="final")

    first, second, third = _ManualTimer.created
    assert first.cancelled and second.cancelled and not third.cancelled
    assert third.interval == 1.0
    first.fire()
    third.fire()

    assert len(session.calls) == 1
    assert session.calls[0][2]["json"]["notes"] == "final"
    assert session.calls[0][2]["json"]["status"] == "OK"
    assert session.calls[0][2]["json"]["elementId"] == "bim-1"
    assert statuses == ["saving", "saved"]


def test_consecutive_saves_carry_the_version_returned_by_the_server() -> None:
    session = _SessionStub([
        _Response(200, {"success": True, "data": {"id": "insp_1", "version": 2}}),
        _Response(200, {"success": True, "data": {"id": "insp_1", "version": 3}}),
    ])
    statuses: list[str] = []
    saver = InspectionAutoSaver(
        TWXClient(session=session),
        project_id="proj_a",
        element_id="bim-1",
        initial={"id": "insp_1", "version": 1, "status": "OK", "notes": ""},
        on_status=statuses.append,
        timer_factory=_ManualTimer,
    )

    saver.update(notes="first pass")
    assert saver.flush().success is True
    saver.update(notes="second pass")
    assert saver.flush().success is True

    assert session.calls[0][2]["json"]["version"] == 1
    assert session.calls[1][2]["json"]["version"] == 2
    assert session.calls[1][2]["json"]["notes"] == "second pass"
    assert saver.payload["version"] == 3
    assert saver.status == "saved"
    assert statuses == ["saving", "saved", "saving", "saved"]


def test_failed_save_shows_error_then_resets_to_idle() -> None:
    session = _SessionStub([_Response(500)])
    statuses: list[str] = []
    saver = _saver(session, statuses)

    result = saver.flush()

    assert result.success is False
    assert saver.status == "error"
    reset = _ManualTimer.created[-1]
    assert reset.interval == 3.0
    reset.fire()
    assert saver.status == "idle"
    assert statuses == ["saving", "error", "idle"]
    assert len(session.calls) == 1


def test_cancel_stops_pending_save() -> None:
    session = _SessionStub()
    saver = _saver(session, [])

    saver.update(status="ISSUE")
    saver.cancel()
    _ManualTimer.created[0].fire()

    assert session.calls == []


def test_online_poller_reports_transitions_only() -> None:
    session = _SessionStub([_Response(200, {}), _Response(200, {}), _Response(502)])
    changes: list[bool] = []
    poller = OnlineStatusPoller(TWXClient(session=session), interval=15, on_change=changes.append)

    assert poller.check() is True
    assert poller.check() is True
    assert poller.check() is False
    assert changes == [True, False]
    assert poller.is_online is False
