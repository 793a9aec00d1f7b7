"""Debounced inspection auto-save and server online polling for API clients."""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

from .client import ApiResult, TWXClient
from .config import settings

logger = logging.getLogger(__name__)


class InspectionAutoSaver:
    """Collects edits to one inspection and saves the full payload after a quiet period.

    Each edit restarts the delay, so only the last state is sent. A failed save
    sets status "error", which falls back to "idle" after error_reset seconds.
    There is no retry.
    """

    def __init__(
        self,
        client: TWXClient,
        *,
        project_id: str,
        element_id: str,
        initial: Optional[dict[str, Any]] = None,
        delay: Optional[float] = None,
        error_reset: Optional[float] = None,
        on_status: Optional[Callable[[str], None]] = None,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        self.client = client
        self.project_id = project_id
        self.element_id = element_id
        self.delay = settings.CLIENT_AUTOSAVE_DELAY_SECONDS if delay is None else delay
        self.error_reset = settings.CLIENT_ERROR_RESET_SECONDS if error_reset is None else error_reset
        self.on_status = on_status
        self._timer_factory = timer_factory
        self._payload: dict[str, Any] = dict(initial or {})
        self._payload["elementId"] = element_id
        self._timer: Optional[threading.Timer] = None
        self._reset_timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._save_lock = threading.Lock()
        self.status = "idle"
        self.last_result: Optional[ApiResult] = None

    @property
    def payload(self) -> dict[str, Any]:
        with self._lock:
            return dict(self._payload)

    def _set_status(self, status: str) -> None:
        self.status = status
        if self.on_status is not None:
            self.on_status(status)

    def update(self, **changes: Any) -> None:
        """Merge camelCase field changes and restart the debounce timer."""
        with self._lock:
            self._payload.update(changes)
            if self._timer is not None:
                self._timer.cancel()
            self._timer = self._timer_factory(self.delay, self.flush)
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        with self._lock:
            for timer in (self._timer, self._reset_timer):
                if timer is not None:
                    timer.cancel()
            self._timer = None
            self._reset_timer = None

    def flush(self) -> ApiResult:
        """Save the current payload now."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            payload = dict(self._payload)

        with self._save_lock:
            self._set_status("saving")
            result = self.client.save_inspection(payload, self.project_id)
            self.last_result = result
            if result.success:
                saved_version = result.data.get("version") if isinstance(result.data, dict) else None
                if saved_version is not None:
                    with self._lock:
                        self._payload["version"] = saved_version
                self._set_status("saved")
            else:
                logger.warning("autosave.failed element=%s error=%s", self.element_id, result.error)
                self._set_status("error")
                self._schedule_error_reset()
        return result

    def _schedule_error_reset(self) -> None:
        with self._lock:
            if self._reset_timer is not None:
                self._reset_timer.cancel()
            self._reset_timer = self._timer_factory(self.error_reset, self._reset_error)
            self._reset_timer.daemon = True
            self._reset_timer.start()

    def _reset_error(self) -> None:
        if self.status == "error":
            self._set_status("idle")


class OnlineStatusPoller:
    """Polls the stats endpoint on a daemon thread and tracks whether the server answers."""

    def __init__(
        self,
        client: TWXClient,
        *,
        interval: Optional[float] = None,
        on_change: Optional[Callable[[bool], None]] = None,
    ):
        self.client = client
        self.interval = settings.CLIENT_ONLINE_POLL_SECONDS if interval is None else interval
        self.on_change = on_change
        self.is_online = False
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def check(self) -> bool:
        online = self.client.is_server_available()
        if online != self.is_online:
            logger.info("client.status %s", "ONLINE" if online else "OFFLINE")
            self.is_online = online
            if self.on_change is not None:
                self.on_change(online)
        return online

    def _run(self) -> None:
        self.check()
        while not self._stop.wait(self.interval):
            self.check()

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="twx-online-poller", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self.interval + 1)
            self._thread = None
