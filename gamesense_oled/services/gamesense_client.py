import json
import logging
import os
import sys
import threading
from dataclasses import replace
from pathlib import Path
from time import monotonic

import requests

from gamesense_oled.models import SessionState

LOGGER = logging.getLogger("gamesense_oled.gamesense")
GAMESENSE_HTTP_TIMEOUT_SECONDS = 5.0
DEFAULT_RETRY_INTERVAL_MS = 5000
DEFAULT_HEARTBEAT_INTERVAL_MS = 10000
FRAME_LINE_KEYS = ("line1", "line2")


class GameSenseError(RuntimeError):
    pass


class GameSenseClosedError(GameSenseError):
    pass


def core_props_candidates() -> list[Path]:
    if sys.platform.startswith("win"):
        program_data = os.environ.get("PROGRAMDATA", r"C:\ProgramData")
        return [Path(program_data) / "SteelSeries" / "SteelSeries Engine 3" / "coreProps.json"]
    if sys.platform == "darwin":
        return [Path("/Library/Application Support/SteelSeries Engine 3/coreProps.json")]
    return []


def discover_gamesense_address(core_props_path=None) -> str | None:
    """Read the engine's ``host:port`` from coreProps.json, if the engine has written one."""
    paths = [Path(core_props_path)] if core_props_path else core_props_candidates()
    for path in paths:
        try:
            address = json.loads(path.read_text(encoding="utf-8")).get("address")
        except (OSError, ValueError, AttributeError) as exc:
            LOGGER.debug("GameSense coreProps not usable at %s: %s", path, exc)
            continue
        if address:
            return str(address)
    return None


class GameSenseClient:
    """Session with the local GameSense engine.

    Registration calls retry until they succeed; display updates and
    heartbeats are sent once and only logged on failure.
    """

    def __init__(
        self,
        game_name: str,
        display_name: str,
        address: str = "",
        session=None,
        sleep_fn=None,
        clock_fn=None,
        core_props_path=None,
        timeout_seconds: float = GAMESENSE_HTTP_TIMEOUT_SECONDS,
    ):
        self.game_name = game_name
        self.display_name = display_name
        self.retry_interval_seconds = DEFAULT_RETRY_INTERVAL_MS / 1000.0
        self.heartbeat_interval_seconds = DEFAULT_HEARTBEAT_INTERVAL_MS / 1000.0
        self.timeout_seconds = timeout_seconds
        self._configured_address = str(address or "").strip()
        self._core_props_path = core_props_path
        self._address = self._configured_address or None
        self._session = session or requests.Session()
        self._sleep_fn = sleep_fn
        self._clock_fn = clock_fn or monotonic
        self._closed = threading.Event()
        self._lock = threading.Lock()
        self._state = SessionState()
        self._frame_counter = 0
        self._heartbeat_thread = None

    def set_retry_interval_ms(self, ms: int) -> None:
        self.retry_interval_seconds = max(1, int(ms)) / 1000.0

    def set_heartbeat_interval_ms(self, ms: int) -> None:
        self.heartbeat_interval_seconds = max(1, int(ms)) / 1000.0

    def session_snapshot(self) -> SessionState:
        with self._lock:
            return replace(self._state, registered_events=set(self._state.registered_events))

    def is_event_registered(self, event_name: str) -> bool:
        with self._lock:
            return event_name in self._state.registered_events

    def _base_url(self) -> str:
        with self._lock:
            address = self._address
        if address is None:
            address = discover_gamesense_address(self._core_props_path)
            with self._lock:
                self._address = address
        if not address:
            raise GameSenseError("GameSense engine address unknown (coreProps.json not found).")
        return f"http://{address}"

    def _record_result(self, error: str | None) -> None:
        with self._lock:
            if error is None:
                self._state.consecutive_failures = 0
                self._state.last_error = None
            else:
                self._state.consecutive_failures += 1
                self._state.last_error = error
                if not self._configured_address:
                    # The engine may come back on a different port.
                    self._address = None

    def _post(self, path: str, payload: dict) -> dict:
        if self._closed.is_set():
            raise GameSenseClosedError("GameSense client closed.")
        try:
            url = self._base_url() + path
            response = self._session.post(url, json=payload, timeout=self.timeout_seconds)
            response.raise_for_status()
            body = response.json() if response.content else {}
        except GameSenseError as exc:
            self._record_result(str(exc))
            raise
        except (requests.RequestException, ValueError) as exc:
            self._record_result(str(exc))
            raise GameSenseError(f"POST {path} failed: {exc}") from exc
        if isinstance(body, dict) and body.get("error"):
            self._record_result(str(body["error"]))
            raise GameSenseError(f"POST {path} rejected: {body['error']}")
        self._record_result(None)
        return body

    def _wait(self, seconds: float) -> None:
        if self._sleep_fn is not None:
            self._sleep_fn(seconds)
        else:
            self._closed.wait(seconds)
        if self._closed.is_set():
            raise GameSenseClosedError("GameSense client closed while retrying.")

    def _post_until_success(self, path: str, payload: dict, what: str) -> dict:
        attempt = 1
        while True:
            try:
                return self._post(path, payload)
            except GameSenseClosedError:
                raise
            except GameSenseError as exc:
                LOGGER.warning(
                    "%s failed on attempt %s (%s). Retrying in %ss...",
                    what,
                    attempt,
                    exc,
                    self.retry_interval_seconds,
                )
            attempt += 1
            self._wait(self.retry_interval_seconds)

    def _post_once(self, path: str, payload: dict, what: str) -> bool:
        try:
            self._post(path, payload)
            return True
        except GameSenseError as exc:
            LOGGER.warning("%s failed (%s).", what, exc)
            return False

    def register_game_metadata(self) -> None:
        payload = {
            "game": self.game_name,
            "game_display_name": self.display_name,
            "developer": self.display_name,
        }
        self._post_until_success("/game_metadata", payload, "GameSense metadata registration")
        with self._lock:
            self._state.registered = True
        LOGGER.info("Registered game %s with GameSense.", self.game_name)

    def register_oled_event(self, event_name: str, icon_id: int = 0) -> None:
        payload = {
            "game": self.game_name,
            "event": event_name,
            "value_optional": True,
            "handlers": [
                {
                    "device-type": "screened",
                    "mode": "screen",
                    "zone": "one",
                    "datas": [
                        {
                            "icon-id": int(icon_id),
                            "lines": [{"has-text": True, "context-frame-key": key} for key in FRAME_LINE_KEYS],
                        }
                    ],
                }
            ],
        }
        self._post_until_success("/bind_game_event", payload, f"GameSense event registration for {event_name}")
        with self._lock:
            self._state.registered_events.add(event_name)
        LOGGER.info("Registered OLED event %s (icon %s).", event_name, icon_id)

    def register_oled_events(self, events) -> None:
        """Register every (event_name, icon_id) pair in parallel and wait for all of them."""
        errors = []

        def _register(event_name, icon_id):
            try:
                self.register_oled_event(event_name, icon_id)
            except GameSenseError as exc:
                errors.append(exc)

        threads = [
            threading.Thread(target=_register, args=(event_name, icon_id), name=f"gamesense-bind-{event_name}", daemon=True)
            for event_name, icon_id in events
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        if errors:
            raise errors[0]

    def send_oled_display(self, event_name: str, lines) -> bool:
        if not self.is_event_registered(event_name):
            LOGGER.warning("Skipping update for %s; event is not registered yet.", event_name)
            return False
        with self._lock:
            self._frame_counter = (self._frame_counter + 1) % 100
            value = self._frame_counter
        frame = {key: (str(line) if line else " ") for key, line in zip(FRAME_LINE_KEYS, lines)}
        payload = {"game": self.game_name, "event": event_name, "data": {"value": value, "frame": frame}}
        return self._post_once("/game_event", payload, f"GameSense update for {event_name}")

    def send_heartbeat(self) -> bool:
        sent = self._post_once("/game_heartbeat", {"game": self.game_name}, "GameSense heartbeat")
        if sent:
            with self._lock:
                self._state.last_heartbeat_sent_at = self._clock_fn()
        return sent

    def _heartbeat_loop(self) -> None:
        while not self._closed.wait(self.heartbeat_interval_seconds):
            self.send_heartbeat()

    def start_heartbeat(self) -> None:
        if self._heartbeat_thread is not None and self._heartbeat_thread.is_alive():
            return
        self._heartbeat_thread = threading.Thread(target=self._heartbeat_loop, name="gamesense-heartbeat", daemon=True)
        self._heartbeat_thread.start()
        LOGGER.info("GameSense heartbeat every %ss.", self.heartbeat_interval_seconds)

    def close(self) -> None:
        self._closed.set()
        if self._heartbeat_thread is not None:
            self._heartbeat_thread.join(timeout=self.timeout_seconds)
        self._session.close()
