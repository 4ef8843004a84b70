import json
import threading
import time

import pytest
import requests

from gamesense_oled.services.gamesense_client import (
    GameSenseClient,
    GameSenseClosedError,
    GameSenseError,
    discover_gamesense_address,
)
from tests.gamesense_recorder import EventBindingSession, FakeResponse, RecordingSession, wait_until


def _client(session, sleeps=None, address="127.0.0.1:51234", **kwargs):
    client = GameSenseClient(
        "TEST_GAME",
        "Test Game",
        address=address,
        session=session,
        sleep_fn=(sleeps.append if sleeps is not None else None),
        clock_fn=lambda: 50.0,
        **kwargs,
    )
    client.set_retry_interval_ms(250)
    return client


def test_metadata_registration_retries_at_fixed_interval_until_success():
    refused = requests.ConnectionError("connection refused")
    session = RecordingSession(outcomes=[refused, refused, refused, FakeResponse(200, {})])
    sleeps = []
    client = _client(session, sleeps)

    client.register_game_metadata()

    assert session.paths() == ["game_metadata"] * 4
    assert sleeps == [0.25, 0.25, 0.25]
    snapshot = client.session_snapshot()
    assert snapshot.registered is True
    assert snapshot.consecutive_failures == 0


def test_metadata_payload_names_the_game():
    session = RecordingSession()
    client = _client(session)

    client.register_game_metadata()

    assert session.calls[0]["url"] == "http://127.0.0.1:51234/game_metadata"
    assert session.calls[0]["json"]["game"] == "TEST_GAME"
    assert session.calls[0]["json"]["game_display_name"] == "Test Game"
    assert session.calls[0]["timeout"] > 0


def test_http_rejection_is_retried_like_a_transport_failure():
    session = RecordingSession(outcomes=[FakeResponse(400, {"error": "bad game"}), FakeResponse(200, {})])
    sleeps = []
    client = _client(session, sleeps)

    client.register_oled_event("OLED_1", icon_id=3)

    assert len(session.calls) == 2
    assert sleeps == [0.25]
    assert client.is_event_registered("OLED_1")


def test_error_body_with_success_status_counts_as_failure():
    session = RecordingSession(outcomes=[FakeResponse(200, {}), FakeResponse(200, {"error": "unknown event"})])
    client = _client(session)
    client.register_oled_event("OLED_1")

    assert client.send_oled_display("OLED_1", ["a", "b"]) is False
    assert client.session_snapshot().consecutive_failures == 1
    assert client.session_snapshot().last_error == "unknown event"


def test_event_registration_binds_two_text_lines_and_icon():
    session = RecordingSession()
    client = _client(session)

    client.register_oled_event("OLED_2", icon_id=7)

    payload = session.calls[0]["json"]
    assert payload["event"] == "OLED_2"
    handler = payload["handlers"][0]
    assert handler["device-type"] == "screened"
    data = handler["datas"][0]
    assert data["icon-id"] == 7
    assert [line["context-frame-key"] for line in data["lines"]] == ["line1", "line2"]


def test_update_is_not_sent_before_event_registration():
    session = RecordingSession()
    client = _client(session)

    assert client.send_oled_display("OLED_1", ["CPU 5%", "RAM 40%"]) is False
    assert session.calls == []


def test_update_failure_is_reported_once_without_retry():
    session = RecordingSession(outcomes=[FakeResponse(200, {}), requests.Timeout("timed out")])
    sleeps = []
    client = _client(session, sleeps)
    client.register_oled_event("OLED_1")

    assert client.send_oled_display("OLED_1", ["CPU 5%", " "]) is False
    assert session.paths() == ["bind_game_event", "game_event"]
    assert sleeps == []


def test_update_payload_carries_both_lines_and_rolling_value():
    session = RecordingSession()
    client = _client(session)
    client.register_oled_event("OLED_1")

    assert client.send_oled_display("OLED_1", ["CPU 5%", " "]) is True
    assert client.send_oled_display("OLED_1", ["CPU 5%", " "]) is True

    first, second = (call["json"] for call in session.calls[1:])
    assert first["data"]["frame"] == {"line1": "CPU 5%", "line2": " "}
    assert first["data"]["value"] != second["data"]["value"]


def test_malformed_response_body_is_a_failure():
    response = FakeResponse(200, {})
    response.content = b"not json"
    session = RecordingSession(outcomes=[response])
    client = _client(session)

    assert client.send_heartbeat() is False


def test_heartbeat_records_send_time_only_on_success():
    session = RecordingSession(outcomes=[requests.ConnectionError("down"), FakeResponse(200, {})])
    client = _client(session)

    assert client.send_heartbeat() is False
    assert client.session_snapshot().last_heartbeat_sent_at is None
    assert client.send_heartbeat() is True
    assert client.session_snapshot().last_heartbeat_sent_at == 50.0
    assert session.calls[-1]["json"] == {"game": "TEST_GAME"}


def test_register_oled_events_registers_every_page():
    session = RecordingSession()
    client = _client(session)

    client.register_oled_events([("OLED_1", 0), ("OLED_2", 4), ("OLED_3", 9)])

    assert sorted(call["json"]["event"] for call in session.calls) == ["OLED_1", "OLED_2", "OLED_3"]
    assert client.session_snapshot().registered_events == {"OLED_1", "OLED_2", "OLED_3"}


def test_register_oled_events_binds_pages_concurrently():
    # Each binding waits for the other two; one-at-a-time registration breaks the barrier.
    session = EventBindingSession(barrier=threading.Barrier(3, timeout=5))
    client = _client(session)

    client.register_oled_events([("OLED_1", 0), ("OLED_2", 4), ("OLED_3", 9)])

    assert client.session_snapshot().registered_events == {"OLED_1", "OLED_2", "OLED_3"}
    assert session.barrier.broken is False


def test_register_oled_events_waits_for_every_page_until_closed():
    session = EventBindingSession(failing_events={"OLED_2"})
    client = GameSenseClient("TEST_GAME", "Test Game", address="127.0.0.1:51234", session=session)
    client.set_retry_interval_ms(20)
    errors = []
    finished = threading.Event()

    def _register():
        try:
            client.register_oled_events([("OLED_1", 0), ("OLED_2", 0), ("OLED_3", 0)])
        except GameSenseError as exc:
            errors.append(exc)
        finally:
            finished.set()

    thread = threading.Thread(target=_register, daemon=True)
    thread.start()
    wait_until(lambda: client.is_event_registered("OLED_1") and client.is_event_registered("OLED_3"))
    wait_until(lambda: session.attempts("OLED_2") >= 3)

    assert not finished.is_set()

    client.close()
    thread.join(timeout=5)

    assert not thread.is_alive()
    assert len(errors) == 1
    assert isinstance(errors[0], GameSenseClosedError)
    assert not client.is_event_registered("OLED_2")


def test_heartbeat_thread_sends_on_its_own_timer_until_closed():
    session = RecordingSession()
    client = GameSenseClient("TEST_GAME", "Test Game", address="127.0.0.1:51234", session=session)
    client.set_heartbeat_interval_ms(50)

    client.start_heartbeat()
    wait_until(lambda: session.paths().count("game_heartbeat") >= 3)
    client.close()
    sent_at_close = len(session.calls)
    time.sleep(0.2)

    assert session.paths() == ["game_heartbeat"] * sent_at_close
    assert len(session.calls) == sent_at_close
    assert client.session_snapshot().last_heartbeat_sent_at is not None
    assert not any(thread.name == "gamesense-heartbeat" for thread in threading.enumerate())


def test_close_abandons_pending_registration_retry():
    session = RecordingSession(default=requests.ConnectionError("refused"))
    client = GameSenseClient("TEST_GAME", "Test Game", address="127.0.0.1:1", session=session)
    client.set_retry_interval_ms(60_000)
    errors = []

    def _register():
        try:
            client.register_game_metadata()
        except GameSenseError as exc:
            errors.append(exc)

    thread = threading.Thread(target=_register, daemon=True)
    thread.start()
    while not session.calls:
        thread.join(timeout=0.01)
    client.close()
    thread.join(timeout=5)

    assert not thread.is_alive()
    assert isinstance(errors[0], GameSenseClosedError)
    assert session.closed is True


def test_discover_address_from_core_props(tmp_path):
    core_props = tmp_path / "coreProps.json"
    core_props.write_text(json.dumps({"address": "127.0.0.1:49152"}), encoding="utf-8")

    assert discover_gamesense_address(core_props) == "127.0.0.1:49152"
    assert discover_gamesense_address(tmp_path / "missing.json") is None


def test_unknown_address_is_retried_until_engine_writes_core_props(tmp_path):
    core_props = tmp_path / "coreProps.json"
    session = RecordingSession()

    def _engine_starts(seconds):
        core_props.write_text(json.dumps({"address": "127.0.0.1:40000"}), encoding="utf-8")

    client = GameSenseClient(
        "TEST_GAME", "Test Game", session=session, sleep_fn=_engine_starts, core_props_path=core_props
    )

    client.register_game_metadata()

    assert session.calls[0]["url"] == "http://127.0.0.1:40000/game_metadata"


def test_interval_setters_convert_milliseconds():
    client = _client(RecordingSession())
    client.set_retry_interval_ms(1500)
    client.set_heartbeat_interval_ms(10000)

    assert client.retry_interval_seconds == pytest.approx(1.5)
    assert client.heartbeat_interval_seconds == pytest.approx(10.0)
