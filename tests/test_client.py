import threading

import pytest
import requests
from pytest_mock import MockerFixture

from calendar_bridge.client.api import ApiError, CalendarApiClient, SessionExpiredError, parse_auth_redirect
from calendar_bridge.client.cli import CalendarCli, event_window, main
from calendar_bridge.client.poller import EventPoller
from calendar_bridge.client.session_store import SessionStore


def _response(mocker: MockerFixture, status_code=200, payload=None):
    response = mocker.MagicMock()
    response.status_code = status_code
    response.content = b"x" if payload is not None else b""
    response.json.return_value = payload
    response.text = str(payload)
    return response


@pytest.fixture
def http(mocker: MockerFixture):
    return mocker.MagicMock(spec=requests.Session)


@pytest.fixture
def store(tmp_path) -> SessionStore:
    return SessionStore(tmp_path / "session.json")


def test_session_store_round_trip(store):
    assert store.load_email() is None
    store.save_email("a@example.com")
    assert store.load_email() == "a@example.com"
    store.clear()
    assert store.load_email() is None


def test_session_store_ignores_garbage(store):
    store.path.write_text("{broken", encoding="utf-8")
    assert store.load_email() is None


def test_parse_auth_redirect_success():
    url = "http://localhost:5173/?auth-success=true&email=a%40example.com"
    assert parse_auth_redirect(url) == "a@example.com"


def test_parse_auth_redirect_error():
    with pytest.raises(ApiError) as excinfo:
        parse_auth_redirect("http://localhost:5173/?auth-error=true&error=invalid_grant")
    assert excinfo.value.detail == "invalid_grant"


def test_parse_auth_redirect_rejects_other_urls():
    with pytest.raises(ApiError):
        parse_auth_redirect("http://localhost:5173/")


def test_list_events_sends_email(mocker, http):
    http.request.return_value = _response(mocker, payload=[{"id": "1"}])
    client = CalendarApiClient("http://api/", session=http)

    assert client.list_events("a@example.com") == [{"id": "1"}]
    args, kwargs = http.request.call_args
    assert args == ("GET", "http://api/api/events")
    assert kwargs["params"] == {"email": "a@example.com"}


def test_create_event_drops_empty_fields(mocker, http):
    http.request.return_value = _response(mocker, 201, {"id": "evt"})
    client = CalendarApiClient("http://api", session=http)

    client.create_event("a@example.com", "Lunch", "2030-01-01T12:00:00+00:00", "2030-01-01T13:00:00+00:00")

    assert http.request.call_args.kwargs["json"] == {
        "summary": "Lunch",
        "startDateTime": "2030-01-01T12:00:00+00:00",
        "endDateTime": "2030-01-01T13:00:00+00:00",
        "userEmail": "a@example.com",
    }


def test_401_raises_session_expired(mocker, http):
    http.request.return_value = _response(mocker, 401, {"detail": "Token expired"})
    client = CalendarApiClient("http://api", session=http)

    with pytest.raises(SessionExpiredError):
        client.list_events("a@example.com")


def test_other_errors_raise_api_error(mocker, http):
    http.request.return_value = _response(mocker, 404, {"detail": "Event not found"})
    client = CalendarApiClient("http://api", session=http)

    with pytest.raises(ApiError) as excinfo:
        client.delete_event("a@example.com", "gone")
    assert excinfo.value.status_code == 404
    assert excinfo.value.detail == "Event not found"


def test_unreachable_backend(http):
    http.request.side_effect = requests.ConnectionError("refused")
    client = CalendarApiClient("http://api", session=http)

    with pytest.raises(ApiError) as excinfo:
        client.check("a@example.com")
    assert excinfo.value.status_code == 0


def test_event_window_is_one_hour_by_default():
    start, end = event_window("2030-06-01", "09:30")
    assert start.endswith("+00:00")
    assert end > start


def test_signout_logs_out_and_forgets(mocker, store):
    api = mocker.MagicMock(spec=CalendarApiClient)
    store.save_email("a@example.com")

    CalendarCli(api, store).signout()

    api.logout.assert_called_once_with("a@example.com")
    assert store.load_email() is None


def test_complete_stores_session(mocker, store):
    api = mocker.MagicMock(spec=CalendarApiClient)
    api.list_events.return_value = []

    CalendarCli(api, store).complete("http://localhost:5173/?auth-success=true&email=a%40example.com")

    assert store.load_email() == "a@example.com"


def test_main_clears_session_on_401(mocker, store):
    mocker.patch.object(CalendarApiClient, "list_events", side_effect=SessionExpiredError(401, "Token expired"))
    store.save_email("a@example.com")

    code = main(["--session-file", str(store.path), "events"])

    assert code == 1
    assert store.load_email() is None


def test_main_requires_sign_in(store, capsys):
    code = main(["--session-file", str(store.path), "events"])

    assert code == 1
    assert "Not signed in" in capsys.readouterr().err


def test_poller_fetches_until_stopped():
    fetched = threading.Event()
    seen = []

    def on_events(events):
        seen.append(events)
        fetched.set()

    poller = EventPoller(lambda: [{"id": "1"}], on_events, interval=60)
    poller.start()
    assert fetched.wait(5)
    poller.stop(timeout=5)

    assert not poller.running
    assert seen == [[{"id": "1"}]]


def test_poller_stops_when_error_handler_says_so():
    errors = []

    def fetch():
        raise SessionExpiredError(401, "Token expired")

    def on_error(error):
        errors.append(error)
        return False

    poller = EventPoller(fetch, lambda events: None, on_error, interval=0.01)
    poller.start()
    poller._thread.join(5)

    assert not poller.running
    assert len(errors) == 1
