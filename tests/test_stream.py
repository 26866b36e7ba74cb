"""
Tests for event stream tracking.
"""
import sys
import threading
import types
from unittest.mock import MagicMock, patch

import pytest

from standards_sdk.inscriber.exceptions import (
    EventStreamError,
    InscriptionCancelledError,
    InscriptionTimeoutError,
    NoEventStreamServersError,
)
from standards_sdk.inscriber.models import RegistrationStage, WebSocketServer, WebSocketServersResponse
from standards_sdk.inscriber.stream import (
    EventStreamWaiter,
    SocketIOEventSource,
    WaitSession,
    matches_inscription_event,
    select_server,
)

from conftest import FakeEventSource

JOB_ID = "0.0.100@1700000000.000000001"
NORMALIZED_ID = "0.0.100-1700000000-000000001"
STREAM_URL = "wss://stream.example.com"


def make_waiter(factory, **kwargs):
    kwargs.setdefault("url", STREAM_URL)
    kwargs.setdefault("poll_interval", 0.01)
    return EventStreamWaiter("test-key", source_factory=factory, **kwargs)


class TestEventStreamWaiter:
    """Tests for EventStreamWaiter.wait_for_job"""

    def test_complete_event_resolves(self, event_source_factory):
        factory, sources = event_source_factory([
            ("inscription-complete", {"tx_id": NORMALIZED_ID, "topicId": "0.0.777"}),
        ])

        job = make_waiter(factory).wait_for_job(JOB_ID)

        assert job.completed is True
        assert job.status == "completed"
        assert job.topic_id == "0.0.777"
        assert sources[0].connected_url == STREAM_URL
        assert sources[0].api_key == "test-key"
        assert sources[0].disconnected is True

    def test_complete_event_keeps_reported_status(self, event_source_factory):
        factory, _ = event_source_factory([
            ("inscription-complete", {"jobId": JOB_ID, "status": "done"}),
        ])
        job = make_waiter(factory).wait_for_job(JOB_ID)
        assert job.status == "done"
        assert job.completed is True

    def test_progress_reaching_100_resolves(self, event_source_factory):
        updates = []
        factory, _ = event_source_factory([
            ("inscription-progress", {"transactionId": JOB_ID, "progress": 40}),
            ("inscription-progress", {"transactionId": JOB_ID, "progress": "100"}),
        ])

        job = make_waiter(factory).wait_for_job(JOB_ID, progress_callback=updates.append)

        assert job.completed is True
        assert [u.progress_percent for u in updates] == [40.0, 100.0]
        assert updates[0].stage is RegistrationStage.CONFIRMING
        assert updates[0].message == "Processing inscription"
        assert updates[0].details["transactionId"] == JOB_ID

    def test_progress_with_completed_status_resolves(self, event_source_factory):
        factory, _ = event_source_factory([
            ("inscription-progress", {"tx_id": JOB_ID, "status": "Completed", "progress": 10}),
        ])
        assert make_waiter(factory).wait_for_job(JOB_ID).completed is True

    def test_unrelated_events_do_not_reset_timer(self, event_source_factory):
        factory, sources = event_source_factory([
            ("inscription-progress", {"tx_id": "0.0.200-1-1", "progress": 100}),
            ("inscription-complete", {"tx_id": "0.0.200-1-1"}),
            ("inscription-progress", "not a mapping"),
        ])

        with patch.object(WaitSession, "touch") as touch:
            with pytest.raises(InscriptionTimeoutError, match="websocket inscription timeout"):
                make_waiter(factory, inactivity_timeout=0.05).wait_for_job(JOB_ID)

        # only the post-handshake start of the timer
        touch.assert_called_once()
        assert sources[0].disconnected is True

    def test_matching_progress_resets_timer(self, event_source_factory):
        factory, _ = event_source_factory([
            ("inscription-progress", {"tx_id": JOB_ID, "progress": 10}),
            ("inscription-complete", {"tx_id": JOB_ID}),
        ])
        with patch.object(WaitSession, "touch", autospec=True) as touch:
            make_waiter(factory).wait_for_job(JOB_ID)
        assert touch.call_count == 3

    def test_handshake_time_not_counted_as_inactivity(self):
        now = [0.0]

        class SlowHandshakeSource(FakeEventSource):
            def connect(self, url, api_key):
                now[0] += 40.0
                super().connect(url, api_key)

        def factory():
            return SlowHandshakeSource([("inscription-complete", {"tx_id": JOB_ID})])

        waiter = make_waiter(factory, inactivity_timeout=30, clock=lambda: now[0])

        assert waiter.wait_for_job(JOB_ID).completed is True

    def test_inscription_error_event(self, event_source_factory):
        factory, sources = event_source_factory([("inscription-error", {"error": "quota exceeded"})])
        with pytest.raises(EventStreamError, match="quota exceeded"):
            make_waiter(factory).wait_for_job(JOB_ID)
        assert sources[0].disconnected is True

    def test_inscription_error_default_message(self, event_source_factory):
        factory, _ = event_source_factory([("inscription-error", None)])
        with pytest.raises(EventStreamError, match="websocket inscription error"):
            make_waiter(factory).wait_for_job(JOB_ID)

    def test_transport_error_event(self, event_source_factory):
        factory, _ = event_source_factory([("error", "transport closed")])
        with pytest.raises(EventStreamError, match="transport closed"):
            make_waiter(factory).wait_for_job(JOB_ID)

    def test_connect_failure_still_disconnects(self, event_source_factory):
        factory, sources = event_source_factory(connect_error=EventStreamError("refused"))
        with pytest.raises(EventStreamError, match="refused"):
            make_waiter(factory).wait_for_job(JOB_ID)
        assert sources[0].disconnected is True

    def test_disconnect_error_is_logged(self, event_source_factory):
        factory, sources = event_source_factory([("inscription-complete", {"tx_id": JOB_ID})])

        def failing_factory():
            source = factory()
            source.disconnect = MagicMock(side_effect=RuntimeError("already closed"))
            return source

        with patch("standards_sdk.inscriber.stream.logger") as mock_logger:
            job = make_waiter(failing_factory).wait_for_job(JOB_ID)
        assert job.completed is True
        mock_logger.warning.assert_called_once()

    def test_cancel_event(self, event_source_factory):
        factory, sources = event_source_factory()
        event = threading.Event()
        event.set()
        with pytest.raises(InscriptionCancelledError):
            make_waiter(factory).wait_for_job(JOB_ID, cancel_event=event)
        assert sources[0].disconnected is True

    def test_empty_target_matches_any_job(self, event_source_factory):
        factory, _ = event_source_factory([("inscription-complete", {"tx_id": "0.0.5-1-1"})])
        assert make_waiter(factory).wait_for_job("").tx_id == "0.0.5-1-1"

    def test_default_inactivity_timeout(self, event_source_factory):
        factory, _ = event_source_factory()
        assert make_waiter(factory, inactivity_timeout=0).inactivity_timeout == 30.0


class TestServerSelection:
    """Tests for discovery and select_server"""

    def test_recommended_wins(self):
        response = WebSocketServersResponse(
            servers=[WebSocketServer(url="wss://a", status="active")],
            recommended=" wss://rec ",
        )
        assert select_server(response) == "wss://rec"

    def test_first_active_server(self):
        response = WebSocketServersResponse(servers=[
            WebSocketServer(url="wss://a", status="draining"),
            WebSocketServer(url="wss://b", status="ACTIVE"),
        ])
        assert select_server(response) == "wss://b"

    def test_first_server_with_url(self):
        response = WebSocketServersResponse(servers=[
            WebSocketServer(url="", status="active"),
            WebSocketServer(url="wss://c", status="offline"),
        ])
        assert select_server(response) == "wss://c"

    def test_no_servers(self):
        with pytest.raises(NoEventStreamServersError):
            select_server(WebSocketServersResponse())

    def test_waiter_uses_discovery(self, event_source_factory):
        factory, sources = event_source_factory([("inscription-complete", {"tx_id": JOB_ID})])
        discover = MagicMock(return_value=WebSocketServersResponse(recommended="wss://found"))

        make_waiter(factory, url=None, discover=discover).wait_for_job(JOB_ID)

        discover.assert_called_once_with()
        assert sources[0].connected_url == "wss://found"

    def test_no_url_and_no_discovery(self, event_source_factory):
        factory, sources = event_source_factory()
        with pytest.raises(NoEventStreamServersError):
            make_waiter(factory, url=None).wait_for_job(JOB_ID)
        assert sources == []


class TestMatching:
    """Tests for matches_inscription_event and WaitSession"""

    @pytest.mark.parametrize("key", ["jobId", "tx_id", "transactionId"])
    def test_each_correlation_key(self, key):
        assert matches_inscription_event(NORMALIZED_ID, {key: JOB_ID})

    def test_non_matching(self):
        assert not matches_inscription_event(NORMALIZED_ID, {"id": NORMALIZED_ID})
        assert not matches_inscription_event(NORMALIZED_ID, "payload")

    def test_session_deadline_moves_on_touch(self):
        now = [100.0]
        session = WaitSession(JOB_ID, 30, clock=lambda: now[0])
        assert session.target_id == NORMALIZED_ID

        now[0] = 120.0
        assert session.remaining() == 10.0
        session.touch()
        assert session.remaining() == 30.0

        now[0] = 150.0
        assert session.expired()

    def test_session_handler_queues_first_argument(self):
        session = WaitSession(JOB_ID, 30)
        session.handler("inscription-progress")({"progress": 1}, "ignored")
        session.handler("error")()
        assert session.inbound.get_nowait() == ("inscription-progress", {"progress": 1})
        assert session.inbound.get_nowait() == ("error", None)


class TestSocketIOEventSource:
    """Tests for the socket.io adapter"""

    @pytest.fixture
    def fake_socketio(self):
        module = types.ModuleType("socketio")
        module.Client = MagicMock()
        with patch.dict(sys.modules, {"socketio": module}):
            yield module

    def test_connect_sends_api_key(self, fake_socketio):
        source = SocketIOEventSource()
        source.connect("wss://stream.example.com/socket", "k&y")

        client = fake_socketio.Client.return_value
        fake_socketio.Client.assert_called_once_with(reconnection=False)
        args, kwargs = client.connect.call_args
        assert args[0] == "wss://stream.example.com/socket?apiKey=k%26y"
        assert kwargs["headers"] == {"x-api-key": "k&y"}
        assert kwargs["transports"] == ["websocket"]

    def test_connect_appends_to_existing_query(self, fake_socketio):
        source = SocketIOEventSource()
        source.connect("wss://s/?v=2", "key")
        assert fake_socketio.Client.return_value.connect.call_args.args[0] == "wss://s/?v=2&apiKey=key"

    def test_error_handler_also_covers_connect_error(self, fake_socketio):
        source = SocketIOEventSource()
        handler = MagicMock()
        source.on("error", handler)
        source.on("inscription-complete", handler)

        registered = [c.args[0] for c in fake_socketio.Client.return_value.on.call_args_list]
        assert registered == ["error", "connect_error", "inscription-complete"]

    def test_connect_failure_wrapped(self, fake_socketio):
        fake_socketio.Client.return_value.connect.side_effect = RuntimeError("handshake failed")
        with pytest.raises(EventStreamError, match="handshake failed"):
            SocketIOEventSource().connect("wss://s", "key")

    def test_missing_dependency(self):
        with patch.dict(sys.modules, {"socketio": None}):
            with pytest.raises(ImportError, match="standards-sdk\\[websocket\\]"):
                SocketIOEventSource()
