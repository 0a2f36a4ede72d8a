"""Unit tests for the HTTP and websocket surface."""
import pytest
from starlette.websockets import WebSocketDisconnect

from app.core.exceptions import AnswerFailed
from app.services.call_session.events import CallbackEvent
from app.services.call_session.models import CallSession

INCOMING_CALL = [
    {
        "id": "evt-1",
        "eventType": "Microsoft.Communication.IncomingCall",
        "data": {
            "from": {"kind": "phoneNumber", "rawId": "4:+15551234567"},
            "to": {"kind": "phoneNumber", "rawId": "4:+18777108468"},
            "incomingCallContext": "context-abc",
            "correlationId": "corr-1",
        },
    }
]


class TestIncomingCall:
    """Test POST /api/incomingCall."""

    def test_subscription_validation(self, test_client, mock_session_manager):
        """The validation handshake is echoed and no call is answered."""
        response = test_client.post(
            "/api/incomingCall",
            json=[
                {
                    "eventType": "Microsoft.EventGrid.SubscriptionValidationEvent",
                    "data": {"validationCode": "abc123"},
                }
            ],
        )

        assert response.status_code == 200
        assert response.json() == {"validationResponse": "abc123"}
        mock_session_manager.handle_incoming_call.assert_not_called()

    def test_incoming_call_answered(self, test_client, mock_session_manager):
        response = test_client.post("/api/incomingCall", json=INCOMING_CALL)

        assert response.status_code == 200
        mock_session_manager.handle_incoming_call.assert_awaited_once_with(
            "4:+15551234567", "context-abc"
        )

    def test_answer_failure_returns_500(self, test_client, mock_session_manager):
        mock_session_manager.handle_incoming_call.side_effect = AnswerFailed("rejected")

        response = test_client.post("/api/incomingCall", json=INCOMING_CALL)

        assert response.status_code == 500

    def test_unexpected_error_returns_500(self, test_client, mock_session_manager):
        mock_session_manager.handle_incoming_call.side_effect = RuntimeError("boom")

        response = test_client.post("/api/incomingCall", json=INCOMING_CALL)

        assert response.status_code == 500

    def test_malformed_incoming_call(self, test_client, mock_session_manager):
        response = test_client.post(
            "/api/incomingCall",
            json=[{"eventType": "Microsoft.Communication.IncomingCall", "data": {}}],
        )

        assert response.status_code == 400
        mock_session_manager.handle_incoming_call.assert_not_called()

    def test_other_event_type_not_answered(self, test_client, mock_session_manager):
        """Event Grid types other than IncomingCall are acknowledged without answering."""
        response = test_client.post(
            "/api/incomingCall",
            json=[
                {
                    "eventType": "Microsoft.Communication.CallEnded",
                    "data": INCOMING_CALL[0]["data"],
                }
            ],
        )

        assert response.status_code == 200
        mock_session_manager.handle_incoming_call.assert_not_called()


class TestCallbacks:
    """Test POST /api/callbacks/{context_id}."""

    def test_events_processed_in_order(self, test_client, mock_session_manager):
        response = test_client.post(
            "/api/callbacks/token-123?callerId=4%3A%2B15551234567",
            json=[
                {
                    "type": "Microsoft.Communication.CallConnected",
                    "data": {"callConnectionId": "conn-1"},
                },
                {
                    "type": "Microsoft.Communication.MediaStreamingStarted",
                    "data": {"callConnectionId": "conn-1"},
                },
            ],
        )

        assert response.status_code == 200
        calls = mock_session_manager.process_callback_event.await_args_list
        assert [call.args[0] for call in calls] == ["token-123", "token-123"]
        events = [call.args[1] for call in calls]
        assert all(isinstance(event, CallbackEvent) for event in events)
        assert [event.type for event in events] == [
            "Microsoft.Communication.CallConnected",
            "Microsoft.Communication.MediaStreamingStarted",
        ]

    def test_processing_error_returns_500(self, test_client, mock_session_manager):
        mock_session_manager.process_callback_event.side_effect = RuntimeError("boom")

        response = test_client.post(
            "/api/callbacks/token-123",
            json=[{"type": "Microsoft.Communication.CallConnected", "data": {}}],
        )

        assert response.status_code == 500


class TestMediaWebsocket:
    """Test WS /ws/media/{context_id}."""

    def test_unknown_token_closed(self, test_client, mock_session_manager):
        """A socket for a call that does not exist is closed with a policy violation."""
        mock_session_manager.attach_media_socket.return_value = None

        with test_client.websocket_connect("/ws/media/no-such-token") as websocket:
            with pytest.raises(WebSocketDisconnect) as exc_info:
                websocket.receive_text()

        assert exc_info.value.code == 1008
        mock_session_manager.forward_caller_audio.assert_not_called()


class TestHealth:
    """Test health and banner endpoints."""

    def test_health_reports_active_calls(self, test_client, test_registry):
        test_registry.register(CallSession(callback_token="token-1", caller_id="caller"))

        response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "active_calls": 1}

    def test_root_banner(self, test_client):
        response = test_client.get("/")

        assert response.status_code == 200
        assert response.json()["message"] == "ACS Realtime Voice Agent"
