import pytest
from fastapi import status
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from tests.helpers import (
    ADMIN_ID,
    BUYER_ID,
    PRODUCT_ID,
    SELLER_ID,
    STRANGER_ID,
    auth_headers,
    make_token,
)


def _open_room(tc: TestClient) -> str:
    response = tc.post("/chat/rooms", json={"product_id": PRODUCT_ID}, headers=auth_headers(BUYER_ID))
    return response.json()["room"]["id"]


def _ws_url(room_id: str, user_id: str, role: str = "buyer") -> str:
    return f"/ws/chat/{room_id}?token={make_token(user_id, role)}"


class TestWebSocketConnection:
    """WebSocket 연결 / 인증 테스트"""

    def test_connection_established(self, app):
        with TestClient(app) as tc:
            room_id = _open_room(tc)

            with tc.websocket_connect(_ws_url(room_id, BUYER_ID)) as ws:
                welcome = ws.receive_json()

        assert welcome["type"] == "connection_established"
        assert welcome["room_id"] == room_id
        assert welcome["status"] == "open"
        assert welcome["deal_status"] == "pending"
        assert welcome["online_users"] == [BUYER_ID]

    def test_authorization_header_accepted(self, app):
        with TestClient(app) as tc:
            room_id = _open_room(tc)

            with tc.websocket_connect(f"/ws/chat/{room_id}", headers=auth_headers(SELLER_ID, "developer")) as ws:
                welcome = ws.receive_json()

        assert welcome["user_id"] == SELLER_ID

    def test_missing_token_closes_connection(self, app):
        with TestClient(app) as tc:
            room_id = _open_room(tc)

            with tc.websocket_connect(f"/ws/chat/{room_id}") as ws:
                with pytest.raises(WebSocketDisconnect) as exc_info:
                    ws.receive_json()

        assert exc_info.value.code == status.WS_1008_POLICY_VIOLATION

    def test_stranger_receives_error_and_is_closed(self, app):
        with TestClient(app) as tc:
            room_id = _open_room(tc)

            with tc.websocket_connect(_ws_url(room_id, STRANGER_ID)) as ws:
                frame = ws.receive_json()
                with pytest.raises(WebSocketDisconnect) as exc_info:
                    ws.receive_json()

        assert frame["type"] == "error"
        assert frame["error_code"] == "unauthorized"
        assert exc_info.value.code == status.WS_1008_POLICY_VIOLATION

    def test_disconnect_unsubscribes(self, app):
        with TestClient(app) as tc:
            room_id = _open_room(tc)

            with tc.websocket_connect(_ws_url(room_id, BUYER_ID)) as ws:
                ws.receive_json()
                ws.send_json({"type": "ping"})
                ws.receive_json()

            health = tc.get("/health").json()

        assert health["realtime"]["subscriptions"] == 0


class TestWebSocketMessaging:
    """WebSocket 메시지 / 실시간 이벤트 테스트"""

    def test_message_delivered_to_all_subscribers(self, app):
        with TestClient(app) as tc:
            room_id = _open_room(tc)

            with tc.websocket_connect(_ws_url(room_id, BUYER_ID)) as buyer_ws, \
                    tc.websocket_connect(_ws_url(room_id, SELLER_ID, "developer")) as seller_ws:
                buyer_ws.receive_json()
                seller_ws.receive_json()

                buyer_ws.send_json({"type": "message", "content": "Is there a trial?"})
                to_buyer = buyer_ws.receive_json()
                to_seller = seller_ws.receive_json()

            listed = tc.get(f"/chat/rooms/{room_id}/messages", headers=auth_headers(SELLER_ID, "developer"))

        assert to_buyer == to_seller
        assert to_seller["type"] == "message"
        assert to_seller["room_id"] == room_id
        assert to_seller["data"]["content"] == "Is there a trial?"
        assert to_seller["data"]["sender_role"] == "buyer"
        assert to_seller["data"]["seq"] == 1
        assert listed.json()["total"] == 1

    def test_http_actions_fan_out_in_order(self, app):
        """HTTP로 수행한 상태 변경도 연결된 구독자에게 순서대로 전달됨"""
        with TestClient(app) as tc:
            room_id = _open_room(tc)

            with tc.websocket_connect(_ws_url(room_id, BUYER_ID)) as ws:
                ws.receive_json()

                tc.post(f"/chat/rooms/{room_id}/request-admin", headers=auth_headers(BUYER_ID))
                tc.post(f"/chat/rooms/{room_id}/join-admin", headers=auth_headers(ADMIN_ID, "admin"))

                frames = [ws.receive_json() for _ in range(5)]

        assert [f["type"] for f in frames] == [
            "message", "room-updated",
            "message", "admin-joined", "room-updated",
        ]
        assert frames[1]["data"]["admin_requested"] is True
        assert frames[3]["data"]["admin_id"] == ADMIN_ID
        assert frames[4]["data"]["admin_id"] == ADMIN_ID
        assert frames[2]["data"]["kind"] == "system"

    def test_typing_relayed_to_others_only(self, app):
        with TestClient(app) as tc:
            room_id = _open_room(tc)

            with tc.websocket_connect(_ws_url(room_id, BUYER_ID)) as buyer_ws, \
                    tc.websocket_connect(_ws_url(room_id, SELLER_ID, "developer")) as seller_ws:
                buyer_ws.receive_json()
                seller_ws.receive_json()

                buyer_ws.send_json({"type": "typing"})
                typing = seller_ws.receive_json()

                # 보낸 쪽에는 타이핑 이벤트가 오지 않으므로 다음 프레임은 pong
                buyer_ws.send_json({"type": "ping"})
                next_frame = buyer_ws.receive_json()

        assert typing["type"] == "typing"
        assert typing["data"]["user_id"] == BUYER_ID
        assert next_frame["type"] == "pong"

    def test_resolved_room_returns_error_frame(self, app):
        with TestClient(app) as tc:
            room_id = _open_room(tc)
            tc.post(f"/chat/rooms/{room_id}/join-admin", headers=auth_headers(ADMIN_ID, "admin"))
            tc.post(f"/chat/rooms/{room_id}/close", headers=auth_headers(ADMIN_ID, "admin"))

            with tc.websocket_connect(_ws_url(room_id, BUYER_ID)) as ws:
                welcome = ws.receive_json()
                ws.send_json({"type": "message", "content": "hello?"})
                error = ws.receive_json()

        assert welcome["status"] == "resolved"
        assert error["type"] == "error"
        assert error["error_code"] == "room_closed"

    def test_unknown_frame_type(self, app):
        with TestClient(app) as tc:
            room_id = _open_room(tc)

            with tc.websocket_connect(_ws_url(room_id, BUYER_ID)) as ws:
                ws.receive_json()
                ws.send_json({"type": "shout"})
                error = ws.receive_json()

        assert error["error_code"] == "unknown_type"
