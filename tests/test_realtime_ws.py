import unittest

from starlette.websockets import WebSocketDisconnect

from models.message import Message
from models.user import UserRole
from services.realtime import manager, room_for_order
from support import ApiTestCase


class RealtimeChatTestCase(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.customer = self.make_user(UserRole.CUSTOMER)
        self.deliverer = self.make_user(UserRole.DELIVERER)
        self.outsider = self.make_user(UserRole.DELIVERER)
        self.order = self.assigned_order(self.customer, self.deliverer)

    def connect(self, user):
        session = self.open_socket(user)
        hello = session.receive_json()
        self.assertEqual(hello["type"], "connection_established")
        self.assertEqual(hello["user_id"], user.id)
        return session

    def join(self, ws, order_id=None):
        ws.send_json({"type": "join_room", "order_id": order_id or self.order["id"]})
        return ws.receive_json()

    def test_connection_requires_a_valid_token(self):
        for url in ("/ws/chat", "/ws/chat?token=not-a-jwt"):
            with self.assertRaises(WebSocketDisconnect) as ctx:
                with self.client.websocket_connect(url) as ws:
                    ws.receive_json()
            self.assertEqual(ctx.exception.code, 4001)

    def test_message_is_persisted_and_relayed_to_the_whole_room(self):
        customer_ws = self.connect(self.customer)
        deliverer_ws = self.connect(self.deliverer)
        self.assertEqual(self.join(customer_ws)["type"], "room_joined")
        self.assertEqual(self.join(deliverer_ws)["type"], "room_joined")

        customer_ws.send_json({
            "type": "send_message",
            "order_id": self.order["id"],
            "text": "Sampai jam berapa?",
            "sender_id": self.outsider.id
        })

        echoed = customer_ws.receive_json()
        relayed = deliverer_ws.receive_json()

        for event in (echoed, relayed):
            self.assertEqual(event["type"], "receive_message")
            self.assertEqual(event["message"]["text"], "Sampai jam berapa?")
            self.assertEqual(event["message"]["sender_id"], self.customer.id)
            self.assertEqual(event["message"]["sender_name"], self.customer.full_name)

        stored = self.db.query(Message).all()
        self.assertEqual(len(stored), 1)
        self.assertEqual(stored[0].sender_id, self.customer.id)
        self.assertEqual(stored[0].id, relayed["message"]["id"])

        history = self.client.get(
            f"/api/chats/{self.order['id']}/messages", headers=self.headers(self.customer)
        ).json()["data"]
        self.assertEqual([m["text"] for m in history], ["Sampai jam berapa?"])

    def test_senders_other_joined_connections_receive_the_message(self):
        phone = self.connect(self.customer)
        laptop = self.connect(self.customer)
        deliverer_ws = self.connect(self.deliverer)
        for ws in (phone, laptop, deliverer_ws):
            self.assertEqual(self.join(ws)["type"], "room_joined")

        phone.send_json({"type": "send_message", "order_id": self.order["id"], "text": "Pakai sambal ya"})

        for ws in (phone, laptop, deliverer_ws):
            event = ws.receive_json()
            self.assertEqual(event["type"], "receive_message")
            self.assertEqual(event["message"]["text"], "Pakai sambal ya")
            self.assertEqual(event["message"]["sender_id"], self.customer.id)
        self.assertEqual(self.db.query(Message).count(), 1)

    def test_binary_frames_are_rejected_without_dropping_the_socket(self):
        ws = self.connect(self.customer)

        ws.send_bytes(b"\x00\x01")

        reply = ws.receive_json()
        self.assertEqual(reply["type"], "error")
        self.assertEqual(reply["error_code"], "INVALID_FRAME")

        ws.send_json({"type": "ping"})
        self.assertEqual(ws.receive_json()["type"], "pong")

    def test_outsider_cannot_join_and_stays_connected(self):
        ws = self.connect(self.outsider)

        reply = self.join(ws)

        self.assertEqual(reply["type"], "error")
        self.assertEqual(reply["error_code"], "AuthorizationError")
        self.assertEqual(manager.get_room_members(room_for_order(self.order["id"])), [])

        ws.send_json({"type": "ping"})
        self.assertEqual(ws.receive_json()["type"], "pong")

    def test_join_requires_an_assignment(self):
        waiting = self.create_order(self.customer)
        ws = self.connect(self.customer)

        reply = self.join(ws, order_id=waiting["id"])

        self.assertEqual(reply["type"], "error")
        self.assertEqual(reply["error_code"], "AuthorizationError")

    def test_join_missing_order(self):
        ws = self.connect(self.customer)
        reply = self.join(ws, order_id=4040)
        self.assertEqual(reply["error_code"], "ResourceNotFoundError")

    def test_outsider_cannot_send_into_a_room(self):
        ws = self.connect(self.outsider)

        ws.send_json({"type": "send_message", "order_id": self.order["id"], "text": "spam"})

        reply = ws.receive_json()
        self.assertEqual(reply["type"], "error")
        self.assertEqual(reply["error_code"], "AuthorizationError")
        self.assertEqual(self.db.query(Message).count(), 0)

    def test_invalid_events_are_reported(self):
        ws = self.connect(self.customer)

        ws.send_text("{not json")
        self.assertEqual(ws.receive_json()["error_code"], "INVALID_JSON")

        ws.send_json({"type": "teleport"})
        self.assertEqual(ws.receive_json()["error_code"], "UNKNOWN_EVENT")

        ws.send_json({"type": "join_room", "order_id": "abc"})
        self.assertEqual(ws.receive_json()["error_code"], "ValidationError")

        ws.send_json({"type": "send_message", "order_id": self.order["id"], "text": "  "})
        self.assertEqual(ws.receive_json()["error_code"], "ValidationError")

    def test_sender_outside_the_room_still_gets_its_message(self):
        ws = self.connect(self.customer)

        ws.send_json({"type": "send_message", "order_id": self.order["id"], "text": "Halo"})

        event = ws.receive_json()
        self.assertEqual(event["type"], "receive_message")
        self.assertEqual(event["message"]["text"], "Halo")

    def test_left_room_receives_nothing_more(self):
        customer_ws = self.connect(self.customer)
        deliverer_ws = self.connect(self.deliverer)
        self.join(customer_ws)
        self.join(deliverer_ws)

        deliverer_ws.send_json({"type": "leave_room", "order_id": self.order["id"]})
        self.assertEqual(deliverer_ws.receive_json()["type"], "room_left")

        customer_ws.send_json({"type": "send_message", "order_id": self.order["id"], "text": "Halo?"})
        self.assertEqual(customer_ws.receive_json()["type"], "receive_message")

        deliverer_ws.send_json({"type": "ping"})
        self.assertEqual(deliverer_ws.receive_json()["type"], "pong")

    def test_rest_messages_reach_the_room(self):
        deliverer_ws = self.connect(self.deliverer)
        self.join(deliverer_ws)

        response = self.client.post(
            f"/api/chats/{self.order['id']}/messages",
            json={"text": "Titip es teh juga"},
            headers=self.headers(self.customer)
        )
        self.assertEqual(response.status_code, 201)

        event = deliverer_ws.receive_json()
        self.assertEqual(event["type"], "receive_message")
        self.assertEqual(event["message"]["id"], response.json()["data"]["id"])

    def test_status_changes_are_pushed_to_the_room(self):
        customer_ws = self.connect(self.customer)
        self.join(customer_ws)

        self.update_status(self.deliverer, self.order["id"], "ON_DELIVERY")

        event = customer_ws.receive_json()
        self.assertEqual(event["type"], "status_changed")
        self.assertEqual(event["order_id"], self.order["id"])
        self.assertEqual(event["status"], "ON_DELIVERY")


if __name__ == "__main__":
    unittest.main()
