import unittest

from fastapi.testclient import TestClient

from database.connection import SessionLocal, create_tables, drop_tables
from main import app
from models.user import User, UserRole
from services.auth import create_user, create_token_for_user
from services.realtime import manager

PASSWORD = "Passw0rd!"


class ApiTestCase(unittest.TestCase):
    """Fresh schema and client per test, with helpers for the common flows."""

    def setUp(self):
        create_tables()
        self.db = SessionLocal()
        self.client = TestClient(app)
        # One event loop for requests and sockets, so room broadcasts reach test sockets
        self.client.__enter__()
        self._user_count = 0
        self._sockets = []

    def tearDown(self):
        for ws in reversed(self._sockets):
            ws.__exit__(None, None, None)
        self.client.__exit__(None, None, None)
        self.db.close()
        drop_tables()
        manager.active_connections.clear()
        manager.rooms.clear()
        manager.user_sessions.clear()

    def make_user(self, role: UserRole = UserRole.CUSTOMER, name: str = None) -> User:
        self._user_count += 1
        name = name or f"{role.value.lower()}{self._user_count}"
        return create_user(
            db=self.db,
            email=f"{name}@titipin.id",
            password=PASSWORD,
            full_name=name.capitalize(),
            role=role
        )

    def open_socket(self, user: User):
        """Connect to the chat socket as user; closed again in tearDown"""
        ws = self.client.websocket_connect(f"/ws/chat?token={create_token_for_user(user)}")
        session = ws.__enter__()
        self._sockets.append(ws)
        return session

    def headers(self, user: User) -> dict:
        return {"Authorization": f"Bearer {create_token_for_user(user)}"}

    def reload(self, model, identifier):
        self.db.expire_all()
        return self.db.get(model, identifier)

    def create_order(self, customer: User, **overrides) -> dict:
        payload = {
            "item_description": "Nasi Goreng x2",
            "quantity": 2,
            "destination": "Jl. A No.1",
        }
        payload.update(overrides)
        response = self.client.post("/api/orders", json=payload, headers=self.headers(customer))
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()["data"]

    def submit_offer(self, deliverer: User, order_id: int, fee: int) -> dict:
        response = self.client.post(
            "/api/offers",
            json={"order_id": order_id, "fee": fee},
            headers=self.headers(deliverer)
        )
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()["data"]

    def accept_offer(self, customer: User, offer_id: int):
        return self.client.post(f"/api/offers/{offer_id}/accept", headers=self.headers(customer))

    def update_status(self, user: User, order_id: int, status: str):
        return self.client.post(
            f"/api/orders/{order_id}/update-status",
            json={"status": status},
            headers=self.headers(user)
        )

    def assigned_order(self, customer: User, deliverer: User, fee: int = 10000) -> dict:
        """An order with the deliverer's offer accepted"""
        order = self.create_order(customer)
        offer = self.submit_offer(deliverer, order["id"], fee)
        response = self.accept_offer(customer, offer["id"])
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()["data"]["order"]

    def assertErrorCode(self, response, status_code: int, error_code: str):
        self.assertEqual(response.status_code, status_code, response.text)
        body = response.json()
        self.assertFalse(body["success"])
        self.assertEqual(body["error_code"], error_code)
