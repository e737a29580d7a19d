import unittest

from core.exceptions import AuthorizationError
from core.permissions import Action, authorize, can
from database import connection  # noqa: F401  (registers every mapped class)
from models.order import Order, OrderStatus
from models.user import User, UserRole


def _user(user_id: int, role: UserRole, is_active: bool = True) -> User:
    return User(id=user_id, email=f"u{user_id}@titipin.id", full_name=f"User {user_id}", role=role, is_active=is_active)


class CapabilityTestCase(unittest.TestCase):
    def setUp(self):
        self.customer = _user(1, UserRole.CUSTOMER)
        self.deliverer = _user(2, UserRole.DELIVERER)
        self.other_deliverer = _user(3, UserRole.DELIVERER)
        self.admin = _user(4, UserRole.ADMIN)
        self.merchant = _user(5, UserRole.MERCHANT)
        self.waiting = Order(id=10, customer_id=1, deliverer_id=None, status=OrderStatus.WAITING_FOR_OFFERS)
        self.assigned = Order(id=11, customer_id=1, deliverer_id=2, status=OrderStatus.OFFER_ACCEPTED)

    def test_role_only_actions(self):
        self.assertTrue(can(self.customer, Action.CREATE_ORDER))
        self.assertFalse(can(self.deliverer, Action.CREATE_ORDER))
        self.assertTrue(can(self.deliverer, Action.LIST_AVAILABLE))
        self.assertFalse(can(self.customer, Action.LIST_AVAILABLE))
        self.assertTrue(can(self.merchant, Action.WITHDRAW_FUNDS))
        self.assertFalse(can(self.customer, Action.WITHDRAW_FUNDS))

    def test_requester_owned_actions(self):
        for action in (Action.VIEW_OFFERS, Action.ACCEPT_OFFER, Action.CANCEL_ORDER, Action.RATE_ORDER):
            self.assertTrue(can(self.customer, action, self.waiting))
            self.assertFalse(can(self.deliverer, action, self.waiting))
            self.assertFalse(can(self.admin, action, self.waiting))

    def test_assignment_actions(self):
        for action in (Action.START_DELIVERY, Action.COMPLETE_DELIVERY):
            self.assertTrue(can(self.deliverer, action, self.assigned))
            self.assertFalse(can(self.other_deliverer, action, self.assigned))
            self.assertFalse(can(self.customer, action, self.assigned))
            self.assertFalse(can(self.deliverer, action, self.waiting))

    def test_chat_needs_an_assignment(self):
        self.assertFalse(can(self.customer, Action.JOIN_CHAT, self.waiting))
        self.assertTrue(can(self.customer, Action.JOIN_CHAT, self.assigned))
        self.assertTrue(can(self.deliverer, Action.SEND_MESSAGE, self.assigned))
        self.assertFalse(can(self.other_deliverer, Action.SEND_MESSAGE, self.assigned))
        self.assertFalse(can(self.admin, Action.JOIN_CHAT, self.assigned))

    def test_deliverers_cannot_bid_on_their_own_requests(self):
        own_order = Order(id=12, customer_id=2, status=OrderStatus.WAITING_FOR_OFFERS)
        self.assertTrue(can(self.deliverer, Action.SUBMIT_OFFER, self.waiting))
        self.assertFalse(can(self.deliverer, Action.SUBMIT_OFFER, own_order))

    def test_admin_family_can_view_any_order(self):
        staff = _user(6, UserRole.CUSTOMER_SERVICE)
        self.assertTrue(can(staff, Action.VIEW_ORDER, self.assigned))
        self.assertTrue(can(self.deliverer, Action.VIEW_ORDER, self.assigned))
        self.assertFalse(can(self.other_deliverer, Action.VIEW_ORDER, self.assigned))

    def test_inactive_or_missing_actor_is_refused(self):
        inactive = _user(1, UserRole.CUSTOMER, is_active=False)
        self.assertFalse(can(inactive, Action.CANCEL_ORDER, self.waiting))
        self.assertFalse(can(None, Action.CREATE_ORDER))

    def test_authorize_raises_with_action_and_order(self):
        with self.assertRaises(AuthorizationError) as ctx:
            authorize(self.deliverer, Action.ACCEPT_OFFER, self.waiting)

        self.assertEqual(ctx.exception.status_code, 403)
        self.assertEqual(ctx.exception.details, {"action": "accept_offer", "order_id": 10})

    def test_authorize_uses_a_custom_message(self):
        with self.assertRaises(AuthorizationError) as ctx:
            authorize(self.customer, Action.LIST_AVAILABLE, message="Deliverers only")
        self.assertEqual(ctx.exception.message, "Deliverers only")


if __name__ == "__main__":
    unittest.main()
