"""
Capability checks for marketplace actions.

Every endpoint and socket event asks this module whether an actor may perform an
action on an order, instead of comparing role strings inline. A rule combines the
actor's role with ownership (the order's requester) or assignment (the order's
deliverer). Participation is always derived from the order row, never from
realtime room membership.
"""
import enum
from typing import Callable, Dict, Optional

from core.exceptions import AuthorizationError
from models.user import UserRole, ADMIN_ROLES


class Action(str, enum.Enum):
    CREATE_ORDER = "create_order"
    LIST_AVAILABLE = "list_available"
    SUBMIT_OFFER = "submit_offer"
    VIEW_OFFERS = "view_offers"
    ACCEPT_OFFER = "accept_offer"
    START_DELIVERY = "start_delivery"
    COMPLETE_DELIVERY = "complete_delivery"
    CANCEL_ORDER = "cancel_order"
    VIEW_ORDER = "view_order"
    JOIN_CHAT = "join_chat"
    SEND_MESSAGE = "send_message"
    RATE_ORDER = "rate_order"
    WITHDRAW_FUNDS = "withdraw_funds"


def _is_requester(actor, order) -> bool:
    return order is not None and order.customer_id == actor.id


def _is_assigned_deliverer(actor, order) -> bool:
    return (
        order is not None
        and actor.role == UserRole.DELIVERER
        and order.deliverer_id is not None
        and order.deliverer_id == actor.id
    )


def _is_chat_participant(actor, order) -> bool:
    # No channel exists until a deliverer is assigned
    if order is None or order.deliverer_id is None:
        return False
    return order.is_participant(actor.id)


_RULES: Dict[Action, Callable] = {
    Action.CREATE_ORDER: lambda actor, order: actor.role == UserRole.CUSTOMER,
    Action.LIST_AVAILABLE: lambda actor, order: actor.role == UserRole.DELIVERER,
    Action.SUBMIT_OFFER: lambda actor, order: (
        actor.role == UserRole.DELIVERER and not _is_requester(actor, order)
    ),
    Action.VIEW_OFFERS: _is_requester,
    Action.ACCEPT_OFFER: _is_requester,
    Action.START_DELIVERY: _is_assigned_deliverer,
    Action.COMPLETE_DELIVERY: _is_assigned_deliverer,
    Action.CANCEL_ORDER: _is_requester,
    Action.VIEW_ORDER: lambda actor, order: (
        actor.role in ADMIN_ROLES
        or _is_requester(actor, order)
        or _is_assigned_deliverer(actor, order)
    ),
    Action.JOIN_CHAT: _is_chat_participant,
    Action.SEND_MESSAGE: _is_chat_participant,
    Action.RATE_ORDER: _is_requester,
    Action.WITHDRAW_FUNDS: lambda actor, order: actor.role in (UserRole.DELIVERER, UserRole.MERCHANT),
}

_DENIAL_MESSAGES = {
    Action.CREATE_ORDER: "Only customers can place orders",
    Action.LIST_AVAILABLE: "Only deliverers can browse available orders",
    Action.SUBMIT_OFFER: "Only deliverers can bid, and not on their own orders",
    Action.VIEW_OFFERS: "Only the customer who placed this order can see its offers",
    Action.ACCEPT_OFFER: "Only the customer who placed this order can accept an offer",
    Action.START_DELIVERY: "Only the assigned deliverer can start this delivery",
    Action.COMPLETE_DELIVERY: "Only the assigned deliverer can complete this delivery",
    Action.CANCEL_ORDER: "Only the customer who placed this order can cancel it",
    Action.VIEW_ORDER: "You are not a participant of this order",
    Action.JOIN_CHAT: "You are not a participant of this order's chat",
    Action.SEND_MESSAGE: "You are not a participant of this order's chat",
    Action.RATE_ORDER: "You can only rate your own orders",
    Action.WITHDRAW_FUNDS: "Only deliverers and merchants can withdraw",
}


def can(actor, action: Action, order=None) -> bool:
    """Return True if the actor may perform the action on the order."""
    if actor is None or not getattr(actor, "is_active", True):
        return False
    return bool(_RULES[action](actor, order))


def authorize(actor, action: Action, order=None, message: Optional[str] = None) -> None:
    """Raise AuthorizationError unless the actor may perform the action."""
    if not can(actor, action, order):
        details = {"action": action.value}
        if order is not None:
            details["order_id"] = order.id
        raise AuthorizationError(message or _DENIAL_MESSAGES[action], details=details)
