"""Order status state machine.

    PENDING --confirm--> READY_TO_COOK --start--> COOKING --ready-->
    READY_TO_DELIVER --deliver--> COMPLETED

Any non-terminal order may also be cancelled by staff or marked unavailable
by the system. COMPLETED, CANCELLED and UNAVAILABLE are terminal.

A transition is validated, persisted, and only then announced. When the
write fails nothing is published.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import FrozenSet, Optional

from tableside.core.exceptions import IllegalTransition, TransitionNotPermitted
from tableside.core.registry import TopicRegistry
from tableside.models.order import OrderStatus, StaffRole
from tableside.models.schemas import TransitionResult
from tableside.services import notifications
from tableside.services.store import OrderStore

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = frozenset({
    OrderStatus.COMPLETED,
    OrderStatus.CANCELLED,
    OrderStatus.UNAVAILABLE,
})

ACTIVE_STATUSES = frozenset(set(OrderStatus) - TERMINAL_STATUSES)

KITCHEN_ROLES = frozenset({
    StaffRole.HEAD_CHEF,
    StaffRole.SOUS_CHEF,
    StaffRole.GRILL_CHEF,
    StaffRole.PORTER,
})

STAFF_ROLES = frozenset(set(StaffRole) - {StaffRole.CUSTOMER, StaffRole.SYSTEM})


@dataclass(frozen=True)
class Transition:
    action: str
    sources: FrozenSet[OrderStatus]
    target: OrderStatus
    roles: FrozenSet[StaffRole]


TRANSITIONS = (
    Transition("confirm", frozenset({OrderStatus.PENDING}), OrderStatus.READY_TO_COOK,
               frozenset({StaffRole.WAITER})),
    Transition("start", frozenset({OrderStatus.READY_TO_COOK}), OrderStatus.COOKING, KITCHEN_ROLES),
    Transition("ready", frozenset({OrderStatus.COOKING}), OrderStatus.READY_TO_DELIVER, KITCHEN_ROLES),
    Transition("deliver", frozenset({OrderStatus.READY_TO_DELIVER}), OrderStatus.COMPLETED,
               frozenset({StaffRole.WAITER})),
    Transition("cancel", ACTIVE_STATUSES, OrderStatus.CANCELLED, STAFF_ROLES),
    Transition("unavailable", ACTIVE_STATUSES, OrderStatus.UNAVAILABLE,
               frozenset({StaffRole.SYSTEM})),
)


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL_STATUSES


def find_transition(current: OrderStatus, target: OrderStatus) -> Optional[Transition]:
    for transition in TRANSITIONS:
        if transition.target == target and current in transition.sources:
            return transition
    return None


def check_transition(current: OrderStatus, target: OrderStatus, role: StaffRole) -> Transition:
    """Return the edge for current -> target or raise if it is not allowed"""
    if is_terminal(current):
        raise IllegalTransition(current, target)
    transition = find_transition(current, target)
    if transition is None:
        raise IllegalTransition(current, target)
    if role not in transition.roles:
        raise TransitionNotPermitted(role, transition.action)
    return transition


class OrderStateMachine:
    def __init__(self, store: OrderStore, registry: TopicRegistry):
        self.store = store
        self.registry = registry

    def transition(self, order_id: int, target: OrderStatus, actor_role: StaffRole) -> TransitionResult:
        order = self.store.get_order(order_id)
        previous = order.status
        edge = check_transition(previous, target, actor_role)

        completed_at = datetime.now(timezone.utc) if target == OrderStatus.COMPLETED else None
        order = self.store.update_order_status(order_id, target, completed_at=completed_at, expected=previous)
        logger.info(f"Order {order_id}: {previous.value} -> {target.value} ({edge.action} by {actor_role.value})")

        notifications.order_updated(self.registry, order)
        if target == OrderStatus.READY_TO_DELIVER:
            notifications.ready_to_serve(self.registry, order_id)

        return TransitionResult(
            order_id=order_id,
            action=edge.action,
            previous_status=previous,
            new_status=target,
            completed_at=order.completed_at,
        )
