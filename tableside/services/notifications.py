import json
import logging
from typing import Dict, List, Optional

from tableside.core import topics
from tableside.core.registry import TopicRegistry
from tableside.models.order import Order, StaffRole
from tableside.models.schemas import BasketLine, NotificationPayload

logger = logging.getLogger(__name__)


def order_updated(registry: TopicRegistry, order: Order) -> None:
    """Refresh the dashboard and the customer's live order view"""
    payload = NotificationPayload(
        type="update-order",
        message=f"Order #{order.id} is now {order.status.label}",
        orderId=order.id,
        status=order.status,
    ).to_wire()
    registry.publish(topics.dashboard_orders_topic(), payload)
    registry.publish(topics.order_topic(order.id), payload)


def dashboard_refresh(registry: TopicRegistry) -> None:
    # No body: streams send a timestamp, enough to trigger a reload
    registry.publish(topics.dashboard_orders_topic())


def ready_to_serve(registry: TopicRegistry, order_id: int) -> None:
    payload = NotificationPayload(type="success", message=f"Order #{order_id} is ready to serve")
    registry.publish(topics.role_topic(StaffRole.WAITER), payload.to_wire())


def call_waiter(registry: TopicRegistry, order_id: int, name: str, table_id: Optional[int]) -> None:
    payload = NotificationPayload(
        type="message",
        message=f"Customer {name} at table {table_id} needs assistance with order {order_id}",
    )
    registry.publish(topics.role_topic(StaffRole.WAITER), payload.to_wire())
    logger.info(f"Waiter called for order {order_id}")


def staff_message(registry: TopicRegistry, role: str, message: str,
                  sender_name: str = "", receiver_names: Optional[List[str]] = None) -> str:
    """Send a free-text message to one role; returns the topic used"""
    target = ", ".join(receiver_names) if receiver_names else role
    payload = NotificationPayload(type="warning", message=f"{sender_name} to {target} | {message}")
    topic = topics.role_topic(role)
    registry.publish(topic, payload.to_wire())
    return topic


def kitchen_alert(registry: TopicRegistry, message: str) -> None:
    payload = NotificationPayload(type="message", message=message)
    registry.publish(topics.role_topic("kitchen"), payload.to_wire())


def basket_suggestion(registry: TopicRegistry, customer_id: int, items: Dict[int, int]) -> List[BasketLine]:
    """Push suggested basket additions to a customer's menu page"""
    lines = [
        BasketLine(menuItemId=int(item_id), quantity=int(quantity))
        for item_id, quantity in items.items()
        if int(quantity) > 0
    ]
    payload = NotificationPayload(
        type="update-basket",
        basketUpdates=json.dumps([line.model_dump() for line in lines]),
    )
    registry.publish(topics.menu_notifications_topic(customer_id), payload.to_wire())
    return lines


def customer_order_changed(registry: TopicRegistry, customer_id: int) -> None:
    payload = NotificationPayload(type="update-order")
    registry.publish(topics.menu_notifications_topic(customer_id), payload.to_wire())
