import logging
from typing import Dict, Optional

from tableside.core.registry import TopicRegistry
from tableside.models.order import Order
from tableside.models.schemas import OrderItemOut, OrderOut
from tableside.services import notifications
from tableside.services.payments import StripeCheckout
from tableside.services.store import OrderStore

logger = logging.getLogger(__name__)


def place_order(store: OrderStore, registry: TopicRegistry, customer_id: int,
                basket: Dict[int, int], table_id: Optional[int] = None) -> Order:
    """Check out a basket as a new PENDING order"""
    order = store.create_order(customer_id, basket, table_id=table_id)
    logger.info(f"Order {order.id} placed by customer {customer_id} ({len(order.items)} lines)")
    notifications.dashboard_refresh(registry)
    return order


async def start_checkout(store: OrderStore, gateway: StripeCheckout, order_id: int) -> str:
    order = store.get_order(order_id)
    line_items = [
        {"price": item.menu_item.stripe_id, "quantity": item.quantity}
        for item in order.items
        if item.menu_item.stripe_id
    ]
    return await gateway.create_checkout_session(order.id, line_items)


async def confirm_payment(store: OrderStore, registry: TopicRegistry, gateway: StripeCheckout,
                          order_id: int, session_id: str) -> Order:
    """Record a completed checkout once; repeated confirmations are no-ops"""
    order = store.get_order(order_id)
    if order.payment_id:
        return order
    payment_id = await gateway.retrieve_session(session_id)
    order = store.mark_paid(order_id, payment_id)
    logger.info(f"Order {order_id} paid ({payment_id})")
    notifications.dashboard_refresh(registry)
    return order


def serialize_order(order: Order) -> OrderOut:
    return OrderOut(
        id=order.id,
        customer_id=order.customer_id,
        table_id=order.table_id,
        status=order.status,
        total_price=order.total_price,
        paid=order.paid,
        payment_id=order.payment_id,
        created_at=order.created_at,
        completed_at=order.completed_at,
        items=[
            OrderItemOut(
                id=item.id,
                menu_item_id=item.menu_item_id,
                name=item.menu_item.name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                note=item.note or "",
            )
            for item in order.items
        ],
    )
