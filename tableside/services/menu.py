"""Menu administration: stock counts and item edits."""

import logging
from typing import List, Optional, Tuple

from tableside.core.exceptions import IllegalTransition, InsufficientMargin
from tableside.core.registry import TopicRegistry
from tableside.models.order import MenuItem, OrderStatus, StaffRole
from tableside.services.order_state import OrderStateMachine
from tableside.services.store import OrderStore

logger = logging.getLogger(__name__)

MIN_PROFIT_MARGIN = 60.0

# Orders the kitchen has not started on yet
UNSTARTED_STATUSES = (OrderStatus.PENDING, OrderStatus.READY_TO_COOK)


def profit_margin(price: float, cost: float) -> float:
    """Margin as a percentage of price; an item without a cost has none"""
    if cost <= 0:
        return 0.0
    return round((price - cost) / price * 100, 2)


def update_menu_item(store: OrderStore, item_id: int, price: float, cost: float,
                     name: Optional[str] = None, description: Optional[str] = None,
                     category: Optional[str] = None) -> MenuItem:
    store.get_menu_item(item_id)
    if profit_margin(price, cost) < MIN_PROFIT_MARGIN:
        raise InsufficientMargin(price, cost, MIN_PROFIT_MARGIN)
    item = store.update_menu_item(
        item_id, name=name, description=description, category=category, price=price, cost=cost,
    )
    logger.info(f"Menu item {item_id} updated (price {price:.2f}, cost {cost:.2f})")
    return item


def update_stock(store: OrderStore, registry: TopicRegistry, item_id: int,
                 stock: int) -> Tuple[MenuItem, List[int]]:
    """Set an item's stock.

    When the item runs out, every order still waiting for the kitchen that
    contains it is moved to UNAVAILABLE by the SYSTEM actor. Returns the item
    and the ids of those orders.
    """
    item = store.set_stock(item_id, stock)
    logger.info(f"Stock of menu item {item_id} set to {stock}")
    if stock > 0:
        return item, []

    machine = OrderStateMachine(store, registry)
    affected = []
    for order in store.find_orders_with_item(item_id, UNSTARTED_STATUSES):
        try:
            machine.transition(order.id, OrderStatus.UNAVAILABLE, StaffRole.SYSTEM)
        except IllegalTransition:
            # moved on by staff in the meantime
            logger.info(f"Order {order.id} left {order.status.value} before it could be marked unavailable")
            continue
        affected.append(order.id)
    if affected:
        logger.warning(f"{item.name} is out of stock, orders {affected} marked unavailable")
    return item, affected
