"""SQLAlchemy-backed storage for orders, menu items and tables."""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tableside.core.exceptions import (
    EmptyBasket,
    IllegalTransition,
    MenuItemNotFound,
    OrderNotFound,
    PersistenceError,
)
from tableside.models.order import DiningTable, MenuItem, Order, OrderItem, OrderStatus

logger = logging.getLogger(__name__)


class OrderStore:
    def __init__(self, db: Session):
        self.db = db

    def find_order(self, order_id: int) -> Optional[Order]:
        return self.db.query(Order).filter(Order.id == order_id).first()

    def get_order(self, order_id: int) -> Order:
        order = self.find_order(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        return order

    def list_orders(self, status: Optional[OrderStatus] = None) -> List[Order]:
        query = self.db.query(Order)
        if status is not None:
            query = query.filter(Order.status == status)
        return query.order_by(Order.created_at.desc(), Order.id.desc()).all()

    def find_menu_items(self) -> List[MenuItem]:
        return self.db.query(MenuItem).order_by(MenuItem.category, MenuItem.name).all()

    def find_tables(self) -> List[DiningTable]:
        return self.db.query(DiningTable).order_by(DiningTable.number).all()

    def find_menu_item(self, item_id: int) -> Optional[MenuItem]:
        return self.db.query(MenuItem).filter(MenuItem.id == item_id).first()

    def get_menu_item(self, item_id: int) -> MenuItem:
        item = self.find_menu_item(item_id)
        if item is None:
            raise MenuItemNotFound(item_id)
        return item

    def set_stock(self, item_id: int, stock: int) -> MenuItem:
        """Store a stock count; an item with none left is taken off the menu"""
        item = self.get_menu_item(item_id)
        item.stock = stock
        item.available = stock > 0
        self._commit(f"stock update of menu item {item_id}")
        self.db.refresh(item)
        return item

    def update_menu_item(self, item_id: int, **fields) -> MenuItem:
        item = self.get_menu_item(item_id)
        for name, value in fields.items():
            if value is not None:
                setattr(item, name, value)
        self._commit(f"edit of menu item {item_id}")
        self.db.refresh(item)
        return item

    def find_orders_with_item(self, item_id: int, statuses) -> List[Order]:
        return (
            self.db.query(Order)
            .join(OrderItem, OrderItem.order_id == Order.id)
            .filter(OrderItem.menu_item_id == item_id, Order.status.in_(list(statuses)))
            .order_by(Order.id)
            .distinct()
            .all()
        )

    def update_order_status(self, order_id: int, status: OrderStatus,
                            completed_at: Optional[datetime] = None,
                            expected: Optional[OrderStatus] = None) -> Order:
        """Write a new status.

        With `expected`, the row is only updated while its stored status still
        equals it, so two writers validating against the same status cannot
        both win; the loser gets IllegalTransition.
        """
        query = self.db.query(Order).filter(Order.id == order_id)
        if expected is not None:
            query = query.filter(Order.status == expected)
        values = {Order.status: status}
        if completed_at is not None:
            values[Order.completed_at] = completed_at

        try:
            updated = query.update(values, synchronize_session=False)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to persist status update of order {order_id}: {e}")
            raise PersistenceError(f"Could not persist status update of order {order_id}") from e
        if not updated:
            self.db.rollback()
            current = self.get_order(order_id)
            logger.warning(f"Order {order_id} moved to {current.status.value} before {status.value} was written")
            raise IllegalTransition(current.status, status)

        self._commit(f"status update of order {order_id}")
        order = self.get_order(order_id)
        self.db.refresh(order)
        return order

    def create_order(self, customer_id: int, basket: Dict[int, int],
                     table_id: Optional[int] = None) -> Order:
        lines = self._price_lines(basket)
        if not lines:
            raise EmptyBasket("Basket has no orderable items")

        order = Order(
            customer_id=customer_id,
            table_id=table_id,
            status=OrderStatus.PENDING,
            paid=False,
            items=lines,
            total_price=_total(lines),
        )
        self.db.add(order)
        self._commit(f"creation of order for customer {customer_id}")
        self.db.refresh(order)
        return order

    def replace_order_items(self, order_id: int, basket: Dict[int, int]) -> Order:
        order = self.get_order(order_id)
        lines = self._price_lines(basket)
        order.items = lines
        order.total_price = _total(lines)
        self._commit(f"item update of order {order_id}")
        self.db.refresh(order)
        return order

    def mark_paid(self, order_id: int, payment_id: str) -> Order:
        order = self.get_order(order_id)
        order.payment_id = payment_id
        order.paid = True
        self._commit(f"payment of order {order_id}")
        self.db.refresh(order)
        return order

    def _price_lines(self, basket: Dict[int, int]) -> List[OrderItem]:
        wanted = {int(k): int(v) for k, v in basket.items() if int(v) > 0}
        if not wanted:
            return []
        menu_items = (
            self.db.query(MenuItem)
            .filter(MenuItem.id.in_(wanted), MenuItem.available.is_(True))
            .order_by(MenuItem.id)
            .all()
        )
        return [
            OrderItem(menu_item_id=item.id, quantity=wanted[item.id], unit_price=item.price)
            for item in menu_items
        ]

    def _commit(self, what: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to persist {what}: {e}")
            raise PersistenceError(f"Could not persist {what}") from e


def _total(lines: List[OrderItem]) -> float:
    return round(sum(line.unit_price * line.quantity for line in lines), 2)
