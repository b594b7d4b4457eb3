from sqlalchemy import Boolean, Column, DateTime, Enum, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from tableside.core.database import Base
from enum import Enum as PyEnum

class OrderStatus(str, PyEnum):
    PENDING = "PENDING"
    READY_TO_COOK = "READY_TO_COOK"
    COOKING = "COOKING"
    READY_TO_DELIVER = "READY_TO_DELIVER"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    UNAVAILABLE = "UNAVAILABLE"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").capitalize()

class StaffRole(str, PyEnum):
    WAITER = "WAITER"
    HEAD_CHEF = "HEAD_CHEF"
    SOUS_CHEF = "SOUS_CHEF"
    GRILL_CHEF = "GRILL_CHEF"
    PORTER = "PORTER"
    DISH_WASHER = "DISH_WASHER"
    ADMIN = "ADMIN"
    CUSTOMER = "CUSTOMER"
    SYSTEM = "SYSTEM"

class MenuItem(Base):
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, default="")
    category = Column(String, index=True)
    price = Column(Float, nullable=False)
    cost = Column(Float, nullable=True)
    stock = Column(Integer, default=0)
    available = Column(Boolean, default=True)
    stripe_id = Column(String, nullable=True)  # Stripe price id

class DiningTable(Base):
    __tablename__ = "dining_tables"

    id = Column(Integer, primary_key=True, index=True)
    number = Column(Integer, nullable=False, unique=True)
    seats = Column(Integer, default=4)
    occupied = Column(Boolean, default=False)

    orders = relationship("Order", back_populates="table")

class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, nullable=False, index=True)
    table_id = Column(Integer, ForeignKey("dining_tables.id"), nullable=True)
    status = Column(Enum(OrderStatus), default=OrderStatus.PENDING, nullable=False, index=True)
    total_price = Column(Float, nullable=False, default=0.0)
    paid = Column(Boolean, default=False, nullable=False)
    payment_id = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)

    table = relationship("DiningTable", back_populates="orders")
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )

class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    menu_item_id = Column(Integer, ForeignKey("menu_items.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)  # menu price when ordered
    note = Column(String, default="")

    order = relationship("Order", back_populates="items")
    menu_item = relationship("MenuItem")
