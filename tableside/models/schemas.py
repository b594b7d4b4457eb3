from datetime import datetime
from pydantic import BaseModel, Field
from typing import Dict, List, Literal, Optional
from tableside.models.order import OrderStatus, StaffRole

NotificationType = Literal["message", "update-basket", "update-order", "success", "warning"]

class NotificationPayload(BaseModel):
    """Body of an application event frame"""
    type: NotificationType
    message: Optional[str] = None
    basketUpdates: Optional[str] = None  # JSON list of BasketLine
    orderId: Optional[int] = None
    status: Optional[OrderStatus] = None

    def to_wire(self) -> str:
        return self.model_dump_json(exclude_none=True)

class BasketLine(BaseModel):
    menuItemId: int
    quantity: int

class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    actor_role: StaffRole

class TransitionResult(BaseModel):
    success: bool = True
    order_id: int
    action: str
    previous_status: OrderStatus
    new_status: OrderStatus
    completed_at: Optional[datetime] = None

class OrderCreate(BaseModel):
    customer_id: int
    table_id: Optional[int] = None
    basket: Dict[int, int] = Field(..., description="menu item id -> quantity")

class OrderItemOut(BaseModel):
    id: int
    menu_item_id: int
    name: str
    quantity: int
    unit_price: float
    note: str = ""

class OrderOut(BaseModel):
    id: int
    customer_id: int
    table_id: Optional[int] = None
    status: OrderStatus
    total_price: float
    paid: bool
    payment_id: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    items: List[OrderItemOut] = []

class MenuItemOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = ""
    category: Optional[str] = None
    price: float
    cost: Optional[float] = None
    stock: int = 0
    available: bool = True

    class Config:
        from_attributes = True

class StockUpdate(BaseModel):
    stock: int = Field(..., ge=0)

class StockUpdateOut(BaseModel):
    item: MenuItemOut
    unavailable_orders: List[int] = []

class MenuItemUpdate(BaseModel):
    """Full edit of a menu item; omitted text fields keep their value"""
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    price: float = Field(..., gt=0)
    cost: float

class TableOut(BaseModel):
    id: int
    number: int
    seats: int
    occupied: bool

    class Config:
        from_attributes = True

class WaiterCall(BaseModel):
    name: str = Field(..., min_length=1)
    table_id: Optional[int] = None

class StaffNotification(BaseModel):
    role: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1, max_length=500)
    sender_name: str = ""
    receiver_names: List[str] = []

class StaffAlert(BaseModel):
    type: str
    message: str = Field(..., min_length=1, max_length=500)

class BasketSuggestion(BaseModel):
    customer_id: int
    items: Dict[int, int]

class CheckoutOut(BaseModel):
    order_id: int
    url: str
