from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from tableside.core.database import get_db
from tableside.core.exceptions import OrderNotFound, PersistenceError
from tableside.core.registry import TopicRegistry, get_registry
from tableside.models.schemas import BasketSuggestion, OrderOut, StaffAlert, StaffNotification
from tableside.services import notifications
from tableside.services.orders import serialize_order
from tableside.services.store import OrderStore

router = APIRouter(prefix="/staff")

@router.post("/notifications")
def send_notification(notification: StaffNotification, registry: TopicRegistry = Depends(get_registry)):
    """Message every connected member of one role"""
    notifications.staff_message(
        registry,
        notification.role,
        notification.message,
        sender_name=notification.sender_name,
        receiver_names=notification.receiver_names,
    )
    return {"success": True, "message": f"Notification sent to {notification.role}"}

@router.post("/alerts")
def send_alert(alert: StaffAlert, registry: TopicRegistry = Depends(get_registry)):
    """Waiter -> kitchen alert from the dashboard sidebar"""
    if alert.type != "message":
        return {"success": False}
    notifications.kitchen_alert(registry, alert.message)
    return {"success": True}

@router.post("/tables/basket-suggestions")
def suggest_basket(suggestion: BasketSuggestion, registry: TopicRegistry = Depends(get_registry)):
    lines = notifications.basket_suggestion(registry, suggestion.customer_id, suggestion.items)
    return {"success": True, "items": [line.model_dump() for line in lines]}

@router.put("/tables/orders/{order_id}/items", response_model=OrderOut)
def amend_order(order_id: int, amendment: BasketSuggestion, db: Session = Depends(get_db),
                registry: TopicRegistry = Depends(get_registry)):
    """Replace an order's items on behalf of the table"""
    try:
        order = OrderStore(db).replace_order_items(order_id, amendment.items)
    except OrderNotFound:
        raise HTTPException(status_code=404, detail="Order not found")
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=str(e))
    notifications.customer_order_changed(registry, amendment.customer_id)
    return serialize_order(order)
