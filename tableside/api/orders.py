from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List, Optional
from tableside.core.database import get_db
from tableside.core.exceptions import (
    EmptyBasket,
    IllegalTransition,
    OrderNotFound,
    PaymentError,
    PersistenceError,
    TransitionNotPermitted,
)
from tableside.core.registry import TopicRegistry, get_registry
from tableside.models.order import OrderStatus
from tableside.models.schemas import (
    CheckoutOut,
    OrderCreate,
    OrderOut,
    OrderStatusUpdate,
    TransitionResult,
    WaiterCall,
)
from tableside.services import notifications
from tableside.services.order_state import OrderStateMachine
from tableside.services.orders import confirm_payment, place_order, serialize_order, start_checkout
from tableside.services.payments import StripeCheckout, get_payment_gateway
from tableside.services.store import OrderStore

router = APIRouter()

@router.post("/orders", response_model=OrderOut, status_code=201)
def create_order(order_in: OrderCreate, db: Session = Depends(get_db),
                 registry: TopicRegistry = Depends(get_registry)):
    """Customer checkout of a basket"""
    try:
        order = place_order(OrderStore(db), registry, order_in.customer_id,
                            order_in.basket, table_id=order_in.table_id)
    except EmptyBasket as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return serialize_order(order)

@router.get("/orders", response_model=List[OrderOut])
def list_orders(status: Optional[OrderStatus] = None, db: Session = Depends(get_db)):
    """Staff dashboard listing, newest first"""
    return [serialize_order(o) for o in OrderStore(db).list_orders(status)]

@router.get("/orders/{order_id}", response_model=OrderOut)
def get_order(order_id: int, db: Session = Depends(get_db)):
    order = OrderStore(db).find_order(order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return serialize_order(order)

@router.patch("/orders/{order_id}/status", response_model=TransitionResult)
def update_order_status(order_id: int, status_update: OrderStatusUpdate, db: Session = Depends(get_db),
                        registry: TopicRegistry = Depends(get_registry)):
    """Staff status change"""
    machine = OrderStateMachine(OrderStore(db), registry)
    try:
        return machine.transition(order_id, status_update.status, status_update.actor_role)
    except OrderNotFound:
        raise HTTPException(status_code=404, detail="Order not found")
    except IllegalTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    except TransitionNotPermitted as e:
        raise HTTPException(status_code=403, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=str(e))

@router.post("/orders/{order_id}/call-waiter")
def call_waiter(order_id: int, call: WaiterCall, registry: TopicRegistry = Depends(get_registry)):
    notifications.call_waiter(registry, order_id, call.name, call.table_id)
    return {"success": True, "order_id": order_id}

@router.post("/orders/{order_id}/checkout", response_model=CheckoutOut)
async def checkout(order_id: int, db: Session = Depends(get_db),
                   gateway: StripeCheckout = Depends(get_payment_gateway)):
    try:
        url = await start_checkout(OrderStore(db), gateway, order_id)
    except OrderNotFound:
        raise HTTPException(status_code=404, detail="Order not found")
    except PaymentError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"order_id": order_id, "url": url}

@router.post("/orders/{order_id}/payment/confirm", response_model=OrderOut)
async def confirm_order_payment(order_id: int, session_id: str, db: Session = Depends(get_db),
                                registry: TopicRegistry = Depends(get_registry),
                                gateway: StripeCheckout = Depends(get_payment_gateway)):
    """Return leg of the Stripe checkout redirect"""
    try:
        order = await confirm_payment(OrderStore(db), registry, gateway, order_id, session_id)
    except OrderNotFound:
        raise HTTPException(status_code=404, detail="Order not found")
    except PaymentError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return serialize_order(order)
