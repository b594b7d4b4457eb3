from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy import func
from tableside.core.database import get_db
from tableside.core.exceptions import InsufficientMargin, MenuItemNotFound, PersistenceError
from tableside.core.registry import TopicRegistry, get_registry
from tableside.models.order import Order, OrderStatus
from tableside.models.schemas import MenuItemOut, MenuItemUpdate, StockUpdate, StockUpdateOut, TableOut
from tableside.services import menu
from tableside.services.store import OrderStore
from datetime import date, timedelta
from typing import List, Dict, Any

router = APIRouter(prefix="/dashboard")

@router.get("/menu", response_model=List[MenuItemOut])
def get_menu(db: Session = Depends(get_db)):
    return OrderStore(db).find_menu_items()

@router.get("/tables", response_model=List[TableOut])
def get_tables(db: Session = Depends(get_db)):
    return OrderStore(db).find_tables()

@router.put("/menu/{item_id}/stock", response_model=StockUpdateOut)
def update_stock(item_id: int, update: StockUpdate, db: Session = Depends(get_db),
                 registry: TopicRegistry = Depends(get_registry)):
    """Stock page; a count of 0 takes the item off the menu"""
    try:
        item, unavailable = menu.update_stock(OrderStore(db), registry, item_id, update.stock)
    except MenuItemNotFound:
        raise HTTPException(status_code=404, detail="Menu item not found")
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return StockUpdateOut(item=MenuItemOut.model_validate(item), unavailable_orders=unavailable)

@router.put("/menu/{item_id}", response_model=MenuItemOut)
def edit_menu_item(item_id: int, update: MenuItemUpdate, db: Session = Depends(get_db)):
    try:
        return menu.update_menu_item(OrderStore(db), item_id, **update.model_dump())
    except MenuItemNotFound:
        raise HTTPException(status_code=404, detail="Menu item not found")
    except InsufficientMargin as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=str(e))

@router.get("/revenue")
def get_daily_revenue(db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Paid revenue today vs yesterday"""
    today = date.today()
    yesterday = today - timedelta(days=1)

    def revenue_on(day: date) -> float:
        result = db.query(func.coalesce(func.sum(Order.total_price), 0)) \
                   .filter(Order.paid.is_(True), func.date(Order.created_at) == day.isoformat()) \
                   .scalar()
        return float(result or 0.0)

    today_revenue = revenue_on(today)
    yesterday_revenue = revenue_on(yesterday)
    if yesterday_revenue:
        revenue_change = (today_revenue - yesterday_revenue) / yesterday_revenue * 100
    else:
        revenue_change = 100 if today_revenue else 0

    completed = db.query(func.count(Order.id)) \
                  .filter(Order.status == OrderStatus.COMPLETED,
                          func.date(Order.created_at) == today.isoformat()) \
                  .scalar() or 0

    return {
        "revenue_today": round(today_revenue, 2),
        "revenue_yesterday": round(yesterday_revenue, 2),
        "revenue_change_pct": round(revenue_change, 1),
        "completed_orders": completed,
        "date": today.isoformat(),
    }
