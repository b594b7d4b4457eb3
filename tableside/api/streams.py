from fastapi import APIRouter, Depends, Response
from typing import Optional
from tableside.core import topics
from tableside.core.streams import StreamManager, event_stream_response, get_stream_manager

router = APIRouter()

# Callers are expected to be authorised upstream; sessions do no auth checks.

@router.get("/dashboard/orders/stream")
async def dashboard_orders_stream(streams: StreamManager = Depends(get_stream_manager)):
    return event_stream_response(streams, topics.dashboard_orders_topic())

@router.get("/dashboard/tables/stream")
async def dashboard_tables_stream(streams: StreamManager = Depends(get_stream_manager)):
    return event_stream_response(streams, topics.dashboard_orders_topic())

@router.get("/orders/{order_id}/stream")
async def order_stream(order_id: int, streams: StreamManager = Depends(get_stream_manager)):
    return event_stream_response(streams, topics.order_topic(order_id))

@router.get("/notifications/stream")
async def role_notifications_stream(role: Optional[str] = None,
                                    streams: StreamManager = Depends(get_stream_manager)):
    if not role:
        return Response(status_code=204)
    return event_stream_response(streams, topics.role_topic(role))

@router.get("/menu/notifications/stream")
async def menu_notifications_stream(user: Optional[str] = None,
                                    streams: StreamManager = Depends(get_stream_manager)):
    if not user:
        return Response(status_code=204)
    return event_stream_response(streams, topics.menu_notifications_topic(user))

@router.get("/streams/stats")
async def stream_stats(streams: StreamManager = Depends(get_stream_manager)):
    stats = streams.get_connection_stats()
    stats["registry_topics"] = streams.registry.topics()
    return stats
