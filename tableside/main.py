from contextlib import asynccontextmanager
import asyncio
import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from tableside.api.analytics import router as analytics_router
from tableside.api.orders import router as orders_router
from tableside.api.staff import router as staff_router
from tableside.api.streams import router as streams_router
from tableside.config import settings
from tableside.core.database import Base, engine
from tableside.core.redis_client import RedisTopicRegistry, ping_redis
from tableside.core.registry import TopicRegistry
from tableside.core.streams import StreamManager

# Configure logging
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

def build_registry() -> TopicRegistry:
    if settings.topic_backend == "redis":
        return RedisTopicRegistry()
    return TopicRegistry()

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Tests may install their own registry before startup
    if not hasattr(app.state, "registry"):
        app.state.registry = build_registry()
    app.state.streams = StreamManager(app.state.registry)

    relay = None
    if isinstance(app.state.registry, RedisTopicRegistry):
        relay = asyncio.create_task(app.state.registry.relay())
    logger.info(f"Notification bus ready ({type(app.state.registry).__name__})")

    yield

    closed = app.state.streams.close_all()
    logger.info(f"Closed {closed} event streams")
    if relay is not None:
        relay.cancel()
        await asyncio.gather(relay, return_exceptions=True)

app = FastAPI(
    title="Tableside API",
    description="Restaurant ordering with live order tracking",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(orders_router, prefix="/api/v1", tags=["orders"])
app.include_router(streams_router, prefix="/api/v1", tags=["streams"])
app.include_router(staff_router, prefix="/api/v1", tags=["staff"])
app.include_router(analytics_router, prefix="/api/v1", tags=["dashboard"])

# Create tables
Base.metadata.create_all(bind=engine)

@app.get("/")
async def root():
    return {"message": "Tableside Backend Running"}

@app.get("/health")
def health_check(request: Request):
    health = {"status": "healthy", "version": "1.0.0", "topic_backend": settings.topic_backend}
    registry = request.app.state.registry
    if isinstance(registry, RedisTopicRegistry):
        health["redis"] = ping_redis(registry.client)
        if not health["redis"]:
            health["status"] = "degraded"
    return health
