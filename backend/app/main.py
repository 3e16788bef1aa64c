from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import settings
from core.database import get_db
from core.database_utils import ping_database
from core.exceptions import register_exception_handlers
from core.redis_config import close_redis_connection, redis_health_check
from app.startup import configure_logging, init_db, run_startup_checks

# ========== Orders & Dispatch ==========
from modules.orders.exceptions.dispatch_exceptions import register_dispatch_exception_handlers
from modules.orders.routes.order_routes import router as order_router
from modules.orders.routes.staff_routes import router as staff_orders_router
from modules.orders.routes.websocket_routes import router as staff_websocket_router
from modules.orders.websocket.staff_fanout import staff_fanout

# ========== Scheduling ==========
from modules.scheduling.routes.scheduling_routes import router as scheduling_router

configure_logging()

app = FastAPI(
    title="Order Dispatch API",
    description="Order placement, pickup scheduling and real-time staff dispatch",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)
register_dispatch_exception_handlers(app)

app.include_router(order_router)
app.include_router(staff_orders_router)
app.include_router(staff_websocket_router)
app.include_router(scheduling_router)


@app.on_event("startup")
async def startup_event():
    """Initialize services on application startup"""
    init_db()
    run_startup_checks()
    await staff_fanout.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on application shutdown"""
    await staff_fanout.close()
    await close_redis_connection()


@app.get("/health", tags=["health"])
async def health_check(db: Session = Depends(get_db)):
    try:
        database_ok = ping_database(db)
    except SQLAlchemyError:
        database_ok = False

    return {
        "status": "healthy" if database_ok else "degraded",
        "database": "healthy" if database_ok else "unavailable",
        "redis": (await redis_health_check())["status"],
        "staff_connections": staff_fanout.connection_count,
    }
