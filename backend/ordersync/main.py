"""
FastAPI application serving the order API.

Run with:
    uvicorn ordersync.main:app --app-dir backend --port 8000
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from ordersync import __version__
from ordersync.api.catalog_router import router as catalog_router
from ordersync.api.events import STATIONS, EventBroadcaster
from ordersync.api.orders_router import orders_router, tables_router
from ordersync.config import Settings, get_settings
from ordersync.errors import OrderSyncError
from ordersync.notifications import NotificationHub
from ordersync.service import OrderService
from ordersync.storage import InMemoryStorage, SQLAlchemyStorage, Storage

logger = logging.getLogger(__name__)


def create_storage(settings: Settings) -> Storage:
    """Pick the storage backend named by STORAGE_BACKEND."""
    if settings.storage_backend == "sqlalchemy":
        logger.info("Using SQLAlchemy storage at %s", settings.database_url)
        return SQLAlchemyStorage(settings.database_url)
    logger.info("Using in-memory storage")
    return InMemoryStorage()


def create_app(settings: Optional[Settings] = None, storage: Optional[Storage] = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title="Order Sync Service", version=__version__)

    # Allow CORS for local dev (adjust in production)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    hub = NotificationHub()
    broadcaster = EventBroadcaster()
    broadcaster.attach(hub)
    app.state.settings = settings
    app.state.storage = storage if storage is not None else create_storage(settings)
    app.state.service = OrderService(app.state.storage, hub)
    app.state.broadcaster = broadcaster

    app.include_router(tables_router)
    app.include_router(orders_router)
    app.include_router(catalog_router)

    @app.exception_handler(OrderSyncError)
    async def order_sync_error_handler(request: Request, exc: OrderSyncError):
        status_code = getattr(exc, "status_code", None) or 500
        if status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    @app.get("/config", summary="Return backend URL info for frontends")
    async def get_config(request: Request):
        scheme = request.url.scheme or "http"
        host = request.url.hostname or "localhost"
        port = request.url.port or 8000
        base = f"{scheme}://{host}:{port}"
        ws_base = f"{'wss' if scheme == 'https' else 'ws'}://{host}:{port}"
        return {
            "backend_base": base,
            "ws_base": ws_base,
            "backend_port": port,
            "sync_debounce_ms": settings.sync_debounce_ms,
        }

    @app.get("/events", summary="Server-sent order change events")
    async def events():
        queue = broadcaster.open_stream()
        return StreamingResponse(
            broadcaster.stream(queue),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache"},
        )

    @app.websocket("/ws/{station}")
    async def websocket_endpoint(websocket: WebSocket, station: str):
        if station not in STATIONS:
            await websocket.close()
            return
        await broadcaster.connect(station, websocket)
        try:
            while True:
                await websocket.receive_text()  # clients only listen
        except WebSocketDisconnect:
            broadcaster.disconnect(station, websocket)

    return app


app = create_app()
