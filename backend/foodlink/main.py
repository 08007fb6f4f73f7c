from __future__ import annotations

from typing import Any, Dict

import socketio
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from .database import db, settings
from .errors import DependencyError, LifecycleError
from .routers import auth, delivery, donations, ngo, profile, support
from .services.chatbot import build_chatbot
from .services.lifecycle import DonationLifecycleCoordinator, LifecycleEvent
from .store import MongoStore
from .utils.logging import configure_logging
from .utils.notifications import notification_service


class LiveUpdateHub:
    """Pushes lifecycle events to delivery boards over websockets and socket.io."""

    def __init__(self, sio_server: socketio.AsyncServer) -> None:
        self.sio = sio_server
        self.websockets: set[WebSocket] = set()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self.websockets.add(websocket)

    def disconnect(self, websocket: WebSocket) -> None:
        self.websockets.discard(websocket)

    async def notify(self, event: str, payload: Dict[str, Any]) -> None:
        message = {"event": event, "payload": payload}
        stale = []
        for connection in self.websockets:
            try:
                await connection.send_json(message)
            except Exception:
                stale.append(connection)
        for connection in stale:
            self.disconnect(connection)
        await self.sio.emit(event, payload)

    async def lifecycle_event(self, event: LifecycleEvent) -> None:
        await self.notify(event.type, event.payload)


configure_logging(settings.log_level)

sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins="*")
app = FastAPI(title="FoodLink API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

hub = LiveUpdateHub(sio)
coordinator = DonationLifecycleCoordinator.from_database(
    db,
    notifier=notification_service,
    event_sink=hub.lifecycle_event,
    ngo_contact_email=settings.ngo_contact_email,
)

app.state.coordinator = coordinator
app.state.notifier = notification_service
app.state.chatbot = build_chatbot(coordinator, MongoStore(db.get_collection("users"), "users"))

app.include_router(auth.router)
app.include_router(donations.router)
app.include_router(ngo.router)
app.include_router(delivery.router)
app.include_router(profile.router)
app.include_router(support.router)


@app.exception_handler(LifecycleError)
async def lifecycle_error_handler(request: Request, exc: LifecycleError) -> JSONResponse:
    if isinstance(exc, DependencyError):
        logger.error("{} {} failed: {}", request.method, request.url.path, exc.detail)
    return JSONResponse({"detail": exc.detail}, status_code=exc.status_code)


@app.get("/health")
async def healthcheck() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/", include_in_schema=False)
async def serve_root() -> JSONResponse:
    return JSONResponse({"status": "ok", "message": "FoodLink API operational"})


@app.websocket("/ws/deliveries")
async def deliveries_websocket(websocket: WebSocket) -> None:
    await hub.connect(websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        hub.disconnect(websocket)


@sio.event
async def connect(sid, environ):  # pragma: no cover - socket handshake
    logger.debug("Socket client {} connected", sid)


@sio.event
async def disconnect(sid):  # pragma: no cover - socket handshake
    logger.debug("Socket client {} disconnected", sid)


socket_app = socketio.ASGIApp(sio, other_asgi_app=app)


@app.on_event("startup")
async def ensure_indexes() -> None:
    try:
        await app.state.coordinator.ensure_indexes()
        await MongoStore(db.get_collection("users"), "users").ensure_index([("email", 1)], unique=True)
    except DependencyError as exc:  # pragma: no cover - external service
        logger.warning("MongoDB unavailable; skipping index creation: {}", exc.detail)
