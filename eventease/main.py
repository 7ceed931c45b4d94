import asyncio
import json
from fastapi import FastAPI, WebSocket, WebSocketDisconnect, Request, Query, status, APIRouter
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import SQLAlchemyError
from typing import Optional
from eventease.api.v1.routes import auth as auth_router, events as events_router, rsvps as rsvps_router, health as health_router
from eventease.auth import resolve_token
from eventease.db.session import engine, Base, AsyncSessionLocal
from eventease.events.consumer import run_worker
from eventease.websocket.manager import ConnectionManager, Connection, event_room
from eventease.core.config import settings
from eventease.core.exceptions import AppError, UnauthorizedError
from eventease.core.logging import logger
from fastapi.middleware.cors import CORSMiddleware
from eventease.middleware.security_headers import SecurityHeadersMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

app = FastAPI(title="EventEase")

# Rate limits are declared on the auth routes' limiter
app.state.limiter = auth_router.limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.state.rooms = ConnectionManager()

app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth_router.router)
api_router.include_router(events_router.router)
api_router.include_router(rsvps_router.router)
api_router.include_router(health_router.router)

app.include_router(api_router)
app.include_router(health_router.router)


def _failure(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse({"success": False, "message": message, **extra}, status_code=status_code)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return _failure(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path"))
        message = str(err.get("msg", "Invalid value")).removeprefix("Value error, ")
        errors.append({"field": field, "message": message})
    message = errors[0]["message"] if errors else "Invalid input"
    return _failure(status.HTTP_400_BAD_REQUEST, message, errors=errors)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return _failure(exc.status_code, detail)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception(f"Database error while handling {request.method} {request.url.path}")
    return _failure(status.HTTP_500_INTERNAL_SERVER_ERROR, "Server error")


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error while handling {request.method} {request.url.path}")
    return _failure(status.HTTP_500_INTERNAL_SERVER_ERROR, "Server error")


@app.on_event("startup")
async def on_startup():
    if settings.AUTO_CREATE_TABLES:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    if settings.EVENT_BUS_ENABLED:
        # The notification worker can also run as its own process
        app.state.worker = asyncio.create_task(run_worker(app.state.rooms))


async def _authenticate_socket(token: Optional[str]) -> Optional[str]:
    """Account id behind an access token, checked the same way as bearer headers."""
    if token is None:
        return None
    async with AsyncSessionLocal() as session:
        user = await resolve_token(token, session)
    return str(user.id)


async def _handle_client_message(rooms: ConnectionManager, conn: Connection, raw: str) -> None:
    try:
        message = json.loads(raw)
        name = message["event"]
        data = message.get("data")
    except (ValueError, TypeError, KeyError):
        await conn.send("error", {"message": "Malformed message"})
        return

    if name == "join-event" and data:
        await rooms.join(conn, event_room(data))
        await conn.send("joined-event", {"eventId": data})
    elif name == "leave-event" and data:
        await rooms.leave(conn, event_room(data))
        await conn.send("left-event", {"eventId": data})
    elif name == "rsvp-update" and isinstance(data, dict) and data.get("eventId"):
        await rooms.publish(event_room(data["eventId"]), "rsvp-received", data.get("rsvpData"), exclude=conn)
    else:
        await conn.send("error", {"message": f"Unsupported message: {name}"})


@app.websocket("/ws/events")
async def websocket_endpoint(websocket: WebSocket, token: Optional[str] = Query(None)):
    """
    Live RSVP updates.

    Anonymous sockets may join event rooms; a valid access token also joins
    the account's personal room. Example: ws://localhost:8000/ws/events?token=your_jwt_token
    """
    try:
        user_id = await _authenticate_socket(token)
    except UnauthorizedError as e:
        logger.warning(f"WebSocket connection rejected: {e.message}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    rooms: ConnectionManager = websocket.app.state.rooms
    conn = await rooms.connect(websocket, user_id)
    try:
        while True:
            raw = await websocket.receive_text()
            await _handle_client_message(rooms, conn, raw)
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error on {conn.id}: {e}")
    finally:
        await rooms.disconnect(conn)
