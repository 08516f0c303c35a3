import warnings
# suppress the passlib crypt deprecation warning
warnings.filterwarnings(
    "ignore",
    category=DeprecationWarning,
    module="passlib.utils"
)
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
import redis.asyncio as redis

from pantry_api.auth import resolve_user
from pantry_api.config import DEBUG, FRONTEND_URL, REDIS_URL
from pantry_api.database import get_db, init_db
from pantry_api.errors import PantryError, Unauthorized
from pantry_api.notifier import pantry_channel
from pantry_api.routers import ai, auth, ocr, products, recipes, users

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield


app = FastAPI(title="Pantry API", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for module in (auth, products, recipes, users, ai, ocr):
    app.include_router(module.router, prefix="/api")


@app.exception_handler(PantryError)
async def pantry_error_handler(request: Request, exc: PantryError):
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthorized) else None
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "errors": exc.errors},
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in err["loc"] if part not in ("body", "query", "path")),
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"detail": "Validation error", "errors": errors})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    content = {"detail": "Internal server error"}
    if DEBUG:
        content["error"] = str(exc)
    return JSONResponse(status_code=500, content=content)


@app.get("/")
async def read_root():
    return {"message": "Pantry & Recipe Sharing API"}


@app.get("/health")
async def health():
    return {"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.websocket("/ws/pantry")
async def websocket_pantry(
    websocket: WebSocket, token: str = "", db: AsyncSession = Depends(get_db)
):
    try:
        user = await resolve_user(token, db)
    except Unauthorized as exc:
        await websocket.close(code=1008, reason=exc.message)
        return

    await websocket.accept()
    channel = pantry_channel(user.id)
    redis_client = await redis.from_url(REDIS_URL, encoding="utf-8", decode_responses=True)
    pubsub = redis_client.pubsub()
    await pubsub.subscribe(channel)
    try:
        async for message in pubsub.listen():
            if message["type"] == "message":
                await websocket.send_json(
                    {"channel": message["channel"], "data": message["data"]}
                )
    except WebSocketDisconnect:
        logger.info("WebSocket disconnected for user %s", user.id)
    finally:
        await pubsub.unsubscribe(channel)
        await redis_client.aclose()
