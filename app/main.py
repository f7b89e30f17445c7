# =============================================================================
# app/main.py - FastAPI Application Entry Point
# =============================================================================
# This is the main entry point for the AdaChat realtime relay.
# It configures the FastAPI application with middleware, routers, and handlers.
#
# Usage:
#   uvicorn app.main:app --reload --port 4000
# =============================================================================

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app import __version__
from app.config import settings
from app.routers import health
from app.websocket import connection_manager
from app.websocket import routes as websocket_routes

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Runs on startup and shutdown. Presence lives in memory only, so
    nothing needs to be restored or flushed.
    """
    # Startup
    logger.info(f"Starting AdaChat relay in {settings.ENVIRONMENT} mode")
    logger.info(f"Relay socket at {settings.WS_PATH}; CORS origins: {settings.cors_origins_list}")

    yield

    # Shutdown
    logger.info(
        f"Shutting down AdaChat relay with "
        f"{connection_manager.get_connection_count()} open connections"
    )


# Create FastAPI application
app = FastAPI(
    title="AdaChat Realtime Relay",
    description="""
## Presence, direct messages and call signaling

Clients open one WebSocket at `/ws?token=<jwt>` and exchange JSON events
tagged by `type`.

| Event | Direction | Payload |
|-------|-----------|---------|
| `send-message` | client → server | `recipientId, content?, mediaUrl?, clientCorrelationId` |
| `receive-message` | server → recipient | `id, senderId, recipientId, content, mediaUrl, createdAt` |
| `message-acknowledged` | server → sender | `clientCorrelationId, serverMessageId` |
| `call-offer` / `call-answer` / `call-ice` | both ways | `recipientId` / `senderId`, `sdp` or `candidate` |
| `presence-online` / `presence-offline` | server → all | `userId` |

Delivery is best effort: messages for offline users are dropped.
""",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "WebSocket",
            "description": "Realtime relay status",
        },
        {
            "name": "Health",
            "description": "API health and liveness checks",
        },
    ],
)


# =============================================================================
# Middleware
# =============================================================================

# CORS middleware - allows cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list if settings.is_production else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(Exception)
async def handle_general_exception(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "An unexpected error occurred",
            "code": "INTERNAL_ERROR",
        }
    )


# =============================================================================
# Routers
# =============================================================================

# Health check endpoints
app.include_router(
    health.router,
    prefix="/api/v1",
    tags=["Health"]
)

# WebSocket endpoints (Realtime relay)
app.include_router(
    websocket_routes.router,
    tags=["WebSocket"]
)


# =============================================================================
# Root Endpoints
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint - returns API info.
    """
    return {
        "name": "AdaChat Realtime Relay",
        "version": __version__,
        "docs": "/docs",
        "health": "/api/v1/health",
        "websocket": settings.WS_PATH,
    }


@app.get("/health", tags=["Health"])
async def health_ok():
    """Minimal check kept for load balancers configured with /health."""
    return {"ok": True}
