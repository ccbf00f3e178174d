"""
FastAPI application factory
"""
import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.sessions import SessionMiddleware
from starlette.responses import Response

from flowmoney.api.errors import register_error_handlers
from flowmoney.api.v1 import (
    auth, users, joint_accounts, transactions, goals, subscriptions, chat, notifications, push, live,
)
from flowmoney.application.fanout import FanoutBroadcaster
from flowmoney.config import get_settings
from flowmoney.infrastructure.db.session import check_db_connection, open_session
from flowmoney.infrastructure.realtime.hub import LiveRoomHub

logger = logging.getLogger(__name__)


class ErrorLoggingMiddleware(BaseHTTPMiddleware):
    """Catches everything the routes did not handle, sync routes included."""

    async def dispatch(self, request, call_next):
        try:
            return await call_next(request)
        except Exception:
            tb_str = traceback.format_exc()
            logger.error(f"\n{'='*60}\nERROR on {request.method} {request.url.path}\n{tb_str}{'='*60}")
            return Response(content="Internal Server Error", status_code=500)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # let queued deliveries finish before the process exits
    app.state.broadcaster.shutdown(wait=True)


def create_app() -> FastAPI:
    """
    Application factory - создаёт и настраивает FastAPI приложение

    Returns:
        Настроенный FastAPI app
    """
    settings = get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL)

    app = FastAPI(
        title="FlowMoney",
        debug=settings.DEBUG,
        lifespan=lifespan,
    )

    # Live rooms + fan-out, shared by every request
    app.state.hub = LiveRoomHub()
    app.state.session_factory = open_session
    app.state.broadcaster = FanoutBroadcaster(app.state.hub, workers=settings.FANOUT_WORKERS)

    app.add_middleware(ErrorLoggingMiddleware)
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.SECRET_KEY
    )
    register_error_handlers(app)

    # Routers
    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(joint_accounts.router)
    app.include_router(transactions.router)
    app.include_router(goals.router)
    app.include_router(subscriptions.router)
    app.include_router(chat.router)
    app.include_router(notifications.router)
    app.include_router(push.router)
    app.include_router(live.router)

    # Health checks
    @app.get("/health", response_class=PlainTextResponse, tags=["system"])
    def health():
        """Health check endpoint"""
        return "ok"

    @app.get("/ready", response_class=PlainTextResponse, tags=["system"])
    def ready():
        """Readiness check endpoint (проверяет доступность БД)"""
        check_db_connection()
        return "ok"

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "flowmoney.main:app",
        host="127.0.0.1",
        port=8000,
        reload=get_settings().DEBUG,
    )
