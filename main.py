from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request

from routes.message_route import router as message_router
from routes.realtime_ws import router as realtime_router
from services.realtime.room_registry import ChatRoomRegistry
from utils.database_init import AsyncDatabaseInitializer

load_dotenv()  # Load environment variables from .env file if present


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - the SQLite database (always new on startup, at DATABASE_DIR/app.db)
      - the in-memory registry of chat sockets
    and attach them to `app.state`.
    """
    db_initializer = AsyncDatabaseInitializer()

    # This will delete any existing DB at db_path and create a fresh one.
    await db_initializer.ensure_database()
    app.state.db_initializer = db_initializer
    app.state.room_registry = ChatRoomRegistry()

    yield


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application instance.
    """
    app = FastAPI(lifespan=lifespan)

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check that verifies DB initializer and room registry presence.
        """
        has_db = hasattr(request.app.state, "db_initializer")
        has_registry = getattr(request.app.state, "room_registry", None) is not None
        return {"ok": True, "db_initialized": has_db, "chat_available": has_registry}

    app.include_router(message_router)
    app.include_router(realtime_router)

    return app


app = create_app()
