from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.notetaker.api.v1.routes_sessions import router as sessions_router_v1
from src.notetaker.api.v1.routes_system import router as system_router_v1
from src.notetaker.api.v1.routes_webhooks import router as webhooks_router_v1
from src.notetaker.config import settings
from src.notetaker.dependencies import close_dependencies, get_session_repository
from src.notetaker.logging_config import configure_logging

configure_logging()

app = FastAPI(title="Meeting Notetaker API")


@app.on_event("startup")
async def on_startup() -> None:
    """Build the session store eagerly so misconfiguration shows up at boot.

    With USE_SQL_REPOS and DATABASE_URL set this creates the SQL tables;
    otherwise the in-memory store is used.
    """

    get_session_repository()


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await close_dependencies()


# The session dashboard is served from another origin; CORS_ALLOW_ORIGINS
# narrows the default "*".
allow_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()] or ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["system"])
async def health_check() -> dict:
    """Basic liveness probe for the API root."""
    return {"status": "ok"}


# Versioned API routers
app.include_router(system_router_v1, prefix="/api/v1")
app.include_router(sessions_router_v1, prefix="/api/v1")
app.include_router(webhooks_router_v1, prefix="/api/v1")
