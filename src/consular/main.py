from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.consular.api.v1.routes_appointments import router as appointments_router_v1
from src.consular.api.v1.routes_assistant import router as assistant_router_v1
from src.consular.api.v1.routes_auth import router as auth_router_v1
from src.consular.api.v1.routes_dashboard import router as pages_router
from src.consular.api.v1.routes_documents import router as documents_router_v1
from src.consular.api.v1.routes_notifications import router as notifications_router_v1
from src.consular.api.v1.routes_organizations import router as organizations_router_v1
from src.consular.api.v1.routes_profiles import router as profiles_router_v1
from src.consular.api.v1.routes_requests import router as requests_router_v1
from src.consular.api.v1.routes_services import router as services_router_v1
from src.consular.api.v1.routes_system import router as system_router_v1
from src.consular.api.v1.routes_users import router as users_router_v1
from src.consular.config import settings
from src.consular.errors import register_error_handlers
from src.consular.infra.db.bootstrap import init_sql_repositories
from src.consular.logging_config import setup_logging

app = FastAPI(title="Consular Services API")
register_error_handlers(app)


@app.on_event("startup")
async def on_startup() -> None:
    """Application startup hook.

    Configures logging, then, when USE_SQL_REPOS is enabled and a
    DATABASE_URL is configured, swaps the in-memory repositories for the
    SQL-backed ones. Without a database (tests, local dev) the in-memory
    repositories stay active.
    """

    setup_logging()
    init_sql_repositories()


# Permissive by default for development. Tighten via CORS_ALLOW_ORIGINS in
# production deployments.
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
app.include_router(auth_router_v1, prefix="/api/v1")
app.include_router(users_router_v1, prefix="/api/v1")
app.include_router(profiles_router_v1, prefix="/api/v1")
app.include_router(organizations_router_v1, prefix="/api/v1")
app.include_router(services_router_v1, prefix="/api/v1")
app.include_router(requests_router_v1, prefix="/api/v1")
app.include_router(documents_router_v1, prefix="/api/v1")
app.include_router(notifications_router_v1, prefix="/api/v1")
app.include_router(appointments_router_v1, prefix="/api/v1")
app.include_router(assistant_router_v1, prefix="/api/v1")

# Guarded page entry points (/dashboard, /my-space)
app.include_router(pages_router)
