from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from caseflow.api import health
from caseflow.api.ai.routes import router as ai_router
from caseflow.api.auth.routes import router as auth_router
from caseflow.api.cases.routes import router as cases_router
from caseflow.api.dashboard.routes import router as dashboard_router
from caseflow.api.documents.routes import router as documents_router
from caseflow.api.errors import register_error_handlers
from caseflow.api.events.routes import router as events_router
from caseflow.api.users.routes import router as users_router
from caseflow.api.workflows.routes import router as workflows_router
from caseflow.core.config import settings
from caseflow.core.database import Database
from caseflow.core.logging import setup_logging
from caseflow.core.middleware import RequestIdMiddleware, TenantMiddleware


def create_app(database_url: str | None = None) -> FastAPI:
    app = FastAPI(title=settings.PROJECT_NAME, version=settings.VERSION)
    app.state.db = Database(database_url or settings.DATABASE_URL, echo=settings.DATABASE_ECHO)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
        allow_headers=["Authorization", "Content-Type", "X-Request-Id"],
        expose_headers=["X-Request-Id", "X-Response-Time"],
    )
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(TenantMiddleware)

    register_error_handlers(app)

    app.include_router(health.root_router)
    app.include_router(health.router, prefix=settings.API_PREFIX)
    app.include_router(auth_router, prefix=settings.API_PREFIX)
    app.include_router(cases_router, prefix=settings.API_PREFIX)
    app.include_router(workflows_router, prefix=settings.API_PREFIX)
    app.include_router(users_router, prefix=settings.API_PREFIX)
    app.include_router(documents_router, prefix=settings.API_PREFIX)
    app.include_router(ai_router, prefix=settings.API_PREFIX)
    app.include_router(dashboard_router, prefix=settings.API_PREFIX)
    app.include_router(events_router, prefix=settings.API_PREFIX)

    @app.on_event("startup")
    async def startup_event():
        setup_logging()
        await app.state.db.create_all()
        if settings.SEED_DEMO_DATA:
            from caseflow.scripts.seed_demo import seed_demo
            await seed_demo(app.state.db)

    @app.on_event("shutdown")
    async def shutdown_event():
        await app.state.db.dispose()

    return app


app = create_app()
