"""FastAPI application bootstrap for Inspira."""
from contextlib import asynccontextmanager
from functools import partial
from typing import Optional

from fastapi import FastAPI

from .config import Settings, get_settings
from .infra.db import build_engine, get_session, init_db
from .infra.documents import DocumentStore
from .infra.identity import LocalIdentityProvider
from .infra.logging import configure_logging
from .routers import flow
from .services.enrollment import EnrollmentStore
from .services.registry import FlowRegistry
from .services.report import ReportGenerator, resolve_timezone


def build_registry(settings: Settings, engine) -> FlowRegistry:
    documents = DocumentStore(partial(get_session, engine))
    store = EnrollmentStore(documents, app_id=settings.app_id)
    reports = ReportGenerator(store, tz=resolve_timezone(settings.report_timezone))
    return FlowRegistry(
        provider_factory=lambda: LocalIdentityProvider(
            providers=settings.federated_providers,
            restricted=settings.auth_restricted,
        ),
        store=store,
        reports=reports,
        bootstrap_credential=settings.initial_auth_token,
        max_flows=settings.max_flows,
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings)
        engine = build_engine(settings.database_url)
        init_db(engine)
        app.state.flows = build_registry(settings, engine)
        yield
        app.state.flows.close_all()
        engine.dispose()

    app = FastAPI(title="Inspira API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.include_router(flow.router, prefix="/flow", tags=["flow"])

    return app


app = create_app()
