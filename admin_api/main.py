"""
FastAPI application for the integration admin API.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from admin_api.router import router
from integration.manager import IntegrationManager


logger = logging.getLogger(__name__)


def create_app(manager: IntegrationManager) -> FastAPI:
    """
    Build the API around an already wired manager.

    The manager's sync workers are stopped on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        logger.info("Shutting down integration manager")
        await manager.close()

    app = FastAPI(
        title="Community Portal Integration API",
        description="Service health, integrations, sync jobs and maintenance for portal admins.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.integration_manager = manager

    # CORS (Allow local frontend development)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Restrict in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    @app.get("/")
    def root():
        return {"status": "ok", "message": "Integration API is running"}

    return app
