"""
FastAPI application for keygate.
Serves the uptime ping, health, the programmatic key endpoint and metrics.
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from keygate.api.routes import health, key
from keygate.core.context import AppContext
from keygate.utils.metrics import router as metrics_router


def create_app(context: AppContext) -> FastAPI:
    app = FastAPI(
        title="keygate",
        description="Rotating shared key bot: HTTP surface",
        version="1.0.0",
    )
    app.state.context = context

    # The key endpoint is called from browser extensions and userscripts
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(health.router, tags=["health"])
    app.include_router(key.router)
    app.include_router(metrics_router)
    return app
