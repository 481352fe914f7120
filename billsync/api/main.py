"""FastAPI application for billsync."""

import logging

from fastapi import FastAPI

from billsync import __version__
from billsync.api.routes import health, sheets

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Create the FastAPI application."""
    app = FastAPI(
        title="billsync",
        description="Aggregate Cloud Billing export costs into Google Sheets",
        version=__version__,
    )
    app.include_router(health.router)
    app.include_router(sheets.router)
    return app


app = create_app()


def start_api_server(host: str = "0.0.0.0", port: int = 8080, log_level: str = "info") -> None:
    """Start the API server with uvicorn."""
    import uvicorn

    logger.info(f"Starting billsync API on {host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level=log_level)
