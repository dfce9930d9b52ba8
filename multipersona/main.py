"""
multipersona - persona switching service

Main entry point for the FastAPI application.
"""

import logging

import structlog
import uvicorn

from multipersona.api import create_app
from multipersona.config import get_settings

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(message)s",
)

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

app = create_app()


def main() -> None:
    """Run the API server."""
    uvicorn.run(
        "multipersona.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
