"""
Application entry point.

All configuration, middleware and lifecycle management is delegated to
specialized modules.
"""

import logging

from storefront.config.settings import get_settings
from storefront.core.app_factory import create_app
from storefront.core.shared import configure_logging

settings = get_settings()
configure_logging(level=settings.LOG_LEVEL, format_type=settings.LOG_FORMAT)

logger = logging.getLogger(__name__)

app = create_app()

if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting application in {settings.ENVIRONMENT} mode")
    uvicorn.run(
        "storefront.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
