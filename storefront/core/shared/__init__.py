"""
Shared utilities used across layers.
"""

from storefront.core.shared.logger import (
    ColoredFormatter,
    ContextLogger,
    JSONFormatter,
    configure_logging,
    get_logger,
    get_repository_logger,
)

__all__ = [
    "JSONFormatter",
    "ColoredFormatter",
    "ContextLogger",
    "configure_logging",
    "get_logger",
    "get_repository_logger",
]
