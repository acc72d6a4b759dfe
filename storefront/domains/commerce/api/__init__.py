"""
Commerce HTTP API.
"""

from storefront.domains.commerce.api.routes import admin_router, router

__all__ = ["router", "admin_router"]
