from fastapi import APIRouter

from storefront.domains.commerce.api import admin_router as commerce_admin_router
from storefront.domains.commerce.api import router as commerce_router

api_router = APIRouter()

# API routes (all have /api/v1 prefix from the app factory)
api_router.include_router(commerce_router)
api_router.include_router(commerce_admin_router)
