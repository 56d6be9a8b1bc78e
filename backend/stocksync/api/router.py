"""API router that aggregates all routes."""

from fastapi import APIRouter

from stocksync.api.routes import admin, health, imports, link_issues, sync

api_router = APIRouter(prefix="/api")

# Include route modules
api_router.include_router(health.router)

# V1 API routes
v1_router = APIRouter(prefix="/v1")
v1_router.include_router(imports.router)
v1_router.include_router(link_issues.router)
v1_router.include_router(sync.router)
v1_router.include_router(admin.router)

api_router.include_router(v1_router)
