"""V1 API router aggregation."""

from fastapi import APIRouter

from pointgate.api.v1.admin import router as admin_router
from pointgate.api.v1.auth import router as auth_router
from pointgate.api.v1.downloads import router as downloads_router
from pointgate.api.v1.points import router as points_router
from pointgate.api.v1.pricing import router as pricing_router
from pointgate.api.v1.sites import router as sites_router

v1_router = APIRouter(prefix="/v1")
v1_router.include_router(sites_router)
v1_router.include_router(auth_router)
v1_router.include_router(points_router)
v1_router.include_router(downloads_router)
v1_router.include_router(pricing_router)
v1_router.include_router(admin_router)
