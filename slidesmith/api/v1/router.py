"""API v1 router aggregating all endpoints."""

from fastapi import APIRouter

from slidesmith.api.v1 import templates, transformations

api_router = APIRouter()

api_router.include_router(transformations.router, prefix="/transformations", tags=["transformations"])
api_router.include_router(templates.router, prefix="/templates", tags=["templates"])
