"""API router aggregator."""

from fastapi import APIRouter

from critical.api.routes import critical_css

api_router = APIRouter()
api_router.include_router(critical_css.router)
