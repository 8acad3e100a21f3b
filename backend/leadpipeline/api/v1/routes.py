"""
API Router
Combines all endpoint routers
"""
from fastapi import APIRouter
from leadpipeline.api.v1.endpoints import (
    pipeline,
    analytics,
    team,
)

api_router = APIRouter()

api_router.include_router(pipeline.router)
api_router.include_router(analytics.router)
api_router.include_router(team.router)
