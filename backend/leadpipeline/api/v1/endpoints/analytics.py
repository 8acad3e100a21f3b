"""
Pipeline Analytics API
Contact analytics, team comparisons and pipeline statistics
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from leadpipeline.domain.models.analytics import (
    ContactAnalytics,
    PipelineStats,
    TeamContactAnalytics,
)
from leadpipeline.domain.models.lead_task import TaskStats
from leadpipeline.domain.services.pipeline_service import PipelineService
from leadpipeline.domain.exceptions import PipelineError
from leadpipeline.api.v1.dependencies import get_pipeline_service, to_http_exception

router = APIRouter(prefix="/pipeline-analytics", tags=["pipeline-analytics"])


@router.get("/team", response_model=TeamContactAnalytics)
async def get_team_analytics(
    as_of: Optional[datetime] = Query(None, description="End of the daily trend window"),
    service: PipelineService = Depends(get_pipeline_service)
):
    try:
        return await service.get_team_analytics(as_of)
    except PipelineError as e:
        raise to_http_exception(e)


@router.get("/stats", response_model=PipelineStats)
async def get_pipeline_stats(
    service: PipelineService = Depends(get_pipeline_service)
):
    try:
        return await service.get_pipeline_stats()
    except PipelineError as e:
        raise to_http_exception(e)


@router.get("/tasks", response_model=TaskStats)
async def get_task_stats(
    service: PipelineService = Depends(get_pipeline_service)
):
    try:
        return await service.get_task_stats()
    except PipelineError as e:
        raise to_http_exception(e)


@router.get("/{card_or_agent_id}", response_model=ContactAnalytics)
async def get_analytics(
    card_or_agent_id: str,
    as_of: Optional[datetime] = Query(None, description="End of the daily trend window"),
    service: PipelineService = Depends(get_pipeline_service)
):
    """Analytics for a single card or for every card an agent owns"""
    try:
        return await service.get_analytics(card_or_agent_id, as_of)
    except PipelineError as e:
        raise to_http_exception(e)
