"""
Commercial Team API
Roster and capacity administration
"""
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from leadpipeline.domain.models.team import CommercialTeamMember, TeamCapacity
from leadpipeline.domain.services.pipeline_service import PipelineService
from leadpipeline.domain.exceptions import PipelineError
from leadpipeline.api.v1.dependencies import get_pipeline_service, to_http_exception

router = APIRouter(prefix="/team", tags=["team"])


class CapacityUpdate(BaseModel):
    capacity: int = Field(..., ge=0, le=500)


class ActiveUpdate(BaseModel):
    active: bool


@router.get("/", response_model=List[CommercialTeamMember])
async def list_members(
    service: PipelineService = Depends(get_pipeline_service)
):
    try:
        return await service.get_roster()
    except PipelineError as e:
        raise to_http_exception(e)


@router.post("/members", response_model=CommercialTeamMember, status_code=201)
async def add_member(
    member: CommercialTeamMember,
    service: PipelineService = Depends(get_pipeline_service)
):
    try:
        return await service.add_team_member(member)
    except PipelineError as e:
        raise to_http_exception(e)


@router.get("/capacity", response_model=TeamCapacity)
async def get_team_capacity(
    service: PipelineService = Depends(get_pipeline_service)
):
    try:
        return await service.get_team_capacity()
    except PipelineError as e:
        raise to_http_exception(e)


@router.patch("/members/{agent_id}/capacity", response_model=CommercialTeamMember)
async def set_capacity(
    agent_id: str,
    body: CapacityUpdate,
    service: PipelineService = Depends(get_pipeline_service)
):
    try:
        return await service.set_agent_capacity(agent_id, body.capacity)
    except PipelineError as e:
        raise to_http_exception(e)


@router.patch("/members/{agent_id}/active", response_model=CommercialTeamMember)
async def set_active(
    agent_id: str,
    body: ActiveUpdate,
    service: PipelineService = Depends(get_pipeline_service)
):
    try:
        return await service.set_agent_active(agent_id, body.active)
    except PipelineError as e:
        raise to_http_exception(e)
