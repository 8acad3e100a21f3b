"""
Pipeline API
Lead intake, stage transitions, contact attempts and tasks
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from leadpipeline.domain.models.lead import Lead, LeadContactUpdate, LeadSource
from leadpipeline.domain.models.pipeline_stage import PipelineStage
from leadpipeline.domain.models.pipeline_card import LeadPipelineCard, LeadOutcome, ScheduledRecontact
from leadpipeline.domain.models.contact_attempt import ContactAttempt, ContactAttemptInput
from leadpipeline.domain.models.lead_task import LeadTask
from leadpipeline.domain.models.team import LeadDistribution
from leadpipeline.domain.services.pipeline_service import PipelineService
from leadpipeline.domain.exceptions import PipelineError
from leadpipeline.api.v1.dependencies import get_pipeline_service, to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pipeline", tags=["pipeline"])


class LeadCreate(BaseModel):
    """Request body for lead intake"""
    name: str = Field(..., min_length=1, max_length=200)
    phone: str = Field(..., min_length=7, max_length=30)
    email: Optional[str] = Field(None, max_length=255)
    company: Optional[str] = None
    job_title: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    product_interests: List[str] = Field(default_factory=list)
    source: LeadSource = LeadSource.OTHER
    source_details: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None


class TransitionRequest(BaseModel):
    """Request body for a stage move"""
    next_stage: PipelineStage
    agent_id: Optional[str] = None
    notes: Optional[str] = None
    outcome: Optional[LeadOutcome] = None
    recontact: Optional[ScheduledRecontact] = None


class RedistributeRequest(BaseModel):
    target_agent_id: Optional[str] = None
    requested_by: Optional[str] = None
    notes: Optional[str] = None


class TaskCompleteRequest(BaseModel):
    notes: Optional[str] = None


@router.post("/leads", response_model=LeadPipelineCard, status_code=201)
async def create_lead(
    body: LeadCreate,
    service: PipelineService = Depends(get_pipeline_service)
):
    """Create a lead and its pipeline card"""
    lead = Lead(**body.model_dump())
    try:
        return await service.create_lead(lead, created_by=body.created_by)
    except PipelineError as e:
        raise to_http_exception(e)


@router.get("/cards/{card_id}", response_model=LeadPipelineCard)
async def get_card(
    card_id: str,
    service: PipelineService = Depends(get_pipeline_service)
):
    try:
        return await service.get_card(card_id)
    except PipelineError as e:
        raise to_http_exception(e)


@router.get("/agents/{agent_id}/cards", response_model=List[LeadPipelineCard])
async def list_cards_by_agent(
    agent_id: str,
    include_closed: bool = Query(True),
    service: PipelineService = Depends(get_pipeline_service)
):
    try:
        return await service.list_cards_by_agent(agent_id, include_closed=include_closed)
    except PipelineError as e:
        raise to_http_exception(e)


@router.patch("/cards/{card_id}/lead", response_model=LeadPipelineCard)
async def update_lead_contact(
    card_id: str,
    body: LeadContactUpdate,
    service: PipelineService = Depends(get_pipeline_service)
):
    try:
        return await service.update_lead_contact(card_id, body)
    except PipelineError as e:
        raise to_http_exception(e)


@router.get("/cards/{card_id}/transitions", response_model=List[PipelineStage])
async def get_allowed_transitions(
    card_id: str,
    service: PipelineService = Depends(get_pipeline_service)
):
    """Stages the card can move to next"""
    try:
        return await service.get_allowed_transitions(card_id)
    except PipelineError as e:
        raise to_http_exception(e)


@router.post("/cards/{card_id}/transition", response_model=LeadPipelineCard)
async def transition_stage(
    card_id: str,
    body: TransitionRequest,
    service: PipelineService = Depends(get_pipeline_service)
):
    """Move a card to another stage"""
    try:
        return await service.transition_stage(
            card_id,
            body.next_stage,
            agent_id=body.agent_id,
            notes=body.notes,
            outcome=body.outcome,
            recontact=body.recontact,
        )
    except PipelineError as e:
        raise to_http_exception(e)


@router.post("/cards/{card_id}/attempts", response_model=ContactAttempt, status_code=201)
async def record_attempt(
    card_id: str,
    body: ContactAttemptInput,
    service: PipelineService = Depends(get_pipeline_service)
):
    """Log a contact attempt"""
    try:
        return await service.record_attempt(card_id, body)
    except PipelineError as e:
        raise to_http_exception(e)


@router.post("/cards/{card_id}/redistribute", response_model=LeadPipelineCard)
async def manual_redistribute(
    card_id: str,
    body: Optional[RedistributeRequest] = None,
    service: PipelineService = Depends(get_pipeline_service)
):
    """Hand a card to another agent"""
    body = body or RedistributeRequest()
    try:
        return await service.manual_redistribute(
            card_id,
            target_agent_id=body.target_agent_id,
            requested_by=body.requested_by,
            notes=body.notes,
        )
    except PipelineError as e:
        raise to_http_exception(e)


@router.get("/cards/{card_id}/distributions", response_model=List[LeadDistribution])
async def list_distributions(
    card_id: str,
    service: PipelineService = Depends(get_pipeline_service)
):
    try:
        return await service.list_distributions(card_id)
    except PipelineError as e:
        raise to_http_exception(e)


@router.post("/cards/{card_id}/tasks/{task_id}/complete", response_model=LeadTask)
async def complete_task(
    card_id: str,
    task_id: str,
    body: Optional[TaskCompleteRequest] = None,
    service: PipelineService = Depends(get_pipeline_service)
):
    try:
        return await service.complete_task(card_id, task_id, notes=body.notes if body else None)
    except PipelineError as e:
        raise to_http_exception(e)


@router.post("/sweep")
async def run_overdue_sweep(
    service: PipelineService = Depends(get_pipeline_service)
):
    """Run the backlog assignment and overdue sweep once (normally done by the worker)"""
    try:
        assigned = await service.assign_pending_leads()
        tasks = await service.run_overdue_sweep()
    except PipelineError as e:
        raise to_http_exception(e)
    return {
        "intake_assigned": len(assigned),
        "tasks": [task.model_dump(mode="json") for task in tasks],
    }
