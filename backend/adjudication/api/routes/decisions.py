"""
API routes for the offense catalog and decision submission
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from adjudication.api.dependencies import (get_offense_catalog,
                                           get_reconciler,
                                           get_session_config, get_store)
from adjudication.core.config import SessionConfig
from adjudication.core.errors import BackendError, ValidationError
from adjudication.core.logging_config import LoggingConfig
from adjudication.models.decision import DecisionLevel
from adjudication.services.decision_reconciler import DecisionReconciler
from adjudication.services.decision_store import DecisionStoreGateway
from adjudication.services.offense_catalog import OffenseCatalog

router = APIRouter(prefix="/api", tags=["decisions"])
logger = LoggingConfig.get_logger(__name__)


class OffenseResponse(BaseModel):
    """Response model for a catalog entry"""
    uccs_code: int
    uccs_desc: str
    label: str


class DecisionResponse(BaseModel):
    """Response model for a stored decision"""
    id: str
    matrix_id: str
    collaborator_email: str
    uccs_code: int
    decision_level: DecisionLevel
    look_back_period: Optional[int]
    updated_at: Optional[str]


class SubmitDecisionRequest(BaseModel):
    """Request model for a form submission"""
    uccs_code: Optional[int] = Field(None, description="Selected offense code (null when none selected)")
    decision_level: DecisionLevel = Field(DecisionLevel.GREEN, description="Green, Yellow or Red")
    look_back_period: Optional[int] = Field(3, ge=0, description="Look-back period in years")


class SubmitDecisionResponse(BaseModel):
    """Response model for a successful submission"""
    outcome: str
    message: str


class SessionResponse(BaseModel):
    matrix_id: str
    collaborator_email: str


@router.get("/session", response_model=SessionResponse)
async def get_session(session: SessionConfig = Depends(get_session_config)):
    """Identity this backend submits decisions under"""
    return SessionResponse(matrix_id=session.matrix_id, collaborator_email=session.collaborator_email)


@router.get("/offenses", response_model=List[OffenseResponse])
async def list_offenses(catalog: OffenseCatalog = Depends(get_offense_catalog)):
    """List the offense catalog ordered by code"""
    try:
        offenses = await catalog.list_offenses()
    except BackendError as e:
        raise HTTPException(status_code=502, detail=e.user_message)
    return [
        OffenseResponse(uccs_code=o.uccs_code, uccs_desc=o.uccs_desc, label=o.label)
        for o in offenses
    ]


@router.get("/decisions", response_model=List[DecisionResponse])
async def list_decisions(
    store: DecisionStoreGateway = Depends(get_store),
    session: SessionConfig = Depends(get_session_config),
):
    """Snapshot of every decision in the session's matrix"""
    try:
        records = await store.list_decisions(session.matrix_id)
    except BackendError as e:
        raise HTTPException(status_code=502, detail=e.user_message)
    return [DecisionResponse(**record.to_dict()) for record in records]


@router.post("/decisions", response_model=SubmitDecisionResponse)
async def submit_decision(
    request: SubmitDecisionRequest,
    reconciler: DecisionReconciler = Depends(get_reconciler),
):
    """Create or update the session collaborator's decision for an offense"""
    try:
        outcome = await reconciler.submit_for(
            request.uccs_code,
            request.decision_level,
            request.look_back_period,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.user_message)
    except BackendError as e:
        raise HTTPException(status_code=502, detail=e.user_message)
    return SubmitDecisionResponse(outcome=outcome.value, message=outcome.message)
