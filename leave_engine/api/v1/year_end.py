"""
Year-end settlement endpoint (HR Director)
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from leave_engine.core.deps import get_db, require_roles
from leave_engine.models.employee import Employee
from leave_engine.schemas.year_end import LapseOut, LapseRequest, YearEndOut, YearEndRequest
from leave_engine.services.year_end_service import lapse_expired_carry_forward, run_year_end_settlement
from leave_engine.utils.roles import ApproverRole

router = APIRouter()


@router.post("/run", response_model=YearEndOut)
def run_year_end_endpoint(
    payload: YearEndRequest,
    db: Session = Depends(get_db),
    current_actor: Employee = Depends(require_roles(ApproverRole.HR_DIRECTOR)),
):
    """
    Close a leave year

    Every balance in the period carries forward up to the policy cap and the
    excess is forfeited. A period can be settled once.
    """
    return run_year_end_settlement(db, payload.period, actor_id=current_actor.id)


@router.post("/lapse", response_model=LapseOut)
def lapse_carry_forward_endpoint(
    payload: LapseRequest,
    db: Session = Depends(get_db),
    current_actor: Employee = Depends(require_roles(ApproverRole.HR_DIRECTOR)),
):
    """Forfeit carried-forward days whose expiry date has passed"""
    return lapse_expired_carry_forward(db, as_of=payload.as_of, actor_id=current_actor.id)
