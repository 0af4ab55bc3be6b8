# fpms/api/v1/endpoints/forms.py
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from fpms.core.security import Actor, get_current_actor
from fpms.db.session import get_db
from fpms.schemas.common import ApiResponse
from fpms.services import rubric_service

router = APIRouter(prefix="/forms", tags=["forms"])


@router.get("", response_model=ApiResponse[List[dict]])
def list_forms(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Forms applicable to the caller's role."""
    return ApiResponse(data=rubric_service.list_applicable_forms(db, role_label=actor.role))


@router.get("/{form_id}/criteria/{criteria_id}", response_model=ApiResponse[dict])
def get_criteria(
    form_id: str,
    criteria_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    tree = rubric_service.get_criteria_tree(
        db, form_id=form_id, criteria_id=criteria_id, role_label=actor.role
    )
    return ApiResponse(data=tree)
