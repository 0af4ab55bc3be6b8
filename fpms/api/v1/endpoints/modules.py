# fpms/api/v1/endpoints/modules.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from fpms.core.errors import Forbidden
from fpms.core.security import Actor, get_current_actor, require_roles
from fpms.db.session import get_db
from fpms.schemas.common import ApiResponse
from fpms.schemas.legacy import (
    CriterionPublic,
    CriterionVerify,
    ModuleAppealAdjudicate,
    ModuleAppealCreate,
    ModuleAppealPublic,
    SubsectionPublic,
    SubsectionSave,
)
from fpms.services import legacy_appeal_service

router = APIRouter(tags=["modules"])

# roles that may read other people's module records
_VIEWER_KEYS = {"hod", "principle", "viceprinciple", "committee", "superadmin"}


@router.put(
    "/modules/{module}/subsections/{subsection_id}",
    response_model=ApiResponse[List[CriterionPublic]],
)
def save_subsection(
    module: str,
    subsection_id: str,
    obj_in: SubsectionSave,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    rows = legacy_appeal_service.save_subsection(
        db,
        module=module,
        owner=actor,
        subsection_id=subsection_id,
        criteria=[c.model_dump(by_alias=True) for c in obj_in.criteria],
        subsection_name=obj_in.subsection_name,
    )
    return ApiResponse(
        message="Subsection saved successfully",
        data=[CriterionPublic.model_validate(r) for r in rows],
    )


@router.get("/modules/{module}/subsections", response_model=ApiResponse[List[SubsectionPublic]])
def list_subsections(
    module: str,
    owner_id: Optional[str] = Query(None, alias="ownerId"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    owner_id = owner_id or actor.id
    if owner_id != actor.id and actor.role_key not in _VIEWER_KEYS:
        raise Forbidden("Access denied")

    subsections = legacy_appeal_service.list_subsections(db, module=module, owner_id=owner_id)
    return ApiResponse(data=[SubsectionPublic.model_validate(s) for s in subsections])


@router.post(
    "/modules/{module}/owners/{owner_id}/subsections/{subsection_id}/criteria/{name}/verify",
    response_model=ApiResponse[CriterionPublic],
)
def verify_criterion(
    module: str,
    owner_id: str,
    subsection_id: str,
    name: str,
    obj_in: CriterionVerify,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    row = legacy_appeal_service.verify_criterion(
        db,
        module=module,
        reviewer=actor,
        owner_id=owner_id,
        subsection_id=subsection_id,
        name=name,
        reviewer_score=obj_in.reviewer_score,
        description=obj_in.description,
    )
    return ApiResponse(message="Verified successfully", data=CriterionPublic.model_validate(row))


@router.post(
    "/modules/{module}/appeals",
    response_model=ApiResponse[ModuleAppealPublic],
    status_code=status.HTTP_201_CREATED,
)
def raise_appeal(
    module: str,
    obj_in: ModuleAppealCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    appeal = legacy_appeal_service.raise_appeal(
        db,
        module=module,
        owner=actor,
        owner_id=actor.id,
        subsection_id=obj_in.subsection_id,
        name=obj_in.criterion_name,
        reason=obj_in.reason,
        requested_score=obj_in.requested_score,
        evidence=obj_in.evidence,
    )
    return ApiResponse(message="Appeal submitted", data=ModuleAppealPublic.model_validate(appeal))


@router.get("/appeals", response_model=ApiResponse[List[ModuleAppealPublic]])
def list_appeals(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Committee sees every appeal, everyone else only their own."""
    owner_id = None if actor.role_key in ("committee", "superadmin") else actor.id
    appeals = legacy_appeal_service.list_appeals(db, owner_id=owner_id)
    return ApiResponse(data=[ModuleAppealPublic.model_validate(a) for a in appeals])


@router.post("/appeals/{appeal_id}/adjudicate", response_model=ApiResponse[ModuleAppealPublic])
def adjudicate_appeal(
    appeal_id: int,
    obj_in: ModuleAppealAdjudicate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles("committee")),
):
    appeal = legacy_appeal_service.adjudicate_appeal(
        db,
        appeal_id=appeal_id,
        committee_score=obj_in.committee_score,
        remarks=obj_in.remarks,
    )
    return ApiResponse(message="Appeal verified", data=ModuleAppealPublic.model_validate(appeal))
