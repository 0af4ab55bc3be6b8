# fpms/api/v1/endpoints/rules.py
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from fpms.core.security import Actor, get_current_actor, require_roles
from fpms.db.session import get_db
from fpms.schemas.common import ApiResponse
from fpms.models.workflow_config import WorkflowRole
from fpms.schemas.rules import (
    RoleCreate,
    RolePublic,
    WorkflowRulePublic,
    WorkflowRulesPublic,
    WorkflowRulesUpdate,
)
from fpms.services import routing

router = APIRouter(prefix="/workflow", tags=["workflow-config"])


def _public(config: routing.WorkflowConfig) -> WorkflowRulesPublic:
    return WorkflowRulesPublic(
        roles=config.roles,
        rules=[WorkflowRulePublic.model_validate(r.as_dict()) for r in config.rules],
    )


@router.get("/rules", response_model=ApiResponse[WorkflowRulesPublic])
def get_rules(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return ApiResponse(data=_public(routing.list_rules(db)))


@router.put("/rules", response_model=ApiResponse[WorkflowRulesPublic])
def update_rules(
    obj_in: WorkflowRulesUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles("committee", "superadmin")),
):
    """Replace the whole routing table."""
    routing.replace_rules(db, [r.model_dump(by_alias=True) for r in obj_in.rules])
    return ApiResponse(message="Workflow rules updated", data=_public(routing.list_rules(db)))


@router.get("/roles", response_model=ApiResponse[List[RolePublic]])
def get_roles(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    roles = db.execute(
        select(WorkflowRole).order_by(WorkflowRole.level.asc(), WorkflowRole.id.asc())
    ).scalars().all()
    return ApiResponse(data=[RolePublic.model_validate(r) for r in roles])


@router.post("/roles", response_model=ApiResponse[RolePublic], status_code=status.HTTP_201_CREATED)
def create_role(
    obj_in: RoleCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles("superadmin")),
):
    role = routing.add_role(db, name=obj_in.name, level=obj_in.level)
    return ApiResponse(message="Role added", data=RolePublic.model_validate(role))


@router.delete("/roles/{name}", response_model=ApiResponse[None])
def delete_role(
    name: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles("superadmin")),
):
    routing.remove_role(db, name=name)
    return ApiResponse(message="Role deleted")
