# fpms/api/v1/endpoints/users.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from fpms.core.security import Actor, get_current_actor
from fpms.db.session import get_db
from fpms.models.user import User
from fpms.schemas.common import ApiResponse
from fpms.schemas.user import ActorPublic

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=ApiResponse[ActorPublic])
def read_me(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    profile = db.get(User, actor.id)
    return ApiResponse(
        data=ActorPublic(
            id=actor.id,
            email=actor.email,
            name=actor.name,
            role=actor.role,
            role_key=actor.role_key,
            role_source=actor.role_source,
            college=actor.college,
            department=actor.department,
            designation=profile.designation if profile else None,
            total_score=profile.total_score if profile else 0.0,
        )
    )
