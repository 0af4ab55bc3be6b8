# fpms/api/v1/endpoints/workflow.py
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status
from sqlalchemy.orm import Session

from fpms.core.security import Actor, get_current_actor
from fpms.db.session import get_db
from fpms.schemas.common import ApiResponse
from fpms.schemas.workflow import (
    AppealRequest,
    EvidencePublic,
    ReviewRequest,
    SubmissionPublic,
    TaskAppealRequest,
    TaskStatusPublic,
    TaskSubmitRequest,
    UserTotalPublic,
)
from fpms.services import evidence_store, score_ledger, workflow_engine

router = APIRouter(prefix="/workflow", tags=["workflow"])


def _status_public(item: workflow_engine.TaskStatus) -> TaskStatusPublic:
    s = item.submission
    return TaskStatusPublic(
        id=s.id,
        task_id=s.task_id,
        module_id=s.module_id,
        current_flow=s.current_flow,
        status=item.status,
        can_appeal=item.can_appeal,
        claimed_score=s.claimed_score,
        verified_score=s.verified_score,
        evidence_url=s.evidence_url,
        description=s.description,
        active_role_keys=s.active_role_keys or [],
        submit_to_roles=s.submit_to_roles or [],
        appeal_to_roles=s.appeal_to_roles or [],
        accepted=s.is_accepted,
    )


@router.post("/submissions/task", response_model=ApiResponse[SubmissionPublic])
def submit_task(
    obj_in: TaskSubmitRequest,
    response: Response,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """
    Submit a claim for one rubric task. Re-submitting the same task returns
    the stored submission unchanged.
    """
    submission, created = workflow_engine.submit_task(
        db,
        actor=actor,
        form_id=obj_in.form_id,
        criteria_id=obj_in.criteria_id,
        task_id=obj_in.task_id,
        claimed_score=obj_in.claimed_score,
        max_marks=obj_in.max_marks,
        evidence_url=obj_in.evidence_url,
        description=obj_in.description,
        module_id=obj_in.module_id,
        module_name=obj_in.module_name,
        task_title=obj_in.task_title,
    )
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return ApiResponse(
        message="Task submitted" if created else "Task already submitted",
        data=SubmissionPublic.model_validate(submission),
    )


@router.get("/submissions/review-queue", response_model=ApiResponse[List[SubmissionPublic]])
def get_review_queue(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    subs = workflow_engine.review_queue(db, actor=actor)
    return ApiResponse(data=[SubmissionPublic.model_validate(s) for s in subs])


@router.get("/submissions/my-statuses", response_model=ApiResponse[List[TaskStatusPublic]])
def get_my_statuses(
    form_id: Optional[str] = Query(None, alias="formId"),
    criteria_id: Optional[str] = Query(None, alias="criteriaId"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    items = workflow_engine.my_task_statuses(
        db, actor=actor, form_id=form_id, criteria_id=criteria_id
    )
    return ApiResponse(data=[_status_public(i) for i in items])


@router.get("/submissions/my-reviewed", response_model=ApiResponse[List[SubmissionPublic]])
def get_my_reviewed(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    subs = workflow_engine.reviewed_by(db, actor=actor)
    return ApiResponse(data=[SubmissionPublic.model_validate(s) for s in subs])


@router.get("/submissions/user-total", response_model=ApiResponse[UserTotalPublic])
def get_user_total(
    form_id: Optional[str] = Query(None, alias="formId"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    total = score_ledger.user_total(db, actor=actor, form_id=form_id)
    return ApiResponse(data=UserTotalPublic.model_validate(total))


# must be registered before the /{submission_id}/appeal route
@router.post("/submissions/task/appeal", response_model=ApiResponse[SubmissionPublic])
def appeal_task(
    obj_in: TaskAppealRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    submission = workflow_engine.appeal_task(
        db,
        actor=actor,
        form_id=obj_in.form_id,
        criteria_id=obj_in.criteria_id,
        task_id=obj_in.task_id,
        reason=obj_in.reason,
        requested_score=obj_in.requested_score,
    )
    return ApiResponse(message="Appeal submitted", data=SubmissionPublic.model_validate(submission))


@router.post("/submissions/{submission_id}/review", response_model=ApiResponse[SubmissionPublic])
def review_submission(
    submission_id: str,
    obj_in: ReviewRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    submission = workflow_engine.review_submission(
        db,
        submission_id=submission_id,
        actor=actor,
        verified_score=obj_in.verified_score,
        remarks=obj_in.remarks,
    )
    return ApiResponse(message="Review recorded", data=SubmissionPublic.model_validate(submission))


@router.post("/submissions/{submission_id}/appeal", response_model=ApiResponse[SubmissionPublic])
def appeal_submission(
    submission_id: str,
    obj_in: AppealRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    submission = workflow_engine.appeal_submission(
        db,
        submission_id=submission_id,
        actor=actor,
        reason=obj_in.reason,
        requested_score=obj_in.requested_score,
    )
    return ApiResponse(message="Appeal submitted", data=SubmissionPublic.model_validate(submission))


@router.post("/submissions/{submission_id}/accept", response_model=ApiResponse[SubmissionPublic])
def accept_review(
    submission_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    submission = score_ledger.accept_review(db, submission_id=submission_id, actor=actor)
    return ApiResponse(message="Review accepted", data=SubmissionPublic.model_validate(submission))


@router.post(
    "/evidence",
    response_model=ApiResponse[EvidencePublic],
    status_code=status.HTTP_201_CREATED,
)
async def upload_evidence(
    file: UploadFile = File(...),
    actor: Actor = Depends(get_current_actor),
    store=Depends(evidence_store.get_evidence_store),
):
    content = await file.read()
    url = evidence_store.store_evidence(
        store,
        filename=file.filename or "",
        content=content,
        content_type=file.content_type,
    )
    return ApiResponse(message="File uploaded", data=EvidencePublic(url=url))
