"""
Generic multi-stage review workflow.

A submission is routed to the roles configured for the submitter's role.
The first assigned reviewer to act finalizes the step (the others are
skipped) and the routing table decides the next step from the reviewer's
role. A reviewer whose role routes nowhere approves the submission. An owner
may appeal an approved submission once; the appeal runs through the same
review loop using the appeal routes.

Review and appeal go through ``SubmissionRepository.mutate`` so concurrent
writers are serialized by the version check.
"""
import logging
import math
from datetime import datetime, timezone
from typing import List, NamedTuple, Optional

from sqlalchemy.orm import Session

from fpms.core.config import settings
from fpms.core.errors import (
    AlreadyReviewed,
    Forbidden,
    NoAppealRouteConfigured,
    NoRouteConfigured,
    RoleNotAssigned,
    ValidationError,
)
from fpms.core.roles import normalize_role_key, unique_role_labels
from fpms.core.security import Actor
from fpms.models.submission import Submission, SubmissionAssignment, SubmissionReview
from fpms.services import rubric_service
from fpms.services.routing import FLOW_APPEAL, FLOW_SUBMISSION, RoutingTable, load_routing_table
from fpms.services.submission_repository import SubmissionRepository, build_submission_id

logger = logging.getLogger(__name__)

COMPLETION_POLICY = "ANY_ONE_REVIEWED"


class TaskStatus(NamedTuple):
    submission: Submission
    status: str
    can_appeal: bool


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def finite_float(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def clamp_score(value, max_marks) -> float:
    """Clamp to ``[0, max_marks]``; missing or non-finite values become 0."""
    number = finite_float(value)
    upper = max(finite_float(max_marks) or 0.0, 0.0)
    if number is None:
        return 0.0
    return min(max(number, 0.0), upper)


def _require(value, field_name: str) -> str:
    text = str(value or "").strip()
    if not text:
        raise ValidationError(f"{field_name} is required")
    return text


def _role_keys(labels) -> list[str]:
    keys = []
    for label in labels:
        key = normalize_role_key(label)
        if key and key not in keys:
            keys.append(key)
    return keys


def _new_assignment(role: str, position: int, now: datetime) -> SubmissionAssignment:
    return SubmissionAssignment(
        role=role,
        role_key=normalize_role_key(role),
        position=position,
        status="submitted",
        assigned_at=now,
        remarks="",
    )


def _reopen_assignment(assignment: SubmissionAssignment, now: datetime) -> None:
    assignment.status = "submitted"
    assignment.assigned_at = now
    assignment.reviewed_at = None
    assignment.reviewer_user_id = None
    assignment.verified_score = None
    assignment.remarks = ""


def is_owner(submission: Submission, actor: Actor) -> bool:
    owner_ids = {
        str(v).strip().lower()
        for v in (submission.faculty_id, submission.faculty_uid, submission.faculty_email)
        if str(v or "").strip()
    }
    return bool(owner_ids & actor.identifiers)


# ---- transitions -----------------------------------------------------------


def apply_review(
    submission: Submission,
    *,
    actor: Actor,
    routing: RoutingTable,
    verified_score=None,
    remarks: str = "",
    now: Optional[datetime] = None,
) -> SubmissionReview:
    """
    Record ``actor``'s review on ``submission`` in place and return the
    history row to persist with it.
    """
    now = now or _utcnow()

    acting = submission.assignment_for(actor.role_key) if actor.role_key else None
    if acting is None:
        raise RoleNotAssigned()
    if acting.status != "submitted":
        raise AlreadyReviewed()

    if finite_float(verified_score) is None:
        score = float(submission.claimed_score or 0)
    else:
        score = clamp_score(verified_score, submission.max_marks)

    acting.status = "reviewed"
    acting.reviewed_at = now
    acting.reviewer_user_id = actor.id
    acting.verified_score = score
    acting.remarks = remarks or ""

    for assignment in submission.assignments:
        if assignment is not acting and assignment.status == "submitted":
            assignment.status = "skipped"

    is_appeal = submission.current_flow == FLOW_APPEAL or submission.status == "appealed"
    flow = FLOW_APPEAL if is_appeal else FLOW_SUBMISSION
    next_roles = routing.resolve(actor.role_key, flow)

    if next_roles:
        existing = {a.role_key: a for a in submission.assignments}
        position = len(submission.assignments)
        for role in next_roles:
            key = normalize_role_key(role)
            if key in existing:
                # earlier outcome stays in the review history
                _reopen_assignment(existing[key], now)
                continue
            existing[key] = _new_assignment(role, position, now)
            submission.assignments.append(existing[key])
            position += 1

        submission.status = "appealed" if is_appeal else "submitted"
        submission.active_role_keys = _role_keys(next_roles)
        submission.current_flow_roles = list(next_roles)
        if not is_appeal:
            submission.submit_to_roles = list(next_roles)
    else:
        submission.status = "approved"
        submission.active_role_keys = []
        submission.current_flow_roles = []
        if not is_appeal:
            submission.submit_to_roles = []

    submission.verified_score = score
    submission.reviewed_by_user_id = actor.id
    submission.reviewed_by_role = actor.role
    submission.reviewed_by_role_key = actor.role_key
    submission.reviewed_at = now
    submission.updated_at = now
    submission.updated_by = actor.id

    return SubmissionReview(
        submission_id=submission.id,
        flow_type=flow,
        reviewer_role=actor.role,
        reviewer_role_key=actor.role_key,
        reviewer_user_id=actor.id,
        claimed_score=float(submission.claimed_score or 0),
        verified_score=score,
        remarks=remarks or "",
        next_roles=list(next_roles),
    )


def apply_appeal(
    submission: Submission,
    *,
    actor: Actor,
    routing: RoutingTable,
    reason: str = "",
    requested_score=None,
    max_appeals: Optional[int] = None,
    now: Optional[datetime] = None,
) -> None:
    now = now or _utcnow()
    max_appeals = settings.WORKFLOW_MAX_APPEALS if max_appeals is None else max_appeals

    # ownership before anything that depends on routing
    if not is_owner(submission, actor):
        raise Forbidden("You can only appeal your own submissions")

    if submission.status != "approved":
        raise ValidationError("Can only appeal approved submissions")
    if submission.is_accepted:
        raise ValidationError("Review already accepted, appeal is closed")
    if (submission.appeal_count or 0) >= max_appeals:
        raise ValidationError("Appeal already submitted")

    if routing.rule_for(actor.role_key) is not None:
        appeal_roles = routing.resolve(actor.role_key, FLOW_APPEAL)
    else:
        appeal_roles = unique_role_labels(submission.appeal_to_roles)
    if not appeal_roles:
        raise NoAppealRouteConfigured()

    # assignments start over for the appeal step
    submission.assignments.clear()
    for position, role in enumerate(appeal_roles):
        submission.assignments.append(_new_assignment(role, position, now))

    requested = finite_float(requested_score)
    appeal_record = {
        "reason": reason or "",
        "raisedBy": actor.id,
        "raisedAt": now.isoformat(),
    }
    if requested is not None:
        appeal_record["requestedScore"] = requested

    submission.appeal_to_roles = list(appeal_roles)
    submission.status = "appealed"
    submission.current_flow = FLOW_APPEAL
    submission.active_role_keys = _role_keys(appeal_roles)
    submission.current_flow_roles = list(appeal_roles)
    submission.last_appeal = appeal_record
    submission.appeal_count = (submission.appeal_count or 0) + 1
    submission.updated_at = now
    submission.updated_by = actor.id


# ---- operations ------------------------------------------------------------


def submit_task(
    db: Session,
    *,
    actor: Actor,
    form_id: str,
    criteria_id: str,
    task_id: str,
    claimed_score=None,
    max_marks=None,
    evidence_url: str = "",
    description: str = "",
    module_id: str = "",
    module_name: str = "",
    task_title: str = "",
) -> tuple[Submission, bool]:
    """
    Create the submission for one rubric task, or return the stored one.
    Returns ``(submission, created)``.
    """
    form_id = _require(form_id, "formId")
    criteria_id = _require(criteria_id, "criteriaId")
    task_id = _require(task_id, "taskId")

    routing = load_routing_table(db)
    submit_to_roles = routing.resolve(actor.role_key, FLOW_SUBMISSION)
    if not submit_to_roles:
        raise NoRouteConfigured()
    appeal_to_roles = routing.resolve(actor.role_key, FLOW_APPEAL)

    rubric_marks = rubric_service.task_max_marks(
        db, form_id=form_id, criteria_id=criteria_id, task_id=task_id
    )
    marks = rubric_marks if rubric_marks is not None else (finite_float(max_marks) or 0.0)
    claimed = clamp_score(claimed_score, marks)

    submission_id = build_submission_id(actor.id, form_id, criteria_id, task_id)

    def factory() -> Submission:
        now = _utcnow()
        submission = Submission(
            form_id=form_id,
            criteria_id=criteria_id,
            module_id=str(module_id or ""),
            module_name=str(module_name or ""),
            task_id=task_id,
            task_title=str(task_title or ""),
            faculty_id=actor.id,
            faculty_uid=actor.uid,
            faculty_email=actor.email,
            faculty_name=actor.name,
            college=actor.college,
            department=actor.department,
            submitted_by_role=actor.role,
            submitted_by_role_key=actor.role_key,
            submit_to_roles=list(submit_to_roles),
            appeal_to_roles=list(appeal_to_roles),
            current_flow_roles=list(submit_to_roles),
            completion_policy=COMPLETION_POLICY,
            claimed_score=claimed,
            max_marks=marks,
            status="submitted",
            current_flow=FLOW_SUBMISSION,
            active_role_keys=_role_keys(submit_to_roles),
            appeal_count=0,
            evidence_url=str(evidence_url or ""),
            description=str(description or ""),
            updated_by=actor.id,
        )
        submission.assignments = [
            _new_assignment(role, position, now) for position, role in enumerate(submit_to_roles)
        ]
        return submission

    repo = SubmissionRepository(db)
    submission, created = repo.find_or_create(submission_id, factory)
    if created:
        logger.info(
            f"Submission {submission_id} created by {actor.id} ({actor.role_key}), "
            f"routed to {submit_to_roles}"
        )
    return submission, created


def review_submission(
    db: Session,
    *,
    submission_id: str,
    actor: Actor,
    verified_score=None,
    remarks: str = "",
) -> Submission:
    routing = load_routing_table(db)
    repo = SubmissionRepository(db)

    def mutator(submission: Submission) -> None:
        history = apply_review(
            submission,
            actor=actor,
            routing=routing,
            verified_score=verified_score,
            remarks=remarks,
        )
        db.add(history)

    submission = repo.mutate(submission_id, mutator)
    logger.info(
        f"Submission {submission_id} reviewed by {actor.id} ({actor.role_key}): "
        f"status={submission.status} next={submission.active_role_keys}"
    )
    return submission


def appeal_submission(
    db: Session,
    *,
    submission_id: str,
    actor: Actor,
    reason: str = "",
    requested_score=None,
) -> Submission:
    routing = load_routing_table(db)
    repo = SubmissionRepository(db)

    def mutator(submission: Submission) -> None:
        apply_appeal(
            submission,
            actor=actor,
            routing=routing,
            reason=reason,
            requested_score=requested_score,
        )

    submission = repo.mutate(submission_id, mutator)
    logger.info(
        f"Submission {submission_id} appealed by {actor.id} to {submission.current_flow_roles}"
    )
    return submission


def appeal_task(
    db: Session,
    *,
    actor: Actor,
    form_id: str,
    criteria_id: str,
    task_id: str,
    reason: str = "",
    requested_score=None,
) -> Submission:
    """Appeal addressed by form/criteria/task instead of submission id."""
    submission_id = build_submission_id(
        actor.id,
        _require(form_id, "formId"),
        _require(criteria_id, "criteriaId"),
        _require(task_id, "taskId"),
    )
    return appeal_submission(
        db,
        submission_id=submission_id,
        actor=actor,
        reason=reason,
        requested_score=requested_score,
    )


def review_queue(db: Session, *, actor: Actor) -> List[Submission]:
    if not actor.role_key:
        return []
    repo = SubmissionRepository(db)
    return [
        s
        for s in repo.list_for_role_key(actor.role_key)
        if actor.role_key in (s.active_role_keys or [])
    ]


def _mapped_status(submission: Submission) -> str:
    if submission.status in ("approved", "appealed", "submitted"):
        return submission.status
    if any(a.status == "reviewed" for a in submission.assignments):
        return "approved"
    return "pending"


def my_task_statuses(
    db: Session,
    *,
    actor: Actor,
    form_id: str,
    criteria_id: str,
) -> List[TaskStatus]:
    form_id = str(form_id or "").strip()
    criteria_id = str(criteria_id or "").strip()
    if not form_id or not criteria_id:
        raise ValidationError("formId and criteriaId are required")

    repo = SubmissionRepository(db)
    statuses = []
    for submission in repo.list_for_owner(actor.identifiers, form_id=form_id, criteria_id=criteria_id):
        status = _mapped_status(submission)
        can_appeal = (
            status == "approved"
            and not submission.is_accepted
            and bool(submission.appeal_to_roles)
            and (submission.appeal_count or 0) < settings.WORKFLOW_MAX_APPEALS
        )
        statuses.append(TaskStatus(submission, status, can_appeal))
    return statuses


def reviewed_by(db: Session, *, actor: Actor) -> List[Submission]:
    return SubmissionRepository(db).list_reviewed_by(actor.id)
