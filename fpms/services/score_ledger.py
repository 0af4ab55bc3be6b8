# fpms/services/score_ledger.py
"""
Per-user score totals.

``users.total_score`` is the running sum of scores the owner accepted. It is
updated in the same transaction that marks the submission accepted, and
``recompute_total`` rebuilds it from the submissions table.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from fpms.core.errors import Forbidden, NotFound, ValidationError
from fpms.core.security import Actor
from fpms.models.submission import Submission
from fpms.models.user import User
from fpms.services.submission_repository import SubmissionRepository
from fpms.services.workflow_engine import is_owner

logger = logging.getLogger(__name__)


def _owner_filter(identifiers):
    ids = [i for i in identifiers if i]
    return (
        func.lower(Submission.faculty_id).in_(ids)
        | func.lower(Submission.faculty_uid).in_(ids)
        | func.lower(Submission.faculty_email).in_(ids)
    )


def accept_review(db: Session, *, submission_id: str, actor: Actor) -> Submission:
    """
    Owner accepts the final reviewed score. Accepting twice is a no-op.
    """
    repo = SubmissionRepository(db)
    already_accepted = False

    def mutator(submission: Submission) -> None:
        nonlocal already_accepted
        if not is_owner(submission, actor):
            raise Forbidden("You can only accept your own submissions")
        if submission.status != "approved":
            raise ValidationError("Only approved submissions can be accepted")
        if submission.is_accepted:
            already_accepted = True
            return

        score = float(submission.verified_score or 0)
        submission.accepted_at = datetime.now(timezone.utc)
        submission.accepted_score = score
        submission.updated_by = actor.id

        user = db.get(User, submission.faculty_id)
        if user is None:
            raise NotFound("User profile not found")
        user.total_score = float(user.total_score or 0) + score

    submission = repo.mutate(submission_id, mutator)
    if already_accepted:
        logger.info(f"Submission {submission_id} was already accepted; total unchanged")
    else:
        logger.info(
            f"Submission {submission_id} accepted by {actor.id}: +{submission.accepted_score}"
        )
    return submission


def recompute_total(db: Session, *, user_id: str) -> float:
    """Rebuild ``total_score`` from accepted submissions."""
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")

    identifiers = {str(v).strip().lower() for v in (user.id, user.email) if str(v or "").strip()}
    total = db.execute(
        select(func.coalesce(func.sum(Submission.accepted_score), 0.0)).where(
            _owner_filter(identifiers),
            Submission.accepted_at.is_not(None),
        )
    ).scalar_one()

    user.total_score = float(total)
    db.commit()
    return user.total_score


def user_total(db: Session, *, actor: Actor, form_id: Optional[str] = None) -> dict:
    """Sum of verified scores over the actor's approved submissions."""
    stmt = select(
        func.coalesce(func.sum(Submission.verified_score), 0.0),
        func.count(Submission.id),
    ).where(_owner_filter(actor.identifiers), Submission.status == "approved")
    if form_id:
        stmt = stmt.where(Submission.form_id == form_id)

    total, count = db.execute(stmt).one()
    return {
        "userId": actor.id,
        "formId": form_id or None,
        "totalScore": float(total or 0),
        "approvedCount": int(count or 0),
    }
