"""
Persistence for workflow submissions.

``mutate`` is the only write path used after creation: it reloads the row,
applies a mutator and commits with the version check SQLAlchemy adds for
``Submission.version``. A concurrent writer that committed first makes our
UPDATE match zero rows; the session is rolled back and the read-modify-write
is repeated against the fresh row, a bounded number of times.
"""
from __future__ import annotations

import logging
import re
from typing import Callable, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from fpms.core.config import settings
from fpms.core.errors import Conflict, NotFound, WorkflowError
from fpms.models.submission import Submission, SubmissionAssignment, SubmissionReview

logger = logging.getLogger(__name__)

_UNSAFE_ID_CHARS = re.compile(r"[^a-zA-Z0-9_-]")

OPEN_STATUSES = ("submitted", "appealed")


def build_submission_id(faculty_id, form_id, criteria_id, task_id) -> str:
    """Deterministic id so a re-submission lands on the same row."""
    raw = "__".join(str(part or "").strip() for part in (faculty_id, form_id, criteria_id, task_id))
    return _UNSAFE_ID_CHARS.sub("_", raw)


class SubmissionRepository:
    def __init__(self, db: Session, *, conflict_retries: Optional[int] = None):
        self.db = db
        self.conflict_retries = (
            settings.WORKFLOW_CONFLICT_RETRIES if conflict_retries is None else conflict_retries
        )

    def _select(self, submission_id: str):
        return (
            select(Submission)
            .where(Submission.id == submission_id)
            .options(selectinload(Submission.assignments))
        )

    def find(self, submission_id: str) -> Optional[Submission]:
        return self.db.execute(self._select(submission_id)).scalar_one_or_none()

    def get(self, submission_id: str) -> Submission:
        submission = self.find(submission_id)
        if submission is None:
            raise NotFound("Submission not found")
        return submission

    def find_or_create(
        self,
        submission_id: str,
        factory: Callable[[], Submission],
    ) -> tuple[Submission, bool]:
        """
        Return ``(submission, created)``. An existing row is returned as-is.
        """
        existing = self.find(submission_id)
        if existing is not None:
            return existing, False

        submission = factory()
        submission.id = submission_id
        self.db.add(submission)
        try:
            self.db.commit()
        except IntegrityError:
            # another request created the same key between our read and insert
            self.db.rollback()
            logger.info(f"Submission {submission_id} created concurrently; returning stored row")
            return self.get(submission_id), False

        self.db.refresh(submission)
        return submission, True

    def mutate(
        self,
        submission_id: str,
        mutator: Callable[[Submission], None],
    ) -> Submission:
        """
        Atomically apply ``mutator`` to the stored submission.

        The mutator changes the row in place and may ``db.add`` extra rows
        (review history, ledger updates) that commit in the same transaction.
        Typed workflow errors raised by the mutator roll back and propagate.
        """
        attempts = self.conflict_retries + 1
        for attempt in range(1, attempts + 1):
            stmt = self._select(submission_id).with_for_update().execution_options(
                populate_existing=True
            )
            submission = self.db.execute(stmt).scalar_one_or_none()
            if submission is None:
                self.db.rollback()
                raise NotFound("Submission not found")

            try:
                mutator(submission)
                self.db.commit()
            except StaleDataError:
                self.db.rollback()
                logger.warning(
                    f"Concurrent update on submission {submission_id} "
                    f"(attempt {attempt}/{attempts}); reloading"
                )
                continue
            except WorkflowError:
                self.db.rollback()
                raise
            except Exception:
                self.db.rollback()
                logger.exception(f"Update of submission {submission_id} failed")
                raise

            self.db.refresh(submission)
            return submission

        raise Conflict("Submission was modified concurrently, please retry")

    def list_for_owner(
        self,
        identifiers: Iterable[str],
        *,
        form_id: Optional[str] = None,
        criteria_id: Optional[str] = None,
    ) -> List[Submission]:
        ids = [i for i in identifiers if i]
        if not ids:
            return []

        stmt = select(Submission).where(
            func.lower(Submission.faculty_id).in_(ids)
            | func.lower(Submission.faculty_uid).in_(ids)
            | func.lower(Submission.faculty_email).in_(ids)
        )
        if form_id:
            stmt = stmt.where(Submission.form_id == form_id)
        if criteria_id:
            stmt = stmt.where(Submission.criteria_id == criteria_id)

        stmt = stmt.options(selectinload(Submission.assignments)).order_by(
            Submission.created_at.asc(), Submission.id.asc()
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_for_role_key(
        self,
        role_key: str,
        statuses: Iterable[str] = OPEN_STATUSES,
    ) -> List[Submission]:
        """Submissions with a pending assignment for ``role_key``."""
        stmt = (
            select(Submission)
            .join(SubmissionAssignment, SubmissionAssignment.submission_id == Submission.id)
            .where(
                SubmissionAssignment.role_key == role_key,
                SubmissionAssignment.status == "submitted",
                Submission.status.in_(list(statuses)),
            )
            .options(selectinload(Submission.assignments))
            .order_by(Submission.created_at.asc(), Submission.id.asc())
            .distinct()
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_by_status(self, status: str) -> List[Submission]:
        stmt = (
            select(Submission)
            .where(Submission.status == status)
            .options(selectinload(Submission.assignments))
            .order_by(Submission.created_at.asc(), Submission.id.asc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_reviewed_by(self, reviewer_user_id: str) -> List[Submission]:
        reviewed_ids = (
            select(SubmissionReview.submission_id)
            .where(SubmissionReview.reviewer_user_id == reviewer_user_id)
            .distinct()
        )
        stmt = (
            select(Submission)
            .where(Submission.id.in_(reviewed_ids))
            .options(selectinload(Submission.assignments))
            .order_by(Submission.updated_at.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def history(self, submission_id: str) -> List[SubmissionReview]:
        stmt = (
            select(SubmissionReview)
            .where(SubmissionReview.submission_id == submission_id)
            .order_by(SubmissionReview.id.asc())
        )
        return list(self.db.execute(stmt).scalars().all())
