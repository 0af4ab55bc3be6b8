# fpms/models/submission.py
from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from fpms.db.base import Base


class Submission(Base):
    """One faculty claim against one rubric task."""
    __tablename__ = "workflow_submissions"

    # faculty__form__criteria__task, see submission_repository.build_submission_id
    id = Column(String(512), primary_key=True, index=True)

    form_id = Column(String(128), nullable=False, index=True)
    criteria_id = Column(String(128), nullable=False, index=True)
    module_id = Column(String(128), nullable=False, default="")
    module_name = Column(String(255), nullable=False, default="")
    task_id = Column(String(128), nullable=False)
    task_title = Column(String(255), nullable=False, default="")

    # owner
    faculty_id = Column(String(128), nullable=False, index=True)
    faculty_uid = Column(String(128), nullable=False, default="")
    faculty_email = Column(String(255), nullable=False, default="")
    faculty_name = Column(String(100), nullable=False, default="")
    college = Column(String(255), nullable=False, default="")
    department = Column(String(255), nullable=False, default="")
    submitted_by_role = Column(String(100), nullable=False)
    submitted_by_role_key = Column(String(100), nullable=False)

    # routing snapshot
    submit_to_roles = Column(JSON, nullable=False, default=list)
    appeal_to_roles = Column(JSON, nullable=False, default=list)
    current_flow_roles = Column(JSON, nullable=False, default=list)
    completion_policy = Column(String(32), nullable=False, default="ANY_ONE_REVIEWED")

    # scores
    claimed_score = Column(Float, nullable=False, default=0.0)
    max_marks = Column(Float, nullable=False, default=0.0)
    verified_score = Column(Float, nullable=True)

    # state: submitted / appealed / approved
    status = Column(String(20), nullable=False, default="submitted", index=True)
    # submission / appeal
    current_flow = Column(String(20), nullable=False, default="submission")
    active_role_keys = Column(JSON, nullable=False, default=list)

    last_appeal = Column(JSON, nullable=True)
    appeal_count = Column(Integer, nullable=False, default=0)

    # score ledger acceptance
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    accepted_score = Column(Float, nullable=True)

    # most recent review
    reviewed_by_user_id = Column(String(128), nullable=True)
    reviewed_by_role = Column(String(100), nullable=True)
    reviewed_by_role_key = Column(String(100), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

    evidence_url = Column(Text, nullable=False, default="")
    description = Column(Text, nullable=False, default="")

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
    updated_by = Column(String(128), nullable=True)

    assignments = relationship(
        "SubmissionAssignment",
        back_populates="submission",
        cascade="all, delete-orphan",
        order_by="SubmissionAssignment.position",
    )

    # every UPDATE carries "WHERE version = <loaded>"; a lost race raises StaleDataError
    __mapper_args__ = {"version_id_col": version}

    @property
    def is_accepted(self) -> bool:
        return self.accepted_at is not None

    def assignment_for(self, role_key: str):
        for assignment in self.assignments:
            if assignment.role_key == role_key:
                return assignment
        return None


class SubmissionAssignment(Base):
    __tablename__ = "submission_assignments"

    id = Column(Integer, primary_key=True, index=True)
    submission_id = Column(
        String(512),
        ForeignKey("workflow_submissions.id"),
        nullable=False,
        index=True,
    )
    position = Column(Integer, nullable=False, default=0)

    role = Column(String(100), nullable=False)
    role_key = Column(String(100), nullable=False, index=True)
    # submitted / reviewed / skipped
    status = Column(String(20), nullable=False, default="submitted", index=True)

    assigned_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    reviewer_user_id = Column(String(128), nullable=True)
    verified_score = Column(Float, nullable=True)
    remarks = Column(Text, nullable=False, default="")

    submission = relationship("Submission", back_populates="assignments")


class SubmissionReview(Base):
    """Append-only review history. Rows are inserted, never updated or deleted."""
    __tablename__ = "submission_reviews"

    id = Column(Integer, primary_key=True, index=True)
    submission_id = Column(String(512), nullable=False, index=True)
    flow_type = Column(String(20), nullable=False)

    reviewer_role = Column(String(100), nullable=False)
    reviewer_role_key = Column(String(100), nullable=False)
    reviewer_user_id = Column(String(128), nullable=False, index=True)

    claimed_score = Column(Float, nullable=False)
    verified_score = Column(Float, nullable=False)
    remarks = Column(Text, nullable=False, default="")
    next_roles = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
