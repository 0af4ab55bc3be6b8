# fpms/schemas/workflow.py
from datetime import datetime
from typing import Any

from fpms.schemas.common import CamelModel


class TaskSubmitRequest(CamelModel):
    form_id: str
    criteria_id: str
    task_id: str
    module_id: str = ""
    module_name: str = ""
    task_title: str = ""
    claimed_score: float | None = None
    max_marks: float | None = None
    evidence_url: str = ""
    description: str = ""


class ReviewRequest(CamelModel):
    # omitted -> the claimed score is confirmed
    verified_score: float | None = None
    remarks: str = ""


class AppealRequest(CamelModel):
    reason: str = ""
    requested_score: float | None = None


class TaskAppealRequest(AppealRequest):
    form_id: str
    criteria_id: str
    task_id: str


class AssignmentPublic(CamelModel):
    role: str
    role_key: str
    status: str  # submitted / reviewed / skipped
    position: int
    assigned_at: datetime | None = None
    reviewed_at: datetime | None = None
    reviewer_user_id: str | None = None
    verified_score: float | None = None
    remarks: str = ""


class SubmissionPublic(CamelModel):
    id: str
    form_id: str
    criteria_id: str
    module_id: str
    module_name: str
    task_id: str
    task_title: str

    faculty_id: str
    faculty_email: str
    faculty_name: str
    college: str
    department: str
    submitted_by_role: str
    submitted_by_role_key: str

    submit_to_roles: list[str] = []
    appeal_to_roles: list[str] = []
    current_flow_roles: list[str] = []
    active_role_keys: list[str] = []
    completion_policy: str

    claimed_score: float
    max_marks: float
    verified_score: float | None = None

    status: str  # submitted / appealed / approved
    current_flow: str  # submission / appeal
    last_appeal: dict[str, Any] | None = None
    appeal_count: int = 0

    accepted_at: datetime | None = None
    accepted_score: float | None = None

    reviewed_by_user_id: str | None = None
    reviewed_by_role: str | None = None
    reviewed_at: datetime | None = None

    evidence_url: str = ""
    description: str = ""

    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    assignments: list[AssignmentPublic] = []


class TaskStatusPublic(CamelModel):
    id: str
    task_id: str
    module_id: str
    current_flow: str
    status: str
    can_appeal: bool
    claimed_score: float
    verified_score: float | None = None
    evidence_url: str = ""
    description: str = ""
    active_role_keys: list[str] = []
    submit_to_roles: list[str] = []
    appeal_to_roles: list[str] = []
    accepted: bool = False


class UserTotalPublic(CamelModel):
    user_id: str
    form_id: str | None = None
    total_score: float
    approved_count: int


class EvidencePublic(CamelModel):
    url: str
