# fpms/schemas/legacy.py
from datetime import datetime

from fpms.schemas.common import CamelModel


class CriterionIn(CamelModel):
    name: str
    claimed_score: float | None = None
    max_score: float | None = None
    evidence: str | None = None
    description: str | None = None
    subsection_name: str | None = None


class SubsectionSave(CamelModel):
    subsection_name: str = ""
    criteria: list[CriterionIn]


class CriterionVerify(CamelModel):
    reviewer_score: float | None = None
    description: str = ""


class CriterionPublic(CamelModel):
    id: int
    module: str
    owner_id: str
    owner_kind: str
    subsection_id: str
    subsection_name: str
    name: str
    claimed_score: float
    max_score: float
    evidence: str = ""
    description: str = ""
    reviewer_score: float | None = None
    reviewer_description: str = ""
    is_verified: bool
    adjudicated_score: float | None = None


class SubsectionPublic(CamelModel):
    id: str
    module: str
    name: str
    max_score: float
    criteria: list[CriterionPublic] = []


class ModuleAppealCreate(CamelModel):
    subsection_id: str
    criterion_name: str
    reason: str
    requested_score: float | None = None
    evidence: str = ""


class ModuleAppealAdjudicate(CamelModel):
    committee_score: float | None = None
    remarks: str = ""


class ModuleAppealPublic(CamelModel):
    id: int
    module: str
    owner_id: str
    owner_kind: str
    subsection_id: str
    criterion_name: str
    claimed_score: float
    reviewer_score: float | None = None
    requested_score: float | None = None
    appeal_reason: str
    evidence: str = ""
    status: str  # pending / committee_verified
    verified_by_committee: bool
    committee_score: float | None = None
    committee_remarks: str = ""
    committee_verified_at: datetime | None = None
    created_at: datetime | None = None
