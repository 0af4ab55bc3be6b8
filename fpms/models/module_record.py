# fpms/models/module_record.py
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func
from fpms.db.base import Base


class ModuleCriterion(Base):
    """Per-module self-assessment line (module1..module5), reviewed by a single role."""
    __tablename__ = "module_criteria"
    __table_args__ = (
        UniqueConstraint("module", "owner_id", "subsection_id", "name", name="uq_module_criterion"),
    )

    id = Column(Integer, primary_key=True, index=True)
    module = Column(String(32), nullable=False, index=True)
    owner_id = Column(String(128), nullable=False, index=True)
    # faculty (reviewed by HOD) / hod (reviewed by principal, appealed to committee)
    owner_kind = Column(String(20), nullable=False, default="faculty")

    subsection_id = Column(String(64), nullable=False)
    subsection_name = Column(String(255), nullable=False, default="")
    name = Column(String(255), nullable=False)

    claimed_score = Column(Float, nullable=False, default=0.0)
    max_score = Column(Float, nullable=False, default=0.0)
    evidence = Column(Text, nullable=False, default="")
    description = Column(Text, nullable=False, default="")

    reviewer_score = Column(Float, nullable=True)
    reviewer_description = Column(Text, nullable=False, default="")
    is_verified = Column(Boolean, nullable=False, default=False)

    # committee score written back after an appeal
    adjudicated_score = Column(Float, nullable=True)

    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )


class ModuleAppeal(Base):
    __tablename__ = "module_appeals"

    id = Column(Integer, primary_key=True, index=True)
    module = Column(String(32), nullable=False, index=True)
    owner_id = Column(String(128), nullable=False, index=True)
    owner_kind = Column(String(20), nullable=False, default="faculty")
    subsection_id = Column(String(64), nullable=False)
    criterion_name = Column(String(255), nullable=False)

    claimed_score = Column(Float, nullable=False, default=0.0)
    reviewer_score = Column(Float, nullable=True)
    requested_score = Column(Float, nullable=True)
    appeal_reason = Column(Text, nullable=False, default="")
    evidence = Column(Text, nullable=False, default="")

    # pending / committee_verified
    status = Column(String(32), nullable=False, default="pending", index=True)
    verified_by_committee = Column(Boolean, nullable=False, default=False)
    committee_score = Column(Float, nullable=True)
    committee_remarks = Column(Text, nullable=False, default="")
    committee_verified_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
