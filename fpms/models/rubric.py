# fpms/models/rubric.py
from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func
from fpms.db.base import Base


class RubricForm(Base):
    __tablename__ = "rubric_forms"

    id = Column(String(128), primary_key=True, index=True)
    title = Column(String(255), nullable=False, default="")
    applicable_roles = Column(JSON, nullable=False, default=list)

    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )


class RubricCriteria(Base):
    __tablename__ = "rubric_criteria"

    id = Column(String(128), primary_key=True, index=True)
    form_id = Column(String(128), ForeignKey("rubric_forms.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False, default="")
    order = Column(Integer, nullable=False, default=0)
    total_marks = Column(Float, nullable=False, default=0.0)


class RubricModule(Base):
    __tablename__ = "rubric_modules"

    id = Column(String(128), primary_key=True, index=True)
    form_id = Column(String(128), ForeignKey("rubric_forms.id"), nullable=False, index=True)
    criteria_id = Column(String(128), ForeignKey("rubric_criteria.id"), nullable=False, index=True)
    module_number = Column(Integer, nullable=False, default=0)
    name = Column(String(255), nullable=False, default="")
    total_marks = Column(Float, nullable=False, default=0.0)
    order = Column(Integer, nullable=False, default=0)


class RubricTask(Base):
    __tablename__ = "rubric_tasks"

    id = Column(String(128), primary_key=True, index=True)
    form_id = Column(String(128), ForeignKey("rubric_forms.id"), nullable=False, index=True)
    criteria_id = Column(String(128), ForeignKey("rubric_criteria.id"), nullable=False, index=True)
    module_id = Column(String(128), ForeignKey("rubric_modules.id"), nullable=True)

    title = Column(String(255), nullable=False, default="")
    subtitle = Column(String(255), nullable=False, default="")
    description = Column(Text, nullable=False, default="")
    assessment_criteria = Column(Text, nullable=False, default="")
    evidence_hint = Column(Text, nullable=False, default="")
    reference = Column(Text, nullable=False, default="")
    marks = Column(Float, nullable=False, default=0.0)
    order = Column(Integer, nullable=False, default=0)
