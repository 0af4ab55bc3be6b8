# fpms/models/workflow_config.py
from sqlalchemy import JSON, Column, DateTime, Integer, String
from sqlalchemy.sql import func
from fpms.db.base import Base


class WorkflowRole(Base):
    """Global role registry entry."""
    __tablename__ = "workflow_roles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    level = Column(Integer, nullable=True)


class WorkflowRule(Base):
    """Routing rule: who reviews submissions and appeals raised by ``role``."""
    __tablename__ = "workflow_rules"

    id = Column(Integer, primary_key=True, index=True)
    role = Column(String(100), unique=True, nullable=False)
    submit_to_roles = Column(JSON, nullable=False, default=list)
    appeal_to_roles = Column(JSON, nullable=False, default=list)

    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
