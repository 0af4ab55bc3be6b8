# fpms/models/user.py
from sqlalchemy import Boolean, Column, DateTime, Float, String
from sqlalchemy.sql import func
from fpms.db.base import Base


class User(Base):
    __tablename__ = "users"

    # subject id issued by the identity provider
    id = Column(String(128), primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(100), nullable=False, default="")
    role = Column(String(100), nullable=False, default="faculty")  # display label, e.g. 'Dean of Science'
    college = Column(String(255), nullable=False, default="")
    department = Column(String(255), nullable=False, default="")
    designation = Column(String(100), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    # running total of accepted review scores
    total_score = Column(Float, nullable=False, default=0.0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
