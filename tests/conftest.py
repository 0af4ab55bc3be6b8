"""
Shared fixtures: in-memory SQLite for unit tests, a temporary database file
for tests that need two independent connections.
"""
import os

# settings are read at import time; keep the test run off the real database
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fpms import models  # noqa
from fpms.core.roles import normalize_role_key
from fpms.core.security import Actor
from fpms.db.base import Base
from fpms.models.user import User
from fpms.models.workflow_config import WorkflowRole
from fpms.services import routing

TEST_DATABASE_URL = "sqlite://"

ROLES = ["faculty", "hod", "principle", "dean", "committee", "superadmin", "Dean of Science"]

RULES = [
    {"role": "faculty", "submitToRoles": ["hod"], "appealToRoles": ["dean"]},
    {"role": "hod", "submitToRoles": ["principle"], "appealToRoles": ["committee"]},
    {"role": "principle", "submitToRoles": [], "appealToRoles": []},
    {"role": "dean", "submitToRoles": [], "appealToRoles": []},
    {"role": "committee", "submitToRoles": [], "appealToRoles": []},
]


def make_actor(user_id: str, role: str, email: str = None, name: str = None) -> Actor:
    email = email or f"{user_id}@college.edu"
    return Actor(
        id=user_id,
        uid=user_id,
        email=email,
        name=name or user_id,
        role=role,
        role_key=normalize_role_key(role),
        role_source="claim",
    )


def seed_config(db, rules=RULES):
    for level, name in enumerate(ROLES, start=1):
        db.add(WorkflowRole(name=name, level=level))
    db.commit()
    routing.replace_rules(db, rules)


@pytest.fixture(scope="function")
def db_session():
    """Create a test database session."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def file_sessionmaker(tmp_path):
    """Sessions on one database file, each with its own connection."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'workflow.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    try:
        yield SessionLocal
    finally:
        engine.dispose()


@pytest.fixture
def workflow_config(db_session):
    seed_config(db_session)
    return db_session


@pytest.fixture
def faculty(db_session):
    user = User(
        id="fac-1",
        email="fac-1@college.edu",
        name="Test Faculty",
        role="faculty",
        college="Engineering",
        department="CSE",
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return make_actor(user.id, user.role, email=user.email, name=user.name)


@pytest.fixture
def hod():
    return make_actor("hod-1", "hod")


@pytest.fixture
def principle():
    return make_actor("prin-1", "Principal")


@pytest.fixture
def dean():
    return make_actor("dean-1", "dean")
