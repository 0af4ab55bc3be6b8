# fpms/db/seed.py
"""
Load the role registry, routing rules and rubric catalogue.

    python -m fpms.db.seed rubric.json

The JSON file has ``roles``, ``rules`` and ``forms`` keys; any of them may be
omitted. Without a file only the default roles and rules are written.
"""
import argparse
import json
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from fpms.core.logging_config import setup_logging
from fpms.db.init_db import init_db
from fpms.db.session import SessionLocal
from fpms.models.rubric import RubricCriteria, RubricForm, RubricModule, RubricTask
from fpms.models.workflow_config import WorkflowRole
from fpms.services import routing
from fpms.services.rubric_service import bulk_insert_chunks

logger = logging.getLogger(__name__)

DEFAULT_ROLES = [
    ("faculty", 1),
    ("hod", 2),
    ("dean", 3),
    ("principle", 4),
    ("committee", 5),
    ("superadmin", 6),
]

DEFAULT_RULES = [
    {"role": "faculty", "submitToRoles": ["hod"], "appealToRoles": ["dean"]},
    {"role": "hod", "submitToRoles": ["principle"], "appealToRoles": ["committee"]},
    {"role": "principle", "submitToRoles": [], "appealToRoles": []},
    {"role": "dean", "submitToRoles": [], "appealToRoles": []},
    {"role": "committee", "submitToRoles": [], "appealToRoles": []},
]


def seed_roles(db: Session, roles) -> int:
    known = set(db.execute(select(WorkflowRole.name)).scalars().all())
    added = 0
    for name, level in roles:
        if name in known:
            continue
        db.add(WorkflowRole(name=name, level=level))
        known.add(name)
        added += 1
    db.commit()
    return added


def _rubric_objects(forms):
    for form in forms:
        yield RubricForm(
            id=form["id"],
            title=form.get("title", ""),
            applicable_roles=list(form.get("applicableRoles", [])),
        )
        for c_order, criteria in enumerate(form.get("criteria", [])):
            yield RubricCriteria(
                id=criteria["id"],
                form_id=form["id"],
                name=criteria.get("name", ""),
                order=criteria.get("order", c_order),
                total_marks=float(criteria.get("totalMarks", 0)),
            )
            for m_order, module in enumerate(criteria.get("modules", [])):
                yield RubricModule(
                    id=module["id"],
                    form_id=form["id"],
                    criteria_id=criteria["id"],
                    module_number=module.get("moduleNumber", m_order + 1),
                    name=module.get("name", ""),
                    total_marks=float(module.get("totalMarks", 0)),
                    order=module.get("order", m_order),
                )
                for t_order, task in enumerate(module.get("tasks", [])):
                    yield RubricTask(
                        id=task["id"],
                        form_id=form["id"],
                        criteria_id=criteria["id"],
                        module_id=module["id"],
                        title=task.get("title", ""),
                        subtitle=task.get("subtitle", ""),
                        description=task.get("description", ""),
                        assessment_criteria=task.get("assessmentCriteria", ""),
                        evidence_hint=task.get("evidenceHint", ""),
                        reference=task.get("reference", ""),
                        marks=float(task.get("marks", 0)),
                        order=task.get("order", t_order),
                    )


def seed_rubric(db: Session, forms, *, batch_size=None) -> int:
    # parents first: rows in one flush are not ordered by foreign key
    tiers = {RubricForm: [], RubricCriteria: [], RubricModule: [], RubricTask: []}
    for obj in _rubric_objects(forms):
        tiers[type(obj)].append(obj)
    return sum(bulk_insert_chunks(db, objects, batch_size=batch_size) for objects in tiers.values())


def seed(db: Session, payload: dict, *, batch_size=None) -> None:
    roles = [(r["name"], r.get("level")) for r in payload.get("roles", [])] or DEFAULT_ROLES
    seed_roles(db, roles)
    routing.replace_rules(db, payload.get("rules") or DEFAULT_RULES)
    if payload.get("forms"):
        seed_rubric(db, payload["forms"], batch_size=batch_size)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Seed roles, workflow rules and rubric forms")
    parser.add_argument("payload", nargs="?",
                        help="JSON file with roles, rules and forms")
    parser.add_argument("--batch-size", type=int, default=None,
                        help="Rows per commit when loading forms")
    args = parser.parse_args(argv)

    setup_logging()
    init_db()

    payload = {}
    if args.payload:
        logger.info(f"Loading seed data: {args.payload}")
        with open(args.payload, encoding="utf-8") as f:
            payload = json.load(f)

    db = SessionLocal()
    try:
        seed(db, payload, batch_size=args.batch_size)
    finally:
        db.close()
    logger.info("Seed complete")


if __name__ == "__main__":
    main()
