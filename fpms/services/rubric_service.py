# fpms/services/rubric_service.py
import logging
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from fpms.core.config import settings
from fpms.core.errors import Forbidden, NotFound
from fpms.core.roles import normalize_role_label
from fpms.models.rubric import RubricCriteria, RubricForm, RubricModule, RubricTask

logger = logging.getLogger(__name__)


def _form_applies_to(form: RubricForm, role_label: str) -> bool:
    wanted = normalize_role_label(role_label)
    if not wanted:
        return False
    return wanted in {normalize_role_label(r) for r in (form.applicable_roles or [])}


def _criteria_for_form(db: Session, form_id: str) -> List[RubricCriteria]:
    return list(
        db.execute(
            select(RubricCriteria)
            .where(RubricCriteria.form_id == form_id)
            .order_by(RubricCriteria.order.asc(), RubricCriteria.id.asc())
        ).scalars().all()
    )


def list_applicable_forms(db: Session, *, role_label: str) -> List[dict]:
    """
    Forms the role may fill in, each with its criteria in display order.
    """
    forms = db.execute(select(RubricForm).order_by(RubricForm.id.asc())).scalars().all()

    result = []
    for form in forms:
        if not _form_applies_to(form, role_label):
            continue
        result.append(
            {
                "id": form.id,
                "title": form.title,
                "applicableRoles": list(form.applicable_roles or []),
                "criteria": [
                    {
                        "id": c.id,
                        "name": c.name,
                        "order": c.order,
                        "totalMarks": c.total_marks,
                    }
                    for c in _criteria_for_form(db, form.id)
                ],
            }
        )
    return result


def get_criteria_tree(
    db: Session,
    *,
    form_id: str,
    criteria_id: str,
    role_label: str,
) -> dict:
    form = db.get(RubricForm, form_id)
    if form is None:
        raise NotFound("Form not found")
    if not _form_applies_to(form, role_label):
        raise Forbidden("This form is not applicable to your role")

    criteria = db.get(RubricCriteria, criteria_id)
    if criteria is None or criteria.form_id != form_id:
        raise NotFound("Criteria not found")

    modules = db.execute(
        select(RubricModule)
        .where(RubricModule.form_id == form_id, RubricModule.criteria_id == criteria_id)
        .order_by(RubricModule.order.asc(), RubricModule.module_number.asc())
    ).scalars().all()
    tasks = db.execute(
        select(RubricTask)
        .where(RubricTask.form_id == form_id, RubricTask.criteria_id == criteria_id)
        .order_by(RubricTask.order.asc(), RubricTask.id.asc())
    ).scalars().all()

    tasks_by_module: dict = {}
    for task in tasks:
        tasks_by_module.setdefault(task.module_id, []).append(
            {
                "id": task.id,
                "title": task.title,
                "subtitle": task.subtitle,
                "description": task.description,
                "assessmentCriteria": task.assessment_criteria,
                "evidenceHint": task.evidence_hint,
                "reference": task.reference,
                "marks": task.marks,
                "order": task.order,
            }
        )

    return {
        "form": {"id": form.id, "title": form.title},
        "criteria": {
            "id": criteria.id,
            "name": criteria.name,
            "totalMarks": criteria.total_marks,
        },
        "modules": [
            {
                "id": m.id,
                "moduleNumber": m.module_number,
                "name": m.name,
                "totalMarks": m.total_marks,
                "order": m.order,
                "tasks": tasks_by_module.get(m.id, []),
            }
            for m in modules
        ],
    }


def task_max_marks(
    db: Session,
    *,
    form_id: str,
    criteria_id: str,
    task_id: str,
) -> Optional[float]:
    """Rubric marks for a task, or None when the catalogue does not know it."""
    task = db.get(RubricTask, task_id)
    if task is None or task.form_id != form_id or task.criteria_id != criteria_id:
        return None
    return float(task.marks or 0)


def bulk_insert_chunks(db: Session, objects: Iterable, *, batch_size: Optional[int] = None) -> int:
    """
    Add objects in batches, committing after each chunk.
    Returns the number of objects written.
    """
    size = batch_size or settings.STORE_BATCH_SIZE
    written = 0
    chunk = []
    for obj in objects:
        chunk.append(obj)
        if len(chunk) >= size:
            db.add_all(chunk)
            db.commit()
            written += len(chunk)
            chunk = []
    if chunk:
        db.add_all(chunk)
        db.commit()
        written += len(chunk)

    logger.info(f"Stored {written} rubric object(s) in chunks of {size}")
    return written
