"""
Per-module self-assessment records (module1..module5) with a single reviewer
and a one-shot committee appeal.

Faculty records are verified by their HOD; HOD records are verified by the
principal and appealed to the committee. Both run through the same code,
parametrized by ``module`` and ``owner_kind``.
"""
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from fpms.core.errors import AlreadyReviewed, Forbidden, NotFound, ValidationError
from fpms.core.roles import is_hod_role
from fpms.core.security import Actor
from fpms.models.module_record import ModuleAppeal, ModuleCriterion
from fpms.services.workflow_engine import clamp_score, finite_float

logger = logging.getLogger(__name__)

MODULES = ("module1", "module2", "module3", "module4", "module5")

# owner_kind -> role keys allowed to verify that owner's records
REVIEWER_KEYS = {
    "faculty": ("hod",),
    "hod": ("principle", "viceprinciple"),
}


def owner_kind_for(actor: Actor) -> str:
    return "hod" if is_hod_role(actor.role) else "faculty"


def _check_module(module: str) -> str:
    module = str(module or "").strip().lower()
    if module not in MODULES:
        raise NotFound(f"Unknown module: {module or '-'}")
    return module


def _get_criterion(
    db: Session, module: str, owner_id: str, subsection_id: str, name: str
) -> Optional[ModuleCriterion]:
    return db.execute(
        select(ModuleCriterion).where(
            ModuleCriterion.module == module,
            ModuleCriterion.owner_id == owner_id,
            ModuleCriterion.subsection_id == subsection_id,
            ModuleCriterion.name == name,
        )
    ).scalar_one_or_none()


def save_subsection(
    db: Session,
    *,
    module: str,
    owner: Actor,
    subsection_id: str,
    criteria: Iterable[dict],
    subsection_name: str = "",
) -> List[ModuleCriterion]:
    """
    Upsert the owner's criteria for one subsection, matched by name.
    Verified criteria are left untouched.
    """
    module = _check_module(module)
    subsection_id = str(subsection_id or "").strip()
    items = [c for c in (criteria or []) if str((c or {}).get("name") or "").strip()]
    if not subsection_id or not items:
        raise ValidationError("Criteria is required")

    kind = owner_kind_for(owner)
    skipped = 0
    for item in items:
        name = str(item["name"]).strip()
        row = _get_criterion(db, module, owner.id, subsection_id, name)
        if row is not None and row.is_verified:
            skipped += 1
            continue
        if row is None:
            row = ModuleCriterion(
                module=module,
                owner_id=owner.id,
                owner_kind=kind,
                subsection_id=subsection_id,
                name=name,
            )
            db.add(row)

        max_score = finite_float(item.get("maxScore"))
        if max_score is None:
            max_score = row.max_score or 0.0
        row.max_score = max(max_score, 0.0)
        claimed = item.get("claimedScore")
        row.claimed_score = clamp_score(
            claimed if claimed is not None else row.claimed_score, row.max_score
        )
        if item.get("evidence") is not None:
            row.evidence = str(item["evidence"])
        if item.get("description") is not None:
            row.description = str(item["description"])
        row.subsection_name = (
            subsection_name or item.get("subsectionName") or row.subsection_name or f"Subsection {subsection_id}"
        )
        row.is_verified = False

    db.commit()
    if skipped:
        logger.info(f"{module}/{subsection_id} for {owner.id}: {skipped} verified criterion(s) kept")
    return list_criteria(db, module=module, owner_id=owner.id, subsection_id=subsection_id)


def list_criteria(
    db: Session, *, module: str, owner_id: str, subsection_id: Optional[str] = None
) -> List[ModuleCriterion]:
    stmt = select(ModuleCriterion).where(
        ModuleCriterion.module == module, ModuleCriterion.owner_id == owner_id
    )
    if subsection_id:
        stmt = stmt.where(ModuleCriterion.subsection_id == subsection_id)
    return list(db.execute(stmt.order_by(ModuleCriterion.subsection_id, ModuleCriterion.id)).scalars().all())


def list_subsections(db: Session, *, module: str, owner_id: str) -> List[dict]:
    module = _check_module(module)
    subsections: dict = {}
    for row in list_criteria(db, module=module, owner_id=owner_id):
        sub = subsections.setdefault(
            row.subsection_id,
            {
                "id": row.subsection_id,
                "module": module,
                "name": row.subsection_name,
                "maxScore": 0.0,
                "criteria": [],
            },
        )
        sub["maxScore"] += row.max_score or 0.0
        sub["criteria"].append(row)
    return list(subsections.values())


def verify_criterion(
    db: Session,
    *,
    module: str,
    reviewer: Actor,
    owner_id: str,
    subsection_id: str,
    name: str,
    reviewer_score,
    description: str = "",
) -> ModuleCriterion:
    module = _check_module(module)
    row = _get_criterion(db, module, owner_id, subsection_id, name)
    if row is None:
        raise NotFound("Criterion not found")
    if reviewer.role_key not in REVIEWER_KEYS.get(row.owner_kind, ()):
        raise Forbidden("Not authorized to verify this record")

    score = clamp_score(reviewer_score, row.max_score)
    # conditional update keeps verification single-shot under concurrency
    result = db.execute(
        update(ModuleCriterion)
        .where(ModuleCriterion.id == row.id, ModuleCriterion.is_verified.is_(False))
        .values(reviewer_score=score, reviewer_description=description or "", is_verified=True)
    )
    if result.rowcount != 1:
        db.rollback()
        raise AlreadyReviewed("Criterion already verified")
    db.commit()
    db.refresh(row)

    logger.info(f"{module}/{subsection_id}/{name} for {owner_id} verified: {score}")
    return row


def raise_appeal(
    db: Session,
    *,
    module: str,
    owner: Actor,
    owner_id: str,
    subsection_id: str,
    name: str,
    reason: str,
    requested_score=None,
    evidence: str = "",
) -> ModuleAppeal:
    module = _check_module(module)
    if owner_id.strip().lower() not in owner.identifiers:
        raise Forbidden("You can only appeal your own records")
    if not str(reason or "").strip():
        raise ValidationError("Appeal reason is required")

    row = _get_criterion(db, module, owner_id, subsection_id, name)
    if row is None:
        raise NotFound("Criterion not found")
    if not row.is_verified:
        raise ValidationError("Only verified criteria can be appealed")

    existing = db.execute(
        select(ModuleAppeal.id).where(
            ModuleAppeal.module == module,
            ModuleAppeal.owner_id == owner_id,
            ModuleAppeal.subsection_id == subsection_id,
            ModuleAppeal.criterion_name == name,
        )
    ).first()
    if existing is not None:
        raise ValidationError("Appeal already submitted")

    appeal = ModuleAppeal(
        module=module,
        owner_id=owner_id,
        owner_kind=row.owner_kind,
        subsection_id=subsection_id,
        criterion_name=name,
        claimed_score=row.claimed_score,
        reviewer_score=row.reviewer_score,
        requested_score=finite_float(requested_score),
        appeal_reason=str(reason).strip(),
        evidence=evidence or "",
        status="pending",
        verified_by_committee=False,
    )
    db.add(appeal)
    db.commit()
    db.refresh(appeal)

    logger.info(f"Appeal {appeal.id} raised on {module}/{subsection_id}/{name} by {owner_id}")
    return appeal


def adjudicate_appeal(
    db: Session,
    *,
    appeal_id: int,
    committee_score,
    remarks: str = "",
) -> ModuleAppeal:
    """
    Committee decision on an appeal. The appeal's score is written back to
    the criterion in the same transaction; a decided appeal is never reopened.
    """
    appeal = db.get(ModuleAppeal, appeal_id)
    if appeal is None:
        raise NotFound("Appeal not found")

    criterion = _get_criterion(
        db, appeal.module, appeal.owner_id, appeal.subsection_id, appeal.criterion_name
    )
    if criterion is None:
        raise NotFound("Criterion not found")

    score = clamp_score(committee_score, criterion.max_score)
    now = datetime.now(timezone.utc)

    result = db.execute(
        update(ModuleAppeal)
        .where(ModuleAppeal.id == appeal_id, ModuleAppeal.verified_by_committee.is_(False))
        .values(
            committee_score=score,
            committee_remarks=remarks or "",
            status="committee_verified",
            verified_by_committee=True,
            committee_verified_at=now,
        )
    )
    if result.rowcount != 1:
        db.rollback()
        raise AlreadyReviewed("Appeal already verified")

    criterion.adjudicated_score = score
    db.commit()
    db.refresh(appeal)

    logger.info(f"Appeal {appeal_id} adjudicated: {score}")
    return appeal


def list_appeals(db: Session, *, owner_id: Optional[str] = None) -> List[ModuleAppeal]:
    stmt = select(ModuleAppeal)
    if owner_id:
        stmt = stmt.where(ModuleAppeal.owner_id == owner_id)
    return list(db.execute(stmt.order_by(ModuleAppeal.created_at.desc(), ModuleAppeal.id.desc())).scalars().all())
