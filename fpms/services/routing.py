"""
Routing table: which roles review a submission or an appeal raised by a role.

The table is built from a ``WorkflowConfig`` snapshot loaded once per
request; nothing here is cached between requests.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from fpms.core.errors import Conflict, NotFound, ValidationError
from fpms.core.roles import normalize_role_key, unique_role_labels
from fpms.models.workflow_config import WorkflowRole, WorkflowRule

logger = logging.getLogger(__name__)

FLOW_SUBMISSION = "submission"
FLOW_APPEAL = "appeal"


@dataclass(frozen=True)
class RoleRule:
    role: str
    submit_to_roles: tuple[str, ...] = ()
    appeal_to_roles: tuple[str, ...] = ()

    @property
    def role_key(self) -> str:
        return normalize_role_key(self.role)

    def as_dict(self) -> dict:
        return {
            "role": self.role,
            "submitToRoles": list(self.submit_to_roles),
            "appealToRoles": list(self.appeal_to_roles),
        }


@dataclass
class WorkflowConfig:
    """Snapshot of the role registry and routing rules."""
    roles: list[str] = field(default_factory=list)
    rules: list[RoleRule] = field(default_factory=list)

    @property
    def role_label_by_key(self) -> dict[str, str]:
        return {normalize_role_key(r): r for r in self.roles if normalize_role_key(r)}


class RoutingTable:
    def __init__(self, config: WorkflowConfig):
        self.config = config
        self._rules: dict[str, RoleRule] = {}
        for rule in config.rules:
            key = rule.role_key
            # first rule wins on lookup; replace_rules already de-duplicates
            if key and key not in self._rules:
                self._rules[key] = rule

    def rule_for(self, role_key: str) -> Optional[RoleRule]:
        return self._rules.get(role_key)

    def resolve(self, role_key: str, flow: str) -> list[str]:
        """
        Ordered reviewer labels for ``role_key`` in ``flow``.
        An empty list means terminal: no further routing.
        """
        rule = self.rule_for(role_key)
        if rule is None:
            return []
        if flow == FLOW_APPEAL:
            return list(rule.appeal_to_roles)
        return list(rule.submit_to_roles)


def _rule_from_row(row: WorkflowRule) -> RoleRule:
    return RoleRule(
        role=row.role,
        submit_to_roles=tuple(unique_role_labels(row.submit_to_roles)),
        appeal_to_roles=tuple(unique_role_labels(row.appeal_to_roles)),
    )


def load_workflow_config(db: Session) -> WorkflowConfig:
    roles = db.execute(
        select(WorkflowRole.name).order_by(WorkflowRole.level.asc(), WorkflowRole.id.asc())
    ).scalars().all()
    rows = db.execute(select(WorkflowRule).order_by(WorkflowRule.id)).scalars().all()
    return WorkflowConfig(
        roles=[str(r).strip() for r in roles if str(r or "").strip()],
        rules=[_rule_from_row(row) for row in rows],
    )


def load_routing_table(db: Session) -> RoutingTable:
    return RoutingTable(load_workflow_config(db))


def _role_list(value, fallback) -> list[str]:
    labels = unique_role_labels(value)
    if labels:
        return labels
    single = str(fallback or "").strip()
    return [single] if single else []


def normalize_rule_payload(items: Iterable[dict]) -> list[RoleRule]:
    """
    Accept rule dicts in either shape (``submitToRoles`` list or the older
    singular ``submitToRole``) and return de-duplicated rules, last one wins.
    """
    by_role: dict[str, RoleRule] = {}
    for item in items:
        item = item or {}
        role = str(item.get("role") or "").strip()
        if not role:
            continue
        by_role[role] = RoleRule(
            role=role,
            submit_to_roles=tuple(_role_list(item.get("submitToRoles"), item.get("submitToRole"))),
            appeal_to_roles=tuple(_role_list(item.get("appealToRoles"), item.get("appealToRole"))),
        )
    return list(by_role.values())


def validate_rules(rules: list[RoleRule], registry: Iterable[str]) -> None:
    known = {str(r).strip() for r in registry if str(r or "").strip()}
    for rule in rules:
        referenced = (rule.role, *rule.submit_to_roles, *rule.appeal_to_roles)
        unknown = [label for label in referenced if label not in known]
        if unknown:
            logger.warning(f"Rejected workflow rule for {rule.role!r}: unknown roles {unknown}")
            raise ValidationError("Workflow rules contain invalid roles")


def list_rules(db: Session) -> WorkflowConfig:
    return load_workflow_config(db)


def replace_rules(db: Session, items: Iterable[dict]) -> list[RoleRule]:
    """
    Validate and store a new routing table, replacing the old one
    in a single transaction.
    """
    rules = normalize_rule_payload(items)
    config = load_workflow_config(db)
    validate_rules(rules, config.roles)

    db.execute(delete(WorkflowRule))
    for rule in rules:
        db.add(
            WorkflowRule(
                role=rule.role,
                submit_to_roles=list(rule.submit_to_roles),
                appeal_to_roles=list(rule.appeal_to_roles),
            )
        )
    db.commit()

    logger.info(f"Workflow rules replaced: {len(rules)} rule(s)")
    return rules


def add_role(db: Session, *, name: str, level: Optional[int] = None) -> WorkflowRole:
    name = str(name or "").strip()
    if not name or level is None:
        raise ValidationError("Role name and level are required")
    exists = db.execute(select(WorkflowRole.id).where(WorkflowRole.name == name)).first()
    if exists is not None:
        raise Conflict("Role already exists")

    role = WorkflowRole(name=name, level=int(level))
    db.add(role)
    db.commit()
    db.refresh(role)
    logger.info(f"Role {name!r} added at level {level}")
    return role


def remove_role(db: Session, *, name: str) -> None:
    role = db.execute(select(WorkflowRole).where(WorkflowRole.name == name)).scalar_one_or_none()
    if role is None:
        raise NotFound("Role not found")

    for rule in load_workflow_config(db).rules:
        if name in (rule.role, *rule.submit_to_roles, *rule.appeal_to_roles):
            raise ValidationError("Role is referenced by workflow rules")

    db.delete(role)
    db.commit()
    logger.info(f"Role {name!r} removed")
