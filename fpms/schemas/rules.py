# fpms/schemas/rules.py
from fpms.schemas.common import CamelModel


class WorkflowRuleIn(CamelModel):
    role: str
    submit_to_roles: list[str] = []
    appeal_to_roles: list[str] = []
    # older clients send a single target
    submit_to_role: str | None = None
    appeal_to_role: str | None = None


class WorkflowRulesUpdate(CamelModel):
    rules: list[WorkflowRuleIn]


class WorkflowRulePublic(CamelModel):
    role: str
    submit_to_roles: list[str] = []
    appeal_to_roles: list[str] = []


class WorkflowRulesPublic(CamelModel):
    roles: list[str] = []
    rules: list[WorkflowRulePublic] = []


class RoleCreate(CamelModel):
    name: str
    level: int | None = None


class RolePublic(CamelModel):
    id: int
    name: str
    level: int | None = None
