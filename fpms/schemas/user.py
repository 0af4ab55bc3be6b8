# fpms/schemas/user.py
from fpms.schemas.common import CamelModel


class ActorPublic(CamelModel):
    """The caller as the workflow sees them."""
    id: str
    email: str
    name: str
    role: str
    role_key: str
    role_source: str
    college: str = ""
    department: str = ""
    designation: str | None = None
    total_score: float = 0.0
