"""
Identity verification and actor resolution.

Tokens are JWTs signed with ``settings.SECRET_KEY``. The verified claims are
combined with the user's profile row to build the ``Actor`` that every
workflow operation runs as.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from fpms.core.config import settings
from fpms.core.errors import Forbidden, InvalidToken, Unauthorized
from fpms.core.roles import (
    infer_role_from_email,
    normalize_role_key,
    refine_specific_role,
    resolve_actor_role,
)
from fpms.db.session import get_db
from fpms.models.user import User

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

# claims copied into TokenIdentity.custom_claims
_CUSTOM_CLAIM_KEYS = ("committeeMember", "college", "department", "name", "claims")


@dataclass
class TokenIdentity:
    subject_id: str
    email: str
    role_claim: Optional[str] = None
    custom_claims: dict[str, Any] = field(default_factory=dict)


@dataclass
class Actor:
    id: str
    uid: str
    email: str
    name: str
    role: str
    role_key: str
    college: str = ""
    department: str = ""
    role_source: str = "none"

    @property
    def identifiers(self) -> set[str]:
        """Lowercased id/uid/email used for ownership checks."""
        values = (self.id, self.uid, self.email)
        return {str(v).strip().lower() for v in values if str(v or "").strip()}


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_token(token: str) -> TokenIdentity:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as exc:
        logger.info(f"Rejected token: {exc}")
        raise InvalidToken()

    subject_id = str(payload.get("sub") or "").strip()
    if not subject_id:
        raise InvalidToken()

    nested = payload.get("claims") if isinstance(payload.get("claims"), dict) else {}
    role_claim = payload.get("role") or nested.get("role")

    return TokenIdentity(
        subject_id=subject_id,
        email=str(payload.get("email") or "").strip().lower(),
        role_claim=str(role_claim).strip() if role_claim else None,
        custom_claims={k: payload[k] for k in _CUSTOM_CLAIM_KEYS if k in payload},
    )


def build_actor(identity: TokenIdentity, profile: Optional[User]) -> Actor:
    """
    Resolve the acting role with the precedence
    claim > committee-member claim > profile > inferred from email.
    """
    claims = identity.custom_claims
    nested = claims.get("claims") if isinstance(claims.get("claims"), dict) else {}

    committee_member = bool(claims.get("committeeMember") or nested.get("committeeMember"))
    role, source = resolve_actor_role([
        ("claim", identity.role_claim),
        ("committee_claim", "committee" if committee_member else None),
        ("profile", profile.role if profile else None),
        ("email", infer_role_from_email(identity.email)),
    ])
    role = refine_specific_role(role, profile.role if profile else None)

    email = identity.email or (profile.email.lower() if profile and profile.email else "")
    name = (
        claims.get("name")
        or (profile.name if profile else "")
        or (email.split("@")[0] if email else "User")
    )

    return Actor(
        id=identity.subject_id,
        uid=identity.subject_id,
        email=email,
        name=str(name),
        role=role,
        role_key=normalize_role_key(role),
        college=str(claims.get("college") or nested.get("college") or (profile.college if profile else "") or ""),
        department=str(
            claims.get("department") or nested.get("department") or (profile.department if profile else "") or ""
        ),
        role_source=source,
    )


def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Actor:
    if credentials is None or not credentials.credentials:
        raise Unauthorized("No token provided")

    identity = verify_token(credentials.credentials)
    profile = db.get(User, identity.subject_id)
    if profile is not None and profile.is_active is False:
        raise Forbidden("Account is inactive")

    return build_actor(identity, profile)


def require_roles(*role_keys: str):
    """Dependency factory restricting an endpoint to the given role keys."""
    allowed = {normalize_role_key(r) for r in role_keys}

    def _checker(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role_key not in allowed:
            raise Forbidden("Not authorized for this operation")
        return actor

    return _checker
