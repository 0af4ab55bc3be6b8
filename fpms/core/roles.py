"""
Role label handling.

Every comparison between an actor's role and a routing-table role goes
through ``normalize_role_key``; raw labels are only kept for display.
"""
import re
from typing import Iterable, Optional, Sequence

_NON_ALNUM = re.compile(r"[^a-z0-9]")

# key -> canonical key, applied after stripping punctuation/whitespace
_KEY_SYNONYMS = {
    "principal": "principle",
    "principle": "principle",
    "admin": "principle",
    "viceprincipal": "viceprinciple",
    "viceprinciple": "viceprinciple",
    "committee": "committee",
    "commitee": "committee",
}

# display label -> canonical display label
_LABEL_SYNONYMS = {
    "principal": "principle",
    "principle": "principle",
    "admin": "principle",
    "vice principal": "vice principle",
    "vice principle": "vice principle",
    "vice-principal": "vice principle",
    "viceprincipal": "vice principle",
    "viceprinciple": "vice principle",
    "committee": "committee",
    "commitee": "committee",
}


def normalize_role_key(value) -> str:
    """
    Canonical comparison key for a role label.

    Never fails: unknown labels come back lowercased with everything outside
    ``[a-z0-9]`` removed. Dean labels keep their own key, so
    ``"Dean of Science"`` and ``"Dean of Engineering"`` stay distinct.
    """
    cleaned = _NON_ALNUM.sub("", str(value or "").lower())
    return _KEY_SYNONYMS.get(cleaned, cleaned)


def normalize_role_label(value) -> str:
    role = str(value or "").strip().lower()
    return _LABEL_SYNONYMS.get(role, role)


def is_dean_role(value) -> bool:
    return str(value or "").strip().lower().startswith("dean")


def is_hod_role(value) -> bool:
    return str(value or "").strip().lower().startswith("hod")


def unique_role_labels(values: Optional[Iterable]) -> list[str]:
    """Trim, drop blanks and de-duplicate, keeping first-seen order."""
    if not values or isinstance(values, str):
        return []
    seen: dict[str, None] = {}
    for item in values:
        label = str(item or "").strip()
        if label:
            seen.setdefault(label, None)
    return list(seen)


def infer_role_from_email(email: str) -> str:
    value = str(email or "").lower()
    if "superadmin" in value:
        return "superadmin"
    if "committee" in value:
        return "committee"
    if "principle" in value or "principal" in value or "admin" in value:
        return "principle"
    if "dean" in value:
        return "dean"
    if "hod" in value:
        return "hod"
    return "faculty"


def resolve_actor_role(sources: Sequence[tuple[str, Optional[str]]]) -> tuple[str, str]:
    """
    Pick the actor's role from an ordered precedence chain.

    ``sources`` is a list of ``(source_name, value)`` pairs, highest
    precedence first. Returns ``(role, source_name)`` for the first non-blank
    value, or ``("", "none")`` when every source is empty.
    """
    for source, value in sources:
        role = str(value or "").strip()
        if role:
            return role, source
    return "", "none"


def refine_specific_role(role: str, profile_role: Optional[str]) -> str:
    """
    Replace a generic ``dean``/``principle`` role with the profile's
    specific label (e.g. ``Dean of Science``) so each dean stays
    independently addressable.
    """
    specific = str(profile_role or "").strip()
    if not specific:
        return role

    key = normalize_role_key(role)
    if key == "dean" and normalize_role_key(specific).startswith("dean"):
        return specific
    if key in ("principle", "viceprinciple") and normalize_role_key(specific) == key:
        return specific
    return role
