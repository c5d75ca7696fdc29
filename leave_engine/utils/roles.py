"""
Approver roles and the single canonicalization point for role strings.

Role values arrive from HR records, request headers and legacy exports in many
spellings ("hr", "HR_OFFICER", "hod", "Director"). Everything past the boundary
works with ``ApproverRole`` members only.
"""
import enum
from typing import Union

from leave_engine.core.exceptions import ValidationError


class ApproverRole(str, enum.Enum):
    EMPLOYEE = "EMPLOYEE"
    SUPERVISOR = "SUPERVISOR"
    UNIT_HEAD = "UNIT_HEAD"
    HEAD_OF_DEPARTMENT = "HEAD_OF_DEPARTMENT"
    HEAD_OF_INDEPENDENT_UNIT = "HEAD_OF_INDEPENDENT_UNIT"
    DIRECTOR = "DIRECTOR"
    HR_OFFICER = "HR_OFFICER"
    HR_DIRECTOR = "HR_DIRECTOR"
    CHIEF_DIRECTOR = "CHIEF_DIRECTOR"
    AUDITOR = "AUDITOR"
    SYSTEM_ADMIN = "SYSTEM_ADMIN"


# Legacy and informal spellings, keyed by their normalized form
ROLE_ALIASES = {
    "STAFF": ApproverRole.EMPLOYEE,
    "MANAGER": ApproverRole.SUPERVISOR,
    "IMMEDIATE_SUPERVISOR": ApproverRole.SUPERVISOR,
    "DIVISION_HEAD": ApproverRole.UNIT_HEAD,
    "HOD": ApproverRole.HEAD_OF_DEPARTMENT,
    "DIRECTORATE_HEAD": ApproverRole.DIRECTOR,
    "DEPUTY_DIRECTOR": ApproverRole.DIRECTOR,
    "REGIONAL_MANAGER": ApproverRole.DIRECTOR,
    "HR": ApproverRole.HR_OFFICER,
    "HR_ASSISTANT": ApproverRole.HR_OFFICER,
    "INTERNAL_AUDITOR": ApproverRole.AUDITOR,
    "ADMIN": ApproverRole.SYSTEM_ADMIN,
    "SYS_ADMIN": ApproverRole.SYSTEM_ADMIN,
}

# Roles allowed to decide any approval level
ELEVATED_ROLES = frozenset({ApproverRole.SYSTEM_ADMIN})

# Roles allowed to create and decide encashment requests
ENCASHMENT_ROLES = frozenset({ApproverRole.HR_DIRECTOR, ApproverRole.CHIEF_DIRECTOR})

ROLE_DISPLAY_NAMES = {
    ApproverRole.EMPLOYEE: "Employee",
    ApproverRole.SUPERVISOR: "Immediate Supervisor",
    ApproverRole.UNIT_HEAD: "Unit Head",
    ApproverRole.HEAD_OF_DEPARTMENT: "Head of Department (HoD)",
    ApproverRole.HEAD_OF_INDEPENDENT_UNIT: "Head of Independent Unit",
    ApproverRole.DIRECTOR: "Director",
    ApproverRole.HR_OFFICER: "HR Officer",
    ApproverRole.HR_DIRECTOR: "HR Director",
    ApproverRole.CHIEF_DIRECTOR: "Chief Director",
    ApproverRole.AUDITOR: "Internal Auditor",
    ApproverRole.SYSTEM_ADMIN: "System Administrator",
}


def _normalize(value: str) -> str:
    return "_".join(value.strip().replace("-", " ").replace("_", " ").split()).upper()


def canonicalize_role(role: Union[ApproverRole, str, None]) -> ApproverRole:
    """
    Map any accepted role spelling to its ApproverRole member

    Examples:
        >>> canonicalize_role("hr")
        <ApproverRole.HR_OFFICER: 'HR_OFFICER'>
        >>> canonicalize_role("Chief Director")
        <ApproverRole.CHIEF_DIRECTOR: 'CHIEF_DIRECTOR'>

    Raises:
        ValidationError: If the value is empty or names no known role
    """
    if isinstance(role, ApproverRole):
        return role
    if role is None or not str(role).strip():
        raise ValidationError("Role is required")
    key = _normalize(str(role))
    try:
        return ApproverRole(key)
    except ValueError:
        pass
    if key in ROLE_ALIASES:
        return ROLE_ALIASES[key]
    raise ValidationError(f"Unknown role: {role}")


def role_name(role) -> str:
    """
    Safely extract role name from either enum or string

    Args:
        role: Either an ApproverRole instance or a string

    Returns:
        str: The role name as string
    """
    return role.value if hasattr(role, "value") else str(role)


def is_elevated(role: Union[ApproverRole, str]) -> bool:
    return canonicalize_role(role) in ELEVATED_ROLES
