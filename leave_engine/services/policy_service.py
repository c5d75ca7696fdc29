"""
Leave policy service - per leave type entitlement and settlement rules.

Entitlements may not be configured below the statutory minimums (Labour Act,
2003 (Act 651) and Public Service practice).
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from leave_engine.core.exceptions import NotFoundError, ValidationError
from leave_engine.models.leave import LeaveType
from leave_engine.models.policy import LeavePolicy
from leave_engine.services.audit_service import log_audit

logger = logging.getLogger(__name__)

STATUTORY_MINIMUMS: Dict[LeaveType, Decimal] = {
    LeaveType.ANNUAL: Decimal("21"),
    LeaveType.SICK: Decimal("12"),
    LeaveType.MATERNITY: Decimal("84"),  # 12 weeks
    LeaveType.PATERNITY: Decimal("5"),
    LeaveType.COMPASSIONATE: Decimal("3"),
}

# Seed values per leave type
DEFAULT_POLICIES: Dict[LeaveType, Dict[str, Any]] = {
    LeaveType.ANNUAL: {
        "annual_entitlement": Decimal("21"), "carryover_allowed": True, "max_carryover": Decimal("5"),
        "expires_after_months": 3, "encashable": True,
    },
    LeaveType.SICK: {"annual_entitlement": Decimal("12")},
    LeaveType.SPECIAL_SERVICE: {"annual_entitlement": Decimal("0")},
    LeaveType.TRAINING: {"annual_entitlement": Decimal("0")},
    LeaveType.STUDY: {"annual_entitlement": Decimal("0")},
    LeaveType.MATERNITY: {"annual_entitlement": Decimal("84")},
    LeaveType.PATERNITY: {"annual_entitlement": Decimal("5")},
    LeaveType.COMPASSIONATE: {"annual_entitlement": Decimal("3")},
    LeaveType.UNPAID: {"annual_entitlement": Decimal("0"), "requires_balance": False},
}

POLICY_FIELDS = (
    "annual_entitlement",
    "carryover_allowed",
    "max_carryover",
    "expires_after_months",
    "requires_balance",
    "encashable",
    "active",
)


def validate_statutory_minimum(leave_type: LeaveType, annual_entitlement) -> None:
    """
    Raises:
        ValidationError: Entitlement below the statutory minimum for the leave type
    """
    minimum = STATUTORY_MINIMUMS.get(leave_type)
    if minimum is not None and Decimal(str(annual_entitlement)) < minimum:
        raise ValidationError(
            f"{leave_type.value} leave cannot be less than {minimum} days (statutory minimum)",
            leave_type=leave_type.value,
        )


def _validate_policy_values(values: Dict[str, Any]) -> None:
    if values.get("max_carryover") is not None and Decimal(str(values["max_carryover"])) < 0:
        raise ValidationError("max_carryover cannot be negative")
    if values.get("annual_entitlement") is not None and Decimal(str(values["annual_entitlement"])) < 0:
        raise ValidationError("annual_entitlement cannot be negative")
    if values.get("expires_after_months") is not None and values["expires_after_months"] < 1:
        raise ValidationError("expires_after_months must be at least 1")


def _snapshot(policy: LeavePolicy) -> Dict[str, Any]:
    return {f: getattr(policy, f) for f in POLICY_FIELDS}


def get_policy(db: Session, leave_type: LeaveType) -> LeavePolicy:
    policy = db.query(LeavePolicy).filter(LeavePolicy.leave_type == leave_type).first()
    if not policy:
        raise NotFoundError("Leave policy", leave_type.value)
    return policy


def list_policies(db: Session, active_only: bool = False) -> List[LeavePolicy]:
    q = db.query(LeavePolicy)
    if active_only:
        q = q.filter(LeavePolicy.active == True)  # noqa: E712
    return q.order_by(LeavePolicy.leave_type).all()


def upsert_policy(
    db: Session,
    leave_type: LeaveType,
    actor_id: Optional[int] = None,
    **values: Any,
) -> LeavePolicy:
    """
    Create or update the policy for a leave type

    Args:
        db: Database session
        leave_type: Leave type the policy governs
        actor_id: Employee making the change (None for seeding)
        **values: Any of annual_entitlement, carryover_allowed, max_carryover,
            expires_after_months, requires_balance, encashable, active

    Returns:
        Committed LeavePolicy instance
    """
    unknown = set(values) - set(POLICY_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown policy fields: {', '.join(sorted(unknown))}")
    _validate_policy_values(values)

    try:
        policy = db.query(LeavePolicy).filter(LeavePolicy.leave_type == leave_type).first()
        before = _snapshot(policy) if policy else None
        if policy is None:
            policy = LeavePolicy(leave_type=leave_type)
            db.add(policy)
        for field, value in values.items():
            if value is not None:
                setattr(policy, field, value)
        if policy.annual_entitlement is None:
            policy.annual_entitlement = Decimal("0")
        validate_statutory_minimum(leave_type, policy.annual_entitlement)
        db.flush()

        log_audit(
            db,
            event_type="LEAVE_POLICY_UPDATED" if before else "LEAVE_POLICY_CREATED",
            actor_id=actor_id,
            entity_type="leave_policy",
            entity_id=policy.id,
            before=before,
            after=_snapshot(policy),
            meta={"leave_type": leave_type},
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(policy)
    logger.info("leave policy saved: leave_type=%s", leave_type.value)
    return policy


def seed_default_policies(db: Session, actor_id: Optional[int] = None) -> List[LeavePolicy]:
    """Create the default policy for every leave type that has none. Existing policies are left alone."""
    created = []
    for leave_type, values in DEFAULT_POLICIES.items():
        exists = db.query(LeavePolicy).filter(LeavePolicy.leave_type == leave_type).first()
        if exists:
            continue
        created.append(upsert_policy(db, leave_type, actor_id=actor_id, **values))
    logger.info("default leave policies seeded: created=%s", len(created))
    return created
