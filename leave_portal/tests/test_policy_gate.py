"""
Tests for the statutory minimum gate and versioned policies
"""
import pytest
from leave_portal.core.exceptions import NotFound, StatutoryMinimumViolation, ValidationError
from leave_portal.models.audit_log import AuditLog
from leave_portal.models.leave import LeaveType
from leave_portal.services import policy_gate, policy_service


def test_annual_below_minimum_is_invalid():
    result = policy_gate.validate(LeaveType.ANNUAL, 10, minimums={"Annual": 15})

    assert result.valid is False
    assert result.statutory_minimum == 15
    assert "cannot be less than 15 days" in result.errors[0]
    assert "Act 651" in result.legal_reference


def test_annual_above_minimum_is_valid():
    result = policy_gate.validate(LeaveType.ANNUAL, 20, minimums={"Annual": 15})

    assert result.valid is True
    assert result.errors == []


def test_minimum_itself_is_valid():
    assert policy_gate.validate(LeaveType.MATERNITY, 84).valid is True
    assert policy_gate.validate(LeaveType.MATERNITY, 83).valid is False


def test_advisory_types_only_warn():
    result = policy_gate.validate(LeaveType.SICK, 5)

    assert result.valid is True
    assert result.errors == []
    assert len(result.warnings) == 1


def test_type_without_minimum_passes():
    result = policy_gate.validate(LeaveType.STUDY, 0)

    assert result.valid is True
    assert result.statutory_minimum is None


def test_enforce_rejection_is_audited(db, org):
    with pytest.raises(StatutoryMinimumViolation) as exc_info:
        policy_gate.enforce(db, LeaveType.ANNUAL, 10, org["hr"].id)

    assert exc_info.value.details["statutory_minimum"] == 21
    assert exc_info.value.details["attempted_max_days"] == 10
    audit = db.query(AuditLog).filter(AuditLog.action == "POLICY_STATUTORY_REJECTED").one()
    assert audit.actor_id == org["hr"].id
    assert audit.meta_json["leave_type"] == "Annual"


def test_create_policy_below_minimum_stores_nothing(db, org):
    with pytest.raises(StatutoryMinimumViolation):
        policy_service.create_policy(db, LeaveType.ANNUAL, 14, actor_id=org["hr"].id)

    assert policy_service.list_policies(db) == []


def test_policy_versions_and_activation(db, org):
    v1 = policy_service.create_policy(db, LeaveType.ANNUAL, 21, accrual_per_month=1.75, actor_id=org["hr"].id)
    assert v1.version == 1
    assert v1.active is False

    policy_service.activate_policy_version(db, v1.id, actor_id=org["hr"].id)
    assert policy_service.get_active_policy(db, LeaveType.ANNUAL).id == v1.id

    v2 = policy_service.create_policy(db, LeaveType.ANNUAL, 25, actor_id=org["hr"].id)
    assert v2.version == 2
    policy_service.activate_policy_version(db, v2.id, actor_id=org["hr"].id)

    db.refresh(v1)
    assert v1.active is False
    assert policy_service.get_active_policy(db, LeaveType.ANNUAL).id == v2.id
    actions = [a.action for a in db.query(AuditLog).order_by(AuditLog.id).all()]
    assert actions.count("POLICY_CREATE") == 2
    assert actions.count("POLICY_ACTIVATE") == 2


def test_create_policy_rejects_bad_levels(db, org):
    with pytest.raises(ValidationError):
        policy_service.create_policy(db, LeaveType.ANNUAL, 21, required_approval_levels=0)


def test_activate_unknown_policy(db):
    with pytest.raises(NotFound):
        policy_service.activate_policy_version(db, 999)
