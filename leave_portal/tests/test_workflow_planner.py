"""
Tests for approval chain planning
"""
import pytest
from leave_portal.core.exceptions import OrgInfoNotFound, ValidationError
from leave_portal.models.employee import Role
from leave_portal.models.leave import ApproverRole, LeaveType
from leave_portal.services.org_directory import OrgInfo
from leave_portal.services.workflow_planner import PlannerRules, is_record_only, plan

RULES = PlannerRules(extended_leave_days=10, min_levels=1)


def _staff(**overrides):
    fields = dict(employee_id=10, role=Role.STAFF, unit="Accounts", directorate="Finance", manager_id=7)
    fields.update(overrides)
    return OrgInfo(**fields)


def _roles(specs):
    return [s.approver_role for s in specs]


def test_staff_short_annual_leave_goes_to_manager_then_hr():
    specs = plan(_staff(), LeaveType.ANNUAL, 5, RULES)

    assert _roles(specs) == [ApproverRole.MANAGER, ApproverRole.HR_OFFICER]
    assert [s.level for s in specs] == [1, 2]
    assert specs[0].approver_id == 7
    assert specs[1].approver_id is None


def test_extended_leave_adds_director_before_hr():
    specs = plan(_staff(), LeaveType.ANNUAL, 15, RULES)

    assert _roles(specs) == [ApproverRole.MANAGER, ApproverRole.DIRECTOR, ApproverRole.HR_OFFICER]


def test_extended_threshold_is_exclusive():
    assert len(plan(_staff(), LeaveType.ANNUAL, 10, RULES)) == 2
    assert len(plan(_staff(), LeaveType.ANNUAL, 11, RULES)) == 3


def test_maternity_needs_director_signoff_regardless_of_duration():
    specs = plan(_staff(), LeaveType.MATERNITY, 3, RULES)

    assert ApproverRole.DIRECTOR in _roles(specs)


def test_study_leave_ends_with_chief_director():
    specs = plan(_staff(), LeaveType.STUDY, 5, RULES)

    assert _roles(specs) == [
        ApproverRole.MANAGER,
        ApproverRole.DIRECTOR,
        ApproverRole.HR_OFFICER,
        ApproverRole.CHIEF_DIRECTOR,
    ]


def test_staff_without_directorate_gets_chief_director_signoff():
    specs = plan(_staff(directorate=None), LeaveType.ANNUAL, 15, RULES)

    assert _roles(specs) == [ApproverRole.MANAGER, ApproverRole.CHIEF_DIRECTOR, ApproverRole.HR_OFFICER]


def test_staff_without_manager_cannot_be_routed():
    with pytest.raises(OrgInfoNotFound):
        plan(_staff(manager_id=None), LeaveType.ANNUAL, 5, RULES)


def test_unit_head_goes_to_director_then_hr():
    org_info = OrgInfo(employee_id=3, role=Role.UNIT_HEAD, unit="Accounts", directorate="Finance")

    assert _roles(plan(org_info, LeaveType.ANNUAL, 5, RULES)) == [ApproverRole.DIRECTOR, ApproverRole.HR_OFFICER]


def test_director_chain_is_not_extended_for_long_leave():
    org_info = OrgInfo(employee_id=4, role=Role.DIRECTOR, directorate="Finance")

    specs = plan(org_info, LeaveType.ANNUAL, 20, RULES)

    assert _roles(specs) == [ApproverRole.HR_OFFICER, ApproverRole.CHIEF_DIRECTOR]


def test_chief_director_leave_is_recorded_by_hr_director():
    org_info = OrgInfo(employee_id=1, role=Role.CHIEF_DIRECTOR)

    specs = plan(org_info, LeaveType.STUDY, 30, RULES)

    assert _roles(specs) == [ApproverRole.HR_DIRECTOR]
    assert is_record_only(org_info)
    assert not is_record_only(_staff())


def test_min_levels_pads_with_director():
    specs = plan(_staff(), LeaveType.ANNUAL, 5, PlannerRules(extended_leave_days=10, min_levels=3))

    assert _roles(specs) == [ApproverRole.MANAGER, ApproverRole.DIRECTOR, ApproverRole.HR_OFFICER]


def test_plan_is_deterministic():
    first = plan(_staff(), LeaveType.STUDY_WITH_PAY, 12, RULES)
    second = plan(_staff(), LeaveType.STUDY_WITH_PAY, 12, RULES)

    assert first == second


def test_non_positive_days_rejected():
    with pytest.raises(ValidationError):
        plan(_staff(), LeaveType.ANNUAL, 0, RULES)
