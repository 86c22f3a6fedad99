"""
Workflow Planner - derives the ordered approval chain for a leave request.

The chain depends only on the applicant's position (unit -> directorate ->
department -> HQ) and on the leave type and duration; `plan` touches no
database and always returns the same levels for the same inputs.

Base routing by applicant role (nobody approves their own leave):

    STAFF / SUPERVISOR  -> reporting manager, HR officer
    UNIT_HEAD           -> director (chief director without a directorate), HR officer
    HR_OFFICER          -> HR director
    DIRECTOR            -> HR officer, chief director
    HR_DIRECTOR         -> chief director
    CHIEF_DIRECTOR      -> HR director, outcome is RECORDED rather than APPROVED

On top of that, extended leave and director-signoff leave types get a
director-level sign-off before HR validation, and externally cleared types
(study, secondment, leave of absence) end with the chief director.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Tuple, Union

from leave_portal.core.config import settings
from leave_portal.core.exceptions import OrgInfoNotFound, ValidationError
from leave_portal.models.employee import Role
from leave_portal.models.leave import (
    ApproverRole,
    LeaveType,
    DIRECTOR_SIGNOFF_LEAVE_TYPES,
    EXTERNAL_CLEARANCE_LEAVE_TYPES,
)
from leave_portal.services.org_directory import OrgInfo

HR_APPROVER_ROLES = (ApproverRole.HR_OFFICER, ApproverRole.HR_DIRECTOR)

# Applicants who rank at or above a directorate director
SENIOR_ROLES = frozenset({Role.DIRECTOR, Role.HR_DIRECTOR, Role.CHIEF_DIRECTOR})


@dataclass(frozen=True)
class ApprovalLevelSpec:
    level: int
    approver_role: ApproverRole
    approver_id: Optional[int] = None


@dataclass(frozen=True)
class PlannerRules:
    extended_leave_days: int = 10
    min_levels: int = 1


def rules_from_settings(required_approval_levels: Optional[int] = None) -> PlannerRules:
    return PlannerRules(
        extended_leave_days=settings.EXTENDED_LEAVE_DAYS,
        min_levels=required_approval_levels or 1,
    )


def is_record_only(org_info: OrgInfo) -> bool:
    """Chief director leave is recorded by HR, not approved."""
    return org_info.role == Role.CHIEF_DIRECTOR


def _base_chain(org_info: OrgInfo) -> List[Tuple[ApproverRole, Optional[int]]]:
    role = org_info.role
    if role == Role.CHIEF_DIRECTOR:
        return [(ApproverRole.HR_DIRECTOR, None)]
    if role == Role.HR_DIRECTOR:
        return [(ApproverRole.CHIEF_DIRECTOR, None)]
    if role == Role.DIRECTOR:
        return [(ApproverRole.HR_OFFICER, None), (ApproverRole.CHIEF_DIRECTOR, None)]
    if role == Role.HR_OFFICER:
        return [(ApproverRole.HR_DIRECTOR, None)]
    if role == Role.UNIT_HEAD:
        return [(_director_role(org_info), None), (ApproverRole.HR_OFFICER, None)]
    if role in (Role.STAFF, Role.SUPERVISOR):
        if org_info.manager_id is None:
            raise OrgInfoNotFound(
                f"Employee {org_info.employee_id} has no reporting manager",
                {"employee_id": org_info.employee_id},
            )
        return [(ApproverRole.MANAGER, org_info.manager_id), (ApproverRole.HR_OFFICER, None)]
    raise OrgInfoNotFound(
        f"No approval routing for role {role}",
        {"employee_id": org_info.employee_id, "role": str(role)},
    )


def _director_role(org_info: OrgInfo) -> ApproverRole:
    if org_info.directorate and org_info.role not in SENIOR_ROLES:
        return ApproverRole.DIRECTOR
    return ApproverRole.CHIEF_DIRECTOR


def _roles(chain) -> List[ApproverRole]:
    return [role for role, _ in chain]


def _insert_before_hr(chain, entry) -> None:
    for index, (role, _) in enumerate(chain):
        if role in HR_APPROVER_ROLES:
            chain.insert(index, entry)
            return
    chain.append(entry)


def plan(
    org_info: OrgInfo,
    leave_type: LeaveType,
    days: Union[int, float, Decimal],
    rules: Optional[PlannerRules] = None,
) -> List[ApprovalLevelSpec]:
    """
    Compute the ordered approval levels for a request.

    Args:
        org_info: Applicant's organizational position
        leave_type: Requested leave type
        days: Requested day count
        rules: Thresholds (defaults to settings)

    Returns:
        ApprovalLevelSpec list with levels numbered 1..n

    Raises:
        OrgInfoNotFound: The applicant's position cannot be routed
        ValidationError: days <= 0
    """
    if org_info is None:
        raise OrgInfoNotFound("Organizational info is required to plan approvals")
    if Decimal(str(days)) <= 0:
        raise ValidationError("Day count must be greater than zero")
    rules = rules or rules_from_settings()
    leave_type = LeaveType(leave_type)

    chain = _base_chain(org_info)

    if not is_record_only(org_info):
        needs_signoff = Decimal(str(days)) > rules.extended_leave_days or leave_type in DIRECTOR_SIGNOFF_LEAVE_TYPES
        signoff_role = _director_role(org_info)
        roles = _roles(chain)
        if needs_signoff and signoff_role not in roles and ApproverRole.CHIEF_DIRECTOR not in roles:
            _insert_before_hr(chain, (signoff_role, None))

        if leave_type in EXTERNAL_CLEARANCE_LEAVE_TYPES and ApproverRole.CHIEF_DIRECTOR not in _roles(chain):
            chain.append((ApproverRole.CHIEF_DIRECTOR, None))

        for padding in (ApproverRole.DIRECTOR, ApproverRole.CHIEF_DIRECTOR):
            if len(chain) >= rules.min_levels:
                break
            if padding in _roles(chain):
                continue
            if padding == ApproverRole.DIRECTOR and _director_role(org_info) != ApproverRole.DIRECTOR:
                continue
            _insert_before_hr(chain, (padding, None))

    return [
        ApprovalLevelSpec(level=index, approver_role=role, approver_id=approver_id)
        for index, (role, approver_id) in enumerate(chain, start=1)
    ]
