"""
Employee/Org directory - read-only view of the staff records the planner routes on
"""
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.orm import Session

from leave_portal.core.exceptions import NotFound, OrgInfoNotFound
from leave_portal.models.employee import Employee, Role, HR_ROLES
from leave_portal.models.leave import ApproverRole


@dataclass(frozen=True)
class OrgInfo:
    employee_id: int
    role: Role
    unit: Optional[str] = None
    directorate: Optional[str] = None
    department: Optional[str] = None
    duty_station: Optional[str] = None
    manager_id: Optional[int] = None


def get_employee(db: Session, employee_id: int) -> Employee:
    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if not employee:
        raise NotFound(f"Employee {employee_id} not found")
    return employee


def get_org_info(db: Session, employee_id: int) -> OrgInfo:
    """
    Resolve an employee's position in the hierarchy.

    Raises:
        OrgInfoNotFound: Unknown or inactive employee
    """
    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if not employee or not employee.active:
        raise OrgInfoNotFound(
            f"Organizational info for employee {employee_id} could not be resolved",
            {"employee_id": employee_id},
        )
    return to_org_info(employee)


def to_org_info(employee: Employee) -> OrgInfo:
    return OrgInfo(
        employee_id=employee.id,
        role=Role(employee.role),
        unit=employee.unit,
        directorate=employee.directorate,
        department=employee.department,
        duty_station=employee.duty_station.value if employee.duty_station else None,
        manager_id=employee.reporting_manager_id,
    )


def find_approvers(db: Session, role: ApproverRole, org_info: OrgInfo) -> List[Employee]:
    """
    Resolve an approver role to the people who hold it for this applicant.

    UNIT_HEAD is scoped to the applicant's unit, DIRECTOR to the directorate;
    HR and chief director roles are organisation-wide. MANAGER resolves to the
    reporting manager.
    """
    role = ApproverRole(role)
    query = db.query(Employee).filter(Employee.active == True)  # noqa: E712

    if role == ApproverRole.MANAGER:
        if org_info.manager_id is None:
            return []
        query = query.filter(Employee.id == org_info.manager_id)
    elif role == ApproverRole.UNIT_HEAD:
        query = query.filter(Employee.role == Role.UNIT_HEAD, Employee.unit == org_info.unit)
    elif role == ApproverRole.DIRECTOR:
        query = query.filter(Employee.role == Role.DIRECTOR, Employee.directorate == org_info.directorate)
    else:
        query = query.filter(Employee.role == Role(role.value))

    return [e for e in query.order_by(Employee.id).all() if e.id != org_info.employee_id]


def find_hr_staff(db: Session) -> List[Employee]:
    return (
        db.query(Employee)
        .filter(Employee.active == True, Employee.role.in_(HR_ROLES))  # noqa: E712
        .order_by(Employee.id)
        .all()
    )
