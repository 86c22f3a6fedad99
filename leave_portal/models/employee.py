"""
Employee directory model.

The organisational fields (unit -> directorate -> department -> duty station)
are what the workflow planner routes on; the directory itself is owned by the
staff-records system and only read here.
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from leave_portal.db.base import Base


class Role(str, enum.Enum):
    STAFF = "STAFF"
    SUPERVISOR = "SUPERVISOR"
    UNIT_HEAD = "UNIT_HEAD"
    DIRECTOR = "DIRECTOR"
    HR_OFFICER = "HR_OFFICER"
    HR_DIRECTOR = "HR_DIRECTOR"
    CHIEF_DIRECTOR = "CHIEF_DIRECTOR"


HR_ROLES = (Role.HR_OFFICER, Role.HR_DIRECTOR)


class DutyStation(str, enum.Enum):
    HQ = "HQ"
    REGION = "Region"
    DISTRICT = "District"
    AGENCY = "Agency"


class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    emp_code = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    role = Column(SQLEnum(Role, name="employee_role"), nullable=False, default=Role.STAFF)
    unit = Column(String, nullable=True)
    directorate = Column(String, nullable=True)
    department = Column(String, nullable=True)
    duty_station = Column(
        SQLEnum(DutyStation, name="duty_station", values_callable=lambda e: [m.value for m in e]),
        nullable=True,
    )
    reporting_manager_id = Column(Integer, ForeignKey("employees.id"), nullable=True, index=True)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp(), nullable=False)

    reporting_manager = relationship("Employee", remote_side=[id], backref="direct_reports")
    leave_requests = relationship("LeaveRequest", foreign_keys="LeaveRequest.employee_id", back_populates="employee")

    @property
    def is_hr(self) -> bool:
        return self.role in HR_ROLES
