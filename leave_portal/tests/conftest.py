"""
Pytest configuration and fixtures
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.engine import Engine
from leave_portal.main import app
from leave_portal.db.base import Base
from leave_portal.core.deps import get_db
from leave_portal.core.security import create_access_token
from leave_portal.services import balance_ledger

# Import all models to ensure they're registered with Base.metadata
from leave_portal.models import (
    Employee,
    Role,
    LeaveType,
)  # noqa


# Use in-memory SQLite for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Enable foreign keys for SQLite
@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db):
    """Test client fixture with database override"""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_employee(db, emp_code, role=Role.STAFF, **fields):
    fields.setdefault("active", True)
    employee = Employee(emp_code=emp_code, name=fields.pop("name", emp_code), role=role, **fields)
    db.add(employee)
    db.commit()
    db.refresh(employee)
    return employee


def auth_headers(employee):
    token = create_access_token({"sub": str(employee.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def org(db):
    """
    A small directorate:

        chief (CHIEF_DIRECTOR), hr_director, hr (HR_OFFICER)
        director (Finance directorate) -> unit_head (Accounts unit)
        manager (SUPERVISOR, reports to unit_head) -> staff
        peer (STAFF, same manager)
    """
    chief = make_employee(db, "CD001", Role.CHIEF_DIRECTOR, name="Chief Director")
    hr_director = make_employee(db, "HRD001", Role.HR_DIRECTOR, name="HR Director")
    hr = make_employee(db, "HR001", Role.HR_OFFICER, name="HR Officer")
    director = make_employee(db, "DIR001", Role.DIRECTOR, name="Finance Director", directorate="Finance")
    unit_head = make_employee(
        db, "UH001", Role.UNIT_HEAD, name="Accounts Head",
        unit="Accounts", directorate="Finance", reporting_manager_id=director.id,
    )
    manager = make_employee(
        db, "SUP001", Role.SUPERVISOR, name="Supervisor",
        unit="Accounts", directorate="Finance", reporting_manager_id=unit_head.id,
    )
    staff = make_employee(
        db, "EMP001", Role.STAFF, name="Ama Mensah",
        unit="Accounts", directorate="Finance", reporting_manager_id=manager.id,
    )
    peer = make_employee(
        db, "EMP002", Role.STAFF, name="Kofi Boateng",
        unit="Accounts", directorate="Finance", reporting_manager_id=manager.id,
    )
    return {
        "chief": chief,
        "hr_director": hr_director,
        "hr": hr,
        "director": director,
        "unit_head": unit_head,
        "manager": manager,
        "staff": staff,
        "peer": peer,
    }


@pytest.fixture
def annual_balance(db, org):
    """Staff member starts with 20 days of annual leave"""
    balance_ledger.ensure_balance(db, org["staff"].id, LeaveType.ANNUAL, opening=20, actor_id=org["hr"].id)
    db.commit()
    return org["staff"]


@pytest.fixture
def new_employee(db):
    """Factory for extra employees: new_employee("EMP009", Role.STAFF, unit=...)"""
    def _make(emp_code, role=Role.STAFF, **fields):
        return make_employee(db, emp_code, role, **fields)
    return _make


@pytest.fixture
def headers_for():
    return auth_headers


@pytest.fixture
def file_sessions(tmp_path):
    """
    Session factory on a file-backed sqlite database, so separate sessions
    use separate connections and see each other's commits.

    Seeds staff -> manager plus two HR officers; staff has 20 days of
    annual leave. Yields (Session, ids).
    """
    file_engine = create_engine(
        f"sqlite:///{tmp_path / 'leave_portal.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=file_engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=file_engine)

    seed = Session()
    hr = make_employee(seed, "HR001", Role.HR_OFFICER)
    hr2 = make_employee(seed, "HR002", Role.HR_OFFICER)
    manager = make_employee(seed, "SUP001", Role.SUPERVISOR, unit="Accounts", directorate="Finance")
    staff = make_employee(
        seed, "EMP001", Role.STAFF,
        unit="Accounts", directorate="Finance", reporting_manager_id=manager.id,
    )
    balance_ledger.ensure_balance(seed, staff.id, LeaveType.ANNUAL, opening=20)
    seed.commit()
    ids = {"hr": hr.id, "hr2": hr2.id, "manager": manager.id, "staff": staff.id}
    seed.close()

    yield Session, ids
    file_engine.dispose()
