import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')
os.environ.setdefault('JWT_SECRET_KEY', 'test-secret-key-for-the-clinic-agenda-suite')

from backend.auth.dependencies import SessionContext  # noqa: E402
from backend.database import Base  # noqa: E402
from backend.models.appointment import Appointment  # noqa: E402
from backend.models.availability import DoctorAvailability  # noqa: E402
from backend.models.consultation import ConsultationRecord  # noqa: E402
from backend.models.patient import Patient  # noqa: E402
from backend.models.patient_note import PatientNote  # noqa: E402
from backend.models.user import User  # noqa: E402

TEST_TIME_SLOTS = ['08:00', '08:30', '09:00', '09:30', '14:00', '14:30']


@pytest.fixture
def clinic_db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    tables = [
        User.__table__,
        Patient.__table__,
        DoctorAvailability.__table__,
        Appointment.__table__,
        PatientNote.__table__,
        ConsultationRecord.__table__,
    ]
    Base.metadata.create_all(bind=engine, tables=tables)

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine, tables=list(reversed(tables)))


@pytest.fixture(autouse=True)
def skip_schema_checks(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('backend.routes.availability_routes.ensure_database_ready', lambda: None)
    monkeypatch.setattr('backend.routes.appointment_routes.ensure_database_ready', lambda: None)
    monkeypatch.setattr('backend.routes.doctor_routes.ensure_database_ready', lambda: None)
    monkeypatch.setattr('backend.routes.patient_routes.ensure_database_ready', lambda: None)
    monkeypatch.setattr('backend.routes.staff_routes.ensure_database_ready', lambda: None)
    monkeypatch.setattr('backend.core.config.CLINIC_TIME_SLOTS', TEST_TIME_SLOTS)


def _add_user(db, email: str, role: str, name: str) -> User:
    user = User(email=email, name=name, role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def doctor(clinic_db) -> User:
    return _add_user(clinic_db, 'house@clinic.cl', 'doctor', 'Gregory House')


@pytest.fixture
def other_doctor(clinic_db) -> User:
    return _add_user(clinic_db, 'wilson@clinic.cl', 'doctor', 'James Wilson')


@pytest.fixture
def receptionist(clinic_db) -> User:
    return _add_user(clinic_db, 'front@clinic.cl', 'receptionist', 'Front Desk')


@pytest.fixture
def patient(clinic_db) -> Patient:
    record = Patient(rut='12345678-5', first_name='Ana', last_name='Rojas', phone='+56911111111')
    clinic_db.add(record)
    clinic_db.commit()
    clinic_db.refresh(record)
    return record


@pytest.fixture
def doctor_session(doctor) -> SessionContext:
    return SessionContext.from_user(doctor)


@pytest.fixture
def receptionist_session(receptionist) -> SessionContext:
    return SessionContext.from_user(receptionist)


@pytest.fixture
def administrator(clinic_db) -> User:
    return _add_user(clinic_db, 'admin@clinic.cl', 'administrator', 'Clinic Admin')


@pytest.fixture
def administrator_session(administrator) -> SessionContext:
    return SessionContext.from_user(administrator)
