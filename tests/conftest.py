import itertools
import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')
os.environ.setdefault('JWT_SECRET_KEY', 'careslot-test-secret-key-with-32-bytes')

from careslot.database import Base  # noqa: E402
from careslot.models.appointment import Appointment  # noqa: E402,F401
from careslot.models.user import ROLE_DOCTOR, ROLE_PATIENT, User  # noqa: E402
from careslot.scheduling.availability import DEFAULT_AVAILABILITY  # noqa: E402
from careslot.scheduling.schemas import PreConsultationForm  # noqa: E402


@pytest.fixture
def db_session():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_user(db_session):
    counter = itertools.count(1)

    def _make_user(role: str, availability: dict | None = None) -> User:
        number = next(counter)
        user = User(
            email=f'{role}{number}@example.com',
            name=f'{role.title()} {number}',
            role=role,
            availability=availability,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def doctor(make_user) -> User:
    return make_user(ROLE_DOCTOR, availability=DEFAULT_AVAILABILITY)


@pytest.fixture
def patient(make_user) -> User:
    return make_user(ROLE_PATIENT)


@pytest.fixture
def other_patient(make_user) -> User:
    return make_user(ROLE_PATIENT)


@pytest.fixture
def form() -> PreConsultationForm:
    return PreConsultationForm(symptoms=['headache'], allergies=['penicillin'])
