from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from careslot.core import config


engine = create_engine(config.DATABASE_URL, echo=config.DATABASE_ECHO)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_appointment_schema_checked = False


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_appointment_schema() -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(engine)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('appointments')}
        migration_steps = [
            ('notes', 'ALTER TABLE appointments ADD COLUMN notes VARCHAR(1000)'),
            ('pre_consultation_form', 'ALTER TABLE appointments ADD COLUMN pre_consultation_form JSON'),
            ('cancelled_at', 'ALTER TABLE appointments ADD COLUMN cancelled_at TIMESTAMP'),
            ('cancelled_by', 'ALTER TABLE appointments ADD COLUMN cancelled_by INTEGER'),
            ('cancellation_reason', 'ALTER TABLE appointments ADD COLUMN cancellation_reason VARCHAR(500)'),
            ('reschedule_status', "ALTER TABLE appointments ADD COLUMN reschedule_status VARCHAR(16) DEFAULT 'none'"),
            ('reschedule_requested_at', 'ALTER TABLE appointments ADD COLUMN reschedule_requested_at TIMESTAMP'),
            ('reschedule_requested_by', 'ALTER TABLE appointments ADD COLUMN reschedule_requested_by INTEGER'),
            ('reschedule_reason', 'ALTER TABLE appointments ADD COLUMN reschedule_reason VARCHAR(500)'),
            ('reschedule_new_date', 'ALTER TABLE appointments ADD COLUMN reschedule_new_date DATE'),
            ('reschedule_new_time', 'ALTER TABLE appointments ADD COLUMN reschedule_new_time VARCHAR(5)'),
            ('reschedule_resolved_at', 'ALTER TABLE appointments ADD COLUMN reschedule_resolved_at TIMESTAMP'),
            ('reschedule_resolved_by', 'ALTER TABLE appointments ADD COLUMN reschedule_resolved_by INTEGER'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text(
                    'CREATE UNIQUE INDEX IF NOT EXISTS uq_appointments_active_slot '
                    "ON appointments(doctor_id, date, time) WHERE status IN ('pending', 'confirmed')"
                )
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_doctor_date ON appointments(doctor_id, date)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_patient_date ON appointments(patient_id, date)')
            )

        _appointment_schema_checked = True
