"""Appointment model definitions."""

from sqlalchemy import JSON, Column, Date, DateTime, ForeignKey, Index, Integer, String, func, text
from careslot.database import Base

STATUS_PENDING = 'pending'
STATUS_CONFIRMED = 'confirmed'
STATUS_COMPLETED = 'completed'
STATUS_CANCELLED = 'cancelled'
APPOINTMENT_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED, STATUS_COMPLETED, STATUS_CANCELLED)
ACTIVE_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED)

RESCHEDULE_NONE = 'none'
RESCHEDULE_PENDING = 'pending'
RESCHEDULE_APPROVED = 'approved'
RESCHEDULE_REJECTED = 'rejected'

ACTIVE_SLOT_INDEX = 'uq_appointments_active_slot'
_ACTIVE_SLOT_CLAUSE = text("status IN ('pending', 'confirmed')")


class Appointment(Base):
    """A patient's booking of one doctor slot, with its reschedule sub-record."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index(
            ACTIVE_SLOT_INDEX,
            'doctor_id',
            'date',
            'time',
            unique=True,
            sqlite_where=_ACTIVE_SLOT_CLAUSE,
            postgresql_where=_ACTIVE_SLOT_CLAUSE,
        ),
        Index('idx_appointments_doctor_date', 'doctor_id', 'date'),
        Index('idx_appointments_patient_date', 'patient_id', 'date'),
    )

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    date = Column(Date, nullable=False)
    time = Column(String(5), nullable=False)  # HH:MM
    status = Column(String(16), nullable=False, default=STATUS_PENDING)
    reason = Column(String(500), nullable=False)
    notes = Column(String(1000))
    pre_consultation_form = Column(JSON, nullable=False)

    cancelled_at = Column(DateTime)
    cancelled_by = Column(Integer, ForeignKey("users.id"))
    cancellation_reason = Column(String(500))

    reschedule_status = Column(String(16), nullable=False, default=RESCHEDULE_NONE)
    reschedule_requested_at = Column(DateTime)
    reschedule_requested_by = Column(Integer, ForeignKey("users.id"))
    reschedule_reason = Column(String(500))
    reschedule_new_date = Column(Date)
    reschedule_new_time = Column(String(5))
    reschedule_resolved_at = Column(DateTime)
    reschedule_resolved_by = Column(Integer, ForeignKey("users.id"))

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
