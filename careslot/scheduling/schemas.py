from pydantic import BaseModel, Field, field_validator, model_validator

from careslot.scheduling.slots import to_minutes

MAX_MEDICAL_HISTORY_LENGTH = 2000
MAX_ADDITIONAL_NOTES_LENGTH = 1000


class DayHours(BaseModel):
    """Working hours for one weekday of a doctor's template."""

    start: str = '09:00'
    end: str = '17:00'
    available: bool = False

    @field_validator('start', 'end')
    @classmethod
    def validate_time_of_day(cls, value: str) -> str:
        normalized = value.strip()
        to_minutes(normalized)
        return normalized

    @model_validator(mode='after')
    def validate_range(self) -> 'DayHours':
        if self.available and to_minutes(self.start) >= to_minutes(self.end):
            raise ValueError('Start time must be before end time.')
        return self


def _normalize_entries(values: list[str]) -> list[str]:
    seen: list[str] = []
    for value in values:
        normalized = value.strip()
        if normalized and normalized not in seen:
            seen.append(normalized)
    return seen


class PreConsultationForm(BaseModel):
    symptoms: list[str]
    current_medications: list[str] = Field(default_factory=list)
    allergies: list[str] = Field(default_factory=list)
    medical_history: str | None = None
    additional_notes: str | None = None

    @field_validator('symptoms', 'current_medications', 'allergies')
    @classmethod
    def validate_entries(cls, value: list[str]) -> list[str]:
        return _normalize_entries(value)

    @field_validator('symptoms')
    @classmethod
    def validate_symptoms(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError('At least one symptom must be specified.')
        return value

    @field_validator('medical_history')
    @classmethod
    def validate_medical_history(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if len(normalized) > MAX_MEDICAL_HISTORY_LENGTH:
            raise ValueError(f'Medical history cannot exceed {MAX_MEDICAL_HISTORY_LENGTH} characters.')
        return normalized or None

    @field_validator('additional_notes')
    @classmethod
    def validate_additional_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if len(normalized) > MAX_ADDITIONAL_NOTES_LENGTH:
            raise ValueError(f'Additional notes cannot exceed {MAX_ADDITIONAL_NOTES_LENGTH} characters.')
        return normalized or None
