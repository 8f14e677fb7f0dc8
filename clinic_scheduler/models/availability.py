"""Doctor availability model definitions."""

from datetime import date

from pydantic import BaseModel, field_validator, model_validator


class DayAvailability(BaseModel):
    """Raw bookable slots for one day as reported by the availability source."""

    date: date
    is_available: bool = False
    morning: list[str] = []
    afternoon: list[str] = []

    @model_validator(mode='before')
    @classmethod
    def flatten_time_slots(cls, data):
        if not isinstance(data, dict) or 'time_slots' not in data:
            return data

        time_slots = data.get('time_slots') or {}
        merged = {key: value for key, value in data.items() if key != 'time_slots'}
        if isinstance(time_slots, list):
            merged.setdefault('morning', time_slots)
        else:
            merged.setdefault('morning', time_slots.get('morning') or [])
            merged.setdefault('afternoon', time_slots.get('afternoon') or [])
        return merged

    @field_validator('date', mode='before')
    @classmethod
    def parse_api_date(cls, value):
        if isinstance(value, str):
            return value.strip()[:10]
        return value

    @field_validator('morning', 'afternoon', mode='before')
    @classmethod
    def drop_blank_slots(cls, value):
        if value is None:
            return []
        return [slot.strip() for slot in value if isinstance(slot, str) and slot.strip()]

    @property
    def slots(self) -> list[str]:
        return [*self.morning, *self.afternoon]
