# school_calendar/schemas.py
from typing import Optional
from pydantic import BaseModel


# Required fields are checked by the store, so a missing one comes back as a
# ValidationError with the field names rather than a schema error.

class LoginRequest(BaseModel):
    password: Optional[str] = None


class DayConfigPartial(BaseModel):
    color: Optional[str] = None       # "#rrggbb"
    dayType: Optional[str] = None     # "A" | "B"
    isAccess: Optional[bool] = None


class DateConfigRequest(BaseModel):
    dateKey: Optional[str] = None     # "YYYY-MM-DD"
    config: Optional[DayConfigPartial] = None


class EventCreate(BaseModel):
    dateKey: Optional[str] = None
    title: Optional[str] = None
    time: Optional[str] = None        # "HH:MM"
    department: Optional[str] = None
    description: Optional[str] = None


class MaterialCreate(BaseModel):
    dateKey: Optional[str] = None
    grade: Optional[str] = None
    title: Optional[str] = None
    link: Optional[str] = None
    type: Optional[str] = None        # defaults to "lesson"


class DescriptionRequest(BaseModel):
    dateKey: Optional[str] = None
    description: Optional[str] = None
