from __future__ import annotations

from datetime import date, datetime
from typing import Optional, List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

Priority = Literal["High", "Medium", "Low"]
TaskStatus = Literal["To Do", "In Progress", "Completed"]
Recurrence = Literal["Daily", "Weekly", "Monthly", "None"]
HabitFrequency = Literal["Daily", "Weekly", "Monthly"]
ThemePreference = Literal["light", "dark"]


def _join_labels(value):
    if value is None or isinstance(value, str):
        return value
    items = [str(item).strip() for item in value if str(item).strip()]
    return ",".join(items) if items else None


# Users


class User(BaseModel):
    id: int
    email: str
    name: Optional[str] = None
    avatar_url: Optional[str] = None
    theme_preference: ThemePreference = "light"
    created_at: Optional[str] = None


class UserRecord(User):
    """User row including the password hash. Stays inside the auth boundary."""

    password_hash: str

    def public(self) -> User:
        return User.model_validate(self.model_dump(exclude={"password_hash"}))


class UserCreate(BaseModel):
    email: str
    password: str
    name: Optional[str] = None
    avatar_url: Optional[str] = None
    theme_preference: ThemePreference = "light"


class UserPatch(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None
    avatar_url: Optional[str] = None
    theme_preference: Optional[ThemePreference] = None


class LoginPayload(BaseModel):
    email: str
    password: str


class PasswordChange(BaseModel):
    password: str


# Tasks


class Task(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    due_date: Optional[date] = None
    priority: Optional[Priority] = None
    status: TaskStatus = "To Do"
    recurrence: Recurrence = "None"
    labels: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    user_id: int

    @property
    def label_list(self) -> List[str]:
        return [item.strip() for item in (self.labels or "").split(",") if item.strip()]


class TaskCreate(BaseModel):
    title: str
    description: Optional[str] = None
    due_date: Optional[date] = None
    priority: Optional[Priority] = None
    status: TaskStatus = "To Do"
    recurrence: Recurrence = "None"
    labels: Optional[str] = None

    @field_validator("labels", mode="before")
    @classmethod
    def _normalize_labels(cls, value):
        return _join_labels(value)


class TaskPatch(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[date] = None
    priority: Optional[Priority] = None
    status: Optional[TaskStatus] = None
    recurrence: Optional[Recurrence] = None
    labels: Optional[str] = None

    @field_validator("labels", mode="before")
    @classmethod
    def _normalize_labels(cls, value):
        return _join_labels(value)


# Habits


class Habit(BaseModel):
    id: int
    name: str
    frequency: HabitFrequency = "Daily"
    streak: int = 0
    last_logged: Optional[date] = None
    created_at: Optional[str] = None
    user_id: int


class HabitCreate(BaseModel):
    name: str
    frequency: HabitFrequency = "Daily"


class HabitPatch(BaseModel):
    name: Optional[str] = None
    frequency: Optional[HabitFrequency] = None


class HabitLog(BaseModel):
    id: int
    habit_id: int
    completed_date: date
    created_at: Optional[str] = None


class HabitLogPayload(BaseModel):
    day: Optional[date] = None


class HabitDayStatus(BaseModel):
    habit: Habit
    logged: bool


# Notes


class Note(BaseModel):
    id: int
    title: str
    content: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    user_id: int


class NoteCreate(BaseModel):
    title: str
    content: Optional[str] = None


class NotePatch(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None


# Calendar


class CalendarEvent(BaseModel):
    id: int
    title: str
    start_time: datetime
    end_time: Optional[datetime] = None
    color: Optional[str] = None
    is_all_day: bool = False
    created_at: Optional[str] = None
    user_id: int


class CalendarEventCreate(BaseModel):
    title: str
    start_time: datetime
    end_time: Optional[datetime] = None
    color: Optional[str] = None
    is_all_day: bool = False


class CalendarEventPatch(BaseModel):
    title: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    color: Optional[str] = None
    is_all_day: Optional[bool] = None


class DayEvents(BaseModel):
    model_config = ConfigDict(frozen=True)

    events: List[CalendarEvent] = Field(default_factory=list)
    tasks: List[Task] = Field(default_factory=list)
