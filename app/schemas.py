from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime
from enum import Enum


DEFAULT_COLOR = "#4285f4"


class ShareRole(str, Enum):
    VIEWER = "viewer"
    EDITOR = "editor"


class ParticipantStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    TENTATIVE = "tentative"


# Stored records

class User(BaseModel):
    id: str
    email: str
    name: str
    timezone: str = "UTC"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Calendar(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    color: str = DEFAULT_COLOR
    is_default: bool = False
    is_public: bool = False
    user_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CalendarShare(BaseModel):
    id: int
    calendar_id: int
    user_id: str
    role: ShareRole
    email: Optional[str] = None
    name: Optional[str] = None
    created_at: Optional[datetime] = None


class EventParticipant(BaseModel):
    id: int
    event_id: int
    user_id: Optional[str] = None
    email: str
    name: Optional[str] = None
    status: ParticipantStatus = ParticipantStatus.PENDING
    created_at: Optional[datetime] = None


class Event(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    start_time: datetime
    end_time: datetime
    is_all_day: bool = False
    color: str = DEFAULT_COLOR
    calendar_id: int
    user_id: str
    is_recurring: bool = False
    recurrence_rule: Optional[str] = None
    parent_event_id: Optional[int] = None
    original_event_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    participants: List[EventParticipant] = []


# Requests

class UserRegister(BaseModel):
    email: str
    name: str
    timezone: Optional[str] = None


class UserUpdate(BaseModel):
    name: Optional[str] = None
    timezone: Optional[str] = None


class CalendarCreate(BaseModel):
    name: str
    description: Optional[str] = None
    color: Optional[str] = None
    is_public: bool = False


class CalendarUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None
    is_public: Optional[bool] = None


class ShareCreate(BaseModel):
    email: str
    role: str = ShareRole.VIEWER.value


class ShareUpdate(BaseModel):
    role: str


class ParticipantIn(BaseModel):
    email: str
    name: Optional[str] = None
    user_id: Optional[str] = None


class EventCreate(BaseModel):
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    start_time: str
    end_time: str
    is_all_day: bool = False
    color: Optional[str] = None
    calendar_id: Optional[int] = None
    is_recurring: bool = False
    recurrence_rule: Optional[str] = None
    participants: Optional[List[ParticipantIn]] = None


class EventUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    is_all_day: Optional[bool] = None
    color: Optional[str] = None
    calendar_id: Optional[int] = None
    is_recurring: Optional[bool] = None
    recurrence_rule: Optional[str] = None
    participants: Optional[List[ParticipantIn]] = None


class ParticipantStatusUpdate(BaseModel):
    status: ParticipantStatus


# Responses

class UserCreateResponse(BaseModel):
    user_id: str
    api_key: str
    message: str


class SessionResponse(BaseModel):
    api_key: str
    message: str


class MessageResponse(BaseModel):
    message: str


class CalendarDetail(Calendar):
    shares: List[CalendarShare] = []


class EventView(Event):
    """An event plus its start and end on the requesting user's wall clock."""
    local_start: Optional[datetime] = None
    local_end: Optional[datetime] = None


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class EventList(BaseModel):
    events: List[EventView]
    pagination: Pagination
