"""
Database Schemas for Alumni Connect

Each top-level Pydantic model corresponds to a MongoDB collection.
Collection name is the lowercase class name (e.g., User -> "user",
MentorshipRequest -> "mentorshiprequest").

Request bodies accepted by the API live at the bottom of this module.
"""
import re
from datetime import datetime
from typing import List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

Role = Literal["admin", "alumni", "student"]
EventType = Literal["networking", "seminar", "workshop", "reunion", "career-fair", "social", "other"]
AttendeeStatus = Literal["registered", "attended", "cancelled"]
MentorshipStatus = Literal["pending", "accepted", "declined", "completed", "cancelled"]
MentorshipArea = Literal[
    "career-guidance",
    "technical-skills",
    "entrepreneurship",
    "interview-preparation",
    "networking",
    "industry-insights",
    "personal-development",
    "academic-guidance",
    "other",
]
MeetingType = Literal["video-call", "phone-call", "in-person", "email", "chat"]
Weekday = Literal["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
TimeSlotName = Literal["morning", "afternoon", "evening"]
Urgency = Literal["low", "medium", "high"]
Duration = Literal["30-minutes", "1-hour", "1-2-hours", "multiple-sessions"]

PHONE_RE = re.compile(r"^\+?[\d\s\-()]+$")
LINKEDIN_RE = re.compile(r"^https?://(www\.)?linkedin\.com/in/[\w-]+/?$")
TIME_RE = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")
PASSWORD_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")
MIN_GRADUATION_YEAR = 1950


def check_graduation_year(value: Optional[int]) -> Optional[int]:
    if value is None:
        return value
    latest = datetime.now().year + 10
    if not MIN_GRADUATION_YEAR <= value <= latest:
        raise ValueError("Please provide a valid graduation year")
    return value


def check_password_strength(value: str) -> str:
    if not PASSWORD_RE.match(value):
        raise ValueError("Password must contain at least one uppercase letter, one lowercase letter, and one number")
    return value


def normalize_tags(tags: Optional[List[str]]) -> Optional[List[str]]:
    if tags is None:
        return tags
    return [t.strip().lower() for t in tags if t and t.strip()]


class _Doc(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, str_strip_whitespace=True)


# Embedded records

class CurrentJob(_Doc):
    title: Optional[str] = Field(None, max_length=100)
    company: Optional[str] = Field(None, max_length=100)
    location: Optional[str] = Field(None, max_length=100)


class EmailVisibility(_Doc):
    primaryEmail: bool = False
    additionalEmail: bool = False


class Attendee(_Doc):
    user: ObjectId
    registeredAt: datetime
    status: AttendeeStatus = "registered"


class Comment(_Doc):
    id: ObjectId = Field(default_factory=ObjectId, alias="_id")
    user: ObjectId
    comment: str = Field(..., min_length=1, max_length=500)
    createdAt: datetime


class TimeSlot(_Doc):
    day: Optional[Weekday] = None
    timeSlot: Optional[TimeSlotName] = None


class FollowUpNote(_Doc):
    id: ObjectId = Field(default_factory=ObjectId, alias="_id")
    note: str = Field(..., min_length=1, max_length=500)
    addedBy: ObjectId
    addedAt: datetime


class ScheduledMeeting(_Doc):
    dateTime: datetime
    meetingLink: Optional[str] = None
    location: Optional[str] = None
    agenda: Optional[str] = Field(None, max_length=500)


class Rating(_Doc):
    mentorRating: Optional[int] = Field(None, ge=1, le=5)
    menteeRating: Optional[int] = Field(None, ge=1, le=5)
    mentorFeedback: Optional[str] = Field(None, max_length=500)
    menteeFeedback: Optional[str] = Field(None, max_length=500)


# Collections

class User(_Doc):
    firstName: str = Field(..., description="First name", max_length=50)
    lastName: str = Field(..., description="Last name", max_length=50)
    email: EmailStr = Field(..., description="Login email, unique")
    password: str = Field(..., description="Hashed password")
    role: Role = Field("alumni", description="Account role")
    phone: Optional[str] = None
    graduationYear: Optional[int] = None
    department: Optional[str] = Field(None, max_length=100)
    currentJob: Optional[CurrentJob] = None
    bio: Optional[str] = Field(None, max_length=500)
    linkedinProfile: Optional[str] = None
    isMentor: bool = Field(False, description="Accepts mentorship requests")
    mentorshipAreas: List[str] = Field(default_factory=list, description="Topics the mentor covers")
    isActive: bool = Field(True, description="False once the account is deactivated")
    profilePicture: str = ""
    additionalEmail: Optional[EmailStr] = None
    emailVisibility: EmailVisibility = Field(default_factory=EmailVisibility)


class Event(_Doc):
    title: str = Field(..., max_length=200)
    description: str = Field(..., max_length=2000)
    eventDate: datetime
    eventTime: str
    location: str = Field(..., max_length=200)
    eventType: EventType = "networking"
    maxAttendees: Optional[int] = Field(None, ge=1, le=10000)
    isVirtual: bool = False
    virtualLink: Optional[str] = None
    organizer: ObjectId
    attendees: List[Attendee] = Field(default_factory=list)
    comments: List[Comment] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    imageUrl: Optional[str] = None
    isActive: bool = True
    registrationDeadline: Optional[datetime] = None


class MentorshipRequest(_Doc):
    mentor: ObjectId
    mentee: ObjectId
    subject: str = Field(..., max_length=200)
    message: str = Field(..., max_length=1000)
    mentorshipArea: MentorshipArea
    status: MentorshipStatus = "pending"
    requestedAt: datetime
    respondedAt: Optional[datetime] = None
    mentorResponse: Optional[str] = Field(None, max_length=500)
    preferredMeetingType: MeetingType = "video-call"
    preferredTimeSlots: List[TimeSlot] = Field(default_factory=list)
    urgency: Urgency = "medium"
    expectedDuration: Duration = "1-hour"
    followUpNotes: List[FollowUpNote] = Field(default_factory=list)
    scheduledMeeting: Optional[ScheduledMeeting] = None
    rating: Rating = Field(default_factory=Rating)
    tags: List[str] = Field(default_factory=list)


# Request bodies

class _ProfileFields(_Doc):
    phone: Optional[str] = None
    graduationYear: Optional[int] = None
    department: Optional[str] = Field(None, max_length=100)
    currentJob: Optional[CurrentJob] = None
    bio: Optional[str] = Field(None, max_length=500)
    linkedinProfile: Optional[str] = None
    isMentor: Optional[bool] = None
    mentorshipAreas: Optional[List[str]] = None

    @field_validator("phone")
    @classmethod
    def _phone(cls, v):
        if v and not PHONE_RE.match(v):
            raise ValueError("Please provide a valid phone number")
        return v

    @field_validator("graduationYear")
    @classmethod
    def _graduation_year(cls, v):
        return check_graduation_year(v)

    @field_validator("linkedinProfile")
    @classmethod
    def _linkedin(cls, v):
        if v and not LINKEDIN_RE.match(v):
            raise ValueError("Please provide a valid LinkedIn profile URL")
        return v

    @field_validator("mentorshipAreas")
    @classmethod
    def _areas(cls, v):
        if v is None:
            return v
        areas = [a.strip() for a in v]
        if any(not a or len(a) > 100 for a in areas):
            raise ValueError("Each mentorship area must be between 1 and 100 characters")
        return areas


class RegisterBody(_ProfileFields):
    firstName: str = Field(..., min_length=2, max_length=50)
    lastName: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: Role = "alumni"

    @field_validator("email")
    @classmethod
    def _email(cls, v):
        return v.lower()

    @field_validator("password")
    @classmethod
    def _password(cls, v):
        return check_password_strength(v)


class LoginBody(_Doc):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def _email(cls, v):
        return v.lower()


class ProfileUpdateBody(_ProfileFields):
    firstName: Optional[str] = Field(None, min_length=2, max_length=50)
    lastName: Optional[str] = Field(None, min_length=2, max_length=50)
    profilePicture: Optional[str] = None


class AdminUserUpdateBody(ProfileUpdateBody):
    email: Optional[EmailStr] = None
    role: Optional[Role] = None
    isActive: Optional[bool] = None
    additionalEmail: Optional[EmailStr] = None
    emailVisibility: Optional[EmailVisibility] = None

    @field_validator("email", "additionalEmail")
    @classmethod
    def _email(cls, v):
        return v.lower() if v else v


class PasswordChangeBody(_Doc):
    currentPassword: str = Field(..., min_length=1)
    newPassword: str = Field(..., min_length=6)

    @field_validator("newPassword")
    @classmethod
    def _password(cls, v):
        return check_password_strength(v)


class _EventFields(_Doc):
    maxAttendees: Optional[int] = Field(None, ge=1, le=10000)
    virtualLink: Optional[str] = None
    registrationDeadline: Optional[datetime] = None
    tags: Optional[List[str]] = None
    imageUrl: Optional[str] = None

    @field_validator("eventTime", check_fields=False)
    @classmethod
    def _time(cls, v):
        if v is not None and not TIME_RE.match(v):
            raise ValueError("Please provide valid time in HH:MM format")
        return v

    @field_validator("tags")
    @classmethod
    def _tags(cls, v):
        tags = normalize_tags(v)
        if tags and any(len(t) > 50 for t in tags):
            raise ValueError("Each tag must be between 1 and 50 characters")
        return tags


class EventCreateBody(_EventFields):
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=10, max_length=2000)
    eventDate: datetime
    eventTime: str
    location: str = Field(..., min_length=1, max_length=200)
    eventType: EventType = "networking"
    isVirtual: bool = False


class EventUpdateBody(_EventFields):
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = Field(None, min_length=10, max_length=2000)
    eventDate: Optional[datetime] = None
    eventTime: Optional[str] = None
    location: Optional[str] = Field(None, min_length=1, max_length=200)
    eventType: Optional[EventType] = None
    isVirtual: Optional[bool] = None


class CommentBody(_Doc):
    comment: str = Field("", max_length=500)


class MentorshipCreateBody(_Doc):
    mentor: str
    subject: str = Field(..., min_length=5, max_length=200)
    message: str = Field(..., min_length=20, max_length=1000)
    mentorshipArea: MentorshipArea
    preferredMeetingType: MeetingType = "video-call"
    preferredTimeSlots: List[TimeSlot] = Field(default_factory=list)
    urgency: Urgency = "medium"
    expectedDuration: Duration = "1-hour"
    tags: List[str] = Field(default_factory=list)

    @field_validator("mentor")
    @classmethod
    def _mentor(cls, v):
        if not ObjectId.is_valid(v):
            raise ValueError("Please provide a valid mentor ID")
        return v

    @field_validator("tags")
    @classmethod
    def _tags(cls, v):
        return normalize_tags(v)


class RespondBody(_Doc):
    status: str
    mentorResponse: Optional[str] = Field(None, max_length=500)


class ScheduleBody(_Doc):
    dateTime: datetime
    meetingLink: Optional[str] = None
    location: Optional[str] = None
    agenda: Optional[str] = Field(None, max_length=500)


class CompleteBody(_Doc):
    rating: int = Field(..., ge=1, le=5)
    feedback: Optional[str] = Field(None, max_length=500)


class NoteBody(_Doc):
    note: str = Field("", max_length=500)
