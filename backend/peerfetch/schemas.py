"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and provide validation for
controller handlers and tests. Output schemas are built straight from
the SQLModel rows (`from_attributes`) and never expose password hashes.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SignupIn(BaseModel):
    """Payload for account signup."""
    student_id: str
    password: str
    name: str
    email: Optional[str] = None
    branch_variant: Optional[str] = None


class LoginIn(BaseModel):
    """Payload for login."""
    student_id: str
    password: str


class UserIdIn(BaseModel):
    """Admin approve/reject payload."""
    user_id: int


class ConnectionRequestIn(BaseModel):
    receiver_id: int


class ConnectionActionIn(BaseModel):
    connection_id: int
    action: str


class MessageIn(BaseModel):
    receiver_id: int
    content: str


class MentorshipRequestIn(BaseModel):
    mentor_id: int
    message: Optional[str] = None


class MentorshipActionIn(BaseModel):
    request_id: int
    action: str


class ProfileUpdateIn(BaseModel):
    """Profile fields a student may edit.

    Only fields present in the request body are applied; see
    `ProfileService.update`.
    """
    bio: Optional[str] = Field(default=None, max_length=1000)
    skills: Optional[List[str]] = None
    extracurriculars: Optional[List[str]] = None
    linkedin_url: Optional[str] = None
    profile_picture: Optional[str] = None


class _FromRow(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class UserOut(_FromRow):
    """The logged-in user's own account, returned by login and `me`."""
    id: int
    student_id: str
    name: str
    email: Optional[str] = None
    branch: str
    branch_name: Optional[str] = None
    year: int
    batch: int
    is_approved: bool
    is_admin: bool
    profile_picture: Optional[str] = None
    bio: Optional[str] = None
    skills: Optional[List[str]] = None
    extracurriculars: Optional[List[str]] = None
    linkedin_url: Optional[str] = None


class PendingUserOut(_FromRow):
    id: int
    student_id: str
    name: str
    email: Optional[str] = None
    branch: str
    year: int
    batch: int
    created_at: datetime


class StudentSummary(_FromRow):
    """Directory card."""
    id: int
    student_id: str
    name: str
    year: int
    branch: str
    branch_name: Optional[str] = None
    profile_picture: Optional[str] = None
    bio: Optional[str] = None
    skills: Optional[List[str]] = None
    extracurriculars: Optional[List[str]] = None


class StudentDetail(StudentSummary):
    email: Optional[str] = None
    batch: int
    linkedin_url: Optional[str] = None


class ConnectionUser(_FromRow):
    id: int
    student_id: str
    name: str
    email: Optional[str] = None
    branch: str
    year: int
    batch: int
    profile_picture: Optional[str] = None
    bio: Optional[str] = None


class ConnectionOut(_FromRow):
    id: int
    sender_id: int
    receiver_id: int
    status: str
    created_at: datetime
    updated_at: Optional[datetime] = None


class MessageParty(_FromRow):
    id: int
    name: str
    profile_picture: Optional[str] = None


class ConversationUser(MessageParty):
    student_id: str


class MessageOut(_FromRow):
    id: int
    sender_id: int
    receiver_id: int
    content: str
    is_read: bool
    created_at: datetime


class MentorshipOut(_FromRow):
    id: int
    mentor_id: int
    mentee_id: int
    message: str
    status: str
    created_at: datetime
    updated_at: Optional[datetime] = None
