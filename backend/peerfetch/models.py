"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Uniqueness rules (one account per student ID, one connection per pair
of students, one mentorship request per mentor/mentee pair) are
declared here as database constraints.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; every stored timestamp is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ConnectionStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class MentorshipStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class User(SQLModel, table=True):
    """A registered student (or admin).

    Fields:
    - `student_id`: unique login name, e.g. `25EL011`
    - `password_hash`: hashed password string (never store plaintext)
    - `branch`/`year`/`batch`: derived from the student ID at signup
    - `is_approved`: set by an admin; unapproved accounts can log in but
      cannot use the directory, connections or messages
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    student_id: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    name: str = Field(index=True)
    email: Optional[str] = None
    branch: str = Field(index=True)
    branch_name: Optional[str] = None
    year: int = Field(index=True)
    batch: int
    is_approved: bool = False
    is_admin: bool = False
    profile_picture: Optional[str] = None
    bio: Optional[str] = None
    skills: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    extracurriculars: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    linkedin_url: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None


class LoginSession(SQLModel, table=True):
    """A server-side login session referenced by the session cookie."""
    id: Optional[int] = Field(default=None, primary_key=True)
    token: str = Field(index=True, unique=True)
    user_id: int = Field(foreign_key='user.id', index=True)
    expires_at: datetime
    created_at: datetime = Field(default_factory=utcnow)


class Connection(SQLModel, table=True):
    """A peer connection between two students.

    `user_low_id`/`user_high_id` hold the ordered pair so the unique
    constraint covers both directions.
    """
    __table_args__ = (UniqueConstraint('user_low_id', 'user_high_id', name='uq_connection_pair'),)

    id: Optional[int] = Field(default=None, primary_key=True)
    sender_id: int = Field(foreign_key='user.id', index=True)
    receiver_id: int = Field(foreign_key='user.id', index=True)
    user_low_id: int
    user_high_id: int
    status: str = Field(default=ConnectionStatus.PENDING.value, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None


class Message(SQLModel, table=True):
    """A direct message between two connected students."""
    id: Optional[int] = Field(default=None, primary_key=True)
    sender_id: int = Field(foreign_key='user.id', index=True)
    receiver_id: int = Field(foreign_key='user.id', index=True)
    content: str
    is_read: bool = False
    created_at: datetime = Field(default_factory=utcnow, index=True)


class MentorshipRequest(SQLModel, table=True):
    """A mentee asking another student to act as their mentor."""
    __table_args__ = (UniqueConstraint('mentor_id', 'mentee_id', name='uq_mentorship_pair'),)

    id: Optional[int] = Field(default=None, primary_key=True)
    mentor_id: int = Field(foreign_key='user.id', index=True)
    mentee_id: int = Field(foreign_key='user.id', index=True)
    message: str
    status: str = Field(default=MentorshipStatus.PENDING.value)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None
