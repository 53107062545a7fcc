"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
sessions, connections, messages, mentorship requests). Repositories
return SQLModel objects and perform commits/refreshes where appropriate.
"""

from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import func, or_, and_
from sqlmodel import Session, select

from . import models


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def save(self, user: models.User) -> models.User:
        """Commit changes made to an already managed user."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get(self, user_id: int) -> Optional[models.User]:
        """Get a `User` by primary key."""
        return self.session.get(models.User, user_id)

    def get_by_student_id(self, student_id: str) -> Optional[models.User]:
        """Return a `User` by student ID or `None` if not found."""
        stmt = select(models.User).where(models.User.student_id == student_id)
        return self.session.exec(stmt).first()

    def list_pending(self) -> List[models.User]:
        """Unapproved, non-admin accounts, oldest signup first."""
        stmt = (
            select(models.User)
            .where(models.User.is_approved == False, models.User.is_admin == False)  # noqa: E712
            .order_by(models.User.created_at, models.User.id)
        )
        return self.session.exec(stmt).all()

    def list_approved(self, branch: Optional[str] = None, year: Optional[int] = None) -> List[models.User]:
        """Directory listing of approved students, year desc then name asc."""
        stmt = select(models.User).where(models.User.is_approved == True)  # noqa: E712
        if branch:
            stmt = stmt.where(models.User.branch == branch)
        if year is not None:
            stmt = stmt.where(models.User.year == year)
        stmt = stmt.order_by(models.User.year.desc(), models.User.name.asc(), models.User.id)
        return self.session.exec(stmt).all()

    def count_approved_by_branch(self) -> Dict[str, int]:
        stmt = (
            select(models.User.branch, func.count(models.User.id))
            .where(models.User.is_approved == True)  # noqa: E712
            .group_by(models.User.branch)
        )
        return {branch: count for branch, count in self.session.exec(stmt).all()}

    def delete(self, user: models.User) -> None:
        """Delete a user together with their login sessions."""
        for s in self.session.exec(select(models.LoginSession).where(models.LoginSession.user_id == user.id)).all():
            self.session.delete(s)
        self.session.delete(user)
        self.session.commit()


class SessionRepository:
    """Server-side login sessions keyed by an opaque token."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, login_session: models.LoginSession) -> models.LoginSession:
        self.session.add(login_session)
        self.session.commit()
        self.session.refresh(login_session)
        return login_session

    def get_by_token(self, token: str) -> Optional[models.LoginSession]:
        stmt = select(models.LoginSession).where(models.LoginSession.token == token)
        return self.session.exec(stmt).first()

    def delete(self, login_session: models.LoginSession) -> None:
        self.session.delete(login_session)
        self.session.commit()

    def delete_by_token(self, token: str) -> int:
        """Delete the session for `token`; returns the number of rows removed."""
        existing = self.get_by_token(token)
        if not existing:
            return 0
        self.delete(existing)
        return 1

    def delete_expired_for_user(self, user_id: int, now: datetime) -> int:
        stmt = select(models.LoginSession).where(
            models.LoginSession.user_id == user_id,
            models.LoginSession.expires_at < now,
        )
        expired = self.session.exec(stmt).all()
        for s in expired:
            self.session.delete(s)
        self.session.commit()
        return len(expired)


class ConnectionRepository:
    """Peer connections between two users."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, connection: models.Connection) -> models.Connection:
        """Persist a connection, filling the ordered pair columns."""
        connection.user_low_id = min(connection.sender_id, connection.receiver_id)
        connection.user_high_id = max(connection.sender_id, connection.receiver_id)
        self.session.add(connection)
        self.session.commit()
        self.session.refresh(connection)
        return connection

    def get(self, connection_id: int) -> Optional[models.Connection]:
        return self.session.get(models.Connection, connection_id)

    def find_between(self, user_a: int, user_b: int) -> Optional[models.Connection]:
        """Return the connection between two users in either direction."""
        stmt = select(models.Connection).where(
            models.Connection.user_low_id == min(user_a, user_b),
            models.Connection.user_high_id == max(user_a, user_b),
        )
        return self.session.exec(stmt).first()

    def are_connected(self, user_a: int, user_b: int) -> bool:
        """True if an accepted connection exists between the two users."""
        conn = self.find_between(user_a, user_b)
        return conn is not None and conn.status == models.ConnectionStatus.ACCEPTED.value

    def list_sent(self, user_id: int, status: str) -> List[models.Connection]:
        stmt = select(models.Connection).where(
            models.Connection.sender_id == user_id,
            models.Connection.status == status,
        ).order_by(models.Connection.created_at.desc(), models.Connection.id.desc())
        return self.session.exec(stmt).all()

    def list_received(self, user_id: int, status: str) -> List[models.Connection]:
        stmt = select(models.Connection).where(
            models.Connection.receiver_id == user_id,
            models.Connection.status == status,
        ).order_by(models.Connection.created_at.desc(), models.Connection.id.desc())
        return self.session.exec(stmt).all()

    def save(self, connection: models.Connection) -> models.Connection:
        self.session.add(connection)
        self.session.commit()
        self.session.refresh(connection)
        return connection

    def delete(self, connection: models.Connection) -> None:
        self.session.delete(connection)
        self.session.commit()


class MessageRepository:
    """Direct messages and conversation summaries."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, message: models.Message) -> models.Message:
        self.session.add(message)
        self.session.commit()
        self.session.refresh(message)
        return message

    def list_between(self, user_a: int, user_b: int) -> List[models.Message]:
        """All messages exchanged by two users, oldest first."""
        stmt = select(models.Message).where(
            or_(
                and_(models.Message.sender_id == user_a, models.Message.receiver_id == user_b),
                and_(models.Message.sender_id == user_b, models.Message.receiver_id == user_a),
            )
        ).order_by(models.Message.created_at.asc(), models.Message.id.asc())
        return self.session.exec(stmt).all()

    def mark_read(self, sender_id: int, receiver_id: int) -> int:
        """Mark every unread message from `sender_id` to `receiver_id` as read."""
        stmt = select(models.Message).where(
            models.Message.sender_id == sender_id,
            models.Message.receiver_id == receiver_id,
            models.Message.is_read == False,  # noqa: E712
        )
        unread = self.session.exec(stmt).all()
        for m in unread:
            m.is_read = True
            self.session.add(m)
        self.session.commit()
        return len(unread)

    def list_involving(self, user_id: int) -> List[models.Message]:
        """Every message sent or received by `user_id`, newest first."""
        stmt = select(models.Message).where(
            or_(models.Message.sender_id == user_id, models.Message.receiver_id == user_id)
        ).order_by(models.Message.created_at.desc(), models.Message.id.desc())
        return self.session.exec(stmt).all()

    def unread_counts(self, receiver_id: int) -> Dict[int, int]:
        """Map of sender id -> unread message count for `receiver_id`."""
        stmt = (
            select(models.Message.sender_id, func.count(models.Message.id))
            .where(models.Message.receiver_id == receiver_id, models.Message.is_read == False)  # noqa: E712
            .group_by(models.Message.sender_id)
        )
        return {sender: count for sender, count in self.session.exec(stmt).all()}


class MentorshipRepository:
    """Mentorship requests between a mentee and a mentor."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, request: models.MentorshipRequest) -> models.MentorshipRequest:
        self.session.add(request)
        self.session.commit()
        self.session.refresh(request)
        return request

    def get(self, request_id: int) -> Optional[models.MentorshipRequest]:
        return self.session.get(models.MentorshipRequest, request_id)

    def get_for_pair(self, mentor_id: int, mentee_id: int) -> Optional[models.MentorshipRequest]:
        stmt = select(models.MentorshipRequest).where(
            models.MentorshipRequest.mentor_id == mentor_id,
            models.MentorshipRequest.mentee_id == mentee_id,
        )
        return self.session.exec(stmt).first()

    def list_for_mentor(self, mentor_id: int) -> List[models.MentorshipRequest]:
        stmt = select(models.MentorshipRequest).where(
            models.MentorshipRequest.mentor_id == mentor_id
        ).order_by(models.MentorshipRequest.created_at.desc(), models.MentorshipRequest.id.desc())
        return self.session.exec(stmt).all()

    def list_for_mentee(self, mentee_id: int) -> List[models.MentorshipRequest]:
        stmt = select(models.MentorshipRequest).where(
            models.MentorshipRequest.mentee_id == mentee_id
        ).order_by(models.MentorshipRequest.created_at.desc(), models.MentorshipRequest.id.desc())
        return self.session.exec(stmt).all()

    def save(self, request: models.MentorshipRequest) -> models.MentorshipRequest:
        self.session.add(request)
        self.session.commit()
        self.session.refresh(request)
        return request
