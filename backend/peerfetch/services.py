"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories
and the authorization rules of each operation. Services are
intentionally thin: they validate input, check who may do what, and
persist aggregates via repositories. Rule violations are raised as
`peerfetch.exceptions` errors which the API maps to status codes.
"""

import logging
import secrets
from datetime import date, timedelta
from typing import Dict, List, Optional, Tuple

import jwt
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from . import models, repositories, schemas
from .config import settings
from .exceptions import (
    DuplicateError,
    InvalidStatusTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from .utils.parsers import (
    BRANCH_NAMES,
    branch_display_name,
    normalize_branch_filter,
    normalize_student_id,
    normalize_tag_list,
    normalize_url,
    parse_student_id,
    parse_tag_filter,
    parse_year_filter,
)

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
MIN_PASSWORD_LENGTH = 6
MAX_MESSAGE_LENGTH = 2000
DEFAULT_MENTORSHIP_MESSAGE = 'Hi! I would like to connect with you for mentorship.'
AVATAR_URL = 'https://api.dicebear.com/7.x/avataaars/svg?seed={seed}'

logger = logging.getLogger("peerfetch.services")


def _parse_action(action: str) -> str:
    """Map an `accept`/`reject` action to the resulting status value."""
    if action == 'accept':
        return 'accepted'
    if action == 'reject':
        return 'rejected'
    raise ValidationError('Invalid action')


class AuthService:
    """Signup, credential checks and login sessions."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)
        self.session_repo = repositories.SessionRepository(session)

    def register(self, student_id: str, password: str, name: str, email: Optional[str] = None,
                 branch_variant: Optional[str] = None, today: Optional[date] = None) -> models.User:
        """Create a new, unapproved student account.

        Batch, branch and study year are derived from the student ID. The
        account cannot use the directory until an admin approves it.
        """
        if not student_id or not password or not (name or '').strip():
            raise ValidationError('Student ID, password, and name are required')
        try:
            info = parse_student_id(student_id, today=today)
            branch_name = branch_display_name(info.branch, branch_variant)
        except ValueError as e:
            raise ValidationError(str(e))
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters')
        if self.user_repo.get_by_student_id(info.student_id):
            raise DuplicateError('Student ID already registered')
        user = models.User(
            student_id=info.student_id,
            password_hash=PWD_CTX.hash(password),
            name=name.strip(),
            email=(email or '').strip() or f'{info.student_id.lower()}@{settings.DEFAULT_EMAIL_DOMAIN}',
            branch=info.branch,
            branch_name=branch_name,
            year=info.year,
            batch=info.batch,
            is_approved=False,
            is_admin=False,
            profile_picture=AVATAR_URL.format(seed=info.student_id),
        )
        try:
            user = self.user_repo.create(user)
        except IntegrityError:
            self.session.rollback()
            raise DuplicateError('Student ID already registered')
        logger.info("account_created student_id=%s branch=%s year=%s", user.student_id, user.branch, user.year)
        return user

    def create_admin(self, student_id: str, password: str, name: str, email: Optional[str] = None) -> models.User:
        """Create an approved admin account.

        Admin IDs (e.g. `ADMIN001`) do not follow the student ID format,
        so this bypasses parsing. Used by the seed script only.
        """
        student_id = normalize_student_id(student_id)
        existing = self.user_repo.get_by_student_id(student_id)
        if existing:
            return existing
        user = models.User(
            student_id=student_id,
            password_hash=PWD_CTX.hash(password),
            name=name,
            email=email,
            branch='CP',
            branch_name=BRANCH_NAMES['CP'],
            year=4,
            batch=date.today().year,
            is_approved=True,
            is_admin=True,
        )
        return self.user_repo.create(user)

    def authenticate(self, student_id: str, password: str) -> Optional[models.User]:
        """Verify credentials and return the user, or `None` on failure."""
        user = self.user_repo.get_by_student_id(normalize_student_id(student_id))
        if not user:
            # keep response time independent of whether the ID exists
            PWD_CTX.dummy_verify()
            return None
        if not PWD_CTX.verify(password, user.password_hash):
            return None
        return user

    def start_session(self, user: models.User) -> Tuple[str, models.LoginSession]:
        """Store a new login session and return its signed cookie value.

        The cookie carries a JWT wrapping the random session token; the
        row in `loginsession` is what makes it valid, so logout revokes
        it immediately.
        """
        now = models.utcnow()
        self.session_repo.delete_expired_for_user(user.id, now)
        expires = now + timedelta(days=settings.SESSION_TTL_DAYS)
        login_session = self.session_repo.create(
            models.LoginSession(token=secrets.token_urlsafe(32), user_id=user.id, expires_at=expires)
        )
        payload = {"sid": login_session.token, "user_id": user.id, "exp": int(expires.timestamp())}
        signed = jwt.encode(payload, settings.SESSION_SECRET, algorithm=settings.SESSION_ALGORITHM)
        return signed, login_session

    def resolve_session(self, session_token: str) -> Optional[models.User]:
        """Return the user owning `session_token` if the session is still valid.

        Expired sessions are deleted on sight.
        """
        login_session = self.session_repo.get_by_token(session_token)
        if not login_session:
            return None
        if models.as_utc(login_session.expires_at) <= models.utcnow():
            self.session_repo.delete(login_session)
            return None
        return self.user_repo.get(login_session.user_id)

    def end_session(self, session_token: str) -> bool:
        return self.session_repo.delete_by_token(session_token) > 0


class AdminService:
    """Approval queue for new signups."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def list_pending(self) -> List[models.User]:
        return self.user_repo.list_pending()

    def approve(self, admin: models.User, user_id: int) -> models.User:
        user = self.user_repo.get(user_id)
        if not user:
            raise NotFoundError('User not found')
        if not user.is_approved:
            user.is_approved = True
            user.updated_at = models.utcnow()
            user = self.user_repo.save(user)
            logger.info("account_approved student_id=%s by=%s", user.student_id, admin.student_id)
        return user

    def reject(self, admin: models.User, user_id: int) -> None:
        """Delete a signup that is still waiting for approval."""
        user = self.user_repo.get(user_id)
        if not user:
            raise NotFoundError('User not found')
        if user.is_approved or user.is_admin:
            raise ValidationError('Only pending accounts can be rejected')
        student_id = user.student_id
        self.user_repo.delete(user)
        logger.info("account_rejected student_id=%s by=%s", student_id, admin.student_id)


class DirectoryService:
    """Student directory: listing by branch/year, search and profiles."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def list_students(self, branch: Optional[str] = None, year=None, search: Optional[str] = None,
                      extracurriculars: Optional[str] = None) -> List[models.User]:
        """Approved students matching every given filter.

        Branch and year are filtered in SQL. Name search and the
        extracurriculars filter (match any listed activity) run in Python
        with `casefold`, since SQLite's `lower()` only folds ASCII.
        """
        try:
            branch_code = normalize_branch_filter(branch)
            year_value = parse_year_filter(year)
        except ValueError as e:
            raise ValidationError(str(e))
        students = self.user_repo.list_approved(branch=branch_code, year=year_value)
        search = (search or '').strip().casefold()
        if search:
            students = [s for s in students if search in (s.name or '').casefold()]
        wanted = parse_tag_filter(extracurriculars)
        if wanted:
            students = [
                s for s in students
                if any(e.casefold() in wanted for e in (s.extracurriculars or []))
            ]
        return students

    def get_student(self, viewer: models.User, student_pk: int) -> models.User:
        """Return one student profile.

        Unapproved accounts are only visible to admins and to themselves.
        """
        student = self.user_repo.get(student_pk)
        if not student:
            raise NotFoundError('Student not found')
        if not student.is_approved and not viewer.is_admin and viewer.id != student.id:
            raise NotFoundError('Student not found')
        return student

    def branches(self) -> List[Dict]:
        counts = self.user_repo.count_approved_by_branch()
        return [
            {'code': code, 'name': name, 'student_count': counts.get(code, 0)}
            for code, name in BRANCH_NAMES.items()
        ]


class ConnectionService:
    """Peer connection requests and their lifecycle."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)
        self.conn_repo = repositories.ConnectionRepository(session)

    def list_for_user(self, user: models.User, status: Optional[str] = None) -> List[Dict]:
        """Connections in `status` (default accepted) where `user` is either party.

        Each item names the other party under `user` and says whether the
        request was `sent` or `received`.
        """
        status = status or models.ConnectionStatus.ACCEPTED.value
        if status not in {s.value for s in models.ConnectionStatus}:
            raise ValidationError(f'Invalid status: {status}')
        out = []
        for conn in self.conn_repo.list_sent(user.id, status):
            out.append(self._present(conn, conn.receiver_id, 'sent'))
        for conn in self.conn_repo.list_received(user.id, status):
            out.append(self._present(conn, conn.sender_id, 'received'))
        return out

    def _present(self, conn: models.Connection, other_id: int, kind: str) -> Dict:
        other = self.user_repo.get(other_id)
        return {
            'id': conn.id,
            'user': schemas.ConnectionUser.model_validate(other) if other else None,
            'status': conn.status,
            'created_at': conn.created_at,
            'type': kind,
        }

    def request(self, user: models.User, receiver_id: int) -> models.Connection:
        if not receiver_id:
            raise ValidationError('Receiver ID is required')
        if receiver_id == user.id:
            raise ValidationError('Cannot connect with yourself')
        receiver = self.user_repo.get(receiver_id)
        if not receiver or not receiver.is_approved:
            raise NotFoundError('Student not found')
        if self.conn_repo.find_between(user.id, receiver_id):
            raise DuplicateError('Connection already exists')
        try:
            conn = self.conn_repo.create(models.Connection(sender_id=user.id, receiver_id=receiver_id))
        except IntegrityError:
            self.session.rollback()
            raise DuplicateError('Connection already exists')
        logger.info("connection_requested id=%s sender=%s receiver=%s", conn.id, user.id, receiver_id)
        return conn

    def respond(self, user: models.User, connection_id: int, action: str) -> models.Connection:
        if not connection_id or not action:
            raise ValidationError('Connection ID and action are required')
        new_status = _parse_action(action)
        conn = self.conn_repo.get(connection_id)
        if not conn:
            raise NotFoundError('Connection not found')
        if conn.receiver_id != user.id:
            raise PermissionDeniedError('You can only respond to your own requests')
        if conn.status != models.ConnectionStatus.PENDING.value:
            raise InvalidStatusTransitionError(f'Connection already {conn.status}')
        conn.status = new_status
        conn.updated_at = models.utcnow()
        conn = self.conn_repo.save(conn)
        logger.info("connection_%s id=%s", new_status, conn.id)
        return conn

    def delete(self, user: models.User, connection_id: Optional[int]) -> None:
        if not connection_id:
            raise ValidationError('Connection ID is required')
        conn = self.conn_repo.get(connection_id)
        if not conn:
            raise NotFoundError('Connection not found')
        if user.id not in (conn.sender_id, conn.receiver_id):
            raise PermissionDeniedError('Unauthorized')
        self.conn_repo.delete(conn)
        logger.info("connection_deleted id=%s by=%s", connection_id, user.id)


class MessageService:
    """Direct messages between accepted connections."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)
        self.conn_repo = repositories.ConnectionRepository(session)
        self.msg_repo = repositories.MessageRepository(session)

    def send(self, user: models.User, receiver_id: int, content: str) -> models.Message:
        content = (content or '').strip()
        if not receiver_id or not content:
            raise ValidationError('Receiver ID and content are required')
        if len(content) > MAX_MESSAGE_LENGTH:
            raise ValidationError(f'Message must be at most {MAX_MESSAGE_LENGTH} characters')
        if not self.conn_repo.are_connected(user.id, receiver_id):
            raise PermissionDeniedError('You can only message connected users')
        return self.msg_repo.create(models.Message(sender_id=user.id, receiver_id=receiver_id, content=content))

    def thread(self, user: models.User, partner_id: int) -> List[Dict]:
        """Messages exchanged with `partner_id`, oldest first.

        Messages the partner sent to `user` are marked read; the returned
        list reflects the state before marking. Unapproved partners are
        hidden from everyone but admins.
        """
        partner = self.user_repo.get(partner_id)
        if not partner or (not partner.is_approved and not user.is_admin):
            raise NotFoundError('Student not found')
        messages = self.msg_repo.list_between(user.id, partner_id)
        payload = [self.present(m) for m in messages]
        self.msg_repo.mark_read(sender_id=partner_id, receiver_id=user.id)
        return payload

    def present(self, message: models.Message) -> Dict:
        out = schemas.MessageOut.model_validate(message).model_dump()
        sender = self.user_repo.get(message.sender_id)
        receiver = self.user_repo.get(message.receiver_id)
        out['sender'] = schemas.MessageParty.model_validate(sender) if sender else None
        out['receiver'] = schemas.MessageParty.model_validate(receiver) if receiver else None
        return out

    def conversations(self, user: models.User) -> List[Dict]:
        """One entry per chat partner with the latest message and unread count."""
        unread = self.msg_repo.unread_counts(user.id)
        latest: Dict[int, models.Message] = {}
        # newest first, so the first message seen per partner is the latest
        for m in self.msg_repo.list_involving(user.id):
            partner = m.receiver_id if m.sender_id == user.id else m.sender_id
            latest.setdefault(partner, m)
        out = []
        for partner_id, m in latest.items():
            partner = self.user_repo.get(partner_id)
            if not partner:
                continue
            out.append({
                'user': schemas.ConversationUser.model_validate(partner),
                'last_message': m.content,
                'last_message_time': m.created_at,
                'unread_count': unread.get(partner_id, 0),
            })
        return out


class MentorshipService:
    """Mentorship requests from a mentee to a mentor."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)
        self.repo = repositories.MentorshipRepository(session)

    def request(self, user: models.User, mentor_id: int, message: Optional[str] = None) -> models.MentorshipRequest:
        if not mentor_id:
            raise ValidationError('Mentor ID is required')
        if mentor_id == user.id:
            raise ValidationError('Cannot request mentorship from yourself')
        mentor = self.user_repo.get(mentor_id)
        if not mentor or not mentor.is_approved:
            raise NotFoundError('Mentor not found')
        if self.repo.get_for_pair(mentor_id, user.id):
            raise DuplicateError('Request already sent')
        req = models.MentorshipRequest(
            mentor_id=mentor_id,
            mentee_id=user.id,
            message=(message or '').strip() or DEFAULT_MENTORSHIP_MESSAGE,
        )
        try:
            req = self.repo.create(req)
        except IntegrityError:
            self.session.rollback()
            raise DuplicateError('Request already sent')
        logger.info("mentorship_requested id=%s mentor=%s mentee=%s", req.id, mentor_id, user.id)
        return req

    def list_for_user(self, user: models.User) -> Dict[str, List[models.MentorshipRequest]]:
        return {
            'received': self.repo.list_for_mentor(user.id),
            'sent': self.repo.list_for_mentee(user.id),
        }

    def respond(self, user: models.User, request_id: int, action: str) -> models.MentorshipRequest:
        new_status = _parse_action(action)
        req = self.repo.get(request_id)
        if not req:
            raise NotFoundError('Mentorship request not found')
        if req.mentor_id != user.id:
            raise PermissionDeniedError('Only the mentor can respond to this request')
        if req.status != models.MentorshipStatus.PENDING.value:
            raise InvalidStatusTransitionError(f'Request already {req.status}')
        req.status = new_status
        req.updated_at = models.utcnow()
        req = self.repo.save(req)
        logger.info("mentorship_%s id=%s", new_status, req.id)
        return req


class ProfileService:
    """Self-service profile edits."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def update(self, user: models.User, changes: Dict) -> models.User:
        """Apply the provided profile fields to `user`.

        `changes` only contains keys the client actually sent, so absent
        fields are left untouched while blank values clear them.
        """
        cleaned = {}
        try:
            if 'bio' in changes:
                cleaned['bio'] = (changes['bio'] or '').strip() or None
            for key in ('skills', 'extracurriculars'):
                if key in changes:
                    cleaned[key] = normalize_tag_list(changes[key])
            for key in ('linkedin_url', 'profile_picture'):
                if key in changes:
                    cleaned[key] = normalize_url(changes[key])
        except ValueError as e:
            raise ValidationError(str(e))
        for key, value in cleaned.items():
            setattr(user, key, value)
        user.updated_at = models.utcnow()
        return self.user_repo.save(user)
