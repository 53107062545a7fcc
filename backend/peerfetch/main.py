"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints used by the PeerFetch student
network. Controllers are intentionally thin: they accept requests,
resolve the session through the `auth` dependencies, delegate to
services, and return JSON responses.

Endpoints implemented:
- POST /api/auth/signup, /api/auth/login, /api/auth/logout
- GET /api/auth/me
- GET /api/admin/pending, POST /api/admin/approve, /api/admin/reject
- GET /api/branches, /api/students, /api/students/{id}
- GET/POST/PUT/DELETE /api/connections
- GET/POST /api/messages
- POST/PUT /api/mentorship/request, GET /api/mentorship/requests
- GET /api/profile, POST /api/profile/update
"""

import json
import logging
import time
import uuid
from typing import Optional

from fastapi import FastAPI, Depends, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.security import HTTPAuthorizationCredentials
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, Response
from sqlmodel import Session

from . import models, schemas, services
from .auth import (
    bearer_scheme,
    clear_session_cookie,
    get_admin_user,
    get_approved_user,
    get_current_user,
    read_session_token,
    session_id_from_token,
    set_session_cookie,
)
from .config import settings
from .database import create_db_and_tables, get_session
from .exceptions import BusinessLogicError
from .utils.rate_limit import InMemoryRateLimiter

app = FastAPI(title="PeerFetch Student Network API")
logger = logging.getLogger("peerfetch.api")
if not logger.handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)
_login_rate_limiter = InMemoryRateLimiter()

# Wide-open CORS keeps a locally served frontend working without extra config in dev.
if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        if request.url.path.startswith("/api"):
            logger.exception(
                "request_failed %s",
                json.dumps(
                    {
                        "request_id": req_id,
                        "path": request.url.path,
                        "method": request.method,
                        "duration_ms": elapsed_ms,
                        "client": request.client.host if request.client else "unknown",
                    },
                    ensure_ascii=True,
                ),
            )
        raise
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    if request.url.path.startswith("/api"):
        logger.info(
            "request_done %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "status_code": response.status_code,
                    "duration_ms": elapsed_ms,
                    "client": request.client.host if request.client else "unknown",
                },
                ensure_ascii=True,
            ),
        )
    return response


@app.exception_handler(BusinessLogicError)
async def business_error_handler(request: Request, exc: BusinessLogicError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Report malformed input as 400 with a short message."""
    messages = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        if err.get("type") == "missing":
            messages.append(f"{field} is required")
        elif field:
            messages.append(f"{field}: {err.get('msg')}")
        else:
            messages.append(str(err.get("msg")))
    return JSONResponse(status_code=400, content={"detail": "; ".join(messages) or "Invalid request"})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("unhandled_error path=%s", request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def _login_rate_key(request: Request, student_id: str) -> str:
    host = request.client.host if request.client else "unknown"
    return f"{host}:{student_id.strip().upper()}"


@app.post('/api/auth/signup')
def signup(payload: schemas.SignupIn, db: Session = Depends(get_session)):
    """Create an unapproved account from a student ID.

    Branch, batch and study year are derived from the ID (e.g. `25EL011`).
    The account can log in immediately but needs admin approval before
    it can browse the directory.
    """
    user = services.AuthService(db).register(
        payload.student_id,
        payload.password,
        payload.name,
        email=payload.email,
        branch_variant=payload.branch_variant,
    )
    return {
        'success': True,
        'user': schemas.UserOut.model_validate(user),
        'message': 'Account created successfully. Please wait for admin approval.',
    }


@app.post('/api/auth/login')
def login(payload: schemas.LoginIn, request: Request, response: Response, db: Session = Depends(get_session)):
    """Verify credentials and set the session cookie.

    Repeated attempts for the same student ID from one client are rate
    limited.
    """
    if not payload.student_id or not payload.password:
        raise HTTPException(status_code=400, detail='Student ID and password are required')
    key = _login_rate_key(request, payload.student_id)
    allowed, retry_after = _login_rate_limiter.allow(
        key, settings.LOGIN_RATE_LIMIT_PER_MIN, settings.LOGIN_RATE_LIMIT_WINDOW_SECONDS
    )
    if not allowed:
        raise HTTPException(
            status_code=429,
            detail=f"too many login attempts; retry after {retry_after}s",
            headers={"Retry-After": str(retry_after)},
        )
    auth = services.AuthService(db)
    user = auth.authenticate(payload.student_id, payload.password)
    if not user:
        logger.info("login_failed student_id=%s", payload.student_id.strip().upper())
        raise HTTPException(status_code=401, detail='Invalid credentials')
    _login_rate_limiter.reset(key)
    signed, _ = auth.start_session(user)
    set_session_cookie(response, signed)
    return {'success': True, 'user': schemas.UserOut.model_validate(user)}


@app.post('/api/auth/logout')
def logout(request: Request, response: Response,
           credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
           db: Session = Depends(get_session)):
    """Delete the server-side session (if any) and clear the cookie.

    The session is taken from the cookie, or from the bearer header for API
    clients.
    """
    sid = session_id_from_token(read_session_token(request, credentials))
    if sid:
        services.AuthService(db).end_session(sid)
    clear_session_cookie(response)
    return {'success': True}


@app.get('/api/auth/me')
def me(user: models.User = Depends(get_current_user)):
    """Return the logged-in account, including its approval state."""
    return {'user': schemas.UserOut.model_validate(user)}


@app.get('/api/admin/pending')
def list_pending(db: Session = Depends(get_session), admin: models.User = Depends(get_admin_user)):
    users = services.AdminService(db).list_pending()
    return {'users': [schemas.PendingUserOut.model_validate(u) for u in users]}


@app.post('/api/admin/approve')
def approve_user(payload: schemas.UserIdIn, db: Session = Depends(get_session),
                 admin: models.User = Depends(get_admin_user)):
    services.AdminService(db).approve(admin, payload.user_id)
    return {'success': True}


@app.post('/api/admin/reject')
def reject_user(payload: schemas.UserIdIn, db: Session = Depends(get_session),
                admin: models.User = Depends(get_admin_user)):
    """Delete a pending signup."""
    services.AdminService(db).reject(admin, payload.user_id)
    return {'success': True}


@app.get('/api/branches')
def list_branches(db: Session = Depends(get_session), user: models.User = Depends(get_approved_user)):
    return {'branches': services.DirectoryService(db).branches()}


@app.get('/api/students')
def list_students(branch: Optional[str] = None, year: Optional[str] = None, search: Optional[str] = None,
                  extracurriculars: Optional[str] = None,
                  db: Session = Depends(get_session), user: models.User = Depends(get_approved_user)):
    """Browse approved students.

    `branch` accepts a code (`CP`) or an intake variant (`CP-GIA`), `year`
    is 1-4 and `search` is a case-insensitive name fragment.
    `extracurriculars` is a comma separated list; a student matches if
    they list any of them.
    """
    students = services.DirectoryService(db).list_students(
        branch=branch, year=year, search=search, extracurriculars=extracurriculars
    )
    return {'students': [schemas.StudentSummary.model_validate(s) for s in students]}


@app.get('/api/students/{student_pk}')
def get_student(student_pk: int, db: Session = Depends(get_session), user: models.User = Depends(get_approved_user)):
    student = services.DirectoryService(db).get_student(user, student_pk)
    return {'student': schemas.StudentDetail.model_validate(student)}


@app.get('/api/connections')
def list_connections(status: Optional[str] = None, db: Session = Depends(get_session),
                     user: models.User = Depends(get_approved_user)):
    """List connections in `status` (default `accepted`), sent and received."""
    return {'connections': services.ConnectionService(db).list_for_user(user, status)}


@app.post('/api/connections')
def request_connection(payload: schemas.ConnectionRequestIn, db: Session = Depends(get_session),
                       user: models.User = Depends(get_approved_user)):
    conn = services.ConnectionService(db).request(user, payload.receiver_id)
    return {'connection': schemas.ConnectionOut.model_validate(conn)}


@app.put('/api/connections')
def respond_connection(payload: schemas.ConnectionActionIn, db: Session = Depends(get_session),
                       user: models.User = Depends(get_approved_user)):
    """Accept or reject a pending request addressed to the caller."""
    conn = services.ConnectionService(db).respond(user, payload.connection_id, payload.action)
    return {'connection': schemas.ConnectionOut.model_validate(conn)}


@app.delete('/api/connections')
def delete_connection(id: Optional[int] = None, db: Session = Depends(get_session),
                      user: models.User = Depends(get_approved_user)):
    services.ConnectionService(db).delete(user, id)
    return {'success': True}


@app.get('/api/messages')
def get_messages(user_id: Optional[int] = None, db: Session = Depends(get_session),
                 user: models.User = Depends(get_approved_user)):
    """Without `user_id`: the conversation list. With it: that thread.

    Opening a thread marks the partner's messages to the caller as read.
    """
    svc = services.MessageService(db)
    if user_id is not None:
        return {'messages': svc.thread(user, user_id)}
    return {'conversations': svc.conversations(user)}


@app.post('/api/messages')
def send_message(payload: schemas.MessageIn, db: Session = Depends(get_session),
                 user: models.User = Depends(get_approved_user)):
    svc = services.MessageService(db)
    message = svc.send(user, payload.receiver_id, payload.content)
    return {'message': svc.present(message)}


@app.post('/api/mentorship/request')
def request_mentorship(payload: schemas.MentorshipRequestIn, db: Session = Depends(get_session),
                       user: models.User = Depends(get_approved_user)):
    req = services.MentorshipService(db).request(user, payload.mentor_id, payload.message)
    return {'success': True, 'request': schemas.MentorshipOut.model_validate(req)}


@app.get('/api/mentorship/requests')
def list_mentorship(db: Session = Depends(get_session), user: models.User = Depends(get_approved_user)):
    grouped = services.MentorshipService(db).list_for_user(user)
    return {k: [schemas.MentorshipOut.model_validate(r) for r in v] for k, v in grouped.items()}


@app.put('/api/mentorship/request')
def respond_mentorship(payload: schemas.MentorshipActionIn, db: Session = Depends(get_session),
                       user: models.User = Depends(get_approved_user)):
    req = services.MentorshipService(db).respond(user, payload.request_id, payload.action)
    return {'request': schemas.MentorshipOut.model_validate(req)}


@app.get('/api/profile')
def get_profile(user: models.User = Depends(get_current_user)):
    return {'profile': schemas.UserOut.model_validate(user)}


@app.post('/api/profile/update')
def update_profile(payload: schemas.ProfileUpdateIn, db: Session = Depends(get_session),
                   user: models.User = Depends(get_current_user)):
    """Update bio, skills, extracurriculars and links.

    Only fields present in the body are changed; send `null` or an empty
    value to clear one.
    """
    updated = services.ProfileService(db).update(user, payload.model_dump(exclude_unset=True))
    return {'success': True, 'profile': schemas.UserOut.model_validate(updated)}


@app.get("/", response_class=HTMLResponse)
def home():
    """Minimal homepage for quick manual testing."""
    return """
    <!DOCTYPE html>
    <html>
    <head>
      <meta charset="UTF-8" />
      <title>PeerFetch</title>
      <style>
        body { font-family: Arial, sans-serif; margin: 32px; }
        a { color: #0a6; }
        .card { max-width: 640px; padding: 16px; border: 1px solid #ddd; border-radius: 8px; }
      </style>
    </head>
    <body>
      <div class="card">
        <h1>PeerFetch API</h1>
        <p>Quick links for local testing:</p>
        <ul>
          <li><a href="/docs">Swagger UI</a></li>
          <li><a href="/health">Health check</a></li>
        </ul>
        <p>Use <code>/api/auth/signup</code> + <code>/api/auth/login</code> to get a session cookie, then try <code>/api/students</code> once an admin has approved the account.</p>
      </div>
    </body>
    </html>
    """


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}
