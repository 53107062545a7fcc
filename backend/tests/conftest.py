from datetime import date
from pathlib import Path
import os
import tempfile

import pytest

# Point the app at a throwaway SQLite file before `peerfetch` is imported.
_TMP_DIR = Path(tempfile.mkdtemp(prefix="peerfetch-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR / 'test.db'}"
os.environ.setdefault("ENV", "dev")

from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import Session  # noqa: E402

from peerfetch import main  # noqa: E402
from peerfetch.database import engine, create_db_and_tables, drop_all_tables  # noqa: E402
from peerfetch.services import AuthService, AdminService  # noqa: E402

PASSWORD = "password123"
# Signups in tests derive the study year against this date: 25xx -> 2, 24xx -> 3.
SIGNUP_DATE = date(2026, 9, 1)


@pytest.fixture(autouse=True)
def reset_db():
    """Give every test an empty schema and a fresh login rate limiter."""
    drop_all_tables()
    create_db_and_tables()
    main._login_rate_limiter.clear()
    yield


@pytest.fixture
def db():
    with Session(engine) as session:
        yield session


@pytest.fixture
def client():
    return TestClient(main.app)


@pytest.fixture
def admin(db):
    return AuthService(db).create_admin("ADMIN001", "admin123", "Admin User")


@pytest.fixture
def make_student(db, admin):
    """Create a student through the signup service, approved by default."""
    def _make(student_id, name=None, approved=True, password=PASSWORD):
        user = AuthService(db).register(student_id, password, name or f"Student {student_id}", today=SIGNUP_DATE)
        if approved:
            user = AdminService(db).approve(admin, user.id)
        return user
    return _make


@pytest.fixture
def login():
    """Return a new TestClient logged in as `student_id`."""
    def _login(student_id, password=PASSWORD):
        c = TestClient(main.app)
        r = c.post("/api/auth/login", json={"student_id": student_id, "password": password})
        assert r.status_code == 200, r.text
        return c
    return _login
