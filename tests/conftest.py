"""
Alumni Connect - test fixtures

The API runs against an in-memory mongomock database injected through the
`get_db` dependency, so no MongoDB server is needed.
"""
import itertools
import os

os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ.pop("DATABASE_URL", None)

import mongomock
import pytest
from fastapi.testclient import TestClient

from database import USERS, ensure_indexes, get_db, utcnow
from main import app
from security import hash_password, token_for_user

PASSWORD = "Password123"

_emails = itertools.count(1)


@pytest.fixture
def db():
    database = mongomock.MongoClient()["alumni_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    """Insert an account directly and return the stored document."""

    def _make(role="alumni", is_mentor=False, is_active=True, **extra):
        n = next(_emails)
        now = utcnow()
        doc = {
            "firstName": extra.pop("firstName", f"First{n}"),
            "lastName": extra.pop("lastName", f"Last{n}"),
            "email": extra.pop("email", f"user{n}@alumni.edu"),
            "password": hash_password(extra.pop("password", PASSWORD)),
            "role": role,
            "isMentor": is_mentor,
            "mentorshipAreas": extra.pop("mentorshipAreas", []),
            "isActive": is_active,
            "createdAt": now,
            "updatedAt": now,
            **extra,
        }
        inserted = db[USERS].insert_one(doc)
        return db[USERS].find_one({"_id": inserted.inserted_id})

    return _make


@pytest.fixture
def auth():
    """Authorization header for an account document."""

    def _auth(user):
        return {"Authorization": f"Bearer {token_for_user(user)}"}

    return _auth


@pytest.fixture
def admin(make_user):
    return make_user(role="admin", firstName="Ada", lastName="Admin")


@pytest.fixture
def mentor(make_user):
    return make_user(role="alumni", is_mentor=True, firstName="Priya", lastName="Mentor",
                     mentorshipAreas=["technical-skills", "career-guidance"])


@pytest.fixture
def mentee(make_user):
    return make_user(role="student", firstName="Kavya", lastName="Student")
