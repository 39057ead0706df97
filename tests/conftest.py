import os

os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("GEMINI_API_KEY", None)
os.environ.pop("OPENROUTER_API_KEY", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from campus_records import crud
from campus_records.db import Base, get_db
from campus_records.main import app
from campus_records.routers.auth import hash_password


@pytest.fixture()
def session_factory():
	engine = create_engine(
		"sqlite://",
		connect_args={"check_same_thread": False},
		poolclass=StaticPool,
		future=True,
	)
	Base.metadata.create_all(bind=engine)
	factory = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
	yield factory
	Base.metadata.drop_all(bind=engine)
	engine.dispose()


@pytest.fixture()
def client(session_factory):
	def override_get_db():
		db = session_factory()
		try:
			yield db
		finally:
			db.close()

	app.dependency_overrides[get_db] = override_get_db
	yield TestClient(app)
	app.dependency_overrides.clear()


def make_user(session_factory, *, email, name, role, password="secret123", prn=None):
	with session_factory() as db:
		user = crud.create_user(
			db,
			email=email,
			name=name,
			role=role,
			password_hash=hash_password(password),
			prn=prn,
		)
		return user.id


def login(client, email, role, password="secret123"):
	resp = client.post("/auth/login", json={"email": email, "password": password, "role": role})
	assert resp.status_code == 200, resp.text
	return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@pytest.fixture()
def school(session_factory, client):
	"""Two semesters, two subjects, an admin, a teacher assigned Mathematics in Semester-1, two students."""
	ids = {
		"admin": make_user(session_factory, email="admin@example.com", name="Admin One", role="admin"),
		"teacher": make_user(session_factory, email="teacher@example.com", name="Tara Teacher", role="teacher"),
		"student": make_user(session_factory, email="asha@example.com", name="Asha Patil", role="student", prn="prn001"),
		"student2": make_user(session_factory, email="ben@example.com", name="Ben Roy", role="student", prn="PRN002"),
	}
	with session_factory() as db:
		crud.add_semester(db, "Semester-1")
		crud.add_semester(db, "Semester-2")
		crud.add_system_subject(db, "Mathematics")
		crud.add_system_subject(db, "Physics")
		crud.assign_subjects_to_teacher_for_semester(db, ids["teacher"], "Semester-1", ["Mathematics"])
	ids["admin_headers"] = login(client, "admin@example.com", "admin")
	ids["teacher_headers"] = login(client, "teacher@example.com", "teacher")
	ids["student_headers"] = login(client, "asha@example.com", "student")
	return ids


def add_mark(client, headers, **overrides):
	body = {
		"student_prn": "PRN001",
		"subject": "Mathematics",
		"assessment_type": "CA1",
		"score": 8,
		"semester": "Semester-1",
	}
	body.update(overrides)
	return client.post("/marks", json=body, headers=headers)
