from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, Float, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from .db import Base


ROLES = ("student", "teacher", "admin")
STAFF_ROLES = ("teacher", "admin")

# Fixed maximum score for each graded component of a subject
ASSESSMENT_MAX_SCORES = {
	"CA1": 10,
	"CA2": 10,
	"MidSem": 20,
	"EndSem": 60,
}
ASSESSMENT_TYPES = tuple(ASSESSMENT_MAX_SCORES)


def _new_id() -> str:
	return uuid.uuid4().hex


class User(Base):
	__tablename__ = "users"
	id = Column(String(32), primary_key=True, default=_new_id)
	# Stored trimmed and lower-cased
	email = Column(String(256), unique=True, index=True, nullable=False)
	name = Column(String(256), nullable=False)
	role = Column(String(16), nullable=False, index=True)
	password_hash = Column(String(256), nullable=False)
	# Students only; stored upper-cased
	prn = Column(String(64), nullable=True, index=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

	subject_links = relationship(
		"UserSubject",
		cascade="all, delete-orphan",
		order_by=lambda: UserSubject.subject,
		lazy="selectin",
	)
	assignment_rows = relationship(
		"SemesterAssignment",
		cascade="all, delete-orphan",
		order_by=lambda: [SemesterAssignment.semester, SemesterAssignment.subject],
		lazy="selectin",
	)

	@property
	def is_staff(self) -> bool:
		return self.role in STAFF_ROLES

	@property
	def subjects(self) -> list[str]:
		return [link.subject for link in self.subject_links]

	@property
	def semester_assignments(self) -> list[dict]:
		grouped: dict[str, list[str]] = {}
		for row in self.assignment_rows:
			grouped.setdefault(row.semester, []).append(row.subject)
		return [
			{"semester": semester, "subjects": sorted(subjects)}
			for semester, subjects in sorted(grouped.items(), key=lambda item: item[0].lower())
		]


class UserSubject(Base):
	"""General (semester-independent) subject a teacher or admin manages."""
	__tablename__ = "user_subjects"
	user_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
	subject = Column(String(256), primary_key=True)


class SemesterAssignment(Base):
	__tablename__ = "semester_assignments"
	user_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
	semester = Column(String(128), primary_key=True)
	subject = Column(String(256), primary_key=True)


class Semester(Base):
	__tablename__ = "semesters"
	id = Column(Integer, primary_key=True, autoincrement=True)
	name = Column(String(128), nullable=False)
	# Case-insensitive uniqueness key
	name_lower = Column(String(128), unique=True, index=True, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class SystemSubject(Base):
	__tablename__ = "system_subjects"
	id = Column(Integer, primary_key=True, autoincrement=True)
	name = Column(String(256), nullable=False)
	name_lower = Column(String(256), unique=True, index=True, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class Mark(Base):
	__tablename__ = "marks"
	__table_args__ = (
		UniqueConstraint("student_prn", "subject", "semester", "assessment_type", name="uq_mark_component"),
	)
	id = Column(String(32), primary_key=True, default=_new_id)
	student_prn = Column(String(64), index=True, nullable=False)
	subject = Column(String(256), index=True, nullable=False)
	assessment_type = Column(String(16), nullable=False)
	score = Column(Float, nullable=False)
	max_score = Column(Integer, nullable=False)
	semester = Column(String(128), index=True, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class AuthSession(Base):
	__tablename__ = "auth_sessions"
	# JWT "jti" claim
	session_id = Column(String(64), primary_key=True)
	user_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	last_activity_at = Column(DateTime, default=datetime.utcnow, nullable=False)
