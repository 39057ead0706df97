"""Data access functions for semesters, subjects, users, students and marks.

Every mutation commits on success and rolls the session back on failure, so a
cascading rename or delete is applied completely or not at all.
"""
from __future__ import annotations
import logging
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import delete, func, update
from sqlalchemy.orm import Session

from .models import (
	ROLES,
	STAFF_ROLES,
	AuthSession,
	Mark,
	Semester,
	SemesterAssignment,
	SystemSubject,
	User,
	UserSubject,
)

logger = logging.getLogger(__name__)


class DuplicateRecordError(ValueError):
	pass


class InvalidReferenceError(ValueError):
	pass


def robust_trim(value: Optional[str]) -> str:
	if not isinstance(value, str):
		return ""
	# str.strip() keeps byte order marks
	return value.strip().strip("\ufeff").strip()


def normalize_email(value: Optional[str]) -> str:
	return robust_trim(value).lower()


def normalize_prn(value: Optional[str]) -> str:
	return robust_trim(value).upper()


def _commit(db: Session, action: str) -> None:
	try:
		db.commit()
	except Exception:
		db.rollback()
		logger.exception("%s failed; changes rolled back", action)
		raise


# --- Named lookup tables (semesters, system subjects) ---

def _find_named(db: Session, model, name: str):
	key = robust_trim(name).lower()
	if not key:
		return None
	return db.query(model).filter(model.name_lower == key).first()


def _list_names(db: Session, model) -> List[str]:
	return [row.name for row in db.query(model).order_by(model.name).all()]


def _add_named(db: Session, model, name: str, label: str):
	cleaned = robust_trim(name)
	if not cleaned:
		raise ValueError(f"{label} name is required")
	if _find_named(db, model, cleaned) is not None:
		logger.warning("%s %r already exists", label, cleaned)
		raise DuplicateRecordError(f"{label} '{cleaned}' already exists")
	row = model(name=cleaned, name_lower=cleaned.lower())
	db.add(row)
	_commit(db, f"add {label.lower()}")
	db.refresh(row)
	return row


def _check_rename(db: Session, model, old_name: str, new_name: str, label: str):
	old_clean = robust_trim(old_name)
	new_clean = robust_trim(new_name)
	if not old_clean or not new_clean:
		raise ValueError(f"{label} names must not be blank")
	if old_clean.lower() == new_clean.lower():
		raise ValueError(f"New {label.lower()} name must differ from the current one")
	row = _find_named(db, model, old_clean)
	if row is None:
		logger.warning("%s %r not found for renaming", label, old_clean)
		return None, new_clean
	if _find_named(db, model, new_clean) is not None:
		raise DuplicateRecordError(f"{label} '{new_clean}' already exists")
	return row, new_clean


# --- Semesters ---

def get_semesters(db: Session) -> List[str]:
	return _list_names(db, Semester)


def get_semester(db: Session, name: str) -> Optional[Semester]:
	return _find_named(db, Semester, name)


def add_semester(db: Session, name: str) -> Semester:
	return _add_named(db, Semester, name, "Semester")


def rename_semester(db: Session, old_name: str, new_name: str) -> Optional[Semester]:
	row, new_clean = _check_rename(db, Semester, old_name, new_name, "Semester")
	if row is None:
		return None
	old_lower = row.name_lower
	row.name = new_clean
	row.name_lower = new_clean.lower()
	db.execute(
		update(SemesterAssignment)
		.where(func.lower(SemesterAssignment.semester) == old_lower)
		.values(semester=new_clean)
		.execution_options(synchronize_session=False)
	)
	db.execute(
		update(Mark)
		.where(func.lower(Mark.semester) == old_lower)
		.values(semester=new_clean)
		.execution_options(synchronize_session=False)
	)
	_commit(db, "rename semester")
	db.refresh(row)
	logger.info("Renamed semester %r to %r", old_name, new_clean)
	return row


def delete_semester(db: Session, name: str) -> bool:
	row = _find_named(db, Semester, name)
	if row is None:
		logger.warning("Semester %r not found for deletion", name)
		return False
	key = row.name_lower
	db.delete(row)
	db.execute(
		delete(SemesterAssignment)
		.where(func.lower(SemesterAssignment.semester) == key)
		.execution_options(synchronize_session=False)
	)
	res = db.execute(
		delete(Mark)
		.where(func.lower(Mark.semester) == key)
		.execution_options(synchronize_session=False)
	)
	_commit(db, "delete semester")
	logger.info("Deleted semester %r and %d marks", name, res.rowcount or 0)
	return True


# --- System subjects ---

def get_all_available_subjects(db: Session) -> List[str]:
	subjects = _list_names(db, SystemSubject)
	if not subjects:
		logger.warning("No system subjects defined yet")
	return subjects


def get_system_subject(db: Session, name: str) -> Optional[SystemSubject]:
	return _find_named(db, SystemSubject, name)


def add_system_subject(db: Session, name: str) -> SystemSubject:
	return _add_named(db, SystemSubject, name, "Subject")


def rename_system_subject(db: Session, old_name: str, new_name: str) -> Optional[SystemSubject]:
	row, new_clean = _check_rename(db, SystemSubject, old_name, new_name, "Subject")
	if row is None:
		return None
	old_exact = row.name
	row.name = new_clean
	row.name_lower = new_clean.lower()
	for model in (UserSubject, SemesterAssignment, Mark):
		db.execute(
			update(model)
			.where(model.subject == old_exact)
			.values(subject=new_clean)
			.execution_options(synchronize_session=False)
		)
	_commit(db, "rename subject")
	db.refresh(row)
	logger.info("Renamed subject %r to %r", old_exact, new_clean)
	return row


def deleted_subject_label(name: str) -> str:
	return f"Deleted Subject ({name})"


def delete_system_subject(db: Session, name: str) -> bool:
	row = _find_named(db, SystemSubject, name)
	if row is None:
		logger.warning("Subject %r not found for deletion", name)
		return False
	exact = row.name
	db.delete(row)
	for model in (UserSubject, SemesterAssignment):
		db.execute(
			delete(model)
			.where(model.subject == exact)
			.execution_options(synchronize_session=False)
		)
	# Marks are kept for the record but no longer count towards a live subject
	db.execute(
		update(Mark)
		.where(Mark.subject == exact)
		.values(subject=deleted_subject_label(exact))
		.execution_options(synchronize_session=False)
	)
	_commit(db, "delete subject")
	logger.info("Deleted subject %r", exact)
	return True


def _require_subjects(db: Session, subjects: Iterable[str]) -> List[str]:
	known = {s.lower(): s for s in get_all_available_subjects(db)}
	resolved = set()
	for subject in subjects:
		cleaned = robust_trim(subject)
		if not cleaned:
			continue
		canonical = known.get(cleaned.lower())
		if canonical is None:
			raise InvalidReferenceError(f"Unknown subject '{cleaned}'")
		resolved.add(canonical)
	return sorted(resolved)


# --- Users ---

def get_user(db: Session, user_id: str) -> Optional[User]:
	return db.get(User, user_id)


def get_user_by_email(db: Session, email: str) -> Optional[User]:
	cleaned = normalize_email(email)
	if not cleaned:
		return None
	return db.query(User).filter(User.email == cleaned).first()


def get_user_by_prn(db: Session, prn: str) -> Optional[User]:
	cleaned = normalize_prn(prn)
	if not cleaned:
		return None
	return db.query(User).filter(User.role == "student", User.prn == cleaned).first()


def create_user(
	db: Session,
	*,
	email: str,
	name: str,
	role: str,
	password_hash: str,
	prn: Optional[str] = None,
	subjects: Optional[Iterable[str]] = None,
) -> User:
	email_clean = normalize_email(email)
	name_clean = robust_trim(name)
	if not email_clean or not name_clean:
		raise ValueError("name and email are required")
	if role not in ROLES:
		raise ValueError(f"Unknown role '{role}'")
	if get_user_by_email(db, email_clean) is not None:
		raise DuplicateRecordError(f"User with email {email_clean} already exists.")
	prn_clean = None
	if role == "student":
		prn_clean = normalize_prn(prn)
		if not prn_clean:
			raise ValueError("PRN is required for student registration.")
		if get_user_by_prn(db, prn_clean) is not None:
			raise DuplicateRecordError(f"Student with PRN {prn_clean} already exists.")
	user = User(email=email_clean, name=name_clean, role=role, password_hash=password_hash, prn=prn_clean)
	if subjects and role in STAFF_ROLES:
		user.subject_links = [UserSubject(subject=s) for s in _require_subjects(db, subjects)]
	db.add(user)
	_commit(db, "create user")
	db.refresh(user)
	logger.info("Created %s user %s", role, email_clean)
	return user


def get_all_users(db: Session, search: Optional[str] = None) -> List[User]:
	users = db.query(User).order_by(User.name).all()
	term = robust_trim(search).lower()
	if not term:
		return users
	return [
		u for u in users
		if term in u.name.lower()
		or term in u.email.lower()
		or term in u.role.lower()
		or term in (u.prn or "").lower()
	]


def get_all_teachers(db: Session) -> List[User]:
	return db.query(User).filter(User.role.in_(STAFF_ROLES)).order_by(User.name).all()


def _get_staff_user(db: Session, user_id: str) -> Optional[User]:
	user = get_user(db, user_id)
	if user is None:
		logger.warning("User %s not found", user_id)
		return None
	if not user.is_staff:
		raise ValueError(f"User {user_id} is not a teacher or admin")
	return user


def assign_subjects_to_teacher(db: Session, user_id: str, subjects: Iterable[str]) -> Optional[User]:
	user = _get_staff_user(db, user_id)
	if user is None:
		return None
	wanted = _require_subjects(db, subjects)
	current = {link.subject: link for link in user.subject_links}
	for subject, link in current.items():
		if subject not in wanted:
			user.subject_links.remove(link)
	for subject in wanted:
		if subject not in current:
			user.subject_links.append(UserSubject(subject=subject))
	_commit(db, "assign subjects")
	db.refresh(user)
	return user


def assign_subjects_to_teacher_for_semester(
	db: Session, user_id: str, semester: str, subjects: Iterable[str]
) -> Optional[User]:
	user = _get_staff_user(db, user_id)
	if user is None:
		return None
	semester_row = get_semester(db, semester)
	if semester_row is None:
		raise InvalidReferenceError(f"Unknown semester '{robust_trim(semester)}'")
	wanted = _require_subjects(db, subjects)
	key = semester_row.name_lower
	current = {row.subject: row for row in user.assignment_rows if row.semester.lower() == key}
	# An empty selection removes the semester assignment entirely
	for subject, row in current.items():
		if subject not in wanted:
			user.assignment_rows.remove(row)
	for subject in wanted:
		if subject not in current:
			user.assignment_rows.append(SemesterAssignment(semester=semester_row.name, subject=subject))
	_commit(db, "assign semester subjects")
	db.refresh(user)
	return user


def delete_user(db: Session, user_id: str) -> bool:
	user = get_user(db, user_id)
	if user is None:
		return False
	if user.role == "student" and user.prn:
		db.execute(
			delete(Mark)
			.where(Mark.student_prn == user.prn)
			.execution_options(synchronize_session=False)
		)
	db.execute(
		delete(AuthSession)
		.where(AuthSession.user_id == user.id)
		.execution_options(synchronize_session=False)
	)
	db.delete(user)
	_commit(db, "delete user")
	logger.info("Deleted user %s (%s)", user.email, user.role)
	return True


# --- Students ---

def get_all_students(db: Session) -> List[User]:
	students = []
	for user in db.query(User).filter(User.role == "student").order_by(User.name).all():
		if not user.prn:
			logger.warning("Student user %s (%s) is missing a PRN; skipping", user.name, user.id)
			continue
		students.append(user)
	return students


def get_student_by_prn(db: Session, prn: str) -> Optional[User]:
	student = get_user_by_prn(db, prn)
	if student is None:
		logger.warning("Student with PRN %s not found", prn)
	return student


def get_marks_for_student(db: Session, prn: str, semester: Optional[str] = None) -> List[Mark]:
	query = db.query(Mark).filter(Mark.student_prn == normalize_prn(prn))
	if semester:
		query = query.filter(func.lower(Mark.semester) == robust_trim(semester).lower())
	return query.order_by(Mark.semester, Mark.subject, Mark.assessment_type).all()


def update_student_name(db: Session, prn: str, new_name: str) -> Optional[User]:
	cleaned = robust_trim(new_name)
	if len(cleaned) < 2:
		raise ValueError("Name must be at least 2 characters.")
	student = get_student_by_prn(db, prn)
	if student is None:
		return None
	student.name = cleaned
	_commit(db, "rename student")
	db.refresh(student)
	return student


def student_names(db: Session) -> dict:
	return {s.prn: s.name for s in get_all_students(db)}


# --- Marks ---

def get_all_marks(db: Session, semester: Optional[str] = None) -> List[Mark]:
	query = db.query(Mark)
	if semester:
		query = query.filter(func.lower(Mark.semester) == robust_trim(semester).lower())
	return query.order_by(Mark.student_prn, Mark.subject, Mark.semester).all()


def get_mark(db: Session, mark_id: str) -> Optional[Mark]:
	return db.get(Mark, mark_id)


def _find_mark_component(db: Session, prn: str, subject: str, semester: str, assessment_type: str) -> Optional[Mark]:
	return (
		db.query(Mark)
		.filter(
			Mark.student_prn == prn,
			Mark.subject == subject,
			Mark.semester == semester,
			Mark.assessment_type == assessment_type,
		)
		.first()
	)


def _resolve_mark_refs(db: Session, student_prn: str, subject: str, semester: str) -> Tuple[str, str, str]:
	student = get_user_by_prn(db, student_prn)
	if student is None:
		raise InvalidReferenceError(f"Student with PRN {normalize_prn(student_prn)} not found. Cannot save mark.")
	semester_row = get_semester(db, semester)
	if semester_row is None:
		raise InvalidReferenceError(f"Unknown semester '{robust_trim(semester)}'")
	subject_row = get_system_subject(db, subject)
	subject_name = subject_row.name if subject_row is not None else robust_trim(subject)
	return student.prn, subject_name, semester_row.name


def add_mark(
	db: Session,
	*,
	student_prn: str,
	subject: str,
	assessment_type: str,
	score: float,
	max_score: int,
	semester: str,
) -> Tuple[Mark, bool]:
	"""Insert a mark, or update the existing one for the same component.

	Returns the mark and whether a new row was created.
	"""
	prn, subject_name, semester_name = _resolve_mark_refs(db, student_prn, subject, semester)
	existing = _find_mark_component(db, prn, subject_name, semester_name, assessment_type)
	if existing is not None:
		logger.warning(
			"Mark for %s in %s (%s) for student %s already exists; updating instead",
			assessment_type, subject_name, semester_name, prn,
		)
		existing.score = score
		existing.max_score = max_score
		_commit(db, "update mark")
		db.refresh(existing)
		return existing, False
	mark = Mark(
		student_prn=prn,
		subject=subject_name,
		assessment_type=assessment_type,
		score=score,
		max_score=max_score,
		semester=semester_name,
	)
	db.add(mark)
	_commit(db, "add mark")
	db.refresh(mark)
	return mark, True


def update_mark(
	db: Session,
	mark: Mark,
	*,
	subject: str,
	assessment_type: str,
	score: float,
	max_score: int,
	semester: str,
) -> Mark:
	_, subject_name, semester_name = _resolve_mark_refs(db, mark.student_prn, subject, semester)
	clash = _find_mark_component(db, mark.student_prn, subject_name, semester_name, assessment_type)
	if clash is not None and clash.id != mark.id:
		raise DuplicateRecordError(
			f"A mark for {assessment_type} in {subject_name} ({semester_name}) already exists for this student."
		)
	mark.subject = subject_name
	mark.assessment_type = assessment_type
	mark.score = score
	mark.max_score = max_score
	mark.semester = semester_name
	_commit(db, "update mark")
	db.refresh(mark)
	return mark


def delete_mark(db: Session, mark_id: str) -> bool:
	mark = get_mark(db, mark_id)
	if mark is None:
		return False
	db.delete(mark)
	_commit(db, "delete mark")
	return True


def count_users_by_role(db: Session) -> dict:
	counts = {role: 0 for role in ROLES}
	for role, n in db.query(User.role, func.count(User.id)).group_by(User.role).all():
		counts[role] = n
	return counts


def count_rows(db: Session, model) -> int:
	return db.query(func.count()).select_from(model).scalar() or 0
