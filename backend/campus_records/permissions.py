from __future__ import annotations
from typing import Set

from .models import User


def gradable_subjects(user: User, semester: str) -> Set[str]:
	"""Subjects the user may grade in a semester: that semester's assignment plus general subjects."""
	if user is None or not user.is_staff:
		return set()
	key = (semester or "").strip().lower()
	allowed = set(user.subjects)
	for row in user.assignment_rows:
		if row.semester.lower() == key:
			allowed.add(row.subject)
	return allowed


def can_grade(user: User, subject: str, semester: str) -> bool:
	key = (subject or "").strip().lower()
	return any(s.lower() == key for s in gradable_subjects(user, semester))


def holds_subject(user: User, subject: str) -> bool:
	"""Whether the subject appears in the user's general subjects or any semester assignment."""
	if user is None or not user.is_staff:
		return False
	key = (subject or "").strip().lower()
	names = set(user.subjects) | {row.subject for row in user.assignment_rows}
	return any(s.lower() == key for s in names)
