from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .. import crud
from ..aggregation import summarize_performance
from ..db import get_db
from ..models import Mark, Semester, SystemSubject, User
from ..permissions import can_grade
from ..schemas import PerformanceSummary, SemesterAssignmentOut, UserOut
from .auth import require_admin, require_roles, require_staff

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


class AdminDashboard(BaseModel):
	users_by_role: Dict[str, int]
	semesters: int
	subjects: int
	marks: int


class TeacherDashboard(BaseModel):
	user: UserOut
	subjects: List[str]
	semester_assignments: List[SemesterAssignmentOut]
	editable_marks: int


class StudentDashboard(BaseModel):
	user: UserOut
	performance: PerformanceSummary


@router.get("/admin", response_model=AdminDashboard)
def admin_dashboard(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
	return AdminDashboard(
		users_by_role=crud.count_users_by_role(db),
		semesters=crud.count_rows(db, Semester),
		subjects=crud.count_rows(db, SystemSubject),
		marks=crud.count_rows(db, Mark),
	)


@router.get("/teacher", response_model=TeacherDashboard)
def teacher_dashboard(staff: User = Depends(require_staff), db: Session = Depends(get_db)):
	editable = sum(1 for m in crud.get_all_marks(db) if can_grade(staff, m.subject, m.semester))
	return TeacherDashboard(
		user=UserOut.model_validate(staff),
		subjects=staff.subjects,
		semester_assignments=staff.semester_assignments,
		editable_marks=editable,
	)


@router.get("/student", response_model=StudentDashboard)
def student_dashboard(student: User = Depends(require_roles("student")), db: Session = Depends(get_db)):
	if not student.prn:
		raise HTTPException(status_code=404, detail="Your account has no PRN on record")
	marks = crud.get_marks_for_student(db, student.prn)
	return StudentDashboard(
		user=UserOut.model_validate(student),
		performance=summarize_performance(student.prn, student.name, marks),
	)
