from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .. import crud
from ..aggregation import summarize_performance
from ..db import get_db
from ..models import User
from ..schemas import MarkOut, PerformanceSummary, StudentDetailOut, StudentOut
from .auth import get_current_user, require_staff

router = APIRouter(prefix="/students", tags=["students"])


class RenameRequest(BaseModel):
	name: str


def _student_or_404(db: Session, prn: str, user: User) -> User:
	# Students may only look at their own record
	if user.role == "student" and crud.normalize_prn(prn) != user.prn:
		raise HTTPException(status_code=403, detail="Students can only view their own marks")
	student = crud.get_student_by_prn(db, prn)
	if student is None:
		raise HTTPException(status_code=404, detail=f"Student with PRN {crud.normalize_prn(prn)} not found")
	return student


@router.get("", response_model=List[StudentOut])
def list_students(staff: User = Depends(require_staff), db: Session = Depends(get_db)):
	return [StudentOut(prn=s.prn, name=s.name, email=s.email) for s in crud.get_all_students(db)]


@router.get("/{prn}", response_model=StudentDetailOut)
def get_student(prn: str, semester: Optional[str] = None, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	student = _student_or_404(db, prn, user)
	marks = crud.get_marks_for_student(db, student.prn, semester)
	return StudentDetailOut(
		prn=student.prn,
		name=student.name,
		email=student.email,
		marks=[MarkOut.model_validate(m) for m in marks],
	)


@router.get("/{prn}/performance", response_model=PerformanceSummary)
def get_performance(prn: str, semester: Optional[str] = None, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	student = _student_or_404(db, prn, user)
	return summarize_performance(student.prn, student.name, crud.get_marks_for_student(db, student.prn, semester))


@router.patch("/{prn}", response_model=StudentOut)
def rename_student(prn: str, req: RenameRequest, staff: User = Depends(require_staff), db: Session = Depends(get_db)):
	try:
		student = crud.update_student_name(db, prn, req.name)
	except ValueError as e:
		raise HTTPException(status_code=400, detail=str(e))
	if student is None:
		raise HTTPException(status_code=404, detail=f"Student with PRN {crud.normalize_prn(prn)} not found")
	return StudentOut(prn=student.prn, name=student.name, email=student.email)
