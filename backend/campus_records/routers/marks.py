from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .. import crud
from ..aggregation import build_mark_matrix, filter_marks
from ..db import get_db
from ..grading_ai import suggest_marks
from ..models import ASSESSMENT_MAX_SCORES, Mark, User
from ..permissions import can_grade, holds_subject
from ..schemas import (
	MarkCreate,
	MarkMatrixRow,
	MarkOut,
	MarkSaveResult,
	MarksSuggestion,
	MarksSuggestionInput,
	MarkUpdate,
)
from .anomalies import AI_ERRORS, ai_failure, open_ai_client
from .auth import require_staff

router = APIRouter(prefix="/marks", tags=["marks"])


def _mark_out(mark: Mark, names: dict) -> MarkOut:
	out = MarkOut.model_validate(mark)
	out.student_name = names.get(mark.student_prn)
	return out


def _ensure_can_grade(user: User, subject: str, semester: str) -> None:
	if not can_grade(user, subject, semester):
		raise HTTPException(
			status_code=403,
			detail=f"You are not authorized to manage marks for {subject} in {semester}.",
		)


def _mark_or_404(db: Session, mark_id: str) -> Mark:
	mark = crud.get_mark(db, mark_id)
	if mark is None:
		raise HTTPException(status_code=404, detail="Mark not found")
	return mark


@router.get("", response_model=List[MarkOut])
def list_marks(
	semester: Optional[str] = None,
	q: Optional[str] = None,
	staff: User = Depends(require_staff),
	db: Session = Depends(get_db),
):
	names = crud.student_names(db)
	marks = filter_marks(crud.get_all_marks(db, semester), names, q)
	return [_mark_out(m, names) for m in marks]


@router.get("/matrix", response_model=List[MarkMatrixRow])
def mark_matrix(
	semester: Optional[str] = None,
	q: Optional[str] = None,
	staff: User = Depends(require_staff),
	db: Session = Depends(get_db),
):
	names = crud.student_names(db)
	marks = filter_marks(crud.get_all_marks(db, semester), names, q)
	return build_mark_matrix(marks, names, lambda subject, sem: can_grade(staff, subject, sem))


@router.post("", status_code=201, response_model=MarkSaveResult)
def add_mark(req: MarkCreate, staff: User = Depends(require_staff), db: Session = Depends(get_db)):
	_ensure_can_grade(staff, req.subject, req.semester)
	try:
		mark, created = crud.add_mark(
			db,
			student_prn=req.student_prn,
			subject=req.subject,
			assessment_type=req.assessment_type,
			score=req.score,
			max_score=req.max_score,
			semester=req.semester,
		)
	except ValueError as e:
		raise HTTPException(status_code=400, detail=str(e))
	return MarkSaveResult(mark=_mark_out(mark, crud.student_names(db)), created=created)


@router.put("/{mark_id}", response_model=MarkOut)
def update_mark(mark_id: str, req: MarkUpdate, staff: User = Depends(require_staff), db: Session = Depends(get_db)):
	mark = _mark_or_404(db, mark_id)
	_ensure_can_grade(staff, mark.subject, mark.semester)
	_ensure_can_grade(staff, req.subject, req.semester)
	try:
		mark = crud.update_mark(
			db,
			mark,
			subject=req.subject,
			assessment_type=req.assessment_type,
			score=req.score,
			max_score=req.max_score,
			semester=req.semester,
		)
	except crud.DuplicateRecordError as e:
		raise HTTPException(status_code=409, detail=str(e))
	except ValueError as e:
		raise HTTPException(status_code=400, detail=str(e))
	return _mark_out(mark, crud.student_names(db))


@router.delete("/{mark_id}", status_code=204)
def delete_mark(mark_id: str, staff: User = Depends(require_staff), db: Session = Depends(get_db)):
	mark = _mark_or_404(db, mark_id)
	_ensure_can_grade(staff, mark.subject, mark.semester)
	crud.delete_mark(db, mark.id)


@router.post("/suggest", response_model=MarksSuggestion)
async def suggest(req: MarksSuggestionInput, staff: User = Depends(require_staff), db: Session = Depends(get_db)):
	if req.semester:
		_ensure_can_grade(staff, req.subject, req.semester)
	elif not holds_subject(staff, req.subject):
		raise HTTPException(status_code=403, detail=f"You are not authorized to suggest marks for {req.subject}.")
	student = crud.get_student_by_prn(db, req.prn)
	if student is None:
		raise HTTPException(status_code=404, detail="Selected student PRN is invalid.")
	history = [
		f"{m.subject} {m.assessment_type} ({m.semester}): {m.score:g}/{m.max_score}"
		for m in crud.get_marks_for_student(db, student.prn)
	]
	client = open_ai_client()
	try:
		return await suggest_marks(
			client,
			student_name=student.name,
			prn=student.prn,
			subject=req.subject,
			assessment_type=req.assessment_type,
			max_marks=ASSESSMENT_MAX_SCORES[req.assessment_type],
			history=history,
		)
	except AI_ERRORS as e:
		raise ai_failure(e)
	finally:
		await client.aclose()
