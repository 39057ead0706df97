from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .. import crud
from ..db import get_db
from ..models import User
from ..schemas import UserOut
from .auth import require_admin

router = APIRouter(prefix="/users", tags=["users"])


class SubjectsRequest(BaseModel):
	subjects: List[str] = []


@router.get("", response_model=List[UserOut])
def list_users(q: Optional[str] = None, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
	return crud.get_all_users(db, search=q)


@router.get("/teachers", response_model=List[UserOut])
def list_teachers(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
	return crud.get_all_teachers(db)


@router.put("/{user_id}/subjects", response_model=UserOut)
def assign_subjects(user_id: str, req: SubjectsRequest, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
	try:
		user = crud.assign_subjects_to_teacher(db, user_id, req.subjects)
	except ValueError as e:
		raise HTTPException(status_code=400, detail=str(e))
	if user is None:
		raise HTTPException(status_code=404, detail="User not found")
	return user


@router.put("/{user_id}/semesters/{semester:path}/subjects", response_model=UserOut)
def assign_semester_subjects(
	user_id: str,
	semester: str,
	req: SubjectsRequest,
	admin: User = Depends(require_admin),
	db: Session = Depends(get_db),
):
	try:
		user = crud.assign_subjects_to_teacher_for_semester(db, user_id, semester, req.subjects)
	except ValueError as e:
		raise HTTPException(status_code=400, detail=str(e))
	if user is None:
		raise HTTPException(status_code=404, detail="User not found")
	return user


@router.delete("/{user_id}", status_code=204)
def delete_user(user_id: str, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
	if user_id == admin.id:
		raise HTTPException(status_code=400, detail="You cannot delete your own account")
	if not crud.delete_user(db, user_id):
		raise HTTPException(status_code=404, detail="User not found")
