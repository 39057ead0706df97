from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .. import crud
from ..db import get_db
from ..models import User
from .auth import get_current_user, require_admin

router = APIRouter(prefix="/subjects", tags=["subjects"])


class SubjectRequest(BaseModel):
	name: str


class SubjectOut(BaseModel):
	name: str


@router.get("", response_model=List[str])
def list_subjects(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	return crud.get_all_available_subjects(db)


@router.post("", status_code=201, response_model=SubjectOut)
def add_subject(req: SubjectRequest, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
	try:
		row = crud.add_system_subject(db, req.name)
	except crud.DuplicateRecordError as e:
		raise HTTPException(status_code=409, detail=str(e))
	except ValueError as e:
		raise HTTPException(status_code=400, detail=str(e))
	return SubjectOut(name=row.name)


@router.put("/{name:path}", response_model=SubjectOut)
def rename_subject(name: str, req: SubjectRequest, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
	try:
		row = crud.rename_system_subject(db, name, req.name)
	except crud.DuplicateRecordError as e:
		raise HTTPException(status_code=409, detail=str(e))
	except ValueError as e:
		raise HTTPException(status_code=400, detail=str(e))
	if row is None:
		raise HTTPException(status_code=404, detail=f"Subject '{name}' not found")
	return SubjectOut(name=row.name)


@router.delete("/{name:path}", status_code=204)
def delete_subject(name: str, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
	# Marks for the subject are relabelled, not removed
	if not crud.delete_system_subject(db, name):
		raise HTTPException(status_code=404, detail=f"Subject '{name}' not found")
