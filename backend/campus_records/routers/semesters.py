from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .. import crud
from ..db import get_db
from ..models import User
from .auth import get_current_user, require_admin

router = APIRouter(prefix="/semesters", tags=["semesters"])


class SemesterRequest(BaseModel):
	name: str


class SemesterOut(BaseModel):
	name: str


@router.get("", response_model=List[str])
def list_semesters(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	return crud.get_semesters(db)


@router.post("", status_code=201, response_model=SemesterOut)
def add_semester(req: SemesterRequest, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
	try:
		row = crud.add_semester(db, req.name)
	except crud.DuplicateRecordError as e:
		raise HTTPException(status_code=409, detail=str(e))
	except ValueError as e:
		raise HTTPException(status_code=400, detail=str(e))
	return SemesterOut(name=row.name)


@router.put("/{name:path}", response_model=SemesterOut)
def rename_semester(name: str, req: SemesterRequest, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
	try:
		row = crud.rename_semester(db, name, req.name)
	except crud.DuplicateRecordError as e:
		raise HTTPException(status_code=409, detail=str(e))
	except ValueError as e:
		raise HTTPException(status_code=400, detail=str(e))
	if row is None:
		raise HTTPException(status_code=404, detail=f"Semester '{name}' not found")
	return SemesterOut(name=row.name)


@router.delete("/{name:path}", status_code=204)
def delete_semester(name: str, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
	if not crud.delete_semester(db, name):
		raise HTTPException(status_code=404, detail=f"Semester '{name}' not found")
