from datetime import datetime, timedelta, timezone
from typing import Optional
import logging
import uuid

from fastapi import APIRouter, HTTPException, Depends
from fastapi.security import OAuth2PasswordRequestForm, OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel, Field

from ..settings import settings
from sqlalchemy.orm import Session
from ..db import get_db
from .. import crud
from ..models import AuthSession, User
from ..schemas import Role, UserOut

router = APIRouter(prefix="/auth", tags=["auth"])

logger = logging.getLogger(__name__)
logging.getLogger('passlib').setLevel(logging.ERROR)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.bcrypt_rounds)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


class Token(BaseModel):
	access_token: str
	token_type: str = "bearer"
	user: Optional[UserOut] = None


class LoginRequest(BaseModel):
	email: str
	password: str
	role: Role


class RegisterRequest(BaseModel):
	name: str = Field(min_length=2)
	email: str
	password: str = Field(min_length=6)
	role: Role
	prn: Optional[str] = None


def _bcrypt_safe(password: str) -> str:
	# bcrypt only looks at the first 72 bytes
	password_bytes = (password or "").encode('utf-8')
	if len(password_bytes) > 72:
		password_bytes = password_bytes[:72]
	return password_bytes.decode('utf-8', errors='ignore')


def hash_password(password: str) -> str:
	return pwd_context.hash(_bcrypt_safe(password))


def verify_password(plain_password: str, hashed_password: str) -> bool:
	return pwd_context.verify(_bcrypt_safe(plain_password), hashed_password)


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
	user = crud.get_user_by_email(db, email)
	if user and verify_password(password, user.password_hash):
		return user
	return None


def ensure_seed_admin(db: Session) -> Optional[User]:
	email = settings.seed_admin_email
	password = settings.seed_admin_password
	if not email or not password:
		return None
	existing = crud.get_user_by_email(db, email)
	if existing is not None:
		return existing
	logger.info("Creating seed admin %s", email)
	return crud.create_user(
		db,
		email=email,
		name=settings.seed_admin_name,
		role="admin",
		password_hash=hash_password(password),
	)


def _resolve_expiry(expires_delta: Optional[timedelta]) -> datetime:
	delta = expires_delta
	if delta is None:
		minutes = settings.access_token_expire_minutes
		delta = timedelta(minutes=minutes) if minutes > 0 else timedelta(days=30)
	now = datetime.now(timezone.utc)
	try:
		return now + delta
	except OverflowError:
		return datetime.max.replace(tzinfo=timezone.utc)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
	to_encode = data.copy()
	to_encode.update({"exp": _resolve_expiry(expires_delta)})
	return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def _start_session(db: Session, user: User) -> Token:
	session_id = uuid.uuid4().hex
	access_token = create_access_token({"sub": user.id, "role": user.role, "jti": session_id})
	db.add(AuthSession(session_id=session_id, user_id=user.id))
	db.commit()
	return Token(access_token=access_token, user=UserOut.model_validate(user))


@router.post("/token", response_model=Token)
async def login_for_token(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
	user = authenticate_user(db, form_data.username, form_data.password)
	if not user:
		raise HTTPException(status_code=401, detail="Incorrect email or password")
	return _start_session(db, user)


@router.post("/login", response_model=Token)
async def login(req: LoginRequest, db: Session = Depends(get_db)):
	user = authenticate_user(db, req.email, req.password)
	if not user:
		logger.warning("Failed login for %s", crud.normalize_email(req.email))
		raise HTTPException(status_code=401, detail="User not found or incorrect credentials")
	if user.role != req.role:
		logger.warning("Role mismatch for %s: stored %s, attempted %s", user.email, user.role, req.role)
		raise HTTPException(status_code=403, detail="Role mismatch. Please select the correct role.")
	return _start_session(db, user)


def _decode_session(token: str) -> tuple[str, str]:
	credentials_exception = HTTPException(status_code=401, detail="Could not validate credentials")
	try:
		payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
	except JWTError:
		raise credentials_exception
	user_id: str | None = payload.get("sub")
	jti: str | None = payload.get("jti")
	if user_id is None or jti is None:
		raise credentials_exception
	return user_id, jti


def get_current_session(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> AuthSession:
	credentials_exception = HTTPException(status_code=401, detail="Could not validate credentials")
	user_id, jti = _decode_session(token)
	# A missing row means the session was revoked (logout, user deleted, or purged)
	row = db.get(AuthSession, jti)
	if not row or row.user_id != user_id:
		raise credentials_exception
	row.last_activity_at = datetime.utcnow()
	db.commit()
	return row


def get_current_user(session: AuthSession = Depends(get_current_session), db: Session = Depends(get_db)) -> User:
	user = crud.get_user(db, session.user_id)
	if user is None:
		raise HTTPException(status_code=401, detail="Could not validate credentials")
	return user


def require_roles(*roles: str):
	allowed = {r.strip().lower() for r in roles}

	def dependency(user: User = Depends(get_current_user)) -> User:
		if user.role not in allowed:
			raise HTTPException(status_code=403, detail="You do not have permission to access this resource.")
		return user

	return dependency


require_staff = require_roles("teacher", "admin")
require_admin = require_roles("admin")


@router.get("/me", response_model=UserOut)
async def me(user: User = Depends(get_current_user)):
	return user


@router.post("/logout", status_code=204)
async def logout(session: AuthSession = Depends(get_current_session), db: Session = Depends(get_db)):
	db.delete(session)
	db.commit()


@router.post("/register", status_code=201, response_model=Token)
async def register(req: RegisterRequest, db: Session = Depends(get_db)):
	if req.role == "student" and not crud.normalize_prn(req.prn):
		raise HTTPException(status_code=400, detail="PRN is required for student registration.")
	if "@" not in crud.normalize_email(req.email):
		raise HTTPException(status_code=400, detail="Invalid email address.")
	try:
		user = crud.create_user(
			db,
			email=req.email,
			name=req.name,
			role=req.role,
			password_hash=hash_password(req.password),
			prn=req.prn,
		)
	except crud.DuplicateRecordError as e:
		raise HTTPException(status_code=409, detail=str(e))
	except ValueError as e:
		raise HTTPException(status_code=400, detail=str(e))
	return _start_session(db, user)
