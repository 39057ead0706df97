from __future__ import annotations
import logging

from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import sessionmaker, declarative_base
from .settings import settings

logger = logging.getLogger(__name__)

DATABASE_URL = settings.database_url or "sqlite:///./campus_records.db"

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=_connect_args, future=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


def get_db():
	db = SessionLocal()
	try:
		yield db
	finally:
		db.close()


# Best-effort lightweight migrations for development (SQLite-friendly).
# Databases created before marks were scoped to a semester lack the column.
def ensure_schema(bind=None) -> None:
	bind = bind or engine
	try:
		inspector = inspect(bind)
		tables = set(inspector.get_table_names())
	except Exception:
		logger.warning("Could not inspect database schema", exc_info=True)
		return
	if "marks" in tables:
		cols = {c["name"] for c in inspector.get_columns("marks")}
		with bind.begin() as conn:
			if "semester" not in cols:
				logger.info("Adding marks.semester column")
				conn.exec_driver_sql("ALTER TABLE marks ADD COLUMN semester VARCHAR(128) DEFAULT '' NOT NULL")
	if "users" in tables:
		cols = {c["name"] for c in inspector.get_columns("users")}
		with bind.begin() as conn:
			if "prn" not in cols:
				logger.info("Adding users.prn column")
				conn.exec_driver_sql("ALTER TABLE users ADD COLUMN prn VARCHAR(64)")
