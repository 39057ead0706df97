import asyncio
import logging

from fastapi import FastAPI

from .db import Base, engine, SessionLocal, ensure_schema
from .cleanup import purge_stale_sessions
from .settings import settings
from .routers import health
from .routers import auth
from .routers import semesters
from .routers import subjects
from .routers import users
from .routers import students
from .routers import marks
from .routers import anomalies
from .routers import dashboard

logging.basicConfig(
	level=getattr(logging, settings.log_level.upper(), logging.INFO),
	format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Campus Records API")
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(semesters.router)
app.include_router(subjects.router)
app.include_router(users.router)
app.include_router(students.router)
app.include_router(marks.router)
app.include_router(anomalies.router)
app.include_router(dashboard.router)


@app.get("/info")
def root():
	return {"status": "ok", "ai_configured": settings.ai_configured}


def _run_cleanup() -> None:
	db = SessionLocal()
	try:
		purge_stale_sessions(db)
	except Exception:
		logger.exception("Session cleanup failed")
	finally:
		db.close()


async def _cleanup_watcher():
	# Startup already ran one pass
	while True:
		await asyncio.sleep(24 * 60 * 60)
		_run_cleanup()


@app.on_event("startup")
async def startup_event():
	Base.metadata.create_all(bind=engine)
	ensure_schema()
	db = SessionLocal()
	try:
		auth.ensure_seed_admin(db)
	except Exception:
		logger.exception("Could not create seed admin")
	finally:
		db.close()
	_run_cleanup()
	if not settings.ai_configured:
		logger.warning("GEMINI_API_KEY is not set; grade anomaly detection and mark suggestions are disabled")
	asyncio.create_task(_cleanup_watcher())
