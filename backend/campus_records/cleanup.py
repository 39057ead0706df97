from __future__ import annotations
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete
from sqlalchemy.orm import Session

from .models import AuthSession, User
from .settings import settings

logger = logging.getLogger(__name__)


def purge_stale_sessions(db: Session, now: Optional[datetime] = None) -> int:
	"""Delete sessions idle past the retention window, and sessions of deleted users."""
	now = now or datetime.utcnow()
	threshold = now - timedelta(days=settings.session_retention_days)
	removed = 0

	res = db.execute(delete(AuthSession).where(AuthSession.last_activity_at < threshold))
	removed += res.rowcount or 0

	orphaned = db.query(AuthSession.session_id).outerjoin(User, User.id == AuthSession.user_id).filter(User.id.is_(None))
	orphan_ids = [row.session_id for row in orphaned.all()]
	if orphan_ids:
		res = db.execute(delete(AuthSession).where(AuthSession.session_id.in_(orphan_ids)))
		removed += res.rowcount or 0

	db.commit()
	if removed:
		logger.info("Purged %d stale sessions", removed)
	return removed
