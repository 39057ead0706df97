import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException

from ..gemini_client import GeminiClient, GeminiNotConfiguredError
from ..grading_ai import check_grade_bounds, detect_grade_anomalies
from ..models import User
from ..schemas import GradeAnomalyInput, GradeAnomalyResult
from .auth import require_staff

router = APIRouter(prefix="/anomalies", tags=["anomalies"])

logger = logging.getLogger(__name__)

AI_ERRORS = (httpx.HTTPError, RuntimeError, ValueError)


def open_ai_client() -> GeminiClient:
	try:
		return GeminiClient()
	except GeminiNotConfiguredError as e:
		raise HTTPException(status_code=503, detail=str(e))


def ai_failure(e: Exception) -> HTTPException:
	logger.error("AI request failed: %s", e)
	return HTTPException(status_code=502, detail=f"AI service error: {e}")


@router.post("/detect", response_model=GradeAnomalyResult)
async def detect(req: GradeAnomalyInput, staff: User = Depends(require_staff)):
	# Out-of-bounds grades never need the model
	local = check_grade_bounds(req)
	if local is not None:
		return local
	client = open_ai_client()
	try:
		return await detect_grade_anomalies(req, client)
	except AI_ERRORS as e:
		raise ai_failure(e)
	finally:
		await client.aclose()
