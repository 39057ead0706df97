from __future__ import annotations
import json
import logging
import re
from typing import Any, Dict, Iterable, Optional

from .gemini_client import GeminiClient
from .schemas import GradeAnomalyInput, GradeAnomalyResult, MarksSuggestion

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_model_json(text: str) -> Dict[str, Any]:
	"""Parse a JSON object out of a model reply, tolerating code fences and chatter."""
	cleaned = _FENCE_RE.sub("", (text or "").strip())
	try:
		data = json.loads(cleaned)
	except json.JSONDecodeError:
		start, end = cleaned.find("{"), cleaned.rfind("}")
		if start == -1 or end <= start:
			raise ValueError("model reply did not contain a JSON object")
		data = json.loads(cleaned[start:end + 1])
	if not isinstance(data, dict):
		raise ValueError("model reply was not a JSON object")
	return data


def _clamp(value: float, low: float, high: float) -> float:
	return max(low, min(high, value))


def _as_flag(value: Any) -> bool:
	if isinstance(value, str):
		return value.strip().lower() == "true"
	return value is True


def _as_number(value: Any) -> Optional[float]:
	# Models sometimes answer "N/A" or an empty string here
	if isinstance(value, bool) or value is None:
		return None
	try:
		return float(value)
	except (TypeError, ValueError):
		return None


def check_grade_bounds(inp: GradeAnomalyInput) -> Optional[GradeAnomalyResult]:
	if 0 <= inp.grade <= inp.max_grade:
		return None
	if inp.grade < 0:
		explanation = f"The grade {inp.grade:g} is negative; grades must be between 0 and {inp.max_grade:g}."
	else:
		explanation = f"The grade {inp.grade:g} exceeds the maximum possible grade of {inp.max_grade:g}."
	return GradeAnomalyResult(
		is_anomalous=True,
		explanation=explanation,
		suggested_grade=_clamp(inp.grade, 0, inp.max_grade),
	)


def build_anomaly_prompt(inp: GradeAnomalyInput) -> str:
	return (
		"You are an experienced teacher reviewing recorded grades for mistakes.\n"
		"Decide whether the grade below is anomalous. Treat a grade as anomalous if it is out of bounds "
		"(negative or above the maximum) or implausible for the assessment (for example a perfect score "
		"recorded where the rest of the record suggests a data-entry error).\n\n"
		f"Student name: {inp.student_name}\n"
		f"PRN: {inp.prn_number}\n"
		f"Subject: {inp.subject_name}\n"
		f"Grade: {inp.grade:g}\n"
		f"Maximum grade: {inp.max_grade:g}\n\n"
		"Return ONLY a JSON object with keys: is_anomalous (boolean), explanation (string), "
		"suggested_grade (number, only when is_anomalous is true)."
	)


def build_suggestion_prompt(
	student_name: str,
	prn: str,
	subject: str,
	assessment_type: str,
	max_marks: int,
	history: Iterable[str] = (),
) -> str:
	lines = list(history)
	record = "\n".join(f"- {line}" for line in lines) if lines else "- no other marks recorded"
	return (
		"You are assisting a teacher who is entering marks.\n"
		f"Suggest a plausible score for {student_name} (PRN {prn}) in {subject}, "
		f"assessment {assessment_type}, marked out of {max_marks}.\n"
		"The student's other recorded marks:\n"
		f"{record}\n\n"
		"Return ONLY a JSON object with keys: suggested_marks (number) and reason (one short sentence)."
	)


async def detect_grade_anomalies(inp: GradeAnomalyInput, client: GeminiClient) -> GradeAnomalyResult:
	local = check_grade_bounds(inp)
	if local is not None:
		logger.info("Grade %s/%s for %s flagged without a model call", inp.grade, inp.max_grade, inp.prn_number)
		return local
	reply = await client.generate(build_anomaly_prompt(inp), json_output=True, temperature=0)
	data = parse_model_json(reply)
	is_anomalous = _as_flag(data.get("is_anomalous"))
	suggested = _as_number(data.get("suggested_grade")) if is_anomalous else None
	return GradeAnomalyResult(
		is_anomalous=is_anomalous,
		explanation=str(data.get("explanation") or "").strip(),
		suggested_grade=_clamp(suggested, 0, inp.max_grade) if suggested is not None else None,
	)


async def suggest_marks(
	client: GeminiClient,
	*,
	student_name: str,
	prn: str,
	subject: str,
	assessment_type: str,
	max_marks: int,
	history: Iterable[str] = (),
) -> MarksSuggestion:
	prompt = build_suggestion_prompt(student_name, prn, subject, assessment_type, max_marks, history)
	data = parse_model_json(await client.generate(prompt, json_output=True))
	try:
		value = float(data.get("suggested_marks"))
	except (TypeError, ValueError):
		raise ValueError("model reply did not include a numeric suggested_marks")
	return MarksSuggestion(
		suggested_marks=round(_clamp(value, 0, max_marks), 1),
		max_marks=max_marks,
		reason=str(data.get("reason") or "").strip(),
	)
