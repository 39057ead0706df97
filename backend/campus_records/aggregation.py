"""Derived views over flat mark records."""
from __future__ import annotations
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from .models import ASSESSMENT_TYPES, Mark
from .schemas import (
	AssessmentCell,
	MarkMatrixRow,
	MarkOut,
	PerformanceSummary,
	SubjectPerformance,
)


def _percentage(obtained: float, maximum: float) -> float:
	return round(obtained / maximum * 100, 2) if maximum > 0 else 0.0


def filter_marks(marks: Iterable[Mark], names: Mapping[str, str], term: Optional[str]) -> List[Mark]:
	"""Case-insensitive match on student name, PRN, subject or assessment type."""
	marks = list(marks)
	term = (term or "").strip().lower()
	if not term:
		return marks
	return [
		m for m in marks
		if term in (names.get(m.student_prn) or "").lower()
		or term in m.student_prn.lower()
		or term in m.subject.lower()
		or term in m.assessment_type.lower()
	]


def build_mark_matrix(
	marks: Iterable[Mark],
	names: Mapping[str, str],
	can_edit: Callable[[str, str], bool] = lambda subject, semester: False,
) -> List[MarkMatrixRow]:
	"""Group marks by (student, subject, semester) into one row of assessment cells each."""
	groups: Dict[Tuple[str, str, str], Dict[str, Mark]] = {}
	for mark in marks:
		key = (mark.student_prn, mark.subject, mark.semester)
		groups.setdefault(key, {})[mark.assessment_type] = mark

	rows = []
	for (prn, subject, semester), by_type in groups.items():
		components: Dict[str, Optional[AssessmentCell]] = {}
		for assessment in ASSESSMENT_TYPES:
			mark = by_type.get(assessment)
			components[assessment] = (
				AssessmentCell(mark_id=mark.id, score=mark.score, max_score=mark.max_score)
				if mark is not None else None
			)
		rows.append(MarkMatrixRow(
			student_prn=prn,
			student_name=names.get(prn),
			subject=subject,
			semester=semester,
			components=components,
			total=sum(m.score for m in by_type.values()),
			max_total=sum(m.max_score for m in by_type.values()),
			editable=can_edit(subject, semester),
		))
	rows.sort(key=lambda r: ((r.student_name or "").lower(), r.student_prn, r.subject.lower(), r.semester.lower()))
	return rows


def summarize_performance(prn: str, name: str, marks: Iterable[Mark]) -> PerformanceSummary:
	# Percentages use the maxima of the components entered so far, not the full 100
	by_subject: Dict[Tuple[str, str], List[Mark]] = {}
	for mark in marks:
		by_subject.setdefault((mark.semester, mark.subject), []).append(mark)

	subjects = []
	for (semester, subject), components in sorted(by_subject.items(), key=lambda item: (item[0][0].lower(), item[0][1].lower())):
		components.sort(key=lambda m: ASSESSMENT_TYPES.index(m.assessment_type) if m.assessment_type in ASSESSMENT_TYPES else len(ASSESSMENT_TYPES))
		obtained = sum(m.score for m in components)
		maximum = sum(m.max_score for m in components)
		subjects.append(SubjectPerformance(
			subject=subject,
			semester=semester,
			total_obtained=obtained,
			total_max=maximum,
			percentage=_percentage(obtained, maximum),
			components=[MarkOut.model_validate(m) for m in components],
		))

	overall_obtained = sum(s.total_obtained for s in subjects)
	overall_max = sum(s.total_max for s in subjects)
	return PerformanceSummary(
		prn=prn,
		name=name,
		subjects=subjects,
		overall_obtained=overall_obtained,
		overall_max=overall_max,
		overall_percentage=_percentage(overall_obtained, overall_max),
	)
