from __future__ import annotations
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .models import ASSESSMENT_MAX_SCORES

Role = Literal["student", "teacher", "admin"]
AssessmentType = Literal["CA1", "CA2", "MidSem", "EndSem"]


class SemesterAssignmentOut(BaseModel):
	semester: str
	subjects: List[str]


class UserOut(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: str
	email: str
	name: str
	role: Role
	prn: Optional[str] = None
	subjects: List[str] = []
	semester_assignments: List[SemesterAssignmentOut] = []


class StudentOut(BaseModel):
	prn: str
	name: str
	email: Optional[str] = None


class MarkOut(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: str
	student_prn: str
	subject: str
	assessment_type: AssessmentType
	score: float
	max_score: int
	semester: str
	student_name: Optional[str] = None


class StudentDetailOut(StudentOut):
	marks: List[MarkOut] = []


class MarkBase(BaseModel):
	subject: str = Field(min_length=1)
	assessment_type: AssessmentType
	score: float = Field(ge=0, description="Score must be non-negative.")
	max_score: Optional[int] = Field(default=None, ge=1)
	semester: str = Field(min_length=1)

	@model_validator(mode="after")
	def _check_score_bounds(self):
		expected = ASSESSMENT_MAX_SCORES[self.assessment_type]
		if self.max_score is None:
			self.max_score = expected
		elif self.max_score != expected:
			raise ValueError(f"Max score does not match the selected assessment type ({self.assessment_type} is out of {expected}).")
		if self.score > self.max_score:
			raise ValueError("Score cannot exceed max score.")
		return self


class MarkCreate(MarkBase):
	student_prn: str = Field(min_length=1)


class MarkUpdate(MarkBase):
	pass


class MarkSaveResult(BaseModel):
	mark: MarkOut
	created: bool


class AssessmentCell(BaseModel):
	mark_id: str
	score: float
	max_score: int


class MarkMatrixRow(BaseModel):
	student_prn: str
	student_name: Optional[str] = None
	subject: str
	semester: str
	components: Dict[str, Optional[AssessmentCell]]
	total: float
	max_total: int
	editable: bool = False


class SubjectPerformance(BaseModel):
	subject: str
	semester: str
	total_obtained: float
	total_max: int
	percentage: float
	components: List[MarkOut]


class PerformanceSummary(BaseModel):
	prn: str
	name: str
	subjects: List[SubjectPerformance]
	overall_obtained: float
	overall_max: int
	overall_percentage: float


class GradeAnomalyInput(BaseModel):
	student_name: str = Field(min_length=1)
	prn_number: str = Field(min_length=1)
	subject_name: str = Field(min_length=1)
	grade: float
	max_grade: float = Field(ge=1, description="Max grade must be at least 1.")


class GradeAnomalyResult(BaseModel):
	is_anomalous: bool
	explanation: str
	suggested_grade: Optional[float] = None


class MarksSuggestionInput(BaseModel):
	prn: str = Field(min_length=1)
	subject: str = Field(min_length=1)
	assessment_type: AssessmentType
	semester: Optional[str] = None


class MarksSuggestion(BaseModel):
	suggested_marks: float
	max_marks: int
	reason: str
