import json

import pytest

from campus_records.routers import anomalies
from campus_records.settings import settings

from conftest import add_mark


class FakeClient:
	def __init__(self, reply):
		self.reply = reply
		self.prompts = []
		self.closed = False

	async def generate(self, prompt, **kwargs):
		self.prompts.append(prompt)
		return self.reply

	async def aclose(self):
		self.closed = True


@pytest.fixture()
def fake_ai(monkeypatch):
	def install(reply):
		fake = FakeClient(reply)
		monkeypatch.setattr(anomalies, "GeminiClient", lambda: fake)
		return fake
	return install


def _anomaly_body(**overrides):
	body = {
		"student_name": "Asha Patil",
		"prn_number": "PRN001",
		"subject_name": "Mathematics",
		"grade": 9,
		"max_grade": 10,
	}
	body.update(overrides)
	return body


def test_out_of_bounds_grade_is_flagged_without_model(client, school, monkeypatch):
	monkeypatch.setattr(settings, "gemini_api_key", None)
	resp = client.post("/anomalies/detect", json=_anomaly_body(grade=14), headers=school["teacher_headers"])
	assert resp.status_code == 200
	body = resp.json()
	assert body["is_anomalous"] is True
	assert body["suggested_grade"] == 10
	assert "exceeds" in body["explanation"]

	resp = client.post("/anomalies/detect", json=_anomaly_body(grade=-2), headers=school["teacher_headers"])
	assert resp.json()["suggested_grade"] == 0


def test_model_reply_is_parsed(client, school, fake_ai):
	fake = fake_ai("```json\n" + json.dumps({
		"is_anomalous": True,
		"explanation": "Perfect score is unusual here.",
		"suggested_grade": 7,
	}) + "\n```")
	resp = client.post("/anomalies/detect", json=_anomaly_body(grade=10), headers=school["teacher_headers"])
	assert resp.status_code == 200
	assert resp.json() == {
		"is_anomalous": True,
		"explanation": "Perfect score is unusual here.",
		"suggested_grade": 7,
	}
	assert "PRN001" in fake.prompts[0]
	assert fake.closed


def test_normal_grade_drops_suggestion(client, school, fake_ai):
	fake_ai(json.dumps({"is_anomalous": False, "explanation": "Looks fine.", "suggested_grade": 3}))
	resp = client.post("/anomalies/detect", json=_anomaly_body(), headers=school["teacher_headers"])
	assert resp.json()["suggested_grade"] is None


def test_non_numeric_suggestion_keeps_verdict(client, school, fake_ai):
	fake_ai(json.dumps({"is_anomalous": False, "explanation": "Looks fine.", "suggested_grade": "N/A"}))
	resp = client.post("/anomalies/detect", json=_anomaly_body(), headers=school["teacher_headers"])
	assert resp.status_code == 200
	assert resp.json() == {"is_anomalous": False, "explanation": "Looks fine.", "suggested_grade": None}

	fake_ai(json.dumps({"is_anomalous": True, "explanation": "Unusual.", "suggested_grade": "N/A"}))
	resp = client.post("/anomalies/detect", json=_anomaly_body(), headers=school["teacher_headers"])
	assert resp.json()["is_anomalous"] is True
	assert resp.json()["suggested_grade"] is None


def test_string_flags_are_read_literally(client, school, fake_ai):
	fake_ai(json.dumps({"is_anomalous": "false", "explanation": "Fine."}))
	resp = client.post("/anomalies/detect", json=_anomaly_body(), headers=school["teacher_headers"])
	assert resp.json()["is_anomalous"] is False

	fake_ai(json.dumps({"is_anomalous": "True", "explanation": "Odd.", "suggested_grade": "7"}))
	resp = client.post("/anomalies/detect", json=_anomaly_body(), headers=school["teacher_headers"])
	assert resp.json()["is_anomalous"] is True
	assert resp.json()["suggested_grade"] == 7


def test_unparseable_reply_is_bad_gateway(client, school, fake_ai):
	fake_ai("I cannot answer that.")
	resp = client.post("/anomalies/detect", json=_anomaly_body(), headers=school["teacher_headers"])
	assert resp.status_code == 502


def test_ai_not_configured(client, school, monkeypatch):
	monkeypatch.setattr(settings, "gemini_api_key", None)
	resp = client.post("/anomalies/detect", json=_anomaly_body(), headers=school["teacher_headers"])
	assert resp.status_code == 503


def test_students_cannot_run_detection(client, school):
	resp = client.post("/anomalies/detect", json=_anomaly_body(), headers=school["student_headers"])
	assert resp.status_code == 403


def test_mark_suggestion_is_clamped(client, school, fake_ai):
	add_mark(client, school["teacher_headers"], assessment_type="CA1", score=9)
	fake = fake_ai(json.dumps({"suggested_marks": 75, "reason": "Strong CA scores."}))
	resp = client.post("/marks/suggest", json={
		"prn": "PRN001", "subject": "Mathematics", "assessment_type": "EndSem", "semester": "Semester-1",
	}, headers=school["teacher_headers"])
	assert resp.status_code == 200
	assert resp.json() == {"suggested_marks": 60, "max_marks": 60, "reason": "Strong CA scores."}
	assert "Mathematics CA1 (Semester-1): 9/10" in fake.prompts[0]


def test_mark_suggestion_requires_assignment(client, school, fake_ai):
	fake_ai(json.dumps({"suggested_marks": 5, "reason": "x"}))
	resp = client.post("/marks/suggest", json={
		"prn": "PRN001", "subject": "Physics", "assessment_type": "CA1",
	}, headers=school["teacher_headers"])
	assert resp.status_code == 403
	resp = client.post("/marks/suggest", json={
		"prn": "PRN404", "subject": "Mathematics", "assessment_type": "CA1",
	}, headers=school["teacher_headers"])
	assert resp.status_code == 404
