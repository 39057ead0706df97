from conftest import add_mark


def test_teacher_adds_mark_for_assigned_subject(client, school):
	resp = add_mark(client, school["teacher_headers"], student_prn="prn001")
	assert resp.status_code == 201, resp.text
	body = resp.json()
	assert body["created"] is True
	assert body["mark"]["student_prn"] == "PRN001"
	assert body["mark"]["max_score"] == 10
	assert body["mark"]["student_name"] == "Asha Patil"


def test_score_above_assessment_max_is_rejected(client, school):
	resp = add_mark(client, school["teacher_headers"], score=11)
	assert resp.status_code == 422
	assert "cannot exceed" in resp.text


def test_max_score_must_match_assessment_type(client, school):
	resp = add_mark(client, school["teacher_headers"], assessment_type="MidSem", max_score=60, score=10)
	assert resp.status_code == 422
	assert "does not match" in resp.text


def test_negative_score_is_rejected(client, school):
	assert add_mark(client, school["teacher_headers"], score=-1).status_code == 422


def test_unassigned_subject_is_forbidden(client, school):
	resp = add_mark(client, school["teacher_headers"], subject="Physics")
	assert resp.status_code == 403


def test_assignment_is_scoped_to_semester(client, school):
	resp = add_mark(client, school["teacher_headers"], semester="Semester-2")
	assert resp.status_code == 403


def test_admin_without_assignment_cannot_grade(client, school):
	assert add_mark(client, school["admin_headers"]).status_code == 403


def test_general_subjects_grant_every_semester(client, school):
	resp = client.put(
		f"/users/{school['teacher']}/subjects",
		json={"subjects": ["Physics"]},
		headers=school["admin_headers"],
	)
	assert resp.status_code == 200
	resp = add_mark(client, school["teacher_headers"], subject="Physics", semester="Semester-2")
	assert resp.status_code == 201


def test_students_cannot_touch_marks(client, school):
	assert add_mark(client, school["student_headers"]).status_code == 403
	assert client.get("/marks", headers=school["student_headers"]).status_code == 403


def test_unknown_student_or_semester(client, school):
	assert add_mark(client, school["teacher_headers"], student_prn="PRN999").status_code == 400
	resp = client.put(
		f"/users/{school['teacher']}/subjects",
		json={"subjects": ["Mathematics"]},
		headers=school["admin_headers"],
	)
	assert resp.status_code == 200
	assert add_mark(client, school["teacher_headers"], semester="Semester-7").status_code == 400


def test_duplicate_component_updates_existing_mark(client, school):
	first = add_mark(client, school["teacher_headers"], score=5).json()
	second = add_mark(client, school["teacher_headers"], score=9)
	assert second.status_code == 201
	assert second.json()["created"] is False
	assert second.json()["mark"]["id"] == first["mark"]["id"]
	marks = client.get("/marks", headers=school["teacher_headers"]).json()
	assert len(marks) == 1
	assert marks[0]["score"] == 9


def test_update_and_delete_mark(client, school):
	mark_id = add_mark(client, school["teacher_headers"]).json()["mark"]["id"]
	resp = client.put(f"/marks/{mark_id}", json={
		"subject": "Mathematics", "assessment_type": "EndSem", "score": 55, "semester": "Semester-1",
	}, headers=school["teacher_headers"])
	assert resp.status_code == 200
	assert resp.json()["max_score"] == 60
	assert resp.json()["assessment_type"] == "EndSem"

	# Moving the mark into a subject the teacher does not grade is refused
	resp = client.put(f"/marks/{mark_id}", json={
		"subject": "Physics", "assessment_type": "EndSem", "score": 55, "semester": "Semester-1",
	}, headers=school["teacher_headers"])
	assert resp.status_code == 403

	assert client.delete(f"/marks/{mark_id}", headers=school["teacher_headers"]).status_code == 204
	assert client.delete(f"/marks/{mark_id}", headers=school["teacher_headers"]).status_code == 404


def test_update_into_existing_component_conflicts(client, school):
	headers = school["teacher_headers"]
	add_mark(client, headers, assessment_type="CA1")
	ca2 = add_mark(client, headers, assessment_type="CA2").json()["mark"]["id"]
	resp = client.put(f"/marks/{ca2}", json={
		"subject": "Mathematics", "assessment_type": "CA1", "score": 4, "semester": "Semester-1",
	}, headers=headers)
	assert resp.status_code == 409


def test_marks_search(client, school):
	headers = school["teacher_headers"]
	add_mark(client, headers)
	add_mark(client, headers, student_prn="PRN002", assessment_type="MidSem", score=15)
	assert len(client.get("/marks", params={"q": "ben"}, headers=headers).json()) == 1
	assert len(client.get("/marks", params={"q": "midsem"}, headers=headers).json()) == 1
	assert len(client.get("/marks", params={"q": "prn00"}, headers=headers).json()) == 2
	assert client.get("/marks", params={"q": "chemistry"}, headers=headers).json() == []


def test_mark_matrix_groups_components(client, school):
	headers = school["teacher_headers"]
	add_mark(client, headers, assessment_type="CA1", score=8)
	add_mark(client, headers, assessment_type="EndSem", score=50)
	add_mark(client, headers, student_prn="PRN002", assessment_type="CA2", score=6)

	rows = client.get("/marks/matrix", params={"semester": "semester-1"}, headers=headers).json()
	assert [r["student_name"] for r in rows] == ["Asha Patil", "Ben Roy"]
	asha = rows[0]
	assert asha["components"]["CA1"]["score"] == 8
	assert asha["components"]["CA2"] is None
	assert asha["components"]["MidSem"] is None
	assert asha["components"]["EndSem"]["max_score"] == 60
	assert asha["total"] == 58
	assert asha["max_total"] == 70
	assert asha["editable"] is True

	assert client.get("/marks/matrix", params={"semester": "Semester-2"}, headers=headers).json() == []


def test_subject_and_semester_match_ignores_case(client, school):
	resp = add_mark(client, school["teacher_headers"], subject="mathematics", semester="semester-1")
	assert resp.status_code == 201, resp.text
	assert resp.json()["mark"]["subject"] == "Mathematics"
	assert resp.json()["mark"]["semester"] == "Semester-1"
