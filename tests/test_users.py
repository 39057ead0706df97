from campus_records.models import Mark

from conftest import add_mark


def test_admin_lists_and_searches_users(client, school):
	headers = school["admin_headers"]
	users = client.get("/users", headers=headers).json()
	assert [u["name"] for u in users] == ["Admin One", "Asha Patil", "Ben Roy", "Tara Teacher"]
	assert [u["email"] for u in client.get("/users", params={"q": "prn002"}, headers=headers).json()] == ["ben@example.com"]
	teachers = client.get("/users/teachers", headers=headers).json()
	assert {u["role"] for u in teachers} == {"admin", "teacher"}
	assert client.get("/users", headers=school["teacher_headers"]).status_code == 403


def test_assign_general_subjects(client, school):
	headers = school["admin_headers"]
	resp = client.put(
		f"/users/{school['teacher']}/subjects",
		json={"subjects": ["physics", "Mathematics", "Physics"]},
		headers=headers,
	)
	assert resp.status_code == 200
	assert resp.json()["subjects"] == ["Mathematics", "Physics"]

	resp = client.put(f"/users/{school['teacher']}/subjects", json={"subjects": ["Astrology"]}, headers=headers)
	assert resp.status_code == 400
	resp = client.put(f"/users/{school['student']}/subjects", json={"subjects": ["Physics"]}, headers=headers)
	assert resp.status_code == 400
	resp = client.put("/users/nope/subjects", json={"subjects": []}, headers=headers)
	assert resp.status_code == 404


def test_semester_assignment_replace_and_remove(client, school):
	headers = school["admin_headers"]
	url = f"/users/{school['teacher']}/semesters/Semester-2/subjects"
	resp = client.put(url, json={"subjects": ["Physics", "Mathematics"]}, headers=headers)
	assert resp.status_code == 200
	assert resp.json()["semester_assignments"] == [
		{"semester": "Semester-1", "subjects": ["Mathematics"]},
		{"semester": "Semester-2", "subjects": ["Mathematics", "Physics"]},
	]

	resp = client.put(f"/users/{school['teacher']}/semesters/Semester-1/subjects", json={"subjects": []}, headers=headers)
	assert resp.json()["semester_assignments"] == [
		{"semester": "Semester-2", "subjects": ["Mathematics", "Physics"]},
	]

	resp = client.put(f"/users/{school['teacher']}/semesters/Semester-9/subjects", json={"subjects": ["Physics"]}, headers=headers)
	assert resp.status_code == 400


def test_delete_student_removes_marks(client, school, session_factory):
	assert add_mark(client, school["teacher_headers"]).status_code == 201
	headers = school["admin_headers"]
	assert client.delete(f"/users/{school['student']}", headers=headers).status_code == 204
	assert client.delete(f"/users/{school['student']}", headers=headers).status_code == 404
	with session_factory() as db:
		assert db.query(Mark).count() == 0
	# The deleted student's session no longer works
	assert client.get("/auth/me", headers=school["student_headers"]).status_code == 401


def test_admin_cannot_delete_self(client, school):
	resp = client.delete(f"/users/{school['admin']}", headers=school["admin_headers"])
	assert resp.status_code == 400


def test_admin_and_teacher_dashboards(client, school):
	add_mark(client, school["teacher_headers"])
	admin = client.get("/dashboard/admin", headers=school["admin_headers"]).json()
	assert admin == {
		"users_by_role": {"student": 2, "teacher": 1, "admin": 1},
		"semesters": 2,
		"subjects": 2,
		"marks": 1,
	}
	teacher = client.get("/dashboard/teacher", headers=school["teacher_headers"]).json()
	assert teacher["editable_marks"] == 1
	assert teacher["semester_assignments"] == [{"semester": "Semester-1", "subjects": ["Mathematics"]}]
	assert client.get("/dashboard/admin", headers=school["teacher_headers"]).status_code == 403
