"""End-to-end tests for daily practice problems."""
import os

import pytest
from pymongo.errors import PyMongoError

from conftest import CLASSROOM_ID, OTHER_STUDENT, OTHER_TEACHER, OUTSIDER, STUDENT, TEACHER, future, past, run
import routes.dpp
import routes.file_storage


def mcq_question(text, options, difficulty="medium", marks=2):
    return {
        "question": text,
        "difficulty": difficulty,
        "marks": marks,
        "explanation": f"Because of {text}",
        "options": [{"text": t, "isCorrect": c} for t, c in options],
    }


def create_mcq_dpp(client, login_as, questions=None, **overrides):
    login_as(TEACHER)
    body = {
        "title": "Kinematics DPP",
        "classroomId": CLASSROOM_ID,
        "type": "mcq",
        "dueDate": future(),
        "questions": questions or [
            mcq_question("Unit of force?", [("Newton", True), ("Joule", False)], "easy", 1),
            mcq_question("Unit of energy?", [("Newton", False), ("Joule", True)], "hard", 3),
        ],
    }
    body.update(overrides)
    response = client.post("/api/dpp/", json=body)
    assert response.status_code == 201, response.text
    return response.json()["dpp"]


def create_file_dpp(client, login_as, **overrides):
    login_as(TEACHER)
    body = {
        "title": "Lab report",
        "classroomId": CLASSROOM_ID,
        "type": "file",
        "assignmentFiles": [
            {"fileName": "lab.pdf", "fileUrl": "/files/lab.pdf", "difficulty": "medium", "points": 15},
            {"fileName": "extra.pdf", "fileUrl": "/files/extra.pdf", "difficulty": "hard"},
        ],
        "allowedFileTypes": [".pdf", ".txt"],
    }
    body.update(overrides)
    response = client.post("/api/dpp/", json=body)
    assert response.status_code == 201, response.text
    return response.json()["dpp"]


def pick(dpp, question_index, option_text):
    question = dpp["questions"][question_index]
    option = next(o for o in question["options"] if o["text"] == option_text)
    return {"questionId": question["id"], "selectedOptionId": option["id"]}


@pytest.fixture
def uploads(tmp_path, monkeypatch):
    monkeypatch.setattr(routes.file_storage, "UPLOAD_DIR", str(tmp_path))
    return tmp_path / "dpp-submissions"


class TestCreate:
    def test_mcq_max_score_is_sum_of_marks(self, client, login_as):
        dpp = create_mcq_dpp(client, login_as)
        assert dpp["maxScore"] == 4
        assert dpp["isPublished"] is True
        assert all(o["id"] for q in dpp["questions"] for o in q["options"])

    def test_file_dpp_defaults(self, client, login_as):
        dpp = create_file_dpp(client, login_as)
        assert dpp["maxScore"] == 25
        assert dpp["maxFiles"] == 5
        assert dpp["maxFileSize"] == 10 * 1024 * 1024
        assert dpp["dueDate"] is not None

    @pytest.mark.parametrize("difficulty", ["expert", None])
    def test_invalid_difficulty_is_rejected(self, client, login_as, difficulty):
        login_as(TEACHER)
        question = mcq_question("Q?", [("A", True), ("B", False)])
        question["difficulty"] = difficulty
        response = client.post(
            "/api/dpp/", json={"title": "Bad", "classroomId": CLASSROOM_ID, "type": "mcq", "questions": [question]}
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Each MCQ question must have a valid difficulty level (easy, medium, hard)"

    def test_mcq_without_questions_is_rejected(self, client, login_as):
        login_as(TEACHER)
        response = client.post("/api/dpp/", json={"title": "Empty", "classroomId": CLASSROOM_ID, "type": "mcq"})
        assert response.status_code == 400

    def test_other_teacher_cannot_create(self, client, login_as):
        login_as(OTHER_TEACHER)
        response = client.post(
            "/api/dpp/",
            json={"title": "X", "classroomId": CLASSROOM_ID, "type": "mcq",
                  "questions": [mcq_question("Q?", [("A", True), ("B", False)])]},
        )
        assert response.status_code == 404


class TestListAndView:
    def test_student_does_not_see_answers(self, client, login_as):
        dpp = create_mcq_dpp(client, login_as)
        login_as(STUDENT)
        response = client.get(f"/api/dpp/{dpp['id']}")
        assert response.status_code == 200
        view = response.json()["dpp"]
        assert view["hasSubmitted"] is False
        for question in view["questions"]:
            assert "explanation" not in question
            assert all(set(o) == {"id", "text"} for o in question["options"])

    def test_student_sees_only_own_submission(self, client, login_as):
        dpp = create_mcq_dpp(client, login_as)
        login_as(OTHER_STUDENT)
        client.post(f"/api/dpp/{dpp['id']}/submit/mcq", json={"answers": [pick(dpp, 0, "Newton")]})
        login_as(STUDENT)
        view = client.get(f"/api/dpp/{dpp['id']}").json()["dpp"]
        assert view["submissions"] == []
        assert view["submission"] is None

    def test_outsider_is_denied(self, client, login_as):
        dpp = create_mcq_dpp(client, login_as)
        login_as(OUTSIDER)
        assert client.get(f"/api/dpp/{dpp['id']}").status_code == 403

    def test_list_filters_and_paginates(self, client, login_as):
        create_mcq_dpp(client, login_as, title="Old", dueDate=past())
        create_mcq_dpp(client, login_as, title="Soon", dueDate=future(1))
        create_mcq_dpp(client, login_as, title="Later", dueDate=future(5))

        login_as(STUDENT)
        url = f"/api/dpp/classroom/{CLASSROOM_ID}"
        active = client.get(url, params={"status": "active", "sortBy": "dueDate", "sortOrder": "asc"}).json()
        assert [d["title"] for d in active["dpps"]] == ["Soon", "Later"]
        overdue = client.get(url, params={"status": "overdue"}).json()
        assert [d["title"] for d in overdue["dpps"]] == ["Old"]
        assert overdue["dpps"][0]["isOverdue"] is True

        paged = client.get(url, params={"limit": 2, "page": 2}).json()
        assert paged["pagination"] == {"page": 2, "limit": 2, "total": 3, "pages": 2}
        assert len(paged["dpps"]) == 1

    def test_unpublished_hidden_from_students(self, client, login_as):
        dpp = create_mcq_dpp(client, login_as)
        assert client.put(f"/api/dpp/{dpp['id']}/publish").json()["dpp"]["isPublished"] is False
        login_as(STUDENT)
        assert client.get(f"/api/dpp/{dpp['id']}").status_code == 404
        response = client.post(f"/api/dpp/{dpp['id']}/submit/mcq", json={"answers": []})
        assert response.status_code == 400
        assert response.json()["detail"] == "This DPP is not published"


class TestMCQSubmit:
    def test_scores_correct_answers(self, client, login_as):
        dpp = create_mcq_dpp(client, login_as)
        login_as(STUDENT)
        response = client.post(
            f"/api/dpp/{dpp['id']}/submit/mcq", json={"answers": [pick(dpp, 0, "Newton"), pick(dpp, 1, "Newton")]}
        )
        assert response.status_code == 200
        submission = response.json()["submission"]
        assert submission["score"] == 1
        assert submission["maxScore"] == 4
        assert submission["isLate"] is False

    def test_repeated_answers_score_once(self, client, login_as):
        dpp = create_mcq_dpp(client, login_as)
        login_as(STUDENT)
        response = client.post(
            f"/api/dpp/{dpp['id']}/submit/mcq", json={"answers": [pick(dpp, 1, "Joule")] * 4}
        )
        assert response.status_code == 200
        assert response.json()["submission"]["score"] == 3
        assert response.json()["submission"]["maxScore"] == 4

    def test_ambiguous_question_scores_zero(self, client, login_as):
        dpp = create_mcq_dpp(client, login_as, questions=[
            mcq_question("Pick A", [("A", True), ("B", True)], "easy", 1),
        ])
        login_as(STUDENT)
        response = client.post(f"/api/dpp/{dpp['id']}/submit/mcq", json={"answers": [pick(dpp, 0, "A")]})
        assert response.status_code == 200
        assert response.json()["submission"]["score"] == 0

    def test_late_submission_is_accepted_and_flagged(self, client, login_as):
        dpp = create_mcq_dpp(client, login_as, dueDate=past())
        login_as(STUDENT)
        response = client.post(f"/api/dpp/{dpp['id']}/submit/mcq", json={"answers": [pick(dpp, 0, "Newton")]})
        assert response.status_code == 200
        assert response.json()["submission"]["isLate"] is True

    def test_duplicate_submit_is_rejected(self, client, login_as, db):
        dpp = create_mcq_dpp(client, login_as)
        login_as(STUDENT)
        url = f"/api/dpp/{dpp['id']}/submit/mcq"
        assert client.post(url, json={"answers": [pick(dpp, 0, "Newton")]}).status_code == 200
        response = client.post(url, json={"answers": [pick(dpp, 1, "Joule")]})
        assert response.status_code == 400
        assert response.json()["detail"] == "You have already submitted this DPP"
        stored = run(db.dpps.find_one({"id": dpp["id"]}))
        assert len(stored["submissions"]) == 1

    def test_not_enrolled_is_rejected(self, client, login_as):
        dpp = create_mcq_dpp(client, login_as)
        login_as(OUTSIDER)
        response = client.post(f"/api/dpp/{dpp['id']}/submit/mcq", json={"answers": []})
        assert response.status_code == 403

    def test_wrong_type_is_rejected(self, client, login_as, uploads):
        dpp = create_mcq_dpp(client, login_as)
        login_as(STUDENT)
        response = client.post(
            f"/api/dpp/{dpp['id']}/submit/files", files=[("files", ("a.pdf", b"%PDF", "application/pdf"))]
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "This DPP is not a file submission type"


class TestFileSubmit:
    def test_upload_is_stored(self, client, login_as, uploads, db):
        dpp = create_file_dpp(client, login_as)
        login_as(STUDENT)
        response = client.post(
            f"/api/dpp/{dpp['id']}/submit/files",
            files=[("files", ("report.pdf", b"%PDF-1.4 report", "application/pdf"))],
            data={"assignmentFileIds": dpp["assignmentFiles"][0]["id"]},
        )
        assert response.status_code == 200, response.text
        files = response.json()["submission"]["fileSubmissions"]
        assert files[0]["fileName"] == "report.pdf"
        assert files[0]["fileSize"] == len(b"%PDF-1.4 report")
        assert len(os.listdir(uploads)) == 1

        stored = run(db.dpps.find_one({"id": dpp["id"]}))["submissions"][0]
        assert stored["score"] == 0
        assert stored["fileSubmissions"][0]["assignmentFileId"] == dpp["assignmentFiles"][0]["id"]
        assert stored["fileSubmissions"][0]["difficulty"] == "medium"

    def test_database_failure_removes_stored_files(self, client, login_as, uploads, monkeypatch):
        dpp = create_file_dpp(client, login_as)

        async def failing_submit(*args, **kwargs):
            raise PyMongoError("connection lost")

        monkeypatch.setattr(routes.dpp.submission_lifecycle, "submit_dpp_files", failing_submit)
        login_as(STUDENT)
        with pytest.raises(PyMongoError):
            client.post(
                f"/api/dpp/{dpp['id']}/submit/files",
                files=[("files", ("report.pdf", b"%PDF-1.4 report", "application/pdf"))],
            )
        assert os.listdir(uploads) == []

    def test_disallowed_extension(self, client, login_as, uploads):
        dpp = create_file_dpp(client, login_as)
        login_as(STUDENT)
        response = client.post(
            f"/api/dpp/{dpp['id']}/submit/files", files=[("files", ("virus.exe", b"MZ", "application/octet-stream"))]
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "File type .exe not allowed"
        assert not uploads.exists() or os.listdir(uploads) == []

    def test_too_many_files(self, client, login_as, uploads):
        dpp = create_file_dpp(client, login_as, maxFiles=1)
        login_as(STUDENT)
        response = client.post(
            f"/api/dpp/{dpp['id']}/submit/files",
            files=[("files", ("a.txt", b"a", "text/plain")), ("files", ("b.txt", b"b", "text/plain"))],
        )
        assert response.status_code == 400

    def test_oversized_file(self, client, login_as, uploads):
        dpp = create_file_dpp(client, login_as, maxFileSize=4)
        login_as(STUDENT)
        response = client.post(
            f"/api/dpp/{dpp['id']}/submit/files", files=[("files", ("a.txt", b"too long", "text/plain"))]
        )
        assert response.status_code == 400
        assert not uploads.exists() or os.listdir(uploads) == []


class TestGrade:
    def submit(self, client, login_as, uploads):
        dpp = create_file_dpp(client, login_as)
        login_as(STUDENT)
        client.post(f"/api/dpp/{dpp['id']}/submit/files", files=[("files", ("r.pdf", b"%PDF", "application/pdf"))])
        login_as(TEACHER)
        submission = client.get(f"/api/dpp/{dpp['id']}").json()["dpp"]["submissions"][0]
        return dpp, submission

    def test_grade_within_range(self, client, login_as, uploads):
        dpp, submission = self.submit(client, login_as, uploads)
        response = client.put(
            f"/api/dpp/{dpp['id']}/submissions/{submission['id']}/grade", json={"score": 20, "feedback": "Solid"}
        )
        assert response.status_code == 200
        stored = client.get(f"/api/dpp/{dpp['id']}").json()["dpp"]["submissions"][0]
        assert stored["score"] == 20
        assert stored["feedback"] == "Solid"
        assert stored["gradedBy"] == TEACHER["id"]

    def test_grade_above_max_is_rejected(self, client, login_as, uploads):
        dpp, submission = self.submit(client, login_as, uploads)
        response = client.put(
            f"/api/dpp/{dpp['id']}/submissions/{submission['id']}/grade", json={"score": dpp["maxScore"] + 1}
        )
        assert response.status_code == 400
        assert response.json()["detail"] == f"Score must be between 0 and {dpp['maxScore']}"
        stored = client.get(f"/api/dpp/{dpp['id']}").json()["dpp"]["submissions"][0]
        assert stored == submission

    def test_unknown_submission(self, client, login_as, uploads):
        dpp, _ = self.submit(client, login_as, uploads)
        response = client.put(f"/api/dpp/{dpp['id']}/submissions/nope/grade", json={"score": 1})
        assert response.status_code == 404


class TestUpdate:
    def test_questions_locked_after_submission(self, client, login_as):
        dpp = create_mcq_dpp(client, login_as)
        login_as(STUDENT)
        client.post(f"/api/dpp/{dpp['id']}/submit/mcq", json={"answers": [pick(dpp, 0, "Newton")]})
        login_as(TEACHER)
        response = client.put(
            f"/api/dpp/{dpp['id']}", json={"questions": [mcq_question("New?", [("A", True), ("B", False)])]}
        )
        assert response.status_code == 400
        assert client.put(f"/api/dpp/{dpp['id']}", json={"title": "Renamed"}).status_code == 200

    def test_replacing_questions_recomputes_max_score(self, client, login_as):
        dpp = create_mcq_dpp(client, login_as)
        response = client.put(
            f"/api/dpp/{dpp['id']}", json={"questions": [mcq_question("New?", [("A", True), ("B", False)], marks=5)]}
        )
        assert response.status_code == 200
        assert response.json()["dpp"]["maxScore"] == 5

    def test_delete(self, client, login_as):
        dpp = create_mcq_dpp(client, login_as)
        assert client.delete(f"/api/dpp/{dpp['id']}").status_code == 200
        assert client.get(f"/api/dpp/{dpp['id']}").status_code == 404


class TestAnalytics:
    def test_stats_and_question_metrics(self, client, login_as, db):
        dpp = create_mcq_dpp(client, login_as)
        login_as(STUDENT)
        client.post(f"/api/dpp/{dpp['id']}/submit/mcq", json={"answers": [pick(dpp, 0, "Newton"), pick(dpp, 1, "Joule")]})
        login_as(OTHER_STUDENT)
        client.post(f"/api/dpp/{dpp['id']}/submit/mcq", json={"answers": [pick(dpp, 0, "Joule"), pick(dpp, 1, "Joule")]})

        login_as(TEACHER)
        response = client.get(f"/api/dpp/{dpp['id']}/analytics")
        assert response.status_code == 200
        analytics = response.json()
        stats = analytics["stats"]
        assert stats["totalStudents"] == 2
        assert stats["submissionCount"] == 2
        assert stats["submissionRate"] == 100
        assert stats["averageScore"] == 3.5
        assert stats["topScore"] == 4
        assert stats["onTimeSubmissions"] == 2
        assert stats["difficultyPerformance"]["easy"] == {"avg": 50, "count": 2}
        assert stats["difficultyPerformance"]["hard"] == {"avg": 100, "count": 2}
        assert analytics["dpp"]["difficultyDistribution"] == {"easy": 1, "medium": 0, "hard": 1}

        metrics = {m["question"]: m for m in analytics["questionMetrics"]}
        assert metrics["Unit of force?"]["accuracy"] == 50
        assert metrics["Unit of energy?"]["correct"] == 2
        assert {s["student"]["name"] for s in analytics["submissions"]} == {STUDENT["name"], OTHER_STUDENT["name"]}

    def test_student_cannot_view_analytics(self, client, login_as):
        dpp = create_mcq_dpp(client, login_as)
        login_as(STUDENT)
        assert client.get(f"/api/dpp/{dpp['id']}/analytics").status_code == 403
