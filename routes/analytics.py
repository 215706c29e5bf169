# routes/analytics.py
from collections import defaultdict

from models.common import DIFFICULTIES


def difficulty_distribution(items):
    distribution = {difficulty: 0 for difficulty in DIFFICULTIES}
    for item in items:
        difficulty = item.get("difficulty")
        distribution[difficulty] = distribution.get(difficulty, 0) + 1
    return distribution


def question_metrics(questions, submissions):
    """Attempts, correct answers and accuracy per MCQ question."""
    metrics = {
        q["id"]: {"questionId": q["id"], "question": q["question"], "difficulty": q["difficulty"],
                  "attempts": 0, "correct": 0}
        for q in questions
    }
    for submission in submissions:
        for answer in submission.get("answers", []):
            entry = metrics.get(answer["questionId"])
            if entry is None:
                continue
            entry["attempts"] += 1
            if answer.get("isCorrect"):
                entry["correct"] += 1
    for entry in metrics.values():
        entry["accuracy"] = entry["correct"] / entry["attempts"] * 100 if entry["attempts"] > 0 else 0
    return list(metrics.values())


def difficulty_performance(questions, submissions):
    """Average percentage of marks earned per difficulty across all answers."""
    by_id = {q["id"]: q for q in questions}
    totals = defaultdict(lambda: {"total": 0.0, "count": 0})
    for submission in submissions:
        for answer in submission.get("answers", []):
            question = by_id.get(answer["questionId"])
            if not question or not question.get("marks"):
                continue
            bucket = totals[question["difficulty"]]
            bucket["total"] += answer.get("pointsEarned", 0) / question["marks"] * 100
            bucket["count"] += 1

    performance = {}
    for difficulty in DIFFICULTIES:
        bucket = totals.get(difficulty, {"total": 0.0, "count": 0})
        performance[difficulty] = {
            "avg": bucket["total"] / bucket["count"] if bucket["count"] > 0 else 0,
            "count": bucket["count"],
        }
    return performance


def build_dpp_analytics(dpp, total_students, students_by_id=None):
    students_by_id = students_by_id or {}
    submissions = dpp.get("submissions", [])
    questions = dpp.get("questions", []) if dpp["type"] == "mcq" else []
    items = questions if dpp["type"] == "mcq" else dpp.get("assignmentFiles", [])

    submission_count = len(submissions)
    on_time = sum(1 for s in submissions if not s.get("isLate"))
    scores = [s.get("score") or 0 for s in submissions]

    return {
        "dpp": {
            "id": dpp["id"],
            "title": dpp["title"],
            "type": dpp["type"],
            "maxScore": dpp["maxScore"],
            "dueDate": dpp.get("dueDate"),
            "questions": dpp.get("questions", []),
            "assignmentFiles": dpp.get("assignmentFiles", []),
            "difficultyDistribution": difficulty_distribution(items),
        },
        "submissions": [
            {
                "id": s["id"],
                "student": students_by_id.get(s["studentId"], {"id": s["studentId"]}),
                "score": s.get("score") or 0,
                "maxScore": s.get("maxScore") or dpp["maxScore"],
                "isLate": s.get("isLate", False),
                "submittedAt": s.get("submittedAt"),
                "feedback": s.get("feedback"),
            }
            for s in submissions
        ],
        "questionMetrics": question_metrics(questions, submissions),
        "stats": {
            "totalStudents": total_students,
            "submissionCount": submission_count,
            "submissionRate": submission_count / total_students * 100 if total_students > 0 else 0,
            "averageScore": sum(scores) / submission_count if submission_count > 0 else 0,
            "onTimeSubmissions": on_time,
            "lateSubmissions": submission_count - on_time,
            "topScore": max(scores) if scores else 0,
            "difficultyPerformance": difficulty_performance(questions, submissions),
        },
    }
