import json
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from app.core.models import Review
from app.main import app, get_llm_service
from app.services import review_archive
from conftest import SAMPLE_REPORT, FakeLLM, auth_headers, count_reviews


def submit(client, token, code="x=1", language="python"):
    return client.post(
        "/api/review/submit",
        json={"code": code, "language": language},
        headers=auth_headers(token),
    )


def add_review(db, user_id, summary, submitted_at, language="python"):
    review = Review(
        user_id=user_id,
        code="print('hi')",
        language=language,
        review_report={"overall_summary": summary, "issues_by_category": []},
        submission_date=submitted_at,
    )
    db.add(review)
    db.commit()
    return review


class TestSubmit:

    def test_returns_report_and_stores_one_review(self, client, db_session, fake_llm, alice):
        response = submit(client, alice["token"])

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Code submitted successfully. AI review generated."
        assert body["reviewReport"] == SAMPLE_REPORT

        reviews = db_session.query(Review).all()
        assert len(reviews) == 1
        assert reviews[0].id == body["reviewId"]
        assert reviews[0].user_id == alice["id"]
        assert reviews[0].code == "x=1"
        assert reviews[0].language == "python"
        assert reviews[0].review_report == SAMPLE_REPORT

    def test_prompt_fences_code_with_language(self, client, fake_llm, alice):
        submit(client, alice["token"], code="def f():\n    return 1", language="python")

        assert len(fake_llm.calls) == 1
        call = fake_llm.calls[0]
        assert "```python\ndef f():\n    return 1\n```" in call["prompt"]
        assert "Security" in call["system"]
        assert call["schema"]["required"] == ["overall_summary", "issues_by_category"]

    @pytest.mark.parametrize("payload", [
        {"code": "", "language": "python"},
        {"code": "   ", "language": "python"},
        {"code": "x=1", "language": ""},
        {"code": "x=1"},
        {},
    ])
    def test_missing_code_or_language_is_rejected_before_ai_call(self, client, db_session, fake_llm, alice, payload):
        response = client.post("/api/review/submit", json=payload, headers=auth_headers(alice["token"]))

        assert response.status_code == 400
        assert response.json()["detail"] == "Please provide both code and language for review."
        assert fake_llm.calls == []
        assert count_reviews(db_session) == 0

    def test_requires_token(self, client, db_session, fake_llm):
        response = client.post("/api/review/submit", json={"code": "x=1", "language": "python"})

        assert response.status_code == 401
        assert fake_llm.calls == []
        assert count_reviews(db_session) == 0

    def test_ai_failure_creates_no_review(self, client, db_session, alice):
        app.dependency_overrides[get_llm_service] = lambda: FakeLLM(error=TimeoutError("timed out"))

        response = submit(client, alice["token"])

        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to generate AI review. API or parsing error."
        assert count_reviews(db_session) == 0

    def test_non_json_answer_creates_no_review(self, client, db_session, alice):
        app.dependency_overrides[get_llm_service] = lambda: FakeLLM(answer="Looks fine to me!")

        response = submit(client, alice["token"])

        assert response.status_code == 500
        assert count_reviews(db_session) == 0

    def test_answer_outside_enumerations_creates_no_review(self, client, db_session, alice):
        report = json.loads(json.dumps(SAMPLE_REPORT))
        report["issues_by_category"][0]["findings"][0]["severity"] = "Catastrophic"
        app.dependency_overrides[get_llm_service] = lambda: FakeLLM(answer=json.dumps(report))

        response = submit(client, alice["token"])

        assert response.status_code == 500
        assert count_reviews(db_session) == 0

    def test_unconfigured_ai_service(self, client, db_session, alice):
        app.dependency_overrides[get_llm_service] = lambda: None

        response = submit(client, alice["token"])

        assert response.status_code == 500
        assert count_reviews(db_session) == 0

    def test_storage_failure_still_returns_report(self, client, db_session, alice, monkeypatch):
        def broken_commit():
            raise OperationalError("INSERT INTO reviews", {}, Exception("disk I/O error"))

        monkeypatch.setattr(db_session, "commit", broken_commit)

        response = submit(client, alice["token"])

        assert response.status_code == 500
        body = response.json()
        assert body["reviewId"] is None
        assert body["reviewReport"] == SAMPLE_REPORT
        monkeypatch.undo()
        assert count_reviews(db_session) == 0


class TestHistory:

    def test_newest_first_and_only_own_reviews(self, client, db_session, alice, bob):
        now = datetime.now(timezone.utc)
        add_review(db_session, alice["id"], "oldest", now - timedelta(days=2))
        add_review(db_session, alice["id"], "newest", now, language="go")
        add_review(db_session, bob["id"], "bob's review", now - timedelta(hours=1))
        add_review(db_session, alice["id"], "middle", now - timedelta(days=1))

        response = client.get("/api/review/history", headers=auth_headers(alice["token"]))

        assert response.status_code == 200
        items = response.json()
        assert [i["reviewReport"]["overall_summary"] for i in items] == ["newest", "middle", "oldest"]
        assert items[0]["language"] == "go"
        assert all("code" not in i for i in items)
        assert all(set(i["reviewReport"]) == {"overall_summary"} for i in items)

    def test_summary_matches_submission(self, client, alice):
        submitted = submit(client, alice["token"]).json()

        items = client.get("/api/review/history", headers=auth_headers(alice["token"])).json()

        assert len(items) == 1
        assert items[0]["id"] == submitted["reviewId"]
        assert items[0]["reviewReport"]["overall_summary"] == SAMPLE_REPORT["overall_summary"]

    def test_empty_history(self, client, alice):
        response = client.get("/api/review/history", headers=auth_headers(alice["token"]))

        assert response.status_code == 200
        assert response.json() == []

    def test_requires_token(self, client):
        assert client.get("/api/review/history").status_code == 401

    def test_store_error_is_server_error(self, client, alice, monkeypatch):
        def broken_listing(db, user_id):
            raise OperationalError("SELECT FROM reviews", {}, Exception("database is locked"))

        monkeypatch.setattr(review_archive, "list_reviews_by_user", broken_listing)

        response = client.get("/api/review/history", headers=auth_headers(alice["token"]))

        assert response.status_code == 500
        assert response.json()["detail"] == "Internal Server Error while fetching history."


class TestDetail:

    def test_owner_gets_full_review(self, client, alice):
        review_id = submit(client, alice["token"], code="x=1").json()["reviewId"]

        response = client.get(f"/api/review/{review_id}", headers=auth_headers(alice["token"]))

        assert response.status_code == 200
        body = response.json()
        assert body["code"] == "x=1"
        assert body["reviewReport"] == SAMPLE_REPORT

    def test_other_users_review_is_not_found(self, client, alice, bob):
        review_id = submit(client, alice["token"]).json()["reviewId"]

        response = client.get(f"/api/review/{review_id}", headers=auth_headers(bob["token"]))

        assert response.status_code == 404
