import pytest

from prepwise import config
from prepwise.webhook import HANDLERS, VoiceEventType

WEBHOOK = "/api/vapi/webhook"


def test_every_event_type_has_a_handler():
    assert set(HANDLERS) == set(VoiceEventType)


def test_unknown_type_maps_to_unknown():
    assert VoiceEventType("speech-update") is VoiceEventType.UNKNOWN


@pytest.mark.parametrize(
    "body",
    [
        {"type": "speech-update"},
        {"type": "call-ended", "metadata": {"interviewId": "missing"}},
        {"type": "question-asked", "data": {"question": "q"}, "metadata": {"interviewId": "missing"}},
        {"type": "question-scored", "data": {"questionId": "missing", "score": 4}},
        {"type": "transcript", "data": {"text": "hi"}, "metadata": {"interviewId": "missing"}},
        {"type": "call-started", "data": None, "metadata": None},
        {},
    ],
)
def test_webhook_always_acknowledges(client, body):
    resp = client.post(WEBHOOK, json=body)
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_webhook_acknowledges_non_json_body(client):
    resp = client.post(WEBHOOK, content=b"not json", headers={"Content-Type": "application/json"})
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_webhook_secret_is_checked(client, monkeypatch):
    monkeypatch.setattr(config, "VAPI_WEBHOOK_SECRET", "s3cret")

    missing = client.post(WEBHOOK, json={"type": "speech-update"})
    assert missing.status_code == 401
    wrong = client.post(WEBHOOK, json={"type": "speech-update"}, headers={"x-vapi-signature": "nope"})
    assert wrong.status_code == 401
    ok = client.post(WEBHOOK, json={"type": "speech-update"}, headers={"x-vapi-signature": "s3cret"})
    assert ok.status_code == 200


def test_call_started_creates_interview(client, user, store):
    resp = client.post(
        WEBHOOK,
        json={
            "type": "call-started",
            "metadata": {"userId": user["id"], "jobTitle": "SRE", "company": "Acme", "difficulty": "HARD"},
        },
    )
    assert resp.status_code == 200
    interview_id = resp.json()["interviewId"]

    interview = client.get("/api/interviews").json()[0]
    assert interview["id"] == interview_id
    assert interview["title"] == "SRE"
    assert interview["job_role"] == "SRE"
    assert interview["company"] == "Acme"
    assert interview["difficulty"] == "hard"
    assert interview["status"] == "in_progress"
    assert client.get("/api/analytics").json()["total_interviews"] == 1


def test_call_started_with_existing_interview_is_a_no_op(client, user, new_interview):
    interview = new_interview()
    resp = client.post(
        WEBHOOK,
        json={"type": "call-started", "metadata": {"userId": user["id"], "interviewId": interview["id"]}},
    )
    assert resp.json() == {"status": "ok"}
    assert len(client.get("/api/interviews").json()) == 1


def test_voice_call_lifecycle(client, user, new_interview):
    interview = new_interview(duration=20)
    meta = {"userId": user["id"], "interviewId": interview["id"]}

    client.post(WEBHOOK, json={"type": "transcript", "data": {"role": "assistant", "transcript": "Hello"}, "metadata": meta})
    client.post(WEBHOOK, json={"type": "transcript", "data": {"role": "user", "transcript": "Hi"}, "metadata": meta})
    client.post(
        WEBHOOK,
        json={"type": "question-asked", "data": {"question": "Why SRE?", "category": "behavioral"}, "metadata": meta},
    )
    question = client.get(f"/api/interviews/{interview['id']}/questions").json()[0]
    assert question["question_text"] == "Why SRE?"
    assert question["category"] == "behavioral"

    client.post(
        WEBHOOK,
        json={
            "type": "question-scored",
            "data": {"questionId": question["id"], "score": 9, "feedback": "Great", "userResponse": "I like uptime"},
            "metadata": meta,
        },
    )
    scored = client.get(f"/api/interviews/{interview['id']}/questions").json()[0]
    assert scored["score"] == 9
    assert scored["ai_feedback"] == "Great"
    assert scored["user_response"] == "I like uptime"

    analytics = client.get("/api/analytics").json()
    assert analytics["average_score"] == 9
    assert analytics["best_score"] == 9

    client.post(WEBHOOK, json={"type": "call-ended", "metadata": meta})
    ended = client.get("/api/interviews").json()[0]
    assert ended["status"] == "completed"
    assert ended["completed_at"] is not None
    assert ended["transcript"] == "assistant: Hello\nuser: Hi"


def test_question_scored_for_another_users_question_is_ignored(client, make_client, signup, new_interview):
    signup(client, email="a@x.com")
    interview = new_interview()
    question = client.post(f"/api/interviews/{interview['id']}/questions", json={"question_text": "q"}).json()

    other = make_client()
    intruder = signup(other, email="b@x.com")
    resp = other.post(
        WEBHOOK,
        json={"type": "question-scored", "data": {"questionId": question["id"], "score": 1}, "metadata": {"userId": intruder["id"]}},
    )
    assert resp.status_code == 200
    assert client.get(f"/api/interviews/{interview['id']}/questions").json()[0]["score"] is None


def test_question_scored_with_bad_score_leaves_question(client, user, new_interview):
    interview = new_interview()
    question = client.post(f"/api/interviews/{interview['id']}/questions", json={"question_text": "q"}).json()
    resp = client.post(
        WEBHOOK,
        json={"type": "question-scored", "data": {"questionId": question["id"], "score": "ten"}, "metadata": {"userId": user["id"]}},
    )
    assert resp.json() == {"status": "ok"}
    assert client.get(f"/api/interviews/{interview['id']}/questions").json()[0]["score"] is None


def test_call_ended_twice_is_harmless(client, user, new_interview):
    interview = new_interview()
    meta = {"interviewId": interview["id"]}
    assert client.post(WEBHOOK, json={"type": "call-ended", "metadata": meta}).status_code == 200
    first = client.get("/api/interviews").json()[0]["completed_at"]
    assert client.post(WEBHOOK, json={"type": "call-ended", "metadata": meta}).status_code == 200
    assert client.get("/api/interviews").json()[0]["completed_at"] == first


def test_call_ended_completes_a_pending_interview(client, user, new_interview):
    interview = new_interview(status="pending")
    meta = {"userId": user["id"], "interviewId": interview["id"]}

    assert client.post(WEBHOOK, json={"type": "call-started", "metadata": meta}).json() == {"status": "ok"}
    assert client.post(WEBHOOK, json={"type": "call-ended", "metadata": meta}).status_code == 200

    ended = client.get("/api/interviews").json()[0]
    assert ended["status"] == "completed"
    assert ended["completed_at"] is not None


def test_call_ended_leaves_cancelled_interview(client, user, new_interview):
    interview = new_interview(status="pending")
    client.put(f"/api/interviews/{interview['id']}", json={"status": "cancelled"})

    resp = client.post(WEBHOOK, json={"type": "call-ended", "metadata": {"interviewId": interview["id"]}})
    assert resp.status_code == 200
    stored = client.get("/api/interviews").json()[0]
    assert stored["status"] == "cancelled"
    assert stored["completed_at"] is None


def test_question_scored_keeps_fields_it_does_not_mention(client, user, new_interview):
    interview = new_interview()
    question = client.post(f"/api/interviews/{interview['id']}/questions", json={"question_text": "q"}).json()
    meta = {"userId": user["id"], "interviewId": interview["id"]}

    client.post(
        WEBHOOK,
        json={
            "type": "question-scored",
            "data": {"questionId": question["id"], "score": 6, "feedback": "Decent", "user_response": "My answer"},
            "metadata": meta,
        },
    )
    client.post(WEBHOOK, json={"type": "question-scored", "data": {"questionId": question["id"], "score": 8}, "metadata": meta})

    stored = client.get(f"/api/interviews/{interview['id']}/questions").json()[0]
    assert stored["score"] == 8
    assert stored["ai_feedback"] == "Decent"
    assert stored["user_response"] == "My answer"


def test_question_scored_with_null_score_refreshes_analytics(client, user, new_interview):
    interview = new_interview()
    url = f"/api/interviews/{interview['id']}/questions"
    low, high = [client.post(url, json={"question_text": t}).json()["id"] for t in ("low", "high")]
    meta = {"userId": user["id"], "interviewId": interview["id"]}
    for question_id, score in ((low, 4), (high, 10)):
        client.post(WEBHOOK, json={"type": "question-scored", "data": {"questionId": question_id, "score": score}, "metadata": meta})

    client.post(WEBHOOK, json={"type": "question-scored", "data": {"questionId": high, "score": None}, "metadata": meta})
    analytics = client.get("/api/analytics").json()
    assert analytics["average_score"] == 4
    assert analytics["best_score"] == 4
