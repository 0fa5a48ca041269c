def test_signup_login_interview_and_generated_questions(client, make_client, gemini):
    created = client.post("/api/auth/signup", json={"email": "a@x.com", "password": "pw", "fullName": "A"})
    assert created.status_code == 200
    user_id = created.json()["user"]["id"]

    browser = make_client()
    login = browser.post("/api/auth/login", json={"email": "a@x.com", "password": "pw"})
    assert login.status_code == 200
    assert login.json()["user"]["id"] == user_id
    assert make_client().post("/api/auth/login", json={"email": "a@x.com", "password": "wrong"}).status_code == 401

    interview = browser.post("/api/interviews", json={"jobRole": "SRE"}).json()
    gemini.reply_json([{"question": f"SRE question {n}", "category": "technical"} for n in range(1, 6)])
    resp = browser.post("/api/ai/questions", json={"jobRole": "SRE", "interviewId": interview["id"], "count": 3})
    assert resp.status_code == 200

    stored = browser.get(f"/api/interviews/{interview['id']}/questions").json()
    assert len(stored) == 3
    assert {q["interview_id"] for q in stored} == {interview["id"]}
