"""Tests for the HTTP routes, using Flask's test client."""

import json
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

import app as app_module
from avatar import PNG_SIGNATURE
from chat_assistant import ChatAssistant
from conftest import TODAY
from document_store import SqliteDocumentStore

ROUTINE = {
    "title": "Chest Day",
    "exercises": [
        {"name": "Push-ups", "sets": 3, "reps": "12"},
        {"name": "Chest Dips", "sets": 3, "reps": "10"},
    ],
    "notes": "Use controlled form",
}

SIGNUP = {
    "email": "sam@example.com",
    "password": "secret123",
    "firstName": "Sam",
    "lastName": "Lee",
    "heightFeet": "5",
    "heightInches": "10",
    "weight": "175",
    "goal": "Build Muscle",
    "equipment": "Gym Access",
    "kneeInjury": True,
}


@pytest.fixture
def client(tmp_path, monkeypatch):
    flask_app = app_module.app
    monkeypatch.setitem(flask_app.config, "TESTING", True)
    monkeypatch.setitem(flask_app.config, "DATABASE_PATH", tmp_path / "users.db")
    monkeypatch.setitem(flask_app.config, "AVATAR_CACHE_DIR", tmp_path / "avatars")
    app_module.init_db()
    monkeypatch.setattr(app_module, "services", app_module.Services(SqliteDocumentStore(tmp_path / "documents.db")))
    monkeypatch.setattr(app_module, "today", lambda: TODAY)
    return flask_app.test_client()


@pytest.fixture
def user(client):
    response = client.post("/register", json=SIGNUP)
    assert response.status_code == 200
    return response.get_json()["user_id"]


def _set_assistant(monkeypatch, content=None, error=None):
    llm = MagicMock()
    if error is not None:
        llm.chat.completions.create.side_effect = error
    else:
        llm.chat.completions.create.return_value = MagicMock(choices=[MagicMock(message=MagicMock(content=content))])
    monkeypatch.setattr(app_module, "get_chat_assistant", lambda: ChatAssistant(llm, "test-model"))
    return llm


def _plan_today(client):
    module_id = client.post("/modules", json={"module": ROUTINE}).get_json()["module"]["id"]
    response = client.put("/week/days/2/module", json={"moduleId": module_id})
    assert response.status_code == 200
    return module_id


class TestAuth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.get_json()["status"] == "ok"

    def test_requires_auth(self, client):
        for path in ("/week", "/modules", "/profile", "/activity"):
            response = client.get(path)
            assert response.status_code == 401
            assert response.get_json() == {"error": "Authentication required"}

    def test_register_creates_profile_and_session(self, client, user):
        status = client.get("/check-auth").get_json()
        assert status == {"authenticated": True, "user_id": user, "email": "sam@example.com"}

        profile = client.get("/profile").get_json()
        assert profile["firstName"] == "Sam"
        assert profile["heightFeet"] == 5
        assert profile["heightInches"] == 10
        assert profile["injuries"] == ["Knee Injury"]

    def test_register_duplicate_email(self, client, user):
        response = client.post("/register", json=SIGNUP)
        assert response.status_code == 400
        assert response.get_json()["error"] == "Email already exists"

    def test_register_validation(self, client):
        assert client.post("/register", json={**SIGNUP, "password": "123"}).status_code == 400
        response = client.post("/register", json={**SIGNUP, "weight": "0"})
        assert response.status_code == 400
        assert response.get_json()["error"] == "Please enter valid height and weight values."

    def test_logout_and_login(self, client, user):
        assert client.post("/logout").status_code == 200
        assert client.get("/check-auth").get_json() == {"authenticated": False}

        bad = client.post("/login", json={"email": "sam@example.com", "password": "wrong"})
        assert bad.status_code == 401
        good = client.post("/login", json={"email": "SAM@example.com", "password": "secret123"})
        assert good.status_code == 200
        assert client.get("/week").status_code == 200

    def test_bearer_token(self, client, monkeypatch):
        monkeypatch.setattr(app_module, "verify_supabase_token", lambda token: {"id": "sb-user"} if token == "good" else None)
        assert client.get("/week", headers={"Authorization": "Bearer good"}).status_code == 200
        assert client.get("/week", headers={"Authorization": "Bearer bad"}).status_code == 401


class TestProfileRoutes:
    def test_update_profile(self, client, user):
        response = client.put("/profile", json={"heightFeet": 6, "heightInches": 1, "weight": 190, "goal": "Strength Training"})
        assert response.status_code == 200
        profile = client.get("/profile").get_json()
        assert profile["heightFeet"] == 6
        assert profile["goal"] == "Strength Training"
        assert profile["firstName"] == "Sam"

    def test_update_without_profile(self, client, monkeypatch):
        monkeypatch.setattr(app_module, "verify_supabase_token", lambda token: {"id": "sb-user"})
        response = client.put(
            "/profile",
            json={"heightFeet": 6, "heightInches": 1, "weight": 190},
            headers={"Authorization": "Bearer token"},
        )
        assert response.status_code == 404


class TestWeekRoutes:
    def test_week_is_generated(self, client, user):
        week = client.get("/week").get_json()
        assert week["weekId"] == "week-2025-05-05"
        assert week["generated"] is True
        assert [d["isToday"] for d in week["dayPlans"]] == [False, False, True, False, False, False, False]
        assert client.get("/week").get_json()["generated"] is False

    def test_workout_day_flow(self, client, user):
        _plan_today(client)
        day = TODAY.isoformat()

        yesterday = (TODAY - timedelta(days=1)).isoformat()
        assert client.put(f"/week/days/{yesterday}/exercises/0", json={"completed": True}).status_code == 403

        assert client.put(f"/week/days/{day}/exercises/0", json={"completed": True}).status_code == 200
        early = client.post(f"/week/days/{day}/reward")
        assert early.status_code == 409

        response = client.put(f"/week/days/{day}/exercises/1", json={"completed": True})
        assert response.get_json()["dayPlan"]["assignedModule"]["exercises"][1]["isCompleted"] is True

        claim = client.post(f"/week/days/{day}/reward").get_json()
        assert claim["newlyClaimed"] is True
        assert claim["dayPlan"]["rewardClaimed"] is True
        assert client.post(f"/week/days/{day}/reward").get_json()["newlyClaimed"] is False
        assert client.get(f"/week/days/{day}/reward").get_json() == {"date": day, "rewardClaimed": True}

        assert client.put(f"/week/days/{day}/exercises/0", json={"completed": False}).status_code == 403
        assert client.delete("/week/days/2/module").status_code == 403
        week = client.get("/week").get_json()
        assert week["dayPlans"][2]["locked"] is True
        assert week["dayPlans"][2]["progress"] == 1.0

    def test_clear_day(self, client, user):
        _plan_today(client)
        response = client.delete("/week/days/2/module?removeFromLibrary=true")
        assert response.status_code == 200
        assert "assignedModule" not in response.get_json()["dayPlan"]
        assert client.get("/modules").get_json()["modules"] == []

    def test_bad_requests(self, client, user):
        assert client.put("/week/days/2/module", json={}).status_code == 400
        assert client.put("/week/days/2/module", json={"moduleId": "missing"}).status_code == 404
        assert client.put("/week/days/9/module", json={"moduleId": "missing"}).status_code == 404
        assert client.put("/week/days/not-a-date/exercises/0", json={"completed": True}).status_code == 400
        assert client.put(f"/week/days/{TODAY.isoformat()}/exercises/0", json={"completed": "yes"}).status_code == 400


class TestModuleRoutes:
    def test_save_list_delete(self, client, user):
        response = client.post("/modules", json=ROUTINE)
        assert response.status_code == 201
        module_id = response.get_json()["module"]["id"]

        modules = client.get("/modules").get_json()["modules"]
        assert [m["id"] for m in modules] == [module_id]
        assert modules[0]["notes"] == "Use controlled form"

        assert client.delete(f"/modules/{module_id}").status_code == 200
        assert client.delete(f"/modules/{module_id}").status_code == 404

    def test_invalid_module(self, client, user):
        response = client.post("/modules", json={"title": "Chest Day"})
        assert response.status_code == 400


class TestChatRoute:
    def test_reply_with_modules(self, client, user, monkeypatch):
        client.post("/modules", json=ROUTINE)
        llm = _set_assistant(monkeypatch, "Here you go!\n--- RAW MODULE DATA (do not edit) ---\n" + json.dumps([
            ROUTINE, {"title": "Back Day", "exercises": [{"name": "Row", "sets": 3, "reps": "10"}]},
        ]))

        response = client.post("/chat", json={"message": "Chest workout please", "history": []})
        assert response.status_code == 200
        data = response.get_json()
        assert data["reply"] == "Here you go!"
        assert [(m["title"], m["added"]) for m in data["modules"]] == [("Chest Day", True), ("Back Day", False)]

        profile_message = llm.chat.completions.create.call_args.kwargs["messages"][1]["content"]
        assert "Injuries: Knee Injury" in profile_message

    def test_failure(self, client, user, monkeypatch):
        _set_assistant(monkeypatch, error=RuntimeError("boom"))
        response = client.post("/chat", json={"message": "hi"})
        assert response.status_code == 502
        assert response.get_json()["reply"] == "Sorry, I couldn't generate a response."

    def test_message_required(self, client, user, monkeypatch):
        _set_assistant(monkeypatch, "unused")
        assert client.post("/chat", json={"message": " "}).status_code == 400


class TestActivityRoutes:
    def test_record_and_summary(self, client, user):
        response = client.post("/activity", json={"steps": 4200, "distance": 3100.5, "calories": 180})
        assert response.status_code == 200
        assert response.get_json()["date"] == TODAY.isoformat()

        data = client.get("/activity").get_json()
        assert data["today"]["display"]["steps"] == "4,200"
        assert data["week"]["steps"][-1] == 4200.0

    def test_invalid_values(self, client, user):
        assert client.post("/activity", json={"steps": -4}).status_code == 400

    def test_non_string_date(self, client, user):
        response = client.post("/activity", json={"date": 20250507, "steps": 10, "distance": 5, "calories": 1})
        assert response.status_code == 400
        assert response.get_json()["error"] == "Invalid date: 20250507"


class TestAvatarRoutes:
    def test_creator_url(self, client):
        url = client.get("/avatar/creator-url?gender=female").get_json()["url"]
        assert "&gender=female" in url
        assert client.get("/avatar/creator-url?bodyType=tiny").status_code == 400

    def test_save_and_serve(self, client, user, tmp_path):
        assert client.get("/avatar/image").status_code == 404

        response = client.post("/avatar", json={"url": "https://models.readyplayer.me/abc123.glb"})
        assert response.get_json()["avatarId"] == "abc123"
        assert client.get("/profile").get_json()["avatarId"] == "abc123"

        (tmp_path / "avatars").mkdir()
        (tmp_path / "avatars" / "abc123.png").write_bytes(PNG_SIGNATURE + b"data")
        image = client.get("/avatar/image")
        assert image.status_code == 200
        assert image.mimetype == "image/png"
        assert image.data.startswith(PNG_SIGNATURE)
        image.close()

    def test_invalid_avatar_url(self, client, user):
        assert client.post("/avatar", json={"url": ""}).status_code == 400
