import json

import pytest
from fastapi.testclient import TestClient

from stronghold import app as app_module
from stronghold.ai.verse_generator import VerseGenerator
from stronghold.ai.workout_generator import WorkoutGenerator
from stronghold.catalog.catalog import default_catalog

WORKOUT_REPLY = {
    "type": "upper_body",
    "estimatedDuration": 30,
    "reasoning": "Go easy on the shoulder.",
    "warmup": {"exercises": [{"name": "Easy Rowing", "equipment": "rowing_machine", "reps": 0, "sets": 1,
                              "restSeconds": 0, "duration": 5}]},
    "strength": {"exercises": [{"name": "Cable Row", "equipment": "cables", "sets": 2, "reps": 12,
                                "restSeconds": 30}]},
    "cooldown": {"exercises": [{"name": "Hamstring Stretch", "duration": 2}]},
}

CHECK_IN = {
    "physical": {"knee": 8, "shoulder": 4, "energy": 6, "sleep": 7},
    "mental": {"state": "clear", "stress": 5, "clarity": 6},
    "emotional": {"primary": "peaceful", "intensity": 5},
}

POST_WORKOUT = {
    "physical": {"knee": 8, "shoulder": 5, "overall": "good", "energy": 7},
    "mental": {"clarity": 8, "stress": 3, "focus": 7},
    "emotional": {"mood": "calm", "intensity": 4, "outlook": 8},
}


@pytest.fixture
def client(store, clock):
    app_module.configure_services(
        store=store,
        workout_generator=WorkoutGenerator(lambda prompt: json.dumps(WORKOUT_REPLY), clock=clock),
        verse_generator=VerseGenerator(lambda prompt: "not json"),
        catalog=default_catalog(),
    )
    yield TestClient(app_module.app)
    app_module.configure_services()


def _check_in(client):
    response = client.post("/checkins", json=CHECK_IN)
    assert response.status_code == 200
    return response.json()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_exercises_can_be_filtered(client):
    rows = client.get("/exercises", params={"phase": "warmup"}).json()
    assert [r["id"] for r in rows] == ["easy_rowing", "band_pull_apart", "band_ytwl"]


def test_check_in_creates_today_workout(client):
    body = _check_in(client)
    assert not body["used_fallback"]
    assert body["check_in_saved"] and body["workout_saved"]
    assert body["verse"]["reference"] == "Philippians 4:13"
    today = client.get("/workouts/today").json()
    assert today["id"] == body["workout"]["id"]
    assert today["check_in_id"] == body["check_in"]["id"]


def test_unknown_workout_is_404(client):
    assert client.get("/workouts/nope").status_code == 404
    assert client.post("/workouts/nope/session").status_code == 404
    assert client.post("/workouts/nope/session/skip-set").status_code == 404


def test_full_session_flow(client, store):
    workout_id = _check_in(client)["workout"]["id"]
    started = client.post(f"/workouts/{workout_id}/session").json()
    assert started["state"] == "at_exercise"
    assert (started["exercise_number"], started["total_exercises"]) == (1, 3)

    moved = client.post(
        f"/workouts/{workout_id}/session/complete-set", json={"actual_reps": 5, "difficulty": "easy"}
    ).json()
    assert (moved["state"], moved["exercise_index"]) == ("at_exercise", 1)

    resting = client.post(f"/workouts/{workout_id}/session/complete-set", json={"actual_reps": 12}).json()
    assert resting["state"] == "resting"
    assert resting["seconds_remaining"] == 30
    assert client.post(f"/workouts/{workout_id}/session/complete-set", json={}).status_code == 409
    ticked = client.post(f"/workouts/{workout_id}/session/tick").json()
    assert (ticked["state"], ticked["seconds_remaining"]) == ("resting", 29)

    back = client.post(f"/workouts/{workout_id}/session/skip-rest").json()
    assert (back["state"], back["set_index"]) == ("at_exercise", 1)

    options = client.get(f"/workouts/{workout_id}/substitutions").json()
    assert options["tier"] == "joint_health"
    assert options["options"]
    assert all(o["shoulder_friendly"] and o["phase"] == "strength" for o in options["options"])

    missing = client.post(f"/workouts/{workout_id}/session/substitute", json={"template_id": "nope"})
    assert missing.status_code == 404
    swapped = client.post(
        f"/workouts/{workout_id}/session/substitute", json={"template_id": options["options"][0]["id"]}
    ).json()
    assert swapped["set_index"] == 0
    assert swapped["current_exercise"]["substituted_from"] == "cable_row"
    assert len(swapped["current_exercise"]["sets"]) == 2

    assert client.post(f"/workouts/{workout_id}/session/end").json()["state"] == "finished"
    done = client.post(f"/workouts/{workout_id}/session/post-workout", json=POST_WORKOUT)
    assert done.status_code == 200
    assert done.json()["completed"]
    again = client.post(f"/workouts/{workout_id}/session/post-workout", json=POST_WORKOUT)
    assert again.status_code == 409
    assert workout_id not in app_module._SESSIONS
    assert client.get(f"/workouts/{workout_id}/session").status_code == 404
    assert store.get_workout_by_id(workout_id).post_workout.emotional.mood == "calm"


def test_substitutions_need_an_exercise(client):
    workout_id = _check_in(client)["workout"]["id"]
    assert client.get(f"/workouts/{workout_id}/substitutions").status_code == 400
    listed = client.get(
        f"/workouts/{workout_id}/substitutions", params={"exercise_index": 0, "mode": "all", "q": "stretch"}
    ).json()
    assert listed["mode"] == "all"
    assert all("stretch" in o["name"].lower() or any("stretch" in m for m in o["target_muscles"])
               for o in listed["options"])
    bad_mode = client.get(f"/workouts/{workout_id}/substitutions", params={"exercise_index": 0, "mode": "x"})
    assert bad_mode.status_code == 400


def test_progress_report(client):
    body = client.get("/progress").json()
    assert body["stats"]["total_workouts"] == 0
    assert body["weekly_trend"] == []
