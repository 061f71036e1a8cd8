"""End-to-end tests for the conversation turn endpoint."""
import base64
import io
import json
import os

from PIL import Image

from conftest import SURE_REPLY, FakeLipSync, FakeOpenAI, PlacesRecorder, create_session
from models.session_models import GREETING_TEXT, WELCOME_REPLY
from services.session_store import InMemorySessionStore
from utils.settings import Settings


def png_b64(size=(8, 8)) -> str:
    buf = io.BytesIO()
    Image.new("RGB", size, (200, 30, 30)).save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode("utf-8")


def stored_conversation(client, session_id):
    return client.get("/api/session-chat", params={"sessionId": session_id}).json()["conversation"]


def test_tokyo_trip_turn_returns_one_segment_and_grows_history_by_two(make_client):
    client = make_client()
    session_id = create_session(client)["sessionId"]
    before = stored_conversation(client, session_id)

    response = client.post("/api/chat", json={"message": "Plan a 3-day Tokyo trip", "sessionId": session_id})

    assert response.status_code == 200
    body = response.json()
    assert body["sessionId"] == session_id
    assert len(body["messages"]) == 1
    segment = body["messages"][0]
    assert segment["text"] == "Sure!"
    assert segment["facialExpression"] == "smile"
    assert segment["animation"] == "Talking_1"
    assert base64.b64decode(segment["audio"]).startswith(b"ID3-fake-mp3:")
    assert segment["lipsync"]["mouthCues"][0]["value"] == "B"
    assert len(body["history"]) == len(before) + 2
    assert body["history"][-2] == {"role": "user", "parts": [{"text": "Plan a 3-day Tokyo trip"}]}
    assert body["history"][-1] == {"role": "model", "parts": [{"text": SURE_REPLY}]}
    assert stored_conversation(client, session_id) == body["history"]


def test_segments_keep_model_order(make_client):
    reply = json.dumps({"messages": [
        {"text": "First", "facialExpression": "smile", "animation": "Talking_0"},
        {"text": "Second", "facialExpression": "surprised", "animation": "Laughing"},
        {"text": "Third", "facialExpression": "default", "animation": "Idle"},
    ]})
    client = make_client(openai_client=FakeOpenAI([reply]))
    session_id = create_session(client)["sessionId"]

    body = client.post("/api/chat", json={"message": "Tell me three things", "sessionId": session_id}).json()

    assert [m["text"] for m in body["messages"]] == ["First", "Second", "Third"]
    assert [m["animation"] for m in body["messages"]] == ["Talking_0", "Laughing", "Idle"]


def test_hi_without_location_is_grounded_as_unknown(make_client):
    openai_client = FakeOpenAI()
    places = PlacesRecorder()
    client = make_client(openai_client=openai_client, places=places)
    session_id = create_session(client)["sessionId"]

    response = client.post("/api/chat", json={"message": "hi", "sessionId": session_id})

    assert response.status_code == 200
    assert len(response.json()["messages"]) == 1
    assert places.requests == []
    instruction = openai_client.responses.last_instruction
    assert "current location is not available" in instruction
    assert "Cafe Kitsune" not in instruction
    assert "nearby places:" not in instruction


def test_location_places_are_injected_into_instruction(make_client):
    openai_client = FakeOpenAI()
    places = PlacesRecorder()
    client = make_client(openai_client=openai_client, places=places)
    session_id = create_session(client)["sessionId"]

    response = client.post(
        "/api/chat",
        json={"message": "Coffee nearby?", "sessionId": session_id, "location": {"latitude": 35.71, "longitude": 139.79}},
    )

    assert response.status_code == 200
    assert len(places.requests) == 1
    assert "Cafe Kitsune (Cafe), Senso-ji (Temple)" in openai_client.responses.last_instruction


def test_places_failure_still_returns_200(make_client):
    openai_client = FakeOpenAI()
    client = make_client(openai_client=openai_client, places=PlacesRecorder(status_code=503, payload={"error": "down"}))
    session_id = create_session(client)["sessionId"]

    response = client.post(
        "/api/chat",
        json={"message": "What's around?", "sessionId": session_id, "location": {"latitude": 1.0, "longitude": 2.0}},
    )

    assert response.status_code == 200
    assert response.json()["messages"][0]["text"] == "Sure!"
    instruction = openai_client.responses.last_instruction
    assert "location is known, but no nearby" in instruction


def test_malformed_model_output_uses_fallback_but_persists_raw_text(make_client):
    client = make_client(openai_client=FakeOpenAI(["Sorry, here is plain prose"]))
    session_id = create_session(client)["sessionId"]

    response = client.post("/api/chat", json={"message": "Paris?", "sessionId": session_id})

    assert response.status_code == 200
    messages = response.json()["messages"]
    assert len(messages) == 1
    assert messages[0]["text"].startswith("I'm sorry, I had trouble processing")
    assert messages[0]["facialExpression"] == "default"
    assert messages[0]["animation"] == "Talking_0"
    assert stored_conversation(client, session_id)[-1] == {
        "role": "model",
        "parts": [{"text": "Sorry, here is plain prose"}],
    }


def test_model_failure_returns_500_with_prior_history(make_client):
    client = make_client(openai_client=FakeOpenAI([RuntimeError("quota exceeded")]))
    session_id = create_session(client)["sessionId"]
    before = stored_conversation(client, session_id)

    response = client.post("/api/chat", json={"message": "Rome?", "sessionId": session_id})

    assert response.status_code == 500
    body = response.json()
    assert len(body["messages"]) == 1
    assert body["messages"][0]["facialExpression"] == "sad"
    assert body["history"] == before
    assert stored_conversation(client, session_id) == before
    assert openai_client_calls_speech(client) == []


def openai_client_calls_speech(client):
    return client.app.state.openai_client.audio.speech.calls


def test_failed_segment_is_nulled_and_others_survive(make_client):
    reply = json.dumps({"messages": [
        {"text": "Works fine", "facialExpression": "smile", "animation": "Talking_0"},
        {"text": "BROKEN speech", "facialExpression": "sad", "animation": "Crying"},
        {"text": "Also fine", "facialExpression": "smile", "animation": "Talking_2"},
    ]})
    client = make_client(openai_client=FakeOpenAI([reply], speech_fail_on=("BROKEN",)))
    session_id = create_session(client)["sessionId"]

    response = client.post("/api/chat", json={"message": "Go", "sessionId": session_id})

    assert response.status_code == 200
    messages = response.json()["messages"]
    assert len(messages) == 3
    assert messages[1]["text"] == "BROKEN speech"
    assert messages[1]["audio"] is None and messages[1]["lipsync"] is None
    assert messages[0]["audio"] and messages[0]["lipsync"]
    assert messages[2]["audio"] and messages[2]["lipsync"]


def test_lipsync_failure_nulls_audio_too(make_client):
    client = make_client(lipsync=FakeLipSync(fail=True))
    session_id = create_session(client)["sessionId"]

    messages = client.post("/api/chat", json={"message": "Go", "sessionId": session_id}).json()["messages"]

    assert messages[0]["audio"] is None
    assert messages[0]["lipsync"] is None


def test_turn_workspace_is_removed_after_turn(make_client, settings):
    lipsync = FakeLipSync()
    client = make_client(lipsync=lipsync)
    session_id = create_session(client)["sessionId"]

    client.post("/api/chat", json={"message": "Go", "sessionId": session_id})

    assert len(lipsync.seen) == 1
    assert not lipsync.seen[0].parent.exists()
    assert os.listdir(settings.audio_temp_dir) == []


def test_cleared_session_restarts_from_greeting_pair(make_client):
    client = make_client()
    session_id = create_session(client)["sessionId"]
    client.post("/api/chat", json={"message": "First question", "sessionId": session_id})

    assert client.delete(f"/api/chat-history/{session_id}").status_code == 200
    body = client.post("/api/chat", json={"message": "Fresh start", "sessionId": session_id}).json()

    assert body["history"][0] == {"role": "user", "parts": [{"text": GREETING_TEXT}]}
    assert body["history"][1] == {"role": "model", "parts": [{"text": WELCOME_REPLY}]}
    assert body["history"][2]["parts"] == [{"text": "Fresh start"}]
    assert len(body["history"]) == 4
    assert stored_conversation(client, session_id) == body["history"]


def test_unknown_session_is_answered_from_default_history_without_saving(make_client):
    store = InMemorySessionStore()
    client = make_client(store=store)

    response = client.post("/api/chat", json={"message": "hello?", "sessionId": "missing-session"})

    assert response.status_code == 200
    assert len(response.json()["history"]) == 4
    assert client.get("/api/chat-history/missing-session").status_code == 404


def test_persistence_failure_returns_reply_with_error_status(make_client):
    class BrokenWriteStore(InMemorySessionStore):
        async def append_and_save(self, session_id, *entries):
            raise RuntimeError("disk full")

    client = make_client(store=BrokenWriteStore())
    session_id = create_session(client)["sessionId"]

    response = client.post("/api/chat", json={"message": "Lisbon?", "sessionId": session_id})

    assert response.status_code == 500
    assert response.json()["messages"][0]["text"] == "Sure!"
    assert response.json()["messages"][0]["audio"]


def test_missing_credentials_rejects_turn_before_external_calls(make_client, tmp_path):
    openai_client = FakeOpenAI()
    places = PlacesRecorder()
    client = make_client(
        openai_client=openai_client,
        places=places,
        app_settings=Settings(openai_api_key="sk-test", maps_api_key=None, audio_temp_dir=str(tmp_path)),
    )

    response = client.post(
        "/api/chat",
        json={"message": "hi", "sessionId": "s1", "location": {"latitude": 1.0, "longitude": 1.0}},
    )

    assert response.status_code == 500
    assert response.json()["messages"][0]["text"] == "API keys are not configured correctly."
    assert openai_client.responses.calls == []
    assert places.requests == []


def test_image_turn_sends_image_part_and_distinguishes_locations(make_client):
    openai_client = FakeOpenAI()
    client = make_client(openai_client=openai_client)
    session_id = create_session(client)["sessionId"]
    image = png_b64()

    response = client.post(
        "/api/chat",
        json={"sessionId": session_id, "image": {"data": image, "mimeType": "image/png"}},
    )

    assert response.status_code == 200
    call = openai_client.responses.calls[-1]
    user_content = call["input"][-1]["content"]
    assert user_content == [{"type": "input_image", "image_url": f"data:image/png;base64,{image}"}]
    assert "may show a DIFFERENT location" in openai_client.responses.last_instruction
    assert "The user has sent you an image or is greeting you." in openai_client.responses.last_instruction
    assert response.json()["history"][-2]["parts"] == [{"inlineData": {"data": image, "mimeType": "image/png"}}]


def test_invalid_image_is_rejected(make_client):
    client = make_client()
    session_id = create_session(client)["sessionId"]

    response = client.post(
        "/api/chat",
        json={"sessionId": session_id, "image": {"data": "bm90IGFuIGltYWdl", "mimeType": "image/png"}},
    )

    assert response.status_code == 400


def test_empty_turn_sends_greeting_part(make_client):
    openai_client = FakeOpenAI()
    client = make_client(openai_client=openai_client)
    session_id = create_session(client)["sessionId"]

    client.post("/api/chat", json={"message": "   ", "sessionId": session_id})

    assert openai_client.responses.calls[-1]["input"][-1]["content"] == [{"type": "input_text", "text": GREETING_TEXT}]


def test_last_activity_never_decreases(make_client):
    client = make_client()
    session_id = create_session(client)["sessionId"]
    seen = []
    for text in ("one", "two", "three"):
        client.post("/api/chat", json={"message": text, "sessionId": session_id})
        seen.append(client.get("/api/session-chat", params={"sessionId": session_id}).json()["lastActiveAt"])

    assert seen == sorted(seen)
