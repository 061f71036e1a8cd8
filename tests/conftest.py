"""Shared fakes and fixtures for the travel agent tests."""

import json
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from main import create_app
from services.session_store import InMemorySessionStore, SessionStore
from utils.session_sweeper import SessionSweeper
from utils.settings import Settings

SURE_REPLY = json.dumps(
    {"messages": [{"text": "Sure!", "facialExpression": "smile", "animation": "Talking_1"}]}
)

PLACES_PAYLOAD = {
    "places": [
        {"displayName": {"text": "Cafe Kitsune"}, "primaryTypeDisplayName": {"text": "Cafe"}},
        {"displayName": {"text": "Senso-ji"}, "primaryTypeDisplayName": {"text": "Temple"}},
    ]
}


class FakeResponses:
    """Stand-in for `client.responses`; replays queued outputs in order."""

    def __init__(self, replies: List[Any]) -> None:
        self.replies = list(replies)
        self.calls: List[Dict[str, Any]] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(
            output=[],
            output_text=reply,
            usage=SimpleNamespace(input_tokens=12, output_tokens=7),
        )

    @property
    def last_instruction(self) -> str:
        return self.calls[-1]["input"][0]["content"][0]["text"]


class FakeSpeech:
    """Stand-in for `client.audio.speech`; fails for texts containing a marker."""

    def __init__(self, fail_on: tuple = ()) -> None:
        self.fail_on = fail_on
        self.calls: List[Dict[str, Any]] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if any(marker in kwargs["input"] for marker in self.fail_on):
            raise RuntimeError("speech provider unavailable")
        return SimpleNamespace(content=b"ID3-fake-mp3:" + kwargs["input"].encode("utf-8"))


class FakeOpenAI:
    def __init__(self, replies: Optional[List[Any]] = None, speech_fail_on: tuple = ()) -> None:
        self.responses = FakeResponses(replies or [SURE_REPLY])
        self.audio = SimpleNamespace(speech=FakeSpeech(speech_fail_on))


class FakeLipSync:
    """Records the MP3 paths it was given and returns a small viseme track."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.seen: List[Path] = []

    async def extract(self, mp3_path: Path) -> Dict[str, Any]:
        assert mp3_path.exists()
        self.seen.append(mp3_path)
        if self.fail:
            raise RuntimeError("rhubarb crashed")
        return {
            "metadata": {"soundFile": mp3_path.name, "duration": 0.4},
            "mouthCues": [{"start": 0.0, "end": 0.2, "value": "B"}, {"start": 0.2, "end": 0.4, "value": "X"}],
        }


class PlacesRecorder:
    """httpx MockTransport handler that records requests to the places provider."""

    def __init__(self, status_code: int = 200, payload: Any = None) -> None:
        self.status_code = status_code
        self.payload = PLACES_PAYLOAD if payload is None else payload
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.payload)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        openai_api_key="sk-test",
        maps_api_key="maps-test",
        audio_temp_dir=str(tmp_path / "audio"),
        session_backend="memory",
        session_idle_seconds=1800,
    )


@pytest.fixture
def make_client(settings) -> Callable[..., TestClient]:
    """Build a TestClient whose app.state holds fakes instead of real services."""

    def _make(
        openai_client: Optional[FakeOpenAI] = None,
        places: Optional[PlacesRecorder] = None,
        store: Optional[SessionStore] = None,
        lipsync: Optional[FakeLipSync] = None,
        app_settings: Optional[Settings] = None,
    ) -> TestClient:
        app = create_app()
        app.state.settings = app_settings or settings
        app.state.session_store = store or InMemorySessionStore()
        app.state.session_sweeper = SessionSweeper(app.state.session_store, app.state.settings.session_idle_seconds)
        app.state.openai_client = openai_client or FakeOpenAI()
        app.state.http_client = httpx.AsyncClient(transport=httpx.MockTransport(places or PlacesRecorder()))
        app.state.lipsync_extractor = lipsync or FakeLipSync()
        return TestClient(app)

    return _make


def create_session(client: TestClient, notes: str = "") -> Dict[str, Any]:
    response = client.post("/api/session-chat", json={"notes": notes, "selectedAgent": {"id": 1}})
    assert response.status_code == 200
    return response.json()
