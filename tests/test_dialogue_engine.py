import json

import pytest

from conftest import SURE_REPLY, FakeOpenAI
from models.session_models import default_history
from services.openai.dialogue_engine import DialogueEngine
from services.openai.media_inputs import build_user_entry
from services.openai.response_parser import parse_reply_segments, strip_code_fences
from utils.errors import ModelInvocationError


def test_parse_reply_segments_reads_tags():
    segments = parse_reply_segments(SURE_REPLY)

    assert len(segments) == 1
    assert segments[0].text == "Sure!"
    assert segments[0].facial_expression == "smile"
    assert segments[0].animation == "Talking_1"
    assert segments[0].audio is None and segments[0].lipsync is None


def test_parse_accepts_fenced_json():
    fenced = "```json\n" + SURE_REPLY + "\n```"

    assert strip_code_fences(fenced) == SURE_REPLY
    assert parse_reply_segments(fenced)[0].text == "Sure!"


def test_unknown_tags_fall_back_to_defaults():
    raw = json.dumps({"messages": [{"text": "Hola", "facialExpression": "wink", "animation": "Moonwalk"}]})

    segment = parse_reply_segments(raw)[0]

    assert segment.facial_expression == "default"
    assert segment.animation == "Talking_0"


@pytest.mark.parametrize(
    "raw",
    [
        "not json at all",
        json.dumps({"reply": "wrong key"}),
        json.dumps({"messages": []}),
        json.dumps({"messages": [{"text": "   "}]}),
        json.dumps({"messages": ["just a string"]}),
        json.dumps(["messages"]),
    ],
)
def test_malformed_replies_raise_value_error(raw):
    with pytest.raises(ValueError):
        parse_reply_segments(raw)


async def test_reply_sends_history_in_json_mode():
    client = FakeOpenAI()
    engine = DialogueEngine(client, model="gpt-test", timeout=12)

    result = await engine.reply(default_history(), build_user_entry("Tokyo?", None), "INSTRUCTION")

    call = client.responses.calls[0]
    assert call["model"] == "gpt-test"
    assert call["text"] == {"format": {"type": "json_object"}}
    assert call["timeout"] == 12
    assert len(call["input"]) == 4
    assert result.parsed_ok
    assert result.raw_text == SURE_REPLY
    assert result.usage == {"input_tokens": 12, "output_tokens": 7}


async def test_unparseable_reply_yields_single_fallback_and_keeps_raw_text():
    engine = DialogueEngine(FakeOpenAI(["Let me think... Tokyo is lovely."]))

    result = await engine.reply(default_history(), build_user_entry("Tokyo?", None), "INSTRUCTION")

    assert not result.parsed_ok
    assert len(result.segments) == 1
    assert result.segments[0].text.startswith("I'm sorry")
    assert result.raw_text == "Let me think... Tokyo is lovely."


async def test_model_call_failure_raises_invocation_error():
    engine = DialogueEngine(FakeOpenAI([TimeoutError("model timed out")]))

    with pytest.raises(ModelInvocationError):
        await engine.reply(default_history(), build_user_entry("Tokyo?", None), "INSTRUCTION")


def test_engine_requires_client():
    with pytest.raises(ValueError):
        DialogueEngine(None)
