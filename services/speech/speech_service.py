"""Speech synthesis helper built on OpenAI's text-to-speech models."""

import logging
from typing import Optional

import aiofiles
from openai import AsyncOpenAI

TTS_MODEL = "gpt-4o-mini-tts"

OPENAI_VOICES = (
    "alloy",
    "ash",
    "ballad",
    "coral",
    "echo",
    "fable",
    "nova",
    "onyx",
    "sage",
    "shimmer",
)


class SpeechService:
    """Create MP3 speech files from reply text."""

    def __init__(
        self,
        client: AsyncOpenAI,
        *,
        model: str = TTS_MODEL,
        default_voice: str = "alloy",
        timeout: float = 30.0,
    ) -> None:
        """Initialize the service with a shared OpenAI client."""
        if client is None:
            raise ValueError("OpenAI client is required for speech synthesis.")
        self.client = client
        self.model = model
        self.default_voice = default_voice
        self.timeout = timeout

    def resolve_voice(self, voice: Optional[str]) -> str:
        """Use the agent's voice when the provider knows it, else the default."""
        return voice if voice in OPENAI_VOICES else self.default_voice

    async def synthesize_to_file(self, text: str, path: str, *, voice: Optional[str] = None) -> str:
        """Synthesize `text` to an MP3 file at `path` and return the path."""
        if not text or not text.strip():
            raise ValueError("text must contain something to speak.")

        try:
            response = await self.client.audio.speech.create(
                model=self.model,
                voice=self.resolve_voice(voice),
                input=text,
                response_format="mp3",
                timeout=self.timeout,
            )
        except Exception as exc:
            logging.error("OpenAI speech request failed: %s", exc)
            raise

        audio = response.content
        if not audio:
            raise RuntimeError("Speech response did not include audio.")

        async with aiofiles.open(path, "wb") as f:
            await f.write(audio)
        return path
