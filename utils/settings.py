"""Environment-driven configuration for the travel agent service."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

BASE_DIR = Path(__file__).resolve().parent.parent

# Inactivity thresholds differ per backend: the durable store keeps a day,
# the in-memory store only covers a live visit.
IDLE_SECONDS_BY_BACKEND = {"sqlite": 24 * 60 * 60, "memory": 30 * 60}
SWEEP_INTERVAL_BY_BACKEND = {"sqlite": 60 * 60, "memory": 5 * 60}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from exc


@dataclass
class Settings:
    """Runtime settings, usually built with `Settings.from_env()`."""

    openai_api_key: Optional[str] = None
    maps_api_key: Optional[str] = None
    chat_model: str = "gpt-5-mini"
    report_model: str = "gpt-5-mini"
    tts_model: str = "gpt-4o-mini-tts"
    tts_voice: str = "alloy"
    ffmpeg_bin: str = "ffmpeg"
    rhubarb_bin: str = str(BASE_DIR / "bin" / "rhubarb")
    audio_temp_dir: str = str(BASE_DIR / "tmp_audio_processing")
    session_backend: str = "sqlite"
    session_idle_seconds: float = IDLE_SECONDS_BY_BACKEND["sqlite"]
    sweep_interval_seconds: float = SWEEP_INTERVAL_BY_BACKEND["sqlite"]
    model_timeout: float = 60.0
    places_timeout: float = 10.0
    speech_timeout: float = 30.0
    lipsync_timeout: float = 30.0
    speech_concurrency: int = 3
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        backend = (os.getenv("SESSION_BACKEND") or "sqlite").strip().lower()
        if backend not in IDLE_SECONDS_BY_BACKEND:
            raise RuntimeError(f"SESSION_BACKEND must be 'sqlite' or 'memory', got {backend!r}")

        defaults = cls()
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            maps_api_key=os.getenv("MAPS_API_KEY"),
            chat_model=os.getenv("CHAT_MODEL", defaults.chat_model),
            report_model=os.getenv("REPORT_MODEL", defaults.report_model),
            tts_model=os.getenv("TTS_MODEL", defaults.tts_model),
            tts_voice=os.getenv("TTS_VOICE", defaults.tts_voice),
            ffmpeg_bin=os.getenv("FFMPEG_BIN", defaults.ffmpeg_bin),
            rhubarb_bin=os.getenv("RHUBARB_BIN", defaults.rhubarb_bin),
            audio_temp_dir=os.getenv("AUDIO_TEMP_DIR", defaults.audio_temp_dir),
            session_backend=backend,
            session_idle_seconds=_env_float("SESSION_IDLE_SECONDS", IDLE_SECONDS_BY_BACKEND[backend]),
            sweep_interval_seconds=_env_float(
                "SESSION_SWEEP_INTERVAL_SECONDS", SWEEP_INTERVAL_BY_BACKEND[backend]
            ),
            model_timeout=_env_float("MODEL_TIMEOUT_SECONDS", defaults.model_timeout),
            places_timeout=_env_float("PLACES_TIMEOUT_SECONDS", defaults.places_timeout),
            speech_timeout=_env_float("SPEECH_TIMEOUT_SECONDS", defaults.speech_timeout),
            lipsync_timeout=_env_float("LIPSYNC_TIMEOUT_SECONDS", defaults.lipsync_timeout),
            speech_concurrency=max(1, int(_env_float("SPEECH_CONCURRENCY", defaults.speech_concurrency))),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
            log_file=os.getenv("LOG_FILE") or None,
        )

    def missing_credentials(self) -> List[str]:
        """Return the names of required API keys that are not configured."""
        missing = []
        if not self.openai_api_key:
            missing.append("OPENAI_API_KEY")
        if not self.maps_api_key:
            missing.append("MAPS_API_KEY")
        return missing
