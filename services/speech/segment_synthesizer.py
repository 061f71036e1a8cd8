"""Attach speech audio and lip-sync tracks to reply segments."""

from __future__ import annotations

import asyncio
import base64
import logging
from pathlib import Path
from typing import List, Optional, Sequence

import aiofiles

from models.reply_models import ReplySegment
from services.speech.lipsync import LipSyncExtractor, remove_quietly
from services.speech.speech_service import SpeechService


class SegmentSynthesizer:
    """Run speech synthesis and viseme extraction for every reply segment.

    A failing segment keeps its text and gets `audio=None, lipsync=None`;
    the other segments are unaffected.
    """

    def __init__(self, speech: SpeechService, lipsync: LipSyncExtractor, *, concurrency: int = 3) -> None:
        self.speech = speech
        self.lipsync = lipsync
        self.concurrency = max(1, concurrency)

    async def synthesize_all(
        self,
        segments: Sequence[ReplySegment],
        workdir: Path,
        *,
        voice: Optional[str] = None,
        label: str = "",
    ) -> List[ReplySegment]:
        """Enrich `segments` in place and return them in their original order."""
        semaphore = asyncio.Semaphore(self.concurrency)

        async def _bounded(index: int, segment: ReplySegment) -> ReplySegment:
            async with semaphore:
                return await self.synthesize_one(index, segment, workdir, voice=voice, label=label)

        # gather returns results in argument order regardless of completion order
        return list(await asyncio.gather(*(_bounded(i, s) for i, s in enumerate(segments))))

    async def synthesize_one(
        self,
        index: int,
        segment: ReplySegment,
        workdir: Path,
        *,
        voice: Optional[str] = None,
        label: str = "",
    ) -> ReplySegment:
        mp3_path = workdir / f"message_{index}.mp3"
        try:
            await self.speech.synthesize_to_file(segment.text, str(mp3_path), voice=voice)
            track = await self.lipsync.extract(mp3_path)
            async with aiofiles.open(mp3_path, "rb") as f:
                audio = await f.read()
            segment.audio = base64.b64encode(audio).decode("utf-8")
            segment.lipsync = track
            logging.info("Audio and lipsync generated for message %d of session %s.", index, label)
        except Exception as exc:
            logging.error(
                "Audio or lipsync generation failed for message %d of session %s: %s", index, label, exc
            )
            segment.audio = None
            segment.lipsync = None
        finally:
            await remove_quietly(mp3_path)
        return segment
