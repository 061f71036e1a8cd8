"""Derive viseme timing tracks from synthesized speech.

Two external tools run as async subprocesses: ffmpeg decodes the MP3 to
WAV, then Rhubarb Lip Sync extracts phonetic mouth shapes into JSON.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from contextlib import suppress
from pathlib import Path
from typing import Any, Dict, Sequence

import aiofiles
import aiofiles.os

from utils.errors import SynthesisError


async def run_command(args: Sequence[str], *, timeout: float) -> str:
    """Run an executable and return stdout; raise SynthesisError on failure or timeout."""
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise SynthesisError(f"Could not start {args[0]}: {exc}") from exc

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise SynthesisError(f"{args[0]} timed out after {timeout:.0f}s") from exc
    finally:
        # also reached on task cancellation
        if proc.returncode is None:
            with suppress(ProcessLookupError):
                proc.kill()
            await asyncio.shield(proc.wait())

    if proc.returncode != 0:
        detail = stderr.decode("utf-8", errors="replace").strip()
        raise SynthesisError(f"{args[0]} exited with {proc.returncode}: {detail}")
    return stdout.decode("utf-8", errors="replace")


async def remove_quietly(path: Path) -> None:
    """Delete a temporary file, logging instead of raising if it cannot be removed."""
    try:
        await aiofiles.os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logging.warning("Failed to delete temp file %s: %s", path, exc)


class LipSyncExtractor:
    """Turn an MP3 file into a parsed Rhubarb viseme track."""

    def __init__(self, ffmpeg_bin: str = "ffmpeg", rhubarb_bin: str = "rhubarb", *, timeout: float = 30.0) -> None:
        self.ffmpeg_bin = ffmpeg_bin
        self.rhubarb_bin = rhubarb_bin
        self.timeout = timeout

    async def extract(self, mp3_path: Path) -> Dict[str, Any]:
        """Return the viseme JSON for `mp3_path`.

        The intermediate WAV and the JSON output are deleted before returning,
        on success and on failure alike.
        """
        start = time.time()
        wav_path = mp3_path.with_suffix(".wav")
        json_path = mp3_path.with_suffix(".json")
        try:
            await run_command([self.ffmpeg_bin, "-y", "-i", str(mp3_path), str(wav_path)], timeout=self.timeout)
            await run_command(
                [self.rhubarb_bin, "-f", "json", "-o", str(json_path), str(wav_path), "-r", "phonetic"],
                timeout=self.timeout,
            )
            async with aiofiles.open(json_path, "r", encoding="utf-8") as f:
                raw = await f.read()
            try:
                track = json.loads(raw)
            except json.JSONDecodeError as exc:
                raise SynthesisError(f"Lip-sync output is not valid JSON: {exc}") from exc
        finally:
            await remove_quietly(wav_path)
            await remove_quietly(json_path)

        logging.info("Lip sync for %s done in %dms", mp3_path.name, (time.time() - start) * 1000)
        return track
