"""Per-turn temporary directory for audio artifacts."""

from __future__ import annotations

import asyncio
import logging
import re
import shutil
from pathlib import Path
from types import TracebackType
from typing import Optional, Type
from uuid import uuid4

_UNSAFE = re.compile(r"[^A-Za-z0-9_-]+")


class TurnWorkspace:
    """Async context manager owning one turn's scratch directory.

    Each entry creates a fresh directory named from the session id plus a
    random suffix, so concurrent turns never share paths. The directory is
    removed recursively on exit whatever the outcome.
    """

    def __init__(self, base_dir: str | Path, session_id: str) -> None:
        self.base_dir = Path(base_dir)
        self.session_id = session_id
        self.path: Optional[Path] = None

    async def __aenter__(self) -> Path:
        safe_id = _UNSAFE.sub("_", self.session_id)[:64] or "session"
        path = self.base_dir / f"{safe_id}-{uuid4().hex}"
        await asyncio.to_thread(path.mkdir, parents=True, exist_ok=False)
        self.path = path
        logging.info("Created temporary directory for audio: %s", path)
        return path

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        if self.path is None:
            return
        try:
            await asyncio.to_thread(shutil.rmtree, self.path)
            logging.info("Cleaned up temporary audio directory: %s", self.path)
        except FileNotFoundError:
            pass
        except OSError as err:
            logging.warning("Failed to clean up temp dir %s: %s", self.path, err)
        finally:
            self.path = None
