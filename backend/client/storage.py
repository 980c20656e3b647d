"""
Device-side storage for the accepted season id.

The mobile app keeps a single string under ACCEPTED_SEASON_KEY in secure
storage. Here that is either an in-memory store (tests, short-lived scripts)
or a small JSON file.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Union

from backend.utils.constants import ACCEPTED_SEASON_KEY

logger = logging.getLogger(__name__)


class AcceptedSeasonStore(ABC):
    """Interface for reading and writing the accepted season id."""

    key = ACCEPTED_SEASON_KEY

    @abstractmethod
    async def get(self) -> Optional[str]:
        """Return the stored season id, or None when nothing is stored."""

    @abstractmethod
    async def set(self, season_id: str) -> None:
        """Store season_id as the accepted season."""

    @abstractmethod
    async def clear(self) -> None:
        """Forget the accepted season."""


class MemoryAcceptedSeasonStore(AcceptedSeasonStore):
    def __init__(self, initial: Optional[str] = None):
        self._values: Dict[str, str] = {}
        if initial:
            self._values[self.key] = initial

    async def get(self) -> Optional[str]:
        return self._values.get(self.key)

    async def set(self, season_id: str) -> None:
        self._values[self.key] = season_id

    async def clear(self) -> None:
        self._values.pop(self.key, None)


class FileAcceptedSeasonStore(AcceptedSeasonStore):
    """
    JSON file store, one object with the accepted season under its key.

    An unreadable or corrupt file is treated as "nothing stored", which
    keeps the league locked.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read accepted season store {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data), encoding="utf-8")

    async def get(self) -> Optional[str]:
        data = await asyncio.to_thread(self._read)
        value = data.get(self.key)
        return value if isinstance(value, str) and value else None

    async def set(self, season_id: str) -> None:
        data = await asyncio.to_thread(self._read)
        data[self.key] = season_id
        await asyncio.to_thread(self._write, data)

    async def clear(self) -> None:
        data = await asyncio.to_thread(self._read)
        if data.pop(self.key, None) is not None:
            await asyncio.to_thread(self._write, data)
