"""
Signal cooldown tracking

Suppresses re-emission of the same (symbol, direction, reason) key inside a
minimum re-alert interval. The backing store is injectable: in-memory for a
single process, or a JSON file that survives restarts.
"""

import json
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, Optional

from .models import Direction
from .modes import TRADING_MODES

logger = logging.getLogger(__name__)

# No mode looks further back than this
MAX_COOLDOWN = timedelta(minutes=max(mode.cooldown_minutes for mode in TRADING_MODES.values()))


class InMemoryCooldownStore:
    """Dictionary-backed store"""

    def __init__(self):
        self._entries: Dict[str, datetime] = {}

    def get(self, key: str) -> Optional[datetime]:
        return self._entries.get(key)

    def set(self, key: str, timestamp: datetime) -> None:
        self._entries[key] = timestamp

    def __len__(self) -> int:
        return len(self._entries)


class JsonFileCooldownStore:
    """
    Store persisted to a JSON file of key -> ISO timestamp.

    The file is read once on construction and rewritten on every set.
    Keys older than `retention` before the newest write are dropped then.
    """

    def __init__(self, path: str = './data/cooldowns.json', retention: timedelta = MAX_COOLDOWN):
        """
        Initialize file store.

        Args:
            path: JSON file location (parent directory is created)
            retention: How long a key is kept after it fired
        """
        self.path = Path(path)
        self.retention = retention
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._entries: Dict[str, datetime] = self._load()

        logger.info(f"Cooldown store at {self.path} ({len(self._entries)} keys)")

    def _load(self) -> Dict[str, datetime]:
        if not self.path.exists():
            return {}

        try:
            with open(self.path, 'r') as f:
                raw = json.load(f)
            return {key: datetime.fromisoformat(value) for key, value in raw.items()}
        except (OSError, ValueError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable cooldown file {self.path}: {e}")
            return {}

    def _prune(self, now: datetime) -> None:
        cutoff = now - self.retention
        expired = [key for key, ts in self._entries.items() if ts < cutoff]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Dropped {len(expired)} expired cooldown keys")

    def _save(self) -> None:
        data = {key: ts.isoformat() for key, ts in self._entries.items()}
        try:
            with open(self.path, 'w') as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            logger.error(f"Error saving cooldowns to {self.path}: {e}")

    def get(self, key: str) -> Optional[datetime]:
        return self._entries.get(key)

    def set(self, key: str, timestamp: datetime) -> None:
        self._entries[key] = timestamp
        self._prune(timestamp)
        self._save()

    def __len__(self) -> int:
        return len(self._entries)


class CooldownState:
    """
    Last-emitted timestamps per signal key.

    Single writer: one scan cycle at a time owns the state, and a recorded
    key is visible to the very next check.
    """

    def __init__(self, store=None):
        self.store = store if store is not None else InMemoryCooldownStore()

    @staticmethod
    def make_key(symbol: str, direction: Direction, reason_key: Optional[str] = None) -> str:
        return f"{symbol}:{direction.value}:{reason_key or 'none'}"

    def remaining(self, key: str, window_minutes: float, now: datetime) -> timedelta:
        """Time left before `key` may fire again (zero when free)"""
        last = self.store.get(key)
        if last is None:
            return timedelta(0)

        left = last + timedelta(minutes=window_minutes) - now
        return left if left > timedelta(0) else timedelta(0)

    def is_active(self, key: str, window_minutes: float, now: datetime) -> bool:
        return self.remaining(key, window_minutes, now) > timedelta(0)

    def record(self, key: str, now: datetime) -> None:
        self.store.set(key, now)
        logger.debug(f"Cooldown recorded for {key} at {now.isoformat()}")
