"""
Intake persistence.

Three independent string slots (form data, message log, current step id)
behind a small key-value storage port, so the same code runs against
memory, a directory of JSON files, or anything else with get/set.

Design:
- Write-through after every committed turn (no caching layer)
- Each slot is JSON-serialized on its own
- Reads never fail: a missing or corrupt slot falls back to its default
- No atomicity across slots; resume logic tolerates a torn write
"""

import copy
import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from dv100 import config
from dv100.contracts import ROLE_JURA, ROLE_USER, ChatMessage, now_ms

logger = logging.getLogger(__name__)


class StoragePort:
    """
    Key-value storage with string keys and string values.

    Subclasses implement the three methods; get_item returns None for
    missing keys.
    """

    def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove_item(self, key: str) -> None:
        raise NotImplementedError


class InMemoryStorage(StoragePort):
    """Process-local storage (tests, console harness)"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class JsonFileStorage(StoragePort):
    """
    One file per key under a base directory.

    Layout:
        outputs/state/<session>/
            dv100Chat_data.json
            dv100Chat_messages.json
            dv100Chat_step.json
    """

    def __init__(self, base_dir: Union[str, Path] = config.STATE_DIR):
        """
        Args:
            base_dir: Directory holding the slot files (created if needed)
        """
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"JsonFileStorage initialized: {self.base_dir}")

    def _path(self, key: str) -> Path:
        return self.base_dir / f"{key}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return f.read()

    def set_item(self, key: str, value: str) -> None:
        with open(self._path(key), "w", encoding="utf-8") as f:
            f.write(value)

    def remove_item(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()


@dataclass
class PersistedState:
    """Durable mirror of a session: {data, messages, step}"""
    data: Dict[str, Any]
    messages: List[Dict[str, Any]] = field(default_factory=list)
    step: Optional[str] = None


def coerce_messages(raw: Any) -> List[ChatMessage]:
    """
    Rebuild chat messages from a persisted slot.

    Entries that aren't dicts, have an unknown role, or have no text are
    dropped. Missing ids become 'restored-<index>', missing timestamps
    become now. Restored messages are fully rendered.
    """
    if not isinstance(raw, list):
        return []

    restored: List[ChatMessage] = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            continue
        role = entry.get("from")
        if role not in (ROLE_JURA, ROLE_USER):
            continue
        text = entry.get("text")
        if not isinstance(text, str) or not text:
            continue

        message_id = entry.get("id")
        created_at = entry.get("createdAt")
        restored.append(ChatMessage(
            id=message_id if isinstance(message_id, str) else f"restored-{index}",
            role=role,
            text=text,
            created_at=created_at if isinstance(created_at, int) and not isinstance(created_at, bool) else now_ms(),
            rendered_text=text,
            complete=True,
        ))

    return restored


class IntakePersistence:
    """Reads and writes PersistedState through a StoragePort"""

    def __init__(
        self,
        storage: StoragePort,
        schema_template: Dict[str, Any],
        keys: Optional[Dict[str, str]] = None
    ):
        """
        Args:
            storage: Key-value storage port
            schema_template: Default form data (deep-copied for fresh state)
            keys: Slot key names (defaults to config.STORAGE_KEYS)
        """
        self.storage = storage
        self.schema_template = copy.deepcopy(schema_template)
        self.keys = dict(keys or config.STORAGE_KEYS)

    def default_state(self) -> PersistedState:
        return PersistedState(data=copy.deepcopy(self.schema_template), messages=[], step=None)

    def _read_slot(self, key: str, fallback: Any) -> Any:
        try:
            raw = self.storage.get_item(key)
        except OSError as e:
            logger.warning(f"Storage read failed for '{key}': {e}")
            return fallback

        if not raw:
            return fallback

        try:
            return json.loads(raw)
        except ValueError as e:
            logger.warning(f"Corrupt persisted slot '{key}', using default: {e}")
            return fallback

    def load_state(self) -> PersistedState:
        """
        Load all three slots.

        Returns:
            PersistedState (defaults for any missing/corrupt slot)
        """
        default = self.default_state()

        data = self._read_slot(self.keys["data"], default.data)
        if not isinstance(data, dict):
            logger.warning("Persisted form data is not an object, using template")
            data = default.data

        messages = self._read_slot(self.keys["messages"], [])
        if not isinstance(messages, list):
            logger.warning("Persisted messages are not a list, discarding")
            messages = []

        step = self._read_slot(self.keys["step"], None)
        if not isinstance(step, str):
            step = None

        return PersistedState(data=data, messages=messages, step=step)

    def save_state(self, state: PersistedState) -> None:
        """
        Overwrite all three slots (three independent writes).

        Args:
            state: State to persist
        """
        start = time.time()
        self.storage.set_item(self.keys["data"], json.dumps(state.data, ensure_ascii=False))
        self.storage.set_item(self.keys["messages"], json.dumps(state.messages, ensure_ascii=False))
        self.storage.set_item(self.keys["step"], json.dumps(state.step))
        logger.debug(
            f"Saved state: step={state.step}, messages={len(state.messages)} "
            f"({(time.time() - start) * 1000:.1f}ms)"
        )

    def clear(self) -> None:
        for key in self.keys.values():
            self.storage.remove_item(key)
        logger.info("Persisted state cleared")
