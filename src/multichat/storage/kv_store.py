"""
Key-value store implementations.

Both stores implement IKeyValueStore with string values. The JSON-file
store keeps every key in one JSON object and rewrites the whole file on
each mutation (write to a sibling temp file, then os.replace).
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional, Union

from ..domain.ports import IKeyValueStore

logger = logging.getLogger(__name__)


class InMemoryKeyValueStore(IKeyValueStore):
    """Process-local store, the default for tests and short-lived hosts."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileKeyValueStore(IKeyValueStore):
    """Store backed by a single JSON object file.

    A missing file is an empty store. A corrupt file is logged and treated
    as empty; the next write replaces it.

    Usage:
        store = JsonFileKeyValueStore("~/.multichat/state.json")
        store.set("multichat.agents.active", "code-master")
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()
        self._data = self._read()

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable state file {self.path}: {e}")
            return {}
        if not isinstance(raw, dict):
            logger.warning(f"Ignoring state file {self.path}: not a JSON object")
            return {}
        return {str(k): v for k, v in raw.items() if isinstance(v, str)}

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(self._data, indent=2, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp, self.path)

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._flush()

    def remove(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._flush()

    def keys(self) -> list[str]:
        return list(self._data)
