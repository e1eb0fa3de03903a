"""
Key-value stores for the persisted desired state.

The record is tiny ({"port": int, "listening": bool}), so stores keep it in
memory and flush the whole mapping on every write.
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterator, MutableMapping, Optional, Union

logger = logging.getLogger(__name__)


class KeyValueStore(MutableMapping[str, Any], ABC):
    """Mapping that flushes itself after every change."""

    def __init__(self) -> None:
        self._data: Dict[str, Any] = {}

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._flush()

    def __delitem__(self, key: str) -> None:
        del self._data[key]
        self._flush()

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def update(self, *args: Any, **kwargs: Any) -> None:  # type: ignore[override]
        """Apply several changes with a single flush."""
        self._data.update(*args, **kwargs)
        self._flush()

    def clear(self) -> None:
        self._data.clear()
        self._flush()

    def snapshot(self) -> Dict[str, Any]:
        return dict(self._data)

    @abstractmethod
    def _flush(self) -> None:
        """Persist the whole mapping."""
        pass


class MemoryStore(KeyValueStore):
    """In-memory store, used for tests and ephemeral runs."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        super().__init__()
        self._data.update(initial or {})
        self.flush_count = 0

    def _flush(self) -> None:
        self.flush_count += 1


class JsonFileStore(KeyValueStore):
    """
    Store backed by a JSON file.

    A missing file is an empty record (first run). An unreadable or corrupt
    file is also treated as empty and replaced on the next write. Writes go
    through a temporary file and ``os.replace`` so a crash never leaves a
    half-written record behind.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        super().__init__()
        self._path = Path(path)
        self.reload()

    @property
    def path(self) -> Path:
        return self._path

    def reload(self) -> None:
        """Re-read the record from disk."""
        self._data = self._read()

    def _read(self) -> Dict[str, Any]:
        if not self._path.exists():
            logger.debug(f"No state file at {self._path}, starting empty")
            return {}

        try:
            with open(self._path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable state file {self._path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring state file {self._path}: root is not an object")
            return {}
        return data

    def _flush(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=str(self._path.parent))
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(self._data, f, indent=2)
            os.replace(tmp_path, self._path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        logger.debug(f"Saved state to {self._path}")
