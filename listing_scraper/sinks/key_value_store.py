"""File-backed key-value store for diagnostics (one JSON file per key)."""

import json
import logging
import re
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9!\-_.'()]{1,256}$")


class KeyValueStore:
    """Stores values as ``<storage>/key_value_stores/<name>/<KEY>.json``."""

    def __init__(self, storage_dir: str | Path, name: str = "default"):
        self.base_path = Path(storage_dir) / "key_value_stores" / name
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid key-value store key: {key!r}")
        return self.base_path / f"{key}.json"

    async def put(self, key: str, value: Any) -> Path:
        """
        Write a JSON value under ``key``, replacing any previous value.

        Args:
            key: Record key (letters, digits and ``!-_.'()``)
            value: JSON-serializable value

        Returns:
            Path of the written file
        """
        path = self._path(key)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(value, f, indent=2, ensure_ascii=False, default=str)
        logger.debug(f"Wrote key-value record {key} to {path}")
        return path

    async def get(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def keys(self) -> list[str]:
        return sorted(p.stem for p in self.base_path.glob("*.json"))
