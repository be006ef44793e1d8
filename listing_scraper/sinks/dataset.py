"""Append-only primary dataset stored as JSON lines."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Iterator

logger = logging.getLogger(__name__)


class JsonlDataset:
    """
    Primary record store at ``<storage>/datasets/<name>/items.jsonl``.

    Items are only ever appended; nothing is rewritten or deduplicated, so
    a record emitted twice appears twice.
    """

    def __init__(self, storage_dir: str | Path, name: str = "default"):
        self.path = Path(storage_dir) / "datasets" / name / "items.jsonl"
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = asyncio.Lock()
        self._count = 0

    async def append(self, item: dict[str, Any]) -> None:
        line = json.dumps(item, ensure_ascii=False, default=str)
        async with self._lock:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
            self._count += 1

    def iter_items(self) -> Iterator[dict[str, Any]]:
        """Read back every stored item in append order."""
        if not self.path.exists():
            return
        with open(self.path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line:
                    yield json.loads(line)

    @property
    def appended_count(self) -> int:
        """Items appended by this process."""
        return self._count
