"""File-backed record store: one JSONL file per object type."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List

from recordmerge.pipeline.deduplication.io import load_records, write_records
from recordmerge.storage.memory import InMemoryRecordStore
from recordmerge.utils.helpers import ensure_directory
from recordmerge.utils.logging import get_logger


_LOGGER = get_logger(module=__name__)


class JsonlRecordStore(InMemoryRecordStore):
    """Loads ``<directory>/<object_type>.jsonl`` files and rewrites them atomically.

    With ``autoflush`` enabled every update or consolidation rewrites the
    affected file, so a crash never leaves a half-written population.
    """

    suffix = ".jsonl"

    def __init__(self, directory: Path | str, *, autoflush: bool = True) -> None:
        super().__init__()
        self.directory = ensure_directory(directory)
        self.autoflush = autoflush
        self._dirty: set[str] = set()
        for path in sorted(self.directory.glob(f"*{self.suffix}")):
            object_type = path.name[: -len(self.suffix)]
            self.add(object_type, load_records(path))
            _LOGGER.debug("Loaded record file", object_type=object_type, path=str(path))

    @classmethod
    def from_file(cls, path: Path | str, *, autoflush: bool = True) -> "JsonlRecordStore":
        """Open the directory holding *path*; its stem is the object type."""

        return cls(Path(path).expanduser().resolve().parent, autoflush=autoflush)

    def path_for(self, object_type: str) -> Path:
        return self.directory / f"{object_type}{self.suffix}"

    def _after_write(self, object_type: str) -> None:
        self._dirty.add(object_type)
        if self.autoflush:
            self.flush()

    def flush(self) -> List[Path]:
        written: List[Path] = []
        with self._lock:
            for object_type in sorted(self._dirty):
                written.append(write_records(self.all(object_type), self.path_for(object_type)))
            self._dirty.clear()
        return written

    def snapshot(self) -> Dict[str, int]:
        return {object_type: len(self.all(object_type)) for object_type in self.object_types()}


__all__ = ["JsonlRecordStore"]
