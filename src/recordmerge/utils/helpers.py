"""Small shared helpers: text folding, value rendering and safe file writes."""

from __future__ import annotations

import itertools
import json
import os
import unicodedata
from datetime import datetime
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Callable, Iterable, Iterator, List, TextIO, TypeVar

from .logging import get_logger

T = TypeVar("T")

_LOGGER = get_logger(module=__name__)


def fold_diacritics(text: str) -> str:
    """Strip combining marks so ``"Müller"`` and ``"Muller"`` compare equal."""

    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def value_to_text(value: object) -> str:
    """Render a scalar field value as text for normalization and audit output."""

    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def ensure_directory(path: Path | str) -> Path:
    target = Path(path).expanduser()
    target.mkdir(parents=True, exist_ok=True)
    return target.resolve()


def atomic_write(destination: Path | str, writer: Callable[[TextIO], None], *, encoding: str = "utf-8") -> Path:
    """Run *writer* against a sibling temp file, then swap it into place.

    Readers never observe a half-written file: either the previous content or
    the complete new content is visible. The temp file is removed on failure.
    """

    path = Path(destination).expanduser()
    ensure_directory(path.parent)
    handle = NamedTemporaryFile(
        mode="w",
        encoding=encoding,
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
    )
    temp_path = Path(handle.name)
    try:
        with handle:
            writer(handle)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, path)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise
    return path


def serialize_json(data: object, destination: Path | str, *, indent: int = 2) -> Path:
    """Atomically write *data* as sorted, indented JSON."""

    text = json.dumps(data, indent=indent, sort_keys=True, ensure_ascii=False, default=str)
    path = atomic_write(destination, lambda handle: handle.write(text + "\n"))
    _LOGGER.debug("Serialized JSON", path=str(path), bytes=len(text) + 1)
    return path


def chunked(iterable: Iterable[T], size: int) -> Iterator[List[T]]:
    """Yield consecutive lists of at most *size* items."""

    if size <= 0:
        raise ValueError("size must be positive")
    iterator = iter(iterable)
    while batch := list(itertools.islice(iterator, size)):
        yield batch


__all__ = [
    "fold_diacritics",
    "value_to_text",
    "ensure_directory",
    "atomic_write",
    "serialize_json",
    "chunked",
]
