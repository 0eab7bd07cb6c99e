"""Persistent key/value store kept in a plain text file."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping

logger = logging.getLogger(__name__)

KVP_SEPARATOR = "@=@"


def load_kvp(filename: str | os.PathLike[str]) -> dict[str, str]:
    """Load key/value pairs; an unreadable file gives an empty mapping."""
    try:
        with open(filename, encoding="utf-8", newline="") as handle:
            content = handle.read()
    except OSError:
        logger.error("could not open %s for reading", filename)
        return {}

    lines = content.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    data: dict[str, str] = {}
    for line in lines:
        key, separator, value = line.partition(KVP_SEPARATOR)
        if separator:
            data[key] = value
    return data


def save_kvp(filename: str | os.PathLike[str], data: Mapping[str, str]) -> None:
    """Write key/value pairs sorted by key, one per line."""
    try:
        with open(filename, "w", encoding="utf-8", newline="\n") as handle:
            for key in sorted(data):
                handle.write(f"{key}{KVP_SEPARATOR}{data[key]}\n")
    except OSError:
        logger.error("could not open %s for writing", filename)


class KeyValueStore:
    """Key/value settings loaded from a file and saved back to it."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = os.fspath(path)
        self._data = load_kvp(self.path)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def get(self, key: str) -> str:
        """Return the value of ``key``, or an empty string if it is absent."""
        return self._data.get(key, "")

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def save(self) -> None:
        save_kvp(self.path, self._data)

    def __enter__(self) -> KeyValueStore:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.save()
        return False