"""Key-value persistence backends scoped to one document.

A store maps string keys to string values. The tracker never talks to a store
directly; the State Store Adapter in ``persistence.py`` owns the key layout.
"""

from __future__ import annotations

import fcntl
import hashlib
import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping
from contextlib import AbstractContextManager, contextmanager
from pathlib import Path

from .exceptions import MalformedStateError, StoreUnavailableError

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Abstract base class for document-scoped key-value backends."""

    @abstractmethod
    def get_all(self) -> dict[str, str]:
        """Return every stored key and value."""

    @abstractmethod
    def set_all(self, values: Mapping[str, str]) -> None:
        """Replace the full key set with ``values``."""

    @abstractmethod
    def delete_keys_with_prefix(self, prefix: str) -> None:
        """Remove every key starting with ``prefix``."""

    @abstractmethod
    def lock(self) -> AbstractContextManager[None]:
        """Hold exclusive access to this store for a load-decide-save cycle."""


class InMemoryStore(KeyValueStore):
    """Dict-backed store for tests and embedding hosts."""

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get_all(self) -> dict[str, str]:
        return dict(self._values)

    def set_all(self, values: Mapping[str, str]) -> None:
        self._values = dict(values)

    def delete_keys_with_prefix(self, prefix: str) -> None:
        self._values = {k: v for k, v in self._values.items() if not k.startswith(prefix)}

    @contextmanager
    def lock(self) -> Iterator[None]:
        with self._lock:
            yield


class JsonFileStore(KeyValueStore):
    """Store persisted as a single JSON object on disk.

    Writes go to a temporary file in the same directory and are moved into
    place with ``os.replace``, so a reader sees either the old or the new
    key set, never a partial one.
    """

    def __init__(self, path: Path):
        """Initialize file store.

        Args:
            path: JSON file holding this document's keys
        """
        self.path = path

    def get_all(self) -> dict[str, str]:
        """Read all keys from disk.

        Returns:
            Stored mapping, empty if the file does not exist yet

        Raises:
            StoreUnavailableError: The file exists but cannot be read
            MalformedStateError: The file is not a JSON object of strings
        """
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as err:
            raise MalformedStateError(f"Store file {self.path} is not valid JSON: {err}") from err
        except (OSError, UnicodeDecodeError) as err:
            raise StoreUnavailableError(f"Failed to read store {self.path}: {err}") from err

        if not isinstance(data, dict):
            raise MalformedStateError(f"Store file {self.path} must hold a JSON object")
        for key, value in data.items():
            if not isinstance(value, str):
                raise MalformedStateError(
                    f"Store file {self.path} has non-string value for key {key!r}"
                )
        return data

    def set_all(self, values: Mapping[str, str]) -> None:
        """Atomically replace the file contents with ``values``.

        Raises:
            StoreUnavailableError: The file cannot be written
        """
        tmp_name: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(dict(values), f, indent=2, sort_keys=True)
            os.replace(tmp_name, self.path)
        except OSError as err:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StoreUnavailableError(f"Failed to write store {self.path}: {err}") from err

        logger.debug(
            "Store written",
            extra={"extra_context": {"path": str(self.path), "keys": len(values)}},
        )

    def delete_keys_with_prefix(self, prefix: str) -> None:
        values = self.get_all()
        remaining = {k: v for k, v in values.items() if not k.startswith(prefix)}
        if len(remaining) != len(values):
            self.set_all(remaining)

    @property
    def lock_path(self) -> Path:
        return self.path.with_name(f"{self.path.name}.lock")

    @contextmanager
    def lock(self) -> Iterator[None]:
        """Acquire exclusive access to this document's store.

        Uses flock on a sibling ``.lock`` file, so separate processes polling
        the same document take turns. Must be held across load and save.

        Raises:
            StoreUnavailableError: The lock file cannot be opened or locked
        """
        try:
            self.lock_path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(str(self.lock_path), os.O_CREAT | os.O_RDWR)
        except OSError as err:
            raise StoreUnavailableError(f"Failed to open lock {self.lock_path}: {err}") from err
        try:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX)
            except OSError as err:
                raise StoreUnavailableError(f"Failed to lock {self.lock_path}: {err}") from err
            yield
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
            os.close(fd)


def store_path_for_document(store_dir: Path, document_path: Path) -> Path:
    """Return the store file that holds state for ``document_path``.

    Args:
        store_dir: Directory holding all store files
        document_path: Tracked document; resolved before hashing

    Returns:
        Path of the form ``<store_dir>/<hash>.json``
    """
    digest = hashlib.sha256(str(document_path.resolve()).encode("utf-8")).hexdigest()
    return store_dir / f"{digest[:16]}.json"
