"""Persistence backends for versioned overview records.

Every backend offers a compare-and-swap write: a record is written only if the
stored version still equals the version the caller read.
"""

import logging
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import quote

from filelock import FileLock, Timeout

from contracts import VersionedOverview, ValidationError

logger = logging.getLogger(__name__)


class PersistenceBackend(ABC):
    """Durable storage keyed by idea id."""

    @abstractmethod
    def load(self, idea_id: str) -> Optional[VersionedOverview]:
        """Return the stored record, or None if the idea is unknown."""
        pass

    @abstractmethod
    def compare_and_swap(
        self,
        idea_id: str,
        expected_version: Optional[int],
        record: VersionedOverview,
    ) -> bool:
        """Atomically replace the record if the stored version matches.

        Args:
            idea_id: Idea identifier
            expected_version: Version the caller read; None means "must not exist yet"
            record: Record to write

        Returns:
            True if written, False if the stored version did not match
        """
        pass

    @abstractmethod
    def list_ids(self) -> List[str]:
        """Return all stored idea ids."""
        pass


class InMemoryPersistence(PersistenceBackend):
    """Process-local backend. Records are deep-copied in and out."""

    def __init__(self):
        self._records: Dict[str, VersionedOverview] = {}
        self._lock = threading.Lock()

    def load(self, idea_id: str) -> Optional[VersionedOverview]:
        with self._lock:
            record = self._records.get(idea_id)
            return record.model_copy(deep=True) if record is not None else None

    def compare_and_swap(
        self,
        idea_id: str,
        expected_version: Optional[int],
        record: VersionedOverview,
    ) -> bool:
        with self._lock:
            current = self._records.get(idea_id)
            current_version = current.version if current is not None else None
            if current_version != expected_version:
                return False
            self._records[idea_id] = record.model_copy(deep=True)
            return True

    def list_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._records)


class JsonFilePersistence(PersistenceBackend):
    """One JSON file per idea under a directory.

    File names are the percent-encoded idea id, so distinct ids never share a
    file. Writes go to a temporary file that is renamed over the target, so a
    reader sees either the old or the new record. The compare-and-swap holds a
    per-idea lock file, which also serialises writers in separate processes.
    """

    _locks: Dict[str, threading.Lock] = {}
    _locks_guard = threading.Lock()

    def __init__(self, directory: str, lock_timeout: float = 10.0):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self.lock_timeout = lock_timeout
        key = str(self.directory.resolve())
        with self._locks_guard:
            self._lock = self._locks.setdefault(key, threading.Lock())

    def _path(self, idea_id: str) -> Path:
        return self.directory / f"{quote(idea_id, safe='')}.json"

    def lock_path(self, idea_id: str) -> Path:
        return self._path(idea_id).with_suffix(".json.lock")

    def _read(self, idea_id: str) -> Optional[VersionedOverview]:
        path = self._path(idea_id)
        if not path.exists():
            return None
        record = VersionedOverview.model_validate_json(path.read_text(encoding="utf-8"))
        if record.idea_id != idea_id:
            raise ValidationError(
                f"{path.name} holds idea {record.idea_id!r}, not {idea_id!r}",
                idea_id=idea_id,
            )
        return record

    def load(self, idea_id: str) -> Optional[VersionedOverview]:
        with self._lock:
            return self._read(idea_id)

    def compare_and_swap(
        self,
        idea_id: str,
        expected_version: Optional[int],
        record: VersionedOverview,
    ) -> bool:
        """Write under the idea's lock file.

        Returns False when the stored version differs or when another process
        holds the lock for longer than ``lock_timeout`` seconds.
        """
        try:
            with self._lock, FileLock(str(self.lock_path(idea_id)), timeout=self.lock_timeout):
                current = self._read(idea_id)
                current_version = current.version if current is not None else None
                if current_version != expected_version:
                    return False

                path = self._path(idea_id)
                tmp_path = path.with_suffix(".json.tmp")
                tmp_path.write_text(record.model_dump_json(indent=2, by_alias=True), encoding="utf-8")
                os.replace(tmp_path, path)
                logger.debug("Wrote %s at version %d", path, record.version)
                return True
        except Timeout:
            logger.warning("Timed out after %.1fs waiting for lock on idea %s", self.lock_timeout, idea_id)
            return False

    def list_ids(self) -> List[str]:
        with self._lock:
            ids = []
            for path in sorted(self.directory.glob("*.json")):
                record = VersionedOverview.model_validate_json(path.read_text(encoding="utf-8"))
                ids.append(record.idea_id)
            return ids
