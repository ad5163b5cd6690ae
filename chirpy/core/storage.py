import logging
import os
from typing import Optional, Protocol

from pydantic import ValidationError

from chirpy.core.errors import FormatError, StorageIOError
from chirpy.core.records import Snapshot

logger = logging.getLogger(__name__)


def _encode(snapshot: Snapshot) -> str:
    return snapshot.model_dump_json(indent=2)


def _decode(text: str) -> Snapshot:
    try:
        return Snapshot.model_validate_json(text)
    except ValidationError as exc:
        raise FormatError(f"malformed snapshot document: {exc.error_count()} error(s)") from exc


class Persistence(Protocol):
    """Loads and saves the whole snapshot in one piece."""

    def ensure_exists(self) -> None: ...

    def reset(self) -> None: ...

    def load(self) -> Snapshot: ...

    def save(self, snapshot: Snapshot) -> None: ...


class JsonFilePersistence:
    """Snapshot persistence backed by a single JSON file.

    Every save rewrites the file in full. Writes are not atomic: a crash in
    the middle of ``save`` can leave a truncated document behind, which the
    next ``load`` reports as a ``FormatError``.
    """

    def __init__(self, file_path: str):
        self._file_path = file_path

    def ensure_exists(self) -> None:
        if os.path.exists(self._file_path):
            return
        logger.info("Database file %s does not exist, creating it", self._file_path)
        try:
            directory = os.path.dirname(self._file_path)
            if directory:
                os.makedirs(directory, exist_ok=True)
        except OSError as exc:
            raise StorageIOError(f"cannot create {self._file_path}: {exc}") from exc
        self.save(Snapshot())

    def reset(self) -> None:
        logger.info("Resetting database file %s", self._file_path)
        self.save(Snapshot())

    def load(self) -> Snapshot:
        try:
            with open(self._file_path, "r", encoding="utf-8") as f:
                text = f.read()
        except UnicodeDecodeError as exc:
            raise FormatError(f"{self._file_path} is not valid UTF-8") from exc
        except OSError as exc:
            raise StorageIOError(f"cannot read {self._file_path}: {exc}") from exc
        logger.debug("Loaded %d bytes from %s", len(text), self._file_path)
        return _decode(text)

    def save(self, snapshot: Snapshot) -> None:
        text = _encode(snapshot)
        try:
            with open(self._file_path, "w", encoding="utf-8") as f:
                f.write(text)
        except OSError as exc:
            raise StorageIOError(f"cannot write {self._file_path}: {exc}") from exc
        logger.debug("Saved %d bytes to %s", len(text), self._file_path)


class MemoryPersistence:
    """Keeps the serialized snapshot in a string instead of a file."""

    def __init__(self, document: Optional[str] = None):
        self.document = document

    def ensure_exists(self) -> None:
        if self.document is None:
            self.save(Snapshot())

    def reset(self) -> None:
        self.save(Snapshot())

    def load(self) -> Snapshot:
        if self.document is None:
            raise StorageIOError("no snapshot has been saved yet")
        return _decode(self.document)

    def save(self, snapshot: Snapshot) -> None:
        self.document = _encode(snapshot)
