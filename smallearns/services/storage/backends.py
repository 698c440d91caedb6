"""
Key-Value Storage Backends

Two implementations of KeyValueBackend:

- FileKeyValueBackend: one JSON file per key inside a data directory.
  Writes go to a temporary file that atomically replaces the target, so a
  crash never leaves a half-written collection behind. Transient OS errors
  are retried with tenacity.
- InMemoryKeyValueBackend: a dictionary, for tests and throwaway stores.
"""

import os
import tempfile
from pathlib import Path
from typing import Optional

from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from smallearns.config import get_settings
from smallearns.services.storage.interface import (
    CorruptValueError,
    KeyValueBackend,
    StorageError,
    StorageWriteError,
)


FILE_SUFFIX = ".json"


class FileKeyValueBackend(KeyValueBackend):
    """
    Durable storage as one file per key.

    Layout: <data_dir>/<key>.json
    """

    def __init__(
        self,
        data_dir: Optional[Path] = None,
        retry_attempts: Optional[int] = None,
        retry_wait_seconds: Optional[float] = None,
    ):
        settings = get_settings().storage
        self._data_dir = Path(data_dir or settings.data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)

        attempts = retry_attempts or settings.write_retry_attempts
        wait = (
            retry_wait_seconds
            if retry_wait_seconds is not None
            else settings.write_retry_wait_seconds
        )
        self._retrying = Retrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=wait, max=1),
            retry=retry_if_exception_type(OSError),
            reraise=True,
        )

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def _path_for(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self._data_dir / f"{key}{FILE_SUFFIX}"

    def get(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Failed to read {key}: {e}") from e
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CorruptValueError(key, raw, f"{key} is not valid UTF-8: {e}") from e

    def set(self, key: str, value: str) -> None:
        path = self._path_for(key)
        try:
            self._retrying(self._write_atomic, path, value)
        except OSError as e:
            raise StorageWriteError(key, f"Failed to write {key}: {e}") from e

    def delete(self, key: str) -> bool:
        path = self._path_for(key)
        try:
            return self._retrying(self._unlink, path)
        except OSError as e:
            raise StorageWriteError(key, f"Failed to delete {key}: {e}") from e

    def keys(self) -> list[str]:
        return [
            path.name[: -len(FILE_SUFFIX)]
            for path in self._data_dir.glob(f"*{FILE_SUFFIX}")
            if path.is_file()
        ]

    def _write_atomic(self, path: Path, value: str) -> None:
        fd, tmp_name = tempfile.mkstemp(
            dir=self._data_dir,
            prefix=f".{path.stem}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(value)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

    @staticmethod
    def _unlink(path: Path) -> bool:
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True


class InMemoryKeyValueBackend(KeyValueBackend):
    """Dictionary-backed storage. Nothing survives the process."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def keys(self) -> list[str]:
        return list(self._data)

