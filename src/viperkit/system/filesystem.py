"""
Filesystem facility.

Thin wrapper over os/shutil so the quarantine fallbacks can be exercised by
substituting a subclass whose move or delete fails.
"""

import hashlib
import os
import shutil
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterator, Optional

from ..utils.datetime import from_timestamp
from ..utils.logger import debug
from .types import leaf_name

HASH_CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class FileInfo:
    """Stat snapshot of one file found during enumeration."""

    path: str
    size: int
    created: datetime
    modified: datetime

    @property
    def name(self) -> str:
        return leaf_name(self.path)

    @property
    def extension(self) -> str:
        return os.path.splitext(self.name)[1].lower()


class LocalFileSystem:
    """Local disk access used by collectors, the sweep and the executor."""

    def exists(self, path: str) -> bool:
        return bool(path) and os.path.exists(path)

    def is_file(self, path: str) -> bool:
        return bool(path) and os.path.isfile(path)

    def is_dir(self, path: str) -> bool:
        return bool(path) and os.path.isdir(path)

    def list_dir(self, path: str) -> list[str]:
        """Names in a directory; an unreadable directory yields an empty list."""
        try:
            return sorted(os.listdir(path))
        except OSError as e:
            debug(f"Cannot list {path}: {e}")
            return []

    def stat(self, path: str) -> Optional[FileInfo]:
        try:
            st = os.stat(path)
        except OSError:
            return None
        return FileInfo(
            path=path,
            size=st.st_size,
            created=from_timestamp(st.st_ctime),
            modified=from_timestamp(st.st_mtime),
        )

    def modified_time(self, path: str) -> Optional[datetime]:
        info = self.stat(path)
        return info.modified if info else None

    def walk_files(
        self,
        root: str,
        on_error: Optional[Callable[[OSError], None]] = None,
    ) -> Iterator[FileInfo]:
        """Yield every file below ``root``.

        Directories that cannot be listed are skipped, never fatal; each
        failure is passed to ``on_error`` when given.
        """

        def _onerror(err: OSError) -> None:
            debug(f"Skipping unreadable directory: {err}")
            if on_error is not None:
                on_error(err)

        for dirpath, _dirnames, filenames in os.walk(root, onerror=_onerror):
            for filename in filenames:
                info = self.stat(os.path.join(dirpath, filename))
                if info is not None:
                    yield info

    def makedirs(self, path: str) -> None:
        os.makedirs(path, exist_ok=True)

    def move(self, source: str, destination: str) -> None:
        """Rename within a volume; raises OSError when that is not possible."""
        os.rename(source, destination)

    def copy(self, source: str, destination: str) -> None:
        shutil.copy2(source, destination)

    def delete(self, path: str) -> None:
        os.remove(path)

    def rename(self, source: str, destination: str) -> None:
        os.replace(source, destination)

    def read_text(self, path: str) -> str:
        """Whole file as text (BOM stripped); raises OSError."""
        with open(path, "r", encoding="utf-8-sig", errors="replace") as f:
            return f.read()

    def file_digest(self, path: str, algorithm: str = "sha256") -> Optional[str]:
        """Hex digest of a file with any hashlib algorithm; None if unreadable."""
        digest = hashlib.new(algorithm)
        try:
            with open(path, "rb") as f:
                for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b""):
                    digest.update(chunk)
        except OSError as e:
            debug(f"Hash failed for {path}: {e}")
            return None
        return digest.hexdigest()

    def sha256(self, path: str) -> Optional[str]:
        return self.file_digest(path, "sha256")
