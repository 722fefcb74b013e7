"""
Clustering engine: correlates a sweep batch with the focus targets.

Three independent flags are computed for each entry:
- focus hit: name or path contains a focus token
- time cluster: modified within +/- window of a focus target's mtime
- folder cluster: path nested under a focus target's containing folder

The recorded cluster target follows focus > time > folder, first target wins.
Every run starts from entries with all cluster state cleared, so applying
the same inputs twice gives the same flags.
"""

import ntpath
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence

from ..system.filesystem import LocalFileSystem
from ..utils.logger import debug
from .types import SweepEntry

WINDOW_CHOICES = (1, 2, 4, 8)
DEFAULT_WINDOW_HOURS = 2


def _norm(path: str) -> str:
    return path.replace("/", "\\").rstrip("\\").lower()


def _looks_like_path(token: str) -> bool:
    return "\\" in token or "/" in token


@dataclass(frozen=True)
class ResolvedTarget:
    """Focus token with the on-disk facts the clustering rules need."""

    token: str
    modified: Optional[datetime] = None
    folder: Optional[str] = None  # normalized containing directory


class ClusteringEngine:
    def __init__(
        self,
        fs: Optional[LocalFileSystem] = None,
        window_hours: int = DEFAULT_WINDOW_HOURS,
    ):
        self.fs = fs or LocalFileSystem()
        self.window_hours = window_hours

    @property
    def window_hours(self) -> int:
        return self._window_hours

    @window_hours.setter
    def window_hours(self, hours: int) -> None:
        if hours not in WINDOW_CHOICES:
            raise ValueError(f"Cluster window must be one of {WINDOW_CHOICES}, got {hours}")
        self._window_hours = hours

    def resolve_targets(self, targets: Iterable[str]) -> list[ResolvedTarget]:
        resolved = []
        for token in targets:
            token = token.strip()
            if not token:
                continue
            modified = None
            folder = None
            if _looks_like_path(token):
                if self.fs.exists(token):
                    modified = self.fs.modified_time(token)
                if self.fs.is_dir(token):
                    folder = _norm(token)
                else:
                    folder = _norm(ntpath.dirname(token.replace("/", "\\")))
                # A drive or filesystem root would cluster everything
                if folder is not None and folder.count("\\") < 1:
                    folder = None
            resolved.append(ResolvedTarget(token=token, modified=modified, folder=folder))
        return resolved

    def apply(
        self,
        entries: Sequence[SweepEntry],
        targets: Iterable[str],
        window_hours: Optional[int] = None,
    ) -> list[SweepEntry]:
        """Return a new list of entries with cluster flags recomputed."""
        if window_hours is not None:
            self.window_hours = window_hours
        window = timedelta(hours=self.window_hours)
        resolved = self.resolve_targets(targets)

        clustered = [self._cluster_one(entry.without_clusters(), resolved, window) for entry in entries]
        hits = sum(1 for e in clustered if e.is_clustered)
        debug(f"Clustering: {hits}/{len(clustered)} entries matched {len(resolved)} target(s)")
        return clustered

    def _cluster_one(
        self,
        entry: SweepEntry,
        targets: list[ResolvedTarget],
        window: timedelta,
    ) -> SweepEntry:
        if not targets:
            return entry

        name = entry.name.lower()
        path = _norm(entry.path)

        focus_target = next(
            (t.token for t in targets if t.token.lower() in name or t.token.lower() in path),
            None,
        )
        time_target = None
        if entry.modified is not None:
            time_target = next(
                (
                    t.token
                    for t in targets
                    if t.modified is not None and abs(entry.modified - t.modified) <= window
                ),
                None,
            )
        folder_target = next(
            (t.token for t in targets if t.folder and path.startswith(t.folder + "\\")),
            None,
        )

        chosen = focus_target or time_target or folder_target or ""
        if not chosen:
            return entry
        return replace(
            entry,
            is_focus_hit=focus_target is not None,
            is_time_cluster=time_target is not None,
            is_folder_cluster=folder_target is not None,
            cluster_target=chosen,
        )
