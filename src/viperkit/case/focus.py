"""
Focus registry: investigator-chosen tokens (paths, host names, keywords)
used to correlate findings across the persistence scan and the sweep.
"""

import threading
from typing import Optional

from ..utils.logger import info


class FocusRegistry:
    """Ordered, case-insensitively deduplicated list of focus targets."""

    def __init__(self):
        self._targets: list[str] = []
        self._lock = threading.Lock()

    def set_focus_target(self, token: str) -> bool:
        """Add a target. Blank or duplicate tokens are ignored.

        Returns:
            True if the target was added.
        """
        value = (token or "").strip()
        if not value:
            return False

        with self._lock:
            lowered = value.lower()
            if any(t.lower() == lowered for t in self._targets):
                return False
            self._targets.append(value)
            count = len(self._targets)

        info(f"Case focus updated: {value} ({count} target(s))")
        return True

    def remove_focus_target(self, token: str) -> bool:
        lowered = (token or "").strip().lower()
        with self._lock:
            for index, target in enumerate(self._targets):
                if target.lower() == lowered:
                    del self._targets[index]
                    return True
        return False

    def get_focus_targets(self) -> list[str]:
        with self._lock:
            return list(self._targets)

    def clear(self) -> None:
        with self._lock:
            self._targets.clear()

    def first_match(self, *texts: Optional[str]) -> Optional[str]:
        """First target (in insertion order) contained in any of ``texts``."""
        haystacks = [t.lower() for t in texts if t]
        if not haystacks:
            return None
        for target in self.get_focus_targets():
            needle = target.lower()
            if any(needle in h for h in haystacks):
                return target
        return None

    def __len__(self) -> int:
        with self._lock:
            return len(self._targets)
