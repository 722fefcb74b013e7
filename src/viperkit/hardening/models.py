"""
Hardening models.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

PROFILE_STANDARD = "Standard"
PROFILE_STRICT = "Strict"
PROFILE_CUSTOM = "Custom"
PROFILES = (PROFILE_STANDARD, PROFILE_STRICT, PROFILE_CUSTOM)


@dataclass
class HardenAction:
    """A hardening control as detected on this host.

    ``current_state`` is filled by a scan; ``rollback_data`` holds the state
    observed just before the control was applied.
    """

    id: str
    category: str
    name: str
    description: str = ""
    recommended_state: str = ""
    profile: str = PROFILE_STANDARD
    current_state: str = ""
    is_selected: bool = False
    is_applied: bool = False
    can_rollback: bool = True
    rollback_data: str = ""
    warning_message: str = ""
    requires_admin: bool = True
    error_message: str = ""
    applied_at: Optional[datetime] = None

    @property
    def is_already_hardened(self) -> bool:
        return bool(self.current_state) and (
            self.current_state.lower() == self.recommended_state.lower()
        )

    @property
    def state_display(self) -> str:
        if self.is_already_hardened:
            return f"Current: {self.current_state} (Already set)"
        return f"Current: {self.current_state} -> {self.recommended_state}"

    def __str__(self) -> str:
        return f"[{self.category}] {self.name}: {self.state_display}"


@dataclass(frozen=True)
class HardenOutcome:
    success: bool
    message: str
    action_id: str = ""
    warnings: tuple[str, ...] = ()
