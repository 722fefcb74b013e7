"""
Hardening engine: scan, apply and roll back controls from the catalog.

Apply and rollback run one control at a time. Every applied control is
journaled with the state seen before it was applied; rollback walks the
journal newest first.
"""

from datetime import datetime
from typing import Iterable, NamedTuple, Optional

from ..case.audit import CaseAuditLog
from ..core.results import BatchSummary
from ..journal.harden import HardenJournal
from ..journal.models import HardenJournalEntry
from ..system.types import SystemAccess
from ..utils.logger import error, exception, info, log_context, warn
from .catalog import CATALOG, HardenControl, get_control
from .models import PROFILE_CUSTOM, PROFILE_STANDARD, PROFILE_STRICT, PROFILES, HardenAction, HardenOutcome

TAB = "Harden"
ERROR_STATE = "Error"


class HardenScanStats(NamedTuple):
    applied: int
    selected: int
    already_set: int


class HardenEngine:
    def __init__(
        self,
        system: SystemAccess,
        journal: HardenJournal,
        audit: Optional[CaseAuditLog] = None,
        catalog: tuple[HardenControl, ...] = CATALOG,
    ):
        self.system = system
        self.journal = journal
        self.audit = audit
        self.catalog = catalog
        self._actions: list[HardenAction] = []

    def _event(self, action: str, severity: str, target: str, details: str = "") -> None:
        if self.audit is not None:
            self.audit.add_event(TAB, action, severity, target, details)

    def _detect(self, control: HardenControl) -> str:
        try:
            return control.detect(self.system)
        except OSError as e:
            warn(f"Could not read state of {control.id}: {e}")
            return ERROR_STATE

    def scan(self) -> list[HardenAction]:
        """Detect the current state of every control in the catalog."""
        self._actions = [
            HardenAction(
                id=control.id,
                category=control.category,
                name=control.name,
                description=control.description,
                recommended_state=control.recommended_state,
                profile=control.profile,
                can_rollback=control.can_rollback,
                warning_message=control.warning_message,
                current_state=self._detect(control),
            )
            for control in self.catalog
        ]
        hardened = sum(1 for a in self._actions if a.is_already_hardened)
        info(f"Hardening scan: {len(self._actions)} controls, {hardened} already set")
        self._event("Hardening scan", "INFO", "system", f"{hardened}/{len(self._actions)} already set")
        return list(self._actions)

    def actions(self) -> list[HardenAction]:
        return list(self._actions)

    def get_action(self, action_id: str) -> Optional[HardenAction]:
        for action in self._actions:
            if action.id == action_id:
                return action
        return None

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select_profile(self, profile: str) -> int:
        """Select controls for a profile; Strict includes Standard, Custom selects none.

        Raises:
            ValueError: for an unknown profile name.
        """
        if profile not in PROFILES:
            raise ValueError(f"Unknown hardening profile: {profile}")
        for action in self._actions:
            if action.is_already_hardened:
                continue
            if profile == PROFILE_STRICT:
                action.is_selected = True
            elif profile == PROFILE_STANDARD:
                action.is_selected = action.profile == PROFILE_STANDARD
            else:
                action.is_selected = False
        return sum(1 for a in self._actions if a.is_selected)

    def select(self, action_ids: Iterable[str]) -> int:
        wanted = set(action_ids)
        for action in self._actions:
            action.is_selected = action.id in wanted and not action.is_already_hardened
        return sum(1 for a in self._actions if a.is_selected)

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    def apply(self, action: HardenAction) -> HardenOutcome:
        control = get_control(action.id, self.catalog)
        if control is None:
            return HardenOutcome(False, f"Unknown control {action.id}", action.id)

        action.error_message = ""
        action.rollback_data = action.current_state
        with log_context(case_id=self.journal.case_id, action_id=action.id):
            try:
                failure = control.apply(self.system)
            except OSError as e:
                failure = str(e)
            except Exception as e:
                exception(f"Applying {action.id} raised")
                failure = str(e) or type(e).__name__

            if failure:
                action.error_message = failure
                error(f"Hardening failed for {action.name}: {failure}")
                self._event(f"Failed: {action.name}", "HIGH", action.name, failure)
                return HardenOutcome(False, failure, action.id)

            previous = action.rollback_data
            action.is_applied = True
            action.applied_at = datetime.now()
            action.current_state = action.recommended_state
            written = self.journal.record(
                HardenJournalEntry(
                    action_id=action.id,
                    action_name=action.name,
                    category=action.category,
                    previous_state=previous,
                    new_state=action.recommended_state,
                    rollback_data=previous,
                    case_id=self.journal.case_id,
                )
            )
            details = f"Changed from {previous} to {action.recommended_state}"
            info(f"Applied {action.name}: {details}")
            self._event(f"Applied: {action.name}", "INFO", action.name, details)
            warnings = (written.warning,) if written.warning else ()
            return HardenOutcome(True, details, action.id, warnings)

    def apply_selected(self) -> BatchSummary:
        """Apply every selected control that is not already hardened."""
        summary = BatchSummary()
        for action in self._actions:
            if not action.is_selected or action.is_already_hardened:
                continue
            outcome = self.apply(action)
            summary.record(outcome.success, f"{action.name}: {outcome.message}")
            summary.warnings.extend(outcome.warnings)
        info(f"Hardening batch: {summary}")
        return summary

    # ------------------------------------------------------------------
    # Rollback
    # ------------------------------------------------------------------

    def _rollback_entry(self, entry: HardenJournalEntry) -> HardenOutcome:
        control = get_control(entry.action_id, self.catalog)
        if control is None:
            return HardenOutcome(False, f"Unknown control {entry.action_id}", entry.action_id)

        with log_context(case_id=self.journal.case_id, action_id=entry.action_id):
            if control.rollback is None:
                message = f"{entry.action_name} left hardened"
                info(message)
            else:
                try:
                    failure = control.rollback(self.system, entry.rollback_data)
                except OSError as e:
                    failure = str(e)
                except Exception as e:
                    exception(f"Rolling back {entry.action_id} raised")
                    failure = str(e) or type(e).__name__
                if failure:
                    error(f"Rollback failed for {entry.action_name}: {failure}")
                    self._event(f"Rollback failed: {entry.action_name}", "HIGH", entry.action_name, failure)
                    return HardenOutcome(False, failure, entry.action_id)
                message = f"Restored to {entry.previous_state}"

            marked = self.journal.mark_undone(entry.action_id)
            action = self.get_action(entry.action_id)
            if action is not None:
                action.is_applied = False
                action.current_state = entry.previous_state
            self._event(f"Rolled back: {entry.action_name}", "INFO", entry.action_name, message)
            warnings = (marked.warning,) if marked.warning else ()
            return HardenOutcome(True, message, entry.action_id, warnings)

    def rollback_last(self) -> HardenOutcome:
        entry = self.journal.last_undoable()
        if entry is None:
            return HardenOutcome(False, "nothing to roll back")
        return self._rollback_entry(entry)

    def rollback_all(self) -> BatchSummary:
        """Roll back every journaled control, newest first."""
        summary = BatchSummary()
        for entry in reversed(self.journal.undoable()):
            outcome = self._rollback_entry(entry)
            summary.record(outcome.success, f"{entry.action_name}: {outcome.message}")
            summary.warnings.extend(outcome.warnings)
        info(f"Hardening rollback: {summary}")
        return summary

    def get_stats(self) -> HardenScanStats:
        return HardenScanStats(
            applied=sum(1 for a in self._actions if a.is_applied),
            selected=sum(1 for a in self._actions if a.is_selected and not a.is_already_hardened),
            already_set=sum(1 for a in self._actions if a.is_already_hardened),
        )
