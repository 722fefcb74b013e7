"""
Case state shared by every subsystem: focus targets and the audit timeline.
"""

from .audit import CaseAuditLog
from .db import AuditDatabase
from .events import CaseEvent
from .focus import FocusRegistry

__all__ = ["AuditDatabase", "CaseAuditLog", "CaseEvent", "FocusRegistry"]
