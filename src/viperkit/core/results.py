"""
Structured results shared by the scanners and the remediation engine.

Collectors never raise to their caller; instead each one reports a
CollectorResult, and a ScanReport aggregates them together with any
non-fatal warnings (for example a journal that could not be saved).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, List, TypeVar

T = TypeVar("T")


class CollectorStatus(Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class CollectorResult:
    """Outcome of one collector (one registry location, one root, ...)."""

    name: str
    status: CollectorStatus = CollectorStatus.SUCCESS
    item_count: int = 0
    errors: List[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        """Record a non-fatal error; the collector becomes partial."""
        self.errors.append(message)
        if self.status == CollectorStatus.SUCCESS:
            self.status = CollectorStatus.PARTIAL

    def fail(self, message: str) -> None:
        self.errors.append(message)
        self.status = CollectorStatus.FAILED


@dataclass
class ScanReport(Generic[T]):
    """Items produced by a scan plus per-collector status."""

    items: List[T] = field(default_factory=list)
    collectors: List[CollectorResult] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def status(self) -> CollectorStatus:
        if not self.collectors:
            return CollectorStatus.SUCCESS
        statuses = {c.status for c in self.collectors}
        if statuses == {CollectorStatus.FAILED}:
            return CollectorStatus.FAILED
        if statuses == {CollectorStatus.SUCCESS} and not self.warnings:
            return CollectorStatus.SUCCESS
        return CollectorStatus.PARTIAL

    @property
    def errors(self) -> List[str]:
        return [f"{c.name}: {e}" for c in self.collectors for e in c.errors]

    def collector(self, name: str) -> CollectorResult:
        """Return the named collector result, creating it on first use."""
        for result in self.collectors:
            if result.name == name:
                return result
        result = CollectorResult(name=name)
        self.collectors.append(result)
        return result


@dataclass
class BatchSummary:
    """Aggregate outcome of a batch operation ("N succeeded, M failed")."""

    succeeded: int = 0
    failed: int = 0
    warnings: List[str] = field(default_factory=list)
    messages: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.succeeded + self.failed

    def record(self, success: bool, message: str = "") -> None:
        if success:
            self.succeeded += 1
        else:
            self.failed += 1
        if message:
            self.messages.append(message)

    def __str__(self) -> str:
        return f"{self.succeeded} succeeded, {self.failed} failed"
