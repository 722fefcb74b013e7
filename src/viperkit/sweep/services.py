"""
Services/drivers deep-scan.

Unlike the persistence collector this looks at every service key whatever
its start type, and flags drivers that do not come from Microsoft.
"""

from typing import Optional

from ..core.results import ScanReport
from ..core.types import Severity
from ..persistence.classifier import is_suspicious_location, normalize_image_path
from ..persistence.patterns import START_TYPE_NAMES
from ..system.filesystem import LocalFileSystem
from ..system.types import ServiceInfo, SystemAccess
from ..utils.logger import debug, info
from .types import SweepCategory, SweepEntry

SOURCE_LABEL = "Services/Drivers"

REASON_MISSING = "service/driver binary missing on disk"
REASON_UNUSUAL = "unusual location"
REASON_NON_MS_DRIVER = "non-Microsoft driver"
REASON_RANDOM_NAME = "service name looks randomized"
REASON_BOOT_DRIVER = "boot/system driver from non-Microsoft binary"

RANDOM_NAME_MIN_LENGTH = 20

_HIGH_REASONS = (REASON_MISSING, REASON_BOOT_DRIVER)


def looks_randomized(name: str) -> bool:
    return len(name) >= RANDOM_NAME_MIN_LENGTH and " " not in name


def service_reasons(
    service: ServiceInfo, path: str, exists: bool, company: str
) -> list[str]:
    """Flags for one service, in reporting order."""
    is_driver = path.lower().endswith(".sys")
    is_microsoft = "microsoft" in company.lower()

    reasons = []
    if not exists:
        reasons.append(REASON_MISSING)
    elif is_suspicious_location(path):
        reasons.append(REASON_UNUSUAL)
    if is_driver and not is_microsoft:
        reasons.append(REASON_NON_MS_DRIVER)
    if looks_randomized(service.name):
        reasons.append(REASON_RANDOM_NAME)
    if service.start in (0, 1) and is_driver and not is_microsoft:
        reasons.append(REASON_BOOT_DRIVER)
    return reasons


def severity_for(reasons: list[str]) -> Severity:
    if any(r in _HIGH_REASONS for r in reasons):
        return Severity.HIGH
    if reasons:
        return Severity.MEDIUM
    return Severity.LOW


class ServicesDeepScan:
    """Inspect every HKLM\\SYSTEM\\CurrentControlSet\\Services key."""

    def __init__(
        self,
        system: SystemAccess,
        fs: Optional[LocalFileSystem] = None,
        system_root: str = r"C:\Windows",
    ):
        self.system = system
        self.fs = fs or LocalFileSystem()
        self.system_root = system_root

    def scan(self) -> ScanReport[SweepEntry]:
        report: ScanReport[SweepEntry] = ScanReport()
        result = report.collector(SOURCE_LABEL)

        try:
            services = self.system.list_services()
        except OSError as e:
            debug(f"Services key unreadable: {e}")
            result.fail(str(e))
            return report

        resolved = []
        for service in services:
            raw = self.system.expand_environment(service.image_path) if service.image_path else ""
            path = normalize_image_path(raw, self.system_root)
            resolved.append((service, path, self.fs.is_file(path)))

        existing = [path for _, path, exists in resolved if exists]
        try:
            companies = self.system.get_file_companies(existing)
        except OSError as e:
            result.add_error(f"publisher lookup failed: {e}")
            companies = {}

        for service, path, exists in resolved:
            company = companies.get(path.lower(), "")
            reasons = service_reasons(service, path, exists, company)
            start = START_TYPE_NAMES.get(service.start, f"Unknown ({service.start})")
            category = (
                SweepCategory.DRIVER if path.lower().endswith(".sys") else SweepCategory.SERVICE
            )
            report.items.append(
                SweepEntry(
                    category=category,
                    severity=severity_for(reasons),
                    path=path,
                    name=service.name,
                    source=SOURCE_LABEL,
                    reason=", ".join(reasons) if reasons else f"start {start}",
                    modified=self.fs.modified_time(path) if exists else None,
                )
            )

        result.item_count = len(report.items)
        flagged = sum(1 for e in report.items if e.severity != Severity.LOW)
        info(f"Services deep-scan: {len(report.items)} service(s), {flagged} flagged")
        return report
