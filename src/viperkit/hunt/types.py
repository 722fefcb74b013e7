"""
Hunt Types - indicator kinds and lookup results
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class IocType(Enum):
    FILE_PATH = "FilePath"
    HASH = "Hash"
    REGISTRY = "Registry"
    IP_ADDRESS = "IpAddress"
    DOMAIN_OR_URL = "DomainOrUrl"

    @property
    def is_local(self) -> bool:
        """Answerable from this host without touching the network."""
        return self in (IocType.FILE_PATH, IocType.HASH, IocType.REGISTRY)


@dataclass
class HuntResult:
    """Outcome of one indicator lookup.

    ``severity`` is INFO when nothing was found, WARN when the indicator is
    present on the host and HIGH when a file matched a hash indicator.
    """

    ioc: str
    ioc_type: IocType
    found: bool = False
    severity: str = "INFO"
    summary: str = ""
    details: list[str] = field(default_factory=list)
    error: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "Ioc": self.ioc,
            "Category": self.ioc_type.value,
            "Found": self.found,
            "Severity": self.severity,
            "Summary": self.summary,
            "Details": list(self.details),
            "Error": self.error,
        }

    def __str__(self) -> str:
        return f"[{self.severity}] {self.ioc_type.value}: {self.summary}"
