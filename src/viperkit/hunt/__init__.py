"""
Local indicator lookups.
"""

from .hunter import IocHunter, detect_ioc_type, hash_algorithm
from .types import HuntResult, IocType

__all__ = [
    "HuntResult",
    "IocHunter",
    "IocType",
    "detect_ioc_type",
    "hash_algorithm",
]
