"""
System access facility: registry, services, tasks, processes and files.
"""

from .filesystem import FileInfo, LocalFileSystem
from .types import (
    ProcessResult,
    RegistryValueKind,
    ScheduledTaskInfo,
    ServiceInfo,
    SystemAccess,
    join_registry_path,
    leaf_name,
    split_registry_path,
)

__all__ = [
    "FileInfo",
    "LocalFileSystem",
    "ProcessResult",
    "RegistryValueKind",
    "ScheduledTaskInfo",
    "ServiceInfo",
    "SystemAccess",
    "join_registry_path",
    "leaf_name",
    "split_registry_path",
]
