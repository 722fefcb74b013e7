"""
ViperKit - endpoint incident-response toolkit.

Discovers persistence mechanisms and suspicious artifacts on a Windows host,
stages them for remediation and executes reversible actions backed by a
per-case action journal.
"""

__version__ = "0.4.0"
