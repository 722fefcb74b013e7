"""
ViperKit command line.

Usage:
    viperkit persist [--check-only] [--focus TOKEN ...]
    viperkit sweep [--lookback 24h] [--window 2] [--focus TOKEN ...]
    viperkit quarantine PATH [PATH ...] [--case CASE_ID]
    viperkit journal --case CASE_ID
    viperkit undo-last --case CASE_ID
    viperkit harden-scan
    viperkit pshistory [--suspicious] [--user NAME] [--search TEXT] [--export DIR]
    viperkit hunt IOC [--type FilePath|Hash|Registry] [--root DIR ...]
"""

import argparse
import json
import sys
from typing import Any, Optional, Sequence

from . import __version__
from .case.db import AuditDatabase
from .core.types import Severity
from .hunt.types import IocType
from .persistence.baseline import PersistBaseline
from .pshistory.analyzer import HistoryFilter
from .session import CaseSession
from .system.types import SystemAccess
from .utils.logger import setup_logging
from .utils.settings import CLUSTER_WINDOW_CHOICES, LOOKBACK_CHOICES, Settings, get_settings


def make_system(settings: Settings) -> SystemAccess:
    from .system.windows import WindowsSystemAccess

    return WindowsSystemAccess(timeout=settings.process_timeout_seconds)


def open_session(args: argparse.Namespace) -> CaseSession:
    settings = get_settings()
    audit_db = None if args.no_audit_db else AuditDatabase(settings.resolved_audit_db_path())
    session = CaseSession(
        make_system(settings),
        settings=settings,
        case_id=getattr(args, "case", None),
        audit_db=audit_db,
    )
    for token in getattr(args, "focus", None) or []:
        session.set_focus_target(token)
    return session


def output(data: Any, as_json: bool) -> None:
    if as_json:
        print(json.dumps(data, indent=2, default=str))
    elif isinstance(data, list):
        for line in data:
            print(line)
    else:
        print(data)


def _print_report_footer(report) -> None:
    print(f"\nStatus: {report.status.value}")
    for message in report.errors + report.warnings:
        print(f"  ! {message}")


def cmd_persist(args, session: CaseSession) -> int:
    baseline = PersistBaseline.load(args.baseline) if args.baseline else None
    report = session.collect_persistence(baseline)
    items = [i for i in report.items if i.is_check] if args.check_only else report.items

    if args.save_baseline:
        PersistBaseline.capture(report.items).save(args.save_baseline)

    if args.json:
        output([i.to_dict() for i in items], True)
        return 0
    for item in items:
        print(item)
    checks = sum(1 for i in report.items if i.is_check)
    print(f"\n{len(report.items)} persistence entries, {checks} to check")
    _print_report_footer(report)
    return 0


def cmd_sweep(args, session: CaseSession) -> int:
    if args.window:
        session.set_cluster_window(args.window)
    report = session.run_sweep(args.lookback, include_services=not args.no_services)
    minimum = Severity.parse(args.min_severity, Severity.LOW)
    entries = [e for e in report.items if e.severity >= minimum]

    if args.json:
        output([e.to_dict() for e in entries], True)
        return 0
    for entry in entries:
        marker = " *" if entry.is_clustered else ""
        print(f"[{entry.severity.value}] {entry.category.value}: {entry.path}{marker}")
        print(f"  {entry.reason}")
    print(f"\n{len(entries)} of {len(report.items)} entries at {minimum.value} or above")
    _print_report_footer(report)
    return 0


def cmd_quarantine(args, session: CaseSession) -> int:
    for path in args.paths:
        if not session.queue_file(path):
            print(f"Already queued: {path}")
    summary = session.execute_all_pending()

    if args.json:
        output([item.to_dict() for item in session.queue.items()], True)
    else:
        for item in session.queue.items():
            print(item)
            if item.error_message:
                print(f"  {item.error_message}")
        print(f"\nCase {session.case_id}: {summary}")
        for warning in summary.warnings:
            print(f"  ! {warning}")
    return 0 if summary.failed == 0 else 1


def cmd_journal(args, session: CaseSession) -> int:
    entries = session.cleanup_journal.entries()
    if args.json:
        output([e.to_dict() for e in entries], True)
        return 0
    for entry in entries:
        state = "undone" if entry.is_undone else "active"
        print(
            f"{entry.timestamp:%Y-%m-%d %H:%M:%S} [{state}] {entry.action_type.value} "
            f"{entry.item_name or entry.item_id}: {entry.original_state} -> {entry.new_state}"
        )
    stats = session.cleanup_journal.get_stats()
    print(f"\n{stats.total} actions, {stats.undone} undone")
    return 0


def cmd_undo_last(args, session: CaseSession) -> int:
    outcome = session.undo_last()
    if args.json:
        output({"Success": outcome.success, "Message": outcome.message, "ItemId": outcome.item_id}, True)
    else:
        print(("Undone: " if outcome.success else "Undo failed: ") + outcome.message)
        for warning in outcome.warnings:
            print(f"  ! {warning}")
    return 0 if outcome.success else 1


def cmd_harden_scan(args, session: CaseSession) -> int:
    actions = session.hardening.scan()
    if args.json:
        output(
            [
                {
                    "Id": a.id,
                    "Category": a.category,
                    "Name": a.name,
                    "Profile": a.profile,
                    "CurrentState": a.current_state,
                    "RecommendedState": a.recommended_state,
                    "AlreadyHardened": a.is_already_hardened,
                }
                for a in actions
            ],
            True,
        )
        return 0
    for action in actions:
        print(action)
    stats = session.hardening.get_stats()
    print(f"\n{len(actions)} controls, {stats.already_set} already set")
    return 0


def cmd_pshistory(args, session: CaseSession) -> int:
    result = session.analyze_powershell_history(args.users_root)
    history_filter = HistoryFilter(
        version=args.ps_version,
        suspicious_only=args.suspicious,
        severity=Severity.parse(args.severity) if args.severity else None,
        user=args.user,
        last_n=args.last,
        recent_only=args.recent,
        search=args.search,
    )
    entries = history_filter.apply(result.entries)

    if args.record:
        for entry in entries:
            if entry.is_suspicious:
                session.record_history_entry(entry)
    export_path = session.export_powershell_history(result, args.export) if args.export else None

    if args.json:
        output([e.to_dict() for e in entries], True)
        return 0 if result.success else 1
    for entry in entries:
        print(entry)
        if entry.is_suspicious:
            print(f"  Risk: {entry.risk_reason}")
        if entry.has_decoded_command:
            print(f"  Decoded: {entry.risk.decoded_command}")
        elif entry.risk.decode_failed:
            print("  Decoded: (failed to decode)")
    shown, total = len(entries), result.total_commands
    print(f"\n{result.summary_message}")
    print(f"Showing all {total} commands" if shown == total else f"Showing {shown} of {total} commands")
    print(
        f"HIGH {result.high_risk_count} / MEDIUM {result.medium_risk_count} / "
        f"LOW {result.low_risk_count}; PS 5.1 {result.ps51_count}, PS 7 {result.ps7_count}"
    )
    for message in result.errors + result.history_files_skipped:
        print(f"  ! {message}")
    if export_path:
        print(f"Report written to {export_path}")
    return 0 if result.success else 1


def cmd_hunt(args, session: CaseSession) -> int:
    ioc_type = IocType(args.type) if args.type else None
    result = session.hunt(args.ioc, ioc_type, tuple(args.root or ()))

    if args.json:
        output(result.to_dict(), True)
    else:
        print(result if not result.error else f"[{result.severity}] {result.ioc_type.value}: {result.error}")
        for line in result.details:
            print(f"  {line}")
    return 1 if result.error else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="viperkit",
        description="Endpoint incident response toolkit",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    parser.add_argument(
        "--no-audit-db", action="store_true", help="Keep the case timeline in memory only"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    persist_parser = subparsers.add_parser("persist", help="Collect autostart entries")
    persist_parser.add_argument("--check-only", action="store_true", help="Only show CHECK entries")
    persist_parser.add_argument("--focus", action="append", help="Focus target (repeatable)")
    persist_parser.add_argument("--baseline", help="Baseline file to compare against")
    persist_parser.add_argument("--save-baseline", help="Write a baseline of this scan")
    persist_parser.set_defaults(func=cmd_persist)

    sweep_parser = subparsers.add_parser("sweep", help="Sweep recent files and services")
    sweep_parser.add_argument("--lookback", choices=LOOKBACK_CHOICES, help="Lookback window")
    sweep_parser.add_argument("--window", type=int, choices=CLUSTER_WINDOW_CHOICES, help="Cluster window in hours")
    sweep_parser.add_argument("--focus", action="append", help="Focus target (repeatable)")
    sweep_parser.add_argument("--no-services", action="store_true", help="Skip the services deep scan")
    sweep_parser.add_argument("--min-severity", default="LOW", help="LOW, MEDIUM or HIGH")
    sweep_parser.set_defaults(func=cmd_sweep)

    quarantine_parser = subparsers.add_parser("quarantine", help="Quarantine files")
    quarantine_parser.add_argument("paths", nargs="+", help="Files to quarantine")
    quarantine_parser.add_argument("--case", help="Existing case id to add to")
    quarantine_parser.set_defaults(func=cmd_quarantine)

    journal_parser = subparsers.add_parser("journal", help="Show a case's cleanup journal")
    journal_parser.add_argument("--case", required=True, help="Case id")
    journal_parser.set_defaults(func=cmd_journal)

    undo_parser = subparsers.add_parser("undo-last", help="Undo the most recent cleanup action")
    undo_parser.add_argument("--case", required=True, help="Case id")
    undo_parser.set_defaults(func=cmd_undo_last)

    harden_parser = subparsers.add_parser("harden-scan", help="Show hardening control states")
    harden_parser.set_defaults(func=cmd_harden_scan)

    pshistory_parser = subparsers.add_parser("pshistory", help="Analyze PowerShell command history")
    pshistory_parser.add_argument("--users-root", help="Profile root (default %%SystemDrive%%\\Users)")
    pshistory_parser.add_argument("--suspicious", action="store_true", help="Only HIGH and MEDIUM commands")
    pshistory_parser.add_argument("--severity", help="Only LOW, MEDIUM or HIGH")
    pshistory_parser.add_argument("--user", help="Only this user profile")
    pshistory_parser.add_argument("--ps-version", choices=("5.1", "7"), help="Only this PowerShell version")
    pshistory_parser.add_argument("--last", type=int, help="Only the last N commands of each file")
    pshistory_parser.add_argument("--recent", action="store_true", help="Only the newest 10%% of each file")
    pshistory_parser.add_argument("--search", help="Text to look for in commands and decoded payloads")
    pshistory_parser.add_argument("--record", action="store_true", help="Add shown suspicious commands to the case")
    pshistory_parser.add_argument("--export", metavar="DIR", help="Write a text report into DIR")
    pshistory_parser.add_argument("--case", help="Existing case id to add to")
    pshistory_parser.set_defaults(func=cmd_pshistory)

    hunt_parser = subparsers.add_parser("hunt", help="Look for an indicator on this host")
    hunt_parser.add_argument("ioc", help="File path, registry key or file hash")
    hunt_parser.add_argument(
        "--type", choices=[t.value for t in IocType], help="Indicator type (detected when omitted)"
    )
    hunt_parser.add_argument("--root", action="append", help="Folder to hash for a hash hunt (repeatable)")
    hunt_parser.add_argument("--case", help="Existing case id to add to")
    hunt_parser.set_defaults(func=cmd_hunt)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging()

    try:
        session = open_session(args)
    except (OSError, ImportError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        return args.func(args, session)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        session.close()


if __name__ == "__main__":
    sys.exit(main())
