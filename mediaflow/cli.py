"""
MediaFlow CLI — Bootstrap and administration commands.

Commands:
- mediaflow init            — Create tables and the protected workflow folders
- mediaflow ensure-folders  — (Re)create missing workflow folders
- mediaflow review-count    — Print the number of items awaiting review
- mediaflow grant           — Set the explicit entry for a folder and role
- mediaflow revoke          — Remove the explicit entry (role reverts to its default policy)
- mediaflow inbox           — Map a role to an inbox folder, or remove the mapping
- mediaflow purge           — Remove all permission entries, options and folder protection
"""

from __future__ import annotations

import argparse
import logging
from typing import Optional

from mediaflow.access.models import Principal
from mediaflow.engine.config import CONFIG_FILENAME, load_platform_config
from mediaflow.engine.errors import MediaFlowError
from mediaflow.runtime import MediaFlowRuntime

logger = logging.getLogger("mediaflow.cli")

# Acting principal for administrative commands
SYSTEM_PRINCIPAL = Principal(id=0, username="cli", is_superuser=True)


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="mediaflow",
        description="MediaFlow — folder access control and editorial workflow",
    )
    parser.add_argument(
        "--config", default=CONFIG_FILENAME, help=f"Path to config file (default: {CONFIG_FILENAME})"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # mediaflow init
    subparsers.add_parser("init", help="Create tables and workflow folders")

    # mediaflow ensure-folders
    subparsers.add_parser("ensure-folders", help="Create missing workflow folders")

    # mediaflow review-count
    count_parser = subparsers.add_parser("review-count", help="Items awaiting review")
    count_parser.add_argument(
        "--refresh", action="store_true", help="Recompute instead of using the cached value"
    )

    # mediaflow grant
    grant_parser = subparsers.add_parser("grant", help="Set a folder permission entry")
    grant_parser.add_argument("folder", type=int, help="Folder id")
    grant_parser.add_argument("role", help="Role id (e.g., contributor)")
    grant_parser.add_argument(
        "actions", nargs="*", help="Actions: view move upload delete (none = explicit deny-all)"
    )

    # mediaflow revoke
    revoke_parser = subparsers.add_parser("revoke", help="Remove a folder permission entry")
    revoke_parser.add_argument("folder", type=int, help="Folder id")
    revoke_parser.add_argument("role", help="Role id")

    # mediaflow inbox
    inbox_parser = subparsers.add_parser("inbox", help="Map a role to its inbox folder")
    inbox_parser.add_argument("role", help="Role id")
    inbox_parser.add_argument("folder", type=int, nargs="?", help="Folder id")
    inbox_parser.add_argument("--remove", action="store_true", help="Remove the role's inbox mapping")

    # mediaflow purge
    purge_parser = subparsers.add_parser("purge", help="Remove all MediaFlow data (uninstall)")
    purge_parser.add_argument("--yes", action="store_true", help="Confirm the purge")

    args = parser.parse_args(argv)

    if args.command == "init":
        return cmd_init(args)
    elif args.command == "ensure-folders":
        return cmd_ensure_folders(args)
    elif args.command == "review-count":
        return cmd_review_count(args)
    elif args.command == "grant":
        return cmd_grant(args)
    elif args.command == "revoke":
        return cmd_revoke(args)
    elif args.command == "inbox":
        return cmd_inbox(args)
    elif args.command == "purge":
        return cmd_purge(args)
    else:
        parser.print_help()
        return 0


def _start_runtime(args: argparse.Namespace, create_tables: bool = False) -> Optional[MediaFlowRuntime]:
    """Load the config and start a runtime. Prints and returns None on failure."""
    try:
        config = load_platform_config(args.config)
    except MediaFlowError as e:
        print(f"[ERROR] Failed to load config: {e.message}")
        return None

    runtime = MediaFlowRuntime(config)
    try:
        runtime.startup(create_tables=create_tables)
    except Exception as e:
        print(f"[ERROR] Startup failed: {e}")
        return None
    return runtime


def cmd_init(args: argparse.Namespace) -> int:
    """
    Bootstrap storage:
    1. Load config
    2. Create all tables (SQLAlchemy metadata.create_all)
    3. Create the protected Workflow / Needs Review / Approved folders
    """
    print("=" * 60)
    print("  MediaFlow Initialization")
    print("=" * 60)

    runtime = _start_runtime(args, create_tables=True)
    if runtime is None:
        return 1

    try:
        print(f"[OK] Database ready ({runtime.config.database.url})")
        if not runtime.workflow.ensure_system_folders():
            print("[ERROR] Failed to create workflow folders")
            return 1
        print(
            f"[OK] Workflow folders: needs review={runtime.workflow.needs_review_folder()}, "
            f"approved={runtime.workflow.approved_folder()}"
        )
        print("=" * 60)
        return 0
    finally:
        runtime.shutdown()


def cmd_ensure_folders(args: argparse.Namespace) -> int:
    runtime = _start_runtime(args)
    if runtime is None:
        return 1
    try:
        if not runtime.workflow.ensure_system_folders():
            print("[ERROR] Failed to create workflow folders")
            return 1
        print(
            f"[OK] workflow={runtime.workflow.workflow_folder()} "
            f"needs_review={runtime.workflow.needs_review_folder()} "
            f"approved={runtime.workflow.approved_folder()}"
        )
        return 0
    finally:
        runtime.shutdown()


def cmd_review_count(args: argparse.Namespace) -> int:
    runtime = _start_runtime(args)
    if runtime is None:
        return 1
    try:
        print(runtime.workflow.review_count(force_refresh=args.refresh))
        return 0
    finally:
        runtime.shutdown()


def cmd_grant(args: argparse.Namespace) -> int:
    runtime = _start_runtime(args)
    if runtime is None:
        return 1
    try:
        if runtime.folders.get_folder(args.folder) is None:
            print(f"[ERROR] Folder {args.folder} not found")
            return 1
        with runtime.request(SYSTEM_PRINCIPAL) as scope:
            scope.resolver.set_permissions(args.folder, args.role, args.actions)
        actions = ", ".join(args.actions) if args.actions else "(deny all)"
        print(f"[OK] {args.role} on folder {args.folder}: {actions}")
        return 0
    except MediaFlowError as e:
        print(f"[ERROR] {e.message}")
        return 1
    finally:
        runtime.shutdown()


def cmd_revoke(args: argparse.Namespace) -> int:
    runtime = _start_runtime(args)
    if runtime is None:
        return 1
    try:
        with runtime.request(SYSTEM_PRINCIPAL) as scope:
            removed = scope.resolver.remove_permissions(args.folder, args.role)
        if not removed:
            print(f"[INFO] No explicit entry for {args.role} on folder {args.folder}")
        else:
            print(f"[OK] Removed {args.role} entry on folder {args.folder}")
        return 0
    finally:
        runtime.shutdown()


def cmd_inbox(args: argparse.Namespace) -> int:
    if not args.remove and args.folder is None:
        print("[ERROR] Provide a folder id or --remove")
        return 1

    runtime = _start_runtime(args)
    if runtime is None:
        return 1
    try:
        with runtime.request(SYSTEM_PRINCIPAL) as scope:
            if args.remove:
                if scope.inbox.remove_role_inbox(args.role):
                    print(f"[OK] Removed inbox for {args.role}")
                else:
                    print(f"[INFO] {args.role} has no inbox")
                return 0

            if runtime.folders.get_folder(args.folder) is None:
                print(f"[ERROR] Folder {args.folder} not found")
                return 1
            mapping = scope.inbox.set_role_inbox(args.role, args.folder)
        print(f"[OK] Inbox map: {mapping}")
        return 0
    except MediaFlowError as e:
        print(f"[ERROR] {e.message}")
        return 1
    finally:
        runtime.shutdown()


def cmd_purge(args: argparse.Namespace) -> int:
    if not args.yes:
        print("[ERROR] Purge removes every permission entry and workflow setting. Re-run with --yes.")
        return 1

    runtime = _start_runtime(args)
    if runtime is None:
        return 1
    try:
        removed = runtime.workflow.purge(runtime.permissions, runtime.options)
        print(f"[OK] Purged {removed} permission entries")
        return 0
    finally:
        runtime.shutdown()


if __name__ == "__main__":
    raise SystemExit(main())
