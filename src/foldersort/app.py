"""
Main application controller for the folder organizer.
Wires configuration, the persisted stores, the organize engine and the
watcher supervisor together, and implements the command line interface.
"""

import os
import sys
import time
import argparse
import logging
import traceback
from pathlib import Path
from typing import Optional, Dict, Any, List

import yaml

from .utils.config_manager import ConfigManager
from .utils.error_handler import CorruptStoreError, ErrorHandler, FolderSortError
from .utils.file_utils import ensure_directory
from .utils.logging_config import setup_logging
from .file_access.manipulator import FileManipulator
from .organization_logic.engine import OrganizeEngine
from .organization_logic.move_log import MoveLog
from .organization_logic.rule_manager import RuleStore
from .organization_logic.watch_registry import WatchRegistry
from .watchers.notifications import NotificationSink
from .watchers.supervisor import WatcherSupervisor

logger = logging.getLogger(__name__)

RULES_FILE = "rules.json"
LOG_FILE = "log.json"
WATCHED_FILE = "watched.json"


class FolderOrganizerApp:
    """Main application controller that exposes the organizer operations."""

    def __init__(
        self,
        config_file: Optional[str] = None,
        cli_args: Optional[argparse.Namespace] = None,
        notification_sink: Optional[NotificationSink] = None,
        configure_logging: bool = True,
    ):
        """Initialize the application.

        Args:
            config_file: Path to configuration file
            cli_args: Parsed command line overrides
            notification_sink: Receiver of watcher notifications
            configure_logging: Install the configured logging handlers
        """
        self.config_file = config_file
        self.cli_args = cli_args
        self.notification_sink = notification_sink
        self.configure_logging = configure_logging

        self.config_manager = None
        self.config = None
        self.data_dir = None
        self.rule_store = None
        self.move_log = None
        self.watch_registry = None
        self.file_manipulator = None
        self.engine = None
        self.error_handler = None
        self.supervisor = None
        self._is_initialized = False

    def initialize(self):
        """Load configuration and create the stores, engine and supervisor."""
        if self._is_initialized:
            return

        try:
            self.config_manager = ConfigManager(
                config_file=Path(self.config_file) if self.config_file else None,
                cli_args=self.cli_args,
            )
            self.config = self.config_manager.config

            if self.configure_logging:
                log_config = self.config["logging"]
                setup_logging(
                    log_config["level"], log_config.get("file"), log_config["format"]
                )

            self._initialize_components()

            self._is_initialized = True
            logger.debug(f"Application initialized with data directory {self.data_dir}")

        except Exception as e:
            logger.error(f"Failed to initialize application: {str(e)}")
            raise

    def _initialize_components(self):
        self.data_dir = ensure_directory(self.config_manager.data_dir)

        self.rule_store = RuleStore(self.data_dir / RULES_FILE)
        self.move_log = MoveLog(self.data_dir / LOG_FILE)
        self.watch_registry = WatchRegistry(self.data_dir / WATCHED_FILE)
        for store in (self.rule_store, self.move_log, self.watch_registry):
            store.ensure_file()

        self.file_manipulator = FileManipulator()
        self.engine = OrganizeEngine(
            self.rule_store, self.watch_registry, self.move_log, self.file_manipulator
        )
        self.error_handler = ErrorHandler()

        watch_config = self.config["watch"]
        self.supervisor = WatcherSupervisor(
            self.engine,
            self.watch_registry,
            notification_sink=self.notification_sink,
            error_handler=self.error_handler,
            default_interval_ms=watch_config["interval_ms"],
            debounce_ms=watch_config["debounce_ms"],
            stability_threshold_ms=watch_config["stability_threshold_ms"],
            stability_poll_ms=watch_config["stability_poll_ms"],
            force_polling=watch_config["force_polling"],
        )

    # Rules

    def load_rules(self) -> List[Dict[str, Any]]:
        return self.rule_store.load()

    def save_rules(self, rules: List[Dict[str, Any]]) -> bool:
        return self.rule_store.save(rules)

    # Organizing

    def organize(self, folder_path: str) -> List[Dict[str, Any]]:
        """Organize a folder once and return the combined move log."""
        return self.engine.organize(folder_path)

    def preview(self, folder_path: str) -> List[Dict[str, Any]]:
        return self.engine.preview(folder_path)

    def load_log(self) -> List[Dict[str, Any]]:
        return self.move_log.load()

    # Watched folders

    def load_watched(self) -> List[Dict[str, Any]]:
        return self.watch_registry.read()

    def save_watched(self, watched: List[Dict[str, Any]]) -> bool:
        """Persist the watched-folder list.

        Active watchers of folders that were removed from the list, or
        disabled in it, are stopped.
        """
        self.watch_registry.write(watched)

        keep = {
            w.get("path")
            for w in watched
            if isinstance(w, dict) and w.get("enabled") is not False
        }
        for folder_path in self.supervisor.running_paths():
            if folder_path not in keep:
                self.supervisor.stop(folder_path)

        return True

    def start_auto(
        self, folder_path: Optional[str] = None, interval_ms: Optional[int] = None
    ) -> bool:
        """Start watching one folder, or every enabled watched folder.

        Args:
            folder_path: Folder to watch; all registered folders when omitted
            interval_ms: Polling interval used if the observer is unavailable

        Returns:
            True if watching started (or was already running)
        """
        if folder_path is None:
            return self.supervisor.start_all_from_registry(interval_ms)

        entry = self.watch_registry.find(folder_path)
        if entry and entry.get("enabled") is False:
            logger.warning(f"Not watching disabled folder: {folder_path}")
            return False

        if interval_ms is None and entry:
            interval_ms = entry.get("autoIntervalMs")

        return self.supervisor.start(folder_path, interval_ms)

    def stop_auto(self, folder_path: Optional[str] = None) -> bool:
        return self.supervisor.stop(folder_path)

    def get_auto_running(self) -> List[str]:
        return self.supervisor.running_paths()

    def shutdown(self):
        """Stop every watcher and report moves that failed."""
        if self.supervisor is not None:
            self.supervisor.stop_all()

        if self.file_manipulator is not None:
            summary = self.file_manipulator.get_operation_summary()
            if summary["failed"]:
                logger.warning(
                    f"{summary['failed']} of {summary['total_operations']} "
                    f"move(s) failed"
                )
                for failure in summary["recent_failures"]:
                    logger.warning(
                        f"  {failure['source_path']}: {failure['error']}"
                    )

        if self.error_handler is not None:
            stats = self.error_handler.get_error_statistics()
            if stats["total_errors"]:
                logger.warning(
                    f"{stats['total_errors']} error(s) occurred while watching"
                )


def _print_rule(rule: Dict[str, Any]):
    state = "on " if rule.get("enabled") is not False else "off"
    conditions = []
    if rule.get("type"):
        conditions.append(f"type={rule['type']}")
    if rule.get("namePattern"):
        conditions.append(f"prefix={rule['namePattern']}")
    label = f" ({rule['name']})" if rule.get("name") else ""
    print(
        f"[{state}] {rule.get('id')}{label}: {' or '.join(conditions) or '-'}"
        f" -> {rule.get('destination')}"
    )


def _cmd_organize(app: FolderOrganizerApp, args: argparse.Namespace) -> int:
    folder_path = os.path.abspath(args.path)
    if not os.path.isdir(folder_path):
        print(f"Folder not found: {folder_path}", file=sys.stderr)
        return 1

    if args.dry_run:
        plan = app.preview(folder_path)
        for item in plan:
            print(f"Would move {item['file']} -> {item['destination']} (rule {item['rule']})")
        print(f"{len(plan)} file(s) would be moved")
        return 0

    before = len(app.load_log())
    failed_before = app.file_manipulator.failed_count
    combined = app.organize(folder_path)
    moved = combined[before:]
    for entry in moved:
        print(f"Moved {entry['file']} -> {entry['movedTo']}")
    print(f"{len(moved)} file(s) moved")

    failed = app.file_manipulator.failed_count - failed_before
    if failed:
        print(f"{failed} file(s) could not be moved", file=sys.stderr)
    return 0


def _cmd_watch(app: FolderOrganizerApp, args: argparse.Namespace) -> int:
    if args.paths:
        for path in args.paths:
            folder_path = os.path.abspath(path)
            if not app.start_auto(folder_path, args.interval_ms):
                print(f"Could not watch {folder_path}", file=sys.stderr)
    else:
        app.start_auto(None, args.interval_ms)

    if not app.get_auto_running():
        print("No folders to watch", file=sys.stderr)
        return 1

    for watcher in app.supervisor.describe():
        print(f"Watching {watcher['path']} ({watcher['strategy']})")
    print("Press Ctrl+C to stop")

    try:
        while app.get_auto_running():
            time.sleep(1)
    except KeyboardInterrupt:
        print("\nStopping watchers...")
    finally:
        app.shutdown()

    return 0


def _cmd_rules(app: FolderOrganizerApp, args: argparse.Namespace) -> int:
    if args.rules_command == "list":
        rules = app.load_rules()
        if not rules:
            print("No rules defined")
        for rule in rules:
            _print_rule(rule)

    elif args.rules_command == "add":
        try:
            rule = app.rule_store.create_rule(
                args.destination,
                type=args.type,
                name_pattern=args.prefix,
                name=args.name,
                enabled=not args.disabled,
            )
        except ValueError as e:
            print(str(e), file=sys.stderr)
            return 1
        _print_rule(rule)

    elif args.rules_command == "remove":
        if not app.rule_store.delete_rule(args.rule_id):
            print(f"No rule with id {args.rule_id}", file=sys.stderr)
            return 1
        print(f"Removed rule {args.rule_id}")

    elif args.rules_command == "export":
        app.rule_store.export_rules_to_yaml(args.file)
        print(f"Exported rules to {args.file}")

    elif args.rules_command == "import":
        try:
            rules = app.rule_store.import_rules_from_yaml(args.file, replace=args.replace)
        except (ValueError, yaml.YAMLError) as e:
            print(str(e), file=sys.stderr)
            return 1
        print(f"Rule list now holds {len(rules)} rule(s)")

    return 0


def _cmd_log(app: FolderOrganizerApp, args: argparse.Namespace) -> int:
    folder_path = os.path.abspath(args.folder) if args.folder else None
    entries = app.move_log.entries_for_folder(folder_path)
    if not entries:
        print("No files have been moved yet")
    for entry in entries:
        print(
            f"{entry.get('timestamp')}  {entry.get('folder')}: "
            f"{entry.get('file')} -> {entry.get('movedTo')}"
        )
    return 0


def _cmd_watched(app: FolderOrganizerApp, args: argparse.Namespace) -> int:
    if args.watched_command == "list":
        watched = app.load_watched()
        if not watched:
            print("No watched folders")
        for entry in watched:
            state = "enabled " if entry.get("enabled") is not False else "disabled"
            overrides = entry.get("ruleOverrides") or {}
            suffix = f" ({len(overrides)} override(s))" if overrides else ""
            print(f"[{state}] {entry.get('path')}{suffix}")
        return 0

    folder_path = os.path.abspath(args.path)

    if args.watched_command == "add":
        app.watch_registry.add(folder_path, auto_interval_ms=args.auto_interval_ms)
        print(f"Watching list now includes {folder_path}")

    elif args.watched_command == "remove":
        watched = app.load_watched()
        remaining = [w for w in watched if w.get("path") != folder_path]
        if len(remaining) == len(watched):
            print(f"Not a watched folder: {folder_path}", file=sys.stderr)
            return 1
        app.save_watched(remaining)
        print(f"Removed {folder_path}")

    else:
        enabled = args.watched_command == "enable"
        try:
            app.watch_registry.set_enabled(folder_path, enabled)
        except KeyError:
            print(f"Not a watched folder: {folder_path}", file=sys.stderr)
            return 1
        print(f"{'Enabled' if enabled else 'Disabled'} {folder_path}")

    return 0


COMMANDS = {
    "organize": _cmd_organize,
    "watch": _cmd_watch,
    "rules": _cmd_rules,
    "log": _cmd_log,
    "watched": _cmd_watched,
}


def create_argument_parser() -> argparse.ArgumentParser:
    """Create command-line argument parser."""
    parser = argparse.ArgumentParser(
        prog="foldersort",
        description="Organize folders into subfolders by file extension and name prefix",
    )

    parser.add_argument("--config", help="Path to configuration file", default=None)

    parser.add_argument(
        "--data-dir",
        help="Directory holding rules.json, log.json and watched.json",
        default=None,
    )

    parser.add_argument("--log-file", help="Also write logs to this file", default=None)

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
        default=None,
    )

    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")

    subparsers = parser.add_subparsers(dest="command", required=True)

    organize = subparsers.add_parser("organize", help="Organize a folder once")
    organize.add_argument("path", help="Folder to organize")
    organize.add_argument(
        "--dry-run", action="store_true", help="Preview changes without moving files"
    )

    watch = subparsers.add_parser(
        "watch", help="Organize folders continuously until interrupted"
    )
    watch.add_argument(
        "paths", nargs="*", help="Folders to watch (default: all enabled watched folders)"
    )
    watch.add_argument(
        "--interval-ms", type=int, default=None, help="Polling interval fallback"
    )
    watch.add_argument(
        "--force-polling",
        action="store_true",
        help="Poll instead of using filesystem events",
    )

    rules = subparsers.add_parser("rules", help="Manage organization rules")
    rules_sub = rules.add_subparsers(dest="rules_command", required=True)
    rules_sub.add_parser("list", help="List rules in evaluation order")
    add = rules_sub.add_parser("add", help="Append a rule")
    add.add_argument("destination", help="Subfolder receiving matching files")
    add.add_argument("--type", help="File name suffix, e.g. .pdf")
    add.add_argument("--prefix", help="File name prefix")
    add.add_argument("--name", help="Display name")
    add.add_argument("--disabled", action="store_true", help="Create the rule disabled")
    remove = rules_sub.add_parser("remove", help="Delete a rule")
    remove.add_argument("rule_id")
    export = rules_sub.add_parser("export", help="Export rules to YAML")
    export.add_argument("file")
    import_ = rules_sub.add_parser("import", help="Import rules from YAML")
    import_.add_argument("file")
    import_.add_argument(
        "--replace", action="store_true", help="Replace the current rules"
    )

    log = subparsers.add_parser("log", help="Show moved files")
    log.add_argument("--folder", help="Only show moves out of this folder")

    watched = subparsers.add_parser("watched", help="Manage watched folders")
    watched_sub = watched.add_subparsers(dest="watched_command", required=True)
    watched_sub.add_parser("list", help="List watched folders")
    watched_add = watched_sub.add_parser("add", help="Register a folder")
    watched_add.add_argument("path")
    watched_add.add_argument(
        "--interval-ms",
        dest="auto_interval_ms",
        type=int,
        default=None,
        help="Polling interval for this folder",
    )
    for name, help_text in (
        ("remove", "Unregister a folder"),
        ("enable", "Enable a folder"),
        ("disable", "Disable a folder"),
    ):
        watched_sub.add_parser(name, help=help_text).add_argument("path")

    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point for the application."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        args.log_level = "DEBUG"

    app = FolderOrganizerApp(config_file=args.config, cli_args=args)

    try:
        app.initialize()
        exit_code = COMMANDS[args.command](app, args)
        sys.exit(exit_code)

    except KeyboardInterrupt:
        logger.info("Application interrupted by user")
        app.shutdown()
        sys.exit(0)
    except CorruptStoreError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Fix or remove the file and try again.", file=sys.stderr)
        sys.exit(1)
    except (FolderSortError, ValueError, OSError) as e:
        logger.error(f"Application failed: {str(e)}")
        if args.verbose:
            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
