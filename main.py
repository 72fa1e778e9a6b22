# main.py
# Interactive menu and command line entry point for the VS Code augment cleaner.
import sys
import json
import argparse
import contextlib
import configparser
from typing import Optional, Any, List, Tuple

from colorama import Fore, Style, init

from augment_cleaner import AugmentCleaner, CleaningProgress, SystemStatus, OperationPreview, RiskAssessment, RiskLevel
from config import get_config, get_system_paths, setup_logging, print_config, force_update_config
from error_handler import CleanerError
from logo import print_logo
from quit_vscode import VSCodeProcessController
from utils import format_size

# Initialize colorama
init()

# Define emoji and color constants
EMOJI = {
    "FILE": "📄",
    "DB": "🗄️",
    "FOLDER": "📁",
    "SUCCESS": "✅",
    "ERROR": "❌",
    "INFO": "ℹ️",
    "WARNING": "⚠️",
    "RESET": "🔄",
    "MENU": "📋",
    "ARROW": "➜",
    "STATUS": "🔍",
    "PREVIEW": "👀",
    "SETTINGS": "⚙️",
    "EXIT": "👋",
}

RISK_COLORS = {
    RiskLevel.LOW: Fore.GREEN,
    RiskLevel.MEDIUM: Fore.YELLOW,
    RiskLevel.HIGH: Fore.RED,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Reset VS Code telemetry identifiers and remove augment data. Runs an interactive menu when no action is given."
    )
    actions = parser.add_mutually_exclusive_group()
    actions.add_argument("--status", action="store_true", help="Show the state of the VS Code files and the risk assessment.")
    actions.add_argument("--preview", action="store_true", help="Show what a full clean would change, without changing anything.")
    actions.add_argument("--clean", action="store_true", help="Run the full clean (telemetry, database, workspace).")
    actions.add_argument("--telemetry", action="store_true", help="Only regenerate the telemetry identifiers.")
    actions.add_argument("--database", action="store_true", help="Only delete augment rows from state.vscdb.")
    actions.add_argument("--workspace", action="store_true", help="Only archive and clear workspaceStorage.")
    actions.add_argument("--restore-workspace", metavar="ZIP", help="Extract a workspace backup archive into workspaceStorage.")
    parser.add_argument("--close-vscode", action="store_true", default=None,
                        help="Close VS Code before a full clean (default from config.ini).")
    parser.add_argument("--reopen-vscode", action="store_true", default=None,
                        help="Start VS Code again after a full clean (default from config.ini).")
    parser.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation.")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON on stdout.")
    return parser


def build_cleaner(config: configparser.ConfigParser) -> AugmentCleaner:
    controller = VSCodeProcessController(
        timeout=config.getfloat('Process', 'quit_timeout', fallback=5),
        relaunch_delay=config.getfloat('Process', 'relaunch_delay', fallback=0.5)
    )
    return AugmentCleaner(
        get_system_paths(config),
        process_controller=controller,
        preview_limit=config.getint('Database', 'preview_limit', fallback=50),
        preview_max_items=config.getint('Workspace', 'preview_max_items', fallback=100)
    )


def confirm(prompt: str, assume_yes: bool = False) -> bool:
    if assume_yes:
        return True
    answer = input(f"{Fore.YELLOW}{EMOJI['WARNING']} {prompt} (y/N): {Style.RESET_ALL}")
    return answer.strip().lower() in ("y", "yes")


def _flag(value: Optional[bool], config: configparser.ConfigParser, option: str) -> bool:
    if value is not None:
        return value
    return config.getboolean('Process', option, fallback=False)


def print_status(status: SystemStatus, risk: RiskAssessment) -> None:
    def mark(ok: bool) -> str:
        return f"{Fore.GREEN}{EMOJI['SUCCESS']}" if ok else f"{Fore.RED}{EMOJI['ERROR']}"

    paths = status.system_paths
    print(f"\n{Fore.CYAN}{EMOJI['STATUS']} System status:{Style.RESET_ALL}")
    print(f"{Fore.YELLOW}{'─' * 60}{Style.RESET_ALL}")
    print(f"{mark(status.storage_file_valid)} storage.json{Style.RESET_ALL}   {paths.storage_path}")
    print(f"{mark(status.database_valid)} state.vscdb{Style.RESET_ALL}    {paths.db_path}")
    print(f"{mark(status.workspace_exists)} workspace{Style.RESET_ALL}      {paths.workspace_storage_path}")

    if status.telemetry_ids:
        print(f"\n{EMOJI['INFO']} machineId:   {Fore.CYAN}{status.telemetry_ids.machine_id or '-'}{Style.RESET_ALL}")
        print(f"{EMOJI['INFO']} devDeviceId: {Fore.CYAN}{status.telemetry_ids.device_id or '-'}{Style.RESET_ALL}")
    if status.database_info:
        info = status.database_info
        print(f"{EMOJI['DB']} Database: {info.total_records} records, {Fore.YELLOW}{info.augment_records} augment records{Style.RESET_ALL}")
    ws = status.workspace_info
    print(f"{EMOJI['FOLDER']} Workspace: {ws.total_files} files in {ws.total_directories} directories ({format_size(ws.total_size)})")

    color = RISK_COLORS[risk.risk_level]
    print(f"\n{color}Risk level: {risk.risk_level.value.upper()}{Style.RESET_ALL}")
    for warning in risk.warnings:
        print(f"  {Fore.YELLOW}{EMOJI['WARNING']} {warning}{Style.RESET_ALL}")
    for recommendation in risk.recommendations:
        print(f"  {Fore.CYAN}{EMOJI['ARROW']} {recommendation}{Style.RESET_ALL}")


def print_preview(preview: OperationPreview) -> None:
    print(f"\n{Fore.CYAN}{EMOJI['PREVIEW']} Operations preview:{Style.RESET_ALL}")
    print(f"{Fore.YELLOW}{'─' * 60}{Style.RESET_ALL}")

    if preview.telemetry_ids:
        print(f"{EMOJI['FILE']} Telemetry IDs to replace:")
        print(f"  machineId:   {preview.telemetry_ids.machine_id or '-'}")
        print(f"  devDeviceId: {preview.telemetry_ids.device_id or '-'}")
    else:
        print(f"{Fore.YELLOW}{EMOJI['WARNING']} storage.json not readable{Style.RESET_ALL}")

    print(f"\n{EMOJI['DB']} Database records to delete: {len(preview.database_records)}")
    for record in preview.database_records:
        value = record['value']
        print(f"  {Fore.YELLOW}{record['key']}{Style.RESET_ALL} = {value[:60]}{'...' if len(value) > 60 else ''}")

    print(f"\n{EMOJI['FOLDER']} Workspace entries to archive: {len(preview.workspace_contents)}")
    for entry in preview.workspace_contents:
        size = "" if entry.type == "directory" else f" ({format_size(entry.size)})"
        print(f"  {entry.name}{'/' if entry.type == 'directory' else ''}{size}")


def print_progress(event: CleaningProgress) -> None:
    print(f"{Fore.CYAN}[{event.progress:3d}%]{Style.RESET_ALL} {event.message}")


def run_action(args: argparse.Namespace, cleaner: AugmentCleaner,
               config: configparser.ConfigParser) -> Tuple[bool, Any]:
    """Execute the single action selected on the command line; returns (success, payload)"""
    if args.status:
        status = cleaner.check_system_status()
        risk = cleaner.get_risk_assessment(status)
        print_status(status, risk)
        return True, {"status": status.to_dict(), "risk": risk.to_dict()}

    if args.preview:
        preview = cleaner.preview_operations()
        print_preview(preview)
        return True, preview.to_dict()

    if args.restore_workspace:
        if not confirm(f"Extract {args.restore_workspace} into workspace storage?", args.yes):
            return False, {"cancelled": True}
        result =cleaner.workspace_cleaner.restore_workspace_backup(args.restore_workspace)
        return True, {"restored_to": result}

    if args.clean:
        risk = cleaner.get_risk_assessment()
        if risk.risk_level is RiskLevel.HIGH:
            for warning in risk.warnings:
                print(f"{Fore.RED}{EMOJI['WARNING']} {warning}{Style.RESET_ALL}")
        if not confirm("Run the full clean?", args.yes):
            print(f"{Fore.YELLOW}{EMOJI['INFO']} Cancelled{Style.RESET_ALL}")
            return False, {"cancelled": True}
        result = cleaner.perform_full_clean(
            on_progress=print_progress,
            close_vscode=_flag(args.close_vscode, config, 'close_before_clean'),
            reopen_vscode=_flag(args.reopen_vscode, config, 'reopen_after_clean')
        )
        return result.success, result.to_dict()

    single_steps = [
        (args.telemetry, "Regenerate the telemetry IDs?", cleaner.telemetry_modifier.modify_telemetry_ids),
        (args.database, "Delete augment records from the database?", cleaner.sqlite_modifier.clean_augment_data),
        (args.workspace, "Archive and clear workspace storage?", cleaner.workspace_cleaner.clean_workspace_storage),
    ]
    for selected, prompt, operation in single_steps:
        if selected:
            if not confirm(prompt, args.yes):
                return False, {"cancelled": True}
            return True, operation().to_dict()

    return False, None


def print_menu() -> None:
    """Print menu options"""
    print(f"\n{Fore.CYAN}{EMOJI['MENU']} Menu:{Style.RESET_ALL}")
    print(f"{Fore.YELLOW}{'─' * 40}{Style.RESET_ALL}")
    print(f"{Fore.GREEN}0{Style.RESET_ALL}. {EMOJI['EXIT']} Exit")
    print(f"{Fore.GREEN}1{Style.RESET_ALL}. {EMOJI['STATUS']} System status")
    print(f"{Fore.GREEN}2{Style.RESET_ALL}. {EMOJI['PREVIEW']} Preview operations")
    print(f"{Fore.GREEN}3{Style.RESET_ALL}. {EMOJI['RESET']} Full clean")
    print(f"{Fore.GREEN}4{Style.RESET_ALL}. {EMOJI['FILE']} Reset telemetry IDs only")
    print(f"{Fore.GREEN}5{Style.RESET_ALL}. {EMOJI['DB']} Clean database only")
    print(f"{Fore.GREEN}6{Style.RESET_ALL}. {EMOJI['FOLDER']} Clean workspace storage only")
    print(f"{Fore.GREEN}7{Style.RESET_ALL}. {EMOJI['ERROR']} Close VS Code")
    print(f"{Fore.GREEN}8{Style.RESET_ALL}. {EMOJI['SETTINGS']} Show configuration")
    print(f"{Fore.GREEN}9{Style.RESET_ALL}. {EMOJI['RESET']} Regenerate configuration")
    print(f"{Fore.YELLOW}{'─' * 40}{Style.RESET_ALL}")


MENU_ACTIONS = {
    "1": "status",
    "2": "preview",
    "3": "clean",
    "4": "telemetry",
    "5": "database",
    "6": "workspace",
}


def interactive_menu(cleaner: AugmentCleaner, config: configparser.ConfigParser) -> None:
    print_logo()
    parser = build_parser()

    while True:
        print_menu()
        try:
            choice = input(f"\n{Fore.CYAN}{EMOJI['ARROW']} Enter choice: {Style.RESET_ALL}").strip()
        except (KeyboardInterrupt, EOFError):
            choice = "0"

        if choice == "0":
            print(f"\n{Fore.YELLOW}{EMOJI['EXIT']} Goodbye{Style.RESET_ALL}")
            return

        try:
            if choice in MENU_ACTIONS:
                run_action(parser.parse_args([f"--{MENU_ACTIONS[choice]}"]), cleaner, config)
            elif choice == "7":
                cleaner.process_controller.terminate()
            elif choice == "8":
                print_config(config)
            elif choice == "9":
                config = force_update_config()
                cleaner = build_cleaner(config)
            else:
                print(f"\n{Fore.RED}{EMOJI['ERROR']} Invalid choice{Style.RESET_ALL}")
        except CleanerError as e:
            print(f"\n{Fore.RED}{EMOJI['ERROR']} {e}{Style.RESET_ALL}")

        try:
            input(f"\n{Fore.CYAN}Press Enter to continue...{Style.RESET_ALL}")
        except (KeyboardInterrupt, EOFError):
            print(f"\n{Fore.YELLOW}{EMOJI['EXIT']} Goodbye{Style.RESET_ALL}")
            return


def main(argv: Optional[List[str]] = None) -> int:
    """Main function; returns the process exit code"""
    args = build_parser().parse_args(argv)
    config = get_config()
    setup_logging(config, console=False)
    cleaner = build_cleaner(config)

    has_action = any([args.status, args.preview, args.clean, args.telemetry,
                      args.database, args.workspace, args.restore_workspace])
    if not has_action:
        interactive_menu(cleaner, config)
        return 0

    # keep stdout clean for the JSON document
    output = sys.stderr if args.json else sys.stdout
    try:
        with contextlib.redirect_stdout(output):
            success, payload = run_action(args, cleaner, config)
    except CleanerError as e:
        if not args.clean:
            # full cleans are already recorded by perform_full_clean
            cleaner.error_handler.handle_error(e, {"operation": "cli"})
        print(f"{Fore.RED}{EMOJI['ERROR']} {e}{Style.RESET_ALL}", file=sys.stderr)
        if args.json:
            print(json.dumps({"success": False, "error": str(e)}, indent=2))
        return 1

    if args.json:
        print(json.dumps({"success": success, "result": payload}, indent=2, ensure_ascii=False, default=str))
    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
