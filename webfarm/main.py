import sys
import json
import logging
from typing import Any, List

from webfarm.log.setup import setup_logging
from webfarm.local.config import effective_settings as config
from webfarm.local.supervisor import BackgroundWorkerService, ExecutableFinder
from webfarm.local.supervisor.host import WorkerHost, request_shutdown

log = logging.getLogger("console")


def run_workers(args: List[str]) -> None:
    """Runs the worker host in the foreground until interrupted."""
    WorkerHost(BackgroundWorkerService(), sites=args).run()

def list_workers(args: List[str]) -> None:
    """Prints the workers discovery would start, without staging anything."""
    finder = ExecutableFinder(config.SITES_DIR)
    sites = args or finder.find_sites()
    if not sites:
        print(f"No sites found under '{config.SITES_DIR}'.")
        return
    for site_name in sites:
        print(f"{site_name}:")
        workers = list(finder.find_executables(site_name))
        for exe in workers:
            print(f"  {exe.name:<24} {exe.origin_exe_path}")
        if not workers:
            print("  (no workers)")

def stop_workers(args: List[str]) -> None:
    """Asks a running worker host to shut down."""
    request_shutdown()

def _parse_value(value_str: str) -> Any:
    """Interprets a console value as JSON (numbers, booleans), falling back to the raw string."""
    try:
        return json.loads(value_str)
    except json.JSONDecodeError:
        return value_str

def _config_show() -> None:
    print("\n--- Current Worker Host Configuration ---")
    print(f"(Overrides file: {config.OVERRIDES_JSON_PATH})")
    values = config.as_dict()
    for key in sorted(config.MODIFIABLE_SETTINGS):
        print(f"  {key} = {values.get(key, 'N/A')}")
    print("---")
    print("Use 'config set <KEY> <VALUE>' to change a setting.")
    print("A running host picks up the change on its next restart.")
    print("-----------------------------------------\n")

def _config_set(args: List[str]) -> None:
    if len(args) < 2:
        print("Usage: config set <SETTING_NAME> <VALUE>")
        return

    key, value_str = args[0].upper(), " ".join(args[1:])
    if key not in config.MODIFIABLE_SETTINGS:
        print(f"Error: '{key}' is not a modifiable setting.")
        return

    if config.save_overrides({key: _parse_value(value_str)}):
        print(f"Configuration override for '{key}' saved.")
    else:
        print(f"Failed to save configuration for '{key}'. Check logs for details.")

def _config_help() -> None:
    print("\nConfig Command Help:")
    print("  config show                - Display all modifiable settings.")
    print("  config set KEY VALUE       - Persist a setting to overrides.json.")
    print("  config help                - Show this help message.")

def handle_config_command(args: List[str]) -> None:
    """
    Handles all sub-commands for the 'config' command.

    :param args: A list of string arguments following the 'config' command.
    """
    sub_command = args[0].lower() if args else "show"

    if sub_command == "show":
        _config_show()
    elif sub_command == "set":
        _config_set(args[1:])
    elif sub_command == "help":
        _config_help()
    else:
        print(f"Unknown config sub-command: '{sub_command}'. Type 'config help' for available commands.")

def print_help(args: List[str]) -> None:
    print("\nAvailable commands:")
    print("  run [SITE ...]   - Run the workers of the given sites (default: all) in the foreground.")
    print("  list [SITE ...]  - Show the workers that would be started.")
    print("  stop             - Ask a running host to drain and stop.")
    print("  config [show|set|help] - Show or change the modifiable settings.")
    print("  help             - Show this help message.")
    print("Add --verbose for debug output.\n")


def execute_command(command: str, args: List[str]) -> bool:
    """
    Executes a single console command.

    :param command: The main command string (e.g., 'run', 'list').
    :param args: A list of arguments for the command.
    :return bool: True if the command was known, False otherwise.
    """
    log.debug(f"Executing command: {command}, args: {args}")
    command_map = {
        "run": run_workers,
        "list": list_workers,
        "stop": stop_workers,
        "config": handle_config_command,
        "help": print_help,
    }

    if command not in command_map:
        log.info(f"Unknown command: '{command}'. Type 'help' for a list of commands.")
        return False
    command_map[command](args)
    return True


def main() -> None:
    """The main entry point for the console application."""
    args = sys.argv[1:]
    verbose = "--verbose" in args
    if verbose:
        args.remove("--verbose")
    setup_logging(logging.DEBUG if verbose else logging.INFO)

    if not args:
        print_help([])
        return
    if not execute_command(args[0].lower(), args[1:]):
        sys.exit(2)

if __name__ == "__main__":
    main()
