"""CLI entry point for wacraft-reminders."""

from __future__ import annotations

import argparse
import asyncio
import os
import signal
import subprocess
import sys
from pathlib import Path

import aiohttp
import yaml
from pydantic import ValidationError

from wacraft_reminders.app import ReminderApp
from wacraft_reminders.config import AppConfig, init_config_files, load_config, load_reminders
from wacraft_reminders.core.errors import ReminderError
from wacraft_reminders.log import setup_logging
from wacraft_reminders.pid import read_pid_file, remove_pid_file, write_pid_file
from wacraft_reminders.reminders.models import rule_list

DEFAULT_REMINDERS_PATH = "./data/reminders.yaml"


def _add_config_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-c", "--config", default="config.yaml", help="Path to config file")
    parser.add_argument("-e", "--env", default=".env", help="Path to .env file")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wacraft-reminders",
        description="Send reminders to inactive Wacraft contacts via WhatsApp, email or webhooks",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # config
    config_parser = subparsers.add_parser("config", help="Manage local configuration files")
    config_sub = config_parser.add_subparsers(dest="action", required=True)
    init_parser = config_sub.add_parser("init", help="Create default configuration files")
    init_parser.add_argument("--force", action="store_true", help="Overwrite existing files")
    _add_config_args(init_parser)
    _add_config_args(config_sub.add_parser("view", help="Show configuration and reminder rules"))
    _add_config_args(config_sub.add_parser("path", help="Show the configuration file path"))

    # reminders
    reminders_parser = subparsers.add_parser("reminders", help="Send reminders manually")
    reminders_sub = reminders_parser.add_subparsers(dest="action", required=True)
    send_parser = reminders_sub.add_parser("send", help="Send the applicable reminder to one contact")
    send_parser.add_argument("--contact-id", required=True, help="Messaging product contact ID")
    send_parser.add_argument("--mock", action="store_true", help=argparse.SUPPRESS)
    _add_config_args(send_parser)

    # daemon
    daemon_parser = subparsers.add_parser("daemon", help="Run the background reminder daemon")
    daemon_sub = daemon_parser.add_subparsers(dest="action", required=True)
    run_parser = daemon_sub.add_parser("run", help="Check inactive contacts periodically")
    run_parser.add_argument("--interval", type=int, help="Seconds between cycles")
    run_parser.add_argument("--batch-size", type=int, help="Conversations fetched per page")
    run_parser.add_argument("--detached", action="store_true", help="Run in the background")
    run_parser.add_argument("--internal-run-detached", action="store_true", help=argparse.SUPPRESS)
    run_parser.add_argument("--mock", action="store_true", help=argparse.SUPPRESS)
    _add_config_args(run_parser)
    _add_config_args(daemon_sub.add_parser("stop", help="Stop the detached daemon"))
    _add_config_args(daemon_sub.add_parser("logs", help="Show the detached daemon's log"))

    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    match (args.command, args.action):
        case ("config", "init"):
            _init_config(args.config, args.force)
        case ("config", "view"):
            _view_config(_load_or_exit(args.config, args.env))
        case ("config", "path"):
            print(Path(args.config).resolve())
        case ("reminders", "send"):
            _send_reminder(_load_or_exit(args.config, args.env), args.contact_id, args.mock)
        case ("daemon", "run"):
            _run_daemon(args)
        case ("daemon", "stop"):
            _stop_daemon(_load_or_exit(args.config, args.env))
        case ("daemon", "logs"):
            _show_logs(_load_or_exit(args.config, args.env))


def _load_or_exit(config_path: str, env_path: str) -> AppConfig:
    try:
        return load_config(config_path, env_path)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Run 'wacraft-reminders config init' to create default configuration files.")
        sys.exit(1)
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)


def _init_config(config_path: str, force: bool) -> None:
    try:
        init_config_files(config_path, DEFAULT_REMINDERS_PATH, force=force)
    except FileExistsError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    print(f"Created default settings file at: {Path(config_path).resolve()}")
    print(f"Created empty reminders file at: {Path(DEFAULT_REMINDERS_PATH).resolve()}")
    print("\nConfiguration initialized! Edit the files and set your credentials in .env.")


def _view_config(config: AppConfig) -> None:
    settings = config.model_dump(mode="json")
    for section, key in (("wacraft", "password"), ("email", "smtp_password")):
        if settings[section].get(key):
            settings[section][key] = "********"
    print("--- Settings ---")
    print(yaml.safe_dump(settings, sort_keys=False, allow_unicode=True))
    print("--- Reminders ---")
    try:
        rules = load_reminders(config.reminders_file)
    except Exception as e:
        print(f"Could not load reminders from {config.reminders_file}: {e}")
        return
    data = rule_list.dump_python(rules, mode="json", by_alias=True, exclude_none=True)
    print(yaml.safe_dump(data, sort_keys=False, allow_unicode=True))


def _send_reminder(config: AppConfig, contact_id: str, mock: bool) -> None:
    setup_logging(config.log_level)

    async def _async_main() -> None:
        app = ReminderApp(config, mock=mock)
        try:
            result = await app.send_reminder(contact_id)
        finally:
            await app.client.close()
        rule = f" (rule '{result.rule_name}')" if result.rule_name else ""
        print(f"Contact {result.contact_id}: {result.status}{rule}")

    try:
        asyncio.run(_async_main())
    except (
        ReminderError,
        aiohttp.ClientError,
        asyncio.TimeoutError,
        ValidationError,
        yaml.YAMLError,
    ) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def _run_daemon(args: argparse.Namespace) -> None:
    config = _load_or_exit(args.config, args.env)
    if args.interval is not None:
        config.daemon.interval = args.interval
    if args.batch_size is not None:
        config.daemon.batch_size = args.batch_size

    if args.detached and not args.internal_run_detached:
        _detach(args, config)
        return

    detached = args.internal_run_detached
    setup_logging(config.log_level, config.daemon.log_file if detached else None)
    if detached:
        write_pid_file(config.daemon.pid_file)
    else:
        print("Running daemon in foreground. Press Ctrl+C to stop.")

    async def _async_main() -> None:
        loop = asyncio.get_running_loop()
        stop_event = asyncio.Event()

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop_event.set)
            except NotImplementedError:
                # Windows doesn't support add_signal_handler
                signal.signal(sig, lambda s, f: loop.call_soon_threadsafe(stop_event.set))

        app = ReminderApp(config, mock=args.mock)
        await app.start()
        await stop_event.wait()
        await app.stop()

    try:
        asyncio.run(_async_main())
    finally:
        if detached:
            remove_pid_file(config.daemon.pid_file)


def _detach(args: argparse.Namespace, config: AppConfig) -> None:
    """Re-spawn this CLI as a background process running the daemon."""
    cmd = [
        sys.executable,
        "-m",
        "wacraft_reminders",
        "daemon",
        "run",
        "--internal-run-detached",
        "--interval",
        str(config.daemon.interval),
        "--batch-size",
        str(config.daemon.batch_size),
        "--config",
        str(Path(args.config).resolve()),
        "--env",
        str(Path(args.env).resolve()),
    ]
    if args.mock:
        cmd.append("--mock")

    process = subprocess.Popen(
        cmd,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
    )
    print(f"Daemon started in the background (PID {process.pid}).")
    print(f"Logs: {Path(config.daemon.log_file).resolve()}")


def _stop_daemon(config: AppConfig) -> None:
    try:
        pid = read_pid_file(config.daemon.pid_file)
    except (FileNotFoundError, ValueError):
        print("Daemon does not appear to be running (no PID file found).", file=sys.stderr)
        sys.exit(1)

    try:
        os.kill(pid, signal.SIGTERM)
    except ProcessLookupError:
        print(f"No process with PID {pid}; removing stale PID file.", file=sys.stderr)
    remove_pid_file(config.daemon.pid_file)
    print(f"Daemon process {pid} stopped.")


def _show_logs(config: AppConfig) -> None:
    log_path = Path(config.daemon.log_file)
    if not log_path.exists():
        print("Log file not found. Has the daemon run yet?", file=sys.stderr)
        sys.exit(1)
    print(f"--- Last logs from {log_path} ---")
    print(log_path.read_text(encoding="utf-8"))


if __name__ == "__main__":
    main()
