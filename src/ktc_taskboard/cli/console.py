# src/ktc_taskboard/cli/console.py

from __future__ import annotations

import logging
import sys
from datetime import datetime

from ..core.state import AppState
from .commands import registry as command_registry

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    if sys.stdout.isatty():
        sys.stdout.write("\033[1A\033[2K\r")
        sys.stdout.write(line + "\n")
        sys.stdout.flush()
    else:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def _prompt(state: AppState) -> str:
    user = state.session.current_user
    return f"{user.username}> " if user else "> "


def run_console_loop(state: AppState) -> None:
    logger.info("Console started.")
    _print_ts(f"[{state.settings.app_name}] Use /help for commands. Use /exit to quit.\n")

    def emit(text: str) -> None:
        # Immediate feedback for slow operations (directory sync, LLM calls)
        print(f"[{_ts_local()}] {text}", flush=True)

    while True:
        try:
            prompt = _prompt(state)
            line = input(prompt).strip()
            _rewrite_prev_line(f"[{_ts_local()}] {prompt}{line}")
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not line:
            continue

        if line.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            response = command_registry.handle(state, line, emit=emit)
        except Exception:
            logger.exception("Command handler crashed.")
            response = "Internal error while handling a command."

        if response is None:
            response = "Commands start with '/'. Use /help to list available commands."
        print(f"[{_ts_local()}] {response}")

    logger.info("Console finished.")
