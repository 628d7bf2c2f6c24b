"""CLI entry and command wiring for llm-cli."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
from typing import Any, Callable

from . import __version__
from .ai.registry import build_default_registry
from .ai.runtime import send_prompt
from .config import SETTABLE_KEYS, get_config_path, load_config, save_config
from .constants import (
    APP_NAME,
    EXIT_ERROR,
    EXIT_INTERRUPTED,
    EXIT_OK,
    LIMIT_MODES,
)
from .diagnostics import Diagnostics
from .domain.profile import SECRET_FIELDS, Profile
from .errors import CancellationError
from .logging import log_event, sanitize_error_message, setup_logging
from .prompts import PromptSources, resolve_prompts

SECRET_MASK = "********"

Handler = Callable[[argparse.Namespace], int]


def _emit_stdout(text: str) -> None:
    sys.stdout.write(text)
    sys.stdout.flush()


def _masked(profile: Profile) -> dict[str, Any]:
    data = profile.to_dict()
    for key in SECRET_FIELDS:
        if data.get(key):
            data[key] = SECRET_MASK
    return data


# ============================================================================
# prompt / ask
# ============================================================================


def cmd_prompt(args: argparse.Namespace) -> int:
    """Send one prompt pair to the selected profile's backend."""
    config = load_config(get_config_path(args.config))
    profile = config.get_profile(args.profile)
    limits = profile.limits.with_overrides(
        on_input_exceeded=args.on_input_exceeded,
        on_output_exceeded=args.on_output_exceeded,
    )
    profile = profile.replace(limits=limits)

    diagnostics = Diagnostics(sys.stderr)
    prompts = resolve_prompts(
        PromptSources(
            inline=args.user_prompt or "",
            file_path=args.user_prompt_file or "",
            positional=args.text or "",
        ),
        PromptSources(
            inline=args.system_prompt or "",
            file_path=args.system_prompt_file or "",
        ),
        limits=profile.limits,
        diagnostics=diagnostics,
        stdin=sys.stdin,
    )

    provider = build_default_registry().resolve(profile)
    asyncio.run(
        send_prompt(
            provider,
            profile,
            prompts.system,
            prompts.user,
            emit=_emit_stdout,
            diagnostics=diagnostics,
            stream=args.stream,
        )
    )
    return EXIT_OK


# ============================================================================
# profile
# ============================================================================


def cmd_profile_list(args: argparse.Namespace) -> int:
    config = load_config(get_config_path(args.config))
    for name in sorted(config.profiles):
        marker = "*" if name == config.current_profile else " "
        print(f"{marker} {name}")
    return EXIT_OK


def cmd_profile_show(args: argparse.Namespace) -> int:
    """Print one profile as JSON with secret fields masked."""
    config = load_config(get_config_path(args.config))
    name = args.name or config.current_profile
    profile = config.get_profile(name)
    print(f"Profile: {name}")
    print(json.dumps(_masked(profile), indent=2, ensure_ascii=False))
    return EXIT_OK


def cmd_profile_use(args: argparse.Namespace) -> int:
    path = get_config_path(args.config)
    config = load_config(path)
    config.use(args.name)
    save_config(config, path)
    print(f"Switched to profile: {args.name}")
    return EXIT_OK


def cmd_profile_add(args: argparse.Namespace) -> int:
    path = get_config_path(args.config)
    config = load_config(path)
    config.add(args.name)
    save_config(config, path)
    print(f"Profile '{args.name}' added (copied from the default profile).")
    return EXIT_OK


def cmd_profile_remove(args: argparse.Namespace) -> int:
    path = get_config_path(args.config)
    config = load_config(path)
    config.remove(args.name)
    save_config(config, path)
    print(f"Profile '{args.name}' removed.")
    return EXIT_OK


def cmd_profile_set(args: argparse.Namespace) -> int:
    path = get_config_path(args.config)
    config = load_config(path)
    name = args.profile or config.current_profile
    config.set_value(args.key, args.value, name=name)
    save_config(config, path)
    shown = SECRET_MASK if args.key in SECRET_FIELDS else args.value
    print(f"Set {args.key} = {shown} in profile '{name}'.")
    return EXIT_OK


# ============================================================================
# providers
# ============================================================================


def cmd_providers(args: argparse.Namespace) -> int:
    for name in build_default_registry().names():
        print(name)
    return EXIT_OK


# ============================================================================
# Parser and entry point
# ============================================================================


def _add_prompt_parser(subparsers: Any, name: str, *, legacy_flags: bool = False) -> None:
    """Register a prompt-sending command.

    ``legacy_flags`` also accepts ``--prompt``/``--prompt-file`` as spellings
    of ``--user-prompt``/``--user-prompt-file`` (the ``ask`` command).
    """
    user_flags = ["-p", "--user-prompt"]
    user_file_flags = ["-f", "--user-prompt-file"]
    if legacy_flags:
        user_flags.append("--prompt")
        user_file_flags.append("--prompt-file")

    parser = subparsers.add_parser(
        name,
        help="Send a prompt to the configured LLM",
        description=(
            "Send a prompt to the LLM of the current profile. The user prompt "
            "comes from -p, -f, the positional argument, or piped stdin, in "
            "that order."
        ),
    )
    parser.add_argument("text", nargs="?", help="User prompt (positional form)")
    parser.add_argument(*user_flags, dest="user_prompt", help="User prompt to send to the LLM")
    parser.add_argument(
        *user_file_flags,
        dest="user_prompt_file",
        help="Path to a file containing the user prompt. Use '-' for stdin.",
    )
    parser.add_argument("-P", "--system-prompt", help="System prompt to send to the LLM")
    parser.add_argument(
        "-F",
        "--system-prompt-file",
        help="Path to a file containing the system prompt.",
    )
    parser.add_argument("--stream", action="store_true", help="Enable streaming response")
    parser.add_argument("--profile", help="Use this profile instead of the current one")
    parser.add_argument(
        "--on-input-exceeded",
        choices=LIMIT_MODES,
        help="Override the profile's prompt size limit mode",
    )
    parser.add_argument(
        "--on-output-exceeded",
        choices=LIMIT_MODES,
        help="Override the profile's response size limit mode",
    )
    parser.set_defaults(handler=cmd_prompt)


def _add_profile_parser(subparsers: Any) -> None:
    parser = subparsers.add_parser("profile", help="Manage configuration profiles")
    actions = parser.add_subparsers(dest="profile_command", metavar="ACTION")
    actions.required = True

    actions.add_parser("list", help="List profiles").set_defaults(handler=cmd_profile_list)

    show = actions.add_parser("show", help="Show a profile (secrets masked)")
    show.add_argument("name", nargs="?", help="Profile name (default: current)")
    show.set_defaults(handler=cmd_profile_show)

    use = actions.add_parser("use", help="Switch the current profile")
    use.add_argument("name")
    use.set_defaults(handler=cmd_profile_use)

    add = actions.add_parser("add", help="Add a profile copied from 'default'")
    add.add_argument("name")
    add.set_defaults(handler=cmd_profile_add)

    remove = actions.add_parser("remove", help="Remove a profile")
    remove.add_argument("name")
    remove.set_defaults(handler=cmd_profile_remove)

    set_parser = actions.add_parser(
        "set",
        help="Set a profile key",
        description=f"Valid keys: {', '.join(SETTABLE_KEYS)}",
    )
    set_parser.add_argument("key")
    set_parser.add_argument("value")
    set_parser.add_argument("--profile", help="Profile to modify (default: current)")
    set_parser.set_defaults(handler=cmd_profile_set)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Send prompts to local and cloud LLM backends from the shell.",
    )
    parser.add_argument("--config", help="Path to config.json (default: ~/.config/llm-cli)")
    parser.add_argument(
        "--log",
        help="Write a structured log to this file (or a new file in this directory)",
    )
    parser.add_argument("--version", action="version", version=f"{APP_NAME} {__version__}")

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    _add_prompt_parser(subparsers, "prompt")
    _add_prompt_parser(subparsers, "ask", legacy_flags=True)
    _add_profile_parser(subparsers)
    subparsers.add_parser(
        "providers", help="List registered backend names"
    ).set_defaults(handler=cmd_providers)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    handler: Handler | None = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        return EXIT_OK

    setup_logging(args.log)
    app_started = time.perf_counter()
    log_event(
        "app_start",
        level=logging.INFO,
        command=args.command,
        profile=getattr(args, "profile", None),
        config_file=str(get_config_path(args.config)),
        log_file=args.log,
    )

    def _uptime() -> float:
        return round((time.perf_counter() - app_started) * 1000, 1)

    try:
        code = handler(args)
    except (KeyboardInterrupt, CancellationError) as e:
        print("\nInterrupted", file=sys.stderr)
        log_event(
            "app_stop",
            level=logging.INFO,
            reason="interrupted",
            uptime_ms=_uptime(),
            error_type=type(e).__name__,
        )
        return EXIT_INTERRUPTED
    except Exception as e:
        print(f"Error: {sanitize_error_message(str(e))}", file=sys.stderr)
        log_event(
            "app_stop",
            level=logging.ERROR,
            reason="error",
            uptime_ms=_uptime(),
            error_type=type(e).__name__,
            error=str(e),
        )
        logging.error("Command failed: %s", e, exc_info=True)
        return EXIT_ERROR

    log_event("app_stop", level=logging.INFO, reason="normal", uptime_ms=_uptime())
    return code


if __name__ == "__main__":
    sys.exit(main())
