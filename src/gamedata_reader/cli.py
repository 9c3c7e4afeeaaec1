"""
Command-line interface for gamedata_reader.

Commands:
- watch: Poll for a supported game and print its live state
- identify: Run one discovery pass and report what was found
- processes: List running emulator processes
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

from .config import DEFAULT_CONFIG_PATH, ReaderConfig
from .errors import MemoryReaderError, PlatformNotSupportedError

log = logging.getLogger(__name__)


def get_arg_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="gamedata-reader",
        description="Read live rank and enemy data from games running in bsnes or MAME",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=str(DEFAULT_CONFIG_PATH),
        help="Path to reader config",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Watch command
    watch_parser = subparsers.add_parser(
        "watch",
        help="Poll for a supported game and print its live state",
    )
    watch_parser.add_argument(
        "--duration", "-d",
        type=float,
        default=0.0,
        help="Seconds to run (default: until Ctrl+C)",
    )
    watch_parser.add_argument(
        "--timer-ticks",
        type=int,
        help="Ticks per update, overrides the config (5..125)",
    )
    watch_parser.add_argument(
        "--save-trace",
        type=str,
        help="Save event trace to file",
    )

    # Identify command
    identify_parser = subparsers.add_parser(
        "identify",
        help="Run one discovery pass and report what was found",
    )
    identify_parser.add_argument(
        "--no-delay",
        action="store_true",
        help="Skip the settle delay before walking the pointer chain",
    )

    # Processes command
    subparsers.add_parser(
        "processes",
        help="List running emulator processes",
    )

    return parser


def cmd_watch(args: argparse.Namespace, config: ReaderConfig) -> int:
    """Run watch command."""
    from .debug.trace import Tracer
    from .formatting import format_session, format_state
    from .memory.process import WindowsProcessApi
    from .runtime.control import PollController, PollState

    api = WindowsProcessApi()
    if not api.supports_memory_read():
        raise PlatformNotSupportedError("Process memory reading requires Windows.")

    trace_path = args.save_trace or config.debug.trace_file
    tracer = Tracer(enabled=bool(trace_path))
    tracer.start()

    controller = PollController(
        api,
        timer_ticks=args.timer_ticks or config.polling.timer_ticks,
        history_length=config.history.data_points,
        settle_delay=config.polling.settle_delay_s,
        tracer=tracer,
    )
    tick = config.polling.tick_ms / 1000.0

    print(f"Searching for supported games ({controller.updates_per_second:.2f} updates/sec)...")
    print("Press Ctrl+C to stop")

    start_time = time.perf_counter()
    next_tick = start_time
    state = controller.state
    try:
        while not args.duration or time.perf_counter() - start_time < args.duration:
            if controller.tick():
                session = controller.session
                if controller.state is not state:
                    state = controller.state
                    if state is PollState.ATTACHED and session is not None:
                        print(f"Found {format_session(session)}")
                    else:
                        print("Game closed. Searching for supported games...")
                elif session is not None:
                    print(format_state(session))

            next_tick += tick
            delay = next_tick - time.perf_counter()
            if delay > 0:
                time.sleep(delay)
            else:
                # Fell behind (settle delay); restart the schedule
                next_tick = time.perf_counter()
    except KeyboardInterrupt:
        print("\nStopped")
    finally:
        controller.close()
        if trace_path:
            tracer.save(trace_path)
            counts = tracer.get_summary()["event_counts"]
            print(f"Trace saved to {trace_path} ({counts.get('error', 0)} errors)")

    stats = controller.stats
    print(f"Polls: {stats['polls']}  attachments: {stats['attachments']}  detachments: {stats['detachments']}")
    return 0


def cmd_identify(args: argparse.Namespace, config: ReaderConfig) -> int:
    """Run identify command."""
    from .formatting import format_session
    from .memory.discovery import find_game
    from .memory.process import WindowsProcessApi

    api = WindowsProcessApi()
    if not api.supports_memory_read():
        raise PlatformNotSupportedError("Process memory reading requires Windows.")

    session = find_game(
        api,
        history_length=config.history.data_points,
        settle_delay=0.0 if args.no_delay else config.polling.settle_delay_s,
    )
    if session is None:
        print("No supported game found")
        return 1

    with session:
        print(f"Found {format_session(session)}")
        print(f"Pointer chain: {session.build.chain_for(session.game)}")
    return 0


def cmd_processes(args: argparse.Namespace, config: ReaderConfig) -> int:
    """Run processes command."""
    from .errors import ProcessAccessError
    from .memory.discovery import classify_process
    from .memory.process import RemoteProcess, WindowsProcessApi

    api = WindowsProcessApi()
    if not api.supports_memory_read():
        raise PlatformNotSupportedError("Process memory reading requires Windows.")

    found = 0
    for pid in api.enum_process_ids():
        try:
            process = RemoteProcess.open(api, pid)
        except ProcessAccessError:
            continue
        with process:
            try:
                profile = classify_process(process)
                if profile is None:
                    continue
                module = process.module_info()
            except MemoryReaderError as exc:
                log.debug("Skipping pid %d: %s", pid, exc)
                continue
            try:
                version = profile.version_for(module.size)
                build = f"build {version}" if version is not None else "supported"
            except MemoryReaderError:
                build = "unsupported build"
            print(f"{pid:>6}  {profile.executable:<10}  image 0x{module.size:X}  {build}")
            found += 1

    if not found:
        print("No emulator processes found")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    from .debug.trace import setup_logging

    parser = get_arg_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    config = ReaderConfig.load(Path(args.config))
    setup_logging(logging.DEBUG if args.verbose else logging.INFO, config.debug.log_file or None)

    commands = {
        "watch": cmd_watch,
        "identify": cmd_identify,
        "processes": cmd_processes,
    }

    cmd_func = commands.get(args.command)
    if cmd_func is None:
        print(f"Unknown command: {args.command}")
        return 1

    try:
        return cmd_func(args, config)
    except PlatformNotSupportedError as exc:
        print(exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
