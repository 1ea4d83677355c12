"""
main.py

Command-line entry point: parse ports, start the listeners, record contacts
until interrupted.
"""

import argparse
import asyncio
import signal
import sys
from typing import List, Optional

from tabulate import tabulate
from colorama import Fore, Style, init as colorama_init

from listener import Supervisor
from logger.recorder import JsonlEventRecorder
from parser.ports import InvalidPortSpec, expand_port_args
from utils import app_logger, config
from utils.logger import LoggerSetup

colorama_init()


def setup_argument_parser() -> argparse.ArgumentParser:
    """Configure command-line argument parser."""
    parser = argparse.ArgumentParser(
        prog="sinkhole",
        description="Sinkhole - record who contacts which ports",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s -P tcp 22 80 443                 # Three TCP ports
  %(prog)s -P tcp 8000-8100                 # A range of TCP ports
  %(prog)s -P udp 53,123,161-162            # UDP ports, comma separated
  %(prog)s -P tcp 1-1024 --log-dir /var/log/sinkhole --max-lines 50000
        """
    )

    parser.add_argument(
        "-P", "--protocol",
        type=str,
        choices=["tcp", "udp"],
        required=True,
        help="Protocol to listen on (tcp or udp)"
    )

    parser.add_argument(
        "ports",
        nargs="+",
        help="Ports and inclusive ranges, e.g. 22 80 8000-8010 or 53,123"
    )

    parser.add_argument(
        "--host",
        type=str,
        default=config.get("listener.host", "0.0.0.0"),
        help="Address to bind (default: 0.0.0.0)"
    )

    parser.add_argument(
        "--filename-prefix",
        type=str,
        default=config.get("recorder.filename_prefix", "sinkholeserver"),
        help="Prefix for event log filenames"
    )

    parser.add_argument(
        "--log-dir",
        type=str,
        default=config.get("recorder.log_dir", "./logs"),
        help="Directory for event log files"
    )

    parser.add_argument(
        "--max-lines",
        type=int,
        default=config.get("recorder.max_lines", 100000),
        help="Maximum number of lines per event log file"
    )

    parser.add_argument(
        "--rotation-time",
        type=int,
        default=config.get("recorder.rotation_time", 60),
        help="Event log rotation time in minutes"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log every contact"
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress non-essential output"
    )

    return parser


def print_listener_table(supervisor: Supervisor, quiet: bool = False) -> None:
    """Show which ports came up, coloured by state."""
    if quiet:
        return

    rows = []
    for protocol, port, state, error in supervisor.summary():
        colour = Fore.GREEN if state == "running" else Fore.RED
        rows.append([port, protocol, f"{colour}{state}{Style.RESET_ALL}", error])

    print(tabulate(rows, headers=["Port", "Protocol", "State", "Error"], tablefmt="grid"))


async def serve(supervisor: Supervisor, quiet: bool = False) -> int:
    """Run the supervisor until SIGINT/SIGTERM."""
    loop = asyncio.get_running_loop()
    shutdown = asyncio.Event()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, shutdown.set)
        except NotImplementedError:
            # Windows event loops: Ctrl+C surfaces as KeyboardInterrupt instead
            pass

    await supervisor.start()
    print_listener_table(supervisor, quiet)

    if not supervisor.running:
        await supervisor.stop()
        return 1

    await supervisor.run(shutdown)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main execution function."""
    parser = setup_argument_parser()
    args = parser.parse_args(argv)

    LoggerSetup.set_verbosity(args.verbose, args.quiet)

    quiet = args.quiet

    try:
        ports = expand_port_args(args.ports)
    except InvalidPortSpec as e:
        app_logger.error(f"Invalid port specification: {e}")
        print(f"{Fore.RED}[!] Invalid port specification:{Style.RESET_ALL} {e}", file=sys.stderr)
        return 1

    try:
        recorder = JsonlEventRecorder(
            log_dir=args.log_dir,
            filename_prefix=args.filename_prefix,
            max_lines=args.max_lines,
            rotation_time=args.rotation_time,
        )
    except (OSError, ValueError) as e:
        app_logger.error(f"Failed to initialize event recorder: {e}")
        print(f"{Fore.RED}[!] Recorder Error:{Style.RESET_ALL} {e}", file=sys.stderr)
        return 1

    app_logger.info(f"Protocol: {args.protocol}, Ports: {len(ports)}")

    supervisor = Supervisor(args.protocol, ports, recorder, host=args.host)

    try:
        with recorder:
            return asyncio.run(serve(supervisor, quiet))
    except KeyboardInterrupt:
        app_logger.warning("Interrupted by user")
        if not quiet:
            print(f"\n{Fore.YELLOW}[!] Closing sinkhole servers.{Style.RESET_ALL}")
        return 0


if __name__ == "__main__":
    sys.exit(main())
