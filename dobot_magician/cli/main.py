"""Command-line interface for the Dobot Magician driver."""

import argparse
import logging

import dobot_magician.config as cfg
from dobot_magician.client.discovery import discover
from dobot_magician.client.sync_client import DobotClient
from dobot_magician.config import TRACE
from dobot_magician.errors import DobotError

logger = logging.getLogger("dobot_magician.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dobot-magician", description="Dobot Magician tools")

    # Verbose logging options
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity; -v=INFO, -vv=DEBUG, -vvv=TRACE",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Enable quiet logging (WARNING level)",
    )
    parser.add_argument(
        "--log-level",
        choices=["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set specific log level",
    )
    parser.add_argument("--baudrate", type=int, default=None, help="Serial baudrate")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("discover", help="Find WIFI modules on the local networks")
    p.add_argument("--timeout", type=float, default=cfg.DISCOVERY_TIMEOUT_S, help="Reply timeout (s)")

    p = sub.add_parser("info", help="Print device identity, pose and alarms")
    p.add_argument("endpoint", nargs="?", help="Serial path or host:port (default: saved endpoint)")

    p = sub.add_parser("home", help="Run the homing sequence and wait for it")
    p.add_argument("endpoint", nargs="?", help="Serial path or host:port (default: saved endpoint)")
    p.add_argument("--timeout", type=float, default=None, help="Give up after this many seconds")

    p = sub.add_parser("clear-alarms", help="Clear all alarms")
    p.add_argument("endpoint", nargs="?", help="Serial path or host:port (default: saved endpoint)")

    p = sub.add_parser("save-endpoint", help="Remember an endpoint for later commands")
    p.add_argument("endpoint", help="Serial path or host:port")

    return parser


def _log_level(args: argparse.Namespace) -> int:
    # Precedence:
    #   1) Explicit --log-level
    #   2) Verbose / quiet flags
    #   3) Environment-driven TRACE (DOBOT_TRACE=1 via TRACE_ENABLED)
    #   4) Default WARNING
    if args.log_level:
        if args.log_level == "TRACE":
            cfg.TRACE_ENABLED = True
            return TRACE
        return getattr(logging, args.log_level)
    if args.verbose >= 3:
        cfg.TRACE_ENABLED = True
        return TRACE
    if args.verbose >= 2:
        return logging.DEBUG
    if args.verbose == 1:
        return logging.INFO
    if args.quiet:
        return logging.WARNING
    if cfg.TRACE_ENABLED:
        return TRACE
    return logging.WARNING


def _cmd_discover(args: argparse.Namespace) -> int:
    found = discover(args.timeout)
    if not found:
        print("No Dobot found")
        return 1
    for host, port in found:
        print(f"{host}:{port}")
    return 0


def _cmd_info(args: argparse.Namespace) -> int:
    with DobotClient(args.endpoint, baudrate=args.baudrate) as bot:
        pose = bot.get_pose()
        print(f"endpoint: {bot.endpoint}")
        print(f"serial:   {bot.get_device_sn()}")
        print(f"name:     {bot.get_device_name()}")
        print(f"version:  {bot.get_device_version()}")
        print(f"pose:     x={pose.x:.2f} y={pose.y:.2f} z={pose.z:.2f} r={pose.r:.2f}")
        print(f"joints:   {', '.join(f'{a:.2f}' for a in pose.joint_angle)}")
        alarms = bot.active_alarms()
        if alarms:
            print("alarms:   " + ", ".join(f"{g}-{c:#04x}" for g, c in alarms))
        else:
            print("alarms:   none")
    return 0


def _cmd_home(args: argparse.Namespace) -> int:
    with DobotClient(args.endpoint, baudrate=args.baudrate) as bot:
        index = bot.home(wait=True, timeout=args.timeout)
        logger.info(f"Homing finished (queue index {index})")
    return 0


def _cmd_clear_alarms(args: argparse.Namespace) -> int:
    with DobotClient(args.endpoint, baudrate=args.baudrate) as bot:
        bot.clear_all_alarms_state()
        remaining = bot.active_alarms()
    if remaining:
        print("alarms still active: " + ", ".join(f"{g}-{c:#04x}" for g, c in remaining))
        return 1
    return 0


def _cmd_save_endpoint(args: argparse.Namespace) -> int:
    return 0 if cfg.save_endpoint(args.endpoint) else 1


_COMMANDS = {
    "discover": _cmd_discover,
    "info": _cmd_info,
    "home": _cmd_home,
    "clear-alarms": _cmd_clear_alarms,
    "save-endpoint": _cmd_save_endpoint,
}


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the dobot-magician command."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=_log_level(args),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        return _COMMANDS[args.command](args)
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130
    except (DobotError, ValueError, TimeoutError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
