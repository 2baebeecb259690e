#!/usr/bin/env python3
"""
hoptrace - forward path discovery with TTL-limited probes
=========================================================

USAGE:
    hoptrace [-t | -u | -I] [options] host

PROBES:
    -I, --icmp                 ICMP Echo probes (default, needs root)
    -t, --tcp                  TCP SYN probes via connect()
    -u, --udp                  UDP probes to high ports

EXAMPLES:
    hoptrace example.com
    hoptrace -u -q 1 -m 20 10.0.0.1
    hoptrace -t -p 443 -n example.com
"""

import argparse
import logging
import sys
from dataclasses import replace
from typing import List, Optional

import colorama

from . import __version__
from .config.config_manager import ConfigManager, ConfigurationError
from .core.network_utils import ResolutionError, resolve_host
from .core.probe_base import ProbeMode, ProbeTransportError
from .core.probe_engine import ProbeEngine, create_strategy
from .core.raw_socket import ProbeSocketError, is_root
from .output.console import ConsoleFormatter

logger = logging.getLogger(__name__)
security_logger = logging.getLogger('security')

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


# =============================================================================
# INPUT VALIDATION FUNCTIONS
# =============================================================================

def validate_positive_int(value: str, field_name: str, min_value: int = 1,
                          max_value: Optional[int] = None) -> int:
    try:
        int_value = int(value)
    except (ValueError, TypeError):
        raise argparse.ArgumentTypeError(f"{field_name} must be an integer, got '{value}'")

    if int_value < min_value:
        raise argparse.ArgumentTypeError(f"{field_name} must be at least {min_value}, got {int_value}")

    if max_value is not None and int_value > max_value:
        raise argparse.ArgumentTypeError(f"{field_name} must be at most {max_value}, got {int_value}")

    return int_value


def validate_positive_float(value: str, field_name: str) -> float:
    try:
        float_value = float(value)
    except (ValueError, TypeError):
        raise argparse.ArgumentTypeError(f"{field_name} must be a number, got '{value}'")

    if float_value <= 0:
        raise argparse.ArgumentTypeError(f"{field_name} must be positive, got {float_value}")

    return float_value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hoptrace",
        description="Print the route packets take to a network host",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    probes = parser.add_mutually_exclusive_group()
    probes.add_argument("-I", "--icmp", dest="mode", action="store_const", const="icmp",
                        help="use ICMP Echo probes (default)")
    probes.add_argument("-t", "--tcp", dest="mode", action="store_const", const="tcp",
                        help="use TCP SYN probes")
    probes.add_argument("-u", "--udp", dest="mode", action="store_const", const="udp",
                        help="use UDP probes")

    parser.add_argument("-f", "--first-ttl", dest="first_ttl",
                        type=lambda v: validate_positive_int(v, "First TTL", 1, 255),
                        help="TTL of the first hop (default: 1)")
    parser.add_argument("-m", "--max-ttl", dest="max_ttl",
                        type=lambda v: validate_positive_int(v, "Max TTL", 1, 255),
                        help="maximum number of hops (default: 64)")
    parser.add_argument("-q", "--queries", dest="nqueries",
                        type=lambda v: validate_positive_int(v, "Queries", 1, 10),
                        help="probes per hop (default: 3)")
    parser.add_argument("-w", "--wait", dest="max_wait_time",
                        type=lambda v: validate_positive_float(v, "Wait"),
                        help="maximum seconds to wait for a reply (default: 5)")
    parser.add_argument("--near", dest="near_multiplier",
                        type=lambda v: validate_positive_float(v, "Near multiplier"),
                        help="cap waits at N times the previous hop's fastest reply (default: 10)")
    parser.add_argument("--here", dest="here_multiplier",
                        type=lambda v: validate_positive_float(v, "Here multiplier"),
                        help="cap waits at N times this hop's fastest reply (default: 3)")
    parser.add_argument("-p", "--port", dest="port",
                        type=lambda v: validate_positive_int(v, "Port", 1, 65535),
                        help="base destination port for UDP (33435) or TCP (80) probes")
    parser.add_argument("--fixed-port", dest="tcp_port_increment", action="store_const",
                        const=False, help="do not increment the TCP destination port")
    parser.add_argument("-n", "--numeric", dest="numeric", action="store_const", const=True,
                        help="print hop addresses numerically")
    parser.add_argument("-c", "--config", dest="config", help="JSON configuration file")
    parser.add_argument("-v", "--verbose", action="store_true", help="verbose logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("host", help="destination host name or IPv4 address")
    return parser


def _overrides(args: argparse.Namespace) -> dict:
    return {
        "mode": args.mode,
        "first_ttl": args.first_ttl,
        "max_ttl": args.max_ttl,
        "nqueries": args.nqueries,
        "max_wait_time": args.max_wait_time,
        "near_multiplier": args.near_multiplier,
        "here_multiplier": args.here_multiplier,
        "tcp_port_increment": args.tcp_port_increment,
        "numeric": args.numeric,
    }


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    colorama.just_fix_windows_console()
    manager = ConfigManager(args.config)
    formatter = ConsoleFormatter(colors=sys.stdout.isatty())

    try:
        manager.load()
        level = "DEBUG" if args.verbose else manager.get("output.log_level", "WARNING")
        logging.basicConfig(level=getattr(logging, str(level).upper(), logging.WARNING),
                            format=LOG_FORMAT)
        run_config = manager.build_run_config(args.host, **_overrides(args))
        if args.port is not None:
            port_field = "tcp_base_port" if run_config.mode is ProbeMode.TCP else "udp_base_port"
            run_config = replace(run_config, **{port_field: args.port})
    except ConfigurationError as e:
        print(formatter.error(f"hoptrace: {e}"), file=sys.stderr)
        return EXIT_USAGE

    try:
        target = resolve_host(run_config.hostname)
    except ResolutionError as e:
        print(formatter.error(f"hoptrace: {e}"), file=sys.stderr)
        return EXIT_FAILURE

    formatter = ConsoleFormatter(
        colors=sys.stdout.isatty() and bool(manager.get("output.colors_enabled", True)),
        numeric=run_config.numeric,
    )

    if not is_root():
        security_logger.warning(
            f"Not running as root; {run_config.mode.value} probing needs a raw ICMP socket"
        )

    print(formatter.header(run_config.hostname, target, run_config.max_ttl), flush=True)

    try:
        with create_strategy(run_config, target) as strategy:
            engine = ProbeEngine.from_config(strategy, run_config)
            for record in engine.run():
                print(formatter.format_hop(record), flush=True)
    except (ProbeSocketError, ProbeTransportError) as e:
        logger.error(f"Trace aborted: {e}")
        print(formatter.error(f"hoptrace: {e}"), file=sys.stderr)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        return EXIT_INTERRUPTED

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
