#!/usr/bin/env python3
"""
PactTap CLI

Command-line interface for PactTap.

Commands:
    proxy       - Start a recording proxy that generates a consumer contract

Examples:
    # Record traffic to a provider stub on port 3000 through port 3002
    pacttap proxy --path pacts/web-orders.json --port 3002 \\
        --target http://localhost:3000 --name web --provider-name orders

    # Same, with the values taken from .pacttaprc.yaml
    pacttap proxy
"""

import argparse
import logging
import sys

from . import __version__
from .common.errors import PactTapError
from .proxy.session import ProxySession
from .proxy.settings import RC_FILE_NAME, load_rc_file, resolve_settings


LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'


def setup_logging(level: str) -> None:
    """Configure the pacttap loggers."""
    logging.basicConfig(format=LOG_FORMAT, stream=sys.stderr)
    logging.getLogger("pacttap").setLevel(getattr(logging, level.upper()))


def cmd_proxy(args) -> int:
    """
    Start the recording proxy and synthesize a contract on every Ctrl+C.

    Args:
        args: Parsed command-line arguments

    Returns:
        Process exit code
    """
    rc = {} if args.ignore_config else load_rc_file(RC_FILE_NAME)
    flags = {
        'path': args.path,
        'port': args.port,
        'target': args.target,
        'name': args.name,
        'provider-name': args.provider_name,
        'work-dir': args.work_dir,
        'ready-timeout': args.ready_timeout,
        'quiet': args.quiet,
    }
    settings = resolve_settings(flags, rc)

    session = ProxySession(settings)
    session.run()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='pacttap',
        description="PactTap - consumer contracts from recorded traffic",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Record consumer traffic against a provider stub
  %(prog)s proxy -p pacts/web-orders.json -o 3002 -t http://localhost:3000 -n web -m orders

  # Point the consumer at http://localhost:3002, exercise it, then hit Ctrl+C
  # to write the contract. Stop the proxy by stopping the recording engine.
        """
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--log-level', default='warning', choices=['debug', 'info', 'warning', 'error'],
                        help='Log level (default: warning)')

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # --- PROXY command ---
    proxy_parser = subparsers.add_parser(
        'proxy',
        help='Start a proxy that automatically generates a consumer contract',
        description="Start a transparent HTTP proxy between a consumer service and a mock or "
                    "stub of a provider service. Requests and responses are recorded, and a "
                    "consumer contract is generated from them every time Ctrl+C is pressed.",
    )
    proxy_parser.add_argument('-p', '--path', help='Relative path and filename the consumer contract is written to')
    proxy_parser.add_argument('-o', '--port', help='Port the proxy should run on')
    proxy_parser.add_argument('-t', '--target', help='URL of the running provider stub or mock')
    proxy_parser.add_argument('-n', '--name', help='Canonical name of the consumer service')
    proxy_parser.add_argument('-m', '--provider-name', dest='provider_name',
                              help='Canonical name of the provider service the stub represents')
    proxy_parser.add_argument('-i', '--ignore-config', dest='ignore_config', action='store_true',
                              help=f'Ignore {RC_FILE_NAME} if it exists')
    proxy_parser.add_argument('--work-dir', dest='work_dir',
                              help='Directory for engine config and captures (default: .pacttap)')
    proxy_parser.add_argument('--ready-timeout', dest='ready_timeout', type=float,
                              help='Seconds to wait for the proxy to accept connections, 0 to skip (default: 10)')
    proxy_parser.add_argument('--quiet', action='store_true', default=None,
                              help='Do not print proxied exchanges')

    return parser


def main(argv=None) -> int:
    """Parse arguments, dispatch to the command and map errors to exit codes."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    if args.command != 'proxy':
        parser.print_help()
        return 1

    try:
        return cmd_proxy(args)
    except PactTapError as e:
        logging.getLogger("pacttap").debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr, flush=True)
        return 1


if __name__ == '__main__':
    sys.exit(main())
