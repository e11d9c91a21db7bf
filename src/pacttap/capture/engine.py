#!/usr/bin/env python3
"""
PactTap recording engine.

Starts mitmdump as a reverse proxy in front of the provider stub, with the
PactTap addon recording every exchange into the data directory.

Usage:
    python -m pacttap.capture.engine --configfile proxy-config.json --datadir data

Requirements:
    pip install mitmproxy
"""

import argparse
import os
import sys
from pathlib import Path
from typing import List

from mitmproxy.tools import main as mitmain

from ..common.errors import ConfigError
from .pacttap_addon import ENV_CONFIG_PATH, ENV_DATA_DIR, ENV_QUIET
from ..proxy.config import ProxyConfig, load_proxy_config


ADDON_PATH = Path(__file__).parent / 'pacttap_addon.py'

# Exit code for an unusable engine configuration
CONFIG_ERROR_EXIT_CODE = 2


def parse_args(argv=None):
    """
    Parse command-line arguments.

    Returns:
        Namespace object with parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="PactTap recording engine (mitmproxy reverse proxy)",
    )
    parser.add_argument(
        '--configfile',
        required=True,
        metavar='PATH',
        help='Engine configuration written by the proxy command'
    )
    parser.add_argument(
        '--datadir',
        required=True,
        metavar='DIR',
        help='Directory the captured exchanges are written to'
    )
    parser.add_argument(
        '--quiet',
        action='store_true',
        help='Do not print one line per proxied exchange'
    )
    return parser.parse_args(argv)


def build_mitmdump_args(config: ProxyConfig, quiet: bool = False) -> List[str]:
    """
    Build mitmdump's command line for a reverse proxy described by config.

    Args:
        config: Engine configuration
        quiet: Reduce mitmproxy's own logging

    Returns:
        argv for mitmdump, starting with the program name
    """
    args = [
        'mitmdump',
        '--mode', f'reverse:{config.target.to}',
        '--listen-port', str(config.port),
        '--set', 'ssl_insecure=true',  # provider stubs often use self-signed certs
    ]
    if quiet:
        args.append('--quiet')
    args.extend(['-s', str(ADDON_PATH)])
    return args


def main(argv=None):
    """
    Main entry point for the recording engine.

    Flow:
    1. Parse command-line arguments and load the engine configuration
    2. Pass configuration to the addon via environment variables
    3. Start mitmdump with the addon (blocks until shutdown)
    """
    args = parse_args(argv)

    try:
        config = load_proxy_config(args.configfile)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr, flush=True)
        sys.exit(CONFIG_ERROR_EXIT_CODE)

    # mitmproxy re-imports the addon module; environment variables survive that
    os.environ[ENV_CONFIG_PATH] = str(Path(args.configfile).resolve())
    os.environ[ENV_DATA_DIR] = str(Path(args.datadir).resolve())
    os.environ[ENV_QUIET] = 'true' if args.quiet else 'false'

    sys.argv = build_mitmdump_args(config, quiet=args.quiet)

    try:
        exit_code = mitmain.mitmdump()
    except KeyboardInterrupt:
        exit_code = 0

    sys.exit(exit_code or 0)


if __name__ == '__main__':
    main()
