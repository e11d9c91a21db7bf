#!/usr/bin/env python3
"""
PactTap - consumer contracts from recorded proxy traffic

This is a convenience wrapper that calls the packaged implementation.
The actual implementation is in src/pacttap/cli.py

Usage:
    python pacttap.py proxy --path pact.json --port 3002 --target http://localhost:3000 \
        --name web --provider-name orders
"""

import sys
from pathlib import Path

# Add src to the path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from pacttap.cli import main

if __name__ == '__main__':
    sys.exit(main())
