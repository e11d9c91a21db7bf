"""
PactTap Capture Module

The recording engine: a mitmproxy reverse proxy plus the addon and
recorder that write captured exchanges to disk.

Only the recorder is imported here; the engine and the addon need
mitmproxy and are loaded on their own.
"""

from .recorder import StubRecorder

__all__ = ['StubRecorder']
